"""Selectors for the grants kernel (read side)."""

from grants_kernel.selectors.disbursement_selector import DisbursementSelector
from grants_kernel.selectors.event_selector import EventSelector
from grants_kernel.selectors.proposal_selector import ProposalSelector

__all__ = [
    "ProposalSelector",
    "DisbursementSelector",
    "EventSelector",
]
