"""ORM models for the grants kernel."""

from grants_kernel.models.disbursement import Disbursement, DisbursementKind
from grants_kernel.models.proposal import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    Proposal,
    ProposalMilestone,
    ProposalState,
)
from grants_kernel.models.registry_event import RegistryEvent, RegistryEventType
from grants_kernel.models.sequence_counter import SequenceCounter

__all__ = [
    "Proposal",
    "ProposalMilestone",
    "ProposalState",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "Disbursement",
    "DisbursementKind",
    "RegistryEvent",
    "RegistryEventType",
    "SequenceCounter",
]
