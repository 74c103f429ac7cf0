"""Services for the grants kernel (write side)."""

from grants_kernel.services.authority import (
    AuthorityGate,
    OwnableAuthorityGate,
    StaticAuthorityGate,
)
from grants_kernel.services.event_recorder import EventRecorder
from grants_kernel.services.proposal_registry import ProposalRegistry
from grants_kernel.services.proposal_service import ProposalService
from grants_kernel.services.sequence_service import SequenceService
from grants_kernel.services.transfer_gateway import (
    FundTransferGateway,
    InMemoryTransferGateway,
    TransferReceipt,
)

__all__ = [
    "ProposalRegistry",
    "ProposalService",
    "EventRecorder",
    "SequenceService",
    "FundTransferGateway",
    "InMemoryTransferGateway",
    "TransferReceipt",
    "AuthorityGate",
    "StaticAuthorityGate",
    "OwnableAuthorityGate",
]
