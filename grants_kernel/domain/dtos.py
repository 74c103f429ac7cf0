"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable read-side snapshots of proposals, disbursements and registry
    events.  The registry and the selectors return these, never live ORM
    objects, so a caller cannot mutate a record outside a transaction.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods are boundary converters invoked only from the
    service and selector layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from grants_kernel.domain.lifecycle import TERMINAL_STATES, ProposalState
from grants_kernel.domain.milestones import paid_amount

if TYPE_CHECKING:
    from grants_kernel.models.disbursement import Disbursement as DisbursementModel
    from grants_kernel.models.proposal import Proposal as ProposalModel
    from grants_kernel.models.registry_event import RegistryEvent as RegistryEventModel


@dataclass(frozen=True)
class ProposalInfo:
    """
    Immutable snapshot of a proposal.

    Guarantees:
        - total_amount == sum(milestone_amounts)
        - paid_amount + remaining_amount == total_amount
    """

    id: UUID
    proposal_id: int
    title: str
    description: str
    reference_url: str
    tags: tuple[str, ...]
    milestone_amounts: tuple[int, ...]
    total_amount: int
    current_milestone: int
    proposer: str
    receiver: str
    asset: str
    state: ProposalState
    created_at: datetime
    modified_at: datetime
    modified_by: str | None = None
    rejection_reason: str | None = None

    @property
    def milestone_count(self) -> int:
        return len(self.milestone_amounts)

    @property
    def paid_amount(self) -> int:
        return paid_amount(self.milestone_amounts, self.current_milestone)

    @property
    def remaining_amount(self) -> int:
        return self.total_amount - self.paid_amount

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @classmethod
    def from_model(cls, model: ProposalModel) -> ProposalInfo:
        return cls(
            id=model.id,
            proposal_id=model.proposal_id,
            title=model.title,
            description=model.description,
            reference_url=model.reference_url,
            tags=tuple(model.tags or ()),
            milestone_amounts=model.milestone_amounts,
            total_amount=model.total_amount,
            current_milestone=model.current_milestone,
            proposer=model.proposer,
            receiver=model.receiver,
            asset=model.asset,
            state=ProposalState(model.state),
            created_at=model.created_at,
            modified_at=model.modified_at,
            modified_by=model.modified_by,
            rejection_reason=model.rejection_reason,
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation; amounts as decimal strings."""
        return {
            "proposal_id": self.proposal_id,
            "title": self.title,
            "description": self.description,
            "reference_url": self.reference_url,
            "tags": list(self.tags),
            "milestone_amounts": [str(a) for a in self.milestone_amounts],
            "total_amount": str(self.total_amount),
            "current_milestone": self.current_milestone,
            "paid_amount": str(self.paid_amount),
            "remaining_amount": str(self.remaining_amount),
            "proposer": self.proposer,
            "receiver": self.receiver,
            "asset": self.asset,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "modified_at": self.modified_at.isoformat(),
            "modified_by": self.modified_by,
            "rejection_reason": self.rejection_reason,
        }


@dataclass(frozen=True)
class DisbursementInfo:
    """Immutable snapshot of one recorded gateway transfer."""

    id: UUID
    kind: str
    proposal_id: int | None
    milestone_index: int | None
    milestone_count: int
    asset: str
    recipient: str
    amount: int
    idempotency_key: str
    transfer_id: str
    actor: str
    disbursed_at: datetime

    @classmethod
    def from_model(cls, model: DisbursementModel) -> DisbursementInfo:
        return cls(
            id=model.id,
            kind=model.kind,
            proposal_id=model.proposal_id,
            milestone_index=model.milestone_index,
            milestone_count=model.milestone_count,
            asset=model.asset,
            recipient=model.recipient,
            amount=model.amount,
            idempotency_key=model.idempotency_key,
            transfer_id=model.transfer_id,
            actor=model.actor,
            disbursed_at=model.disbursed_at,
        )


@dataclass(frozen=True)
class RegistryEventInfo:
    """
    Immutable snapshot of a registry event.

    The payload is exposed read-only; amounts inside it are decimal strings.
    """

    seq: int
    event_type: str
    proposal_id: int | None
    actor: str
    occurred_at: datetime
    payload: Mapping[str, Any]
    payload_hash: str
    prev_hash: str | None
    hash: str

    @classmethod
    def from_model(cls, model: RegistryEventModel) -> RegistryEventInfo:
        return cls(
            seq=model.seq,
            event_type=model.event_type,
            proposal_id=model.proposal_id,
            actor=model.actor,
            occurred_at=model.occurred_at,
            payload=MappingProxyType(dict(model.payload)),
            payload_hash=model.payload_hash,
            prev_hash=model.prev_hash,
            hash=model.hash,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "seq": self.seq,
            "event_type": self.event_type,
            "proposal_id": self.proposal_id,
            "actor": self.actor,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": dict(self.payload),
            "hash": self.hash,
        }
