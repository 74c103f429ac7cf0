"""
Module: grants_kernel.models.registry_event
Responsibility: Transactional outbox of registry events with a tamper-evident
    hash chain.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (db/immutability.py).
    - seq is strictly increasing, allocated by SequenceService.
    - hash = H(seq | event_type | proposal_id | actor | occurred_at |
      payload_hash | prev_hash), computed by EventRecorder.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - EventChainBrokenError when validation detects a hash mismatch.

Audit relevance:
    Events are written in the same transaction as the state change they
    describe, so an event exists if and only if the change was committed.
    External consumers poll by seq.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import Base
from grants_kernel.db.types import ADDRESS_LENGTH, HASH_LENGTH


class RegistryEventType(str, Enum):
    """Event names emitted by the registry."""

    NEW_PROPOSAL = "NewProposal"
    ACCEPT_PROPOSAL = "AcceptProposal"
    REJECT_PROPOSAL = "RejectProposal"
    MILESTONE_COMPLETED = "MilestoneCompleted"
    COMPLETE_PROPOSAL = "CompleteProposal"
    ASSET_WITHDRAWN = "AssetWithdrawn"


class RegistryEvent(Base):
    """
    One registry event.

    Guarantees:
        - prev_hash is None only for the genesis event.
        - Amounts in payload are decimal strings.
    """

    __tablename__ = "registry_events"

    __table_args__ = (
        Index("idx_registry_event_proposal", "proposal_id"),
        Index("idx_registry_event_type", "event_type"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    proposal_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    actor: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(HASH_LENGTH), nullable=False)

    # Hash of the previous event (null for first event)
    prev_hash: Mapped[str | None] = mapped_column(String(HASH_LENGTH), nullable=True)

    hash: Mapped[str] = mapped_column(String(HASH_LENGTH), nullable=False)

    def __repr__(self) -> str:
        return f"<RegistryEvent #{self.seq} {self.event_type}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
