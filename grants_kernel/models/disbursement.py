"""
Module: grants_kernel.models.disbursement
Responsibility: Append-only ledger of successful gateway transfers.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per successful transfer, written in the same transaction as
      the proposal mutation it pays for.
    - idempotency_key is unique, so the same milestone can never be
      recorded as paid twice.
    - Rows are never updated or deleted (db/immutability.py).

Audit relevance:
    For every proposal, the sum of its disbursement amounts equals the paid
    prefix of its milestone schedule and never exceeds total_amount.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import Base
from grants_kernel.db.types import ADDRESS_LENGTH, ASSET_ID_LENGTH, TokenAmount


class DisbursementKind(str, Enum):
    """Why the funds moved."""

    MILESTONE = "milestone"
    EMERGENCY = "emergency"
    WITHDRAWAL = "withdrawal"


class Disbursement(Base):
    """A single transfer out of custody."""

    __tablename__ = "disbursements"

    __table_args__ = (
        Index("idx_disbursement_proposal", "proposal_id"),
        Index("idx_disbursement_asset", "asset"),
    )

    kind: Mapped[DisbursementKind] = mapped_column(String(16), nullable=False)

    # Business proposal id; null for custody withdrawals
    proposal_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    # First milestone covered, and how many milestones the transfer covers
    milestone_index: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    milestone_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    asset: Mapped[str] = mapped_column(String(ASSET_ID_LENGTH), nullable=False)
    recipient: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    amount: Mapped[int] = mapped_column(TokenAmount(), nullable=False)

    idempotency_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    # Receipt id returned by the gateway
    transfer_id: Mapped[str] = mapped_column(String(255), nullable=False)

    actor: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    disbursed_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Disbursement {self.kind} {self.amount} {self.asset} -> {self.recipient}>"
