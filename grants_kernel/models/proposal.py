"""
Module: grants_kernel.models.proposal
Responsibility: ORM persistence for grant proposals and their milestone
    payment schedules.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - proposal_id is unique and allocated from the "proposal" sequence.
    - total_amount == sum(milestone amounts), fixed at creation.
    - 0 <= current_milestone <= milestone_count, never decreasing.
    - state follows VALID_TRANSITIONS; completed and rejected are terminal.
    All four are checked by ProposalService and again at flush time by the
    listeners in db/immutability.py.

Failure modes:
    - ImmutabilityViolationError on a write that breaks an invariant above.
    - IntegrityError on a duplicate proposal_id or milestone index.
"""

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grants_kernel.db.base import Base, TrackedBase, UUID, UUIDString
from grants_kernel.db.types import ADDRESS_LENGTH, ASSET_ID_LENGTH, TokenAmount
from grants_kernel.domain.lifecycle import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    ProposalState,
)

__all__ = [
    "Proposal",
    "ProposalMilestone",
    "ProposalState",
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
]


class Proposal(TrackedBase):
    """
    A funding proposal and its payment progress.

    Contract:
        Descriptive, financial and party fields are written once at creation.
        Only state, current_milestone, rejection_reason and the modified_*
        metadata change afterwards, and only through ProposalService.
    """

    __tablename__ = "proposals"

    __table_args__ = (
        Index("idx_proposal_state", "state"),
        Index("idx_proposal_receiver", "receiver"),
    )

    # Business identifier, allocated from the "proposal" sequence
    proposal_id: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference_url: Mapped[str] = mapped_column(Text, nullable=False)

    # Ordered list of strings
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    total_amount: Mapped[int] = mapped_column(TokenAmount(), nullable=False)

    # Number of milestones paid so far
    current_milestone: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    proposer: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    receiver: Mapped[str] = mapped_column(String(ADDRESS_LENGTH), nullable=False)
    asset: Mapped[str] = mapped_column(String(ASSET_ID_LENGTH), nullable=False)

    state: Mapped[ProposalState] = mapped_column(
        String(10),
        default=ProposalState.PROPOSED.value,
        nullable=False,
    )

    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    milestones: Mapped[list["ProposalMilestone"]] = relationship(
        back_populates="proposal",
        order_by="ProposalMilestone.milestone_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Proposal {self.proposal_id} [{self.state}] {self.current_milestone}/{self.milestone_count}>"

    @property
    def milestone_amounts(self) -> tuple[int, ...]:
        return tuple(m.amount for m in self.milestones)

    @property
    def milestone_count(self) -> int:
        return len(self.milestones)

    @property
    def is_terminal(self) -> bool:
        return ProposalState(self.state) in TERMINAL_STATES


class ProposalMilestone(Base):
    """
    One entry of a proposal's payment schedule.

    Rows are inserted with the proposal and never updated or deleted.
    """

    __tablename__ = "proposal_milestones"

    __table_args__ = (
        UniqueConstraint("proposal_ref", "milestone_index", name="uq_proposal_milestone_index"),
    )

    proposal_ref: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("proposals.id"),
        nullable=False,
    )

    # Zero-based position in the schedule
    milestone_index: Mapped[int] = mapped_column(BigInteger, nullable=False)

    amount: Mapped[int] = mapped_column(TokenAmount(), nullable=False)

    proposal: Mapped["Proposal"] = relationship(back_populates="milestones")

    def __repr__(self) -> str:
        return f"<ProposalMilestone #{self.milestone_index} {self.amount}>"
