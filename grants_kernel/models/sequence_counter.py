"""
Module: grants_kernel.models.sequence_counter
Responsibility: Named counter rows behind SequenceService.
Architecture position: Kernel > Models.  May import from db/ only.

Each row holds the last value handed out for one named sequence
("proposal", "registry_event").  Row-level locking on this table is what
makes allocation monotonic under concurrency.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from grants_kernel.db.base import Base

PROPOSAL_SEQUENCE = "proposal"
REGISTRY_EVENT_SEQUENCE = "registry_event"


class SequenceCounter(Base):
    """Sequence counter table."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
