"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers for proposal ids and
    registry event sequence numbers.  Uses a dedicated counter table with
    row-level locking (``SELECT ... FOR UPDATE``) to guarantee uniqueness
    and ordering under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by ProposalService (proposal ids) and EventRecorder (event seq).

Invariants enforced:
    - Monotonicity: values are strictly increasing and never reused.  The
      SQL aggregate-max-plus-one pattern is never used; the locked counter
      row is the sole source of truth for the next value.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: two transactions creating the same counter row at
      once.  create_tables() seeds the well-known counters so this only
      happens for ad-hoc sequence names.

Audit relevance:
    Allocation is logged at DEBUG level with sequence_name and value.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from grants_kernel.logging_config import get_logger
from grants_kernel.models.sequence_counter import (
    PROPOSAL_SEQUENCE,
    REGISTRY_EVENT_SEQUENCE,
    SequenceCounter,
)

__all__ = ["SequenceCounter", "SequenceService"]

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is committed only when the caller's
        transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session_scope() as session:
            proposal_id = SequenceService(session).next_value(SequenceService.PROPOSAL)
    """

    # Well-known sequence names
    PROPOSAL = PROPOSAL_SEQUENCE
    REGISTRY_EVENT = REGISTRY_EVENT_SEQUENCE

    WELL_KNOWN = (PROPOSAL, REGISTRY_EVENT)

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Locks the counter row (creating it on first use), increments it and
        returns the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously committed for this sequence name.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=0)
            self._session.add(counter)

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int:
        """Current value of a sequence without incrementing (0 if unused)."""
        value = self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return value or 0

    def initialize_sequences(self) -> None:
        """
        Create the well-known counters at zero if they do not exist.

        Called by create_tables() so that concurrent first allocations lock
        an existing row instead of racing to insert one.
        """
        for name in self.WELL_KNOWN:
            existing = self._session.execute(
                select(SequenceCounter.id).where(SequenceCounter.name == name)
            ).scalar_one_or_none()

            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))

        self._session.flush()
