"""
EventRecorder -- transactional outbox of hash-chained registry events.

Responsibility:
    Creates the append-only RegistryEvent rows that announce every registry
    state change (NewProposal, AcceptProposal, RejectProposal,
    MilestoneCompleted, CompleteProposal, AssetWithdrawn), and validates the
    hash chain that links them.

Architecture position:
    Kernel > Services -- imperative shell, called by ProposalService.

Invariants enforced:
    - Sequence monotonicity via SequenceService (never max+1).
    - Chain integrity: every event's hash covers its own fields and the
      previous event's hash.
    - Same-transaction delivery: events are flushed in the caller's
      transaction, so they commit or roll back with the state change.

Failure modes:
    - EventChainBrokenError: a stored hash, payload hash, or prev_hash link
      does not match its recomputed value.

Audit relevance:
    Consumers poll events by seq (see EventSelector).  An event exists if
    and only if the change it describes was committed.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from grants_kernel.domain.clock import Clock, SystemClock
from grants_kernel.exceptions import EventChainBrokenError
from grants_kernel.logging_config import get_logger
from grants_kernel.models.proposal import Proposal
from grants_kernel.models.registry_event import RegistryEvent, RegistryEventType
from grants_kernel.services.sequence_service import SequenceService
from grants_kernel.utils.hashing import GENESIS_HASH, hash_payload, hash_registry_event

logger = get_logger("services.event_recorder")


class EventRecorder:
    """
    Service for creating and validating registry events.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT deliver events; consumers poll the outbox.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        """Get the hash of the most recent registry event."""
        return self._session.execute(
            select(RegistryEvent.hash)
            .order_by(RegistryEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _record(
        self,
        event_type: RegistryEventType,
        actor: str,
        payload: dict[str, Any],
        proposal_id: int | None = None,
    ) -> RegistryEvent:
        """
        Create a new event with hash chain linkage.

        Postconditions:
            - A RegistryEvent row is flushed with the next seq and
              ``hash == H(seq, event_type, proposal_id, actor, occurred_at,
              payload_hash, prev_hash)``.
        """
        seq = self._sequence_service.next_value(SequenceService.REGISTRY_EVENT)
        prev_hash = self._get_last_hash()
        occurred_at = self._clock.now_utc()

        payload_hash = hash_payload(payload)
        event_hash = hash_registry_event(
            seq=seq,
            event_type=event_type.value,
            proposal_id=proposal_id,
            actor=actor,
            occurred_at=occurred_at,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        event = RegistryEvent(
            seq=seq,
            event_type=event_type.value,
            proposal_id=proposal_id,
            actor=actor,
            occurred_at=occurred_at,
            payload=payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(event)
        self._session.flush()

        logger.info(
            "registry_event_recorded",
            extra={
                "event_type": event_type.value,
                "seq": seq,
                "proposal_id": proposal_id,
            },
        )
        return event

    # Domain-specific recording methods

    def record_new_proposal(self, proposal: Proposal, actor: str) -> RegistryEvent:
        return self._record(
            RegistryEventType.NEW_PROPOSAL,
            actor,
            {
                "proposal_id": proposal.proposal_id,
                "receiver": proposal.receiver,
                "total_amount": str(proposal.total_amount),
            },
            proposal_id=proposal.proposal_id,
        )

    def record_accepted(self, proposal: Proposal, actor: str) -> RegistryEvent:
        return self._record(
            RegistryEventType.ACCEPT_PROPOSAL,
            actor,
            {"proposal_id": proposal.proposal_id},
            proposal_id=proposal.proposal_id,
        )

    def record_rejected(self, proposal: Proposal, actor: str, reason: str) -> RegistryEvent:
        return self._record(
            RegistryEventType.REJECT_PROPOSAL,
            actor,
            {"proposal_id": proposal.proposal_id, "reason": reason},
            proposal_id=proposal.proposal_id,
        )

    def record_milestone_completed(
        self,
        proposal: Proposal,
        actor: str,
        amount: int,
    ) -> RegistryEvent:
        """
        Record a paid milestone.

        ``current_milestone`` in the payload is the count after payment.
        """
        return self._record(
            RegistryEventType.MILESTONE_COMPLETED,
            actor,
            {
                "proposal_id": proposal.proposal_id,
                "current_milestone": proposal.current_milestone,
                "milestone_count": proposal.milestone_count,
                "amount": str(amount),
                "asset": proposal.asset,
            },
            proposal_id=proposal.proposal_id,
        )

    def record_completed(self, proposal: Proposal, actor: str) -> RegistryEvent:
        return self._record(
            RegistryEventType.COMPLETE_PROPOSAL,
            actor,
            {
                "proposal_id": proposal.proposal_id,
                "total_amount": str(proposal.total_amount),
                "asset": proposal.asset,
            },
            proposal_id=proposal.proposal_id,
        )

    def record_asset_withdrawn(
        self,
        actor: str,
        receiver: str,
        amount: int,
        asset: str,
    ) -> RegistryEvent:
        return self._record(
            RegistryEventType.ASSET_WITHDRAWN,
            actor,
            {"receiver": receiver, "amount": str(amount), "asset": asset},
        )

    def validate_chain(self) -> bool:
        """
        Validate the entire event chain.

        Postconditions:
            - Returns ``True`` only if every event's payload hash and hash
              match their recomputed values and every prev_hash matches its
              predecessor's hash.

        Raises:
            EventChainBrokenError: If chain validation fails at any point.
        """
        events = self._session.execute(
            select(RegistryEvent).order_by(RegistryEvent.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for event in events:
            if event.prev_hash != prev_hash:
                logger.critical("event_chain_broken", extra={"seq": event.seq})
                raise EventChainBrokenError(
                    event.seq,
                    prev_hash or GENESIS_HASH,
                    event.prev_hash or GENESIS_HASH,
                )

            expected_payload_hash = hash_payload(event.payload)
            if event.payload_hash != expected_payload_hash:
                logger.critical("event_chain_broken", extra={"seq": event.seq})
                raise EventChainBrokenError(
                    event.seq,
                    expected_payload_hash,
                    event.payload_hash,
                )

            expected_hash = hash_registry_event(
                seq=event.seq,
                event_type=event.event_type,
                proposal_id=event.proposal_id,
                actor=event.actor,
                occurred_at=event.occurred_at,
                payload_hash=event.payload_hash,
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash:
                logger.critical("event_chain_broken", extra={"seq": event.seq})
                raise EventChainBrokenError(event.seq, expected_hash, event.hash)

            prev_hash = event.hash

        return True
