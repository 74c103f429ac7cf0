"""
ProposalRegistry -- public entry point of the grants kernel.

Responsibility:
    Wraps every ProposalService operation in its own transaction
    (commit on success, rollback on any error) and serializes mutating
    operations per proposal, so that the read -> transfer -> write -> commit
    span of one call never interleaves with another call on the same
    proposal.

Architecture position:
    Kernel > Services -- the transaction-owning facade.  Callers (the CLI,
    an API layer, tests) use this class; ProposalService is flush-only.

Invariants enforced:
    - All-or-nothing: an error anywhere (authorization, validation,
      transfer, flush-time immutability check) rolls back the proposal,
      the disbursement, the events and the sequence counters together.
    - Linearizable per proposal_id: an in-process lock per proposal, plus
      ``SELECT ... FOR UPDATE`` in the service for multi-process PostgreSQL
      deployments.
    - SQLite has a single writer, so on SQLite every mutating call takes
      the same lock.

Failure modes:
    Every kernel exception propagates unchanged after rollback.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator, Sequence
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from grants_kernel.db.engine import is_sqlite, session_scope
from grants_kernel.db.immutability import register_immutability_listeners
from grants_kernel.domain.clock import Clock, SystemClock
from grants_kernel.domain.dtos import DisbursementInfo, ProposalInfo, RegistryEventInfo
from grants_kernel.domain.milestones import MAX_TOKEN_AMOUNT
from grants_kernel.logging_config import LogContext, get_logger
from grants_kernel.selectors.event_selector import EventSelector
from grants_kernel.selectors.proposal_selector import ProposalSelector
from grants_kernel.services.authority import AuthorityGate, require_authority
from grants_kernel.services.event_recorder import EventRecorder
from grants_kernel.services.proposal_service import ProposalService, require_proposal_id
from grants_kernel.services.transfer_gateway import FundTransferGateway

logger = get_logger("services.registry")


class KeyedLocks:
    """
    In-process mutual exclusion keyed by arbitrary hashable keys.

    A key's lock exists only while some thread holds or waits for it; the
    last one out removes it, so the table never outgrows the number of
    calls in flight.  With ``single_writer=True`` every key shares one lock.
    """

    def __init__(self, single_writer: bool = False):
        self._single_writer = single_writer
        self._global = threading.RLock()
        self._guard = threading.Lock()
        # key -> [lock, number of threads holding or waiting]
        self._entries: dict[Hashable, list] = {}

    @property
    def single_writer(self) -> bool:
        return self._single_writer

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _acquire_entry(self, key: Hashable) -> threading.RLock:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [threading.RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: Hashable) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        if self._single_writer:
            with self._global:
                yield
            return

        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)


class ProposalRegistry:
    """
    Transaction-owning facade over ProposalService.

    Every mutating method runs in a fresh session from ``session_factory``
    and returns a frozen DTO.  Read methods run unsynchronized.

    Usage:
        registry = ProposalRegistry(
            get_session_factory(),
            gateway=InMemoryTransferGateway({"USDC": 10_000}),
            authority=StaticAuthorityGate(["0xadmin"]),
        )
        pid = registry.create_proposal("0xalice", "Docs", "...", "https://...",
                                       [100, 250, 650], "0xalice", "USDC")
        registry.accept_proposal("0xadmin", pid)
        registry.complete_milestone("0xadmin", pid)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        gateway: FundTransferGateway,
        authority: AuthorityGate,
        clock: Clock | None = None,
        max_token_amount: int = MAX_TOKEN_AMOUNT,
        single_writer: bool | None = None,
    ):
        self._session_factory = session_factory
        self._gateway = gateway
        self._authority = authority
        self._clock = clock or SystemClock()
        self._max_amount = max_token_amount

        if single_writer is None:
            single_writer = is_sqlite(session_factory.kw.get("bind"))
        self._locks = KeyedLocks(single_writer=single_writer)

        register_immutability_listeners()

    @property
    def gateway(self) -> FundTransferGateway:
        return self._gateway

    @property
    def authority(self) -> AuthorityGate:
        return self._authority

    def _service(self, session: Session) -> ProposalService:
        return ProposalService(
            session,
            gateway=self._gateway,
            authority=self._authority,
            clock=self._clock,
            max_token_amount=self._max_amount,
        )

    @contextmanager
    def _write(self, lock_key: Hashable, caller: str, proposal_id: int | None = None):
        with self._locks.hold(lock_key):
            with LogContext.bind(
                actor=caller,
                proposal_id=None if proposal_id is None else str(proposal_id),
            ):
                with session_scope(self._session_factory) as session:
                    yield self._service(session)

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_proposal(
        self,
        caller: str,
        title: str,
        description: str,
        reference_url: str,
        milestone_amounts: Sequence[int],
        receiver: str,
        asset: str,
        tags: Sequence[str] = (),
    ) -> int:
        """Submit a proposal; returns the new proposal_id."""
        with self._write(("create",), caller) as service:
            info = service.create_proposal(
                caller,
                title,
                description,
                reference_url,
                milestone_amounts,
                receiver,
                asset,
                tags,
            )
        return info.proposal_id

    def _proposal_key(self, caller: str, proposal_id: object, operation: str) -> tuple[str, int]:
        """
        Lock key for an authority-only proposal operation.

        The caller and the id are checked before any lock is taken, so
        refused calls never touch the lock table.  The service repeats the
        authority check inside the transaction.
        """
        require_authority(self._authority, caller, operation)
        return ("proposal", require_proposal_id(proposal_id))

    def accept_proposal(self, caller: str, proposal_id: int) -> ProposalInfo:
        key = self._proposal_key(caller, proposal_id, "accept proposal")
        with self._write(key, caller, proposal_id) as service:
            return service.accept_proposal(caller, proposal_id)

    def reject_proposal(self, caller: str, proposal_id: int, reason: str = "") -> ProposalInfo:
        key = self._proposal_key(caller, proposal_id, "reject proposal")
        with self._write(key, caller, proposal_id) as service:
            return service.reject_proposal(caller, proposal_id, reason)

    def complete_milestone(self, caller: str, proposal_id: int) -> ProposalInfo:
        key = self._proposal_key(caller, proposal_id, "complete milestone")
        with self._write(key, caller, proposal_id) as service:
            return service.complete_milestone(caller, proposal_id)

    def emergency_payout(self, caller: str, proposal_id: int) -> ProposalInfo:
        key = self._proposal_key(caller, proposal_id, "emergency payout")
        with self._write(key, caller, proposal_id) as service:
            return service.emergency_payout(caller, proposal_id)

    def withdraw_asset(
        self,
        caller: str,
        receiver: str,
        amount: int,
        asset: str,
        withdrawal_id: UUID | None = None,
    ) -> DisbursementInfo:
        require_authority(self._authority, caller, "withdraw asset")
        with self._write(("withdrawal",), caller) as service:
            return service.withdraw_asset(caller, receiver, amount, asset, withdrawal_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_proposal(self, proposal_id: int) -> ProposalInfo:
        with self._session_factory() as session:
            return ProposalSelector(session).get(proposal_id)

    def proposal_count(self) -> int:
        with self._session_factory() as session:
            return ProposalSelector(session).proposal_count()

    def list_events(self, after_seq: int = 0, limit: int | None = None) -> list[RegistryEventInfo]:
        with self._session_factory() as session:
            return EventSelector(session).list_events(after_seq=after_seq, limit=limit)

    def validate_event_chain(self) -> bool:
        with self._session_factory() as session:
            return EventRecorder(session, self._clock).validate_chain()
