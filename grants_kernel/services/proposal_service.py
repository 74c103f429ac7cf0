"""
ProposalService -- the proposal lifecycle state machine and milestone ledger.

Responsibility:
    Applies every registry operation inside the caller's transaction:
    create, accept, reject, complete_milestone, emergency_payout and
    withdraw_asset.  Consults the authority gate, moves funds through the
    transfer gateway, records disbursements and emits registry events.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by ProposalRegistry, which owns the transaction and the
    per-proposal lock.

Invariants enforced:
    - total_amount == sum(milestone amounts), computed with overflow checks
      at creation and never changed.
    - State transitions follow VALID_TRANSITIONS; completed and rejected
      are terminal.
    - current_milestone only increases, by one per complete_milestone, and
      a proposal is completed exactly when the last milestone is paid.
    - Cumulative payout per proposal never exceeds total_amount.
    - Funds move before any local mutation.  A failed transfer raises
      before the proposal is touched, so rollback leaves it unchanged.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - UnauthorizedError: caller fails the authority gate (checked first).
    - ProposalNotFoundError: unknown proposal id.
    - InvalidStateError: operation illegal in the current state.
    - MilestonesExhaustedError: no unpaid milestone left.
    - InvalidInputError / AmountOverflowError: malformed parameters.
    - TransferFailedError: gateway declined or errored.
    - InsufficientFundsError: withdrawal exceeds custody balance.

Audit relevance:
    Every successful operation leaves a registry event, and every transfer
    a disbursement row keyed by its idempotency key.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from grants_kernel.domain.addresses import is_zero_address, normalize_address
from grants_kernel.domain.clock import Clock, SystemClock
from grants_kernel.domain.dtos import DisbursementInfo, ProposalInfo
from grants_kernel.domain.lifecycle import ProposalState, can_transition
from grants_kernel.domain.milestones import (
    MAX_TOKEN_AMOUNT,
    checked_total,
    remaining_amount,
    validate_milestone_amounts,
)
from grants_kernel.exceptions import (
    AmountOverflowError,
    GrantsKernelError,
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateError,
    MilestonesExhaustedError,
    ProposalNotFoundError,
    TransferFailedError,
)
from grants_kernel.logging_config import get_logger
from grants_kernel.models.disbursement import Disbursement, DisbursementKind
from grants_kernel.models.proposal import Proposal, ProposalMilestone
from grants_kernel.services.authority import AuthorityGate, require_authority
from grants_kernel.services.base import BaseService
from grants_kernel.services.event_recorder import EventRecorder
from grants_kernel.services.sequence_service import SequenceService
from grants_kernel.services.transfer_gateway import FundTransferGateway, TransferReceipt
from grants_kernel.utils.idempotency import (
    emergency_payout_key,
    milestone_payout_key,
    withdrawal_key,
)

logger = get_logger("services.proposal")


def _require_str(field: str, value: object) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(field, f"must be a string, got {type(value).__name__}")
    return value


def require_proposal_id(proposal_id: object) -> int:
    """Return ``proposal_id`` if it is a real int; bools and everything else are refused."""
    if isinstance(proposal_id, bool) or not isinstance(proposal_id, int):
        raise InvalidInputError("proposal_id", "must be an int")
    return proposal_id


class ProposalService(BaseService[Proposal]):
    """
    Flush-only proposal lifecycle operations.

    Every public method returns a frozen DTO, never an ORM entity.
    """

    def __init__(
        self,
        session: Session,
        gateway: FundTransferGateway,
        authority: AuthorityGate,
        clock: Clock | None = None,
        max_token_amount: int = MAX_TOKEN_AMOUNT,
    ):
        super().__init__(session)
        self._gateway = gateway
        self._authority = authority
        self._clock = clock or SystemClock()
        self._max_amount = max_token_amount
        self._sequences = SequenceService(session)
        self._events = EventRecorder(session, self._clock)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_authority(self, caller: str, operation: str) -> None:
        require_authority(self._authority, caller, operation)

    def _load_for_update(self, proposal_id: int) -> Proposal:
        """Load a proposal row with ``SELECT ... FOR UPDATE``."""
        proposal = self.session.execute(
            select(Proposal)
            .where(Proposal.proposal_id == proposal_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        return proposal

    def _require_transition(
        self,
        proposal: Proposal,
        target: ProposalState,
        operation: str,
    ) -> None:
        current = ProposalState(proposal.state)
        if not can_transition(current, target):
            raise InvalidStateError(proposal.proposal_id, current.value, operation)

    def _require_accepted(self, proposal: Proposal, operation: str) -> None:
        current = ProposalState(proposal.state)
        if current is not ProposalState.ACCEPTED:
            raise InvalidStateError(proposal.proposal_id, current.value, operation)
        if proposal.current_milestone >= proposal.milestone_count:
            raise MilestonesExhaustedError(proposal.proposal_id, proposal.milestone_count)

    def _touch(self, proposal: Proposal, caller: str) -> None:
        proposal.modified_at = self._clock.now_utc()
        proposal.modified_by = caller

    def _send(
        self,
        asset: str,
        recipient: str,
        amount: int,
        idempotency_key: str,
    ) -> TransferReceipt:
        """
        Call the gateway, normalizing every failure to TransferFailedError.

        Non-kernel exceptions from the gateway are wrapped; kernel errors
        propagate unchanged.
        """
        try:
            return self._gateway.transfer(asset, recipient, amount, idempotency_key)
        except TransferFailedError as exc:
            logger.warning(
                "transfer_failed",
                extra={"idempotency_key": idempotency_key, "reason": exc.reason},
            )
            raise
        except GrantsKernelError:
            raise
        except Exception as exc:
            logger.error(
                "transfer_failed",
                extra={"idempotency_key": idempotency_key},
                exc_info=True,
            )
            raise TransferFailedError(
                asset, recipient, amount, f"{type(exc).__name__}: {exc}"
            ) from exc

    def _record_disbursement(
        self,
        receipt: TransferReceipt,
        kind: DisbursementKind,
        actor: str,
        proposal_id: int | None = None,
        milestone_index: int | None = None,
        milestone_count: int = 0,
    ) -> Disbursement:
        disbursement = Disbursement(
            kind=kind.value,
            proposal_id=proposal_id,
            milestone_index=milestone_index,
            milestone_count=milestone_count,
            asset=receipt.asset,
            recipient=receipt.recipient,
            amount=receipt.amount,
            idempotency_key=receipt.idempotency_key,
            transfer_id=receipt.transfer_id,
            actor=actor,
            disbursed_at=self._clock.now_utc(),
        )
        self.session.add(disbursement)
        return disbursement

    # =========================================================================
    # Operations
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
    ) -> ProposalInfo:
        """
        Submit a new proposal.  Anyone may call this.

        Postconditions:
            - A proposal with the next proposal_id is flushed in state
              ``proposed`` with current_milestone 0.
            - A NewProposal event is recorded.

        Raises:
            InvalidInputError: Malformed parameters.
            AmountOverflowError: A milestone or the total exceeds the maximum.
        """
        caller = normalize_address(_require_str("caller", caller))
        _require_str("title", title)
        _require_str("description", description)
        _require_str("reference_url", reference_url)
        receiver = _require_str("receiver", receiver)
        asset = _require_str("asset", asset)

        if isinstance(tags, (str, bytes)) or not isinstance(tags, Sequence):
            raise InvalidInputError("tags", "must be a sequence of strings")
        for index, tag in enumerate(tags):
            _require_str(f"tags[{index}]", tag)

        if is_zero_address(receiver):
            raise InvalidInputError("receiver", "must not be empty or the zero address")
        if not asset.strip():
            raise InvalidInputError("asset", "must not be empty")

        amounts = validate_milestone_amounts(milestone_amounts, self._max_amount)
        total = checked_total(amounts, self._max_amount)

        proposal_id = self._sequences.next_value(SequenceService.PROPOSAL)
        now = self._clock.now_utc()

        proposal = Proposal(
            proposal_id=proposal_id,
            title=title,
            description=description,
            reference_url=reference_url,
            tags=list(tags),
            total_amount=total,
            current_milestone=0,
            proposer=caller,
            receiver=normalize_address(receiver),
            asset=asset.strip(),
            state=ProposalState.PROPOSED.value,
            created_at=now,
            modified_at=now,
            modified_by=caller,
            milestones=[
                ProposalMilestone(milestone_index=index, amount=amount)
                for index, amount in enumerate(amounts)
            ],
        )
        self.session.add(proposal)
        self.session.flush()

        self._events.record_new_proposal(proposal, caller)

        logger.info(
            "proposal_created",
            extra={
                "proposal_id": proposal_id,
                "milestone_count": len(amounts),
                "total_amount": str(total),
                "asset": proposal.asset,
            },
        )
        return ProposalInfo.from_model(proposal)

    def accept_proposal(self, caller: str, proposal_id: int) -> ProposalInfo:
        """
        Approve a proposed proposal for funding.

        Raises:
            UnauthorizedError, ProposalNotFoundError, InvalidStateError
        """
        self._require_authority(caller, "accept proposal")
        proposal = self._load_for_update(require_proposal_id(proposal_id))
        self._require_transition(proposal, ProposalState.ACCEPTED, "accept")

        proposal.state = ProposalState.ACCEPTED.value
        self._touch(proposal, caller)
        self.session.flush()

        self._events.record_accepted(proposal, caller)
        logger.info("proposal_accepted", extra={"proposal_id": proposal_id})
        return ProposalInfo.from_model(proposal)

    def reject_proposal(self, caller: str, proposal_id: int, reason: str = "") -> ProposalInfo:
        """
        Reject a proposed or accepted proposal.  No funds move; milestones
        already paid stay paid.

        Raises:
            UnauthorizedError, ProposalNotFoundError, InvalidStateError,
            InvalidInputError (non-string reason)
        """
        self._require_authority(caller, "reject proposal")
        _require_str("reason", reason)
        proposal = self._load_for_update(require_proposal_id(proposal_id))
        self._require_transition(proposal, ProposalState.REJECTED, "reject")

        proposal.state = ProposalState.REJECTED.value
        proposal.rejection_reason = reason
        self._touch(proposal, caller)
        self.session.flush()

        self._events.record_rejected(proposal, caller, reason)
        logger.info(
            "proposal_rejected",
            extra={
                "proposal_id": proposal_id,
                "reason": reason,
                "paid_milestones": proposal.current_milestone,
            },
        )
        return ProposalInfo.from_model(proposal)

    def complete_milestone(self, caller: str, proposal_id: int) -> ProposalInfo:
        """
        Pay the next milestone of an accepted proposal.

        Order:
            1. amount := milestone_amounts[current_milestone]
            2. gateway transfer (idempotency key per milestone)
            3. current_milestone += 1, disbursement, MilestoneCompleted
            4. if every milestone is now paid: completed, CompleteProposal

        Raises:
            UnauthorizedError, ProposalNotFoundError, InvalidStateError,
            MilestonesExhaustedError, TransferFailedError
        """
        self._require_authority(caller, "complete milestone")
        proposal = self._load_for_update(require_proposal_id(proposal_id))
        self._require_accepted(proposal, "complete milestone")

        index = proposal.current_milestone
        amount = proposal.milestone_amounts[index]

        receipt = self._send(
            proposal.asset,
            proposal.receiver,
            amount,
            milestone_payout_key(proposal.proposal_id, index),
        )

        proposal.current_milestone = index + 1
        self._touch(proposal, caller)
        self._record_disbursement(
            receipt,
            DisbursementKind.MILESTONE,
            caller,
            proposal_id=proposal.proposal_id,
            milestone_index=index,
            milestone_count=1,
        )
        self.session.flush()
        self._events.record_milestone_completed(proposal, caller, amount)

        logger.info(
            "milestone_completed",
            extra={
                "proposal_id": proposal_id,
                "milestone_index": index,
                "amount": str(amount),
                "transfer_id": receipt.transfer_id,
            },
        )

        if proposal.current_milestone == proposal.milestone_count:
            self._complete(proposal, caller)

        return ProposalInfo.from_model(proposal)

    def emergency_payout(self, caller: str, proposal_id: int) -> ProposalInfo:
        """
        Pay every remaining milestone in one transfer and complete.

        Raises:
            UnauthorizedError, ProposalNotFoundError, InvalidStateError,
            MilestonesExhaustedError, AmountOverflowError, TransferFailedError
        """
        self._require_authority(caller, "emergency payout")
        proposal = self._load_for_update(require_proposal_id(proposal_id))
        self._require_accepted(proposal, "emergency payout")

        start = proposal.current_milestone
        count = proposal.milestone_count
        amount = remaining_amount(proposal.milestone_amounts, start, self._max_amount)

        receipt = self._send(
            proposal.asset,
            proposal.receiver,
            amount,
            emergency_payout_key(proposal.proposal_id, start),
        )

        proposal.current_milestone = count
        self._touch(proposal, caller)
        self._record_disbursement(
            receipt,
            DisbursementKind.EMERGENCY,
            caller,
            proposal_id=proposal.proposal_id,
            milestone_index=start,
            milestone_count=count - start,
        )
        self.session.flush()

        logger.warning(
            "emergency_payout_executed",
            extra={
                "proposal_id": proposal_id,
                "from_milestone": start,
                "amount": str(amount),
                "transfer_id": receipt.transfer_id,
            },
        )
        self._complete(proposal, caller)
        return ProposalInfo.from_model(proposal)

    def _complete(self, proposal: Proposal, caller: str) -> None:
        self._require_transition(proposal, ProposalState.COMPLETED, "complete")
        proposal.state = ProposalState.COMPLETED.value
        self._touch(proposal, caller)
        self.session.flush()
        self._events.record_completed(proposal, caller)
        logger.info(
            "proposal_completed",
            extra={
                "proposal_id": proposal.proposal_id,
                "total_amount": str(proposal.total_amount),
            },
        )

    def withdraw_asset(
        self,
        caller: str,
        receiver: str,
        amount: int,
        asset: str,
        withdrawal_id: UUID | None = None,
    ) -> DisbursementInfo:
        """
        Sweep custody balance of ``asset`` to ``receiver``.

        Independent of proposals: no proposal row is read or written.

        Raises:
            UnauthorizedError, InvalidInputError, AmountOverflowError,
            InsufficientFundsError, TransferFailedError
        """
        self._require_authority(caller, "withdraw asset")
        receiver = _require_str("receiver", receiver)
        asset = _require_str("asset", asset)
        if is_zero_address(receiver):
            raise InvalidInputError("receiver", "must not be empty or the zero address")
        if not asset.strip():
            raise InvalidInputError("asset", "must not be empty")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInputError("amount", "must be a positive int")
        if amount > self._max_amount:
            raise AmountOverflowError("amount", amount, self._max_amount)

        receiver = normalize_address(receiver)
        asset = asset.strip()
        idempotency_key = withdrawal_key(withdrawal_id)

        if withdrawal_id is not None:
            previous = self._find_disbursement(idempotency_key)
            if previous is not None:
                return self._replay_withdrawal(previous, receiver, amount, asset)

        available = self._gateway.balance_of(asset)
        if available < amount:
            logger.warning(
                "withdrawal_insufficient_funds",
                extra={"asset": asset, "requested": str(amount), "available": str(available)},
            )
            raise InsufficientFundsError(asset, amount, available)

        receipt = self._send(asset, receiver, amount, idempotency_key)
        disbursement = self._record_disbursement(
            receipt,
            DisbursementKind.WITHDRAWAL,
            caller,
        )
        self.session.flush()
        self._events.record_asset_withdrawn(caller, receiver, amount, asset)

        logger.info(
            "asset_withdrawn",
            extra={
                "asset": asset,
                "receiver": receiver,
                "amount": str(amount),
                "transfer_id": receipt.transfer_id,
            },
        )
        return DisbursementInfo.from_model(disbursement)

    def _find_disbursement(self, idempotency_key: str) -> Disbursement | None:
        return self.session.execute(
            select(Disbursement).where(Disbursement.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    def _replay_withdrawal(
        self,
        previous: Disbursement,
        receiver: str,
        amount: int,
        asset: str,
    ) -> DisbursementInfo:
        """
        Answer a retried withdrawal with the disbursement already recorded.

        Custody was debited by the original call, so no balance check,
        transfer or event happens here.  A retry that changes the receiver,
        amount or asset is refused.
        """
        if (previous.recipient, previous.amount, previous.asset) != (receiver, amount, asset):
            raise InvalidInputError(
                "withdrawal_id",
                "already used for a withdrawal with a different receiver, amount or asset",
            )
        logger.info(
            "withdrawal_replayed",
            extra={
                "idempotency_key": previous.idempotency_key,
                "transfer_id": previous.transfer_id,
            },
        )
        return DisbursementInfo.from_model(previous)
