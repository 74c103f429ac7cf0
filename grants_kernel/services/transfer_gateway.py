"""
Fund transfer gateway -- the boundary where money leaves custody.

The registry never moves funds itself.  It asks a FundTransferGateway to
send ``amount`` of ``asset`` to a recipient and only records the payout
once the gateway reports success.  Every request carries an idempotency
key, so a retry of the same milestone is recognized by the gateway and
never sends twice.

Adding a new settlement backend = implement the FundTransferGateway
protocol.  Zero changes to the registry.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from grants_kernel.exceptions import InvalidInputError, TransferFailedError
from grants_kernel.logging_config import get_logger

logger = get_logger("services.transfer_gateway")


@dataclass(frozen=True)
class TransferReceipt:
    """Proof of a completed transfer."""

    transfer_id: str
    asset: str
    recipient: str
    amount: int
    idempotency_key: str


@runtime_checkable
class FundTransferGateway(Protocol):
    """Contract for moving funds out of custody."""

    def transfer(
        self,
        asset: str,
        recipient: str,
        amount: int,
        idempotency_key: str,
    ) -> TransferReceipt:
        """
        Send ``amount`` of ``asset`` to ``recipient``.

        A repeated ``idempotency_key`` returns the original receipt without
        moving funds again.

        Raises:
            TransferFailedError: The transfer did not happen.
        """
        ...

    def balance_of(self, asset: str) -> int:
        """Custody balance of ``asset``."""
        ...


class InMemoryTransferGateway:
    """
    Reference gateway holding custody balances in memory.

    Used by tests and the CLI.  Failures can be scripted with
    ``fail_next()`` (a declined transfer) or ``raise_next()`` (an arbitrary
    backend exception).  Thread-safe.
    """

    def __init__(self, balances: dict[str, int] | None = None):
        self._balances: dict[str, int] = dict(balances or {})
        self._receipts: dict[str, TransferReceipt] = {}
        self._transfers: list[TransferReceipt] = []
        self._scripted_failures: list[str] = []
        self._scripted_errors: list[Exception] = []
        self._lock = threading.Lock()

    def fund(self, asset: str, amount: int) -> None:
        """Add ``amount`` of ``asset`` to custody."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInputError("amount", "must be a positive int")
        with self._lock:
            self._balances[asset] = self._balances.get(asset, 0) + amount

    def fail_next(self, reason: str = "declined by gateway", times: int = 1) -> None:
        """Decline the next ``times`` transfers with ``reason``."""
        with self._lock:
            self._scripted_failures.extend([reason] * times)

    def raise_next(self, exc: Exception) -> None:
        """Raise ``exc`` from the next transfer."""
        with self._lock:
            self._scripted_errors.append(exc)

    def balance_of(self, asset: str) -> int:
        with self._lock:
            return self._balances.get(asset, 0)

    @property
    def transfers(self) -> tuple[TransferReceipt, ...]:
        """Every transfer that moved funds, in order."""
        with self._lock:
            return tuple(self._transfers)

    def total_transferred(self, asset: str, recipient: str | None = None) -> int:
        return sum(
            t.amount
            for t in self.transfers
            if t.asset == asset and (recipient is None or t.recipient == recipient)
        )

    def transfer(
        self,
        asset: str,
        recipient: str,
        amount: int,
        idempotency_key: str,
    ) -> TransferReceipt:
        with self._lock:
            existing = self._receipts.get(idempotency_key)
            if existing is not None:
                logger.info(
                    "transfer_deduplicated",
                    extra={
                        "idempotency_key": idempotency_key,
                        "transfer_id": existing.transfer_id,
                    },
                )
                return existing

            if self._scripted_errors:
                raise self._scripted_errors.pop(0)
            if self._scripted_failures:
                raise TransferFailedError(
                    asset, recipient, amount, self._scripted_failures.pop(0)
                )

            available = self._balances.get(asset, 0)
            if amount > available:
                raise TransferFailedError(
                    asset,
                    recipient,
                    amount,
                    f"insufficient custody balance ({available})",
                )

            self._balances[asset] = available - amount
            receipt = TransferReceipt(
                transfer_id=f"transfer-{len(self._transfers) + 1}",
                asset=asset,
                recipient=recipient,
                amount=amount,
                idempotency_key=idempotency_key,
            )
            self._receipts[idempotency_key] = receipt
            self._transfers.append(receipt)

        logger.info(
            "transfer_executed",
            extra={
                "transfer_id": receipt.transfer_id,
                "asset": asset,
                "recipient": recipient,
                "amount": str(amount),
            },
        )
        return receipt
