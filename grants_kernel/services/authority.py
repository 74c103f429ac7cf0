"""
Access control gate -- who may act as the controlling authority.

Authority is an injected capability, not a hard-wired address.  The
registry asks ``gate.is_authority(caller)`` before every authority-only
operation (accept, reject, complete_milestone, emergency_payout,
withdraw_asset) and raises UnauthorizedError when the answer is no.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from grants_kernel.domain.addresses import is_zero_address, normalize_address
from grants_kernel.exceptions import InvalidInputError, UnauthorizedError
from grants_kernel.logging_config import get_logger

logger = get_logger("services.authority")


@runtime_checkable
class AuthorityGate(Protocol):
    """Answers whether a caller is a controlling authority."""

    def is_authority(self, caller: str) -> bool:
        ...


def require_authority(gate: AuthorityGate, caller: str, operation: str) -> None:
    """Raise UnauthorizedError, and log the refusal, unless ``caller`` passes ``gate``."""
    if not gate.is_authority(caller):
        logger.warning(
            "unauthorized_call_rejected",
            extra={"caller": caller, "operation": operation},
        )
        raise UnauthorizedError(caller, operation)


class StaticAuthorityGate:
    """A fixed set of authority addresses, typically from configuration."""

    def __init__(self, authorities: Iterable[str]):
        self._authorities = frozenset(
            normalize_address(a) for a in authorities if not is_zero_address(a)
        )

    @property
    def authorities(self) -> frozenset[str]:
        return self._authorities

    def is_authority(self, caller: str) -> bool:
        return normalize_address(caller) in self._authorities


class OwnableAuthorityGate:
    """
    Single-owner gate.

    The owner may hand authority to another address or renounce it, after
    which no caller is an authority and every authority-only operation
    fails with UnauthorizedError.
    """

    def __init__(self, owner: str):
        if is_zero_address(owner):
            raise InvalidInputError("owner", "must not be the zero address")
        self._owner: str | None = normalize_address(owner)
        self._lock = threading.Lock()

    @property
    def owner(self) -> str | None:
        return self._owner

    def is_authority(self, caller: str) -> bool:
        return self._owner is not None and normalize_address(caller) == self._owner

    def _require_owner(self, caller: str, operation: str) -> None:
        if not self.is_authority(caller):
            raise UnauthorizedError(caller, operation)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        if is_zero_address(new_owner):
            raise InvalidInputError("new_owner", "must not be the zero address")
        with self._lock:
            self._require_owner(caller, "transfer ownership")
            previous, self._owner = self._owner, normalize_address(new_owner)
        logger.info(
            "ownership_transferred",
            extra={"previous_owner": previous, "new_owner": self._owner},
        )

    def renounce_ownership(self, caller: str) -> None:
        with self._lock:
            self._require_owner(caller, "renounce ownership")
            previous, self._owner = self._owner, None
        logger.warning("ownership_renounced", extra={"previous_owner": previous})
