"""Utility modules for the grants kernel."""

from grants_kernel.utils.hashing import (
    canonicalize_json,
    hash_payload,
    hash_registry_event,
)
from grants_kernel.utils.idempotency import (
    emergency_payout_key,
    milestone_payout_key,
    withdrawal_key,
)

__all__ = [
    "canonicalize_json",
    "hash_payload",
    "hash_registry_event",
    "milestone_payout_key",
    "emergency_payout_key",
    "withdrawal_key",
]
