"""
Canonical hashing for the registry event chain.

Payloads are hashed over a canonical JSON form (sorted keys, no
whitespace) so the same payload always produces the same digest,
regardless of dict ordering or the process that wrote it.
"""

import hashlib
import json
from datetime import date, datetime
from typing import Any
from uuid import UUID

GENESIS_HASH = "GENESIS"


def _encode_extra(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bytes):
        return value.hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonicalize_json(data: Any) -> str:
    """Serialize ``data`` deterministically; unsupported types raise TypeError."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode_extra)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_registry_event(
    seq: int,
    event_type: str,
    proposal_id: int | None,
    actor: str,
    occurred_at: datetime,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash of one registry event.

    Covers every stored column of the event and the hash of its
    predecessor; the first event links to ``GENESIS_HASH``.  Withdrawals
    have no proposal and contribute an empty field.
    """
    fields = (
        str(seq),
        event_type,
        "" if proposal_id is None else str(proposal_id),
        actor,
        occurred_at.isoformat(),
        payload_hash,
        prev_hash or GENESIS_HASH,
    )
    return _sha256("|".join(fields))
