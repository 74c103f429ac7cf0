"""
Idempotency key generation utilities.

Idempotency keys are passed to the fund transfer gateway and stored on the
disbursement row under a unique constraint.  The same milestone therefore
always produces the same key, so a retried transfer is deduplicated by the
gateway and a second disbursement for it is refused by the database.
"""

from uuid import UUID, uuid4

KEY_PREFIX = "grants"


def generate_idempotency_key(kind: str, *parts: object) -> str:
    """
    Generate an idempotency key.

    Format: grants:kind:part1:part2...

    Example:
        >>> generate_idempotency_key("milestone", 7, 0)
        "grants:milestone:7:0"
    """
    return ":".join([KEY_PREFIX, kind, *(str(p) for p in parts)])


def milestone_payout_key(proposal_id: int, milestone_index: int) -> str:
    """Key for paying milestone ``milestone_index`` of a proposal."""
    return generate_idempotency_key("milestone", proposal_id, milestone_index)


def emergency_payout_key(proposal_id: int, current_milestone: int) -> str:
    """Key for an emergency payout starting at ``current_milestone``."""
    return generate_idempotency_key("emergency", proposal_id, current_milestone)


def withdrawal_key(withdrawal_id: UUID | None = None) -> str:
    """
    Key for a custody sweep.

    Withdrawals have no natural identity, so each call gets a fresh UUID
    unless the caller supplies one to make a retry idempotent.
    """
    return generate_idempotency_key("withdrawal", withdrawal_id or uuid4())


def parse_idempotency_key(key: str) -> tuple[str, list[str]]:
    """
    Parse an idempotency key into its kind and parts.

    Raises:
        ValueError: If key format is invalid.
    """
    pieces = key.split(":")
    if len(pieces) < 3 or pieces[0] != KEY_PREFIX:
        raise ValueError(f"Invalid idempotency key format: {key}")
    return pieces[1], pieces[2:]
