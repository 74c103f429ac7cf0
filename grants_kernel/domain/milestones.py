"""
Milestone accounting -- pure arithmetic over a proposal's payment schedule.

A proposal's schedule is an ordered tuple of strictly positive integer
amounts.  ``current_milestone`` counts how many of them have been paid, so
the paid part is always a prefix of the schedule and the remainder a suffix.

Every sum is checked against a maximum (by default the largest unsigned
256-bit integer).  Python ints never wrap, so the check is explicit and
raises AmountOverflowError instead.
"""

import re
from collections.abc import Sequence

from grants_kernel.exceptions import AmountOverflowError, InvalidInputError

MAX_TOKEN_AMOUNT = 2**256 - 1
MAX_CONFIG_EXPONENT = 512

_AMOUNT_EXPRESSION = re.compile(r"(\d+)(?:\*\*(\d+)(?:-(\d+))?)?")


def _is_amount(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_milestone_amounts(
    amounts: Sequence[int],
    max_amount: int = MAX_TOKEN_AMOUNT,
) -> tuple[int, ...]:
    """
    Validate a milestone schedule and return it as a tuple.

    Raises:
        InvalidInputError: Empty schedule, a non-int (or bool) element, or an
            element that is not strictly positive.
        AmountOverflowError: A single element above ``max_amount``.
    """
    if isinstance(amounts, (str, bytes)) or not isinstance(amounts, Sequence):
        raise InvalidInputError("milestone_amounts", "must be a sequence of integers")
    if len(amounts) == 0:
        raise InvalidInputError("milestone_amounts", "at least one milestone is required")

    for index, amount in enumerate(amounts):
        if not _is_amount(amount):
            raise InvalidInputError(
                f"milestone_amounts[{index}]",
                f"must be an int, got {type(amount).__name__}",
            )
        if amount <= 0:
            raise InvalidInputError(
                f"milestone_amounts[{index}]",
                f"must be strictly positive, got {amount}",
            )
        if amount > max_amount:
            raise AmountOverflowError(f"milestone_amounts[{index}]", amount, max_amount)

    return tuple(amounts)


def checked_total(
    amounts: Sequence[int],
    max_amount: int = MAX_TOKEN_AMOUNT,
    field: str = "total_amount",
) -> int:
    """
    Sum ``amounts``, raising as soon as the running total passes ``max_amount``.

    Raises:
        AmountOverflowError: The running sum exceeds ``max_amount``.
    """
    total = 0
    for amount in amounts:
        total += amount
        if total > max_amount:
            raise AmountOverflowError(field, total, max_amount)
    return total


def paid_amount(amounts: Sequence[int], current_milestone: int) -> int:
    """Sum of the milestones already paid."""
    return sum(amounts[:current_milestone])


def remaining_amount(
    amounts: Sequence[int],
    current_milestone: int,
    max_amount: int = MAX_TOKEN_AMOUNT,
) -> int:
    """Overflow-checked sum of the milestones not yet paid."""
    return checked_total(amounts[current_milestone:], max_amount, field="remaining_amount")


def parse_max_amount(value: int | str) -> int:
    """
    Parse a maximum token amount from configuration.

    Accepts an int, a decimal string, or a power expression such as
    ``"2**256-1"`` / ``"2**128"``.

    Raises:
        ValueError: Unparseable value.
    """
    if _is_amount(value):
        return value
    if not isinstance(value, str):
        raise ValueError(f"max_token_amount must be int or str, got {type(value).__name__}")

    match = _AMOUNT_EXPRESSION.fullmatch(value.replace(" ", "").replace("_", ""))
    if match is None:
        raise ValueError(
            f"max_token_amount must be digits or BASE**EXP[-OFFSET], got {value!r}"
        )
    base, exponent, offset = match.groups()
    if exponent is None:
        return int(base)
    if int(exponent) > MAX_CONFIG_EXPONENT:
        raise ValueError(f"max_token_amount exponent above {MAX_CONFIG_EXPONENT}: {value!r}")
    return int(base) ** int(exponent) - int(offset or 0)
