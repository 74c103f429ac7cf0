"""Pure milestone arithmetic."""

import pytest

from grants_kernel.domain.milestones import (
    MAX_CONFIG_EXPONENT,
    MAX_TOKEN_AMOUNT,
    checked_total,
    paid_amount,
    parse_max_amount,
    remaining_amount,
    validate_milestone_amounts,
)
from grants_kernel.exceptions import AmountOverflowError, InvalidInputError


class TestValidateMilestoneAmounts:

    def test_returns_tuple(self):
        assert validate_milestone_amounts([1, 2, 3]) == (1, 2, 3)

    def test_max_amount_element_allowed(self):
        assert validate_milestone_amounts([MAX_TOKEN_AMOUNT]) == (MAX_TOKEN_AMOUNT,)

    def test_element_over_max(self):
        with pytest.raises(AmountOverflowError) as exc_info:
            validate_milestone_amounts([1, 11], max_amount=10)
        assert exc_info.value.field == "milestone_amounts[1]"
        assert exc_info.value.max_amount == 10

    def test_empty_rejected(self):
        with pytest.raises(InvalidInputError, match="at least one milestone"):
            validate_milestone_amounts(())

    def test_bool_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_milestone_amounts([False])


class TestCheckedTotal:

    def test_sum(self):
        assert checked_total([100, 250, 650]) == 1000

    def test_overflow_detected_on_running_sum(self):
        with pytest.raises(AmountOverflowError) as exc_info:
            checked_total([6, 5, 1], max_amount=10)
        assert exc_info.value.amount == 11

    def test_custom_field_name(self):
        with pytest.raises(AmountOverflowError) as exc_info:
            checked_total([MAX_TOKEN_AMOUNT, 1], field="payout")
        assert exc_info.value.field == "payout"

    def test_empty_is_zero(self):
        assert checked_total([]) == 0


class TestPaidAndRemaining:

    @pytest.mark.parametrize(
        "current, paid, remaining",
        [(0, 0, 1000), (1, 100, 900), (2, 350, 650), (3, 1000, 0)],
    )
    def test_prefix_and_suffix(self, current, paid, remaining):
        amounts = (100, 250, 650)
        assert paid_amount(amounts, current) == paid
        assert remaining_amount(amounts, current) == remaining

    def test_remaining_overflow(self):
        with pytest.raises(AmountOverflowError) as exc_info:
            remaining_amount((5, 6, 7), 1, max_amount=12)
        assert exc_info.value.field == "remaining_amount"


class TestParseMaxAmount:

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1000, 1000),
            ("1000", 1000),
            ("1_000", 1000),
            ("2**256-1", MAX_TOKEN_AMOUNT),
            ("2 ** 128", 2**128),
            ("10**18", 10**18),
        ],
    )
    def test_accepted_forms(self, value, expected):
        assert parse_max_amount(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["lots", "2**x", 1.5, None, "2**3-", "-5", "2**", "**8", "2**8-1-1", "2*8", "1000\n"],
    )
    def test_rejected_forms(self, value):
        with pytest.raises(ValueError):
            parse_max_amount(value)

    def test_exponent_is_capped(self):
        assert parse_max_amount(f"2**{MAX_CONFIG_EXPONENT}") == 2**MAX_CONFIG_EXPONENT
        with pytest.raises(ValueError, match="exponent"):
            parse_max_amount(f"2**{MAX_CONFIG_EXPONENT + 1}")
