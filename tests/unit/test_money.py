"""Tests for paise arithmetic."""

import pytest

from src.cb_common.money import calculate_fee, paise_to_display, percent_of, validate_amount


class TestCalculateFee:
    def test_platform_fee_on_two_hours_at_500(self) -> None:
        assert calculate_fee(100000, 700) == 7000

    def test_rounds_up(self) -> None:
        # 1 paise * 7% = 0.07 -> 1
        assert calculate_fee(1, 700) == 1

    def test_zero_rate(self) -> None:
        assert calculate_fee(100000, 0) == 0

    def test_payout_fee(self) -> None:
        assert calculate_fee(50000, 200) == 1000


class TestPercentOf:
    @pytest.mark.parametrize(
        ("amount", "percent", "expected"),
        [(107000, 100, 107000), (107000, 50, 53500), (107000, 25, 26750), (3, 50, 2)],
    )
    def test_rounds_half_up(self, amount: int, percent: int, expected: int) -> None:
        assert percent_of(amount, percent) == expected


class TestDisplay:
    def test_rupees_with_grouping(self) -> None:
        assert paise_to_display(107000) == "₹1,070.00"

    def test_negative(self) -> None:
        assert paise_to_display(-1205) == "-₹12.05"


def test_validate_amount_rejects_negative() -> None:
    with pytest.raises(ValueError):
        validate_amount(-1)
