"""Tests for payout request rules."""

from datetime import datetime, timezone

import pytest

from src.cb_common.enums import PaymentMethod
from src.cb_common.errors import (
    BelowMinimumError,
    BonusOnlyWithdrawalError,
    InsufficientBalanceError,
    InvalidPayoutDetailsError,
)
from src.cb_payout.domain.policy import (
    check_fundable,
    check_minimum,
    dedupe_key,
    mask_details,
    split_fee,
    validate_details,
)
from src.cb_wallet.domain.models import LedgerSnapshot

BANK = {
    "bank_name": "HDFC",
    "account_number": "001122334455",
    "ifsc_code": "HDFC0000123",
    "account_holder_name": "A Companion",
}


class TestDetails:
    def test_upi_requires_id(self) -> None:
        with pytest.raises(InvalidPayoutDetailsError):
            validate_details(PaymentMethod.UPI, {"upi_id": "  "})

    def test_upi_keeps_only_upi_id(self) -> None:
        assert validate_details(PaymentMethod.UPI, {"upi_id": " a@okaxis ", "x": 1}) == {
            "upi_id": "a@okaxis"
        }

    def test_bank_lists_missing_fields(self) -> None:
        with pytest.raises(InvalidPayoutDetailsError) as exc:
            validate_details(PaymentMethod.BANK_TRANSFER, {"bank_name": "HDFC"})
        assert "ifsc_code" in exc.value.message

    def test_bank_complete(self) -> None:
        assert validate_details(PaymentMethod.BANK_TRANSFER, BANK) == BANK


def test_minimum() -> None:
    check_minimum(10000, 10000)
    with pytest.raises(BelowMinimumError):
        check_minimum(9999, 10000)


class TestFundable:
    def test_insufficient_names_available(self) -> None:
        snap = LedgerSnapshot(released_earnings=120000, released_booking_count=1)
        with pytest.raises(InsufficientBalanceError) as exc:
            check_fundable(150000, snap)
        assert "120000" in exc.value.message

    def test_bonus_only_balance_cannot_be_withdrawn(self) -> None:
        snap = LedgerSnapshot(bonus_credits=50000)
        with pytest.raises(BonusOnlyWithdrawalError):
            check_fundable(20000, snap)

    def test_insufficient_is_checked_before_bonus_only(self) -> None:
        with pytest.raises(InsufficientBalanceError):
            check_fundable(20000, LedgerSnapshot(bonus_credits=1000))

    def test_ok(self) -> None:
        check_fundable(50000, LedgerSnapshot(released_earnings=50000, released_booking_count=1))


def test_split_fee() -> None:
    assert split_fee(50000, 200) == (1000, 49000)


def test_dedupe_key_buckets() -> None:
    t1 = datetime(2026, 10, 1, 12, 0, 10, tzinfo=timezone.utc)
    t2 = datetime(2026, 10, 1, 12, 1, 10, tzinfo=timezone.utc)
    t3 = datetime(2026, 10, 1, 12, 6, 0, tzinfo=timezone.utc)
    k1 = dedupe_key("comp-1", PaymentMethod.UPI, 50000, t1, 300)
    assert k1 == dedupe_key("comp-1", PaymentMethod.UPI, 50000, t2, 300)
    assert k1 != dedupe_key("comp-1", PaymentMethod.UPI, 50000, t3, 300)
    assert k1 != dedupe_key("comp-1", PaymentMethod.UPI, 40000, t1, 300)


def test_mask_bank_account() -> None:
    masked = mask_details(PaymentMethod.BANK_TRANSFER, BANK)
    assert masked["account_number"] == "****4455"
    assert BANK["account_number"] == "001122334455"
