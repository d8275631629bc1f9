"""Tests for booking pricing and the cancellation refund policy."""

from datetime import datetime, timedelta, timezone

import pytest

from src.cb_booking.domain.pricing import cancellation_refund, quote, refund_percent
from src.cb_common.enums import BookingStatus

START = datetime(2026, 11, 20, 12, 30, tzinfo=timezone.utc)


class TestQuote:
    def test_two_hours_at_500(self) -> None:
        q = quote(50000, 120, 700)
        assert q.base_price == 100000
        assert q.platform_fee == 7000
        assert q.total_amount == 107000
        assert q.companion_payout == 100000

    def test_ninety_minutes(self) -> None:
        q = quote(50000, 90, 700)
        assert q.base_price == 75000
        assert q.platform_fee == 5250
        assert q.total_amount == 80250

    def test_fractional_paise_round_half_up(self) -> None:
        # 333 paise/hr for 45 min = 249.75 -> 250
        assert quote(333, 45, 0).base_price == 250

    def test_rejects_non_positive(self) -> None:
        with pytest.raises(ValueError):
            quote(0, 60, 700)


class TestRefundPercent:
    @pytest.mark.parametrize(
        ("hours", "percent"),
        [(48, 100), (24, 100), (23.9, 50), (6, 50), (5, 25), (3, 25), (2.9, 0), (0, 0)],
    )
    def test_tiers(self, hours: float, percent: int) -> None:
        assert refund_percent(timedelta(hours=hours)) == percent


class TestCancellationRefund:
    def test_pending_gets_full_total(self) -> None:
        now = START - timedelta(hours=1)
        assert cancellation_refund(BookingStatus.PENDING, 107000, 100000, START, now, False) == 107000

    def test_companion_cancel_gets_full_total(self) -> None:
        now = START - timedelta(minutes=30)
        assert cancellation_refund(BookingStatus.ACCEPTED, 107000, 100000, START, now, True) == 107000

    def test_seeker_late_cancel_refunds_share_of_base(self) -> None:
        now = START - timedelta(hours=8)
        assert cancellation_refund(BookingStatus.ACCEPTED, 107000, 100000, START, now, False) == 50000

    def test_seeker_last_minute_cancel_refunds_nothing(self) -> None:
        now = START - timedelta(hours=1)
        assert cancellation_refund(BookingStatus.ACCEPTED, 107000, 100000, START, now, False) == 0
