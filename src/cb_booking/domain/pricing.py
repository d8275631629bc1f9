"""Pricing and the cancellation refund policy. Integer paise throughout."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from src.cb_common.enums import BookingStatus
from src.cb_common.money import calculate_fee, percent_of

# (minimum notice, percent of base price refunded) for a seeker cancelling
# an accepted booking; checked in order, first match wins
SEEKER_NOTICE_TIERS: tuple[tuple[timedelta, int], ...] = (
    (timedelta(hours=24), 100),
    (timedelta(hours=6), 50),
    (timedelta(hours=3), 25),
)


@dataclass(frozen=True)
class PriceQuote:
    base_price: int
    platform_fee: int
    total_amount: int
    companion_payout: int


def quote(price_per_hour: int, minutes: int, fee_bps: int) -> PriceQuote:
    """2h at ₹500/hr with 700 bps → base 100000, fee 7000, total 107000, payout 100000."""
    if price_per_hour <= 0 or minutes <= 0:
        raise ValueError("price_per_hour and minutes must be positive")
    base = (price_per_hour * minutes + 30) // 60
    fee = calculate_fee(base, fee_bps)
    return PriceQuote(
        base_price=base,
        platform_fee=fee,
        total_amount=base + fee,
        companion_payout=base,
    )


def refund_percent(notice: timedelta) -> int:
    for minimum, percent in SEEKER_NOTICE_TIERS:
        if notice >= minimum:
            return percent
    return 0


def cancellation_refund(
    status: BookingStatus,
    total_amount: int,
    base_price: int,
    meetup_start: datetime,
    now: datetime,
    cancelled_by_companion: bool,
) -> int:
    """Amount returned to the seeker when a paid booking is cancelled.

    Before acceptance, or whenever the companion cancels, the seeker gets the
    full total back. A seeker cancelling an accepted booking gets a share of
    the base price that shrinks with notice; the platform fee is kept.
    """
    if status == BookingStatus.PENDING or cancelled_by_companion:
        return total_amount
    return percent_of(base_price, refund_percent(meetup_start - now))
