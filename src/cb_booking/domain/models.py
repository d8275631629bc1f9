"""Booking domain model — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import date, datetime, time

from src.cb_availability.domain.timewindow import meetup_bounds
from src.cb_common.enums import BookingStatus, EscrowStatus

# Statuses in which a booking still claims its slot
LIVE_STATUSES = frozenset(
    {
        BookingStatus.PENDING,
        BookingStatus.ACCEPTED,
        BookingStatus.COMPLETED,
        BookingStatus.DISPUTED,
    }
)


@dataclass
class Booking:
    id: str
    availability_id: str  # weak reference: the slot may be deleted later
    companion_id: str
    seeker_id: str
    date: date
    start_time: time
    end_time: time
    duration_minutes: int
    # Money (paise)
    base_price: int
    platform_fee: int
    total_amount: int
    companion_payout: int
    # State
    status: BookingStatus = BookingStatus.PENDING_PAYMENT
    escrow_status: EscrowStatus = EscrowStatus.PENDING
    payment_order_id: str | None = None
    payment_reference: str | None = None
    request_expires_at: datetime | None = None
    refund_amount: int = 0
    cancelled_by: str | None = None
    cancelled_from_status: BookingStatus | None = None
    cancelled_at: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def duration_hours(self) -> float:
        return self.duration_minutes / 60

    @property
    def meetup_start(self) -> datetime:
        return meetup_bounds(self.date, self.start_time, self.end_time)[0]

    @property
    def meetup_end(self) -> datetime:
        return meetup_bounds(self.date, self.start_time, self.end_time)[1]

    def payment_window_lapsed(self, now: datetime) -> bool:
        return (
            self.status == BookingStatus.PENDING_PAYMENT
            and self.request_expires_at is not None
            and self.request_expires_at <= now
        )

    def effective_status(self, now: datetime) -> BookingStatus:
        """Stored status with lazy expiry applied.

        An unpaid request past its payment window is expired for every reader,
        whether or not anything has persisted that yet.
        """
        if self.payment_window_lapsed(now):
            return BookingStatus.EXPIRED
        return self.status

    def is_live(self, now: datetime) -> bool:
        status = self.effective_status(now)
        return status in LIVE_STATUSES or status == BookingStatus.PENDING_PAYMENT

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.seeker_id, self.companion_id)
