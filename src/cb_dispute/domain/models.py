"""Dispute domain model — pure dataclass, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cb_common.enums import BookingStatus, DisputeStatus, EscrowStatus

ACTIVE_STATUSES = frozenset({DisputeStatus.OPEN, DisputeStatus.UNDER_REVIEW})

# Booking statuses a party may dispute from
DISPUTABLE_BOOKING_STATUSES = frozenset(
    {BookingStatus.ACCEPTED, BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)


@dataclass
class Dispute:
    id: str
    booking_id: str
    raised_by: str
    against_user_id: str
    reason: str
    # Where the booking was before the dispute hold; restored on close
    booking_status_before: BookingStatus
    escrow_status_before: EscrowStatus
    status: DisputeStatus = DisputeStatus.OPEN
    resolution: str | None = None
    refund_amount: int = 0
    admin_notes: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
