"""Pydantic schemas for cb_booking API."""

from datetime import datetime, time

from pydantic import BaseModel, Field, model_validator

from src.cb_booking.domain.models import Booking
from src.cb_common.enums import BookingStatus
from src.cb_common.money import paise_to_display

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateBookingRequest(BaseModel):
    slot_id: str
    start_time: time
    duration_minutes: int = Field(..., ge=15, le=24 * 60)


class PaymentConfirmRequest(BaseModel):
    booking_id: str | None = None
    intent_id: str | None = None
    payment_reference: str = Field(..., min_length=1, max_length=128)

    @model_validator(mode="after")
    def one_locator(self) -> "PaymentConfirmRequest":
        if not (self.booking_id or self.intent_id):
            raise ValueError("booking_id or intent_id is required")
        return self


class PaymentFailedRequest(BaseModel):
    booking_id: str | None = None
    intent_id: str | None = None
    reason: str | None = Field(None, max_length=500)

    @model_validator(mode="after")
    def one_locator(self) -> "PaymentFailedRequest":
        if not (self.booking_id or self.intent_id):
            raise ValueError("booking_id or intent_id is required")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    id: str
    availability_id: str
    companion_id: str
    seeker_id: str
    date: str
    start_time: str
    end_time: str
    duration_minutes: int
    base_price: int
    platform_fee: int
    total_amount: int
    total_amount_display: str
    companion_payout: int
    companion_payout_display: str
    status: str
    escrow_status: str
    refund_amount: int
    payment_order_id: str | None
    request_expires_at: str | None
    cancelled_by: str | None

    @classmethod
    def from_booking(cls, booking: Booking, now: datetime) -> "BookingResponse":
        return cls(
            id=booking.id,
            availability_id=booking.availability_id,
            companion_id=booking.companion_id,
            seeker_id=booking.seeker_id,
            date=booking.date.isoformat(),
            start_time=booking.start_time.strftime("%H:%M"),
            end_time=booking.end_time.strftime("%H:%M"),
            duration_minutes=booking.duration_minutes,
            base_price=booking.base_price,
            platform_fee=booking.platform_fee,
            total_amount=booking.total_amount,
            total_amount_display=paise_to_display(booking.total_amount),
            companion_payout=booking.companion_payout,
            companion_payout_display=paise_to_display(booking.companion_payout),
            # Lazy expiry: readers see "expired" before anything persists it
            status=booking.effective_status(now).value,
            escrow_status=booking.escrow_status.value,
            refund_amount=booking.refund_amount,
            payment_order_id=booking.payment_order_id,
            request_expires_at=(
                booking.request_expires_at.isoformat()
                if booking.status == BookingStatus.PENDING_PAYMENT and booking.request_expires_at
                else None
            ),
            cancelled_by=booking.cancelled_by,
        )


class CreateBookingResponse(BaseModel):
    booking: BookingResponse
    payment_intent_id: str
    payment_session_id: str


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    next_cursor: str | None
    has_more: bool


class ReliabilityResponse(BaseModel):
    companion_id: str
    companion_cancellations: int
    window_days: int
