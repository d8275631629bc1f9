"""Payment gateway callbacks: paymentConfirmed / paymentFailed.

Callers are either the paying seeker (bearer token) or the gateway itself
(X-Gateway-Token). Neither is trusted on its word: a confirmation only moves
escrow after the provider reports the order PAID for the booking total.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_booking.application.schemas import (
    BookingResponse,
    PaymentConfirmRequest,
    PaymentFailedRequest,
)
from src.cb_booking.application.service import BookingService
from src.cb_common.database import get_db_session
from src.cb_common.datetime_utils import utc_now
from src.cb_common.response import ApiResponse, respond
from src.cb_gateway.auth.dependencies import get_payment_caller
from src.cb_gateway.user.db_models import UserModel

router = APIRouter(prefix="/payments", tags=["payments"])

_service = BookingService()


@router.post("/confirm")
async def payment_confirmed(
    body: PaymentConfirmRequest,
    caller: Annotated[UserModel | None, Depends(get_payment_caller)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking = await _service.confirm_payment(
        db,
        body.payment_reference,
        booking_id=body.booking_id,
        intent_id=body.intent_id,
        caller_id=str(caller.id) if caller else None,
    )
    return respond(
        request, BookingResponse.from_booking(booking, utc_now()).model_dump(), "Payment confirmed"
    )


@router.post("/failed")
async def payment_failed(
    body: PaymentFailedRequest,
    caller: Annotated[UserModel | None, Depends(get_payment_caller)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking = await _service.payment_failed(
        db,
        booking_id=body.booking_id,
        intent_id=body.intent_id,
        caller_id=str(caller.id) if caller else None,
    )
    return respond(
        request, BookingResponse.from_booking(booking, utc_now()).model_dump(), "Payment failure recorded"
    )
