"""cb_booking REST API — booking lifecycle, all endpoints require JWT."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cb_booking.application.schemas import (
    BookingListResponse,
    BookingResponse,
    CreateBookingRequest,
    CreateBookingResponse,
    ReliabilityResponse,
)
from src.cb_booking.application.service import BookingService
from src.cb_common.database import get_db_session
from src.cb_common.datetime_utils import utc_now
from src.cb_common.enums import BookingStatus, UserRole
from src.cb_common.response import ApiResponse, respond
from src.cb_gateway.auth.dependencies import get_current_user, require_companion
from src.cb_gateway.user.db_models import UserModel

router = APIRouter(prefix="/bookings", tags=["bookings"])

_service = BookingService()


def _is_admin(user: UserModel) -> bool:
    return user.role == UserRole.ADMIN.value


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: CreateBookingRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking, intent = await _service.create(
        db, str(current_user.id), body.slot_id, body.start_time, body.duration_minutes
    )
    data = CreateBookingResponse(
        booking=BookingResponse.from_booking(booking, utc_now()),
        payment_intent_id=intent.intent_id,
        payment_session_id=intent.client_session,
    )
    return respond(request, data.model_dump(), "Booking created; awaiting payment")


@router.get("")
async def list_bookings(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status_filter: BookingStatus | None = Query(None, alias="status"),
    cursor: str | None = Query(None, description="Pagination cursor (booking id)"),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    page, next_cursor = await _service.list_for_user(
        db, str(current_user.id), current_user.role, status_filter, cursor, limit
    )
    now = utc_now()
    data = BookingListResponse(
        items=[BookingResponse.from_booking(b, now) for b in page],
        next_cursor=next_cursor,
        has_more=next_cursor is not None,
    )
    return respond(request, data.model_dump())


@router.get("/reliability")
async def my_reliability(
    companion: Annotated[UserModel, Depends(require_companion)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    count = await _service.companion_cancellations(db, str(companion.id))
    data = ReliabilityResponse(
        companion_id=str(companion.id),
        companion_cancellations=count,
        window_days=settings.CANCELLATION_WINDOW_DAYS,
    )
    return respond(request, data.model_dump())


@router.get("/{booking_id}")
async def get_booking(
    booking_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking = await _service.get(db, str(current_user.id), booking_id, _is_admin(current_user))
    return respond(request, BookingResponse.from_booking(booking, utc_now()).model_dump())


@router.post("/{booking_id}/accept")
async def accept_booking(
    booking_id: str,
    companion: Annotated[UserModel, Depends(require_companion)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking = await _service.accept(db, str(companion.id), booking_id)
    return respond(request, BookingResponse.from_booking(booking, utc_now()).model_dump())


@router.post("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking = await _service.cancel(db, str(current_user.id), booking_id)
    return respond(
        request, BookingResponse.from_booking(booking, utc_now()).model_dump(), "Booking cancelled"
    )


@router.post("/{booking_id}/complete")
async def complete_booking(
    booking_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    booking = await _service.complete(
        db, str(current_user.id), booking_id, _is_admin(current_user)
    )
    return respond(
        request, BookingResponse.from_booking(booking, utc_now()).model_dump(), "Booking completed"
    )
