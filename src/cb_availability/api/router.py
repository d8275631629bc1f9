"""cb_availability REST API — slot publishing and discovery."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_availability.application.schemas import (
    PublishSlotRequest,
    SlotListResponse,
    SlotResponse,
    StartTimesResponse,
)
from src.cb_availability.application.service import AvailabilityService
from src.cb_availability.domain.models import AvailabilitySlot
from src.cb_common.database import get_db_session
from src.cb_common.response import ApiResponse, respond
from src.cb_gateway.auth.dependencies import get_current_user, require_companion
from src.cb_gateway.user.db_models import UserModel

router = APIRouter(prefix="/slots", tags=["availability"])

_service = AvailabilityService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def publish_slot(
    body: PublishSlotRequest,
    companion: Annotated[UserModel, Depends(require_companion)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    slot = AvailabilitySlot(
        id="",
        companion_id=str(companion.id),
        date=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        price_per_hour=body.price_per_hour,
        city=body.city,
        area=body.area,
    )
    created = await _service.publish(db, str(companion.id), slot)
    return respond(request, SlotResponse.from_slot(created).model_dump(), "Slot published")


@router.delete("/{slot_id}")
async def withdraw_slot(
    slot_id: str,
    companion: Annotated[UserModel, Depends(require_companion)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.withdraw(db, str(companion.id), slot_id)
    return respond(request, {"slot_id": slot_id}, "Slot withdrawn")


@router.get("")
async def search_slots(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    companion_id: str | None = Query(None),
    day: date | None = Query(None, alias="date"),
    city: str | None = Query(None),
    area: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    slots = await _service.search(db, companion_id, day, city, area, limit)
    data = SlotListResponse(items=[SlotResponse.from_slot(s) for s in slots])
    return respond(request, data.model_dump())


@router.get("/{slot_id}")
async def get_slot(
    slot_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    slot = await _service.get_slot(db, slot_id)
    return respond(request, SlotResponse.from_slot(slot).model_dump())


@router.get("/{slot_id}/start-times")
async def list_start_times(
    slot_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    duration_minutes: int = Query(..., ge=15, le=24 * 60),
) -> ApiResponse:
    times = await _service.start_times(db, slot_id, duration_minutes)
    data = StartTimesResponse(
        slot_id=slot_id, duration_minutes=duration_minutes, start_times=times
    )
    return respond(request, data.model_dump())
