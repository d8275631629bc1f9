"""cb_dispute REST API — parties raise, administrators review and rule."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_booking.domain.models import Booking
from src.cb_common.database import get_db_session
from src.cb_common.enums import DisputeStatus, UserRole
from src.cb_common.response import ApiResponse, respond
from src.cb_dispute.application.schemas import (
    CloseDisputeRequest,
    DisputeListResponse,
    DisputeOutcomeResponse,
    DisputeResponse,
    RaiseDisputeRequest,
    ResolveDisputeRequest,
)
from src.cb_dispute.application.service import DisputeService
from src.cb_dispute.domain.models import Dispute
from src.cb_gateway.auth.dependencies import get_current_user, require_admin
from src.cb_gateway.user.db_models import UserModel

router = APIRouter(prefix="/disputes", tags=["disputes"])

_service = DisputeService()


def _outcome(dispute: Dispute, booking: Booking) -> dict[str, object]:
    return DisputeOutcomeResponse(
        dispute=DisputeResponse.from_dispute(dispute),
        booking_status=booking.status.value,
        escrow_status=booking.escrow_status.value,
    ).model_dump()


@router.post("", status_code=status.HTTP_201_CREATED)
async def raise_dispute(
    body: RaiseDisputeRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    dispute = await _service.raise_dispute(db, str(current_user.id), body.booking_id, body.reason)
    return respond(request, DisputeResponse.from_dispute(dispute).model_dump(), "Dispute raised")


@router.get("")
async def list_disputes(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status_filter: DisputeStatus | None = Query(None, alias="status"),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    # Admins see every dispute; parties see the ones they are involved in
    user_id = None if current_user.role == UserRole.ADMIN.value else str(current_user.id)
    page, next_cursor = await _service.list_disputes(db, user_id, status_filter, cursor, limit)
    data = DisputeListResponse(
        items=[DisputeResponse.from_dispute(d) for d in page],
        next_cursor=next_cursor,
        has_more=next_cursor is not None,
    )
    return respond(request, data.model_dump())


@router.get("/{dispute_id}")
async def get_dispute(
    dispute_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    dispute = await _service.get(
        db, str(current_user.id), dispute_id, current_user.role == UserRole.ADMIN.value
    )
    return respond(request, DisputeResponse.from_dispute(dispute).model_dump())


@router.post("/{dispute_id}/review")
async def review_dispute(
    dispute_id: str,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    dispute = await _service.review(db, str(admin.id), dispute_id)
    return respond(request, DisputeResponse.from_dispute(dispute).model_dump())


@router.post("/{dispute_id}/resolve")
async def resolve_dispute(
    dispute_id: str,
    body: ResolveDisputeRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    dispute, booking = await _service.resolve(
        db, str(admin.id), dispute_id, body.resolution, body.refund_amount, body.admin_notes
    )
    return respond(request, _outcome(dispute, booking), "Dispute resolved")


@router.post("/{dispute_id}/close")
async def close_dispute(
    dispute_id: str,
    body: CloseDisputeRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    dispute, booking = await _service.close(db, str(admin.id), dispute_id, body.admin_notes)
    return respond(request, _outcome(dispute, booking), "Dispute closed")
