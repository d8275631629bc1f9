"""cb_payout REST API — companion requests, admin processing."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.database import get_db_session
from src.cb_common.enums import PaymentMethod, PayoutStatus, UserRole
from src.cb_common.response import ApiResponse, respond
from src.cb_gateway.auth.dependencies import get_current_user, require_admin, require_companion
from src.cb_gateway.user.db_models import UserModel
from src.cb_payout.application.schemas import (
    PayoutListResponse,
    PayoutRequest,
    PayoutResponse,
    RejectPayoutRequest,
)
from src.cb_payout.application.service import PayoutService

router = APIRouter(prefix="/payouts", tags=["payouts"])

_service = PayoutService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def request_payout(
    body: PayoutRequest,
    companion: Annotated[UserModel, Depends(require_companion)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payout = await _service.request(
        db,
        str(companion.id),
        body.amount,
        PaymentMethod(body.payment_method),
        body.payment_details,
        body.idempotency_key,
    )
    return respond(request, PayoutResponse.from_payout(payout).model_dump(), "Payout requested")


@router.get("")
async def list_payouts(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status_filter: PayoutStatus | None = Query(None, alias="status"),
    companion_id: str | None = Query(None, description="Admin only"),
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    # Admins may list across companions; everyone else sees only their own
    if current_user.role != UserRole.ADMIN.value:
        companion_id = str(current_user.id)
    page, next_cursor = await _service.list_payouts(db, companion_id, status_filter, cursor, limit)
    data = PayoutListResponse(
        items=[PayoutResponse.from_payout(p) for p in page],
        next_cursor=next_cursor,
        has_more=next_cursor is not None,
    )
    return respond(request, data.model_dump())


@router.get("/{payout_id}")
async def get_payout(
    payout_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payout = await _service.get(
        db, str(current_user.id), payout_id, current_user.role == UserRole.ADMIN.value
    )
    return respond(request, PayoutResponse.from_payout(payout).model_dump())


@router.post("/{payout_id}/approve")
async def approve_payout(
    payout_id: str,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payout = await _service.approve(db, str(admin.id), payout_id)
    return respond(request, PayoutResponse.from_payout(payout).model_dump(), "Payout approved")


@router.post("/{payout_id}/processing")
async def mark_payout_processing(
    payout_id: str,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payout = await _service.mark_processing(db, str(admin.id), payout_id)
    return respond(request, PayoutResponse.from_payout(payout).model_dump())


@router.post("/{payout_id}/reject")
async def reject_payout(
    payout_id: str,
    body: RejectPayoutRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payout = await _service.reject(db, str(admin.id), payout_id, body.reason)
    return respond(request, PayoutResponse.from_payout(payout).model_dump(), "Payout rejected")


@router.post("/{payout_id}/complete")
async def complete_payout(
    payout_id: str,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    payout = await _service.complete(db, str(admin.id), payout_id)
    return respond(request, PayoutResponse.from_payout(payout).model_dump(), "Payout completed")
