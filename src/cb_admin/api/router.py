"""Admin REST API — all endpoints require the admin role."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_admin.application.service import AdminService
from src.cb_common.database import get_db_session
from src.cb_common.enums import KycStatus
from src.cb_common.response import ApiResponse, respond
from src.cb_gateway.auth.dependencies import require_admin
from src.cb_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


class KycUpdateRequest(BaseModel):
    kyc_status: Literal["verified", "pending", "rejected", "skipped"]


@router.get("/verify-invariants")
async def verify_invariants(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    return respond(request, await _service.verify_all_invariants(db))


@router.get("/escrow/stats")
async def escrow_stats(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    return respond(request, await _service.get_escrow_stats(db))


@router.post("/bookings/expire")
async def expire_lapsed(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(100, ge=1, le=1000),
) -> ApiResponse:
    return respond(request, await _service.expire_lapsed_bookings(db, limit))


@router.get("/reports/cancellations")
async def cancellation_report(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    return respond(request, {"items": await _service.repeated_cancellations(db)})


@router.put("/users/{user_id}/kyc")
async def set_kyc_status(
    user_id: str,
    body: KycUpdateRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.set_kyc_status(db, user_id, KycStatus(body.kyc_status))
    return respond(request, data, "KYC status updated")
