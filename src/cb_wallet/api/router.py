"""cb_wallet REST API — derived balance, history, admin credits."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.database import get_db_session
from src.cb_common.enums import WalletTransactionType
from src.cb_common.response import ApiResponse, respond
from src.cb_gateway.auth.dependencies import get_current_user, require_admin
from src.cb_gateway.user.db_models import UserModel
from src.cb_wallet.application.schemas import GrantCreditRequest, WalletTransactionItem
from src.cb_wallet.application.service import WalletService

router = APIRouter(prefix="/wallet", tags=["wallet"])

_service = WalletService()


@router.get("/balance")
async def get_balance(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, str(current_user.id))
    return respond(request, data.model_dump())


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    transaction_type: str | None = Query(None, description="Filter by transaction type"),
) -> ApiResponse:
    data = await _service.list_history(
        db, str(current_user.id), cursor, limit, transaction_type
    )
    return respond(request, data.model_dump())


@router.post("/credits", status_code=status.HTTP_201_CREATED)
async def grant_credit(
    body: GrantCreditRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    tx = await _service.grant_credit(
        db,
        body.user_id,
        WalletTransactionType(body.transaction_type),
        body.amount,
        body.reference_id,
        body.description,
    )
    return respond(request, WalletTransactionItem.from_tx(tx).model_dump(), "Credit granted")
