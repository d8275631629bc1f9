"""Pydantic schemas for cb_payout API."""

from typing import Any, Literal

from pydantic import BaseModel, Field

from src.cb_common.money import paise_to_display
from src.cb_payout.domain.models import Payout
from src.cb_payout.domain.policy import mask_details


class PayoutRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Requested amount in paise")
    payment_method: Literal["upi", "bank_transfer"]
    payment_details: dict[str, Any] = Field(default_factory=dict)
    idempotency_key: str | None = Field(None, min_length=1, max_length=100)


class RejectPayoutRequest(BaseModel):
    reason: str = Field(..., max_length=500)


class PayoutResponse(BaseModel):
    id: str
    companion_id: str
    requested_amount: int
    requested_amount_display: str
    platform_fee: int
    amount: int
    amount_display: str
    payment_method: str
    payment_details: dict[str, Any]
    status: str
    rejection_reason: str | None
    processed_by: str | None
    processed_at: str | None
    created_at: str | None

    @classmethod
    def from_payout(cls, payout: Payout) -> "PayoutResponse":
        return cls(
            id=payout.id,
            companion_id=payout.companion_id,
            requested_amount=payout.requested_amount,
            requested_amount_display=paise_to_display(payout.requested_amount),
            platform_fee=payout.platform_fee,
            amount=payout.amount,
            amount_display=paise_to_display(payout.amount),
            payment_method=payout.payment_method.value,
            payment_details=mask_details(payout.payment_method, payout.payment_details),
            status=payout.status.value,
            rejection_reason=payout.rejection_reason,
            processed_by=payout.processed_by,
            processed_at=payout.processed_at.isoformat() if payout.processed_at else None,
            created_at=payout.created_at.isoformat() if payout.created_at else None,
        )


class PayoutListResponse(BaseModel):
    items: list[PayoutResponse]
    next_cursor: str | None
    has_more: bool
