"""Payout domain model and its admin transition table."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.cb_common.enums import PaymentMethod, PayoutStatus

_P = PayoutStatus

# action -> (legal source statuses, target status)
PAYOUT_TRANSITIONS: dict[str, tuple[frozenset[PayoutStatus], PayoutStatus]] = {
    "approve": (frozenset({_P.PENDING}), _P.APPROVED),
    "mark_processing": (frozenset({_P.APPROVED}), _P.PROCESSING),
    "reject": (frozenset({_P.PENDING, _P.APPROVED}), _P.REJECTED),
    "complete": (frozenset({_P.APPROVED, _P.PROCESSING}), _P.COMPLETED),
}


@dataclass
class Payout:
    id: str
    companion_id: str
    requested_amount: int
    platform_fee: int
    amount: int  # net sent to the companion
    payment_method: PaymentMethod
    payment_details: dict[str, Any] = field(default_factory=dict)
    status: PayoutStatus = PayoutStatus.PENDING
    idempotency_key: str = ""
    rejection_reason: str | None = None
    processed_by: str | None = None
    processed_at: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
