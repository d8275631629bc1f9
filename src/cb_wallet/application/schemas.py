"""Pydantic schemas and cursor utilities for cb_wallet API."""

import base64
import binascii
import json
from typing import Literal

from pydantic import BaseModel, Field

from src.cb_common.money import paise_to_display
from src.cb_wallet.domain.calculator import compute_available_balance
from src.cb_wallet.domain.models import LedgerSnapshot, WalletTransaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    """Encode the last seen transaction id into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.urlsafe_b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    """Decode a cursor string back to the last seen id. Returns None on garbage."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        return str(payload["id"])
    except (binascii.Error, ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class GrantCreditRequest(BaseModel):
    user_id: str
    transaction_type: Literal["referral", "campaign_bonus"]
    amount: int = Field(..., gt=0, description="Credit in paise")
    reference_id: str | None = Field(None, max_length=64)
    description: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    companion_id: str
    available_balance: int
    available_balance_display: str
    released_earnings: int
    bonus_credits: int
    completed_payouts: int
    in_flight_payouts: int
    released_booking_count: int

    @classmethod
    def from_snapshot(cls, companion_id: str, snapshot: LedgerSnapshot) -> "BalanceResponse":
        available = compute_available_balance(snapshot)
        return cls(
            companion_id=companion_id,
            available_balance=available,
            available_balance_display=paise_to_display(available),
            released_earnings=snapshot.released_earnings,
            bonus_credits=snapshot.bonus_credits,
            completed_payouts=snapshot.completed_payouts,
            in_flight_payouts=snapshot.in_flight_payouts,
            released_booking_count=snapshot.released_booking_count,
        )


class WalletTransactionItem(BaseModel):
    id: str
    transaction_type: str
    amount: int
    amount_display: str
    balance_before: int
    balance_after: int
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_tx(cls, tx: WalletTransaction) -> "WalletTransactionItem":
        return cls(
            id=tx.id,
            transaction_type=tx.transaction_type.value,
            amount=tx.amount,
            amount_display=paise_to_display(tx.amount),
            balance_before=tx.balance_before,
            balance_after=tx.balance_after,
            reference_type=tx.reference_type,
            reference_id=tx.reference_id,
            description=tx.description,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class WalletHistoryResponse(BaseModel):
    items: list[WalletTransactionItem]
    next_cursor: str | None
    has_more: bool
