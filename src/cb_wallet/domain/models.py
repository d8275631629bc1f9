"""Wallet domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cb_common.enums import WalletTransactionType


@dataclass
class WalletTransaction:
    """Append-only wallet entry. Never updated after insert."""

    id: str
    user_id: str
    transaction_type: WalletTransactionType
    amount: int
    balance_before: int
    balance_after: int
    reference_id: str | None = None
    reference_type: str | None = None
    status: str = "completed"
    description: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerSnapshot:
    """Aggregates for one companion, read from a single MVCC snapshot."""

    released_earnings: int = 0
    released_booking_count: int = 0
    bonus_credits: int = 0
    completed_payouts: int = 0
    in_flight_payouts: int = 0
    # Reconciliation only: not part of the balance formula
    refund_credits: int = 0
    rejected_payouts: int = 0
