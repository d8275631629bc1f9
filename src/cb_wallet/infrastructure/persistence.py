"""WalletRepository — ledger snapshot and append-only wallet transactions.

The snapshot is ONE statement of scalar subqueries so every aggregate is read
from the same MVCC snapshot; separate queries could straddle a concurrent
payout or release.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.enums import WalletTransactionType
from src.cb_wallet.domain.models import LedgerSnapshot, WalletTransaction

_LEDGER_SNAPSHOT_SQL = text("""
    SELECT
        (SELECT COALESCE(SUM(companion_payout), 0) FROM bookings
          WHERE companion_id = :uid AND escrow_status = 'released') AS released_earnings,
        (SELECT COUNT(*) FROM bookings
          WHERE companion_id = :uid AND escrow_status = 'released') AS released_booking_count,
        (SELECT COALESCE(SUM(amount), 0) FROM wallet_transactions
          WHERE user_id = :uid
            AND transaction_type IN ('referral', 'campaign_bonus')) AS bonus_credits,
        (SELECT COALESCE(SUM(requested_amount), 0) FROM payouts
          WHERE companion_id = :uid AND status = 'completed') AS completed_payouts,
        (SELECT COALESCE(SUM(requested_amount), 0) FROM payouts
          WHERE companion_id = :uid
            AND status IN ('pending', 'approved', 'processing')) AS in_flight_payouts,
        (SELECT COALESCE(SUM(amount), 0) FROM wallet_transactions
          WHERE user_id = :uid AND transaction_type = 'refund') AS refund_credits,
        (SELECT COALESCE(SUM(requested_amount), 0) FROM payouts
          WHERE companion_id = :uid AND status = 'rejected') AS rejected_payouts
""")

_TX_COLUMNS = """
    id, user_id, transaction_type, amount, balance_before, balance_after,
    reference_id, reference_type, status, description, created_at
"""

_INSERT_TX_SQL = text(f"""
    INSERT INTO wallet_transactions (
        id, user_id, transaction_type, amount, balance_before, balance_after,
        reference_id, reference_type, status, description)
    VALUES (
        :id, :user_id, :transaction_type, :amount, :balance_before, :balance_after,
        :reference_id, :reference_type, :status, :description)
    RETURNING {_TX_COLUMNS}
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < CAST(:cursor_id AS TEXT))
      AND (CAST(:transaction_type AS TEXT) IS NULL
           OR transaction_type = CAST(:transaction_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_tx(row: Any) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,
        user_id=row.user_id,
        transaction_type=WalletTransactionType(row.transaction_type),
        amount=row.amount,
        balance_before=row.balance_before,
        balance_after=row.balance_after,
        reference_id=row.reference_id,
        reference_type=row.reference_type,
        status=row.status,
        description=row.description,
        created_at=row.created_at,
    )


class WalletRepository:
    async def snapshot(self, db: AsyncSession, companion_id: str) -> LedgerSnapshot:
        row = (await db.execute(_LEDGER_SNAPSHOT_SQL, {"uid": companion_id})).fetchone()
        return LedgerSnapshot(
            released_earnings=int(row.released_earnings),
            released_booking_count=int(row.released_booking_count),
            bonus_credits=int(row.bonus_credits),
            completed_payouts=int(row.completed_payouts),
            in_flight_payouts=int(row.in_flight_payouts),
            refund_credits=int(row.refund_credits),
            rejected_payouts=int(row.rejected_payouts),
        )

    async def append(self, db: AsyncSession, tx: WalletTransaction) -> WalletTransaction:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "id": tx.id,
                "user_id": tx.user_id,
                "transaction_type": tx.transaction_type.value,
                "amount": tx.amount,
                "balance_before": tx.balance_before,
                "balance_after": tx.balance_after,
                "reference_id": tx.reference_id,
                "reference_type": tx.reference_type,
                "status": tx.status,
                "description": tx.description,
            },
        )
        return _row_to_tx(result.fetchone())

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: str | None,
        limit: int,
        transaction_type: str | None,
    ) -> list[WalletTransaction]:
        result = await db.execute(
            _LIST_TX_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "transaction_type": transaction_type,
                "limit": limit,
            },
        )
        return [_row_to_tx(row) for row in result.fetchall()]
