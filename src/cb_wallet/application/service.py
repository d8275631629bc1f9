"""WalletService — balance reads, admin credits, refund entries and history.

Credits and refunds are taken under the same per-companion advisory lock as
payout requests, so balance_before/balance_after on each entry come from a
snapshot no concurrent payout can interleave with.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_common.database import advisory_xact_lock
from src.cb_common.enums import NotificationKind, WalletTransactionType
from src.cb_common.errors import InvalidCreditError
from src.cb_common.id_generator import generate_id
from src.cb_common.notifications import NotificationEmitterProtocol, OutboxNotificationEmitter
from src.cb_wallet.application.schemas import (
    BalanceResponse,
    WalletHistoryResponse,
    WalletTransactionItem,
    cursor_decode,
    cursor_encode,
)
from src.cb_wallet.domain.calculator import LedgerCalculator, compute_available_balance
from src.cb_wallet.domain.models import LedgerSnapshot, WalletTransaction
from src.cb_wallet.domain.repository import WalletRepositoryProtocol
from src.cb_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

_CREDIT_TYPES = frozenset({WalletTransactionType.REFERRAL, WalletTransactionType.CAMPAIGN_BONUS})


def wallet_lock_key(companion_id: str) -> str:
    return f"wallet:{companion_id}"


class WalletService:
    def __init__(
        self,
        repo: WalletRepositoryProtocol | None = None,
        notifier: NotificationEmitterProtocol | None = None,
    ) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()
        self._notifier: NotificationEmitterProtocol = notifier or OutboxNotificationEmitter()
        self.ledger = LedgerCalculator(self._repo)

    async def get_balance(self, db: AsyncSession, companion_id: str) -> BalanceResponse:
        snapshot = await self.ledger.snapshot(db, companion_id)
        return BalanceResponse.from_snapshot(companion_id, snapshot)

    async def snapshot(self, db: AsyncSession, companion_id: str) -> LedgerSnapshot:
        return await self.ledger.snapshot(db, companion_id)

    async def grant_credit(
        self,
        db: AsyncSession,
        user_id: str,
        transaction_type: WalletTransactionType,
        amount: int,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> WalletTransaction:
        """Append a referral or campaign bonus credit (admin only)."""
        if transaction_type not in _CREDIT_TYPES:
            raise InvalidCreditError(f"{transaction_type.value} cannot be granted directly")
        if amount <= 0:
            raise InvalidCreditError("amount must be positive")
        try:
            await advisory_xact_lock(db, wallet_lock_key(user_id))
            before = await self.ledger.available_balance(db, user_id)
            tx = await self._repo.append(
                db,
                WalletTransaction(
                    id=generate_id("wt_"),
                    user_id=user_id,
                    transaction_type=transaction_type,
                    amount=amount,
                    balance_before=before,
                    balance_after=before + amount,
                    reference_id=reference_id,
                    reference_type=transaction_type.value,
                    description=description,
                ),
            )
            await self._notifier.enqueue(
                db, user_id, NotificationKind.WALLET_CREDITED,
                {"transaction_id": tx.id, "amount": amount, "type": transaction_type.value},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Credited %d (%s) to %s", amount, transaction_type.value, user_id)
        return tx

    async def record_payout_refund(
        self,
        db: AsyncSession,
        companion_id: str,
        payout_id: str,
        amount: int,
        balance_before: int,
        reason: str,
    ) -> WalletTransaction:
        """Reversal entry for a rejected payout. Caller owns the transaction and the lock.

        Must run AFTER the payout row is marked rejected so the post-rejection
        balance is what ends up in balance_after.
        """
        after = compute_available_balance(await self.ledger.snapshot(db, companion_id))
        return await self._repo.append(
            db,
            WalletTransaction(
                id=generate_id("wt_"),
                user_id=companion_id,
                transaction_type=WalletTransactionType.REFUND,
                amount=amount,
                balance_before=balance_before,
                balance_after=after,
                reference_id=payout_id,
                reference_type="payout",
                description=f"Payout rejected: {reason}",
            ),
        )

    async def list_history(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        transaction_type: str | None,
    ) -> WalletHistoryResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_for_user(db, user_id, cursor_id, limit + 1, transaction_type)
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return WalletHistoryResponse(
            items=[WalletTransactionItem.from_tx(tx) for tx in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
