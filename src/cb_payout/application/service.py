"""PayoutWorkflow — companion withdrawal requests and admin processing.

A request is checked and inserted under the companion's wallet advisory
lock, the same lock credits and refunds take, so two concurrent requests
cannot both spend the same balance.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cb_common.database import advisory_xact_lock
from src.cb_common.datetime_utils import utc_now
from src.cb_common.enums import NotificationKind, PaymentMethod, PayoutStatus
from src.cb_common.errors import (
    InvalidTransitionError,
    PayoutNotFoundError,
    RejectionReasonRequiredError,
    TransitionAlreadyAppliedError,
)
from src.cb_common.id_generator import generate_id
from src.cb_common.notifications import NotificationEmitterProtocol, OutboxNotificationEmitter
from src.cb_payout.domain import policy
from src.cb_payout.domain.models import PAYOUT_TRANSITIONS, Payout
from src.cb_payout.domain.repository import PayoutRepositoryProtocol
from src.cb_payout.infrastructure.persistence import PayoutRepository
from src.cb_wallet.application.service import WalletService, wallet_lock_key
from src.cb_wallet.domain.calculator import compute_available_balance

logger = logging.getLogger(__name__)

_NOTIFY_ON: dict[PayoutStatus, NotificationKind] = {
    PayoutStatus.APPROVED: NotificationKind.PAYOUT_APPROVED,
    PayoutStatus.REJECTED: NotificationKind.PAYOUT_REJECTED,
    PayoutStatus.COMPLETED: NotificationKind.PAYOUT_COMPLETED,
}


class PayoutService:
    def __init__(
        self,
        repo: PayoutRepositoryProtocol | None = None,
        wallet: WalletService | None = None,
        notifier: NotificationEmitterProtocol | None = None,
    ) -> None:
        self._repo: PayoutRepositoryProtocol = repo or PayoutRepository()
        self._wallet = wallet or WalletService()
        self._notifier: NotificationEmitterProtocol = notifier or OutboxNotificationEmitter()

    async def request(
        self,
        db: AsyncSession,
        companion_id: str,
        amount: int,
        method: PaymentMethod,
        details: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> Payout:
        """Create a pending payout, or return the existing one for a replayed key."""
        cleaned = policy.validate_details(method, details)
        policy.check_minimum(amount, settings.MIN_PAYOUT_AMOUNT)
        if idempotency_key:
            key = f"{companion_id}:{idempotency_key}"
        else:
            key = policy.dedupe_key(
                companion_id, method, amount, utc_now(), settings.PAYOUT_DEDUP_WINDOW_SECONDS
            )
        try:
            await advisory_xact_lock(db, wallet_lock_key(companion_id))
            existing = await self._repo.get_by_idempotency_key(db, key)
            if existing is not None:
                await db.rollback()
                logger.info("Payout request replayed (key=%s) -> %s", key, existing.id)
                return existing

            policy.check_fundable(amount, await self._wallet.snapshot(db, companion_id))
            fee, net = policy.split_fee(amount, settings.PAYOUT_FEE_BPS)
            payout = await self._repo.insert_if_absent(
                db,
                Payout(
                    id=generate_id("po_"),
                    companion_id=companion_id,
                    requested_amount=amount,
                    platform_fee=fee,
                    amount=net,
                    payment_method=method,
                    payment_details=cleaned,
                    idempotency_key=key,
                ),
            )
            if payout is None:
                # Unique constraint won over the lookup above
                payout = await self._repo.get_by_idempotency_key(db, key)
                if payout is None:
                    raise PayoutNotFoundError(key)
                await db.rollback()
                return payout
            await self._notifier.enqueue(
                db, companion_id, NotificationKind.PAYOUT_REQUESTED,
                {"payout_id": payout.id, "amount": amount},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Payout %s requested by %s: %d (fee %d, net %d)",
            payout.id, companion_id, amount, fee, net,
        )
        return payout

    async def approve(self, db: AsyncSession, admin_id: str, payout_id: str) -> Payout:
        return await self._advance(db, admin_id, payout_id, "approve")

    async def mark_processing(self, db: AsyncSession, admin_id: str, payout_id: str) -> Payout:
        return await self._advance(db, admin_id, payout_id, "mark_processing")

    async def complete(self, db: AsyncSession, admin_id: str, payout_id: str) -> Payout:
        return await self._advance(db, admin_id, payout_id, "complete")

    async def reject(
        self, db: AsyncSession, admin_id: str, payout_id: str, reason: str
    ) -> Payout:
        """Reject and append a refund entry; the requested amount is withdrawable again."""
        reason = (reason or "").strip()
        if not reason:
            raise RejectionReasonRequiredError()
        return await self._advance(db, admin_id, payout_id, "reject", reason)

    async def _advance(
        self,
        db: AsyncSession,
        admin_id: str,
        payout_id: str,
        action: str,
        reason: str | None = None,
    ) -> Payout:
        sources, target = PAYOUT_TRANSITIONS[action]
        before = 0
        try:
            payout = await self._get(db, payout_id)
            if action == "reject":
                await advisory_xact_lock(db, wallet_lock_key(payout.companion_id))
                before = compute_available_balance(
                    await self._wallet.snapshot(db, payout.companion_id)
                )
            if payout.status == target:
                raise TransitionAlreadyAppliedError("payout", payout_id, payout.status.value, action)
            if payout.status not in sources:
                raise InvalidTransitionError("payout", payout_id, payout.status.value, action)

            updated = await self._repo.compare_and_set_status(
                db, payout_id, payout.version, target, admin_id, reason
            )
            if updated is None:
                current = await self._get(db, payout_id)
                raise InvalidTransitionError("payout", payout_id, current.status.value, action)

            if action == "reject":
                await self._wallet.record_payout_refund(
                    db, updated.companion_id, updated.id, updated.requested_amount, before,
                    reason or "",
                )
            kind = _NOTIFY_ON.get(target)
            if kind is not None:
                await self._notifier.enqueue(
                    db, updated.companion_id, kind,
                    {"payout_id": updated.id, "amount": updated.amount, "reason": reason},
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Payout %s %s by %s -> %s", payout_id, action, admin_id, target.value)
        return updated

    async def get(
        self, db: AsyncSession, user_id: str, payout_id: str, is_admin: bool = False
    ) -> Payout:
        payout = await self._get(db, payout_id)
        if not is_admin and payout.companion_id != user_id:
            # Don't leak other companions' payout ids
            raise PayoutNotFoundError(payout_id)
        return payout

    async def list_payouts(
        self,
        db: AsyncSession,
        companion_id: str | None,
        status: PayoutStatus | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[Payout], str | None]:
        rows = await self._repo.list_payouts(db, companion_id, status, cursor, limit + 1)
        page = rows[:limit]
        next_cursor = page[-1].id if len(rows) > limit and page else None
        return page, next_cursor

    async def _get(self, db: AsyncSession, payout_id: str) -> Payout:
        payout = await self._repo.get_by_id(db, payout_id)
        if payout is None:
            raise PayoutNotFoundError(payout_id)
        return payout
