"""DisputeResolver — raise, review, resolve and close disputes on bookings.

Raising a dispute puts the booking's escrow on hold; resolving it settles the
escrow as released (no refund) or refunded. Every write to the booking goes
through BookingService.transition inside this service's transaction.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.cb_booking.application.service import BookingService
from src.cb_booking.domain.models import Booking
from src.cb_common.datetime_utils import utc_now
from src.cb_common.enums import BookingAction, BookingStatus, DisputeStatus, NotificationKind
from src.cb_common.errors import (
    DisputeExistsError,
    DisputeNotFoundError,
    InvalidRefundAmountError,
    InvalidTransitionError,
    PermissionDeniedError,
    RefundExceedsTotalError,
    TransitionAlreadyAppliedError,
)
from src.cb_common.id_generator import generate_id
from src.cb_common.notifications import NotificationEmitterProtocol, OutboxNotificationEmitter
from src.cb_dispute.domain.models import DISPUTABLE_BOOKING_STATUSES, Dispute
from src.cb_dispute.domain.repository import DisputeRepositoryProtocol
from src.cb_dispute.infrastructure.persistence import DisputeRepository

logger = logging.getLogger(__name__)


class DisputeService:
    def __init__(
        self,
        repo: DisputeRepositoryProtocol | None = None,
        bookings: BookingService | None = None,
        notifier: NotificationEmitterProtocol | None = None,
    ) -> None:
        self._repo: DisputeRepositoryProtocol = repo or DisputeRepository()
        self._bookings = bookings or BookingService()
        self._notifier: NotificationEmitterProtocol = notifier or OutboxNotificationEmitter()

    async def raise_dispute(
        self, db: AsyncSession, user_id: str, booking_id: str, reason: str
    ) -> Dispute:
        """Open a dispute on a booking the caller is party to."""
        now = utc_now()
        try:
            booking = await self._bookings.get(db, user_id, booking_id)
            if booking.status == BookingStatus.DISPUTED:
                raise DisputeExistsError(booking_id)
            if booking.effective_status(now) not in DISPUTABLE_BOOKING_STATUSES:
                raise InvalidTransitionError(
                    "booking", booking_id, booking.effective_status(now).value,
                    BookingAction.DISPUTE.value,
                )
            for previous in await self._repo.list_for_booking(db, booking_id):
                if previous.status != DisputeStatus.CLOSED:
                    # A resolved dispute is final; a dismissed one may be raised again
                    raise DisputeExistsError(booking_id)

            against = booking.companion_id if user_id == booking.seeker_id else booking.seeker_id
            status_before, escrow_before = booking.status, booking.escrow_status
            await self._bookings.transition(db, booking, BookingAction.DISPUTE, now=now)
            dispute = await self._repo.insert_if_no_active(
                db,
                Dispute(
                    id=generate_id("dp_"),
                    booking_id=booking_id,
                    raised_by=user_id,
                    against_user_id=against,
                    reason=reason,
                    booking_status_before=status_before,
                    escrow_status_before=escrow_before,
                ),
            )
            if dispute is None:
                raise DisputeExistsError(booking_id)
            await self._notifier.enqueue(
                db, against, NotificationKind.DISPUTE_RAISED,
                {"dispute_id": dispute.id, "booking_id": booking_id},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Dispute %s raised on booking %s by %s", dispute.id, booking_id, user_id)
        return dispute

    async def review(self, db: AsyncSession, admin_id: str, dispute_id: str) -> Dispute:
        try:
            dispute = await self._get(db, dispute_id)
            if dispute.status == DisputeStatus.UNDER_REVIEW:
                raise TransitionAlreadyAppliedError(
                    "dispute", dispute_id, dispute.status.value, "review"
                )
            if dispute.status != DisputeStatus.OPEN:
                raise InvalidTransitionError("dispute", dispute_id, dispute.status.value, "review")
            updated = await self._cas(db, dispute, DisputeStatus.UNDER_REVIEW, "review")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Dispute %s under review by %s", dispute_id, admin_id)
        return updated

    async def resolve(
        self,
        db: AsyncSession,
        admin_id: str,
        dispute_id: str,
        resolution: str,
        refund_amount: int,
        admin_notes: str | None = None,
    ) -> tuple[Dispute, Booking]:
        """Settle the escrow: released when refund_amount is 0, refunded otherwise.

        The refund adds to whatever the seeker already got back on cancellation;
        RefundExceedsTotalError if the two together exceed what the seeker paid.
        """
        if refund_amount < 0:
            raise InvalidRefundAmountError(refund_amount)
        try:
            dispute = await self._get_active(db, dispute_id, "resolve")
            booking = await self._bookings.get(db, admin_id, dispute.booking_id, is_admin=True)
            if booking.refund_amount + refund_amount > booking.total_amount:
                raise RefundExceedsTotalError(
                    refund_amount, booking.total_amount, booking.refund_amount
                )
            booking = await self._bookings.transition(
                db, booking, BookingAction.RESOLVE, refund_amount=refund_amount
            )
            updated = await self._cas(
                db, dispute, DisputeStatus.RESOLVED, "resolve",
                resolution=resolution,
                refund_amount=refund_amount,
                admin_notes=admin_notes,
                resolved_by=admin_id,
            )
            await self._notify_parties(
                db, booking, NotificationKind.DISPUTE_RESOLVED,
                {"dispute_id": dispute_id, "refund_amount": refund_amount},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Dispute %s resolved by %s: refund=%d escrow=%s",
            dispute_id, admin_id, refund_amount, booking.escrow_status.value,
        )
        return updated, booking

    async def close(
        self, db: AsyncSession, admin_id: str, dispute_id: str, admin_notes: str | None = None
    ) -> tuple[Dispute, Booking]:
        """Dismiss without a ruling; the booking returns to its pre-dispute state."""
        try:
            dispute = await self._get_active(db, dispute_id, "close")
            booking = await self._bookings.get(db, admin_id, dispute.booking_id, is_admin=True)
            booking = await self._bookings.transition(
                db,
                booking,
                BookingAction.DISMISS,
                restore_to=(dispute.booking_status_before, dispute.escrow_status_before),
            )
            updated = await self._cas(
                db, dispute, DisputeStatus.CLOSED, "close",
                admin_notes=admin_notes, resolved_by=admin_id,
            )
            await self._notify_parties(
                db, booking, NotificationKind.DISPUTE_CLOSED, {"dispute_id": dispute_id}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Dispute %s closed by %s; booking restored to %s",
            dispute_id, admin_id, booking.status.value,
        )
        return updated, booking

    async def get(
        self, db: AsyncSession, user_id: str, dispute_id: str, is_admin: bool = False
    ) -> Dispute:
        dispute = await self._get(db, dispute_id)
        if not is_admin and user_id not in (dispute.raised_by, dispute.against_user_id):
            raise PermissionDeniedError("Dispute involves other users")
        return dispute

    async def list_disputes(
        self,
        db: AsyncSession,
        user_id: str | None,
        status: DisputeStatus | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[Dispute], str | None]:
        rows = await self._repo.list_disputes(db, user_id, status, cursor, limit + 1)
        page = rows[:limit]
        next_cursor = page[-1].id if len(rows) > limit and page else None
        return page, next_cursor

    # ------------------------------------------------------------------

    async def _get(self, db: AsyncSession, dispute_id: str) -> Dispute:
        dispute = await self._repo.get_by_id(db, dispute_id)
        if dispute is None:
            raise DisputeNotFoundError(dispute_id)
        return dispute

    async def _get_active(self, db: AsyncSession, dispute_id: str, action: str) -> Dispute:
        dispute = await self._get(db, dispute_id)
        if not dispute.is_active:
            raise InvalidTransitionError("dispute", dispute_id, dispute.status.value, action)
        return dispute

    async def _cas(
        self,
        db: AsyncSession,
        dispute: Dispute,
        new_status: DisputeStatus,
        action: str,
        *,
        resolution: str | None = None,
        refund_amount: int | None = None,
        admin_notes: str | None = None,
        resolved_by: str | None = None,
    ) -> Dispute:
        updated = await self._repo.compare_and_set(
            db,
            dispute.id,
            dispute.version,
            new_status,
            resolution=resolution,
            refund_amount=refund_amount,
            admin_notes=admin_notes,
            resolved_by=resolved_by,
        )
        if updated is None:
            current = await self._get(db, dispute.id)
            raise InvalidTransitionError("dispute", dispute.id, current.status.value, action)
        return updated

    async def _notify_parties(
        self, db: AsyncSession, booking: Booking, kind: NotificationKind, payload: dict[str, Any]
    ) -> None:
        for user_id in (booking.seeker_id, booking.companion_id):
            await self._notifier.enqueue(db, user_id, kind, payload)
