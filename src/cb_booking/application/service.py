"""BookingService — booking lifecycle, escrow moves and slot consumption.

Transaction ownership: public commands commit or roll back here. The
payment intent is created AFTER the booking row is committed, and a
confirmation reads the order back only after its read snapshot is rolled
back, so no transaction stays open across a network call. `transition` is the hook
used by the dispute resolver inside ITS transaction and never commits.
"""

import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cb_availability.application.service import AvailabilityService
from src.cb_availability.domain.timewindow import candidate_start_times, window_end
from src.cb_booking.domain.models import Booking
from src.cb_booking.domain.ports import PaymentIntent, PaymentIntentGatewayProtocol
from src.cb_booking.domain.pricing import cancellation_refund, quote
from src.cb_booking.domain.repository import BookingRepositoryProtocol
from src.cb_booking.domain.state_machine import State, plan
from src.cb_booking.infrastructure.payment_gateway import CashfreePaymentGateway
from src.cb_booking.infrastructure.persistence import BookingRepository
from src.cb_common.datetime_utils import local_datetime, utc_now
from src.cb_common.enums import BookingAction, BookingStatus, EscrowStatus, NotificationKind
from src.cb_common.errors import (
    BookingExpiredError,
    BookingNotFoundError,
    DuplicatePaymentError,
    InvalidTimeWindowError,
    InvalidTransitionError,
    PastTimeError,
    PaymentGatewayError,
    PaymentNotVerifiedError,
    PermissionDeniedError,
    TransitionAlreadyAppliedError,
)
from src.cb_common.id_generator import generate_id
from src.cb_common.notifications import NotificationEmitterProtocol, OutboxNotificationEmitter
from src.cb_gateway.user.identity import IdentityVerificationProtocol, UserKycVerification

logger = logging.getLogger(__name__)

# Lazy expiry decides these actions by the payment window, not the stored status
_EXPIRY_EXEMPT = frozenset({BookingAction.EXPIRE, BookingAction.FAIL})


class BookingService:
    def __init__(
        self,
        repo: BookingRepositoryProtocol | None = None,
        slots: AvailabilityService | None = None,
        gateway: PaymentIntentGatewayProtocol | None = None,
        identity: IdentityVerificationProtocol | None = None,
        notifier: NotificationEmitterProtocol | None = None,
    ) -> None:
        self._repo: BookingRepositoryProtocol = repo or BookingRepository()
        self._slots = slots or AvailabilityService()
        self._gateway: PaymentIntentGatewayProtocol = gateway or CashfreePaymentGateway()
        self._identity: IdentityVerificationProtocol = identity or UserKycVerification()
        self._notifier: NotificationEmitterProtocol = notifier or OutboxNotificationEmitter()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        seeker_id: str,
        slot_id: str,
        start_time: time,
        duration_minutes: int,
    ) -> tuple[Booking, PaymentIntent]:
        """Reserve a window of a slot and open a payment intent for it.

        The slot is claimed (compare-and-set on its version) and the booking
        inserted as pending_payment in one transaction. If the gateway then
        refuses the intent, the booking is marked failed and the slot freed
        before the gateway error propagates.
        """
        now = utc_now()
        try:
            await self._identity.require_verified(db, seeker_id)
            slot = await self._slots.get_slot(db, slot_id)
            if slot.companion_id == seeker_id:
                raise PermissionDeniedError("Companions cannot book their own slots")

            try:
                end_time = window_end(start_time, duration_minutes)
            except ValueError as exc:
                raise InvalidTimeWindowError(str(exc)) from exc
            if local_datetime(slot.date, start_time) <= now:
                raise PastTimeError(f"{slot.date} {start_time:%H:%M}")
            legal = candidate_start_times(
                slot.date,
                slot.start_time,
                slot.end_time,
                duration_minutes,
                now,
                settings.SLOT_GRANULARITY_MINUTES,
            )
            if start_time not in legal:
                raise InvalidTimeWindowError(
                    f"{start_time:%H:%M} for {duration_minutes} minutes does not fit slot {slot.id}"
                )

            await self._slots.ensure_room(db, slot)
            await self._slots.mark_booked(db, slot.id, slot.version)

            price = quote(slot.price_per_hour, duration_minutes, settings.PLATFORM_FEE_BPS)
            booking = await self._repo.insert(
                db,
                Booking(
                    id=generate_id("bk_"),
                    availability_id=slot.id,
                    companion_id=slot.companion_id,
                    seeker_id=seeker_id,
                    date=slot.date,
                    start_time=start_time,
                    end_time=end_time,
                    duration_minutes=duration_minutes,
                    base_price=price.base_price,
                    platform_fee=price.platform_fee,
                    total_amount=price.total_amount,
                    companion_payout=price.companion_payout,
                    status=BookingStatus.PENDING_PAYMENT,
                    escrow_status=EscrowStatus.PENDING,
                    request_expires_at=now + timedelta(minutes=settings.PAYMENT_WINDOW_MINUTES),
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        try:
            intent = await self._gateway.create_intent(booking.total_amount, booking.id, seeker_id)
        except PaymentGatewayError:
            await self._abandon(db, booking)
            raise

        try:
            updated = await self._repo.set_payment_order_id(db, booking.id, intent.intent_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Booking %s created on slot %s by %s (total=%d)",
            booking.id, slot_id, seeker_id, booking.total_amount,
        )
        return updated or booking, intent

    async def _abandon(self, db: AsyncSession, booking: Booking) -> None:
        try:
            await self._fail(db, booking)
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Could not unwind booking %s after gateway failure", booking.id)
            raise

    # ------------------------------------------------------------------
    # Payment callbacks
    # ------------------------------------------------------------------

    async def confirm_payment(
        self,
        db: AsyncSession,
        payment_reference: str,
        booking_id: str | None = None,
        intent_id: str | None = None,
        caller_id: str | None = None,
    ) -> Booking:
        """pending_payment -> pending, escrow pending -> held.

        The provider order is read back first and must be PAID for exactly
        the booking total, otherwise PaymentNotVerifiedError. `caller_id` is
        the authenticated seeker; None means the gateway's own callback.

        Replaying the same reference is a no-op. A different reference on an
        already-paid booking raises DuplicatePaymentError. A lapsed payment
        window persists the expiry, frees the slot, and raises BookingExpiredError.
        """
        try:
            booking = await self._load_for_payment(db, booking_id, intent_id)
        finally:
            # Read-only so far; no snapshot stays open across the gateway call
            await db.rollback()
        self._check_payer(booking, caller_id)
        now = utc_now()
        if (
            booking.payment_reference is None
            and booking.status == BookingStatus.PENDING_PAYMENT
            and not booking.payment_window_lapsed(now)
        ):
            await self._verify_paid(booking)

        expired = False
        try:
            if booking.payment_reference is not None:
                return self._check_replay(booking, payment_reference)
            if booking.status == BookingStatus.EXPIRED:
                expired = True
            elif booking.payment_window_lapsed(now):
                await self._expire(db, booking)
                expired = True
            else:
                try:
                    booking = await self.transition(
                        db, booking, BookingAction.CONFIRM_PAYMENT,
                        payment_reference=payment_reference,
                    )
                except TransitionAlreadyAppliedError:
                    # A concurrent confirmation won the race
                    current = await self._get(db, booking.id)
                    return self._check_replay(current, payment_reference)
                await self._notifier.enqueue(
                    db, booking.companion_id, NotificationKind.BOOKING_REQUEST,
                    {"booking_id": booking.id, "date": booking.date, "start_time": booking.start_time},
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if expired:
            logger.warning(
                "Payment %s arrived after booking %s expired; gateway refund required",
                payment_reference, booking.id,
            )
            raise BookingExpiredError(booking.id, BookingAction.CONFIRM_PAYMENT.value)
        logger.info("Booking %s paid (ref=%s), escrow held", booking.id, payment_reference)
        return booking

    async def payment_failed(
        self,
        db: AsyncSession,
        booking_id: str | None = None,
        intent_id: str | None = None,
        caller_id: str | None = None,
    ) -> Booking:
        try:
            booking = await self._load_for_payment(db, booking_id, intent_id)
            self._check_payer(booking, caller_id)
            try:
                booking = await self._fail(db, booking)
            except TransitionAlreadyAppliedError:
                return booking
            await self._notifier.enqueue(
                db, booking.seeker_id, NotificationKind.PAYMENT_FAILED, {"booking_id": booking.id}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Booking %s payment failed; slot released", booking.id)
        return booking

    @staticmethod
    def _check_payer(booking: Booking, caller_id: str | None) -> None:
        if caller_id is not None and caller_id != booking.seeker_id:
            raise PermissionDeniedError("Only the paying seeker can report on this payment")

    async def _verify_paid(self, booking: Booking) -> None:
        if not booking.payment_order_id:
            raise PaymentNotVerifiedError(booking.id, "no payment order was opened")
        result = await self._gateway.verify_intent(booking.payment_order_id)
        if not result.is_paid:
            logger.warning(
                "Confirmation for booking %s rejected: order %s is %s",
                booking.id, result.intent_id, result.status or "unknown",
            )
            raise PaymentNotVerifiedError(booking.id, f"order status is {result.status or 'unknown'}")
        if result.amount != booking.total_amount:
            logger.warning(
                "Confirmation for booking %s rejected: paid %d, due %d",
                booking.id, result.amount, booking.total_amount,
            )
            raise PaymentNotVerifiedError(
                booking.id, f"paid {result.amount} paise, due {booking.total_amount} paise"
            )

    # ------------------------------------------------------------------
    # Party commands
    # ------------------------------------------------------------------

    async def accept(self, db: AsyncSession, companion_id: str, booking_id: str) -> Booking:
        now = utc_now()
        try:
            booking = await self._get(db, booking_id)
            if booking.companion_id != companion_id:
                raise PermissionDeniedError("Only the booked companion can accept")
            if booking.meetup_start <= now:
                raise PastTimeError("meetup has already started")
            booking = await self.transition(db, booking, BookingAction.ACCEPT, now=now)
            await self._notifier.enqueue(
                db, booking.seeker_id, NotificationKind.BOOKING_ACCEPTED, {"booking_id": booking.id}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Booking %s accepted", booking_id)
        return booking

    async def cancel(self, db: AsyncSession, user_id: str, booking_id: str) -> Booking:
        """Cancel a paid booking. Escrow is refunded and the slot returns to the pool."""
        now = utc_now()
        try:
            booking = await self._get(db, booking_id)
            if not booking.is_party(user_id):
                raise PermissionDeniedError("Only a party to the booking can cancel it")
            by_companion = user_id == booking.companion_id
            booking = await self.transition(
                db,
                booking,
                BookingAction.CANCEL,
                now=now,
                fields=lambda b: {
                    "refund_amount": cancellation_refund(
                        b.status, b.total_amount, b.base_price, b.meetup_start, now, by_companion
                    ),
                    "cancelled_by": user_id,
                    "cancelled_from_status": b.status,
                },
            )
            await self._slots.mark_available(db, booking.availability_id)
            other = booking.seeker_id if by_companion else booking.companion_id
            await self._notifier.enqueue(
                db, other, NotificationKind.BOOKING_CANCELLED,
                {"booking_id": booking.id, "cancelled_by": user_id},
            )
            await self._notifier.enqueue(
                db, booking.seeker_id, NotificationKind.PAYMENT_REFUNDED,
                {"booking_id": booking.id, "refund_amount": booking.refund_amount},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Booking %s cancelled by %s (from=%s, refund=%d)",
            booking.id, user_id, booking.cancelled_from_status, booking.refund_amount,
        )
        return booking

    async def complete(
        self, db: AsyncSession, user_id: str, booking_id: str, is_admin: bool = False
    ) -> Booking:
        """accepted -> completed once the meetup has ended; escrow released to earnings."""
        now = utc_now()
        try:
            booking = await self._get(db, booking_id)
            if not (is_admin or booking.is_party(user_id)):
                raise PermissionDeniedError("Only a party to the booking can complete it")
            if booking.status == BookingStatus.ACCEPTED and booking.meetup_end > now:
                raise InvalidTransitionError(
                    "booking", booking.id, "accepted (meetup not yet ended)",
                    BookingAction.COMPLETE.value,
                )
            booking = await self.transition(db, booking, BookingAction.COMPLETE, now=now)
            await self._notifier.enqueue(
                db, booking.companion_id, NotificationKind.EARNING_RELEASED,
                {"booking_id": booking.id, "amount": booking.companion_payout},
            )
            await self._notifier.enqueue(
                db, booking.seeker_id, NotificationKind.BOOKING_COMPLETED, {"booking_id": booking.id}
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Booking %s completed; %d released", booking.id, booking.companion_payout)
        return booking

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def expire_lapsed(self, db: AsyncSession, limit: int = 100) -> list[str]:
        """Persist lazy expiries. Readers never depend on this having run."""
        expired: list[str] = []
        try:
            for booking in await self._repo.list_lapsed_unpaid(db, utc_now(), limit):
                try:
                    await self._expire(db, booking)
                except InvalidTransitionError:
                    # Paid or failed between the scan and the update
                    continue
                expired.append(booking.id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        if expired:
            logger.info("Expired %d unpaid bookings", len(expired))
        return expired

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(
        self, db: AsyncSession, user_id: str, booking_id: str, is_admin: bool = False
    ) -> Booking:
        booking = await self._get(db, booking_id)
        if not (is_admin or booking.is_party(user_id)):
            raise PermissionDeniedError("Booking belongs to other users")
        return booking

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        role: str,
        status: BookingStatus | None,
        cursor: str | None,
        limit: int,
    ) -> tuple[list[Booking], str | None]:
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_for_user(
            db, user_id, role, status, cursor, limit + 1, utc_now()
        )
        page = rows[:limit]
        next_cursor = page[-1].id if len(rows) > limit and page else None
        return page, next_cursor

    async def companion_cancellations(
        self, db: AsyncSession, companion_id: str, now: datetime | None = None
    ) -> int:
        """Accepted bookings the companion cancelled inside the reliability window."""
        since = (now or utc_now()) - timedelta(days=settings.CANCELLATION_WINDOW_DAYS)
        return await self._repo.count_companion_cancellations(db, companion_id, since)

    # ------------------------------------------------------------------
    # Transition core (caller owns the transaction)
    # ------------------------------------------------------------------

    async def transition(
        self,
        db: AsyncSession,
        booking: Booking,
        action: BookingAction,
        *,
        now: datetime | None = None,
        refund_amount: int = 0,
        restore_to: State | None = None,
        payment_reference: str | None = None,
        fields: Callable[[Booking], dict[str, Any]] | None = None,
    ) -> Booking:
        """Plan `action` against the booking and write it with compare-and-set.

        On a lost race the booking is reloaded and re-planned once; a second
        miss surfaces as InvalidTransitionError rather than overwriting.
        """
        now = now or utc_now()
        for _ in range(2):
            if action not in _EXPIRY_EXEMPT and booking.payment_window_lapsed(now):
                raise BookingExpiredError(booking.id, action.value)
            planned = plan(
                booking.id,
                action,
                booking.status,
                booking.escrow_status,
                refund_amount=refund_amount,
                restore_to=restore_to,
            )
            extra = fields(booking) if fields else {}
            if action == BookingAction.RESOLVE and refund_amount:
                # Adds to any refund already made on cancellation
                extra.setdefault("refund_amount", booking.refund_amount + refund_amount)
            updated = await self._repo.compare_and_set(
                db,
                booking.id,
                booking.version,
                planned.to_status,
                planned.to_escrow,
                payment_reference=payment_reference,
                **extra,
            )
            if updated is not None:
                logger.debug(
                    "Booking %s %s: %s/%s -> %s/%s",
                    booking.id, action.value, planned.from_status.value,
                    planned.from_escrow.value, planned.to_status.value, planned.to_escrow.value,
                )
                return updated
            booking = await self._get(db, booking.id)
        raise InvalidTransitionError("booking", booking.id, booking.status.value, action.value)

    async def _expire(self, db: AsyncSession, booking: Booking) -> Booking:
        booking = await self.transition(db, booking, BookingAction.EXPIRE)
        await self._slots.mark_available(db, booking.availability_id)
        await self._notifier.enqueue(
            db, booking.seeker_id, NotificationKind.BOOKING_EXPIRED, {"booking_id": booking.id}
        )
        return booking

    async def _fail(self, db: AsyncSession, booking: Booking) -> Booking:
        booking = await self.transition(db, booking, BookingAction.FAIL)
        await self._slots.mark_available(db, booking.availability_id)
        return booking

    async def _get(self, db: AsyncSession, booking_id: str) -> Booking:
        booking = await self._repo.get_by_id(db, booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    async def _load_for_payment(
        self, db: AsyncSession, booking_id: str | None, intent_id: str | None
    ) -> Booking:
        if intent_id:
            booking = await self._repo.get_by_payment_order_id(db, intent_id)
            if booking is None:
                raise BookingNotFoundError(intent_id)
            return booking
        if booking_id:
            return await self._get(db, booking_id)
        raise BookingNotFoundError("<missing booking_id/intent_id>")

    @staticmethod
    def _check_replay(booking: Booking, payment_reference: str) -> Booking:
        if booking.payment_reference != payment_reference:
            raise DuplicatePaymentError(booking.id, payment_reference)
        return booking
