"""Unit tests for BookingService with mocked repository, slots and gateway."""

from dataclasses import replace
from datetime import date, datetime, time, timedelta
from unittest.mock import AsyncMock

import pytest

from src.cb_availability.domain.models import AvailabilitySlot
from src.cb_booking.application.service import BookingService
from src.cb_booking.domain.models import Booking
from src.cb_booking.domain.ports import ORDER_PAID, PaymentIntent, PaymentVerification
from src.cb_common.datetime_utils import local_datetime, to_local, utc_now
from src.cb_common.enums import BookingAction, BookingStatus, EscrowStatus, NotificationKind
from src.cb_common.errors import (
    BookingExpiredError,
    DuplicatePaymentError,
    InvalidTimeWindowError,
    InvalidTransitionError,
    PastTimeError,
    PaymentGatewayError,
    PaymentNotVerifiedError,
    PermissionDeniedError,
    SlotUnavailableError,
)

FUTURE = to_local(utc_now()).date() + timedelta(days=5)


def _slot(day: date = FUTURE) -> AvailabilitySlot:
    return AvailabilitySlot(
        id="sl_1",
        companion_id="comp-1",
        date=day,
        start_time=time(10),
        end_time=time(12),
        price_per_hour=50000,
        version=3,
    )


def _booking(
    status: BookingStatus = BookingStatus.PENDING,
    escrow: EscrowStatus = EscrowStatus.HELD,
    day: date = FUTURE,
    start: time = time(10),
    end: time = time(12),
    expires_at: datetime | None = None,
    payment_reference: str | None = None,
) -> Booking:
    return Booking(
        id="bk_1",
        availability_id="sl_1",
        companion_id="comp-1",
        seeker_id="seek-1",
        date=day,
        start_time=start,
        end_time=end,
        duration_minutes=120,
        base_price=100000,
        platform_fee=7000,
        total_amount=107000,
        companion_payout=100000,
        status=status,
        escrow_status=escrow,
        payment_reference=payment_reference,
        payment_order_id="order_bk_1",
        request_expires_at=expires_at or utc_now() + timedelta(minutes=30),
        version=1,
    )


def _apply_cas(db, booking_id, expected_version, status, escrow_status, **fields):
    base = _apply_cas.current  # type: ignore[attr-defined]
    values = {k: v for k, v in fields.items() if v is not None}
    return replace(
        base, status=status, escrow_status=escrow_status, version=expected_version + 1, **values
    )


def _make(booking: Booking | None = None):
    repo = AsyncMock()
    slots = AsyncMock()
    gateway = AsyncMock()
    notifier = AsyncMock()
    if booking is not None:
        repo.get_by_id.return_value = booking
        repo.get_by_payment_order_id.return_value = booking
        _apply_cas.current = booking  # type: ignore[attr-defined]
        repo.compare_and_set.side_effect = _apply_cas
        gateway.verify_intent.return_value = PaymentVerification(
            "order_bk_1", ORDER_PAID, booking.total_amount
        )
    svc = BookingService(
        repo=repo, slots=slots, gateway=gateway, identity=AsyncMock(), notifier=notifier
    )
    return svc, repo, slots, gateway, notifier


class TestCreate:
    async def test_prices_and_opens_intent(self) -> None:
        svc, repo, slots, gateway, _ = _make()
        slots.get_slot.return_value = _slot()
        repo.insert.side_effect = lambda db, b: b
        repo.set_payment_order_id.side_effect = (
            lambda db, bid, oid: replace(repo.insert.call_args.args[1], payment_order_id=oid)
        )
        gateway.create_intent.return_value = PaymentIntent("order_bk", "sess")
        db = AsyncMock()

        booking, intent = await svc.create(db, "seek-1", "sl_1", time(10), 120)

        assert booking.total_amount == 107000
        assert booking.platform_fee == 7000
        assert booking.companion_payout == 100000
        assert booking.status == BookingStatus.PENDING_PAYMENT
        assert booking.escrow_status == EscrowStatus.PENDING
        assert booking.end_time == time(12)
        assert booking.payment_order_id == "order_bk"
        assert intent.client_session == "sess"
        slots.mark_booked.assert_awaited_once_with(db, "sl_1", 3)
        gateway.create_intent.assert_awaited_once_with(107000, booking.id, "seek-1")
        assert db.commit.await_count == 2

    async def test_window_must_fit_slot(self) -> None:
        svc, repo, slots, _, _ = _make()
        slots.get_slot.return_value = _slot()
        with pytest.raises(InvalidTimeWindowError):
            await svc.create(AsyncMock(), "seek-1", "sl_1", time(11, 30), 60)
        repo.insert.assert_not_called()

    async def test_off_grid_start_rejected(self) -> None:
        svc, _, slots, _, _ = _make()
        slots.get_slot.return_value = _slot()
        with pytest.raises(InvalidTimeWindowError):
            await svc.create(AsyncMock(), "seek-1", "sl_1", time(10, 7), 60)

    async def test_past_meetup_rejected(self) -> None:
        svc, _, slots, _, _ = _make()
        slots.get_slot.return_value = _slot(day=to_local(utc_now()).date() - timedelta(days=1))
        with pytest.raises(PastTimeError):
            await svc.create(AsyncMock(), "seek-1", "sl_1", time(10), 60)

    async def test_companion_cannot_book_own_slot(self) -> None:
        svc, _, slots, _, _ = _make()
        slots.get_slot.return_value = _slot()
        with pytest.raises(PermissionDeniedError):
            await svc.create(AsyncMock(), "comp-1", "sl_1", time(10), 60)

    async def test_slot_already_claimed(self) -> None:
        svc, repo, slots, gateway, _ = _make()
        slots.get_slot.return_value = _slot()
        slots.ensure_room.side_effect = SlotUnavailableError("sl_1")
        db = AsyncMock()
        with pytest.raises(SlotUnavailableError):
            await svc.create(db, "seek-1", "sl_1", time(10), 60)
        gateway.create_intent.assert_not_called()
        db.rollback.assert_awaited()

    async def test_gateway_failure_fails_booking_and_frees_slot(self) -> None:
        svc, repo, slots, gateway, _ = _make()
        slots.get_slot.return_value = _slot()

        def _insert(db, b):
            _apply_cas.current = b  # type: ignore[attr-defined]
            return b

        repo.insert.side_effect = _insert
        repo.compare_and_set.side_effect = _apply_cas
        gateway.verify_intent.return_value = PaymentVerification(
            "order_bk_1", ORDER_PAID, booking.total_amount
        )
        gateway.create_intent.side_effect = PaymentGatewayError("down")

        with pytest.raises(PaymentGatewayError):
            await svc.create(AsyncMock(), "seek-1", "sl_1", time(10), 60)

        assert repo.compare_and_set.await_args.args[3] == BookingStatus.FAILED
        slots.mark_available.assert_awaited_once()
        repo.set_payment_order_id.assert_not_called()


class TestConfirmPayment:
    async def test_holds_escrow_and_notifies_companion(self) -> None:
        svc, repo, _, _, notifier = _make(
            _booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING)
        )
        booking = await svc.confirm_payment(AsyncMock(), "pay_1", booking_id="bk_1")

        assert booking.status == BookingStatus.PENDING
        assert booking.escrow_status == EscrowStatus.HELD
        assert booking.payment_reference == "pay_1"
        assert notifier.enqueue.await_args.args[1:3] == ("comp-1", NotificationKind.BOOKING_REQUEST)

    async def test_replay_with_same_reference_is_noop(self) -> None:
        svc, repo, _, _, _ = _make(_booking(payment_reference="pay_1"))
        booking = await svc.confirm_payment(AsyncMock(), "pay_1", intent_id="order_bk_1")
        assert booking.status == BookingStatus.PENDING
        repo.compare_and_set.assert_not_called()

    async def test_second_reference_is_rejected(self) -> None:
        svc, _, _, _, _ = _make(_booking(payment_reference="pay_1"))
        with pytest.raises(DuplicatePaymentError):
            await svc.confirm_payment(AsyncMock(), "pay_2", booking_id="bk_1")

    async def test_lapsed_window_persists_expiry(self) -> None:
        svc, repo, slots, _, _ = _make(
            _booking(
                BookingStatus.PENDING_PAYMENT,
                EscrowStatus.PENDING,
                expires_at=utc_now() - timedelta(minutes=1),
            )
        )
        db = AsyncMock()

        with pytest.raises(BookingExpiredError):
            await svc.confirm_payment(db, "pay_1", booking_id="bk_1")

        assert repo.compare_and_set.await_args.args[3] == BookingStatus.EXPIRED
        slots.mark_available.assert_awaited_once()
        db.commit.assert_awaited_once()

    async def test_unpaid_order_is_not_confirmed(self) -> None:
        svc, repo, _, gateway, notifier = _make(
            _booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING)
        )
        gateway.verify_intent.return_value = PaymentVerification("order_bk_1", "ACTIVE", 107000)

        with pytest.raises(PaymentNotVerifiedError) as exc:
            await svc.confirm_payment(AsyncMock(), "pay_1", booking_id="bk_1")

        assert exc.value.code == 7002
        gateway.verify_intent.assert_awaited_once_with("order_bk_1")
        repo.compare_and_set.assert_not_called()
        notifier.enqueue.assert_not_called()

    async def test_amount_mismatch_is_not_confirmed(self) -> None:
        svc, repo, _, gateway, _ = _make(
            _booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING)
        )
        gateway.verify_intent.return_value = PaymentVerification("order_bk_1", ORDER_PAID, 100)

        with pytest.raises(PaymentNotVerifiedError):
            await svc.confirm_payment(AsyncMock(), "pay_1", booking_id="bk_1")
        repo.compare_and_set.assert_not_called()

    async def test_booking_without_order_is_not_confirmed(self) -> None:
        svc, repo, _, gateway, _ = _make(
            replace(_booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING), payment_order_id=None)
        )
        with pytest.raises(PaymentNotVerifiedError):
            await svc.confirm_payment(AsyncMock(), "pay_1", booking_id="bk_1")
        gateway.verify_intent.assert_not_called()
        repo.compare_and_set.assert_not_called()

    async def test_other_user_cannot_confirm(self) -> None:
        svc, repo, _, gateway, _ = _make(
            _booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING)
        )
        with pytest.raises(PermissionDeniedError):
            await svc.confirm_payment(
                AsyncMock(), "pay_1", booking_id="bk_1", caller_id="someone-else"
            )
        gateway.verify_intent.assert_not_called()
        repo.compare_and_set.assert_not_called()

    async def test_paying_seeker_can_confirm(self) -> None:
        svc, _, _, _, _ = _make(_booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING))
        booking = await svc.confirm_payment(
            AsyncMock(), "pay_1", booking_id="bk_1", caller_id="seek-1"
        )
        assert booking.status == BookingStatus.PENDING

    async def test_gateway_outage_leaves_booking_untouched(self) -> None:
        svc, repo, _, gateway, _ = _make(
            _booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING)
        )
        gateway.verify_intent.side_effect = PaymentGatewayError("timeout")
        with pytest.raises(PaymentGatewayError):
            await svc.confirm_payment(AsyncMock(), "pay_1", booking_id="bk_1")
        repo.compare_and_set.assert_not_called()

    async def test_replay_skips_gateway_lookup(self) -> None:
        svc, _, _, gateway, _ = _make(_booking(payment_reference="pay_1"))
        await svc.confirm_payment(AsyncMock(), "pay_1", booking_id="bk_1")
        gateway.verify_intent.assert_not_called()


class TestPaymentFailed:
    async def test_marks_failed_and_releases_slot(self) -> None:
        svc, repo, slots, _, notifier = _make(
            _booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING)
        )
        booking = await svc.payment_failed(AsyncMock(), booking_id="bk_1")
        assert booking.status == BookingStatus.FAILED
        slots.mark_available.assert_awaited_once()
        assert notifier.enqueue.await_args.args[2] == NotificationKind.PAYMENT_FAILED

    async def test_repeat_is_idempotent(self) -> None:
        svc, repo, slots, _, _ = _make(_booking(BookingStatus.FAILED, EscrowStatus.PENDING))
        booking = await svc.payment_failed(AsyncMock(), booking_id="bk_1")
        assert booking.status == BookingStatus.FAILED
        repo.compare_and_set.assert_not_called()

    async def test_other_user_cannot_report_failure(self) -> None:
        svc, repo, _, _, _ = _make(_booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING))
        with pytest.raises(PermissionDeniedError):
            await svc.payment_failed(AsyncMock(), booking_id="bk_1", caller_id="comp-1")
        repo.compare_and_set.assert_not_called()


class TestAccept:
    async def test_companion_accepts(self) -> None:
        svc, _, _, _, _ = _make(_booking())
        booking = await svc.accept(AsyncMock(), "comp-1", "bk_1")
        assert booking.status == BookingStatus.ACCEPTED
        assert booking.escrow_status == EscrowStatus.HELD

    async def test_seeker_cannot_accept(self) -> None:
        svc, _, _, _, _ = _make(_booking())
        with pytest.raises(PermissionDeniedError):
            await svc.accept(AsyncMock(), "seek-1", "bk_1")

    async def test_unpaid_cannot_be_accepted(self) -> None:
        svc, _, _, _, _ = _make(_booking(BookingStatus.PENDING_PAYMENT, EscrowStatus.PENDING))
        with pytest.raises(InvalidTransitionError):
            await svc.accept(AsyncMock(), "comp-1", "bk_1")


class TestCancel:
    async def test_seeker_cancels_pending_for_full_refund(self) -> None:
        svc, _, slots, _, notifier = _make(_booking())
        booking = await svc.cancel(AsyncMock(), "seek-1", "bk_1")

        assert booking.status == BookingStatus.CANCELLED
        assert booking.escrow_status == EscrowStatus.REFUNDED
        assert booking.refund_amount == 107000
        assert booking.cancelled_by == "seek-1"
        assert booking.cancelled_from_status == BookingStatus.PENDING
        slots.mark_available.assert_awaited_once()
        kinds = [c.args[2] for c in notifier.enqueue.await_args_list]
        assert kinds == [NotificationKind.BOOKING_CANCELLED, NotificationKind.PAYMENT_REFUNDED]

    async def test_companion_cancels_accepted_for_full_refund(self) -> None:
        svc, _, _, _, _ = _make(_booking(BookingStatus.ACCEPTED))
        booking = await svc.cancel(AsyncMock(), "comp-1", "bk_1")
        assert booking.refund_amount == 107000
        assert booking.cancelled_from_status == BookingStatus.ACCEPTED

    async def test_seeker_cancels_accepted_well_ahead(self) -> None:
        far = to_local(utc_now()).date() + timedelta(days=10)
        svc, _, _, _, _ = _make(_booking(BookingStatus.ACCEPTED, day=far))
        booking = await svc.cancel(AsyncMock(), "seek-1", "bk_1")
        assert booking.refund_amount == 100000

    async def test_stranger_cannot_cancel(self) -> None:
        svc, _, _, _, _ = _make(_booking())
        with pytest.raises(PermissionDeniedError):
            await svc.cancel(AsyncMock(), "someone", "bk_1")

    async def test_completed_cannot_be_cancelled(self) -> None:
        svc, _, _, _, _ = _make(_booking(BookingStatus.COMPLETED, EscrowStatus.RELEASED))
        with pytest.raises(InvalidTransitionError):
            await svc.cancel(AsyncMock(), "seek-1", "bk_1")


class TestComplete:
    async def test_releases_escrow_after_meetup(self) -> None:
        past = to_local(utc_now()).date() - timedelta(days=1)
        svc, _, _, _, notifier = _make(_booking(BookingStatus.ACCEPTED, day=past))
        booking = await svc.complete(AsyncMock(), "seek-1", "bk_1")
        assert booking.status == BookingStatus.COMPLETED
        assert booking.escrow_status == EscrowStatus.RELEASED
        assert notifier.enqueue.await_args_list[0].args[1:3] == (
            "comp-1", NotificationKind.EARNING_RELEASED,
        )

    async def test_meetup_not_ended(self) -> None:
        svc, repo, _, _, _ = _make(_booking(BookingStatus.ACCEPTED))
        with pytest.raises(InvalidTransitionError):
            await svc.complete(AsyncMock(), "comp-1", "bk_1")
        repo.compare_and_set.assert_not_called()


class TestTransitionRace:
    async def test_lost_race_reloads_once_then_fails(self) -> None:
        svc, repo, _, _, _ = _make(_booking())
        repo.compare_and_set.side_effect = None
        repo.compare_and_set.return_value = None

        with pytest.raises(InvalidTransitionError):
            await svc.transition(AsyncMock(), _booking(), BookingAction.ACCEPT)

        assert repo.compare_and_set.await_count == 2
        assert repo.get_by_id.await_count == 2

    async def test_lapsed_booking_cannot_be_driven_forward(self) -> None:
        lapsed = _booking(
            BookingStatus.PENDING_PAYMENT,
            EscrowStatus.PENDING,
            expires_at=utc_now() - timedelta(seconds=1),
        )
        svc, _, _, _, _ = _make(lapsed)
        with pytest.raises(BookingExpiredError):
            await svc.transition(AsyncMock(), lapsed, BookingAction.CONFIRM_PAYMENT)


class TestResolveRefund:
    async def test_adds_to_cancellation_refund(self) -> None:
        disputed = replace(
            _booking(BookingStatus.DISPUTED, EscrowStatus.REFUNDED), refund_amount=100000
        )
        svc, repo, _, _, _ = _make(disputed)

        booking = await svc.transition(
            AsyncMock(), disputed, BookingAction.RESOLVE, refund_amount=7000
        )

        assert repo.compare_and_set.await_args.kwargs["refund_amount"] == 107000
        assert booking.refund_amount == 107000
        assert booking.escrow_status == EscrowStatus.REFUNDED

    async def test_zero_refund_keeps_cancellation_refund(self) -> None:
        disputed = replace(
            _booking(BookingStatus.DISPUTED, EscrowStatus.REFUNDED), refund_amount=100000
        )
        svc, repo, _, _, _ = _make(disputed)

        booking = await svc.transition(AsyncMock(), disputed, BookingAction.RESOLVE)

        assert "refund_amount" not in repo.compare_and_set.await_args.kwargs
        assert booking.refund_amount == 100000


class TestQueries:
    async def test_list_pages_with_cursor(self) -> None:
        svc, repo, _, _, _ = _make()
        repo.list_for_user.return_value = [replace(_booking(), id=f"bk_{i}") for i in (3, 2, 1)]

        page, cursor = await svc.list_for_user(AsyncMock(), "seek-1", "seeker", None, None, 2)

        assert [b.id for b in page] == ["bk_3", "bk_2"]
        assert cursor == "bk_2"
        assert repo.list_for_user.await_args.args[5] == 3

    async def test_expire_lapsed_returns_ids(self) -> None:
        lapsed = _booking(
            BookingStatus.PENDING_PAYMENT,
            EscrowStatus.PENDING,
            expires_at=utc_now() - timedelta(minutes=5),
        )
        svc, repo, _, _, _ = _make(lapsed)
        repo.list_lapsed_unpaid.return_value = [lapsed]

        assert await svc.expire_lapsed(AsyncMock()) == ["bk_1"]

    async def test_companion_cancellations_window(self) -> None:
        svc, repo, _, _, _ = _make()
        repo.count_companion_cancellations.return_value = 2
        now = local_datetime(FUTURE, time(9))

        assert await svc.companion_cancellations(AsyncMock(), "comp-1", now) == 2
        since = repo.count_companion_cancellations.await_args.args[2]
        assert now - since == timedelta(days=30)
