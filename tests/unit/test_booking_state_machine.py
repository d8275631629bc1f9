"""Tests for the booking (status, escrow) transition table."""

import pytest

from src.cb_booking.domain.state_machine import plan
from src.cb_common.enums import BookingAction as A
from src.cb_common.enums import BookingStatus as S
from src.cb_common.enums import EscrowStatus as E
from src.cb_common.errors import InvalidTransitionError, TransitionAlreadyAppliedError


@pytest.mark.parametrize(
    ("action", "source", "target"),
    [
        (A.CONFIRM_PAYMENT, (S.PENDING_PAYMENT, E.PENDING), (S.PENDING, E.HELD)),
        (A.EXPIRE, (S.PENDING_PAYMENT, E.PENDING), (S.EXPIRED, E.PENDING)),
        (A.FAIL, (S.PENDING_PAYMENT, E.PENDING), (S.FAILED, E.PENDING)),
        (A.ACCEPT, (S.PENDING, E.HELD), (S.ACCEPTED, E.HELD)),
        (A.CANCEL, (S.PENDING, E.HELD), (S.CANCELLED, E.REFUNDED)),
        (A.CANCEL, (S.ACCEPTED, E.HELD), (S.CANCELLED, E.REFUNDED)),
        (A.COMPLETE, (S.ACCEPTED, E.HELD), (S.COMPLETED, E.RELEASED)),
        (A.DISPUTE, (S.ACCEPTED, E.HELD), (S.DISPUTED, E.DISPUTED)),
        (A.DISPUTE, (S.COMPLETED, E.RELEASED), (S.DISPUTED, E.DISPUTED)),
        (A.DISPUTE, (S.CANCELLED, E.REFUNDED), (S.DISPUTED, E.REFUNDED)),
    ],
)
def test_legal_transitions(action, source, target) -> None:
    planned = plan("bk_1", action, *source)
    assert (planned.to_status, planned.to_escrow) == target


@pytest.mark.parametrize(
    ("action", "source"),
    [
        (A.ACCEPT, (S.PENDING_PAYMENT, E.PENDING)),
        (A.COMPLETE, (S.PENDING, E.HELD)),
        (A.CANCEL, (S.COMPLETED, E.RELEASED)),
        (A.CONFIRM_PAYMENT, (S.EXPIRED, E.PENDING)),
        (A.DISPUTE, (S.PENDING, E.HELD)),
        (A.DISPUTE, (S.EXPIRED, E.PENDING)),
    ],
)
def test_illegal_transitions(action, source) -> None:
    with pytest.raises(InvalidTransitionError) as exc:
        plan("bk_1", action, *source)
    assert not isinstance(exc.value, TransitionAlreadyAppliedError)


def test_replay_is_reported_as_already_applied() -> None:
    with pytest.raises(TransitionAlreadyAppliedError):
        plan("bk_1", A.CONFIRM_PAYMENT, S.PENDING, E.HELD)
    with pytest.raises(TransitionAlreadyAppliedError):
        plan("bk_1", A.CANCEL, S.CANCELLED, E.REFUNDED)


class TestResolve:
    def test_no_refund_releases_to_companion(self) -> None:
        p = plan("bk_1", A.RESOLVE, S.DISPUTED, E.DISPUTED, refund_amount=0)
        assert (p.to_status, p.to_escrow) == (S.COMPLETED, E.RELEASED)

    def test_refund_moves_escrow_to_refunded(self) -> None:
        p = plan("bk_1", A.RESOLVE, S.DISPUTED, E.DISPUTED, refund_amount=5000)
        assert (p.to_status, p.to_escrow) == (S.COMPLETED, E.REFUNDED)

    def test_already_refunded_stays_refunded(self) -> None:
        p = plan("bk_1", A.RESOLVE, S.DISPUTED, E.REFUNDED, refund_amount=0)
        assert p.to_escrow == E.REFUNDED

    def test_only_from_disputed(self) -> None:
        with pytest.raises(InvalidTransitionError):
            plan("bk_1", A.RESOLVE, S.ACCEPTED, E.HELD)


class TestDismiss:
    def test_restores_pre_dispute_state(self) -> None:
        p = plan(
            "bk_1", A.DISMISS, S.DISPUTED, E.DISPUTED, restore_to=(S.ACCEPTED, E.HELD)
        )
        assert (p.to_status, p.to_escrow) == (S.ACCEPTED, E.HELD)

    def test_requires_restore_target(self) -> None:
        with pytest.raises(InvalidTransitionError):
            plan("bk_1", A.DISMISS, S.DISPUTED, E.DISPUTED)
