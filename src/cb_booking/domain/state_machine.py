"""BookingStateMachine — the legal (status, escrow) transitions as a pure table.

The service layer owns persistence and side effects; this module only answers
"given where the booking is, where does this action take it?".

    action           from (status / escrow)                     to
    confirm_payment  pending_payment / pending                  pending / held
    expire           pending_payment / pending                  expired / pending
    fail             pending_payment / pending                  failed / pending
    accept           pending / held                             accepted / held
    cancel           pending|accepted / held                    cancelled / refunded
    complete         accepted / held                            completed / released
    dispute          accepted / held, completed / released      disputed / disputed
    dispute          cancelled / refunded                       disputed / refunded
    resolve          disputed / disputed|refunded               completed / released|refunded
    dismiss          disputed / *                               pre-dispute status / escrow
"""

from dataclasses import dataclass

from src.cb_common.enums import BookingAction, BookingStatus, EscrowStatus
from src.cb_common.errors import InvalidTransitionError, TransitionAlreadyAppliedError

_S = BookingStatus
_E = EscrowStatus
_A = BookingAction

State = tuple[BookingStatus, EscrowStatus]

_TABLE: dict[BookingAction, dict[State, State]] = {
    _A.CONFIRM_PAYMENT: {(_S.PENDING_PAYMENT, _E.PENDING): (_S.PENDING, _E.HELD)},
    _A.EXPIRE: {(_S.PENDING_PAYMENT, _E.PENDING): (_S.EXPIRED, _E.PENDING)},
    _A.FAIL: {(_S.PENDING_PAYMENT, _E.PENDING): (_S.FAILED, _E.PENDING)},
    _A.ACCEPT: {(_S.PENDING, _E.HELD): (_S.ACCEPTED, _E.HELD)},
    _A.CANCEL: {
        (_S.PENDING, _E.HELD): (_S.CANCELLED, _E.REFUNDED),
        (_S.ACCEPTED, _E.HELD): (_S.CANCELLED, _E.REFUNDED),
    },
    _A.COMPLETE: {(_S.ACCEPTED, _E.HELD): (_S.COMPLETED, _E.RELEASED)},
    _A.DISPUTE: {
        (_S.ACCEPTED, _E.HELD): (_S.DISPUTED, _E.DISPUTED),
        (_S.COMPLETED, _E.RELEASED): (_S.DISPUTED, _E.DISPUTED),
        (_S.CANCELLED, _E.REFUNDED): (_S.DISPUTED, _E.REFUNDED),
    },
}

# Status an action leaves the booking in; seeing it again means a replay
_TARGET_STATUS: dict[BookingAction, BookingStatus] = {
    _A.CONFIRM_PAYMENT: _S.PENDING,
    _A.EXPIRE: _S.EXPIRED,
    _A.FAIL: _S.FAILED,
    _A.ACCEPT: _S.ACCEPTED,
    _A.CANCEL: _S.CANCELLED,
    _A.COMPLETE: _S.COMPLETED,
    _A.DISPUTE: _S.DISPUTED,
}


@dataclass(frozen=True)
class PlannedTransition:
    booking_id: str
    action: BookingAction
    from_status: BookingStatus
    from_escrow: EscrowStatus
    to_status: BookingStatus
    to_escrow: EscrowStatus


def plan(
    booking_id: str,
    action: BookingAction,
    status: BookingStatus,
    escrow: EscrowStatus,
    *,
    refund_amount: int = 0,
    restore_to: State | None = None,
) -> PlannedTransition:
    """Resolve `action` against the current state or raise.

    Raises:
        TransitionAlreadyAppliedError: booking already sits in the action's target status.
        InvalidTransitionError: any other illegal source state.
    """
    if action == _A.RESOLVE:
        target = _plan_resolve(booking_id, status, escrow, refund_amount)
    elif action == _A.DISMISS:
        target = _plan_dismiss(booking_id, status, restore_to)
    else:
        target = _TABLE[action].get((status, escrow))
        if target is None:
            if _TARGET_STATUS.get(action) == status:
                raise TransitionAlreadyAppliedError("booking", booking_id, status.value, action.value)
            raise InvalidTransitionError("booking", booking_id, status.value, action.value)

    return PlannedTransition(
        booking_id=booking_id,
        action=action,
        from_status=status,
        from_escrow=escrow,
        to_status=target[0],
        to_escrow=target[1],
    )


def _plan_resolve(
    booking_id: str, status: BookingStatus, escrow: EscrowStatus, refund_amount: int
) -> State:
    if status != _S.DISPUTED:
        raise InvalidTransitionError("booking", booking_id, status.value, _A.RESOLVE.value)
    # Money already returned to the seeker stays returned
    if escrow == _E.REFUNDED or refund_amount > 0:
        return _S.COMPLETED, _E.REFUNDED
    return _S.COMPLETED, _E.RELEASED


def _plan_dismiss(booking_id: str, status: BookingStatus, restore_to: State | None) -> State:
    if status != _S.DISPUTED or restore_to is None:
        raise InvalidTransitionError("booking", booking_id, status.value, _A.DISMISS.value)
    return restore_to
