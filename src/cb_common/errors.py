"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Wallet
  3xxx: Availability
  4xxx: Booking
  5xxx: Payout
  6xxx: Dispute
  7xxx: Payment gateway
  9xxx: System

Domain errors carry business meaning and are surfaced to the caller verbatim;
the core never retries them.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class PermissionDeniedError(AppError):
    def __init__(self, detail: str = "Permission denied") -> None:
        super().__init__(1006, detail, 403)


class IdentityNotVerifiedError(AppError):
    def __init__(self, user_id: str, status: str) -> None:
        super().__init__(
            1007, f"Identity verification required for user {user_id} (status={status})", 403
        )


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1008, f"User not found: {user_id}", 404)


# --- 2xxx: Wallet ---

class InsufficientBalanceError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient balance: required {required} paise, available {available} paise",
            422,
        )


class InvalidCreditError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2002, f"Invalid wallet credit: {detail}", 422)


# --- 3xxx: Availability ---

class SlotNotFoundError(AppError):
    def __init__(self, slot_id: str) -> None:
        super().__init__(3001, f"Availability slot not found: {slot_id}", 404)


class ConflictError(AppError):
    def __init__(self, conflicting_slot_id: str) -> None:
        super().__init__(
            3002, f"Slot overlaps an existing slot: {conflicting_slot_id}", 409
        )


class SlotInUseError(AppError):
    def __init__(self, slot_id: str) -> None:
        super().__init__(3003, f"Slot {slot_id} is referenced by a live booking", 409)


class InvalidSlotError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3004, f"Invalid slot: {detail}", 422)


# --- 4xxx: Booking ---

class BookingNotFoundError(AppError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(4001, f"Booking not found: {booking_id}", 404)


class PastTimeError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Meetup time must be in the future: {detail}", 422)


class SlotUnavailableError(AppError):
    def __init__(self, slot_id: str) -> None:
        super().__init__(4003, f"Slot {slot_id} is no longer available", 409)


class InvalidTimeWindowError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4004, f"Invalid booking window: {detail}", 422)


class InvalidTransitionError(AppError):
    """Illegal state change attempted: the precondition is wrong, caller must alert."""

    def __init__(
        self,
        entity: str,
        entity_id: str,
        current: str,
        action: str,
        code: int = 4005,
        http_status: int = 409,
    ) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.action = action
        super().__init__(
            code,
            f"Cannot {action} {entity} {entity_id} in state {current}",
            http_status,
        )


class TransitionAlreadyAppliedError(InvalidTransitionError):
    """The entity is already in the action's target state: safe for the caller to ignore."""

    def __init__(self, entity: str, entity_id: str, current: str, action: str) -> None:
        super().__init__(entity, entity_id, current, action, code=4006, http_status=409)


class BookingExpiredError(InvalidTransitionError):
    def __init__(self, booking_id: str, action: str) -> None:
        super().__init__("booking", booking_id, "expired", action, code=4007, http_status=410)


class DuplicatePaymentError(AppError):
    def __init__(self, booking_id: str, payment_reference: str) -> None:
        super().__init__(
            4008,
            f"Booking {booking_id} already paid; rejected second payment {payment_reference}",
            409,
        )


# --- 5xxx: Payout ---

class PayoutNotFoundError(AppError):
    def __init__(self, payout_id: str) -> None:
        super().__init__(5001, f"Payout not found: {payout_id}", 404)


class BelowMinimumError(AppError):
    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(
            5002, f"Payout amount {amount} paise is below the minimum of {minimum} paise", 422
        )


class BonusOnlyWithdrawalError(AppError):
    def __init__(self) -> None:
        super().__init__(
            5003,
            "Withdrawals require at least one completed booking; bonus credit alone cannot be withdrawn",
            422,
        )


class InvalidPayoutDetailsError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5004, f"Invalid payout details: {detail}", 422)


class RejectionReasonRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(5005, "A rejection reason is required", 422)


# --- 6xxx: Dispute ---

class DisputeNotFoundError(AppError):
    def __init__(self, dispute_id: str) -> None:
        super().__init__(6001, f"Dispute not found: {dispute_id}", 404)


class RefundExceedsTotalError(AppError):
    def __init__(self, refund_amount: int, total_amount: int, already_refunded: int = 0) -> None:
        message = f"Refund {refund_amount} paise exceeds booking total {total_amount} paise"
        if already_refunded:
            message += f" less {already_refunded} paise already refunded"
        super().__init__(6002, message, 422)


class DisputeExistsError(AppError):
    def __init__(self, booking_id: str) -> None:
        super().__init__(6003, f"Booking {booking_id} already has an active dispute", 409)


class InvalidRefundAmountError(AppError):
    def __init__(self, refund_amount: int) -> None:
        super().__init__(6004, f"Refund amount must be non-negative, got {refund_amount}", 422)


# --- 7xxx: Payment gateway ---

class PaymentGatewayError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(7001, f"Payment gateway error: {detail}", 502)


class PaymentNotVerifiedError(AppError):
    def __init__(self, booking_id: str, detail: str) -> None:
        super().__init__(7002, f"Payment for booking {booking_id} not verified: {detail}", 402)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
