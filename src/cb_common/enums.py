"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    SEEKER = "seeker"
    COMPANION = "companion"
    ADMIN = "admin"


class KycStatus(str, Enum):
    VERIFIED = "verified"
    PENDING = "pending"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"
    EXPIRED = "expired"
    FAILED = "failed"


class EscrowStatus(str, Enum):
    """Escrow sub-state embedded in a booking.

    pending -> held -> released | refunded, with held (or released) able to
    branch into the disputed hold before resolving.
    """
    PENDING = "pending"
    HELD = "held"
    DISPUTED = "disputed"
    RELEASED = "released"
    REFUNDED = "refunded"


class BookingAction(str, Enum):
    CONFIRM_PAYMENT = "confirm_payment"
    EXPIRE = "expire"
    FAIL = "fail"
    ACCEPT = "accept"
    CANCEL = "cancel"
    COMPLETE = "complete"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    DISMISS = "dismiss"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PaymentMethod(str, Enum):
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"


class WalletTransactionType(str, Enum):
    # Credits counted by the ledger
    REFERRAL = "referral"
    CAMPAIGN_BONUS = "campaign_bonus"
    # Reversal of a rejected payout's debit
    REFUND = "refund"


class DisputeStatus(str, Enum):
    OPEN = "open"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    CLOSED = "closed"


class NotificationKind(str, Enum):
    BOOKING_REQUEST = "booking_request"
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_EXPIRED = "booking_expired"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"
    EARNING_RELEASED = "earning_released"
    WALLET_CREDITED = "wallet_credited"
    PAYOUT_REQUESTED = "payout_requested"
    PAYOUT_APPROVED = "payout_approved"
    PAYOUT_REJECTED = "payout_rejected"
    PAYOUT_COMPLETED = "payout_completed"
    DISPUTE_RAISED = "dispute_raised"
    DISPUTE_RESOLVED = "dispute_resolved"
    DISPUTE_CLOSED = "dispute_closed"
