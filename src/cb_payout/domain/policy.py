"""Payout request rules: payment details, minimum, fee and dedupe key.

Checks run in a fixed order so the caller always sees the first rule the
request breaks: details, then minimum, then balance, then bonus-only.
"""

from datetime import datetime
from typing import Any

from src.cb_common.enums import PaymentMethod
from src.cb_common.errors import (
    BelowMinimumError,
    BonusOnlyWithdrawalError,
    InsufficientBalanceError,
    InvalidPayoutDetailsError,
)
from src.cb_common.money import calculate_fee
from src.cb_wallet.domain.calculator import compute_available_balance
from src.cb_wallet.domain.models import LedgerSnapshot

_BANK_FIELDS = ("bank_name", "account_number", "ifsc_code", "account_holder_name")


def validate_details(method: PaymentMethod, details: dict[str, Any]) -> dict[str, str]:
    """Return the trimmed details the method needs, dropping anything else."""
    if method == PaymentMethod.UPI:
        upi_id = str(details.get("upi_id") or "").strip()
        if not upi_id:
            raise InvalidPayoutDetailsError("upi_id is required for UPI payouts")
        return {"upi_id": upi_id}

    cleaned = {name: str(details.get(name) or "").strip() for name in _BANK_FIELDS}
    missing = [name for name, value in cleaned.items() if not value]
    if missing:
        raise InvalidPayoutDetailsError(f"missing bank fields: {', '.join(missing)}")
    return cleaned


def check_minimum(amount: int, minimum: int) -> None:
    if amount < minimum:
        raise BelowMinimumError(amount, minimum)


def check_fundable(amount: int, snapshot: LedgerSnapshot) -> None:
    available = compute_available_balance(snapshot)
    if amount > available:
        raise InsufficientBalanceError(amount, available)
    # With no released booking every rupee of balance is bonus credit
    if snapshot.released_booking_count == 0:
        raise BonusOnlyWithdrawalError()


def split_fee(requested: int, fee_bps: int) -> tuple[int, int]:
    """(platform_fee, net amount) for a requested payout."""
    fee = calculate_fee(requested, fee_bps)
    return fee, requested - fee


def dedupe_key(
    companion_id: str, method: PaymentMethod, amount: int, now: datetime, bucket_seconds: int
) -> str:
    """Key that collides for identical requests inside the same time bucket."""
    bucket = int(now.timestamp()) // bucket_seconds
    return f"{companion_id}:{method.value}:{amount}:{bucket}"


def mask_details(method: PaymentMethod, details: dict[str, Any]) -> dict[str, Any]:
    if method == PaymentMethod.BANK_TRANSFER and details.get("account_number"):
        masked = dict(details)
        masked["account_number"] = "****" + str(details["account_number"])[-4:]
        return masked
    return dict(details)
