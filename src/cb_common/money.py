"""Integer arithmetic utilities for paise-based amounts.

All prices, fees, amounts and balances use int (paise, ₹1 = 100). No float, no Decimal.
"""


def validate_amount(amount: int) -> None:
    """Validate that an amount is a non-negative integer number of paise."""
    if amount < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")


def paise_to_display(paise: int) -> str:
    """Convert paise to display string: 107000 -> '₹1,070.00', -1200 -> '-₹12.00'."""
    if paise < 0:
        abs_paise = -paise
        return f"-₹{abs_paise // 100:,}.{abs_paise % 100:02d}"
    return f"₹{paise // 100:,}.{paise % 100:02d}"


def calculate_fee(amount: int, fee_rate_bps: int) -> int:
    """Calculate fee with ceiling division (platform never under-collects).

    fee = ceil(amount * fee_rate_bps / 10000)
    Using integer ceiling: (a + b - 1) // b
    """
    if amount == 0 or fee_rate_bps == 0:
        return 0
    return (amount * fee_rate_bps + 9999) // 10000


def percent_of(amount: int, percent: int) -> int:
    """Round-half-up percentage of an amount: percent_of(100000, 25) -> 25000."""
    return (amount * percent + 50) // 100
