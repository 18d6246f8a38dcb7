from decimal import Decimal, InvalidOperation
from typing import Union

TOTAL_BPS = 10000


def parse_units(value: Union[str, Decimal, int], decimals: int) -> int:
    """
    Convert a human-readable amount ("0.1") into the token's smallest unit.

    Uses Decimal end to end so 0.1 with 18 decimals is exactly 10**17.
    Raises ValueError when the amount has more fractional digits than the
    token supports or is not a finite number.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    scaled = amount.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value} has more than {decimals} decimal places")
    return int(scaled)


def bps_to_percent(bps: Union[int, str]) -> Decimal:
    """bps / 10000 * 100, kept exact (7500 -> 75, 50 -> 0.5)."""
    return Decimal(int(bps)) * 100 / TOTAL_BPS


def format_percent(bps: Union[int, str]) -> str:
    return f"{bps_to_percent(bps)}%"
