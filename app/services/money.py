"""Conversions between USD input/display values and stored micro-dollars"""

from decimal import Decimal, DecimalException, ROUND_FLOOR
from typing import Optional, Union

MICRO_UNITS_PER_USD = 1_000_000

# Signed 64-bit range of the BigInteger money columns
MAX_MINOR = 2**63 - 1
MIN_MINOR = -(2**63)


def usd_to_minor(value: Optional[Union[str, int, float, Decimal]], default: Optional[str] = None) -> Optional[int]:
    """
    Convert a decimal USD amount (usually a form string) to micro-dollars,
    flooring any fraction below one micro-dollar.

    Blank input falls back to ``default`` (itself a USD string) or None.
    Raises ValueError for anything that is not a finite number or does not
    fit a BigInteger column.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            return None
        value = default

    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValueError(f"Invalid USD amount: {value!r}")
        minor = int((amount * MICRO_UNITS_PER_USD).to_integral_value(rounding=ROUND_FLOOR))
    except DecimalException:
        raise ValueError(f"Invalid USD amount: {value!r}")

    if not MIN_MINOR <= minor <= MAX_MINOR:
        raise ValueError(f"USD amount out of range: {value!r}")
    return minor


def minor_to_usd(amount: int) -> float:
    """Micro-dollars to a USD float. Only for display and chart values."""
    return amount / MICRO_UNITS_PER_USD


def format_usd(amount: int) -> str:
    """Format micro-dollars as a USD string, e.g. ``$1,234.56``."""
    usd = Decimal(amount) / MICRO_UNITS_PER_USD
    sign = "-" if usd < 0 else ""
    return f"{sign}${abs(usd):,.2f}"
