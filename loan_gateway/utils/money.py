"""Exact money helpers - all amounts are integer minor units (cents/satang)"""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Union

MINOR_UNITS = 100


def to_cents(value: Union[str, Decimal, int]) -> int:
    """
    Convert a major-unit amount to integer minor units without rounding.

    Floats are refused because they cannot represent most decimal amounts.

    Example:
        "1,240.50" → 124050
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Refusing inexact amount type: {type(value).__name__}")

    if isinstance(value, str):
        value = value.replace(",", "").strip()

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Invalid amount: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")

    cents = amount * MINOR_UNITS
    if cents != cents.to_integral_value():
        raise ValueError(f"Amount has more than two decimal places: {value!r}")

    return int(cents)


def floor_cents(amount: Decimal) -> int:
    """Floor a minor-unit Decimal to a whole number of minor units"""
    return int(amount.to_integral_value(rounding=ROUND_FLOOR))


def format_cents(cents: int) -> str:
    """Display string, e.g. 124000 → '1,240.00'"""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), MINOR_UNITS)
    return f"{sign}{whole:,}.{frac:02d}"
