"""Decimal helpers for currency amounts."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value) -> Decimal:
    """Normalize numeric values to Decimal.

    Floats go through ``str`` so that 0.1 stays 0.1.

    Args:
        value: Raw numeric value (Decimal, int, float, str or None)

    Returns:
        Decimal value (zero for None)
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value) -> Decimal:
    """Round a value to currency precision (2 places, half up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values: Iterable) -> Decimal:
    """Sum values and round the result once."""
    return quantize(sum((to_decimal(v) for v in values), Decimal("0")))


def amounts_equal(left, right) -> bool:
    """Check equality at currency precision."""
    return quantize(left) == quantize(right)


def is_zero(value) -> bool:
    """Check whether a value rounds to zero."""
    return quantize(value) == ZERO
