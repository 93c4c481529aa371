"""
Fixed-point money helpers.

All amounts are Decimal quantized to cents with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert to Decimal without going through binary float."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def quantize_money(value: Number) -> Decimal:
    """Round an amount to cent precision."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Apply a 0-100 percentage to an amount, rounded to cents."""
    return quantize_money(amount * to_decimal(percentage) / HUNDRED)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return quantize_money(sum(values, ZERO))
