"""Decimal helpers for weights and money.

Weights are percentages quantized to 0.01; money amounts are kept at full
Decimal precision so that spent + leftover always adds back to the input.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
WEIGHT_QUANTUM = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal through its string form.

    Floats go through ``str`` so that ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_weight(value: Decimal) -> Decimal:
    """Round a weight percentage to 2 decimal places (half up)."""
    return value.quantize(WEIGHT_QUANTUM, rounding=ROUND_HALF_UP)


def round_up_to(value: Decimal, unit: Decimal) -> Decimal:
    """Round ``value`` up to the next multiple of ``unit``.

    Example:
        >>> round_up_to(Decimal("201"), Decimal("100"))
        Decimal('300')
    """
    if value <= ZERO:
        return ZERO
    steps = (value / unit).to_integral_value(rounding=ROUND_CEILING)
    return steps * unit


def floor_shares(amount: Decimal, price: Decimal) -> int:
    """Whole shares of ``price`` that ``amount`` can buy."""
    if amount <= ZERO or price <= ZERO:
        return 0
    return int(amount // price)
