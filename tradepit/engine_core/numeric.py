"""
Decimal helpers shared by the AMM and the wager engines.

Amounts paid out are truncated toward zero so rounding never manufactures
value. Intermediate math runs with enough precision that truncation at
AMOUNT_QUANTUM is the only rounding that matters.
"""

from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from fractions import Fraction
from typing import Union

AMOUNT_QUANTUM = Decimal("1e-18")
PRECISION = 80

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number, error: type[Exception]) -> Decimal:
    """Convert user input to a finite Decimal or raise `error`."""
    if isinstance(value, bool):
        raise error(f"Expected a number, got {value!r}")
    try:
        if isinstance(value, float):
            result = Decimal(str(value))
        else:
            result = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise error(f"Not a number: {value!r}")
    if not result.is_finite():
        raise error(f"Amount must be finite, got {value!r}")
    return result


def truncate(value: Decimal) -> Decimal:
    """Truncate toward zero at AMOUNT_QUANTUM."""
    with localcontext() as ctx:
        ctx.prec = PRECISION
        return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)


def scale(amount: Decimal, factor: Fraction) -> Decimal:
    """amount * factor, truncated toward zero."""
    with localcontext() as ctx:
        ctx.prec = PRECISION
        ctx.rounding = ROUND_DOWN
        exact = amount * Decimal(factor.numerator) / Decimal(factor.denominator)
    return truncate(exact)
