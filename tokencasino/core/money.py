"""
Fixed-point helpers for token amounts.

Amounts are Decimals rounded half away from zero, the same way balances are
displayed, so repeated settlements never drift.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, float, int, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 0.1 as 0.1 instead of its binary expansion
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round a token amount to 2 places, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_multiplier(value: Number, places: int = 2) -> float:
    """Round a multiplier to `places` decimals, half away from zero."""
    exponent = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def payout(bet: Number, multiplier: Number) -> Decimal:
    """Gross payout of a bet at a multiplier."""
    return round_money(to_decimal(bet) * to_decimal(multiplier))
