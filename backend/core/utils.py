from __future__ import annotations

from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP

TWOPLACES = Decimal("0.01")
FOURPLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")


def d(val) -> Decimal:
    """Coerce incoming values to Decimal safely."""
    if isinstance(val, Decimal):
        return val
    return Decimal(str(val))


def round_up_to_next_whole(amount: Decimal) -> Decimal:
    """Round a Decimal amount up to the next whole number (e.g., 2.4 -> 3)."""
    return d(amount).to_integral_value(rounding=ROUND_CEILING)


def money(amount: Decimal) -> Decimal:
    return d(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
