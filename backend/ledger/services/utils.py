from __future__ import annotations

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")
FOURPLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")


def d(val) -> Decimal:
    """Coerce incoming values to Decimal safely."""
    if isinstance(val, Decimal):
        return val
    if val is None or val == "":
        return ZERO
    try:
        return Decimal(str(val))
    except (InvalidOperation, ValueError):
        # Left as NaN so the calculators reject it with a readable message.
        return Decimal("NaN")


def q4(amount: Decimal) -> Decimal:
    """Quantize to the 4 decimal places the ledger tables store."""
    return d(amount).quantize(FOURPLACES, rounding=ROUND_HALF_UP)


def round_half_away_from_zero(amount: Decimal) -> Decimal:
    """Round to a whole number; halves go away from zero (-2.5 -> -3)."""
    return d(amount).to_integral_value(rounding=ROUND_HALF_UP)


def round_down_to_whole(amount: Decimal) -> Decimal:
    """Floor to a whole number (45.675 -> 45, -0.5 -> -1)."""
    return d(amount).to_integral_value(rounding=ROUND_FLOOR)


def is_finite_number(val) -> bool:
    return d(val).is_finite()
