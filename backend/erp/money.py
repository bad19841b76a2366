# Overview: Decimal helpers for won amounts and the standard VAT rate.

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

VAT_RATE = Decimal("0.1")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_won(value) -> Decimal:
    """Round half up to a whole won."""
    return to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def to_number(value):
    """Decimal -> int when whole, float otherwise; for JSON output."""
    if value is None:
        return None
    d = to_decimal(value)
    if d == d.to_integral_value():
        return int(d)
    return float(d)
