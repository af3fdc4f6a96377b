# Overview: Fixed-point currency helpers (integer cents, basis-point percentages).

"""
Money and rounding utilities.

All currency is stored as integer cents and all percentages as integer basis
points (1% = 100 bps, 8.5% = 850 bps). Conversions to and from the wire format
(JSON numbers such as 97.65 or 8.5) happen only here, using Decimal with
ROUND_HALF_UP so that 0.005 always rounds away from zero.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError


CENTS_PER_UNIT = 100
BPS_PER_PERCENT = 100
MAX_PERCENT_BPS = 100 * BPS_PER_PERCENT

# $99,999,999.99
MAX_AMOUNT_CENTS = 9_999_999_999

_CENT = Decimal("0.01")
_ONE = Decimal("1")


def _to_decimal(value, field: str) -> Decimal:
    # bool is an int subclass; True must not become 1.00
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", [{"field": field, "message": "must be a number"}])
    try:
        dec = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", [{"field": field, "message": "must be a number"}])
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number", [{"field": field, "message": "must be a finite number"}])
    return dec


def round_half_up(value: Decimal) -> int:
    """Round a Decimal to the nearest integer, halves away from zero."""
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_cents(value, field: str = "amount", *, allow_negative: bool = False) -> int:
    """
    Convert a wire amount (97.65, "97.65", 97) into integer cents.

    Raises ValidationError for non-numbers, negatives (unless allowed),
    and values beyond MAX_AMOUNT_CENTS.
    """
    dec = _to_decimal(value, field)
    cents = round_half_up(dec * CENTS_PER_UNIT)
    if cents < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative", [{"field": field, "message": "cannot be negative"}])
    if abs(cents) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} is too large", [{"field": field, "message": "is too large"}])
    return cents


def from_cents(cents: int | None) -> float | None:
    """Integer cents -> JSON number with two decimals (9765 -> 97.65)."""
    if cents is None:
        return None
    return float((Decimal(int(cents)) / CENTS_PER_UNIT).quantize(_CENT))


def to_bps(value, field: str = "percent") -> int:
    """Convert a wire percentage (0-100, e.g. 8.5) into basis points (850)."""
    dec = _to_decimal(value, field)
    bps = round_half_up(dec * BPS_PER_PERCENT)
    if bps < 0 or bps > MAX_PERCENT_BPS:
        raise ValidationError(f"{field} must be between 0 and 100", [{"field": field, "message": "must be between 0 and 100"}])
    return bps


def from_bps(bps: int | None) -> float | None:
    if bps is None:
        return None
    return float(Decimal(int(bps)) / BPS_PER_PERCENT)


def percent_of(cents: int, bps: int) -> int:
    """round(cents * percent / 100) with percent expressed in basis points."""
    return round_half_up(Decimal(int(cents)) * Decimal(int(bps)) / MAX_PERCENT_BPS)


def line_amounts(quantity: int, unit_price_cents: int, discount_bps: int) -> tuple[int, int]:
    """
    Derived line-item amounts.

    Returns (discount_amount_cents, subtotal_cents) where
    discount = round(quantity * unit_price * discount% / 100) and
    subtotal = quantity * unit_price - discount.
    """
    gross = int(quantity) * int(unit_price_cents)
    discount = percent_of(gross, discount_bps)
    return discount, gross - discount


def invoice_total(subtotal_cents: int, tax_cents: int, discount_cents: int) -> int:
    """subtotal + tax - discount, clamped at zero (a discount never produces a credit)."""
    return max(0, int(subtotal_cents) + int(tax_cents) - int(discount_cents))
