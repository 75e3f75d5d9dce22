"""Decimal helpers for monetary amounts.

Amounts are carried unrounded through every computation and quantized to
cents only when shown or stored.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from retailpos.domain.errors import ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: object, field: str = "amount") -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValidationError(f"{field} must be a number. Received: {value!r}") from e
    elif isinstance(value, float):
        # repr of a float is its shortest round-tripping form: 0.1 -> "0.1"
        result = Decimal(repr(value))
    else:
        raise ValidationError(f"{field} must be a number. Received: {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite.")
    return result


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    return int(quantize(amount) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)
