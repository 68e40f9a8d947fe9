"""Fixed-point currency helpers.

Amounts are carried as integer cents everywhere inside the engine and only
turned back into two-decimal values when they leave it. Rounding is always
half-up.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Union

from .errors import InvalidInput

CENT = Decimal('0.01')
HUNDRED = Decimal(100)

Number = Union[int, float, str, Decimal]


def to_decimal(value: Any) -> Decimal:
    """Convert ints, floats, strings or Decimals to Decimal without binary noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidInput(f"Not a number: {value!r}")
    if isinstance(value, float):
        # repr() gives the shortest string that round-trips, e.g. 72.1 -> '72.1'
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInput(f"Not a number: {value!r}") from exc
    if not result.is_finite():
        raise InvalidInput(f"Not a finite number: {value!r}")
    return result


def round_half_up(value: Decimal) -> int:
    """Round a Decimal number of cents to an integer, ties away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_cents(amount: Number) -> int:
    """Convert a currency amount (e.g. ``12.345``) to integer cents (``1235``)."""
    return round_half_up(to_decimal(amount) * HUNDRED)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / HUNDRED).quantize(CENT)


def display_amount(cents: int) -> float:
    """Two-decimal float for JSON-ish output."""
    return float(from_cents(cents))


def scale_cents(cents: int, factor: Decimal) -> int:
    """Multiply an amount in cents by a Decimal factor, rounding half-up."""
    return round_half_up(Decimal(int(cents)) * factor)


def percentage(part: int, whole: int) -> Decimal:
    """Exact ``part / whole * 100`` for integer cent amounts; ``whole`` must be non-zero."""
    return Decimal(int(part) * 100) / Decimal(int(whole))


def round_display(value: Union[Decimal, float], places: int = 2) -> float:
    exponent = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))
