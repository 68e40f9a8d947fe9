"""Unit tests for finance_insights.money."""

from __future__ import annotations

from decimal import Decimal

import pytest

from finance_insights.errors import InvalidInput
from finance_insights.money import (
    display_amount,
    from_cents,
    percentage,
    round_display,
    round_half_up,
    scale_cents,
    to_cents,
    to_decimal,
)


def test_to_cents_rounds_half_up() -> None:
    assert to_cents(12.345) == 1235
    assert to_cents('0.005') == 1
    assert to_cents(8000) == 800000
    assert to_cents(Decimal('19.99')) == 1999


def test_float_inputs_avoid_binary_noise() -> None:
    # 0.1 + 0.2 style noise must not leak into cents
    assert to_decimal(72.1) == Decimal('72.1')
    assert to_cents(1.005) == 101


def test_to_decimal_rejects_garbage() -> None:
    with pytest.raises(InvalidInput):
        to_decimal('abc')
    with pytest.raises(InvalidInput):
        to_decimal(True)
    with pytest.raises(InvalidInput):
        to_decimal(float('nan'))


def test_from_cents_and_display() -> None:
    assert from_cents(1376800) == Decimal('13768.00')
    assert display_amount(-5) == -0.05


def test_scale_cents_with_decimal_rate() -> None:
    factor = 1 + Decimal('72.1') / 100
    assert scale_cents(800000, factor) == 1376800


def test_percentage_is_exact() -> None:
    assert percentage(85000, 100000) == 85
    assert round_half_up(percentage(1, 3)) == 33
    assert percentage(0, 5) == 0


def test_round_helpers() -> None:
    assert round_half_up(Decimal('2.5')) == 3
    assert round_half_up(Decimal('-2.5')) == -3
    assert round_display(Decimal('33.335')) == 33.34
    assert round_display(Decimal('85'), 1) == 85.0
