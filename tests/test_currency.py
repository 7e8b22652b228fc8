"""Unit tests for minor-unit conversion and display formatting."""

from decimal import Decimal

import pytest

from app.core.config import settings
from app.core.currency import format_cents, round_half_up, to_cents


def test_format_default_peso() -> None:
    assert format_cents(2_500_000) == "₱25,000.00"
    assert format_cents(5) == "₱0.05"
    assert format_cents(0) == "₱0.00"


def test_format_negative_amount() -> None:
    assert format_cents(-123_456) == "-₱1,234.56"


def test_format_symbol_after_with_european_separators() -> None:
    euro = settings.model_copy(
        update={
            "currency_symbol": "€",
            "currency_symbol_position": "after",
            "currency_decimal_separator": ",",
            "currency_thousands_separator": ".",
        }
    )
    assert format_cents(123_456_789, euro) == "1.234.567,89 €"


def test_format_zero_decimal_currency() -> None:
    yen = settings.model_copy(update={"currency_symbol": "¥", "currency_decimals": 0})
    assert format_cents(1_500, yen) == "¥1,500"


@pytest.mark.parametrize(
    "amount, expected",
    [("25000", 2_500_000), ("0.005", 1), ("12.345", 1_235), (Decimal("0.01"), 1), (19.99, 1_999)],
)
def test_to_cents(amount, expected: int) -> None:
    assert to_cents(amount) == expected


def test_round_half_up() -> None:
    assert round_half_up(Decimal("100.5")) == 101
    assert round_half_up(Decimal("100.49")) == 100
    assert round_half_up(Decimal("-0.5")) == -1
