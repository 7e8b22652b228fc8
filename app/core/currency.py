"""Currency conversion and display formatting. Only used at the boundary; the engine works in minor units."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from app.core.config import Settings, settings as default_settings


def round_half_up(value: Union[Decimal, int, str]) -> int:
    """Round a Decimal amount of minor units to the nearest whole unit, halves away from zero."""
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(amount: Union[Decimal, int, float, str], config: Optional[Settings] = None) -> int:
    """Convert a major-unit amount (e.g. pesos) to integer minor units."""
    config = config or default_settings
    factor = Decimal(10) ** config.currency_decimals
    return round_half_up(Decimal(str(amount)) * factor)


def format_cents(cents: int, config: Optional[Settings] = None) -> str:
    """Format minor units for display, e.g. 123456 -> '₱1,234.56'."""
    config = config or default_settings
    decimals = config.currency_decimals
    sign = "-" if cents < 0 else ""
    major, minor = divmod(abs(cents), 10 ** decimals)
    whole = f"{major:,}".replace(",", config.currency_thousands_separator)
    number = whole
    if decimals > 0:
        number = f"{whole}{config.currency_decimal_separator}{minor:0{decimals}d}"
    if config.currency_symbol_position == "after":
        return f"{sign}{number} {config.currency_symbol}"
    return f"{sign}{config.currency_symbol}{number}"
