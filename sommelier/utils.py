"""Shared utilities used across the tool engine."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

_CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "$"}
_PENNY = Decimal("0.01")


def normalize_email(value: str) -> str:
    """Normalize an email address for use as a cache key.

    Examples:
        >>> normalize_email("  Jane.Doe@Example.COM ")
        'jane.doe@example.com'
    """
    return value.strip().lower()


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a price-like value to a two-place Decimal, or None."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(_PENNY, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return None


def format_price(amount: Any, currency_code: str = "GBP") -> str:
    """Format an amount for speech and display.

    Examples:
        >>> format_price("45", "GBP")
        '£45.00'
        >>> format_price(Decimal("12.5"), "CHF")
        'CHF 12.50'
    """
    value = to_decimal(amount) or Decimal("0.00")
    symbol = _CURRENCY_SYMBOLS.get(currency_code.upper())
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{currency_code.upper()} {value:,.2f}"


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    """Return ``"1 item"`` / ``"3 items"`` style phrases."""
    word = singular if count == 1 else (plural or singular + "s")
    return f"{count} {word}"
