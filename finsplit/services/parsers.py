"""Brazilian data type parsing utilities for extracted receipt values.

Handles Brazilian-specific formatting:
- Decimal separator: comma (,)
- Thousand separator: dot (.)
- Currency symbol: R$
- Date format: DD/MM/YYYY (ISO YYYY-MM-DD is also accepted)

Example:
    >>> parse_brazilian_amount("R$ 1.234,56")
    Decimal('1234.56')

    >>> parse_receipt_date("15/01/2024")
    datetime.date(2024, 1, 15)

    >>> normalize_description("  Restaurante   X ")
    'restaurante x'
"""

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

_CENTS = Decimal("0.01")
_WHITESPACE = re.compile(r"\s+")


def parse_brazilian_amount(value: Any) -> Optional[Decimal]:
    """
    Parse a monetary value to a Decimal rounded to cents.

    Accepts ints/floats (as returned in model JSON) and strings in Brazilian
    ("1.234,56") or plain ("1234.56") notation, with or without "R$".

    Args:
        value: Number, string or None

    Returns:
        Decimal with two places, or None if input is empty/None

    Raises:
        ValueError: If value cannot be parsed as an amount

    Examples:
        >>> parse_brazilian_amount(45.5)
        Decimal('45.50')
        >>> parse_brazilian_amount("45,50")
        Decimal('45.50')
        >>> parse_brazilian_amount("R$ 1.234,56")
        Decimal('1234.56')
        >>> parse_brazilian_amount("")
        None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float, Decimal)):
        try:
            return Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise ValueError(f"Cannot parse amount {value!r}: {e}") from e

    if not isinstance(value, str):
        raise ValueError(f"Cannot parse amount of type {type(value).__name__}")

    cleaned = value.replace("R$", "").replace("\xa0", "").replace(" ", "").strip()
    if not cleaned:
        return None

    if "," in cleaned:
        # Brazilian notation: dots group thousands, comma separates cents
        cleaned = cleaned.replace(".", "").replace(",", ".")

    try:
        return Decimal(cleaned).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse amount '{value}': {e}") from e


def parse_receipt_date(value: Any) -> Optional[date]:
    """Parse a receipt date in ISO (YYYY-MM-DD) or Brazilian (DD/MM/YYYY) form.

    Args:
        value: Date string, date, or None/empty

    Returns:
        datetime.date object or None if input is empty

    Raises:
        ValueError: If the string matches neither format

    Examples:
        >>> parse_receipt_date("2024-01-15")
        datetime.date(2024, 1, 15)
        >>> parse_receipt_date("15/01/2024")
        datetime.date(2024, 1, 15)
        >>> parse_receipt_date(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Cannot parse date of type {type(value).__name__}")

    value = value.strip()
    if not value:
        return None

    # Models sometimes append a time component to ISO dates
    iso_part = value[:10]
    for fmt, candidate in (("%Y-%m-%d", iso_part), ("%d/%m/%Y", value), ("%d.%m.%Y", value)):
        try:
            return datetime.strptime(candidate, fmt).date()
        except ValueError:
            continue

    raise ValueError(f"Cannot parse date '{value}' (expected YYYY-MM-DD or DD/MM/YYYY)")


def clean_description(value: str) -> str:
    """Collapse internal whitespace and trim a description for display."""
    return _WHITESPACE.sub(" ", value).strip()


def normalize_description(value: str) -> str:
    """Normalized description key used for strict duplicate matching.

    Examples:
        >>> normalize_description("Restaurante X")
        'restaurante x'
        >>> normalize_description("  PADARIA  São João ")
        'padaria são joão'
    """
    return clean_description(value).casefold()


__all__ = [
    "parse_brazilian_amount",
    "parse_receipt_date",
    "clean_description",
    "normalize_description",
]
