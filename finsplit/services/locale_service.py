"""Centralized locale service for currency and date formatting in replies.

Uses babel so amounts follow Brazilian conventions ("R$ 1.234,56").

Configuration:
    LOCALE env var (default: pt_BR) - determines currency and number formatting

Example:
    >>> from finsplit.services.locale_service import format_amount, format_short_date
    >>> format_amount(Decimal("45.50"))
    'R$ 45,50'
    >>> format_short_date(date(2024, 1, 15))
    '15/01/2024'
"""

import logging
import os
from datetime import date
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.dates import format_date as babel_format_date
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import get_territory_currencies

logger = logging.getLogger(__name__)

# Default locale if LOCALE env var is invalid or missing
DEFAULT_LOCALE = "pt_BR"


def _get_locale() -> str:
    """Get locale from environment with validation and fallback."""
    locale_str = os.getenv("LOCALE", DEFAULT_LOCALE)
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Invalid LOCALE '%s': %s. Falling back to '%s'", locale_str, e, DEFAULT_LOCALE)
        return DEFAULT_LOCALE


def _get_currency_from_locale(locale_str: str) -> str:
    """Derive currency code from locale territory (BRL for pt_BR)."""
    try:
        territory = Locale.parse(locale_str).territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning("Could not derive currency from locale '%s': %s", locale_str, e)

    return "BRL"


# Module-level constants (computed once at import)
LOCALE = _get_locale()
CURRENCY = _get_currency_from_locale(LOCALE)


def format_amount(amount: float | Decimal) -> str:
    """Format a monetary amount with currency symbol according to locale.

    Example:
        >>> format_amount(1234.56)
        'R$ 1.234,56'
    """
    return babel_format_currency(Decimal(str(amount)), CURRENCY, locale=LOCALE)


def format_short_date(value: date) -> str:
    """Format a date as DD/MM/YYYY (pt_BR short pattern with four-digit year)."""
    return babel_format_date(value, format="dd/MM/yyyy", locale=LOCALE)


def format_month(value: date) -> str:
    """Format a month heading, e.g. 'janeiro de 2024'."""
    return babel_format_date(value, format="MMMM 'de' yyyy", locale=LOCALE)


__all__ = [
    "LOCALE",
    "CURRENCY",
    "format_amount",
    "format_short_date",
    "format_month",
]
