"""Display formatting for amounts, percentages and dates."""
from __future__ import annotations

from datetime import date, datetime

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def format_currency(value: float, currency: str = "USD") -> str:
    """Two-decimal amount with thousands separators, e.g. "-$1,234.50"."""
    sign = "-" if value < 0 else ""
    amount = f"{abs(value):,.2f}"
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol is None:
        return f"{sign}{amount} {currency.upper()}"
    return f"{sign}{symbol}{amount}"


def format_percent(value: float, decimals: int = 2) -> str:
    return f"{value:.{decimals}f}%"


def format_number(value: float, decimals: int = 0) -> str:
    return f"{value:,.{decimals}f}"


def format_date(value: date | datetime, style: str = "short") -> str:
    """"short" renders 1/5/2024; "long" renders January 5, 2024, 02:30 PM."""
    if style == "long":
        moment = value if isinstance(value, datetime) else datetime(value.year, value.month, value.day)
        return f"{moment:%B} {moment.day}, {moment.year}, {moment:%I:%M %p}"
    return f"{value.month}/{value.day}/{value.year}"
