# File: src/caixapilot/utils/formatters.py
"""Formatting helpers for operator-facing output (pt-BR conventions)."""

from datetime import date, datetime
from decimal import Decimal


def format_currency(value: Decimal | int | str | None) -> str:
    """
    Format an amount as Brazilian reais.

    Example: Decimal("-1234.5") -> "-R$ 1.234,50"
    """
    amount = Decimal(str(value)) if value is not None else Decimal("0")
    sign = "-" if amount < 0 else ""
    text = f"{abs(amount):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"{sign}R$ {text}"


def format_signed_currency(value: Decimal | int | str | None) -> str:
    """Format a difference with an explicit sign ("+R$ 0,00" for zero)."""
    formatted = format_currency(value)
    return formatted if formatted.startswith("-") else f"+{formatted}"


def format_date(d: date | datetime | None) -> str:
    """Format dates the Brazilian way."""
    if d is None:
        return "-"
    if isinstance(d, datetime):
        return d.strftime("%d/%m/%Y %H:%M")
    return d.strftime("%d/%m/%Y")
