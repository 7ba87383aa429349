# File: src/caixapilot/core/validators.py
"""Reusable validation utilities for input sanitization."""

import re
from decimal import Decimal, InvalidOperation

MAX_CURRENCY = Decimal("9999999999.99")


def validate_currency(
    value: Decimal | int | float | str, max_value: Decimal = MAX_CURRENCY
) -> Decimal:
    """
    Validate currency input.

    Args:
        value: Currency value to validate
        max_value: Maximum allowed value (default: 9,999,999,999.99 to match NUMERIC(12, 2))

    Returns:
        Validated Decimal

    Raises:
        ValueError: If value is negative, exceeds max, or has >2 decimals
    """
    try:
        decimal_value = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid currency format: {value}") from e

    if not decimal_value.is_finite():
        raise ValueError(f"Invalid currency format: {value}")

    if decimal_value < 0:
        raise ValueError("Currency value cannot be negative")

    if decimal_value > max_value:
        raise ValueError(f"Currency value exceeds maximum allowed: {max_value}")

    if decimal_value != decimal_value.quantize(Decimal("0.01")):
        raise ValueError("Currency value cannot have more than 2 decimal places")

    return decimal_value


def validate_positive_amount(value: Decimal | int | float | str) -> Decimal:
    """Validate a movement amount: a currency value strictly greater than zero."""
    decimal_value = validate_currency(value)
    if decimal_value <= 0:
        raise ValueError("Amount must be greater than zero")
    return decimal_value


def validate_identifier(value: str, field_name: str = "Field", max_length: int = 64) -> str:
    """
    Validate an opaque identifier (company, terminal, user).

    Returns:
        Stripped identifier

    Raises:
        ValueError: If empty, too long, or containing whitespace/control characters
    """
    if value is None or not str(value).strip():
        raise ValueError(f"{field_name} cannot be empty")

    cleaned = str(value).strip()

    if len(cleaned) > max_length:
        raise ValueError(f"{field_name} cannot exceed {max_length} characters")

    if re.search(r"[\s\x00-\x1f]", cleaned):
        raise ValueError(f"{field_name} cannot contain whitespace")

    return cleaned


def sanitize_html(value: str | None) -> str | None:
    """
    Strip/escape HTML tags to prevent XSS.

    Args:
        value: Text that may contain HTML

    Returns:
        Sanitized text or None if empty
    """
    if not value:
        return None

    # Remove all HTML tags
    cleaned = re.sub(r"<[^>]+>", "", value)

    # Escape remaining special chars
    cleaned = (
        cleaned.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )

    return cleaned.strip() if cleaned.strip() else None
