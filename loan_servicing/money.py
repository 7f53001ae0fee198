"""
Money Handling Module

Decimal parsing, rounding and formatting for monetary amounts and
percentages. Amounts cross every boundary as 2-decimal strings and are
Decimal in memory. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union
import re

from .exceptions import ValidationError

# Set global decimal context for financial precision
getcontext().prec = 28

MONEY_PLACES = 2
CENT = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')

Numeric = Union[Decimal, int, str]


def to_decimal(value: Numeric) -> Decimal:
    """
    Convert a Decimal, int or numeric string to Decimal without rounding

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValidationError(f"Cannot convert boolean {value!r} to Decimal")
    elif isinstance(value, float):
        raise ValidationError(f"Floats are not accepted for amounts, got {value!r}; pass a string")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        result = decimal_from_string(value)
    else:
        raise ValidationError(f"Cannot convert {type(value).__name__} to Decimal")

    if not result.is_finite():
        raise ValidationError(f"Amount must be a finite number, got {value!r}")
    return result


def decimal_from_string(value: str) -> Decimal:
    """
    Convert a user-supplied numeric string to Decimal

    Strips currency symbols and whitespace and treats commas as thousands
    separators (``"1,120.00"`` -> ``Decimal("1120.00")``).

    Raises:
        ValidationError: If the string is empty or not numeric
    """
    if not value or not value.strip():
        raise ValidationError("Value must be a non-empty string")

    clean_value = re.sub(r'[^\d.,\-+eE]', '', value.strip()).replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValidationError(f"Cannot convert '{value}' to Decimal") from None


def quantize_money(value: Numeric) -> Decimal:
    """Round to 2 decimal places, half-up"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_money(value: Numeric) -> Decimal:
    """Parse a monetary amount at an input boundary and round it to cents"""
    return quantize_money(value)


def parse_percent(value: Numeric) -> Decimal:
    """
    Parse a percentage such as ``"12"`` or ``"2.5"``. Percentages are kept
    unrounded; they are never negative.
    """
    percent = to_decimal(value)
    if percent < 0:
        raise ValidationError(f"Percentage cannot be negative, got {value!r}")
    return percent


def format_money(value: Numeric) -> str:
    """Format an amount as a plain 2-decimal string for storage and APIs"""
    return f"{quantize_money(value):.2f}"


def format_percent(value: Numeric) -> str:
    """Format a percentage at full precision, without exponent notation"""
    return format(to_decimal(value), "f")


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Unrounded ``amount * percent / 100``"""
    return amount * percent / HUNDRED
