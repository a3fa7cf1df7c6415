"""Number parsing utilities for prices and quantities."""
import re
from decimal import Decimal, InvalidOperation
from typing import Any

NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+(?:[.,]\d*)?|[.,]\d+)(?:[eE][+-]?\d+)?$")

ZERO = Decimal('0')


def parse_decimal(value: Any) -> Decimal:
    """
    Parse a user-entered or stored number to Decimal.

    Accepts Decimal, int, float and strings such as "12", "12.5", "12,5"
    or "1e3". Floats are converted through their shortest repr, so 0.1
    becomes Decimal('0.1') and not its binary expansion.

    Raises:
        ValueError: if the value is empty, not a number, NaN or infinite.
    """
    if value is None or isinstance(value, bool):
        raise ValueError('Invalid number')

    if isinstance(value, Decimal):
        decimal_value = value
    elif isinstance(value, int):
        decimal_value = Decimal(value)
    elif isinstance(value, float):
        decimal_value = Decimal(repr(value))
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned or not NUMBER_PATTERN.match(cleaned):
            raise ValueError('Invalid number')
        try:
            decimal_value = Decimal(cleaned.replace(',', '.'))
        except (InvalidOperation, ValueError):
            raise ValueError('Invalid number')
    else:
        raise ValueError('Invalid number')

    if not decimal_value.is_finite():
        raise ValueError('Invalid number')

    return decimal_value


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Lenient variant of parse_decimal: returns `default` instead of raising."""
    try:
        return parse_decimal(value)
    except ValueError:
        return default


def parse_positive_decimal(value: Any, field: str = 'Value') -> Decimal:
    """
    Parse a strictly positive number (prices, saved quantities).

    Raises:
        ValueError: with a field-specific message.
    """
    try:
        decimal_value = parse_decimal(value)
    except ValueError:
        raise ValueError(f'{field} must be a number')

    if decimal_value <= 0:
        raise ValueError(f'{field} must be greater than zero')

    return decimal_value
