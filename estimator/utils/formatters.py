"""
Formatting helpers for exported estimations and JSON responses.
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime, timezone
from typing import Any, Union, Optional


def money(value: Union[int, float, Decimal, str, None], label: Optional[str] = None) -> str:
    """
    Format a monetary amount with exactly 2 decimals.

    Rounding happens here, at presentation time only.

    Examples:
        money(25) -> "25.00"
        money(1500.5, 'DT HT') -> "DT HT 1,500.50"
        money(None) -> "-"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value)).quantize(Decimal('0.01'))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    formatted = f"{num:,.2f}"
    return f"{label} {formatted}" if label else formatted


def quantity(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format a quantity, hiding insignificant decimals.

    Examples:
        quantity(Decimal('2.000')) -> "2"
        quantity(Decimal('2.50')) -> "2.5"
    """
    if value is None or value == "":
        return "-"

    try:
        num = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return "-"

    if num == num.to_integral_value():
        return str(int(num))
    return format(num.normalize(), 'f')


def datetime_display(value: Union[date, datetime, None]) -> str:
    """Format an instant as e.g. 'Mar 5, 2025 14:30' (UTC)."""
    if value is None:
        return 'Unknown date'

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return f"{value.strftime('%b')} {value.day}, {value.year} {value.strftime('%H:%M')}"

    return f"{value.strftime('%b')} {value.day}, {value.year}"


def to_json_value(value: Any) -> Any:
    """Convert Decimals and datetimes for JSON responses (money as decimal strings)."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(item) for item in value]
    return value
