"""
Read-path normalization of stored estimations.

A stored record may come from the current schema (`Estimation.to_record()`)
or from documents written by the previous document store, where field names
are camelCase, `materials` is sometimes a keyed mapping instead of a list,
numbers are sometimes strings and `createdAt` is a server timestamp marker.
`reconcile_estimation` turns any of those into one canonical snapshot dict.

Everything in this module is pure: no I/O, no logging, no mutation of the
input record.
"""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from estimator.utils.number_format import to_decimal, ZERO

UNKNOWN_MATERIAL_NAME = 'Unknown'
DEFAULT_UNIT = 'unit'

# Epoch values above this are taken as milliseconds (year 5138 in seconds)
_EPOCH_MILLIS_THRESHOLD = 10 ** 11

_FIELD_ALIASES = {
    'id': ('id',),
    'user_id': ('user_id', 'userId'),
    'product_id': ('product_id', 'productId'),
    'product_name': ('product_name', 'productName'),
    'materials': ('materials',),
    'total_cost': ('total_cost', 'totalCost'),
    'notes': ('notes',),
    'created_at': ('created_at', 'createdAt'),
    'last_modified': ('last_modified', 'lastModified'),
}

_LINE_ALIASES = {
    'material_id': ('material_id', 'materialId'),
    'name': ('name',),
    'quantity': ('quantity', 'qty'),
    'unit': ('unit',),
    'unit_price': ('unit_price', 'unitPrice', 'price'),
    'subtotal': ('subtotal', 'lineTotal', 'line_total'),
}

_MISSING = object()


def _pick(record: Mapping[str, Any], aliases, default: Any = None) -> Any:
    for key in aliases:
        if key in record:
            return record[key]
    return default


def _mapping_sort_key(key: Any):
    """Numeric keys first in numeric order, then the rest lexically."""
    text = str(key)
    if text.isdecimal():
        return (0, int(text), text)
    return (1, 0, text)


def materials_as_list(materials: Any) -> List[Any]:
    """
    Return stored materials as an ordered list.

    Lists and tuples keep their order; mappings are ordered by ascending key;
    anything else (None included) yields an empty list.
    """
    if materials is None:
        return []
    if isinstance(materials, (list, tuple)):
        return list(materials)
    if isinstance(materials, Mapping):
        return [materials[key] for key in sorted(materials.keys(), key=_mapping_sort_key)]
    return []


def parse_time_marker(value: Any) -> Optional[datetime]:
    """
    Convert a stored time marker into an aware UTC datetime.

    Supported markers: datetime (naive values are UTC), date, ISO-8601
    strings (a trailing 'Z' included), epoch seconds or milliseconds as
    numbers or numeric strings, and server timestamp mappings such as
    {'seconds': 1700000000, 'nanoseconds': 0} or their '_seconds' variant.
    Returns None when the marker is missing or cannot be read.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float, Decimal)):
        return _from_epoch(value)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        numeric = to_decimal(text, default=None)
        if numeric is not None:
            return _from_epoch(numeric)
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return parse_time_marker(datetime.fromisoformat(text))
        except ValueError:
            return None

    if isinstance(value, Mapping):
        seconds = _pick(value, ('seconds', '_seconds'), _MISSING)
        if seconds is _MISSING:
            return None
        nanoseconds = _pick(value, ('nanoseconds', '_nanoseconds'), 0)
        base = _from_epoch(to_decimal(seconds, default=None), allow_millis=False)
        if base is None:
            return None
        nanos = to_decimal(nanoseconds)
        return base + timedelta(microseconds=int(nanos // 1000))

    return None


def _from_epoch(value: Any, allow_millis: bool = True) -> Optional[datetime]:
    if value is None:
        return None
    try:
        seconds = Decimal(str(value))
        if not seconds.is_finite():
            return None
        if allow_millis and abs(seconds) >= _EPOCH_MILLIS_THRESHOLD:
            seconds = seconds / 1000
        return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=float(seconds))
    except (ArithmeticError, ValueError, OverflowError):
        return None


def reconcile_line(raw_line: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize one stored material line (field names, numbers, defaults)."""
    quantity = to_decimal(_pick(raw_line, _LINE_ALIASES['quantity']))
    unit_price = to_decimal(_pick(raw_line, _LINE_ALIASES['unit_price']))

    raw_subtotal = _pick(raw_line, _LINE_ALIASES['subtotal'], _MISSING)
    if raw_subtotal is _MISSING or raw_subtotal is None:
        subtotal = unit_price * quantity
    else:
        subtotal = to_decimal(raw_subtotal)

    material_id = _pick(raw_line, _LINE_ALIASES['material_id'])

    return {
        'material_id': str(material_id) if material_id not in (None, '') else None,
        'name': _pick(raw_line, _LINE_ALIASES['name']) or UNKNOWN_MATERIAL_NAME,
        'quantity': quantity,
        'unit': _pick(raw_line, _LINE_ALIASES['unit']) or DEFAULT_UNIT,
        'unit_price': unit_price,
        'subtotal': subtotal,
    }


def reconcile_estimation(raw: Mapping[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Produce a canonical snapshot from a raw stored record.

    Args:
        raw: stored record (current schema or legacy document)
        now: fallback for a missing creation time; defaults to the current
             UTC time, pass a fixed value for deterministic results

    Returns:
        dict with id, user_id, product_id, product_name, materials (list of
        canonical lines), total_cost (Decimal), notes, created_at (aware
        datetime) and last_modified (aware datetime or None)
    """
    materials = [
        reconcile_line(line)
        for line in materials_as_list(_pick(raw, _FIELD_ALIASES['materials']))
        if isinstance(line, Mapping)
    ]

    raw_total = _pick(raw, _FIELD_ALIASES['total_cost'])
    if raw_total is None:
        total_cost = sum((line['subtotal'] for line in materials), ZERO)
    else:
        total_cost = to_decimal(raw_total)

    created_at = parse_time_marker(_pick(raw, _FIELD_ALIASES['created_at']))
    if created_at is None:
        created_at = now if now is not None else datetime.now(timezone.utc)

    record_id = _pick(raw, _FIELD_ALIASES['id'])
    product_id = _pick(raw, _FIELD_ALIASES['product_id'])

    return {
        'id': str(record_id) if record_id is not None else None,
        'user_id': _pick(raw, _FIELD_ALIASES['user_id']),
        'product_id': str(product_id) if product_id is not None else None,
        'product_name': _pick(raw, _FIELD_ALIASES['product_name']) or '',
        'materials': materials,
        'total_cost': total_cost,
        'notes': _pick(raw, _FIELD_ALIASES['notes']),
        'created_at': created_at,
        'last_modified': parse_time_marker(_pick(raw, _FIELD_ALIASES['last_modified'])),
    }


def materials_to_storage(lines: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Render canonical lines for the JSON column.

    This is the only form written going forward: an ordered list with
    Decimal values stored as strings.
    """
    stored = []
    for raw_line in lines:
        line = reconcile_line(raw_line)
        stored.append({
            'material_id': line['material_id'],
            'name': line['name'],
            'quantity': str(line['quantity']),
            'unit': line['unit'],
            'unit_price': str(line['unit_price']),
            'subtotal': str(line['subtotal']),
        })
    return stored
