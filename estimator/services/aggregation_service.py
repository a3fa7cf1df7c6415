"""
Line-item aggregation: resolves working lines against the material catalog
and computes subtotals and the grand total.

Pure computation. Callers invoke `compute_total` after every edit of the
working line list; nothing here touches the database.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from estimator.utils.number_format import to_decimal, ZERO

UNKNOWN_MATERIAL_NAME = 'Unknown'
DEFAULT_UNIT = 'unit'
DEFAULT_QUANTITY = 1

MaterialLookup = Dict[str, Dict[str, Any]]


def _material_field(material: Any, field: str, default: Any = None) -> Any:
    if isinstance(material, Mapping):
        return material.get(field, default)
    return getattr(material, field, default)


def build_material_lookup(catalog: Union[Mapping[Any, Any], Iterable[Any], None]) -> MaterialLookup:
    """
    Normalize a material catalog into {material_id: {name, unit, unit_price}}.

    `catalog` may be a mapping keyed by id, or any iterable of Material
    models or dicts carrying an `id`. Ids are compared as strings.
    """
    if catalog is None:
        return {}

    if isinstance(catalog, Mapping):
        items = [(key, material) for key, material in catalog.items()]
    else:
        items = [(_material_field(material, 'id'), material) for material in catalog]

    lookup = {}
    for material_id, material in items:
        if material_id is None:
            continue
        lookup[str(material_id)] = {
            'name': _material_field(material, 'name'),
            'unit': _material_field(material, 'unit'),
            'unit_price': _material_field(material, 'unit_price'),
        }
    return lookup


def resolve_line(line: Mapping[str, Any], lookup: MaterialLookup) -> Dict[str, Any]:
    """
    Resolve a single working line into a snapshot line.

    Unresolvable or empty material references fall back to a zero-priced
    'Unknown' line; an invalid or negative quantity counts as zero.
    """
    raw_material_id = line.get('material_id')
    material_id = str(raw_material_id).strip() if raw_material_id is not None else ''

    qty = to_decimal(line.get('quantity', DEFAULT_QUANTITY))
    if qty < 0:
        qty = ZERO

    material = lookup.get(material_id) if material_id else None
    if material is None:
        return {
            'material_id': material_id or None,
            'name': UNKNOWN_MATERIAL_NAME,
            'quantity': qty,
            'unit': DEFAULT_UNIT,
            'unit_price': ZERO,
            'subtotal': ZERO,
            'resolved': False,
        }

    unit_price = to_decimal(material['unit_price'])
    return {
        'material_id': material_id,
        'name': material['name'] or UNKNOWN_MATERIAL_NAME,
        'quantity': qty,
        'unit': material['unit'] or DEFAULT_UNIT,
        'unit_price': unit_price,
        'subtotal': unit_price * qty,
        'resolved': True,
    }


def compute_total(lines: Optional[Iterable[Mapping[str, Any]]],
                  catalog: Union[Mapping[Any, Any], Iterable[Any], None]) -> Dict[str, Any]:
    """
    Compute resolved lines and the exact total for a list of working lines.

    Args:
        lines: iterable of {'material_id': ..., 'quantity': ...}
        catalog: material lookup (see build_material_lookup)

    Returns:
        {'resolved_lines': [...], 'total_cost': Decimal}
    """
    lookup = build_material_lookup(catalog)

    resolved_lines = [resolve_line(line, lookup) for line in (lines or [])]
    total_cost = sum((line['subtotal'] for line in resolved_lines), Decimal('0'))

    return {
        'resolved_lines': resolved_lines,
        'total_cost': total_cost,
    }


def has_resolved_line(resolved_lines: Iterable[Mapping[str, Any]]) -> bool:
    """True if at least one line was resolved against the catalog."""
    return any(line.get('resolved') for line in resolved_lines)


def strip_resolution_flags(resolved_lines: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Drop the transient 'resolved' marker before a line is stored."""
    return [
        {key: value for key, value in line.items() if key != 'resolved'}
        for line in resolved_lines
    ]
