"""Material catalog service (owner-scoped CRUD)."""
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from estimator.models import Material
from estimator.exceptions import ValidationError, NotFoundError, TransientIOError
from estimator.services.ownership import require_identity, parse_record_id
from estimator.utils.number_format import parse_positive_decimal

logger = logging.getLogger(__name__)


def _clean_material_data(data: Mapping[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Validate material fields.

    Name and unit must be non-empty, unit price numeric and > 0. Legacy
    payloads send the price as 'price'.
    """
    cleaned = {}

    for field in ('name', 'unit'):
        if field in data or not partial:
            raw = data.get(field)
            value = raw.strip() if isinstance(raw, str) else ''
            if not value:
                raise ValidationError(f'Material {field} is required.')
            cleaned[field] = value

    price_key = 'unit_price' if 'unit_price' in data else 'price'
    if price_key in data or not partial:
        try:
            cleaned['unit_price'] = parse_positive_decimal(data.get(price_key), 'Price')
        except ValueError as e:
            raise ValidationError(str(e))

    return cleaned


def list_materials(session: Session, owner_id: Optional[str]) -> List[Material]:
    """List the owner's materials, newest first. No identity → empty list."""
    if not owner_id:
        return []
    try:
        return session.query(Material).filter(
            Material.owner_id == owner_id
        ).order_by(Material.created_at.desc(), Material.id.desc()).all()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error listing materials for {owner_id}: {e}")
        raise TransientIOError('Failed to load materials. Please try again later.') from e


def get_material(session: Session, owner_id: Optional[str], material_id: Any) -> Material:
    """Fetch one of the owner's materials or raise NotFoundError."""
    owner_id = require_identity(owner_id)
    pk = parse_record_id(material_id, 'Material')
    try:
        material = session.query(Material).filter(
            Material.id == pk,
            Material.owner_id == owner_id
        ).first()
    except SQLAlchemyError as e:
        session.rollback()
        raise TransientIOError('Failed to load material. Please try again later.') from e

    if not material:
        raise NotFoundError(f'Material {material_id} not found.')
    return material


def create_material(session: Session, owner_id: Optional[str], data: Mapping[str, Any]) -> Material:
    """Create a material; the returned model carries its real id."""
    owner_id = require_identity(owner_id)
    cleaned = _clean_material_data(data)

    try:
        material = Material(owner_id=owner_id, **cleaned)
        session.add(material)
        session.commit()
        logger.info(f"[CATALOG] Material {material.id} '{material.name}' created")
        return material
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error creating material: {e}", exc_info=True)
        raise TransientIOError('Failed to save material. Please try again later.') from e


def update_material(session: Session, owner_id: Optional[str], material_id: Any,
                    data: Mapping[str, Any]) -> Material:
    """Update a material in place. Saved estimations are not affected."""
    cleaned = _clean_material_data(data, partial=True)
    material = get_material(session, owner_id, material_id)

    try:
        for field, value in cleaned.items():
            setattr(material, field, value)
        session.commit()
        return material
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error updating material {material_id}: {e}", exc_info=True)
        raise TransientIOError('Failed to update material. Please try again later.') from e


def delete_material(session: Session, owner_id: Optional[str], material_id: Any) -> None:
    """Delete a material unconditionally (estimations hold their own copy)."""
    material = get_material(session, owner_id, material_id)

    try:
        session.delete(material)
        session.commit()
        logger.info(f"[CATALOG] Material {material_id} deleted")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error deleting material {material_id}: {e}", exc_info=True)
        raise TransientIOError('Failed to delete material. Please try again later.') from e
