"""Estimation service: saving, updating, duplicating and listing snapshots."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from estimator.models import Estimation
from estimator.exceptions import ValidationError, NotFoundError, TransientIOError
from estimator.services.aggregation_service import (
    compute_total, has_resolved_line, strip_resolution_flags
)
from estimator.services.ownership import require_identity, ensure_owner, parse_record_id
from estimator.services.reconciliation_service import (
    reconcile_estimation, materials_to_storage
)
from estimator.utils.number_format import to_decimal

logger = logging.getLogger(__name__)

COPY_SUFFIX = ' (Copy)'

# Fields a caller may overwrite through update_estimation
UPDATABLE_FIELDS = ('product_id', 'product_name', 'materials', 'total_cost', 'notes')


def _load_owned(session: Session, user_id: str, estimation_id: Any) -> Estimation:
    pk = parse_record_id(estimation_id, 'Estimation')
    try:
        estimation = session.query(Estimation).filter(Estimation.id == pk).first()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ESTIMATION] Error loading {estimation_id}: {e}")
        raise TransientIOError('Failed to load estimation. Please try again later.') from e

    if not estimation:
        raise NotFoundError(f'Estimation {estimation_id} not found.')
    ensure_owner(estimation, 'user_id', user_id, 'Estimation')
    return estimation


def _validate_saved_quantities(resolved_lines: Iterable[Mapping[str, Any]],
                               line_items: List[Mapping[str, Any]]) -> None:
    """Resolved lines must carry a positive quantity to be saved."""
    for index, (line, item) in enumerate(zip(resolved_lines, line_items), start=1):
        if not line.get('resolved'):
            continue
        if to_decimal(item.get('quantity', 1), default=None) is None or line['quantity'] <= 0:
            raise ValidationError(f'Line {index}: quantity must be a number greater than zero.')


def _resolve_product_name(session: Session, user_id: str, product_id: Any,
                          product_name: Optional[str]) -> str:
    """Name copied into the snapshot; looked up in the owner's catalog when not given."""
    if product_name is None:
        from estimator.services.product_service import get_product
        try:
            return get_product(session, user_id, product_id).name
        except NotFoundError:
            raise ValidationError('Invalid product selection.')
    if not isinstance(product_name, str) or not product_name.strip():
        raise ValidationError('Product name is required.')
    return product_name.strip()


def _validate_materials_patch(materials: Any) -> None:
    """Replacement materials must be a list or keyed mapping of line objects."""
    if isinstance(materials, Mapping):
        lines = list(materials.values())
    elif isinstance(materials, (list, tuple)):
        lines = list(materials)
    else:
        raise ValidationError('Materials must be a list of lines.')
    for index, line in enumerate(lines, start=1):
        if not isinstance(line, Mapping):
            raise ValidationError(f'Line {index}: expected an object.')


def save_estimation(session: Session, user_id: Optional[str], product_id: Any,
                    product_name: Optional[str], line_items: Optional[Iterable[Mapping[str, Any]]],
                    catalog: Any) -> Dict[str, Any]:
    """
    Persist a new estimation snapshot.

    Lines are resolved against `catalog` and copied into the snapshot
    together with their total, in a single commit.

    Args:
        session: SQLAlchemy session
        user_id: owner of the snapshot
        product_id: selected product (required)
        product_name: product name to copy; looked up in the owner's
            product catalog when None
        line_items: working lines [{'material_id': ..., 'quantity': ...}]
        catalog: material lookup (mapping or iterable of materials)

    Returns:
        Reconciled snapshot dict

    Raises:
        PermissionDeniedError: without an owner
        ValidationError: no or unknown product, blank product_name,
            no resolvable material, bad quantity
        TransientIOError: storage failure (nothing written)
    """
    user_id = require_identity(user_id)

    if product_id is None or not str(product_id).strip():
        raise ValidationError('Please select a product.')

    line_items = list(line_items or [])
    result = compute_total(line_items, catalog)
    resolved_lines = result['resolved_lines']

    if not resolved_lines or not has_resolved_line(resolved_lines):
        raise ValidationError('Please add at least one material.')
    _validate_saved_quantities(resolved_lines, line_items)

    product_name = _resolve_product_name(session, user_id, product_id, product_name)

    try:
        estimation = Estimation(
            user_id=user_id,
            product_id=str(product_id).strip(),
            product_name=product_name,
            materials=materials_to_storage(strip_resolution_flags(resolved_lines)),
            total_cost=result['total_cost'],
        )
        session.add(estimation)
        session.commit()
        logger.info(f"[ESTIMATION] Saved {estimation.id} for user {user_id} (total={result['total_cost']})")

        record = estimation.to_record()
        # The exact total computed here, not the column's rounded read-back
        record['total_cost'] = result['total_cost']
        return reconcile_estimation(record, now=datetime.now(timezone.utc))
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ESTIMATION] Error saving estimation: {e}", exc_info=True)
        raise TransientIOError('Error saving estimation. Please try again.') from e


def update_estimation(session: Session, user_id: Optional[str], estimation_id: Any,
                      patch: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Overwrite fields of an estimation and stamp last_modified.

    Nothing is recomputed: a caller changing `materials` or `total_cost`
    must pass a consistent pair.
    """
    user_id = require_identity(user_id)

    unknown = sorted(set(patch) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}")

    values = dict(patch)
    if 'product_name' in values:
        name = values['product_name']
        if not isinstance(name, str) or not name.strip():
            raise ValidationError('Product name is required.')
    if 'product_id' in values:
        if values['product_id'] is None or not str(values['product_id']).strip():
            raise ValidationError('Please select a product.')
        values['product_id'] = str(values['product_id']).strip()
    if 'materials' in values:
        _validate_materials_patch(values['materials'])
        values['materials'] = materials_to_storage(
            reconcile_estimation({'materials': values['materials']})['materials']
        )
    if 'total_cost' in values:
        total_cost = to_decimal(values['total_cost'], default=None)
        if total_cost is None or total_cost < 0:
            raise ValidationError('Total cost must be a non-negative number.')
        values['total_cost'] = total_cost

    estimation = _load_owned(session, user_id, estimation_id)

    try:
        for field, value in values.items():
            setattr(estimation, field, value)
        estimation.last_modified = func.now()
        session.commit()
        logger.info(f"[ESTIMATION] Updated {estimation_id} ({', '.join(sorted(values)) or 'no fields'})")
        return reconcile_estimation(estimation.to_record())
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ESTIMATION] Error updating estimation {estimation_id}: {e}", exc_info=True)
        raise TransientIOError('Failed to update estimation. Please try again later.') from e


def delete_estimation(session: Session, user_id: Optional[str], estimation_id: Any) -> None:
    """Delete an owned estimation. Catalogs are not touched."""
    user_id = require_identity(user_id)
    estimation = _load_owned(session, user_id, estimation_id)

    try:
        session.delete(estimation)
        session.commit()
        logger.info(f"[ESTIMATION] Deleted {estimation_id}")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ESTIMATION] Error deleting estimation {estimation_id}: {e}", exc_info=True)
        raise TransientIOError('Failed to delete estimation. Please try again later.') from e


def duplicate_estimation(session: Session, user_id: Optional[str],
                         estimation: Union[Mapping[str, Any], str, int]) -> Dict[str, Any]:
    """
    Copy an estimation under a new id and creation time.

    Accepts a snapshot dict or an id. The copy keeps materials, total,
    notes and last_modified, gets ' (Copy)' appended to its product name
    and belongs to the acting user. The source is never modified.
    """
    user_id = require_identity(user_id)

    if isinstance(estimation, Mapping):
        source = reconcile_estimation(estimation)
        if source['id'] is not None:
            # Only the owner may copy a stored estimation
            _load_owned(session, user_id, source['id'])
    else:
        source = reconcile_estimation(_load_owned(session, user_id, estimation).to_record())

    try:
        duplicate = Estimation(
            user_id=user_id,
            product_id=source['product_id'] or '',
            product_name=f"{source['product_name']}{COPY_SUFFIX}",
            materials=materials_to_storage(source['materials']),
            total_cost=source['total_cost'],
            notes=source['notes'],
            last_modified=source['last_modified'],
        )
        session.add(duplicate)
        session.commit()
        logger.info(f"[ESTIMATION] Duplicated {source['id']} as {duplicate.id}")
        return reconcile_estimation(duplicate.to_record())
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ESTIMATION] Error duplicating estimation {source['id']}: {e}", exc_info=True)
        raise TransientIOError('Failed to duplicate estimation. Please try again later.') from e


def get_estimation(session: Session, user_id: Optional[str], estimation_id: Any) -> Dict[str, Any]:
    """Fetch one owned estimation, reconciled."""
    user_id = require_identity(user_id)
    return reconcile_estimation(_load_owned(session, user_id, estimation_id).to_record())


def list_estimations(session: Session, user_id: Optional[str]) -> List[Dict[str, Any]]:
    """
    List the owner's estimations, newest first, reconciled.

    Without an owner nothing is queried and the list is empty.
    """
    if not user_id:
        return []
    try:
        rows = session.query(Estimation).filter(
            Estimation.user_id == user_id
        ).order_by(Estimation.created_at.desc(), Estimation.id.desc()).all()
        records = [row.to_record() for row in rows]
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[ESTIMATION] Error fetching estimations for {user_id}: {e}")
        raise TransientIOError('Failed to load estimations. Please try again later.') from e

    now = datetime.now(timezone.utc)
    return [reconcile_estimation(record, now=now) for record in records]
