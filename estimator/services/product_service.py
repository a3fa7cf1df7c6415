"""Product catalog service (owner-scoped CRUD with optional product image)."""
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from estimator.models import Product
from estimator.exceptions import ValidationError, NotFoundError, TransientIOError
from estimator.services.ownership import require_identity, parse_record_id
from estimator.services.storage_service import get_storage_service, StorageService

logger = logging.getLogger(__name__)


def _clean_product_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    raw_name = data.get('name')
    name = raw_name.strip() if isinstance(raw_name, str) else ''
    if not name:
        raise ValidationError('Product name is required.')
    return {'name': name}


def _has_file(image: Any) -> bool:
    return image is not None and bool(getattr(image, 'filename', None))


def _upload_image(image: Any, owner_id: str, storage: Optional[StorageService]) -> str:
    """Upload a werkzeug FileStorage-like object and return its object key."""
    storage = storage or get_storage_service()
    return storage.upload(
        image.stream,
        image.filename,
        getattr(image, 'mimetype', None) or getattr(image, 'content_type', None),
        owner_id=owner_id
    )


def delete_product_image(image_ref: Optional[str], storage: Optional[StorageService] = None) -> bool:
    """
    Delete a product image from object storage, best-effort.

    Returns:
        True if deleted successfully, False otherwise
    """
    if not image_ref:
        return False
    try:
        storage = storage or get_storage_service()
        return storage.delete(image_ref)
    except Exception as e:
        logger.warning(f"[CATALOG] Failed to delete image {image_ref}: {e}")
        return False


def list_products(session: Session, owner_id: Optional[str]) -> List[Product]:
    """List the owner's products, newest first. No identity → empty list."""
    if not owner_id:
        return []
    try:
        return session.query(Product).filter(
            Product.owner_id == owner_id
        ).order_by(Product.created_at.desc(), Product.id.desc()).all()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error listing products for {owner_id}: {e}")
        raise TransientIOError('Failed to load products. Please try again later.') from e


def get_product(session: Session, owner_id: Optional[str], product_id: Any) -> Product:
    """Fetch one of the owner's products or raise NotFoundError."""
    owner_id = require_identity(owner_id)
    pk = parse_record_id(product_id, 'Product')
    try:
        product = session.query(Product).filter(
            Product.id == pk,
            Product.owner_id == owner_id
        ).first()
    except SQLAlchemyError as e:
        session.rollback()
        raise TransientIOError('Failed to load product. Please try again later.') from e

    if not product:
        raise NotFoundError(f'Product {product_id} not found.')
    return product


def create_product(session: Session, owner_id: Optional[str], data: Mapping[str, Any],
                   image: Any = None, storage: Optional[StorageService] = None) -> Product:
    """
    Create a product, uploading its image first when one is given.

    If the record cannot be saved the freshly uploaded image is removed again.
    """
    owner_id = require_identity(owner_id)
    cleaned = _clean_product_data(data)

    image_ref = _upload_image(image, owner_id, storage) if _has_file(image) else None

    try:
        product = Product(owner_id=owner_id, image_ref=image_ref, **cleaned)
        session.add(product)
        session.commit()
        logger.info(f"[CATALOG] Product {product.id} '{product.name}' created")
        return product
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error creating product: {e}", exc_info=True)
        delete_product_image(image_ref, storage)
        raise TransientIOError('Failed to save product. Please try again later.') from e


def update_product(session: Session, owner_id: Optional[str], product_id: Any,
                   data: Mapping[str, Any], image: Any = None,
                   storage: Optional[StorageService] = None) -> Product:
    """
    Update a product. A new image replaces the old one, which is then
    deleted best-effort.
    """
    cleaned = _clean_product_data(data) if 'name' in data else {}
    product = get_product(session, owner_id, product_id)

    old_image_ref = product.image_ref
    new_image_ref = _upload_image(image, product.owner_id, storage) if _has_file(image) else None

    try:
        for field, value in cleaned.items():
            setattr(product, field, value)
        if new_image_ref:
            product.image_ref = new_image_ref
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error updating product {product_id}: {e}", exc_info=True)
        delete_product_image(new_image_ref, storage)
        raise TransientIOError('Failed to update product. Please try again later.') from e

    if new_image_ref and old_image_ref:
        delete_product_image(old_image_ref, storage)

    return product


def delete_product(session: Session, owner_id: Optional[str], product_id: Any,
                   storage: Optional[StorageService] = None) -> None:
    """
    Delete a product, then its image best-effort.

    A failing image delete never blocks removing the record. Estimations
    made for this product keep their copied product name.
    """
    product = get_product(session, owner_id, product_id)
    image_ref = product.image_ref

    try:
        session.delete(product)
        session.commit()
        logger.info(f"[CATALOG] Product {product_id} deleted")
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[CATALOG] Error deleting product {product_id}: {e}", exc_info=True)
        raise TransientIOError('Failed to delete product. Please try again later.') from e

    if image_ref:
        delete_product_image(image_ref, storage)
