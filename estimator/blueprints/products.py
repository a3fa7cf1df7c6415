"""Products blueprint - owner-scoped product catalog with images (JSON)."""
from flask import Blueprint, request, jsonify, current_app, g
from estimator.database import get_session
from estimator.middleware import require_login
from estimator.exceptions import ValidationError
from estimator.services import product_service
from estimator.services.cache_service import get_cache
from estimator.utils.formatters import to_json_value
import logging

logger = logging.getLogger(__name__)

products_bp = Blueprint('products', __name__, url_prefix='/products')


def invalidate_products_cache(owner_id: str) -> None:
    """Invalidate the cached product list of an owner."""
    try:
        get_cache().invalidate_module(owner_id, 'products')
    except RuntimeError:
        pass  # Cache not initialized


def request_data() -> dict:
    """JSON body or form fields (multipart when an image is attached)."""
    payload = request.get_json(silent=True)
    if payload is None:
        return request.form.to_dict()
    if not isinstance(payload, dict):
        raise ValidationError('Expected a JSON object.')
    return payload


@products_bp.route('/', methods=['GET'])
@require_login
def list_products():
    """List the current user's products, newest first."""
    def load():
        return [p.to_dict() for p in product_service.list_products(get_session(), g.user_id)]

    products = get_cache().memoize(
        g.user_id, 'products', 'list', load,
        ttl=current_app.config.get('CACHE_CATALOG_TTL')
    )
    return jsonify({'products': to_json_value(products)})


@products_bp.route('/', methods=['POST'])
@require_login
def create_product():
    """Create a product; an optional 'image' file is uploaded first."""
    product = product_service.create_product(
        get_session(), g.user_id, request_data(), image=request.files.get('image')
    )
    invalidate_products_cache(g.user_id)
    return jsonify({'product': to_json_value(product.to_dict())}), 201


@products_bp.route('/<product_id>', methods=['GET'])
@require_login
def view_product(product_id):
    product = product_service.get_product(get_session(), g.user_id, product_id)
    return jsonify({'product': to_json_value(product.to_dict())})


@products_bp.route('/<product_id>', methods=['PUT', 'PATCH'])
@require_login
def update_product(product_id):
    """Update a product; a new 'image' file replaces the previous one."""
    product = product_service.update_product(
        get_session(), g.user_id, product_id, request_data(), image=request.files.get('image')
    )
    invalidate_products_cache(g.user_id)
    return jsonify({'product': to_json_value(product.to_dict())})


@products_bp.route('/<product_id>', methods=['DELETE'])
@require_login
def delete_product(product_id):
    """Delete a product and, best-effort, its image."""
    product_service.delete_product(get_session(), g.user_id, product_id)
    invalidate_products_cache(g.user_id)
    return jsonify({'status': 'ok'})
