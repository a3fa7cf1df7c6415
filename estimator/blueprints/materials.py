"""Materials blueprint - owner-scoped material catalog (JSON)."""
from flask import Blueprint, request, jsonify, current_app, g
from estimator.database import get_session
from estimator.middleware import require_login
from estimator.exceptions import ValidationError
from estimator.services import material_service
from estimator.services.cache_service import get_cache
from estimator.utils.formatters import to_json_value
import logging

logger = logging.getLogger(__name__)

materials_bp = Blueprint('materials', __name__, url_prefix='/materials')


def invalidate_materials_cache(owner_id: str) -> None:
    """Invalidate the cached material list of an owner."""
    try:
        get_cache().invalidate_module(owner_id, 'materials')
    except RuntimeError:
        pass  # Cache not initialized


def request_data() -> dict:
    """JSON body or form fields."""
    payload = request.get_json(silent=True)
    if payload is None:
        return request.form.to_dict()
    if not isinstance(payload, dict):
        raise ValidationError('Expected a JSON object.')
    return payload


@materials_bp.route('/', methods=['GET'])
@require_login
def list_materials():
    """List the current user's materials, newest first."""
    def load():
        return [m.to_dict() for m in material_service.list_materials(get_session(), g.user_id)]

    materials = get_cache().memoize(
        g.user_id, 'materials', 'list', load,
        ttl=current_app.config.get('CACHE_CATALOG_TTL')
    )
    return jsonify({'materials': to_json_value(materials)})


@materials_bp.route('/', methods=['POST'])
@require_login
def create_material():
    """Create a material and return it with its id."""
    material = material_service.create_material(get_session(), g.user_id, request_data())
    invalidate_materials_cache(g.user_id)
    return jsonify({'material': to_json_value(material.to_dict())}), 201


@materials_bp.route('/<material_id>', methods=['GET'])
@require_login
def view_material(material_id):
    material = material_service.get_material(get_session(), g.user_id, material_id)
    return jsonify({'material': to_json_value(material.to_dict())})


@materials_bp.route('/<material_id>', methods=['PUT', 'PATCH'])
@require_login
def update_material(material_id):
    """Update a material. Saved estimations keep their copied prices."""
    material = material_service.update_material(get_session(), g.user_id, material_id, request_data())
    invalidate_materials_cache(g.user_id)
    return jsonify({'material': to_json_value(material.to_dict())})


@materials_bp.route('/<material_id>', methods=['DELETE'])
@require_login
def delete_material(material_id):
    material_service.delete_material(get_session(), g.user_id, material_id)
    invalidate_materials_cache(g.user_id)
    return jsonify({'status': 'ok'})
