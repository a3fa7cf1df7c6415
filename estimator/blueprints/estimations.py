"""Estimations blueprint - cost calculator and saved estimation history (JSON)."""
from datetime import datetime
from flask import Blueprint, request, jsonify, send_file, current_app, g
from estimator.database import get_session
from estimator.middleware import require_login
from estimator.exceptions import ValidationError
from estimator.services import estimation_service, material_service
from estimator.services.aggregation_service import compute_total
from estimator.services.cache_service import get_cache
from estimator.services.export_service import render_estimation_pdf
from estimator.services.history_service import EstimationHistory
from estimator.blueprints.metrics import estimations_saved_total
from estimator.utils.formatters import to_json_value
from werkzeug.utils import secure_filename
import logging

logger = logging.getLogger(__name__)

estimations_bp = Blueprint('estimations', __name__, url_prefix='/estimations')


def get_history() -> EstimationHistory:
    """History for the current user, seeded with the cached last good list."""
    return EstimationHistory(
        get_session(), g.user_id,
        cache=get_cache(),
        cache_ttl=current_app.config.get('CACHE_HISTORY_TTL')
    )


def json_object() -> dict:
    """JSON body as a dict; an absent body counts as empty."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError('Expected a JSON object.')
    return payload


def get_lines(payload: dict) -> list:
    lines = payload.get('lines', payload.get('materials', []))
    if lines is None:
        return []
    if not isinstance(lines, list):
        raise ValidationError('Lines must be a list of {material_id, quantity}.')
    return [line for line in lines if isinstance(line, dict)]


@estimations_bp.route('/calculate', methods=['POST'])
@require_login
def calculate():
    """
    Resolve working lines against the current material catalog.

    Nothing is saved; clients call this after every edit.
    """
    payload = json_object()
    catalog = material_service.list_materials(get_session(), g.user_id)
    result = compute_total(get_lines(payload), catalog)
    return jsonify(to_json_value(result))


@estimations_bp.route('/', methods=['GET'])
@require_login
def list_estimations():
    """
    List saved estimations, newest first.

    A storage failure is reported in 'error' next to the last list that
    loaded successfully.
    """
    history = get_history()
    estimations = history.refresh()
    return jsonify({
        'estimations': to_json_value(estimations),
        'error': history.error,
    })


@estimations_bp.route('/', methods=['POST'])
@require_login
def create_estimation():
    """
    Save the current calculation as an estimation snapshot.

    The product name is always copied from the owner's product catalog.
    """
    payload = json_object()
    db_session = get_session()

    catalog = material_service.list_materials(db_session, g.user_id)
    estimation = estimation_service.save_estimation(
        db_session,
        g.user_id,
        payload.get('product_id'),
        None,
        get_lines(payload),
        catalog
    )
    estimations_saved_total.inc()
    get_history().refresh()

    return jsonify({'estimation': to_json_value(estimation)}), 201


@estimations_bp.route('/<estimation_id>', methods=['GET'])
@require_login
def view_estimation(estimation_id):
    estimation = estimation_service.get_estimation(get_session(), g.user_id, estimation_id)
    return jsonify({'estimation': to_json_value(estimation)})


@estimations_bp.route('/<estimation_id>', methods=['PATCH', 'PUT'])
@require_login
def update_estimation(estimation_id):
    """Overwrite fields; materials and total_cost are stored as given."""
    patch = request.get_json(silent=True)
    if not isinstance(patch, dict):
        raise ValidationError('Expected a JSON object.')

    history = get_history()
    history.restore()
    estimation = history.update(estimation_id, patch)
    return jsonify({'estimation': to_json_value(estimation)})


@estimations_bp.route('/<estimation_id>', methods=['DELETE'])
@require_login
def delete_estimation(estimation_id):
    history = get_history()
    history.restore()
    history.delete(estimation_id)
    return jsonify({'status': 'ok'})


@estimations_bp.route('/<estimation_id>/duplicate', methods=['POST'])
@require_login
def duplicate_estimation(estimation_id):
    """Copy an estimation; the copy's product name ends with ' (Copy)'."""
    history = get_history()
    duplicate = history.duplicate(estimation_id)
    return jsonify({'estimation': to_json_value(duplicate)}), 201


@estimations_bp.route('/<estimation_id>/export.pdf', methods=['GET'])
@require_login
def export_estimation(estimation_id):
    """Download an estimation as PDF."""
    estimation = estimation_service.get_estimation(get_session(), g.user_id, estimation_id)

    business_info = {
        'name': current_app.config.get('BUSINESS_NAME'),
        'email': current_app.config.get('BUSINESS_EMAIL'),
        'currency_label': current_app.config.get('CURRENCY_LABEL'),
        'printed_at': datetime.now(),
    }
    pdf = render_estimation_pdf(estimation, business_info)

    filename = secure_filename(f"estimation_{estimation['product_name']}_{estimation['id']}.pdf") or 'estimation.pdf'
    return send_file(pdf, mimetype='application/pdf', as_attachment=True, download_name=filename)
