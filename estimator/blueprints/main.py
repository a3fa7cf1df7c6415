"""Main blueprint - health check."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from estimator.database import get_session
import logging

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """Liveness plus database connectivity."""
    try:
        get_session().execute(text('SELECT 1'))
        return jsonify({'status': 'ok', 'database': 'ok'})
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return jsonify({'status': 'error', 'database': 'unavailable'}), 503
