"""Middleware for the authenticated identity."""
from functools import wraps
from flask import session, g, jsonify


def load_current_user():
    """
    Load the authenticated user id into g.

    Authentication itself happens elsewhere; it stores a stable, opaque
    `user_id` in the Flask session. Every catalog and estimation operation
    is scoped by g.user_id.
    """
    user_id = session.get('user_id')
    g.user_id = str(user_id) if user_id not in (None, '') else None


def require_login(f):
    """
    Decorator: Require an authenticated user.

    Answers 401 JSON instead of running the view, so nothing is ever
    queried with an empty owner.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function
