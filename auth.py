"""
Authentication and organization scope

Users live in the users table; the Flask session carries who is logged in and
which organization every query is scoped to.
"""
from functools import wraps
from flask import session, jsonify
import logging

logger = logging.getLogger(__name__)

SESSION_KEYS = ('user_id', 'organization_id', 'user_role', 'user_name')


def login_user(user):
    """Set user session from a User model"""
    session['user_id'] = user.id
    session['organization_id'] = user.organization_id
    session['user_role'] = user.role
    session['user_name'] = user.name
    session.permanent = True
    logger.info(f"User logged in: {user.email}")


def logout_user():
    """Clear user session"""
    session.clear()


def is_authenticated():
    """Check if user is logged in"""
    return bool(session.get('user_id')) and bool(session.get('organization_id'))


def get_current_scope():
    """
    Organization and user the current request acts for

    Returns:
        Tuple of (organization_id, user_id)
    """
    return session.get('organization_id'), session.get('user_id')


def get_current_role():
    return session.get('user_role')


def get_current_user_name():
    return session.get('user_name')


def login_required(f):
    """Decorator to require login for an API route"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return jsonify({'success': False, 'error': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """Decorator to require one of the given roles"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return jsonify({'success': False, 'error': 'Authentication required'}), 401

            if get_current_role() not in roles:
                logger.warning(f"Role {get_current_role()} denied for {f.__name__}")
                return jsonify({
                    'success': False,
                    'error': 'Permission denied',
                    'required': list(roles)
                }), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
