"""
Authentication Routes Blueprint

Handles login/logout and user management API endpoints:
- /api/auth/login, /api/auth/logout, /api/auth/me
- /api/auth/users - User management (OWNER and ADMIN only)
"""

from flask import Blueprint, request, jsonify
import logging

from auth import (login_user, logout_user, login_required, role_required,
                  get_current_scope, is_authenticated)
from database.connection import get_db_session
from services.errors import ServiceError
from services.event_logger import get_event_logger
from services.users_repository import UsersRepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

# Create blueprint
auth_bp = Blueprint('auth_bp', __name__)

USER_ADMIN_ROLES = ('OWNER', 'ADMIN')


# ============================================================================
# LOGIN/LOGOUT ROUTES
# ============================================================================

@auth_bp.route('/api/auth/login', methods=['POST'])
def api_login():
    """API endpoint for user login"""
    try:
        data = get_json_body()
        email = data.get('email')
        password = data.get('password')

        if not email or not password:
            return jsonify({'success': False, 'error': 'Email and password required'}), 400

        with get_db_session() as session:
            user = UsersRepository(session).authenticate(email, password)
            if not user:
                logger.warning(f"Failed login for {email}")
                return jsonify({'success': False, 'error': 'Invalid email or password'}), 401

            login_user(user)
            get_event_logger(session, user.organization_id, user.id).log(
                'user', user.id, 'USER_LOGIN', description=f"{user.name} logged in"
            )
            return jsonify({'success': True, 'user': user.to_dict()})

    except Exception as e:
        logger.error(f"Login error: {e}")
        return jsonify({'success': False, 'error': 'Login failed'}), 500


@auth_bp.route('/api/auth/logout', methods=['POST'])
def api_logout():
    """API endpoint for user logout"""
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/auth/me', methods=['GET'])
def api_current_user():
    """Current user, or authenticated=False"""
    if not is_authenticated():
        return jsonify({'success': True, 'authenticated': False})
    try:
        org_id, user_id = get_current_scope()
        with get_db_session() as session:
            user = UsersRepository(session, org_id).get_user(user_id)
            return jsonify({'success': True, 'authenticated': True, 'user': user})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading current user: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# USER MANAGEMENT API
# ============================================================================

@auth_bp.route('/api/auth/users', methods=['GET'])
@login_required
def get_users():
    """List organization users"""
    try:
        org_id, _ = get_current_scope()
        active_only = request.args.get('include_inactive', 'false').lower() != 'true'
        with get_db_session() as session:
            users = UsersRepository(session, org_id).list_users(active_only=active_only)
            return jsonify({'success': True, 'users': users})
    except Exception as e:
        logger.error(f"Error getting users: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@auth_bp.route('/api/auth/users', methods=['POST'])
@role_required(*USER_ADMIN_ROLES)
def create_user():
    """Create a user (OWNER/ADMIN only)"""
    try:
        org_id, _ = get_current_scope()
        with get_db_session() as session:
            user = UsersRepository(session, org_id).create_user(get_json_body())
            return jsonify({'success': True, 'user': user}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@auth_bp.route('/api/auth/users/<user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    """Get a specific user"""
    try:
        org_id, _ = get_current_scope()
        with get_db_session() as session:
            user = UsersRepository(session, org_id).get_user(user_id)
            return jsonify({'success': True, 'user': user})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error getting user: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@auth_bp.route('/api/auth/users/<user_id>', methods=['PUT'])
@role_required(*USER_ADMIN_ROLES)
def update_user(user_id):
    """Update a user (OWNER/ADMIN only)"""
    try:
        org_id, _ = get_current_scope()
        with get_db_session() as session:
            user = UsersRepository(session, org_id).update_user(user_id, get_json_body())
            return jsonify({'success': True, 'user': user})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating user: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@auth_bp.route('/api/auth/users/<user_id>', methods=['DELETE'])
@role_required(*USER_ADMIN_ROLES)
def deactivate_user(user_id):
    """Deactivate a user (OWNER/ADMIN only)"""
    try:
        org_id, current_user_id = get_current_scope()
        if user_id == current_user_id:
            return jsonify({'success': False, 'error': 'Cannot deactivate yourself'}), 400
        with get_db_session() as session:
            UsersRepository(session, org_id).deactivate_user(user_id)
            return jsonify({'success': True})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error deactivating user: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
