"""
Suppliers API Routes Blueprint

- /api/suppliers - List (search, include_inactive) or create suppliers
- /api/suppliers/<id> - Get, update or deactivate a supplier
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.errors import ServiceError
from services.suppliers_repository import SuppliersRepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response, arg_bool

logger = logging.getLogger(__name__)

suppliers_bp = Blueprint('suppliers_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return SuppliersRepository(session, org_id, user_id)


@suppliers_bp.route('/api/suppliers', methods=['GET', 'POST'])
@login_required
def handle_suppliers():
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                suppliers = repo.list_suppliers(
                    active_only=not arg_bool('include_inactive'),
                    search=request.args.get('search')
                )
                return jsonify({'success': True, 'suppliers': suppliers})
            supplier = repo.create_supplier(get_json_body())
            return jsonify({'success': True, 'supplier': supplier}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling suppliers: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@suppliers_bp.route('/api/suppliers/<supplier_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def handle_supplier(supplier_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'supplier': repo.get_supplier(supplier_id)})
            if request.method == 'PUT':
                supplier = repo.update_supplier(supplier_id, get_json_body())
                return jsonify({'success': True, 'supplier': supplier})
            repo.deactivate_supplier(supplier_id)
            return jsonify({'success': True})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling supplier {supplier_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
