"""
Supplier Order Portal Routes Blueprint

Public purchase order page, authenticated by the order's access token:
- GET  /api/supplier-order/<token> - Order details (no internal notes)
- POST /api/supplier-order/<token> - confirm, ship or update_eta

Unknown tokens return 404 and expired tokens 403.
"""

import logging
from flask import Blueprint, jsonify

from database.connection import get_db_session
from services.errors import ServiceError
from services.order_repository import SupplierOrderPortalService
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

# Internal error detail stays in the logs
UNEXPECTED_ERROR = 'An unexpected error occurred'

order_portal_bp = Blueprint('order_portal_bp', __name__)


@order_portal_bp.route('/api/supplier-order/<token>', methods=['GET'])
def view_order(token):
    try:
        with get_db_session() as session:
            return jsonify({'success': True, **SupplierOrderPortalService(session).view(token)})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading supplier order portal: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500


@order_portal_bp.route('/api/supplier-order/<token>', methods=['POST'])
def supplier_order_action(token):
    try:
        data = get_json_body()
        with get_db_session() as session:
            result = SupplierOrderPortalService(session).perform_action(
                token, data.get('action'), data
            )
            return jsonify(result)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error on supplier order action: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500
