"""
Supplier Portal Routes Blueprint

Public endpoints authenticated by the RFQ access token in the URL:
- GET  /api/supplier-portal/<token> - RFQ details and previous quotes
- POST /api/supplier-portal/<token>/decline - Decline to quote
- POST /api/supplier-portal/<token>/quote - Submit a quote

Unknown tokens return 404 and expired tokens 410.
"""

import logging
from flask import Blueprint, request, jsonify

from database.connection import get_db_session
from services.errors import ServiceError
from services.rfq_repository import SupplierPortalService
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response, client_ip

logger = logging.getLogger(__name__)

# Internal error detail stays in the logs
UNEXPECTED_ERROR = 'An unexpected error occurred'

supplier_portal_bp = Blueprint('supplier_portal_bp', __name__)


def _service(session):
    return SupplierPortalService(session, client_ip(), request.headers.get('User-Agent'))


@supplier_portal_bp.route('/api/supplier-portal/<token>', methods=['GET'])
def view_rfq(token):
    try:
        with get_db_session() as session:
            return jsonify({'success': True, **_service(session).view(token)})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading supplier portal: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500


@supplier_portal_bp.route('/api/supplier-portal/<token>/decline', methods=['POST'])
def decline_rfq(token):
    try:
        with get_db_session() as session:
            result = _service(session).decline(token, get_json_body().get('reason'))
            return jsonify(result)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error declining RFQ: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500


@supplier_portal_bp.route('/api/supplier-portal/<token>/quote', methods=['POST'])
def submit_quote(token):
    try:
        with get_db_session() as session:
            result = _service(session).submit_quote(token, get_json_body())
            return jsonify(result), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error submitting supplier quote: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500
