"""
RFQ API Routes Blueprint

Team-side requests for quote:
- /api/rfqs - List RFQs (project_id, status filters)
- /api/projects/<id>/rfqs - Create a DRAFT RFQ from FFE items
- /api/rfqs/<id> - RFQ detail with line items and supplier responses
- /api/rfqs/<id>/send - Send to suppliers and one-time vendors
- /api/rfqs/<id>/cancel - Cancel the RFQ
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.errors import ServiceError
from services.rfq_repository import RFQRepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

rfqs_bp = Blueprint('rfqs_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return RFQRepository(session, org_id, user_id)


@rfqs_bp.route('/api/rfqs', methods=['GET'])
@login_required
def list_rfqs():
    try:
        with get_db_session() as session:
            rfqs = _repository(session).list_rfqs(
                project_id=request.args.get('project_id'),
                status=request.args.get('status')
            )
            return jsonify({'success': True, 'rfqs': rfqs})
    except Exception as e:
        logger.error(f"Error listing RFQs: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@rfqs_bp.route('/api/projects/<project_id>/rfqs', methods=['POST'])
@login_required
def create_rfq(project_id):
    """Create an RFQ from selected FFE items"""
    try:
        with get_db_session() as session:
            rfq = _repository(session).create_from_items(project_id, get_json_body())
            return jsonify({'success': True, 'rfq': rfq}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating RFQ: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@rfqs_bp.route('/api/rfqs/<rfq_id>', methods=['GET'])
@login_required
def get_rfq(rfq_id):
    try:
        with get_db_session() as session:
            return jsonify({'success': True, 'rfq': _repository(session).get_rfq(rfq_id)})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error getting RFQ {rfq_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@rfqs_bp.route('/api/rfqs/<rfq_id>/send', methods=['POST'])
@login_required
def send_rfq(rfq_id):
    """
    Send an RFQ.

    Body: supplier_ids, one_time_vendors [{email, name}], message.
    Each recipient succeeds or fails on its own; the response lists both.
    """
    try:
        data = get_json_body()
        with get_db_session() as session:
            result = _repository(session).send_rfq(
                rfq_id,
                supplier_ids=data.get('supplier_ids'),
                one_time_vendors=data.get('one_time_vendors') or data.get('vendors'),
                message=data.get('message')
            )
            return jsonify(result)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error sending RFQ {rfq_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@rfqs_bp.route('/api/rfqs/<rfq_id>/cancel', methods=['POST'])
@login_required
def cancel_rfq(rfq_id):
    try:
        with get_db_session() as session:
            rfq = _repository(session).cancel_rfq(rfq_id)
            return jsonify({'success': True, 'rfq': rfq})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error cancelling RFQ {rfq_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
