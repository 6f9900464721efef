"""
Purchase Orders API Routes Blueprint

- /api/orders - List orders (project_id, status filters)
- /api/projects/<id>/orders - Create a manual order from FFE items
- /api/projects/<id>/orders/from-invoice - Create one order per supplier from a paid invoice
- /api/projects/<id>/orders/from-invoice/preview - Same grouping without creating anything
- /api/orders/<id> - Get, PATCH fields, or DELETE an order
- /api/orders/<id>/actions - place_order, add_tracking, mark_delivered, pay_supplier, cancel
- /api/orders/<id>/pdf - Purchase order PDF
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.errors import ServiceError
from services.order_repository import OrderRepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response, pdf_response

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return OrderRepository(session, org_id, user_id)


# ============================================================================
# ORDERS
# ============================================================================

@orders_bp.route('/api/orders', methods=['GET'])
@login_required
def list_orders():
    try:
        with get_db_session() as session:
            orders = _repository(session).list_orders(
                project_id=request.args.get('project_id'),
                status=request.args.get('status')
            )
            return jsonify({'success': True, 'orders': orders})
    except Exception as e:
        logger.error(f"Error listing orders: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@orders_bp.route('/api/projects/<project_id>/orders', methods=['POST'])
@login_required
def create_manual_order(project_id):
    try:
        with get_db_session() as session:
            order = _repository(session).create_manual_order(project_id, get_json_body())
            return jsonify({'success': True, 'order': order}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating manual order: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@orders_bp.route('/api/projects/<project_id>/orders/from-invoice/preview', methods=['POST'])
@login_required
def preview_orders_from_invoice(project_id):
    try:
        with get_db_session() as session:
            result = _repository(session).preview_orders_from_invoice(project_id, get_json_body())
            return jsonify({'success': True, **result})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error previewing orders: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@orders_bp.route('/api/projects/<project_id>/orders/from-invoice', methods=['POST'])
@login_required
def create_orders_from_invoice(project_id):
    """Body: client_quote_id, item_ids (optional subset)"""
    try:
        with get_db_session() as session:
            result = _repository(session).create_orders_from_invoice(project_id, get_json_body())
            return jsonify({'success': True, **result}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating orders from invoice: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@orders_bp.route('/api/orders/<order_id>', methods=['GET', 'PATCH', 'DELETE'])
@login_required
def handle_order(order_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'order': repo.get_order(order_id)})
            if request.method == 'PATCH':
                order = repo.update_order(order_id, get_json_body())
                return jsonify({'success': True, 'order': order})
            repo.delete_order(order_id)
            return jsonify({'success': True})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling order {order_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@orders_bp.route('/api/orders/<order_id>/actions', methods=['POST'])
@login_required
def order_action(order_id):
    """Body: action plus the action's fields"""
    try:
        data = get_json_body()
        with get_db_session() as session:
            result = _repository(session).perform_action(order_id, data.get('action'), data)
            return jsonify(result)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error performing action on order {order_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@orders_bp.route('/api/orders/<order_id>/pdf', methods=['GET'])
@login_required
def download_order_pdf(order_id):
    try:
        with get_db_session() as session:
            filename, content = _repository(session).get_order_pdf(order_id)
        return pdf_response(filename, content)
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error generating PDF for order {order_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
