"""
Supplier Quote Review Routes Blueprint

- /api/projects/<id>/supplier-quotes - Quotes with mismatch analysis; POST records a manual quote
- /api/projects/<id>/supplier-quotes/<quote_id> - Review (approve, decline, request_revision) or delete a declined quote
- /api/projects/<id>/supplier-quotes/<quote_id>/lines - Correct quoted prices
- /api/ffe/items/<id>/accept-quote - Accept one quote line for an item
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope, get_current_user_name
from database.connection import get_db_session
from services.errors import ServiceError
from services.supplier_quote_service import SupplierQuoteService
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

supplier_quotes_bp = Blueprint('supplier_quotes_bp', __name__)


def _service(session):
    org_id, user_id = get_current_scope()
    return SupplierQuoteService(session, org_id, user_id, get_current_user_name())


@supplier_quotes_bp.route('/api/projects/<project_id>/supplier-quotes', methods=['GET', 'POST'])
@login_required
def handle_project_quotes(project_id):
    try:
        with get_db_session() as session:
            service = _service(session)
            if request.method == 'GET':
                result = service.list_project_quotes(project_id, request.args.get('status'))
                return jsonify({'success': True, **result})
            result = service.create_manual_quote(project_id, get_json_body())
            return jsonify({'success': True, **result}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling supplier quotes for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@supplier_quotes_bp.route('/api/projects/<project_id>/supplier-quotes/<quote_id>',
                          methods=['PATCH', 'DELETE'])
@login_required
def handle_quote(project_id, quote_id):
    """PATCH {action, internal_notes} reviews; DELETE removes a declined quote"""
    try:
        with get_db_session() as session:
            service = _service(session)
            if request.method == 'DELETE':
                service.delete_declined_quote(project_id, quote_id)
                return jsonify({'success': True})
            data = get_json_body()
            quote = service.review_quote(project_id, quote_id, data.get('action'),
                                         data.get('internal_notes'))
            return jsonify({'success': True, 'quote': quote})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling supplier quote {quote_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@supplier_quotes_bp.route('/api/projects/<project_id>/supplier-quotes/<quote_id>/lines',
                          methods=['PUT'])
@login_required
def update_quote_lines(project_id, quote_id):
    try:
        with get_db_session() as session:
            quote = _service(session).update_quote_lines(
                project_id, quote_id, get_json_body().get('lines')
            )
            return jsonify({'success': True, 'quote': quote})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating lines of supplier quote {quote_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@supplier_quotes_bp.route('/api/ffe/items/<item_id>/accept-quote', methods=['POST'])
@login_required
def accept_quote_line(item_id):
    """Body: quote_line_item_id, markup_percent"""
    try:
        data = get_json_body()
        with get_db_session() as session:
            item = _service(session).accept_line_for_item(
                item_id, data.get('quote_line_item_id'), data.get('markup_percent')
            )
            return jsonify({'success': True, 'item': item})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error accepting quote for item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
