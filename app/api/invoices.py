"""
Client Invoices API Routes Blueprint

Client quotes/invoices built from FFE items, and payments recorded by the team:
- /api/projects/<id>/invoices - List with stats, or create from items
- /api/invoices/<id> - Invoice detail, or delete a DRAFT
- /api/invoices/<id>/send - Email the client portal link
- /api/invoices/<id>/response - Record the client's response
- /api/invoices/<id>/payments - List or record payments
- /api/invoices/<id>/pdf - Invoice PDF
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.client_invoice_repository import ClientInvoiceRepository
from services.errors import ServiceError
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response, pdf_response

logger = logging.getLogger(__name__)

invoices_bp = Blueprint('invoices_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return ClientInvoiceRepository(session, org_id, user_id)


# ============================================================================
# INVOICES
# ============================================================================

@invoices_bp.route('/api/projects/<project_id>/invoices', methods=['GET', 'POST'])
@login_required
def handle_invoices(project_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                result = repo.list_invoices(project_id, request.args.get('status'))
                return jsonify({'success': True, **result})
            invoice = repo.create_invoice(project_id, get_json_body())
            return jsonify({'success': True, 'invoice': invoice}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling invoices for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@invoices_bp.route('/api/invoices/<invoice_id>', methods=['GET', 'DELETE'])
@login_required
def handle_invoice(invoice_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'invoice': repo.get_invoice(invoice_id)})
            repo.delete_invoice(invoice_id)
            return jsonify({'success': True})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling invoice {invoice_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@invoices_bp.route('/api/invoices/<invoice_id>/send', methods=['POST'])
@login_required
def send_invoice(invoice_id):
    """Create a client portal link and email it with the invoice PDF"""
    try:
        with get_db_session() as session:
            result = _repository(session).send_to_client(invoice_id, get_json_body())
            return jsonify({'success': True, **result})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error sending invoice {invoice_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@invoices_bp.route('/api/invoices/<invoice_id>/response', methods=['POST'])
@login_required
def record_response(invoice_id):
    try:
        data = get_json_body()
        with get_db_session() as session:
            invoice = _repository(session).record_client_response(
                invoice_id, data.get('response'), data.get('message')
            )
            return jsonify({'success': True, 'invoice': invoice})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error recording response on invoice {invoice_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@invoices_bp.route('/api/invoices/<invoice_id>/pdf', methods=['GET'])
@login_required
def download_invoice_pdf(invoice_id):
    try:
        with get_db_session() as session:
            filename, content = _repository(session).get_invoice_pdf(invoice_id)
        return pdf_response(filename, content)
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error generating PDF for invoice {invoice_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# PAYMENTS
# ============================================================================

@invoices_bp.route('/api/invoices/<invoice_id>/payments', methods=['GET', 'POST'])
@login_required
def handle_payments(invoice_id):
    """
    List payments, or record one received outside the portal.

    POST body: amount, method, reference, paid_at, is_deposit, notes.
    """
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'payments': repo.list_payments(invoice_id)})
            result = repo.record_payment(invoice_id, get_json_body())
            return jsonify({'success': True, **result}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling payments for invoice {invoice_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
