"""
Client Portal Routes Blueprint

Public endpoints authenticated by the client access token in the URL:
- GET   /api/client-portal/<token> - Project invoices with balances
- POST  /api/client-portal/<token>/approve - Approve a quote sent to the client
- POST  /api/client-portal/<token>/pay - Initialize a card payment
- PATCH /api/client-portal/<token>/pay - Charge the card and reconcile

Invalid or expired tokens return 401.
"""

import logging
from flask import Blueprint, jsonify

from database.connection import get_db_session
from services.errors import ServiceError, PaymentProcessingError
from services.payment_service import ClientPortalService
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

# Internal error detail stays in the logs
UNEXPECTED_ERROR = 'An unexpected error occurred'

client_portal_bp = Blueprint('client_portal_bp', __name__)


@client_portal_bp.route('/api/client-portal/<token>', methods=['GET'])
def view_portal(token):
    try:
        with get_db_session() as session:
            return jsonify({'success': True, **ClientPortalService(session).view(token)})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading client portal: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500


@client_portal_bp.route('/api/client-portal/<token>/approve', methods=['POST'])
def approve_quote(token):
    try:
        data = get_json_body()
        quote_id = data.get('quote_id') or data.get('quoteId')
        with get_db_session() as session:
            quote = ClientPortalService(session).approve(token, quote_id)
            return jsonify({'success': True, 'quote': quote})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error approving quote through portal: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500


@client_portal_bp.route('/api/client-portal/<token>/pay', methods=['POST'])
def initialize_payment(token):
    """Body: quote_id, amount (optional partial), apply_surcharge"""
    try:
        with get_db_session() as session:
            result = ClientPortalService(session).initialize_payment(token, get_json_body())
            return jsonify({'success': True, **result})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error initializing payment: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500


@client_portal_bp.route('/api/client-portal/<token>/pay', methods=['PATCH'])
def process_payment(token):
    """Body: payment_id, card_token, cvv_token, expiration"""
    try:
        with get_db_session() as session:
            try:
                result = ClientPortalService(session).process_payment(token, get_json_body())
            except PaymentProcessingError as e:
                # FAILED status must still commit
                return error_response(e)
            return jsonify(result)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error processing payment: {e}", exc_info=True)
        return jsonify({'success': False, 'error': UNEXPECTED_ERROR}), 500
