"""
Client Approvals API Routes Blueprint

Versioned design approvals per room:
- /api/rooms/<id>/approvals - List versions or create the next vN
- /api/approvals/<id>/approve - Internal approval (READY_FOR_CLIENT)
- /api/approvals/<id>/send - Send to the client
- /api/rooms/<id>/approvals/decision - Record the client's decision
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.approvals_repository import ApprovalsRepository
from services.errors import ServiceError
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

approvals_bp = Blueprint('approvals_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return ApprovalsRepository(session, org_id, user_id)


@approvals_bp.route('/api/rooms/<room_id>/approvals', methods=['GET', 'POST'])
@login_required
def handle_versions(room_id):
    """List approval versions or create a new one"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'versions': repo.list_versions(room_id)})
            version = repo.create_version(room_id, get_json_body().get('notes'))
            return jsonify({'success': True, 'version': version}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling approvals for room {room_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@approvals_bp.route('/api/approvals/<version_id>/approve', methods=['POST'])
@login_required
def approve_version(version_id):
    try:
        with get_db_session() as session:
            version = _repository(session).approve_internally(version_id)
            return jsonify({'success': True, 'version': version})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error approving version {version_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@approvals_bp.route('/api/approvals/<version_id>/send', methods=['POST'])
@login_required
def send_version(version_id):
    try:
        with get_db_session() as session:
            version = _repository(session).send_to_client(version_id)
            return jsonify({'success': True, 'version': version})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error sending version {version_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@approvals_bp.route('/api/rooms/<room_id>/approvals/decision', methods=['POST'])
@login_required
def record_decision(room_id):
    """Record APPROVED or REVISION_REQUESTED on the latest version"""
    try:
        data = get_json_body()
        with get_db_session() as session:
            result = _repository(session).record_client_decision(
                room_id, data.get('decision'), data.get('message')
            )
            return jsonify({'success': True, **result})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error recording decision for room {room_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
