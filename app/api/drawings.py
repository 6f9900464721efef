"""
Drawings & Transmittals API Routes Blueprint

- /api/projects/<id>/drawings - List (discipline, include_archived) or create drawings
- /api/projects/<id>/drawings/stale - Drawings whose CAD file changed since the last plot
- /api/drawings/<id> - Drawing with revisions, or update it
- /api/drawings/<id>/revisions - Issue a revision
- /api/drawings/<id>/cad-modified - Report a CAD file save
- /api/drawings/<id>/freshness - dismiss, needs_replot or mark_plotted
- /api/projects/<id>/transmittals - List or create (one per recipient)
- /api/transmittals/<id>/send - Send a DRAFT transmittal
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.drawing_repository import DrawingRepository
from services.errors import ServiceError
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response, arg_bool

logger = logging.getLogger(__name__)

drawings_bp = Blueprint('drawings_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return DrawingRepository(session, org_id, user_id)


# ============================================================================
# DRAWINGS
# ============================================================================

@drawings_bp.route('/api/projects/<project_id>/drawings', methods=['GET', 'POST'])
@login_required
def handle_drawings(project_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                drawings = repo.list_drawings(
                    project_id,
                    discipline=request.args.get('discipline'),
                    include_archived=arg_bool('include_archived')
                )
                return jsonify({'success': True, 'drawings': drawings})
            drawing = repo.create_drawing(project_id, get_json_body())
            return jsonify({'success': True, 'drawing': drawing}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling drawings for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@drawings_bp.route('/api/projects/<project_id>/drawings/stale', methods=['GET'])
@login_required
def list_stale_drawings(project_id):
    try:
        with get_db_session() as session:
            drawings = _repository(session).list_stale_drawings(project_id)
            return jsonify({'success': True, 'drawings': drawings, 'count': len(drawings)})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing stale drawings: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@drawings_bp.route('/api/drawings/<drawing_id>', methods=['GET', 'PUT'])
@login_required
def handle_drawing(drawing_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'drawing': repo.get_drawing(drawing_id)})
            drawing = repo.update_drawing(drawing_id, get_json_body())
            return jsonify({'success': True, 'drawing': drawing})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling drawing {drawing_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@drawings_bp.route('/api/drawings/<drawing_id>/revisions', methods=['POST'])
@login_required
def add_revision(drawing_id):
    try:
        with get_db_session() as session:
            drawing = _repository(session).add_revision(drawing_id, get_json_body())
            return jsonify({'success': True, 'drawing': drawing}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error issuing revision for drawing {drawing_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@drawings_bp.route('/api/drawings/<drawing_id>/cad-modified', methods=['POST'])
@login_required
def report_cad_modified(drawing_id):
    try:
        with get_db_session() as session:
            drawing = _repository(session).report_cad_modified(
                drawing_id, get_json_body().get('modified_at')
            )
            return jsonify({'success': True, 'drawing': drawing})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error recording CAD change for drawing {drawing_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@drawings_bp.route('/api/drawings/<drawing_id>/freshness', methods=['POST'])
@login_required
def set_freshness(drawing_id):
    try:
        with get_db_session() as session:
            drawing = _repository(session).set_freshness(drawing_id, get_json_body().get('action'))
            return jsonify({'success': True, 'drawing': drawing})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating freshness of drawing {drawing_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# TRANSMITTALS
# ============================================================================

@drawings_bp.route('/api/projects/<project_id>/transmittals', methods=['GET', 'POST'])
@login_required
def handle_transmittals(project_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'transmittals': repo.list_transmittals(project_id)})
            result = repo.create_transmittals(project_id, get_json_body())
            return jsonify({'success': True, **result}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling transmittals for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@drawings_bp.route('/api/transmittals/<transmittal_id>/send', methods=['POST'])
@login_required
def send_transmittal(transmittal_id):
    try:
        with get_db_session() as session:
            transmittal = _repository(session).send_transmittal(transmittal_id)
            return jsonify({'success': True, 'transmittal': transmittal})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error sending transmittal {transmittal_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
