"""
Project Updates API Routes Blueprint

- /api/projects/<id>/updates - List (filters, page, limit) or create updates
- /api/projects/<id>/updates/<update_id> - Get, edit or delete an update
- /api/projects/<id>/updates/<update_id>/photos - List or attach photos (by URL)
- /api/projects/<id>/updates/<update_id>/photos/<photo_id> - Edit or remove a photo
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope, get_current_role
from database.connection import get_db_session
from services.errors import ServiceError
from services.project_updates_repository import ProjectUpdatesRepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

project_updates_bp = Blueprint('project_updates_bp', __name__)

LIST_FILTERS = (
    'status', 'type', 'category', 'priority', 'room_id', 'author_id',
    'date_from', 'date_to', 'search', 'page', 'limit'
)


def _repository(session):
    org_id, user_id = get_current_scope()
    return ProjectUpdatesRepository(session, org_id, user_id, get_current_role())


# ============================================================================
# UPDATES
# ============================================================================

@project_updates_bp.route('/api/projects/<project_id>/updates', methods=['GET', 'POST'])
@login_required
def handle_updates(project_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                filters = {key: request.args.get(key) for key in LIST_FILTERS if request.args.get(key)}
                result = repo.list_updates(project_id, filters)
                return jsonify({'success': True, **result})
            update = repo.create_update(project_id, get_json_body())
            return jsonify({'success': True, 'update': update}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling updates for project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@project_updates_bp.route('/api/projects/<project_id>/updates/<update_id>',
                          methods=['GET', 'PUT', 'DELETE'])
@login_required
def handle_update(project_id, update_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'update': repo.get_update(project_id, update_id)})
            if request.method == 'PUT':
                update = repo.update_update(project_id, update_id, get_json_body())
                return jsonify({'success': True, 'update': update})
            repo.delete_update(project_id, update_id)
            return jsonify({'success': True, 'message': 'Update deleted successfully'})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling project update {update_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# PHOTOS
# ============================================================================

@project_updates_bp.route('/api/projects/<project_id>/updates/<update_id>/photos',
                          methods=['GET', 'POST'])
@login_required
def handle_photos(project_id, update_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, **repo.list_photos(project_id, update_id)})
            photo = repo.add_photo(project_id, update_id, get_json_body())
            return jsonify({'success': True, 'photo': photo}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling photos for update {update_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@project_updates_bp.route('/api/projects/<project_id>/updates/<update_id>/photos/<photo_id>',
                          methods=['PUT', 'DELETE'])
@login_required
def handle_photo(project_id, update_id, photo_id):
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'PUT':
                photo = repo.update_photo(project_id, update_id, photo_id, get_json_body())
                return jsonify({'success': True, 'photo': photo})
            repo.delete_photo(project_id, update_id, photo_id)
            return jsonify({'success': True, 'message': 'Photo removed'})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling photo {photo_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
