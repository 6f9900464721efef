"""
Projects API Routes Blueprint

Clients, projects, rooms and workflow stages:
- /api/clients - Client management
- /api/projects - Project management (DELETE cancels the project)
- /api/projects/<id>/rooms - Add rooms (stages are created with the room)
- /api/rooms/<id> - Update or delete a room
- /api/stages/<id> - Update stage status, assignee or due date
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.errors import ServiceError
from services.projects_repository import ProjectsRepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

# Create blueprint
projects_bp = Blueprint('projects_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return ProjectsRepository(session, org_id, user_id)


# ============================================================================
# CLIENTS
# ============================================================================

@projects_bp.route('/api/clients', methods=['GET', 'POST'])
@login_required
def handle_clients():
    """List or create clients"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                clients = repo.list_clients(search=request.args.get('search'))
                return jsonify({'success': True, 'clients': clients})
            client = repo.create_client(get_json_body())
            return jsonify({'success': True, 'client': client}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling clients: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@projects_bp.route('/api/clients/<client_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def handle_client(client_id):
    """Get, update or delete a client"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'client': repo.get_client(client_id)})
            if request.method == 'PUT':
                client = repo.update_client(client_id, get_json_body())
                return jsonify({'success': True, 'client': client})
            repo.delete_client(client_id)
            return jsonify({'success': True})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling client {client_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# PROJECTS
# ============================================================================

@projects_bp.route('/api/projects', methods=['GET', 'POST'])
@login_required
def handle_projects():
    """List or create projects"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                projects = repo.list_projects(
                    status=request.args.get('status'),
                    search=request.args.get('search')
                )
                return jsonify({'success': True, 'projects': projects})
            project = repo.create_project(get_json_body())
            return jsonify({'success': True, 'project': project}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling projects: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@projects_bp.route('/api/projects/<project_id>', methods=['GET', 'PUT', 'DELETE'])
@login_required
def handle_project(project_id):
    """Get, update or cancel a project"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'project': repo.get_project(project_id)})
            if request.method == 'PUT':
                project = repo.update_project(project_id, get_json_body())
                return jsonify({'success': True, 'project': project})
            project = repo.cancel_project(project_id)
            return jsonify({'success': True, 'project': project})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling project {project_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# ROOMS & STAGES
# ============================================================================

@projects_bp.route('/api/projects/<project_id>/rooms', methods=['POST'])
@login_required
def create_room(project_id):
    """Add a room with its stages"""
    try:
        with get_db_session() as session:
            room = _repository(session).create_room(project_id, get_json_body())
            return jsonify({'success': True, 'room': room}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating room: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@projects_bp.route('/api/rooms/<room_id>', methods=['PUT', 'DELETE'])
@login_required
def handle_room(room_id):
    """Update or delete a room"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'PUT':
                room = repo.update_room(room_id, get_json_body())
                return jsonify({'success': True, 'room': room})
            repo.delete_room(room_id)
            return jsonify({'success': True})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling room {room_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@projects_bp.route('/api/stages/<stage_id>', methods=['PATCH'])
@login_required
def update_stage(stage_id):
    """Update a stage"""
    try:
        with get_db_session() as session:
            stage = _repository(session).update_stage(stage_id, get_json_body())
            return jsonify({'success': True, 'stage': stage})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating stage {stage_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
