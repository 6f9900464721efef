"""
FFE Specification API Routes Blueprint

Sections and items of a room's furniture, fixtures and equipment list:
- /api/rooms/<id>/ffe - Sections with items and room progress
- /api/rooms/<id>/ffe/sections - Create a section, or apply presets
- /api/rooms/<id>/ffe/items - Add items
- /api/ffe/items/<id> - Get or edit an item's spec
- /api/ffe/items/<id>/state, /spec-status - Workflow state changes
- /api/ffe/items/<id>/timeline, /quotes, /procurement - Item history and sourcing
- /api/ffe/items/<id>/components - Linked components
- /api/ffe/items/bulk-delete
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.errors import ServiceError
from services.ffe_repository import FFERepository
from validators import ValidationError
from app.utils.helpers import get_json_body, error_response

logger = logging.getLogger(__name__)

ffe_bp = Blueprint('ffe_bp', __name__)


def _repository(session):
    org_id, user_id = get_current_scope()
    return FFERepository(session, org_id, user_id)


# ============================================================================
# SECTIONS
# ============================================================================

@ffe_bp.route('/api/rooms/<room_id>/ffe', methods=['GET'])
@login_required
def get_room_ffe(room_id):
    try:
        with get_db_session() as session:
            result = _repository(session).list_sections(room_id)
            return jsonify({'success': True, **result})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading FFE for room {room_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/rooms/<room_id>/ffe/sections', methods=['POST'])
@login_required
def create_section(room_id):
    """Create one section, or seed presets when 'presets' is set"""
    try:
        data = get_json_body()
        with get_db_session() as session:
            repo = _repository(session)
            if data.get('presets'):
                names = data['presets'] if isinstance(data['presets'], list) else None
                sections = repo.apply_section_presets(room_id, names)
                return jsonify({'success': True, 'sections': sections}), 201
            section = repo.create_section(room_id, data.get('name'), data.get('order'))
            return jsonify({'success': True, 'section': section}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error creating section: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# ITEMS
# ============================================================================

@ffe_bp.route('/api/rooms/<room_id>/ffe/items', methods=['POST'])
@login_required
def add_items(room_id):
    try:
        with get_db_session() as session:
            result = _repository(session).add_items(room_id, get_json_body())
            return jsonify({'success': True, **result}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error adding items to room {room_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/<item_id>', methods=['GET', 'PATCH'])
@login_required
def handle_item(item_id):
    """Get an item or update its spec fields"""
    try:
        with get_db_session() as session:
            repo = _repository(session)
            if request.method == 'GET':
                return jsonify({'success': True, 'item': repo.get_item(item_id)})
            item = repo.update_item_spec(item_id, get_json_body())
            return jsonify({'success': True, 'item': item})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error handling item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/<item_id>/state', methods=['PATCH'])
@login_required
def update_item_state(item_id):
    try:
        data = get_json_body()
        with get_db_session() as session:
            item = _repository(session).update_item_state(
                item_id, data.get('state'), data.get('notes')
            )
            return jsonify({'success': True, 'item': item})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating state of item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/<item_id>/spec-status', methods=['PATCH'])
@login_required
def update_spec_status(item_id):
    try:
        with get_db_session() as session:
            item = _repository(session).set_spec_status(item_id, get_json_body().get('status'))
            return jsonify({'success': True, 'item': item})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error updating spec status of item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/bulk-delete', methods=['POST'])
@login_required
def bulk_delete_items():
    try:
        with get_db_session() as session:
            deleted = _repository(session).bulk_delete(get_json_body().get('item_ids') or [])
            return jsonify({'success': True, 'deleted': deleted})
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error deleting items: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# HISTORY & SOURCING
# ============================================================================

@ffe_bp.route('/api/ffe/items/<item_id>/timeline', methods=['GET'])
@login_required
def get_item_timeline(item_id):
    try:
        with get_db_session() as session:
            activities = _repository(session).get_timeline(item_id)
            return jsonify({'success': True, 'activities': activities})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading timeline for item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/<item_id>/quotes', methods=['GET'])
@login_required
def get_item_quotes(item_id):
    """Every supplier quote line received for an item"""
    try:
        with get_db_session() as session:
            quotes = _repository(session).status_sync.get_item_quotes(item_id)
            return jsonify({'success': True, 'quotes': quotes})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading quotes for item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/<item_id>/procurement', methods=['GET'])
@login_required
def get_item_procurement(item_id):
    try:
        with get_db_session() as session:
            summary = _repository(session).status_sync.get_item_procurement_summary(item_id)
            return jsonify({'success': True, 'procurement': summary})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error loading procurement for item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# COMPONENTS
# ============================================================================

@ffe_bp.route('/api/ffe/items/<item_id>/components', methods=['POST'])
@login_required
def add_component(item_id):
    try:
        with get_db_session() as session:
            component = _repository(session).add_component(item_id, get_json_body())
            return jsonify({'success': True, 'component': component}), 201
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error adding component to item {item_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@ffe_bp.route('/api/ffe/items/<item_id>/components/<component_id>', methods=['DELETE'])
@login_required
def remove_component(item_id, component_id):
    try:
        with get_db_session() as session:
            _repository(session).remove_component(item_id, component_id)
            return jsonify({'success': True})
    except ServiceError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error removing component {component_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
