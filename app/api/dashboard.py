"""
Dashboard API Routes Blueprint

Team notifications and the organization activity feed:
- /api/notifications - List notifications (with unread count) or create one
- /api/notifications/<id>/read - Mark one as read
- /api/notifications/read-all - Mark all as read
- /api/activity/recent - Recent events across the organization
- /api/activity/<entity_type>/<entity_id> - History of one entity
"""

import logging
from flask import Blueprint, request, jsonify

from auth import login_required, get_current_scope
from database.connection import get_db_session
from services.event_logger import EventLogger
from services.notification_service import get_notification_service
from app.utils.helpers import get_json_body, arg_bool

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint('dashboard_bp', __name__)


# ============================================================================
# ACTIVITY
# ============================================================================

@dashboard_bp.route('/api/activity/recent', methods=['GET'])
@login_required
def get_recent_activity():
    """Get recent activity from the event log."""
    try:
        org_id, _ = get_current_scope()
        hours = int(request.args.get('hours', 24))
        limit = int(request.args.get('limit', 50))
        event_types = request.args.get('event_types')

        with get_db_session() as session:
            events = EventLogger(session, org_id).get_recent_events(
                hours=hours,
                event_types=event_types.split(',') if event_types else None,
                limit=limit
            )
            return jsonify({'success': True, 'events': events})
    except ValueError:
        return jsonify({'success': False, 'error': 'hours and limit must be integers'}), 400
    except Exception as e:
        logger.error(f"Error getting recent activity: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/activity/<entity_type>/<entity_id>', methods=['GET'])
@login_required
def get_entity_history(entity_type, entity_id):
    try:
        org_id, _ = get_current_scope()
        with get_db_session() as session:
            events = EventLogger(session, org_id).get_entity_history(entity_type, entity_id)
            return jsonify({'success': True, 'events': events})
    except Exception as e:
        logger.error(f"Error getting history for {entity_type}:{entity_id}: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


# ============================================================================
# NOTIFICATIONS
# ============================================================================

@dashboard_bp.route('/api/notifications', methods=['GET', 'POST'])
@login_required
def handle_notifications():
    """Get notifications or create a new notification."""
    try:
        org_id, user_id = get_current_scope()
        with get_db_session() as session:
            service = get_notification_service(session, org_id)

            if request.method == 'GET':
                notifications = service.get_notifications(
                    user_id=user_id,
                    unread_only=arg_bool('unread_only'),
                    limit=int(request.args.get('limit', 50))
                )
                return jsonify({
                    'success': True,
                    'notifications': notifications,
                    'unread_count': service.get_unread_count(user_id=user_id)
                })

            data = get_json_body()
            notification = service.create_notification(
                title=data.get('title', 'Notification'),
                message=data.get('message', ''),
                notification_type=data.get('type', 'info'),
                priority=data.get('priority', 'normal'),
                user_id=data.get('user_id'),
                entity_type=data.get('entity_type'),
                entity_id=data.get('entity_id'),
                metadata=data.get('metadata')
            )
            if notification:
                return jsonify({'success': True, 'notification': notification}), 201
            return jsonify({'success': False, 'error': 'Failed to create notification'}), 400

    except Exception as e:
        logger.error(f"Error handling notifications: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/notifications/<notification_id>/read', methods=['POST'])
@login_required
def mark_notification_read(notification_id):
    """Mark a notification as read."""
    try:
        org_id, _ = get_current_scope()
        with get_db_session() as session:
            if not get_notification_service(session, org_id).mark_as_read(notification_id):
                return jsonify({'success': False, 'error': 'Notification not found'}), 404
            return jsonify({'success': True})
    except Exception as e:
        logger.error(f"Error marking notification read: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500


@dashboard_bp.route('/api/notifications/read-all', methods=['POST'])
@login_required
def mark_all_notifications_read():
    try:
        org_id, user_id = get_current_scope()
        with get_db_session() as session:
            count = get_notification_service(session, org_id).mark_all_as_read(user_id=user_id)
            return jsonify({'success': True, 'count': count})
    except Exception as e:
        logger.error(f"Error marking notifications read: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500
