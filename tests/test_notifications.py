"""
Tests for notifications, outgoing email and the event log
"""
import smtplib
from unittest.mock import MagicMock, patch

import pytest
from services.event_logger import EventLogger, get_event_logger
from services.notification_service import NotificationService


@pytest.fixture
def notifications(db_session, org):
    return NotificationService(db_session, org.id)


@pytest.mark.unit
class TestNotifications:
    """Tests for in-app notifications"""

    def test_team_and_personal_notifications(self, notifications, owner, db_session):
        """Test that a user sees their own and team-wide notifications"""
        notifications.create_notification('Quote received', 'Maison Home quoted', 'quote')
        notifications.create_notification('Review drawings', 'A-101 is stale', user_id=owner.id,
                                          priority='high')
        notifications.create_notification('Someone else', 'Not for the owner', user_id='other-user')
        db_session.commit()

        mine = notifications.get_notifications(user_id=owner.id)
        assert sorted(n['title'] for n in mine) == ['Quote received', 'Review drawings']
        assert notifications.get_unread_count(user_id=owner.id) == 2
        assert len(notifications.get_notifications()) == 3

    def test_mark_read(self, notifications, owner, db_session):
        """Test marking one and then all notifications read"""
        first = notifications.create_notification('One', 'First')
        notifications.create_notification('Two', 'Second')
        db_session.commit()

        assert notifications.mark_as_read(first['id']) is True
        assert notifications.get_unread_count() == 1
        assert notifications.get_notifications(unread_only=True)[0]['title'] == 'Two'

        assert notifications.mark_all_as_read(user_id=owner.id) == 1
        assert notifications.get_unread_count() == 0

    def test_mark_unknown_read(self, notifications):
        """Test that an unknown notification is reported missing"""
        assert notifications.mark_as_read('missing') is False


@pytest.mark.unit
class TestEmail:
    """Tests for outgoing email"""

    def test_disabled_without_smtp_host(self, notifications):
        """Test that email is skipped when no SMTP host is set"""
        assert notifications.email_enabled is False
        assert notifications.send_email('alice@example.com', 'Hello', 'Body') is False

    @patch('services.notification_service.smtplib.SMTP')
    def test_send_with_attachment(self, mock_smtp, db_session, org):
        """Test that a configured service logs in and sends the message"""
        server = MagicMock()
        mock_smtp.return_value.__enter__.return_value = server
        service = NotificationService(db_session, org.id, {
            'SMTP_HOST': 'smtp.example.com', 'SMTP_USER': 'studio', 'SMTP_PASSWORD': 'secret'
        })

        sent = service.send_portal_email('alice@example.com', 'Invoice INV-2025-0001', 'Hello Alice',
                                         'https://studio.example.com/client-portal/abc', 'View invoice',
                                         attachments=[('INV-2025-0001.pdf', b'%PDF-1.4')])
        assert sent is True
        mock_smtp.assert_called_once_with('smtp.example.com', 587)
        server.login.assert_called_once_with('studio', 'secret')
        message = server.send_message.call_args.args[0]
        assert message['To'] == 'alice@example.com'
        assert message['Subject'] == 'Invoice INV-2025-0001'

    @patch('services.notification_service.smtplib.SMTP')
    def test_smtp_failure_returns_false(self, mock_smtp, db_session, org):
        """Test that SMTP errors are reported as not delivered"""
        mock_smtp.side_effect = smtplib.SMTPException('relay refused')
        service = NotificationService(db_session, org.id, {'SMTP_HOST': 'smtp.example.com'})
        assert service.send_email('alice@example.com', 'Hello', 'Body') is False

    def test_html_carries_link(self):
        """Test that the HTML body holds the portal button"""
        html = NotificationService.render_html('Quote', 'Line one\nLine two', 'https://x.example.com', 'Open')
        assert '<p>Line two</p>' in html
        assert 'href="https://x.example.com"' in html


@pytest.mark.unit
class TestEventLogger:
    """Tests for the event log"""

    def test_log_and_history(self, db_session, org, owner):
        """Test that entity history lists events newest first"""
        events = get_event_logger(db_session, org.id, owner.id)
        events.log_create('order', 'order-1', 'Order PO-1 created')
        events.log_status_change('order', 'order-1', 'ORDERED', 'SHIPPED')
        events.log('order', 'order-2', 'ORDER_PLACED')
        db_session.commit()

        history = events.get_entity_history('order', 'order-1')
        assert [e['event_type'] for e in history] == ['STATUS_CHANGED', 'CREATED']
        assert history[0]['metadata'] == {'old_status': 'ORDERED', 'new_status': 'SHIPPED'}
        assert history[0]['actor_type'] == 'user'
        assert history[0]['actor_id'] == owner.id

    def test_recent_events_filter(self, db_session, org):
        """Test filtering recent events by type"""
        events = EventLogger(db_session, org.id)
        events.log('rfq', 'rfq-1', 'RFQ_SENT', 'RFQ sent')
        events.log_update('rfq', 'rfq-1', {'title': 'New title'})
        db_session.commit()

        recent = events.get_recent_events(event_types=['RFQ_SENT'])
        assert [e['description'] for e in recent] == ['RFQ sent']
        assert recent[0]['actor_type'] == 'system'

    def test_portal_actor(self, db_session, org):
        """Test that portal events record the external actor type"""
        event = get_event_logger(db_session, org.id, 'supplier-1', actor_type='supplier').log(
            'order', 'order-1', 'ORDER_CONFIRMED'
        )
        assert event['actor_type'] == 'supplier'
        assert event['actor_id'] == 'supplier-1'


@pytest.mark.integration
class TestDashboardEndpoints:
    """Integration tests for activity and notification routes"""

    def test_notifications_over_api(self, auth_client):
        """Test creating, listing and reading notifications"""
        created = auth_client.post('/api/notifications', json={'title': 'Site visit', 'message': 'Tuesday 9am'})
        assert created.status_code == 201
        notification_id = created.get_json()['notification']['id']

        listing = auth_client.get('/api/notifications').get_json()
        assert listing['unread_count'] == 1

        assert auth_client.post(f'/api/notifications/{notification_id}/read').status_code == 200
        assert auth_client.get('/api/notifications?unread_only=true').get_json()['notifications'] == []
        assert auth_client.post('/api/notifications/missing/read').status_code == 404

    def test_recent_activity(self, auth_client, project_setup):
        """Test that project creation shows in recent activity"""
        events = auth_client.get('/api/activity/recent').get_json()['events']
        assert any(e['entity_type'] == 'project' and e['event_type'] == 'CREATED' for e in events)

        history = auth_client.get(f"/api/activity/project/{project_setup['project_id']}").get_json()
        assert history['events']

    def test_bad_hours_returns_400(self, auth_client):
        """Test that non-numeric hours fail"""
        assert auth_client.get('/api/activity/recent?hours=soon').status_code == 400
