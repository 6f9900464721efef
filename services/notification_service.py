"""
Notification Service - Manages in-app notifications and outgoing email.

This service handles:
- Creating notifications for team members
- Marking notifications as read
- Sending email (RFQs, invoices, purchase orders, transmittals) over SMTP
"""

import logging
import smtplib
from email.mime.application import MIMEApplication
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime
from typing import Dict, List, Optional, Tuple
import os

logger = logging.getLogger(__name__)

BRAND_COLOR = '#556B2F'


class NotificationService:
    """Service for managing notifications."""

    def __init__(self, session, organization_id: str, config: Dict = None):
        self.session = session
        self.organization_id = organization_id
        config = config or {}

        def setting(key, default=''):
            return config.get(key) or os.environ.get(key, default)

        self.smtp_host = setting('SMTP_HOST')
        self.smtp_port = int(setting('SMTP_PORT', 587))
        self.smtp_user = setting('SMTP_USER')
        self.smtp_password = setting('SMTP_PASSWORD')
        self.from_email = setting('FROM_EMAIL', 'projects@studioflow.app')
        self.email_enabled = bool(self.smtp_host)

    def create_notification(self, title: str, message: str,
                            notification_type: str = 'info',
                            priority: str = 'normal',
                            user_id: str = None,
                            entity_type: str = None,
                            entity_id: str = None,
                            metadata: Dict = None) -> Optional[Dict]:
        """
        Create a new notification.

        Args:
            title: Notification title
            message: Notification message
            notification_type: Type (info, quote, payment, order, etc.)
            priority: Priority level (low, normal, high, urgent)
            user_id: Specific user to notify (None = whole team)
            entity_type: Related entity type
            entity_id: Related entity ID
            metadata: Additional data

        Returns:
            Created notification dict or None on failure
        """
        try:
            from database.models import Notification

            notification = Notification(
                organization_id=self.organization_id,
                user_id=user_id,
                title=title,
                message=message,
                notification_type=notification_type,
                priority=priority,
                entity_type=entity_type,
                entity_id=entity_id,
                extra_data=metadata or {},
                is_read=False,
                sent_email=False
            )

            self.session.add(notification)
            self.session.flush()

            logger.info(f"Created notification: {title}")
            return notification.to_dict()

        except Exception as e:
            logger.error(f"Error creating notification: {e}")
            return None

    def get_notifications(self, user_id: str = None, unread_only: bool = False,
                          limit: int = 50) -> List[Dict]:
        """Get notifications for a user (including team-wide ones)."""
        from database.models import Notification

        query = self.session.query(Notification).filter(
            Notification.organization_id == self.organization_id
        )

        if user_id:
            query = query.filter(
                (Notification.user_id == user_id) |
                (Notification.user_id == None)  # noqa: E711
            )

        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712

        notifications = query.order_by(
            Notification.created_at.desc()
        ).limit(limit).all()

        return [n.to_dict() for n in notifications]

    def get_unread_count(self, user_id: str = None) -> int:
        """Get count of unread notifications."""
        from database.models import Notification
        from sqlalchemy import func

        query = self.session.query(func.count(Notification.id)).filter(
            Notification.organization_id == self.organization_id,
            Notification.is_read == False  # noqa: E712
        )

        if user_id:
            query = query.filter(
                (Notification.user_id == user_id) |
                (Notification.user_id == None)  # noqa: E711
            )

        return query.scalar() or 0

    def mark_as_read(self, notification_id: str) -> bool:
        """Mark a notification as read."""
        from database.models import Notification

        notification = self.session.query(Notification).filter(
            Notification.id == notification_id,
            Notification.organization_id == self.organization_id
        ).first()

        if not notification:
            return False

        notification.is_read = True
        notification.read_at = datetime.utcnow()
        self.session.flush()
        return True

    def mark_all_as_read(self, user_id: str = None) -> int:
        """Mark all notifications as read for a user."""
        from database.models import Notification

        query = self.session.query(Notification).filter(
            Notification.organization_id == self.organization_id,
            Notification.is_read == False  # noqa: E712
        )

        if user_id:
            query = query.filter(
                (Notification.user_id == user_id) |
                (Notification.user_id == None)  # noqa: E711
            )

        count = 0
        for notification in query.all():
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            count += 1

        self.session.flush()
        return count

    # =========================================================================
    # EMAIL
    # =========================================================================

    def send_email(self, to_email: str, subject: str, text: str,
                   html: str = None, attachments: List[Tuple[str, bytes]] = None) -> bool:
        """
        Send an email over SMTP.

        Returns False without raising when SMTP is not configured or the
        send fails; callers record the outcome.
        """
        if not to_email:
            return False

        if not self.email_enabled:
            logger.info(f"SMTP not configured, skipping email to {to_email}: {subject}")
            return False

        try:
            msg = MIMEMultipart('mixed')
            msg['Subject'] = subject
            msg['From'] = self.from_email
            msg['To'] = to_email

            body = MIMEMultipart('alternative')
            body.attach(MIMEText(text, 'plain'))
            body.attach(MIMEText(html or self.render_html(subject, text), 'html'))
            msg.attach(body)

            for filename, content in attachments or []:
                part = MIMEApplication(content, Name=filename)
                part['Content-Disposition'] = f'attachment; filename="{filename}"'
                msg.attach(part)

            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)

            logger.info(f"Sent email to {to_email}: {subject}")
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error sending email to {to_email}: {e}")
            return False

    @staticmethod
    def render_html(title: str, text: str, link: str = None, link_label: str = 'Open') -> str:
        """Minimal branded HTML body"""
        paragraphs = ''.join(f'<p>{line}</p>' for line in text.split('\n') if line.strip())
        button = ''
        if link:
            button = (
                f'<p><a href="{link}" style="background: {BRAND_COLOR}; color: white; '
                f'padding: 10px 18px; border-radius: 6px; text-decoration: none;">{link_label}</a></p>'
            )
        return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: {BRAND_COLOR}; color: white; padding: 20px; border-radius: 8px 8px 0 0;">
            <h2 style="margin: 0;">{title}</h2>
        </div>
        <div style="background: #f9f9f9; padding: 20px; border: 1px solid #ddd;">
            {paragraphs}
            {button}
        </div>
    </div>
</body>
</html>
"""

    def send_portal_email(self, to_email: str, subject: str, intro: str,
                          link: str, link_label: str,
                          attachments: List[Tuple[str, bytes]] = None) -> bool:
        """Send an email carrying a portal link (RFQ, invoice, purchase order)."""
        text = f"{intro}\n\n{link_label}: {link}"
        html = self.render_html(subject, intro, link, link_label)
        return self.send_email(to_email, subject, text, html, attachments)


def get_notification_service(session, organization_id: str, config: Dict = None) -> NotificationService:
    """Factory function to create a NotificationService instance."""
    if config is None:
        from flask import current_app, has_app_context
        if has_app_context():
            config = current_app.config
    return NotificationService(session, organization_id, config)
