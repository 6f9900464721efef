"""
Event Logger Service - Organization-wide audit trail.

Records who did what to which project, RFQ, order, invoice, transmittal or
approval. Item-level history lives in ItemActivity (see status_sync).
"""

import logging
from typing import Dict, Optional, List
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

# Event types for different operations
EVENT_TYPES = {
    # CRUD Operations
    'CREATED': 'Entity was created',
    'UPDATED': 'Entity was updated',
    'DELETED': 'Entity was deleted',
    'STATUS_CHANGED': 'Status was changed',

    # Approvals
    'APPROVAL_SENT': 'Design version was sent to the client',
    'CLIENT_APPROVED': 'Client approved the design',
    'CLIENT_REVISION_REQUESTED': 'Client requested a revision',

    # RFQ / supplier quotes
    'RFQ_SENT': 'RFQ was sent to suppliers',
    'RFQ_DECLINED': 'Supplier declined the RFQ',
    'QUOTE_SUBMITTED': 'Supplier submitted a quote',
    'QUOTE_APPROVED': 'Supplier quote was approved',
    'QUOTE_DECLINED': 'Supplier quote was declined',
    'QUOTE_REVISION_REQUESTED': 'Revision was requested from supplier',

    # Client invoices and payments
    'INVOICE_SENT': 'Invoice was sent to client',
    'INVOICE_RESPONSE': 'Client responded to invoice',
    'PAYMENT_INITIATED': 'Card payment was initiated',
    'PAYMENT_RECEIVED': 'Payment was received',
    'PAYMENT_FAILED': 'Payment failed',

    # Orders
    'ORDER_PLACED': 'Order was placed with supplier',
    'ORDER_CONFIRMED': 'Supplier confirmed the order',
    'ORDER_SHIPPED': 'Order was shipped',
    'ORDER_DELIVERED': 'Order was delivered',
    'ORDER_CANCELLED': 'Order was cancelled',
    'TRACKING_UPDATED': 'Tracking information was updated',
    'PAYMENT_RECORDED': 'Supplier payment was recorded',
    'ETA_UPDATED': 'Expected delivery was updated',

    # Drawings
    'REVISION_ISSUED': 'Drawing revision was issued',
    'TRANSMITTAL_SENT': 'Transmittal was sent',

    # Communication
    'EMAIL_SENT': 'Email was sent',

    # User events
    'USER_LOGIN': 'User logged in',
    'USER_LOGOUT': 'User logged out',
}

# Entity types
ENTITY_TYPES = [
    'project', 'room', 'approval', 'client', 'supplier', 'rfq', 'supplier_quote',
    'client_quote', 'payment', 'order', 'drawing', 'transmittal', 'user'
]


class EventLogger:
    """Service for logging system events to the database."""

    def __init__(self, session, organization_id: str, actor_type: str = 'system', actor_id: str = None):
        """
        Initialize the event logger.

        Args:
            session: SQLAlchemy database session
            organization_id: The organization ID for multi-tenancy
            actor_type: Type of actor (user, system, supplier, client)
            actor_id: ID of the actor (user ID if user, None if system)
        """
        self.session = session
        self.organization_id = organization_id
        self.actor_type = actor_type
        self.actor_id = actor_id

    def log(self, entity_type: str, entity_id: str, event_type: str,
            description: str = None, metadata: Dict = None) -> Optional[Dict]:
        """
        Log an event to the database.

        Args:
            entity_type: Type of entity (project, rfq, order, etc.)
            entity_id: ID of the entity
            event_type: Type of event (CREATED, STATUS_CHANGED, etc.)
            description: Human-readable description of the event
            metadata: Additional data about the event

        Returns:
            The created event log entry as a dict, or None on failure
        """
        try:
            from database.models import EventLog

            event = EventLog(
                organization_id=self.organization_id,
                timestamp=datetime.utcnow(),
                actor_type=self.actor_type,
                actor_id=self.actor_id,
                entity_type=entity_type,
                entity_id=entity_id,
                event_type=event_type,
                description=description or EVENT_TYPES.get(event_type, event_type),
                extra_data=metadata or {}
            )

            self.session.add(event)
            self.session.flush()

            logger.debug(f"Event logged: {event_type} on {entity_type}:{entity_id}")
            return event.to_dict()

        except Exception as e:
            logger.error(f"Failed to log event: {e}")
            return None

    def log_create(self, entity_type: str, entity_id: str, description: str = None,
                   entity_data: Dict = None) -> Optional[Dict]:
        """Log a creation event."""
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='CREATED',
            description=description or f"New {entity_type.replace('_', ' ')} created",
            metadata=entity_data
        )

    def log_update(self, entity_type: str, entity_id: str, changes: Dict = None) -> Optional[Dict]:
        """Log an update event with change tracking."""
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='UPDATED',
            description=f"{entity_type.replace('_', ' ').capitalize()} was updated",
            metadata={'changes': changes} if changes else None
        )

    def log_status_change(self, entity_type: str, entity_id: str,
                          old_status: str, new_status: str) -> Optional[Dict]:
        """Log a status change event."""
        return self.log(
            entity_type=entity_type,
            entity_id=entity_id,
            event_type='STATUS_CHANGED',
            description=f"{entity_type.replace('_', ' ').capitalize()} status changed from '{old_status}' to '{new_status}'",
            metadata={'old_status': old_status, 'new_status': new_status}
        )

    def get_entity_history(self, entity_type: str, entity_id: str,
                           limit: int = 50) -> List[Dict]:
        """Get the event history for a specific entity."""
        from database.models import EventLog

        events = self.session.query(EventLog).filter(
            EventLog.organization_id == self.organization_id,
            EventLog.entity_type == entity_type,
            EventLog.entity_id == entity_id
        ).order_by(EventLog.timestamp.desc()).limit(limit).all()

        return [e.to_dict() for e in events]

    def get_recent_events(self, hours: int = 24, event_types: List[str] = None,
                          entity_types: List[str] = None, limit: int = 100) -> List[Dict]:
        """Get recent events with optional filtering."""
        from database.models import EventLog

        since = datetime.utcnow() - timedelta(hours=hours)

        query = self.session.query(EventLog).filter(
            EventLog.organization_id == self.organization_id,
            EventLog.timestamp >= since
        )

        if event_types:
            query = query.filter(EventLog.event_type.in_(event_types))

        if entity_types:
            query = query.filter(EventLog.entity_type.in_(entity_types))

        events = query.order_by(EventLog.timestamp.desc()).limit(limit).all()

        return [e.to_dict() for e in events]


def get_event_logger(session, organization_id: str, user_id: str = None,
                     actor_type: str = None) -> EventLogger:
    """
    Factory function to create an EventLogger instance.

    Args:
        session: SQLAlchemy database session
        organization_id: Organization ID
        user_id: Optional user ID if the actor is a user
        actor_type: Override for portal actors (supplier, client)

    Returns:
        EventLogger instance
    """
    actor_type = actor_type or ('user' if user_id else 'system')
    return EventLogger(session, organization_id, actor_type, user_id)
