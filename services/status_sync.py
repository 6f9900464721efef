"""
Procurement status synchronization for FFE items.

Procurement events (RFQ sent, quote received, invoice paid, order shipped...)
move an item's spec_status forward along the workflow. Manual statuses are
never overwritten and a status never moves backwards.
"""

import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy.orm import Session

from database.models import (
    FFEItem, ItemActivity, Project, RFQLineItem, SupplierQuote,
    SupplierQuoteLineItem, SupplierRFQ, ClientQuote, ClientQuoteLineItem,
    Order, OrderItem, ITEM_PAYMENT_STATUSES
)
from services.errors import NotFoundError
from validators import ValidationError

logger = logging.getLogger(__name__)

# Workflow order for status progression
PROCUREMENT_STATUS_ORDER = [
    'DRAFT',
    'SELECTED',
    'RFQ_SENT',
    'QUOTE_RECEIVED',
    'QUOTE_APPROVED',
    'BUDGET_SENT',
    'BUDGET_APPROVED',
    'INVOICED_TO_CLIENT',
    'CLIENT_PAID',
    'ORDERED',
    'SHIPPED',
    'RECEIVED',
    'DELIVERED',
    'INSTALLED',
    'CLOSED',
]

# Set by hand, never overwritten by a trigger
MANUAL_STATUSES = [
    'HIDDEN',
    'CLIENT_TO_ORDER',
    'CONTRACTOR_TO_ORDER',
    'NEED_SAMPLE',
    'ISSUE',
    'ARCHIVED',
]

SPEC_STATUSES = PROCUREMENT_STATUS_ORDER + MANUAL_STATUSES

STATUS_TRIGGERS = {
    'rfq_sent': 'RFQ_SENT',
    'quote_received': 'QUOTE_RECEIVED',
    'quote_accepted': 'QUOTE_APPROVED',
    'added_to_client_quote': 'QUOTE_APPROVED',
    'client_quote_sent': 'BUDGET_SENT',
    'client_approved': 'BUDGET_APPROVED',
    'invoice_sent': 'INVOICED_TO_CLIENT',
    'payment_received': 'CLIENT_PAID',
    'order_created': 'ORDERED',
    'order_shipped': 'SHIPPED',
    'order_received': 'RECEIVED',
    'order_delivered': 'DELIVERED',
    'installed': 'INSTALLED',
    'completed': 'CLOSED',
}


def is_status_ahead(status_a: str, status_b: str) -> bool:
    """True when status_a is further along the workflow than status_b."""
    if status_a not in PROCUREMENT_STATUS_ORDER or status_b not in PROCUREMENT_STATUS_ORDER:
        return False
    return PROCUREMENT_STATUS_ORDER.index(status_a) > PROCUREMENT_STATUS_ORDER.index(status_b)


def is_ordered_or_later(status: str) -> bool:
    if status not in PROCUREMENT_STATUS_ORDER:
        return False
    return PROCUREMENT_STATUS_ORDER.index(status) >= PROCUREMENT_STATUS_ORDER.index('ORDERED')


def log_item_activity(session: Session, item_id: str, activity_type: str, title: str,
                      description: str = None, actor_id: str = None, actor_name: str = None,
                      actor_type: str = None, metadata: Dict = None) -> ItemActivity:
    """Append an entry to an item's timeline."""
    activity = ItemActivity(
        item_id=item_id,
        activity_type=activity_type,
        title=title,
        description=description,
        actor_id=actor_id,
        actor_name=actor_name,
        actor_type=actor_type or ('user' if actor_id else 'system'),
        extra_data=metadata or {}
    )
    session.add(activity)
    return activity


class StatusSyncService:
    """Moves FFE items through the procurement workflow."""

    def __init__(self, session: Session, organization_id: str = None, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id

    def get_item(self, item_id: str) -> FFEItem:
        """Load an item within the organization scope."""
        query = self.session.query(FFEItem).filter(FFEItem.id == item_id)
        if self.organization_id:
            query = query.join(Project, FFEItem.project_id == Project.id).filter(
                Project.organization_id == self.organization_id
            )
        item = query.first()
        if not item:
            raise NotFoundError('Item not found')
        return item

    # =========================================================================
    # STATUS SYNC
    # =========================================================================

    def sync_item_status(self, item_id: str, trigger: str, actor_id: str = None,
                         actor_name: str = None, actor_type: str = None) -> Dict:
        """
        Apply a procurement trigger to one item.

        Returns {item_id, previous_status, new_status, changed, reason}.
        """
        actor_id = actor_id if actor_id is not None else self.user_id
        new_status = STATUS_TRIGGERS.get(trigger)
        if not new_status:
            return {
                'item_id': item_id,
                'previous_status': None,
                'new_status': None,
                'changed': False,
                'reason': 'Unknown trigger'
            }

        item = self.session.query(FFEItem).filter(FFEItem.id == item_id).first()
        if not item:
            return {
                'item_id': item_id,
                'previous_status': None,
                'new_status': new_status,
                'changed': False,
                'reason': 'Item not found'
            }

        current_status = item.spec_status or 'DRAFT'

        if current_status in MANUAL_STATUSES:
            return {
                'item_id': item_id,
                'previous_status': current_status,
                'new_status': new_status,
                'changed': False,
                'reason': f"Current status {current_status} is a manual status"
            }

        if not is_status_ahead(new_status, current_status):
            return {
                'item_id': item_id,
                'previous_status': current_status,
                'new_status': new_status,
                'changed': False,
                'reason': f"New status {new_status} is not ahead of current status {current_status}"
            }

        item.spec_status = new_status
        item.updated_at = datetime.utcnow()
        log_item_activity(
            self.session, item_id, 'STATUS_CHANGED', 'Status Updated',
            f"Status changed from {current_status} to {new_status} (trigger: {trigger})",
            actor_id=actor_id, actor_name=actor_name, actor_type=actor_type,
            metadata={'previous_status': current_status, 'new_status': new_status, 'trigger': trigger}
        )
        self.session.flush()
        logger.info(f"Item {item_id} status {current_status} -> {new_status} ({trigger})")

        return {
            'item_id': item_id,
            'previous_status': current_status,
            'new_status': new_status,
            'changed': True,
            'reason': None
        }

    def sync_items_status(self, item_ids: List[str], trigger: str, actor_id: str = None,
                          actor_name: str = None, actor_type: str = None) -> List[Dict]:
        """Apply a trigger to every item id, skipping blanks."""
        return [
            self.sync_item_status(item_id, trigger, actor_id, actor_name, actor_type)
            for item_id in item_ids if item_id
        ]

    def set_spec_status(self, item_id: str, status: str) -> Dict:
        """Manually set any spec status, including the manual ones."""
        if status not in SPEC_STATUSES:
            raise ValidationError(f"Invalid spec status: {status}", 'spec_status')
        item = self.get_item(item_id)
        previous = item.spec_status
        if previous != status:
            item.spec_status = status
            item.updated_at = datetime.utcnow()
            log_item_activity(
                self.session, item.id, 'STATUS_CHANGED', 'Status Updated',
                f"Status manually changed from {previous} to {status}",
                actor_id=self.user_id,
                metadata={'previous_status': previous, 'new_status': status, 'manual': True}
            )
            self.session.flush()
            logger.info(f"Updated item {item.id} spec status to {status}")
        return item.to_dict()

    def update_item_payment_status(self, item_id: str, payment_status: str,
                                   paid_amount: float = None) -> None:
        if payment_status not in ITEM_PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {payment_status}", 'payment_status')
        item = self.session.query(FFEItem).filter(FFEItem.id == item_id).first()
        if not item:
            return
        item.payment_status = payment_status
        if payment_status in ('DEPOSIT_PAID', 'FULLY_PAID'):
            item.paid_at = item.paid_at or datetime.utcnow()
        else:
            item.paid_at = None
        if paid_amount is not None:
            item.paid_amount = paid_amount

    # =========================================================================
    # QUOTE ACCEPTANCE & COMPARISON
    # =========================================================================

    def accept_quote_for_item(self, item_id: str, quote_line_item_id: str,
                              markup_percent: float = None, log_activity: bool = True) -> Dict:
        """
        Accept one supplier quote line for an item.

        Clears any other accepted line, copies the price and supplier onto the
        item and moves it to QUOTE_APPROVED. An item has at most one accepted
        line at a time.
        """
        item = self.get_item(item_id)
        line = self.session.query(SupplierQuoteLineItem).filter(
            SupplierQuoteLineItem.id == quote_line_item_id
        ).first()
        if not line:
            raise NotFoundError('Quote line item not found')

        supplier_rfq = line.supplier_quote.supplier_rfq
        now = datetime.utcnow()

        for other in self._item_quote_lines(item.id):
            if other.id != line.id and other.is_accepted:
                other.is_accepted = False
                other.accepted_at = None

        line.is_accepted = True
        line.accepted_at = now
        line.accepted_by_id = self.user_id
        line.ffe_item_id = item.id
        line.approved_markup_percent = markup_percent

        item.accepted_quote_line_item_id = line.id
        item.trade_price = line.unit_price
        item.supplier_id = supplier_rfq.supplier_id
        item.supplier_name = supplier_rfq.display_name
        item.spec_status = 'QUOTE_APPROVED'
        if markup_percent is not None:
            item.markup_percent = markup_percent
        item.updated_at = now

        if log_activity:
            log_item_activity(
                self.session, item.id, 'QUOTE_ACCEPTED', 'Quote Accepted',
                f"Quote accepted at ${line.unit_price:.2f} per unit",
                actor_id=self.user_id,
                metadata={
                    'supplier_quote_line_item_id': line.id,
                    'unit_price': line.unit_price,
                    'supplier_name': supplier_rfq.display_name
                }
            )
        self.session.flush()
        logger.info(f"Accepted quote line {line.id} for item {item.id}")
        return item.to_dict()

    def _item_quote_lines(self, item_id: str) -> List[SupplierQuoteLineItem]:
        direct = self.session.query(SupplierQuoteLineItem).filter(
            SupplierQuoteLineItem.ffe_item_id == item_id
        ).order_by(SupplierQuoteLineItem.created_at.desc()).all()

        via_rfq = self.session.query(SupplierQuoteLineItem).join(
            RFQLineItem, SupplierQuoteLineItem.rfq_line_item_id == RFQLineItem.id
        ).filter(
            RFQLineItem.ffe_item_id == item_id,
            SupplierQuoteLineItem.ffe_item_id == None  # noqa: E711
        ).order_by(SupplierQuoteLineItem.created_at.desc()).all()

        return direct + via_rfq

    def preferred_quote_line(self, item: FFEItem):
        """The accepted quote line of an item, else its most recent latest-version line."""
        if item.accepted_quote_line_item_id:
            accepted = self.session.query(SupplierQuoteLineItem).filter(
                SupplierQuoteLineItem.id == item.accepted_quote_line_item_id
            ).first()
            if accepted:
                return accepted
        for line in self._item_quote_lines(item.id):
            if line.is_latest_version:
                return line
        return None

    def get_item_quotes(self, item_id: str) -> List[Dict]:
        """All quote lines for an item with price comparison helpers."""
        item = self.get_item(item_id)
        lines = self._item_quote_lines(item.id)
        if not lines:
            return []

        lowest_price = min(line.unit_price or 0 for line in lines)
        quotes = []
        for line in lines:
            quote = line.supplier_quote
            supplier_rfq = quote.supplier_rfq
            unit_price = line.unit_price or 0
            quotes.append({
                'quote_line_item_id': line.id,
                'supplier_quote_id': quote.id,
                'supplier_name': supplier_rfq.display_name or 'Unknown Supplier',
                'supplier_email': supplier_rfq.email,
                'unit_price': unit_price,
                'quantity': line.quantity,
                'total_price': line.total_price,
                'currency': line.currency,
                'lead_time': line.lead_time,
                'availability': line.availability,
                'submitted_at': quote.submitted_at.isoformat() if quote.submitted_at else None,
                'is_accepted': line.is_accepted,
                'accepted_at': line.accepted_at.isoformat() if line.accepted_at else None,
                'is_latest_version': line.is_latest_version,
                'quote_version': line.quote_version,
                'price_difference': unit_price - lowest_price,
                'percent_difference': ((unit_price - lowest_price) / lowest_price * 100) if lowest_price > 0 else 0,
                'is_lowest_price': unit_price == lowest_price
            })
        return quotes

    def link_quote_version(self, new_line: SupplierQuoteLineItem, item_id: str) -> SupplierQuoteLineItem:
        """
        Chain a new quote line to the previous latest line from the same supplier.
        """
        supplier_rfq = new_line.supplier_quote.supplier_rfq

        query = self.session.query(SupplierQuoteLineItem).join(
            SupplierQuote, SupplierQuoteLineItem.supplier_quote_id == SupplierQuote.id
        ).join(
            SupplierRFQ, SupplierQuote.supplier_rfq_id == SupplierRFQ.id
        ).filter(
            SupplierQuoteLineItem.ffe_item_id == item_id,
            SupplierQuoteLineItem.is_latest_version == True,  # noqa: E712
            SupplierQuoteLineItem.id != new_line.id
        )
        if supplier_rfq.supplier_id:
            query = query.filter(SupplierRFQ.supplier_id == supplier_rfq.supplier_id)
        else:
            query = query.filter(SupplierRFQ.vendor_name == supplier_rfq.vendor_name)
        existing = query.first()

        new_line.ffe_item_id = item_id
        new_line.is_latest_version = True
        if existing:
            existing.is_latest_version = False
            new_line.previous_version_id = existing.id
            new_line.quote_version = (existing.quote_version or 1) + 1
        else:
            new_line.quote_version = 1
        self.session.flush()
        return new_line

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def get_item_procurement_summary(self, item_id: str) -> Dict:
        """Where an item stands in each procurement stage."""
        item = self.get_item(item_id)

        rfq_lines = self.session.query(RFQLineItem).filter(RFQLineItem.ffe_item_id == item.id).all()
        rfqs_sent = [li for li in rfq_lines if li.rfq.status != 'DRAFT']
        rfq_line_ids = [li.id for li in rfq_lines]
        quotes_received = 0
        if rfq_line_ids:
            quotes_received = self.session.query(SupplierQuoteLineItem).filter(
                SupplierQuoteLineItem.rfq_line_item_id.in_(rfq_line_ids)
            ).count()

        all_quotes = self.get_item_quotes(item.id)
        accepted = None
        if item.accepted_quote_line_item_id:
            accepted = self.session.query(SupplierQuoteLineItem).filter(
                SupplierQuoteLineItem.id == item.accepted_quote_line_item_id
            ).first()

        if not all_quotes:
            quote_status = 'no_quotes'
        elif accepted:
            quote_status = 'accepted'
        else:
            quote_status = 'pending_review'

        client_line = self.session.query(ClientQuoteLineItem).join(
            ClientQuote, ClientQuoteLineItem.client_quote_id == ClientQuote.id
        ).filter(
            ClientQuoteLineItem.ffe_item_id == item.id
        ).order_by(ClientQuoteLineItem.created_at.desc()).first()
        client_quote = client_line.client_quote if client_line else None

        order_item = self.session.query(OrderItem).join(
            Order, OrderItem.order_id == Order.id
        ).filter(
            OrderItem.ffe_item_id == item.id
        ).order_by(OrderItem.created_at.desc()).first()
        order = order_item.order if order_item else None

        activities = self.session.query(ItemActivity).filter(
            ItemActivity.item_id == item.id
        ).order_by(ItemActivity.created_at.desc()).limit(20).all()

        if not rfq_lines:
            rfq_status = 'not_requested'
        elif rfqs_sent:
            rfq_status = 'sent'
        else:
            rfq_status = 'draft'

        return {
            'item': {
                'id': item.id,
                'name': item.name,
                'sku': item.sku,
                'spec_status': item.spec_status,
                'payment_status': item.payment_status
            },
            'rfq': {
                'status': rfq_status,
                'rfq_count': len(rfq_lines),
                'rfqs_sent': len(rfqs_sent),
                'quotes_received': quotes_received
            },
            'quote': {
                'status': quote_status,
                'accepted_quote': {
                    'id': accepted.id,
                    'supplier_name': accepted.supplier_quote.supplier_rfq.display_name,
                    'unit_price': accepted.unit_price,
                    'accepted_at': accepted.accepted_at.isoformat() if accepted.accepted_at else None
                } if accepted else None,
                'alternative_quotes': [q for q in all_quotes if not q['is_accepted']],
                'total_quotes': len(all_quotes)
            },
            'budget': {
                'status': client_quote.status if client_quote else 'not_quoted',
                'client_quote_id': client_quote.id if client_quote else None,
                'client_quote_number': client_quote.quote_number if client_quote else None,
                'client_price': client_line.client_total_price if client_line else None,
                'sent_at': client_quote.sent_to_client_at.isoformat()
                if client_quote and client_quote.sent_to_client_at else None
            },
            'invoice': {
                'status': item.payment_status,
                'paid_amount': item.paid_amount,
                'paid_at': item.paid_at.isoformat() if item.paid_at else None
            },
            'order': {
                'status': order.status if order else 'not_ordered',
                'order_id': order.id if order else None,
                'order_number': order.order_number if order else None,
                'ordered_at': order.ordered_at.isoformat() if order and order.ordered_at else None,
                'expected_delivery': order.expected_delivery.isoformat()
                if order and order.expected_delivery else None,
                'tracking_number': order.tracking_number if order else None
            },
            'activities': [a.to_dict() for a in activities]
        }

