"""
Supplier Quote Review - the team's side of supplier quotes.

Lists the quotes on a project with mismatch analysis against the RFQ,
approves or declines them, accepts single lines and records quotes that
arrived outside the supplier portal.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from database.models import (
    RFQ, RFQLineItem, SupplierRFQ, SupplierQuote, SupplierQuoteLineItem,
    Supplier, FFEItem, Project
)
from security import generate_access_token
from services.errors import NotFoundError
from services.event_logger import get_event_logger
from services.numbering import next_yearly_number
from services.settings import get_setting
from services.status_sync import StatusSyncService, log_item_activity
from validators import ValidationError, to_float

logger = logging.getLogger(__name__)

MANUAL_QUOTE_PREFIX = '[Manual Quotes]'
REVIEW_ACTIONS = {
    'approve': 'ACCEPTED',
    'decline': 'REJECTED',
    'request_revision': 'REVISION_REQUESTED',
}
REVIEW_EVENTS = {
    'approve': 'QUOTE_APPROVED',
    'decline': 'QUOTE_DECLINED',
    'request_revision': 'QUOTE_REVISION_REQUESTED',
}
REVIEWABLE_STATUSES = ['SUBMITTED', 'ACCEPTED', 'REJECTED', 'REVISION_REQUESTED']


def _lower(value: Optional[str]) -> str:
    return (value or '').strip().lower()


def match_confidence(line: SupplierQuoteLineItem, rfq_line: Optional[RFQLineItem]) -> str:
    """How well a quoted line matches the requested RFQ line."""
    if not rfq_line:
        return 'none'
    quoted_name = _lower(line.item_name)
    requested_name = _lower(rfq_line.item_name)
    quoted_sku = _lower(line.supplier_sku or line.supplier_model_number)
    requested_sku = _lower(rfq_line.ffe_item.sku) if rfq_line.ffe_item else ''

    if quoted_name == requested_name or (quoted_sku and requested_sku and quoted_sku == requested_sku):
        return 'high'
    if quoted_name and requested_name and (quoted_name in requested_name or requested_name in quoted_name):
        return 'medium'
    return 'low'


def format_lead_time(weeks: int) -> str:
    return f"{weeks} week{'s' if weeks > 1 else ''}"


class SupplierQuoteService:
    """Review workflow for supplier quotes on a project."""

    def __init__(self, session: Session, organization_id: str, user_id: str = None,
                 user_name: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.user_name = user_name or 'Team Member'
        self.events = get_event_logger(session, organization_id, user_id)
        self.status_sync = StatusSyncService(session, organization_id, user_id)

    def _get_project(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == self.organization_id
        ).first()
        if not project:
            raise NotFoundError('Project not found')
        return project

    def _get_quote(self, project_id: str, quote_id: str) -> SupplierQuote:
        quote = self.session.query(SupplierQuote).join(
            SupplierRFQ, SupplierQuote.supplier_rfq_id == SupplierRFQ.id
        ).join(
            RFQ, SupplierRFQ.rfq_id == RFQ.id
        ).filter(
            SupplierQuote.id == quote_id,
            RFQ.project_id == project_id,
            RFQ.organization_id == self.organization_id
        ).first()
        if not quote:
            raise NotFoundError('Quote not found')
        return quote

    # =========================================================================
    # LISTING & MISMATCH ANALYSIS
    # =========================================================================

    def _line_details(self, quote: SupplierQuote, line_tolerance: float) -> Tuple[List[Dict], List[Dict]]:
        details = []
        mismatches = []
        for line in quote.line_items:
            rfq_line = line.rfq_line_item
            reasons = []
            if rfq_line and line.quantity != rfq_line.quantity:
                reasons.append(f"Quantity: requested {rfq_line.quantity}, quoted {line.quantity}")
            if line.alternate_product:
                reasons.append('Alternate product suggested' +
                               (f": {line.alternate_notes}" if line.alternate_notes else ''))
            if rfq_line and rfq_line.target_unit_price and line.unit_price:
                target = rfq_line.target_unit_price
                if line.unit_price > target * (1 + line_tolerance / 100):
                    diff = (line.unit_price - target) / target * 100
                    reasons.append(
                        f"Price {diff:.0f}% above target (${target:.2f} target vs ${line.unit_price:.2f} quoted)"
                    )
            if reasons:
                mismatches.append({
                    'item_name': rfq_line.item_name if rfq_line else (line.item_name or 'Unknown Item'),
                    'reasons': reasons
                })

            data = line.to_dict()
            data.update({
                'item_name': line.item_name or (rfq_line.item_name if rfq_line else 'Unknown Item'),
                'requested_quantity': rfq_line.quantity if rfq_line else 0,
                'quoted_quantity': line.quantity,
                'target_unit_price': rfq_line.target_unit_price if rfq_line else None,
                'has_mismatch': bool(reasons),
                'mismatch_reasons': reasons,
                'match_confidence': match_confidence(line, rfq_line)
            })
            details.append(data)
        return details, mismatches

    def _enhanced_mismatches(self, quote: SupplierQuote, rfq: RFQ, price_tolerance: float) -> List[Dict]:
        if rfq.title.startswith(MANUAL_QUOTE_PREFIX):
            return []

        mismatches = []
        quoted_ids = {li.rfq_line_item_id for li in quote.line_items if li.rfq_line_item_id}
        for rfq_line in rfq.line_items:
            if rfq_line.id not in quoted_ids:
                mismatches.append({
                    'item_name': rfq_line.item_name,
                    'type': 'missing',
                    'severity': 'error',
                    'reasons': ["This item was requested but NOT included in the supplier's quote"],
                    'quantity': rfq_line.quantity,
                    'unit_price': rfq_line.target_unit_price
                })

        for line in quote.line_items:
            rfq_line = line.rfq_line_item
            if not rfq_line:
                mismatches.append({
                    'item_name': line.item_name or 'Unknown Item',
                    'type': 'extra',
                    'severity': 'warning',
                    'reasons': ['Quoted but not part of the request'],
                    'quantity': line.quantity,
                    'unit_price': line.unit_price,
                    'total_price': line.total_price
                })
                continue
            if line.quantity != rfq_line.quantity:
                mismatches.append({
                    'item_name': rfq_line.item_name,
                    'type': 'quantity',
                    'severity': 'warning',
                    'reasons': [f"Requested {rfq_line.quantity}, quoted {line.quantity}"],
                    'quantity': line.quantity,
                    'unit_price': line.unit_price,
                    'total_price': line.total_price
                })
            target = rfq_line.target_unit_price
            if target and line.unit_price and line.unit_price > target * (1 + price_tolerance / 100):
                diff = (line.unit_price - target) / target * 100
                mismatches.append({
                    'item_name': rfq_line.item_name,
                    'type': 'price',
                    'severity': 'warning',
                    'reasons': [
                        f"Target price: ${target:.2f}",
                        f"Quoted price: ${line.unit_price:.2f}",
                        f"{diff:.0f}% above target budget"
                    ],
                    'quantity': line.quantity,
                    'unit_price': line.unit_price,
                    'total_price': line.total_price
                })
        return mismatches

    def list_project_quotes(self, project_id: str, status: str = None) -> Dict:
        """
        All supplier quotes on a project, newest first, with mismatch
        analysis and stats.
        """
        project = self._get_project(project_id)
        line_tolerance = float(get_setting('LINE_PRICE_TOLERANCE', 10.0))
        price_tolerance = float(get_setting('MISMATCH_PRICE_TOLERANCE', 15.0))

        query = self.session.query(SupplierQuote).join(
            SupplierRFQ, SupplierQuote.supplier_rfq_id == SupplierRFQ.id
        ).join(
            RFQ, SupplierRFQ.rfq_id == RFQ.id
        ).filter(RFQ.project_id == project.id)
        if status:
            query = query.filter(SupplierQuote.status == status)
        else:
            query = query.filter(SupplierQuote.status.in_(REVIEWABLE_STATUSES))

        quotes = []
        for quote in query.all():
            supplier_rfq = quote.supplier_rfq
            rfq = supplier_rfq.rfq
            details, line_mismatches = self._line_details(quote, line_tolerance)
            enhanced = self._enhanced_mismatches(quote, rfq, price_tolerance)
            all_mismatches = enhanced or line_mismatches

            max_weeks = max([li.lead_time_weeks or 0 for li in quote.line_items] or [0])
            lead_time = quote.estimated_lead_time or (format_lead_time(max_weeks) if max_weeks else '')

            data = quote.to_dict(include_lines=False)
            data.update({
                'estimated_lead_time': lead_time,
                'supplier': supplier_rfq.supplier.to_dict() if supplier_rfq.supplier else {
                    'id': None,
                    'name': supplier_rfq.vendor_name or supplier_rfq.vendor_email or 'Unknown Supplier',
                    'email': supplier_rfq.vendor_email
                },
                'rfq': {'id': rfq.id, 'rfq_number': rfq.rfq_number, 'title': rfq.title},
                'line_items': details,
                'line_items_count': len(details),
                'has_mismatches': bool(all_mismatches),
                'mismatches': all_mismatches
            })
            quotes.append(data)

        quotes.sort(key=lambda q: q['submitted_at'] or '', reverse=True)
        stats = {
            'total': len(quotes),
            'pending': len([q for q in quotes if q['status'] == 'PENDING']),
            'submitted': len([q for q in quotes if q['status'] == 'SUBMITTED']),
            'accepted': len([q for q in quotes if q['status'] == 'ACCEPTED']),
            'rejected': len([q for q in quotes if q['status'] == 'REJECTED']),
            'with_mismatches': len([q for q in quotes if q['has_mismatches']])
        }
        return {'quotes': quotes, 'stats': stats}

    # =========================================================================
    # REVIEW
    # =========================================================================

    def review_quote(self, project_id: str, quote_id: str, action: str,
                     internal_notes: str = None) -> Dict:
        """
        Approve, decline or request a revision of a supplier quote.

        Approving pushes trade price and RRP (trade plus the supplier's
        markup) onto every linked FFE item. Declining sends the items back to
        SELECTED so they can be quoted again.
        """
        if action not in REVIEW_ACTIONS:
            raise ValidationError('Invalid action. Must be approve, decline, or request_revision', 'action')

        quote = self._get_quote(project_id, quote_id)
        supplier_rfq = quote.supplier_rfq
        now = datetime.utcnow()
        previous = quote.status

        quote.status = REVIEW_ACTIONS[action]
        quote.reviewed_at = now
        quote.reviewed_by_id = self.user_id
        if internal_notes:
            quote.internal_notes = internal_notes

        if action == 'approve':
            quote.accepted_at = now
            supplier_rfq.response_status = 'SUBMITTED'
            self._apply_approved_prices(quote)
        elif action == 'decline':
            supplier_rfq.response_status = 'DECLINED'
            for line in quote.line_items:
                item_id = line.rfq_line_item.ffe_item_id if line.rfq_line_item else line.ffe_item_id
                if not item_id:
                    continue
                item = self.session.query(FFEItem).filter(FFEItem.id == item_id).first()
                if not item:
                    continue
                item.spec_status = 'SELECTED'
                log_item_activity(
                    self.session, item.id, 'QUOTE_DECLINED', 'Quote Declined',
                    f"Quote from {supplier_rfq.display_name or 'Supplier'} was declined",
                    actor_id=self.user_id, actor_name=self.user_name,
                    metadata={'quote_id': quote.id}
                )

        self.session.flush()
        self.events.log('rfq', supplier_rfq.rfq_id, REVIEW_EVENTS[action],
                        f"Quote {quote.quote_number} from {supplier_rfq.display_name}: {quote.status}",
                        {'quote_id': quote.id, 'old_status': previous, 'new_status': quote.status})
        logger.info(f"Reviewed supplier quote {quote.id}: {action}")
        return {'id': quote.id, 'status': quote.status}

    def _apply_approved_prices(self, quote: SupplierQuote):
        supplier_rfq = quote.supplier_rfq
        supplier = supplier_rfq.supplier
        supplier_name = supplier_rfq.display_name or 'Supplier'
        markup = supplier.markup_percent if supplier and supplier.markup_percent else \
            float(get_setting('DEFAULT_MARKUP_PERCENT', 25.0))

        for line in quote.line_items:
            if not line.rfq_line_item or not line.rfq_line_item.ffe_item_id or not line.unit_price:
                continue
            item = line.rfq_line_item.ffe_item
            trade_price = line.unit_price
            rrp = trade_price * (1 + markup / 100)

            # Supersedes any line accepted earlier for this item
            self.status_sync.accept_quote_for_item(item.id, line.id, markup, log_activity=False)
            item.rrp = rrp
            item.currency = line.currency or 'CAD'
            if line.lead_time:
                item.lead_time = line.lead_time
            item.supplier_name = supplier_name

            log_item_activity(
                self.session, item.id, 'PRICE_UPDATED', 'Quote Approved',
                f"Quote from {supplier_name} approved: Trade ${trade_price:,.2f}, "
                f"RRP ${rrp:,.2f} (+{markup:g}% markup)",
                actor_id=self.user_id, actor_name=self.user_name,
                metadata={'quote_id': quote.id, 'trade_price': trade_price, 'rrp': rrp,
                          'markup_percent': markup, 'supplier_id': supplier_rfq.supplier_id}
            )

    def update_quote_lines(self, project_id: str, quote_id: str, lines: List[Dict]) -> Dict:
        """Correct quoted prices or availability; line and quote totals are recomputed."""
        if not isinstance(lines, list) or not lines:
            raise ValidationError('Line items array is required', 'line_items')
        quote = self._get_quote(project_id, quote_id)
        by_id = {li.id: li for li in quote.line_items}

        for entry in lines:
            line = by_id.get(entry.get('id'))
            if not line:
                raise NotFoundError(f"Quote line {entry.get('id')} not found")
            if 'unit_price' in entry:
                line.unit_price = to_float(entry['unit_price'], 'unit_price') or 0.0
            if 'quantity' in entry:
                line.quantity = int(entry['quantity'])
            for key in ['availability', 'lead_time', 'lead_time_weeks', 'notes']:
                if key in entry:
                    setattr(line, key, entry[key])
            line.total_price = (line.unit_price or 0) * (line.quantity or 1)

        quote.subtotal = sum(li.total_price or 0 for li in quote.line_items)
        quote.total_amount = quote.subtotal + (quote.shipping_cost or 0)
        self.session.flush()
        logger.info(f"Updated lines on supplier quote {quote.id}")
        return quote.to_dict()

    def delete_declined_quote(self, project_id: str, quote_id: str) -> bool:
        quote = self._get_quote(project_id, quote_id)
        if quote.status != 'REJECTED':
            raise ValidationError('Only declined quotes can be deleted')
        self.session.delete(quote)
        self.session.flush()
        logger.info(f"Deleted declined supplier quote {quote_id}")
        return True

    def accept_line_for_item(self, item_id: str, quote_line_item_id: str,
                             markup_percent: float = None) -> Dict:
        return self.status_sync.accept_quote_for_item(
            item_id, quote_line_item_id, to_float(markup_percent, 'markup_percent')
        )

    # =========================================================================
    # MANUAL QUOTES
    # =========================================================================

    def create_manual_quote(self, project_id: str, data: Dict) -> Dict:
        """
        Record a quote received by email or phone.

        Creates a "[Manual Quotes]" RFQ, a SupplierRFQ marked SUBMITTED and
        the SupplierQuote with one line per item, then treats the items as
        having received a quote.
        """
        project = self._get_project(project_id)
        entries = data.get('items') or []
        if not entries:
            raise ValidationError('At least one item is required', 'items')

        supplier = None
        if data.get('supplier_id'):
            supplier = self.session.query(Supplier).filter(
                Supplier.id == data['supplier_id'],
                Supplier.organization_id == self.organization_id
            ).first()
            if not supplier:
                raise NotFoundError('Supplier not found')
        vendor_name = supplier.name if supplier else (data.get('supplier_name') or '').strip()
        if not vendor_name:
            raise ValidationError('Supplier or supplier name is required', 'supplier_id')

        item_ids = [e.get('item_id') for e in entries]
        items = self.session.query(FFEItem).filter(
            FFEItem.id.in_(item_ids),
            FFEItem.project_id == project.id
        ).all()
        by_id = {i.id: i for i in items}
        missing = [i for i in item_ids if i not in by_id]
        if missing:
            raise NotFoundError('One or more items not found in this project', details={'item_ids': missing})

        now = datetime.utcnow()
        currency = data.get('currency') or (supplier.currency if supplier else None) or 'CAD'
        rfq = RFQ(
            organization_id=self.organization_id,
            project_id=project.id,
            rfq_number=next_yearly_number(self.session, RFQ.rfq_number, 'RFQ',
                                          RFQ.organization_id, self.organization_id),
            title=f"{MANUAL_QUOTE_PREFIX} {vendor_name}",
            description=data.get('notes'),
            status='FULLY_QUOTED',
            sent_at=now,
            created_by_id=self.user_id
        )
        self.session.add(rfq)
        self.session.flush()

        supplier_rfq = SupplierRFQ(
            rfq_id=rfq.id,
            supplier_id=supplier.id if supplier else None,
            vendor_name=None if supplier else vendor_name,
            vendor_email=None if supplier else data.get('supplier_email'),
            access_token=generate_access_token(),
            response_status='SUBMITTED',
            sent_at=now,
            responded_at=now
        )
        quote = SupplierQuote(
            supplier_rfq=supplier_rfq,
            quote_number=data.get('quote_number') or f"SQ-{int(now.timestamp() * 1000)}",
            version=1,
            status='SUBMITTED',
            currency=currency,
            shipping_cost=to_float(data.get('shipping_cost'), 'shipping_cost'),
            quote_document_url=data.get('quote_document_url'),
            supplier_notes=data.get('notes'),
            submitted_at=now
        )
        self.session.add_all([supplier_rfq, quote])
        self.session.flush()

        subtotal = 0.0
        for order, entry in enumerate(entries):
            item = by_id[entry['item_id']]
            unit_price = to_float(entry.get('unit_price'), 'unit_price')
            if unit_price is None or unit_price < 0:
                raise ValidationError(f"A unit price is required for {item.name}", 'unit_price')
            quantity = int(entry.get('quantity') or item.quantity or 1)

            rfq_line = RFQLineItem(
                rfq_id=rfq.id, ffe_item_id=item.id, item_name=item.name,
                item_description=item.description, quantity=quantity,
                unit_type=item.unit_type, target_unit_price=item.trade_price, order=order
            )
            self.session.add(rfq_line)
            self.session.flush()

            line = SupplierQuoteLineItem(
                supplier_quote=quote,
                rfq_line_item_id=rfq_line.id,
                item_name=item.name,
                unit_price=unit_price,
                quantity=quantity,
                total_price=unit_price * quantity,
                currency=currency,
                lead_time=entry.get('lead_time'),
                lead_time_weeks=entry.get('lead_time_weeks'),
                supplier_sku=entry.get('sku')
            )
            self.session.add(line)
            self.session.flush()
            subtotal += line.total_price

            item.trade_price = unit_price
            if line.lead_time:
                item.lead_time = line.lead_time
            self.status_sync.sync_item_status(item.id, 'quote_received', actor_id=self.user_id,
                                              actor_name=self.user_name)
            self.status_sync.link_quote_version(line, item.id)
            log_item_activity(
                self.session, item.id, 'QUOTE_RECEIVED', 'Quote Recorded',
                f"{vendor_name} quoted ${unit_price:,.2f} per unit (entered manually)",
                actor_id=self.user_id, actor_name=self.user_name,
                metadata={'quote_id': quote.id, 'unit_price': unit_price}
            )

        quote.subtotal = subtotal
        quote.total_amount = subtotal + (quote.shipping_cost or 0)
        self.session.flush()

        self.events.log_create('rfq', rfq.id, f"Manual quote from {vendor_name} recorded",
                               {'quote_id': quote.id, 'amount': quote.total_amount})
        logger.info(f"Created manual supplier quote {quote.id} for project {project.id}")
        return {'rfq': rfq.to_dict(include_lines=False), 'quote': quote.to_dict()}
