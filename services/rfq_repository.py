"""
RFQ Repository - requests for quotation and the token-based supplier portal.

The team builds an RFQ from FFE items and sends it to suppliers. Each
recipient gets a SupplierRFQ with its own access token; suppliers view,
decline or submit quotes through the portal without an account.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Dict, Optional
from sqlalchemy.orm import Session

from database.models import (
    RFQ, RFQLineItem, SupplierRFQ, SupplierAccessLog, SupplierQuote,
    SupplierQuoteLineItem, Supplier, FFEItem, Project, Organization
)
from security import generate_access_token
from services.errors import NotFoundError, TokenExpiredError
from services.event_logger import get_event_logger
from services.notification_service import get_notification_service
from services.numbering import next_yearly_number
from services.settings import get_setting, portal_url
from services.status_sync import StatusSyncService, log_item_activity
from validators import ValidationError, parse_datetime, to_float

logger = logging.getLogger(__name__)


def _log_access(session: Session, supplier_rfq: SupplierRFQ, action: str,
                ip_address: str = None, user_agent: str = None, metadata: Dict = None):
    session.add(SupplierAccessLog(
        supplier_rfq_id=supplier_rfq.id,
        action=action,
        ip_address=ip_address or 'unknown',
        user_agent=(user_agent or 'unknown')[:500],
        extra_data=metadata or {}
    ))


class RFQRepository:
    """Team-side RFQ operations."""

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.events = get_event_logger(session, organization_id, user_id)
        self.status_sync = StatusSyncService(session, organization_id, user_id)

    def get_model(self, rfq_id: str) -> RFQ:
        rfq = self.session.query(RFQ).filter(
            RFQ.id == rfq_id,
            RFQ.organization_id == self.organization_id
        ).first()
        if not rfq:
            raise NotFoundError('RFQ not found')
        return rfq

    def _get_project(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == self.organization_id
        ).first()
        if not project:
            raise NotFoundError('Project not found')
        return project

    def list_rfqs(self, project_id: str = None, status: str = None) -> List[Dict]:
        query = self.session.query(RFQ).filter(RFQ.organization_id == self.organization_id)
        if project_id:
            query = query.filter(RFQ.project_id == project_id)
        if status:
            query = query.filter(RFQ.status == status)
        rfqs = query.order_by(RFQ.created_at.desc()).all()
        return [r.to_dict(include_lines=False) for r in rfqs]

    def get_rfq(self, rfq_id: str) -> Dict:
        rfq = self.get_model(rfq_id)
        data = rfq.to_dict()
        data['suppliers'] = [s.to_dict() for s in rfq.supplier_rfqs]
        return data

    def create_from_items(self, project_id: str, data: Dict) -> Dict:
        """
        Create a DRAFT RFQ whose lines copy name, description, quantity and
        trade price (as the target price) from the given FFE items.
        """
        project = self._get_project(project_id)
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError('Title is required', 'title')
        item_ids = data.get('item_ids') or []
        if not item_ids:
            raise ValidationError('At least one item is required', 'item_ids')

        items = self.session.query(FFEItem).filter(
            FFEItem.id.in_(item_ids),
            FFEItem.project_id == project.id
        ).all()
        if len(items) != len(set(item_ids)):
            raise NotFoundError('One or more items not found in this project')
        by_id = {i.id: i for i in items}

        rfq = RFQ(
            organization_id=self.organization_id,
            project_id=project.id,
            rfq_number=next_yearly_number(self.session, RFQ.rfq_number, 'RFQ',
                                          RFQ.organization_id, self.organization_id),
            title=title,
            description=data.get('description'),
            status='DRAFT',
            response_deadline=parse_datetime(data.get('response_deadline'), 'response_deadline'),
            created_by_id=self.user_id
        )
        self.session.add(rfq)
        self.session.flush()

        for order, item_id in enumerate(dict.fromkeys(item_ids)):
            item = by_id[item_id]
            self.session.add(RFQLineItem(
                rfq_id=rfq.id,
                ffe_item_id=item.id,
                item_name=item.name,
                item_description=item.description,
                quantity=item.quantity or 1,
                unit_type=item.unit_type,
                specifications={'brand': item.brand, 'sku': item.sku} if (item.brand or item.sku) else {},
                target_unit_price=item.trade_price,
                order=order
            ))
        self.session.flush()

        self.events.log_create('rfq', rfq.id, f"RFQ {rfq.rfq_number} created with {len(items)} item(s)")
        logger.info(f"Created RFQ: {rfq.id}")
        return rfq.to_dict()

    def send_rfq(self, rfq_id: str, supplier_ids: List[str] = None,
                 one_time_vendors: List[Dict] = None, message: str = None) -> Dict:
        """
        Send the RFQ to active suppliers and/or one-time vendors.

        Each recipient succeeds or fails on its own. Returns
        {success, sent, failed, results}.
        """
        rfq = self.get_model(rfq_id)
        if not rfq.line_items:
            raise ValidationError('RFQ must have at least one line item')
        if not supplier_ids and not one_time_vendors:
            raise ValidationError('Select at least one supplier or vendor')

        notifier = get_notification_service(self.session, self.organization_id)
        token_days = int(get_setting('SUPPLIER_TOKEN_DAYS', 30))
        results = []

        for supplier_id in supplier_ids or []:
            supplier = self.session.query(Supplier).filter(
                Supplier.id == supplier_id,
                Supplier.organization_id == self.organization_id,
                Supplier.is_active == True  # noqa: E712
            ).first()
            if not supplier:
                results.append({'supplier_id': supplier_id, 'email': '', 'success': False,
                                'error': 'Supplier not found or inactive'})
                continue
            if not supplier.email:
                results.append({'supplier_id': supplier_id, 'email': '', 'success': False,
                                'error': 'Supplier has no email address'})
                continue

            supplier_rfq = self.session.query(SupplierRFQ).filter(
                SupplierRFQ.rfq_id == rfq.id,
                SupplierRFQ.supplier_id == supplier.id
            ).first()
            if not supplier_rfq:
                supplier_rfq = SupplierRFQ(rfq_id=rfq.id, supplier_id=supplier.id,
                                           access_token=generate_access_token())
                self.session.add(supplier_rfq)
            results.append(self._dispatch(rfq, supplier_rfq, supplier.email,
                                          supplier.contact_name or supplier.name,
                                          message, notifier, token_days, supplier.id))

        for vendor in one_time_vendors or []:
            email = (vendor.get('email') or '').strip()
            if not email:
                results.append({'email': '', 'success': False, 'error': 'Vendor email is required'})
                continue
            supplier_rfq = SupplierRFQ(
                rfq_id=rfq.id,
                vendor_name=vendor.get('name') or vendor.get('company'),
                vendor_email=email,
                access_token=generate_access_token()
            )
            self.session.add(supplier_rfq)
            results.append(self._dispatch(rfq, supplier_rfq, email, vendor.get('name'),
                                          message, notifier, token_days))

        sent = len([r for r in results if r['success']])
        if sent:
            previous = rfq.status
            rfq.status = 'SENT'
            rfq.sent_at = datetime.utcnow()
            self.status_sync.sync_items_status(
                [li.ffe_item_id for li in rfq.line_items], 'rfq_sent'
            )
            self.events.log('rfq', rfq.id, 'RFQ_SENT', f"RFQ sent to {sent} supplier(s)",
                            {'previous_status': previous, 'results': results})
        self.session.flush()
        logger.info(f"Sent RFQ {rfq.id}: {sent} sent, {len(results) - sent} failed")

        return {
            'success': sent > 0,
            'sent': sent,
            'failed': len(results) - sent,
            'results': results
        }

    def _dispatch(self, rfq: RFQ, supplier_rfq: SupplierRFQ, email: str, recipient_name: Optional[str],
                  message: Optional[str], notifier, token_days: int, supplier_id: str = None) -> Dict:
        now = datetime.utcnow()
        supplier_rfq.access_token = generate_access_token()
        supplier_rfq.token_expires_at = rfq.response_deadline or now + timedelta(days=token_days)
        supplier_rfq.sent_at = now
        if supplier_rfq.response_status in (None, 'EXPIRED'):
            supplier_rfq.response_status = 'PENDING'
        self.session.flush()

        link = portal_url(f"supplier-portal/{supplier_rfq.access_token}")
        intro = (
            f"Hello {recipient_name or 'there'},\n"
            f"We would like a quote for {len(rfq.line_items)} item(s) on {rfq.project.name}."
        )
        if message:
            intro += f"\n{message}"
        if rfq.response_deadline:
            intro += f"\nPlease respond by {rfq.response_deadline.strftime('%B %d, %Y')}."

        delivered = notifier.send_portal_email(
            email, f"Request for Quote: {rfq.title} - {rfq.project.name}",
            intro, link, 'View and submit quote'
        )
        if notifier.email_enabled and not delivered:
            return {'supplier_id': supplier_id, 'email': email, 'success': False,
                    'error': 'Email delivery failed'}

        _log_access(self.session, supplier_rfq, 'EMAIL_SENT',
                    metadata={'sent_by': self.user_id, 'email_delivered': delivered})
        return {'supplier_id': supplier_id, 'email': email, 'success': True,
                'supplier_rfq_id': supplier_rfq.id, 'portal_url': link,
                'email_delivered': delivered}

    def cancel_rfq(self, rfq_id: str) -> Dict:
        rfq = self.get_model(rfq_id)
        previous = rfq.status
        rfq.status = 'CANCELLED'
        self.session.flush()
        self.events.log_status_change('rfq', rfq.id, previous, 'CANCELLED')
        logger.info(f"Cancelled RFQ: {rfq.id}")
        return rfq.to_dict()


class SupplierPortalService:
    """Public supplier portal, authenticated by the SupplierRFQ access token."""

    def __init__(self, session: Session, ip_address: str = None, user_agent: str = None):
        self.session = session
        self.ip_address = ip_address
        self.user_agent = user_agent

    def _get_by_token(self, token: str) -> SupplierRFQ:
        supplier_rfq = self.session.query(SupplierRFQ).filter(
            SupplierRFQ.access_token == token
        ).first()
        if not supplier_rfq:
            raise NotFoundError('Invalid or expired link')
        if supplier_rfq.token_expires_at and datetime.utcnow() > supplier_rfq.token_expires_at:
            raise TokenExpiredError('This link has expired', status_code=410)
        return supplier_rfq

    def _events(self, supplier_rfq: SupplierRFQ):
        return get_event_logger(self.session, supplier_rfq.rfq.organization_id,
                                supplier_rfq.supplier_id, actor_type='supplier')

    def view(self, token: str) -> Dict:
        """RFQ details, line items and previous quotes. The first view marks it VIEWED."""
        supplier_rfq = self._get_by_token(token)
        rfq = supplier_rfq.rfq
        now = datetime.utcnow()

        if not supplier_rfq.viewed_at:
            supplier_rfq.viewed_at = now
            for line in rfq.line_items:
                if line.ffe_item_id:
                    log_item_activity(
                        self.session, line.ffe_item_id, 'QUOTE_VIEWED', 'Quote Request Viewed',
                        f"{supplier_rfq.display_name} opened the quote request",
                        actor_name=supplier_rfq.display_name, actor_type='supplier',
                        metadata={'supplier_rfq_id': supplier_rfq.id}
                    )
        if supplier_rfq.response_status == 'PENDING':
            supplier_rfq.response_status = 'VIEWED'
        _log_access(self.session, supplier_rfq, 'VIEW', self.ip_address, self.user_agent)
        self.session.flush()

        organization = self.session.query(Organization).filter(
            Organization.id == rfq.organization_id
        ).first()
        project = rfq.project
        return {
            'rfq': {
                'id': rfq.id,
                'rfq_number': rfq.rfq_number,
                'title': rfq.title,
                'description': rfq.description,
                'response_deadline': rfq.response_deadline.isoformat() if rfq.response_deadline else None,
                'project': {
                    'id': project.id,
                    'name': project.name,
                    'address': project.address,
                    'client': {'name': project.client.name} if project.client else None
                },
                'line_items': [li.to_dict() for li in rfq.line_items]
            },
            'organization': {'name': organization.name} if organization else None,
            'supplier': {
                'name': supplier_rfq.display_name,
                'email': supplier_rfq.email
            },
            'response_status': supplier_rfq.response_status,
            'existing_quote': supplier_rfq.quotes[0].to_dict() if supplier_rfq.quotes else None,
            'previous_quotes': [q.to_dict(include_lines=False) for q in supplier_rfq.quotes]
        }

    def decline(self, token: str, reason: str = None) -> Dict:
        supplier_rfq = self._get_by_token(token)
        supplier_rfq.response_status = 'DECLINED'
        supplier_rfq.responded_at = datetime.utcnow()
        supplier_rfq.decline_reason = reason
        _log_access(self.session, supplier_rfq, 'DECLINE', self.ip_address, self.user_agent,
                    {'reason': reason})
        self._events(supplier_rfq).log(
            'rfq', supplier_rfq.rfq_id, 'RFQ_DECLINED',
            f"{supplier_rfq.display_name} declined to quote" + (f": {reason}" if reason else ''),
            {'supplier_rfq_id': supplier_rfq.id}
        )
        self.session.flush()
        logger.info(f"Supplier declined RFQ {supplier_rfq.rfq_id}")
        return {'success': True, 'action': 'declined'}

    def submit_quote(self, token: str, data: Dict) -> Dict:
        """
        Record a supplier quote (version = previous + 1) and push prices and
        lead times onto the linked FFE items.
        """
        supplier_rfq = self._get_by_token(token)
        line_items = data.get('line_items') or []
        if not line_items:
            raise ValidationError('Line items are required', 'line_items')

        rfq = supplier_rfq.rfq
        rfq_lines = {li.id: li for li in rfq.line_items}
        previous = self.session.query(SupplierQuote).filter(
            SupplierQuote.supplier_rfq_id == supplier_rfq.id
        ).order_by(SupplierQuote.version.desc()).first()
        version = (previous.version if previous else 0) + 1
        now = datetime.utcnow()
        default_lead_time = data.get('lead_time')

        quote = SupplierQuote(
            supplier_rfq_id=supplier_rfq.id,
            quote_number=data.get('quote_number') or f"SQ-{int(now.timestamp() * 1000)}",
            version=version,
            status='SUBMITTED',
            currency=data.get('currency') or 'CAD',
            valid_until=parse_datetime(data.get('valid_until'), 'valid_until'),
            payment_terms=data.get('payment_terms'),
            shipping_terms=data.get('shipping_terms'),
            shipping_cost=to_float(data.get('shipping_cost'), 'shipping_cost'),
            deposit_required=to_float(data.get('deposit_required'), 'deposit_required'),
            deposit_percent=to_float(data.get('deposit_percent'), 'deposit_percent'),
            estimated_lead_time=data.get('estimated_lead_time'),
            supplier_notes=data.get('supplier_notes'),
            quote_document_url=data.get('quote_document_url'),
            submitted_at=now
        )
        self.session.add(quote)
        self.session.flush()

        subtotal = 0.0
        lines = []
        for entry in line_items:
            rfq_line = rfq_lines.get(entry.get('rfq_line_item_id'))
            unit_price = to_float(entry.get('unit_price'), 'unit_price') or 0.0
            quantity = int(entry.get('quantity') or (rfq_line.quantity if rfq_line else 1))
            total_price = unit_price * quantity
            subtotal += total_price
            line = SupplierQuoteLineItem(
                supplier_quote=quote,
                rfq_line_item_id=rfq_line.id if rfq_line else None,
                item_name=entry.get('item_name') or (rfq_line.item_name if rfq_line else None),
                unit_price=unit_price,
                quantity=quantity,
                total_price=total_price,
                currency=quote.currency,
                availability=entry.get('availability'),
                lead_time_weeks=entry.get('lead_time_weeks'),
                lead_time=entry.get('lead_time') or default_lead_time,
                supplier_sku=entry.get('supplier_sku'),
                supplier_model_number=entry.get('supplier_model_number'),
                alternate_product=bool(entry.get('alternate_product')),
                alternate_notes=entry.get('alternate_notes'),
                notes=entry.get('notes')
            )
            self.session.add(line)
            lines.append((line, rfq_line))
        self.session.flush()

        total_amount = to_float(data.get('total_amount'), 'total_amount')
        quote.subtotal = subtotal
        quote.total_amount = total_amount if total_amount else subtotal

        supplier_rfq.response_status = 'SUBMITTED'
        supplier_rfq.responded_at = now
        _log_access(self.session, supplier_rfq, 'SUBMIT_QUOTE', self.ip_address, self.user_agent,
                    {'quote_id': quote.id, 'version': version})

        status_sync = StatusSyncService(self.session)
        supplier_name = supplier_rfq.display_name
        for line, rfq_line in lines:
            if not rfq_line or not rfq_line.ffe_item_id:
                continue
            item = rfq_line.ffe_item
            if line.unit_price:
                item.trade_price = line.unit_price
            if line.lead_time:
                item.lead_time = line.lead_time
            status_sync.sync_item_status(item.id, 'quote_received', actor_name=supplier_name,
                                         actor_type='supplier')
            status_sync.link_quote_version(line, item.id)
            price_text = f"${line.unit_price:,.2f} per unit" if line.unit_price else 'price in document'
            lead_text = f", Lead: {line.lead_time}" if line.lead_time else ''
            log_item_activity(
                self.session, item.id, 'QUOTE_RECEIVED', 'Quote Received',
                f"{supplier_name} quoted {price_text}{lead_text}",
                actor_name=supplier_name, actor_type='supplier',
                metadata={'quote_id': quote.id, 'unit_price': line.unit_price,
                          'supplier_rfq_id': supplier_rfq.id, 'version': version}
            )

        still_pending = [s for s in rfq.supplier_rfqs if s.response_status == 'PENDING']
        rfq.status = 'PARTIALLY_QUOTED' if still_pending else 'FULLY_QUOTED'

        self._events(supplier_rfq).log(
            'rfq', rfq.id, 'QUOTE_SUBMITTED', f"Quote received from {supplier_name} (v{version})",
            {'quote_id': quote.id, 'amount': quote.total_amount}
        )
        get_notification_service(self.session, rfq.organization_id).create_notification(
            title='Quote received',
            message=f"{supplier_name} submitted a quote for {rfq.rfq_number} ({rfq.project.name})",
            notification_type='quote',
            entity_type='rfq',
            entity_id=rfq.id,
            metadata={'quote_id': quote.id}
        )
        self.session.flush()
        logger.info(f"Supplier quote {quote.id} v{version} submitted for RFQ {rfq.id}")

        return {
            'success': True,
            'quote': quote.to_dict(),
            'rfq_status': rfq.status
        }
