"""
Client Invoices Repository - budget quotes and invoices sent to clients.

An invoice (ClientQuote) carries GST and QST on its subtotal. Sending it
issues a client portal token; payments recorded against it are reconciled
back onto the FFE items and the project's waiting purchase orders.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Dict
from sqlalchemy.orm import Session

from database.models import (
    ClientQuote, ClientQuoteLineItem, ClientAccessToken, Payment, FFEItem,
    Project, Order, Organization, PAYMENT_METHODS
)
from security import generate_access_token
from services.errors import NotFoundError
from services.event_logger import get_event_logger
from services.notification_service import get_notification_service
from services.numbering import next_yearly_number
from services.pdf_service import generate_invoice_pdf
from services.settings import get_setting, portal_url
from services.status_sync import StatusSyncService, log_item_activity
from validators import (
    ValidationError, ensure, validate_invoice_request, validate_email, validate_choice,
    parse_datetime, to_float
)

logger = logging.getLogger(__name__)

CLIENT_RESPONSES = ('APPROVED', 'REJECTED', 'REVISION_REQUESTED')
COUNTED_PAYMENT_STATUSES = ('PAID', 'PARTIAL')


def round_money(value) -> float:
    return round(float(value or 0) + 1e-9, 2)


def paid_amount(invoice: ClientQuote, statuses=COUNTED_PAYMENT_STATUSES) -> float:
    """Sum of payments against an invoice in the given statuses."""
    return round_money(sum(p.amount or 0 for p in invoice.payments if p.status in statuses))


def derive_invoice_status(invoice: ClientQuote, paid: float, now: datetime = None) -> str:
    """DRAFT, PAID, PARTIAL, OVERDUE or SENT, as shown on the invoice list."""
    now = now or datetime.utcnow()
    total = invoice.total_amount or 0
    if invoice.status == 'DRAFT':
        return 'DRAFT'
    if paid >= total and total > 0:
        return 'PAID'
    if paid > 0:
        return 'PARTIAL'
    if invoice.sent_to_client_at:
        if invoice.valid_until and invoice.valid_until < now:
            return 'OVERDUE'
        return 'SENT'
    return 'DRAFT'


def reconcile_invoice_payments(session: Session, invoice: ClientQuote,
                               user_id: str = None, actor_type: str = None) -> Dict:
    """
    Bring items and orders in line with what has been paid on an invoice.

    Fully paid: the project's PENDING_PAYMENT orders move to
    PAYMENT_RECEIVED and every invoiced item syncs with payment_received and
    becomes FULLY_PAID. Partly paid: items become DEPOSIT_PAID.
    """
    total = round_money(invoice.total_amount)
    total_paid = paid_amount(invoice)
    remaining = round_money(max(total - total_paid, 0))
    fully_paid = total > 0 and total_paid >= total

    status_sync = StatusSyncService(session, invoice.organization_id, user_id)
    item_ids = [li.ffe_item_id for li in invoice.line_items if li.ffe_item_id]
    orders_updated = 0

    if fully_paid:
        orders = session.query(Order).filter(
            Order.project_id == invoice.project_id,
            Order.organization_id == invoice.organization_id,
            Order.status == 'PENDING_PAYMENT'
        ).all()
        for order in orders:
            order.status = 'PAYMENT_RECEIVED'
            order.updated_at = datetime.utcnow()
        orders_updated = len(orders)

        status_sync.sync_items_status(item_ids, 'payment_received', actor_id=user_id,
                                      actor_type=actor_type)
        for line in invoice.line_items:
            if line.ffe_item_id:
                status_sync.update_item_payment_status(line.ffe_item_id, 'FULLY_PAID',
                                                       line.client_total_price)
    elif total_paid > 0:
        for item_id in item_ids:
            status_sync.update_item_payment_status(item_id, 'DEPOSIT_PAID')

    session.flush()
    logger.info(f"Reconciled invoice {invoice.quote_number}: paid {total_paid} of {total}")
    return {
        'fully_paid': fully_paid,
        'total_paid': total_paid,
        'remaining_balance': remaining,
        'orders_updated': orders_updated
    }


class ClientInvoiceRepository:
    """Repository for client invoices with event logging."""

    FIELD_MAPPING = {
        'metadata': 'extra_data'
    }

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
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

    def get_model(self, invoice_id: str, project_id: str = None) -> ClientQuote:
        query = self.session.query(ClientQuote).filter(
            ClientQuote.id == invoice_id,
            ClientQuote.organization_id == self.organization_id
        )
        if project_id:
            query = query.filter(ClientQuote.project_id == project_id)
        invoice = query.first()
        if not invoice:
            raise NotFoundError('Invoice not found')
        return invoice

    def _summary(self, invoice: ClientQuote) -> Dict:
        paid = paid_amount(invoice)
        client = invoice.project.client
        data = invoice.to_dict(include_lines=False)
        data.update({
            'invoice_number': invoice.quote_number,
            'record_status': invoice.status,
            'status': derive_invoice_status(invoice, paid),
            'client_name': invoice.client_name or (client.name if client else 'Unknown Client'),
            'client_email': invoice.client_email or (client.email if client else ''),
            'project_name': invoice.project.name,
            'items_count': len(invoice.line_items),
            'items': [{
                'name': li.display_name,
                'quantity': li.quantity,
                'total': li.client_total_price
            } for li in invoice.line_items],
            'paid_amount': paid,
            'balance': round_money((invoice.total_amount or 0) - paid),
            'payments': [p.to_dict() for p in invoice.payments]
        })
        return data

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_invoices(self, project_id: str, status: str = None) -> Dict:
        """Invoices of a project, newest first, with derived status and totals."""
        project = self._get_project(project_id)
        query = self.session.query(ClientQuote).filter(
            ClientQuote.project_id == project.id,
            ClientQuote.organization_id == self.organization_id
        )
        if status and status != 'ALL':
            query = query.filter(ClientQuote.status == status)

        invoices = [self._summary(i) for i in query.order_by(ClientQuote.created_at.desc()).all()]
        stats = {
            'total': len(invoices),
            'draft': len([i for i in invoices if i['status'] == 'DRAFT']),
            'sent': len([i for i in invoices if i['status'] == 'SENT']),
            'partial': len([i for i in invoices if i['status'] == 'PARTIAL']),
            'paid': len([i for i in invoices if i['status'] == 'PAID']),
            'overdue': len([i for i in invoices if i['status'] == 'OVERDUE']),
            'total_billed': round_money(sum(i['total_amount'] or 0 for i in invoices)),
            'total_paid': round_money(sum(i['paid_amount'] for i in invoices)),
            'outstanding': round_money(sum(i['balance'] for i in invoices))
        }
        return {'invoices': invoices, 'stats': stats}

    def get_invoice(self, invoice_id: str) -> Dict:
        invoice = self.get_model(invoice_id)
        data = self._summary(invoice)
        data['line_items'] = [li.to_dict() for li in invoice.line_items]
        return data

    # =========================================================================
    # CREATE / DELETE
    # =========================================================================

    def create_invoice(self, project_id: str, data: Dict) -> Dict:
        """
        Create a DRAFT invoice.

        Every line needs a client unit price above zero. Linked items are
        marked as invoiced to the client.
        """
        ensure(*validate_invoice_request(data))
        project = self._get_project(project_id)
        lines = data.get('line_items') or data.get('lineItems')

        invalid = [
            line.get('display_name') or line.get('name') or f"Line {index + 1}"
            for index, line in enumerate(lines)
            if not to_float(line.get('client_unit_price'), 'client_unit_price')
            or to_float(line.get('client_unit_price'), 'client_unit_price') <= 0
        ]
        if invalid:
            raise ValidationError('All items must have a valid price (RRP or trade price)',
                                  'line_items', details={'invalid_items': invalid})

        item_ids = [line.get('ffe_item_id') for line in lines if line.get('ffe_item_id')]
        if item_ids:
            found = self.session.query(FFEItem.id).filter(
                FFEItem.id.in_(item_ids),
                FFEItem.project_id == project.id
            ).all()
            if len(found) != len(set(item_ids)):
                raise NotFoundError('One or more items not found in this project')

        gst_rate = float(get_setting('GST_RATE', 5.0))
        qst_rate = float(get_setting('QST_RATE', 9.975))
        deposit_percent = to_float(data.get('deposit_required'), 'deposit_required')
        client = project.client

        invoice = ClientQuote(
            organization_id=self.organization_id,
            project_id=project.id,
            quote_number=next_yearly_number(self.session, ClientQuote.quote_number, 'INV',
                                            ClientQuote.organization_id, self.organization_id),
            title=data['title'].strip(),
            description=data.get('description'),
            status='DRAFT',
            client_name=data.get('client_name') or (client.name if client else None),
            client_email=data.get('client_email') or (client.email if client else None),
            gst_rate=gst_rate,
            qst_rate=qst_rate,
            deposit_required=deposit_percent,
            cc_surcharge_percent=float(get_setting('CC_SURCHARGE_PERCENT', 3.0)),
            currency=data.get('currency') or 'CAD',
            valid_until=parse_datetime(data.get('valid_until'), 'valid_until'),
            payment_terms=data.get('payment_terms'),
            created_by_id=self.user_id,
            extra_data=data.get('metadata') or {}
        )
        self.session.add(invoice)
        self.session.flush()

        subtotal = 0.0
        for order, line in enumerate(lines):
            quantity = int(line.get('quantity') or 1)
            unit_price = to_float(line['client_unit_price'], 'client_unit_price')
            total = round_money(unit_price * quantity)
            subtotal += total
            self.session.add(ClientQuoteLineItem(
                client_quote_id=invoice.id,
                ffe_item_id=line.get('ffe_item_id'),
                display_name=line.get('display_name') or line.get('name') or 'Item',
                description=line.get('description'),
                group_name=line.get('group_name'),
                quantity=quantity,
                unit_type=line.get('unit_type') or 'units',
                cost_price=to_float(line.get('cost_price'), 'cost_price'),
                markup_percent=to_float(line.get('markup_percent'), 'markup_percent'),
                client_unit_price=unit_price,
                client_total_price=total,
                order=order
            ))

        invoice.subtotal = round_money(subtotal)
        invoice.gst_amount = round_money(subtotal * gst_rate / 100)
        invoice.qst_amount = round_money(subtotal * qst_rate / 100)
        invoice.total_amount = round_money(invoice.subtotal + invoice.gst_amount + invoice.qst_amount)
        invoice.deposit_amount = round_money(invoice.total_amount * deposit_percent / 100) \
            if deposit_percent else None
        self.session.flush()

        self.status_sync.sync_items_status(item_ids, 'invoice_sent', actor_id=self.user_id)
        for item_id in item_ids:
            self.status_sync.update_item_payment_status(item_id, 'INVOICED')
            log_item_activity(
                self.session, item_id, 'ADDED_TO_INVOICE', 'Invoiced to Client',
                f"Added to invoice {invoice.quote_number}", actor_id=self.user_id,
                metadata={'invoice_id': invoice.id, 'invoice_number': invoice.quote_number,
                          'total_amount': invoice.total_amount}
            )
        self.session.flush()

        self.events.log_create('client_quote', invoice.id, f"Invoice {invoice.quote_number} created",
                               {'total_amount': invoice.total_amount, 'items': len(lines)})
        logger.info(f"Created invoice: {invoice.id}")
        return invoice.to_dict()

    def delete_invoice(self, invoice_id: str) -> bool:
        """Only DRAFT invoices without recorded payments can be deleted."""
        invoice = self.get_model(invoice_id)
        if invoice.status != 'DRAFT':
            raise ValidationError('Only draft invoices can be deleted')
        if invoice.payments:
            raise ValidationError('Invoices with recorded payments cannot be deleted',
                                  details={'payments': len(invoice.payments)})
        self.session.query(ClientAccessToken).filter(
            ClientAccessToken.client_quote_id == invoice.id
        ).delete(synchronize_session=False)
        self.session.delete(invoice)
        self.session.flush()
        self.events.log('client_quote', invoice_id, 'DELETED', f"Invoice {invoice.quote_number} deleted")
        logger.info(f"Deleted invoice: {invoice_id}")
        return True

    # =========================================================================
    # SENDING & CLIENT RESPONSE
    # =========================================================================

    def send_to_client(self, invoice_id: str, data: Dict = None) -> Dict:
        """
        Email the invoice to the client with a portal link and the PDF attached.
        """
        data = data or {}
        invoice = self.get_model(invoice_id)
        email = (data.get('client_email') or invoice.client_email or '').strip()
        if not email:
            raise ValidationError('Client email is required', 'client_email')
        ensure(*validate_email(email), field='client_email')

        now = datetime.utcnow()
        previous = invoice.status
        invoice.client_email = email
        invoice.status = 'SENT_TO_CLIENT'
        invoice.sent_to_client_at = now
        invoice.sent_by_id = self.user_id

        token_days = int(get_setting('CLIENT_TOKEN_DAYS', 90))
        access = ClientAccessToken(
            project_id=invoice.project_id,
            client_quote_id=invoice.id,
            token=generate_access_token(),
            active=True,
            expires_at=now + timedelta(days=token_days),
            created_by_id=self.user_id
        )
        self.session.add(access)
        self.session.flush()

        organization = self.session.query(Organization).filter(
            Organization.id == self.organization_id
        ).first()
        org_name = organization.name if organization else 'StudioFlow'
        link = portal_url(f"client-portal/{access.token}")
        intro = (
            f"Hello {invoice.client_name or 'there'},\n"
            f"Please find invoice {invoice.quote_number} for {invoice.project.name} "
            f"totalling ${invoice.total_amount:,.2f} {invoice.currency}."
        )
        if data.get('message'):
            intro += f"\n{data['message']}"

        notifier = get_notification_service(self.session, self.organization_id)
        delivered = notifier.send_portal_email(
            email, f"Invoice {invoice.quote_number} - {invoice.project.name}", intro, link,
            'View and pay invoice',
            attachments=[(f"{invoice.quote_number}.pdf", generate_invoice_pdf(invoice, org_name))]
        )

        item_ids = [li.ffe_item_id for li in invoice.line_items if li.ffe_item_id]
        self.status_sync.sync_items_status(item_ids, 'client_quote_sent', actor_id=self.user_id)
        self.session.flush()

        self.events.log('client_quote', invoice.id, 'INVOICE_SENT',
                        f"Invoice {invoice.quote_number} sent to {email}",
                        {'previous_status': previous, 'email_delivered': delivered})
        logger.info(f"Sent invoice {invoice.id} to client")
        return {
            'invoice': invoice.to_dict(),
            'portal_url': link,
            'email_delivered': delivered
        }

    def record_client_response(self, invoice_id: str, response: str, message: str = None) -> Dict:
        """APPROVED, REJECTED or REVISION_REQUESTED from the client."""
        ensure(*validate_choice(response, CLIENT_RESPONSES, 'response'), field='response')
        invoice = self.get_model(invoice_id)
        previous = invoice.status
        invoice.status = response
        if response == 'APPROVED':
            invoice.approved_at = datetime.utcnow()
            item_ids = [li.ffe_item_id for li in invoice.line_items if li.ffe_item_id]
            self.status_sync.sync_items_status(item_ids, 'client_approved', actor_id=self.user_id)
        self.session.flush()

        self.events.log('client_quote', invoice.id, 'INVOICE_RESPONSE',
                        f"Client response on {invoice.quote_number}: {response}",
                        {'old_status': previous, 'new_status': response, 'message': message})
        logger.info(f"Recorded client response {response} on invoice {invoice.id}")
        return invoice.to_dict()

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def record_payment(self, invoice_id: str, data: Dict) -> Dict:
        """Record a payment received outside the portal, then reconcile."""
        invoice = self.get_model(invoice_id)
        amount = to_float(data.get('amount'), 'amount')
        if not amount or amount <= 0:
            raise ValidationError('A positive amount is required', 'amount')
        method = data.get('method') or 'OTHER'
        ensure(*validate_choice(method, PAYMENT_METHODS, 'payment method'), field='method')

        payment = Payment(
            organization_id=self.organization_id,
            client_quote=invoice,
            amount=round_money(amount),
            surcharge_amount=0,
            total_charged=round_money(amount),
            currency=invoice.currency,
            method=method,
            status='PARTIAL' if data.get('is_deposit') else 'PAID',
            transaction_id=data.get('reference'),
            paid_at=parse_datetime(data.get('paid_at'), 'paid_at') or datetime.utcnow(),
            notes=data.get('notes'),
            extra_data={'recorded_by': self.user_id, 'manual': True}
        )
        self.session.add(payment)
        self.session.flush()

        reconciliation = reconcile_invoice_payments(self.session, invoice, self.user_id)
        self.events.log('payment', payment.id, 'PAYMENT_RECEIVED',
                        f"Payment of ${payment.amount:,.2f} recorded on {invoice.quote_number}",
                        {'client_quote_id': invoice.id, 'method': method})
        logger.info(f"Recorded payment {payment.id} on invoice {invoice.id}")
        return {'payment': payment.to_dict(), **reconciliation}

    def list_payments(self, invoice_id: str) -> List[Dict]:
        invoice = self.get_model(invoice_id)
        return [p.to_dict() for p in sorted(invoice.payments, key=lambda p: p.created_at or datetime.min)]

    def get_invoice_pdf(self, invoice_id: str) -> (str, bytes):
        invoice = self.get_model(invoice_id)
        organization = self.session.query(Organization).filter(
            Organization.id == self.organization_id
        ).first()
        return f"{invoice.quote_number}.pdf", generate_invoice_pdf(
            invoice, organization.name if organization else 'StudioFlow'
        )
