"""
Orders Repository - purchase orders, deliveries and the supplier order portal.

Orders are created by hand (ad-hoc purchases) or from a paid client invoice,
in which case the invoice lines are grouped into one order per supplier.
Placing an order emails the PO to the supplier with a portal link where the
supplier confirms, ships and updates the delivery date.
"""

import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import List, Dict, Tuple
from sqlalchemy.orm import Session

from database.models import (
    Order, OrderItem, Delivery, FFEItem, Project, Supplier, ClientQuote, Organization,
    ORDER_STATUSES
)
from security import generate_access_token
from services.client_invoice_repository import paid_amount, round_money
from services.errors import NotFoundError, TokenExpiredError
from services.event_logger import get_event_logger
from services.notification_service import get_notification_service
from services.numbering import next_yearly_number
from services.pdf_service import generate_purchase_order_pdf
from services.settings import get_setting, portal_url
from services.status_sync import StatusSyncService, log_item_activity
from validators import (
    ValidationError, ensure, validate_order_request, validate_choice, validate_currency,
    parse_datetime, to_float
)

logger = logging.getLogger(__name__)

STATUS_TIMESTAMPS = {
    'ORDERED': 'ordered_at',
    'CONFIRMED': 'confirmed_at',
    'SHIPPED': 'actual_ship_date',
    'DELIVERED': 'actual_delivery',
}

NON_CANCELLABLE_STATUSES = ('DELIVERED', 'INSTALLED', 'COMPLETED')

ORDER_ACTIONS = ('place_order', 'add_tracking', 'mark_delivered', 'pay_supplier', 'cancel')
PORTAL_ACTIONS = ('confirm', 'ship', 'update_eta')

UPDATABLE_FIELDS = [
    'vendor_name', 'vendor_email', 'tracking_number', 'tracking_url', 'shipping_carrier',
    'notes', 'internal_notes', 'supplier_payment_method', 'supplier_payment_reference'
]
UPDATABLE_DATES = [
    'expected_delivery', 'ordered_at', 'confirmed_at', 'actual_ship_date', 'actual_delivery',
    'supplier_paid_at'
]


def _append_note(existing: str, note: str) -> str:
    return f"{existing or ''}\n\n{note}".strip()


def _order_item_ids(order: Order) -> List[str]:
    seen = []
    for item in order.items:
        if item.ffe_item_id and item.ffe_item_id not in seen:
            seen.append(item.ffe_item_id)
    return seen


def _component_lines(item: FFEItem, status: str) -> List[OrderItem]:
    """Priced components ordered alongside their parent item."""
    lines = []
    for component in item.components:
        if not component.price:
            continue
        quantity = component.quantity or 1
        name = component.name + (f" ({component.model_number})" if component.model_number else '')
        lines.append(OrderItem(
            ffe_item_id=item.id,
            name=name,
            description=f"Component of {item.name}",
            quantity=quantity,
            unit_price=component.price,
            total_price=round_money(component.price * quantity),
            status=status,
            is_component=True
        ))
    return lines


def _single_currency(currencies) -> str:
    unique = {(c or 'CAD').upper() for c in currencies}
    return unique.pop() if len(unique) == 1 else 'CAD'


class OrderRepository:
    """Repository for purchase orders with event logging."""

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

    def get_model(self, order_id: str) -> Order:
        order = self.session.query(Order).filter(
            Order.id == order_id,
            Order.organization_id == self.organization_id
        ).first()
        if not order:
            raise NotFoundError('Order not found')
        return order

    def _next_number(self) -> str:
        return next_yearly_number(self.session, Order.order_number, 'PO',
                                  Order.organization_id, self.organization_id)

    def _existing_orders(self, item_ids: List[str]) -> Dict[str, Order]:
        """Live (non-cancelled) orders already holding each item."""
        if not item_ids:
            return {}
        rows = self.session.query(OrderItem, Order).join(
            Order, OrderItem.order_id == Order.id
        ).filter(
            OrderItem.ffe_item_id.in_(item_ids),
            Order.organization_id == self.organization_id,
            Order.status != 'CANCELLED'
        ).all()
        return {order_item.ffe_item_id: order for order_item, order in rows}

    def _serialize(self, order: Order) -> Dict:
        data = order.to_dict()
        data['project_name'] = order.project.name if order.project else None
        data['supplier_name'] = order.supplier.name if order.supplier else order.vendor_name
        data['item_count'] = len(order.items)
        return data

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_orders(self, project_id: str = None, status: str = None) -> List[Dict]:
        query = self.session.query(Order).filter(Order.organization_id == self.organization_id)
        if project_id:
            query = query.filter(Order.project_id == project_id)
        if status:
            query = query.filter(Order.status == status)
        return [self._serialize(o) for o in query.order_by(Order.created_at.desc()).all()]

    def get_order(self, order_id: str) -> Dict:
        return self._serialize(self.get_model(order_id))

    def get_order_pdf(self, order_id: str) -> Tuple[str, bytes]:
        order = self.get_model(order_id)
        return f"{order.order_number}.pdf", generate_purchase_order_pdf(order, self._organization_name())

    def _organization_name(self) -> str:
        organization = self.session.query(Organization).filter(
            Organization.id == self.organization_id
        ).first()
        return organization.name if organization else 'StudioFlow'

    # =========================================================================
    # CREATE: MANUAL
    # =========================================================================

    def create_manual_order(self, project_id: str, data: Dict) -> Dict:
        """
        Create a purchase order for hand-picked items (store or web purchases).

        Items already on a live order are refused. An order marked as already
        placed starts at ORDERED, otherwise at PAYMENT_RECEIVED.
        """
        ensure(*validate_order_request(data))
        project = self._get_project(project_id)
        requested = data['items']
        item_ids = [r.get('item_id') or r.get('ffe_item_id') for r in requested]

        items = self.session.query(FFEItem).filter(
            FFEItem.id.in_([i for i in item_ids if i]),
            FFEItem.project_id == project.id
        ).all()
        by_id = {item.id: item for item in items}
        missing = [i for i in item_ids if i not in by_id]
        if missing:
            raise NotFoundError(f"Some items not found: {', '.join(str(m) for m in missing)}")

        existing = self._existing_orders(item_ids)
        if existing:
            raise ValidationError('Some items already have orders', 'items', details={
                'items_with_orders': [{
                    'id': item_id,
                    'name': by_id[item_id].name,
                    'existing_order': order.order_number
                } for item_id, order in existing.items()]
            })

        if data.get('currency'):
            currency = data['currency'].upper()
            ensure(*validate_currency(currency), field='currency')
        else:
            currency = _single_currency(item.currency for item in items)

        already_ordered = bool(data.get('already_ordered'))
        status = 'ORDERED' if already_ordered else 'PAYMENT_RECEIVED'
        vendor_name = (data.get('vendor_name') or data.get('supplier_name')).strip()

        order = Order(
            organization_id=self.organization_id,
            project_id=project.id,
            order_number=self._next_number(),
            supplier_id=data.get('supplier_id'),
            vendor_name=vendor_name,
            vendor_email=(data.get('vendor_email') or '').strip() or None,
            status=status,
            currency=currency,
            notes=data.get('notes'),
            internal_notes=data.get('internal_notes'),
            ordered_at=(parse_datetime(data.get('ordered_at'), 'ordered_at') or datetime.utcnow())
            if already_ordered else None,
            created_by_id=self.user_id
        )
        if order.supplier_id:
            supplier = self.session.query(Supplier).filter(
                Supplier.id == order.supplier_id,
                Supplier.organization_id == self.organization_id
            ).first()
            if not supplier:
                raise NotFoundError('Supplier not found')

        for request_line in requested:
            item = by_id[request_line.get('item_id') or request_line.get('ffe_item_id')]
            override = to_float(request_line.get('unit_price', request_line.get('trade_price')), 'unit_price')
            unit_price = override if override is not None else (item.trade_price or 0)
            quantity = int(request_line.get('quantity') or item.quantity or 1)
            preferred = self.status_sync.preferred_quote_line(item)
            order.items.append(OrderItem(
                ffe_item_id=item.id,
                supplier_quote_line_item_id=preferred.id if preferred else None,
                name=item.name,
                description=item.description,
                quantity=quantity,
                unit_price=unit_price,
                total_price=round_money(unit_price * quantity),
                status=status,
                notes=request_line.get('notes')
            ))
            if request_line.get('include_components', True):
                order.items.extend(_component_lines(item, status))

        self._apply_totals(order, data.get('shipping_cost'), data.get('extra_charges'),
                           data.get('tax_amount'), data.get('deposit_required'),
                           data.get('deposit_percent'))
        self.session.add(order)
        self.session.flush()

        trigger = 'order_created' if already_ordered else 'payment_received'
        self.status_sync.sync_items_status(list(by_id), trigger, actor_id=self.user_id)
        for item_id in by_id:
            log_item_activity(
                self.session, item_id, 'ADDED_TO_ORDER', f"Order Created - {vendor_name}",
                f"Order {order.order_number} created for {vendor_name}", actor_id=self.user_id,
                metadata={'order_id': order.id, 'order_number': order.order_number, 'manual': True}
            )
        self.session.flush()

        self.events.log_create('order', order.id, f"Order {order.order_number} created for {vendor_name}",
                               {'items': len(order.items), 'total_amount': order.total_amount})
        logger.info(f"Created order: {order.id}")
        return self._serialize(order)

    def _apply_totals(self, order: Order, shipping, extra_charges, tax,
                      deposit_required=None, deposit_percent=None):
        subtotal = round_money(sum(i.total_price or 0 for i in order.items))
        shipping = to_float(shipping, 'shipping_cost') or 0
        tax = to_float(tax, 'tax_amount') or 0
        charges = [{'label': c.get('label') or 'Other', 'amount': to_float(c.get('amount'), 'amount') or 0}
                   for c in (extra_charges or [])]
        total = round_money(subtotal + shipping + sum(c['amount'] for c in charges) + tax)

        deposit = to_float(deposit_required, 'deposit_required')
        percent = to_float(deposit_percent, 'deposit_percent')
        if not deposit and percent:
            deposit = round_money(total * percent / 100)

        order.subtotal = subtotal
        order.shipping_cost = shipping or None
        order.extra_charges = charges
        order.tax_amount = tax or None
        order.total_amount = total
        order.deposit_required = deposit or None
        order.deposit_percent = percent
        order.balance_due = round_money(total - deposit) if deposit else None

    # =========================================================================
    # CREATE: FROM INVOICE
    # =========================================================================

    def _group_invoice_lines(self, project_id: str, data: Dict):
        """
        Group a paid invoice's item lines by supplier.

        Returns (invoice, groups, items_without_supplier, skipped_items).
        """
        invoice_id = data.get('client_quote_id') or data.get('invoice_id')
        if not invoice_id:
            raise ValidationError('Client quote/invoice ID is required', 'client_quote_id')
        invoice = self.session.query(ClientQuote).filter(
            ClientQuote.id == invoice_id,
            ClientQuote.project_id == project_id,
            ClientQuote.organization_id == self.organization_id
        ).first()
        if not invoice:
            raise NotFoundError('Invoice not found')

        if paid_amount(invoice) <= 0:
            raise ValidationError('Invoice has not been paid. Please record payment first.')

        lines = [li for li in invoice.line_items if li.ffe_item_id]
        wanted = data.get('item_ids') or []
        if wanted:
            lines = [li for li in lines if li.ffe_item_id in wanted or li.id in wanted]
        if not lines:
            raise ValidationError('No items to order')

        existing = self._existing_orders([li.ffe_item_id for li in lines])
        skipped = [{
            'item_id': item_id,
            'order_number': order.order_number,
            'reason': 'Already has an order'
        } for item_id, order in existing.items()]
        lines = [li for li in lines if li.ffe_item_id not in existing]
        if not lines:
            numbers = sorted({s['order_number'] for s in skipped})
            raise ValidationError(f"All items already have orders: {', '.join(numbers)}",
                                  details={'existing_orders': skipped})

        groups = OrderedDict()
        without_supplier = []
        for line in lines:
            item = self.session.query(FFEItem).filter(FFEItem.id == line.ffe_item_id).first()
            if not item:
                continue
            quote_line = self.status_sync.preferred_quote_line(item)
            if not quote_line:
                without_supplier.append({'id': item.id, 'name': line.display_name,
                                         'reason': 'No supplier quote found'})
                continue

            supplier_quote = quote_line.supplier_quote
            supplier_rfq = supplier_quote.supplier_rfq
            key = supplier_rfq.supplier_id or f"vendor:{supplier_rfq.vendor_name or 'unknown'}"
            if key not in groups:
                groups[key] = {
                    'supplier_id': supplier_rfq.supplier_id,
                    'supplier_name': supplier_rfq.display_name or 'Unknown Supplier',
                    'supplier_email': supplier_rfq.email,
                    'supplier_quote': supplier_quote,
                    'items': []
                }
            quantity = line.quantity or 1
            groups[key]['items'].append({
                'item': item,
                'quote_line': quote_line,
                'quantity': quantity,
                'unit_price': quote_line.unit_price or 0,
                'total_price': round_money((quote_line.unit_price or 0) * quantity),
                'currency': (item.currency or 'CAD').upper()
            })

        return invoice, groups, without_supplier, skipped

    @staticmethod
    def _group_totals(group: Dict) -> Dict:
        supplier_quote = group['supplier_quote']
        lines = [entry['total_price'] for entry in group['items']]
        for entry in group['items']:
            for component in entry['item'].components:
                if component.price:
                    lines.append(round_money(component.price * (component.quantity or 1)))
        subtotal = round_money(sum(lines))
        shipping = supplier_quote.shipping_cost or 0
        total = round_money(subtotal + shipping)
        deposit = supplier_quote.deposit_required
        if not deposit and supplier_quote.deposit_percent:
            deposit = round_money(total * supplier_quote.deposit_percent / 100)
        return {
            'supplier_id': group['supplier_id'],
            'supplier_name': group['supplier_name'],
            'supplier_email': group['supplier_email'],
            'supplier_quote_id': supplier_quote.id,
            'item_count': len(group['items']),
            'items': [{'id': e['item'].id, 'name': e['item'].name, 'quantity': e['quantity'],
                       'unit_price': e['unit_price'], 'total_price': e['total_price']}
                      for e in group['items']],
            'subtotal': subtotal,
            'shipping_cost': shipping,
            'total_amount': total,
            'deposit_required': deposit or None,
            'deposit_percent': supplier_quote.deposit_percent,
            'balance_due': round_money(total - deposit) if deposit else None,
            'currency': _single_currency(e['currency'] for e in group['items'])
        }

    def preview_orders_from_invoice(self, project_id: str, data: Dict) -> Dict:
        """The orders create_orders_from_invoice would create, without writing."""
        self._get_project(project_id)
        _, groups, without_supplier, skipped = self._group_invoice_lines(project_id, data)
        return {
            'orders': [self._group_totals(group) for group in groups.values()],
            'items_without_supplier': without_supplier,
            'skipped_items': skipped
        }

    def create_orders_from_invoice(self, project_id: str, data: Dict) -> Dict:
        """One PAYMENT_RECEIVED order per supplier from a paid invoice."""
        project = self._get_project(project_id)
        invoice, groups, without_supplier, skipped = self._group_invoice_lines(project.id, data)

        created = []
        for group in groups.values():
            totals = self._group_totals(group)
            supplier_quote = group['supplier_quote']
            terms = None
            if supplier_quote.payment_terms or supplier_quote.shipping_terms:
                terms = (f"Payment Terms: {supplier_quote.payment_terms or 'N/A'}\n"
                         f"Shipping Terms: {supplier_quote.shipping_terms or 'N/A'}")

            order = Order(
                organization_id=self.organization_id,
                project_id=project.id,
                order_number=self._next_number(),
                supplier_id=group['supplier_id'],
                vendor_name=group['supplier_name'],
                vendor_email=group['supplier_email'],
                status='PAYMENT_RECEIVED',
                currency=totals['currency'],
                subtotal=totals['subtotal'],
                shipping_cost=totals['shipping_cost'] or None,
                extra_charges=[],
                total_amount=totals['total_amount'],
                deposit_required=totals['deposit_required'],
                deposit_percent=totals['deposit_percent'],
                balance_due=totals['balance_due'],
                internal_notes=terms,
                client_quote_id=invoice.id,
                supplier_quote_id=supplier_quote.id,
                created_by_id=self.user_id
            )
            for entry in group['items']:
                item = entry['item']
                order.items.append(OrderItem(
                    ffe_item_id=item.id,
                    supplier_quote_line_item_id=entry['quote_line'].id,
                    name=item.name,
                    description=item.description,
                    quantity=entry['quantity'],
                    unit_price=entry['unit_price'],
                    total_price=entry['total_price'],
                    status='PAYMENT_RECEIVED'
                ))
                order.items.extend(_component_lines(item, 'PAYMENT_RECEIVED'))
            self.session.add(order)
            self.session.flush()

            item_ids = [entry['item'].id for entry in group['items']]
            self.status_sync.sync_items_status(item_ids, 'order_created', actor_id=self.user_id)
            for item_id in item_ids:
                self.status_sync.update_item_payment_status(item_id, 'FULLY_PAID')
                log_item_activity(
                    self.session, item_id, 'ADDED_TO_ORDER', f"Order Created - {order.vendor_name}",
                    f"Order {order.order_number} created from invoice {invoice.quote_number}",
                    actor_id=self.user_id,
                    metadata={'order_id': order.id, 'order_number': order.order_number,
                              'client_quote_id': invoice.id}
                )
            self.session.flush()
            self.events.log_create('order', order.id,
                                   f"Order {order.order_number} created from invoice {invoice.quote_number}",
                                   {'items': len(order.items), 'client_quote_id': invoice.id})
            created.append({**totals, 'id': order.id, 'order_number': order.order_number,
                            'status': order.status})

        logger.info(f"Created {len(created)} orders from invoice {invoice.id}")
        return {
            'orders': created,
            'items_without_supplier': without_supplier,
            'skipped_items': skipped
        }

    # =========================================================================
    # UPDATE
    # =========================================================================

    def update_order(self, order_id: str, data: Dict) -> Dict:
        """
        Update general fields. A status change fills in its timestamp
        (ordered, confirmed, shipped, delivered) when not already set.
        """
        order = self.get_model(order_id)
        previous_status = order.status
        previous_tracking = order.tracking_number
        previous_payment = order.supplier_payment_amount

        for key in UPDATABLE_FIELDS:
            if key in data:
                setattr(order, key, data[key])
        for key in UPDATABLE_DATES:
            if key in data:
                setattr(order, key, parse_datetime(data[key], key))
        if 'supplier_payment_amount' in data:
            order.supplier_payment_amount = to_float(data['supplier_payment_amount'],
                                                     'supplier_payment_amount')

        status = data.get('status')
        if status and status != previous_status:
            ensure(*validate_choice(status, ORDER_STATUSES, 'status'), field='status')
            order.status = status
            stamp = STATUS_TIMESTAMPS.get(status)
            if stamp and not getattr(order, stamp):
                setattr(order, stamp, datetime.utcnow())

        order.updated_at = datetime.utcnow()
        self.session.flush()

        if order.status != previous_status:
            self.events.log_status_change('order', order.id, previous_status, order.status)
        if data.get('tracking_number') and data['tracking_number'] != previous_tracking:
            self.events.log('order', order.id, 'TRACKING_UPDATED',
                            f"Tracking number updated: {order.tracking_number}")
        if order.supplier_payment_amount and order.supplier_payment_amount != previous_payment:
            self.events.log('order', order.id, 'PAYMENT_RECORDED',
                            f"Payment to supplier recorded: ${order.supplier_payment_amount:,.2f} "
                            f"via {order.supplier_payment_method or 'unknown'}",
                            {'amount': order.supplier_payment_amount,
                             'method': order.supplier_payment_method,
                             'reference': order.supplier_payment_reference})
        logger.info(f"Updated order: {order_id}")
        return self._serialize(order)

    def delete_order(self, order_id: str) -> bool:
        """
        Delete an order and return its items to CLIENT_PAID when the client
        has paid, else QUOTE_APPROVED.
        """
        order = self.get_model(order_id)
        item_ids = _order_item_ids(order)
        number = order.order_number
        self.session.delete(order)
        self.session.flush()

        for item in self.session.query(FFEItem).filter(FFEItem.id.in_(item_ids)).all():
            if item.payment_status in ('DEPOSIT_PAID', 'FULLY_PAID'):
                item.spec_status = 'CLIENT_PAID'
            else:
                item.spec_status = 'QUOTE_APPROVED'
        self.session.flush()
        self.events.log('order', order_id, 'DELETED', f"Order {number} deleted")
        logger.info(f"Deleted order: {order_id}")
        return True

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def perform_action(self, order_id: str, action: str, data: Dict = None) -> Dict:
        data = data or {}
        handlers = {
            'place_order': self._place_order,
            'add_tracking': self._add_tracking,
            'mark_delivered': self._mark_delivered,
            'pay_supplier': self._pay_supplier,
            'cancel': self._cancel,
        }
        handler = handlers.get(action)
        if not handler:
            raise ValidationError('Invalid action', 'action')
        order = self.get_model(order_id)
        result = handler(order, data)
        order.updated_at = datetime.utcnow()
        self.session.flush()
        logger.info(f"Order {order.id} action {action}")
        return {'success': True, 'action': action, 'order': self._serialize(order), **result}

    def _place_order(self, order: Order, data: Dict) -> Dict:
        email = order.vendor_email or (order.supplier.email if order.supplier else None)
        if not email:
            raise ValidationError('Supplier email required', 'vendor_email')

        now = datetime.utcnow()
        order.status = 'ORDERED'
        order.ordered_at = now
        order.access_token = generate_access_token()
        order.token_expires_at = now + timedelta(days=int(get_setting('SUPPLIER_TOKEN_DAYS', 30)))
        self.session.flush()

        link = portal_url(f"supplier-order/{order.access_token}")
        org_name = self._organization_name()
        intro = (
            f"Hello {order.supplier.contact_name if order.supplier and order.supplier.contact_name else order.vendor_name},\n"
            f"{org_name} has placed purchase order {order.order_number} for {order.project.name}."
        )
        if data.get('message'):
            intro += f"\n{data['message']}"
        delivered = get_notification_service(self.session, self.organization_id).send_portal_email(
            email, f"Purchase Order {order.order_number} from {org_name}", intro, link,
            'Confirm purchase order',
            attachments=[(f"{order.order_number}.pdf", generate_purchase_order_pdf(order, org_name))]
        )

        self.status_sync.sync_items_status(_order_item_ids(order), 'order_created', actor_id=self.user_id)
        self.events.log('order', order.id, 'ORDER_PLACED', f"Purchase order placed with {order.vendor_name}",
                        {'email': email, 'email_delivered': delivered})
        return {'portal_url': link, 'email_delivered': delivered}

    def _add_tracking(self, order: Order, data: Dict) -> Dict:
        tracking_number = (data.get('tracking_number') or '').strip()
        if not tracking_number:
            raise ValidationError('Tracking number is required', 'tracking_number')

        order.tracking_number = tracking_number
        order.shipping_carrier = data.get('carrier') or order.shipping_carrier
        order.tracking_url = data.get('tracking_url') or order.tracking_url
        if order.status in ('ORDERED', 'CONFIRMED'):
            order.status = 'SHIPPED'
        order.actual_ship_date = order.actual_ship_date or datetime.utcnow()
        order.deliveries.append(Delivery(
            status='IN_TRANSIT',
            tracking_number=tracking_number,
            carrier=order.shipping_carrier,
            expected_date=parse_datetime(data.get('expected_delivery'), 'expected_delivery'),
            notes=data.get('notes')
        ))
        self.session.flush()

        self.status_sync.sync_items_status(_order_item_ids(order), 'order_shipped', actor_id=self.user_id)
        self.events.log('order', order.id, 'TRACKING_UPDATED',
                        f"Tracking: {order.shipping_carrier or ''} {tracking_number}".replace('  ', ' '),
                        {'tracking_number': tracking_number, 'carrier': order.shipping_carrier})
        return {}

    def _mark_delivered(self, order: Order, data: Dict) -> Dict:
        delivered_at = parse_datetime(data.get('delivery_date'), 'delivery_date') or datetime.utcnow()
        received_by = data.get('received_by') or data.get('signed_by')

        order.status = 'DELIVERED'
        order.actual_delivery = delivered_at
        if data.get('notes'):
            order.notes = data['notes']
        for item in order.items:
            item.status = 'DELIVERED'
        for delivery in order.deliveries:
            if delivery.status != 'DELIVERED':
                delivery.status = 'DELIVERED'
                delivery.delivered_at = delivered_at
                delivery.received_by = received_by
        self.session.flush()

        self.status_sync.sync_items_status(_order_item_ids(order), 'order_delivered', actor_id=self.user_id)
        self.events.log('order', order.id, 'ORDER_DELIVERED',
                        'Order delivered' + (f" - Signed by: {received_by}" if received_by else ''))
        return {}

    def _pay_supplier(self, order: Order, data: Dict) -> Dict:
        method = data.get('payment_method') or data.get('method')
        if not method:
            raise ValidationError('Payment method is required', 'payment_method')
        amount = to_float(data.get('payment_amount', data.get('amount')), 'payment_amount')
        if not amount:
            amount = order.total_amount or 0

        order.supplier_paid_at = datetime.utcnow()
        order.supplier_payment_method = method
        order.supplier_payment_reference = data.get('payment_reference') or data.get('reference')
        order.supplier_payment_amount = round_money(amount)
        self.events.log('order', order.id, 'PAYMENT_RECORDED',
                        f"Supplier paid ${amount:,.2f} via {method}",
                        {'amount': amount, 'method': method,
                         'reference': order.supplier_payment_reference})
        return {}

    def _cancel(self, order: Order, data: Dict) -> Dict:
        if order.status in NON_CANCELLABLE_STATUSES:
            raise ValidationError('Cannot cancel a delivered order')
        reason = data.get('reason')
        previous = order.status
        order.status = 'CANCELLED'
        order.internal_notes = _append_note(order.internal_notes,
                                            f"Cancellation reason: {reason or 'No reason provided'}")
        self.events.log('order', order.id, 'ORDER_CANCELLED',
                        'Order cancelled' + (f": {reason}" if reason else ''),
                        {'old_status': previous})
        return {}


class SupplierOrderPortalService:
    """Public purchase order page, authenticated by the order's access token."""

    def __init__(self, session: Session):
        self.session = session

    def _get_by_token(self, token: str) -> Order:
        order = self.session.query(Order).filter(Order.access_token == token).first()
        if not order:
            raise NotFoundError('Order not found or invalid token')
        if order.token_expires_at and order.token_expires_at < datetime.utcnow():
            raise TokenExpiredError('Access token has expired', status_code=403)
        return order

    def _events(self, order: Order):
        return get_event_logger(self.session, order.organization_id, order.supplier_id,
                                actor_type='supplier')

    def view(self, token: str) -> Dict:
        order = self._get_by_token(token)
        organization = self.session.query(Organization).filter(
            Organization.id == order.organization_id
        ).first()
        data = order.to_dict()
        data.pop('internal_notes', None)
        return {
            'order': data,
            'project': {
                'name': order.project.name,
                'address': order.project.address
            },
            'organization': {'name': organization.name if organization else None},
            'supplier': order.supplier.to_dict() if order.supplier else {'name': order.vendor_name}
        }

    def perform_action(self, token: str, action: str, data: Dict = None) -> Dict:
        data = data or {}
        order = self._get_by_token(token)
        if action == 'confirm':
            message = self._confirm(order, data)
        elif action == 'ship':
            message = self._ship(order, data)
        elif action == 'update_eta':
            message = self._update_eta(order, data)
        else:
            raise ValidationError('Invalid action', 'action')
        order.updated_at = datetime.utcnow()
        self.session.flush()
        logger.info(f"Supplier portal action {action} on order {order.id}")
        return {'success': True, 'message': message}

    def _confirm(self, order: Order, data: Dict) -> str:
        confirmed_by = data.get('confirmed_by') or (
            order.supplier.contact_name if order.supplier and order.supplier.contact_name else 'Supplier'
        )
        order.status = 'CONFIRMED'
        order.confirmed_at = datetime.utcnow()
        order.supplier_confirmed_by = confirmed_by
        if data.get('notes'):
            order.notes = _append_note(order.notes, f"Supplier Note: {data['notes']}")
        self.session.flush()

        # items only count as ordered once the supplier is both confirmed and paid
        if order.supplier_paid_at:
            StatusSyncService(self.session, order.organization_id).sync_items_status(
                _order_item_ids(order), 'order_created', actor_name=confirmed_by, actor_type='supplier'
            )
        self._events(order).log('order', order.id, 'ORDER_CONFIRMED',
                                f"Order confirmed by {confirmed_by}", {'notes': data.get('notes')})
        return 'Order confirmed'

    def _ship(self, order: Order, data: Dict) -> str:
        tracking_number = data.get('tracking_number')
        carrier = data.get('carrier')
        if not tracking_number and not carrier:
            raise ValidationError('Tracking number or carrier is required', 'tracking_number')

        expected = parse_datetime(data.get('expected_delivery'), 'expected_delivery')
        order.status = 'SHIPPED'
        order.tracking_number = tracking_number
        order.tracking_url = data.get('tracking_url')
        order.shipping_carrier = carrier
        order.actual_ship_date = datetime.utcnow()
        order.expected_delivery = expected or order.expected_delivery
        order.deliveries.append(Delivery(
            status='IN_TRANSIT',
            tracking_number=tracking_number,
            carrier=carrier,
            expected_date=expected,
            notes=data.get('notes')
        ))
        for item in order.items:
            item.status = 'SHIPPED'
        self._events(order).log('order', order.id, 'ORDER_SHIPPED',
                                f"Order shipped via {carrier or 'carrier'}"
                                + (f" - Tracking: {tracking_number}" if tracking_number else ''),
                                {'tracking_number': tracking_number, 'carrier': carrier})
        return 'Shipment recorded'

    def _update_eta(self, order: Order, data: Dict) -> str:
        expected = parse_datetime(data.get('expected_delivery'), 'expected_delivery')
        if not expected:
            raise ValidationError('Expected delivery date is required', 'expected_delivery')
        order.expected_delivery = expected
        self._events(order).log('order', order.id, 'ETA_UPDATED',
                                f"Expected delivery updated to {expected.strftime('%Y-%m-%d')}"
                                + (f": {data['reason']}" if data.get('reason') else ''),
                                {'expected_delivery': expected.isoformat(), 'reason': data.get('reason')})
        return 'Delivery date updated'
