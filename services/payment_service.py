"""
Client portal and card payments.

Clients reach the portal through a ClientAccessToken. Card data never
touches this service: the browser tokenizes the card with the gateway and
only the opaque token is forwarded to PaymentGateway.process_sale.
"""

import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

import requests
from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from database.models import ClientAccessToken, ClientQuote, Payment
from services.client_invoice_repository import (
    paid_amount, round_money, reconcile_invoice_payments
)
from services.errors import NotFoundError, TokenExpiredError, PaymentProcessingError, \
    ServiceUnavailableError
from services.event_logger import get_event_logger
from services.settings import get_setting
from services.status_sync import StatusSyncService
from validators import ValidationError, to_float

logger = logging.getLogger(__name__)


class GatewayResult:
    """Outcome of a gateway sale."""

    def __init__(self, success: bool, transaction_id: str = None, error: str = None,
                 error_code: str = None, auth_code: str = None, masked_card: str = None,
                 card_type: str = None):
        self.success = success
        self.transaction_id = transaction_id
        self.error = error
        self.error_code = error_code
        self.auth_code = auth_code
        self.masked_card = masked_card
        self.card_type = card_type

    def to_dict(self):
        return {
            'success': self.success,
            'transaction_id': self.transaction_id,
            'error': self.error,
            'error_code': self.error_code,
            'auth_code': self.auth_code,
            'masked_card': self.masked_card,
            'card_type': self.card_type
        }


class PaymentGateway:
    """Interface for card processors."""

    def is_configured(self) -> bool:
        raise NotImplementedError

    def public_key(self) -> Optional[str]:
        """Key the browser uses to tokenize card fields."""
        return None

    def process_sale(self, amount: float, currency: str, card_token: str,
                     cvv_token: str = None, expiration: str = None,
                     customer_email: str = None, customer_name: str = None,
                     description: str = None, invoice_number: str = None,
                     metadata: Dict = None) -> GatewayResult:
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):
    """Card processor reached over HTTPS with a JSON API."""

    def __init__(self, base_url: str, api_key: str, timeout: int = 30, public_key: str = None):
        self.base_url = (base_url or '').rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self._public_key = public_key

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def public_key(self) -> Optional[str]:
        return self._public_key

    def process_sale(self, amount, currency, card_token, cvv_token=None, expiration=None,
                     customer_email=None, customer_name=None, description=None,
                     invoice_number=None, metadata=None) -> GatewayResult:
        payload = {
            'command': 'cc:sale',
            'amount': f"{amount:.2f}",
            'currency': currency,
            'card_token': card_token,
            'cvv_token': cvv_token,
            'expiration': expiration,
            'email': customer_email,
            'name': customer_name,
            'description': description,
            'invoice': invoice_number,
            'metadata': metadata or {}
        }
        try:
            response = requests.post(
                f"{self.base_url}/sale",
                json=payload,
                headers={'Authorization': f"Bearer {self.api_key}"},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"Payment gateway request failed: {e}")
            return GatewayResult(False, error='Payment gateway unavailable', error_code='NETWORK')

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or body.get('status') not in ('approved', 'success'):
            logger.warning(f"Payment declined ({response.status_code}): {body.get('error')}")
            return GatewayResult(
                False,
                transaction_id=body.get('transaction_id'),
                error=body.get('error') or 'Payment was declined',
                error_code=body.get('error_code') or str(response.status_code)
            )

        return GatewayResult(
            True,
            transaction_id=body.get('transaction_id'),
            auth_code=body.get('auth_code'),
            masked_card=body.get('masked_card'),
            card_type=body.get('card_type')
        )


class InProcessPaymentGateway(PaymentGateway):
    """
    Gateway that settles in memory. Card tokens starting with 'decline'
    are refused; everything else is approved.
    """

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.sales: List[Dict] = []

    def is_configured(self) -> bool:
        return self.configured

    def public_key(self) -> Optional[str]:
        return 'in-process'

    def process_sale(self, amount, currency, card_token, cvv_token=None, expiration=None,
                     customer_email=None, customer_name=None, description=None,
                     invoice_number=None, metadata=None) -> GatewayResult:
        self.sales.append({'amount': amount, 'currency': currency, 'card_token': card_token,
                           'invoice_number': invoice_number})
        if not card_token or card_token.startswith('decline'):
            return GatewayResult(False, error='Card was declined', error_code='DECLINED')
        return GatewayResult(True, transaction_id=f"txn_{uuid.uuid4().hex[:16]}",
                             auth_code='000000', masked_card='************4242', card_type='Visa')


def get_payment_gateway() -> PaymentGateway:
    """The app's registered gateway, else an HTTP gateway built from settings."""
    if has_app_context() and 'payment_gateway' in current_app.extensions:
        return current_app.extensions['payment_gateway']
    return HttpPaymentGateway(
        get_setting('PAYMENT_GATEWAY_URL'),
        get_setting('PAYMENT_GATEWAY_KEY'),
        int(get_setting('PAYMENT_GATEWAY_TIMEOUT', 30)),
        get_setting('PAYMENT_GATEWAY_PUBLIC_KEY')
    )


class ClientPortalService:
    """Client-facing portal: view invoices, approve them and pay by card."""

    def __init__(self, session: Session, gateway: PaymentGateway = None):
        self.session = session
        self.gateway = gateway or get_payment_gateway()

    def _get_token(self, token: str) -> ClientAccessToken:
        access = self.session.query(ClientAccessToken).filter(
            ClientAccessToken.token == token,
            ClientAccessToken.active == True  # noqa: E712
        ).first()
        if not access or (access.expires_at and access.expires_at <= datetime.utcnow()):
            raise TokenExpiredError('Invalid or expired access link', status_code=401)
        return access

    def _events(self, access: ClientAccessToken):
        return get_event_logger(self.session, access.project.organization_id, actor_type='client')

    def _get_quote(self, access: ClientAccessToken, quote_id: str, status: str = None) -> ClientQuote:
        query = self.session.query(ClientQuote).filter(
            ClientQuote.id == quote_id,
            ClientQuote.project_id == access.project_id
        )
        if status:
            query = query.filter(ClientQuote.status == status)
        quote = query.first()
        if not quote:
            raise NotFoundError('Approved quote not found' if status == 'APPROVED' else 'Quote not found')
        return quote

    # =========================================================================
    # VIEW & APPROVE
    # =========================================================================

    def view(self, token: str) -> Dict:
        """Project and its non-draft invoices with balances."""
        access = self._get_token(token)
        access.last_accessed_at = datetime.utcnow()
        project = access.project

        quotes = self.session.query(ClientQuote).filter(
            ClientQuote.project_id == project.id,
            ClientQuote.status != 'DRAFT'
        ).order_by(ClientQuote.created_at.desc()).all()

        invoices = []
        for quote in quotes:
            data = quote.to_dict(include_lines=True)
            paid = paid_amount(quote, ('PAID',))
            data['paid_amount'] = paid
            data['remaining_balance'] = round_money(max((quote.total_amount or 0) - paid, 0))
            data['can_pay'] = quote.status == 'APPROVED' and data['remaining_balance'] > 0
            invoices.append(data)
        self.session.flush()

        return {
            'project': {
                'id': project.id,
                'name': project.name,
                'address': project.address,
                'client': {'name': project.client.name, 'email': project.client.email}
                if project.client else None
            },
            'invoices': invoices,
            'payments_enabled': self.gateway.is_configured(),
            'payment_key': self.gateway.public_key()
        }

    def approve(self, token: str, quote_id: str) -> Dict:
        access = self._get_token(token)
        quote = self._get_quote(access, quote_id)
        if quote.status != 'SENT_TO_CLIENT':
            raise ValidationError(f"Quote cannot be approved from status {quote.status}")

        quote.status = 'APPROVED'
        quote.approved_at = datetime.utcnow()
        item_ids = [li.ffe_item_id for li in quote.line_items if li.ffe_item_id]
        StatusSyncService(self.session, quote.organization_id).sync_items_status(
            item_ids, 'client_approved', actor_name=quote.client_name, actor_type='client'
        )
        self.session.flush()

        self._events(access).log('client_quote', quote.id, 'INVOICE_RESPONSE',
                                 f"Client approved {quote.quote_number} through the portal",
                                 {'new_status': 'APPROVED'})
        logger.info(f"Client approved quote {quote.id}")
        return quote.to_dict(include_lines=False)

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def initialize_payment(self, token: str, data: Dict) -> Dict:
        """Create a PENDING card payment for an approved quote."""
        access = self._get_token(token)
        quote = self._get_quote(access, data.get('quote_id') or data.get('quoteId'), status='APPROVED')

        remaining = round_money((quote.total_amount or quote.subtotal or 0) - paid_amount(quote, ('PAID',)))
        if remaining <= 0:
            raise ValidationError('Quote is already fully paid')

        amount = to_float(data.get('amount'), 'amount') or remaining
        if amount <= 0:
            raise ValidationError('Payment amount must be positive', 'amount')
        if round_money(amount) > remaining:
            raise ValidationError(
                f"Payment amount exceeds remaining balance of ${remaining:.2f}", 'amount'
            )

        if not self.gateway.is_configured():
            raise ServiceUnavailableError('Payment processing is not configured')

        apply_surcharge = data.get('apply_surcharge', True)
        surcharge_percent = quote.cc_surcharge_percent
        if surcharge_percent is None:
            surcharge_percent = float(get_setting('CC_SURCHARGE_PERCENT', 3.0))
        surcharge = round_money(amount * surcharge_percent / 100) if apply_surcharge else 0.0
        total_charged = round_money(amount + surcharge)

        payment = Payment(
            organization_id=quote.organization_id,
            client_quote=quote,
            amount=round_money(amount),
            surcharge_amount=surcharge,
            total_charged=total_charged,
            currency=quote.currency or 'CAD',
            method='CREDIT_CARD',
            status='PENDING',
            notes=(f"Original amount: ${amount:.2f}, CC surcharge ({surcharge_percent:g}%): ${surcharge:.2f}"
                   if apply_surcharge else None),
            extra_data={
                'surcharge_applied': bool(apply_surcharge),
                'quote_number': quote.quote_number,
                'project_id': access.project_id
            }
        )
        self.session.add(payment)
        self.session.flush()

        self._events(access).log('payment', payment.id, 'PAYMENT_INITIATED',
                                 f"Payment of ${total_charged:.2f} initiated on {quote.quote_number}",
                                 {'client_quote_id': quote.id, 'surcharge_amount': surcharge})
        logger.info(f"Initialized payment {payment.id} for quote {quote.id}")
        return {
            'payment_id': payment.id,
            'amount': payment.amount,
            'surcharge_amount': surcharge,
            'total_amount': total_charged,
            'payment_key': self.gateway.public_key()
        }

    def process_payment(self, token: str, data: Dict) -> Dict:
        """Charge the card token; on success reconcile the invoice."""
        access = self._get_token(token)
        payment = self.session.query(Payment).join(
            ClientQuote, Payment.client_quote_id == ClientQuote.id
        ).filter(
            Payment.id == (data.get('payment_id') or data.get('paymentId')),
            Payment.status == 'PENDING',
            ClientQuote.project_id == access.project_id
        ).first()
        if not payment:
            raise NotFoundError('Payment not found or already processed')

        quote = payment.client_quote
        client = access.project.client
        result = self.gateway.process_sale(
            amount=payment.total_charged or payment.amount,
            currency=payment.currency,
            card_token=data.get('card_token'),
            cvv_token=data.get('cvv_token'),
            expiration=data.get('expiration'),
            customer_email=client.email if client else None,
            customer_name=client.name if client else None,
            description=f"Payment for {quote.quote_number} - {quote.title}",
            invoice_number=quote.quote_number,
            metadata={'payment_id': payment.id, 'project_id': access.project_id}
        )
        events = self._events(access)
        metadata = dict(payment.extra_data or {})

        if not result.success:
            payment.status = 'FAILED'
            payment.failure_reason = result.error
            metadata['failure_code'] = result.error_code
            payment.extra_data = metadata
            self.session.flush()
            events.log('payment', payment.id, 'PAYMENT_FAILED',
                       f"Payment of ${payment.total_charged:.2f} failed: {result.error}",
                       {'client_quote_id': quote.id, 'error_code': result.error_code})
            logger.warning(f"Payment {payment.id} failed: {result.error}")
            raise PaymentProcessingError(result.error or 'Payment was declined')

        payment.status = 'PAID'
        payment.paid_at = datetime.utcnow()
        payment.transaction_id = result.transaction_id
        metadata.update({'auth_code': result.auth_code, 'masked_card': result.masked_card,
                         'card_type': result.card_type})
        payment.extra_data = metadata
        self.session.flush()

        events.log('payment', payment.id, 'PAYMENT_RECEIVED',
                   f"Card payment of ${payment.total_charged:.2f} completed on {quote.quote_number}",
                   {'client_quote_id': quote.id, 'transaction_id': result.transaction_id})

        total = round_money(quote.total_amount or quote.subtotal or 0)
        total_paid = paid_amount(quote, ('PAID',))
        fully_paid = total_paid >= total
        if fully_paid:
            reconcile_invoice_payments(self.session, quote, actor_type='client')
        logger.info(f"Processed payment {payment.id}, fully paid: {fully_paid}")

        return {
            'success': True,
            'payment_id': payment.id,
            'transaction_id': result.transaction_id,
            'fully_paid': fully_paid,
            'total_paid': total_paid,
            'remaining_balance': round_money(max(total - total_paid, 0))
        }
