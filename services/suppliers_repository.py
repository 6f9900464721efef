"""
Suppliers Repository - vendor records used by RFQs and purchase orders.
"""

import logging
from datetime import datetime
from typing import List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import or_

from database.models import Supplier
from services.errors import NotFoundError
from services.event_logger import get_event_logger
from validators import (
    ValidationError, ensure, validate_email, validate_phone, validate_url, validate_currency, to_float
)

logger = logging.getLogger(__name__)

DEFAULT_MARKUP_PERCENT = 25.0


class SuppliersRepository:
    """Repository for supplier database operations."""

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.events = get_event_logger(session, organization_id, user_id)

    def get_model(self, supplier_id: str) -> Supplier:
        supplier = self.session.query(Supplier).filter(
            Supplier.id == supplier_id,
            Supplier.organization_id == self.organization_id
        ).first()
        if not supplier:
            raise NotFoundError('Supplier not found')
        return supplier

    def list_suppliers(self, active_only: bool = True, search: str = None) -> List[Dict]:
        """List suppliers, active only by default."""
        query = self.session.query(Supplier).filter(
            Supplier.organization_id == self.organization_id
        )
        if active_only:
            query = query.filter(Supplier.is_active == True)  # noqa: E712
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Supplier.name.ilike(pattern),
                Supplier.contact_name.ilike(pattern),
                Supplier.email.ilike(pattern)
            ))
        return [s.to_dict() for s in query.order_by(Supplier.name).all()]

    def search_suppliers(self, term: str) -> List[Dict]:
        return self.list_suppliers(active_only=True, search=term)

    def get_supplier(self, supplier_id: str) -> Dict:
        return self.get_model(supplier_id).to_dict()

    def _validate(self, data: Dict):
        if data.get('email'):
            ensure(*validate_email(data['email']), field='email')
        if data.get('phone'):
            ensure(*validate_phone(data['phone']), field='phone')
        if data.get('website'):
            ensure(*validate_url(data['website']), field='website')
        if data.get('currency'):
            ensure(*validate_currency(data['currency']), field='currency')
        markup = to_float(data.get('markup_percent'), 'markup_percent')
        if markup is not None and markup < 0:
            raise ValidationError('Markup cannot be negative', 'markup_percent')

    def create_supplier(self, data: Dict) -> Dict:
        """Create a new supplier."""
        if not (data.get('name') or '').strip():
            raise ValidationError('Supplier name is required', 'name')
        self._validate(data)

        markup = to_float(data.get('markup_percent'), 'markup_percent')
        supplier = Supplier(
            organization_id=self.organization_id,
            name=data['name'].strip(),
            contact_name=data.get('contact_name'),
            email=data.get('email'),
            phone=data.get('phone'),
            website=data.get('website'),
            address=data.get('address'),
            markup_percent=DEFAULT_MARKUP_PERCENT if markup is None else markup,
            currency=data.get('currency') or 'CAD',
            notes=data.get('notes'),
            is_active=True
        )
        self.session.add(supplier)
        self.session.flush()
        self.events.log_create('supplier', supplier.id, f"Supplier '{supplier.name}' was created")
        logger.info(f"Created supplier: {supplier.id}")
        return supplier.to_dict()

    def update_supplier(self, supplier_id: str, data: Dict) -> Dict:
        """Update a supplier."""
        supplier = self.get_model(supplier_id)
        self._validate(data)

        changes = {}
        for key in ['name', 'contact_name', 'email', 'phone', 'website', 'address',
                    'currency', 'notes', 'is_active']:
            if key in data and getattr(supplier, key) != data[key]:
                changes[key] = data[key]
                setattr(supplier, key, data[key])
        if 'markup_percent' in data:
            supplier.markup_percent = to_float(data['markup_percent'], 'markup_percent')
            changes['markup_percent'] = supplier.markup_percent

        supplier.updated_at = datetime.utcnow()
        self.session.flush()
        if changes:
            self.events.log_update('supplier', supplier.id, changes)
        logger.info(f"Updated supplier: {supplier_id}")
        return supplier.to_dict()

    def deactivate_supplier(self, supplier_id: str) -> bool:
        """Suppliers are deactivated, never deleted (quotes and orders reference them)."""
        supplier = self.get_model(supplier_id)
        supplier.is_active = False
        supplier.updated_at = datetime.utcnow()
        self.session.flush()
        self.events.log_status_change('supplier', supplier.id, 'active', 'inactive')
        logger.info(f"Deactivated supplier: {supplier_id}")
        return True
