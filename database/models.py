"""
SQLAlchemy models for StudioFlow.
Defines the tables for projects, FFE specification, procurement, invoicing,
drawings and the audit trail.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Date,
    ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from database.connection import Base


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


# =============================================================================
# ENUMERATED VALUES
# =============================================================================

USER_ROLES = ('OWNER', 'ADMIN', 'DESIGNER', 'RENDERER', 'DRAFTER', 'FFE', 'VIEWER')
PROJECT_TYPES = ('RESIDENTIAL', 'COMMERCIAL', 'HOSPITALITY')
PROJECT_STATUSES = ('DRAFT', 'IN_PROGRESS', 'ON_HOLD', 'URGENT', 'CANCELLED', 'COMPLETED')
ROOM_TYPES = (
    'ENTRANCE', 'FOYER', 'STAIRCASE', 'LIVING_ROOM', 'DINING_ROOM', 'KITCHEN',
    'STUDY_ROOM', 'OFFICE', 'PLAYROOM', 'MASTER_BEDROOM', 'GIRLS_ROOM', 'BOYS_ROOM',
    'GUEST_BEDROOM', 'POWDER_ROOM', 'MASTER_BATHROOM', 'FAMILY_BATHROOM',
    'GIRLS_BATHROOM', 'BOYS_BATHROOM', 'GUEST_BATHROOM', 'LAUNDRY_ROOM', 'SUKKAH',
    'BEDROOM', 'BATHROOM', 'FAMILY_ROOM', 'HALLWAY', 'PANTRY', 'LAUNDRY', 'MUDROOM',
    'CLOSET', 'OUTDOOR', 'OTHER'
)
ROOM_STATUSES = ('NOT_STARTED', 'IN_PROGRESS', 'ON_HOLD', 'COMPLETED', 'NEEDS_ATTENTION')
STAGE_TYPES = ('DESIGN_CONCEPT', 'THREE_D', 'CLIENT_APPROVAL', 'DRAWINGS', 'FFE')
STAGE_STATUSES = (
    'NOT_STARTED', 'IN_PROGRESS', 'COMPLETED', 'ON_HOLD', 'NEEDS_ATTENTION',
    'PENDING_APPROVAL', 'REVISION_REQUESTED', 'NOT_APPLICABLE'
)
APPROVAL_STATUSES = (
    'DRAFT', 'PENDING_INTERNAL_APPROVAL', 'READY_FOR_CLIENT', 'SENT_TO_CLIENT',
    'CLIENT_REVIEWING', 'FOLLOW_UP_REQUIRED', 'CLIENT_APPROVED', 'REVISION_REQUESTED'
)
ITEM_STATES = ('PENDING', 'UNDECIDED', 'SELECTED', 'CONFIRMED', 'NOT_NEEDED', 'COMPLETED')
ITEM_VISIBILITY = ('VISIBLE', 'HIDDEN')
ITEM_PAYMENT_STATUSES = ('NOT_INVOICED', 'INVOICED', 'DEPOSIT_PAID', 'FULLY_PAID')
RFQ_STATUSES = ('DRAFT', 'SENT', 'PARTIALLY_QUOTED', 'FULLY_QUOTED', 'ACCEPTED', 'CANCELLED', 'EXPIRED')
SUPPLIER_RESPONSE_STATUSES = ('PENDING', 'VIEWED', 'SUBMITTED', 'DECLINED', 'EXPIRED')
SUPPLIER_QUOTE_STATUSES = ('SUBMITTED', 'ACCEPTED', 'REJECTED', 'REVISION_REQUESTED', 'EXPIRED')
CLIENT_QUOTE_STATUSES = ('DRAFT', 'SENT_TO_CLIENT', 'APPROVED', 'REVISION_REQUESTED', 'REJECTED', 'CANCELLED')
PAYMENT_METHODS = ('CREDIT_CARD', 'E_TRANSFER', 'CHECK', 'WIRE', 'CASH', 'OTHER')
PAYMENT_STATUSES = ('PENDING', 'PAID', 'PARTIAL', 'FAILED', 'REFUNDED')
ORDER_STATUSES = (
    'PENDING_PAYMENT', 'PAYMENT_RECEIVED', 'ORDERED', 'CONFIRMED', 'SHIPPED',
    'DELIVERED', 'INSTALLED', 'COMPLETED', 'CANCELLED'
)
DELIVERY_STATUSES = ('PENDING', 'IN_TRANSIT', 'DELIVERED', 'FAILED')
DRAWING_DISCIPLINES = (
    'ARCHITECTURAL', 'ELECTRICAL', 'LIGHTING', 'MILLWORK', 'PLUMBING', 'INTERIOR_DESIGN', 'OTHER'
)
DRAWING_STATUSES = ('ACTIVE', 'SUPERSEDED', 'ARCHIVED')
CAD_FRESHNESS_STATUSES = ('UP_TO_DATE', 'CAD_MODIFIED', 'NEEDS_REPLOT', 'DISMISSED')
TRANSMITTAL_METHODS = ('EMAIL', 'PRINT', 'HAND_DELIVERY', 'OTHER')
TRANSMITTAL_PURPOSES = ('FOR_INFORMATION', 'FOR_APPROVAL', 'FOR_CONSTRUCTION', 'FOR_REVIEW', 'FOR_TENDER')
UPDATE_TYPES = (
    'GENERAL', 'PHOTO', 'TASK', 'DOCUMENT', 'COMMUNICATION', 'MILESTONE', 'INSPECTION', 'ISSUE'
)
UPDATE_CATEGORIES = (
    'GENERAL', 'PROGRESS', 'QUALITY', 'SAFETY', 'BUDGET', 'SCHEDULE', 'COMMUNICATION', 'APPROVAL'
)
UPDATE_STATUSES = ('ACTIVE', 'COMPLETED', 'CANCELLED', 'ON_HOLD', 'REQUIRES_ATTENTION')
UPDATE_PRIORITIES = ('URGENT', 'HIGH', 'MEDIUM', 'LOW', 'NORMAL')


# =============================================================================
# ORGANIZATION (Multi-tenant foundation)
# =============================================================================

class Organization(Base):
    """Design studio / tenant. Every query is scoped to one organization."""
    __tablename__ = 'organizations'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False)
    settings = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="organization")
    projects = relationship("Project", back_populates="organization")
    suppliers = relationship("Supplier", back_populates="organization")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'settings': self.settings or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    """Team members. Authentication itself is delegated; we keep role and scope."""
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255))
    role = Column(String(50), default='DESIGNER')  # see USER_ROLES
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="users")

    __table_args__ = (
        Index('ix_users_organization', 'organization_id'),
    )

    def to_dict(self, include_sensitive=False):
        data = {
            'id': self.id,
            'organization_id': self.organization_id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'is_active': self.is_active,
            'last_login': _iso(self.last_login),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_sensitive:
            data['password_hash'] = self.password_hash
        return data


# =============================================================================
# PROJECTS, ROOMS, STAGES
# =============================================================================

class Client(Base):
    """Client of the studio (the homeowner or business)."""
    __tablename__ = 'clients'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    company = Column(String(255))
    address = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    projects = relationship("Project", back_populates="client")

    __table_args__ = (
        Index('ix_clients_organization', 'organization_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'company': self.company,
            'address': self.address,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


class Project(Base):
    """Design project for a client."""
    __tablename__ = 'projects'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    client_id = Column(String(36), ForeignKey('clients.id'))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    project_type = Column(String(50), default='RESIDENTIAL')
    status = Column(String(50), default='DRAFT')
    address = Column(Text)
    budget = Column(Float)
    start_date = Column(Date)
    due_date = Column(Date)
    created_by_id = Column(String(36), ForeignKey('users.id'))
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="projects")
    client = relationship("Client", back_populates="projects")
    rooms = relationship("Room", back_populates="project", order_by="Room.order",
                         cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_projects_organization', 'organization_id'),
        Index('ix_projects_status', 'status'),
    )

    def to_dict(self, include_rooms=False):
        data = {
            'id': self.id,
            'organization_id': self.organization_id,
            'client_id': self.client_id,
            'client_name': self.client.name if self.client else None,
            'name': self.name,
            'description': self.description,
            'type': self.project_type,
            'status': self.status,
            'address': self.address,
            'budget': self.budget,
            'start_date': _iso(self.start_date),
            'due_date': _iso(self.due_date),
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_rooms:
            data['rooms'] = [r.to_dict() for r in self.rooms]
        return data


class Room(Base):
    """Room within a project."""
    __tablename__ = 'rooms'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    room_type = Column(String(50), nullable=False, default='OTHER')
    name = Column(String(255))
    status = Column(String(50), default='NOT_STARTED')
    order = Column(Integer, default=0)
    ffe_progress = Column(Float, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project", back_populates="rooms")
    stages = relationship("Stage", back_populates="room", cascade="all, delete-orphan")
    sections = relationship("FFESection", back_populates="room", order_by="FFESection.order",
                            cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_rooms_project', 'project_id'),
    )

    @property
    def display_name(self):
        return self.name or self.room_type.replace('_', ' ').title()

    def to_dict(self, include_stages=True):
        data = {
            'id': self.id,
            'project_id': self.project_id,
            'type': self.room_type,
            'name': self.name,
            'display_name': self.display_name,
            'status': self.status,
            'order': self.order,
            'ffe_progress': self.ffe_progress or 0,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_stages:
            data['stages'] = [s.to_dict() for s in self.stages]
        return data


class Stage(Base):
    """Workflow phase of a room (concept, 3D, approval, drawings, FFE)."""
    __tablename__ = 'stages'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    room_id = Column(String(36), ForeignKey('rooms.id'), nullable=False)
    stage_type = Column(String(50), nullable=False)
    status = Column(String(50), default='NOT_STARTED')
    assigned_to_id = Column(String(36), ForeignKey('users.id'))
    due_date = Column(Date)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room = relationship("Room", back_populates="stages")

    __table_args__ = (
        UniqueConstraint('room_id', 'stage_type', name='uq_stage_room_type'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'type': self.stage_type,
            'status': self.status,
            'assigned_to_id': self.assigned_to_id,
            'due_date': _iso(self.due_date),
            'completed_at': _iso(self.completed_at),
            'updated_at': _iso(self.updated_at)
        }


class ClientApprovalVersion(Base):
    """A design version presented to the client for approval."""
    __tablename__ = 'client_approval_versions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    room_id = Column(String(36), ForeignKey('rooms.id'), nullable=False)
    version = Column(String(20), nullable=False)  # v1, v2, ...
    status = Column(String(50), default='DRAFT')
    notes = Column(Text)
    sent_at = Column(DateTime)
    client_decision = Column(String(50))
    client_decided_at = Column(DateTime)
    client_message = Column(Text)
    created_by_id = Column(String(36), ForeignKey('users.id'))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    room = relationship("Room")

    __table_args__ = (
        Index('ix_approval_versions_room', 'room_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'version': self.version,
            'status': self.status,
            'notes': self.notes,
            'sent_at': _iso(self.sent_at),
            'client_decision': self.client_decision,
            'client_decided_at': _iso(self.client_decided_at),
            'client_message': self.client_message,
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# FFE SPECIFICATION
# =============================================================================

class FFESection(Base):
    """Grouping of FFE items in a room (Lighting, Furniture, Plumbing...)."""
    __tablename__ = 'ffe_sections'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    room_id = Column(String(36), ForeignKey('rooms.id'), nullable=False)
    name = Column(String(255), nullable=False)
    order = Column(Integer, default=0)
    is_completed = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    room = relationship("Room", back_populates="sections")
    items = relationship("FFEItem", back_populates="section", order_by="FFEItem.order",
                         cascade="all, delete-orphan")

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'room_id': self.room_id,
            'name': self.name,
            'order': self.order,
            'is_completed': self.is_completed,
            'item_count': len(self.items)
        }
        if include_items:
            data['items'] = [i.to_dict() for i in self.items]
        return data


class FFEItem(Base):
    """A specified furniture/fixture/equipment item and its procurement state."""
    __tablename__ = 'ffe_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    section_id = Column(String(36), ForeignKey('ffe_sections.id'), nullable=False)
    room_id = Column(String(36), ForeignKey('rooms.id'), nullable=False)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    state = Column(String(50), default='PENDING')
    visibility = Column(String(20), default='VISIBLE')
    spec_status = Column(String(50), default='DRAFT')
    payment_status = Column(String(50), default='NOT_INVOICED')
    order = Column(Integer, default=0)
    quantity = Column(Integer, default=1)
    unit_type = Column(String(50))
    sku = Column(String(100))
    brand = Column(String(255))
    doc_code = Column(String(50))
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    supplier_name = Column(String(255))
    trade_price = Column(Float)
    rrp = Column(Float)
    markup_percent = Column(Float)
    currency = Column(String(3), default='CAD')
    lead_time = Column(String(100))
    accepted_quote_line_item_id = Column(String(36))
    paid_amount = Column(Float)
    paid_at = Column(DateTime)
    notes = Column(Text)
    completed_at = Column(DateTime)
    extra_data = Column(JSON, default=dict)
    created_by_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    section = relationship("FFESection", back_populates="items")
    room = relationship("Room")
    project = relationship("Project")
    supplier = relationship("Supplier")
    components = relationship("ItemComponent", back_populates="item", cascade="all, delete-orphan")
    activities = relationship("ItemActivity", back_populates="item", cascade="all, delete-orphan",
                              order_by="ItemActivity.created_at.desc()")

    __table_args__ = (
        Index('ix_ffe_items_project', 'project_id'),
        Index('ix_ffe_items_room', 'room_id'),
        Index('ix_ffe_items_spec_status', 'spec_status'),
    )

    def to_dict(self, include_components=True):
        data = {
            'id': self.id,
            'section_id': self.section_id,
            'room_id': self.room_id,
            'project_id': self.project_id,
            'name': self.name,
            'description': self.description,
            'state': self.state,
            'visibility': self.visibility,
            'spec_status': self.spec_status,
            'payment_status': self.payment_status,
            'order': self.order,
            'quantity': self.quantity,
            'unit_type': self.unit_type,
            'sku': self.sku,
            'brand': self.brand,
            'doc_code': self.doc_code,
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier_name,
            'trade_price': self.trade_price,
            'rrp': self.rrp,
            'markup_percent': self.markup_percent,
            'currency': self.currency,
            'lead_time': self.lead_time,
            'accepted_quote_line_item_id': self.accepted_quote_line_item_id,
            'paid_amount': self.paid_amount,
            'paid_at': _iso(self.paid_at),
            'notes': self.notes,
            'completed_at': _iso(self.completed_at),
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_components:
            data['components'] = [c.to_dict() for c in self.components]
        return data


class ItemComponent(Base):
    """Priced sub-part of an item (e.g. a shade for a lamp)."""
    __tablename__ = 'item_components'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(String(36), ForeignKey('ffe_items.id'), nullable=False)
    name = Column(String(255), nullable=False)
    model_number = Column(String(100))
    price = Column(Float)
    quantity = Column(Integer, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)

    item = relationship("FFEItem", back_populates="components")

    def to_dict(self):
        return {
            'id': self.id,
            'item_id': self.item_id,
            'name': self.name,
            'model_number': self.model_number,
            'price': self.price,
            'quantity': self.quantity
        }


class ItemActivity(Base):
    """Timeline entry on an FFE item."""
    __tablename__ = 'item_activities'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    item_id = Column(String(36), ForeignKey('ffe_items.id'), nullable=False)
    activity_type = Column(String(50), nullable=False)
    title = Column(String(255))
    description = Column(Text)
    actor_id = Column(String(36))
    actor_name = Column(String(255))
    actor_type = Column(String(20), default='system')  # user, system, supplier, client
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    item = relationship("FFEItem", back_populates="activities")

    __table_args__ = (
        Index('ix_item_activities_item', 'item_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'item_id': self.item_id,
            'type': self.activity_type,
            'title': self.title,
            'description': self.description,
            'actor_id': self.actor_id,
            'actor_name': self.actor_name,
            'actor_type': self.actor_type,
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# SUPPLIERS
# =============================================================================

class Supplier(Base):
    """Vendor/supplier records."""
    __tablename__ = 'suppliers'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    name = Column(String(255), nullable=False)
    contact_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))
    website = Column(String(255))
    address = Column(Text)
    markup_percent = Column(Float, default=25.0)
    currency = Column(String(3), default='CAD')
    notes = Column(Text)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    organization = relationship("Organization", back_populates="suppliers")

    __table_args__ = (
        Index('ix_suppliers_organization', 'organization_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'name': self.name,
            'contact_name': self.contact_name,
            'email': self.email,
            'phone': self.phone,
            'website': self.website,
            'address': self.address,
            'markup_percent': self.markup_percent,
            'currency': self.currency,
            'notes': self.notes,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }


# =============================================================================
# RFQS
# =============================================================================

class RFQ(Base):
    """Request for quotation sent to one or more suppliers."""
    __tablename__ = 'rfqs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    rfq_number = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(50), default='DRAFT')
    response_deadline = Column(DateTime)
    sent_at = Column(DateTime)
    created_by_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project")
    line_items = relationship("RFQLineItem", back_populates="rfq", order_by="RFQLineItem.order",
                              cascade="all, delete-orphan")
    supplier_rfqs = relationship("SupplierRFQ", back_populates="rfq", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_rfqs_organization', 'organization_id'),
        Index('ix_rfqs_project', 'project_id'),
    )

    def to_dict(self, include_lines=True):
        data = {
            'id': self.id,
            'project_id': self.project_id,
            'rfq_number': self.rfq_number,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'response_deadline': _iso(self.response_deadline),
            'sent_at': _iso(self.sent_at),
            'supplier_count': len(self.supplier_rfqs),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_lines:
            data['line_items'] = [li.to_dict() for li in self.line_items]
        return data


class RFQLineItem(Base):
    __tablename__ = 'rfq_line_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    rfq_id = Column(String(36), ForeignKey('rfqs.id'), nullable=False)
    ffe_item_id = Column(String(36), ForeignKey('ffe_items.id'))
    item_name = Column(String(255), nullable=False)
    item_description = Column(Text)
    quantity = Column(Integer, default=1)
    unit_type = Column(String(50))
    specifications = Column(JSON, default=dict)
    target_unit_price = Column(Float)
    order = Column(Integer, default=0)

    rfq = relationship("RFQ", back_populates="line_items")
    ffe_item = relationship("FFEItem")

    def to_dict(self):
        return {
            'id': self.id,
            'rfq_id': self.rfq_id,
            'ffe_item_id': self.ffe_item_id,
            'item_name': self.item_name,
            'item_description': self.item_description,
            'quantity': self.quantity,
            'unit_type': self.unit_type,
            'specifications': self.specifications or {},
            'target_unit_price': self.target_unit_price,
            'sku': self.ffe_item.sku if self.ffe_item else None
        }


class SupplierRFQ(Base):
    """One recipient of an RFQ, holding the supplier portal token."""
    __tablename__ = 'supplier_rfqs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    rfq_id = Column(String(36), ForeignKey('rfqs.id'), nullable=False)
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    vendor_name = Column(String(255))
    vendor_email = Column(String(255))
    access_token = Column(String(100), unique=True, nullable=False)
    token_expires_at = Column(DateTime)
    response_status = Column(String(50), default='PENDING')
    sent_at = Column(DateTime)
    viewed_at = Column(DateTime)
    responded_at = Column(DateTime)
    decline_reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    rfq = relationship("RFQ", back_populates="supplier_rfqs")
    supplier = relationship("Supplier")
    quotes = relationship("SupplierQuote", back_populates="supplier_rfq",
                          order_by="SupplierQuote.version.desc()", cascade="all, delete-orphan")
    access_logs = relationship("SupplierAccessLog", back_populates="supplier_rfq",
                               cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_supplier_rfqs_rfq', 'rfq_id'),
    )

    @property
    def display_name(self):
        if self.supplier:
            return self.supplier.name
        return self.vendor_name or 'Supplier'

    @property
    def email(self):
        if self.supplier and self.supplier.email:
            return self.supplier.email
        return self.vendor_email

    def to_dict(self):
        return {
            'id': self.id,
            'rfq_id': self.rfq_id,
            'supplier_id': self.supplier_id,
            'supplier_name': self.display_name,
            'vendor_name': self.vendor_name,
            'vendor_email': self.email,
            'response_status': self.response_status,
            'token_expires_at': _iso(self.token_expires_at),
            'sent_at': _iso(self.sent_at),
            'viewed_at': _iso(self.viewed_at),
            'responded_at': _iso(self.responded_at),
            'decline_reason': self.decline_reason
        }


class SupplierAccessLog(Base):
    __tablename__ = 'supplier_access_logs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_rfq_id = Column(String(36), ForeignKey('supplier_rfqs.id'), nullable=False)
    action = Column(String(50), nullable=False)  # EMAIL_SENT, VIEW, DECLINE, SUBMIT_QUOTE
    ip_address = Column(String(100))
    user_agent = Column(String(500))
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    supplier_rfq = relationship("SupplierRFQ", back_populates="access_logs")

    def to_dict(self):
        return {
            'id': self.id,
            'supplier_rfq_id': self.supplier_rfq_id,
            'action': self.action,
            'ip_address': self.ip_address,
            'user_agent': self.user_agent,
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# SUPPLIER QUOTES
# =============================================================================

class SupplierQuote(Base):
    """Quote submitted by a supplier in response to an RFQ."""
    __tablename__ = 'supplier_quotes'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_rfq_id = Column(String(36), ForeignKey('supplier_rfqs.id'), nullable=False)
    quote_number = Column(String(100))
    version = Column(Integer, default=1)
    status = Column(String(50), default='SUBMITTED')
    subtotal = Column(Float)
    total_amount = Column(Float)
    shipping_cost = Column(Float)
    deposit_required = Column(Float)
    deposit_percent = Column(Float)
    currency = Column(String(3), default='CAD')
    valid_until = Column(DateTime)
    payment_terms = Column(Text)
    shipping_terms = Column(Text)
    estimated_lead_time = Column(String(100))
    supplier_notes = Column(Text)
    internal_notes = Column(Text)
    quote_document_url = Column(Text)
    submitted_at = Column(DateTime)
    reviewed_at = Column(DateTime)
    reviewed_by_id = Column(String(36))
    accepted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    supplier_rfq = relationship("SupplierRFQ", back_populates="quotes")
    line_items = relationship("SupplierQuoteLineItem", back_populates="supplier_quote",
                              cascade="all, delete-orphan")

    def to_dict(self, include_lines=True):
        data = {
            'id': self.id,
            'supplier_rfq_id': self.supplier_rfq_id,
            'quote_number': self.quote_number,
            'version': self.version,
            'status': self.status,
            'subtotal': self.subtotal,
            'total_amount': self.total_amount,
            'shipping_cost': self.shipping_cost,
            'deposit_required': self.deposit_required,
            'deposit_percent': self.deposit_percent,
            'currency': self.currency,
            'valid_until': _iso(self.valid_until),
            'payment_terms': self.payment_terms,
            'shipping_terms': self.shipping_terms,
            'estimated_lead_time': self.estimated_lead_time,
            'supplier_notes': self.supplier_notes,
            'internal_notes': self.internal_notes,
            'quote_document_url': self.quote_document_url,
            'submitted_at': _iso(self.submitted_at),
            'reviewed_at': _iso(self.reviewed_at),
            'accepted_at': _iso(self.accepted_at)
        }
        if include_lines:
            data['line_items'] = [li.to_dict() for li in self.line_items]
        return data


class SupplierQuoteLineItem(Base):
    __tablename__ = 'supplier_quote_line_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    supplier_quote_id = Column(String(36), ForeignKey('supplier_quotes.id'), nullable=False)
    rfq_line_item_id = Column(String(36), ForeignKey('rfq_line_items.id'))
    ffe_item_id = Column(String(36), ForeignKey('ffe_items.id'))
    item_name = Column(String(255))
    unit_price = Column(Float, nullable=False, default=0)
    quantity = Column(Integer, default=1)
    total_price = Column(Float, default=0)
    currency = Column(String(3), default='CAD')
    availability = Column(String(100))
    lead_time_weeks = Column(Integer)
    lead_time = Column(String(100))
    supplier_sku = Column(String(100))
    supplier_model_number = Column(String(100))
    alternate_product = Column(Boolean, default=False)
    alternate_notes = Column(Text)
    notes = Column(Text)
    is_accepted = Column(Boolean, default=False)
    accepted_at = Column(DateTime)
    accepted_by_id = Column(String(36))
    approved_markup_percent = Column(Float)
    quote_version = Column(Integer, default=1)
    is_latest_version = Column(Boolean, default=True)
    previous_version_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)

    supplier_quote = relationship("SupplierQuote", back_populates="line_items")
    rfq_line_item = relationship("RFQLineItem")

    __table_args__ = (
        Index('ix_quote_lines_ffe_item', 'ffe_item_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'supplier_quote_id': self.supplier_quote_id,
            'rfq_line_item_id': self.rfq_line_item_id,
            'ffe_item_id': self.ffe_item_id,
            'item_name': self.item_name,
            'unit_price': self.unit_price,
            'quantity': self.quantity,
            'total_price': self.total_price,
            'currency': self.currency,
            'availability': self.availability,
            'lead_time_weeks': self.lead_time_weeks,
            'lead_time': self.lead_time,
            'supplier_sku': self.supplier_sku,
            'supplier_model_number': self.supplier_model_number,
            'alternate_product': self.alternate_product,
            'alternate_notes': self.alternate_notes,
            'notes': self.notes,
            'is_accepted': self.is_accepted,
            'accepted_at': _iso(self.accepted_at),
            'quote_version': self.quote_version,
            'is_latest_version': self.is_latest_version,
            'previous_version_id': self.previous_version_id
        }


# =============================================================================
# CLIENT QUOTES / INVOICES & PAYMENTS
# =============================================================================

class ClientQuote(Base):
    """Budget quote / invoice sent to the client."""
    __tablename__ = 'client_quotes'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    quote_number = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(50), default='DRAFT')
    client_name = Column(String(255))
    client_email = Column(String(255))
    subtotal = Column(Float, default=0)
    gst_rate = Column(Float)
    gst_amount = Column(Float, default=0)
    qst_rate = Column(Float)
    qst_amount = Column(Float, default=0)
    total_amount = Column(Float, default=0)
    deposit_required = Column(Float)  # percent
    deposit_amount = Column(Float)
    cc_surcharge_percent = Column(Float)
    currency = Column(String(3), default='CAD')
    valid_until = Column(DateTime)
    payment_terms = Column(Text)
    sent_to_client_at = Column(DateTime)
    sent_by_id = Column(String(36))
    approved_at = Column(DateTime)
    created_by_id = Column(String(36))
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project")
    line_items = relationship("ClientQuoteLineItem", back_populates="client_quote",
                              order_by="ClientQuoteLineItem.order", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="client_quote")

    __table_args__ = (
        Index('ix_client_quotes_organization', 'organization_id'),
        Index('ix_client_quotes_project', 'project_id'),
    )

    def to_dict(self, include_lines=True):
        data = {
            'id': self.id,
            'project_id': self.project_id,
            'quote_number': self.quote_number,
            'title': self.title,
            'description': self.description,
            'status': self.status,
            'client_name': self.client_name,
            'client_email': self.client_email,
            'subtotal': self.subtotal,
            'gst_rate': self.gst_rate,
            'gst_amount': self.gst_amount,
            'qst_rate': self.qst_rate,
            'qst_amount': self.qst_amount,
            'total_amount': self.total_amount,
            'deposit_required': self.deposit_required,
            'deposit_amount': self.deposit_amount,
            'cc_surcharge_percent': self.cc_surcharge_percent,
            'currency': self.currency,
            'valid_until': _iso(self.valid_until),
            'payment_terms': self.payment_terms,
            'sent_to_client_at': _iso(self.sent_to_client_at),
            'approved_at': _iso(self.approved_at),
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_lines:
            data['line_items'] = [li.to_dict() for li in self.line_items]
        return data


class ClientQuoteLineItem(Base):
    __tablename__ = 'client_quote_line_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    client_quote_id = Column(String(36), ForeignKey('client_quotes.id'), nullable=False)
    ffe_item_id = Column(String(36), ForeignKey('ffe_items.id'))
    display_name = Column(String(255), nullable=False)
    description = Column(Text)
    group_name = Column(String(255))
    quantity = Column(Integer, default=1)
    unit_type = Column(String(50))
    cost_price = Column(Float)
    markup_percent = Column(Float)
    client_unit_price = Column(Float, nullable=False)
    client_total_price = Column(Float, nullable=False)
    order = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    client_quote = relationship("ClientQuote", back_populates="line_items")
    ffe_item = relationship("FFEItem")

    def to_dict(self):
        return {
            'id': self.id,
            'client_quote_id': self.client_quote_id,
            'ffe_item_id': self.ffe_item_id,
            'display_name': self.display_name,
            'description': self.description,
            'group_name': self.group_name,
            'quantity': self.quantity,
            'unit_type': self.unit_type,
            'cost_price': self.cost_price,
            'markup_percent': self.markup_percent,
            'client_unit_price': self.client_unit_price,
            'client_total_price': self.client_total_price,
            'order': self.order
        }


class ClientAccessToken(Base):
    """Token granting a client access to the project portal."""
    __tablename__ = 'client_access_tokens'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    client_quote_id = Column(String(36), ForeignKey('client_quotes.id'))
    token = Column(String(100), unique=True, nullable=False)
    active = Column(Boolean, default=True)
    expires_at = Column(DateTime)
    last_accessed_at = Column(DateTime)
    created_by_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project")

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'client_quote_id': self.client_quote_id,
            'token': self.token,
            'active': self.active,
            'expires_at': _iso(self.expires_at),
            'last_accessed_at': _iso(self.last_accessed_at)
        }


class Payment(Base):
    """Client payment against an invoice."""
    __tablename__ = 'payments'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    client_quote_id = Column(String(36), ForeignKey('client_quotes.id'), nullable=False)
    amount = Column(Float, nullable=False, default=0)  # applied to the invoice balance
    surcharge_amount = Column(Float, default=0)
    total_charged = Column(Float, default=0)
    currency = Column(String(3), default='CAD')
    method = Column(String(50), default='CREDIT_CARD')
    status = Column(String(50), default='PENDING')
    transaction_id = Column(String(255))
    failure_reason = Column(Text)
    paid_at = Column(DateTime)
    notes = Column(Text)
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client_quote = relationship("ClientQuote", back_populates="payments")

    __table_args__ = (
        Index('ix_payments_organization', 'organization_id'),
        Index('ix_payments_status', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'client_quote_id': self.client_quote_id,
            'amount': self.amount,
            'surcharge_amount': self.surcharge_amount,
            'total_charged': self.total_charged,
            'currency': self.currency,
            'method': self.method,
            'status': self.status,
            'transaction_id': self.transaction_id,
            'failure_reason': self.failure_reason,
            'paid_at': _iso(self.paid_at),
            'notes': self.notes,
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# PURCHASE ORDERS & DELIVERIES
# =============================================================================

class Order(Base):
    """Purchase order placed with a supplier."""
    __tablename__ = 'orders'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    order_number = Column(String(50), nullable=False)
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    vendor_name = Column(String(255))
    vendor_email = Column(String(255))
    status = Column(String(50), default='PENDING_PAYMENT')
    currency = Column(String(3), default='CAD')
    subtotal = Column(Float, default=0)
    shipping_cost = Column(Float)
    extra_charges = Column(JSON, default=list)
    tax_amount = Column(Float)
    total_amount = Column(Float, default=0)
    deposit_required = Column(Float)
    deposit_percent = Column(Float)
    balance_due = Column(Float)
    supplier_payment_amount = Column(Float)
    supplier_payment_method = Column(String(50))
    supplier_payment_reference = Column(String(255))
    supplier_paid_at = Column(DateTime)
    tracking_number = Column(String(255))
    tracking_url = Column(Text)
    shipping_carrier = Column(String(100))
    expected_delivery = Column(DateTime)
    ordered_at = Column(DateTime)
    confirmed_at = Column(DateTime)
    actual_ship_date = Column(DateTime)
    actual_delivery = Column(DateTime)
    supplier_confirmed_by = Column(String(255))
    notes = Column(Text)
    internal_notes = Column(Text)
    access_token = Column(String(100), unique=True)
    token_expires_at = Column(DateTime)
    client_quote_id = Column(String(36), ForeignKey('client_quotes.id'))
    supplier_quote_id = Column(String(36), ForeignKey('supplier_quotes.id'))
    created_by_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project")
    supplier = relationship("Supplier")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    deliveries = relationship("Delivery", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_orders_organization', 'organization_id'),
        Index('ix_orders_project', 'project_id'),
        Index('ix_orders_status', 'status'),
    )

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'project_id': self.project_id,
            'order_number': self.order_number,
            'supplier_id': self.supplier_id,
            'vendor_name': self.vendor_name,
            'vendor_email': self.vendor_email,
            'status': self.status,
            'currency': self.currency,
            'subtotal': self.subtotal,
            'shipping_cost': self.shipping_cost,
            'extra_charges': self.extra_charges or [],
            'tax_amount': self.tax_amount,
            'total_amount': self.total_amount,
            'deposit_required': self.deposit_required,
            'deposit_percent': self.deposit_percent,
            'balance_due': self.balance_due,
            'supplier_payment_amount': self.supplier_payment_amount,
            'supplier_payment_method': self.supplier_payment_method,
            'supplier_payment_reference': self.supplier_payment_reference,
            'supplier_paid_at': _iso(self.supplier_paid_at),
            'tracking_number': self.tracking_number,
            'tracking_url': self.tracking_url,
            'shipping_carrier': self.shipping_carrier,
            'expected_delivery': _iso(self.expected_delivery),
            'ordered_at': _iso(self.ordered_at),
            'confirmed_at': _iso(self.confirmed_at),
            'actual_ship_date': _iso(self.actual_ship_date),
            'actual_delivery': _iso(self.actual_delivery),
            'supplier_confirmed_by': self.supplier_confirmed_by,
            'notes': self.notes,
            'internal_notes': self.internal_notes,
            'client_quote_id': self.client_quote_id,
            'supplier_quote_id': self.supplier_quote_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_items:
            data['items'] = [i.to_dict() for i in self.items]
            data['deliveries'] = [d.to_dict() for d in self.deliveries]
        return data


class OrderItem(Base):
    __tablename__ = 'order_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey('orders.id'), nullable=False)
    ffe_item_id = Column(String(36), ForeignKey('ffe_items.id'))
    supplier_quote_line_item_id = Column(String(36), ForeignKey('supplier_quote_line_items.id'))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    quantity = Column(Integer, default=1)
    unit_price = Column(Float, default=0)
    total_price = Column(Float, default=0)
    status = Column(String(50), default='PENDING')
    is_component = Column(Boolean, default=False)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="items")

    __table_args__ = (
        Index('ix_order_items_ffe_item', 'ffe_item_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'ffe_item_id': self.ffe_item_id,
            'supplier_quote_line_item_id': self.supplier_quote_line_item_id,
            'name': self.name,
            'description': self.description,
            'quantity': self.quantity,
            'unit_price': self.unit_price,
            'total_price': self.total_price,
            'status': self.status,
            'is_component': self.is_component,
            'notes': self.notes
        }


class Delivery(Base):
    __tablename__ = 'deliveries'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey('orders.id'), nullable=False)
    status = Column(String(50), default='PENDING')
    tracking_number = Column(String(255))
    carrier = Column(String(100))
    expected_date = Column(DateTime)
    delivered_at = Column(DateTime)
    received_by = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="deliveries")

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'status': self.status,
            'tracking_number': self.tracking_number,
            'carrier': self.carrier,
            'expected_date': _iso(self.expected_date),
            'delivered_at': _iso(self.delivered_at),
            'received_by': self.received_by,
            'notes': self.notes
        }


# =============================================================================
# DRAWINGS & TRANSMITTALS
# =============================================================================

class Drawing(Base):
    """Drawing register entry with CAD freshness tracking."""
    __tablename__ = 'drawings'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    room_id = Column(String(36), ForeignKey('rooms.id'))
    drawing_number = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    discipline = Column(String(50), default='INTERIOR_DESIGN')
    status = Column(String(50), default='ACTIVE')
    current_revision = Column(Integer, default=0)
    cad_source_path = Column(Text)
    cad_last_modified = Column(DateTime)
    cad_freshness_status = Column(String(50))
    plotted_from_revision = Column(Integer)
    plotted_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project")
    revisions = relationship("DrawingRevision", back_populates="drawing",
                             order_by="DrawingRevision.revision_number",
                             cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('project_id', 'drawing_number', name='uq_drawing_number'),
    )

    def to_dict(self, include_revisions=False):
        data = {
            'id': self.id,
            'project_id': self.project_id,
            'room_id': self.room_id,
            'drawing_number': self.drawing_number,
            'title': self.title,
            'discipline': self.discipline,
            'status': self.status,
            'current_revision': self.current_revision,
            'cad_source_path': self.cad_source_path,
            'cad_last_modified': _iso(self.cad_last_modified),
            'cad_freshness_status': self.cad_freshness_status,
            'plotted_from_revision': self.plotted_from_revision,
            'plotted_at': _iso(self.plotted_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_revisions:
            data['revisions'] = [r.to_dict() for r in self.revisions]
        return data


class DrawingRevision(Base):
    __tablename__ = 'drawing_revisions'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    drawing_id = Column(String(36), ForeignKey('drawings.id'), nullable=False)
    revision_number = Column(Integer, nullable=False)
    description = Column(Text)
    file_url = Column(Text)
    issued_by_id = Column(String(36))
    issued_date = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)

    drawing = relationship("Drawing", back_populates="revisions")

    def to_dict(self):
        return {
            'id': self.id,
            'drawing_id': self.drawing_id,
            'revision_number': self.revision_number,
            'description': self.description,
            'file_url': self.file_url,
            'issued_by_id': self.issued_by_id,
            'issued_date': _iso(self.issued_date)
        }


class Transmittal(Base):
    __tablename__ = 'transmittals'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    transmittal_number = Column(String(20), nullable=False)
    recipient_name = Column(String(255), nullable=False)
    recipient_email = Column(String(255))
    recipient_company = Column(String(255))
    recipient_type = Column(String(50))
    method = Column(String(50), default='EMAIL')
    status = Column(String(20), default='DRAFT')
    notes = Column(Text)
    sent_at = Column(DateTime)
    sent_by_id = Column(String(36))
    created_by_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)

    project = relationship("Project")
    items = relationship("TransmittalItem", back_populates="transmittal", cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_transmittals_project', 'project_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'transmittal_number': self.transmittal_number,
            'recipient_name': self.recipient_name,
            'recipient_email': self.recipient_email,
            'recipient_company': self.recipient_company,
            'recipient_type': self.recipient_type,
            'method': self.method,
            'status': self.status,
            'notes': self.notes,
            'sent_at': _iso(self.sent_at),
            'sent_by_id': self.sent_by_id,
            'items': [i.to_dict() for i in self.items],
            'created_at': _iso(self.created_at)
        }


class TransmittalItem(Base):
    __tablename__ = 'transmittal_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    transmittal_id = Column(String(36), ForeignKey('transmittals.id'), nullable=False)
    drawing_id = Column(String(36), ForeignKey('drawings.id'), nullable=False)
    revision_id = Column(String(36), ForeignKey('drawing_revisions.id'))
    revision_number = Column(Integer)
    purpose = Column(String(50), default='FOR_INFORMATION')
    notes = Column(Text)

    transmittal = relationship("Transmittal", back_populates="items")
    drawing = relationship("Drawing")

    def to_dict(self):
        return {
            'id': self.id,
            'transmittal_id': self.transmittal_id,
            'drawing_id': self.drawing_id,
            'drawing_number': self.drawing.drawing_number if self.drawing else None,
            'revision_id': self.revision_id,
            'revision_number': self.revision_number,
            'purpose': self.purpose,
            'notes': self.notes
        }


# =============================================================================
# PROJECT UPDATES (site log with photos)
# =============================================================================

class ProjectUpdate(Base):
    """
    Entry in a project's site log: progress notes, inspections, issues.
    Photos are attached by URL; files live in external storage.
    """
    __tablename__ = 'project_updates'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    project_id = Column(String(36), ForeignKey('projects.id'), nullable=False)
    room_id = Column(String(36), ForeignKey('rooms.id'))
    author_id = Column(String(36), ForeignKey('users.id'))
    update_type = Column(String(50), default='GENERAL')
    category = Column(String(50), default='GENERAL')
    status = Column(String(50), default='ACTIVE')
    priority = Column(String(20), default='MEDIUM')
    title = Column(String(255))
    description = Column(Text)
    location = Column(String(255))
    gps_coordinates = Column(JSON)
    due_date = Column(DateTime)
    estimated_cost = Column(Float)
    actual_cost = Column(Float)
    completed_at = Column(DateTime)
    completed_by_id = Column(String(36))
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    project = relationship("Project")
    room = relationship("Room")
    author = relationship("User")
    photos = relationship("ProjectUpdatePhoto", back_populates="update",
                          order_by="ProjectUpdatePhoto.taken_at.desc()",
                          cascade="all, delete-orphan")

    __table_args__ = (
        Index('ix_project_updates_project', 'project_id'),
    )

    def to_dict(self, include_photos=False):
        data = {
            'id': self.id,
            'project_id': self.project_id,
            'room_id': self.room_id,
            'room_name': self.room.display_name if self.room else None,
            'author_id': self.author_id,
            'author_name': self.author.name if self.author else None,
            'type': self.update_type,
            'category': self.category,
            'status': self.status,
            'priority': self.priority,
            'title': self.title,
            'description': self.description,
            'location': self.location,
            'gps_coordinates': self.gps_coordinates,
            'due_date': _iso(self.due_date),
            'estimated_cost': self.estimated_cost,
            'actual_cost': self.actual_cost,
            'completed_at': _iso(self.completed_at),
            'completed_by_id': self.completed_by_id,
            'photo_count': len(self.photos),
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at)
        }
        if include_photos:
            data['photos'] = [p.to_dict() for p in self.photos]
        return data


class ProjectUpdatePhoto(Base):
    """Photo on a project update. Stores the asset URL and descriptive metadata only."""
    __tablename__ = 'project_update_photos'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    update_id = Column(String(36), ForeignKey('project_updates.id'), nullable=False)
    url = Column(Text, nullable=False)
    title = Column(String(255))
    filename = Column(String(255))
    mime_type = Column(String(100))
    size = Column(Integer)
    caption = Column(Text)
    taken_at = Column(DateTime, default=datetime.utcnow)
    gps_coordinates = Column(JSON)
    tags = Column(JSON, default=list)
    room_area = Column(String(100))
    trade_category = Column(String(100))
    is_before_photo = Column(Boolean, default=False)
    is_after_photo = Column(Boolean, default=False)
    paired_photo_id = Column(String(36))
    annotations = Column(JSON)
    uploaded_by_id = Column(String(36))
    created_at = Column(DateTime, default=datetime.utcnow)

    update = relationship("ProjectUpdate", back_populates="photos")

    def to_dict(self):
        return {
            'id': self.id,
            'update_id': self.update_id,
            'url': self.url,
            'title': self.title,
            'filename': self.filename,
            'mime_type': self.mime_type,
            'size': self.size,
            'caption': self.caption,
            'taken_at': _iso(self.taken_at),
            'gps_coordinates': self.gps_coordinates,
            'tags': self.tags or [],
            'room_area': self.room_area,
            'trade_category': self.trade_category,
            'is_before_photo': bool(self.is_before_photo),
            'is_after_photo': bool(self.is_after_photo),
            'paired_photo_id': self.paired_photo_id,
            'annotations': self.annotations,
            'uploaded_by_id': self.uploaded_by_id,
            'created_at': _iso(self.created_at)
        }


# =============================================================================
# AUDIT TRAIL & NOTIFICATIONS
# =============================================================================

class EventLog(Base):
    """
    Organization-wide audit trail. Records who did what to which entity.
    """
    __tablename__ = 'event_log'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    actor_type = Column(String(50))  # user, system, supplier, client
    actor_id = Column(String(36))
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36))
    event_type = Column(String(100), nullable=False)
    description = Column(Text)
    extra_data = Column(JSON, default=dict)

    __table_args__ = (
        Index('ix_event_log_organization', 'organization_id'),
        Index('ix_event_log_entity', 'entity_type', 'entity_id'),
        Index('ix_event_log_timestamp', 'timestamp'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'timestamp': _iso(self.timestamp),
            'actor_type': self.actor_type,
            'actor_id': self.actor_id,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'event_type': self.event_type,
            'description': self.description,
            'metadata': self.extra_data or {}
        }


class Notification(Base):
    """In-app notifications for team members."""
    __tablename__ = 'notifications'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    organization_id = Column(String(36), ForeignKey('organizations.id'), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id'))  # None = everyone
    title = Column(String(255), nullable=False)
    message = Column(Text)
    notification_type = Column(String(50), default='info')
    priority = Column(String(20), default='normal')  # low, normal, high, urgent
    entity_type = Column(String(50))
    entity_id = Column(String(36))
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    sent_email = Column(Boolean, default=False)
    extra_data = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_notifications_organization', 'organization_id'),
        Index('ix_notifications_user', 'user_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message,
            'type': self.notification_type,
            'priority': self.priority,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'is_read': self.is_read,
            'read_at': _iso(self.read_at),
            'sent_email': self.sent_email,
            'metadata': self.extra_data or {},
            'created_at': _iso(self.created_at)
        }
