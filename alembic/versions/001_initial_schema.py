"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates all core tables for StudioFlow.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.String(36), nullable=False)


def _fk(name, target, nullable=True):
    return sa.Column(name, sa.String(36), sa.ForeignKey(target), nullable=nullable)


def _timestamps(updated=True):
    columns = [sa.Column('created_at', sa.DateTime(), default=sa.func.now())]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(), default=sa.func.now()))
    return columns


def upgrade() -> None:
    # Organizations & users
    op.create_table('organizations',
        _id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('settings', sa.JSON()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )

    op.create_table('users',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255)),
        sa.Column('role', sa.String(50), default='DESIGNER'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('last_login', sa.DateTime()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )
    op.create_index('ix_users_organization', 'users', ['organization_id'])

    # Clients, projects, rooms
    op.create_table('clients',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('company', sa.String(255)),
        sa.Column('address', sa.Text()),
        sa.Column('notes', sa.Text()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_clients_organization', 'clients', ['organization_id'])

    op.create_table('projects',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        _fk('client_id', 'clients.id'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('project_type', sa.String(50), default='RESIDENTIAL'),
        sa.Column('status', sa.String(50), default='DRAFT'),
        sa.Column('address', sa.Text()),
        sa.Column('budget', sa.Float()),
        sa.Column('start_date', sa.Date()),
        sa.Column('due_date', sa.Date()),
        _fk('created_by_id', 'users.id'),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_projects_organization', 'projects', ['organization_id'])
    op.create_index('ix_projects_status', 'projects', ['status'])

    op.create_table('rooms',
        _id(),
        _fk('project_id', 'projects.id', nullable=False),
        sa.Column('room_type', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('status', sa.String(50), default='NOT_STARTED'),
        sa.Column('order', sa.Integer(), default=0),
        sa.Column('ffe_progress', sa.Float(), default=0),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rooms_project', 'rooms', ['project_id'])

    op.create_table('stages',
        _id(),
        _fk('room_id', 'rooms.id', nullable=False),
        sa.Column('stage_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), default='NOT_STARTED'),
        _fk('assigned_to_id', 'users.id'),
        sa.Column('due_date', sa.Date()),
        sa.Column('completed_at', sa.DateTime()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('room_id', 'stage_type', name='uq_stage_room_type')
    )

    op.create_table('client_approval_versions',
        _id(),
        _fk('room_id', 'rooms.id', nullable=False),
        sa.Column('version', sa.String(20), nullable=False),
        sa.Column('status', sa.String(50), default='DRAFT'),
        sa.Column('notes', sa.Text()),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('client_decision', sa.String(50)),
        sa.Column('client_decided_at', sa.DateTime()),
        sa.Column('client_message', sa.Text()),
        _fk('created_by_id', 'users.id'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_approval_versions_room', 'client_approval_versions', ['room_id'])

    # Suppliers
    op.create_table('suppliers',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('contact_name', sa.String(255)),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(50)),
        sa.Column('website', sa.String(255)),
        sa.Column('address', sa.Text()),
        sa.Column('markup_percent', sa.Float(), default=25.0),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('notes', sa.Text()),
        sa.Column('is_active', sa.Boolean(), default=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_suppliers_organization', 'suppliers', ['organization_id'])

    # FFE
    op.create_table('ffe_sections',
        _id(),
        _fk('room_id', 'rooms.id', nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('order', sa.Integer(), default=0),
        sa.Column('is_completed', sa.Boolean(), default=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('ffe_items',
        _id(),
        _fk('section_id', 'ffe_sections.id', nullable=False),
        _fk('room_id', 'rooms.id', nullable=False),
        _fk('project_id', 'projects.id', nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('state', sa.String(50), default='PENDING'),
        sa.Column('visibility', sa.String(20), default='VISIBLE'),
        sa.Column('spec_status', sa.String(50), default='DRAFT'),
        sa.Column('payment_status', sa.String(50), default='NOT_INVOICED'),
        sa.Column('order', sa.Integer(), default=0),
        sa.Column('quantity', sa.Integer(), default=1),
        sa.Column('unit_type', sa.String(50)),
        sa.Column('sku', sa.String(100)),
        sa.Column('brand', sa.String(255)),
        sa.Column('doc_code', sa.String(50)),
        _fk('supplier_id', 'suppliers.id'),
        sa.Column('supplier_name', sa.String(255)),
        sa.Column('trade_price', sa.Float()),
        sa.Column('rrp', sa.Float()),
        sa.Column('markup_percent', sa.Float()),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('lead_time', sa.String(100)),
        sa.Column('accepted_quote_line_item_id', sa.String(36)),
        sa.Column('paid_amount', sa.Float()),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('extra_data', sa.JSON()),
        sa.Column('created_by_id', sa.String(36)),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_ffe_items_project', 'ffe_items', ['project_id'])
    op.create_index('ix_ffe_items_room', 'ffe_items', ['room_id'])
    op.create_index('ix_ffe_items_spec_status', 'ffe_items', ['spec_status'])

    op.create_table('item_components',
        _id(),
        _fk('item_id', 'ffe_items.id', nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('model_number', sa.String(100)),
        sa.Column('price', sa.Float()),
        sa.Column('quantity', sa.Integer(), default=1),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('item_activities',
        _id(),
        _fk('item_id', 'ffe_items.id', nullable=False),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('actor_id', sa.String(36)),
        sa.Column('actor_name', sa.String(255)),
        sa.Column('actor_type', sa.String(20), default='system'),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_item_activities_item', 'item_activities', ['item_id'])

    # RFQs & supplier quotes
    op.create_table('rfqs',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        _fk('project_id', 'projects.id', nullable=False),
        sa.Column('rfq_number', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.String(50), default='DRAFT'),
        sa.Column('response_deadline', sa.DateTime()),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('created_by_id', sa.String(36)),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rfqs_organization', 'rfqs', ['organization_id'])
    op.create_index('ix_rfqs_project', 'rfqs', ['project_id'])

    op.create_table('rfq_line_items',
        _id(),
        _fk('rfq_id', 'rfqs.id', nullable=False),
        _fk('ffe_item_id', 'ffe_items.id'),
        sa.Column('item_name', sa.String(255), nullable=False),
        sa.Column('item_description', sa.Text()),
        sa.Column('quantity', sa.Integer(), default=1),
        sa.Column('unit_type', sa.String(50)),
        sa.Column('specifications', sa.JSON()),
        sa.Column('target_unit_price', sa.Float()),
        sa.Column('order', sa.Integer(), default=0),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('supplier_rfqs',
        _id(),
        _fk('rfq_id', 'rfqs.id', nullable=False),
        _fk('supplier_id', 'suppliers.id'),
        sa.Column('vendor_name', sa.String(255)),
        sa.Column('vendor_email', sa.String(255)),
        sa.Column('access_token', sa.String(100), nullable=False),
        sa.Column('token_expires_at', sa.DateTime()),
        sa.Column('response_status', sa.String(50), default='PENDING'),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('viewed_at', sa.DateTime()),
        sa.Column('responded_at', sa.DateTime()),
        sa.Column('decline_reason', sa.Text()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('access_token')
    )
    op.create_index('ix_supplier_rfqs_rfq', 'supplier_rfqs', ['rfq_id'])

    op.create_table('supplier_access_logs',
        _id(),
        _fk('supplier_rfq_id', 'supplier_rfqs.id', nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('ip_address', sa.String(100)),
        sa.Column('user_agent', sa.String(500)),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('supplier_quotes',
        _id(),
        _fk('supplier_rfq_id', 'supplier_rfqs.id', nullable=False),
        sa.Column('quote_number', sa.String(100)),
        sa.Column('version', sa.Integer(), default=1),
        sa.Column('status', sa.String(50), default='SUBMITTED'),
        sa.Column('subtotal', sa.Float()),
        sa.Column('total_amount', sa.Float()),
        sa.Column('shipping_cost', sa.Float()),
        sa.Column('deposit_required', sa.Float()),
        sa.Column('deposit_percent', sa.Float()),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('valid_until', sa.DateTime()),
        sa.Column('payment_terms', sa.Text()),
        sa.Column('shipping_terms', sa.Text()),
        sa.Column('estimated_lead_time', sa.String(100)),
        sa.Column('supplier_notes', sa.Text()),
        sa.Column('internal_notes', sa.Text()),
        sa.Column('quote_document_url', sa.Text()),
        sa.Column('submitted_at', sa.DateTime()),
        sa.Column('reviewed_at', sa.DateTime()),
        sa.Column('reviewed_by_id', sa.String(36)),
        sa.Column('accepted_at', sa.DateTime()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('supplier_quote_line_items',
        _id(),
        _fk('supplier_quote_id', 'supplier_quotes.id', nullable=False),
        _fk('rfq_line_item_id', 'rfq_line_items.id'),
        _fk('ffe_item_id', 'ffe_items.id'),
        sa.Column('item_name', sa.String(255)),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('quantity', sa.Integer(), default=1),
        sa.Column('total_price', sa.Float(), default=0),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('availability', sa.String(100)),
        sa.Column('lead_time_weeks', sa.Integer()),
        sa.Column('lead_time', sa.String(100)),
        sa.Column('supplier_sku', sa.String(100)),
        sa.Column('supplier_model_number', sa.String(100)),
        sa.Column('alternate_product', sa.Boolean(), default=False),
        sa.Column('alternate_notes', sa.Text()),
        sa.Column('notes', sa.Text()),
        sa.Column('is_accepted', sa.Boolean(), default=False),
        sa.Column('accepted_at', sa.DateTime()),
        sa.Column('accepted_by_id', sa.String(36)),
        sa.Column('approved_markup_percent', sa.Float()),
        sa.Column('quote_version', sa.Integer(), default=1),
        sa.Column('is_latest_version', sa.Boolean(), default=True),
        sa.Column('previous_version_id', sa.String(36)),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_quote_lines_ffe_item', 'supplier_quote_line_items', ['ffe_item_id'])

    # Client invoices & payments
    op.create_table('client_quotes',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        _fk('project_id', 'projects.id', nullable=False),
        sa.Column('quote_number', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('status', sa.String(50), default='DRAFT'),
        sa.Column('client_name', sa.String(255)),
        sa.Column('client_email', sa.String(255)),
        sa.Column('subtotal', sa.Float(), default=0),
        sa.Column('gst_rate', sa.Float()),
        sa.Column('gst_amount', sa.Float(), default=0),
        sa.Column('qst_rate', sa.Float()),
        sa.Column('qst_amount', sa.Float(), default=0),
        sa.Column('total_amount', sa.Float(), default=0),
        sa.Column('deposit_required', sa.Float()),
        sa.Column('deposit_amount', sa.Float()),
        sa.Column('cc_surcharge_percent', sa.Float()),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('valid_until', sa.DateTime()),
        sa.Column('payment_terms', sa.Text()),
        sa.Column('sent_to_client_at', sa.DateTime()),
        sa.Column('sent_by_id', sa.String(36)),
        sa.Column('approved_at', sa.DateTime()),
        sa.Column('created_by_id', sa.String(36)),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_client_quotes_organization', 'client_quotes', ['organization_id'])
    op.create_index('ix_client_quotes_project', 'client_quotes', ['project_id'])

    op.create_table('client_quote_line_items',
        _id(),
        _fk('client_quote_id', 'client_quotes.id', nullable=False),
        _fk('ffe_item_id', 'ffe_items.id'),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('group_name', sa.String(255)),
        sa.Column('quantity', sa.Integer(), default=1),
        sa.Column('unit_type', sa.String(50)),
        sa.Column('cost_price', sa.Float()),
        sa.Column('markup_percent', sa.Float()),
        sa.Column('client_unit_price', sa.Float(), nullable=False),
        sa.Column('client_total_price', sa.Float(), nullable=False),
        sa.Column('order', sa.Integer(), default=0),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('client_access_tokens',
        _id(),
        _fk('project_id', 'projects.id', nullable=False),
        _fk('client_quote_id', 'client_quotes.id'),
        sa.Column('token', sa.String(100), nullable=False),
        sa.Column('active', sa.Boolean(), default=True),
        sa.Column('expires_at', sa.DateTime()),
        sa.Column('last_accessed_at', sa.DateTime()),
        sa.Column('created_by_id', sa.String(36)),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token')
    )

    op.create_table('payments',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        _fk('client_quote_id', 'client_quotes.id', nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('surcharge_amount', sa.Float(), default=0),
        sa.Column('total_charged', sa.Float(), default=0),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('method', sa.String(50), default='CREDIT_CARD'),
        sa.Column('status', sa.String(50), default='PENDING'),
        sa.Column('transaction_id', sa.String(255)),
        sa.Column('failure_reason', sa.Text()),
        sa.Column('paid_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payments_organization', 'payments', ['organization_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    # Purchase orders
    op.create_table('orders',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        _fk('project_id', 'projects.id', nullable=False),
        sa.Column('order_number', sa.String(50), nullable=False),
        _fk('supplier_id', 'suppliers.id'),
        sa.Column('vendor_name', sa.String(255)),
        sa.Column('vendor_email', sa.String(255)),
        sa.Column('status', sa.String(50), default='PENDING_PAYMENT'),
        sa.Column('currency', sa.String(3), default='CAD'),
        sa.Column('subtotal', sa.Float(), default=0),
        sa.Column('shipping_cost', sa.Float()),
        sa.Column('extra_charges', sa.JSON()),
        sa.Column('tax_amount', sa.Float()),
        sa.Column('total_amount', sa.Float(), default=0),
        sa.Column('deposit_required', sa.Float()),
        sa.Column('deposit_percent', sa.Float()),
        sa.Column('balance_due', sa.Float()),
        sa.Column('supplier_payment_amount', sa.Float()),
        sa.Column('supplier_payment_method', sa.String(50)),
        sa.Column('supplier_payment_reference', sa.String(255)),
        sa.Column('supplier_paid_at', sa.DateTime()),
        sa.Column('tracking_number', sa.String(255)),
        sa.Column('tracking_url', sa.Text()),
        sa.Column('shipping_carrier', sa.String(100)),
        sa.Column('expected_delivery', sa.DateTime()),
        sa.Column('ordered_at', sa.DateTime()),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('actual_ship_date', sa.DateTime()),
        sa.Column('actual_delivery', sa.DateTime()),
        sa.Column('supplier_confirmed_by', sa.String(255)),
        sa.Column('notes', sa.Text()),
        sa.Column('internal_notes', sa.Text()),
        sa.Column('access_token', sa.String(100)),
        sa.Column('token_expires_at', sa.DateTime()),
        _fk('client_quote_id', 'client_quotes.id'),
        _fk('supplier_quote_id', 'supplier_quotes.id'),
        sa.Column('created_by_id', sa.String(36)),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('access_token')
    )
    op.create_index('ix_orders_organization', 'orders', ['organization_id'])
    op.create_index('ix_orders_project', 'orders', ['project_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table('order_items',
        _id(),
        _fk('order_id', 'orders.id', nullable=False),
        _fk('ffe_item_id', 'ffe_items.id'),
        _fk('supplier_quote_line_item_id', 'supplier_quote_line_items.id'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('quantity', sa.Integer(), default=1),
        sa.Column('unit_price', sa.Float(), default=0),
        sa.Column('total_price', sa.Float(), default=0),
        sa.Column('status', sa.String(50), default='PENDING'),
        sa.Column('is_component', sa.Boolean(), default=False),
        sa.Column('notes', sa.Text()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_order_items_ffe_item', 'order_items', ['ffe_item_id'])

    op.create_table('deliveries',
        _id(),
        _fk('order_id', 'orders.id', nullable=False),
        sa.Column('status', sa.String(50), default='PENDING'),
        sa.Column('tracking_number', sa.String(255)),
        sa.Column('carrier', sa.String(100)),
        sa.Column('expected_date', sa.DateTime()),
        sa.Column('delivered_at', sa.DateTime()),
        sa.Column('received_by', sa.String(255)),
        sa.Column('notes', sa.Text()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Drawings & transmittals
    op.create_table('drawings',
        _id(),
        _fk('project_id', 'projects.id', nullable=False),
        _fk('room_id', 'rooms.id'),
        sa.Column('drawing_number', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('discipline', sa.String(50), default='INTERIOR_DESIGN'),
        sa.Column('status', sa.String(50), default='ACTIVE'),
        sa.Column('current_revision', sa.Integer(), default=0),
        sa.Column('cad_source_path', sa.Text()),
        sa.Column('cad_last_modified', sa.DateTime()),
        sa.Column('cad_freshness_status', sa.String(50)),
        sa.Column('plotted_from_revision', sa.Integer()),
        sa.Column('plotted_at', sa.DateTime()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'drawing_number', name='uq_drawing_number')
    )

    op.create_table('drawing_revisions',
        _id(),
        _fk('drawing_id', 'drawings.id', nullable=False),
        sa.Column('revision_number', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('file_url', sa.Text()),
        sa.Column('issued_by_id', sa.String(36)),
        sa.Column('issued_date', sa.DateTime()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('transmittals',
        _id(),
        _fk('project_id', 'projects.id', nullable=False),
        sa.Column('transmittal_number', sa.String(20), nullable=False),
        sa.Column('recipient_name', sa.String(255), nullable=False),
        sa.Column('recipient_email', sa.String(255)),
        sa.Column('recipient_company', sa.String(255)),
        sa.Column('recipient_type', sa.String(50)),
        sa.Column('method', sa.String(50), default='EMAIL'),
        sa.Column('status', sa.String(20), default='DRAFT'),
        sa.Column('notes', sa.Text()),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('sent_by_id', sa.String(36)),
        sa.Column('created_by_id', sa.String(36)),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transmittals_project', 'transmittals', ['project_id'])

    op.create_table('transmittal_items',
        _id(),
        _fk('transmittal_id', 'transmittals.id', nullable=False),
        _fk('drawing_id', 'drawings.id', nullable=False),
        _fk('revision_id', 'drawing_revisions.id'),
        sa.Column('revision_number', sa.Integer()),
        sa.Column('purpose', sa.String(50), default='FOR_INFORMATION'),
        sa.Column('notes', sa.Text()),
        sa.PrimaryKeyConstraint('id')
    )

    # Project updates (site log)
    op.create_table('project_updates',
        _id(),
        _fk('project_id', 'projects.id', nullable=False),
        _fk('room_id', 'rooms.id'),
        _fk('author_id', 'users.id'),
        sa.Column('update_type', sa.String(50), default='GENERAL'),
        sa.Column('category', sa.String(50), default='GENERAL'),
        sa.Column('status', sa.String(50), default='ACTIVE'),
        sa.Column('priority', sa.String(20), default='MEDIUM'),
        sa.Column('title', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('location', sa.String(255)),
        sa.Column('gps_coordinates', sa.JSON()),
        sa.Column('due_date', sa.DateTime()),
        sa.Column('estimated_cost', sa.Float()),
        sa.Column('actual_cost', sa.Float()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('completed_by_id', sa.String(36)),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_project_updates_project', 'project_updates', ['project_id'])

    op.create_table('project_update_photos',
        _id(),
        _fk('update_id', 'project_updates.id', nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('title', sa.String(255)),
        sa.Column('filename', sa.String(255)),
        sa.Column('mime_type', sa.String(100)),
        sa.Column('size', sa.Integer()),
        sa.Column('caption', sa.Text()),
        sa.Column('taken_at', sa.DateTime()),
        sa.Column('gps_coordinates', sa.JSON()),
        sa.Column('tags', sa.JSON()),
        sa.Column('room_area', sa.String(100)),
        sa.Column('trade_category', sa.String(100)),
        sa.Column('is_before_photo', sa.Boolean(), default=False),
        sa.Column('is_after_photo', sa.Boolean(), default=False),
        sa.Column('paired_photo_id', sa.String(36)),
        sa.Column('annotations', sa.JSON()),
        sa.Column('uploaded_by_id', sa.String(36)),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Audit trail & notifications
    op.create_table('event_log',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_id', sa.String(36)),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(36)),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('extra_data', sa.JSON()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_event_log_organization', 'event_log', ['organization_id'])
    op.create_index('ix_event_log_entity', 'event_log', ['entity_type', 'entity_id'])
    op.create_index('ix_event_log_timestamp', 'event_log', ['timestamp'])

    op.create_table('notifications',
        _id(),
        _fk('organization_id', 'organizations.id', nullable=False),
        _fk('user_id', 'users.id'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text()),
        sa.Column('notification_type', sa.String(50), default='info'),
        sa.Column('priority', sa.String(20), default='normal'),
        sa.Column('entity_type', sa.String(50)),
        sa.Column('entity_id', sa.String(36)),
        sa.Column('is_read', sa.Boolean(), default=False),
        sa.Column('read_at', sa.DateTime()),
        sa.Column('sent_email', sa.Boolean(), default=False),
        sa.Column('extra_data', sa.JSON()),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_organization', 'notifications', ['organization_id'])
    op.create_index('ix_notifications_user', 'notifications', ['user_id'])


def downgrade() -> None:
    for table in [
        'notifications', 'event_log',
        'project_update_photos', 'project_updates',
        'transmittal_items', 'transmittals', 'drawing_revisions', 'drawings',
        'deliveries', 'order_items', 'orders',
        'payments', 'client_access_tokens', 'client_quote_line_items', 'client_quotes',
        'supplier_quote_line_items', 'supplier_quotes', 'supplier_access_logs',
        'supplier_rfqs', 'rfq_line_items', 'rfqs',
        'item_activities', 'item_components', 'ffe_items', 'ffe_sections',
        'suppliers', 'client_approval_versions', 'stages', 'rooms', 'projects',
        'clients', 'users', 'organizations',
    ]:
        op.drop_table(table)
