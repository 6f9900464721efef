"""
FFE Repository - sections, items and components of a room's FFE specification.
"""

import logging
from datetime import datetime
from typing import List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import func

from database.models import (
    FFESection, FFEItem, ItemComponent, ItemActivity, Room, Project, Supplier,
    ITEM_STATES, ITEM_VISIBILITY
)
from database.seed import DEFAULT_FFE_SECTIONS
from services.errors import NotFoundError
from services.projects_repository import set_stage_status
from services.status_sync import StatusSyncService, log_item_activity
from validators import (
    ValidationError, ensure, validate_choice, validate_quantity, validate_currency, to_float
)

logger = logging.getLogger(__name__)

# Fields the spec editor may change directly
SPEC_FIELDS = [
    'name', 'description', 'sku', 'brand', 'doc_code', 'unit_type', 'supplier_name',
    'lead_time', 'notes', 'visibility', 'currency', 'quantity', 'metadata'
]
PRICE_FIELDS = ['trade_price', 'rrp', 'markup_percent']


class FFERepository:
    """Repository for FFE specification operations."""

    FIELD_MAPPING = {
        'metadata': 'extra_data'
    }

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.status_sync = StatusSyncService(session, organization_id, user_id)

    def _get_room(self, room_id: str) -> Room:
        room = self.session.query(Room).join(
            Project, Room.project_id == Project.id
        ).filter(
            Room.id == room_id,
            Project.organization_id == self.organization_id
        ).first()
        if not room:
            raise NotFoundError('Room not found')
        return room

    def _get_item(self, item_id: str) -> FFEItem:
        return self.status_sync.get_item(item_id)

    # =========================================================================
    # SECTIONS
    # =========================================================================

    def list_sections(self, room_id: str) -> Dict:
        """Sections of a room with their items and the room's progress."""
        room = self._get_room(room_id)
        return {
            'room': room.to_dict(),
            'sections': [s.to_dict(include_items=True) for s in room.sections],
            'progress': room.ffe_progress or 0
        }

    def create_section(self, room_id: str, name: str, order: int = None) -> Dict:
        room = self._get_room(room_id)
        if not name or not name.strip():
            raise ValidationError('Section name is required', 'name')
        if order is None:
            order = len(room.sections)
        section = FFESection(name=name.strip(), order=order)
        room.sections.append(section)
        self.session.flush()
        logger.info(f"Created FFE section: {section.id}")
        return section.to_dict()

    def apply_section_presets(self, room_id: str, names: List[str] = None) -> List[Dict]:
        """Seed the default sections for a room, skipping names it already has."""
        room = self._get_room(room_id)
        existing = {s.name.lower() for s in room.sections}
        created = []
        order = len(room.sections)
        for name in names or DEFAULT_FFE_SECTIONS:
            if name.lower() in existing:
                continue
            section = FFESection(name=name, order=order)
            room.sections.append(section)
            created.append(section)
            order += 1
        self.session.flush()
        logger.info(f"Added {len(created)} preset sections to room {room.id}")
        return [s.to_dict() for s in created]

    # =========================================================================
    # ITEMS
    # =========================================================================

    def get_item(self, item_id: str) -> Dict:
        return self._get_item(item_id).to_dict()

    def add_items(self, room_id: str, data: Dict) -> Dict:
        """
        Add one or more items to a section.

        A quantity above one creates that many separate items named
        "{name} #{i}", each with quantity 1.
        """
        section_id = data.get('section_id')
        name = (data.get('name') or '').strip()
        if not section_id or not name:
            raise ValidationError('Section ID and name are required')

        quantity = data.get('quantity', 1)
        ensure(*validate_quantity(quantity), field='quantity')
        quantity = int(quantity)

        room = self._get_room(room_id)
        section = self.session.query(FFESection).filter(
            FFESection.id == section_id,
            FFESection.room_id == room.id
        ).first()
        if not section:
            raise NotFoundError('Section not found')

        max_order = self.session.query(func.max(FFEItem.order)).filter(
            FFEItem.section_id == section.id
        ).scalar()
        next_order = max_order + 1 if max_order is not None else 0

        items = []
        for i in range(1, quantity + 1):
            item = FFEItem(
                section=section,
                room_id=room.id,
                project_id=room.project_id,
                name=f"{name} #{i}" if quantity > 1 else name,
                description=data.get('description'),
                state='PENDING',
                visibility='VISIBLE',
                spec_status='DRAFT',
                payment_status='NOT_INVOICED',
                order=next_order + i - 1,
                quantity=1,
                created_by_id=self.user_id
            )
            self.session.add(item)
            items.append(item)
        self.session.flush()

        for item in items:
            log_item_activity(self.session, item.id, 'ITEM_CREATED', 'Item Added',
                              f"Added to section {section.name}", actor_id=self.user_id)
        section.is_completed = False
        self.session.flush()

        logger.info(f"Created {quantity} FFE item(s) in section {section.id}")
        return {
            'items': [i.to_dict() for i in items],
            'message': f"Added {quantity} item{'s' if quantity > 1 else ''} to section"
        }

    def update_item_state(self, item_id: str, state: str = None, notes: str = None) -> Dict:
        """
        Update an item's state and notes, then recompute section and room progress.
        """
        if state is None and notes is None:
            raise ValidationError('State or notes are required')
        if state is not None:
            ensure(*validate_choice(state, ITEM_STATES, 'state'), field='state')

        item = self._get_item(item_id)
        if state is not None:
            item.state = state
            item.completed_at = datetime.utcnow() if state == 'COMPLETED' else None
        if notes is not None:
            item.notes = notes
        item.updated_at = datetime.utcnow()
        self.session.flush()

        section = item.section
        section_items = section.items
        section_done = len([i for i in section_items if i.state == 'COMPLETED'])
        section_progress = (section_done / len(section_items) * 100) if section_items else 0
        section.is_completed = bool(section_items) and section_done == len(section_items)

        room = item.room
        room_items = self.session.query(FFEItem).filter(FFEItem.room_id == room.id).all()
        room_done = len([i for i in room_items if i.state == 'COMPLETED'])
        overall_progress = (room_done / len(room_items) * 100) if room_items else 0
        room.ffe_progress = overall_progress

        for stage in room.stages:
            if stage.stage_type == 'FFE':
                set_stage_status(stage, 'COMPLETED' if overall_progress == 100 else 'IN_PROGRESS')

        self.session.flush()
        logger.info(f"Updated FFE item state: {item.id} -> {item.state}")
        return {
            'item': item.to_dict(),
            'progress': {
                'section': section_progress,
                'overall': overall_progress
            }
        }

    def update_item_spec(self, item_id: str, data: Dict) -> Dict:
        """Update specification fields: pricing, supplier, SKU, lead time and so on."""
        item = self._get_item(item_id)

        if 'visibility' in data:
            ensure(*validate_choice(data['visibility'], ITEM_VISIBILITY, 'visibility'), field='visibility')
        if data.get('currency'):
            ensure(*validate_currency(data['currency']), field='currency')
        if 'quantity' in data:
            ensure(*validate_quantity(data['quantity'], max_value=100000), field='quantity')
            data['quantity'] = int(data['quantity'])

        changes = {}
        for key in SPEC_FIELDS:
            if key in data:
                column = self.FIELD_MAPPING.get(key, key)
                if getattr(item, column) != data[key]:
                    changes[key] = data[key]
                setattr(item, column, data[key])

        for key in PRICE_FIELDS:
            if key in data:
                value = to_float(data[key], key)
                if value is not None and value < 0:
                    raise ValidationError(f"{key} cannot be negative", key)
                if getattr(item, key) != value:
                    changes[key] = value
                setattr(item, key, value)

        if 'supplier_id' in data:
            supplier_id = data['supplier_id']
            if supplier_id:
                supplier = self.session.query(Supplier).filter(
                    Supplier.id == supplier_id,
                    Supplier.organization_id == self.organization_id
                ).first()
                if not supplier:
                    raise NotFoundError('Supplier not found')
                item.supplier_id = supplier.id
                item.supplier_name = supplier.name
                if item.markup_percent is None:
                    item.markup_percent = supplier.markup_percent
            else:
                item.supplier_id = None
            changes['supplier_id'] = supplier_id

        item.updated_at = datetime.utcnow()
        if changes:
            log_item_activity(
                self.session, item.id, 'SPEC_UPDATED', 'Specification Updated',
                f"Updated {', '.join(sorted(changes))}", actor_id=self.user_id,
                metadata={'changes': {k: v for k, v in changes.items() if k != 'metadata'}}
            )
        self.session.flush()
        logger.info(f"Updated FFE item spec: {item.id}")
        return item.to_dict()

    def set_spec_status(self, item_id: str, status: str) -> Dict:
        return self.status_sync.set_spec_status(item_id, status)

    def bulk_delete(self, item_ids: List[str]) -> int:
        """Delete items; every id must resolve within the organization."""
        if not item_ids:
            raise ValidationError('No item IDs provided', 'item_ids')
        ids = list(dict.fromkeys(item_ids))
        items = self.session.query(FFEItem).join(
            Project, FFEItem.project_id == Project.id
        ).filter(
            FFEItem.id.in_(ids),
            Project.organization_id == self.organization_id
        ).all()
        if len(items) != len(ids):
            raise NotFoundError('One or more items not found')

        for item in items:
            self.session.delete(item)
        self.session.flush()
        logger.info(f"Deleted {len(items)} FFE items")
        return len(items)

    def get_timeline(self, item_id: str) -> List[Dict]:
        """Item activities, newest first."""
        item = self._get_item(item_id)
        activities = self.session.query(ItemActivity).filter(
            ItemActivity.item_id == item.id
        ).order_by(ItemActivity.created_at.desc()).all()
        return [a.to_dict() for a in activities]

    # =========================================================================
    # COMPONENTS
    # =========================================================================

    def add_component(self, item_id: str, data: Dict) -> Dict:
        item = self._get_item(item_id)
        if not (data.get('name') or '').strip():
            raise ValidationError('Component name is required', 'name')
        component = ItemComponent(
            item_id=item.id,
            name=data['name'].strip(),
            model_number=data.get('model_number'),
            price=to_float(data.get('price'), 'price'),
            quantity=int(data.get('quantity') or 1)
        )
        self.session.add(component)
        self.session.flush()
        logger.info(f"Created component {component.id} on item {item.id}")
        return component.to_dict()

    def remove_component(self, item_id: str, component_id: str) -> bool:
        item = self._get_item(item_id)
        component = self.session.query(ItemComponent).filter(
            ItemComponent.id == component_id,
            ItemComponent.item_id == item.id
        ).first()
        if not component:
            raise NotFoundError('Component not found')
        self.session.delete(component)
        self.session.flush()
        logger.info(f"Removed component {component_id} from item {item.id}")
        return True
