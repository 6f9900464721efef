"""
Project Updates Repository - the project's site log and its photos.

Updates record progress notes, inspections, issues and milestones. Photos
are attached by URL with descriptive metadata (caption, tags, trade, before
and after pairing); the image files themselves live in external storage.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import or_

from database.models import (
    ProjectUpdate, ProjectUpdatePhoto, Project, Room,
    UPDATE_TYPES, UPDATE_CATEGORIES, UPDATE_STATUSES, UPDATE_PRIORITIES
)
from services.errors import NotFoundError, ForbiddenError
from services.event_logger import get_event_logger
from validators import ValidationError, ensure, validate_choice, validate_url, to_float, parse_datetime

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Roles that may delete anyone's update
MODERATOR_ROLES = ('OWNER', 'ADMIN')

UPDATE_TEXT_FIELDS = ('title', 'description', 'location')
PHOTO_TEXT_FIELDS = ('caption', 'room_area', 'trade_category')


def _gps(value):
    """{'lat': float, 'lng': float} or None"""
    if value is None:
        return None
    if not isinstance(value, dict) or 'lat' not in value or 'lng' not in value:
        raise ValidationError('GPS coordinates need lat and lng', 'gps_coordinates')
    return {
        'lat': to_float(value['lat'], 'gps_coordinates'),
        'lng': to_float(value['lng'], 'gps_coordinates')
    }


def _tags(value) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(t, str) for t in value):
        raise ValidationError('Tags must be a list of strings', 'tags')
    return [t.strip() for t in value if t.strip()]


def _positive_int(value, field: str, default: int) -> int:
    if value is None or value == '':
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number", field)
    if number < 1:
        raise ValidationError(f"{field} must be at least 1", field)
    return number


class ProjectUpdatesRepository:
    """Repository for project updates and their photos."""

    def __init__(self, session: Session, organization_id: str, user_id: str = None,
                 user_role: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.user_role = user_role
        self.events = get_event_logger(session, organization_id, user_id)

    def _get_project(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == self.organization_id
        ).first()
        if not project:
            raise NotFoundError('Project not found')
        return project

    def get_model(self, project_id: str, update_id: str) -> ProjectUpdate:
        project = self._get_project(project_id)
        update = self.session.query(ProjectUpdate).filter(
            ProjectUpdate.id == update_id,
            ProjectUpdate.project_id == project.id
        ).first()
        if not update:
            raise NotFoundError('Update not found')
        return update

    def _get_photo(self, update: ProjectUpdate, photo_id: str) -> ProjectUpdatePhoto:
        photo = self.session.query(ProjectUpdatePhoto).filter(
            ProjectUpdatePhoto.id == photo_id,
            ProjectUpdatePhoto.update_id == update.id
        ).first()
        if not photo:
            raise NotFoundError('Photo not found')
        return photo

    def _check_room(self, project: Project, room_id: str):
        if not room_id:
            return
        room = self.session.query(Room).filter(
            Room.id == room_id,
            Room.project_id == project.id
        ).first()
        if not room:
            raise NotFoundError('Room not found')

    # =========================================================================
    # UPDATES
    # =========================================================================

    def list_updates(self, project_id: str, filters: Dict = None) -> Dict:
        """
        Updates for a project, newest first, with pagination and stats.

        Args:
            project_id: Project to list
            filters: Optional status, type, category, priority, room_id,
                     author_id, date_from, date_to, search, page and limit

        Returns:
            Dict with updates, pagination and stats (by status, priority, type)
        """
        project = self._get_project(project_id)
        filters = filters or {}

        query = self.session.query(ProjectUpdate).filter(ProjectUpdate.project_id == project.id)
        if filters.get('status'):
            query = query.filter(ProjectUpdate.status == filters['status'])
        if filters.get('type'):
            query = query.filter(ProjectUpdate.update_type == filters['type'])
        if filters.get('category'):
            query = query.filter(ProjectUpdate.category == filters['category'])
        if filters.get('priority'):
            query = query.filter(ProjectUpdate.priority == filters['priority'])
        if filters.get('room_id'):
            query = query.filter(ProjectUpdate.room_id == filters['room_id'])
        if filters.get('author_id'):
            query = query.filter(ProjectUpdate.author_id == filters['author_id'])
        date_from = parse_datetime(filters.get('date_from'), 'date_from')
        if date_from:
            query = query.filter(ProjectUpdate.created_at >= date_from)
        date_to = parse_datetime(filters.get('date_to'), 'date_to')
        if date_to:
            query = query.filter(ProjectUpdate.created_at <= date_to)
        if filters.get('search'):
            pattern = f"%{filters['search']}%"
            query = query.filter(or_(
                ProjectUpdate.title.ilike(pattern),
                ProjectUpdate.description.ilike(pattern),
                ProjectUpdate.location.ilike(pattern)
            ))

        page = _positive_int(filters.get('page'), 'page', 1)
        limit = min(_positive_int(filters.get('limit'), 'limit', DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
        total = query.count()
        updates = query.order_by(ProjectUpdate.created_at.desc()).offset(
            (page - 1) * limit
        ).limit(limit).all()

        # Stats cover the whole project, not just the filtered page
        everything = self.session.query(
            ProjectUpdate.status, ProjectUpdate.priority, ProjectUpdate.update_type
        ).filter(ProjectUpdate.project_id == project.id).all()

        return {
            'updates': [u.to_dict() for u in updates],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'total_pages': (total + limit - 1) // limit
            },
            'stats': {
                'by_status': dict(Counter(row[0] for row in everything)),
                'by_priority': dict(Counter(row[1] for row in everything)),
                'by_type': dict(Counter(row[2] for row in everything))
            }
        }

    def get_update(self, project_id: str, update_id: str) -> Dict:
        return self.get_model(project_id, update_id).to_dict(include_photos=True)

    def create_update(self, project_id: str, data: Dict) -> Dict:
        """Create an update authored by the current user."""
        project = self._get_project(project_id)

        update_type = data.get('type')
        category = data.get('category')
        priority = data.get('priority') or 'MEDIUM'
        if not update_type:
            raise ValidationError('Update type is required', 'type')
        if not category:
            raise ValidationError('Category is required', 'category')
        ensure(*validate_choice(update_type, UPDATE_TYPES, 'type'), field='type')
        ensure(*validate_choice(category, UPDATE_CATEGORIES, 'category'), field='category')
        ensure(*validate_choice(priority, UPDATE_PRIORITIES, 'priority'), field='priority')
        self._check_room(project, data.get('room_id'))

        update = ProjectUpdate(
            project_id=project.id,
            room_id=data.get('room_id'),
            author_id=self.user_id,
            update_type=update_type,
            category=category,
            status='ACTIVE',
            priority=priority,
            title=(data.get('title') or '').strip() or None,
            description=data.get('description'),
            location=data.get('location'),
            gps_coordinates=_gps(data.get('gps_coordinates')),
            due_date=parse_datetime(data.get('due_date'), 'due_date'),
            estimated_cost=to_float(data.get('estimated_cost'), 'estimated_cost'),
            extra_data=data.get('metadata') or {}
        )
        self.session.add(update)
        self.session.flush()

        label = f"Created {update_type.lower()} update"
        if update.title:
            label += f": {update.title}"
        self.events.log_create('project_update', update.id, label, {'project_id': project.id})
        logger.info(f"Created project update: {update.id}")
        return update.to_dict()

    def update_update(self, project_id: str, update_id: str, data: Dict) -> Dict:
        """
        Edit an update. Moving to COMPLETED stamps completed_at and
        completed_by the first time.
        """
        update = self.get_model(project_id, update_id)
        changes = {}

        def _set(attr, key, value):
            old = getattr(update, attr)
            if old != value:
                changes[key] = {'from': old.isoformat() if isinstance(old, datetime) else old,
                                'to': value.isoformat() if isinstance(value, datetime) else value}
                setattr(update, attr, value)

        if 'type' in data:
            ensure(*validate_choice(data['type'], UPDATE_TYPES, 'type'), field='type')
            _set('update_type', 'type', data['type'])
        if 'category' in data:
            ensure(*validate_choice(data['category'], UPDATE_CATEGORIES, 'category'), field='category')
            _set('category', 'category', data['category'])
        if 'priority' in data:
            ensure(*validate_choice(data['priority'], UPDATE_PRIORITIES, 'priority'), field='priority')
            _set('priority', 'priority', data['priority'])
        if 'status' in data:
            ensure(*validate_choice(data['status'], UPDATE_STATUSES, 'status'), field='status')
            _set('status', 'status', data['status'])
            if data['status'] == 'COMPLETED' and not update.completed_at:
                update.completed_at = datetime.utcnow()
                update.completed_by_id = self.user_id
        if 'room_id' in data:
            self._check_room(update.project, data['room_id'])
            _set('room_id', 'room_id', data['room_id'] or None)
        for field in UPDATE_TEXT_FIELDS:
            if field in data:
                _set(field, field, data[field])
        if 'gps_coordinates' in data:
            _set('gps_coordinates', 'gps_coordinates', _gps(data['gps_coordinates']))
        if 'due_date' in data:
            _set('due_date', 'due_date', parse_datetime(data['due_date'], 'due_date'))
        for field in ('estimated_cost', 'actual_cost'):
            if field in data:
                _set(field, field, to_float(data[field], field))
        if 'metadata' in data:
            update.extra_data = data['metadata'] or {}

        if changes:
            update.updated_at = datetime.utcnow()
            self.events.log_update('project_update', update.id, changes)
            logger.info(f"Updated project update: {update.id}")
        return update.to_dict()

    def delete_update(self, project_id: str, update_id: str) -> bool:
        """Delete an update and its photos. Only the author, an owner or an admin may."""
        update = self.get_model(project_id, update_id)
        if update.author_id != self.user_id and self.user_role not in MODERATOR_ROLES:
            raise ForbiddenError('Insufficient permissions to delete this update')

        label = f"Deleted {(update.update_type or 'general').lower()} update"
        if update.title:
            label += f": {update.title}"
        self.session.delete(update)
        self.events.log('project_update', update_id, 'DELETED', label, {'project_id': project_id})
        logger.info(f"Deleted project update: {update_id}")
        return True

    # =========================================================================
    # PHOTOS
    # =========================================================================

    def list_photos(self, project_id: str, update_id: str) -> Dict:
        """
        Photos on an update, most recently taken first, with stats and the
        before/after pairs.
        """
        update = self.get_model(project_id, update_id)
        photos = self.session.query(ProjectUpdatePhoto).filter(
            ProjectUpdatePhoto.update_id == update.id
        ).order_by(ProjectUpdatePhoto.taken_at.desc()).all()
        by_id = {p.id: p for p in photos}

        pairs = []
        for photo in photos:
            partner = by_id.get(photo.paired_photo_id)
            if photo.is_before_photo and partner is not None:
                pairs.append({'before': photo.to_dict(), 'after': partner.to_dict()})

        return {
            'photos': [p.to_dict() for p in photos],
            'stats': {
                'total': len(photos),
                'by_trade_category': dict(Counter(p.trade_category for p in photos if p.trade_category)),
                'by_room_area': dict(Counter(p.room_area for p in photos if p.room_area)),
                'before_after_pairs': len(pairs),
                'with_annotations': sum(1 for p in photos if p.annotations),
                'with_gps': sum(1 for p in photos if p.gps_coordinates)
            },
            'before_after_pairs': pairs
        }

    def add_photo(self, project_id: str, update_id: str, data: Dict) -> Dict:
        """
        Attach a photo by URL.

        An "after" photo naming a before photo (paired_photo_id) links both
        ways so the pair can be shown side by side.
        """
        update = self.get_model(project_id, update_id)
        url = (data.get('url') or '').strip()
        if not url:
            raise ValidationError('Photo URL is required', 'url')
        ensure(*validate_url(url), field='url')

        is_before = bool(data.get('is_before_photo'))
        is_after = bool(data.get('is_after_photo'))
        if is_before and is_after:
            raise ValidationError('A photo cannot be both before and after', 'is_after_photo')

        before = None
        if data.get('paired_photo_id'):
            before = self._get_photo(update, data['paired_photo_id'])

        size = data.get('size')
        photo = ProjectUpdatePhoto(
            update_id=update.id,
            url=url,
            title=data.get('title'),
            filename=data.get('filename'),
            mime_type=data.get('mime_type'),
            size=int(to_float(size, 'size')) if size not in (None, '') else None,
            caption=data.get('caption'),
            taken_at=parse_datetime(data.get('taken_at'), 'taken_at') or datetime.utcnow(),
            gps_coordinates=_gps(data.get('gps_coordinates')),
            tags=_tags(data.get('tags')),
            room_area=data.get('room_area'),
            trade_category=data.get('trade_category'),
            is_before_photo=is_before,
            is_after_photo=is_after,
            paired_photo_id=before.id if before else None,
            annotations=data.get('annotations'),
            uploaded_by_id=self.user_id
        )
        self.session.add(photo)
        self.session.flush()

        if before is not None and is_after:
            before.paired_photo_id = photo.id
        update.updated_at = datetime.utcnow()

        description = 'Added photo'
        if photo.caption:
            description += f": {photo.caption}"
        self.events.log('project_update', update.id, 'PHOTO_ADDED', description, {
            'photo_id': photo.id,
            'trade_category': photo.trade_category,
            'room_area': photo.room_area
        })
        logger.info(f"Added photo {photo.id} to project update {update.id}")
        return photo.to_dict()

    def update_photo(self, project_id: str, update_id: str, photo_id: str, data: Dict) -> Dict:
        """Edit photo metadata: caption, tags, room area, trade, pairing, annotations."""
        update = self.get_model(project_id, update_id)
        photo = self._get_photo(update, photo_id)
        changes = {}

        for field in PHOTO_TEXT_FIELDS:
            if field in data:
                setattr(photo, field, data[field])
                changes[field] = data[field]
        if 'tags' in data:
            photo.tags = _tags(data['tags'])
            changes['tags'] = photo.tags
        for flag in ('is_before_photo', 'is_after_photo'):
            if flag in data:
                setattr(photo, flag, bool(data[flag]))
                changes[flag] = bool(data[flag])
        if photo.is_before_photo and photo.is_after_photo:
            raise ValidationError('A photo cannot be both before and after', 'is_after_photo')
        if 'paired_photo_id' in data:
            if data['paired_photo_id']:
                partner = self._get_photo(update, data['paired_photo_id'])
                partner.paired_photo_id = photo.id
                photo.paired_photo_id = partner.id
            else:
                photo.paired_photo_id = None
            changes['paired_photo_id'] = photo.paired_photo_id
        if 'annotations' in data:
            photo.annotations = data['annotations']
            changes['annotations'] = True

        if changes:
            self.events.log('project_update', update.id, 'PHOTO_UPDATED',
                            'Updated photo metadata', {'photo_id': photo.id, 'changes': changes})
        return photo.to_dict()

    def delete_photo(self, project_id: str, update_id: str, photo_id: str) -> bool:
        update = self.get_model(project_id, update_id)
        photo = self._get_photo(update, photo_id)

        self.session.query(ProjectUpdatePhoto).filter(
            ProjectUpdatePhoto.paired_photo_id == photo.id
        ).update({'paired_photo_id': None}, synchronize_session='fetch')
        self.session.delete(photo)
        self.events.log('project_update', update.id, 'PHOTO_REMOVED', 'Removed photo',
                        {'photo_id': photo_id})
        logger.info(f"Removed photo {photo_id} from project update {update.id}")
        return True
