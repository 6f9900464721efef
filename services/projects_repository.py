"""
Projects Repository - Database access layer for clients, projects, rooms and stages.
All writes are recorded in the event_log table.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict
from sqlalchemy.orm import Session
from sqlalchemy import or_

from database.models import (
    Client, Project, Room, Stage, EventLog,
    PROJECT_TYPES, PROJECT_STATUSES, ROOM_TYPES, ROOM_STATUSES, STAGE_TYPES, STAGE_STATUSES
)
from services.errors import NotFoundError
from validators import (
    ValidationError, ensure, validate_choice, validate_email, parse_date, to_float
)

logger = logging.getLogger(__name__)


class ProjectsRepository:
    """Repository for project database operations with event logging."""

    # Map API field names to database column names
    FIELD_MAPPING = {
        'metadata': 'extra_data',
        'type': 'project_type'
    }

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id

    def _log_event(self, entity_type: str, entity_id: str, event_type: str,
                   description: str = None, metadata: Dict = None):
        """Log an event to the event_log table."""
        event = EventLog(
            organization_id=self.organization_id,
            timestamp=datetime.utcnow(),
            actor_type='user' if self.user_id else 'system',
            actor_id=self.user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            event_type=event_type,
            description=description,
            extra_data=metadata or {}
        )
        self.session.add(event)

    def _map_field(self, key: str) -> str:
        return self.FIELD_MAPPING.get(key, key)

    # =========================================================================
    # CLIENTS
    # =========================================================================

    def _get_client(self, client_id: str) -> Client:
        client = self.session.query(Client).filter(
            Client.id == client_id,
            Client.organization_id == self.organization_id
        ).first()
        if not client:
            raise NotFoundError('Client not found')
        return client

    def list_clients(self, search: str = None) -> List[Dict]:
        """List clients, optionally filtered by name, email or company."""
        query = self.session.query(Client).filter(
            Client.organization_id == self.organization_id
        )
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Client.name.ilike(pattern),
                Client.email.ilike(pattern),
                Client.company.ilike(pattern)
            ))
        return [c.to_dict() for c in query.order_by(Client.name).all()]

    def get_client(self, client_id: str) -> Dict:
        return self._get_client(client_id).to_dict()

    def create_client(self, data: Dict) -> Dict:
        """Create a new client."""
        if not (data.get('name') or '').strip():
            raise ValidationError('Client name is required', 'name')
        if data.get('email'):
            ensure(*validate_email(data['email']), field='email')

        client = Client(
            organization_id=self.organization_id,
            name=data['name'].strip(),
            email=data.get('email'),
            phone=data.get('phone'),
            company=data.get('company'),
            address=data.get('address'),
            notes=data.get('notes')
        )
        self.session.add(client)
        self.session.flush()

        self._log_event('client', client.id, 'CREATED', f"Client '{client.name}' was created")
        logger.info(f"Created client: {client.id}")
        return client.to_dict()

    def update_client(self, client_id: str, data: Dict) -> Dict:
        """Update a client."""
        client = self._get_client(client_id)
        if data.get('email'):
            ensure(*validate_email(data['email']), field='email')

        changes = {}
        for key in ['name', 'email', 'phone', 'company', 'address', 'notes']:
            if key in data and getattr(client, key) != data[key]:
                changes[key] = {'old': getattr(client, key), 'new': data[key]}
                setattr(client, key, data[key])

        client.updated_at = datetime.utcnow()
        self.session.flush()
        if changes:
            self._log_event('client', client.id, 'UPDATED', f"Client '{client.name}' was updated",
                            {'changes': changes})
        logger.info(f"Updated client: {client_id}")
        return client.to_dict()

    def delete_client(self, client_id: str) -> bool:
        """Delete a client that has no projects."""
        client = self._get_client(client_id)
        if client.projects:
            raise ValidationError('Client has projects and cannot be deleted')
        self.session.delete(client)
        self._log_event('client', client_id, 'DELETED', f"Client '{client.name}' was deleted")
        self.session.flush()
        logger.info(f"Deleted client: {client_id}")
        return True

    # =========================================================================
    # PROJECTS
    # =========================================================================

    def get_project_model(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == self.organization_id
        ).first()
        if not project:
            raise NotFoundError('Project not found')
        return project

    def list_projects(self, status: str = None, search: str = None) -> List[Dict]:
        """List projects, searchable by project or client name."""
        query = self.session.query(Project).outerjoin(
            Client, Project.client_id == Client.id
        ).filter(Project.organization_id == self.organization_id)

        if status:
            query = query.filter(Project.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Project.name.ilike(pattern),
                Client.name.ilike(pattern)
            ))

        projects = query.order_by(Project.updated_at.desc()).all()
        return [p.to_dict() for p in projects]

    def get_project(self, project_id: str) -> Dict:
        return self.get_project_model(project_id).to_dict(include_rooms=True)

    def _apply_project_fields(self, project: Project, data: Dict):
        if 'type' in data:
            ensure(*validate_choice(data['type'], PROJECT_TYPES, 'project type'), field='type')
        if 'status' in data:
            ensure(*validate_choice(data['status'], PROJECT_STATUSES, 'status'), field='status')
        if data.get('client_id'):
            self._get_client(data['client_id'])

        for key in ['name', 'description', 'type', 'status', 'address', 'client_id', 'metadata']:
            if key in data:
                setattr(project, self._map_field(key), data[key])
        if 'budget' in data:
            project.budget = to_float(data['budget'], 'budget')
        if 'start_date' in data:
            project.start_date = parse_date(data['start_date'], 'start_date')
        if 'due_date' in data:
            project.due_date = parse_date(data['due_date'], 'due_date')

    def create_project(self, data: Dict) -> Dict:
        """Create a new project, optionally with rooms."""
        if not (data.get('name') or '').strip():
            raise ValidationError('Project name is required', 'name')

        project = Project(
            organization_id=self.organization_id,
            created_by_id=self.user_id,
            project_type='RESIDENTIAL',
            status='DRAFT'
        )
        self._apply_project_fields(project, data)
        project.name = data['name'].strip()
        self.session.add(project)
        self.session.flush()

        for room_data in data.get('rooms') or []:
            self.create_room(project.id, room_data)

        self._log_event('project', project.id, 'CREATED', f"Project '{project.name}' was created",
                        {'project_name': project.name})
        logger.info(f"Created project: {project.id}")
        return project.to_dict(include_rooms=True)

    def update_project(self, project_id: str, data: Dict) -> Dict:
        """Update a project."""
        project = self.get_project_model(project_id)
        old_status = project.status
        self._apply_project_fields(project, data)
        project.updated_at = datetime.utcnow()
        self.session.flush()

        if project.status != old_status:
            self._log_event('project', project.id, 'STATUS_CHANGED',
                            f"Project status changed from {old_status} to {project.status}",
                            {'old_status': old_status, 'new_status': project.status})
        else:
            self._log_event('project', project.id, 'UPDATED', f"Project '{project.name}' was updated")
        logger.info(f"Updated project: {project_id}")
        return project.to_dict(include_rooms=True)

    def cancel_project(self, project_id: str) -> Dict:
        """Soft delete: projects are cancelled, never removed."""
        project = self.get_project_model(project_id)
        old_status = project.status
        project.status = 'CANCELLED'
        project.updated_at = datetime.utcnow()
        self.session.flush()
        self._log_event('project', project.id, 'STATUS_CHANGED',
                        f"Project '{project.name}' was cancelled",
                        {'old_status': old_status, 'new_status': 'CANCELLED'})
        logger.info(f"Cancelled project: {project_id}")
        return project.to_dict()

    # =========================================================================
    # ROOMS & STAGES
    # =========================================================================

    def get_room_model(self, room_id: str, project_id: str = None) -> Room:
        query = self.session.query(Room).join(
            Project, Room.project_id == Project.id
        ).filter(
            Room.id == room_id,
            Project.organization_id == self.organization_id
        )
        if project_id:
            query = query.filter(Room.project_id == project_id)
        room = query.first()
        if not room:
            raise NotFoundError('Room not found')
        return room

    def create_room(self, project_id: str, data: Dict) -> Dict:
        """Create a room together with its five workflow stages."""
        project = self.get_project_model(project_id)
        room_type = data.get('type') or data.get('room_type') or 'OTHER'
        ensure(*validate_choice(room_type, ROOM_TYPES, 'room type'), field='type')

        order = data.get('order')
        if order is None:
            order = len(project.rooms)

        room = Room(
            room_type=room_type,
            name=data.get('name'),
            status='NOT_STARTED',
            order=order
        )
        for stage_type in STAGE_TYPES:
            room.stages.append(Stage(stage_type=stage_type, status='NOT_STARTED'))
        project.rooms.append(room)
        self.session.flush()

        self._log_event('room', room.id, 'CREATED', f"Room '{room.display_name}' was added",
                        {'project_id': project.id})
        logger.info(f"Created room: {room.id}")
        return room.to_dict()

    def update_room(self, room_id: str, data: Dict) -> Dict:
        room = self.get_room_model(room_id)
        if 'type' in data:
            ensure(*validate_choice(data['type'], ROOM_TYPES, 'room type'), field='type')
            room.room_type = data['type']
        if 'status' in data:
            ensure(*validate_choice(data['status'], ROOM_STATUSES, 'status'), field='status')
            room.status = data['status']
        for key in ['name', 'order']:
            if key in data:
                setattr(room, key, data[key])
        room.updated_at = datetime.utcnow()
        self.session.flush()
        logger.info(f"Updated room: {room_id}")
        return room.to_dict()

    def delete_room(self, room_id: str) -> bool:
        room = self.get_room_model(room_id)
        self._log_event('room', room.id, 'DELETED', f"Room '{room.display_name}' was deleted",
                        {'project_id': room.project_id})
        self.session.delete(room)
        self.session.flush()
        logger.info(f"Deleted room: {room_id}")
        return True

    def get_stage(self, room: Room, stage_type: str) -> Optional[Stage]:
        for stage in room.stages:
            if stage.stage_type == stage_type:
                return stage
        return None

    def update_stage(self, stage_id: str, data: Dict) -> Dict:
        """Update stage status, assignee or due date. COMPLETED stamps completed_at."""
        stage = self.session.query(Stage).join(
            Room, Stage.room_id == Room.id
        ).join(
            Project, Room.project_id == Project.id
        ).filter(
            Stage.id == stage_id,
            Project.organization_id == self.organization_id
        ).first()
        if not stage:
            raise NotFoundError('Stage not found')

        if 'status' in data:
            ensure(*validate_choice(data['status'], STAGE_STATUSES, 'status'), field='status')
            set_stage_status(stage, data['status'])
        if 'assigned_to_id' in data:
            stage.assigned_to_id = data['assigned_to_id']
        if 'due_date' in data:
            stage.due_date = parse_date(data['due_date'], 'due_date')

        self.session.flush()
        self._log_event('room', stage.room_id, 'STATUS_CHANGED',
                        f"{stage.stage_type} stage is now {stage.status}",
                        {'stage_id': stage.id, 'stage_type': stage.stage_type})
        logger.info(f"Updated stage: {stage_id}")
        return stage.to_dict()


def set_stage_status(stage: Stage, status: str):
    """Set a stage status keeping completed_at in step with it."""
    if status == 'COMPLETED':
        if stage.status != 'COMPLETED' or not stage.completed_at:
            stage.completed_at = datetime.utcnow()
    else:
        stage.completed_at = None
    stage.status = status
    stage.updated_at = datetime.utcnow()
