"""
Drawings Repository - drawing register, revisions, CAD freshness and transmittals.

A drawing linked to a CAD source file tracks whether its last plot is still
current: a CAD save newer than the plot marks it CAD_MODIFIED until someone
replots it, dismisses the change or flags it for replot.
"""

import logging
from datetime import datetime
from typing import List, Dict
from sqlalchemy.orm import Session

from database.models import (
    Drawing, DrawingRevision, Transmittal, TransmittalItem, Project, Room,
    DRAWING_DISCIPLINES, DRAWING_STATUSES, TRANSMITTAL_METHODS, TRANSMITTAL_PURPOSES
)
from services.errors import NotFoundError, ConflictError
from services.event_logger import get_event_logger
from services.notification_service import get_notification_service
from services.numbering import next_transmittal_number
from validators import ValidationError, ensure, validate_choice, validate_email, parse_datetime

logger = logging.getLogger(__name__)

STALE_STATUSES = ('CAD_MODIFIED', 'NEEDS_REPLOT')


class DrawingRepository:
    """Repository for drawings and transmittals."""

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.events = get_event_logger(session, organization_id, user_id)

    def _get_project(self, project_id: str) -> Project:
        project = self.session.query(Project).filter(
            Project.id == project_id,
            Project.organization_id == self.organization_id
        ).first()
        if not project:
            raise NotFoundError('Project not found')
        return project

    def get_model(self, drawing_id: str) -> Drawing:
        drawing = self.session.query(Drawing).join(
            Project, Drawing.project_id == Project.id
        ).filter(
            Drawing.id == drawing_id,
            Project.organization_id == self.organization_id
        ).first()
        if not drawing:
            raise NotFoundError('Drawing not found')
        return drawing

    # =========================================================================
    # DRAWINGS
    # =========================================================================

    def list_drawings(self, project_id: str, discipline: str = None,
                      include_archived: bool = False) -> List[Dict]:
        project = self._get_project(project_id)
        query = self.session.query(Drawing).filter(Drawing.project_id == project.id)
        if discipline:
            query = query.filter(Drawing.discipline == discipline)
        if not include_archived:
            query = query.filter(Drawing.status != 'ARCHIVED')
        return [d.to_dict() for d in query.order_by(Drawing.drawing_number).all()]

    def get_drawing(self, drawing_id: str) -> Dict:
        return self.get_model(drawing_id).to_dict(include_revisions=True)

    def create_drawing(self, project_id: str, data: Dict) -> Dict:
        """Create a drawing; its number must be unique within the project."""
        project = self._get_project(project_id)
        number = (data.get('drawing_number') or '').strip()
        title = (data.get('title') or '').strip()
        if not number:
            raise ValidationError('Drawing number is required', 'drawing_number')
        if not title:
            raise ValidationError('Title is required', 'title')
        discipline = data.get('discipline') or 'INTERIOR_DESIGN'
        ensure(*validate_choice(discipline, DRAWING_DISCIPLINES, 'discipline'), field='discipline')

        duplicate = self.session.query(Drawing).filter(
            Drawing.project_id == project.id,
            Drawing.drawing_number == number
        ).first()
        if duplicate:
            raise ConflictError(f"Drawing number {number} already exists in this project")

        if data.get('room_id'):
            room = self.session.query(Room).filter(
                Room.id == data['room_id'],
                Room.project_id == project.id
            ).first()
            if not room:
                raise NotFoundError('Room not found')

        drawing = Drawing(
            project_id=project.id,
            room_id=data.get('room_id'),
            drawing_number=number,
            title=title,
            discipline=discipline,
            status='ACTIVE',
            current_revision=0,
            cad_source_path=data.get('cad_source_path')
        )
        self.session.add(drawing)
        self.session.flush()
        self.events.log_create('drawing', drawing.id, f"Drawing {number} '{title}' created")
        logger.info(f"Created drawing: {drawing.id}")
        return drawing.to_dict()

    def update_drawing(self, drawing_id: str, data: Dict) -> Dict:
        drawing = self.get_model(drawing_id)
        if data.get('discipline'):
            ensure(*validate_choice(data['discipline'], DRAWING_DISCIPLINES, 'discipline'),
                   field='discipline')
        if data.get('status'):
            ensure(*validate_choice(data['status'], DRAWING_STATUSES, 'status'), field='status')
        if data.get('drawing_number') and data['drawing_number'] != drawing.drawing_number:
            duplicate = self.session.query(Drawing).filter(
                Drawing.project_id == drawing.project_id,
                Drawing.drawing_number == data['drawing_number']
            ).first()
            if duplicate:
                raise ConflictError(f"Drawing number {data['drawing_number']} already exists in this project")

        changes = {}
        for key in ['drawing_number', 'title', 'discipline', 'status', 'room_id', 'cad_source_path']:
            if key in data and getattr(drawing, key) != data[key]:
                changes[key] = data[key]
                setattr(drawing, key, data[key])
        drawing.updated_at = datetime.utcnow()
        self.session.flush()
        if changes:
            self.events.log_update('drawing', drawing.id, changes)
        logger.info(f"Updated drawing: {drawing_id}")
        return drawing.to_dict()

    def add_revision(self, drawing_id: str, data: Dict) -> Dict:
        """
        Issue the next revision. A CAD-linked drawing counts as freshly
        plotted from the new revision.
        """
        drawing = self.get_model(drawing_id)
        now = datetime.utcnow()
        number = (drawing.current_revision or 0) + 1

        revision = DrawingRevision(
            revision_number=number,
            description=data.get('description'),
            file_url=data.get('file_url'),
            issued_by_id=self.user_id,
            issued_date=parse_datetime(data.get('issued_date'), 'issued_date') or now
        )
        drawing.revisions.append(revision)
        drawing.current_revision = number
        if drawing.cad_source_path:
            drawing.plotted_from_revision = number
            drawing.plotted_at = now
            drawing.cad_freshness_status = 'UP_TO_DATE'
        drawing.updated_at = now
        self.session.flush()

        self.events.log('drawing', drawing.id, 'REVISION_ISSUED',
                        f"Revision {number} issued for {drawing.drawing_number}",
                        {'revision_id': revision.id, 'revision_number': number})
        logger.info(f"Added revision {number} to drawing {drawing.id}")
        return drawing.to_dict(include_revisions=True)

    # =========================================================================
    # CAD FRESHNESS
    # =========================================================================

    def _cad_drawing(self, drawing_id: str) -> Drawing:
        drawing = self.get_model(drawing_id)
        if not drawing.cad_source_path:
            raise ValidationError('Drawing has no CAD source file')
        return drawing

    def report_cad_modified(self, drawing_id: str, modified_at) -> Dict:
        """Record a CAD save; newer than the last plot means the plot is stale."""
        drawing = self._cad_drawing(drawing_id)
        modified = parse_datetime(modified_at, 'modified_at') or datetime.utcnow()
        drawing.cad_last_modified = modified
        if drawing.plotted_at is None or modified > drawing.plotted_at:
            drawing.cad_freshness_status = 'CAD_MODIFIED'
        self.session.flush()
        logger.info(f"CAD modification reported for drawing {drawing.id}")
        return drawing.to_dict()

    def set_freshness(self, drawing_id: str, action: str) -> Dict:
        """dismiss, needs_replot or mark_plotted."""
        drawing = self._cad_drawing(drawing_id)
        previous = drawing.cad_freshness_status
        if action == 'dismiss':
            drawing.cad_freshness_status = 'DISMISSED'
        elif action == 'needs_replot':
            drawing.cad_freshness_status = 'NEEDS_REPLOT'
        elif action == 'mark_plotted':
            drawing.cad_freshness_status = 'UP_TO_DATE'
            drawing.plotted_at = datetime.utcnow()
            drawing.plotted_from_revision = drawing.current_revision
        else:
            raise ValidationError(f"Invalid freshness action: {action}", 'action')
        self.session.flush()
        if previous != drawing.cad_freshness_status:
            self.events.log_status_change('drawing', drawing.id, previous, drawing.cad_freshness_status)
        return drawing.to_dict()

    def list_stale_drawings(self, project_id: str) -> List[Dict]:
        project = self._get_project(project_id)
        drawings = self.session.query(Drawing).filter(
            Drawing.project_id == project.id,
            Drawing.cad_freshness_status.in_(STALE_STATUSES)
        ).order_by(Drawing.drawing_number).all()
        return [d.to_dict() for d in drawings]

    # =========================================================================
    # TRANSMITTALS
    # =========================================================================

    def _get_transmittal(self, transmittal_id: str) -> Transmittal:
        transmittal = self.session.query(Transmittal).join(
            Project, Transmittal.project_id == Project.id
        ).filter(
            Transmittal.id == transmittal_id,
            Project.organization_id == self.organization_id
        ).first()
        if not transmittal:
            raise NotFoundError('Transmittal not found')
        return transmittal

    def list_transmittals(self, project_id: str) -> List[Dict]:
        project = self._get_project(project_id)
        transmittals = self.session.query(Transmittal).filter(
            Transmittal.project_id == project.id
        ).order_by(Transmittal.created_at.desc()).all()
        return [t.to_dict() for t in transmittals]

    def create_transmittals(self, project_id: str, data: Dict) -> Dict:
        """
        One DRAFT transmittal per recipient, all carrying the same drawings.

        Stale drawings are included but reported back as warnings.
        """
        project = self._get_project(project_id)
        recipients = data.get('recipients') or []
        items = data.get('items') or []
        if not recipients or not items:
            raise ValidationError('Recipients and items are required')

        method = data.get('method') or 'EMAIL'
        ensure(*validate_choice(method, TRANSMITTAL_METHODS, 'method'), field='method')

        resolved = []
        for entry in items:
            drawing = self.session.query(Drawing).filter(
                Drawing.id == entry.get('drawing_id'),
                Drawing.project_id == project.id
            ).first()
            if not drawing:
                raise NotFoundError('Drawing not found')
            if entry.get('revision_id'):
                revision = next((r for r in drawing.revisions if r.id == entry['revision_id']), None)
                if not revision:
                    raise NotFoundError(f"Revision not found for {drawing.drawing_number}")
            else:
                revision = drawing.revisions[-1] if drawing.revisions else None
            if not revision:
                raise ValidationError(f"Drawing {drawing.drawing_number} has no revisions")
            purpose = entry.get('purpose') or 'FOR_INFORMATION'
            ensure(*validate_choice(purpose, TRANSMITTAL_PURPOSES, 'purpose'), field='purpose')
            resolved.append((drawing, revision, purpose, entry.get('notes')))

        for recipient in recipients:
            if not (recipient.get('name') or '').strip():
                raise ValidationError('Recipient name is required', 'recipients')
            if recipient.get('email'):
                ensure(*validate_email(recipient['email']), field='recipients')

        created = []
        for recipient in recipients:
            transmittal = Transmittal(
                project_id=project.id,
                transmittal_number=next_transmittal_number(
                    self.session, Transmittal.transmittal_number, Transmittal.project_id, project.id
                ),
                recipient_name=recipient['name'].strip(),
                recipient_email=recipient.get('email'),
                recipient_company=recipient.get('company'),
                recipient_type=recipient.get('type'),
                method=method,
                status='DRAFT',
                notes=data.get('notes'),
                created_by_id=self.user_id
            )
            for drawing, revision, purpose, notes in resolved:
                transmittal.items.append(TransmittalItem(
                    drawing_id=drawing.id,
                    revision_id=revision.id,
                    revision_number=revision.revision_number,
                    purpose=purpose,
                    notes=notes
                ))
            self.session.add(transmittal)
            self.session.flush()
            self.events.log_create('transmittal', transmittal.id,
                                   f"Transmittal {transmittal.transmittal_number} created for "
                                   f"{transmittal.recipient_name}")
            created.append(transmittal)

        if data.get('send_immediately'):
            for transmittal in created:
                if transmittal.recipient_email:
                    self._send(transmittal)

        warnings = [{
            'drawing_id': drawing.id,
            'drawing_number': drawing.drawing_number,
            'cad_freshness_status': drawing.cad_freshness_status
        } for drawing, _, _, _ in resolved if drawing.cad_freshness_status in STALE_STATUSES]

        logger.info(f"Created {len(created)} transmittals for project {project.id}")
        return {'transmittals': [t.to_dict() for t in created], 'warnings': warnings}

    def send_transmittal(self, transmittal_id: str) -> Dict:
        transmittal = self._get_transmittal(transmittal_id)
        if transmittal.status == 'SENT':
            raise ValidationError('Transmittal has already been sent')
        return self._send(transmittal)

    def _send(self, transmittal: Transmittal) -> Dict:
        transmittal.status = 'SENT'
        transmittal.sent_at = datetime.utcnow()
        transmittal.sent_by_id = self.user_id
        self.session.flush()

        delivered = False
        if transmittal.recipient_email:
            lines = [
                f"{item.drawing.drawing_number} {item.drawing.title} - Rev {item.revision_number} "
                f"({item.purpose.replace('_', ' ').lower()})"
                for item in transmittal.items
            ]
            text = (f"Hello {transmittal.recipient_name.split(' ')[0]},\n"
                    f"Please find the following drawings for {transmittal.project.name}:\n"
                    + '\n'.join(lines))
            if transmittal.notes:
                text += f"\n{transmittal.notes}"
            delivered = get_notification_service(self.session, self.organization_id).send_email(
                transmittal.recipient_email,
                f"{transmittal.project.name} - Transmittal {transmittal.transmittal_number}",
                text
            )

        self.events.log('transmittal', transmittal.id, 'TRANSMITTAL_SENT',
                        f"Transmittal {transmittal.transmittal_number} sent to {transmittal.recipient_name}",
                        {'email_delivered': delivered})
        logger.info(f"Sent transmittal {transmittal.id}")
        data = transmittal.to_dict()
        data['email_delivered'] = delivered
        return data
