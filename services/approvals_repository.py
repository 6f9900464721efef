"""
Client Approvals - design versions presented to the client for sign-off.
"""

import logging
from datetime import datetime
from typing import Dict, List
from sqlalchemy.orm import Session

from database.models import ClientApprovalVersion, Room, Project
from services.errors import NotFoundError
from services.event_logger import get_event_logger
from services.projects_repository import set_stage_status
from validators import ValidationError

logger = logging.getLogger(__name__)

CLIENT_DECISIONS = ('APPROVED', 'REVISION_REQUESTED')


def _version_number(version: ClientApprovalVersion) -> int:
    label = (version.version or '').lstrip('v')
    return int(label) if label.isdigit() else 0


class ApprovalsRepository:
    """Versioned client approvals per room."""

    def __init__(self, session: Session, organization_id: str, user_id: str = None):
        self.session = session
        self.organization_id = organization_id
        self.user_id = user_id
        self.events = get_event_logger(session, organization_id, user_id)

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

    def _get_version(self, version_id: str) -> ClientApprovalVersion:
        version = self.session.query(ClientApprovalVersion).join(
            Room, ClientApprovalVersion.room_id == Room.id
        ).join(
            Project, Room.project_id == Project.id
        ).filter(
            ClientApprovalVersion.id == version_id,
            Project.organization_id == self.organization_id
        ).first()
        if not version:
            raise NotFoundError('Approval version not found')
        return version

    def _versions(self, room_id: str) -> List[ClientApprovalVersion]:
        """Newest first, by version number."""
        versions = self.session.query(ClientApprovalVersion).filter(
            ClientApprovalVersion.room_id == room_id
        ).all()
        return sorted(versions, key=_version_number, reverse=True)

    def list_versions(self, room_id: str) -> List[Dict]:
        room = self._get_room(room_id)
        return [v.to_dict() for v in self._versions(room.id)]

    def create_version(self, room_id: str, notes: str = None) -> Dict:
        """Create the next vN version for the room in DRAFT."""
        room = self._get_room(room_id)
        versions = self._versions(room.id)
        label = f"v{(_version_number(versions[0]) if versions else 0) + 1}"

        version = ClientApprovalVersion(
            room_id=room.id,
            version=label,
            status='DRAFT',
            notes=notes,
            created_by_id=self.user_id
        )
        self.session.add(version)
        self.session.flush()
        self.events.log_create('approval', version.id, f"Approval {label} created for {room.display_name}")
        logger.info(f"Created approval version {label} for room {room.id}")
        return version.to_dict()

    def approve_internally(self, version_id: str) -> Dict:
        version = self._get_version(version_id)
        previous = version.status
        version.status = 'READY_FOR_CLIENT'
        self.session.flush()
        self.events.log_status_change('approval', version.id, previous, 'READY_FOR_CLIENT')
        logger.info(f"Approval {version.id} ready for client")
        return version.to_dict()

    def send_to_client(self, version_id: str) -> Dict:
        version = self._get_version(version_id)
        if version.status != 'READY_FOR_CLIENT':
            raise ValidationError(
                f"Version must be READY_FOR_CLIENT before sending (currently {version.status})"
            )
        version.status = 'SENT_TO_CLIENT'
        version.sent_at = datetime.utcnow()
        self.session.flush()
        self.events.log('approval', version.id, 'APPROVAL_SENT',
                        f"Approval {version.version} sent to client")
        logger.info(f"Approval {version.id} sent to client")
        return version.to_dict()

    def record_client_decision(self, room_id: str, decision: str, message: str = None) -> Dict:
        """
        Record the client's decision on the latest version of a room.

        APPROVED completes the CLIENT_APPROVAL stage. REVISION_REQUESTED
        reopens the THREE_D stage.
        """
        if decision not in CLIENT_DECISIONS:
            raise ValidationError("Decision must be APPROVED or REVISION_REQUESTED", 'decision')

        room = self._get_room(room_id)
        versions = self._versions(room.id)
        if not versions:
            raise NotFoundError('No approval version found for this room')
        version = versions[0]

        now = datetime.utcnow()
        version.client_decision = decision
        version.client_decided_at = now
        version.client_message = message

        stages = {s.stage_type: s for s in room.stages}
        if decision == 'APPROVED':
            version.status = 'CLIENT_APPROVED'
            if 'CLIENT_APPROVAL' in stages:
                set_stage_status(stages['CLIENT_APPROVAL'], 'COMPLETED')
            event_type = 'CLIENT_APPROVED'
        else:
            version.status = 'REVISION_REQUESTED'
            if 'THREE_D' in stages:
                set_stage_status(stages['THREE_D'], 'IN_PROGRESS')
            event_type = 'CLIENT_REVISION_REQUESTED'

        self.session.flush()
        self.events.log('approval', version.id, event_type,
                        f"Client decision on {version.version}: {decision}",
                        {'room_id': room.id, 'message': message})
        logger.info(f"Recorded client decision {decision} for approval {version.id}")
        return {
            'version': version.to_dict(),
            'room': room.to_dict()
        }
