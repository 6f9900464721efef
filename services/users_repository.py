"""
Users Repository - Database access layer for team members.
"""

import logging
from datetime import datetime
from typing import List, Optional, Dict
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash, check_password_hash

from database.models import User, USER_ROLES
from services.errors import NotFoundError, ConflictError
from validators import ValidationError, validate_email, validate_choice, ensure

logger = logging.getLogger(__name__)

MANAGER_ROLES = ('OWNER', 'ADMIN')


class UsersRepository:
    """Repository for user database operations."""

    def __init__(self, session: Session, organization_id: str = None):
        self.session = session
        self.organization_id = organization_id

    def _get(self, user_id: str) -> User:
        query = self.session.query(User).filter(User.id == user_id)
        if self.organization_id:
            query = query.filter(User.organization_id == self.organization_id)
        user = query.first()
        if not user:
            raise NotFoundError('User not found')
        return user

    def list_users(self, active_only: bool = True) -> List[Dict]:
        """List all users."""
        query = self.session.query(User)
        if self.organization_id:
            query = query.filter(User.organization_id == self.organization_id)
        if active_only:
            query = query.filter(User.is_active == True)  # noqa: E712
        users = query.order_by(User.name).all()
        return [u.to_dict() for u in users]

    def get_user(self, user_id: str) -> Dict:
        """Get a user by ID."""
        return self._get(user_id).to_dict()

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a user by email (returns model for auth)."""
        return self.session.query(User).filter(User.email == email.strip().lower()).first()

    def create_user(self, data: Dict) -> Dict:
        """Create a new user."""
        email = (data.get('email') or '').strip().lower()
        ensure(*validate_email(email), field='email')
        if not (data.get('name') or '').strip():
            raise ValidationError('Name is required', 'name')
        role = data.get('role', 'DESIGNER')
        ensure(*validate_choice(role, USER_ROLES, 'role'), field='role')
        if self.get_user_by_email(email):
            raise ConflictError(f"A user with email {email} already exists")

        password = data.get('password') or ''
        if len(password) < 8:
            raise ValidationError('Password must be at least 8 characters', 'password')

        user = User(
            organization_id=data.get('organization_id') or self.organization_id,
            email=email,
            name=data['name'].strip(),
            password_hash=generate_password_hash(password, method='pbkdf2:sha256'),
            role=role,
            is_active=data.get('is_active', True)
        )
        self.session.add(user)
        self.session.flush()
        logger.info(f"Created user: {user.id}")
        return user.to_dict()

    def update_user(self, user_id: str, data: Dict) -> Dict:
        """Update a user."""
        user = self._get(user_id)

        if 'role' in data:
            ensure(*validate_choice(data['role'], USER_ROLES, 'role'), field='role')
        if 'email' in data:
            ensure(*validate_email(data['email']), field='email')
            data['email'] = data['email'].strip().lower()

        for key in ['email', 'name', 'role', 'is_active']:
            if key in data:
                setattr(user, key, data[key])

        if data.get('password'):
            user.password_hash = generate_password_hash(
                data['password'], method='pbkdf2:sha256'
            )

        user.updated_at = datetime.utcnow()
        self.session.flush()
        logger.info(f"Updated user: {user_id}")
        return user.to_dict()

    def deactivate_user(self, user_id: str) -> bool:
        """Soft delete a user."""
        user = self._get(user_id)
        user.is_active = False
        user.updated_at = datetime.utcnow()
        self.session.flush()
        logger.info(f"Deactivated user: {user_id}")
        return True

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the active user for these credentials and stamp last_login."""
        if not email or not password:
            return None
        user = self.get_user_by_email(email)
        if not user or not user.is_active or not user.password_hash:
            return None
        if not check_password_hash(user.password_hash, password):
            return None
        user.last_login = datetime.utcnow()
        self.session.flush()
        return user

    def get_users_by_role(self, role: str) -> List[Dict]:
        """Get all users with a specific role."""
        query = self.session.query(User).filter(
            User.role == role,
            User.is_active == True  # noqa: E712
        )
        if self.organization_id:
            query = query.filter(User.organization_id == self.organization_id)
        return [u.to_dict() for u in query.all()]
