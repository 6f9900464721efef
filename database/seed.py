"""
Database seeding for StudioFlow.
Creates the default organization and owner user if the database is empty.
"""

import logging
import os
from werkzeug.security import generate_password_hash
from database.connection import get_db_session
from database.models import Organization, User

logger = logging.getLogger(__name__)

DEFAULT_ORG_NAME = "StudioFlow Design"
DEFAULT_ORG_SLUG = "studioflow-design"
DEFAULT_OWNER_EMAIL = "owner@studioflow.app"
DEFAULT_OWNER_NAME = "Studio Owner"
DEFAULT_OWNER_PASSWORD = os.environ.get('DEFAULT_OWNER_PASSWORD', 'changeme123')

# Sections created for a room when FFE presets are applied
DEFAULT_FFE_SECTIONS = [
    'Flooring',
    'Wall Finishes',
    'Ceiling',
    'Lighting',
    'Furniture',
    'Window Treatments',
    'Plumbing Fixtures',
    'Hardware',
    'Accessories',
]


def seed_default_organization(session):
    """Create default organization if none exists."""
    org = session.query(Organization).first()
    if org:
        logger.info(f"Organization already exists: {org.name}")
        return org

    org = Organization(
        name=DEFAULT_ORG_NAME,
        slug=DEFAULT_ORG_SLUG,
        settings={
            'timezone': 'America/Toronto',
            'currency': 'CAD',
            'default_markup': 25
        }
    )
    session.add(org)
    session.flush()
    logger.info(f"Created default organization: {org.name}")
    return org


def seed_default_owner(session, organization_id):
    """Create the owner account if the organization has none."""
    owner = session.query(User).filter_by(organization_id=organization_id, role='OWNER').first()
    if owner:
        logger.info(f"Owner user already exists: {owner.email}")
        return owner

    owner = User(
        organization_id=organization_id,
        email=DEFAULT_OWNER_EMAIL,
        name=DEFAULT_OWNER_NAME,
        password_hash=generate_password_hash(DEFAULT_OWNER_PASSWORD, method='pbkdf2:sha256'),
        role='OWNER',
        is_active=True
    )
    session.add(owner)
    session.flush()
    logger.info(f"Created default owner user: {owner.email}")
    return owner


def seed_database():
    """
    Seed the database with default data if empty.
    Call this at application startup.
    """
    try:
        with get_db_session() as session:
            org = seed_default_organization(session)
            seed_default_owner(session, org.id)
            logger.info("Database seeding completed successfully")
            return True
    except Exception as e:
        logger.error(f"Database seeding failed: {e}")
        raise


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    seed_database()
