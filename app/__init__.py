"""
StudioFlow - Application Package

This package contains the HTTP layer:
- api/: route handlers (Flask Blueprints), one module per resource
- utils/: request and response helpers shared by the blueprints

Business logic lives in the top-level services/ package and persistence in
database/. The app factory is create_app() in app_init.py.

STORAGE POLICY:
- Production: DATABASE_URL is REQUIRED.
- Development: falls back to a local SQLite file.
"""

import logging

logger = logging.getLogger(__name__)

# Import blueprints
from app.api.auth_routes import auth_bp
from app.api.projects import projects_bp
from app.api.approvals import approvals_bp
from app.api.ffe import ffe_bp
from app.api.suppliers import suppliers_bp
from app.api.rfqs import rfqs_bp
from app.api.supplier_portal import supplier_portal_bp
from app.api.supplier_quotes import supplier_quotes_bp
from app.api.invoices import invoices_bp
from app.api.client_portal import client_portal_bp
from app.api.orders import orders_bp
from app.api.order_portal import order_portal_bp
from app.api.drawings import drawings_bp
from app.api.reports import reports_bp
from app.api.dashboard import dashboard_bp
from app.api.project_updates import project_updates_bp

BLUEPRINTS = [
    auth_bp,
    projects_bp,
    approvals_bp,
    ffe_bp,
    suppliers_bp,
    rfqs_bp,
    supplier_portal_bp,
    supplier_quotes_bp,
    invoices_bp,
    client_portal_bp,
    orders_bp,
    order_portal_bp,
    drawings_bp,
    reports_bp,
    dashboard_bp,
    project_updates_bp,
]


def validate_storage_policy(app):
    """
    Validate storage configuration at startup.

    Raises:
        RuntimeError: If production mode without DATABASE_URL
    """
    env = app.config.get('ENV_NAME', 'development')
    db_url = app.config.get('DATABASE_URL')

    logger.info(f"🔧 Environment: {env.upper()}")
    logger.info(f"🗄️  Database configured: {bool(db_url)}")

    if env == 'production' and not db_url:
        raise RuntimeError("DATABASE_URL is required in production")
    if db_url and db_url.startswith('sqlite'):
        logger.warning("⚠️  Using SQLite storage (development/testing only)")
    return db_url


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.

    Args:
        app: Flask application instance

    Raises:
        RuntimeError: If production mode without DATABASE_URL configured
    """
    # Validate storage policy FIRST (fail fast in production without DB)
    validate_storage_policy(app)

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.info(f"Registered {len(BLUEPRINTS)} API blueprints")


__all__ = ['register_blueprints', 'validate_storage_policy', 'BLUEPRINTS']
