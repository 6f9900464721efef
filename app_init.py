"""
Application Initialization Module
Initializes the Flask app with all infrastructure components
"""
import os
from flask import Flask
from config import get_config
from logging_config import setup_logging, get_logger
from security import setup_security
from health_checks import register_health_checks
from database.connection import configure_engine, init_db
from database.seed import seed_database

logger = get_logger(__name__)


def create_app(config_name=None, payment_gateway=None):
    """
    Application factory that creates and configures Flask app with all infrastructure

    Args:
        config_name: 'development', 'production' or 'testing' (defaults to FLASK_ENV)
        payment_gateway: Optional PaymentGateway used by the client portal

    Returns:
        Configured Flask application instance
    """
    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    setup_logging(app)

    logger.info("=" * 60)
    logger.info("🚀 Initializing StudioFlow")
    logger.info("=" * 60)
    logger.info(f"Environment: {app.config['ENV_NAME']}")
    logger.info(f"Debug mode: {app.debug}")

    # Setup security (CORS, headers, error handlers)
    setup_security(app, app.config)

    create_required_directories(app)
    initialize_database(app)

    if payment_gateway is not None:
        app.extensions['payment_gateway'] = payment_gateway

    # Blueprints import the service layer, which reads settings from the app
    from app import register_blueprints
    register_blueprints(app)

    # Register health check endpoints
    register_health_checks(app)

    logger.info("✅ Application initialization complete")
    logger.info("=" * 60)

    return app


def create_required_directories(app):
    """
    Create all required application directories

    Args:
        app: Flask application instance
    """
    if app.config.get('TESTING'):
        return

    directories = [
        app.config['UPLOAD_FOLDER'],
        app.config['OUTPUT_FOLDER'],
        'logs'
    ]

    for directory in directories:
        try:
            os.makedirs(directory, exist_ok=True)
            logger.debug(f"Directory ensured: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")

    logger.info(f"✅ Created {len(directories)} required directories")


def initialize_database(app):
    """
    Bind the engine to the configured DATABASE_URL.

    SQLite databases get their tables created and the default organization
    seeded; PostgreSQL schemas are managed by alembic.

    Args:
        app: Flask application instance
    """
    url = app.config.get('DATABASE_URL')
    if not url:
        logger.warning("⚠️  DATABASE_URL not set - database endpoints will fail")
        return

    configure_engine(
        url,
        pool_size=app.config['DATABASE_POOL_SIZE'],
        max_overflow=app.config['DATABASE_MAX_OVERFLOW']
    )
    if url.startswith('sqlite'):
        init_db()
        if not app.config.get('TESTING'):
            seed_database()
    logger.info("✅ Database initialized")
