"""
Centralized Configuration for StudioFlow
Manages environment-specific settings, secrets, and service configurations.
"""
import os
from datetime import timedelta


def _normalize_database_url(url):
    """Render hands out postgres:// URLs, SQLAlchemy wants postgresql://"""
    if url and url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration with defaults"""

    ENV_NAME = 'development'

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or os.urandom(32).hex()
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024  # 50MB max file upload

    # CORS Settings
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
    CORS_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization', 'X-Requested-With']

    # Database Settings
    DATABASE_URL = _normalize_database_url(os.environ.get('DATABASE_URL'))
    DATABASE_POOL_SIZE = int(os.environ.get('DATABASE_POOL_SIZE', '5'))
    DATABASE_MAX_OVERFLOW = int(os.environ.get('DATABASE_MAX_OVERFLOW', '10'))

    # File Storage Paths
    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    UPLOAD_FOLDER = 'uploads'
    OUTPUT_FOLDER = 'outputs'

    # Portal links
    PORTAL_BASE_URL = os.environ.get('PORTAL_BASE_URL', 'http://localhost:5000')
    SUPPLIER_TOKEN_DAYS = int(os.environ.get('SUPPLIER_TOKEN_DAYS', '30'))
    CLIENT_TOKEN_DAYS = int(os.environ.get('CLIENT_TOKEN_DAYS', '90'))

    # Money
    DEFAULT_CURRENCY = 'CAD'
    SUPPORTED_CURRENCIES = ['CAD', 'USD']
    GST_RATE = 5.0
    QST_RATE = 9.975
    CC_SURCHARGE_PERCENT = 3.0
    DEFAULT_MARKUP_PERCENT = 25.0

    # Supplier quote review thresholds (percent above target price)
    LINE_PRICE_TOLERANCE = 10.0
    MISMATCH_PRICE_TOLERANCE = 15.0

    # Email (SMTP)
    SMTP_HOST = os.environ.get('SMTP_HOST', '')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', '587'))
    SMTP_USER = os.environ.get('SMTP_USER', '')
    SMTP_PASSWORD = os.environ.get('SMTP_PASSWORD', '')
    FROM_EMAIL = os.environ.get('FROM_EMAIL', 'projects@studioflow.app')

    # Payment gateway
    PAYMENT_GATEWAY_URL = os.environ.get('PAYMENT_GATEWAY_URL', '')
    PAYMENT_GATEWAY_KEY = os.environ.get('PAYMENT_GATEWAY_KEY', '')
    PAYMENT_GATEWAY_PUBLIC_KEY = os.environ.get('PAYMENT_GATEWAY_PUBLIC_KEY', '')
    PAYMENT_GATEWAY_TIMEOUT = int(os.environ.get('PAYMENT_GATEWAY_TIMEOUT', '30'))  # seconds

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    LOG_FILE = os.environ.get('LOG_FILE', 'studioflow.log')

    # Session Configuration
    SESSION_PERMANENT = False
    PERMANENT_SESSION_LIFETIME = timedelta(days=7)


class DevelopmentConfig(Config):
    """Development-specific configuration"""
    ENV_NAME = 'development'
    DEBUG = True
    TESTING = False
    LOG_LEVEL = 'DEBUG'
    # Allow all CORS in development
    CORS_ORIGINS = ['*']
    DATABASE_URL = Config.DATABASE_URL or 'sqlite:///studioflow.db'


class ProductionConfig(Config):
    """Production-specific configuration"""
    ENV_NAME = 'production'
    DEBUG = False
    TESTING = False
    # Strict CORS in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'https://studioflow.onrender.com').split(',')
    # Force HTTPS
    PREFERRED_URL_SCHEME = 'https'
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class TestingConfig(Config):
    """Testing-specific configuration"""
    ENV_NAME = 'testing'
    DEBUG = True
    TESTING = True
    SECRET_KEY = 'testing-secret-key-with-enough-length-1234'
    DATABASE_URL = 'sqlite:///:memory:'
    LOG_LEVEL = 'WARNING'
    SMTP_HOST = ''
    PAYMENT_GATEWAY_URL = ''


# Configuration selector
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig,
}


def get_config(name=None):
    """Get configuration by name, falling back to the FLASK_ENV environment variable"""
    env = name or os.environ.get('FLASK_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)


def has_database(config=None):
    """Check if a database URL is configured (without failing)."""
    config = config or get_config()
    return bool(getattr(config, 'DATABASE_URL', None))
