"""
Access to application settings from the service layer.

Inside a request the Flask app config wins; scripts and tests without an app
context fall back to the class-based configuration.
"""

from flask import current_app, has_app_context

from config import get_config


def get_setting(key: str, default=None):
    if has_app_context():
        return current_app.config.get(key, default)
    return getattr(get_config(), key, default)


def portal_url(path: str) -> str:
    """Absolute link into one of the token portals."""
    base = (get_setting('PORTAL_BASE_URL') or 'http://localhost:5000').rstrip('/')
    return f"{base}/{path.lstrip('/')}"
