"""
WSGI Entry Point for Gunicorn

This module provides the WSGI application entry point for production deployment:
  gunicorn wsgi:app

The Flask application is created by create_app() in app_init.py.
"""

from app_init import create_app

app = create_app()

if __name__ == '__main__':
    port = int(app.config.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=app.debug)
