"""
Helper functions shared by the API blueprints.
"""

import io
import logging
from flask import request, jsonify, send_file

from validators import sanitize_filename

logger = logging.getLogger(__name__)


def get_json_body():
    """
    Request JSON body as a dict.

    Returns:
        Parsed body, or an empty dict when the request carries none
    """
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(error):
    """
    JSON response for a ValidationError or ServiceError.

    Args:
        error: Exception carrying to_dict() and status_code

    Returns:
        Tuple of (response, status code)
    """
    return jsonify(error.to_dict()), error.status_code


def arg_bool(name, default=False):
    """Read a boolean query string argument ('true', '1', 'yes')."""
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes')


def pdf_response(filename, content):
    """Send generated PDF bytes as a download."""
    return send_file(
        io.BytesIO(content),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=sanitize_filename(filename)
    )


def client_ip():
    """Caller address, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get('X-Forwarded-For', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr
