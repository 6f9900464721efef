"""
Utilities Package

Shared helper functions used across the API blueprints.
"""

from app.utils.helpers import (
    get_json_body,
    error_response,
    arg_bool,
    pdf_response,
    client_ip,
)

__all__ = [
    'get_json_body',
    'error_response',
    'arg_bool',
    'pdf_response',
    'client_ip',
]
