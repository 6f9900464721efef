"""
Input Validation & Sanitization Utilities
Provides validation for API requests and helpers shared by the service layer
"""
import re
from datetime import datetime, date
from typing import Dict, Any, Optional, Tuple, Iterable
from werkzeug.utils import secure_filename
import logging

logger = logging.getLogger(__name__)

# Regex patterns
EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
PHONE_PATTERN = re.compile(r'^\+?1?\d{9,15}$')
URL_PATTERN = re.compile(r'^https?://[a-zA-Z0-9.-]+(:\d+)?.*$')

SUPPORTED_CURRENCIES = ('CAD', 'USD')
MAX_ITEMS_PER_ADD = 50
MAX_LINE_QUANTITY = 10000


class ValidationError(Exception):
    """Custom exception for validation errors"""
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details=None):
        self.message = message
        self.field = field
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        data = {'success': False, 'error': self.message}
        if self.field:
            data['field'] = self.field
        if self.details is not None:
            data['details'] = self.details
        return data


def ensure(is_valid: bool, error: Optional[str], field: Optional[str] = None):
    """Raise ValidationError when a (is_valid, error) check failed."""
    if not is_valid:
        raise ValidationError(error, field)


def validate_email(email: str) -> Tuple[bool, Optional[str]]:
    """
    Validate email format

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email must be a non-empty string"

    if not EMAIL_PATTERN.match(email):
        return False, "Invalid email format"

    if len(email) > 254:  # RFC 5321
        return False, "Email address too long"

    return True, None


def validate_phone(phone: str) -> Tuple[bool, Optional[str]]:
    """Validate phone number format"""
    if not phone or not isinstance(phone, str):
        return False, "Phone must be a non-empty string"

    cleaned_phone = re.sub(r'[\s\-\(\)\.]', '', phone)

    if not PHONE_PATTERN.match(cleaned_phone):
        return False, "Invalid phone number format"

    return True, None


def validate_url(url: str) -> Tuple[bool, Optional[str]]:
    """Validate URL format"""
    if not url or not isinstance(url, str):
        return False, "URL must be a non-empty string"

    if not URL_PATTERN.match(url):
        return False, "Invalid URL format"

    if len(url) > 2048:
        return False, "URL too long"

    return True, None


def validate_choice(value: str, choices: Iterable[str], field: str = 'value') -> Tuple[bool, Optional[str]]:
    """Validate that value is one of the allowed choices"""
    choices = tuple(choices)
    if value not in choices:
        return False, f"Invalid {field}. Must be one of: {', '.join(choices)}"
    return True, None


def validate_currency(currency: str) -> Tuple[bool, Optional[str]]:
    """Only CAD and USD are accepted"""
    if currency not in SUPPORTED_CURRENCIES:
        return False, f"Invalid currency '{currency}'. Must be CAD or USD"
    return True, None


def validate_quantity(quantity: Any, max_value: int = MAX_ITEMS_PER_ADD) -> Tuple[bool, Optional[str]]:
    """Quantity must be a whole number between 1 and max_value"""
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        return False, "Quantity must be a whole number"
    if quantity < 1 or quantity > max_value:
        return False, f"Quantity must be between 1 and {max_value}"
    return True, None


def to_float(value: Any, field: str) -> Optional[float]:
    """Coerce a numeric payload value, raising ValidationError on junk"""
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field)


def parse_datetime(value: Any, field: str = 'date') -> Optional[datetime]:
    """Parse an ISO 8601 date or datetime string (a trailing Z is accepted)"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1]
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid {field}: expected ISO 8601 date", field)
    # Stored as naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def parse_date(value: Any, field: str = 'date') -> Optional[date]:
    parsed = parse_datetime(value, field)
    return parsed.date() if parsed else None


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent directory traversal attacks

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    safe_name = secure_filename(filename)

    if not safe_name:
        safe_name = 'file'

    return safe_name


def validate_invoice_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate a client invoice creation request

    Returns:
        Tuple of (is_valid, error_message)
    """
    title = data.get('title')
    if title is not None and not isinstance(title, str):
        return False, "Title must be text"
    if not title or not title.strip():
        return False, "Title is required"

    line_items = data.get('line_items') or data.get('lineItems') or []
    if not isinstance(line_items, list) or not line_items:
        return False, "At least one line item is required"

    for index, line in enumerate(line_items):
        if not isinstance(line, dict):
            return False, f"Line {index + 1} must be an object"
        if line.get('quantity') not in (None, ''):
            is_valid, error = validate_quantity(line['quantity'], MAX_LINE_QUANTITY)
            if not is_valid:
                return False, f"Line {index + 1}: {error}"

    if data.get('client_email'):
        is_valid, error = validate_email(data['client_email'])
        if not is_valid:
            return False, f"Invalid client_email: {error}"

    return True, None


def validate_order_request(data: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate a manual purchase order request

    Returns:
        Tuple of (is_valid, error_message)
    """
    vendor_name = data.get('vendor_name') or data.get('supplier_name')
    if not vendor_name or not str(vendor_name).strip():
        return False, "Vendor name is required"

    items = data.get('items') or []
    if not isinstance(items, list) or not items:
        return False, "At least one item is required"

    currency = data.get('currency')
    if currency:
        is_valid, error = validate_currency(currency)
        if not is_valid:
            return False, error

    for charge in data.get('extra_charges') or []:
        if not isinstance(charge, dict) or 'amount' not in charge:
            return False, "Extra charges must be objects with label and amount"

    return True, None
