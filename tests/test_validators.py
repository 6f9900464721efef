"""
Tests for input validation utilities
"""
import pytest
from datetime import datetime, date
from validators import (
    ValidationError,
    ensure,
    validate_email,
    validate_phone,
    validate_url,
    validate_choice,
    validate_currency,
    validate_quantity,
    to_float,
    parse_datetime,
    parse_date,
    sanitize_filename,
    validate_invoice_request,
    validate_order_request
)


@pytest.mark.unit
class TestEmailValidation:
    """Tests for email validation"""

    def test_valid_email(self):
        """Test valid email passes"""
        is_valid, error = validate_email('test@example.com')
        assert is_valid is True
        assert error is None

    def test_valid_email_with_subdomain(self):
        """Test valid email with subdomain passes"""
        is_valid, error = validate_email('user@mail.example.com')
        assert is_valid is True

    def test_invalid_email_no_at(self):
        """Test invalid email without @ fails"""
        is_valid, error = validate_email('invalidemail.com')
        assert is_valid is False

    def test_invalid_email_no_domain(self):
        """Test invalid email without domain fails"""
        is_valid, error = validate_email('test@')
        assert is_valid is False

    def test_invalid_email_too_long(self):
        """Test email that's too long fails"""
        long_email = 'a' * 250 + '@example.com'
        is_valid, error = validate_email(long_email)
        assert is_valid is False

    def test_empty_email(self):
        """Test empty email fails"""
        is_valid, error = validate_email('')
        assert is_valid is False


@pytest.mark.unit
class TestPhoneValidation:
    """Tests for phone number validation"""

    def test_valid_phone_with_country_code(self):
        """Test valid phone with country code passes"""
        is_valid, error = validate_phone('+1234567890')
        assert is_valid is True

    def test_valid_phone_without_country_code(self):
        """Test valid phone without country code passes"""
        is_valid, error = validate_phone('1234567890')
        assert is_valid is True

    def test_valid_phone_with_formatting(self):
        """Test valid phone with formatting passes"""
        is_valid, error = validate_phone('(123) 456-7890')
        assert is_valid is True

    def test_invalid_phone_too_short(self):
        """Test phone that's too short fails"""
        is_valid, error = validate_phone('12345')
        assert is_valid is False

    def test_invalid_phone_letters(self):
        """Test phone with letters fails"""
        is_valid, error = validate_phone('123-ABC-7890')
        assert is_valid is False


@pytest.mark.unit
class TestURLValidation:
    """Tests for URL validation"""

    def test_valid_http_url(self):
        """Test valid HTTP URL passes"""
        is_valid, error = validate_url('http://example.com')
        assert is_valid is True

    def test_valid_https_url(self):
        """Test valid HTTPS URL passes"""
        is_valid, error = validate_url('https://example.com')
        assert is_valid is True

    def test_valid_url_with_path(self):
        """Test valid URL with path passes"""
        is_valid, error = validate_url('https://example.com/path/to/page')
        assert is_valid is True

    def test_invalid_url_no_protocol(self):
        """Test URL without protocol fails"""
        is_valid, error = validate_url('example.com')
        assert is_valid is False

    def test_invalid_url_too_long(self):
        """Test URL that's too long fails"""
        long_url = 'https://example.com/' + 'a' * 2100
        is_valid, error = validate_url(long_url)
        assert is_valid is False


@pytest.mark.unit
class TestFilenameSanitization:
    """Tests for filename sanitization"""

    def test_sanitize_normal_filename(self):
        """Test normal filename is preserved"""
        result = sanitize_filename('document.pdf')
        assert result == 'document.pdf'

    def test_sanitize_removes_path_traversal(self):
        """Test path traversal is removed"""
        result = sanitize_filename('../../../etc/passwd')
        assert '..' not in result
        assert '/' not in result

    def test_sanitize_removes_special_chars(self):
        """Test special characters are removed"""
        result = sanitize_filename('file<>:"|?*.txt')
        assert '<' not in result
        assert '>' not in result

    def test_sanitize_empty_filename(self):
        """Test empty filename gets default name"""
        result = sanitize_filename('')
        assert result == 'file'



@pytest.mark.unit
class TestChoiceAndCurrency:
    """Tests for enumerated value validation"""

    def test_valid_choice(self):
        """Test value from the allowed set passes"""
        is_valid, error = validate_choice('OWNER', ['OWNER', 'ADMIN'], 'role')
        assert is_valid is True
        assert error is None

    def test_invalid_choice_names_field(self):
        """Test invalid choice error mentions the field and options"""
        is_valid, error = validate_choice('GUEST', ['OWNER', 'ADMIN'], 'role')
        assert is_valid is False
        assert 'role' in error
        assert 'OWNER' in error

    def test_cad_and_usd_accepted(self):
        """Test both supported currencies pass"""
        assert validate_currency('CAD')[0] is True
        assert validate_currency('USD')[0] is True

    def test_other_currency_rejected(self):
        """Test unsupported currency fails"""
        is_valid, error = validate_currency('EUR')
        assert is_valid is False
        assert 'EUR' in error


@pytest.mark.unit
class TestQuantityValidation:
    """Tests for item quantity validation"""

    def test_quantity_in_range(self):
        """Test quantity between 1 and 50 passes"""
        assert validate_quantity(1)[0] is True
        assert validate_quantity('50')[0] is True

    def test_quantity_zero_fails(self):
        """Test zero quantity fails"""
        assert validate_quantity(0)[0] is False

    def test_quantity_above_limit_fails(self):
        """Test quantity above the per-add limit fails"""
        assert validate_quantity(51)[0] is False

    def test_quantity_not_a_number_fails(self):
        """Test non-numeric quantity fails"""
        is_valid, error = validate_quantity('lots')
        assert is_valid is False
        assert 'whole number' in error


@pytest.mark.unit
class TestCoercion:
    """Tests for numeric and date coercion helpers"""

    def test_to_float_parses_strings(self):
        """Test numeric strings are converted"""
        assert to_float('12.50', 'price') == 12.5

    def test_to_float_empty_is_none(self):
        """Test empty values become None"""
        assert to_float('', 'price') is None
        assert to_float(None, 'price') is None

    def test_to_float_rejects_junk(self):
        """Test junk raises a ValidationError naming the field"""
        with pytest.raises(ValidationError) as exc_info:
            to_float('abc', 'price')
        assert exc_info.value.field == 'price'

    def test_parse_datetime_accepts_trailing_z(self):
        """Test UTC designator is accepted"""
        parsed = parse_datetime('2024-03-01T10:30:00Z')
        assert parsed == datetime(2024, 3, 1, 10, 30)

    def test_parse_datetime_converts_offset_to_utc(self):
        """Test timezone-aware values are stored as naive UTC"""
        parsed = parse_datetime('2024-03-01T10:30:00-05:00')
        assert parsed == datetime(2024, 3, 1, 15, 30)
        assert parsed.tzinfo is None

    def test_parse_datetime_rejects_garbage(self):
        """Test invalid dates raise ValidationError"""
        with pytest.raises(ValidationError):
            parse_datetime('next tuesday', 'expected_delivery')

    def test_parse_date_returns_date(self):
        """Test parse_date drops the time part"""
        assert parse_date('2024-06-15') == date(2024, 6, 15)
        assert parse_date(None) is None


@pytest.mark.unit
class TestInvoiceRequestValidation:
    """Tests for client invoice request validation"""

    def test_valid_invoice_request(self):
        """Test invoice with title and line items passes"""
        data = {'title': 'Living room furniture', 'line_items': [{'display_name': 'Sofa'}]}
        is_valid, error = validate_invoice_request(data)
        assert is_valid is True

    def test_camel_case_line_items_accepted(self):
        """Test lineItems is accepted as an alias"""
        data = {'title': 'Deposit', 'lineItems': [{'display_name': 'Sofa'}]}
        assert validate_invoice_request(data)[0] is True

    def test_invoice_without_title_fails(self):
        """Test invoice without title fails"""
        is_valid, error = validate_invoice_request({'line_items': [{}]})
        assert is_valid is False
        assert 'Title' in error

    def test_invoice_without_lines_fails(self):
        """Test invoice without line items fails"""
        is_valid, error = validate_invoice_request({'title': 'Empty', 'line_items': []})
        assert is_valid is False

    def test_invoice_with_bad_email_fails(self):
        """Test invoice with invalid client email fails"""
        data = {'title': 'X', 'line_items': [{}], 'client_email': 'nope'}
        assert validate_invoice_request(data)[0] is False


@pytest.mark.unit
class TestOrderRequestValidation:
    """Tests for manual purchase order validation"""

    def test_valid_order_request(self):
        """Test order with vendor and items passes"""
        data = {'vendor_name': 'Maison Home', 'items': [{'item_id': 'abc'}]}
        assert validate_order_request(data)[0] is True

    def test_supplier_name_alias(self):
        """Test supplier_name is accepted in place of vendor_name"""
        data = {'supplier_name': 'Maison Home', 'items': [{'item_id': 'abc'}]}
        assert validate_order_request(data)[0] is True

    def test_order_without_vendor_fails(self):
        """Test order without vendor fails"""
        is_valid, error = validate_order_request({'items': [{'item_id': 'abc'}]})
        assert is_valid is False
        assert 'Vendor' in error

    def test_order_with_unsupported_currency_fails(self):
        """Test order in an unsupported currency fails"""
        data = {'vendor_name': 'V', 'items': [{}], 'currency': 'GBP'}
        assert validate_order_request(data)[0] is False

    def test_malformed_extra_charge_fails(self):
        """Test extra charges without an amount fail"""
        data = {'vendor_name': 'V', 'items': [{}], 'extra_charges': [{'label': 'Crating'}]}
        assert validate_order_request(data)[0] is False


@pytest.mark.unit
class TestErrorHelpers:
    """Tests for ValidationError and error formatting"""

    def test_ensure_raises_on_failure(self):
        """Test ensure raises with the message and field"""
        with pytest.raises(ValidationError) as exc_info:
            ensure(False, 'Bad email', 'email')
        assert exc_info.value.message == 'Bad email'
        assert exc_info.value.field == 'email'

    def test_ensure_passes_silently(self):
        """Test ensure does nothing for a valid check"""
        ensure(True, None)

    def test_validation_error_to_dict(self):
        """Test error body carries field and details"""
        error = ValidationError('Invalid prices', 'line_items', {'invalid_items': ['Sofa']})
        body = error.to_dict()
        assert body['success'] is False
        assert body['field'] == 'line_items'
        assert body['details'] == {'invalid_items': ['Sofa']}
