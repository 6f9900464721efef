"""
Domain exceptions raised by the service layer.

Each carries the HTTP status the API layer responds with. Input problems are
raised as validators.ValidationError (400).
"""


class ServiceError(Exception):
    """Base class for errors the API turns into a JSON error response."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        data = {'success': False, 'error': self.message}
        if self.details is not None:
            data['details'] = self.details
        return data


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """Request conflicts with the current state of a record."""
    status_code = 409


class TokenExpiredError(ServiceError):
    """Portal token is no longer valid. Status differs per portal."""
    status_code = 410


class PaymentProcessingError(ServiceError):
    status_code = 400


class ServiceUnavailableError(ServiceError):
    status_code = 503


class ForbiddenError(ServiceError):
    """Caller is signed in but may not act on this record."""
    status_code = 403
