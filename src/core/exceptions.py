"""Custom exception classes for the Academic Notifications service.

Every domain error carries an HTTP status code and a stable machine-readable
code string. Errors are raised where they are detected and translated to
responses in one place (see ``core.error_handlers``).
"""

from typing import Optional


class AppError(Exception):
    """Base exception for all domain errors."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        """Initialize the exception.

        Args:
            message: Human readable message returned to the caller.
            code: Machine readable error code. Defaults to the class code.
        """
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when input is missing or malformed."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    """Raised when credentials are missing, invalid or expired."""

    status_code = 401
    default_code = "NOT_AUTHENTICATED"


class InvalidCodeError(AuthenticationError):
    """Raised when no one-time code matches the submitted value."""

    default_code = "INVALID_CODE"


class AlreadyUsedError(AuthenticationError):
    """Raised when a one-time code was already consumed or invalidated."""

    default_code = "CODE_ALREADY_USED"


class ExpiredCodeError(AuthenticationError):
    """Raised when a one-time code is past its expiry."""

    default_code = "CODE_EXPIRED"


class TooManyAttemptsError(AuthenticationError):
    """Raised when a one-time code has been burned by failed attempts."""

    default_code = "TOO_MANY_ATTEMPTS"


class AuthorizationError(AppError):
    """Raised when the caller's role or ownership does not allow the operation."""

    status_code = 403
    default_code = "ACCESS_DENIED"


class NotFoundError(AppError):
    """Raised when a requested record does not exist."""

    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(AppError):
    """Raised when the record state does not allow the operation."""

    status_code = 409
    default_code = "CONFLICT"


class RateLimitError(AppError):
    """Raised when a caller must wait before retrying."""

    status_code = 429
    default_code = "TOO_MANY_REQUESTS"

    def __init__(self, message: str, retry_after: int, code: Optional[str] = None):
        """Initialize the exception.

        Args:
            message: Human readable message.
            retry_after: Whole seconds to wait before retrying.
            code: Machine readable error code.
        """
        self.retry_after = retry_after
        super().__init__(message, code)


class DeliveryError(AppError):
    """Raised when an email could not be handed to the mail server."""

    status_code = 500
    default_code = "EMAIL_SEND_FAILED"
