"""
Application exceptions.

Every error the API returns is one of these; the handlers in
app.api.error_handlers turn them into JSON bodies with a readable message.
"""

from typing import Any


class AppException(Exception):
    error_code: str = "INTERNAL_ERROR"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "retryable": self.retryable,
            **self.details,
        }


class ValidationException(AppException):
    error_code = "VALIDATION_ERROR"
    status_code = 400


class MissingTokenException(ValidationException):
    error_code = "MISSING_TOKEN"


class InvalidPairException(ValidationException):
    error_code = "INVALID_PAIR"


class DuplicateResourceException(AppException):
    # Surfaced as 400 rather than 409 to match what clients already handle
    error_code = "DUPLICATE_RESOURCE"
    status_code = 400


class DuplicateEmailException(DuplicateResourceException):
    error_code = "DUPLICATE_EMAIL"


class AuthException(AppException):
    error_code = "UNAUTHORIZED"
    status_code = 401


class InvalidCredentialsException(AuthException):
    error_code = "INVALID_CREDENTIALS"


class InvalidTokenException(AuthException):
    error_code = "INVALID_TOKEN"


class ForbiddenException(AppException):
    error_code = "FORBIDDEN"
    status_code = 403


class UpstreamRateLimitedException(AppException):
    error_code = "UPSTREAM_RATE_LIMITED"
    status_code = 429
    retryable = True


class UpstreamException(AppException):
    """Provider unreachable, failing, or answering with an error message."""
    error_code = "UPSTREAM_ERROR"
    status_code = 502
    retryable = True


class UpstreamNotConfiguredException(UpstreamException):
    """No credential for the provider; to callers this is the provider being down."""
    error_code = "UPSTREAM_NOT_CONFIGURED"
    retryable = False


class InternalException(AppException):
    error_code = "INTERNAL_ERROR"
    status_code = 500
