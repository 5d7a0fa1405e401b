"""Custom exceptions for the gateway application."""

from enum import Enum


class FormFillException(Exception):
    """Base class for gateway exceptions with HTTP status code.

    All custom exceptions inherit from this class and define their specific
    status_code for consistent HTTP response handling. The message is shown
    to clients, so it must never carry upstream credentials or raw upstream
    response bodies.
    """
    status_code: int = 500

    def __init__(self, message: str = "Gateway error"):
        self.message = message
        super().__init__(message)


class AuthFailure(str, Enum):
    """Why a credential was rejected."""
    MISSING_CREDENTIAL = "MissingCredential"
    INVALID_CREDENTIAL = "InvalidCredential"


class AuthError(FormFillException):
    """Raised when API key authentication fails.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, reason: AuthFailure, detail: str | None = None):
        self.reason = reason
        if detail is None:
            detail = (
                "Unauthorized: Missing API key"
                if reason is AuthFailure.MISSING_CREDENTIAL
                else "Unauthorized: Invalid API key"
            )
        super().__init__(detail)


class AdmissionRejected(FormFillException):
    """Raised when a key has used up its requests for the current window.

    Maps to HTTP 429 Too Many Requests. The client may retry after
    ``retry_after`` seconds.
    """
    status_code = 429

    def __init__(self, retry_after: int | None = None):
        self.retry_after = retry_after
        super().__init__("Rate limit exceeded. Please try again later.")


class InputValidationError(FormFillException):
    """Raised when the request body is malformed or oversized.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400


class UpstreamError(FormFillException):
    """Base for failures of the upstream generation service.

    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502

    def __init__(self, message: str, attempts: int = 1):
        self.attempts = attempts
        super().__init__(message)


class UpstreamRetryable(UpstreamError):
    """Timeout, 5xx or 429 from upstream, still failing after the last retry."""


class UpstreamTerminal(UpstreamError):
    """Upstream client error or malformed response; never retried."""


class DependencyUnavailable(FormFillException):
    """Raised inside the shared rate-limit backend when Redis is unreachable.

    Never surfaces to clients: the limiter fails open and logs it.
    """
    status_code = 503
