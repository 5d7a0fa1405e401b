"""Middleware package for the gateway."""

from formfill.app.middleware.auth import (
    API_KEY_HEADER,
    Authenticator,
    AuthResult,
    admission_key,
    get_api_key,
)
from formfill.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "API_KEY_HEADER",
    "Authenticator",
    "AuthResult",
    "admission_key",
    "get_api_key",
    "RequestIdMiddleware",
    "get_request_id",
]
