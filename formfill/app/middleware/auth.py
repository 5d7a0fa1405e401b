import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from formfill.app.core.logging import get_logger
from formfill.app.exceptions import AuthError, AuthFailure

logger = get_logger(__name__)

API_KEY_HEADER = "X-API-Key"

# Longer keys are rejected before comparison to bound the work per request
MAX_API_KEY_LENGTH = 512


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a credential check."""
    ok: bool
    reason: Optional[AuthFailure] = None
    message: Optional[str] = None


def _truncate(credential: str) -> str:
    return credential[:8] + "..."


class Authenticator:
    """Validates the shared API key presented by clients.

    The configured secret is compared with ``hmac.compare_digest`` so the
    comparison time does not depend on how long a matching prefix is. An
    empty configured secret rejects every credential.
    """

    def __init__(self, secret: str):
        self._secret = secret.encode("utf-8")

    def authenticate(self, presented: Optional[str]) -> AuthResult:
        """Check a presented credential.

        Args:
            presented: The raw header value, or None if the header is absent

        Returns:
            AuthResult with ok=True, or the failure reason and a client-safe message
        """
        if not presented:
            logger.warning("Authentication failed: missing API key")
            error = AuthError(AuthFailure.MISSING_CREDENTIAL)
            return AuthResult(ok=False, reason=error.reason, message=error.message)

        valid = len(presented) <= MAX_API_KEY_LENGTH and bool(self._secret)
        # Always run the comparison so timing does not reveal which check failed
        matches = hmac.compare_digest(presented.encode("utf-8"), self._secret)
        if not (valid and matches):
            logger.warning(
                "Authentication failed: invalid API key",
                extra={"provided_key": _truncate(presented)},
            )
            error = AuthError(AuthFailure.INVALID_CREDENTIAL)
            return AuthResult(ok=False, reason=error.reason, message=error.message)

        return AuthResult(ok=True)

    def require(self, presented: Optional[str]) -> str:
        """Authenticate or raise AuthError; returns the accepted credential."""
        result = self.authenticate(presented)
        if not result.ok:
            raise AuthError(result.reason, result.message)
        return presented


def admission_key(credential: str) -> str:
    """Derive the rate-limit key for an authenticated credential.

    Uses a SHA-256 digest so raw keys are never stored in limiter tables
    or Redis. 32 hex chars (128 bits) keep collisions out of reach.
    """
    return hashlib.sha256(credential.encode("utf-8")).hexdigest()[:32]


def get_api_key(request: Request) -> Optional[str]:
    """Extract the API key from the X-API-Key header.

    Returns:
        The stripped header value, or None if absent or blank
    """
    value = request.headers.get(API_KEY_HEADER)
    if value is None:
        return None
    return value.strip() or None
