"""Rate limit data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None

    def headers(self) -> dict[str, str]:
        """Standard X-RateLimit-* headers describing this result."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after or 1)
        return headers


@dataclass
class RateLimitRecord:
    """Fixed-window counter for one admission key.

    ``count`` only grows while ``now < window_reset_at``; once the reset time
    is reached the record is replaced by a fresh window.
    """
    count: int = 0
    window_reset_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now >= self.window_reset_at
