"""Admission control for the generate-fill endpoints.

A fixed-window counter per admission key, with an in-memory backend for
single-instance deployments and a Redis backend shared across instances.
"""

from typing import Any, Optional

from formfill.app.core.config import Settings, settings as default_settings
from formfill.app.core.logging import get_logger

# Re-export models
from formfill.app.services.rate_limit.models import RateLimitRecord, RateLimitResult

# Re-export backends
from formfill.app.services.rate_limit.backends import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RedisRateLimiter,
)

logger = get_logger(__name__)

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitRecord",
    # Backends
    "RateLimitBackend",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "create_rate_limiter",
]


def create_rate_limiter(
    config: Optional[Settings] = None,
    redis_client: Optional[Any] = None,
) -> RateLimitBackend:
    """Build the rate limit backend selected by configuration.

    Redis is used when ``redis_enabled`` is set. A client passed in is
    borrowed; otherwise one is created from ``redis_url`` and closed with
    the limiter.
    """
    config = config or default_settings

    if config.redis_enabled:
        owns_client = redis_client is None
        if owns_client:
            import redis.asyncio as aioredis

            redis_client = aioredis.from_url(config.redis_url)
        logger.info(f"Using Redis rate limiter at {config.redis_url}")
        return RedisRateLimiter(
            redis_client,
            max_requests=config.rate_limit_max_requests,
            window_seconds=config.rate_limit_window_seconds,
            key_prefix=config.rate_limit_key_prefix,
            owns_client=owns_client,
        )

    logger.info("Using in-memory rate limiter")
    return InMemoryRateLimiter(
        max_requests=config.rate_limit_max_requests,
        window_seconds=config.rate_limit_window_seconds,
        sweep_interval=config.rate_limit_sweep_interval_seconds,
    )
