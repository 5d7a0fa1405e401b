"""Rate limit backends.

Both backends implement the same fixed-window contract: a key may be
admitted at most ``max_requests`` times per window of ``window_seconds``.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from redis.exceptions import RedisError

from formfill.app.core.logging import get_logger
from formfill.app.exceptions import DependencyUnavailable
from formfill.app.services.rate_limit.models import RateLimitRecord, RateLimitResult
from formfill.app.services.rate_limit.redis_lua import CHECK_AND_CONSUME_SCRIPT

logger = get_logger(__name__)


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    name: str = "abstract"

    def __init__(self, max_requests: int, window_seconds: float):
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @abstractmethod
    async def is_allowed(self, key: str) -> RateLimitResult:
        """Check the key against its window and consume one request if admitted.

        Args:
            key: Rate limit key

        Returns:
            RateLimitResult with allowed status and metadata
        """

    async def check_and_consume(self, key: str) -> bool:
        """Return True if the request identified by ``key`` may proceed."""
        result = await self.is_allowed(key)
        return result.allowed

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up expired entries."""

    async def ping(self) -> None:
        """Raise DependencyUnavailable if the backend's store is unreachable."""

    async def close(self) -> None:
        """Release any connections held by the backend."""


class InMemoryRateLimiter(RateLimitBackend):
    """Process-local fixed-window rate limiter.

    Suitable for single-instance deployments. The check-and-increment for a
    key runs under one asyncio lock, so concurrent requests with the same key
    cannot be admitted more than ``max_requests`` times per window.

    Expired records are swept from inside ``is_allowed`` at most once per
    ``sweep_interval`` seconds, which bounds memory without scanning the
    table on every request.
    """

    name = "memory"

    def __init__(
        self,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(max_requests, window_seconds)
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._last_sweep = clock()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def is_allowed(self, key: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)

            if self.max_requests <= 0:
                return self._rejected(now + self.window_seconds, now)

            record = self._records.get(key)
            if record is None or record.is_expired(now):
                record = RateLimitRecord(count=1, window_reset_at=now + self.window_seconds)
                self._records[key] = record
                return self._admitted(record)

            if record.count >= self.max_requests:
                return self._rejected(record.window_reset_at, now)

            record.count += 1
            return self._admitted(record)

    def _admitted(self, record: RateLimitRecord) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - record.count),
            reset_time=math.ceil(record.window_reset_at),
        )

    def _rejected(self, reset_at: float, now: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self.max_requests,
            remaining=0,
            reset_time=math.ceil(reset_at),
            retry_after=max(1, math.ceil(reset_at - now)),
        )

    def _sweep(self, now: float) -> int:
        expired = [key for key, record in self._records.items() if record.is_expired(now)]
        for key in expired:
            del self._records[key]
        self._last_sweep = now
        if expired:
            logger.debug(f"Rate limit sweep removed {len(expired)} expired records")
        return len(expired)

    async def cleanup(self) -> None:
        """Remove every record whose window has ended."""
        async with self._lock:
            self._sweep(self._clock())


class RedisRateLimiter(RateLimitBackend):
    """Redis-based rate limiter shared by every instance.

    The counter lives in Redis and is checked and incremented by a single
    Lua script. When Redis cannot be reached the limiter fails open: the
    request is admitted and the failure is logged, trading strictness for
    availability.
    """

    name = "redis"

    def __init__(
        self,
        redis_client: Any,
        max_requests: int = 20,
        window_seconds: float = 60.0,
        key_prefix: str = "formfill:ratelimit",
        owns_client: bool = False,
    ):
        super().__init__(max_requests, window_seconds)
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._owns_client = owns_client

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def _consume(self, key: str) -> tuple[bool, int, int]:
        window_ms = max(1, int(self.window_seconds * 1000))
        try:
            result = await self._redis.eval(
                CHECK_AND_CONSUME_SCRIPT,
                1,  # Number of keys
                self._make_key(key),  # KEYS[1]
                self.max_requests,  # ARGV[1]
                window_ms,  # ARGV[2]
            )
        except (RedisError, OSError) as e:
            raise DependencyUnavailable(f"Redis unavailable: {type(e).__name__}") from e
        return bool(int(result[0])), int(result[1]), int(result[2])

    async def is_allowed(self, key: str) -> RateLimitResult:
        try:
            allowed, count, ttl_ms = await self._consume(key)
        except DependencyUnavailable as e:
            logger.warning(
                f"Rate limiting fail-open: {e.message}. Request allowed without rate limit check.",
                exc_info=e.__cause__,
            )
            return RateLimitResult(
                allowed=True,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - 1),
                reset_time=math.ceil(time.time() + self.window_seconds),
            )

        reset_in = max(0, ttl_ms) / 1000
        reset_time = math.ceil(time.time() + reset_in)
        if not allowed:
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_time=reset_time,
                retry_after=max(1, math.ceil(reset_in)),
            )
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            reset_time=reset_time,
        )

    async def cleanup(self) -> None:
        """No-op for Redis (keys expire automatically)."""

    async def ping(self) -> None:
        try:
            await self._redis.ping()
        except (RedisError, OSError) as e:
            raise DependencyUnavailable(f"Redis unavailable: {type(e).__name__}") from e

    async def close(self) -> None:
        if self._owns_client and self._redis is not None:
            # aclose() is the async cleanup in redis-py 5.0+
            await self._redis.aclose()
            self._redis = None
