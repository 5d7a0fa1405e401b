"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from formfill.app.api.dependencies import get_cache, get_limiter, get_provider, get_settings
from formfill.app.core.config import Settings
from formfill.app.core.logging import get_logger
from formfill.app.exceptions import DependencyUnavailable
from formfill.app.providers.base import BaseProvider
from formfill.app.schemas import DependencyCheck, HealthCheckResponse
from formfill.app.services.rate_limit import RateLimitBackend, RedisRateLimiter
from formfill.app.services.response_cache import ResponseCache

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_provider(provider: BaseProvider, timeout: float) -> DependencyCheck:
    try:
        return await provider.health_check(timeout=timeout)
    except Exception:
        logger.exception("Health check - upstream check failed")
        return DependencyCheck(status="error", message="Check failed")


async def _check_redis(limiter: RedisRateLimiter) -> DependencyCheck:
    try:
        await limiter.ping()
    except DependencyUnavailable as e:
        logger.error(f"Health check - Redis check failed: {e.message}")
        return DependencyCheck(status="error", message=e.message)
    return DependencyCheck(status="ok")


@router.get("/health", response_model=HealthCheckResponse)
async def health(
    config: Settings = Depends(get_settings),
    provider: BaseProvider = Depends(get_provider),
    limiter: RateLimitBackend = Depends(get_limiter),
    cache: ResponseCache = Depends(get_cache),
) -> JSONResponse:
    """Report upstream and Redis connectivity plus cache statistics.

    A failing dependency makes the service "degraded" but still answers 200;
    503 is returned only when the check itself cannot run.
    """
    try:
        checks: dict[str, DependencyCheck] = {}
        overall = "ok"

        checks["openai"] = await _check_provider(provider, config.health_check_timeout)
        if checks["openai"].status == "error":
            overall = "degraded"

        if isinstance(limiter, RedisRateLimiter):
            checks["redis"] = await _check_redis(limiter)
            if checks["redis"].status == "error":
                overall = "degraded"

        response = HealthCheckResponse(
            status=overall,
            timestamp=_timestamp(),
            checks=checks,
            cache=cache.stats(),
        )
        return JSONResponse(status_code=200, content=response.model_dump(exclude_none=True))
    except Exception:
        logger.exception("Health check failed")
        response = HealthCheckResponse(status="error", timestamp=_timestamp())
        return JSONResponse(status_code=503, content=response.model_dump(exclude_none=True))
