"""Services implementing the generate-fill request pipeline."""

from formfill.app.services.invoker import Invocation, ResilientInvoker
from formfill.app.services.pipeline import FillPipeline, PipelineOutcome
from formfill.app.services.rate_limit import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RedisRateLimiter,
    create_rate_limiter,
)
from formfill.app.services.response_cache import ResponseCache
from formfill.app.services.validation import validate_request

__all__ = [
    "Invocation",
    "ResilientInvoker",
    "FillPipeline",
    "PipelineOutcome",
    "InMemoryRateLimiter",
    "RateLimitBackend",
    "RedisRateLimiter",
    "create_rate_limiter",
    "ResponseCache",
    "validate_request",
]
