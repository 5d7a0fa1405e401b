"""FastAPI dependency providers.

The lifespan builds the shared components and stores them on ``app.state``;
these providers hand them to endpoints, and tests replace them through
``app.dependency_overrides``.
"""

from fastapi import Request

from formfill.app.core.config import Settings
from formfill.app.providers.base import BaseProvider
from formfill.app.services.pipeline import FillPipeline
from formfill.app.services.rate_limit import RateLimitBackend
from formfill.app.services.response_cache import ResponseCache


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_pipeline(request: Request) -> FillPipeline:
    return request.app.state.pipeline


def get_provider(request: Request) -> BaseProvider:
    return request.app.state.provider


def get_limiter(request: Request) -> RateLimitBackend:
    return request.app.state.limiter


def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache
