"""Shared HTTP client management for connection pooling.

The client is created once in the application lifespan and handed to the
upstream provider, so every request reuses the same connection pool.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx

from formfill.app.core.config import Settings, settings as default_settings


def create_http_client(config: Optional[Settings] = None, **kwargs) -> httpx.AsyncClient:
    """Create a new HTTP client with pool limits and timeouts from settings.

    The read timeout matches the per-attempt upstream timeout; the invoker
    additionally bounds each attempt as a whole.

    Note: The returned client should be closed when done:
        async with create_http_client() as client:
            ...
    """
    config = config or default_settings
    timeout = httpx.Timeout(
        kwargs.get("timeout", config.upstream_timeout),
        connect=kwargs.get("connect_timeout", config.httpx_connect_timeout),
    )
    limits = httpx.Limits(
        max_connections=kwargs.get("max_connections", config.httpx_max_connections),
        max_keepalive_connections=kwargs.get(
            "max_keepalive_connections", config.httpx_max_keepalive_connections
        ),
        keepalive_expiry=kwargs.get("keepalive_expiry", config.httpx_keepalive_expiry),
    )
    return httpx.AsyncClient(timeout=timeout, limits=limits)


@asynccontextmanager
async def init_http_client(
    config: Optional[Settings] = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    This context manager is used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client(settings) as http_client:
                yield
    """
    client = create_http_client(config)
    try:
        yield client
    finally:
        await client.aclose()
