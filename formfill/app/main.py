from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from formfill.app.api import generate_fill_router, health_router
from formfill.app.core.config import Settings, settings as default_settings
from formfill.app.core.http_client import init_http_client
from formfill.app.core.logging import get_logger, setup_logging
from formfill.app.exceptions import FormFillException
from formfill.app.middleware.auth import API_KEY_HEADER, Authenticator
from formfill.app.middleware.request_id import RequestIdMiddleware
from formfill.app.providers.openai import OpenAIProvider
from formfill.app.providers.retry import RetryPolicy
from formfill.app.services.invoker import ResilientInvoker
from formfill.app.services.pipeline import UNEXPECTED_ERROR_MESSAGE, FillPipeline
from formfill.app.services.rate_limit import create_rate_limiter
from formfill.app.services.response_cache import ResponseCache


def create_app(config: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Settings to build the app from (defaults to the global settings)

    Returns:
        Configured FastAPI application instance
    """
    config = config or default_settings

    # Setup logging
    setup_logging(config)
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Builds the shared HTTP client, rate limiter, cache, provider and
        pipeline on startup and closes the clients on shutdown.
        """
        if not config.server_api_key:
            logger.warning("SERVER_API_KEY is not set; every request will be rejected")
        if not config.openai_api_key:
            logger.warning("OPENAI_API_KEY is not set; upstream calls will fail")

        # Startup: Initialize shared HTTP client with connection pooling
        async with init_http_client(config) as http_client:
            limiter = create_rate_limiter(config)
            cache = ResponseCache(
                ttl_seconds=config.cache_ttl_seconds,
                max_entries=config.cache_max_entries,
            )
            provider = OpenAIProvider(
                base_url=config.openai_base_url,
                api_key=config.openai_api_key,
                model=config.openai_model,
                temperature=config.openai_temperature,
                http_client=http_client,
                timeout=config.upstream_timeout,
            )
            invoker = ResilientInvoker(
                provider,
                RetryPolicy(
                    max_attempts=config.upstream_max_attempts,
                    base_delay=config.upstream_base_delay,
                    max_delay=config.upstream_max_delay,
                    jitter=config.upstream_retry_jitter,
                ),
                attempt_timeout=config.upstream_timeout,
            )

            app.state.limiter = limiter
            app.state.cache = cache
            app.state.provider = provider
            app.state.pipeline = FillPipeline(
                authenticator=Authenticator(config.server_api_key),
                limiter=limiter,
                cache=cache,
                invoker=invoker,
                max_fields=config.max_fields,
                max_request_size=config.max_request_size,
            )

            logger.info(
                "Application startup complete",
                extra={
                    "model": config.openai_model,
                    "rate_limit_backend": limiter.name,
                    "rate_limit_window_seconds": config.rate_limit_window_seconds,
                    "rate_limit_max_requests": config.rate_limit_max_requests,
                    "allowed_origins": config.cors_origins,
                    "debug_mode": config.debug,
                },
            )

            try:
                yield
            finally:
                await limiter.close()

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="FormFill Gateway",
        description="Generates realistic values for web form fields through an OpenAI-compatible API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = config

    # Add middleware (order matters: last added = first executed)
    # Request ID middleware for tracing
    app.add_middleware(RequestIdMiddleware)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", API_KEY_HEADER],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
        max_age=86400,
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(generate_fill_router)

    @app.exception_handler(FormFillException)
    async def formfill_exception_handler(request: Request, exc: FormFillException) -> JSONResponse:
        """Render gateway exceptions in the {success, error} shape."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            logger.warning(
                "Route not found",
                extra={"path": request.url.path, "method": request.method},
            )
            message = "Not found"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The full exception is logged server-side; the client only gets a
        generic message and, in debug mode, the exception type.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={"request_id": request_id, "exception_type": type(exc).__name__},
        )

        content = {"success": False, "error": UNEXPECTED_ERROR_MESSAGE}
        if config.debug:
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
