"""Shared fixtures for the FormFill gateway tests."""

import json
from typing import Optional, Sequence
from unittest.mock import AsyncMock

import pytest

from formfill.app.core.config import Settings
from formfill.app.middleware.auth import Authenticator
from formfill.app.providers.base import BaseProvider
from formfill.app.providers.retry import AttemptResult, RetryPolicy
from formfill.app.schemas import DependencyCheck, FillValue, FormField
from formfill.app.services.invoker import ResilientInvoker
from formfill.app.services.pipeline import FillPipeline
from formfill.app.services.rate_limit import InMemoryRateLimiter
from formfill.app.services.response_cache import ResponseCache

SERVER_KEY = "test-server-key-0123456789abcdef0123"


class FakeClock:
    """Manually advanced clock for limiter and cache tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedProvider(BaseProvider):
    """Provider that replays a list of attempt results.

    Once the script runs out, the last result is repeated.
    """

    name = "scripted"

    def __init__(self, results: Sequence[AttemptResult], health: Optional[DependencyCheck] = None):
        super().__init__("http://upstream.test/v1", "upstream-key")
        self.results = list(results)
        self.calls = 0
        self.health = health or DependencyCheck(status="ok")

    async def attempt(self, fields: Sequence[FormField]) -> AttemptResult:
        index = min(self.calls, len(self.results) - 1)
        self.calls += 1
        return self.results[index]

    async def health_check(self, timeout: float = 5.0) -> DependencyCheck:
        return self.health


def make_fields(count: int = 2, prefix: str = "f") -> list[FormField]:
    return [
        FormField(id=f"{prefix}{i}", name=f"field_{i}", label=f"Field {i}", type="text")
        for i in range(count)
    ]


def make_body(count: int = 2, prefix: str = "f") -> bytes:
    fields = [
        {"id": f"{prefix}{i}", "name": f"field_{i}", "label": f"Field {i}", "type": "text"}
        for i in range(count)
    ]
    return json.dumps({"fields": fields}).encode()


def success_for(count: int = 2, prefix: str = "f") -> AttemptResult:
    return AttemptResult.success(
        {f"{prefix}{i}": FillValue(value=f"value {i}", reason="fits") for i in range(count)}
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        server_api_key=SERVER_KEY,
        openai_api_key="sk-test",
        openai_base_url="https://upstream.test/v1",
        upstream_base_delay=0,
        cors_origins="*",
    )


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


def build_pipeline(
    provider: BaseProvider,
    sleep: AsyncMock,
    max_requests: int = 20,
    max_attempts: int = 4,
    max_request_size: int = 1024 * 1024,
) -> FillPipeline:
    invoker = ResilientInvoker(
        provider,
        RetryPolicy(max_attempts=max_attempts, base_delay=1.0, max_delay=10.0),
        attempt_timeout=5.0,
        sleep=sleep,
    )
    return FillPipeline(
        authenticator=Authenticator(SERVER_KEY),
        limiter=InMemoryRateLimiter(max_requests=max_requests, window_seconds=60),
        cache=ResponseCache(ttl_seconds=300, max_entries=100),
        invoker=invoker,
        max_fields=50,
        max_request_size=max_request_size,
    )
