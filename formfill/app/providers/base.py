from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, Optional, Sequence

import httpx

from formfill.app.providers.retry import AttemptResult
from formfill.app.schemas import DependencyCheck, FormField


class BaseProvider(ABC):
    """Base class for fill-value providers.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own if not provided.

    A provider performs single attempts only; retries belong to the invoker.
    """

    name: str = "base"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Optional shared HTTP client for connection pooling
            timeout: Per-attempt request timeout in seconds
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')  # Remove trailing slash
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """Get the HTTP client, if one was provided."""
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    @asynccontextmanager
    async def _client_context(self):
        """Yield the shared client, or a short-lived one closed on exit."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        """Build full URL for an API endpoint (e.g. "/chat/completions")."""
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def attempt(self, fields: Sequence[FormField]) -> AttemptResult:
        """Make one generation attempt for the given fields.

        Upstream failures are returned as RETRYABLE or TERMINAL results,
        never raised.
        """

    @abstractmethod
    async def health_check(self, timeout: float = 5.0) -> DependencyCheck:
        """Check that the upstream service answers with a short timeout."""
