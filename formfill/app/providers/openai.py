"""OpenAI API provider implementation.

Compatible with OpenAI API and other OpenAI-compatible endpoints
(e.g., Azure OpenAI, local LLMs with OpenAI-compatible API).
"""

import json
import time
from typing import Any, Dict, Optional, Sequence

import httpx
from pydantic import TypeAdapter, ValidationError

from formfill.app.core.logging import get_logger
from formfill.app.providers.base import BaseProvider
from formfill.app.providers.prompts import build_messages
from formfill.app.providers.retry import AttemptOutcome, AttemptResult, classify_status
from formfill.app.schemas import DependencyCheck, FormField, ResultSet

logger = get_logger(__name__)

# Upstream error bodies are logged up to this many characters, never returned
MAX_ERROR_DETAIL = 400

_result_adapter: TypeAdapter[ResultSet] = TypeAdapter(ResultSet)


class OpenAIProvider(BaseProvider):
    """Generates fill values through the chat completions endpoint.

    If http_client is provided, it will be used for all requests (connection reuse).
    If not, a new client is created per attempt.
    """

    name = "openai"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.75,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.model = model
        self.temperature = temperature

    def build_payload(self, fields: Sequence[FormField]) -> Dict[str, Any]:
        return {
            "model": self.model,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
            "messages": build_messages(fields),
        }

    async def attempt(self, fields: Sequence[FormField]) -> AttemptResult:
        """Send one chat completion request and classify the outcome.

        Returns:
            SUCCESS with the parsed result set, RETRYABLE for timeouts,
            transport errors, 5xx and 429, TERMINAL for anything else
        """
        url = self._get_endpoint_url("/chat/completions")
        payload = self.build_payload(fields)
        start = time.perf_counter()

        try:
            async with self._client_context() as client:
                resp = await client.post(url, headers=self.headers, json=payload)
        except httpx.TimeoutException:
            logger.error(f"OpenAI request timeout after {self.timeout}s")
            return AttemptResult.retryable("Timeout")
        except httpx.TransportError as e:
            logger.error(f"OpenAI transport error: {type(e).__name__}: {e}")
            return AttemptResult.retryable(f"Transport error: {type(e).__name__}")

        duration_ms = round((time.perf_counter() - start) * 1000, 2)

        if not resp.is_success:
            detail = resp.text[:MAX_ERROR_DETAIL] if resp.text else f"status {resp.status_code}"
            logger.error(
                "OpenAI API request failed",
                extra={
                    "status_code": resp.status_code,
                    "duration_ms": duration_ms,
                    "detail": detail,
                },
            )
            error = f"OpenAI API error: {resp.status_code}"
            if classify_status(resp.status_code) is AttemptOutcome.RETRYABLE:
                return AttemptResult.retryable(error, resp.status_code)
            return AttemptResult.terminal(error, resp.status_code)

        logger.info(
            "OpenAI request successful",
            extra={"duration_ms": duration_ms, "field_count": len(fields)},
        )
        return self.parse_response(resp)

    def parse_response(self, resp: httpx.Response) -> AttemptResult:
        """Extract the result set from a successful chat completion response."""
        try:
            data = resp.json()
        except ValueError:
            return AttemptResult.terminal("Unparseable response body", resp.status_code)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content or not isinstance(content, str):
            return AttemptResult.terminal("OpenAI response missing content", resp.status_code)

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            logger.error(
                "Failed to parse OpenAI response",
                extra={"content": content[:MAX_ERROR_DETAIL]},
            )
            return AttemptResult.terminal("Failed to parse OpenAI response", resp.status_code)

        try:
            result = _result_adapter.validate_python(parsed)
        except ValidationError as e:
            logger.error(
                f"OpenAI response has unexpected shape: {e.error_count()} errors",
                extra={"content": content[:MAX_ERROR_DETAIL]},
            )
            return AttemptResult.terminal("OpenAI response has unexpected shape", resp.status_code)

        return AttemptResult.success(result)

    async def health_check(self, timeout: float = 5.0) -> DependencyCheck:
        """Check that the OpenAI API answers on the /models endpoint.

        Args:
            timeout: Request timeout in seconds (default: 5.0)
        """
        url = self._get_endpoint_url("/models")
        try:
            async with self._client_context() as client:
                resp = await client.get(url, headers=self.headers, timeout=timeout)
        except httpx.HTTPError as e:
            logger.warning(f"OpenAI health check failed: {type(e).__name__}: {e}")
            return DependencyCheck(status="error", message=type(e).__name__)

        if resp.is_success:
            return DependencyCheck(status="ok")
        return DependencyCheck(status="error", message=f"HTTP {resp.status_code}")
