"""Request pipeline for generate-fill.

Endpoints delegate here. This owns, in order:
  - Authentication of the presented API key
  - Admission control keyed by the credential digest
  - Body validation
  - Cache lookup, upstream invocation on a miss and cache store
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from formfill.app.core.logging import get_log_context, get_logger
from formfill.app.exceptions import (
    AdmissionRejected,
    FormFillException,
    UpstreamError,
)
from formfill.app.middleware.auth import Authenticator, admission_key
from formfill.app.services.invoker import ResilientInvoker
from formfill.app.services.rate_limit import RateLimitBackend
from formfill.app.services.response_cache import ResponseCache
from formfill.app.services.validation import validate_request

logger = get_logger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"


@dataclass
class PipelineOutcome:
    """HTTP-shaped result of one pipeline run."""
    status_code: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: dict[str, Any], headers: Optional[dict[str, str]] = None) -> "PipelineOutcome":
        return cls(status_code=200, body={"success": True, "data": data}, headers=headers or {})

    @classmethod
    def error(
        cls,
        status_code: int,
        message: str,
        headers: Optional[dict[str, str]] = None,
    ) -> "PipelineOutcome":
        return cls(
            status_code=status_code,
            body={"success": False, "error": message},
            headers=headers or {},
        )


class FillPipeline:
    """Composes authentication, admission, validation, caching and invocation.

    No stage calls back into the pipeline; each failure short-circuits into
    a PipelineOutcome carrying the status code and the JSON error body.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        limiter: RateLimitBackend,
        cache: ResponseCache,
        invoker: ResilientInvoker,
        max_fields: int = 50,
        max_request_size: int = 1024 * 1024,
    ):
        self.authenticator = authenticator
        self.limiter = limiter
        self.cache = cache
        self.invoker = invoker
        self.max_fields = max_fields
        self.max_request_size = max_request_size

    async def handle(self, credential: Optional[str], raw_body: bytes) -> PipelineOutcome:
        """Run one request through the pipeline.

        Args:
            credential: The presented API key, or None if absent
            raw_body: The request body as received

        Returns:
            PipelineOutcome with status 200, 400, 401, 429, 502 or 500
        """
        headers: dict[str, str] = {}
        try:
            return await self._run(credential, raw_body, headers)
        except FormFillException as e:
            return PipelineOutcome.error(e.status_code, e.message, headers)
        except Exception:
            logger.exception("Error processing generate-fill request")
            return PipelineOutcome.error(500, UNEXPECTED_ERROR_MESSAGE, headers)

    async def _run(
        self,
        credential: Optional[str],
        raw_body: bytes,
        headers: dict[str, str],
    ) -> PipelineOutcome:
        # 1. Authentication
        credential = self.authenticator.require(credential)

        # 2. Admission
        key = admission_key(credential)
        admission = await self.limiter.is_allowed(key)
        headers.update(admission.headers())
        if not admission.allowed:
            logger.warning(f"Rate limit exceeded for key {key[:8]}...")
            raise AdmissionRejected(retry_after=admission.retry_after)

        # 3. Validation
        request = validate_request(raw_body, self.max_fields, self.max_request_size)
        fields = request.fields
        fingerprint = self.cache.fingerprint(fields)

        # 4. Cache
        cached = self.cache.lookup(fields)
        if cached is not None:
            logger.info(
                "Cache hit for form fields",
                extra=get_log_context(fingerprint=fingerprint[:12], field_count=len(fields)),
            )
            return PipelineOutcome.ok(self._dump(cached), headers)

        # 5. Upstream
        logger.info(
            "Generating fill values from upstream",
            extra=get_log_context(fingerprint=fingerprint[:12], field_count=len(fields)),
        )
        start = time.perf_counter()
        try:
            invocation = await self.invoker.invoke(fields, fingerprint=fingerprint)
        except UpstreamError as e:
            logger.error(
                f"Upstream generation failed after {e.attempts} attempts: {e.message}",
                extra=get_log_context(fingerprint=fingerprint[:12], attempt=e.attempts),
            )
            raise

        self.cache.store(fields, invocation.result)
        logger.info(
            "Successfully generated fill data",
            extra=get_log_context(
                fingerprint=fingerprint[:12],
                attempt=invocation.attempts,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            ),
        )
        return PipelineOutcome.ok(self._dump(invocation.result), headers)

    @staticmethod
    def _dump(result: dict) -> dict[str, Any]:
        return {field_id: value.model_dump() for field_id, value in result.items()}
