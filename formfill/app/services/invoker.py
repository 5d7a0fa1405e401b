"""Resilient invocation of the upstream provider.

Each attempt is bounded by a timeout and classified by the provider; retryable
failures are retried with exponential backoff until the policy's attempt
budget is spent.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from formfill.app.core.logging import get_log_context, get_logger
from formfill.app.exceptions import UpstreamRetryable, UpstreamTerminal
from formfill.app.providers.base import BaseProvider
from formfill.app.providers.retry import AttemptOutcome, AttemptResult, RetryPolicy
from formfill.app.schemas import FormField, ResultSet

logger = get_logger(__name__)


@dataclass
class Invocation:
    """A successful invocation and how many attempts it took."""
    result: ResultSet
    attempts: int


class ResilientInvoker:
    """Drives provider attempts with a per-attempt timeout and bounded retries.

    The driver branches on the AttemptResult tag returned by the provider.
    Backoff waits go through ``sleep`` (``asyncio.sleep`` by default), so
    they only suspend the requesting task.
    """

    def __init__(
        self,
        provider: BaseProvider,
        policy: Optional[RetryPolicy] = None,
        attempt_timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep

    async def _attempt(self, fields: Sequence[FormField]) -> AttemptResult:
        try:
            return await asyncio.wait_for(
                self.provider.attempt(fields), timeout=self.attempt_timeout
            )
        except asyncio.TimeoutError:
            return AttemptResult.retryable("Timeout")

    async def invoke(
        self,
        fields: Sequence[FormField],
        fingerprint: Optional[str] = None,
    ) -> Invocation:
        """Generate fill values for ``fields``.

        Returns:
            Invocation with the result set and the number of attempts made

        Raises:
            UpstreamTerminal: An attempt failed in a way retrying cannot fix
            UpstreamRetryable: Every allowed attempt failed transiently
        """
        max_attempts = max(1, self.policy.max_attempts)
        short_fp = fingerprint[:12] if fingerprint else None

        for attempt in range(1, max_attempts + 1):
            result = await self._attempt(fields)

            if result.outcome is AttemptOutcome.SUCCESS:
                if attempt > 1:
                    logger.info(
                        f"Upstream succeeded after {attempt} attempts",
                        extra=get_log_context(attempt=attempt, fingerprint=short_fp),
                    )
                return Invocation(result=result.data or {}, attempts=attempt)

            retries_left = max_attempts - attempt

            if result.outcome is AttemptOutcome.TERMINAL:
                logger.warning(
                    f"Upstream attempt {attempt} failed with non-retryable error: {result.error}",
                    extra=get_log_context(
                        attempt=attempt,
                        fingerprint=short_fp,
                        retries_left=0,
                        error=result.error,
                    ),
                )
                raise UpstreamTerminal(
                    "Failed to generate fill values: upstream request was rejected",
                    attempts=attempt,
                )

            if retries_left == 0:
                logger.warning(
                    f"Upstream attempts exhausted ({max_attempts}): {result.error}",
                    extra=get_log_context(
                        attempt=attempt,
                        fingerprint=short_fp,
                        retries_left=0,
                        error=result.error,
                    ),
                )
                break

            delay = self.policy.calculate_delay(attempt)
            logger.warning(
                f"Upstream attempt {attempt}/{max_attempts} failed: {result.error}. "
                f"Retrying in {delay:.2f}s",
                extra=get_log_context(
                    attempt=attempt,
                    fingerprint=short_fp,
                    retries_left=retries_left,
                    error=result.error,
                ),
            )
            await self._sleep(delay)

        raise UpstreamRetryable(
            "Failed to generate fill values: upstream service unavailable",
            attempts=max_attempts,
        )
