"""Retry policy and attempt classification for upstream calls.

A provider attempt never raises for an upstream failure; it returns an
AttemptResult tagged SUCCESS, RETRYABLE or TERMINAL, and the invoker decides
from the tag whether to back off and try again.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from formfill.app.schemas import ResultSet


class AttemptOutcome(str, Enum):
    """Classification of a single upstream attempt."""
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass
class AttemptResult:
    """Outcome of one upstream attempt.

    Exactly one of ``data`` (on SUCCESS) or ``error`` (otherwise) is set.
    ``status_code`` is the upstream HTTP status when a response arrived.
    """
    outcome: AttemptOutcome
    data: Optional[ResultSet] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def success(cls, data: ResultSet) -> "AttemptResult":
        return cls(outcome=AttemptOutcome.SUCCESS, data=data)

    @classmethod
    def retryable(cls, error: str, status_code: Optional[int] = None) -> "AttemptResult":
        return cls(outcome=AttemptOutcome.RETRYABLE, error=error, status_code=status_code)

    @classmethod
    def terminal(cls, error: str, status_code: Optional[int] = None) -> "AttemptResult":
        return cls(outcome=AttemptOutcome.TERMINAL, error=error, status_code=status_code)

    @property
    def ok(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS


def classify_status(status_code: int) -> AttemptOutcome:
    """Classify a non-2xx upstream status.

    5xx and 429 are transient and worth retrying; every other client error
    will fail the same way again.
    """
    if status_code >= 500 or status_code == 429:
        return AttemptOutcome.RETRYABLE
    return AttemptOutcome.TERMINAL


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first (default: 4)
        base_delay: Delay before the first retry in seconds (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 10.0)
        exponential_base: Base for exponential calculation (default: 2.0)
        jitter: Draw each delay uniformly from [0, delay] (default: False)

    Example:
        >>> policy = RetryPolicy(max_attempts=4, base_delay=1.0)
        >>> policy.calculate_delay(attempt=3)  # Returns 4.0
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = False
    rng: Callable[[float, float], float] = random.uniform

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the delay after a failed attempt.

        Uses exponential backoff: delay = min(max_delay, base_delay * exponential_base^(attempt - 1))

        Args:
            attempt: The attempt that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        try:
            delay = self.base_delay * (self.exponential_base ** max(0, attempt - 1))
        except OverflowError:
            delay = self.max_delay
        delay = min(delay, self.max_delay)
        if self.jitter:
            return self.rng(0.0, delay)
        return delay
