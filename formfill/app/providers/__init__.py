"""Upstream providers that generate fill values."""

from formfill.app.providers.base import BaseProvider
from formfill.app.providers.openai import OpenAIProvider
from formfill.app.providers.retry import (
    AttemptOutcome,
    AttemptResult,
    RetryPolicy,
    classify_status,
)

__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "AttemptOutcome",
    "AttemptResult",
    "RetryPolicy",
    "classify_status",
]
