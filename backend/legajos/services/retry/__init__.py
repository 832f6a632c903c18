"""
Retry Services

Exponential backoff with jitter over tenacity.
"""

from .executor import (
    CRITICAL_OVERRIDES,
    FAST_OVERRIDES,
    RetryExecutor,
    RetryOutcome,
    RetryPolicy,
    is_retryable_error,
    is_retryable_http_error,
)

__all__ = [
    "RetryExecutor",
    "RetryOutcome",
    "RetryPolicy",
    "CRITICAL_OVERRIDES",
    "FAST_OVERRIDES",
    "is_retryable_error",
    "is_retryable_http_error",
]
