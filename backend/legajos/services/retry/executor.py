"""
Retry Executor

Runs an async operation with bounded attempts, exponential backoff and
jitter. Never raises for operation failures: every call returns a
RetryOutcome the caller can branch on.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from ...core.exceptions import is_abort_error

logger = structlog.get_logger()

T = TypeVar("T")

RetryCondition = Callable[[BaseException], bool]
Sleep = Callable[[float], Awaitable[Any]]

JITTER_FACTOR = 0.1


def _status_of(error: BaseException) -> Optional[int]:
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def _run_hook(name: str, hook: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call a caller-supplied hook; its errors are logged, never raised."""
    if hook is None:
        return
    try:
        hook(*args)
    except Exception as e:
        logger.error(
            "Retry hook failed",
            hook=name,
            error=str(e),
            error_type=type(e).__name__,
        )


def is_retryable_error(error: BaseException) -> bool:
    """Default predicate: 5xx, timeout and network failures."""
    if is_abort_error(error):
        return False
    status = _status_of(error)
    if status is not None and status >= 500:
        return True
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return "timeout" in message or "network" in message


def is_retryable_http_error(error: BaseException) -> bool:
    """HTTP predicate: 429 and 5xx retry, other 4xx are terminal."""
    if is_abort_error(error):
        return False
    status = _status_of(error)
    if status is not None:
        return status == 429 or status >= 500
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    message = str(error).lower()
    return any(word in message for word in ("timeout", "network", "fetch"))


class RetryPolicy(BaseModel):
    """Retry policy configuration."""

    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=3, ge=1, le=20, description="Maximum attempts")
    base_delay_seconds: float = Field(
        default=1.0, ge=0.0, le=60.0, description="Delay before the first retry"
    )
    max_delay_seconds: float = Field(
        default=10.0, ge=0.0, le=3600.0, description="Upper bound for any delay"
    )
    backoff_multiplier: float = Field(
        default=2.0, ge=1.0, le=10.0, description="Delay multiplier"
    )
    jitter: bool = Field(default=True, description="Perturb delays by up to ±10%")
    retry_condition: RetryCondition = Field(
        default=is_retryable_error, description="Predicate deciding retryability"
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "RetryPolicy":
        if self.max_delay_seconds < self.base_delay_seconds:
            raise ValueError("max_delay_seconds must be >= base_delay_seconds")
        return self


CRITICAL_OVERRIDES = {
    "max_attempts": 5,
    "base_delay_seconds": 2.0,
    "max_delay_seconds": 30.0,
}
FAST_OVERRIDES = {
    "max_attempts": 2,
    "base_delay_seconds": 0.5,
    "max_delay_seconds": 2.0,
}


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of a single execute() call."""

    success: bool
    attempts: int
    elapsed: float
    value: Optional[T] = None
    error: Optional[BaseException] = None


class RetryExecutor:
    """
    Exponential backoff retry executor.

    Abort-class errors are terminal on any attempt, whatever the
    configured predicate says. Cancellation of the calling task
    (asyncio.CancelledError) is propagated, not captured.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    @classmethod
    def create(cls, **overrides) -> "RetryExecutor":
        return cls(RetryPolicy(**overrides))

    def calculate_delay(
        self, attempt: int, policy: Optional[RetryPolicy] = None
    ) -> float:
        """
        Delay to wait after a failed attempt.

        Args:
            attempt: Number of the attempt that just failed (1-based)
            policy: Policy to use (executor policy when omitted)

        Returns:
            Delay in seconds, never above max_delay_seconds
        """
        policy = policy or self.policy
        delay = policy.base_delay_seconds * (
            policy.backoff_multiplier ** (attempt - 1)
        )
        delay = min(delay, policy.max_delay_seconds)

        if policy.jitter:
            jitter_amount = delay * JITTER_FACTOR
            delay += random.uniform(-jitter_amount, jitter_amount)
            delay = min(delay, policy.max_delay_seconds)

        return max(delay, 0.0)

    def _resolve_policy(self, overrides: Optional[dict]) -> RetryPolicy:
        if not overrides:
            return self.policy
        return RetryPolicy(**{**dict(self.policy), **overrides})

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        config: Optional[dict] = None,
        on_retry: Optional[Callable[[int, BaseException], None]] = None,
        on_success: Optional[Callable[[T, int], None]] = None,
        on_failure: Optional[Callable[[BaseException, int], None]] = None,
    ) -> RetryOutcome[T]:
        """
        Run ``operation`` until it succeeds or retrying stops.

        Args:
            operation: Zero-argument coroutine factory
            config: Per-call policy overrides
            on_retry: Called with (attempt, error) before each wait
            on_success: Called with (value, attempts) on success
            on_failure: Called with (error, attempts) on terminal failure

        Hook errors are logged and ignored.

        Returns:
            RetryOutcome describing the final attempt
        """
        policy = self._resolve_policy(config)
        condition = policy.retry_condition

        def should_retry(error: BaseException) -> bool:
            if isinstance(error, asyncio.CancelledError) or is_abort_error(error):
                return False
            return condition(error)

        def wait(retry_state: RetryCallState) -> float:
            return self.calculate_delay(retry_state.attempt_number, policy)

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.warning(
                "Retrying operation",
                attempt=retry_state.attempt_number,
                max_attempts=policy.max_attempts,
                delay=retry_state.next_action.sleep,
                error=str(error),
                error_type=type(error).__name__,
            )
            _run_hook("on_retry", on_retry, retry_state.attempt_number, error)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait,
            retry=retry_if_exception(should_retry),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )

        started = time.monotonic()
        attempts = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    value = await operation()
        except Exception as e:
            elapsed = time.monotonic() - started
            logger.error(
                "Operation failed",
                attempts=attempts,
                elapsed=round(elapsed, 3),
                error=str(e),
                error_type=type(e).__name__,
            )
            _run_hook("on_failure", on_failure, e, attempts)
            return RetryOutcome(
                success=False, attempts=attempts, elapsed=elapsed, error=e
            )

        elapsed = time.monotonic() - started
        if attempts > 1:
            logger.info("Operation succeeded after retry", attempts=attempts)
        _run_hook("on_success", on_success, value, attempts)
        return RetryOutcome(
            success=True, attempts=attempts, elapsed=elapsed, value=value
        )

    async def execute_request(
        self,
        operation: Callable[[], Awaitable[T]],
        config: Optional[dict] = None,
        **hooks,
    ) -> RetryOutcome[T]:
        """Execute with the HTTP retry predicate (429 and 5xx retry)."""
        return await self.execute(
            operation,
            config={**(config or {}), "retry_condition": is_retryable_http_error},
            **hooks,
        )

    async def execute_critical(
        self,
        operation: Callable[[], Awaitable[T]],
        config: Optional[dict] = None,
        **hooks,
    ) -> RetryOutcome[T]:
        """Execute with more attempts and longer delays."""
        return await self.execute(
            operation, config={**CRITICAL_OVERRIDES, **(config or {})}, **hooks
        )

    async def execute_fast(
        self,
        operation: Callable[[], Awaitable[T]],
        config: Optional[dict] = None,
        **hooks,
    ) -> RetryOutcome[T]:
        """Execute with two attempts and short delays."""
        return await self.execute(
            operation, config={**FAST_OVERRIDES, **(config or {})}, **hooks
        )

    def get_config(self) -> RetryPolicy:
        return self.policy.model_copy()

    def update_config(self, **changes) -> None:
        """Apply a validated partial policy update."""
        self.policy = RetryPolicy(**{**dict(self.policy), **changes})
        logger.info(
            "Retry policy updated",
            **{k: v for k, v in changes.items() if k != "retry_condition"},
        )
