"""Retry with bounded exponential backoff for transient failures.

Wraps any zero-argument async operation. Failures are classified as
transient (retried) or permanent (raised immediately) by an injectable
predicate; the default matches connection, timeout, rate-limit and
service-unavailable signatures in the failure message.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .diagnostics import failure_message

if TYPE_CHECKING:
    from agentic_memory.config import Settings

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TRANSIENT_MARKERS: tuple[str, ...] = (
    "timeout",
    "econnrefused",
    "etimedout",
    "econnreset",
    "rate limit",
    "429",
    "503",
    "service unavailable",
)

RetryPredicate = Callable[[BaseException], bool]
SleepFunc = Callable[[float], Awaitable[Any]]


class RetryOptions(BaseModel):
    """Backoff settings for ``with_retry``.

    Attributes:
        max_retries: Retries allowed after the first attempt
        initial_delay_ms: Delay before the first retry
        max_delay_ms: Upper bound for any single delay
        backoff_multiplier: Factor applied to the delay after each retry
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    initial_delay_ms: int = Field(default=100, ge=0, description="First retry delay in ms")
    max_delay_ms: int = Field(default=5000, ge=0, description="Maximum retry delay in ms")
    backoff_multiplier: float = Field(default=2.0, gt=0, description="Delay growth factor")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryOptions":
        return cls(
            max_retries=settings.retry_max_retries,
            initial_delay_ms=settings.retry_initial_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            backoff_multiplier=settings.retry_backoff_multiplier,
        )


def transient_failure_predicate(markers: Iterable[str]) -> RetryPredicate:
    """Build a predicate that treats failures containing any marker as transient."""
    lowered = tuple(marker.lower() for marker in markers)

    def predicate(error: BaseException) -> bool:
        if not isinstance(error, Exception):
            return False
        message = failure_message(error).lower()
        return any(marker in message for marker in lowered)

    return predicate


_matches_transient_marker = transient_failure_predicate(TRANSIENT_MARKERS)


def is_transient_failure(error: BaseException) -> bool:
    """Default classification: the failure message contains a ``TRANSIENT_MARKERS`` entry."""
    return _matches_transient_marker(error)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "retry_scheduled",
        attempt=retry_state.attempt_number,
        delay_ms=round(delay * 1000, 3),
        error=failure_message(error) if error else None,
    )


def _raise_exhausted(retry_state: RetryCallState) -> Any:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "retry_exhausted",
        attempts=retry_state.attempt_number,
        error=failure_message(error) if error else None,
    )
    # Re-raises the original failure object.
    return retry_state.outcome.result() if retry_state.outcome else None


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    *,
    is_retryable: RetryPredicate = is_transient_failure,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Run ``operation`` with bounded exponential-backoff retry.

    Args:
        operation: Zero-argument callable returning an awaitable; called afresh
            for every attempt
        options: Backoff settings (defaults: 3 retries, 100ms initial delay,
            5000ms cap, multiplier 2)
        is_retryable: Classifies a failure as transient
        sleep: Awaitable sleep taking seconds; yields to the event loop

    Returns:
        The operation's result

    Raises:
        The original failure, unchanged, when it is permanent or the retry
        budget is exhausted
    """
    options = options or RetryOptions()

    def should_retry(error: BaseException) -> bool:
        return isinstance(error, Exception) and is_retryable(error)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_retries + 1),
        wait=wait_exponential(
            multiplier=options.initial_delay_ms / 1000.0,
            exp_base=options.backoff_multiplier,
            max=options.max_delay_ms / 1000.0,
        ),
        retry=retry_if_exception(should_retry),
        sleep=sleep,
        before_sleep=_log_retry,
        retry_error_callback=_raise_exhausted,
        reraise=True,
    )
    # AsyncRetrying only awaits coroutine functions; operation may be a plain
    # callable (e.g. a lambda) returning an awaitable.
    async def attempt() -> T:
        return await operation()

    return await retrying(attempt)
