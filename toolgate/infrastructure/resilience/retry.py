"""
Retry logic with exponential backoff.

Provides:
- Exponential backoff: min(base_delay * multiplier ** attempt, max_delay)
- Non-retryable error detection (caller mistakes fail immediately)
- Exhaustion reported as RetryExhaustedError wrapping the last error
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from toolgate.domain.exceptions import (
    CircuitOpenError,
    RetryExhaustedError,
    SandboxViolationError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that signal a caller or model mistake, or a fast-fail from the breaker
NON_RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    ValidationError,
    SandboxViolationError,
    CircuitOpenError,
)


@dataclass(frozen=True)
class RetryOptions:
    """
    Retry policy.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay, in seconds
        backoff_multiplier: Growth factor applied per attempt
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given 0-indexed failed attempt."""
        delay = self.base_delay * (self.backoff_multiplier**attempt)
        return max(0.0, min(delay, self.max_delay))


def is_retryable_error(error: Exception) -> bool:
    return not isinstance(error, NON_RETRYABLE_ERRORS)


async def retry_with_backoff(
    func: Callable[[], Coroutine[Any, Any, T]],
    options: RetryOptions,
    context: str = "operation",
    is_retryable: Callable[[Exception], bool] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Execute async function with exponential backoff retry.

    Args:
        func: Async function to execute
        options: Retry policy
        context: Label used in log lines and the exhaustion message
        is_retryable: Decides whether an error may be retried
        sleep: Awaitable used to wait between attempts

    Returns:
        Result from the first successful attempt

    Raises:
        RetryExhaustedError: If every attempt failed
        Exception: Non-retryable errors, unchanged
    """
    if is_retryable is None:
        is_retryable = is_retryable_error

    for attempt in range(options.max_retries + 1):
        try:
            return await func()

        except Exception as e:
            if not is_retryable(e):
                raise

            if attempt >= options.max_retries:
                logger.error(f"{context} failed after {attempt + 1} attempts: {e}")
                raise RetryExhaustedError(
                    f"{context} failed after {attempt + 1} attempts: {e}",
                    last_error=e,
                    attempts=attempt + 1,
                    max_retries=options.max_retries,
                ) from e

            delay = options.delay_for(attempt)
            logger.warning(
                f"{context} attempt {attempt + 1}/{options.max_retries + 1} failed, "
                f"retrying in {delay:.2f}s: {e}"
            )
            await sleep(delay)

    # range() always runs at least once, so this is unreachable
    raise AssertionError("retry loop exited without result")
