"""Retry policies for judge oracle calls.

This module provides the RetryPolicy used around every judge call, with
exponential backoff and a per-call timeout, plus a few pre-configured
policies.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Type, TypeVar

from report_validation.errors.exceptions import (
    JudgeError,
    JudgeRateLimitError,
    JudgeTimeoutError,
    JudgeUnavailableError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# RetryPolicy Configuration
# =============================================================================


@dataclass
class RetryPolicy:
    """Configuration for retry behavior on errors.

    Attributes:
        max_attempts: Maximum number of attempts (including the first)
        initial_interval: Initial delay between retries in seconds
        backoff_factor: Multiplier for exponential backoff
        max_interval: Maximum delay between retries in seconds
        jitter: Whether to add random jitter to delays
        retry_on: Tuple of exception types to retry on
        should_retry: Optional custom function to determine if should retry
    """

    max_attempts: int = 3
    initial_interval: float = 1.0
    backoff_factor: float = 2.0
    max_interval: float = 30.0
    jitter: bool = True
    retry_on: tuple[Type[Exception], ...] = field(
        default_factory=lambda: (JudgeError, TimeoutError, ConnectionError)
    )
    should_retry: Callable[[Exception, int], bool] | None = None

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before next retry.

        Args:
            attempt: The current attempt number (0-indexed)

        Returns:
            Delay in seconds before next retry
        """
        delay = min(
            self.initial_interval * (self.backoff_factor ** attempt),
            self.max_interval
        )

        if self.jitter:
            # Add 0-50% random jitter
            delay = delay * (1 + random.random() * 0.5)

        return delay

    def should_attempt_retry(self, error: Exception, attempt: int) -> bool:
        """Determine if a retry should be attempted.

        Args:
            error: The exception that occurred
            attempt: The current attempt number (0-indexed)

        Returns:
            True if retry should be attempted
        """
        if attempt >= self.max_attempts - 1:
            return False

        if self.should_retry is not None:
            return self.should_retry(error, attempt)

        return isinstance(error, self.retry_on)


# =============================================================================
# Retry Decision Functions
# =============================================================================


def _should_retry_judge_error(error: Exception, attempt: int) -> bool:
    """Determine if a judge error should be retried.

    Args:
        error: The exception that occurred
        attempt: Current attempt number

    Returns:
        True if should retry
    """
    if isinstance(error, JudgeRateLimitError):
        logger.info(
            f"Judge rate limit hit, will retry (attempt {attempt + 1}). "
            f"Retry after: {error.retry_after or 'unknown'}"
        )
        return True

    if isinstance(error, (TimeoutError, ConnectionError, JudgeTimeoutError)):
        logger.info(f"Judge call timed out or lost connection, will retry (attempt {attempt + 1})")
        return True

    if isinstance(error, JudgeError):
        if not error.recoverable:
            logger.warning(f"Judge reported an unrecoverable error, not retrying: {error.message}")
            return False
        return True

    # Anything else raised by a judge implementation is treated as transient
    return True


# =============================================================================
# Pre-configured Policies
# =============================================================================


def create_judge_retry_policy(
    max_attempts: int = 3,
    initial_interval: float = 1.0,
) -> RetryPolicy:
    """Create a retry policy for judge oracle calls.

    Retries rate limits, timeouts and transient judge failures. Errors the
    judge marks as unrecoverable are not retried.

    Args:
        max_attempts: Maximum attempts per call
        initial_interval: Initial delay in seconds

    Returns:
        Configured RetryPolicy
    """
    return RetryPolicy(
        max_attempts=max_attempts,
        initial_interval=initial_interval,
        backoff_factor=2.0,
        max_interval=30.0,
        jitter=True,
        retry_on=(
            JudgeError,
            TimeoutError,
            ConnectionError,
        ),
        should_retry=_should_retry_judge_error,
    )


def create_test_retry_policy(max_attempts: int = 3) -> RetryPolicy:
    """Retry policy with no delay, for tests and local runs."""
    return RetryPolicy(
        max_attempts=max_attempts,
        initial_interval=0.0,
        backoff_factor=1.0,
        max_interval=0.0,
        jitter=False,
        should_retry=_should_retry_judge_error,
    )


DEFAULT_RETRY_POLICY = create_judge_retry_policy()
"""Default retry policy for judge calls."""


# =============================================================================
# Retry Execution
# =============================================================================


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    timeout: float | None = None,
    description: str = "judge call",
) -> T:
    """Await fn with a per-attempt timeout and bounded backoff.

    Args:
        fn: Zero-argument coroutine factory, invoked once per attempt
        policy: Retry policy to apply
        timeout: Per-attempt timeout in seconds (None disables it)
        description: Label used in log messages

    Returns:
        The first successful result

    Raises:
        JudgeUnavailableError: When every attempt failed or retry was refused
    """
    last_error: Exception | None = None
    attempt = 0

    for attempt in range(max(1, policy.max_attempts)):
        try:
            if timeout is None:
                return await fn()
            return await asyncio.wait_for(fn(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = JudgeTimeoutError(
                f"{description} timed out after {timeout}s",
                timeout_seconds=timeout or 0.0,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e

        if not policy.should_attempt_retry(last_error, attempt):
            break

        delay = policy.get_delay(attempt)
        if isinstance(last_error, JudgeRateLimitError) and last_error.retry_after:
            delay = max(delay, min(last_error.retry_after, policy.max_interval))
        logger.debug(f"Retrying {description} in {delay:.2f}s after: {last_error}")
        if delay > 0:
            await asyncio.sleep(delay)

    raise JudgeUnavailableError(
        f"{description} failed after {attempt + 1} attempt(s)",
        attempts=attempt + 1,
        last_error=last_error,
    )
