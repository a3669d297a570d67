"""
Balance Monitor - Retry Logic with Exponential Backoff

Billing polls are retried on transient failures (timeouts, HTTP 429 and
5xx). Anything ``is_retryable_error`` rejects, such as a bad credential or
an unparseable payload, is raised on the first attempt.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..errors import is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Floor for jittered delays
MIN_DELAY = 0.1


@dataclass
class RetryConfig:
    """
    Backoff policy for one billing call.

    Attributes:
        max_retries: Extra attempts after the first one (default: 2)
        base_delay: Delay before the first retry, in seconds (default: 1.0)
        max_delay: Upper bound for any single delay (default: 30.0)
        exponential_base: Growth factor between retries (default: 2.0)
        jitter: Randomize each delay by +/- jitter_factor (default: True)
        jitter_factor: Jitter band as a fraction of the delay (default: 0.1)
    """

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        problems = []
        if self.max_retries < 0:
            problems.append("max_retries must be non-negative")
        if self.base_delay <= 0:
            problems.append("base_delay must be positive")
        if self.max_delay < self.base_delay:
            problems.append("max_delay must be >= base_delay")
        if self.exponential_base < 1.0:
            problems.append("exponential_base must be >= 1.0")
        if not 0 <= self.jitter_factor <= 1:
            problems.append("jitter_factor must be between 0 and 1")
        if problems:
            raise ValueError("; ".join(problems))

    def delay_for(self, attempt: int) -> float:
        return exponential_backoff(
            attempt,
            base_delay=self.base_delay,
            exponential_base=self.exponential_base,
            max_delay=self.max_delay,
            jitter=self.jitter,
            jitter_factor=self.jitter_factor,
        )


def exponential_backoff(
    attempt: int,
    base_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 30.0,
    jitter: bool = True,
    jitter_factor: float = 0.1,
) -> float:
    """
    Delay before retry number ``attempt + 1``.

    ``min(base_delay * exponential_base ** attempt, max_delay)``, then
    optionally spread by +/- ``jitter_factor`` and floored at MIN_DELAY.

    Example:
        >>> exponential_backoff(2, jitter=False)
        4.0
    """
    delay = min(base_delay * exponential_base**attempt, max_delay)
    if not jitter or jitter_factor <= 0:
        return delay

    spread = delay * jitter_factor
    return max(MIN_DELAY, delay + random.uniform(-spread, spread))


async def with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: RetryConfig | None = None,
    on_retry: Callable[[int, Exception], None] | None = None,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)``, retrying transient billing failures.

    Args:
        func: Coroutine function to call
        config: Backoff policy (defaults to RetryConfig())
        on_retry: Called with (retry_number, error) before each sleep; its
            own failures are logged and ignored

    Raises:
        The first non-retryable error, or the last error once retries run out

    Example:
        >>> snapshot = await with_retry(client._fetch_once, config=RetryConfig(max_retries=2))
    """
    policy = config or RetryConfig()
    name = getattr(func, "__qualname__", repr(func))
    attempt = 0

    while True:
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug(f"{name}: {type(e).__name__} is not retryable")
                raise
            if attempt >= policy.max_retries:
                logger.error(
                    f"{name}: giving up after {attempt + 1} attempts",
                    extra={"function": name, "error": str(e), "error_type": type(e).__name__},
                )
                raise

            delay = policy.delay_for(attempt)
            attempt += 1
            logger.warning(
                f"{name}: retry {attempt}/{policy.max_retries} in {delay:.2f}s ({type(e).__name__}: {e})",
                extra={"function": name, "attempt": attempt, "delay_seconds": delay},
            )
            if on_retry is not None:
                try:
                    on_retry(attempt, e)
                except Exception as callback_error:
                    logger.error(f"Retry callback failed: {callback_error}")
            await asyncio.sleep(delay)
            continue

        if attempt:
            logger.info(f"{name}: succeeded on retry {attempt}", extra={"function": name, "attempt": attempt})
        return result
