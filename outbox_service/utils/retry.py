"""Retry and backoff utilities for resilient external service calls.

Exponential backoff with jitter for async callables, used for startup
connection checks against the database and the broker.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""

    def __init__(self, last_exception: Exception, attempts: int) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        super().__init__(
            f"Failed after {attempts} attempts. Last error: {last_exception}"
        )


class RetryStrategy:
    """Backoff policy: which exceptions retry and how long to wait."""

    def __init__(
        self,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
        exceptions: tuple[type[Exception], ...] = (Exception,),
    ) -> None:
        """Initialize retry strategy.

        Args:
            max_attempts: Maximum number of attempts, including the first.
            initial_delay: Delay in seconds before the first retry.
            max_delay: Maximum delay in seconds between retries.
            exponential_base: Base for exponential backoff calculation.
            jitter: Whether to add random jitter to delays.
            exceptions: Exception types to retry on.
        """
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter
        self.exceptions = exceptions

    def should_retry(self, exception: Exception) -> bool:
        return isinstance(exception, self.exceptions)

    def calculate_delay(self, attempt: int) -> float:
        """Delay for a 0-indexed attempt: initial * base^attempt, capped, jittered 50-150%."""
        delay = min(
            self.initial_delay * (self.exponential_base**attempt), self.max_delay
        )
        if self.jitter:
            delay = delay * (0.5 + random.random())
        return delay


def retry(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    on_retry: Callable[[Exception, int], None] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for retrying async functions with exponential backoff.

    Non-retryable exceptions propagate immediately. When attempts run out
    the last exception is wrapped in RetryError.

    Example:
        ```python
        @retry(max_attempts=5, initial_delay=1.0, exceptions=(OSError,))
        async def ping() -> None:
            ...
        ```
    """
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        exponential_base=exponential_base,
        jitter=jitter,
        exceptions=exceptions,
    )

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not strategy.should_retry(e):
                        logger.warning(
                            "Non-retryable exception in %s: %s",
                            func.__name__,
                            e,
                            extra={"function": func.__name__, "exception": str(e)},
                        )
                        raise

                    if attempt >= max_attempts - 1:
                        logger.error(
                            "All retry attempts exhausted for %s",
                            func.__name__,
                            extra={
                                "function": func.__name__,
                                "attempts": max_attempts,
                                "last_exception": str(e),
                            },
                        )
                        raise RetryError(e, max_attempts) from e

                    delay = strategy.calculate_delay(attempt)
                    logger.warning(
                        "Retrying %s after %.2fs (attempt %d/%d)",
                        func.__name__,
                        delay,
                        attempt + 1,
                        max_attempts,
                        extra={
                            "function": func.__name__,
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "delay": delay,
                            "exception": str(e),
                        },
                    )

                    if on_retry:
                        on_retry(e, attempt + 1)

                    await asyncio.sleep(delay)

            raise RuntimeError("Retry logic error: max_attempts must be at least 1")

        return wrapper

    return decorator


__all__ = ["RetryError", "RetryStrategy", "retry"]
