"""
Retry — Re-run a fallible operation with exponential backoff.

A failure is either a falsy return value or a raised exception. By default
every failure is retried the same way; pass ``retry_if`` to give up early
on failures that retrying cannot fix (bad credentials, missing repo).

## Usage

    from bitbucket_backup.reliability.retry import retry_call, RetryPolicy

    ok = retry_call(lambda: git.fetch(repo), description="git fetch alpha")

    @retrying(RetryPolicy(max_attempts=5), description="list page")
    def get_page(url): ...
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling and backoff schedule."""

    max_attempts: int = 3
    initial_delay: float = 5.0
    backoff_factor: float = 2.0

    # Called with the failed result or the exception; False stops retrying
    retry_if: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delays(self):
        """Yield the sleep before each retry (one fewer than attempts)."""
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= self.backoff_factor


DEFAULT_POLICY = RetryPolicy()


def retry_call(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy = DEFAULT_POLICY,
    description: str = "operation",
) -> T:
    """
    Invoke ``operation`` until it succeeds or the policy is exhausted.

    Returns the first truthy result. When every attempt fails, logs the
    operation and returns the last falsy result, or re-raises the last
    exception.
    """
    delays = policy.delays()
    attempt = 0

    while True:
        attempt += 1
        error: Optional[Exception] = None
        result: Any = None

        try:
            result = operation()
        except Exception as e:
            error = e
        else:
            if result:
                if attempt > 1:
                    logger.debug(f"{description}: succeeded on attempt {attempt}")
                return result

        failure = error if error is not None else result
        reason = f": {error}" if error is not None else ""

        give_up = policy.retry_if is not None and not policy.retry_if(failure)
        delay = None if give_up else next(delays, None)

        if delay is None:
            if give_up:
                logger.error(
                    f"{description}: not retryable, giving up after "
                    f"attempt {attempt}{reason}"
                )
            else:
                logger.error(
                    f"{description}: failed after {attempt} attempts{reason}"
                )
            if error is not None:
                raise error
            return result

        logger.warning(
            f"{description}: attempt {attempt} failed{reason}, "
            f"retrying in {delay:g}s..."
        )
        time.sleep(delay)


def retrying(
    policy: RetryPolicy = DEFAULT_POLICY,
    description: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator form of retry_call for functions that take arguments."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        label = description or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return retry_call(
                lambda: func(*args, **kwargs),
                policy=policy,
                description=label,
            )

        return wrapper

    return decorator
