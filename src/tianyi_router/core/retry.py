"""
Tianyi Router Client - Retry Mechanism

Bounded retries with backoff. The gateway's web UI applies rule changes
lazily, so table checks after a mutation are polled a few times before the
change is declared missing.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from .exceptions import (
    DecodeFailedError,
    TianyiError,
    TransportError,
    VerificationPendingError,
)

logger = logging.getLogger("tianyi-router")


class RetryConfig:
    """Configuration for retry mechanism with exponential backoff."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        exponential_backoff: bool = True,
        retryable_errors: Optional[List[type]] = None
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts, including the first
            base_delay: Base delay in seconds between retries
            max_delay: Maximum delay in seconds between retries
            exponential_backoff: Whether to use exponential backoff
            retryable_errors: List of error types that should trigger a retry
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_backoff = exponential_backoff
        self.retryable_errors = retryable_errors or [TransportError, VerificationPendingError]

    @classmethod
    def for_verification(cls, max_attempts: int = 3, base_delay: float = 0.5) -> "RetryConfig":
        """Policy for rule table checks; a listing may lag behind a mutation."""
        return cls(
            max_attempts=max_attempts,
            base_delay=base_delay,
            max_delay=5.0,
            retryable_errors=[TransportError, DecodeFailedError, VerificationPendingError],
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows ``attempt`` (zero based)."""
        if self.exponential_backoff:
            return min(self.base_delay * (2 ** attempt), self.max_delay)
        return self.base_delay

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, tuple(self.retryable_errors))


def _describe(error: BaseException) -> str:
    if isinstance(error, TianyiError):
        return f"[{error.error_code}] {error.message}"
    return str(error)


async def retry_with_backoff(
    func: Callable,
    *args,
    retry_config: Optional[RetryConfig] = None,
    operation: Optional[str] = None,
    **kwargs
) -> Any:
    """Await ``func`` until it succeeds or the attempts run out.

    Args:
        func: Async function to retry
        *args: Positional arguments to pass to the function
        retry_config: Configuration for retry mechanism
        operation: Label used in log lines; defaults to the function name
        **kwargs: Keyword arguments to pass to the function

    Returns:
        Result from the function call

    Raises:
        Exception: The first non-retryable error, or the last retryable one
            once every attempt failed. Retryable ``TianyiError``s get the
            attempt count added to their context.
    """
    if retry_config is None:
        retry_config = RetryConfig()
    label = operation or getattr(func, "__name__", "operation")

    last_exception: Optional[BaseException] = None

    for attempt in range(retry_config.max_attempts):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not retry_config.is_retryable(e):
                raise
            last_exception = e

            if attempt == retry_config.max_attempts - 1:
                break

            delay = retry_config.delay_for(attempt)
            logger.info(
                f"{label}: attempt {attempt + 1}/{retry_config.max_attempts} failed, "
                f"retrying in {delay}s: {_describe(e)}"
            )
            await asyncio.sleep(delay)

    logger.warning(f"{label}: giving up after {retry_config.max_attempts} attempt(s): {_describe(last_exception)}")
    if isinstance(last_exception, TianyiError):
        last_exception.context.setdefault("attempts", retry_config.max_attempts)
        last_exception.context.setdefault("operation", label)
    raise last_exception
