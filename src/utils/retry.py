"""Retry logic and exponential backoff utilities."""

import time
import random
import logging
from dataclasses import dataclass
from typing import Callable, Any, Tuple, Type

logger = logging.getLogger(__name__)


def exponential_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 60.0) -> float:
    """Calculate exponential backoff delay with jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    # Jitter spreads out concurrent retries
    jitter = random.uniform(0, delay * 0.1)
    return delay + jitter


class RetryableError(Exception):
    """Base class for errors that should trigger retries."""
    pass


class APIRateLimitError(RetryableError):
    """Raised when API rate limit is hit."""
    pass


class NetworkError(RetryableError):
    """Raised for network-related errors."""
    pass


class TemporaryServiceError(RetryableError):
    """Raised for temporary service unavailability (overload, 5xx)."""
    pass


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff.

    A policy object is injected into collaborators that talk to flaky
    services, so the caller decides how hard to retry.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exceptions: Tuple[Type[BaseException], ...] = (RetryableError,)
    sleep: Callable[[float], None] = time.sleep

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """Call func, retrying on the configured exceptions."""
        name = getattr(func, "__name__", repr(func))

        for attempt in range(self.max_retries + 1):
            try:
                return func(*args, **kwargs)
            except self.exceptions as e:
                if attempt == self.max_retries:
                    logger.error(f"Function {name} failed after {self.max_retries} retries: {e}")
                    raise

                delay = exponential_backoff(attempt, self.base_delay, self.max_delay)
                logger.warning(
                    f"Attempt {attempt + 1} of {name} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )
                self.sleep(delay)

        raise RuntimeError("unreachable")


def api_retry_policy(max_retries: int = 5, base_delay: float = 2.0) -> RetryPolicy:
    """Retry policy for API calls with longer delays."""
    return RetryPolicy(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=120.0,
        exceptions=(APIRateLimitError, NetworkError, TemporaryServiceError),
    )

