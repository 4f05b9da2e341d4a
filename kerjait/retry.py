"""
Retry with exponential backoff for the HTTP batch feed.

Store calls are never retried here; a failed lookup or insert surfaces to
the caller unchanged.
"""

import functools
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple, Type

# Request Timeout, Too Many Requests, and the transient 5xx family
RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""


class RetryableHTTPError(Exception):
    """An HTTP response whose status is worth another attempt."""

    def __init__(self, status_code: int, url: str):
        super().__init__(f"HTTP {status_code} from {url}")
        self.status_code = status_code
        self.url = url


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how long to wait between attempts.

    Attributes:
        max_retries: Retries after the first attempt (0 = try once)
        base_delay: Seconds before the first retry
        max_delay: Upper bound on any single wait
        multiplier: Growth factor between consecutive waits
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    multiplier: float = 2.0

    def delays(self) -> Iterator[float]:
        """Wait before each retry, in order."""
        delay = self.base_delay
        for _ in range(self.max_retries):
            yield min(delay, self.max_delay)
            delay *= self.multiplier


def exponential_backoff(
    policy: Optional[RetryPolicy] = None,
    retry_on: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator retrying a call on `retry_on` exceptions, sleeping per `policy`.

    Exceptions outside `retry_on` propagate at once. When every attempt
    fails, RetryError is raised from the last failure.

    Example:
        @exponential_backoff(RetryPolicy(max_retries=3), retry_on=(requests.Timeout,))
        def fetch(url):
            return requests.get(url, timeout=10)
    """
    policy = policy or RetryPolicy()

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            waits = policy.delays()
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    delay = next(waits, None)
                    if delay is None:
                        raise RetryError(f"Failed after {attempt} attempts: {e}") from e
                    if on_retry:
                        on_retry(attempt, e, delay)
                    time.sleep(delay)

        return wrapper
    return decorator


def should_retry_http_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUSES
