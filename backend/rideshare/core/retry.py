"""
Retry policy for transient storage failures.

Only infrastructure errors are retried; domain errors raised by the
business logic pass straight through.
"""
import functools
import logging
import time
from typing import Callable, Tuple, Type

from sqlalchemy.exc import DisconnectionError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from rideshare.core.errors import StorageUnavailable

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: Tuple[Type[BaseException], ...] = (
    OperationalError,
    DisconnectionError,
    PoolTimeoutError,
)


class RetryPolicy:
    """Bounded retry with exponential backoff (base, 2*base, 4*base, ...)."""

    def __init__(
        self,
        retries: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if retries < 1:
            raise ValueError("retries must be at least 1")
        self.retries = retries
        self.base_delay = base_delay
        self.sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before the retry that follows ``attempt`` (0-based)."""
        return self.base_delay * (2 ** attempt)

    def run(self, func: Callable, *args, **kwargs):
        """Call ``func`` until it succeeds or the attempts are exhausted."""
        for attempt in range(self.retries):
            try:
                return func(*args, **kwargs)
            except TRANSIENT_ERRORS as e:
                if attempt == self.retries - 1:
                    logger.error(
                        f"Database operation failed after {self.retries} attempts: {e}"
                    )
                    raise StorageUnavailable() from e
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Database operation failed (attempt {attempt + 1}/{self.retries}), "
                    f"retrying in {delay:.1f}s: {e}"
                )
                self.sleep(delay)

    def __call__(self, func: Callable) -> Callable:
        """Use the policy as a decorator."""
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return self.run(func, *args, **kwargs)
        return wrapper
