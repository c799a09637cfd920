"""Bounded retry with exponential backoff for derived writes."""

import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from pillmate.util.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff."""
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 8.0
    exponential_base: float = 2.0

    def get_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        if attempt <= 0:
            return 0
        delay = self.base_delay_seconds * (self.exponential_base ** (attempt - 1))
        return min(delay, self.max_delay_seconds)


def run_with_retry(func: Callable[[], T], policy: RetryPolicy, description: str) -> T:
    """Call ``func`` until it succeeds or the policy is exhausted.

    The last error is re-raised when every attempt fails.
    """
    last_error = None

    for attempt in range(policy.max_attempts):
        try:
            return func()
        except Exception as e:
            last_error = e
            if attempt < policy.max_attempts - 1:
                delay = policy.get_delay(attempt + 1)
                logger.warning(
                    f"{description} failed (attempt {attempt + 1}/{policy.max_attempts}), "
                    f"retrying in {delay}s: {e}"
                )
                time.sleep(delay)

    logger.error(f"{description} failed after {policy.max_attempts} attempts: {last_error}")
    raise last_error
