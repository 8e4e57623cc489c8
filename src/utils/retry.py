"""
Retry utility.

Generic "retry this call" wrapper driven by an explicit RetryPolicy.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type

from src.utils.cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    max_retries is the number of retries after the first attempt, so a call
    is attempted at most max_retries + 1 times.
    """
    max_retries: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry number retry_number (1-based)."""
        return self.initial_delay * (self.multiplier ** (retry_number - 1))


def retry_call(
    func: Callable[..., Any],
    *args,
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...],
    cancel_token: Optional[CancellationToken] = None,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
    **kwargs
) -> Any:
    """
    Execute func, retrying on the given exception types.

    Args:
        func: Callable to execute
        policy: Retry policy (attempt count and backoff)
        retry_on: Exception types that trigger a retry
        cancel_token: Checked before every attempt and every backoff sleep
        sleep: Sleep function, injectable for tests
        label: Used in log messages

    Returns:
        Result from func

    Raises:
        The last retryable exception once retries are exhausted, or any
        non-retryable exception immediately.
    """
    cancel_token = cancel_token or CancellationToken()

    for attempt in range(policy.max_retries + 1):
        cancel_token.raise_if_cancelled(label)
        try:
            return func(*args, **kwargs)
        except retry_on as e:
            if attempt >= policy.max_retries:
                logger.warning(
                    f"{label} failed after {attempt + 1} attempts: {e}"
                )
                raise

            wait_time = policy.delay_for(attempt + 1)
            logger.warning(
                f"{label} failed (attempt {attempt + 1}/{policy.max_retries + 1}): {e}. "
                f"Retrying in {wait_time:.1f}s"
            )
            cancel_token.sleep(wait_time, sleep=sleep)
