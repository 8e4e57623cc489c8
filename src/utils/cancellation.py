"""
Cancellation token.

Checked before every network call, store write and pacing sleep.
"""

import time
from typing import Callable, Optional

from src.errors import RunCancelled


class CancellationToken:
    """
    Manual cancel flag plus an optional deadline.

    Args:
        deadline_seconds: Seconds from now after which the token fires
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._clock = clock
        self._cancelled = False
        self._deadline = None
        if deadline_seconds is not None:
            self._deadline = clock() + deadline_seconds

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def raise_if_cancelled(self, where: str = "") -> None:
        if self.cancelled:
            suffix = f" before {where}" if where else ""
            raise RunCancelled(f"Run cancelled{suffix}")

    def sleep(self, seconds: float, sleep: Callable[[float], None] = time.sleep) -> None:
        """Sleep after checking the token; never sleeps past the deadline."""
        self.raise_if_cancelled("sleep")
        if seconds <= 0:
            return
        if self._deadline is not None:
            seconds = min(seconds, max(0.0, self._deadline - self._clock()))
        sleep(seconds)
