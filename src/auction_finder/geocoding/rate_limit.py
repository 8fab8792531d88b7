"""Minimum-interval rate limiter shared by all geocoding requests."""

import threading
import time
from typing import Callable, Optional


class RateLimiter:
    """
    Enforces a minimum gap between calls to wait().
    Holds a single "last request" timestamp; share one instance per process.
    """

    def __init__(
        self,
        min_interval: float = 0.025,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_request: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> None:
        """Sleep for whatever remains of the minimum interval, then record this request."""
        with self._lock:
            if self._last_request is not None:
                elapsed = self._clock() - self._last_request
                if elapsed < self.min_interval:
                    self._sleep(self.min_interval - elapsed)
            self._last_request = self._clock()


_shared: Optional[RateLimiter] = None


def shared_rate_limiter(min_interval: Optional[float] = None) -> RateLimiter:
    """Process-wide limiter, created on first use. A given min_interval replaces the current one."""
    global _shared
    if _shared is None:
        _shared = RateLimiter() if min_interval is None else RateLimiter(min_interval=min_interval)
    elif min_interval is not None:
        _shared.min_interval = min_interval
    return _shared
