"""Request throttling for the Notion API.

Notion allows an average of three requests per second per integration.
Requests are issued from worker threads, so the limiter is a thread-safe
sliding window rather than an asyncio primitive.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

DEFAULT_REQUESTS_PER_SECOND = 3


class RateLimiter:
    """Sliding one-second window shared by every request of a client."""

    def __init__(
        self,
        max_per_second: int = DEFAULT_REQUESTS_PER_SECOND,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_per_second = max(1, max_per_second)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self.timestamps: list[float] = []

    def acquire(self) -> None:
        """Block until a request slot is available, then claim it."""
        while True:
            with self._lock:
                now = self._clock()
                # Prune timestamps older than 1 second
                self.timestamps = [t for t in self.timestamps if now - t < 1.0]
                if len(self.timestamps) < self.max_per_second:
                    self.timestamps.append(now)
                    return
                # Wait until the oldest timestamp is at least 1s old
                sleep_for = 1.0 - (now - self.timestamps[0])
            if sleep_for > 0:
                self._sleep(sleep_for)
