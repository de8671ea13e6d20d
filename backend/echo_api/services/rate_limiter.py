"""Per-client fixed-window rate limiting."""

import time
from collections.abc import Callable


class RateLimiter:
    """
    Fixed-window request counter keyed by client (address or user id).

    In-memory and per process: counters reset when a window elapses.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        # {key: (count, window_start)}
        self._counters: dict[str, tuple[int, float]] = {}

    def check_and_increment(self, key: str) -> bool:
        """
        Count one request for `key`.

        Returns:
            True if the request is allowed, False if the limit is exceeded
        """
        now = self.clock()
        count, window_start = self._counters.get(key, (0, now))

        if now - window_start >= self.window_seconds:
            count, window_start = 0, now

        if count >= self.max_requests:
            return False

        self._counters[key] = (count + 1, window_start)
        self._prune(now)
        return True

    def _prune(self, now: float) -> None:
        # Drop expired windows once the table gets large
        if len(self._counters) < 10_000:
            return
        expired = [k for k, (_, start) in self._counters.items() if now - start >= self.window_seconds]
        for key in expired:
            del self._counters[key]

    def reset(self) -> None:
        self._counters.clear()
