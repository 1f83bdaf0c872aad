import math
import time
from collections import deque
from typing import Callable, Deque, Dict

from ...application.ports.rate_limiter import RateLimiter, RateLimitDecision


class InMemoryRateLimiter(RateLimiter):
    """Per-process sliding window. Only suitable for a single instance (dev, tests)."""

    def __init__(self, max_requests: int, window_seconds: int, clock: Callable[[], float] = time.time) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._store: Dict[str, Deque[float]] = {}

    def check_and_record(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window_start = now - self.window_seconds
        times = self._store.setdefault(key, deque())
        # prune
        while times and times[0] <= window_start:
            times.popleft()
        if len(times) >= self.max_requests:
            retry_after = math.ceil(times[0] + self.window_seconds - now)
            return RateLimitDecision(allowed=False, retry_after_seconds=max(1, retry_after))
        times.append(now)
        return RateLimitDecision(allowed=True)

    def purge(self) -> int:
        window_start = self._clock() - self.window_seconds
        stale = [k for k, times in self._store.items() if not times or times[-1] <= window_start]
        for k in stale:
            del self._store[k]
        return len(stale)
