"""In-process sliding-window rate limiter keyed by client identifier (IP address).

State lives in the limiter instance only; it is not shared between processes and
is lost on restart.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0  # seconds until the oldest hit leaves the window (0 when allowed)


class SlidingWindowRateLimiter:
    """
    Allow at most max_requests hits per client inside any window_seconds interval.

    hit() is atomic per call; a rejected hit is not recorded, so waiting clients
    are not pushed further back by their retries. Clients with no hit left in
    the window are forgotten by a sweep that runs at most once per window.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def hit(self, client_id: str) -> RateLimitDecision:
        """Record one request for client_id if it is within quota."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            bucket = self._hits.setdefault(client_id, deque())
            self._prune(bucket, now)

            if len(bucket) >= self.max_requests:
                retry_after = max(1, int(self.window_seconds - (now - bucket[0])))
                return RateLimitDecision(allowed=False, retry_after=retry_after)

            bucket.append(now)
            return RateLimitDecision(allowed=True)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._last_sweep = self._clock()

    def _prune(self, bucket: deque[float], now: float) -> None:
        while bucket and now - bucket[0] >= self.window_seconds:
            bucket.popleft()

    def _sweep(self, now: float) -> None:
        # At most once per window: forget clients with no hits left inside it.
        for client_id in list(self._hits):
            bucket = self._hits[client_id]
            self._prune(bucket, now)
            if not bucket:
                del self._hits[client_id]
        self._last_sweep = now
