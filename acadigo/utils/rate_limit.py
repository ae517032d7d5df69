import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Counts hits per key over a rolling window, shared across requests.

    Keys whose hits have all aged out are dropped, so the table only holds
    clients seen within the last window.
    """

    def __init__(self, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._last_sweep = clock()
        self.lock = threading.Lock()

    def _prune(self, hits: Deque[float], cutoff: float) -> None:
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def _sweep(self, now: float, cutoff: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for key in list(self._hits):
            self._prune(self._hits[key], cutoff)
            if not self._hits[key]:
                del self._hits[key]

    def hit(self, key: str, limit: int) -> bool:
        """Record one request for ``key``; False when it exceeds ``limit``."""
        now = self.clock()
        cutoff = now - self.window_seconds
        with self.lock:
            self._sweep(now, cutoff)
            hits = self._hits.setdefault(key, deque())
            self._prune(hits, cutoff)
            if len(hits) >= limit:
                logger.info("Rate limit exceeded for %s (%d/%d)", key, len(hits), limit)
                return False
            hits.append(now)
            return True

    def remaining(self, key: str, limit: int) -> int:
        now = self.clock()
        with self.lock:
            hits = self._hits.get(key, deque())
            active = sum(1 for t in hits if t > now - self.window_seconds)
        return max(0, limit - active)

    def tracked_keys(self) -> int:
        with self.lock:
            return len(self._hits)
