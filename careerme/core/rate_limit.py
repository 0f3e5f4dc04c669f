"""
Sliding-window rate limiter, process-local.
Rejected attempts are not recorded, so they never extend the window.
"""

import threading
import time
from typing import Callable, Dict, List

from .schema import RateLimitResult


def _now_ms() -> float:
    return time.time() * 1000.0


class RateLimiter:
    """
    Per-key sliding window of request timestamps.

    Buckets are pruned on every check but never evicted; key cardinality is
    bounded by the number of anonymous sessions hitting one process.
    """

    def __init__(self, clock: Callable[[], float] = _now_ms):
        self._lock = threading.Lock()
        self._buckets: Dict[str, List[float]] = {}
        self.clock = clock

    def consume(self, key: str, limit: int, window_ms: int) -> RateLimitResult:
        with self._lock:
            now = self.clock()
            window_start = now - window_ms
            timestamps = [ts for ts in self._buckets.get(key, []) if ts > window_start]

            if len(timestamps) >= limit:
                self._buckets[key] = timestamps
                retry_after = max(int(timestamps[0] + window_ms - now), 0) if timestamps else 0
                return RateLimitResult(limited=True, remaining=0, retry_after_ms=retry_after)

            timestamps.append(now)
            self._buckets[key] = timestamps
            return RateLimitResult(limited=False, remaining=max(0, limit - len(timestamps)))

    def reset(self, key: str) -> None:
        with self._lock:
            self._buckets.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()

    def bucket_size(self, key: str) -> int:
        with self._lock:
            return len(self._buckets.get(key, []))


# Global, process-local singleton
RATE_LIMITER = RateLimiter()


def consume_rate_limit(key: str, limit: int, window_ms: int) -> RateLimitResult:
    return RATE_LIMITER.consume(key, limit, window_ms)
