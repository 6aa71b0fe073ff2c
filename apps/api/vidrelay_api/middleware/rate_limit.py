"""In-process sliding window rate limiter (no external dependencies)."""

from __future__ import annotations

from typing import Callable
import math
import threading
import time


class InMemoryRateLimiter:
    """Sliding-window rate limiter keyed by client identifier (e.g. IP).

    Each key maps to the timestamps of its accepted requests inside the window.
    Expired timestamps are pruned on every ``check`` and, for keys that stop
    sending requests, by ``sweep``. A single lock guards the map because the
    sweeper runs on its own thread.
    """

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max(1, int(max_requests))
        self.window_seconds = max(1, int(window_seconds))
        self._clock = clock
        self._buckets: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def _recent(self, bucket: list[float], now: float) -> list[float]:
        return [t for t in bucket if now - t < self.window_seconds]

    def _wait_seconds(self, bucket: list[float], now: float) -> int:
        if len(bucket) < self.max_requests:
            return 0
        oldest = bucket[len(bucket) - self.max_requests]
        return max(1, math.ceil(oldest + self.window_seconds - now))

    def acquire(self, key: str) -> tuple[bool, int]:
        """Try to take a slot for ``key``.

        Returns ``(allowed, retry_after_seconds)``; both come from the same
        snapshot of the bucket, and ``retry_after_seconds`` is 0 when allowed.
        """
        now = self._clock()
        with self._lock:
            bucket = self._recent(self._buckets.get(key, []), now)
            self._buckets[key] = bucket
            if len(bucket) >= self.max_requests:
                return False, self._wait_seconds(bucket, now)
            bucket.append(now)
            return True, 0

    def check(self, key: str) -> bool:
        """Return True if the request is allowed, False if rate-limited."""
        allowed, _ = self.acquire(key)
        return allowed

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may send another request (0 if it may now)."""
        now = self._clock()
        with self._lock:
            bucket = self._recent(self._buckets.get(key, []), now)
            return self._wait_seconds(bucket, now)

    def sweep(self) -> int:
        """Drop expired timestamps everywhere; return how many keys were removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for key in list(self._buckets):
                bucket = self._recent(self._buckets[key], now)
                if bucket:
                    self._buckets[key] = bucket
                else:
                    del self._buckets[key]
                    removed += 1
        return removed

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._buckets)

    def reset(self) -> None:
        """Clear all buckets (for testing)."""
        with self._lock:
            self._buckets.clear()
