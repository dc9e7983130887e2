from __future__ import annotations

import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from time import monotonic, sleep


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: float


class SlidingWindowRateLimiter:
    """At most `max_requests` slots per key within any `window_seconds` span."""

    def __init__(
        self,
        *,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = monotonic,
        sleeper: Callable[[float], object] = sleep,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1.")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive.")
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._clock = clock
        self._sleeper = sleeper
        self._lock = Lock()
        self._buckets: dict[str, deque[float]] = {}

    def take(self, key: str) -> RateLimitDecision:
        now = self._clock()
        cutoff = now - self._window_seconds

        with self._lock:
            bucket = self._buckets.setdefault(key, deque())
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self._max_requests:
                return RateLimitDecision(
                    allowed=False,
                    limit=self._max_requests,
                    remaining=0,
                    retry_after_seconds=max(0.0, (bucket[0] + self._window_seconds) - now),
                )

            bucket.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self._max_requests,
                remaining=max(self._max_requests - len(bucket), 0),
                retry_after_seconds=0.0,
            )

    def wait_for_slot(self, key: str) -> int:
        """Block until a slot is free for `key`; returns how many times it slept."""
        waits = 0
        while True:
            decision = self.take(key)
            if decision.allowed:
                return waits
            waits += 1
            # Round up to the millisecond so the oldest entry has expired on wake.
            self._sleeper(math.ceil(decision.retry_after_seconds * 1000) / 1000 or 0.001)
