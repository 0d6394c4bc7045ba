"""In-memory sliding-window rate limiting.

Each key keeps the timestamps of its accepted requests inside the current
window.  A request is accepted while fewer than ``limit`` timestamps remain;
otherwise the caller is told how many whole seconds remain until the oldest
one leaves the window.

State lives in the process only, which matches a single-worker deployment.
Keys whose window has emptied are dropped, and a sweep over every key runs
at most once per window, so memory follows the active callers only.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .exceptions import RateLimitExceeded


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after: int = 0


class SlidingWindowRateLimiter:
    """Per-key sliding-window request limiter.

    Args:
        window_seconds: Window length.
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def check(self, key: str, limit: int) -> RateLimitDecision:
        """Record a request for *key* if it fits under *limit*."""
        now = self._clock()
        with self._lock:
            cutoff = now - self.window_seconds
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(cutoff)
                self._last_sweep = now

            hits = self._hits.setdefault(key, deque())
            _prune(hits, cutoff)
            if len(hits) < limit:
                hits.append(now)
                return RateLimitDecision(allowed=True, remaining=limit - len(hits))

            retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now))
            return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

    def hit(self, key: str, limit: int) -> None:
        """Like :meth:`check` but raises when the request is rejected.

        Raises:
            RateLimitExceeded: Carrying the seconds to wait.
        """
        decision = self.check(key, limit)
        if not decision.allowed:
            raise RateLimitExceeded(decision.retry_after)

    def reset(self, key: str | None = None) -> None:
        """Forget the history of *key*, or of every key."""
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)

    @property
    def tracked_keys(self) -> int:
        """Number of keys currently holding request history."""
        with self._lock:
            return len(self._hits)

    def _sweep(self, cutoff: float) -> None:
        for key in list(self._hits):
            hits = self._hits[key]
            _prune(hits, cutoff)
            if not hits:
                del self._hits[key]


def _prune(hits: deque[float], cutoff: float) -> None:
    while hits and hits[0] <= cutoff:
        hits.popleft()
