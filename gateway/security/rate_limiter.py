"""
Storefront Gateway — Fixed-Window Rate Limiter
================================================

What:  Per-key request counter over fixed time windows.
How:   Each key owns a window (start, count). On every `check`:
    1. If `now - window_start >= window_seconds`, start a fresh window.
    2. Increment the count (rejected calls count too).
    3. Allow while count <= limit; reject afterwards until the window ends.

    So after exactly `limit` allowed requests in a window, request
    `limit + 1` is rejected; once the window elapses the next one passes.

Keys:
    Whatever the caller derives. RateLimitStage uses the source address
    (`ip:<address>`). The auth limiter is a separate instance with its own
    windows.

Skip-successful mode:
    `release(key)` undoes one count in the current window. The auth stage
    calls it for 2xx responses so only failed attempts consume the budget.

Memory:
    Expired windows are dropped every CLEANUP_EVERY checks.

Clock:
    Injectable, monotonic by default.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

CLEANUP_EVERY = 1000


@dataclass
class RateLimitWindow:
    key: str
    window_start: float
    count: int
    limit: int
    window_seconds: int

    def is_expired(self, now: float) -> bool:
        return now - self.window_start >= self.window_seconds

    def reset_after(self, now: float) -> int:
        """Whole seconds until this window ends (at least 1 while it is current)."""
        return max(1, math.ceil(self.window_start + self.window_seconds - now))


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int

    @property
    def retry_after(self) -> int:
        return 0 if self.allowed else self.reset_after

    def headers(self) -> Dict[str, str]:
        return {
            "x-ratelimit-limit": str(self.limit),
            "x-ratelimit-remaining": str(self.remaining),
            "x-ratelimit-reset": str(self.reset_after),
        }


class RateLimiter:
    """
    Thread-safe fixed-window limiter.

    Args:
        limit:           requests allowed per window (> 0)
        window_seconds:  window length in seconds (> 0)
        name:            used in logs
        clock:           returns the current time in seconds
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        name: str = "general",
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit <= 0 or window_seconds <= 0:
            raise ValueError("limit and window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._windows: Dict[str, RateLimitWindow] = {}
        self._lock = threading.Lock()
        self._checks = 0

    def check(self, key: str) -> RateLimitDecision:
        """Count one request against `key` and decide whether it may proceed."""
        with self._lock:
            now = self._clock()
            window = self._current_window(key, now)
            window.count += 1

            self._checks += 1
            if self._checks % CLEANUP_EVERY == 0:
                self._cleanup(now)

            decision = RateLimitDecision(
                allowed=window.count <= window.limit,
                limit=window.limit,
                remaining=max(0, window.limit - window.count),
                reset_after=window.reset_after(now),
            )

        if not decision.allowed:
            logger.warning(
                "Rate limit %s exceeded for %s: %d requests in %ds window",
                self.name,
                key,
                window.count,
                self.window_seconds,
            )
        return decision

    def release(self, key: str) -> None:
        """Give back one request in the key's current window, if any."""
        with self._lock:
            window = self._windows.get(key)
            if window is not None and not window.is_expired(self._clock()) and window.count > 0:
                window.count -= 1

    def peek(self, key: str) -> Optional[RateLimitWindow]:
        """Current window for `key` without counting a request."""
        with self._lock:
            window = self._windows.get(key)
            if window is None or window.is_expired(self._clock()):
                return None
            return RateLimitWindow(**vars(window))

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _current_window(self, key: str, now: float) -> RateLimitWindow:
        # Caller holds the lock.
        window = self._windows.get(key)
        if window is None or window.is_expired(now):
            window = RateLimitWindow(
                key=key,
                window_start=now,
                count=0,
                limit=self.limit,
                window_seconds=self.window_seconds,
            )
            self._windows[key] = window
        return window

    def _cleanup(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if window.is_expired(now)]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("Rate limiter %s dropped %d expired windows", self.name, len(expired))
