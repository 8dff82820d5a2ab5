"""
Storefront Gateway — In-Memory TTL Cache Store
================================================

What:  Key/value store with per-entry TTL, lazy expiry and hit/miss stats.
Who:   Owned by the CacheRegistry (one store per named partition) and closed
       over by the cache and invalidation stages.

Expiry model:
    An entry is visible only while `now < created_at + ttl_seconds`.
    `get` treats an expired entry as absent and removes it on the spot
    (lazy expiry). `purge_expired` is an optional sweep that drops every
    expired entry at once; nothing depends on it running.

Bounded size:
    When `max_keys` is set and a NEW key arrives at a full store, expired
    entries are purged first, then the oldest-written entry is evicted.

Concurrency:
    One lock guards the entry map and the counters. Every operation holds
    it for its whole duration, so `set` replaces value, created_at and ttl
    as one step and no reader observes a half-written entry.

Clock:
    Injectable; defaults to time.monotonic so wall-clock jumps cannot
    resurrect or prematurely expire entries.
"""

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        return now >= self.created_at + self.ttl_seconds

    def remaining(self, now: float) -> float:
        return max(0.0, self.created_at + self.ttl_seconds - now)


@dataclass(frozen=True)
class CacheStats:
    entry_count: int
    hit_count: int
    miss_count: int

    @property
    def hit_rate(self) -> float:
        total = self.hit_count + self.miss_count
        return self.hit_count / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryCount": self.entry_count,
            "hitCount": self.hit_count,
            "missCount": self.miss_count,
            "hitRate": round(self.hit_rate, 4),
        }


class CacheStore:
    """
    Thread-safe TTL cache.

    Args:
        name:        partition name, used in logs
        default_ttl: seconds used when `set` is called without a ttl
        max_keys:    optional bound on live entries
        clock:       returns the current time in seconds
        clone:       deep-copy values on the way in and out so that callers
                     mutating a returned payload never alter the stored one
    """

    def __init__(
        self,
        name: str = "general",
        default_ttl: int = 600,
        max_keys: Optional[int] = None,
        clock: Clock = time.monotonic,
        clone: bool = True,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be a positive number of seconds")
        self.name = name
        self.default_ttl = default_ttl
        self.max_keys = max_keys
        self._clock = clock
        self._clone = clone
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    # ── Core Operations ───────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for `key`, or `default`. Counts a hit or a miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug("Cache %s: lazily expired %s", self.name, key)
                entry = None

            if entry is None:
                self._misses += 1
                return default

            self._hits += 1
            return self._copy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Store `value` under `key` for `ttl` seconds (default_ttl if omitted)."""
        ttl_seconds = self.default_ttl if ttl is None else int(ttl)
        if ttl_seconds <= 0:
            raise ValueError("ttl must be a positive number of seconds")

        with self._lock:
            now = self._clock()
            if key in self._entries:
                self._entries.move_to_end(key)
            elif self.max_keys is not None and len(self._entries) >= self.max_keys:
                self._make_room(now)
            self._entries[key] = CacheEntry(
                key=key,
                value=self._copy(value),
                created_at=now,
                ttl_seconds=ttl_seconds,
            )
        return True

    def delete(self, key: str) -> bool:
        """Remove one entry. Returns True if a live or stale entry was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> bool:
        with self._lock:
            dropped = len(self._entries)
            self._entries.clear()
        logger.info("Cache %s cleared (%d entries dropped)", self.name, dropped)
        return True

    def stats(self) -> CacheStats:
        """Counts live entries only; expired ones are not reported."""
        with self._lock:
            now = self._clock()
            live = sum(1 for entry in self._entries.values() if not entry.is_expired(now))
            return CacheStats(entry_count=live, hit_count=self._hits, miss_count=self._misses)

    # ── Maintenance ───────────────────────────────────────────────────────

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("Cache %s: purged %d expired entries", self.name, len(expired))
        return len(expired)

    def keys(self) -> List[str]:
        with self._lock:
            now = self._clock()
            return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def ttl_remaining(self, key: str) -> Optional[float]:
        """Seconds left for a live entry, None when absent. Does not touch stats."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            now = self._clock()
            return None if entry.is_expired(now) else entry.remaining(now)

    def __contains__(self, key: str) -> bool:
        return self.ttl_remaining(key) is not None

    def __len__(self) -> int:
        return self.stats().entry_count

    # ── Internals ─────────────────────────────────────────────────────────

    def _make_room(self, now: float) -> None:
        # Caller holds the lock.
        for key in [k for k, e in self._entries.items() if e.is_expired(now)]:
            del self._entries[key]
        while len(self._entries) >= self.max_keys:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache %s full: evicted %s", self.name, evicted)

    def _copy(self, value: Any) -> Any:
        return copy.deepcopy(value) if self._clone else value
