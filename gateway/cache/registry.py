"""
Storefront Gateway — Cache Partition Registry
===============================================

What:  Owns one CacheStore per named partition (products, auth, general).
How:   Constructed by the application factory, stored on `app.state`,
       injected into the stages that need it, torn down in the lifespan.
Who:   Cache and invalidation stages, the admin cache routes, the health
       aggregator.

Invalidation surface:
    registry.delete("products", key)  → drop one key
    registry.clear("products")         → drop every entry in a partition
    registry.stats()                   → {partition: {entryCount, hitCount, missCount}}

Optional sweep:
    `run_sweeper(interval)` purges expired entries periodically. Expiry is
    lazy regardless; the sweep only bounds memory held by entries nobody
    asks for again.
"""

import asyncio
import logging
import time
from typing import Dict, Iterator, Optional

from gateway.cache.store import CacheStore, Clock
from gateway.exceptions import NotFoundError

logger = logging.getLogger(__name__)

PRODUCTS = "products"
AUTH = "auth"
GENERAL = "general"


class CacheRegistry:
    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._stores: Dict[str, CacheStore] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def create(self, name: str, default_ttl: int, max_keys: Optional[int] = None) -> CacheStore:
        """Create (or replace) a partition."""
        store = CacheStore(name=name, default_ttl=default_ttl, max_keys=max_keys, clock=self._clock)
        self._stores[name] = store
        logger.debug("Cache partition %s created (ttl=%ds, max_keys=%s)", name, default_ttl, max_keys)
        return store

    def get(self, name: str) -> CacheStore:
        """Raises NotFoundError for an unknown partition."""
        try:
            return self._stores[name]
        except KeyError:
            raise NotFoundError(resource="cache partition", resource_id=name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._stores

    def __iter__(self) -> Iterator[str]:
        return iter(self._stores)

    # ── Invalidation Surface ──────────────────────────────────────────────

    def delete(self, name: str, key: str) -> bool:
        return self.get(name).delete(key)

    def clear(self, name: str) -> bool:
        return self.get(name).clear()

    def clear_all(self) -> None:
        for store in self._stores.values():
            store.clear()

    def stats(self) -> Dict[str, Dict[str, float]]:
        return {name: store.stats().to_dict() for name, store in self._stores.items()}

    def purge_expired(self) -> int:
        return sum(store.purge_expired() for store in self._stores.values())

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def start_sweeper(self, interval: float) -> None:
        """Start the background purge. No-op when interval <= 0 or already running."""
        if interval <= 0 or self._sweeper is not None:
            return
        self._sweeper = asyncio.get_running_loop().create_task(self.run_sweeper(interval))
        logger.info("Cache sweeper started (every %ss)", interval)

    async def run_sweeper(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            purged = self.purge_expired()
            if purged:
                logger.debug("Cache sweeper purged %d expired entries", purged)

    async def shutdown(self) -> None:
        """Stop the sweeper and drop all entries."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear_all()
        logger.info("Cache registry shut down")
