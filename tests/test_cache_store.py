"""
Storefront Gateway — Cache Store & Registry Unit Tests
========================================================

What we test:
    ✅ Entries are visible only until their TTL elapses (lazy expiry)
    ✅ Overwrite replaces value and TTL together
    ✅ Hit/miss counters and live entry counts
    ✅ max_keys bound evicts the oldest entry
    ✅ Stored values are isolated from caller mutation
    ✅ Concurrent writers and readers on one key never see a torn value
    ✅ Registry partitions, invalidation surface and sweeper lifecycle
"""

import asyncio
import threading

import pytest

from gateway.cache.registry import AUTH, PRODUCTS, CacheRegistry
from gateway.cache.store import CacheStore
from gateway.exceptions import NotFoundError
from tests.conftest import FakeClock


class TestCacheStore:
    def setup_method(self):
        self.clock = FakeClock()
        self.store = CacheStore(name="test", default_ttl=60, clock=self.clock)

    def test_get_returns_stored_value(self):
        assert self.store.set("k", {"id": 1}) is True
        assert self.store.get("k") == {"id": 1}

    def test_missing_key_returns_default(self):
        assert self.store.get("missing") is None
        assert self.store.get("missing", "fallback") == "fallback"

    def test_entry_visible_until_ttl_elapses(self):
        self.store.set("k", "v", ttl=10)
        self.clock.advance(9.9)
        assert self.store.get("k") == "v"
        self.clock.advance(0.1)
        assert self.store.get("k") is None

    def test_expired_entry_removed_on_touch(self):
        self.store.set("k", "v", ttl=5)
        self.clock.advance(5)
        assert self.store.get("k") is None
        # Rewinding time cannot resurrect a lazily removed entry.
        self.clock.advance(-5)
        assert self.store.get("k") is None

    def test_overwrite_resets_value_and_ttl(self):
        self.store.set("k", "old", ttl=5)
        self.clock.advance(4)
        self.store.set("k", "new", ttl=10)
        self.clock.advance(4)
        assert self.store.get("k") == "new"
        assert self.store.ttl_remaining("k") == pytest.approx(6)

    def test_default_ttl_used_when_omitted(self):
        self.store.set("k", "v")
        self.clock.advance(59)
        assert "k" in self.store
        self.clock.advance(1)
        assert "k" not in self.store

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            self.store.set("k", "v", ttl=0)
        with pytest.raises(ValueError):
            CacheStore(default_ttl=0)

    def test_stats_count_hits_misses_and_live_entries(self):
        self.store.set("a", 1, ttl=5)
        self.store.set("b", 2, ttl=50)
        self.store.get("a")
        self.store.get("a")
        self.store.get("zzz")
        self.clock.advance(10)

        stats = self.store.stats()
        assert stats.entry_count == 1
        assert stats.hit_count == 2
        assert stats.miss_count == 1
        assert stats.to_dict() == {"entryCount": 1, "hitCount": 2, "missCount": 1, "hitRate": 0.6667}

    def test_delete_and_clear(self):
        self.store.set("a", 1)
        self.store.set("b", 2)
        assert self.store.delete("a") is True
        assert self.store.delete("a") is False
        assert self.store.get("a") is None

        assert self.store.clear() is True
        assert len(self.store) == 0
        assert self.store.get("b") is None

    def test_returned_values_are_isolated_copies(self):
        payload = {"items": [1, 2]}
        self.store.set("k", payload)
        payload["items"].append(3)

        first = self.store.get("k")
        first["items"].append(99)
        assert self.store.get("k") == {"items": [1, 2]}

    def test_max_keys_evicts_oldest(self):
        store = CacheStore(default_ttl=60, max_keys=2, clock=self.clock)
        store.set("a", 1)
        store.set("b", 2)
        store.set("c", 3)
        assert store.keys() == ["b", "c"]

    def test_max_keys_prefers_purging_expired(self):
        store = CacheStore(default_ttl=60, max_keys=2, clock=self.clock)
        store.set("old", 1, ttl=1)
        store.set("keep", 2)
        self.clock.advance(2)
        store.set("new", 3)
        assert sorted(store.keys()) == ["keep", "new"]

    def test_purge_expired(self):
        self.store.set("a", 1, ttl=1)
        self.store.set("b", 2, ttl=1)
        self.store.set("c", 3, ttl=100)
        self.clock.advance(1)
        assert self.store.purge_expired() == 2
        assert self.store.keys() == ["c"]

    def test_concurrent_writers_and_readers_never_see_torn_values(self):
        store = CacheStore(name="shared", default_ttl=60)
        store.set("k", {"version": 0, "items": [0] * 50})
        failures = []
        stop = threading.Event()

        def writer(offset):
            for i in range(200):
                version = offset * 1000 + i
                store.set("k", {"version": version, "items": [version] * 50})

        def reader():
            while not stop.is_set():
                value = store.get("k")
                if value is None or any(item != value["version"] for item in value["items"]):
                    failures.append(value)

        writers = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        readers = [threading.Thread(target=reader) for _ in range(4)]
        for thread in readers + writers:
            thread.start()
        for thread in writers:
            thread.join()
        stop.set()
        for thread in readers:
            thread.join()

        assert failures == []
        assert len(store) == 1


class TestCacheRegistry:
    def setup_method(self):
        self.clock = FakeClock()
        self.registry = CacheRegistry(clock=self.clock)
        self.registry.create(PRODUCTS, default_ttl=1800, max_keys=500)
        self.registry.create(AUTH, default_ttl=300)

    def test_unknown_partition_raises_not_found(self):
        with pytest.raises(NotFoundError):
            self.registry.get("nope")
        with pytest.raises(NotFoundError):
            self.registry.clear("nope")

    def test_invalidation_surface(self):
        products = self.registry.get(PRODUCTS)
        products.set("k1", "v1")
        products.set("k2", "v2")
        self.registry.get(AUTH).set("k3", "v3")

        assert self.registry.delete(PRODUCTS, "k1") is True
        assert self.registry.stats()[PRODUCTS]["entryCount"] == 1

        self.registry.clear(PRODUCTS)
        stats = self.registry.stats()
        assert stats[PRODUCTS]["entryCount"] == 0
        assert stats[AUTH]["entryCount"] == 1

    def test_partitions_use_their_own_ttl(self):
        self.registry.get(PRODUCTS).set("p", 1)
        self.registry.get(AUTH).set("a", 1)
        self.clock.advance(300)
        assert self.registry.get(AUTH).get("a") is None
        assert self.registry.get(PRODUCTS).get("p") == 1

    @pytest.mark.asyncio
    async def test_sweeper_starts_and_shuts_down(self):
        self.registry.get(PRODUCTS).set("k", "v")
        self.registry.start_sweeper(0.01)
        # Starting twice keeps the single running sweeper.
        self.registry.start_sweeper(0.01)
        await asyncio.sleep(0.03)

        await self.registry.shutdown()
        assert self.registry.stats()[PRODUCTS]["entryCount"] == 0

    @pytest.mark.asyncio
    async def test_sweeper_purges_expired_entries(self):
        self.registry.get(AUTH).set("k", "v", ttl=1)
        self.clock.advance(2)
        self.registry.start_sweeper(0.01)
        await asyncio.sleep(0.05)
        # Already swept: nothing left to purge.
        assert self.registry.purge_expired() == 0
        await self.registry.shutdown()
