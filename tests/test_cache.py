"""
Tests for the LRU cache and per-key locks.
"""

import asyncio

import pytest

from markets_intel.utils import KeyedLocks, LRUCache


class TestLRUCache:
    """Test eviction, expiry and statistics."""

    @pytest.fixture
    def now(self):
        return [0.0]

    @pytest.fixture
    def cache(self, now):
        return LRUCache(capacity=2, ttl_seconds=10, clock=lambda: now[0])

    def test_least_recently_used_is_evicted(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert cache.stats()["evictions"] == 1

    def test_entries_expire(self, cache, now):
        cache.set("a", 1)
        now[0] = 11

        assert cache.get("a", "missing") == "missing"
        assert len(cache) == 0

    def test_touch_refreshes_entry(self, cache, now):
        cache.set("a", 1)
        now[0] = 8
        assert cache.touch("a")
        now[0] = 15

        assert cache.get("a") == 1

    def test_touch_missing_entry(self, cache):
        assert not cache.touch("a")

    def test_purge_expired(self, cache, now):
        cache.set("a", 1)
        now[0] = 5
        cache.set("b", 2)
        now[0] = 12

        assert cache.purge_expired() == 1
        assert [key for key, _ in cache.items()] == ["b"]

    def test_hit_and_miss_counters(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")

        stats = cache.stats()
        assert (stats["hits"], stats["misses"]) == (1, 1)

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        assert cache.delete("a")
        assert not cache.delete("a")

        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_capacity_must_be_positive(self):
        with pytest.raises(ValueError):
            LRUCache(capacity=0)


class TestKeyedLocks:
    """Test per-key serialisation."""

    @pytest.mark.asyncio
    async def test_same_key_is_serialised(self):
        locks = KeyedLocks()
        order = []

        async def worker(name):
            async with locks.acquire("pair"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLocks()

        async with locks.acquire("a"):
            async with locks.acquire("b"):
                assert locks.locked("a")
                assert locks.locked("b")

    @pytest.mark.asyncio
    async def test_idle_locks_are_released(self):
        locks = KeyedLocks()

        async with locks.acquire("a"):
            assert len(locks) == 1

        assert len(locks) == 0
        assert not locks.locked("a")
