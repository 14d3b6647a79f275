"""
Tests for the plugin instance cache and keyed locks.
"""

import asyncio

import pytest

from plugin_host.services.plugin_cache import CacheStats, PluginCache
from plugin_host.utils.locks import KeyedLock


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestPluginCache:
    async def test_factory_runs_once_per_key(self):
        cache = PluginCache()
        calls = []

        async def factory():
            calls.append(1)
            return object()

        first = await cache.get_or_create("quiz", factory)
        second = await cache.get_or_create("quiz", factory)

        assert first is second
        assert len(calls) == 1
        assert cache.stats.hits == 1
        assert cache.stats.misses == 1
        assert cache.stats.loads == 1

    async def test_concurrent_callers_share_one_load(self):
        cache = PluginCache()
        started = 0

        async def factory():
            nonlocal started
            started += 1
            await asyncio.sleep(0.01)
            return object()

        results = await asyncio.gather(*(cache.get_or_create("quiz", factory) for _ in range(10)))

        assert started == 1
        assert all(result is results[0] for result in results)

    async def test_different_keys_load_independently(self):
        cache = PluginCache()

        async def make(value):
            return value

        a = await cache.get_or_create("a", lambda: make("A"))
        b = await cache.get_or_create("b", lambda: make("B"))

        assert (a, b) == ("A", "B")
        assert sorted(cache.keys()) == ["a", "b"]

    async def test_failed_factory_caches_nothing(self):
        cache = PluginCache()
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("boom")
            return "ok"

        with pytest.raises(RuntimeError):
            await cache.get_or_create("quiz", flaky)
        assert not cache.contains("quiz")
        assert cache.stats.load_failures == 1

        assert await cache.get_or_create("quiz", flaky) == "ok"
        assert attempts == 2

    async def test_waiters_retry_after_failure(self):
        cache = PluginCache()
        attempts = 0

        async def fails_first():
            nonlocal attempts
            attempts += 1
            await asyncio.sleep(0.01)
            if attempts == 1:
                raise RuntimeError("boom")
            return "ok"

        results = await asyncio.gather(
            cache.get_or_create("quiz", fails_first),
            cache.get_or_create("quiz", fails_first),
            return_exceptions=True,
        )

        assert isinstance(results[0], RuntimeError)
        assert results[1] == "ok"
        assert attempts == 2

    async def test_ttl_expiry(self):
        clock = FakeClock()
        cache = PluginCache(ttl=60, clock=clock)

        async def factory():
            return object()

        first = await cache.get_or_create("quiz", factory)
        clock.advance(59)
        assert cache.peek("quiz") is first

        clock.advance(1)
        assert cache.peek("quiz") is None
        assert cache.stats.evictions == 1
        assert await cache.get_or_create("quiz", factory) is not first

    async def test_invalidate(self):
        cache = PluginCache()

        async def factory():
            return "value"

        await cache.get_or_create("quiz", factory)

        assert cache.invalidate("quiz") is True
        assert cache.invalidate("quiz") is False
        assert not cache.contains("quiz")

    async def test_clear_bumps_generation(self):
        cache = PluginCache()

        async def factory():
            return "value"

        await cache.get_or_create("a", factory)
        await cache.get_or_create("b", factory)
        cache.clear()

        assert cache.keys() == []
        assert cache.generation == 1
        assert cache.stats.evictions == 2

    async def test_clear_during_load_is_not_overwritten(self):
        cache = PluginCache()

        async def factory():
            cache.clear()
            return "stale"

        assert await cache.get_or_create("quiz", factory) == "stale"
        assert not cache.contains("quiz")

    def test_peek_does_not_touch_stats(self):
        cache = PluginCache()

        assert cache.peek("missing") is None
        assert cache.stats.hits == 0
        assert cache.stats.misses == 0

    async def test_get_stats(self):
        cache = PluginCache(ttl=30)

        async def factory():
            return 1

        await cache.get_or_create("a", factory)
        await cache.get_or_create("a", factory)
        stats = cache.get_stats()

        assert stats["size"] == 1
        assert stats["ttl"] == 30
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.00%"

    def test_hit_rate_without_traffic(self):
        assert CacheStats().hit_rate == 0.0


class TestKeyedLock:
    async def test_serializes_same_key(self):
        locks = KeyedLock()
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with locks.hold("coordinate"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.005)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))

        assert peak == 1

    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold("a"):
            async with locks.hold("b"):
                assert locks.is_locked("a")
                assert locks.is_locked("b")

    async def test_unused_locks_are_dropped(self):
        locks = KeyedLock()

        async with locks.hold("a"):
            assert len(locks) == 1

        assert len(locks) == 0
        assert not locks.is_locked("a")
