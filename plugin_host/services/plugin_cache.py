"""
Plugin Instance Cache

Process-scoped TTL cache of loaded plugin instances, injected into the
loader. Loads are single-flight per key: concurrent callers for the same key
wait on one in-flight factory call and all receive its result. A factory that
raises leaves nothing cached, so the next caller retries from scratch.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any

from plugin_host.utils.locks import KeyedLock

logger = logging.getLogger(__name__)


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    loads: int = 0
    load_failures: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100


class PluginCache:
    def __init__(self, ttl: float = 3600, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[Hashable, tuple[Any, float]] = {}
        self._ttl = ttl
        self._clock = clock
        self._locks = KeyedLock()
        self._stats = CacheStats()
        self.generation = 0

    def _live(self, key: Hashable) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        value, expiry = entry
        if self._clock() >= expiry:
            del self._entries[key]
            self._stats.evictions += 1
            logger.debug("Plugin cache entry expired: %s", key)
            return False, None
        return True, value

    def peek(self, key: Hashable) -> Any | None:
        """Return a live cached value without loading or touching stats."""
        _, value = self._live(key)
        return value

    def contains(self, key: Hashable) -> bool:
        found, _ = self._live(key)
        return found

    async def get_or_create(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value for key, running factory at most once at a time.

        The fast path avoids the lock entirely. Callers that lose the race
        re-check under the lock and pick up the winner's value.
        """
        found, value = self._live(key)
        if found:
            self._stats.hits += 1
            return value

        async with self._locks.hold(key):
            found, value = self._live(key)
            if found:
                self._stats.hits += 1
                return value

            self._stats.misses += 1
            generation = self.generation
            try:
                value = await factory()
            except Exception:
                self._stats.load_failures += 1
                raise

            # A clear() while the factory ran belongs to a newer generation
            if generation == self.generation:
                self._entries[key] = (value, self._clock() + self._ttl)
            self._stats.loads += 1
            return value

    def invalidate(self, key: Hashable) -> bool:
        if self._entries.pop(key, None) is not None:
            self._stats.evictions += 1
            return True
        return False

    def clear(self) -> None:
        """Drop every entry and start a new generation."""
        self._stats.evictions += len(self._entries)
        self._entries.clear()
        self.generation += 1

    def keys(self) -> list[Hashable]:
        return [key for key in list(self._entries) if self.contains(key)]

    def get_stats(self) -> dict:
        """Get cache statistics."""
        return {
            "size": len(self._entries),
            "ttl": self._ttl,
            "generation": self.generation,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "loads": self._stats.loads,
            "load_failures": self._stats.load_failures,
            "evictions": self._stats.evictions,
            "hit_rate": f"{self._stats.hit_rate:.2f}%",
        }

    @property
    def stats(self) -> CacheStats:
        return self._stats
