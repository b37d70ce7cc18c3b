"""Versioned cache — in-memory cache for immutable, versioned documents."""

import asyncio
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Hashable

from ..utils.logging import get_logger

logger = get_logger("utils.cache")


class VersionedCache:
    """Cache keyed by ``(key, version)`` with a per-key latest-version pointer.

    Versioned entries never expire: a published version is immutable, so a
    cached copy can only go stale when a newer version exists. Staleness is
    handled by moving the latest pointer on publish, never by time.
    """

    def __init__(self, max_entries: int = 256):
        self._max_entries = max_entries
        self._store: OrderedDict[tuple[Hashable, int], Any] = OrderedDict()
        self._latest: dict[Hashable, int] = {}
        self._lock = asyncio.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, key: Hashable, version: int) -> Any | None:
        """Get a cached version, refreshing its recency."""
        entry_key = (key, version)
        if entry_key not in self._store:
            self._misses += 1
            return None
        self._store.move_to_end(entry_key)
        self._hits += 1
        return self._store[entry_key]

    def set(self, key: Hashable, version: int, value: Any) -> None:
        """Cache a version without touching the latest pointer."""
        entry_key = (key, version)
        self._store[entry_key] = value
        self._store.move_to_end(entry_key)
        self._evict_if_full()

    def latest_version(self, key: Hashable) -> int | None:
        return self._latest.get(key)

    def publish(self, key: Hashable, version: int, value: Any | None = None) -> None:
        """Record ``version`` as the latest for ``key``.

        The pointer only moves forward, so a slow reader that loaded an older
        version cannot roll it back after a newer publish.
        """
        if value is not None:
            self.set(key, version, value)
        current = self._latest.get(key)
        if current is None or version > current:
            self._latest[key] = version
            if current is not None:
                logger.debug("cache_version_bumped", key=str(key), old=current, new=version)

    def invalidate(self, key: Hashable) -> None:
        """Drop every cached version of ``key`` and its latest pointer."""
        self._latest.pop(key, None)
        for entry_key in [k for k in self._store if k[0] == key]:
            del self._store[entry_key]

    async def get_or_compute(
        self,
        key: Hashable,
        version: int,
        compute_fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Get a cached version or load it.

        Uses an asyncio lock to prevent thundering herd on the same entry.
        """
        cached = self.get(key, version)
        if cached is not None:
            return cached

        async with self._lock:
            # Double-check after acquiring lock
            cached = self.get(key, version)
            if cached is not None:
                return cached

            value = await compute_fn()
            if value is not None:
                self.set(key, version, value)
            return value

    def get_stats(self) -> dict:
        return {
            "entries": len(self._store),
            "keys": len(self._latest),
            "hits": self._hits,
            "misses": self._misses,
            "max_entries": self._max_entries,
        }

    def _evict_if_full(self) -> None:
        """Evict least recently used versions beyond capacity."""
        while len(self._store) > self._max_entries:
            evicted, _ = self._store.popitem(last=False)
            logger.debug("cache_evicted", key=str(evicted[0]), version=evicted[1])
