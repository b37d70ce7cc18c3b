"""Tests for VersionedCache — version-keyed entries and the latest pointer."""

from unittest.mock import AsyncMock

import pytest

from maintainboard.utils.cache import VersionedCache


class TestVersionedCache:
    def test_set_and_get(self):
        cache = VersionedCache()
        cache.set("t", 1, "v1")
        assert cache.get("t", 1) == "v1"
        assert cache.get("t", 2) is None

    def test_publish_moves_latest_forward_only(self):
        cache = VersionedCache()
        cache.publish("t", 2, "v2")
        cache.publish("t", 1, "v1")
        assert cache.latest_version("t") == 2
        # older version is still cached by number
        assert cache.get("t", 1) == "v1"

    def test_lru_eviction(self):
        cache = VersionedCache(max_entries=2)
        cache.set("t", 1, "a")
        cache.set("t", 2, "b")
        cache.get("t", 1)
        cache.set("t", 3, "c")
        assert cache.get("t", 2) is None
        assert cache.get("t", 1) == "a"
        assert cache.get("t", 3) == "c"

    def test_invalidate_drops_all_versions(self):
        cache = VersionedCache()
        cache.publish("t", 1, "a")
        cache.publish("t", 2, "b")
        cache.publish("other", 1, "x")
        cache.invalidate("t")
        assert cache.latest_version("t") is None
        assert cache.get("t", 2) is None
        assert cache.get("other", 1) == "x"

    def test_stats(self):
        cache = VersionedCache(max_entries=8)
        cache.publish("t", 1, "a")
        cache.get("t", 1)
        cache.get("t", 5)
        stats = cache.get_stats()
        assert stats == {"entries": 1, "keys": 1, "hits": 1, "misses": 1, "max_entries": 8}

    @pytest.mark.asyncio
    async def test_get_or_compute_loads_once(self):
        cache = VersionedCache()
        compute = AsyncMock(return_value="loaded")
        assert await cache.get_or_compute("t", 1, compute) == "loaded"
        assert await cache.get_or_compute("t", 1, compute) == "loaded"
        compute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_or_compute_does_not_cache_misses(self):
        cache = VersionedCache()
        compute = AsyncMock(return_value=None)
        assert await cache.get_or_compute("t", 1, compute) is None
        assert await cache.get_or_compute("t", 1, compute) is None
        assert compute.await_count == 2
