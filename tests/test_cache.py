"""Tests for CacheManager."""

from datetime import timedelta

import pytest

from cemetery.services.cache import CacheManager


class TestCacheBasics:
    """Get/set/TTL/eviction."""

    def test_generate_key_sorts_params(self):
        key = CacheManager.generate_key("grave-by-id", {"b": 2, "a": 1})
        assert key == "grave-by-id?a=1&b=2"
        assert CacheManager.generate_key("alley-layout") == "alley-layout"

    def test_long_keys_are_hashed(self):
        key = CacheManager.generate_key("privileged-search", {"q": "x" * 300})
        assert key.startswith("privileged-search#")
        assert len(key) < 60

    @pytest.mark.asyncio
    async def test_set_then_get(self):
        cache = CacheManager()
        assert await cache.set("alley-layout", {"a": 1}, category="alley-layout")
        result = await cache.get("alley-layout")
        assert result.data == {"a": 1}
        assert result.age_seconds >= 0

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self):
        cache = CacheManager()
        await cache.set("k", 1, category="c", ttl=timedelta(seconds=-1))
        assert await cache.get("k") is None
        assert cache.get_stats().misses == 1

    @pytest.mark.asyncio
    async def test_lru_eviction_at_capacity(self):
        cache = CacheManager(max_size=2)
        await cache.set("c?id=1", 1, category="c")
        await cache.set("c?id=2", 2, category="c")
        await cache.set("c?id=3", 3, category="c")
        assert await cache.get("c?id=1") is None
        assert cache.get_stats().evictions == 1
        assert cache.get_stats().size == 2

    @pytest.mark.asyncio
    async def test_cleanup_expired(self):
        cache = CacheManager()
        await cache.set("a", 1, category="c", ttl=timedelta(seconds=-1))
        await cache.set("b", 2, category="c")
        assert await cache.cleanup_expired() == 1
        assert cache.keys() == ["b"]


class TestInvalidation:
    """Category invalidation and key versions."""

    @pytest.mark.asyncio
    async def test_invalidate_category_only_touches_that_category(self):
        cache = CacheManager()
        await cache.set("grave-by-id?id=1", 1, category="grave-by-id")
        await cache.set("grave-by-id?id=2", 2, category="grave-by-id")
        await cache.set("grave-by-id-extra", 3, category="grave-by-id-extra")
        await cache.set("alley-layout", 4, category="alley-layout")

        assert await cache.invalidate_category("grave-by-id") == 2
        assert cache.keys("grave-by-id") == []
        assert (await cache.get("grave-by-id-extra")).data == 3
        assert (await cache.get("alley-layout")).data == 4

    @pytest.mark.asyncio
    async def test_superseded_write_is_dropped(self):
        """A fetch started before invalidation cannot land afterwards."""
        cache = CacheManager()
        key = "grave-by-id?id=1"
        version = cache.track(key)

        await cache.invalidate_category("grave-by-id")

        assert not await cache.set(key, "stale", category="grave-by-id", version=version)
        assert await cache.get(key) is None
        assert cache.get_stats().superseded == 1

    @pytest.mark.asyncio
    async def test_current_version_write_lands(self):
        cache = CacheManager()
        key = "grave-by-id?id=1"
        version = cache.track(key)
        assert await cache.set(key, "fresh", category="grave-by-id", version=version)
        assert (await cache.get(key)).data == "fresh"

    @pytest.mark.asyncio
    async def test_untracked_key_is_not_bumped_by_category(self):
        cache = CacheManager()
        await cache.invalidate_category("grave-by-id")
        assert cache.version("grave-by-id?id=9") == 0

    @pytest.mark.asyncio
    async def test_clear_bumps_every_known_key(self):
        cache = CacheManager()
        cache.track("a")
        await cache.set("b", 1, category="b")
        await cache.clear()
        assert cache.version("a") == 1
        assert cache.version("b") == 1
        assert cache.get_stats().size == 0

    @pytest.mark.asyncio
    async def test_delete_bumps_version(self):
        cache = CacheManager()
        await cache.set("a", 1, category="a")
        assert await cache.delete("a")
        assert not await cache.delete("a")
        assert cache.version("a") == 2


class TestStats:
    @pytest.mark.asyncio
    async def test_hit_rate(self):
        cache = CacheManager()
        await cache.set("a", 1, category="a")
        await cache.get("a")
        await cache.get("missing")
        stats = cache.get_stats().to_dict()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.00%"
