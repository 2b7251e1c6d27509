"""
CacheManager - Async-compatible keyed cache with per-category TTL and versions.

Features:
- Memory-based cache with LRU eviction
- TTL (Time To Live) for cache entries
- Entries grouped by category for targeted invalidation
- Per-key version counters so superseded writes are dropped
"""

import asyncio
import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    category: str
    timestamp: datetime
    ttl: timedelta

    def is_expired(self) -> bool:
        """Check if entry is past its TTL."""
        return datetime.now() > self.timestamp + self.ttl


@dataclass
class CacheResult(Generic[T]):
    """Result from cache lookup."""

    data: T
    age_seconds: float


class CacheManager:
    """
    Category-aware cache owned by a single coordinator.

    Usage:
        cache = CacheManager(max_size=100)
        key = cache.generate_key("grave-by-id", {"id": 7})

        result = await cache.get(key)
        if result:
            return result.data

        version = cache.version(key)
        data = await fetch_data()
        await cache.set(key, data, category="grave-by-id", version=version)
    """

    def __init__(
        self,
        max_size: int = 500,
        default_ttl: timedelta = timedelta(minutes=1),
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._versions: dict[str, int] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._debug = debug
        self._lock = asyncio.Lock()
        self._stats = CacheStats()

    @staticmethod
    def generate_key(category: str, params: dict[str, Any] | None = None) -> str:
        """Generate a cache key from a category and params."""
        if params:
            sorted_params = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
            full_key = f"{category}?{sorted_params}"
        else:
            full_key = category

        # Hash long keys
        if len(full_key) > 200:
            hash_val = hashlib.md5(full_key.encode()).hexdigest()[:16]
            return f"{category}#{hash_val}"

        return full_key

    def version(self, key: str) -> int:
        """Current version of ``key``; bumped whenever the key is invalidated."""
        return self._versions.get(key, 0)

    async def get(self, key: str) -> CacheResult[Any] | None:
        """
        Get value from cache.

        Returns CacheResult if found and fresh, None otherwise.
        """
        async with self._lock:
            entry = self._memory.get(key)
            if entry is None:
                self._stats.misses += 1
                self._log(f"MISS: {key[:50]}")
                return None

            if entry.is_expired():
                del self._memory[key]
                self._stats.misses += 1
                self._log(f"EXPIRED: {key[:50]}")
                return None

            self._stats.hits += 1
            self._log(f"HIT: {key[:50]}")
            return CacheResult(
                data=entry.data,
                age_seconds=(datetime.now() - entry.timestamp).total_seconds(),
            )

    async def set(
        self,
        key: str,
        data: Any,
        category: str,
        ttl: timedelta | None = None,
        version: int | None = None,
    ) -> bool:
        """
        Set value in cache.

        Args:
            key: Cache key
            data: Data to cache
            category: Invalidation category the key belongs to
            ttl: Time to live (uses default if not specified)
            version: Version observed when the fetch started; the write is
                dropped if the key was invalidated since

        Returns:
            True if stored, False if the write was superseded
        """
        ttl = ttl or self._default_ttl

        async with self._lock:
            if version is not None and version != self._versions.get(key, 0):
                self._stats.superseded += 1
                self._log(f"SUPERSEDED: {key[:50]} (v{version})")
                return False

            # LRU eviction if at capacity
            if len(self._memory) >= self._max_size and key not in self._memory:
                self._evict_oldest()

            self._memory[key] = CacheEntry(
                data=data,
                category=category,
                timestamp=datetime.now(),
                ttl=ttl,
            )
            self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")
            return True

    async def delete(self, key: str) -> bool:
        """Delete a specific key from cache and bump its version."""
        async with self._lock:
            self._bump(key)
            if key in self._memory:
                del self._memory[key]
                self._log(f"DELETE: {key[:50]}")
                return True
            return False

    async def invalidate_category(self, category: str) -> int:
        """
        Invalidate every key of a category.

        Keys of the category that are not cached yet (fetch in flight) are
        also bumped, so their results cannot land afterwards.

        Returns:
            Number of cached entries removed
        """
        async with self._lock:
            prefixes = (f"{category}?", f"{category}#")
            keys = {
                k
                for k in set(self._memory) | set(self._versions)
                if k == category or k.startswith(prefixes)
            }
            removed = 0
            for key in keys:
                self._bump(key)
                if self._memory.pop(key, None) is not None:
                    removed += 1

            if removed:
                self._log(f"INVALIDATE: {removed} entries in '{category}'")
            return removed

    def track(self, key: str) -> int:
        """Register ``key`` so category invalidation bumps it before first set."""
        return self._versions.setdefault(key, 0)

    async def clear(self) -> None:
        """Clear all cache entries and bump every known version."""
        async with self._lock:
            count = len(self._memory)
            for key in set(self._memory) | set(self._versions):
                self._bump(key)
            self._memory.clear()
            self._log(f"CLEAR: {count} entries removed")

    async def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        async with self._lock:
            expired_keys = [k for k, v in self._memory.items() if v.is_expired()]
            for key in expired_keys:
                del self._memory[key]

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    def keys(self, category: str | None = None) -> list[str]:
        """Cached keys, optionally restricted to one category."""
        return [
            k
            for k, v in self._memory.items()
            if category is None or v.category == category
        ]

    def _bump(self, key: str) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _evict_oldest(self) -> None:
        """Evict the oldest entry (LRU)."""
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].timestamp,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[CacheManager] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    superseded: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "superseded": self.superseded,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
