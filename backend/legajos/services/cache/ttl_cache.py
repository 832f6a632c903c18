"""
In-memory TTL Cache

Typed key/value store with per-entry TTL, approximate LRU eviction at
capacity, hit/miss statistics and a periodic expired-entry sweep.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, List, Optional, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()

V = TypeVar("V")


class CacheConfig(BaseModel):
    """Cache configuration."""

    model_config = ConfigDict(extra="forbid")

    default_ttl_seconds: float = Field(
        default=300.0, gt=0, description="TTL used when set() gets none"
    )
    max_size: int = Field(default=100, ge=1, le=10000, description="Entry capacity")
    cleanup_interval_seconds: float = Field(
        default=600.0, gt=0, description="Expired entry sweep interval"
    )


@dataclass
class CacheEntry(Generic[V]):
    """
    Cached value with bookkeeping.

    Replaced wholesale on set(); only access_count and last_accessed_at
    change afterwards, on read.
    """

    value: V
    created_at: float
    ttl: float
    access_count: int = 0
    last_accessed_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed_at = now


@dataclass(frozen=True)
class CacheStats:
    size: int
    hit_rate: float
    miss_rate: float
    total_hits: int
    total_misses: int
    oldest_entry: Optional[float]
    newest_entry: Optional[float]


class TTLCache(Generic[V]):
    """
    Process-local cache with TTL expiry and LRU eviction.

    Expired entries are logically absent as soon as their TTL elapses and
    are physically removed on the next access or sweep. Only get() updates
    hit/miss counters; has() applies the same expiry rule without
    touching statistics or recency.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        self.config = config or CacheConfig()
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry[V]] = {}
        self._hits = 0
        self._misses = 0
        self._cleanup_task: Optional[asyncio.Task] = None

    @staticmethod
    def _check_key(key: str) -> None:
        if not isinstance(key, str):
            raise TypeError(f"cache key must be str, got {type(key).__name__}")

    def _live_entry(self, key: str) -> Optional[CacheEntry[V]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            logger.debug("Cache entry expired", cache=self.name, key=key)
            return None
        return entry

    def get(self, key: str) -> Optional[V]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if unknown or expired
        """
        self._check_key(key)
        entry = self._live_entry(key)
        if entry is None:
            self._misses += 1
            return None

        self._hits += 1
        entry.touch(self._clock())
        return entry.value

    def has(self, key: str) -> bool:
        """Check for a live entry. Expired entries are removed."""
        self._check_key(key)
        return self._live_entry(key) is not None

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        """
        Store a value, evicting the least recently used entry at capacity.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time to live in seconds (config default when omitted)
        """
        self._check_key(key)
        ttl = self.config.default_ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        if key not in self._entries and len(self._entries) >= self.config.max_size:
            self._evict_least_recently_used()

        now = self._clock()
        self._entries[key] = CacheEntry(
            value=value, created_at=now, ttl=ttl, last_accessed_at=now
        )
        logger.debug("Cache set", cache=self.name, key=key, ttl=ttl)

    def delete(self, key: str) -> bool:
        self._check_key(key)
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries and reset hit/miss counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        logger.info("Cache cleared", cache=self.name)

    def size(self) -> int:
        return len(self._entries)

    def keys(self) -> List[str]:
        return list(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        created = [entry.created_at for entry in self._entries.values()]
        return CacheStats(
            size=len(self._entries),
            hit_rate=self._hits / total if total else 0.0,
            miss_rate=self._misses / total if total else 0.0,
            total_hits=self._hits,
            total_misses=self._misses,
            oldest_entry=min(created) if created else None,
            newest_entry=max(created) if created else None,
        )

    def _evict_least_recently_used(self) -> None:
        # Linear scan; capacity stays in the hundreds
        oldest_key = min(
            self._entries, key=lambda k: self._entries[k].last_accessed_at
        )
        del self._entries[oldest_key]
        logger.debug("Cache evicted", cache=self.name, key=oldest_key)

    def cleanup_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.info("Cache cleanup", cache=self.name, removed=len(expired))
        return len(expired)

    # Periodic sweep

    def start_cleanup(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(
            self._cleanup_loop()
        )

    def stop_cleanup(self) -> None:
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            self.cleanup_expired()

    def get_config(self) -> CacheConfig:
        return self.config.model_copy()

    def update_config(self, **changes) -> None:
        """Apply a validated partial config update."""
        self.config = CacheConfig(**{**dict(self.config), **changes})
        logger.info("Cache config updated", cache=self.name, **changes)

    def destroy(self) -> None:
        """Stop the sweep and drop all entries."""
        self.stop_cleanup()
        self.clear()
