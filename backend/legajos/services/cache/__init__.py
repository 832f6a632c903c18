"""
Cache Services

In-memory TTL cache with LRU eviction and hit/miss statistics.
"""

from .ttl_cache import CacheConfig, CacheEntry, CacheStats, TTLCache

__all__ = ["CacheConfig", "CacheEntry", "CacheStats", "TTLCache"]
