"""Score cache: key-value stores and the change-detection gate."""

from conflictmeter.cache.gate import CacheEntry, CacheGate
from conflictmeter.cache.store import CacheStore, InMemoryCacheStore, SqlCacheStore, build_cache_store

__all__ = ["CacheEntry", "CacheGate", "CacheStore", "InMemoryCacheStore", "SqlCacheStore", "build_cache_store"]
