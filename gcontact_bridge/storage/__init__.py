"""
gcontact_bridge.storage - Contact cache and its backing stores
"""

from gcontact_bridge.storage.cache import (
    DEFAULT_CACHE_TTL,
    CacheStore,
    MemoryCacheStore,
    SQLiteCacheStore,
    SyncCache,
)

__all__ = [
    "DEFAULT_CACHE_TTL",
    "CacheStore",
    "MemoryCacheStore",
    "SQLiteCacheStore",
    "SyncCache",
]
