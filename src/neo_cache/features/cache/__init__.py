"""Cache feature for neo-cache.

Feature-First architecture:
- entities/: Cache item types, item store protocol, and configuration
- services/: Key naming, index lock, invalidation index, and cache facade
- adapters/: Memory, file, Redis, Memcached, and null item stores
"""

from .entities import CacheBackend, CacheItem, CacheSettings, ItemStore, MISS
from .services import (
    CacheService,
    GROUP_MODE,
    IndexLock,
    InvalidationIndex,
    KeyNamer,
    NOT_GROUP_MODE,
    available_backends,
    create_cache,
    create_store,
    register_backend,
)
from .adapters import FileAdapter, MemcachedAdapter, MemoryAdapter, NullAdapter, RedisAdapter

__all__ = [
    # Entities
    "CacheBackend",
    "CacheItem",
    "CacheSettings",
    "ItemStore",
    "MISS",

    # Services
    "CacheService",
    "GROUP_MODE",
    "NOT_GROUP_MODE",
    "IndexLock",
    "InvalidationIndex",
    "KeyNamer",
    "available_backends",
    "create_cache",
    "create_store",
    "register_backend",

    # Adapters
    "FileAdapter",
    "MemcachedAdapter",
    "MemoryAdapter",
    "NullAdapter",
    "RedisAdapter",
]
