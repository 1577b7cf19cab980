"""Neo-Cache - multi-tenant cache facade with group invalidation.

Several applications share one item store (memory, file, Redis, Memcached)
through per-context key namespaces, and whole groups of entries can be
invalidated on backends that cannot delete by prefix.
"""

from .__version__ import __version__

from .core.exceptions import (
    NeoCacheError,
    CacheConfigurationError,
    CacheError,
    CacheConnectionError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
    IndexPersistenceError,
)

from .features.cache import (
    CacheBackend,
    CacheItem,
    CacheService,
    CacheSettings,
    ItemStore,
    MISS,
    create_cache,
    create_store,
    register_backend,
)

from .config import setup_logging

__all__ = [
    "__version__",
    "NeoCacheError",
    "CacheConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    "CacheTimeoutError",
    "IndexPersistenceError",
    "CacheBackend",
    "CacheItem",
    "CacheService",
    "CacheSettings",
    "ItemStore",
    "MISS",
    "create_cache",
    "create_store",
    "register_backend",
    "setup_logging",
]
