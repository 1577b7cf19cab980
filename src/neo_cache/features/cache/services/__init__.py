"""Cache services: key naming, index locking, invalidation, and the facade."""

from .key_namer import KeyNamer
from .index_lock import IndexLock
from .invalidation_index import InvalidationIndex
from .cache_service import CacheService, GROUP_MODE, NOT_GROUP_MODE
from .backend_registry import available_backends, create_cache, create_store, register_backend

__all__ = [
    "KeyNamer",
    "IndexLock",
    "InvalidationIndex",
    "CacheService",
    "GROUP_MODE",
    "NOT_GROUP_MODE",
    "available_backends",
    "create_cache",
    "create_store",
    "register_backend",
]
