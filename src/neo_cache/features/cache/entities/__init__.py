"""Cache entities: item types, protocols, and configuration."""

from .item import CacheItem, MISS
from .protocols import CacheBackend, ItemStore
from .config import CacheSettings

__all__ = [
    "CacheItem",
    "MISS",
    "CacheBackend",
    "ItemStore",
    "CacheSettings",
]
