"""Cache protocols for neo-cache.

This module defines the item store contract that every pluggable backend
implements, and the enumeration of backends shipped with neo-cache.
"""

from abc import abstractmethod
from enum import Enum
from typing import Dict, Iterable, List, Protocol, runtime_checkable

from .item import CacheItem


class CacheBackend(str, Enum):
    """Supported cache backend types."""
    MEMORY = "memory"
    FILE = "file"
    REDIS = "redis"
    MEMCACHED = "memcached"
    NONE = "none"


@runtime_checkable
class ItemStore(Protocol):
    """Protocol for cache item stores.

    Stores expose get/save/delete of ``CacheItem`` triples with TTL-aware
    expiry. ``save(item, if_absent=True)`` must be atomic: it fails when an
    unexpired item already exists under the key. Backend I/O failures are
    raised as ``CacheError``; a store that merely declined a write returns
    False.
    """

    @classmethod
    def is_supported(cls) -> bool:
        """Report whether the backend can run in the current environment."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open connections or resources."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release connections or resources."""
        ...

    @abstractmethod
    async def get_item(self, key: str) -> CacheItem:
        """Get item by key; a miss is returned as ``CacheItem.miss(key)``."""
        ...

    @abstractmethod
    async def get_items(self) -> Dict[str, CacheItem]:
        """Get every live item the backend holds."""
        ...

    @abstractmethod
    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        """Persist an item; with ``if_absent`` only when no live item exists."""
        ...

    @abstractmethod
    async def delete_item(self, key: str) -> bool:
        """Delete an item. Deleting a missing key succeeds."""
        ...

    @abstractmethod
    async def delete_items(self, keys: Iterable[str]) -> bool:
        """Delete several items."""
        ...

    @abstractmethod
    async def get_keys(self) -> List[str]:
        """Enumerate the keys of every live item."""
        ...
