"""Memory item store adapter for neo-cache."""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..entities.item import CacheItem

logger = logging.getLogger(__name__)


@dataclass
class MemoryCacheEntry:
    """Memory cache entry with expiry metadata."""
    value: Any
    ttl: Optional[int]
    expires_at: Optional[float] = None
    access_count: int = 0

    @property
    def is_expired(self) -> bool:
        """Check if entry is expired."""
        if self.expires_at is None:
            return False
        return time.monotonic() >= self.expires_at

    def access(self) -> None:
        """Record access to this entry."""
        self.access_count += 1


class MemoryAdapter:
    """In-process item store with TTL expiry and optional LRU eviction.

    All state lives in this object, so only tasks sharing the instance see
    the same items. ``max_size`` of 0 disables eviction.
    """

    def __init__(self, max_size: int = 0):
        self.max_size = max_size
        self._store: "OrderedDict[str, MemoryCacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "deletes": 0,
            "evictions": 0,
        }

    @classmethod
    def is_supported(cls) -> bool:
        return True

    async def connect(self) -> None:
        logger.debug(f"Memory cache initialized with max_size={self.max_size}")

    async def disconnect(self) -> None:
        async with self._lock:
            self._store.clear()

    async def get_item(self, key: str) -> CacheItem:
        """Get item by key."""
        async with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                self._stats["misses"] += 1
                return CacheItem.miss(key)

            entry.access()
            self._store.move_to_end(key)
            self._stats["hits"] += 1
            return CacheItem(key=key, value=entry.value, ttl=entry.ttl)

    async def get_items(self) -> Dict[str, CacheItem]:
        """Get every live item."""
        async with self._lock:
            self._cleanup_expired()
            return {
                key: CacheItem(key=key, value=entry.value, ttl=entry.ttl)
                for key, entry in self._store.items()
            }

    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        """Store an item, optionally only when no live item exists."""
        async with self._lock:
            if if_absent and self._live_entry(item.key) is not None:
                return False

            self._store.pop(item.key, None)
            expires_at = time.monotonic() + item.ttl if item.expires else None
            self._store[item.key] = MemoryCacheEntry(
                value=item.value,
                ttl=item.ttl,
                expires_at=expires_at,
            )
            self._stats["sets"] += 1
            self._ensure_capacity()
            return True

    async def delete_item(self, key: str) -> bool:
        """Delete item by key."""
        async with self._lock:
            if self._store.pop(key, None) is not None:
                self._stats["deletes"] += 1
            return True

    async def delete_items(self, keys: Iterable[str]) -> bool:
        """Delete several items."""
        async with self._lock:
            for key in keys:
                if self._store.pop(key, None) is not None:
                    self._stats["deletes"] += 1
            return True

    async def get_keys(self) -> List[str]:
        """Get keys of every live item."""
        async with self._lock:
            self._cleanup_expired()
            return list(self._store.keys())

    async def info(self) -> Dict[str, Any]:
        """Get memory store information."""
        async with self._lock:
            self._cleanup_expired()
            total_requests = self._stats["hits"] + self._stats["misses"]
            return {
                "backend_type": "memory",
                "total_entries": len(self._store),
                "max_entries": self.max_size,
                "hit_rate": (self._stats["hits"] / total_requests) if total_requests > 0 else 0.0,
                **self._stats,
            }

    def _live_entry(self, key: str) -> Optional[MemoryCacheEntry]:
        """Return the entry for key, dropping it when expired. Lock must be held."""
        entry = self._store.get(key)
        if entry is not None and entry.is_expired:
            del self._store[key]
            return None
        return entry

    def _cleanup_expired(self) -> None:
        """Remove all expired entries. Lock must be held."""
        expired_keys = [key for key, entry in self._store.items() if entry.is_expired]
        for key in expired_keys:
            del self._store[key]

    def _ensure_capacity(self) -> None:
        """Evict least recently used entries beyond max_size. Lock must be held."""
        if not self.max_size:
            return
        self._cleanup_expired()
        while len(self._store) > self.max_size:
            key, _ = self._store.popitem(last=False)
            self._stats["evictions"] += 1
            logger.debug(f"Evicted memory cache entry: {key}")
