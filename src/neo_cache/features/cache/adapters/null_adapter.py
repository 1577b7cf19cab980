"""Null item store adapter for neo-cache."""

from typing import Dict, Iterable, List

from ..entities.item import CacheItem


class NullAdapter:
    """Item store that keeps nothing.

    Every lookup misses and every write reports success, which turns the
    cache facade into a pass-through without changing calling code.
    """

    @classmethod
    def is_supported(cls) -> bool:
        return True

    async def connect(self) -> None:
        return None

    async def disconnect(self) -> None:
        return None

    async def get_item(self, key: str) -> CacheItem:
        return CacheItem.miss(key)

    async def get_items(self) -> Dict[str, CacheItem]:
        return {}

    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        return True

    async def delete_item(self, key: str) -> bool:
        return True

    async def delete_items(self, keys: Iterable[str]) -> bool:
        return True

    async def get_keys(self) -> List[str]:
        return []
