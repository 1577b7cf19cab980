"""Invalidation index: the stored list of live keys per namespace.

Backends cannot delete by prefix or pattern, so the facade records every
key it writes in one index item per namespace and uses that list to find
the members of a group. Every method performs a read-modify-write of the
index item and must only be called while the namespace's ``IndexLock`` is
held.

The index item maps each key to the wall-clock time its entry expires
(``None`` for entries without expiry). Keys past their deadline are
dropped on load once the item store confirms they are gone, so the index
does not keep growing with entries the backend already expired.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..entities.item import CacheItem
from ..entities.protocols import ItemStore
from .key_namer import KeyNamer
from ....core.exceptions import IndexPersistenceError

logger = logging.getLogger(__name__)

IndexEntries = Dict[str, Optional[float]]


def expiry_deadline(ttl: Optional[int], now: Optional[float] = None) -> Optional[float]:
    """Wall-clock deadline of an entry written now with ``ttl``."""
    if not ttl or ttl <= 0:
        return None
    return (time.time() if now is None else now) + ttl


class InvalidationIndex:
    """Reads and rewrites the ``{namespace}-index`` item."""

    def __init__(self, store: ItemStore, namer: Optional[KeyNamer] = None):
        self.store = store
        self.namer = namer or KeyNamer()

    async def load(self, namespace: str) -> List[str]:
        """Get the indexed keys, creating an empty index on first use."""
        entries, pruned = await self._load(namespace)
        if pruned:
            await self._persist(namespace, entries)
        return list(entries)

    async def add(self, namespace: str, key: str, ttl: Optional[int] = None) -> bool:
        """Insert a key, or refresh its deadline. Returns True when the key was inserted."""
        entries, pruned = await self._load(namespace)
        inserted = key not in entries
        deadline = expiry_deadline(ttl)

        if inserted or pruned or entries[key] != deadline:
            entries[key] = deadline
            await self._persist(namespace, entries)
        return inserted

    async def remove(self, namespace: str, key: str) -> bool:
        """Drop a key. Returns True when the key was indexed."""
        entries, _ = await self._load(namespace)
        present = key in entries
        entries.pop(key, None)

        await self._persist(namespace, entries)
        return present

    async def replace(
        self, namespace: str, keys: Union[Mapping[str, Optional[float]], Iterable[str]]
    ) -> List[str]:
        """Overwrite the index with the given keys (or key to deadline mapping)."""
        entries = dict(keys) if isinstance(keys, Mapping) else dict.fromkeys(keys)
        await self._persist(namespace, entries)
        return list(entries)

    async def sweep(self, namespace: str, predicate: Callable[[str], bool]) -> List[str]:
        """Delete every indexed key matching ``predicate``.

        Matching keys are deleted from the store and the remaining keys are
        written back as the new index.

        Returns:
            The removed keys

        Raises:
            IndexPersistenceError: If the deletion or the index write failed.
                Keys deleted before the failure stay deleted.
        """
        entries, pruned = await self._load(namespace)
        removed = [key for key in entries if predicate(key)]
        retained = {key: deadline for key, deadline in entries.items() if not predicate(key)}

        if removed:
            if not await self.store.delete_items(removed):
                raise IndexPersistenceError(
                    f"Failed to delete {len(removed)} indexed keys in namespace {namespace}",
                    details={"namespace": namespace, "keys": removed},
                )
        if removed or pruned:
            await self._persist(namespace, retained)

        logger.debug(f"Swept {len(removed)} of {len(entries)} indexed keys in namespace {namespace}")
        return removed

    async def _load(self, namespace: str) -> Tuple[IndexEntries, bool]:
        key = self.namer.index_key(namespace)
        item = await self.store.get_item(key)

        if not item.hit:
            logger.debug(f"Creating invalidation index {key}")
            await self._persist(namespace, {})
            return {}, False

        entries = self._decode(item.value)
        pruned = await self._prune_expired(entries)
        return entries, pruned

    @staticmethod
    def _decode(value: Any) -> IndexEntries:
        if isinstance(value, Mapping):
            return dict(value)
        if isinstance(value, list):
            # Plain key lists carry no deadlines
            return dict.fromkeys(value)
        return {}

    async def _prune_expired(self, entries: IndexEntries) -> bool:
        now = time.time()
        overdue = [key for key, deadline in entries.items() if deadline is not None and deadline <= now]

        pruned = []
        for key in overdue:
            # Backend clocks decide; keep keys the store still serves
            if not (await self.store.get_item(key)).hit:
                del entries[key]
                pruned.append(key)

        if pruned:
            logger.debug(f"Pruned {len(pruned)} expired keys from the invalidation index")
        return bool(pruned)

    async def _persist(self, namespace: str, entries: IndexEntries) -> None:
        key = self.namer.index_key(namespace)
        if not await self.store.save(CacheItem(key=key, value=entries, ttl=None)):
            raise IndexPersistenceError(
                f"Failed to persist invalidation index {key}",
                details={"namespace": namespace, "size": len(entries)},
            )
