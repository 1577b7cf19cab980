"""Cache service: namespaced get/set/delete with group invalidation."""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..entities.config import CacheSettings
from ..entities.item import CacheItem, MISS
from ..entities.protocols import ItemStore
from .index_lock import IndexLock
from .invalidation_index import InvalidationIndex, expiry_deadline
from .key_namer import KeyNamer
from ....core.exceptions import CacheError

logger = logging.getLogger(__name__)

GROUP_MODE = "group"
NOT_GROUP_MODE = "notgroup"


class CacheService:
    """Cache facade shared by several applications through one item store.

    Entries live under ``{context}-cache-{group}-{identifier}``. Writes go
    through the context's invalidation index under its index lock, which
    lets ``clean`` drop a whole group on backends without prefix deletion.
    Reads never take the lock.

    Steady-state failures (lock contention, backend errors) are logged and
    reported as False; ``get`` reports misses with ``MISS``.
    """

    def __init__(
        self,
        store: ItemStore,
        settings: Optional[CacheSettings] = None,
        context: Optional[str] = None,
        namer: Optional[KeyNamer] = None,
    ):
        self.settings = settings or CacheSettings()
        self._store = store
        self._context = context or self.settings.context
        self._namer = namer or KeyNamer()
        self._lock = IndexLock(
            store,
            self._namer,
            ttl=self.settings.lock_ttl,
            retry_interval=self.settings.lock_retry_interval,
            max_attempts=self.settings.lock_max_attempts,
        )
        self._index = InvalidationIndex(store, self._namer)
        self._initialized = False

    @property
    def store(self) -> ItemStore:
        return self._store

    @property
    def context(self) -> str:
        return self._context

    @property
    def default_group(self) -> str:
        return self.settings.default_group

    @property
    def ttl(self) -> int:
        return self.settings.ttl

    def get_context(self) -> str:
        return self._context

    def set_context(self, context: str) -> "CacheService":
        """Switch the namespace used by subsequent calls (chainable).

        Calls already in flight keep the namespace they started with.
        """
        self._context = context
        return self

    def with_context(self, context: str) -> "CacheService":
        """Get a facade for another namespace over the same store."""
        service = CacheService(self._store, self.settings, context, self._namer)
        service._initialized = self._initialized
        return service

    async def initialize(self) -> None:
        """Connect the item store."""
        if self._initialized:
            return

        await self._store.connect()
        self._initialized = True
        logger.info(f"Cache service initialized for context {self._context}")

    async def shutdown(self) -> None:
        """Disconnect the item store."""
        if not self._initialized:
            return

        try:
            await self._store.disconnect()
        except CacheError as e:
            logger.error(f"Error during cache service shutdown: {e}")
        finally:
            self._initialized = False

    async def get(self, identifier: Any, group: Optional[str] = None, default: Any = MISS) -> Any:
        """Get a cached value, or ``default`` (``MISS``) when absent or expired."""
        context = self._context
        try:
            await self._ensure_initialized()
            key = self._namer.name(context, self._resolve_group(group), identifier)
            item = await self._store.get_item(key)
        except CacheError as e:
            logger.error(f"Cache get failed for {identifier!r} in group {group!r}: {e}")
            return default

        return item.get(default)

    async def get_all(self) -> Dict[str, Any]:
        """Get every item the backend reports, keyed by backend key.

        Meant for debugging: the result is not filtered by context and is
        not checked against the invalidation index.
        """
        try:
            await self._ensure_initialized()
            items = await self._store.get_items()
        except CacheError as e:
            logger.error(f"Cache get_all failed: {e}")
            return {}

        return {key: item.value for key, item in items.items()}

    async def set(self, value: Any, identifier: Any, group: Optional[str] = None, ttl: Optional[int] = None) -> bool:
        """Store a value; ``ttl`` defaults to the configured TTL, 0 never expires."""
        context = self._context
        ttl = self.ttl if ttl is None else ttl
        if ttl < 0:
            logger.error(f"Refusing to cache {identifier!r} with negative ttl {ttl}")
            return False

        key = await self._prepare_key(context, identifier, group)
        if key is None:
            return False

        async with self._lock.hold(context) as acquired:
            if not acquired:
                logger.warning(f"Cache set for {key} aborted: index lock busy")
                return False

            added = False
            try:
                added = await self._index.add(context, key, ttl)
                if await self._store.save(CacheItem(key=key, value=value, ttl=ttl)):
                    return True
                logger.error(f"Cache set for {key} rejected by the item store")
            except CacheError as e:
                logger.error(f"Cache set for {key} failed: {e}")

            if added:
                await self._unindex(context, key)
            return False

    async def delete(self, identifier: Any, group: Optional[str] = None) -> bool:
        """Delete a cached value. Deleting an absent value succeeds.

        The entry is deleted before its index entry, so a failed delete
        leaves the key indexed and reachable by ``clean``.
        """
        context = self._context
        key = await self._prepare_key(context, identifier, group)
        if key is None:
            return False

        async with self._lock.hold(context) as acquired:
            if not acquired:
                logger.warning(f"Cache delete for {key} aborted: index lock busy")
                return False

            try:
                if not await self._store.delete_item(key):
                    logger.error(f"Cache delete for {key} rejected by the item store")
                    return False
                await self._index.remove(context, key)
                return True
            except CacheError as e:
                logger.error(f"Cache delete for {key} failed: {e}")
                return False

    async def clean(self, group: str, mode: str) -> bool:
        """Delete a group, or everything but a group, using the index.

        ``mode == "group"`` deletes every entry of ``group``. Any other mode
        behaves as ``"notgroup"`` and deletes every indexed entry of the
        context that is not in ``group``.
        """
        context = self._context
        predicate = await self._group_predicate(context, group, mode)
        if predicate is None:
            return False

        async with self._lock.hold(context) as acquired:
            if not acquired:
                logger.warning(f"Cache clean of group {group!r} aborted: index lock busy")
                return False

            try:
                removed = await self._index.sweep(context, predicate)
            except CacheError as e:
                logger.error(f"Cache clean of group {group!r} ({mode}) failed: {e}")
                return False

        logger.info(f"Cleaned {len(removed)} entries for group {group!r} ({mode}) in context {context}")
        return True

    async def clean_scan(self, group: str, mode: str) -> bool:
        """Like ``clean`` but finds entries by enumerating backend keys.

        Reaches entries the index does not know about (written by other
        tools or left behind by a crashed writer). Needs a backend that can
        enumerate its keys.
        """
        context = self._context
        predicate = await self._group_predicate(context, group, mode)
        if predicate is None:
            return False
        namespace_prefix = self._namer.namespace_prefix(context)

        async with self._lock.hold(context) as acquired:
            if not acquired:
                logger.warning(f"Cache scan clean of group {group!r} aborted: index lock busy")
                return False

            try:
                keys = await self._store.get_keys()
                matched = {key for key in keys if key.startswith(namespace_prefix) and predicate(key)}
                removed = await self._index.sweep(context, lambda key: key in matched)
                unindexed = matched.difference(removed)
                if unindexed and not await self._store.delete_items(list(unindexed)):
                    logger.error(f"Cache scan clean of group {group!r} could not delete unindexed keys")
                    return False
            except CacheError as e:
                logger.error(f"Cache scan clean of group {group!r} ({mode}) failed: {e}")
                return False

        logger.info(f"Scan-cleaned {len(matched)} entries for group {group!r} ({mode}) in context {context}")
        return True

    async def rebuild_index(self) -> bool:
        """Replace the context's index with the data entries the backend holds.

        Deadlines are estimated from each entry's full TTL, so rebuilt keys
        never leave the index before their entry expires.
        """
        context = self._context
        try:
            await self._ensure_initialized()
        except CacheError as e:
            logger.error(f"Index rebuild failed: {e}")
            return False
        namespace_prefix = self._namer.namespace_prefix(context)

        async with self._lock.hold(context) as acquired:
            if not acquired:
                logger.warning(f"Index rebuild for context {context} aborted: index lock busy")
                return False

            try:
                items = await self._store.get_items()
                now = time.time()
                indexed = await self._index.replace(
                    context,
                    {
                        key: expiry_deadline(items[key].ttl, now)
                        for key in sorted(items)
                        if key.startswith(namespace_prefix)
                    },
                )
            except CacheError as e:
                logger.error(f"Index rebuild for context {context} failed: {e}")
                return False

        logger.info(f"Rebuilt index for context {context} with {len(indexed)} keys")
        return True

    async def index_keys(self) -> Optional[List[str]]:
        """Read the context's index under the lock; None when unavailable."""
        context = self._context
        try:
            await self._ensure_initialized()
        except CacheError as e:
            logger.error(f"Index read failed: {e}")
            return None

        async with self._lock.hold(context) as acquired:
            if not acquired:
                logger.warning(f"Index read for context {context} aborted: index lock busy")
                return None
            try:
                return await self._index.load(context)
            except CacheError as e:
                logger.error(f"Index read for context {context} failed: {e}")
                return None

    async def health_check(self) -> Dict[str, Any]:
        """Get cache health status."""
        try:
            await self._ensure_initialized()
            health_check = getattr(self._store, "health_check", None)
            if health_check is not None:
                healthy = await health_check()
            else:
                await self._store.get_item(self._namer.index_key(self._context))
                healthy = True
            return {"healthy": healthy, "context": self._context}
        except CacheError as e:
            logger.error(f"Cache health check failed: {e}")
            return {"healthy": False, "context": self._context, "error": str(e)}

    async def stats(self) -> Dict[str, Any]:
        """Get index size and backend statistics for the context."""
        keys = await self.index_keys()
        stats: Dict[str, Any] = {
            "context": self._context,
            "indexed_keys": len(keys) if keys is not None else None,
            "store": type(self._store).__name__,
        }
        info = getattr(self._store, "info", None)
        if info is not None:
            try:
                stats["backend"] = await info()
            except CacheError as e:
                logger.error(f"Failed to get cache backend info: {e}")
                stats["backend"] = {"error": str(e)}
        return stats

    def _resolve_group(self, group: Optional[str]) -> str:
        return self.default_group if group is None else group

    async def _prepare_key(self, context: str, identifier: Any, group: Optional[str]) -> Optional[str]:
        try:
            await self._ensure_initialized()
            return self._namer.name(context, self._resolve_group(group), identifier)
        except CacheError as e:
            logger.error(f"Cannot build cache key for {identifier!r} in group {group!r}: {e}")
            return None

    async def _group_predicate(self, context: str, group: str, mode: str) -> Optional[Callable[[str], bool]]:
        try:
            await self._ensure_initialized()
            prefix = self._namer.group_prefix(context, group)
        except CacheError as e:
            logger.error(f"Cannot clean group {group!r}: {e}")
            return None

        in_group = mode == GROUP_MODE
        return lambda key: key.startswith(prefix) == in_group

    async def _unindex(self, context: str, key: str) -> None:
        try:
            await self._index.remove(context, key)
        except CacheError as e:
            logger.error(f"Could not drop {key} from the invalidation index: {e}")

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()
