"""Advisory lock guarding a namespace's invalidation index."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ..entities.item import CacheItem
from ..entities.protocols import ItemStore
from .key_namer import KeyNamer
from ....core.exceptions import CacheConfigurationError, CacheError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = 30
DEFAULT_RETRY_INTERVAL = 0.0001
DEFAULT_MAX_ATTEMPTS = 300


class IndexLock:
    """Lease-style lock stored as a short-lived sentinel item.

    The sentinel's presence in the item store means "locked". It is created
    with the store's atomic create-if-absent write and expires on its own
    after ``ttl`` seconds, so a holder that dies without releasing blocks
    other writers for at most one TTL. The lock is advisory and not
    linearizable: a holder whose critical section outlives the TTL can
    overlap with the next holder.
    """

    def __init__(
        self,
        store: ItemStore,
        namer: Optional[KeyNamer] = None,
        ttl: int = DEFAULT_LOCK_TTL,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise CacheConfigurationError("Index lock needs at least one attempt")
        if ttl <= retry_interval * max_attempts:
            raise CacheConfigurationError(
                "Index lock TTL must exceed its retry budget",
                details={"ttl": ttl, "retry_budget": retry_interval * max_attempts},
            )

        self.store = store
        self.namer = namer or KeyNamer()
        self.ttl = ttl
        self.retry_interval = retry_interval
        self.max_attempts = max_attempts

    @property
    def retry_budget(self) -> float:
        """Worst-case seconds spent waiting in ``acquire``."""
        return self.retry_interval * self.max_attempts

    async def acquire(self, namespace: str) -> bool:
        """Try to take the lock, retrying until the attempt budget runs out."""
        key = self.namer.lock_key(namespace)
        sentinel = CacheItem(key=key, value=uuid.uuid4().hex, ttl=self.ttl)

        for attempt in range(1, self.max_attempts + 1):
            try:
                if await self.store.save(sentinel, if_absent=True):
                    logger.debug(f"Acquired index lock {key} after {attempt} attempt(s)")
                    return True
            except CacheError as e:
                logger.debug(f"Index lock attempt {attempt} on {key} failed: {e}")

            if attempt < self.max_attempts:
                await asyncio.sleep(self.retry_interval)

        logger.warning(f"Could not acquire index lock {key} after {self.max_attempts} attempts")
        return False

    async def release(self, namespace: str) -> bool:
        """Delete the lock sentinel."""
        key = self.namer.lock_key(namespace)
        try:
            released = await self.store.delete_item(key)
        except CacheError as e:
            logger.error(f"Failed to release index lock {key}: {e}")
            return False

        if not released:
            logger.error(f"Failed to release index lock {key}")
        return released

    @asynccontextmanager
    async def hold(self, namespace: str) -> AsyncIterator[bool]:
        """Hold the lock for the duration of the block.

        Yields whether the lock was acquired. The lock is released on every
        exit path when it was acquired.
        """
        acquired = await self.acquire(namespace)
        try:
            yield acquired
        finally:
            if acquired:
                await self.release(namespace)
