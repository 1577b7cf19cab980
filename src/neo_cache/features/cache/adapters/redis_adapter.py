"""Redis item store adapter for neo-cache."""

import logging
import pickle
import re
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError, RedisError, TimeoutError as RedisTimeoutError

from ..entities.item import CacheItem
from ....core.exceptions import (
    CacheConnectionError,
    CacheError,
    CacheSerializationError,
    CacheTimeoutError,
)

logger = logging.getLogger(__name__)

GLOB_SPECIAL_CHARS = re.compile(r"([\\*?\[\]])")


class RedisAdapter:
    """Redis item store.

    Values are pickled together with their TTL. Conditional writes map to
    ``SET key value NX EX ttl``, which Redis applies atomically, so the
    index lock holds across every process talking to the same server.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "",
        redis_client: Optional[Redis] = None,
        **connection_kwargs: Any,
    ):
        self.url = url
        self.key_prefix = key_prefix
        self.redis_client = redis_client
        self._connection_kwargs = connection_kwargs
        self._owns_client = redis_client is None
        self._connected = False

    @classmethod
    def is_supported(cls) -> bool:
        return redis is not None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._connected:
            return

        try:
            if self.redis_client is None:
                self.redis_client = redis.from_url(self.url, **self._connection_kwargs)
            await self.redis_client.ping()
            self._connected = True
            logger.info(f"Connected to Redis: {self.url}")
        except RedisError as e:
            raise CacheConnectionError(f"Failed to connect to Redis: {e}")

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self.redis_client is not None and self._owns_client:
            try:
                await self.redis_client.aclose()
            except RedisError as e:
                logger.error(f"Error closing Redis connection: {e}")
            finally:
                self.redis_client = None
        self._connected = False

    async def get_item(self, key: str) -> CacheItem:
        """Get item by key."""
        await self._ensure_connected()

        try:
            data = await self.redis_client.get(self._redis_key(key))
        except RedisError as e:
            raise self._wrap(e, f"Redis get error for key {key}")

        if data is None:
            return CacheItem.miss(key)
        return self._decode(key, data)

    async def get_items(self) -> Dict[str, CacheItem]:
        """Get every live item under the key prefix."""
        keys = await self.get_keys()
        if not keys:
            return {}

        try:
            values = await self.redis_client.mget([self._redis_key(key) for key in keys])
        except RedisError as e:
            raise self._wrap(e, "Redis mget error")

        items = {}
        for key, data in zip(keys, values):
            # Keys can expire between SCAN and MGET
            if data is not None:
                item = self._decode(key, data)
                if item.hit:
                    items[key] = item
        return items

    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        """Set item with its TTL, optionally only when the key is absent."""
        await self._ensure_connected()
        data = self._encode(item)

        try:
            result = await self.redis_client.set(
                self._redis_key(item.key),
                data,
                ex=item.ttl if item.expires else None,
                nx=if_absent,
            )
        except RedisError as e:
            raise self._wrap(e, f"Redis set error for key {item.key}")

        return bool(result)

    async def delete_item(self, key: str) -> bool:
        """Delete key; a missing key counts as deleted."""
        await self._ensure_connected()

        try:
            await self.redis_client.delete(self._redis_key(key))
        except RedisError as e:
            raise self._wrap(e, f"Redis delete error for key {key}")
        return True

    async def delete_items(self, keys: Iterable[str]) -> bool:
        """Delete several keys in one command."""
        redis_keys = [self._redis_key(key) for key in keys]
        if not redis_keys:
            return True

        await self._ensure_connected()
        try:
            await self.redis_client.delete(*redis_keys)
        except RedisError as e:
            raise self._wrap(e, "Redis bulk delete error")
        return True

    async def get_keys(self) -> List[str]:
        """Enumerate keys under the prefix with SCAN."""
        await self._ensure_connected()

        keys = []
        try:
            async for redis_key in self.redis_client.scan_iter(match=self._scan_pattern()):
                if isinstance(redis_key, bytes):
                    redis_key = redis_key.decode()
                keys.append(redis_key[len(self.key_prefix):])
        except RedisError as e:
            raise self._wrap(e, "Redis scan error")
        return keys

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            await self._ensure_connected()
            await self.redis_client.ping()
            return True
        except (CacheError, RedisError) as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    def _redis_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _scan_pattern(self) -> str:
        """SCAN pattern matching every key under the literal prefix."""
        return GLOB_SPECIAL_CHARS.sub(r"\\\1", self.key_prefix) + "*"

    def _encode(self, item: CacheItem) -> bytes:
        try:
            return pickle.dumps({"value": item.value, "ttl": item.ttl}, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CacheSerializationError(
                f"Cannot serialize cache value for key {item.key}: {e}",
                details={"key": item.key, "value_type": type(item.value).__name__},
            )

    def _decode(self, key: str, data: bytes) -> CacheItem:
        try:
            payload = pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, TypeError, ValueError) as e:
            # Foreign or corrupted values are treated as a miss
            logger.warning(f"Failed to deserialize cache value for key {key}: {e}")
            return CacheItem.miss(key)
        if not isinstance(payload, dict) or "value" not in payload:
            logger.warning(f"Unexpected cache payload for key {key}")
            return CacheItem.miss(key)
        return CacheItem(key=key, value=payload["value"], ttl=payload.get("ttl"))

    def _wrap(self, error: RedisError, message: str) -> CacheError:
        if isinstance(error, RedisTimeoutError):
            return CacheTimeoutError(f"{message}: {error}")
        if isinstance(error, RedisConnectionError):
            self._connected = False
            return CacheConnectionError(f"{message}: {error}")
        return CacheError(f"{message}: {error}")

    async def _ensure_connected(self) -> None:
        if not self._connected:
            await self.connect()
