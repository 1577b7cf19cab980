"""Memcached item store adapter for neo-cache."""

import asyncio
import hashlib
import logging
import re
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

try:
    from pymemcache import serde
    from pymemcache.client.hash import HashClient
    from pymemcache.exceptions import MemcacheError
except ImportError:
    serde = None
    HashClient = None
    MemcacheError = Exception

from ..entities.item import CacheItem
from ....core.exceptions import CacheConnectionError, CacheError, CacheTimeoutError

logger = logging.getLogger(__name__)

MAX_KEY_LENGTH = 250
# Memcached reads larger expiry values as absolute Unix timestamps
MAX_RELATIVE_EXPIRY = 30 * 24 * 3600
INVALID_KEY_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")


class MemcachedAdapter:
    """Memcached item store over a consistent-hashing server pool.

    Conditional writes use the ``add`` command, which memcached applies
    atomically per key. Memcached cannot enumerate its keys, so
    ``get_keys`` and ``get_items`` raise ``CacheError``; indexed group
    invalidation does not need them.
    """

    def __init__(
        self,
        servers: Sequence[str] = ("localhost:11211",),
        client: Optional[Any] = None,
        connect_timeout: float = 2.0,
        timeout: float = 2.0,
    ):
        self.servers = list(servers)
        self.client = client
        self.connect_timeout = connect_timeout
        self.timeout = timeout

    @classmethod
    def is_supported(cls) -> bool:
        return HashClient is not None

    async def connect(self) -> None:
        if self.client is not None:
            return
        if HashClient is None:
            raise CacheConnectionError("pymemcache package is required for MemcachedAdapter")

        nodes = []
        for server in self.servers:
            host, port = server.rsplit(":", 1)
            nodes.append((host, int(port)))

        self.client = HashClient(
            nodes,
            serde=serde.pickle_serde,
            connect_timeout=self.connect_timeout,
            timeout=self.timeout,
        )
        logger.info(f"Memcached client configured for {', '.join(self.servers)}")

    async def disconnect(self) -> None:
        if self.client is not None:
            await asyncio.to_thread(self.client.close)
            self.client = None

    async def get_item(self, key: str) -> CacheItem:
        payload = await self._call("get", self._memcached_key(key))
        if not isinstance(payload, dict) or "value" not in payload:
            return CacheItem.miss(key)
        return CacheItem(key=key, value=payload["value"], ttl=payload.get("ttl"))

    async def get_items(self) -> Dict[str, CacheItem]:
        raise CacheError("Memcached does not support listing items")

    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        command = "add" if if_absent else "set"
        result = await self._call(
            command,
            self._memcached_key(item.key),
            {"value": item.value, "ttl": item.ttl},
            expire=self._expire(item),
            noreply=False,
        )
        return bool(result)

    async def delete_item(self, key: str) -> bool:
        await self._call("delete", self._memcached_key(key), noreply=False)
        return True

    async def delete_items(self, keys: Iterable[str]) -> bool:
        memcached_keys = [self._memcached_key(key) for key in keys]
        if not memcached_keys:
            return True
        return bool(await self._call("delete_many", memcached_keys, noreply=False))

    async def get_keys(self) -> List[str]:
        raise CacheError("Memcached does not support key enumeration")

    @staticmethod
    def _expire(item: CacheItem) -> int:
        if not item.expires:
            return 0
        if item.ttl > MAX_RELATIVE_EXPIRY:
            return int(time.time()) + item.ttl
        return item.ttl

    @staticmethod
    def _memcached_key(key: str) -> str:
        """Hash keys memcached would reject (too long or with whitespace)."""
        if len(key.encode("utf-8")) > MAX_KEY_LENGTH or INVALID_KEY_CHARS.search(key):
            return "neo_cache:" + hashlib.sha1(key.encode("utf-8")).hexdigest()
        return key

    async def _call(self, command: str, *args: Any, **kwargs: Any) -> Any:
        if self.client is None:
            await self.connect()
        try:
            return await asyncio.to_thread(getattr(self.client, command), *args, **kwargs)
        except MemcacheError as e:
            raise CacheError(f"Memcached {command} error: {e}")
        except TimeoutError as e:
            raise CacheTimeoutError(f"Memcached {command} timed out: {e}")
        except OSError as e:
            raise CacheConnectionError(f"Memcached {command} failed: {e}")
