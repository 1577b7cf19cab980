"""File item store adapter for neo-cache.

Every item is one pickle file named after a hash of its key, so several
processes on one host can share the cache directory. Writes go through a
temporary file in the same directory and are published atomically.
"""

import asyncio
import hashlib
import logging
import os
import pickle
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

try:
    import fcntl
except ImportError:
    fcntl = None

from ..entities.item import CacheItem
from ....core.exceptions import CacheError, CacheSerializationError

logger = logging.getLogger(__name__)

FILE_SUFFIX = ".cache"
LOCK_FILE = ".neo_cache.lock"


class FileAdapter:
    """Directory-backed item store."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self.directory = Path(directory) if directory else Path(tempfile.gettempdir()) / "neo_cache"

    @classmethod
    def is_supported(cls) -> bool:
        # Conditional writes rely on POSIX advisory file locks
        return fcntl is not None

    async def connect(self) -> None:
        try:
            await asyncio.to_thread(self.directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create cache directory {self.directory}: {e}")
        logger.debug(f"File cache initialized in {self.directory}")

    async def disconnect(self) -> None:
        return None

    async def get_item(self, key: str) -> CacheItem:
        payload = await asyncio.to_thread(self._read_live, self._path(key))
        if payload is None or payload["key"] != key:
            return CacheItem.miss(key)
        return CacheItem(key=key, value=payload["value"], ttl=payload["ttl"])

    async def get_items(self) -> Dict[str, CacheItem]:
        payloads = await asyncio.to_thread(self._read_all)
        return {
            payload["key"]: CacheItem(key=payload["key"], value=payload["value"], ttl=payload["ttl"])
            for payload in payloads
        }

    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        return await asyncio.to_thread(self._write, item, if_absent)

    async def delete_item(self, key: str) -> bool:
        return await asyncio.to_thread(self._unlink, self._path(key))

    async def delete_items(self, keys: Iterable[str]) -> bool:
        paths = [self._path(key) for key in keys]

        def _unlink_all() -> bool:
            return all([self._unlink(path) for path in paths])

        return await asyncio.to_thread(_unlink_all)

    async def get_keys(self) -> List[str]:
        payloads = await asyncio.to_thread(self._read_all)
        return [payload["key"] for payload in payloads]

    def _path(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}{FILE_SUFFIX}"

    @staticmethod
    def _is_expired(payload: Dict[str, Any]) -> bool:
        expires_at = payload.get("expires_at")
        return expires_at is not None and time.time() >= expires_at

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(path, "rb") as fh:
                return pickle.load(fh)
        except FileNotFoundError:
            return None
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, ValueError) as e:
            logger.warning(f"Unreadable cache file {path}: {e}")
            return None
        except OSError as e:
            raise CacheError(f"Cannot read cache file {path}: {e}")

    def _read_live(self, path: Path) -> Optional[Dict[str, Any]]:
        payload = self._read(path)
        if payload is None:
            return None
        if self._is_expired(payload):
            self._unlink(path)
            return None
        return payload

    def _read_all(self) -> List[Dict[str, Any]]:
        if not self.directory.exists():
            return []
        payloads = []
        for path in self.directory.glob(f"*{FILE_SUFFIX}"):
            payload = self._read_live(path)
            if payload is not None:
                payloads.append(payload)
        return payloads

    def _unlink(self, path: Path) -> bool:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot delete cache file {path}: {e}")
        return True

    def _serialize(self, item: CacheItem) -> bytes:
        payload = {
            "key": item.key,
            "value": item.value,
            "ttl": item.ttl,
            "expires_at": time.time() + item.ttl if item.expires else None,
        }
        try:
            return pickle.dumps(payload, protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CacheSerializationError(
                f"Cannot serialize cache value for key {item.key}: {e}",
                details={"key": item.key, "value_type": type(item.value).__name__},
            )

    def _write(self, item: CacheItem, if_absent: bool) -> bool:
        data = self._serialize(item)
        path = self._path(item.key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".neo_cache.", suffix=".tmp", dir=self.directory)
        except OSError as e:
            raise CacheError(f"Cannot write cache file for key {item.key}: {e}")

        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
            if not if_absent:
                os.replace(tmp_path, path)
                return True
            return self._publish_if_absent(tmp_path, path)
        except OSError as e:
            raise CacheError(f"Cannot write cache file for key {item.key}: {e}")
        finally:
            try:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
            except OSError:
                logger.warning(f"Cannot remove temporary cache file {tmp_path}")

    def _publish_if_absent(self, tmp_path: str, path: Path) -> bool:
        """Publish tmp_path as path unless a live item is already there.

        The check and the rename run under an exclusive flock on the
        directory lock file, which serializes conditional writers across
        threads and processes.
        """
        with open(self.directory / LOCK_FILE, "a+b") as lock_fh:
            fcntl.flock(lock_fh.fileno(), fcntl.LOCK_EX)
            try:
                payload = self._read(path)
                if payload is not None and not self._is_expired(payload):
                    return False
                os.replace(tmp_path, path)
                return True
            finally:
                fcntl.flock(lock_fh.fileno(), fcntl.LOCK_UN)
