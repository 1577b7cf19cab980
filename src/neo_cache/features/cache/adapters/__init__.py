"""Item store adapters for neo-cache."""

from .memory_adapter import MemoryAdapter
from .file_adapter import FileAdapter
from .redis_adapter import RedisAdapter
from .memcached_adapter import MemcachedAdapter
from .null_adapter import NullAdapter

__all__ = ["MemoryAdapter", "FileAdapter", "RedisAdapter", "MemcachedAdapter", "NullAdapter"]
