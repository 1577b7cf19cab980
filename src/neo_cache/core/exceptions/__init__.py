"""Exceptions module for neo-cache."""

from .base import (
    NeoCacheError,
    create_error_response,
)

from .infrastructure import (
    CacheConfigurationError,
    CacheError,
    CacheConnectionError,
    CacheKeyError,
    CacheSerializationError,
    CacheTimeoutError,
    IndexPersistenceError,
)

__all__ = [
    "NeoCacheError",
    "create_error_response",
    "CacheConfigurationError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    "CacheTimeoutError",
    "IndexPersistenceError",
]
