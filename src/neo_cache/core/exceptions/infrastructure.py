"""Infrastructure exceptions for neo-cache.

Cache errors are steady-state failures: the cache facade catches them and
reports a boolean result. Configuration errors are raised at construction
time and are never swallowed.
"""

from .base import NeoCacheError


class CacheConfigurationError(NeoCacheError):
    """Raised when a cache cannot be built from the given configuration."""
    pass


class CacheError(NeoCacheError):
    """Base class for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """Raised when the cache backend cannot be reached."""
    pass


class CacheKeyError(CacheError):
    """Raised when a cache key is invalid or cannot be parsed."""
    pass


class CacheSerializationError(CacheError):
    """Raised when cache value serialization/deserialization fails."""
    pass


class CacheTimeoutError(CacheError):
    """Raised when cache operation times out."""
    pass


class IndexPersistenceError(CacheError):
    """Raised when the invalidation index could not be written back."""
    pass
