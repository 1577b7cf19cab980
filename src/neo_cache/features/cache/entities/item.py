"""Cache item value types."""

from dataclasses import dataclass
from typing import Any, Optional


class _Miss:
    """Explicit cache miss marker, distinct from any stored value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


@dataclass
class CacheItem:
    """A (key, value, expiry) triple exchanged with an item store.

    ``ttl`` is in seconds; ``None`` or ``0`` means the item never expires.
    ``hit`` is False for items returned by a lookup that found nothing.
    """

    key: str
    value: Any = None
    ttl: Optional[int] = None
    hit: bool = True

    @classmethod
    def miss(cls, key: str) -> "CacheItem":
        """Create the result of a failed lookup."""
        return cls(key=key, value=None, ttl=None, hit=False)

    @property
    def expires(self) -> bool:
        """Whether the item carries an expiry."""
        return bool(self.ttl and self.ttl > 0)

    def get(self, default: Any = MISS) -> Any:
        """Get the stored value, or ``default`` for a miss."""
        return self.value if self.hit else default
