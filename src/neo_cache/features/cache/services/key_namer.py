"""Cache key naming for namespaced, grouped entries."""

from typing import Any, Tuple
from urllib.parse import unquote

from ....core.exceptions import CacheKeyError

DELIMITER = "-"
DATA_SEGMENT = "cache"
INDEX_SUFFIX = "index"
LOCK_SUFFIX = "index_lock"


def escape_component(component: Any) -> str:
    """Escape a key component so it never contains the delimiter."""
    return str(component).replace("%", "%25").replace(DELIMITER, "%2D")


def unescape_component(component: str) -> str:
    """Reverse ``escape_component``."""
    return unquote(component)


class KeyNamer:
    """Builds backend keys of the form ``{namespace}-cache-{group}-{identifier}``.

    Components are percent-escaped (``%`` and ``-`` only), so keys built
    from different (namespace, group, identifier) triples never collide and
    the group prefix of one group is never a prefix of another group's keys.
    Reserved keys per namespace are ``{namespace}-index`` for the
    invalidation index and ``{namespace}-index_lock`` for its lock.
    """

    def name(self, namespace: str, group: Any, identifier: Any) -> str:
        """Build the backend key for an entry."""
        return f"{self.group_prefix(namespace, group)}{escape_component(identifier)}"

    def namespace_prefix(self, namespace: str) -> str:
        """Prefix shared by every data key of a namespace."""
        self._require("namespace", namespace)
        return f"{escape_component(namespace)}{DELIMITER}{DATA_SEGMENT}{DELIMITER}"

    def group_prefix(self, namespace: str, group: Any) -> str:
        """Prefix shared by every data key of a group."""
        self._require("group", group)
        return f"{self.namespace_prefix(namespace)}{escape_component(group)}{DELIMITER}"

    def index_key(self, namespace: str) -> str:
        """Key of the namespace's invalidation index."""
        self._require("namespace", namespace)
        return f"{escape_component(namespace)}{DELIMITER}{INDEX_SUFFIX}"

    def lock_key(self, namespace: str) -> str:
        """Key of the namespace's index lock sentinel."""
        self._require("namespace", namespace)
        return f"{escape_component(namespace)}{DELIMITER}{LOCK_SUFFIX}"

    def parse(self, key: str) -> Tuple[str, str, str]:
        """Split a data key back into (namespace, group, identifier).

        Raises:
            CacheKeyError: If the key was not built by ``name``
        """
        parts = key.split(DELIMITER)
        if len(parts) != 4 or parts[1] != DATA_SEGMENT:
            raise CacheKeyError(f"Not a cache data key: {key}", details={"key": key})
        namespace, _, group, identifier = parts
        return unescape_component(namespace), unescape_component(group), unescape_component(identifier)

    @staticmethod
    def _require(label: str, value: Any) -> None:
        if value is None or str(value) == "":
            raise CacheKeyError(f"Cache {label} cannot be empty")
