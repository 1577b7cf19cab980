"""Backend registry: builds item stores and cache services from settings."""

import inspect
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ..adapters import FileAdapter, MemcachedAdapter, MemoryAdapter, NullAdapter, RedisAdapter
from ..entities.config import CacheSettings
from ..entities.protocols import CacheBackend, ItemStore
from .cache_service import CacheService
from ....core.exceptions import CacheConfigurationError

logger = logging.getLogger(__name__)

StoreBuilder = Callable[[CacheSettings], ItemStore]


def accepted_options(store_class: type, options: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep the options ``store_class`` accepts as constructor arguments.

    Shared configuration blocks carry options meant for other backends
    (such as memcached's ``persistent_id``); those are logged and dropped.
    Constructors taking ``**kwargs`` receive every option.
    """
    parameters = inspect.signature(store_class).parameters
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in parameters.values()):
        return dict(options)

    accepted = {name: value for name, value in options.items() if name in parameters}
    ignored = sorted(set(options) - set(accepted))
    if ignored:
        logger.warning(f"Ignoring options not used by {store_class.__name__}: {', '.join(ignored)}")
    return accepted


def _build_memory(settings: CacheSettings) -> ItemStore:
    return MemoryAdapter(max_size=settings.memory_max_size)


def _build_file(settings: CacheSettings) -> ItemStore:
    return FileAdapter(settings.file_path)


def _build_redis(settings: CacheSettings) -> ItemStore:
    return RedisAdapter(
        url=settings.redis_url,
        key_prefix=settings.redis_key_prefix,
        **settings.options,
    )


def _build_memcached(settings: CacheSettings) -> ItemStore:
    options = accepted_options(MemcachedAdapter, settings.options)
    options.pop("servers", None)
    return MemcachedAdapter(servers=settings.memcached_servers, **options)


def _build_none(settings: CacheSettings) -> ItemStore:
    return NullAdapter()


_BUILDERS: Dict[str, StoreBuilder] = {
    CacheBackend.MEMORY.value: _build_memory,
    CacheBackend.FILE.value: _build_file,
    CacheBackend.REDIS.value: _build_redis,
    CacheBackend.MEMCACHED.value: _build_memcached,
    CacheBackend.NONE.value: _build_none,
}

_STORE_CLASSES: Dict[str, type] = {
    CacheBackend.MEMORY.value: MemoryAdapter,
    CacheBackend.FILE.value: FileAdapter,
    CacheBackend.REDIS.value: RedisAdapter,
    CacheBackend.MEMCACHED.value: MemcachedAdapter,
    CacheBackend.NONE.value: NullAdapter,
}


def register_backend(name: str, store_class: type, builder: Optional[StoreBuilder] = None) -> None:
    """Register an item store under a backend name.

    Args:
        name: Backend name used in ``CacheSettings.adapter``
        store_class: Item store class; its ``is_supported`` is checked on build
        builder: Callable building the store from settings, defaults to
            calling ``store_class`` with the options its constructor accepts
    """
    name = name.strip().lower()
    _STORE_CLASSES[name] = store_class
    _BUILDERS[name] = builder or (lambda settings: store_class(**accepted_options(store_class, settings.options)))
    logger.debug(f"Registered cache backend {name}: {store_class.__name__}")


def available_backends() -> Dict[str, bool]:
    """Map every registered backend name to its availability."""
    return {name: bool(cls.is_supported()) for name, cls in _STORE_CLASSES.items()}


def create_store(settings: CacheSettings) -> ItemStore:
    """Build the item store selected by ``settings.adapter``.

    Raises:
        CacheConfigurationError: If the backend is unknown, unsupported in
            this environment, or rejects its options
    """
    name = settings.adapter
    if name not in _BUILDERS:
        raise CacheConfigurationError(
            f"{name} cache adapter does not exist",
            details={"adapter": name, "available": sorted(_BUILDERS)},
        )

    if not _STORE_CLASSES[name].is_supported():
        raise CacheConfigurationError(f"{name} cache adapter is not supported", details={"adapter": name})

    try:
        store = _BUILDERS[name](settings)
    except (TypeError, ValueError) as e:
        raise CacheConfigurationError(
            f"Invalid options for {name} cache adapter: {e}",
            details={"adapter": name, "options": dict(settings.options)},
        )

    logger.debug(f"Created {name} cache store: {type(store).__name__}")
    return store


def create_cache(settings: Optional[CacheSettings] = None, **overrides: Any) -> CacheService:
    """Build a cache service from settings.

    Keyword overrides are applied on top of ``settings`` (or of the
    environment-derived defaults when no settings are given).
    """
    settings = settings or CacheSettings()
    if overrides:
        try:
            settings = CacheSettings.model_validate({**settings.model_dump(), **overrides})
        except ValueError as e:
            raise CacheConfigurationError(f"Invalid cache settings: {e}")
    return CacheService(create_store(settings), settings)
