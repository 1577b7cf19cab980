"""Cache configuration for neo-cache."""

from typing import Any, ClassVar, Dict, List, Mapping, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .protocols import CacheBackend


class CacheSettings(BaseSettings):
    """Cache facade and backend settings.

    Values come from constructor arguments, then ``NEO_CACHE_*`` environment
    variables, then the defaults below.
    """

    model_config = SettingsConfigDict(
        env_prefix="NEO_CACHE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Backend selection
    adapter: str = Field(default=CacheBackend.MEMORY.value, description="Item store backend name")

    # Facade behaviour
    context: str = Field(default="__default", min_length=1, description="Namespace isolating this application")
    default_group: str = Field(default="default", min_length=1, description="Group used when none is given")
    ttl: int = Field(default=900, ge=0, description="Default entry TTL in seconds, 0 for no expiry")

    # Index lock
    lock_ttl: int = Field(default=30, ge=1, description="Lock sentinel TTL in seconds")
    lock_retry_interval: float = Field(default=0.0001, gt=0, description="Pause between lock attempts in seconds")
    lock_max_attempts: int = Field(default=300, ge=1, description="Lock attempts before giving up")

    # Memory backend
    memory_max_size: int = Field(default=0, ge=0, description="Max memory entries, 0 for unbounded")

    # File backend
    file_path: Optional[str] = Field(default=None, description="Directory holding file cache entries")

    # Redis backend
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    redis_key_prefix: str = Field(default="", description="Prefix prepended to every Redis key")

    # Memcached backend
    memcached_servers: List[str] = Field(default_factory=lambda: ["localhost:11211"], description="Memcached servers")

    # Backend-specific extras passed through to the backend builder
    options: Dict[str, Any] = Field(default_factory=dict, description="Extra backend options")

    @field_validator("adapter")
    @classmethod
    def normalize_adapter(cls, v: str) -> str:
        """Adapter names are case-insensitive."""
        return v.strip().lower()

    @field_validator("memcached_servers", mode="before")
    @classmethod
    def validate_servers(cls, v):
        """Accept ``host:port`` strings or ``[host, port, weight]`` entries."""
        if isinstance(v, str):
            v = [v]
        servers = []
        for server in v:
            if isinstance(server, (list, tuple)):
                if len(server) < 2:
                    raise ValueError(f"Invalid memcached server entry: {server!r}")
                server = f"{server[0]}:{server[1]}"
            if ":" not in server:
                raise ValueError(f"Invalid memcached server format: {server}. Expected 'host:port'")
            servers.append(server)
        return servers

    @model_validator(mode="after")
    def validate_lock_budget(self) -> "CacheSettings":
        """A stale lock must outlive every waiter's retry budget."""
        if self.lock_ttl <= self.lock_retry_interval * self.lock_max_attempts:
            raise ValueError("lock_ttl must exceed lock_retry_interval * lock_max_attempts")
        return self

    # Option names used by flat configuration mappings
    OPTION_ALIASES: ClassVar[Dict[str, str]] = {
        "servers": "memcached_servers",
        "path": "file_path",
        "url": "redis_url",
        "prefix": "redis_key_prefix",
        "max_size": "memory_max_size",
        "group": "default_group",
    }

    @classmethod
    def from_options(cls, options: Mapping[str, Any], **overrides: Any) -> "CacheSettings":
        """Build settings from an already-resolved flat option mapping.

        Known option names (and their short aliases such as ``servers`` or
        ``path``) become settings fields; everything else is kept in
        ``options`` for the backend builder.
        """
        values: Dict[str, Any] = {}
        extras: Dict[str, Any] = {}
        for name, value in options.items():
            field_name = cls.OPTION_ALIASES.get(name, name)
            if field_name in cls.model_fields and field_name != "options":
                values[field_name] = value
            else:
                extras[name] = value
        values.update(overrides)
        if extras:
            values["options"] = {**extras, **values.get("options", {})}
        return cls(**values)
