"""Pytest configuration and fixtures for neo-cache tests."""

import asyncio

import pytest

from neo_cache.features.cache.adapters.memory_adapter import MemoryAdapter
from neo_cache.features.cache.entities.item import CacheItem
from neo_cache.features.cache.entities.config import CacheSettings
from neo_cache.features.cache.services.cache_service import CacheService
from neo_cache.features.cache.services.key_namer import KeyNamer


@pytest.fixture(autouse=True)
def clean_cache_environment(monkeypatch):
    """Keep NEO_CACHE_* variables of the host out of the tests."""
    import os

    for name in list(os.environ):
        if name.startswith("NEO_CACHE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def memory_store():
    """Fresh in-memory item store."""
    return MemoryAdapter()


class YieldingMemoryAdapter(MemoryAdapter):
    """Memory store that suspends before every read and write.

    Concurrent tasks interleave between loading and saving the index, as
    they do against a networked backend.
    """

    async def get_item(self, key: str) -> CacheItem:
        await asyncio.sleep(0)
        return await super().get_item(key)

    async def save(self, item: CacheItem, if_absent: bool = False) -> bool:
        await asyncio.sleep(0)
        return await super().save(item, if_absent=if_absent)


@pytest.fixture
def yielding_store():
    """In-memory item store that yields to other tasks on every call."""
    return YieldingMemoryAdapter()


@pytest.fixture
def namer():
    """Key namer."""
    return KeyNamer()


@pytest.fixture
def cache_settings():
    """Settings with a generous lock budget for concurrent tests."""
    return CacheSettings(
        context="app1",
        default_group="default",
        ttl=900,
        lock_ttl=30,
        lock_retry_interval=0.001,
        lock_max_attempts=2000,
    )


@pytest.fixture
def cache(memory_store, cache_settings):
    """Cache service over the in-memory store."""
    return CacheService(memory_store, cache_settings)
