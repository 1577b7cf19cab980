"""Tests for the cache service facade."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from neo_cache.core.exceptions import CacheConnectionError, CacheError
from neo_cache.features.cache.adapters.file_adapter import FileAdapter
from neo_cache.features.cache.adapters.memory_adapter import MemoryAdapter
from neo_cache.features.cache.adapters.null_adapter import NullAdapter
from neo_cache.features.cache.entities.config import CacheSettings
from neo_cache.features.cache.entities.item import CacheItem, MISS
from neo_cache.features.cache.services.cache_service import CacheService


async def data_keys(store, namer, context="app1"):
    """Backend keys of a context's data entries."""
    prefix = namer.namespace_prefix(context)
    return sorted(key for key in await store.get_keys() if key.startswith(prefix))


class TestCacheServiceReadWrite:
    """Test cases for get/set/delete."""

    @pytest.mark.asyncio
    async def test_get_before_set_misses(self, cache):
        """Test a never-written entry reads as MISS."""
        assert await cache.get("a") is MISS
        assert await cache.get("a", default="fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_set_then_get(self, cache, memory_store):
        """Test a written value is readable and indexed under its key."""
        assert await cache.set({"name": "Ada"}, "user1", "users") is True

        assert await cache.get("user1", "users") == {"name": "Ada"}
        assert await cache.index_keys() == ["app1-cache-users-user1"]
        assert (await memory_store.get_item("app1-cache-users-user1")).ttl == 900

    @pytest.mark.asyncio
    async def test_default_group(self, cache):
        """Test omitting the group uses the default group."""
        await cache.set(1, "a")

        assert await cache.get("a", "default") == 1
        assert await cache.index_keys() == ["app1-cache-default-a"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [False, 0, "", None, []])
    async def test_falsy_values_are_hits(self, cache, value):
        """Test falsy values are distinguishable from a miss."""
        await cache.set(value, "a")

        assert await cache.get("a") == value
        assert await cache.get("a") is not MISS

    @pytest.mark.asyncio
    async def test_overwrite_keeps_single_index_entry(self, cache):
        """Test rewriting a key does not duplicate its index entry."""
        await cache.set(1, "a")
        await cache.set(2, "a")

        assert await cache.get("a") == 2
        assert await cache.index_keys() == ["app1-cache-default-a"]

    @pytest.mark.asyncio
    async def test_explicit_ttl_expires(self, cache):
        """Test an entry written with a TTL disappears after it."""
        await cache.set("v", "a", ttl=1)
        assert await cache.get("a") == "v"

        await asyncio.sleep(1.1)
        assert await cache.get("a") is MISS

    @pytest.mark.asyncio
    async def test_zero_ttl_never_expires(self, cache, memory_store):
        """Test ttl 0 stores the entry without expiry."""
        await cache.set("v", "a", ttl=0)

        assert not (await memory_store.get_item("app1-cache-default-a")).expires

    @pytest.mark.asyncio
    async def test_negative_ttl_refused(self, cache, memory_store):
        """Test negative TTLs are rejected without writing."""
        assert await cache.set("v", "a", ttl=-5) is False
        assert await memory_store.get_keys() == []

    @pytest.mark.asyncio
    async def test_delete(self, cache):
        """Test delete removes the value and its index entry."""
        await cache.set(1, "a")
        await cache.set(2, "b")

        assert await cache.delete("a") is True
        assert await cache.get("a") is MISS
        assert await cache.get("b") == 2
        assert await cache.index_keys() == ["app1-cache-default-b"]

    @pytest.mark.asyncio
    async def test_delete_absent_is_idempotent(self, cache):
        """Test deleting a missing entry succeeds."""
        assert await cache.delete("never-written") is True
        assert await cache.delete("never-written") is True

    @pytest.mark.asyncio
    async def test_get_all_lists_backend_items(self, cache):
        """Test get_all returns stored values keyed by backend key."""
        await cache.set(1, "a", "g1")
        await cache.set(2, "b", "g2")

        items = await cache.get_all()

        assert items["app1-cache-g1-a"] == 1
        assert items["app1-cache-g2-b"] == 2

    @pytest.mark.asyncio
    async def test_empty_group_rejected(self, cache):
        """Test an empty group name reports failure instead of raising."""
        assert await cache.set(1, "a", "") is False
        assert await cache.get("a", "") is MISS
        assert await cache.delete("a", "") is False


class TestCacheServiceClean:
    """Test cases for group invalidation."""

    @pytest.mark.asyncio
    async def test_clean_group(self, cache):
        """Test cleaning a group removes only that group's entries."""
        await cache.set("A", "a", "g1")
        await cache.set("B", "b", "g2")

        assert await cache.clean("g1", "group") is True

        assert await cache.get("a", "g1") is MISS
        assert await cache.get("b", "g2") == "B"
        assert await cache.index_keys() == ["app1-cache-g2-b"]

    @pytest.mark.asyncio
    async def test_clean_notgroup(self, cache):
        """Test notgroup keeps the named group and removes everything else."""
        await cache.set("A", "a", "g1")
        await cache.set("B", "b", "g2")
        await cache.set("C", "c", "g3")

        assert await cache.clean("g1", "notgroup") is True

        assert await cache.get("a", "g1") == "A"
        assert await cache.get("b", "g2") is MISS
        assert await cache.get("c", "g3") is MISS
        assert await cache.index_keys() == ["app1-cache-g1-a"]

    @pytest.mark.asyncio
    async def test_unknown_mode_behaves_as_notgroup(self, cache):
        """Test any mode other than group inverts the match."""
        await cache.set("A", "a", "g1")
        await cache.set("B", "b", "g2")

        assert await cache.clean("g1", "everything") is True

        assert await cache.get("a", "g1") == "A"
        assert await cache.get("b", "g2") is MISS

    @pytest.mark.asyncio
    async def test_clean_does_not_touch_similar_group(self, cache):
        """Test cleaning g1 leaves g10 alone."""
        await cache.set("A", "a", "g1")
        await cache.set("B", "b", "g10")

        await cache.clean("g1", "group")

        assert await cache.get("b", "g10") == "B"

    @pytest.mark.asyncio
    async def test_clean_empty_context(self, cache):
        """Test cleaning a context with no entries succeeds."""
        assert await cache.clean("g1", "group") is True
        assert await cache.index_keys() == []

    @pytest.mark.asyncio
    async def test_clean_misses_unindexed_entries(self, cache, memory_store):
        """Test index-based clean only reaches indexed keys, clean_scan reaches all."""
        await memory_store.save(CacheItem(key="app1-cache-g1-orphan", value="x"))
        await cache.set("A", "a", "g1")

        await cache.clean("g1", "group")
        assert (await memory_store.get_item("app1-cache-g1-orphan")).hit

        assert await cache.clean_scan("g1", "group") is True
        assert not (await memory_store.get_item("app1-cache-g1-orphan")).hit

    @pytest.mark.asyncio
    async def test_clean_scan_updates_index(self, cache, memory_store, namer):
        """Test clean_scan removes swept keys from the index."""
        await cache.set("A", "a", "g1")
        await cache.set("B", "b", "g2")
        await memory_store.save(CacheItem(key="app2-cache-g2-x", value="other tenant"))

        assert await cache.clean_scan("g1", "notgroup") is True

        assert await cache.index_keys() == ["app1-cache-g1-a"]
        assert await data_keys(memory_store, namer) == ["app1-cache-g1-a"]
        assert (await memory_store.get_item("app2-cache-g2-x")).hit

    @pytest.mark.asyncio
    async def test_clean_scan_unsupported_backend(self, cache_settings):
        """Test clean_scan reports failure when keys cannot be enumerated."""
        store = MemoryAdapter()
        store.get_keys = AsyncMock(side_effect=CacheError("enumeration not supported"))
        cache = CacheService(store, cache_settings)

        assert await cache.clean_scan("g1", "group") is False

    @pytest.mark.asyncio
    async def test_clean_reports_delete_failure(self, cache, memory_store):
        """Test a failed bulk delete is reported as False."""
        await cache.set("A", "a", "g1")
        memory_store.delete_items = AsyncMock(return_value=False)

        assert await cache.clean("g1", "group") is False
        assert await cache.index_keys() == ["app1-cache-g1-a"]


class TestCacheServiceIndexIntegrity:
    """Test cases for the index under failures and concurrency."""

    @pytest.mark.asyncio
    async def test_lock_busy_aborts_writes(self, memory_store, namer):
        """Test writes report failure while another holder owns the lock."""
        settings = CacheSettings(context="app1", lock_retry_interval=0.001, lock_max_attempts=3)
        cache = CacheService(memory_store, settings)
        await memory_store.save(CacheItem(key=namer.lock_key("app1"), value="other", ttl=30))

        assert await cache.set(1, "a") is False
        assert await cache.delete("a") is False
        assert await cache.clean("default", "group") is False
        assert await cache.index_keys() is None
        assert not (await memory_store.get_item("app1-cache-default-a")).hit

    @pytest.mark.asyncio
    async def test_reads_ignore_lock(self, cache, memory_store, namer):
        """Test get works while the lock is held elsewhere."""
        await cache.set(1, "a")
        await memory_store.save(CacheItem(key=namer.lock_key("app1"), value="other", ttl=30))

        assert await cache.get("a") == 1

    @pytest.mark.asyncio
    async def test_failed_save_rolls_back_index(self, cache, memory_store):
        """Test a rejected data write does not leave its key indexed."""
        original_save = memory_store.save

        async def reject_data(item, if_absent=False):
            if item.key.startswith("app1-cache-"):
                return False
            return await original_save(item, if_absent=if_absent)

        memory_store.save = AsyncMock(side_effect=reject_data)

        assert await cache.set(1, "a") is False

        assert await cache.index_keys() == []

    @pytest.mark.asyncio
    async def test_failed_overwrite_keeps_existing_index_entry(self, cache, memory_store):
        """Test a rejected overwrite leaves the previous entry indexed."""
        await cache.set(1, "a")
        original_save = memory_store.save

        async def reject_data(item, if_absent=False):
            if item.key.startswith("app1-cache-"):
                raise CacheError("write failed")
            return await original_save(item, if_absent=if_absent)

        memory_store.save = AsyncMock(side_effect=reject_data)

        assert await cache.set(2, "a") is False
        assert await cache.index_keys() == ["app1-cache-default-a"]
        assert await cache.get("a") == 1

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, cache, memory_store, namer):
        """Test the lock sentinel is gone after a failed clean."""
        memory_store.delete_items = AsyncMock(side_effect=CacheError("down"))
        await cache.set(1, "a")

        assert await cache.clean("default", "group") is False
        assert not (await memory_store.get_item(namer.lock_key("app1"))).hit

    @pytest.mark.asyncio
    async def test_expired_entries_leave_index(self, cache, memory_store, namer):
        """Test the index drops entries once their TTL has passed."""
        for i in range(5):
            assert await cache.set(i, f"k{i}", ttl=1) is True
        await cache.set("kept", "forever", ttl=0)

        await asyncio.sleep(1.1)

        assert await cache.index_keys() == await data_keys(memory_store, namer)
        assert await cache.index_keys() == ["app1-cache-default-forever"]

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_entry_indexed(self, cache, memory_store):
        """Test an entry whose deletion failed stays reachable by clean."""
        await cache.set("A", "a", "g1")
        original_delete = memory_store.delete_item

        async def fail_data(key):
            if key.startswith("app1-cache-"):
                raise CacheError("delete failed")
            return await original_delete(key)

        memory_store.delete_item = AsyncMock(side_effect=fail_data)

        assert await cache.delete("a", "g1") is False
        assert await cache.index_keys() == ["app1-cache-g1-a"]

        assert await cache.clean("g1", "group") is True
        assert not (await memory_store.get_item("app1-cache-g1-a")).hit

    @pytest.mark.asyncio
    async def test_rejected_delete_keeps_entry_indexed(self, cache, memory_store):
        """Test a delete the store refuses leaves the index untouched."""
        await cache.set("A", "a", "g1")
        original_delete = memory_store.delete_item

        async def refuse_data(key):
            if key.startswith("app1-cache-"):
                return False
            return await original_delete(key)

        memory_store.delete_item = AsyncMock(side_effect=refuse_data)

        assert await cache.delete("a", "g1") is False
        assert await cache.index_keys() == ["app1-cache-g1-a"]

    @pytest.mark.asyncio
    async def test_set_context_during_write(self, yielding_store, cache_settings, namer):
        """Test a write keeps its namespace when the context switches mid-call."""
        cache = CacheService(yielding_store, cache_settings)

        write = asyncio.ensure_future(cache.set(1, "a"))
        await asyncio.sleep(0)
        cache.set_context("app2")
        assert await write is True

        assert await data_keys(yielding_store, namer, "app1") == ["app1-cache-default-a"]
        assert await cache.with_context("app1").index_keys() == ["app1-cache-default-a"]
        assert await cache.index_keys() == []

    @pytest.mark.asyncio
    async def test_concurrent_writers_keep_index_complete(self, yielding_store, cache_settings, namer):
        """Test interleaved sets and deletes leave index and backend in agreement."""
        cache = CacheService(yielding_store, cache_settings)
        writers = [cache.set(i, f"k{i}", f"g{i % 3}") for i in range(30)]
        results = await asyncio.gather(*writers)
        assert all(results)

        mixed = [cache.delete(f"k{i}", f"g{i % 3}") for i in range(0, 30, 2)]
        mixed += [cache.set(i, f"n{i}", "g9") for i in range(10)]
        results = await asyncio.gather(*mixed)
        assert all(results)

        assert sorted(await cache.index_keys()) == await data_keys(yielding_store, namer)
        assert len(await cache.index_keys()) == 25

    @pytest.mark.asyncio
    async def test_lock_serializes_index_updates(self, yielding_store, cache_settings):
        """Test no two index read-modify-write sections overlap."""
        cache = CacheService(yielding_store, cache_settings)
        active = 0
        overlaps = []
        original_add = cache._index.add

        async def tracked_add(namespace, key, ttl=None):
            nonlocal active
            active += 1
            overlaps.append(active)
            try:
                return await original_add(namespace, key, ttl)
            finally:
                active -= 1

        cache._index.add = tracked_add

        results = await asyncio.gather(*[cache.set(i, f"k{i}") for i in range(20)])

        assert all(results)
        assert max(overlaps) == 1
        assert len(await cache.index_keys()) == 20

    @pytest.mark.asyncio
    async def test_concurrent_services_share_lock(self, yielding_store, cache_settings, namer):
        """Test two facades over one store serialize index updates."""
        first = CacheService(yielding_store, cache_settings)
        second = CacheService(yielding_store, cache_settings)

        results = await asyncio.gather(
            *[first.set(i, f"a{i}") for i in range(15)],
            *[second.set(i, f"b{i}") for i in range(15)],
        )

        assert all(results)
        assert sorted(await first.index_keys()) == await data_keys(yielding_store, namer)
        assert len(await data_keys(yielding_store, namer)) == 30

    @pytest.mark.asyncio
    async def test_services_sharing_a_cache_directory(self, tmp_path, cache_settings, namer):
        """Test facades over separate file stores on one directory keep one complete index."""
        first = CacheService(FileAdapter(tmp_path), cache_settings)
        second = CacheService(FileAdapter(tmp_path), cache_settings)

        results = await asyncio.gather(
            *[first.set(i, f"a{i}", "g1") for i in range(10)],
            *[second.set(i, f"b{i}", "g2") for i in range(10)],
        )

        assert all(results)
        assert sorted(await second.index_keys()) == await data_keys(first.store, namer)
        assert len(await first.index_keys()) == 20

        assert await second.clean("g1", "group") is True
        assert await data_keys(first.store, namer) == sorted(f"app1-cache-g2-b{i}" for i in range(10))

    @pytest.mark.asyncio
    async def test_rebuild_index(self, cache, memory_store):
        """Test rebuild_index replaces the index with the backend's data keys."""
        await cache.set(1, "a")
        await memory_store.save(CacheItem(key="app1-cache-g1-orphan", value="x"))
        await memory_store.save(CacheItem(key="app2-cache-g1-other", value="y"))

        assert await cache.rebuild_index() is True

        assert await cache.index_keys() == ["app1-cache-default-a", "app1-cache-g1-orphan"]


class TestCacheServiceContext:
    """Test cases for namespaces and lifecycle."""

    @pytest.mark.asyncio
    async def test_contexts_are_isolated(self, cache):
        """Test entries and invalidation stay within their context."""
        other = cache.with_context("app2")
        await cache.set("mine", "a", "g1")
        await other.set("theirs", "a", "g1")

        assert await other.get("a", "g1") == "theirs"

        await other.clean("g1", "group")

        assert await cache.get("a", "g1") == "mine"
        assert await other.get("a", "g1") is MISS
        assert cache.context == "app1"
        assert other.context == "app2"

    @pytest.mark.asyncio
    async def test_set_context_is_chainable(self, cache):
        """Test set_context switches the namespace in place."""
        assert cache.set_context("app3") is cache
        await cache.set(1, "a")

        assert cache.get_context() == "app3"
        assert await cache.index_keys() == ["app3-cache-default-a"]

    def test_defaults_from_settings(self, memory_store):
        """Test defaults of a service built without settings."""
        cache = CacheService(memory_store)

        assert cache.context == "__default"
        assert cache.default_group == "default"
        assert cache.ttl == 900

    @pytest.mark.asyncio
    async def test_connection_failure_reported(self, cache_settings):
        """Test an unreachable backend turns every operation into a failure result."""
        store = AsyncMock()
        store.connect.side_effect = CacheConnectionError("unreachable")
        cache = CacheService(store, cache_settings)

        assert await cache.get("a") is MISS
        assert await cache.set(1, "a") is False
        assert await cache.delete("a") is False
        assert await cache.clean("g1", "group") is False
        assert await cache.get_all() == {}
        assert await cache.rebuild_index() is False

    @pytest.mark.asyncio
    async def test_initialize_and_shutdown(self, cache_settings):
        """Test lifecycle connects and disconnects the store once."""
        store = AsyncMock()
        cache = CacheService(store, cache_settings)

        await cache.initialize()
        await cache.initialize()
        await cache.shutdown()
        await cache.shutdown()

        store.connect.assert_awaited_once()
        store.disconnect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_null_store_passes_through(self, cache_settings):
        """Test the null store accepts writes and never hits."""
        cache = CacheService(NullAdapter(), cache_settings)

        assert await cache.set(1, "a") is True
        assert await cache.get("a") is MISS
        assert await cache.clean("default", "group") is True

    @pytest.mark.asyncio
    async def test_health_check_and_stats(self, cache):
        """Test health and stats reporting."""
        await cache.set(1, "a")

        health = await cache.health_check()
        stats = await cache.stats()

        assert health == {"healthy": True, "context": "app1"}
        assert stats["indexed_keys"] == 1
        assert stats["store"] == "MemoryAdapter"
        assert stats["backend"]["backend_type"] == "memory"
