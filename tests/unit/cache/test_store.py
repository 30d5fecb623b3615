"""
Unit tests for ResponseCache and CacheEntry.
"""

import json

import pytest
from pydantic import ValidationError

from request_governor.cache import CacheEntry, MemoryCacheBackend, ResponseCache
from request_governor.observability.constants import (
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CACHE_WRITES_TOTAL,
)


class TestCacheEntry:
    def test_validity_boundary(self):
        entry = CacheEntry(key="doc-1", payload={"a": 1}, fetched_at=100.0, ttl=60.0)
        assert entry.is_valid(159.9)
        assert not entry.is_valid(160.0)
        assert entry.expires_at() == 160.0

    def test_dict_round_trip_through_json(self):
        entry = CacheEntry(
            key="doc-1",
            payload={"uuid": "doc-1", "status": "Valid"},
            fetched_at=100.0,
            ttl=900.0,
            resource_class="document",
        )
        restored = CacheEntry.from_dict(json.loads(json.dumps(entry.to_dict())))
        assert restored == entry

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValidationError):
            CacheEntry(key="doc-1", fetched_at=0.0, ttl=0)


class TestResponseCache:
    @pytest.mark.asyncio
    async def test_present_until_ttl(self, clock):
        """An entry written at T with ttl D is present at T+D-e and absent at T+D+e."""
        cache = ResponseCache(clock=clock, default_ttl=60.0)
        await cache.put("doc-1", {"status": "Valid"})

        clock.advance(59.5)
        entry = await cache.get("doc-1")
        assert entry is not None
        assert entry.payload == {"status": "Valid"}
        assert entry.fetched_at == 1000.0

        clock.advance(1.0)
        assert await cache.get("doc-1") is None

    @pytest.mark.asyncio
    async def test_expired_entry_dropped_on_read(self, clock):
        backend = MemoryCacheBackend()
        cache = ResponseCache(backend=backend, clock=clock, default_ttl=10.0)
        await cache.put("doc-1", "payload")
        clock.advance(11.0)
        assert await cache.get("doc-1") is None
        assert len(backend) == 0

    @pytest.mark.asyncio
    async def test_per_resource_class_ttl(self, clock):
        cache = ResponseCache(clock=clock, default_ttl=900.0, ttls={"submission": 30.0})
        await cache.put("sub-1", "s", resource_class="submission")
        await cache.put("doc-1", "d", resource_class="document")
        clock.advance(31.0)
        assert await cache.get("sub-1") is None
        assert (await cache.get("doc-1")).payload == "d"
        assert cache.ttl_for("submission") == 30.0
        assert cache.ttl_for(None) == 900.0

    @pytest.mark.asyncio
    async def test_explicit_ttl_and_fetched_at(self, clock):
        cache = ResponseCache(clock=clock)
        entry = await cache.put("doc-1", "x", ttl=5.0, fetched_at=998.0)
        assert entry.ttl == 5.0
        clock.advance(3.0)
        assert await cache.get("doc-1") is None

    @pytest.mark.asyncio
    async def test_put_replaces(self, clock):
        cache = ResponseCache(clock=clock)
        await cache.put("doc-1", "old")
        clock.advance(1.0)
        await cache.put("doc-1", "new")
        entry = await cache.get("doc-1")
        assert entry.payload == "new"
        assert entry.fetched_at == 1001.0

    @pytest.mark.asyncio
    async def test_malformed_entry_treated_as_miss(self, clock):
        backend = MemoryCacheBackend()
        cache = ResponseCache(backend=backend, clock=clock)
        await backend.set("doc-1", {"payload": "no key or timestamps"})
        assert await cache.get("doc-1") is None
        assert await backend.get("doc-1") is None

    @pytest.mark.asyncio
    async def test_invalidate_and_clear(self, clock):
        cache = ResponseCache(clock=clock)
        await cache.put("doc-1", 1)
        await cache.put("doc-2", 2)
        assert await cache.invalidate("doc-1") is True
        assert await cache.invalidate("doc-1") is False
        await cache.clear()
        assert await cache.get("doc-2") is None

    @pytest.mark.asyncio
    async def test_metrics(self, clock, metrics):
        cache = ResponseCache(clock=clock, metrics=metrics)
        await cache.get("doc-1")
        await cache.put("doc-1", 1)
        await cache.get("doc-1")
        assert metrics.get_counter(CACHE_MISSES_TOTAL) == 1
        assert metrics.get_counter(CACHE_WRITES_TOTAL) == 1
        assert metrics.get_counter(CACHE_HITS_TOTAL) == 1

    @pytest.mark.asyncio
    async def test_health_and_close_delegate(self, clock):
        cache = ResponseCache(clock=clock)
        result = await cache.health_check()
        assert result.healthy
        assert result.backend_type == "memory"
        await cache.close()

    def test_invalid_default_ttl(self):
        with pytest.raises(ValueError):
            ResponseCache(default_ttl=0)

    @pytest.mark.asyncio
    async def test_empty_injected_backend_is_kept(self, clock):
        """An empty MemoryCacheBackend is falsy but must still be used."""
        backend = MemoryCacheBackend(max_entries=1)
        cache = ResponseCache(backend, clock)
        assert cache.backend is backend

        await cache.put("doc-1", 1)
        await cache.put("doc-2", 2)
        assert len(backend) == 1
        assert await cache.get("doc-1") is None
