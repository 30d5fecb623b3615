# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Response cache with lazy expiry.

ResponseCache keeps the last payload fetched for each resource key, with a
TTL chosen per resource class. Entries are never evicted actively: an entry
is valid while ``now - fetched_at < ttl`` and is treated as absent (and
dropped) once it is read after that.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ..clock import Clock, SystemClock
from ..observability.constants import (
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CACHE_WRITES_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from .base import CacheBackend, HealthCheckResult
from .memory import MemoryCacheBackend

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """
    One cached payload.

    Attributes:
        key: Resource key
        payload: Cached data (must be JSON-serializable for remote backends)
        fetched_at: Clock time the payload was obtained from its source
        ttl: Seconds the entry stays valid
        resource_class: Resource class the TTL was chosen for
    """

    key: str
    payload: Any = None
    fetched_at: float
    ttl: float = Field(gt=0)
    resource_class: str | None = None

    def is_valid(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl

    def expires_at(self) -> float:
        return self.fetched_at + self.ttl

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CacheEntry":
        return cls.model_validate(dict(data))


class ResponseCache:
    """
    TTL cache of fetched payloads over a pluggable backend.

    Example:
        >>> cache = ResponseCache(default_ttl=900.0, ttls={"submission": 60.0})
        >>> await cache.put("doc-1", payload, resource_class="document")
        >>> entry = await cache.get("doc-1")
    """

    def __init__(
        self,
        backend: CacheBackend | None = None,
        clock: Clock | None = None,
        default_ttl: float = 900.0,
        ttls: Mapping[str, float] | None = None,
        metrics: MetricsCollectorProtocol | None = None,
    ):
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self._backend = backend if backend is not None else MemoryCacheBackend()
        self._clock = clock or SystemClock()
        self._default_ttl = default_ttl
        self._ttls = dict(ttls or {})
        self._metrics = metrics

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    def ttl_for(self, resource_class: str | None) -> float:
        if resource_class is None:
            return self._default_ttl
        return self._ttls.get(resource_class, self._default_ttl)

    async def get(self, key: str) -> CacheEntry | None:
        """Return the valid entry for ``key``, or None on a miss or expiry."""
        raw = await self._backend.get(key)
        entry: CacheEntry | None = None
        if raw is not None:
            try:
                entry = CacheEntry.from_dict(raw)
            except ValidationError as e:
                logger.warning(f"Dropping malformed cache entry {key}: {e}")
                await self._backend.delete(key)

        if entry is not None and not entry.is_valid(self._clock.now()):
            logger.debug(f"Cache entry {key} expired")
            await self._backend.delete(key)
            entry = None

        if self._metrics:
            self._metrics.inc_counter(
                CACHE_HITS_TOTAL if entry is not None else CACHE_MISSES_TOTAL
            )
        return entry

    async def put(
        self,
        key: str,
        payload: Any,
        resource_class: str | None = None,
        ttl: float | None = None,
        fetched_at: float | None = None,
    ) -> CacheEntry:
        """
        Store ``payload`` for ``key``.

        Args:
            key: Resource key
            payload: Data to cache
            resource_class: Selects the TTL when ``ttl`` is not given
            ttl: Explicit TTL in seconds
            fetched_at: When the payload was fetched (defaults to now)
        """
        entry = CacheEntry(
            key=key,
            payload=payload,
            fetched_at=self._clock.now() if fetched_at is None else fetched_at,
            ttl=self.ttl_for(resource_class) if ttl is None else ttl,
            resource_class=resource_class,
        )
        await self._backend.set(key, entry.to_dict())
        if self._metrics:
            self._metrics.inc_counter(CACHE_WRITES_TOTAL)
        return entry

    async def invalidate(self, key: str) -> bool:
        return await self._backend.delete(key)

    async def clear(self) -> None:
        await self._backend.clear()

    async def health_check(self) -> HealthCheckResult:
        return await self._backend.health_check()

    async def close(self) -> None:
        await self._backend.close()


__all__ = [
    "CacheEntry",
    "ResponseCache",
]
