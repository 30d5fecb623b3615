# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
In-memory cache backend.

The default backend: a dict guarded by an asyncio.Lock, with optional LRU
eviction once ``max_entries`` is reached.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Any

from .base import CacheBackend, HealthCheckResult

logger = logging.getLogger(__name__)


class MemoryCacheBackend(CacheBackend):
    """
    Process-local cache storage.

    Example:
        >>> backend = MemoryCacheBackend(max_entries=1000)
        >>> await backend.set("doc-1", {"payload": {...}})
    """

    def __init__(
        self,
        namespace: str = "request_governor",
        max_entries: int | None = None,
    ):
        super().__init__(namespace)
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1 or None")
        self._max_entries = max_entries
        self._data: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._lock:
            value = self._data.get(key)
            if value is not None:
                self._data.move_to_end(key)
            return value

    async def set(self, key: str, value: dict[str, Any]) -> None:
        async with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            if self._max_entries is not None:
                while len(self._data) > self._max_entries:
                    evicted, _ = self._data.popitem(last=False)
                    logger.debug(f"Evicted LRU cache entry {evicted}")

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._data.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(
            healthy=True,
            backend_type="memory",
            namespace=self.namespace,
            metadata={"entries": len(self._data), "max_entries": self._max_entries},
        )

    def __len__(self) -> int:
        return len(self._data)


__all__ = [
    "MemoryCacheBackend",
]
