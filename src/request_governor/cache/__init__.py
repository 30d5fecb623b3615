# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Response caching with pluggable storage backends.

Classes:
    ResponseCache: TTL cache evaluated against the governor's clock.
    CacheEntry: One cached payload with its fetch time and TTL.
    CacheBackend: Abstract storage interface.
    MemoryCacheBackend: Process-local storage (default).
    RedisCacheBackend: Shared storage in Redis (requires the ``redis`` extra).
"""

from typing import cast

from .base import CacheBackend, HealthCheckResult
from .memory import MemoryCacheBackend
from .store import CacheEntry, ResponseCache

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "HealthCheckResult",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "ResponseCache",
]


def __getattr__(name: str) -> type:
    """Lazy import for the optional redis backend."""
    if name == "RedisCacheBackend":
        try:
            from request_governor.cache import redis as redis_module

            return cast(type, redis_module.RedisCacheBackend)
        except ImportError as e:  # pragma: no cover
            raise ImportError(  # pragma: no cover
                f"'{name}' requires the 'redis' extra. "
                "Install with: pip install request-governor[redis]"
            ) from e
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
