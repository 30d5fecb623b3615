# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Redis cache backend.

Shares cached responses between portal processes. Entries are stored as
JSON strings under ``{namespace}:cache:{key}``. Requires the ``redis``
extra (``pip install request-governor[redis]``).
"""

import json
import logging
import os
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from .base import CacheBackend, HealthCheckResult

logger = logging.getLogger(__name__)


class RedisCacheBackend(CacheBackend):
    """
    Cache storage in Redis.

    Validity is still decided by ResponseCache; ``key_ttl`` only bounds how
    long Redis keeps a key around and should exceed the longest cache TTL.

    Example:
        >>> backend = RedisCacheBackend(redis_url="redis://localhost:6379")
        >>> cache = ResponseCache(backend=backend)
    """

    def __init__(
        self,
        redis_url: str | None = None,
        redis_client: Any | None = None,
        namespace: str = "request_governor",
        key_ttl: int | None = 86400,  # 24 hours
    ):
        """
        Initialize the Redis cache backend.

        Args:
            redis_url: Redis connection URL. If not provided, falls back to the
                REDIS_URL environment variable, then to "redis://localhost:6379".
            redis_client: Optional pre-configured redis.asyncio client
            namespace: Namespace prefix for keys
            key_ttl: Redis expiry in seconds for stored keys (None keeps them)
        """
        super().__init__(namespace)
        if key_ttl is not None and key_ttl <= 0:
            raise ValueError("key_ttl must be positive or None")
        self.redis_url = redis_url or os.environ.get(
            "REDIS_URL", "redis://localhost:6379"
        )
        self.key_ttl = key_ttl
        self._redis: Any | None = redis_client
        self._owns_client = redis_client is None

    def _client(self) -> Any:
        if self._redis is None:
            self._redis = Redis.from_url(self.redis_url, decode_responses=True)
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self.namespace}:cache:{key}"

    async def get(self, key: str) -> dict[str, Any] | None:
        raw = await self._client().get(self._key(key))
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding undecodable cache entry {key}: {e}")
            return None
        return value if isinstance(value, dict) else None

    async def set(self, key: str, value: dict[str, Any]) -> None:
        await self._client().set(self._key(key), json.dumps(value), ex=self.key_ttl)

    async def delete(self, key: str) -> bool:
        return bool(await self._client().delete(self._key(key)))

    async def clear(self) -> None:
        client = self._client()
        keys = [k async for k in client.scan_iter(match=self._key("*"))]
        if keys:
            await client.delete(*keys)

    async def health_check(self) -> HealthCheckResult:
        try:
            await self._client().ping()
        except (RedisError, OSError) as e:
            return HealthCheckResult(
                healthy=False,
                backend_type="redis",
                namespace=self.namespace,
                error=str(e),
            )
        return HealthCheckResult(
            healthy=True,
            backend_type="redis",
            namespace=self.namespace,
            metadata={"key_ttl": self.key_ttl},
        )

    async def close(self) -> None:
        """Close the client if this backend created it."""
        if self._redis is None or not self._owns_client:
            return
        client, self._redis = self._redis, None
        if hasattr(client, "aclose"):
            await client.aclose()
        else:
            await client.close()


__all__ = [
    "RedisCacheBackend",
]
