# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Base Cache Backend for the Request Governor

This module provides the CacheBackend abstract class that defines the
storage interface used by ResponseCache. Backends store plain dicts
(serialized cache entries) and know nothing about expiry: validity is
decided by ResponseCache against the governor's clock.
"""

import abc
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """
    Structured health check result for backend monitoring.

    Attributes:
        healthy: Whether the backend is operational
        backend_type: Type of backend (e.g., 'redis', 'memory')
        namespace: Backend namespace
        error: Error message if unhealthy
        metadata: Additional backend-specific information
    """

    healthy: bool
    backend_type: str
    namespace: str
    error: str | None = None
    metadata: dict[str, Any] | None = None


class CacheBackend(abc.ABC):
    """
    Abstract key-value storage for cached responses.

    Implementations must be safe to call concurrently from one event loop.
    """

    def __init__(self, namespace: str = "request_governor"):
        self.namespace = namespace

    @abc.abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Return the stored dict for ``key``, or None."""

    @abc.abstractmethod
    async def set(self, key: str, value: dict[str, Any]) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abc.abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it existed."""

    @abc.abstractmethod
    async def clear(self) -> None:
        """Remove every key in this backend's namespace."""

    @abc.abstractmethod
    async def health_check(self) -> HealthCheckResult:
        """Report whether the backend is usable."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None


__all__ = [
    "CacheBackend",
    "HealthCheckResult",
]
