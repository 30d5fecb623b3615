# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Request Governor - rate-limited, deduplicated access to a strict tax-authority API.

This library decides when and whether an outbound API call (or a local
fallback) may proceed, so that a portal never exceeds the authority's
published per-operation limits and degrades gracefully when it fails.

Key Features:
    - Per-operation rate limiting (minimum spacing + one-minute budget)
    - Bounded-concurrency scheduling with priorities
    - Single-flight suppression of duplicate operations
    - Retry with exponential backoff honoring Retry-After
    - Fallback chain: live -> degraded source -> cache
    - Refresh cooldowns and data source epochs
    - Memory and Redis cache backends

Quick Start:
    >>> from request_governor import create_governor
    >>>
    >>> async with create_governor(max_concurrent=3) as governor:
    ...     result = await governor.fetch(
    ...         "getDocumentDetails",
    ...         uuid,
    ...         lambda: api.get_document_details(uuid),
    ...         degraded=lambda: db.load_document(uuid),
    ...     )
    ...     if result.is_pending:
    ...         show_notice("Already loading")
    ...     elif result.stale:
    ...         show_banner("Showing cached data")

Main Exports:
    - RequestGovernor, create_governor: The orchestrator
    - GovernorConfig, DEFAULT_RATE_LIMITS: Configuration
    - FetchResult, FetchStatus: Fetch outcomes
    - RateLimiter, PriorityScheduler, SingleFlightGuard, RetryPolicy,
      ResponseCache: Individual collaborators
    - MemoryCacheBackend, RedisCacheBackend: Cache storage

Note: RedisCacheBackend requires the 'redis' extra. Install with:
    pip install request-governor[redis]

Version: 1.0.0
"""

__version__ = "1.0.0"

from typing import TYPE_CHECKING

from .cache import (
    CacheBackend,
    CacheEntry,
    HealthCheckResult,
    MemoryCacheBackend,
    ResponseCache,
)
from .clock import Clock, FakeClock, SystemClock
from .config import DEFAULT_RATE_LIMITS, GovernorConfig, default_rate_limits
from .exceptions import (
    AllSourcesExhaustedError,
    ApiError,
    AuthExpiredError,
    ConfigurationError,
    GovernorError,
    OperationError,
    RetriesExhaustedError,
    TerminalError,
    TransientError,
)
from .governor import RequestGovernor, create_governor
from .guard import SingleFlightGuard, SingleFlightLock
from .observability import (
    MetricsCollectorProtocol,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from .retry import RetryEvent, RetryPolicy, classify_error, parse_retry_after
from .scheduler import PriorityScheduler
from .throttle import RateLimiter, RefreshCooldown
from .types import (
    FetchResult,
    FetchStatus,
    QueueStatus,
    RateLimitProfile,
    RateLimitStatus,
)

# Lazy import for optional redis backend
if TYPE_CHECKING:
    from .cache.redis import RedisCacheBackend

__all__ = [
    "DEFAULT_RATE_LIMITS",
    # Exceptions
    "AllSourcesExhaustedError",
    "ApiError",
    "AuthExpiredError",
    # Cache
    "CacheBackend",
    "CacheEntry",
    # Clock
    "Clock",
    "ConfigurationError",
    "FakeClock",
    # Types
    "FetchResult",
    "FetchStatus",
    # Configuration
    "GovernorConfig",
    "GovernorError",
    "HealthCheckResult",
    "MemoryCacheBackend",
    # Observability
    "MetricsCollectorProtocol",
    "OperationError",
    # Collaborators
    "PriorityScheduler",
    "QueueStatus",
    "RateLimitProfile",
    "RateLimitStatus",
    "RateLimiter",
    "RedisCacheBackend",  # Lazy loaded - requires redis extra
    "RefreshCooldown",
    # Governor
    "RequestGovernor",
    "ResponseCache",
    "RetriesExhaustedError",
    "RetryEvent",
    "RetryPolicy",
    "SingleFlightGuard",
    "SingleFlightLock",
    "SystemClock",
    "TerminalError",
    "TransientError",
    "UnifiedMetricsCollector",
    "classify_error",
    "create_governor",
    "default_rate_limits",
    "get_metrics_collector",
    "parse_retry_after",
    "reset_metrics_collector",
]


def __getattr__(name: str) -> type:
    """Lazy import for optional redis backend."""
    if name == "RedisCacheBackend":
        from .cache import RedisCacheBackend

        return RedisCacheBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
