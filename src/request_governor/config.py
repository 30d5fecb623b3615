# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Configuration for the Request Governor

This module provides the configuration dataclass that collaborators use to
tune rate limit profiles, concurrency, retries, cache TTLs, refresh
cooldowns and timeouts, together with the default profile table for the
tax-authority API.
"""

from dataclasses import dataclass, field

from .exceptions import ConfigurationError
from .types.rate_limit import RateLimitProfile

DEFAULT_RATE_LIMITS: dict[str, RateLimitProfile] = {
    "getDocument": RateLimitProfile.from_millis(60, 1000),
    "getDocumentDetails": RateLimitProfile.from_millis(125, 480),
    "getSubmission": RateLimitProfile.from_millis(300, 200),
    "searchDocuments": RateLimitProfile.from_millis(12, 5000),
    "getRecentDocuments": RateLimitProfile.from_millis(12, 5000),
    "cancelDocument": RateLimitProfile.from_millis(12, 5000),
    "rejectDocument": RateLimitProfile.from_millis(12, 5000),
    "taxpayerQR": RateLimitProfile.from_millis(60, 1000),
    "searchTIN": RateLimitProfile.from_millis(60, 1000),
    "login": RateLimitProfile.from_millis(12, 5000),
    "submitDocuments": RateLimitProfile.from_millis(100, 600),
}
"""Published per-operation limits of the tax-authority API."""


def default_rate_limits() -> dict[str, RateLimitProfile]:
    """Return a fresh copy of the default profile table."""
    return {name: profile.model_copy() for name, profile in DEFAULT_RATE_LIMITS.items()}


@dataclass
class GovernorConfig:
    """
    Configuration for the request governor.

    All durations are in seconds.
    """

    # === Rate Limiting ===

    rate_limits: dict[str, RateLimitProfile] = field(
        default_factory=default_rate_limits
    )
    """Operation name to profile. Unlisted operations are admitted immediately."""

    # === Scheduling ===

    max_concurrent: int = 3
    """Maximum number of operations running at once."""

    # === Retry ===

    max_retries: int = 3
    """Retries after the first attempt for transient failures."""

    base_delay: float = 1.0
    """First backoff delay; doubles with each retry."""

    max_backoff: float = 60.0
    """Cap for computed backoff delays (server hints are not capped)."""

    retry_jitter: float = 0.0
    """Random extra delay as a fraction of the computed backoff (0 disables)."""

    # === Cache ===

    default_cache_ttl: float = 900.0
    """TTL for cached payloads without a resource class entry (15 minutes)."""

    cache_ttls: dict[str, float] = field(default_factory=dict)
    """Resource class to TTL override."""

    # === Cooldowns and Guards ===

    default_refresh_cooldown: float = 5.0
    """Minimum time between successful refreshes of the same action."""

    refresh_cooldowns: dict[str, float] = field(default_factory=dict)
    """Action name to cooldown override."""

    single_flight_timeout: float | None = 300.0
    """Age after which a held single-flight lock is reclaimed (None disables)."""

    # === Timeouts ===

    interactive_timeout: float = 30.0
    """Per-attempt timeout for single-document fetches."""

    batch_timeout: float = 300.0
    """Per-attempt timeout for large batch operations."""

    # === Metrics ===

    metrics_enabled: bool = True
    """Enable metrics collection."""

    enable_prometheus: bool = True
    """Mirror metrics into prometheus_client."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_concurrent < 1:
            raise ConfigurationError("max_concurrent must be at least 1")
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be non-negative")
        if self.base_delay < 0:
            raise ConfigurationError("base_delay must be non-negative")
        if self.max_backoff < self.base_delay:
            raise ConfigurationError("max_backoff must be at least base_delay")
        if not 0 <= self.retry_jitter <= 1.0:
            raise ConfigurationError("retry_jitter must be between 0 and 1.0")
        if self.default_cache_ttl <= 0:
            raise ConfigurationError("default_cache_ttl must be positive")
        if any(ttl <= 0 for ttl in self.cache_ttls.values()):
            raise ConfigurationError("cache_ttls values must be positive")
        if self.default_refresh_cooldown < 0:
            raise ConfigurationError("default_refresh_cooldown must be non-negative")
        if any(cooldown < 0 for cooldown in self.refresh_cooldowns.values()):
            raise ConfigurationError("refresh_cooldowns values must be non-negative")
        if self.single_flight_timeout is not None and self.single_flight_timeout <= 0:
            raise ConfigurationError("single_flight_timeout must be positive or None")
        if self.interactive_timeout <= 0 or self.batch_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")


__all__ = [
    "DEFAULT_RATE_LIMITS",
    "GovernorConfig",
    "default_rate_limits",
]
