# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `request_governor_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    To prevent label cardinality explosion, use only:
    - `operation` - Governed operation name (categorical: getDocument, login)
    - `outcome` - Fetch status (enum: live, stale, duplicate, ...)
    - `action` - Refresh action name (categorical)
    - `reason` - Retry cause (enum: rate_limited, transient)
    - `stage` - Fallback stage (enum: degraded, cache)

    NEVER use:
    - `key` - Document UUIDs are unique per resource (unbounded!)
    - `timestamp` - Unique per second (unbounded!)
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "request_governor"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Governor Metrics (governor.py)
# =============================================================================

FETCHES_TOTAL = f"{METRIC_PREFIX}_fetches_total"
"""Total fetches by final outcome."""

FALLBACKS_TOTAL = f"{METRIC_PREFIX}_fallbacks_total"
"""Total fallback stage attempts after a live failure."""

SOURCES_EXHAUSTED_TOTAL = f"{METRIC_PREFIX}_sources_exhausted_total"
"""Total fetches where live, degraded and cached sources all failed."""

DUPLICATE_REJECTIONS_TOTAL = f"{METRIC_PREFIX}_duplicate_rejections_total"
"""Total fetches rejected because the key was already in flight."""

COOLDOWN_REJECTIONS_TOTAL = f"{METRIC_PREFIX}_cooldown_rejections_total"
"""Total refreshes rejected inside the cooldown window."""

SUPERSEDED_RESULTS_TOTAL = f"{METRIC_PREFIX}_superseded_results_total"
"""Total results discarded after a data source switch."""

FETCH_DURATION_SECONDS = f"{METRIC_PREFIX}_fetch_duration_seconds"
"""Duration of live fetches including waits and retries."""


# =============================================================================
# Rate Limiting and Retry Metrics (throttle/, retry/)
# =============================================================================

RATE_LIMIT_WAITS_TOTAL = f"{METRIC_PREFIX}_rate_limit_waits_total"
"""Total admissions that had to wait for a slot."""

RATE_LIMIT_WAIT_SECONDS = f"{METRIC_PREFIX}_rate_limit_wait_seconds"
"""Time spent waiting for rate limit admission."""

SERVER_BLOCKS_TOTAL = f"{METRIC_PREFIX}_server_blocks_total"
"""Total server-announced quota blocks (exhausted quota or 429)."""

RETRIES_TOTAL = f"{METRIC_PREFIX}_retries_total"
"""Total retries scheduled after a transient failure."""

RETRIES_EXHAUSTED_TOTAL = f"{METRIC_PREFIX}_retries_exhausted_total"
"""Total operations that failed on every attempt."""


# =============================================================================
# Scheduler Gauges (scheduler/queue.py)
# =============================================================================

QUEUE_RUNNING = f"{METRIC_PREFIX}_queue_running"
"""Operations currently holding a scheduler slot."""

QUEUE_DEPTH = f"{METRIC_PREFIX}_queue_depth"
"""Operations waiting for a scheduler slot."""


# =============================================================================
# Cache and Guard Metrics (cache/, guard/)
# =============================================================================

CACHE_HITS_TOTAL = f"{METRIC_PREFIX}_cache_hits_total"
"""Total cache lookups that found a valid entry."""

CACHE_MISSES_TOTAL = f"{METRIC_PREFIX}_cache_misses_total"
"""Total cache lookups that found nothing or an expired entry."""

CACHE_WRITES_TOTAL = f"{METRIC_PREFIX}_cache_writes_total"
"""Total cache writes."""

STALE_LOCKS_RECLAIMED_TOTAL = f"{METRIC_PREFIX}_stale_locks_reclaimed_total"
"""Total single-flight locks reclaimed after exceeding the lock timeout."""


# =============================================================================
# Histogram Buckets
# =============================================================================

LATENCY_BUCKETS: list[float] = [
    0.01,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
    300.0,
]
"""Default latency buckets for fetch and wait histograms (in seconds)."""


__all__ = [
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "CACHE_WRITES_TOTAL",
    "COOLDOWN_REJECTIONS_TOTAL",
    "DUPLICATE_REJECTIONS_TOTAL",
    "FALLBACKS_TOTAL",
    "FETCHES_TOTAL",
    "FETCH_DURATION_SECONDS",
    "LATENCY_BUCKETS",
    "METRIC_PREFIX",
    "QUEUE_DEPTH",
    "QUEUE_RUNNING",
    "RATE_LIMIT_WAITS_TOTAL",
    "RATE_LIMIT_WAIT_SECONDS",
    "RETRIES_EXHAUSTED_TOTAL",
    "RETRIES_TOTAL",
    "SERVER_BLOCKS_TOTAL",
    "SOURCES_EXHAUSTED_TOTAL",
    "STALE_LOCKS_RECLAIMED_TOTAL",
    "SUPERSEDED_RESULTS_TOTAL",
]
