# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability and metrics for the Request Governor.

Classes:
    UnifiedMetricsCollector: Unified metrics collector supporting dict and Prometheus.

Protocols:
    MetricsCollectorProtocol: Protocol for metrics collection backends.

Functions:
    get_metrics_collector: Get the global metrics collector singleton.
    reset_metrics_collector: Reset the global metrics collector singleton.
"""

from .collector import (
    METRIC_DEFINITIONS,
    MetricDefinition,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from .constants import (
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    CACHE_WRITES_TOTAL,
    COOLDOWN_REJECTIONS_TOTAL,
    DUPLICATE_REJECTIONS_TOTAL,
    FALLBACKS_TOTAL,
    FETCH_DURATION_SECONDS,
    FETCHES_TOTAL,
    LATENCY_BUCKETS,
    METRIC_PREFIX,
    QUEUE_DEPTH,
    QUEUE_RUNNING,
    RATE_LIMIT_WAIT_SECONDS,
    RATE_LIMIT_WAITS_TOTAL,
    RETRIES_EXHAUSTED_TOTAL,
    RETRIES_TOTAL,
    SERVER_BLOCKS_TOTAL,
    SOURCES_EXHAUSTED_TOTAL,
    STALE_LOCKS_RECLAIMED_TOTAL,
    SUPERSEDED_RESULTS_TOTAL,
)
from .protocols import MetricsCollectorProtocol

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
    "METRIC_DEFINITIONS",
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
    "MetricDefinition",
    "MetricsCollectorProtocol",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
