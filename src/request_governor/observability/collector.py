# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Unified metrics collector supporting both dict-based and Prometheus metrics.

This module provides the UnifiedMetricsCollector class that serves as the
single source of truth for all metrics in the request governor.

Features:
    1. Thread-safe counter/gauge/histogram operations
    2. Prometheus metric registration (optional per collector)
    3. Dict-based snapshot for JSON export and pull-based status pages
    4. Label cardinality protection (max 1000 unique combinations per metric)
    5. Optional HTTP server for Prometheus scraping

Usage:
    >>> from request_governor.observability.collector import get_metrics_collector
    >>> collector = get_metrics_collector()
    >>> collector.inc_counter('request_governor_fetches_total',
    ...                       labels={'operation': 'getDocument', 'outcome': 'live'})
    >>> metrics = collector.get_metrics()
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, ClassVar

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server

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

logger = logging.getLogger(__name__)


@dataclass
class MetricDefinition:
    """
    Definition for a metric that can be instantiated.

    This dataclass defines the schema for metrics, including their type,
    description, labels, and histogram buckets.
    """

    name: str
    metric_type: str  # 'counter', 'gauge', 'histogram'
    description: str
    label_names: tuple[str, ...] = ()
    buckets: list[float] | None = None


# Pre-defined metrics for the library
METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    # === Governor Counters ===
    FETCHES_TOTAL: MetricDefinition(
        FETCHES_TOTAL,
        "counter",
        "Total fetches by outcome",
        ("operation", "outcome"),
    ),
    FALLBACKS_TOTAL: MetricDefinition(
        FALLBACKS_TOTAL,
        "counter",
        "Total fallback stage attempts",
        ("operation", "stage"),
    ),
    SOURCES_EXHAUSTED_TOTAL: MetricDefinition(
        SOURCES_EXHAUSTED_TOTAL,
        "counter",
        "Total fetches where every source failed",
        ("operation",),
    ),
    DUPLICATE_REJECTIONS_TOTAL: MetricDefinition(
        DUPLICATE_REJECTIONS_TOTAL,
        "counter",
        "Total duplicate operation rejections",
        ("operation",),
    ),
    COOLDOWN_REJECTIONS_TOTAL: MetricDefinition(
        COOLDOWN_REJECTIONS_TOTAL,
        "counter",
        "Total refresh cooldown rejections",
        ("action",),
    ),
    SUPERSEDED_RESULTS_TOTAL: MetricDefinition(
        SUPERSEDED_RESULTS_TOTAL,
        "counter",
        "Total results discarded after a data source switch",
        ("operation",),
    ),
    FETCH_DURATION_SECONDS: MetricDefinition(
        FETCH_DURATION_SECONDS,
        "histogram",
        "Duration of live fetches",
        ("operation",),
        buckets=LATENCY_BUCKETS,
    ),
    # === Rate Limit and Retry ===
    RATE_LIMIT_WAITS_TOTAL: MetricDefinition(
        RATE_LIMIT_WAITS_TOTAL,
        "counter",
        "Total admissions that waited for a slot",
        ("operation",),
    ),
    RATE_LIMIT_WAIT_SECONDS: MetricDefinition(
        RATE_LIMIT_WAIT_SECONDS,
        "histogram",
        "Time spent waiting for rate limit admission",
        ("operation",),
        buckets=LATENCY_BUCKETS,
    ),
    SERVER_BLOCKS_TOTAL: MetricDefinition(
        SERVER_BLOCKS_TOTAL,
        "counter",
        "Total server-announced rate limit blocks",
        ("operation",),
    ),
    RETRIES_TOTAL: MetricDefinition(
        RETRIES_TOTAL,
        "counter",
        "Total retries after transient failures",
        ("operation", "reason"),
    ),
    RETRIES_EXHAUSTED_TOTAL: MetricDefinition(
        RETRIES_EXHAUSTED_TOTAL,
        "counter",
        "Total operations that exhausted their retries",
        ("operation",),
    ),
    # === Gauges ===
    QUEUE_RUNNING: MetricDefinition(
        QUEUE_RUNNING,
        "gauge",
        "Operations holding a scheduler slot",
        (),
    ),
    QUEUE_DEPTH: MetricDefinition(
        QUEUE_DEPTH,
        "gauge",
        "Operations waiting for a scheduler slot",
        (),
    ),
    # === Cache and Guard ===
    CACHE_HITS_TOTAL: MetricDefinition(
        CACHE_HITS_TOTAL,
        "counter",
        "Total cache hits",
        (),
    ),
    CACHE_MISSES_TOTAL: MetricDefinition(
        CACHE_MISSES_TOTAL,
        "counter",
        "Total cache misses",
        (),
    ),
    CACHE_WRITES_TOTAL: MetricDefinition(
        CACHE_WRITES_TOTAL,
        "counter",
        "Total cache writes",
        (),
    ),
    STALE_LOCKS_RECLAIMED_TOTAL: MetricDefinition(
        STALE_LOCKS_RECLAIMED_TOTAL,
        "counter",
        "Total single-flight locks reclaimed",
        (),
    ),
}


class UnifiedMetricsCollector:
    """
    Unified metrics collector supporting both dict-based and Prometheus metrics.

    Thread Safety:
        All operations use RLock for thread-safe access.

    Cardinality Protection:
        To prevent unbounded memory growth, a maximum of MAX_LABEL_COMBINATIONS
        unique label combinations are tracked per metric.

    Example:
        >>> collector = UnifiedMetricsCollector(enable_prometheus=False)
        >>> collector.inc_counter('request_governor_cache_hits_total')
        >>> collector.get_metrics()["counters"]
        {'request_governor_cache_hits_total': {'': 1}}
    """

    # Maximum unique label combinations per metric to prevent cardinality explosion
    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: Any | None = None,
    ) -> None:
        """
        Initialize the metrics collector.

        Args:
            enable_prometheus: Whether to mirror metrics into prometheus_client
            registry: Optional Prometheus CollectorRegistry for testing
        """
        self._enable_prometheus = enable_prometheus
        self._registry = registry if registry is not None else REGISTRY

        # Dict-based metrics (always available)
        self._counters: dict[str, dict[str, int]] = defaultdict(
            lambda: defaultdict(int)
        )
        self._gauges: dict[str, dict[str, float]] = defaultdict(
            lambda: defaultdict(float)
        )
        self._histograms: dict[str, dict[str, list[float]]] = defaultdict(
            lambda: defaultdict(list)
        )

        self._lock = threading.RLock()

        # Prometheus metric instances (lazy initialized)
        self._prom_metrics: dict[str, Any] = {}

        self._label_combinations: dict[str, set[str]] = defaultdict(set)

        self._server_running = False

        logger.debug(
            f"UnifiedMetricsCollector initialized "
            f"(prometheus={'enabled' if self._enable_prometheus else 'disabled'})"
        )

    def _labels_to_key(self, labels: dict[str, str] | None) -> str:
        """Convert labels dict to a stable string key."""
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    def _check_cardinality(self, name: str, label_key: str) -> bool:
        """
        Check if adding this label combination would exceed cardinality limit.

        Returns:
            True if the label combination is allowed, False otherwise
        """
        if label_key in self._label_combinations[name]:
            return True
        if len(self._label_combinations[name]) >= self.MAX_LABEL_COMBINATIONS:
            logger.warning(
                f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached "
                f"for metric {name}. Dropping label combination: {label_key}"
            )
            return False
        self._label_combinations[name].add(label_key)
        return True

    def _get_or_create_prom_metric(self, name: str, metric_type: str) -> Any | None:
        """Get or create the Prometheus metric backing ``name``."""
        if not self._enable_prometheus:
            return None

        if name not in self._prom_metrics:
            defn = METRIC_DEFINITIONS.get(name)
            if defn is None or defn.metric_type != metric_type:
                defn = MetricDefinition(name, metric_type, f"Dynamic {metric_type}: {name}")
            try:
                if metric_type == "counter":
                    metric = Counter(
                        name,
                        defn.description,
                        list(defn.label_names),
                        registry=self._registry,
                    )
                elif metric_type == "gauge":
                    metric = Gauge(
                        name,
                        defn.description,
                        list(defn.label_names),
                        registry=self._registry,
                    )
                else:
                    metric = Histogram(
                        name,
                        defn.description,
                        list(defn.label_names),
                        buckets=defn.buckets or LATENCY_BUCKETS,
                        registry=self._registry,
                    )
            except ValueError as e:
                # Duplicate registration in a shared registry
                logger.warning(f"Failed to create Prometheus {metric_type} {name}: {e}")
                return None
            self._prom_metrics[name] = metric

        return self._prom_metrics.get(name)

    def _mirror(
        self,
        name: str,
        metric_type: str,
        method: str,
        value: float,
        labels: dict[str, str] | None,
    ) -> None:
        metric = self._get_or_create_prom_metric(name, metric_type)
        if metric is None:
            return
        try:
            target = metric.labels(**labels) if labels else metric
            getattr(target, method)(value)
        except ValueError as e:
            # Label set does not match the registered definition
            logger.debug(f"Prometheus {metric_type} update failed for {name}: {e}")

    # === Counter Operations ===

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter metric.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")

        label_key = self._labels_to_key(labels)

        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._counters[name][label_key] += value

        self._mirror(name, "counter", "inc", value, labels)

    # === Gauge Operations ===

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to a specific value."""
        label_key = self._labels_to_key(labels)

        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._gauges[name][label_key] = value

        self._mirror(name, "gauge", "set", value, labels)

    # === Histogram Operations ===

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Record an observation in a histogram."""
        label_key = self._labels_to_key(labels)

        with self._lock:
            if not self._check_cardinality(name, label_key):
                return
            self._histograms[name][label_key].append(value)
            # Keep only recent observations to prevent memory growth
            if len(self._histograms[name][label_key]) > 10000:
                self._histograms[name][label_key] = self._histograms[name][label_key][
                    -5000:
                ]

        self._mirror(name, "histogram", "observe", value, labels)

    # === Snapshot Operations ===

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Current value of one counter series (0 if never incremented)."""
        with self._lock:
            return self._counters.get(name, {}).get(self._labels_to_key(labels), 0)

    def get_metrics(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Returns a dict suitable for JSON serialization with structure:
        {
            "counters": {"metric_name": {"label_key": value, ...}, ...},
            "gauges": {"metric_name": {"label_key": value, ...}, ...},
            "histograms": {"metric_name": {"label_key": {...}, ...}, ...}
        }
        """
        with self._lock:
            counters = {
                name: dict(label_values)
                for name, label_values in self._counters.items()
            }
            gauges = {
                name: dict(label_values) for name, label_values in self._gauges.items()
            }

            histograms: dict[str, dict[str, dict[str, Any]]] = {}
            for name, label_values in self._histograms.items():
                histograms[name] = {}
                for label_key, observations in label_values.items():
                    if observations:
                        histograms[name][label_key] = {
                            "count": len(observations),
                            "sum": sum(observations),
                            "avg": sum(observations) / len(observations),
                            "min": min(observations),
                            "max": max(observations),
                        }

        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": histograms,
        }

    # === Lifecycle ===

    def reset(self) -> None:
        """Reset all dict-based metrics to zero."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()
            self._label_combinations.clear()

        logger.debug("Metrics collector reset")

    # === Prometheus HTTP Server ===

    def start_http_server(self, host: str = "127.0.0.1", port: int = 9090) -> bool:
        """
        Start the Prometheus HTTP server for metrics scraping.

        Binds to localhost by default. Pass host="0.0.0.0" for external
        access in containerized environments.

        Returns:
            True if server started successfully, False otherwise
        """
        if not self._enable_prometheus:
            logger.warning("Cannot start Prometheus server: prometheus disabled")
            return False

        if self._server_running:
            logger.warning("Prometheus server already running")
            return True

        try:
            start_http_server(port, addr=host, registry=self._registry)
        except OSError as e:
            logger.error(f"Failed to start Prometheus server: {e}")
            return False
        self._server_running = True
        logger.info(f"Prometheus metrics server started on {host}:{port}")
        return True

    @property
    def prometheus_enabled(self) -> bool:
        """Check if Prometheus metrics are enabled."""
        return self._enable_prometheus

    @property
    def server_running(self) -> bool:
        """Check if the Prometheus HTTP server is running."""
        return self._server_running


# =============================================================================
# Singleton Pattern
# =============================================================================

_global_collector: UnifiedMetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector(
    enable_prometheus: bool = True,
) -> UnifiedMetricsCollector:
    """
    Get or create the global metrics collector singleton.

    Args:
        enable_prometheus: Whether to enable Prometheus metrics
            (only used on first call)
    """
    global _global_collector

    if _global_collector is None:
        with _collector_lock:
            if _global_collector is None:
                _global_collector = UnifiedMetricsCollector(
                    enable_prometheus=enable_prometheus
                )

    return _global_collector


def reset_metrics_collector() -> None:
    """
    Reset the global metrics collector singleton (mainly for testing).

    Prometheus series already registered in the default registry stay
    registered; a new singleton logs a warning and keeps dict metrics only
    for names it cannot re-register.
    """
    global _global_collector
    with _collector_lock:
        if _global_collector:
            _global_collector.reset()
        _global_collector = None


__all__ = [
    "METRIC_DEFINITIONS",
    "MetricDefinition",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
