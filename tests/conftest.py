"""
Shared fixtures for the request governor test suite.
"""

import pytest

from request_governor.clock import FakeClock
from request_governor.observability.collector import UnifiedMetricsCollector


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock starting inside a one-minute window (960-1020)."""
    return FakeClock(start=1000.0)


@pytest.fixture
def metrics() -> UnifiedMetricsCollector:
    """Dict-only collector so tests never touch the global Prometheus registry."""
    return UnifiedMetricsCollector(enable_prometheus=False)
