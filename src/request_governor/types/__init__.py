# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Core types for the request governor.

This module exports the data structures shared by the limiter, scheduler,
cache and governor.
"""

from .queue import QueueItem, QueueStatus
from .rate_limit import (
    WINDOW_SECONDS,
    RateLimiterState,
    RateLimitProfile,
    RateLimitStatus,
)
from .result import FetchResult, FetchStatus

__all__ = [
    "WINDOW_SECONDS",
    "FetchResult",
    "FetchStatus",
    "QueueItem",
    "QueueStatus",
    "RateLimitProfile",
    "RateLimitStatus",
    "RateLimiterState",
]
