# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Admission control: per-operation rate limiting and refresh cooldowns.
"""

from .cooldown import RefreshCooldown
from .limiter import RateLimiter

__all__ = [
    "RateLimiter",
    "RefreshCooldown",
]
