# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Bounded-concurrency scheduling with priorities.
"""

from .queue import PriorityScheduler

__all__ = [
    "PriorityScheduler",
]
