# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Duplicate operation suppression.
"""

from .single_flight import SingleFlightGuard, SingleFlightLock

__all__ = [
    "SingleFlightGuard",
    "SingleFlightLock",
]
