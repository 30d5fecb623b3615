# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Rate limit types and configurations.

This module defines the per-operation rate limit profile, the mutable
limiter state kept for each operation name, and the read-only status
snapshot exposed to callers.
"""

from collections import deque
from dataclasses import dataclass, field

from pydantic import BaseModel, Field, model_validator

WINDOW_SECONDS = 60.0
"""Length of the request budget window."""


class RateLimitProfile(BaseModel):
    """
    Static rate limit configuration for one operation name.

    The minimum interval is configured independently of the budget. Some
    operations use a looser interval than ``60 / requests_per_minute`` to
    absorb bursts; the limiter enforces both constraints and is never less
    restrictive than either.

    Attributes:
        requests_per_minute: Admissions allowed in any one-minute window
        min_interval: Minimum seconds between two consecutive admissions.
            Derived as ``60 / requests_per_minute`` when omitted.
    """

    requests_per_minute: int = Field(gt=0)
    min_interval: float | None = Field(default=None, ge=0.0)

    @model_validator(mode="after")
    def _derive_min_interval(self) -> "RateLimitProfile":
        if self.min_interval is None:
            self.min_interval = WINDOW_SECONDS / self.requests_per_minute
        return self

    @property
    def interval(self) -> float:
        """Minimum spacing in seconds (always set after validation)."""
        return float(self.min_interval or 0.0)

    @classmethod
    def from_millis(
        cls, requests_per_minute: int, min_interval_ms: int
    ) -> "RateLimitProfile":
        """Build a profile from the portal's RPM / milliseconds table."""
        return cls(
            requests_per_minute=requests_per_minute,
            min_interval=min_interval_ms / 1000.0,
        )


@dataclass
class RateLimiterState:
    """
    Mutable admission bookkeeping for one operation name.

    Attributes:
        last_call_at: Time of the last admission, or None before the first
        window_id: ``floor(now / 60)`` of the window being counted
        count_in_window: Admissions counted in ``window_id``
        admissions: Times of the most recent admissions (sliding log),
            bounded to the profile's requests-per-minute
        server_blocked_until: Time before which the server announced no
            capacity for this operation (from rate limit headers or a 429)
    """

    last_call_at: float | None = None
    window_id: int | None = None
    count_in_window: int = 0
    admissions: deque[float] = field(default_factory=deque)
    server_blocked_until: float | None = None

    def roll_window(self, window_id: int) -> None:
        """Reset the window counter if ``window_id`` is a new window."""
        if self.window_id != window_id:
            self.window_id = window_id
            self.count_in_window = 0


@dataclass
class RateLimitStatus:
    """
    Read-only admission status for one operation.

    Attributes:
        operation: Operation name
        remaining_in_window: Admissions left in the current window, or None
            when the operation has no profile
        next_available_in: Seconds until spacing allows another admission
        requests_per_minute: Configured budget, or None without a profile
        min_interval: Configured spacing, or None without a profile
        server_blocked_in: Seconds left of a server-announced block (0 if none)
    """

    operation: str
    remaining_in_window: int | None
    next_available_in: float
    requests_per_minute: int | None = None
    min_interval: float | None = None
    server_blocked_in: float = 0.0

    @property
    def is_limited(self) -> bool:
        """Whether a call made now would have to wait."""
        return (
            self.remaining_in_window == 0
            or self.next_available_in > 0
            or self.server_blocked_in > 0
        )


__all__ = [
    "WINDOW_SECONDS",
    "RateLimitProfile",
    "RateLimitStatus",
    "RateLimiterState",
]
