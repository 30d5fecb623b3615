# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Per-operation rate limiter.

Each operation name has its own profile (requests per minute and minimum
spacing) and its own state. Admission is granted only when both the spacing
and the one-minute budget allow it; otherwise the caller sleeps and the
conditions are evaluated again. The limiter never rejects a call.

The budget is tracked two ways: a fixed window counter (``floor(now / 60)``)
that the status queries report, and a sliding log of the most recent
admissions, so that no 60 second span ever sees more than
``requests_per_minute`` admissions, even across a window boundary.

The server can tighten this further: when a response reports that no
quota is left (``X-Rate-Limit-Remaining: 0``) or answers 429, the time it
announces is recorded with ``note_server_limit`` and every later caller of
that operation is held until then, not only the call that saw the response.
"""

import asyncio
import logging
from collections.abc import Mapping

from ..clock import Clock, SystemClock
from ..config import default_rate_limits
from ..observability.constants import (
    RATE_LIMIT_WAIT_SECONDS,
    RATE_LIMIT_WAITS_TOTAL,
    SERVER_BLOCKS_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from ..types.rate_limit import (
    WINDOW_SECONDS,
    RateLimiterState,
    RateLimitProfile,
    RateLimitStatus,
)

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Admission control keyed by operation name.

    Waiters for the same name are serialized by a per-name asyncio.Lock, so
    consecutive admissions are always spaced. Different names never block
    each other.

    Attributes:
        profiles: Operation name to RateLimitProfile (read-only view)

    Example:
        >>> limiter = RateLimiter({"getDocument": RateLimitProfile.from_millis(60, 1000)})
        >>> await limiter.wait_for_slot("getDocument")
        >>> limiter.remaining_in_window("getDocument")
        59
    """

    def __init__(
        self,
        profiles: Mapping[str, RateLimitProfile] | None = None,
        clock: Clock | None = None,
        metrics: MetricsCollectorProtocol | None = None,
    ):
        """
        Initialize the rate limiter.

        Args:
            profiles: Operation profiles. Defaults to the tax-authority table.
            clock: Time source (SystemClock by default)
            metrics: Optional metrics collector
        """
        self._profiles: dict[str, RateLimitProfile] = (
            dict(profiles) if profiles is not None else default_rate_limits()
        )
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._states: dict[str, RateLimiterState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._unconfigured_seen: set[str] = set()

    @property
    def profiles(self) -> Mapping[str, RateLimitProfile]:
        return dict(self._profiles)

    def configure(self, operation_name: str, profile: RateLimitProfile) -> None:
        """Add or replace the profile for an operation at runtime."""
        self._profiles[operation_name] = profile
        self._unconfigured_seen.discard(operation_name)
        logger.info(
            f"Rate limit for {operation_name} set to "
            f"{profile.requests_per_minute} rpm / {profile.interval:.3f}s spacing"
        )

    def note_server_limit(
        self,
        operation_name: str,
        remaining: int | None,
        reset_in: float | None,
    ) -> None:
        """
        Record the quota the server reported for an operation.

        A ``remaining`` of 0 or less with a positive ``reset_in`` holds every
        caller of ``operation_name`` until the reset time. A positive
        ``remaining`` lifts an earlier block. Operations without a profile
        are not throttled and ignore server reports.

        Args:
            operation_name: Name of the governed operation
            remaining: Requests the server says are left, or None if unknown
            reset_in: Seconds until the server quota resets, or None if unknown
        """
        if operation_name not in self._profiles:
            logger.debug(f"Ignoring server limit for unconfigured {operation_name!r}")
            return
        state = self._state_for(operation_name)
        if remaining is not None and remaining > 0:
            state.server_blocked_until = None
            return
        if remaining is None or reset_in is None or reset_in <= 0:
            return

        until = self._clock.now() + reset_in
        current = state.server_blocked_until
        if current is not None and current >= until:
            return
        state.server_blocked_until = until
        logger.info(
            f"Server quota for {operation_name} exhausted; "
            f"holding calls for {reset_in:.1f}s"
        )
        if self._metrics:
            self._metrics.inc_counter(
                SERVER_BLOCKS_TOTAL, labels={"operation": operation_name}
            )

    def _state_for(self, operation_name: str) -> RateLimiterState:
        state = self._states.get(operation_name)
        if state is None:
            state = RateLimiterState()
            self._states[operation_name] = state
        return state

    def _lock_for(self, operation_name: str) -> asyncio.Lock:
        lock = self._locks.get(operation_name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[operation_name] = lock
        return lock

    def _delay_for(
        self, profile: RateLimitProfile, state: RateLimiterState, now: float
    ) -> float:
        """Seconds until spacing, budget and server quota admit a call at ``now``."""
        delay = 0.0
        if state.last_call_at is not None:
            delay = max(delay, state.last_call_at + profile.interval - now)

        window_id = int(now // WINDOW_SECONDS)
        if (
            state.window_id == window_id
            and state.count_in_window >= profile.requests_per_minute
        ):
            delay = max(delay, (window_id + 1) * WINDOW_SECONDS - now)

        # admissions holds at most rpm entries, so [0] is the rpm-th most recent
        if len(state.admissions) >= profile.requests_per_minute:
            delay = max(delay, state.admissions[0] + WINDOW_SECONDS - now)

        if state.server_blocked_until is not None:
            delay = max(delay, state.server_blocked_until - now)

        return delay

    async def wait_for_slot(self, operation_name: str) -> float:
        """
        Suspend until the operation may proceed, then record the admission.

        Args:
            operation_name: Name of the governed operation

        Returns:
            Seconds spent waiting
        """
        profile = self._profiles.get(operation_name)
        if profile is None:
            if operation_name not in self._unconfigured_seen:
                self._unconfigured_seen.add(operation_name)
                logger.warning(
                    f"No rate limit profile for operation {operation_name!r}; "
                    f"admitting without limits"
                )
            return 0.0

        async with self._lock_for(operation_name):
            state = self._state_for(operation_name)

            started = self._clock.now()
            while True:
                now = self._clock.now()
                delay = self._delay_for(profile, state, now)
                if delay <= 0:
                    break
                logger.debug(f"Rate limit: {operation_name} waiting {delay:.3f}s")
                await self._clock.sleep(delay)

            now = self._clock.now()
            state.server_blocked_until = None
            state.roll_window(int(now // WINDOW_SECONDS))
            state.count_in_window += 1
            state.last_call_at = now
            state.admissions.append(now)
            while len(state.admissions) > profile.requests_per_minute:
                state.admissions.popleft()

        waited = now - started
        if waited > 0 and self._metrics:
            labels = {"operation": operation_name}
            self._metrics.inc_counter(RATE_LIMIT_WAITS_TOTAL, labels=labels)
            self._metrics.observe_histogram(
                RATE_LIMIT_WAIT_SECONDS, waited, labels=labels
            )
        return waited

    def remaining_in_window(self, operation_name: str) -> int | None:
        """
        Admissions left in the current one-minute window.

        Returns None for operations without a profile. A stored window that
        has already ended counts as empty.
        """
        profile = self._profiles.get(operation_name)
        if profile is None:
            return None
        state = self._states.get(operation_name)
        if state is None:
            return profile.requests_per_minute
        current_window = int(self._clock.now() // WINDOW_SECONDS)
        count = state.count_in_window if state.window_id == current_window else 0
        return max(0, profile.requests_per_minute - count)

    def next_available_in(self, operation_name: str) -> float:
        """Seconds until spacing allows the next admission (0 if now)."""
        profile = self._profiles.get(operation_name)
        state = self._states.get(operation_name)
        if profile is None or state is None or state.last_call_at is None:
            return 0.0
        return max(0.0, state.last_call_at + profile.interval - self._clock.now())

    def estimated_wait(self, operation_name: str) -> float:
        """
        Seconds a call made now would be held by spacing, budget or server quota.

        Callers queued behind the per-name lock are not included.
        """
        profile = self._profiles.get(operation_name)
        state = self._states.get(operation_name)
        if profile is None or state is None:
            return 0.0
        return max(0.0, self._delay_for(profile, state, self._clock.now()))

    def server_blocked_in(self, operation_name: str) -> float:
        """Seconds left of a server-announced block (0 if none)."""
        state = self._states.get(operation_name)
        if state is None or state.server_blocked_until is None:
            return 0.0
        return max(0.0, state.server_blocked_until - self._clock.now())

    def status(self, operation_name: str) -> RateLimitStatus:
        """Snapshot of the admission state of one operation."""
        profile = self._profiles.get(operation_name)
        return RateLimitStatus(
            operation=operation_name,
            remaining_in_window=self.remaining_in_window(operation_name),
            next_available_in=self.next_available_in(operation_name),
            requests_per_minute=profile.requests_per_minute if profile else None,
            min_interval=profile.interval if profile else None,
            server_blocked_in=self.server_blocked_in(operation_name),
        )

    def reset(self, operation_name: str | None = None) -> None:
        """Forget admission history for one operation, or for all of them."""
        if operation_name is None:
            self._states.clear()
        else:
            self._states.pop(operation_name, None)


__all__ = [
    "RateLimiter",
]
