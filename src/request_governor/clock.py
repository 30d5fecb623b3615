# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Time sources for the request governor.

Every component reads time and sleeps through a Clock so that tests can
swap in FakeClock and run rate limiting, backoff and TTL scenarios without
waiting in real time. Times are float seconds since the epoch.
"""

import asyncio
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Protocol for time sources."""

    def now(self) -> float:
        """Current time in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for ``seconds``."""
        ...


class SystemClock:
    """Wall-clock time with asyncio sleeps."""

    def now(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class FakeClock:
    """
    Deterministic clock for tests.

    ``sleep`` yields to the event loop once and then moves time forward to
    the sleeper's deadline, so code that waits completes instantly while
    observing the same elapsed time it would in production. Time never moves
    backwards: concurrent sleepers each land on ``max(now, deadline)``.

    Every requested sleep is recorded in ``sleeps``.

    Example:
        >>> clock = FakeClock(start=1000.0)
        >>> clock.advance(2.5)
        >>> clock.now()
        1002.5
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move time forward without sleeping."""
        if seconds < 0:
            raise ValueError("FakeClock cannot move backwards")
        self._now += seconds

    def set(self, timestamp: float) -> None:
        """Jump to an absolute time (never backwards)."""
        if timestamp < self._now:
            raise ValueError("FakeClock cannot move backwards")
        self._now = timestamp

    async def sleep(self, seconds: float) -> None:
        seconds = max(0.0, seconds)
        self.sleeps.append(seconds)
        deadline = self._now + seconds
        await asyncio.sleep(0)
        self._now = max(self._now, deadline)

    @property
    def total_slept(self) -> float:
        """Sum of all requested sleeps."""
        return sum(self.sleeps)


__all__ = [
    "Clock",
    "FakeClock",
    "SystemClock",
]
