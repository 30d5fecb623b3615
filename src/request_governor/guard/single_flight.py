# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Single-flight guard for duplicate operation suppression.

At most one operation per resource key may be in flight. A second request
for a held key is rejected immediately rather than queued, and the caller
reports "already in progress" to the user.
"""

import itertools
import logging
import threading
from dataclasses import dataclass

from ..clock import Clock, SystemClock
from ..observability.constants import STALE_LOCKS_RECLAIMED_TOTAL
from ..observability.protocols import MetricsCollectorProtocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SingleFlightLock:
    """
    Record of one holder of a key.

    Attributes:
        key: Resource key
        held_since: Clock time the lock was taken
        token: Unique per acquisition; identifies this holder on release
    """

    key: str
    held_since: float
    token: int


class SingleFlightGuard:
    """
    Non-blocking, non-queueing per-key mutual exclusion.

    A lock held longer than ``lock_timeout`` seconds is assumed to belong to
    a lost operation and is reclaimed by the next acquirer.

    Example:
        >>> guard = SingleFlightGuard()
        >>> guard.try_acquire("doc-1")
        True
        >>> guard.try_acquire("doc-1")
        False
        >>> guard.release("doc-1")
    """

    def __init__(
        self,
        clock: Clock | None = None,
        lock_timeout: float | None = 300.0,
        metrics: MetricsCollectorProtocol | None = None,
    ):
        if lock_timeout is not None and lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive or None")
        self._clock = clock or SystemClock()
        self._lock_timeout = lock_timeout
        self._metrics = metrics
        self._held: dict[str, SingleFlightLock] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()

    def acquire(self, key: str) -> SingleFlightLock | None:
        """
        Take the lock for ``key`` if it is free.

        Returns:
            The lock record, or None if another holder has the key
        """
        now = self._clock.now()
        reclaimed: SingleFlightLock | None = None
        with self._lock:
            current = self._held.get(key)
            if current is not None:
                if (
                    self._lock_timeout is None
                    or now - current.held_since < self._lock_timeout
                ):
                    return None
                reclaimed = current
            lock = SingleFlightLock(key=key, held_since=now, token=next(self._tokens))
            self._held[key] = lock

        if reclaimed is not None:
            logger.warning(
                f"Reclaimed stale single-flight lock for {key} "
                f"(held {now - reclaimed.held_since:.1f}s)"
            )
            if self._metrics:
                self._metrics.inc_counter(STALE_LOCKS_RECLAIMED_TOTAL)
        return lock

    def try_acquire(self, key: str) -> bool:
        return self.acquire(key) is not None

    def release(self, key: str, lock: SingleFlightLock | None = None) -> None:
        """
        Release ``key``.

        When ``lock`` is given, the key is only released if that record is
        still the holder, so an operation whose lock was reclaimed cannot
        release the new holder's lock. Releasing a free key is a no-op.
        """
        with self._lock:
            current = self._held.get(key)
            if current is None:
                return
            if lock is not None and current.token != lock.token:
                logger.debug(f"Ignoring release of {key} by a superseded holder")
                return
            del self._held[key]

    def is_held(self, key: str) -> bool:
        with self._lock:
            return key in self._held

    def held_keys(self) -> list[str]:
        with self._lock:
            return list(self._held)

    def __len__(self) -> int:
        with self._lock:
            return len(self._held)


__all__ = [
    "SingleFlightGuard",
    "SingleFlightLock",
]
