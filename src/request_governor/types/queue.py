# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Queue types for the priority scheduler.

This module defines the pending work item and the status snapshot that
the scheduler exposes to callers.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from asyncio import Future


@dataclass(order=True)
class QueueItem:
    """
    A unit of work waiting for a scheduler slot.

    Items order by ``sort_key``: higher priority first, then submission
    order. The sequence number is unique per scheduler, so two items never
    compare equal and FIFO among equal priorities is exact.

    Attributes:
        sort_key: ``(-priority, sequence)``, the only field used for ordering
        operation: Async callable to run once a slot is free
        priority: Higher numbers are served first
        enqueued_at: Clock time of submission
        sequence: Monotonic submission counter
        future: Resolved with the operation's result or exception
    """

    sort_key: tuple[int, int] = field(init=False, repr=False)
    operation: Callable[[], Awaitable[Any]] = field(compare=False)
    priority: int = field(compare=False)
    enqueued_at: float = field(compare=False)
    sequence: int = field(compare=False)
    future: "Future[Any]" = field(compare=False, repr=False)

    def __post_init__(self) -> None:
        self.sort_key = (-self.priority, self.sequence)


@dataclass
class QueueStatus:
    """
    Scheduler occupancy snapshot.

    Attributes:
        running: Operations currently executing
        queued: Operations waiting for a slot
        max_concurrent: Concurrency bound
    """

    running: int
    queued: int
    max_concurrent: int

    @property
    def saturated(self) -> bool:
        """Whether every slot is taken."""
        return self.running >= self.max_concurrent


__all__ = [
    "QueueItem",
    "QueueStatus",
]
