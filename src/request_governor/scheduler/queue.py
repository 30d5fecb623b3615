# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Bounded-concurrency priority scheduler.

Submitted operations wait in a heap ordered by ``(-priority, sequence)``
and are started while fewer than ``max_concurrent`` are running. Running
work is never preempted; a higher priority item only takes the next free
slot.
"""

import asyncio
import heapq
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from ..clock import Clock, SystemClock
from ..observability.constants import QUEUE_DEPTH, QUEUE_RUNNING
from ..observability.protocols import MetricsCollectorProtocol
from ..types.queue import QueueItem, QueueStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PriorityScheduler:
    """
    Runs submitted operations with at most ``max_concurrent`` in flight.

    Each submission resolves with its own operation's result or exception;
    a failure never affects other items. If the submitting caller is
    cancelled while its item is pending, the item is skipped; if it is
    cancelled while running, the running task is cancelled too.

    Attributes:
        max_concurrent: Concurrency bound
        running: Operations currently executing
        queued: Operations waiting for a slot
        peak_running: Highest ``running`` value observed

    Example:
        >>> scheduler = PriorityScheduler(max_concurrent=2)
        >>> doc = await scheduler.submit(lambda: client.get_document(uuid), priority=1)
    """

    def __init__(
        self,
        max_concurrent: int = 3,
        clock: Clock | None = None,
        metrics: MetricsCollectorProtocol | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._clock = clock or SystemClock()
        self._metrics = metrics
        self._pending: list[QueueItem] = []
        self._sequence = itertools.count()
        self._running = 0
        self._peak_running = 0
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def running(self) -> int:
        return self._running

    @property
    def queued(self) -> int:
        return sum(1 for item in self._pending if not item.future.done())

    @property
    def peak_running(self) -> int:
        return self._peak_running

    def status(self) -> QueueStatus:
        return QueueStatus(
            running=self._running,
            queued=self.queued,
            max_concurrent=self._max_concurrent,
        )

    async def submit(
        self, operation: Callable[[], Awaitable[T]], priority: int = 0
    ) -> T:
        """
        Queue ``operation`` and wait for it to run to completion.

        Args:
            operation: Zero-argument async callable
            priority: Higher numbers are started first; FIFO among equals

        Returns:
            The operation's result

        Raises:
            Whatever the operation raises
        """
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        item = QueueItem(
            operation=operation,
            priority=priority,
            enqueued_at=self._clock.now(),
            sequence=next(self._sequence),
            future=future,
        )
        heapq.heappush(self._pending, item)
        logger.debug(
            f"Queued item {item.sequence} (priority={priority}, "
            f"running={self._running}, queued={len(self._pending)})"
        )
        self._dispatch()
        return await future

    def _dispatch(self) -> None:
        """Start pending items while slots are free."""
        while self._running < self._max_concurrent and self._pending:
            item = heapq.heappop(self._pending)
            if item.future.done():
                logger.debug(f"Skipping item {item.sequence}: caller cancelled")
                continue

            self._running += 1
            self._peak_running = max(self._peak_running, self._running)
            task = asyncio.create_task(self._run(item))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            item.future.add_done_callback(
                lambda f, t=task: t.cancel() if f.cancelled() else None
            )
        self._update_gauges()

    async def _run(self, item: QueueItem) -> None:
        try:
            result = await item.operation()
        except asyncio.CancelledError:
            if not item.future.done():
                item.future.cancel()
            raise
        except Exception as e:
            if not item.future.done():
                item.future.set_exception(e)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._running -= 1
            self._dispatch()

    def _update_gauges(self) -> None:
        if self._metrics:
            self._metrics.set_gauge(QUEUE_RUNNING, self._running)
            self._metrics.set_gauge(QUEUE_DEPTH, self.queued)

    async def shutdown(self) -> None:
        """Cancel pending and running work and wait for tasks to finish."""
        while self._pending:
            item = heapq.heappop(self._pending)
            if not item.future.done():
                item.future.cancel()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        self._update_gauges()


__all__ = [
    "PriorityScheduler",
]
