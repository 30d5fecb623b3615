# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Retry with exponential backoff for governed operations.

Each attempt is bounded by a timeout and its failure classified. Terminal
failures are raised after a single attempt; transient failures are retried
after a delay that honors the server's ``Retry-After`` hint when present
and otherwise doubles from ``base_delay`` up to ``max_delay``.
"""

import asyncio
import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..clock import Clock, SystemClock
from ..exceptions import OperationError, RetriesExhaustedError, TransientError
from ..observability.constants import RETRIES_EXHAUSTED_TOTAL, RETRIES_TOTAL
from ..observability.protocols import MetricsCollectorProtocol
from .classifier import classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryEvent:
    """
    Notification that a failed attempt will be retried.

    Attributes:
        operation: Name of the governed operation
        attempt: 1-based number of the attempt that failed
        delay: Seconds the policy will sleep before the next attempt
        error: Classified error of the failed attempt
    """

    operation: str
    attempt: int
    delay: float
    error: OperationError


RetryCallback = Callable[[RetryEvent], Any]


class RetryPolicy:
    """
    Bounded retry of transient failures.

    ``max_retries`` counts retries after the first attempt, so an operation
    runs at most ``max_retries + 1`` times.

    Example:
        >>> policy = RetryPolicy(max_retries=3, base_delay=1.0)
        >>> doc = await policy.execute(fetch_document, timeout=30.0, name="getDocument")
    """

    def __init__(
        self,
        clock: Clock | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: float = 0.0,
        on_retry: RetryCallback | None = None,
        metrics: MetricsCollectorProtocol | None = None,
    ):
        """
        Initialize the retry policy.

        Args:
            clock: Time source for backoff sleeps
            max_retries: Default retries after the first attempt
            base_delay: Default first backoff delay in seconds
            max_delay: Cap for computed delays (server hints are not capped)
            jitter: Random extra delay as a fraction of the computed backoff
            on_retry: Sync or async callback invoked before each backoff sleep
            metrics: Optional metrics collector
        """
        if max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("delays must be non-negative")
        if jitter < 0:
            raise ValueError("jitter must be non-negative")
        self._clock = clock or SystemClock()
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._on_retry = on_retry
        self._metrics = metrics

    def compute_delay(
        self,
        attempt: int,
        error: OperationError,
        base_delay: float | None = None,
    ) -> float:
        """
        Delay before the retry that follows the 0-based ``attempt``.

        A server-supplied ``retry_after`` is used as-is. Otherwise the delay
        is ``min(base_delay * 2**attempt, max_delay)`` plus jitter.
        """
        if error.retry_after is not None:
            return error.retry_after
        base = self.base_delay if base_delay is None else base_delay
        backoff = min(base * (2**attempt), self.max_delay)
        if self.jitter > 0:
            backoff += random.uniform(0, backoff * self.jitter)
        return backoff

    async def _notify(self, event: RetryEvent) -> None:
        if self._on_retry is None:
            return
        try:
            result = self._on_retry(event)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"on_retry callback failed for {event.operation}: {e}")

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_retries: int | None = None,
        base_delay: float | None = None,
        *,
        timeout: float | None = None,
        name: str = "operation",
        before_retry: Callable[[], Awaitable[Any]] | None = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds, fails terminally or runs out of retries.

        Args:
            operation: Zero-argument async callable
            max_retries: Override of the default retry count
            base_delay: Override of the default first backoff delay
            timeout: Per-attempt timeout in seconds (None for unbounded)
            name: Operation name used in errors, logs and metrics
            before_retry: Awaited after the backoff sleep and before each
                retry, outside the attempt timeout (e.g. a rate limit wait)

        Returns:
            The operation's result

        Raises:
            TerminalError: On a non-retryable failure (including AuthExpiredError)
            RetriesExhaustedError: When every attempt failed transiently
        """
        retries = self.max_retries if max_retries is None else max_retries
        if retries < 0:
            raise ValueError("max_retries must be non-negative")

        last_error: OperationError | None = None
        attempts = 0

        for attempt in range(retries + 1):
            if attempt > 0 and before_retry is not None:
                await before_retry()
            attempts += 1
            try:
                if timeout is not None:
                    return await asyncio.wait_for(operation(), timeout)
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = classify_error(e, operation=name, now=self._clock.now())
                if not isinstance(error, TransientError):
                    logger.debug(f"{name}: non-retryable failure: {error}")
                    if error is e:
                        raise
                    raise error from e
                last_error = error

            if attempt >= retries:
                break

            delay = self.compute_delay(attempt, last_error, base_delay)
            logger.warning(
                f"{name}: attempt {attempts} failed ({last_error}); "
                f"retrying in {delay:.2f}s"
            )
            if self._metrics:
                reason = "rate_limited" if last_error.status_code == 429 else "transient"
                self._metrics.inc_counter(
                    RETRIES_TOTAL, labels={"operation": name, "reason": reason}
                )
            await self._notify(
                RetryEvent(operation=name, attempt=attempts, delay=delay, error=last_error)
            )
            await self._clock.sleep(delay)

        assert last_error is not None
        if self._metrics:
            self._metrics.inc_counter(
                RETRIES_EXHAUSTED_TOTAL, labels={"operation": name}
            )
        raise RetriesExhaustedError(
            f"{name} failed after {attempts} attempts: {last_error}",
            last_error=last_error,
            attempts=attempts,
        ) from last_error


__all__ = [
    "RetryCallback",
    "RetryEvent",
    "RetryPolicy",
]
