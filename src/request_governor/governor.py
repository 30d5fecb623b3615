# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
RequestGovernor: the single entry point for governed API calls.

Every outbound call to the tax-authority API goes through ``fetch``,
which runs the call through these stages in order:

    1. Single-flight guard: a second fetch for a key already in flight
       returns DUPLICATE immediately.
    2. Optional cache-first read (``prefer_cache=True``): CACHED.
    3. Rate limiter admission for the operation name.
    4. Retry policy around the call. Each attempt holds a priority
       scheduler slot only while it runs; a retry waits for its new rate
       limit slot without holding a scheduler slot.
    5. Success: the payload is cached and returned as LIVE.
    6. Unrecoverable failure: the degraded source (DEGRADED), then the last
       valid cache entry (STALE), otherwise AllSourcesExhaustedError.

The guard is always released, whatever the outcome.
"""

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from typing_extensions import Self

from .cache import CacheBackend, HealthCheckResult, ResponseCache
from .clock import Clock, SystemClock
from .config import GovernorConfig
from .exceptions import AllSourcesExhaustedError, AuthExpiredError, GovernorError
from .guard import SingleFlightGuard
from .observability.collector import get_metrics_collector
from .observability.constants import (
    COOLDOWN_REJECTIONS_TOTAL,
    DUPLICATE_REJECTIONS_TOTAL,
    FALLBACKS_TOTAL,
    FETCH_DURATION_SECONDS,
    FETCHES_TOTAL,
    SOURCES_EXHAUSTED_TOTAL,
    SUPERSEDED_RESULTS_TOTAL,
)
from .observability.protocols import MetricsCollectorProtocol
from .retry import (
    RetryCallback,
    RetryPolicy,
    server_limit_from_error,
    server_limit_from_headers,
)
from .scheduler import PriorityScheduler
from .throttle import RateLimiter, RefreshCooldown
from .types.queue import QueueStatus
from .types.rate_limit import RateLimitStatus
from .types.result import FetchResult, FetchStatus

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]
AuthExpiredCallback = Callable[[AuthExpiredError], Any]


class RequestGovernor:
    """
    Coordinates rate limiting, scheduling, deduplication, retry and fallback.

    The governor owns one of each collaborator and is the only component
    that falls back; the collaborators report failures faithfully.

    Attributes:
        config: The GovernorConfig in use
        limiter: Per-operation RateLimiter
        scheduler: PriorityScheduler bounding concurrency
        guard: SingleFlightGuard keyed by resource key
        retry_policy: RetryPolicy for live attempts
        cache: ResponseCache of live payloads
        cooldowns: RefreshCooldown tracker for ``refresh``

    Example:
        >>> async with RequestGovernor() as governor:
        ...     result = await governor.fetch(
        ...         "getDocumentDetails",
        ...         uuid,
        ...         lambda: api.get_document_details(uuid),
        ...         degraded=lambda: db.load_document(uuid),
        ...     )
        ...     if result.stale:
        ...         show_banner("Showing cached data")
    """

    def __init__(
        self,
        config: GovernorConfig | None = None,
        *,
        clock: Clock | None = None,
        cache_backend: CacheBackend | None = None,
        metrics: MetricsCollectorProtocol | None = None,
        on_auth_expired: AuthExpiredCallback | None = None,
        on_retry: RetryCallback | None = None,
    ):
        """
        Initialize the governor.

        Args:
            config: Configuration (defaults to GovernorConfig())
            clock: Time source shared by every collaborator
            cache_backend: Cache storage (in-memory by default)
            metrics: Metrics collector. Defaults to the global collector
                when ``config.metrics_enabled`` is set.
            on_auth_expired: Sync or async callback invoked with the error
                when a live call fails with HTTP 401/403
            on_retry: Sync or async callback invoked before each retry
        """
        self.config = config or GovernorConfig()
        self._clock = clock or SystemClock()

        if not self.config.metrics_enabled:
            metrics = None
        elif metrics is None:
            metrics = get_metrics_collector(
                enable_prometheus=self.config.enable_prometheus
            )
        self._metrics = metrics

        self.limiter = RateLimiter(self.config.rate_limits, self._clock, metrics)
        self.scheduler = PriorityScheduler(
            self.config.max_concurrent, self._clock, metrics
        )
        self.guard = SingleFlightGuard(
            self._clock, self.config.single_flight_timeout, metrics
        )
        self.retry_policy = RetryPolicy(
            self._clock,
            max_retries=self.config.max_retries,
            base_delay=self.config.base_delay,
            max_delay=self.config.max_backoff,
            jitter=self.config.retry_jitter,
            on_retry=on_retry,
            metrics=metrics,
        )
        self.cache = ResponseCache(
            cache_backend,
            self._clock,
            default_ttl=self.config.default_cache_ttl,
            ttls=self.config.cache_ttls,
            metrics=metrics,
        )
        self.cooldowns = RefreshCooldown(
            self.config.default_refresh_cooldown,
            self.config.refresh_cooldowns,
            self._clock,
        )

        self._on_auth_expired = on_auth_expired
        self._epoch = 0
        self._source = "live"
        self._closed = False

    # === Data source epochs ===

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def source(self) -> str:
        return self._source

    def switch_source(self, name: str) -> int:
        """
        Switch the active data source (e.g. "live" to "archive").

        Fetches that started before the switch complete but their results
        are discarded as SUPERSEDED.

        Returns:
            The new epoch
        """
        self._epoch += 1
        previous, self._source = self._source, name
        logger.info(f"Data source switched {previous} -> {name} (epoch {self._epoch})")
        return self._epoch

    # === Fetch ===

    def _attempt_timeout(self, timeout: float | None, batch: bool) -> float:
        if timeout is not None:
            return timeout
        return self.config.batch_timeout if batch else self.config.interactive_timeout

    def _finish(self, result: FetchResult) -> FetchResult:
        if self._metrics:
            self._metrics.inc_counter(
                FETCHES_TOTAL,
                labels={"operation": result.operation, "outcome": result.status.value},
            )
        return result

    def _superseded(
        self, operation: str, key: str, epoch: int, attempts: int = 0
    ) -> FetchResult:
        logger.info(
            f"{operation}[{key}] discarded: data source changed "
            f"(epoch {epoch} -> {self._epoch})"
        )
        if self._metrics:
            self._metrics.inc_counter(
                SUPERSEDED_RESULTS_TOTAL, labels={"operation": operation}
            )
        return self._finish(
            FetchResult(
                FetchStatus.SUPERSEDED,
                operation,
                key,
                attempts=attempts,
                epoch=epoch,
            )
        )

    async def fetch(
        self,
        operation: str,
        key: str,
        fetch_fn: FetchFn,
        *,
        priority: int = 0,
        degraded: FetchFn | None = None,
        resource_class: str | None = None,
        timeout: float | None = None,
        batch: bool = False,
        prefer_cache: bool = False,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> FetchResult:
        """
        Run a governed fetch of one resource.

        Args:
            operation: Rate-limited operation name (e.g. "getDocumentDetails")
            key: Resource key used for deduplication and caching
            fetch_fn: Zero-argument async callable performing the live call
            priority: Scheduler priority (higher first)
            degraded: Optional zero-argument async callable for the degraded
                source, tried once without rate limiting or retry
            resource_class: Selects the cache TTL
            timeout: Per-attempt timeout override
            batch: Use the batch timeout instead of the interactive one
            prefer_cache: Serve a valid cache entry without a live call
            max_retries: Retry count override
            base_delay: Backoff base override

        Returns:
            FetchResult with status LIVE, CACHED, DEGRADED, STALE, DUPLICATE
            or SUPERSEDED

        Raises:
            AllSourcesExhaustedError: If the live call failed and neither the
                degraded source nor the cache could serve the key
        """
        epoch = self._epoch
        lock = self.guard.acquire(key)
        if lock is None:
            logger.debug(f"{operation}[{key}] already in progress")
            if self._metrics:
                self._metrics.inc_counter(
                    DUPLICATE_REJECTIONS_TOTAL, labels={"operation": operation}
                )
            return self._finish(
                FetchResult(FetchStatus.DUPLICATE, operation, key, epoch=epoch)
            )

        try:
            return await self._fetch_held(
                operation,
                key,
                fetch_fn,
                epoch=epoch,
                priority=priority,
                degraded=degraded,
                resource_class=resource_class,
                timeout=self._attempt_timeout(timeout, batch),
                prefer_cache=prefer_cache,
                max_retries=max_retries,
                base_delay=base_delay,
            )
        finally:
            self.guard.release(key, lock)

    async def _fetch_held(
        self,
        operation: str,
        key: str,
        fetch_fn: FetchFn,
        *,
        epoch: int,
        priority: int,
        degraded: FetchFn | None,
        resource_class: str | None,
        timeout: float,
        prefer_cache: bool,
        max_retries: int | None,
        base_delay: float | None,
    ) -> FetchResult:
        if prefer_cache:
            try:
                entry = await self.cache.get(key)
            except Exception as e:
                logger.warning(
                    f"{operation}[{key}] cache read failed, fetching live: {e}"
                )
                entry = None
            if entry is not None:
                return self._finish(
                    FetchResult(
                        FetchStatus.CACHED,
                        operation,
                        key,
                        payload=entry.payload,
                        source="cache",
                        fetched_at=entry.fetched_at,
                        epoch=epoch,
                    )
                )

        attempts = 0

        async def attempt() -> Any:
            nonlocal attempts
            attempts += 1
            try:
                return await asyncio.wait_for(fetch_fn(), timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record_server_limit(operation, e)
                raise

        async def scheduled_attempt() -> Any:
            return await self.scheduler.submit(attempt, priority)

        async def retry_slot() -> None:
            await self.limiter.wait_for_slot(operation)

        started = self._clock.now()
        try:
            await self.limiter.wait_for_slot(operation)
            payload = await self.retry_policy.execute(
                scheduled_attempt,
                max_retries,
                base_delay,
                name=operation,
                before_retry=retry_slot,
            )
        except GovernorError as e:
            live_error = e
        else:
            if self._epoch != epoch:
                return self._superseded(operation, key, epoch, attempts)
            fetched_at = self._clock.now()
            if self._metrics:
                self._metrics.observe_histogram(
                    FETCH_DURATION_SECONDS,
                    fetched_at - started,
                    labels={"operation": operation},
                )
            try:
                await self.cache.put(
                    key, payload, resource_class=resource_class, fetched_at=fetched_at
                )
            except Exception as e:
                logger.warning(f"Failed to cache {operation}[{key}]: {e}")
            return self._finish(
                FetchResult(
                    FetchStatus.LIVE,
                    operation,
                    key,
                    payload=payload,
                    source="live",
                    fetched_at=fetched_at,
                    attempts=attempts,
                    epoch=epoch,
                )
            )

        return await self._fall_back(
            operation,
            key,
            live_error,
            epoch=epoch,
            attempts=attempts,
            degraded=degraded,
            timeout=timeout,
        )

    async def _fall_back(
        self,
        operation: str,
        key: str,
        live_error: GovernorError,
        *,
        epoch: int,
        attempts: int,
        degraded: FetchFn | None,
        timeout: float,
    ) -> FetchResult:
        """
        Serve ``key`` from the degraded source or the cache after a live failure.

        The degraded source is tried once, bounded by the same per-attempt
        timeout as the live call.
        """
        if self._epoch != epoch:
            return self._superseded(operation, key, epoch, attempts)

        logger.warning(f"{operation}[{key}] live fetch failed: {live_error}")
        if isinstance(live_error, AuthExpiredError):
            await self._notify_auth_expired(live_error)

        stages = ["live"]
        errors: dict[str, BaseException | None] = {"live": live_error}

        if degraded is not None:
            stages.append("degraded")
            self._count_fallback(operation, "degraded")
            try:
                payload = await asyncio.wait_for(degraded(), timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"{operation}[{key}] degraded source failed: {e}")
                errors["degraded"] = e
            else:
                if self._epoch != epoch:
                    return self._superseded(operation, key, epoch, attempts)
                return self._finish(
                    FetchResult(
                        FetchStatus.DEGRADED,
                        operation,
                        key,
                        payload=payload,
                        source="degraded",
                        fetched_at=self._clock.now(),
                        attempts=attempts,
                        error=live_error,
                        epoch=epoch,
                    )
                )

        stages.append("cache")
        self._count_fallback(operation, "cache")
        try:
            entry = await self.cache.get(key)
        except Exception as e:
            logger.warning(f"{operation}[{key}] cache read failed: {e}")
            errors["cache"] = e
        else:
            errors["cache"] = None
            if entry is not None:
                if self._epoch != epoch:
                    return self._superseded(operation, key, epoch, attempts)
                return self._finish(
                    FetchResult(
                        FetchStatus.STALE,
                        operation,
                        key,
                        payload=entry.payload,
                        source="cache",
                        fetched_at=entry.fetched_at,
                        attempts=attempts,
                        error=live_error,
                        epoch=epoch,
                    )
                )

        if self._metrics:
            self._metrics.inc_counter(
                SOURCES_EXHAUSTED_TOTAL, labels={"operation": operation}
            )
        raise AllSourcesExhaustedError(operation, key, stages, errors) from live_error

    def _record_server_limit(self, operation: str, error: BaseException) -> None:
        remaining, reset_in = server_limit_from_error(error, now=self._clock.now())
        self.limiter.note_server_limit(operation, remaining, reset_in)

    def record_response_headers(
        self, operation: str, headers: Mapping[str, str]
    ) -> None:
        """
        Feed the server's quota headers from a successful response to the limiter.

        Failed calls are recorded automatically. Operation authors call this
        with the headers of successful responses so that an exhausted quota
        (``X-Rate-Limit-Remaining: 0``) holds the next call until the reset.
        """
        remaining, reset_in = server_limit_from_headers(headers, now=self._clock.now())
        self.limiter.note_server_limit(operation, remaining, reset_in)

    def _count_fallback(self, operation: str, stage: str) -> None:
        if self._metrics:
            self._metrics.inc_counter(
                FALLBACKS_TOTAL, labels={"operation": operation, "stage": stage}
            )

    async def _notify_auth_expired(self, error: AuthExpiredError) -> None:
        if self._on_auth_expired is None:
            return
        try:
            result = self._on_auth_expired(error)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"on_auth_expired callback failed: {e}")

    # === Refresh ===

    async def refresh(
        self,
        action: str,
        operation: str,
        key: str,
        fetch_fn: FetchFn,
        *,
        priority: int = 0,
        degraded: FetchFn | None = None,
        resource_class: str | None = None,
        timeout: float | None = None,
        batch: bool = False,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> FetchResult:
        """
        User-forced refresh, bounded by a per-action cooldown.

        Inside the cooldown, returns COOLDOWN with ``remaining_cooldown``
        without touching the limiter, the guard or the network. Otherwise
        runs a live ``fetch``; only a LIVE result starts a new cooldown.
        """
        remaining = self.cooldowns.remaining(action)
        if remaining > 0:
            logger.debug(f"Refresh {action} rejected: {remaining:.1f}s cooldown left")
            if self._metrics:
                self._metrics.inc_counter(
                    COOLDOWN_REJECTIONS_TOTAL, labels={"action": action}
                )
            return self._finish(
                FetchResult(
                    FetchStatus.COOLDOWN,
                    operation,
                    key,
                    remaining_cooldown=remaining,
                    epoch=self._epoch,
                )
            )

        result = await self.fetch(
            operation,
            key,
            fetch_fn,
            priority=priority,
            degraded=degraded,
            resource_class=resource_class,
            timeout=timeout,
            batch=batch,
            max_retries=max_retries,
            base_delay=base_delay,
        )
        if result.status is FetchStatus.LIVE:
            self.cooldowns.record_success(action)
        return result

    # === Status queries ===

    def queue_status(self) -> QueueStatus:
        return self.scheduler.status()

    def rate_limit_status(self, operation: str) -> RateLimitStatus:
        return self.limiter.status(operation)

    def remaining_in_window(self, operation: str) -> int | None:
        return self.limiter.remaining_in_window(operation)

    def next_available_in(self, operation: str) -> float:
        return self.limiter.next_available_in(operation)

    def server_blocked_in(self, operation: str) -> float:
        return self.limiter.server_blocked_in(operation)

    def refresh_cooldown_remaining(self, action: str) -> float:
        return self.cooldowns.remaining(action)

    def estimated_wait(self, operation: str) -> float:
        """Seconds a new call for ``operation`` would be held by the limiter."""
        return self.limiter.estimated_wait(operation)

    def is_in_flight(self, key: str) -> bool:
        return self.guard.is_held(key)

    def get_metrics(self) -> dict[str, Any]:
        """
        Snapshot of governor state and collected metrics.

        Returns:
            Dictionary containing:
            - queue: running / queued / max_concurrent / peak_running
            - in_flight: keys currently held by the guard
            - epoch, source: current data source
            - metrics: collector snapshot (empty when metrics are disabled)
        """
        status = self.scheduler.status()
        return {
            "queue": {
                "running": status.running,
                "queued": status.queued,
                "max_concurrent": status.max_concurrent,
                "peak_running": self.scheduler.peak_running,
            },
            "in_flight": self.guard.held_keys(),
            "epoch": self._epoch,
            "source": self._source,
            "metrics": self._metrics.get_metrics() if self._metrics else {},
        }

    async def health_check(self) -> HealthCheckResult:
        return await self.cache.health_check()

    # === Lifecycle ===

    async def close(self) -> None:
        """Cancel outstanding work and close the cache backend."""
        if self._closed:
            return
        self._closed = True
        await self.scheduler.shutdown()
        await self.cache.close()
        logger.info("RequestGovernor closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def create_governor(
    config: GovernorConfig | None = None,
    *,
    redis_url: str | None = None,
    clock: Clock | None = None,
    metrics: MetricsCollectorProtocol | None = None,
    on_auth_expired: AuthExpiredCallback | None = None,
    on_retry: RetryCallback | None = None,
    **config_overrides: Any,
) -> RequestGovernor:
    """
    Factory function to create a RequestGovernor.

    Args:
        config: Base configuration. Keyword overrides are applied on top.
        redis_url: If given, cache responses in Redis (requires the
            ``redis`` extra); otherwise in memory
        clock: Time source
        metrics: Metrics collector
        on_auth_expired: Callback for HTTP 401/403 failures
        on_retry: Callback invoked before each retry
        **config_overrides: GovernorConfig fields, e.g. ``max_concurrent=5``

    Returns:
        Configured RequestGovernor

    Example:
        >>> governor = create_governor(max_concurrent=5, default_cache_ttl=600.0)
    """
    if config is None:
        config = GovernorConfig(**config_overrides)
    elif config_overrides:
        config = dataclasses.replace(config, **config_overrides)

    cache_backend: CacheBackend | None = None
    if redis_url is not None:
        from .cache.redis import RedisCacheBackend

        cache_backend = RedisCacheBackend(redis_url=redis_url)

    return RequestGovernor(
        config,
        clock=clock,
        cache_backend=cache_backend,
        metrics=metrics,
        on_auth_expired=on_auth_expired,
        on_retry=on_retry,
    )


__all__ = [
    "AuthExpiredCallback",
    "FetchFn",
    "RequestGovernor",
    "create_governor",
]
