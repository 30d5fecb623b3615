# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Exception classes for the request governor.

This module defines the exception hierarchy used throughout the library.
All exceptions inherit from GovernorError, making it easy to catch
all governor-related exceptions with a single except clause.

Rate limiting, duplicate operations and refresh cooldowns have no
exception here. A rate limit is a delay; the other two are reported as
``FetchResult`` statuses (DUPLICATE, COOLDOWN).
"""

from collections.abc import Mapping
from typing import Any


class GovernorError(Exception):
    """Base exception for all request governor errors.

    Example:
        try:
            result = await governor.fetch("getDocument", uuid, fetch_fn)
        except GovernorError as e:
            logger.error(f"Governor error: {e}")
    """

    pass


class ConfigurationError(GovernorError, ValueError):
    """Raised when configuration is invalid.

    Common causes include:
    - Non-positive requests-per-minute or negative intervals
    - Negative TTLs, cooldowns or timeouts
    - A concurrency bound lower than one
    """

    pass


class OperationError(GovernorError):
    """Base class for failures of a governed operation.

    Attributes:
        status_code: HTTP status code of the failed call, if any.
        retry_after: Server-supplied wait hint in seconds, if any.
        operation: Name of the operation that failed, if known.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retry_after: float | None = None,
        operation: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.operation = operation


class TransientError(OperationError):
    """A failure worth retrying: timeout, connection failure, 5xx or 429.

    Example:
        try:
            await policy.execute(call_api)
        except RetriesExhaustedError as e:
            if isinstance(e.last_error, TransientError):
                logger.warning(f"Still failing after {e.attempts} attempts")
    """

    pass


class TerminalError(OperationError):
    """A failure that retrying cannot fix: 4xx other than 429, malformed data."""

    pass


class AuthExpiredError(TerminalError):
    """Raised for HTTP 401/403.

    Kept distinct from TerminalError so the caller can start a
    re-authentication flow instead of showing a generic error.
    """

    pass


class ApiError(OperationError):
    """Raw HTTP failure raised by a governed operation.

    Operation authors raise this (or any exception exposing ``status_code``
    and ``headers``) and the retry classifier turns it into a
    TransientError, TerminalError or AuthExpiredError.

    Attributes:
        headers: Response headers, used to read ``Retry-After``.

    Example:
        async def get_document():
            response = await session.get(url)
            if response.status >= 400:
                raise ApiError(
                    "document lookup failed",
                    status_code=response.status,
                    headers=dict(response.headers),
                )
            return await response.json()
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        headers: Mapping[str, str] | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, status_code=status_code, operation=operation)
        self.headers: dict[str, str] = dict(headers or {})


class RetriesExhaustedError(GovernorError):
    """Raised when a retryable failure persists through every attempt.

    Attributes:
        last_error: The classified error of the final attempt.
        attempts: Number of attempts made.
    """

    def __init__(self, message: str, last_error: OperationError, attempts: int):
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class AllSourcesExhaustedError(GovernorError):
    """Raised when live, degraded and cached sources all failed for a key.

    This is the only error the governor composes itself. It lists every
    stage that was attempted together with that stage's error (``None`` for
    a cache miss).

    Attributes:
        operation: The governed operation name.
        key: The resource key being fetched.
        stages: Names of the stages attempted, in order.
        errors: Mapping of stage name to its error, or None on a miss.
    """

    def __init__(
        self,
        operation: str,
        key: str,
        stages: list[str],
        errors: dict[str, BaseException | None],
    ):
        summary = ", ".join(
            f"{stage}: {errors.get(stage) or 'miss'}" for stage in stages
        )
        super().__init__(f"All sources failed for {operation}[{key}] ({summary})")
        self.operation = operation
        self.key = key
        self.stages = stages
        self.errors = errors

    @property
    def live_error(self) -> BaseException | None:
        """The error of the live stage."""
        return self.errors.get("live")

    @property
    def is_auth_expired(self) -> bool:
        """Whether the live stage failed on authentication."""
        error: Any = self.live_error
        if isinstance(error, RetriesExhaustedError):
            error = error.last_error
        return isinstance(error, AuthExpiredError)


__all__ = [
    "AllSourcesExhaustedError",
    "ApiError",
    "AuthExpiredError",
    "ConfigurationError",
    "GovernorError",
    "OperationError",
    "RetriesExhaustedError",
    "TerminalError",
    "TransientError",
]
