# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Error classification for governed operations.

Operations raise whatever their HTTP client raises. ``classify_error``
maps those failures onto the governor's taxonomy so the retry policy and
the fallback chain can decide what to do:

    - TransientError: timeouts, connection failures, HTTP 429 and 5xx
    - AuthExpiredError: HTTP 401 and 403
    - TerminalError: any other 4xx, malformed responses, unknown errors

The HTTP status is read duck-typed from ``status_code`` or ``status`` on the
error or on its ``response`` attribute, which covers ApiError, httpx and
aiohttp style exceptions alike.
"""

import asyncio
import time
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from ..exceptions import (
    ApiError,
    AuthExpiredError,
    GovernorError,
    OperationError,
    TerminalError,
    TransientError,
)

RETRY_AFTER_HEADERS = ("retry-after", "x-rate-limit-reset")
"""Headers carrying a wait hint on 429 responses, in order of preference."""

REMAINING_HEADER = "x-rate-limit-remaining"
"""Header carrying the requests left in the server's current quota window."""

# Numeric hints above this are absolute epoch timestamps, not durations
_EPOCH_THRESHOLD = 1_000_000_000


def parse_retry_after(value: Any, now: float | None = None) -> float | None:
    """
    Parse a wait hint into seconds from ``now``.

    Accepts a number of seconds, an epoch timestamp, an HTTP-date
    (``Wed, 21 Oct 2015 07:28:00 GMT``) or an ISO 8601 timestamp. Dates in
    the past yield 0.

    Returns:
        Seconds to wait, or None if the value is missing or unparseable
    """
    if value is None:
        return None
    if now is None:
        now = time.time()

    text = str(value).strip()
    if not text:
        return None

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if seconds != seconds or seconds < 0:  # NaN or negative
            return None
        if seconds >= _EPOCH_THRESHOLD:
            return max(0.0, seconds - now)
        return seconds

    moment: datetime | None
    try:
        moment = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        moment = None
    if moment is None:
        try:
            moment = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max(0.0, moment.timestamp() - now)


def _status_of(error: BaseException) -> int | None:
    for source in (error, getattr(error, "response", None)):
        if source is None:
            continue
        for attr in ("status_code", "status"):
            value = getattr(source, attr, None)
            if isinstance(value, int) and not isinstance(value, bool):
                return value
    return None


def _headers_of(error: BaseException) -> dict[str, str]:
    for source in (error, getattr(error, "response", None)):
        if source is None:
            continue
        headers = getattr(source, "headers", None)
        if isinstance(headers, Mapping) or hasattr(headers, "items"):
            try:
                return {str(k).lower(): str(v) for k, v in headers.items()}
            except (AttributeError, TypeError):
                continue
    return {}


def retry_after_from_headers(
    headers: Mapping[str, str], now: float | None = None
) -> float | None:
    """Wait hint from ``Retry-After`` or ``X-Rate-Limit-Reset`` (case-insensitive)."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for name in RETRY_AFTER_HEADERS:
        hint = parse_retry_after(lowered.get(name), now)
        if hint is not None:
            return hint
    return None


def server_limit_from_headers(
    headers: Mapping[str, str], now: float | None = None
) -> tuple[int | None, float | None]:
    """
    Server quota reported by response headers.

    Returns:
        ``(remaining, reset_in)``: requests left in the quota window and
        seconds until it resets, each None when the header is absent or
        unparseable
    """
    lowered = {str(k).lower(): v for k, v in headers.items()}
    remaining: int | None = None
    raw = lowered.get(REMAINING_HEADER)
    if raw is not None:
        try:
            remaining = int(float(str(raw).strip()))
        except (ValueError, OverflowError):
            remaining = None
    return remaining, retry_after_from_headers(lowered, now)


def server_limit_from_error(
    error: BaseException, now: float | None = None
) -> tuple[int | None, float | None]:
    """
    Server quota reported by a failed call.

    A 429 always means no quota is left, whatever the headers say.
    """
    remaining, reset_in = server_limit_from_headers(_headers_of(error), now)
    if _status_of(error) == 429:
        remaining = 0
    return remaining, reset_in


def classify_error(
    error: BaseException,
    operation: str | None = None,
    now: float | None = None,
) -> OperationError | GovernorError:
    """
    Map a raw failure onto the governor's error taxonomy.

    Errors that are already classified are returned unchanged. A new
    classified error carries the original as ``__cause__``.

    Args:
        error: The exception raised by the operation
        operation: Operation name recorded on the classified error
        now: Current time, used to resolve date-valued wait hints

    Returns:
        TransientError, TerminalError, AuthExpiredError or the original
        GovernorError
    """
    if isinstance(error, GovernorError) and not isinstance(error, ApiError):
        return error

    classified: OperationError
    message = str(error) or type(error).__name__
    status = _status_of(error)

    if status is not None:
        if status == 429:
            retry_after = retry_after_from_headers(_headers_of(error), now)
            classified = TransientError(
                f"Rate limited (429): {message}",
                status_code=status,
                retry_after=retry_after,
                operation=operation,
            )
        elif status in (401, 403):
            classified = AuthExpiredError(
                f"Authentication failed ({status}): {message}",
                status_code=status,
                operation=operation,
            )
        elif status >= 500:
            classified = TransientError(
                f"Server error ({status}): {message}",
                status_code=status,
                operation=operation,
            )
        else:
            classified = TerminalError(
                f"Request failed ({status}): {message}",
                status_code=status,
                operation=operation,
            )
    elif isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        classified = TransientError(f"Timed out: {message}", operation=operation)
    elif isinstance(error, (ConnectionError, OSError)):
        classified = TransientError(f"Connection failed: {message}", operation=operation)
    elif isinstance(error, (ValueError, TypeError, KeyError)):
        classified = TerminalError(f"Malformed response: {message}", operation=operation)
    else:
        classified = TerminalError(
            f"Unexpected {type(error).__name__}: {message}", operation=operation
        )

    classified.__cause__ = error
    return classified


__all__ = [
    "REMAINING_HEADER",
    "RETRY_AFTER_HEADERS",
    "classify_error",
    "parse_retry_after",
    "retry_after_from_headers",
    "server_limit_from_error",
    "server_limit_from_headers",
]
