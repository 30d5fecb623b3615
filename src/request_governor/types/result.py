# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Result types returned by the request governor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FetchStatus(Enum):
    """
    Outcome of a governed fetch.

    - LIVE: fresh payload from the external API
    - CACHED: valid cache entry served without a network call
    - DEGRADED: payload from the degraded source (e.g. database mirror)
    - STALE: last-known-good cache entry served after the live call failed
    - DUPLICATE: another operation for the same key is in progress
    - COOLDOWN: refresh rejected, the action's cooldown has not elapsed
    - SUPERSEDED: the data source changed while in flight, result discarded
    """

    LIVE = "live"
    CACHED = "cached"
    DEGRADED = "degraded"
    STALE = "stale"
    DUPLICATE = "duplicate"
    COOLDOWN = "cooldown"
    SUPERSEDED = "superseded"


_PAYLOAD_STATUSES = frozenset(
    {FetchStatus.LIVE, FetchStatus.CACHED, FetchStatus.DEGRADED, FetchStatus.STALE}
)


@dataclass
class FetchResult:
    """
    Result of ``RequestGovernor.fetch`` / ``refresh``.

    Attributes:
        status: Outcome of the fetch
        operation: Governed operation name
        key: Resource key
        payload: Returned data, None unless ``ok``
        source: "live", "degraded" or "cache"; None without a payload
        fetched_at: When the payload was obtained from its source
        attempts: Live attempts made (0 when the network was not touched)
        remaining_cooldown: Seconds left before a refresh is allowed
        error: Live failure that caused a DEGRADED or STALE result
        epoch: Data source epoch the fetch started in
    """

    status: FetchStatus
    operation: str
    key: str
    payload: Any = None
    source: str | None = None
    fetched_at: float | None = None
    attempts: int = 0
    remaining_cooldown: float = 0.0
    error: BaseException | None = None
    epoch: int = 0

    @property
    def ok(self) -> bool:
        """Whether a payload was delivered."""
        return self.status in _PAYLOAD_STATUSES

    @property
    def stale(self) -> bool:
        """Whether the payload is a last-known-good fallback."""
        return self.status is FetchStatus.STALE

    @property
    def is_pending(self) -> bool:
        """Whether the caller should wait rather than report a failure."""
        return self.status in (FetchStatus.DUPLICATE, FetchStatus.COOLDOWN)


__all__ = [
    "FetchResult",
    "FetchStatus",
]
