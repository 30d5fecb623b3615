# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Refresh cooldown tracking.

A forced refresh of an action (reloading the inbound list, re-checking a
submission) is only allowed once its cooldown has elapsed since the last
successful refresh. Failed refreshes never start a cooldown.
"""

import logging
from collections.abc import Mapping

from ..clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class RefreshCooldown:
    """
    Per-action cooldowns measured from the last successful refresh.

    Example:
        >>> cooldown = RefreshCooldown(default_cooldown=5.0, clock=clock)
        >>> cooldown.record_success("inbound")
        >>> cooldown.remaining("inbound")
        5.0
    """

    def __init__(
        self,
        default_cooldown: float = 5.0,
        cooldowns: Mapping[str, float] | None = None,
        clock: Clock | None = None,
    ):
        if default_cooldown < 0:
            raise ValueError("default_cooldown must be non-negative")
        self._default = default_cooldown
        self._cooldowns = dict(cooldowns or {})
        self._clock = clock or SystemClock()
        self._last_success: dict[str, float] = {}

    def cooldown_for(self, action: str) -> float:
        return self._cooldowns.get(action, self._default)

    def remaining(self, action: str) -> float:
        """Seconds before ``action`` may refresh again (0 when allowed)."""
        last = self._last_success.get(action)
        if last is None:
            return 0.0
        return max(0.0, last + self.cooldown_for(action) - self._clock.now())

    def record_success(self, action: str) -> None:
        """Start the cooldown for ``action`` from now."""
        self._last_success[action] = self._clock.now()
        logger.debug(
            f"Refresh cooldown for {action} started ({self.cooldown_for(action)}s)"
        )

    def reset(self, action: str | None = None) -> None:
        if action is None:
            self._last_success.clear()
        else:
            self._last_success.pop(action, None)


__all__ = [
    "RefreshCooldown",
]
