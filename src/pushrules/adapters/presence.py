"""Activity-based presence adapter.

Implements the core PresencePort. A user counts as idle once no activity was
recorded for the configured interval, or whenever the client is hidden.
"""

from __future__ import annotations

import time
from typing import Callable

from pushrules.core.config import PresenceConfig


class ActivityPresence:
    """Idle/hidden tracker fed by explicit activity reports."""

    def __init__(self, config: PresenceConfig, clock: Callable[[], float] = time.monotonic) -> None:
        self._idle_after = config.idle_after_seconds
        self._clock = clock
        self._last_active = clock()
        self._hidden = False

    def mark_active(self) -> None:
        self._last_active = self._clock()

    def set_hidden(self, hidden: bool) -> None:
        self._hidden = hidden

    def is_user_idle_or_hidden(self) -> bool:
        if self._hidden:
            return True
        return self._clock() - self._last_active >= self._idle_after
