"""Console presenter adapter.

Implements the core PresenterPort by printing notifications and dismissing
them after a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional, TextIO

from pushrules.adapters.notification_formatting import format_notification
from pushrules.core.models import NotificationRequest

LOGGER = logging.getLogger(__name__)


class ConsolePresenter:
    """Prints notifications and keeps them active until they auto-dismiss.

    A new notification with the same tag replaces the active one, as desktop
    notification tags do.
    """

    def __init__(self, dismiss_after: float = 5.0, stream: Optional[TextIO] = None) -> None:
        self._dismiss_after = dismiss_after
        self._stream = stream
        self._active: dict[str, NotificationRequest] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @property
    def active(self) -> dict[str, NotificationRequest]:
        return dict(self._active)

    async def present(self, request: NotificationRequest) -> None:
        """Print the notification and schedule its dismissal."""

        stream = self._stream or sys.stdout
        print(format_notification(request, mode="markdown"), file=stream)
        if request.audio:
            LOGGER.info("Playing sound %s", request.audio)

        previous = self._timers.pop(request.tag, None)
        if previous is not None:
            previous.cancel()
        self._active[request.tag] = request
        loop = asyncio.get_running_loop()
        self._timers[request.tag] = loop.call_later(self._dismiss_after, self._dismiss, request.tag)

    def _dismiss(self, tag: str) -> None:
        self._timers.pop(tag, None)
        request = self._active.pop(tag, None)
        if request is not None and request.audio:
            LOGGER.info("Stopping sound %s", request.audio)
        LOGGER.debug("Dismissed notification %s", tag)
