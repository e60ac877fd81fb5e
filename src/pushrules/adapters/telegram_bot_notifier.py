"""Telegram Bot API presenter adapter.

Forwards notifications to a bot chat and deletes them again after the
dismiss interval, mirroring a desktop notification's lifetime.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from pushrules.adapters.notification_formatting import format_notification
from pushrules.core.models import NotificationRequest

LOGGER = logging.getLogger(__name__)


class TelegramBotPresenter:
    """Presenter adapter that sends notifications via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        dismiss_after: float = 5.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._dismiss_after = dismiss_after
        self._http = http_client or httpx.AsyncClient(timeout=10.0)
        self._pending: set[asyncio.Task] = set()

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/{method}"

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._http.post(self._endpoint(method), json=payload)
        if response.status_code >= 400:
            raise RuntimeError(f"Bot API error {response.status_code}: {response.text}")
        return response.json()

    async def present(self, request: NotificationRequest) -> None:
        """Send the formatted notification and schedule its deletion."""

        payload = {
            "chat_id": self._chat_id,
            "text": format_notification(request, mode="html"),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
            # Telegram plays its own sound; a silent rule stays silent.
            "disable_notification": not request.audio,
        }
        data = await self._call("sendMessage", payload)
        message_id = (data.get("result") or {}).get("message_id")
        if message_id is None or self._dismiss_after <= 0:
            return
        task = asyncio.ensure_future(self._dismiss_later(message_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _dismiss_later(self, message_id: int) -> None:
        await asyncio.sleep(self._dismiss_after)
        try:
            await self._call("deleteMessage", {"chat_id": self._chat_id, "message_id": message_id})
        except (httpx.HTTPError, RuntimeError):
            LOGGER.warning("Could not dismiss Telegram notification %s", message_id)

    async def wait_dismissed(self) -> None:
        """Wait for scheduled dismissals to finish."""

        if self._pending:
            await asyncio.gather(*self._pending)

    async def aclose(self) -> None:
        """Delete still-visible notifications, then close the HTTP client."""

        await self.wait_dismissed()
        await self._http.aclose()
