"""Shared notification formatting helpers.

Keeping formatting here prevents drift between presenters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

import html
from typing import Optional

from pushrules.core.models import UNKNOWN_SENDER_NAME, Event, NotificationRequest
from pushrules.core.ports import RoomStatePort


class EventMessageFormatter:
    """Derives notification text for message, join and invite events."""

    def __init__(self, room_state: RoomStatePort, own_user_id: Optional[str]) -> None:
        self._room_state = room_state
        self._own_user_id = own_user_id

    def _name(self, user_id: Optional[str], room_id: Optional[str]) -> str:
        if not user_id:
            return UNKNOWN_SENDER_NAME
        return self._room_state.display_name(user_id, room_id)

    def message_for_event(self, event: Event) -> Optional[str]:
        content = event.content
        sender_name = self._name(event.user_id, event.room_id)

        if event.type == "m.room.message":
            body = content.get("body")
            msgtype = content.get("msgtype")
            if msgtype == "m.emote":
                return f"* {sender_name} {body}" if isinstance(body, str) else None
            if msgtype == "m.image":
                return f"{sender_name} sent an image."
            return body if isinstance(body, str) and body else None

        if event.type == "m.room.member":
            membership = event.membership
            if event.state_key != self._own_user_id and membership == "join":
                return f"{self._name(event.state_key, event.room_id)} joined"
            if event.state_key == self._own_user_id and membership == "invite":
                return f"{sender_name} invited you to a room"
        return None


def _format_markdown(request: NotificationRequest) -> str:
    """Create the Markdown notification body used by the console presenter."""

    def escape_md(value: str) -> str:
        for ch in r"*[`_":
            value = value.replace(ch, f"\\{ch}")
        return value

    lines = [
        f"**{escape_md(request.title)}**",
        escape_md(request.body),
    ]
    if request.audio:
        lines.append(f"_sound: {escape_md(request.audio)}_")
    return "\n".join(lines)


def _format_html(request: NotificationRequest) -> str:
    """Create the HTML notification body used by the Bot API presenter."""

    parts = [
        f"<b>{html.escape(request.title)}</b>",
        html.escape(request.body),
    ]
    if request.audio:
        parts.append(f"<i>sound: {html.escape(request.audio)}</i>")
    return "\n".join(parts)


def format_notification(request: NotificationRequest, mode: str) -> str:
    """Return the notification formatted for the requested mode."""

    if mode == "markdown":
        return _format_markdown(request)
    if mode == "html":
        return _format_html(request)
    raise ValueError(f"Unsupported notification format: {mode}")
