"""Ports (interfaces) used by the core engine.

Ports define the minimal contracts for the homeserver, room state, presence
and presentation adapters so that the core can be reused with different
backends.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from pushrules.core.models import Event, NotificationRequest, Ruleset


class RulesetSourcePort(Protocol):
    """Fetches the user's full ruleset."""

    async def fetch_rules(self) -> Ruleset:
        ...


class RuleMutationPort(Protocol):
    """Adds and deletes individual rules on the homeserver."""

    async def add_rule(self, scope: str, kind: str, rule_id: str, body: Mapping[str, Any]) -> None:
        ...

    async def delete_rule(self, scope: str, kind: str, rule_id: str) -> None:
        ...


class RoomStatePort(Protocol):
    """Read access to room membership and naming."""

    def member_count(self, room_id: str) -> int:
        ...

    def members(self, room_id: str) -> set[str]:
        ...

    def display_name(self, user_id: str, room_id: Optional[str]) -> str:
        ...

    def room_name(self, room_id: str) -> str:
        ...

    def avatar_url(self, user_id: str, room_id: Optional[str]) -> Optional[str]:
        ...


class PresencePort(Protocol):
    def is_user_idle_or_hidden(self) -> bool:
        ...


class MessageFormatterPort(Protocol):
    """Derives the human-readable notification body for an event."""

    def message_for_event(self, event: Event) -> Optional[str]:
        ...


class PresenterPort(Protocol):
    """Displays a notification and dismisses it after a fixed interval."""

    async def present(self, request: NotificationRequest) -> None:
        ...
