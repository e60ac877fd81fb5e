"""In-memory room state adapter.

Implements the core RoomStatePort from the state events observed on the
sync stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pushrules.core.models import Event


@dataclass
class _Member:
    membership: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class _Room:
    members: dict[str, _Member] = field(default_factory=dict)
    name: Optional[str] = None
    canonical_alias: Optional[str] = None


class InMemoryRoomState:
    """Room membership and naming built from `m.room.*` state events."""

    def __init__(self) -> None:
        self._rooms: dict[str, _Room] = {}

    def apply_event(self, event: Event) -> None:
        """Fold a state event into the room state; other events are ignored."""

        if not event.room_id or event.state_key is None:
            return
        room = self._rooms.setdefault(event.room_id, _Room())
        content = event.content

        if event.type == "m.room.member":
            membership = content.get("membership")
            if not isinstance(membership, str):
                return
            room.members[event.state_key] = _Member(
                membership=membership,
                display_name=content.get("displayname") or None,
                avatar_url=content.get("avatar_url") or None,
            )
        elif event.type == "m.room.name":
            room.name = content.get("name") or None
        elif event.type == "m.room.canonical_alias":
            room.canonical_alias = content.get("alias") or None

    def members(self, room_id: str) -> set[str]:
        room = self._rooms.get(room_id)
        if room is None:
            return set()
        return {user_id for user_id, member in room.members.items() if member.membership == "join"}

    def member_count(self, room_id: str) -> int:
        return len(self.members(room_id))

    def display_name(self, user_id: str, room_id: Optional[str]) -> str:
        """Return the member's display name in the room, or the user id."""

        room = self._rooms.get(room_id) if room_id else None
        member = room.members.get(user_id) if room else None
        if member and member.display_name:
            return member.display_name
        return user_id

    def room_name(self, room_id: str) -> str:
        room = self._rooms.get(room_id)
        if room is None:
            return room_id
        return room.name or room.canonical_alias or room_id

    def avatar_url(self, user_id: str, room_id: Optional[str]) -> Optional[str]:
        room = self._rooms.get(room_id) if room_id else None
        member = room.members.get(user_id) if room else None
        return member.avatar_url if member else None
