"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to the Matrix wire format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union

# Precedence order for rule kinds. Storage order in a ruleset never changes this.
RULE_KINDS = ("override", "content", "room", "sender", "underride")

# Shown in place of a display name when an event carries no sender.
UNKNOWN_SENDER_NAME = "Someone"

Action = Union[str, Mapping[str, Any]]


@dataclass(frozen=True)
class Event:
    """Minimal event view used by the matching engine."""

    type: str
    room_id: Optional[str]
    user_id: Optional[str]
    content: Mapping[str, Any] = field(default_factory=dict)
    state_key: Optional[str] = None
    event_id: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], room_id: Optional[str] = None) -> "Event":
        """Build an Event from a wire event; `sender` is accepted for `user_id`."""

        content = data.get("content")
        return cls(
            type=str(data.get("type", "")),
            room_id=data.get("room_id") or room_id,
            user_id=data.get("user_id") or data.get("sender"),
            content=content if isinstance(content, Mapping) else {},
            state_key=data.get("state_key"),
            event_id=data.get("event_id"),
            raw=dict(data),
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the mapping used for dotted-key lookups."""

        lookup = dict(self.raw)
        lookup.update(
            {
                "type": self.type,
                "room_id": self.room_id,
                "user_id": self.user_id,
                "sender": self.user_id,
                "content": self.content,
            }
        )
        if self.state_key is not None:
            lookup["state_key"] = self.state_key
        if self.event_id is not None:
            lookup["event_id"] = self.event_id
        return lookup

    @property
    def membership(self) -> Optional[str]:
        value = self.content.get("membership")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class EventMatchCondition:
    key: str
    pattern: str


@dataclass(frozen=True)
class DeviceCondition:
    profile_tag: Optional[str] = None


@dataclass(frozen=True)
class ContainsDisplayNameCondition:
    pass


@dataclass(frozen=True)
class RoomMemberCountCondition:
    is_: Optional[str]


@dataclass(frozen=True)
class UnknownCondition:
    """Condition of a kind this engine does not understand."""

    kind: str
    raw: Mapping[str, Any] = field(default_factory=dict)


Condition = Union[
    EventMatchCondition,
    DeviceCondition,
    ContainsDisplayNameCondition,
    RoomMemberCountCondition,
    UnknownCondition,
]


def parse_condition(raw: Mapping[str, Any]) -> Condition:
    """Build the typed condition for a wire condition mapping."""

    kind = raw.get("kind")
    if kind == "event_match":
        return EventMatchCondition(key=str(raw.get("key", "")), pattern=str(raw.get("pattern", "")))
    if kind == "device":
        return DeviceCondition(profile_tag=raw.get("profile_tag"))
    if kind == "contains_display_name":
        return ContainsDisplayNameCondition()
    if kind == "room_member_count":
        is_value = raw.get("is")
        return RoomMemberCountCondition(is_=str(is_value) if is_value is not None else None)
    return UnknownCondition(kind=str(kind), raw=dict(raw))


@dataclass(frozen=True)
class Rule:
    """A single push rule as stored in a ruleset."""

    rule_id: str
    conditions: Tuple[Condition, ...] = ()
    actions: Tuple[Action, ...] = ()
    kind: Optional[str] = None
    enabled: bool = True
    default: bool = False
    pattern: Optional[str] = None


KindSet = Mapping[str, Tuple[Rule, ...]]


def empty_kindset() -> dict[str, Tuple[Rule, ...]]:
    return {kind: () for kind in RULE_KINDS}


@dataclass(frozen=True)
class Ruleset:
    """A user's rules across the global scope and per-device scopes."""

    global_rules: KindSet = field(default_factory=empty_kindset)
    device: Mapping[str, KindSet] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "Ruleset":
        return cls()

    def rule_ids(self, kind: str, scope: str = "global") -> list[str]:
        if scope == "global":
            kindset = self.global_rules
        else:
            kindset = self.device.get(scope, {})
        return [rule.rule_id for rule in kindset.get(kind, ())]


@dataclass(frozen=True)
class MatchedRule:
    """A rule tagged with the kind and scope it matched under."""

    rule: Rule
    kind: str
    scope: str = "global"

    @property
    def rule_id(self) -> str:
        return self.rule.rule_id

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self.rule.actions


@dataclass(frozen=True)
class ActionDecision:
    """Resolved form of a rule's action list."""

    notify: bool = False
    tweaks: Mapping[str, Any] = field(default_factory=dict)

    @property
    def highlight(self) -> bool:
        return bool(self.tweaks.get("highlight", False))

    @property
    def sound(self) -> Any:
        return self.tweaks.get("sound")


@dataclass(frozen=True)
class NotificationRequest:
    """Presentation request handed to a presenter adapter."""

    title: str
    body: str
    icon: Optional[str]
    click_target: str
    tag: str = "matrix"
    audio: Optional[str] = None
    room_id: Optional[str] = None
    event_id: Optional[str] = None
