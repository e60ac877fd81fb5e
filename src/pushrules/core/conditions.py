"""Condition evaluation for push rules (core domain)."""

from __future__ import annotations

import logging
import operator
import re
from typing import Any, Callable, Mapping, Optional

from pushrules.core.glob import compile_pattern
from pushrules.core.models import (
    Condition,
    ContainsDisplayNameCondition,
    DeviceCondition,
    Event,
    EventMatchCondition,
    Rule,
    RoomMemberCountCondition,
)
from pushrules.core.ports import RoomStatePort

LOGGER = logging.getLogger(__name__)

_MEMBER_COUNT_RE = re.compile(r"^([=<>]*)([0-9]+)$")

_COMPARATORS: dict[str, Callable[[int, int], bool]] = {
    "": operator.eq,
    "==": operator.eq,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
}

_MISSING = object()


def value_for_dotted_key(key: str, data: Mapping[str, Any]) -> Any:
    """Resolve ``a.b.c`` inside nested mappings.

    Returns None when any segment is missing or null. Falsy values such as
    ``0`` or ``""`` are present values and are returned as is.
    """

    value: Any = data
    for part in key.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part, _MISSING)
        if value is _MISSING or value is None:
            return None
    return value


class ConditionEvaluator:
    """Evaluates rule conditions against events for one account."""

    def __init__(
        self,
        room_state: RoomStatePort,
        user_id: Optional[str],
        legacy_glob: bool = False,
        owner_display_name: bool = False,
    ) -> None:
        self._room_state = room_state
        self._user_id = user_id
        self._legacy_glob = legacy_glob
        self._owner_display_name = owner_display_name
        self._handlers: dict[type, Callable[[Any, Event], bool]] = {
            EventMatchCondition: self._event_match,
            DeviceCondition: self._device,
            ContainsDisplayNameCondition: self._contains_display_name,
            RoomMemberCountCondition: self._room_member_count,
        }

    def evaluate(self, condition: Condition, event: Event) -> bool:
        handler = self._handlers.get(type(condition))
        if handler is None:
            # Unknown kinds are satisfied so newer server rules keep working.
            LOGGER.debug("Treating unknown condition %r as satisfied", condition)
            return True
        return handler(condition, event)

    def rule_matches(self, rule: Rule, event: Event) -> bool:
        """Return True when every condition of ``rule`` holds for ``event``."""

        return all(self.evaluate(condition, event) for condition in rule.conditions)

    def _event_match(self, condition: EventMatchCondition, event: Event) -> bool:
        value = value_for_dotted_key(condition.key, event.as_dict())
        predicate = compile_pattern(condition.pattern, condition.key, legacy=self._legacy_glob)
        return predicate(value)

    def _device(self, condition: DeviceCondition, event: Event) -> bool:
        # Profile tags are not assigned to this client, so no device condition holds.
        return False

    def _contains_display_name(self, condition: ContainsDisplayNameCondition, event: Event) -> bool:
        body = event.content.get("body")
        if not isinstance(body, str) or not body:
            return False
        # The sender by default; the account owner when configured.
        user_id = self._user_id if self._owner_display_name else event.user_id
        if not user_id:
            return False
        display_name = self._room_state.display_name(user_id, event.room_id)
        if not display_name:
            return False
        return re.search(rf"\b{re.escape(display_name)}\b", body) is not None

    def _room_member_count(self, condition: RoomMemberCountCondition, event: Event) -> bool:
        if not condition.is_ or not event.room_id:
            return False
        match = _MEMBER_COUNT_RE.match(condition.is_)
        if not match:
            LOGGER.debug("Malformed room_member_count comparison %r", condition.is_)
            return False
        comparator = _COMPARATORS.get(match.group(1))
        if comparator is None:
            LOGGER.debug("Unknown room_member_count operator %r", match.group(1))
            return False
        return comparator(self._room_state.member_count(event.room_id), int(match.group(2)))
