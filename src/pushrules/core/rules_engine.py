"""Ruleset parsing and rule matching logic (core domain)."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Tuple

from pushrules.core.conditions import ConditionEvaluator
from pushrules.core.models import (
    RULE_KINDS,
    Event,
    EventMatchCondition,
    KindSet,
    MatchedRule,
    Rule,
    Ruleset,
    parse_condition,
)

LOGGER = logging.getLogger(__name__)


def _implied_conditions(kind: str, raw: Mapping[str, Any]) -> Tuple[EventMatchCondition, ...]:
    """Conditions implied by the client format of content, room and sender rules."""

    rule_id = str(raw.get("rule_id", ""))
    if kind == "content" and raw.get("pattern") is not None:
        return (EventMatchCondition(key="content.body", pattern=str(raw["pattern"])),)
    if kind == "room":
        return (EventMatchCondition(key="room_id", pattern=rule_id),)
    if kind == "sender":
        return (EventMatchCondition(key="user_id", pattern=rule_id),)
    return ()


def build_rule(kind: str, raw: Mapping[str, Any]) -> Rule:
    """Normalize one wire rule into a Rule tagged with ``kind``."""

    raw_conditions = raw.get("conditions")
    if raw_conditions is None:
        conditions = _implied_conditions(kind, raw)
    else:
        conditions = tuple(parse_condition(cond) for cond in raw_conditions if isinstance(cond, Mapping))
    return Rule(
        rule_id=str(raw.get("rule_id", "")),
        conditions=conditions,
        actions=tuple(raw.get("actions") or ()),
        kind=kind,
        enabled=bool(raw.get("enabled", True)),
        default=bool(raw.get("default", False)),
        pattern=raw.get("pattern"),
    )


def build_kindset(raw: Optional[Mapping[str, Any]]) -> dict[str, Tuple[Rule, ...]]:
    """Build a kind -> rules mapping, keeping rule order and every known kind."""

    raw = raw or {}
    kindset: dict[str, Tuple[Rule, ...]] = {}
    for kind in RULE_KINDS:
        entries = raw.get(kind) or []
        kindset[kind] = tuple(build_rule(kind, entry) for entry in entries if isinstance(entry, Mapping))
    return kindset


def build_ruleset(raw: Optional[Mapping[str, Any]]) -> Ruleset:
    """Parse a `GET /pushrules/` response body into a Ruleset."""

    raw = raw or {}
    devices = raw.get("device") or {}
    return Ruleset(
        global_rules=build_kindset(raw.get("global")),
        device={name: build_kindset(rules) for name, rules in devices.items()},
    )


def first_match(
    event: Event,
    kindset: KindSet,
    evaluator: ConditionEvaluator,
    scope: str = "global",
) -> Optional[MatchedRule]:
    """Return the first rule matching ``event`` by kind precedence, then rule order."""

    for kind in RULE_KINDS:
        for rule in kindset.get(kind, ()):
            if not rule.enabled:
                continue
            if evaluator.rule_matches(rule, event):
                LOGGER.debug("Rule %s/%s matches event %s", kind, rule.rule_id, event.event_id)
                return MatchedRule(rule=rule, kind=kind, scope=scope)
    return None


def match_ruleset(event: Event, ruleset: Ruleset, evaluator: ConditionEvaluator) -> Optional[MatchedRule]:
    """Match ``event`` against device rules first, then the global rules."""

    for device_name, kindset in ruleset.device.items():
        matched = first_match(event, kindset, evaluator, scope=f"device/{device_name}")
        if matched is not None:
            return matched
    return first_match(event, ruleset.global_rules, evaluator)


def iter_rules(kindset: KindSet) -> Iterable[Tuple[str, Rule]]:
    """Yield (kind, rule) pairs in precedence order."""

    for kind in RULE_KINDS:
        for rule in kindset.get(kind, ()):
            yield kind, rule
