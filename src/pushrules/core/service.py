"""Push rule service: cached rules, rule edits and matching.

This is the public rule API used by the notification processor and the CLI.
It is integration-agnostic and only talks to ports.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence

from pushrules.core.actions import resolve_actions
from pushrules.core.cache import RulesetCache
from pushrules.core.conditions import ConditionEvaluator
from pushrules.core.models import Action, Event, MatchedRule, Ruleset
from pushrules.core.ports import RuleMutationPort
from pushrules.core.rules_engine import match_ruleset

LOGGER = logging.getLogger(__name__)

GLOB_SPECIAL_CHARS = ("*", "[", "]", "?", "!")


def derive_content_rule_id(pattern: str, existing_ids: Iterable[str]) -> str:
    """Return a free rule id for a content pattern.

    Glob characters are stripped from the pattern; when the result is empty
    or taken, the smallest free numeric suffix is appended.
    """

    base = pattern
    for char in GLOB_SPECIAL_CHARS:
        base = base.replace(char, "")
    taken = set(existing_ids)
    if base and base not in taken:
        return base
    suffix = 1
    while f"{base}{suffix}" in taken:
        suffix += 1
    return f"{base}{suffix}"


class PushRuleService:
    """Rule cache control, rule mutations and event matching for one account."""

    def __init__(
        self,
        cache: RulesetCache,
        mutations: RuleMutationPort,
        evaluator: ConditionEvaluator,
    ) -> None:
        self._cache = cache
        self._mutations = mutations
        self._evaluator = evaluator

    def clear_cache(self) -> None:
        self._cache.invalidate()

    async def get_rulesets(self) -> Ruleset:
        return await self._cache.get()

    async def add_global_content_rule(self, pattern: str, actions: Sequence[Action]) -> str:
        """Add a content rule for ``pattern`` and return the rule id it was stored under."""

        if self._cache.has_value:
            ruleset = self._cache.get_now()
        else:
            ruleset = await self._cache.get()
        rule_id = derive_content_rule_id(pattern, ruleset.rule_ids("content"))
        body = {"pattern": pattern, "actions": list(actions)}
        await self._add("content", rule_id, body)
        return rule_id

    async def add_global_room_rule(self, room_id: str, actions: Sequence[Action]) -> None:
        await self._add("room", room_id, {"actions": list(actions)})

    async def add_global_sender_rule(self, sender_id: str, actions: Sequence[Action]) -> None:
        await self._add("sender", sender_id, {"actions": list(actions)})

    async def delete_global_content_rule(self, rule_id: str) -> None:
        await self._delete("content", rule_id)

    async def delete_global_room_rule(self, room_id: str) -> None:
        await self._delete("room", room_id)

    async def delete_global_sender_rule(self, sender_id: str) -> None:
        await self._delete("sender", sender_id)

    async def matching_rule_for_event(self, event: Event) -> Optional[MatchedRule]:
        ruleset = await self._cache.get()
        return match_ruleset(event, ruleset, self._evaluator)

    def matching_rule_for_event_now(self, event: Event) -> Optional[MatchedRule]:
        """Match against whatever is cached right now, which may be stale or empty."""

        return match_ruleset(event, self._cache.get_now(), self._evaluator)

    def should_highlight_event(self, event: Event) -> bool:
        matched = self.matching_rule_for_event_now(event)
        if matched is None:
            return False
        decision = resolve_actions(matched.actions)
        return decision.notify and decision.highlight

    async def _add(self, kind: str, rule_id: str, body: dict[str, Any]) -> None:
        await self._mutations.add_rule("global", kind, rule_id, body)
        self._cache.invalidate()
        LOGGER.info("Added global %s rule %s", kind, rule_id)

    async def _delete(self, kind: str, rule_id: str) -> None:
        await self._mutations.delete_rule("global", kind, rule_id)
        self._cache.invalidate()
        LOGGER.info("Deleted global %s rule %s", kind, rule_id)
