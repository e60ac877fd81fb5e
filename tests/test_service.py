from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

from pushrules.core.cache import RulesetCache
from pushrules.core.conditions import ConditionEvaluator
from pushrules.core.models import Event, Ruleset
from pushrules.core.rules_engine import build_ruleset
from pushrules.core.service import PushRuleService, derive_content_rule_id


class FakeSource:
    def __init__(self, raw: dict) -> None:
        self.raw = raw
        self.calls = 0

    async def fetch_rules(self) -> Ruleset:
        self.calls += 1
        return build_ruleset(self.raw)


class FakeMutations:
    def __init__(self) -> None:
        self.added: list[tuple[str, str, str, Mapping[str, Any]]] = []
        self.deleted: list[tuple[str, str, str]] = []

    async def add_rule(self, scope: str, kind: str, rule_id: str, body: Mapping[str, Any]) -> None:
        self.added.append((scope, kind, rule_id, body))

    async def delete_rule(self, scope: str, kind: str, rule_id: str) -> None:
        self.deleted.append((scope, kind, rule_id))


class FakeRoomState:
    def member_count(self, room_id: str) -> int:
        return 2

    def members(self, room_id: str) -> set[str]:
        return set()

    def display_name(self, user_id: str, room_id: Optional[str]) -> str:
        return user_id

    def room_name(self, room_id: str) -> str:
        return room_id

    def avatar_url(self, user_id: str, room_id: Optional[str]) -> Optional[str]:
        return None


RAW_RULES = {
    "global": {
        "content": [
            {
                "rule_id": "foobar",
                "pattern": "foobar",
                "actions": ["notify", {"set_tweak": "highlight"}],
            },
            {"rule_id": "foobar1", "pattern": "foo?bar", "actions": ["notify"]},
            {"rule_id": "quiet", "pattern": "quiet", "actions": [{"set_tweak": "highlight"}]},
        ],
        "underride": [
            {
                "rule_id": ".m.rule.message",
                "conditions": [{"kind": "event_match", "key": "type", "pattern": "m.room.message"}],
                "actions": ["notify"],
            }
        ],
    }
}


def _service(raw: Optional[dict] = None) -> tuple[PushRuleService, FakeSource, FakeMutations, RulesetCache]:
    source = FakeSource(raw if raw is not None else RAW_RULES)
    mutations = FakeMutations()
    cache = RulesetCache(source)
    service = PushRuleService(cache, mutations, ConditionEvaluator(FakeRoomState(), "@alice:hs"))
    return service, source, mutations, cache


def _event(body: str) -> Event:
    return Event.from_dict(
        {
            "type": "m.room.message",
            "room_id": "!room:hs",
            "sender": "@bob:hs",
            "content": {"msgtype": "m.text", "body": body},
        }
    )


def test_derive_content_rule_id() -> None:
    assert derive_content_rule_id("foo*bar", []) == "foobar"
    assert derive_content_rule_id("foo*bar", {"foobar", "foobar1"}) == "foobar2"
    assert derive_content_rule_id("[!a]?b*", []) == "ab"
    assert derive_content_rule_id("*", []) == "1"
    assert derive_content_rule_id("*", ["1"]) == "2"


def test_add_global_content_rule_derives_free_id_and_invalidates() -> None:
    async def scenario() -> None:
        service, source, mutations, cache = _service()
        rule_id = await service.add_global_content_rule("foo*bar", ["notify"])

        assert rule_id == "foobar2"
        assert mutations.added == [
            ("global", "content", "foobar2", {"pattern": "foo*bar", "actions": ["notify"]})
        ]
        assert source.calls == 1
        assert not cache.is_current

    asyncio.run(scenario())


def test_room_and_sender_rules_and_deletes() -> None:
    async def scenario() -> None:
        service, _, mutations, cache = _service()
        await service.get_rulesets()
        await service.add_global_room_rule("!room:hs", ["dont_notify"])
        await service.add_global_sender_rule("@bob:hs", ["notify"])
        await service.delete_global_content_rule("foobar")
        await service.delete_global_room_rule("!room:hs")
        await service.delete_global_sender_rule("@bob:hs")

        assert mutations.added == [
            ("global", "room", "!room:hs", {"actions": ["dont_notify"]}),
            ("global", "sender", "@bob:hs", {"actions": ["notify"]}),
        ]
        assert mutations.deleted == [
            ("global", "content", "foobar"),
            ("global", "room", "!room:hs"),
            ("global", "sender", "@bob:hs"),
        ]
        assert not cache.is_current

    asyncio.run(scenario())


def test_clear_cache_forces_refetch() -> None:
    async def scenario() -> None:
        service, source, _, _ = _service()
        await service.get_rulesets()
        await service.get_rulesets()
        service.clear_cache()
        await service.get_rulesets()
        assert source.calls == 2

    asyncio.run(scenario())


def test_matching_rule_for_event_fetches_rules() -> None:
    async def scenario() -> None:
        service, _, _, _ = _service()
        matched = await service.matching_rule_for_event(_event("say foobar now"))
        assert matched is not None
        assert matched.rule_id == "foobar"
        assert matched.kind == "content"

        fallback = await service.matching_rule_for_event(_event("nothing special"))
        assert fallback is not None
        assert fallback.rule_id == ".m.rule.message"

    asyncio.run(scenario())


def test_matching_now_uses_cached_rules_only() -> None:
    service, source, _, _ = _service()
    assert service.matching_rule_for_event_now(_event("foobar")) is None
    assert source.calls == 0

    asyncio.run(service.get_rulesets())
    matched = service.matching_rule_for_event_now(_event("foobar"))
    assert matched is not None
    assert matched.rule_id == "foobar"


def test_should_highlight_event() -> None:
    service, _, _, _ = _service()
    asyncio.run(service.get_rulesets())

    assert service.should_highlight_event(_event("foobar please"))
    # Notifies but carries no highlight tweak.
    assert not service.should_highlight_event(_event("foo-bar"))
    # Highlight tweak without notify.
    assert not service.should_highlight_event(_event("quiet"))
    assert not service.should_highlight_event(
        Event.from_dict({"type": "m.room.topic", "room_id": "!room:hs", "content": {}})
    )
