from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from pushrules.adapters.matrix_client import MatrixClient, events_from_sync, push_rules_changed
from pushrules.core.errors import PushRulesError, RuleMutationError, RulesetFetchError

HOMESERVER = "https://matrix.example.org"


def _client(handler) -> MatrixClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MatrixClient(HOMESERVER, "secret-token", http_client=http_client)


def test_fetch_rules_parses_response() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "global": {
                    "content": [{"rule_id": "lunch", "pattern": "lunch", "actions": ["notify"]}],
                    "override": [],
                }
            },
        )

    ruleset = asyncio.run(_client(handler).fetch_rules())

    assert str(requests[0].url) == f"{HOMESERVER}/_matrix/client/v3/pushrules/"
    assert requests[0].headers["Authorization"] == "Bearer secret-token"
    assert ruleset.rule_ids("content") == ["lunch"]


def test_fetch_rules_http_error_becomes_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"errcode": "M_UNKNOWN_TOKEN", "error": "Invalid token"})

    with pytest.raises(RulesetFetchError) as excinfo:
        asyncio.run(_client(handler).fetch_rules())
    assert excinfo.value.status_code == 401
    assert "Invalid token" in str(excinfo.value)


def test_fetch_rules_transport_error_becomes_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RulesetFetchError) as excinfo:
        asyncio.run(_client(handler).fetch_rules())
    assert excinfo.value.status_code is None


def test_add_and_delete_rule_quote_path_segments() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={})

    client = _client(handler)

    async def scenario() -> None:
        await client.add_rule("global", "room", "!abc:example.org", {"actions": ["dont_notify"]})
        await client.delete_rule("global", "sender", "@bob:example.org")

    asyncio.run(scenario())

    put, delete = requests
    assert put.method == "PUT"
    assert put.url.raw_path.decode() == "/_matrix/client/v3/pushrules/global/room/%21abc%3Aexample.org"
    assert json.loads(put.content) == {"actions": ["dont_notify"]}
    assert delete.method == "DELETE"
    assert delete.url.raw_path.decode() == "/_matrix/client/v3/pushrules/global/sender/%40bob%3Aexample.org"


def test_mutation_failure_raises_mutation_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"errcode": "M_NOT_FOUND", "error": "Unknown rule"})

    with pytest.raises(RuleMutationError) as excinfo:
        asyncio.run(_client(handler).delete_rule("global", "content", "nope"))
    assert excinfo.value.status_code == 404


def test_sync_passes_since_and_timeout() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"next_batch": "s2"})

    client = _client(handler)

    async def scenario() -> None:
        assert await client.sync() == {"next_batch": "s2"}
        await client.sync("s1", timeout_ms=1000)

    asyncio.run(scenario())

    initial, incremental = requests
    assert initial.url.params["timeout"] == "0"
    assert "since" not in initial.url.params
    assert incremental.url.params["since"] == "s1"
    assert incremental.url.params["timeout"] == "1000"


def test_sync_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(PushRulesError):
        asyncio.run(_client(handler).sync())


def test_sync_non_json_body_raises_pushrules_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(PushRulesError, match="not JSON"):
        asyncio.run(_client(handler).sync())


SYNC_BODY = {
    "next_batch": "s2",
    "account_data": {"events": [{"type": "m.push_rules", "content": {}}]},
    "rooms": {
        "join": {
            "!room:hs": {
                "state": {
                    "events": [
                        {
                            "type": "m.room.name",
                            "state_key": "",
                            "sender": "@bob:hs",
                            "content": {"name": "Lunch Club"},
                        }
                    ]
                },
                "timeline": {
                    "events": [
                        {
                            "type": "m.room.message",
                            "event_id": "$1",
                            "sender": "@bob:hs",
                            "content": {"msgtype": "m.text", "body": "hi"},
                        }
                    ]
                },
            }
        },
        "invite": {
            "!new:hs": {
                "invite_state": {
                    "events": [
                        {
                            "type": "m.room.member",
                            "state_key": "@alice:hs",
                            "sender": "@carol:hs",
                            "content": {"membership": "invite"},
                        }
                    ]
                }
            }
        },
    },
}


def test_events_from_sync_tags_sections_and_rooms() -> None:
    pairs = list(events_from_sync(SYNC_BODY))

    assert [section for section, _ in pairs] == ["state", "timeline", "invite"]
    assert all(event.room_id for _, event in pairs)
    assert pairs[1][1].room_id == "!room:hs"
    assert pairs[1][1].user_id == "@bob:hs"
    assert pairs[2][1].room_id == "!new:hs"
    assert pairs[2][1].state_key == "@alice:hs"


def test_push_rules_changed() -> None:
    assert push_rules_changed(SYNC_BODY)
    assert not push_rules_changed({"account_data": {"events": []}})
    assert not push_rules_changed({})
