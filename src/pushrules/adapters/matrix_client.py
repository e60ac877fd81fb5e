"""Matrix client-server API adapter.

Implements the core RulesetSourcePort and RuleMutationPort over HTTP, plus
the `/sync` call the runner uses to receive events.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from pushrules.core.errors import PushRulesError, RuleMutationError, RulesetFetchError
from pushrules.core.models import Event, Ruleset
from pushrules.core.rules_engine import build_ruleset

LOGGER = logging.getLogger(__name__)

DEFAULT_API_PREFIX = "/_matrix/client/v3"


def events_from_sync(body: Mapping[str, Any]) -> Iterator[Tuple[str, Event]]:
    """Yield (section, event) pairs from a `/sync` body.

    Sections are "state" and "timeline" for joined rooms and "invite" for
    stripped invite state. Events are tagged with their room id.
    """

    rooms = body.get("rooms") or {}
    for room_id, room in (rooms.get("join") or {}).items():
        for section in ("state", "timeline"):
            for raw in (room.get(section) or {}).get("events") or []:
                yield section, Event.from_dict(raw, room_id=room_id)
    for room_id, room in (rooms.get("invite") or {}).items():
        for raw in (room.get("invite_state") or {}).get("events") or []:
            yield "invite", Event.from_dict(raw, room_id=room_id)


def push_rules_changed(body: Mapping[str, Any]) -> bool:
    """Return True when a `/sync` body carries updated push rules."""

    events = (body.get("account_data") or {}).get("events") or []
    return any(event.get("type") == "m.push_rules" for event in events)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, Mapping):
        return str(body.get("error") or body.get("errcode") or body)
    return response.text


class MatrixClient:
    """Thin async wrapper over the push rule and sync endpoints."""

    def __init__(
        self,
        homeserver: str,
        access_token: str,
        api_prefix: str = DEFAULT_API_PREFIX,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = homeserver.rstrip("/") + api_prefix
        self._http = http_client or httpx.AsyncClient(timeout=60.0)
        self._headers = {"Authorization": f"Bearer {access_token}"}

    def _rule_url(self, scope: str, kind: str, rule_id: str) -> str:
        # Rule ids for room and sender rules contain ':' and '!'.
        segments = "/".join(quote(part, safe="") for part in (scope, kind, rule_id))
        return f"{self._base_url}/pushrules/{segments}"

    async def _request(
        self,
        method: str,
        url: str,
        error_cls: type[PushRulesError],
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._http.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as exc:
            raise error_cls(f"{method} {url} failed: {exc}") from exc
        if response.status_code >= 400:
            raise error_cls(
                f"{method} {url} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    async def fetch_rules(self) -> Ruleset:
        """Fetch and parse the user's push rules."""

        response = await self._request("GET", f"{self._base_url}/pushrules/", RulesetFetchError)
        try:
            body = response.json()
        except ValueError as exc:
            raise RulesetFetchError("Push rules response is not JSON") from exc
        return build_ruleset(body)

    async def add_rule(self, scope: str, kind: str, rule_id: str, body: Mapping[str, Any]) -> None:
        await self._request("PUT", self._rule_url(scope, kind, rule_id), RuleMutationError, json=dict(body))
        LOGGER.debug("PUT push rule %s/%s/%s", scope, kind, rule_id)

    async def delete_rule(self, scope: str, kind: str, rule_id: str) -> None:
        await self._request("DELETE", self._rule_url(scope, kind, rule_id), RuleMutationError)
        LOGGER.debug("DELETE push rule %s/%s/%s", scope, kind, rule_id)

    async def sync(self, since: Optional[str] = None, timeout_ms: int = 30000) -> dict[str, Any]:
        """Run one `/sync` request and return the decoded body."""

        params: dict[str, Any] = {"timeout": timeout_ms if since else 0}
        if since:
            params["since"] = since
        # The long poll must outlive the server-side timeout.
        timeout = httpx.Timeout(timeout_ms / 1000 + 30)
        response = await self._request(
            "GET", f"{self._base_url}/sync", PushRulesError, params=params, timeout=timeout
        )
        try:
            return response.json()
        except ValueError as exc:
            raise PushRulesError("Sync response is not JSON") from exc

    async def aclose(self) -> None:
        await self._http.aclose()
