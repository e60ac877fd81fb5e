"""Core notification dispatch.

This module is integration-agnostic. It only relies on ports for presence,
room state, message formatting and presentation, enabling other frontends or
adapters without changes here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pushrules.core.actions import resolve_actions
from pushrules.core.config import EngineConfig
from pushrules.core.errors import PushRulesError
from pushrules.core.models import UNKNOWN_SENDER_NAME, ActionDecision, Event, NotificationRequest
from pushrules.core.ports import MessageFormatterPort, PresencePort, PresenterPort, RoomStatePort
from pushrules.core.service import PushRuleService

LOGGER = logging.getLogger(__name__)


def audio_for_tweaks(decision: ActionDecision) -> Optional[str]:
    """Return the sound to play for a decision, or None for silence."""

    sound: Any = decision.sound
    if not sound:
        return None
    if isinstance(sound, str):
        return sound
    return "default"


class NotificationProcessor:
    """Orchestrates the policy gate, rule matching and presentation."""

    def __init__(
        self,
        rules: PushRuleService,
        presence: PresencePort,
        room_state: RoomStatePort,
        formatter: MessageFormatterPort,
        presenter: PresenterPort,
        config: EngineConfig,
    ) -> None:
        self._rules = rules
        self._presence = presence
        self._room_state = room_state
        self._formatter = formatter
        self._presenter = presenter
        self._config = config

    async def decide(self, event: Event) -> Optional[NotificationRequest]:
        """Return the notification to show for ``event``, or None to stay quiet.

        Ruleset fetch errors propagate to the caller.
        """

        if self._config.mute_notifications:
            LOGGER.debug("Notifications muted; skipping %s", event.event_id)
            return None

        # Notifications in the foreground are noise; only notify an idle or
        # hidden user.
        if not self._presence.is_user_idle_or_hidden():
            LOGGER.debug("User is active; skipping %s", event.event_id)
            return None

        matched = await self._rules.matching_rule_for_event(event)
        if matched is None:
            # No rule is the implicit "don't notify" default.
            return None

        decision = resolve_actions(matched.actions)
        if not decision.notify:
            LOGGER.debug("Rule %s/%s does not notify", matched.kind, matched.rule_id)
            return None

        message = self._formatter.message_for_event(event)
        if not message:
            LOGGER.debug("No notification text for %s event", event.type)
            return None

        audio = audio_for_tweaks(decision) if self._config.audio_notifications else None
        sender = event.user_id or ""
        display_name = self._room_state.display_name(sender, event.room_id) if sender else UNKNOWN_SENDER_NAME
        room_title = self._room_state.room_name(event.room_id) if event.room_id else ""
        return NotificationRequest(
            title=f"{display_name} ({room_title})",
            body=message,
            icon=self._room_state.avatar_url(sender, event.room_id) if sender else None,
            click_target=f"room/{event.room_id}",
            audio=audio,
            room_id=event.room_id,
            event_id=event.event_id,
        )

    async def process_event(self, event: Event) -> Optional[NotificationRequest]:
        """Decide on ``event`` and hand any resulting notification to the presenter."""

        try:
            request = await self.decide(event)
        except PushRulesError:
            LOGGER.exception("Could not evaluate push rules for %s", event.event_id)
            return None
        if request is None:
            return None

        LOGGER.info(
            "Displaying notification %sfor %s in %s",
            "with audio " if request.audio else "",
            event.event_id,
            event.room_id,
        )
        await self._presenter.present(request)
        return request
