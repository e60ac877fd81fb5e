"""Application entry point for the pushrules notifier."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import tprint
from dotenv import load_dotenv

from pushrules.adapters.console_presenter import ConsolePresenter
from pushrules.adapters.matrix_client import MatrixClient, events_from_sync, push_rules_changed
from pushrules.adapters.notification_formatting import EventMessageFormatter
from pushrules.adapters.presence import ActivityPresence
from pushrules.adapters.room_state import InMemoryRoomState
from pushrules.adapters.telegram_bot_notifier import TelegramBotPresenter
from pushrules.client import build_client
from pushrules.core.actions import resolve_actions
from pushrules.core.cache import RulesetCache
from pushrules.core.conditions import ConditionEvaluator
from pushrules.core.errors import PushRulesError
from pushrules.core.models import Event
from pushrules.core.processor import NotificationProcessor
from pushrules.core.rules_engine import iter_rules
from pushrules.core.service import PushRuleService
from pushrules.settings import PROJECT_ROOT, Settings, load_settings

NAME = "PUSHRULES"
FONT = "tarty-1"

DEFAULT_REDACT_PATTERNS = ("MATRIX_ACCESS_TOKEN", "BOT_API")
SYNC_RETRY_SECONDS = 5.0

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", DEFAULT_REDACT_PATTERNS):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/pushrules.log")
        if not os.path.isabs(path):
            path = os.path.join(PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_presenter(settings: Settings):
    # Select the presenter based on configuration to keep the core processor
    # independent from delivery details.
    notifications = settings.notifications
    if notifications.method == "bot":
        bot_token = os.getenv("BOT_API")
        if not bot_token:
            raise RuntimeError("BOT_API is required when notifications.method=bot")
        if not notifications.bot_chat_id:
            raise RuntimeError("notifications.bot_chat_id is required for bot notifications")
        return TelegramBotPresenter(
            bot_token=bot_token,
            chat_id=notifications.bot_chat_id,
            dismiss_after=notifications.dismiss_after_seconds,
        )
    return ConsolePresenter(dismiss_after=notifications.dismiss_after_seconds)


def _build_rule_service(
    settings: Settings, client: MatrixClient, room_state: InMemoryRoomState
) -> PushRuleService:
    evaluator = ConditionEvaluator(
        room_state,
        settings.engine.user_id,
        legacy_glob=settings.engine.legacy_glob,
        owner_display_name=settings.engine.owner_display_name,
    )
    return PushRuleService(RulesetCache(client), client, evaluator)


async def _watch(settings: Settings) -> None:
    """Seed room state from an initial sync, then notify on new events."""

    client = build_client(settings)
    room_state = InMemoryRoomState()
    presence = ActivityPresence(settings.presence)
    rules = _build_rule_service(settings, client, room_state)
    presenter = _build_presenter(settings)
    processor = NotificationProcessor(
        rules=rules,
        presence=presence,
        room_state=room_state,
        formatter=EventMessageFormatter(room_state, settings.engine.user_id),
        presenter=presenter,
        config=settings.engine,
    )
    own_user_id = settings.engine.user_id

    try:
        try:
            await rules.get_rulesets()
        except PushRulesError:
            LOGGER.exception("Initial push rule fetch failed; will retry on the first event")

        # The initial sync is history: fold it into room state without notifying.
        body = await client.sync(timeout_ms=0)
        for _, event in events_from_sync(body):
            room_state.apply_event(event)
        since = body.get("next_batch")
        LOGGER.info("Initial sync complete. Listening for new events...")

        while True:
            try:
                body = await client.sync(since, settings.sync_timeout_ms)
            except PushRulesError:
                LOGGER.exception("Sync failed; retrying in %ss", SYNC_RETRY_SECONDS)
                await asyncio.sleep(SYNC_RETRY_SECONDS)
                continue
            since = body.get("next_batch", since)

            if push_rules_changed(body):
                rules.clear_cache()

            for section, event in events_from_sync(body):
                room_state.apply_event(event)
                if section == "state":
                    continue
                if own_user_id and event.user_id == own_user_id:
                    # Our own events mean the user is at a keyboard somewhere.
                    presence.mark_active()
                    continue
                try:
                    await processor.process_event(event)
                except Exception:
                    LOGGER.exception("Error while processing event %s", event.event_id)
    finally:
        await client.aclose()
        if isinstance(presenter, TelegramBotPresenter):
            await presenter.aclose()


def _run(settings: Settings) -> None:
    _print_banner()
    LOGGER.info("Starting pushrules for %s", settings.engine.user_id)
    try:
        asyncio.run(_watch(settings))
    except KeyboardInterrupt:
        LOGGER.info("Stopped")


def _describe_action(action: Any) -> str:
    if isinstance(action, str):
        return action
    return json.dumps(action, sort_keys=True)


async def _list_rules(settings: Settings) -> None:
    client = build_client(settings)
    try:
        rules = _build_rule_service(settings, client, InMemoryRoomState())
        ruleset = await rules.get_rulesets()
    finally:
        await client.aclose()

    scopes = [("global", ruleset.global_rules)]
    scopes.extend((f"device/{name}", kindset) for name, kindset in ruleset.device.items())
    for scope, kindset in scopes:
        print(f"[{scope}]")
        for kind, rule in iter_rules(kindset):
            state = "" if rule.enabled else " (disabled)"
            actions = ", ".join(_describe_action(action) for action in rule.actions)
            print(f"  {kind:<9} {rule.rule_id}{state}: {actions}")


def _keyword_actions(sound: Optional[str], highlight: bool) -> list[Any]:
    actions: list[Any] = ["notify"]
    if sound:
        actions.append({"set_tweak": "sound", "value": sound})
    if highlight:
        actions.append({"set_tweak": "highlight"})
    return actions


async def _edit_rules(settings: Settings, args: argparse.Namespace) -> None:
    client = build_client(settings)
    try:
        rules = _build_rule_service(settings, client, InMemoryRoomState())
        if args.command == "add-keyword":
            rule_id = await rules.add_global_content_rule(
                args.pattern, _keyword_actions(args.sound, not args.no_highlight)
            )
            print(f"Added content rule {rule_id}")
        elif args.command == "remove-keyword":
            await rules.delete_global_content_rule(args.rule_id)
            print(f"Removed content rule {args.rule_id}")
        elif args.command == "mute-room":
            await rules.add_global_room_rule(args.room_id, ["dont_notify"])
            print(f"Muted {args.room_id}")
        elif args.command == "unmute-room":
            await rules.delete_global_room_rule(args.room_id)
            print(f"Unmuted {args.room_id}")
    finally:
        await client.aclose()


async def _check(settings: Settings, path: str) -> None:
    with open(path, "r", encoding="utf-8") as handle:
        event = Event.from_dict(json.load(handle))

    client = build_client(settings)
    try:
        rules = _build_rule_service(settings, client, InMemoryRoomState())
        matched = await rules.matching_rule_for_event(event)
    finally:
        await client.aclose()

    if matched is None:
        print("No rule matches; the event would not notify.")
        return
    decision = resolve_actions(matched.actions)
    print(f"Matched {matched.scope} {matched.kind} rule {matched.rule_id}")
    print(f"notify={decision.notify} tweaks={json.dumps(dict(decision.tweaks), sort_keys=True)}")
    print(f"highlight={rules.should_highlight_event(event)}")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="pushrules")
    parser.add_argument("--config", help="Path to config.json")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Watch the sync stream and show notifications")
    subparsers.add_parser("rules", help="List the current push rules")

    add_keyword = subparsers.add_parser("add-keyword", help="Notify on a body pattern")
    add_keyword.add_argument("pattern")
    add_keyword.add_argument("--sound", default="default", help="Sound tweak value")
    add_keyword.add_argument("--no-highlight", action="store_true")

    remove_keyword = subparsers.add_parser("remove-keyword", help="Delete a content rule")
    remove_keyword.add_argument("rule_id")

    mute_room = subparsers.add_parser("mute-room", help="Stop notifications for a room")
    mute_room.add_argument("room_id")
    unmute_room = subparsers.add_parser("unmute-room", help="Remove a room rule")
    unmute_room.add_argument("room_id")

    check = subparsers.add_parser("check", help="Show which rule matches an event JSON file")
    check.add_argument("event_file")

    args = parser.parse_args(argv)
    settings = load_settings(args.config)
    _configure_logging(settings.logging)

    if args.command == "rules":
        asyncio.run(_list_rules(settings))
        return
    if args.command in {"add-keyword", "remove-keyword", "mute-room", "unmute-room"}:
        asyncio.run(_edit_rules(settings, args))
        return
    if args.command == "check":
        asyncio.run(_check(settings, args.event_file))
        return
    _run(settings)


if __name__ == "__main__":
    main()
