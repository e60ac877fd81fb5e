"""Static configuration for pushrules.

All user-editable settings (homeserver, notification delivery, matching,
presence, logging) live in a single JSON file for quick edits without
touching Python. Secrets stay in the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import os
from typing import Any, Optional

from pushrules.core.config import EngineConfig, NotificationConfig, PresenceConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

# config.json sits at the project root unless PUSHRULES_CONFIG points elsewhere.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

NOTIFICATION_METHODS = ("console", "bot")


@dataclass(frozen=True)
class Settings:
    homeserver: str
    engine: EngineConfig
    notifications: NotificationConfig
    presence: PresenceConfig
    api_prefix: str = "/_matrix/client/v3"
    sync_timeout_ms: int = 30000
    logging: dict[str, Any] = field(default_factory=dict)


def _load_json_config(path: str) -> dict:
    """Load the JSON config file with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def parse_settings(raw: dict) -> Settings:
    """Validate a decoded config mapping and build Settings."""

    homeserver = raw.get("homeserver")
    if not homeserver:
        raise ValueError("homeserver is required")

    # Notification delivery switches presenters without changing core logic.
    # - method: "console" or "bot"
    # - mute: suppress every notification
    # - audio: pass the rule's sound tweak to the presenter
    _notifications = raw.get("notifications", {})
    method = _notifications.get("method", "console")
    if method not in NOTIFICATION_METHODS:
        raise ValueError(f"notifications.method must be one of {', '.join(NOTIFICATION_METHODS)}")
    bot_chat_id: Optional[Any] = _notifications.get("bot_chat_id")

    user_id = raw.get("user_id")
    _matching = raw.get("matching", {})
    engine = EngineConfig(
        user_id=user_id,
        mute_notifications=bool(_notifications.get("mute", False)),
        audio_notifications=bool(_notifications.get("audio", False)),
        legacy_glob=bool(_matching.get("legacy_glob", False)),
        owner_display_name=bool(_matching.get("owner_display_name", False)),
    )

    # Zero means always idle, which suits a headless runner.
    _presence = raw.get("presence", {})
    presence = PresenceConfig(idle_after_seconds=float(_presence.get("idle_after_seconds", 0)))

    return Settings(
        homeserver=str(homeserver),
        engine=engine,
        notifications=NotificationConfig(
            method=method,
            dismiss_after_seconds=float(_notifications.get("dismiss_after_seconds", 5)),
            bot_chat_id=str(bot_chat_id) if bot_chat_id is not None else None,
        ),
        presence=presence,
        api_prefix=raw.get("api_prefix", "/_matrix/client/v3"),
        sync_timeout_ms=int(raw.get("sync", {}).get("timeout_ms", 30000)),
        logging=raw.get("logging", {}),
    )


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from ``path``, PUSHRULES_CONFIG or the project config.json."""

    path = path or os.getenv("PUSHRULES_CONFIG") or CONFIG_PATH
    return parse_settings(_load_json_config(path))
