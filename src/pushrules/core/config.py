"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EngineConfig:
    """Matching and dispatch settings for the core engine."""

    user_id: Optional[str]
    mute_notifications: bool = False
    audio_notifications: bool = False
    # Match glob patterns as escaped literals, the way older clients did.
    legacy_glob: bool = False
    # Look for the account owner's display name instead of the sender's.
    owner_display_name: bool = False


@dataclass(frozen=True)
class PresenceConfig:
    """Idle detection settings consumed by presence adapters."""

    idle_after_seconds: float


@dataclass(frozen=True)
class NotificationConfig:
    """Notification delivery settings consumed by presenter adapters."""

    method: str
    dismiss_after_seconds: float = 5.0
    bot_chat_id: Optional[str] = None
