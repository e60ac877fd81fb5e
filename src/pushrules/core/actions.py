"""Action list resolution (core domain)."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from pushrules.core.models import Action, ActionDecision


def resolve_actions(actions: Iterable[Action]) -> ActionDecision:
    """Fold a rule's actions into a notify flag and a tweak mapping.

    `notify` turns notification on; `{"set_tweak": name, "value": v}` sets a
    tweak, with a missing or null value meaning True. A repeated tweak keeps the last
    value. Other string actions (`dont_notify`, `coalesce`) change nothing.
    """

    notify = False
    tweaks: dict[str, Any] = {}
    for action in actions:
        if action == "notify":
            notify = True
        elif isinstance(action, Mapping) and "set_tweak" in action:
            value = action.get("value")
            tweaks[str(action["set_tweak"])] = True if value is None else value
    return ActionDecision(notify=notify, tweaks=tweaks)
