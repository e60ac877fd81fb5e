"""Error taxonomy shared by the core and its adapters."""

from __future__ import annotations

from typing import Optional


class PushRulesError(RuntimeError):
    """Base error for push rule operations."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RulesetFetchError(PushRulesError):
    """Raised when the ruleset source is unreachable or rejects the request."""


class RuleMutationError(PushRulesError):
    """Raised when adding or deleting a rule fails."""
