"""Glob pattern translation for `event_match` conditions (core domain)."""

from __future__ import annotations

from functools import lru_cache
import re
from typing import Any, Callable

Predicate = Callable[[Any], bool]

# Keys matched as a word-bounded substring; every other key must match whole.
WORD_BOUNDARY_KEYS = frozenset({"content.body"})


def _translate_class(body: str) -> str:
    negate = body.startswith("!")
    if negate:
        body = body[1:]
    body = body.replace("\\", "\\\\").replace("[", "\\[")
    if not negate and body.startswith("^"):
        body = "\\" + body
    return f"[{'^' if negate else ''}{body}]"


def glob_to_regex(glob: str, legacy: bool = False) -> str:
    """Translate a glob into a regular expression fragment.

    `*` becomes a non-greedy run, `?` a single character and `[...]` /
    `[!...]` a (negated) character class. Everything else is escaped.

    With ``legacy`` set the glob is escaped and returned as is, so wildcard
    characters only ever match themselves.
    """

    if legacy:
        return re.escape(glob)

    parts: list[str] = []
    index = 0
    while index < len(glob):
        char = glob[index]
        if char == "*":
            parts.append(".*?")
        elif char == "?":
            parts.append(".")
        elif char == "[":
            start = index + 1
            if glob.startswith("!", start):
                start += 1
            # A "]" right after the opening bracket belongs to the class.
            close = glob.find("]", start + 1)
            if close == -1:
                parts.append(re.escape(char))
            else:
                parts.append(_translate_class(glob[index + 1 : close]))
                index = close
        else:
            parts.append(re.escape(char))
        index += 1
    return "".join(parts)


@lru_cache(maxsize=1024)
def _compile(glob: str, word_boundary: bool, legacy: bool) -> re.Pattern:
    fragment = glob_to_regex(glob, legacy=legacy)
    if word_boundary:
        return re.compile(rf"\b{fragment}\b", re.IGNORECASE)
    return re.compile(rf"^{fragment}$", re.IGNORECASE)


def compile_pattern(glob: str, key: str = "", legacy: bool = False) -> Predicate:
    """Return a predicate matching values against ``glob`` for condition ``key``."""

    regex = _compile(glob, key in WORD_BOUNDARY_KEYS, legacy)

    def predicate(value: Any) -> bool:
        if not isinstance(value, str) or not value:
            return False
        return regex.search(value) is not None

    return predicate
