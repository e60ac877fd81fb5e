from __future__ import annotations

import pytest

from pushrules.core.glob import compile_pattern, glob_to_regex


def test_body_pattern_uses_word_boundaries() -> None:
    matches = compile_pattern("hello*", "content.body")
    assert matches("hello world")
    assert matches("well, hello there")
    assert not matches("sayhello world")


def test_other_keys_require_full_match() -> None:
    matches = compile_pattern("m.room.*", "type")
    assert matches("m.room.message")
    assert not matches("x.m.room.message")

    exact = compile_pattern("m.notice", "content.msgtype")
    assert exact("m.notice")
    assert not exact("m.notice.extra")


@pytest.mark.parametrize("literal", ["cake", "a.b+c", "(parens)", "100$"])
def test_literal_pattern_matches_only_itself(literal: str) -> None:
    matches = compile_pattern(literal, "room_id")
    assert matches(literal)
    assert matches(literal.upper())
    assert not matches(literal + "x")
    assert not matches("x" + literal)


def test_question_mark_matches_one_character() -> None:
    matches = compile_pattern("c?t", "content.msgtype")
    assert matches("cat")
    assert not matches("ct")
    assert not matches("coat")


def test_character_classes() -> None:
    vowel = compile_pattern("c[aeiou]t", "type")
    assert vowel("cat")
    assert not vowel("cyt")

    negated = compile_pattern("c[!aeiou]t", "type")
    assert negated("cyt")
    assert not negated("cat")

    ranged = compile_pattern("v[0-9]", "type")
    assert ranged("v7")
    assert not ranged("vx")


def test_unclosed_bracket_is_literal() -> None:
    matches = compile_pattern("a[b", "type")
    assert matches("a[b")
    assert not matches("ab")


def test_non_string_or_empty_values_never_match() -> None:
    matches = compile_pattern("*", "type")
    assert not matches(None)
    assert not matches("")
    assert not matches(42)
    assert not matches({"nested": "value"})


def test_legacy_mode_treats_wildcards_as_literals() -> None:
    assert glob_to_regex("hello*", legacy=True) == r"hello\*"
    matches = compile_pattern("hello*", "content.body", legacy=True)
    assert not matches("hello world")
    assert compile_pattern("hello", "content.body", legacy=True)("hello world")


def test_empty_pattern() -> None:
    assert compile_pattern("", "content.body")("anything")
    assert not compile_pattern("", "type")("anything")
