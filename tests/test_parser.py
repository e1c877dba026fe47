"""Tests for strict StoryStep parsing and choice counting."""

import json

import pytest

from avventura.errors import ParseError
from avventura.models import ConversationMessage
from avventura.parser import choice_count, choice_message, parse_step, strip_fences
from conftest import step_json


def _msg(role, content):
    return ConversationMessage(role=role, content=content)


# ── parse_step: accepted shapes ──────────────────────────────


def test_plain_json():
    step = parse_step(step_json("At the gate.", ["A", "B", "C"]))
    assert step.description == "At the gate."
    assert step.options == ["A", "B", "C"]
    assert step.action is None
    assert step.step is None


def test_json_fence_stripped():
    raw = "```json\n" + step_json("Fenced.") + "\n```"
    assert parse_step(raw).description == "Fenced."


def test_bare_fence_stripped():
    raw = "```\n" + step_json("Bare fence.") + "\n```"
    assert parse_step(raw).description == "Bare fence."


def test_surrounding_whitespace():
    assert parse_step("\n\n  " + step_json("Spaced.") + "  \n").description == "Spaced."


def test_action_copied_through():
    assert parse_step(step_json(action="milestone")).action == "milestone"


def test_extra_fields_ignored():
    data = json.loads(step_json())
    data["mood"] = "tense"
    assert parse_step(json.dumps(data)).options == ["Enter", "Wait", "Leave"]


# ── parse_step: rejected shapes ──────────────────────────────


def test_invalid_json():
    with pytest.raises(ParseError, match="not valid JSON"):
        parse_step("Once upon a time...")


def test_not_an_object():
    with pytest.raises(ParseError, match="JSON object"):
        parse_step('["a", "b", "c"]')


@pytest.mark.parametrize("options", [[], ["A"], ["A", "B"], ["A", "B", "C", "D"]])
def test_wrong_option_count(options):
    with pytest.raises(ParseError, match=f"expected 3 options, got {len(options)}"):
        parse_step(step_json(options=options))


def test_options_missing():
    with pytest.raises(ParseError, match="options"):
        parse_step(json.dumps({"description": "x"}))


def test_non_string_option():
    with pytest.raises(ParseError, match="strings"):
        parse_step(step_json(options=["A", 2, "C"]))


def test_description_missing():
    with pytest.raises(ParseError, match="description"):
        parse_step(json.dumps({"options": ["A", "B", "C"]}))


def test_legacy_desc_field_not_accepted():
    with pytest.raises(ParseError, match="description"):
        parse_step(json.dumps({"desc": "Old name", "options": ["A", "B", "C"]}))


def test_empty_description():
    with pytest.raises(ParseError):
        parse_step(step_json(description="   "))


def test_non_string_action():
    with pytest.raises(ParseError, match="action"):
        parse_step(json.dumps({"description": "x", "options": ["A", "B", "C"], "action": 1}))


# ── choice helpers ───────────────────────────────────────────


def test_choice_message():
    msg = choice_message(2)
    assert msg.role == "user"
    assert msg.content == "Choice 2"


def test_choice_count_ignores_seed_and_assistant():
    history = [
        _msg("user", "# INSTRUCTIONS ..."),
        _msg("assistant", "Choice 3 is tempting"),
        _msg("user", "Choice 1"),
        _msg("assistant", "{}"),
        _msg("user", "Choice 2"),
    ]
    assert choice_count(history) == 2


def test_choice_count_empty():
    assert choice_count([]) == 0


def test_strip_fences_leaves_plain_text():
    assert strip_fences("  hello ") == "hello"


def test_inner_backticks_preserved():
    description = "The sign reads ``` in runes"
    assert parse_step(step_json(description)).description == description


def test_fenced_reply_keeps_inner_backticks():
    description = "A ```json scroll``` lies here"
    raw = "```json\n" + step_json(description) + "\n```"
    assert parse_step(raw).description == description
