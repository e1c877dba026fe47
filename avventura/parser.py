"""Strict parsing of assistant turns into StoryStep.

The model is asked for a bare JSON object but sometimes wraps it in a
markdown fence; the outer fence is stripped, nothing else is repaired. Field names
are not guessed: only "description", "options" and "action" are read.
"""

import json
import re

from avventura.errors import ParseError
from avventura.models import ConversationMessage, StoryStep

OPTION_COUNT = 3
CHOICE_PREFIX = "Choice "

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$")


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def parse_step(raw: str) -> StoryStep:
    """Parse one assistant reply. Raises ParseError on any shape violation."""
    cleaned = strip_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseError(f"Story response is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Story response must be a JSON object, got {type(data).__name__}")

    description = data.get("description")
    if not isinstance(description, str) or not description.strip():
        raise ParseError("Story response is missing a description")

    options = data.get("options")
    if not isinstance(options, list):
        raise ParseError("Story response is missing an options array")
    if len(options) != OPTION_COUNT:
        raise ParseError(
            f"Invalid step format: expected {OPTION_COUNT} options, got {len(options)}"
        )
    if not all(isinstance(o, str) for o in options):
        raise ParseError("Story options must all be strings")

    action = data.get("action")
    if action is not None and not isinstance(action, str):
        raise ParseError("Story action must be a string")

    return StoryStep(description=description, options=options, action=action)


def choice_message(choice: int) -> ConversationMessage:
    return ConversationMessage(role="user", content=f"{CHOICE_PREFIX}{choice}")


def choice_count(history: list[ConversationMessage]) -> int:
    """Number of user turns that selected an option."""
    return sum(
        1 for m in history
        if m.role == "user" and m.content.startswith(CHOICE_PREFIX)
    )
