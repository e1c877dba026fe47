import json

import pytest

from avventura.storage import StoryStore

MONTPELLIER_CONTENT = "# Montpellier\n\nYou arrive at the spice market."


class StubLLM:
    """Scripted LLM: returns (or raises) queued replies in order, records every call."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, list]] = []

    async def __call__(self, stage, messages):
        self.calls.append((stage, list(messages)))
        if not self.replies:
            raise AssertionError(f"StubLLM has no reply left for stage {stage!r}")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def step_json(description="You stand at the gate.", options=None, action=None) -> str:
    data = {
        "description": description,
        "options": options if options is not None else ["Enter", "Wait", "Leave"],
    }
    if action is not None:
        data["action"] = action
    return json.dumps(data)


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite-backed store per test."""
    s = StoryStore(f"sqlite:///{tmp_path / 'stories.db'}")
    yield s
    s.close()


@pytest.fixture
def montpellier(store):
    return store.upsert_story(
        slug="montpellier",
        title="Montpellier Médiéval",
        content=MONTPELLIER_CONTENT,
        homepage_display={
            "en": {"title": "Medieval Montpellier", "description": "Explore 10th century Montpellier!"},
            "fr": {"title": "Montpellier Médiéval", "description": "Explorez Montpellier au 10ème siècle!"},
        },
    )
