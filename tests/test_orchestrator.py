"""Tests for the per-request conversation state machine."""

import pytest

from avventura.errors import NotFound, ParseError, UpstreamError, ValidationError
from avventura.models import ConversationMessage
from avventura.orchestrator import advance_story, validate_history
from conftest import MONTPELLIER_CONTENT, StubLLM, step_json


def _msg(role, content):
    return ConversationMessage(role=role, content=content)


def _opening_history():
    return [
        _msg("user", "# INSTRUCTIONS ..."),
        _msg("assistant", step_json("At the market.", ["Buy", "Haggle", "Leave"])),
    ]


async def _advance(store, llm, history=(), **kwargs):
    params = dict(
        store=store,
        llm=llm,
        session_id="s1",
        story_name="montpellier",
        language="en",
        history=list(history),
    )
    params.update(kwargs)
    return await advance_story(**params)


# ── Fresh start ──────────────────────────────────────────────


async def test_fresh_start(store, montpellier):
    llm = StubLLM(step_json("The spice market is loud.", ["Buy", "Haggle", "Leave"]))
    turn = await _advance(store, llm)

    assert turn.session_id == "s1"
    assert turn.current_step.step == 1
    assert turn.current_step.description == "The spice market is loud."
    assert turn.current_step.options == ["Buy", "Haggle", "Leave"]

    history = turn.conversation_history
    assert [m.role for m in history] == ["user", "assistant"]
    assert MONTPELLIER_CONTENT in history[0].content
    assert "Respond ENTIRELY in: English" in history[0].content

    stage, sent = llm.calls[0]
    assert stage == "story"
    assert sent == history[:1]


async def test_fresh_start_uses_requested_language(store, montpellier):
    llm = StubLLM(step_json())
    turn = await _advance(store, llm, language="fr")
    assert "Respond ENTIRELY in: French" in turn.conversation_history[0].content


async def test_force_restart_discards_history(store, montpellier):
    history = [*_opening_history(), _msg("user", "Choice 1"), _msg("assistant", step_json())]
    llm = StubLLM(step_json("Back at the start."))
    turn = await _advance(store, llm, history=history, force_restart=True, choice=2)
    assert turn.current_step.step == 1
    assert len(turn.conversation_history) == 2
    assert llm.calls[0][0] == "story"


async def test_unknown_story(store):
    llm = StubLLM()
    with pytest.raises(NotFound, match="Story 'atlantis' not found"):
        await _advance(store, llm, story_name="atlantis")
    assert llm.calls == []


async def test_inactive_story_not_playable(store, montpellier):
    store.delete_story("montpellier")
    with pytest.raises(NotFound):
        await _advance(store, StubLLM())


async def test_fresh_start_unparsable_reply(store, montpellier):
    with pytest.raises(ParseError):
        await _advance(store, StubLLM("Once upon a time..."))


async def test_upstream_error_propagates(store, montpellier):
    with pytest.raises(UpstreamError):
        await _advance(store, StubLLM(UpstreamError("Completion endpoint returned HTTP 500", 500)))


# ── Continue with a choice ───────────────────────────────────


async def test_choice_sends_only_choice_message(store):
    llm = StubLLM(step_json("You haggle."))
    turn = await _advance(store, llm, history=_opening_history(), choice=2)

    assert turn.current_step.step == 2
    assert turn.current_step.description == "You haggle."
    assert turn.conversation_history == []
    assert llm.calls == [("story", [_msg("user", "Choice 2")])]


async def test_choice_step_number_counts_prior_choices(store):
    history = [
        *_opening_history(),
        _msg("user", "Choice 1"), _msg("assistant", step_json()),
        _msg("user", "Choice 3"), _msg("assistant", step_json()),
    ]
    turn = await _advance(store, StubLLM(step_json()), history=history, choice=1)
    assert turn.current_step.step == 4


async def test_choice_falls_back_to_full_history(store):
    original = _opening_history()
    retry = step_json("You remember the market.")
    llm = StubLLM("I don't remember this story.", retry)
    turn = await _advance(store, llm, history=original, choice=2)

    assert turn.current_step.step == 2
    assert turn.current_step.description == "You remember the market."
    assert turn.conversation_history == [
        *original,
        _msg("user", "Choice 2"),
        _msg("assistant", retry),
    ]
    assert [stage for stage, _ in llm.calls] == ["story", "memory_fallback"]
    assert llm.calls[1][1] == [*original, _msg("user", "Choice 2")]


async def test_choice_fallback_unparsable(store):
    llm = StubLLM("nope", "still nope")
    with pytest.raises(ParseError):
        await _advance(store, llm, history=_opening_history(), choice=1)


async def test_choice_does_not_need_story_record(store):
    # Continuations never read the store.
    turn = await _advance(
        store, StubLLM(step_json()), history=_opening_history(), choice=1, story_name="gone"
    )
    assert turn.current_step.step == 2


@pytest.mark.parametrize("choice", [0, 4, -1])
async def test_choice_out_of_range(store, choice):
    with pytest.raises(ValidationError, match="Choice must be between 1 and 3"):
        await _advance(store, StubLLM(), history=_opening_history(), choice=choice)


# ── Replay ───────────────────────────────────────────────────


async def test_replay_cached_reply_without_call(store):
    history = _opening_history()
    llm = StubLLM()
    turn = await _advance(store, llm, history=history)

    assert llm.calls == []
    assert turn.current_step.step == 1
    assert turn.current_step.description == "At the market."
    assert turn.conversation_history == history


async def test_replay_after_choices(store):
    history = [*_opening_history(), _msg("user", "Choice 2"), _msg("assistant", step_json("Later."))]
    turn = await _advance(store, StubLLM(), history=history)
    assert turn.current_step.step == 2
    assert turn.current_step.description == "Later."


async def test_replay_regenerates_unparsable_cached_reply(store):
    history = [_msg("user", "# INSTRUCTIONS ..."), _msg("assistant", "not json")]
    llm = StubLLM(step_json("Fresh."))
    turn = await _advance(store, llm, history=history)

    assert llm.calls == [("replay", history[:1])]
    assert turn.current_step.description == "Fresh."
    assert turn.conversation_history == [history[0], _msg("assistant", step_json("Fresh."))]


async def test_replay_history_ending_on_user_turn(store):
    history = [*_opening_history(), _msg("user", "Choice 3")]
    llm = StubLLM(step_json("Answered."))
    turn = await _advance(store, llm, history=history)

    assert llm.calls == [("replay", history)]
    assert turn.current_step.step == 2
    assert turn.conversation_history[-1] == _msg("assistant", step_json("Answered."))


# ── Request validation ───────────────────────────────────────


async def test_missing_session_id(store):
    with pytest.raises(ValidationError, match="sessionId and storyName"):
        await _advance(store, StubLLM(), session_id="")


async def test_missing_story_name(store):
    with pytest.raises(ValidationError, match="sessionId and storyName"):
        await _advance(store, StubLLM(), story_name="")


def test_validate_history_alternation():
    validate_history(_opening_history())
    with pytest.raises(ValidationError, match="message 1 should be from assistant"):
        validate_history([_msg("user", "a"), _msg("user", "b")])
    with pytest.raises(ValidationError, match="message 0 should be from user"):
        validate_history([_msg("assistant", "a")])


async def test_choice_after_user_turn_rejected(store):
    llm = StubLLM("not json", step_json("Retry."))
    with pytest.raises(ValidationError, match="must follow an assistant message"):
        await _advance(store, llm, history=[_msg("user", "# INSTRUCTIONS ...")], choice=2)
    assert llm.calls == []


async def test_fallback_history_stays_valid(store):
    llm = StubLLM("not json", step_json("Retry."))
    turn = await _advance(store, llm, history=_opening_history(), choice=2)
    validate_history(turn.conversation_history)
    assert [m.role for m in turn.conversation_history] == ["user", "assistant", "user", "assistant"]
