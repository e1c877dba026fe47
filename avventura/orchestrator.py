"""Conversation orchestrator: answers one /story request.

The server keeps no session store: the client sends its conversation
history with every request and the branch taken is inferred from the
request shape:

  1. Empty history or force_restart
       Load the story (NotFound if absent/inactive), seed the history with
       the instruction prompt, call the model, parse. Step 1.
  2. History and a choice
       Memory-reliant continuation: send only "Choice N". If the reply
       parses, return it with an empty history. Otherwise retry once with
       the full transcript and return [...history, Choice N, reply].
       Step = prior choices + 2.
  3. History, no choice
       If the last turn is an assistant turn that parses, replay it with no
       outbound call. Otherwise regenerate from the history.
       Step = prior choices + 1.

Nothing here touches the usage counters.
"""

from __future__ import annotations

import logging

from avventura.errors import NotFound, ParseError, ValidationError
from avventura.llm import LLM
from avventura.models import ConversationMessage, StoryStep, StoryTurn
from avventura.parser import choice_count, choice_message, parse_step
from avventura.prompts import build_instructions
from avventura.storage import StoryStore

logger = logging.getLogger(__name__)

MIN_CHOICE = 1
MAX_CHOICE = 3


def validate_history(history: list[ConversationMessage]) -> None:
    """History must alternate user/assistant, starting with user."""
    for i, msg in enumerate(history):
        expected = "user" if i % 2 == 0 else "assistant"
        if msg.role != expected:
            raise ValidationError(
                f"Invalid conversation history: message {i} should be from {expected}"
            )


def validate_choice_history(history: list[ConversationMessage]) -> None:
    """A choice answers the last assistant turn, so history must end on one."""
    if not history or history[-1].role != "assistant":
        raise ValidationError(
            "Invalid conversation history: a choice must follow an assistant message"
        )


def validate_choice(choice: int) -> None:
    if not MIN_CHOICE <= choice <= MAX_CHOICE:
        raise ValidationError(f"Choice must be between {MIN_CHOICE} and {MAX_CHOICE}, got {choice}")


def _numbered(step: StoryStep, number: int) -> StoryStep:
    return step.model_copy(update={"step": number})


async def advance_story(
    *,
    store: StoryStore,
    llm: LLM,
    session_id: str,
    story_name: str,
    language: str,
    history: list[ConversationMessage],
    choice: int | None = None,
    force_restart: bool = False,
) -> StoryTurn:
    """Run one request through the conversation state table."""
    if not session_id or not story_name:
        raise ValidationError("Missing required parameters: sessionId and storyName")
    validate_history(history)
    if choice is not None:
        validate_choice(choice)

    if not history or force_restart:
        return await _start(store, llm, session_id, story_name, language)
    if choice is not None:
        return await _continue_with_choice(llm, session_id, history, choice)
    return await _resume(llm, session_id, history)


async def _start(
    store: StoryStore, llm: LLM, session_id: str, story_name: str, language: str
) -> StoryTurn:
    story = store.get_story(story_name)
    if story is None:
        raise NotFound(f"Story '{story_name}' not found")

    logger.info("new conversation session=%s story=%s language=%s", session_id, story_name, language)
    history = [ConversationMessage(role="user", content=build_instructions(story.content, language))]
    reply = await llm("story", history)
    history.append(ConversationMessage(role="assistant", content=reply))
    step = parse_step(reply)
    return StoryTurn(
        session_id=session_id,
        current_step=_numbered(step, 1),
        conversation_history=history,
    )


async def _continue_with_choice(
    llm: LLM, session_id: str, history: list[ConversationMessage], choice: int
) -> StoryTurn:
    validate_choice_history(history)
    number = choice_count(history) + 2
    message = choice_message(choice)

    # Only the choice is sent here; the full transcript goes out on the retry.
    reply = await llm("story", [message])
    try:
        step = parse_step(reply)
    except ParseError as e:
        logger.info(
            "memory-reliant reply unusable (%s), retrying with full history session=%s",
            e, session_id,
        )
    else:
        return StoryTurn(
            session_id=session_id,
            current_step=_numbered(step, number),
            conversation_history=[],
        )

    full_history = [*history, message]
    retry_reply = await llm("memory_fallback", full_history)
    step = parse_step(retry_reply)
    return StoryTurn(
        session_id=session_id,
        current_step=_numbered(step, number),
        conversation_history=[
            *full_history,
            ConversationMessage(role="assistant", content=retry_reply),
        ],
    )


async def _resume(
    llm: LLM, session_id: str, history: list[ConversationMessage]
) -> StoryTurn:
    number = choice_count(history) + 1
    last = history[-1]

    if last.role == "assistant":
        try:
            step = parse_step(last.content)
        except ParseError as e:
            logger.warning("cached reply unusable (%s), regenerating session=%s", e, session_id)
            # Drop the broken reply so the transcript still ends on a user turn.
            history = history[:-1]
        else:
            logger.debug("replaying cached reply session=%s", session_id)
            return StoryTurn(
                session_id=session_id,
                current_step=_numbered(step, number),
                conversation_history=list(history),
            )

    reply = await llm("replay", history)
    step = parse_step(reply)
    return StoryTurn(
        session_id=session_id,
        current_step=_numbered(step, number),
        conversation_history=[*history, ConversationMessage(role="assistant", content=reply)],
    )
