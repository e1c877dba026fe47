"""Speculative generation of the next step for each candidate choice.

Each candidate is an independent "full history + Choice N" call. All calls
run concurrently and are joined without short-circuiting: a failure lands
in the error map and never cancels the others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from avventura.errors import ValidationError
from avventura.llm import LLM
from avventura.models import ConversationMessage, PreloadResult, StoryStep
from avventura.orchestrator import validate_choice, validate_choice_history, validate_history
from avventura.parser import choice_count, choice_message, parse_step

logger = logging.getLogger(__name__)

DEFAULT_CHOICES = (1, 2, 3)


async def _preload_one(
    llm: LLM, history: list[ConversationMessage], choice: int, number: int
) -> StoryStep:
    reply = await llm("preload", [*history, choice_message(choice)])
    return parse_step(reply).model_copy(update={"step": number})


async def preload_choices(
    llm: LLM,
    history: list[ConversationMessage],
    choices: Iterable[int] = DEFAULT_CHOICES,
) -> PreloadResult:
    if not history:
        raise ValidationError("Missing required parameters: conversationHistory")
    validate_history(history)
    validate_choice_history(history)
    choices = list(dict.fromkeys(choices))
    for choice in choices:
        validate_choice(choice)

    number = choice_count(history) + 2
    outcomes = await asyncio.gather(
        *(_preload_one(llm, history, c, number) for c in choices),
        return_exceptions=True,
    )

    result = PreloadResult(requested=len(choices))
    for choice, outcome in zip(choices, outcomes):
        if isinstance(outcome, Exception):
            logger.warning("preload choice %d failed: %s", choice, outcome)
            result.errors[choice] = str(outcome) or type(outcome).__name__
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            result.preloaded_steps[choice] = outcome

    logger.info(
        "preload results: %d successful, %d failed",
        len(result.preloaded_steps), len(result.errors),
    )
    return result
