"""Story play endpoints: one step at a time, plus speculative preloading."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from avventura.config import Settings
from avventura.errors import ValidationError
from avventura.llm import LLM
from avventura.orchestrator import advance_story
from avventura.preloader import preload_choices
from avventura.storage import StoryStore
from backend.deps import get_llm, get_settings, get_store

from .models import PreloadBody, StoryBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/story")
async def story(
    body: StoryBody,
    store: StoryStore = Depends(get_store),
    llm: LLM = Depends(get_llm),
    settings: Settings = Depends(get_settings),
):
    """Start, continue or replay a story conversation."""
    language = body.language or settings.default_language
    logger.info(
        "story request session=%s story=%s language=%s choice=%s restart=%s history=%d",
        body.session_id, body.story_name, language, body.choice,
        body.force_restart, len(body.conversation_history),
    )
    turn = await advance_story(
        store=store,
        llm=llm,
        session_id=body.session_id,
        story_name=body.story_name,
        language=language,
        history=body.conversation_history,
        choice=body.choice,
        force_restart=body.force_restart,
    )
    return {**turn.model_dump(by_alias=True, exclude_none=True), "success": True}


@router.get("/story")
async def story_status():
    """Liveness of the story endpoint."""
    return {
        "status": "healthy - stateless",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/story/preload")
async def preload(body: PreloadBody, llm: LLM = Depends(get_llm)):
    """Generate the next step for each candidate choice concurrently."""
    if not body.session_id or not body.story_name or not body.conversation_history:
        raise ValidationError(
            "Missing required parameters: sessionId, storyName, and conversationHistory"
        )
    result = await preload_choices(llm, body.conversation_history, body.choices)
    summary = result.summary()
    return {
        "success": result.success,
        "sessionId": body.session_id,
        "preloadedSteps": {
            str(choice): step.model_dump(exclude_none=True)
            for choice, step in result.preloaded_steps.items()
        },
        "errors": {str(choice): msg for choice, msg in result.errors.items()},
        "summary": summary,
        "message": f"Preloaded {summary['successful']}/{summary['requested']} choices",
    }
