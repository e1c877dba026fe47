"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from avventura.models import SUPPORTED_LANGUAGES
from avventura.prompts import LANGUAGE_NAMES
from avventura.storage import StoryStore
from backend.deps import get_store

router = APIRouter()


@router.get("/health")
async def health(store: StoryStore = Depends(get_store)):
    """Database connectivity, story counts and language support."""
    now = datetime.now(timezone.utc).isoformat()
    if not store.health_check():
        return JSONResponse(
            {
                "status": "unhealthy",
                "timestamp": now,
                "database": "disconnected",
                "error": "Database connection failed",
            },
            status_code=503,
        )

    stats = store.stats()
    stories = store.list_stories()
    return {
        "status": "healthy",
        "timestamp": now,
        "database": {
            "connected": True,
            "storiesCount": stats["total_stories"],
            "oldestStory": stats["oldest_story"],
            "newestStory": stats["newest_story"],
        },
        "multilingual": {
            "supportedLanguages": len(SUPPORTED_LANGUAGES),
            "languages": list(SUPPORTED_LANGUAGES),
            "languageNames": LANGUAGE_NAMES,
            "homepageLanguages": len(store.available_languages()),
        },
        "content": {
            "totalStories": stats["total_stories"],
            "averageContentLength": (
                round(sum(len(s.content) for s in stories) / len(stories)) if stories else 0
            ),
            "availableStories": [
                {
                    "slug": s.slug,
                    "title": s.title,
                    "homepageLanguages": len(s.homepage_display),
                }
                for s in stories
            ],
        },
    }
