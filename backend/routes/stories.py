"""Story CRUD, homepage listing and bulk operations under /admin/stories."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from avventura.config import Settings
from avventura.errors import NotFound
from avventura.storage import StoryStore
from backend.deps import get_settings, get_store

from .models import BulkBody, UpdateHomepage, UpsertStory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/stories")


@router.get("")
async def list_stories(search: str | None = None, store: StoryStore = Depends(get_store)):
    """List active stories, optionally filtered by a search term."""
    stories = store.list_stories(search=search)
    return {
        "success": True,
        "stories": [s.model_dump(mode="json") for s in stories],
        "count": len(stories),
        "message": (
            f'Found {len(stories)} stories matching "{search}"' if search
            else f"Retrieved {len(stories)} stories"
        ),
    }


@router.post("")
async def upsert_story(body: UpsertStory, store: StoryStore = Depends(get_store)):
    """Create or update a story by slug."""
    story = store.upsert_story(
        slug=body.slug,
        title=body.title,
        content=body.content,
        homepage_display=body.homepage_display,
        owner=body.owner,
    )
    return {
        "success": True,
        "story": story.model_dump(mode="json"),
        "message": f"Story '{story.title}' saved successfully",
        "availableLanguages": sorted(story.homepage_display),
    }


@router.get("/homepage")
async def homepage(
    language: str | None = None,
    store: StoryStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Localized titles and descriptions for the story listing page."""
    language = language or settings.default_language
    stories = store.homepage_stories(language)
    return {
        "success": True,
        "stories": stories,
        "count": len(stories),
        "language": language,
    }


@router.get("/stats")
async def stats(store: StoryStore = Depends(get_store)):
    """Story counts and usage totals."""
    s = store.stats()
    return {
        "success": True,
        "stats": {
            "totalStories": s["total_stories"],
            "oldestStory": s["oldest_story"],
            "newestStory": s["newest_story"],
            "languagesSupported": s["languages_supported"],
            "availableLanguages": store.available_languages(),
        },
    }


@router.post("/bulk")
async def bulk(body: BulkBody, store: StoryStore = Depends(get_store)):
    """Activate, deactivate or soft-delete a list of stories."""
    results = []
    for slug in body.slugs:
        try:
            ok = store.set_active(slug, body.operation == "activate")
        except SQLAlchemyError:
            logger.exception("bulk %s failed for %r", body.operation, slug)
            results.append({"slug": slug, "success": False, "error": "Database error",
                            "operation": body.operation})
            continue
        results.append({"slug": slug, "success": ok, "operation": body.operation})

    successful = sum(1 for r in results if r["success"])
    failed = len(results) - successful
    logger.info("bulk %s: %d success, %d errors", body.operation, successful, failed)
    return {
        "success": failed == 0,
        "results": results,
        "summary": {
            "total": len(body.slugs),
            "successful": successful,
            "failed": failed,
            "operation": body.operation,
        },
        "message": f"Bulk {body.operation}: {successful}/{len(body.slugs)} successful",
    }


@router.get("/{slug}")
async def get_story(slug: str, store: StoryStore = Depends(get_store)):
    """Get a single active story by slug."""
    story = store.get_story(slug)
    if story is None:
        raise NotFound(f"Story '{slug}' not found")
    return {"success": True, "story": story.model_dump(mode="json")}


@router.patch("/{slug}/homepage")
async def update_homepage(
    slug: str, body: UpdateHomepage, store: StoryStore = Depends(get_store)
):
    """Replace a story's homepage display map."""
    story = store.update_homepage_display(slug, body.homepage_display, owner=body.owner)
    return {
        "success": True,
        "story": story.model_dump(mode="json"),
        "availableLanguages": sorted(story.homepage_display),
    }


@router.delete("/{slug}")
async def delete_story(slug: str, store: StoryStore = Depends(get_store)):
    """Soft-delete a story."""
    if not store.delete_story(slug):
        raise NotFound(f"Story '{slug}' not found")
    return {"success": True}
