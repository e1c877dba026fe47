"""FastAPI API endpoints under /api.

Endpoint groups: story play (/story, /story/preload), story administration
(/admin/stories/...), analytics (/analytics/...), the admin dashboard
(/admin/dashboard), health.

Every failure is answered as {"success": false, "error": <message>}; the
exception handlers live in backend.app.
"""

from fastapi import APIRouter

from .analytics import router as analytics_router
from .dashboard import router as dashboard_router
from .health import router as health_router
from .stories import router as stories_router
from .story import router as story_router

router = APIRouter()
router.include_router(health_router)
router.include_router(story_router)
router.include_router(stories_router)
router.include_router(analytics_router)
router.include_router(dashboard_router)
