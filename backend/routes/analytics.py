"""Usage analytics: read-only aggregates plus the counter increment hook."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from avventura.errors import NotFound
from avventura.storage import StoryStore
from backend.deps import get_store

from .models import UsageBody

router = APIRouter(prefix="/analytics")


def _ratio(a: float, b: float, digits: int) -> float:
    return round(a / b, digits) if b else 0


@router.get("")
async def overview(format: str = "summary", store: StoryStore = Depends(get_store)):
    """Totals across all active stories; format=detailed adds per-story rankings."""
    s = store.stats()
    now = datetime.now(timezone.utc).isoformat()

    if format == "detailed":
        analytics = [a.model_dump(by_alias=True) for a in store.all_analytics()]

        def top(key: str) -> list[dict]:
            return sorted(analytics, key=lambda a: a[key], reverse=True)[:5]

        return {
            "success": True,
            "overview": {
                "totalStories": s["total_stories"],
                "totalSessions": s["total_sessions"],
                "totalRequests": s["total_requests"],
                "totalTokens": s["total_tokens"],
                "totalCosts": s["total_costs"],
                "averageSessionsPerStory": round(s["average_sessions_per_story"], 2),
                "averageRequestsPerStory": round(s["average_requests_per_story"], 2),
                "averageCostPerSession": _ratio(s["total_costs"], s["total_sessions"], 4),
                "averageCostPerRequest": _ratio(s["total_costs"], s["total_requests"], 4),
                "averageTokensPerRequest": _ratio(s["total_tokens"], s["total_requests"], 2),
            },
            "storiesAnalytics": analytics,
            "topStories": {
                "mostPopular": top("sessions"),
                "mostRequests": top("requests"),
                "mostExpensive": top("costs"),
                "mostTokens": top("tokens"),
            },
            "timestamp": now,
        }

    return {
        "success": True,
        "summary": {
            "totalStories": s["total_stories"],
            "totalSessions": s["total_sessions"],
            "totalRequests": s["total_requests"],
            "totalTokens": s["total_tokens"],
            "totalCosts": f"${s['total_costs']:.4f}",
            "averageSessionsPerStory": round(s["average_sessions_per_story"], 2),
            "averageRequestsPerStory": round(s["average_requests_per_story"], 2),
        },
        "timestamp": now,
    }


@router.get("/{slug}")
async def story_analytics(slug: str, store: StoryStore = Depends(get_store)):
    """Counters and ratios for one story."""
    analytics = store.story_analytics(slug)
    if analytics is None:
        raise NotFound(f"Story '{slug}' not found")
    story = store.get_story(slug)
    data = analytics.model_dump(by_alias=True)
    return {
        "success": True,
        "story": {
            "slug": story.slug,
            "title": story.title,
            "createdAt": story.created_at.isoformat() if story.created_at else None,
            "updatedAt": story.updated_at.isoformat() if story.updated_at else None,
        },
        "analytics": {
            **data,
            "costFormatted": f"${analytics.costs:.4f}",
            "costPerSessionFormatted": f"${analytics.cost_per_session:.4f}",
            "costPerRequestFormatted": f"${analytics.cost_per_request:.4f}",
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/{slug}/usage")
async def record_usage(slug: str, body: UsageBody, store: StoryStore = Depends(get_store)):
    """Add usage increments to a story's counters."""
    story = store.record_usage(
        slug,
        sessions=body.sessions,
        requests=body.requests,
        tokens=body.tokens,
        costs=body.costs,
    )
    return {
        "success": True,
        "slug": story.slug,
        "counters": {
            "sessions": story.sessions,
            "requests": story.requests,
            "tokens": story.tokens,
            "costs": story.costs,
        },
    }
