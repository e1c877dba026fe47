"""Admin dashboard: overview metrics, rankings, insights, cost breakdown, story health."""

import logging
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends

from avventura.models import StoryAnalytics
from avventura.storage import StoryStore
from backend.deps import get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/dashboard")

TOP_N = 5
INSIGHT_N = 3


def _ratio(a: float, b: float, digits: int) -> float:
    return round(a / b, digits) if b else 0


def _share(part: float, total: float) -> float:
    return round(part / total * 100, 2) if total else 0


def _health_score(a: StoryAnalytics) -> int:
    score = 0
    if a.sessions > 0:
        score += 40
    if a.sessions >= 5:
        score += 20
    if a.requests > 0:
        score += 20
    if a.cost_per_session < 0.01:
        score += 20
    return score


def _health_status(score: int) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "needs-attention"


def _overview(s: dict) -> dict:
    return {
        "totalStories": s["total_stories"],
        "totalSessions": s["total_sessions"],
        "totalRequests": s["total_requests"],
        "totalTokens": s["total_tokens"],
        "totalCosts": s["total_costs"],
        "averageSessionsPerStory": round(s["average_sessions_per_story"], 2),
        "averageRequestsPerStory": round(s["average_requests_per_story"], 2),
        "averageRequestsPerSession": _ratio(s["total_requests"], s["total_sessions"], 2),
        "averageCostPerStory": _ratio(s["total_costs"], s["total_stories"], 4),
        "averageCostPerSession": _ratio(s["total_costs"], s["total_sessions"], 4),
        "averageCostPerRequest": _ratio(s["total_costs"], s["total_requests"], 4),
        "averageTokensPerStory": _ratio(s["total_tokens"], s["total_stories"], 2),
        "averageTokensPerSession": _ratio(s["total_tokens"], s["total_sessions"], 2),
        "averageTokensPerRequest": _ratio(s["total_tokens"], s["total_requests"], 2),
    }


def build_dashboard(store: StoryStore) -> dict:
    s = store.stats()
    analytics = store.all_analytics()
    stories = {story.slug: story for story in store.list_stories()}

    def title(slug: str) -> str:
        story = stories.get(slug)
        return story.title if story else slug

    def ranked(key: str, share_key: str, total: float) -> list[dict]:
        top = sorted(analytics, key=lambda a: getattr(a, key), reverse=True)[:TOP_N]
        return [
            {
                "rank": i,
                "slug": a.story_slug,
                "title": title(a.story_slug),
                key: round(getattr(a, key), 4),
                share_key: _share(getattr(a, key), total),
            }
            for i, a in enumerate(top, start=1)
        ]

    efficient = sorted(
        (a for a in analytics if a.sessions and a.requests),
        key=lambda a: a.sessions / a.requests,
        reverse=True,
    )[:TOP_N]

    played = [a for a in analytics if a.sessions > 0]
    by_cost_per_session = [
        {
            "slug": a.story_slug,
            "title": title(a.story_slug),
            "costPerSession": round(a.cost_per_session, 4),
            "sessions": a.sessions,
        }
        for a in sorted(played, key=lambda a: a.cost_per_session)
    ]
    by_engagement = [
        {
            "slug": a.story_slug,
            "title": title(a.story_slug),
            "requestsPerSession": _ratio(a.requests, a.sessions, 2),
            "sessions": a.sessions,
            "requests": a.requests,
        }
        for a in sorted(played, key=lambda a: a.requests / a.sessions, reverse=True)
    ]

    health = []
    for a in analytics:
        score = _health_score(a)
        story = stories.get(a.story_slug)
        health.append({
            "slug": a.story_slug,
            "title": title(a.story_slug),
            "healthScore": score,
            "status": _health_status(score),
            "metrics": {
                "sessions": a.sessions,
                "requests": a.requests,
                "tokens": a.tokens,
                "costs": round(a.costs, 4),
                "costPerSession": round(a.cost_per_session, 4),
                "requestsPerSession": _ratio(a.requests, a.sessions, 2),
            },
            "lastUpdated": (
                story.updated_at.isoformat() if story and story.updated_at else None
            ),
        })
    health.sort(key=lambda h: h["healthScore"], reverse=True)

    total_costs = s["total_costs"]
    return {
        "overview": _overview(s),
        "rankings": {
            "mostPopular": ranked("sessions", "sessionShare", s["total_sessions"]),
            "mostRequests": ranked("requests", "requestShare", s["total_requests"]),
            "mostExpensive": ranked("costs", "costShare", total_costs),
            "mostEfficient": [
                {
                    "rank": i,
                    "slug": a.story_slug,
                    "title": title(a.story_slug),
                    "efficiency": _share(a.sessions, a.requests),
                    "sessions": a.sessions,
                    "requests": a.requests,
                }
                for i, a in enumerate(efficient, start=1)
            ],
        },
        "insights": {
            "costEfficiency": {
                "bestValueStories": by_cost_per_session[:INSIGHT_N],
                "highestCostPerSession": by_cost_per_session[::-1][:INSIGHT_N],
            },
            "engagement": {
                "highEngagement": by_engagement[:INSIGHT_N],
                "lowEngagement": by_engagement[::-1][:INSIGHT_N],
            },
        },
        "costs": {
            "total": {
                "amount": total_costs,
                "formatted": f"${total_costs:.4f}",
                "currency": "USD",
            },
            "byStory": [
                {
                    "slug": a.story_slug,
                    "title": title(a.story_slug),
                    "amount": round(a.costs, 4),
                    "formatted": f"${a.costs:.4f}",
                    "percentage": _share(a.costs, total_costs),
                    "sessions": a.sessions,
                    "requests": a.requests,
                }
                for a in sorted(analytics, key=lambda a: a.costs, reverse=True)
            ],
            # Rough estimate: there is no time-bucketed usage data.
            "projectedMonthly": total_costs * 30,
            "formattedProjectedMonthly": f"${total_costs * 30:.2f}",
        },
        "storyHealth": health,
    }


@router.get("")
async def dashboard(
    timeframe: Literal["all", "week", "month"] = "all",
    format: Literal["dashboard", "export", "summary"] = "dashboard",
    store: StoryStore = Depends(get_store),
):
    """Usage dashboard. Counters are cumulative, so every timeframe reports all-time totals."""
    logger.info("building dashboard format=%s timeframe=%s", format, timeframe)
    data = build_dashboard(store)
    now = datetime.now(timezone.utc).isoformat()

    if format == "export":
        return {
            "success": True,
            "format": "export",
            "exportData": {
                "overview": data["overview"],
                "stories": data["storyHealth"],
                "costs": data["costs"]["byStory"],
            },
            "timestamp": now,
        }

    if format == "summary":
        popular = data["rankings"]["mostPopular"]
        return {
            "success": True,
            "format": "summary",
            "summary": {
                "totalStories": data["overview"]["totalStories"],
                "totalSessions": data["overview"]["totalSessions"],
                "totalCosts": data["costs"]["total"]["formatted"],
                "topStory": popular[0]["title"] if popular else "N/A",
                "averageCostPerSession": f"${data['overview']['averageCostPerSession']:.4f}",
            },
            "timestamp": now,
        }

    health = data["storyHealth"]
    played = sum(1 for h in health if h["metrics"]["sessions"] > 0)
    return {
        "success": True,
        "format": "dashboard",
        "dashboard": data,
        "metadata": {
            "lastUpdated": now,
            "timeframe": timeframe,
            "totalStories": data["overview"]["totalStories"],
            "dataCompleteness": _share(played, len(health)),
        },
    }
