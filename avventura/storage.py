"""Relational story store.

One table, one row per story slug:

    stories
      id, slug (unique), title, content,
      homepage_display   JSON  {lang: {title, description}}
      owner              account address (0x + 40 hex) or NULL
      is_active          soft-delete flag
      sessions, requests, tokens, costs   usage counters, never decreased
      created_at, updated_at

The engine (and its connection pool) is created once per StoryStore and
shared by every request. Each operation runs in its own short session; a
counter increment and a content upsert are never part of one transaction.
Rows are never hard-deleted.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    cast,
    create_engine,
    or_,
    select,
    text,
    update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, sessionmaker

from avventura.errors import NotFound, OwnershipError, ValidationError
from avventura.models import SUPPORTED_LANGUAGES, HomepageEntry, StoryAnalytics, StoryRecord

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
OWNER_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
FALLBACK_DESCRIPTION = "Adventure awaits!"

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StoryRow(Base):
    __tablename__ = "stories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    homepage_display: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    owner: Mapped[str | None] = mapped_column(String(42))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    costs: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )

    __table_args__ = (
        Index("idx_stories_active", "is_active"),
    )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_slug(slug: str) -> None:
    if not slug or not SLUG_RE.match(slug):
        raise ValidationError(
            "Invalid slug format. Use only lowercase letters, numbers, and hyphens."
        )


def validate_owner(owner: str | None) -> None:
    if owner is not None and not OWNER_RE.match(owner):
        raise ValidationError("Invalid owner format. Expected a 0x-prefixed 40-hex-digit address.")


def normalize_homepage_display(display: dict[str, Any] | None) -> dict[str, dict[str, str]]:
    """Validate entries and fill every supported language from a complete "en" entry."""
    result: dict[str, dict[str, str]] = {}
    for lang, entry in (display or {}).items():
        if isinstance(entry, HomepageEntry):
            entry = entry.model_dump()
        if (
            not isinstance(entry, dict)
            or not isinstance(entry.get("title"), str) or not entry.get("title")
            or not isinstance(entry.get("description"), str) or not entry.get("description")
        ):
            raise ValidationError(
                f'Invalid homepage_display entry for language "{lang}". '
                "Must have title and description."
            )
        result[lang] = {"title": entry["title"], "description": entry["description"]}

    english = result.get("en")
    if english:
        for lang in SUPPORTED_LANGUAGES:
            result.setdefault(lang, dict(english))
    return result


def _same_owner(a: str, b: str | None) -> bool:
    return b is not None and a.lower() == b.lower()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class StoryStore:
    def __init__(self, database_url: str) -> None:
        url = make_url(database_url)
        if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            json_serializer=lambda obj: json.dumps(obj, ensure_ascii=False),
        )
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _find(self, session, slug: str) -> StoryRow | None:
        return session.scalars(select(StoryRow).where(StoryRow.slug == slug)).first()

    def get_story(self, slug: str, include_inactive: bool = False) -> StoryRecord | None:
        with self.Session() as session:
            row = self._find(session, slug)
            if row is None or (not row.is_active and not include_inactive):
                logger.debug("story %r not found", slug)
                return None
            return StoryRecord.model_validate(row)

    def list_stories(
        self, search: str | None = None, include_inactive: bool = False
    ) -> list[StoryRecord]:
        """Stories newest first, optionally filtered by a case-insensitive search term."""
        query = select(StoryRow)
        if not include_inactive:
            query = query.where(StoryRow.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                StoryRow.title.ilike(pattern),
                StoryRow.content.ilike(pattern),
                cast(StoryRow.homepage_display, String).ilike(pattern),
            ))
        query = query.order_by(StoryRow.created_at.desc(), StoryRow.id.desc())
        with self.Session() as session:
            return [StoryRecord.model_validate(r) for r in session.scalars(query)]

    def homepage_stories(self, language: str) -> list[dict[str, str]]:
        """Localized listing: requested language, then en, then fr, then the raw title."""
        listing = []
        for story in self.list_stories():
            display = story.homepage_display
            entry = display.get(language) or display.get("en") or display.get("fr")
            if entry is None:
                logger.info("no homepage entry for story %r (requested %s)", story.slug, language)
                listing.append({
                    "slug": story.slug,
                    "title": story.title,
                    "description": FALLBACK_DESCRIPTION,
                })
            else:
                listing.append({
                    "slug": story.slug,
                    "title": entry.title,
                    "description": entry.description,
                })
        return listing

    def available_languages(self) -> list[str]:
        languages: set[str] = set()
        for story in self.list_stories():
            languages.update(story.homepage_display)
        return sorted(languages)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_story(
        self,
        slug: str,
        title: str,
        content: str,
        homepage_display: dict[str, Any] | None = None,
        owner: str | None = None,
        is_active: bool = True,
    ) -> StoryRecord:
        """Create or update a story by slug. Usage counters are left untouched."""
        if not slug or not title or not content:
            raise ValidationError("Missing required fields: slug, title, content")
        validate_slug(slug)
        validate_owner(owner)
        display = normalize_homepage_display(homepage_display)

        with self.Session.begin() as session:
            row = self._find(session, slug)
            if row is None:
                row = StoryRow(
                    slug=slug, title=title, content=content,
                    homepage_display=display, owner=owner, is_active=is_active,
                )
                session.add(row)
                logger.info("created story %r", slug)
            else:
                if row.owner is not None and not _same_owner(row.owner, owner):
                    raise OwnershipError(f"Story '{slug}' belongs to another owner")
                row.title = title
                row.content = content
                row.homepage_display = display
                row.is_active = is_active
                if row.owner is None and owner is not None:
                    row.owner = owner
                row.updated_at = _now()
                logger.info("updated story %r", slug)
            session.flush()
            return StoryRecord.model_validate(row)

    def update_homepage_display(
        self, slug: str, homepage_display: dict[str, Any], owner: str | None = None
    ) -> StoryRecord:
        validate_owner(owner)
        display = normalize_homepage_display(homepage_display)
        with self.Session.begin() as session:
            row = self._find(session, slug)
            if row is None or not row.is_active:
                raise NotFound(f"Story '{slug}' not found")
            if row.owner is not None and not _same_owner(row.owner, owner):
                raise OwnershipError(f"Story '{slug}' belongs to another owner")
            row.homepage_display = display
            row.updated_at = _now()
            session.flush()
            return StoryRecord.model_validate(row)

    def set_active(self, slug: str, active: bool) -> bool:
        """Flip the soft-delete flag. Returns False if the slug does not exist."""
        with self.Session.begin() as session:
            result = session.execute(
                update(StoryRow)
                .where(StoryRow.slug == slug)
                .values(is_active=active, updated_at=_now())
            )
            changed = result.rowcount > 0
        logger.info("set_active slug=%r active=%s changed=%s", slug, active, changed)
        return changed

    def delete_story(self, slug: str) -> bool:
        """Soft delete."""
        return self.set_active(slug, False)

    # ------------------------------------------------------------------
    # Usage counters
    # ------------------------------------------------------------------

    def record_usage(
        self,
        slug: str,
        sessions: int = 0,
        requests: int = 0,
        tokens: int = 0,
        costs: float = 0.0,
    ) -> StoryRecord:
        """Add non-negative deltas to a story's counters in a single statement."""
        if min(sessions, requests, tokens, costs) < 0:
            raise ValidationError("Usage increments must be non-negative")
        with self.Session.begin() as session:
            result = session.execute(
                update(StoryRow)
                .where(StoryRow.slug == slug)
                .values(
                    sessions=StoryRow.sessions + sessions,
                    requests=StoryRow.requests + requests,
                    tokens=StoryRow.tokens + tokens,
                    costs=StoryRow.costs + costs,
                )
            )
            if result.rowcount == 0:
                raise NotFound(f"Story '{slug}' not found")
        return self.get_story(slug, include_inactive=True)

    def story_analytics(self, slug: str) -> StoryAnalytics | None:
        story = self.get_story(slug)
        if story is None:
            return None
        return _analytics(story)

    def all_analytics(self) -> list[StoryAnalytics]:
        return [_analytics(s) for s in self.list_stories()]

    def stats(self) -> dict[str, Any]:
        stories = self.list_stories()
        total = len(stories)
        total_sessions = sum(s.sessions for s in stories)
        total_requests = sum(s.requests for s in stories)
        return {
            "total_stories": total,
            "oldest_story": stories[-1].slug if stories else None,
            "newest_story": stories[0].slug if stories else None,
            "languages_supported": len(SUPPORTED_LANGUAGES),
            "total_sessions": total_sessions,
            "total_requests": total_requests,
            "total_tokens": sum(s.tokens for s in stories),
            "total_costs": sum(s.costs for s in stories),
            "average_sessions_per_story": total_sessions / total if total else 0.0,
            "average_requests_per_story": total_requests / total if total else 0.0,
        }

    def health_check(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error("database health check failed: %s", e)
            return False


def _analytics(story: StoryRecord) -> StoryAnalytics:
    return StoryAnalytics(
        story_slug=story.slug,
        sessions=story.sessions,
        requests=story.requests,
        tokens=story.tokens,
        costs=story.costs,
        cost_per_session=story.costs / story.sessions if story.sessions else 0.0,
        cost_per_request=story.costs / story.requests if story.requests else 0.0,
        tokens_per_request=story.tokens / story.requests if story.requests else 0.0,
    )
