"""Core domain models.

The orchestrator, preloader and store operate on these types.
Pydantic is used for validation and serialisation at every data boundary;
HTTP payloads use camelCase aliases, Python code uses snake_case names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_LANGUAGES: tuple[str, ...] = (
    "en", "zh", "hi", "es", "fr", "ar", "bn", "ru", "pt", "ur",
)

Role = Literal["user", "assistant"]


class ConversationMessage(BaseModel):
    """One turn of the client-held conversation."""

    role: Role
    content: str


class StoryStep(BaseModel):
    """One parsed assistant turn: a description and exactly three options."""

    step: int | None = None
    description: str
    options: list[str]
    action: str | None = None  # e.g. "milestone"


class HomepageEntry(BaseModel):
    title: str
    description: str


class StoryRecord(BaseModel):
    """A story row as read from the store."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    slug: str
    title: str
    content: str
    homepage_display: dict[str, HomepageEntry] = Field(default_factory=dict)
    owner: str | None = None
    is_active: bool = True
    sessions: int = 0
    requests: int = 0
    tokens: int = 0
    costs: float = 0.0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StoryTurn(BaseModel):
    """Orchestrator output for one /story request."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    current_step: StoryStep = Field(alias="currentStep")
    conversation_history: list[ConversationMessage] = Field(alias="conversationHistory")


class PreloadResult(BaseModel):
    """Per-choice outcome of a speculative fan-out."""

    requested: int = 0
    preloaded_steps: dict[int, StoryStep] = Field(default_factory=dict)
    errors: dict[int, str] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return len(self.preloaded_steps) > 0

    def summary(self) -> dict[str, int]:
        return {
            "requested": self.requested,
            "successful": len(self.preloaded_steps),
            "failed": len(self.errors),
        }


class StoryAnalytics(BaseModel):
    """Usage counters for one story plus derived ratios."""

    model_config = ConfigDict(populate_by_name=True)

    story_slug: str = Field(alias="storySlug")
    sessions: int
    requests: int
    tokens: int
    costs: float
    cost_per_session: float = Field(alias="costPerSession")
    cost_per_request: float = Field(alias="costPerRequest")
    tokens_per_request: float = Field(alias="tokensPerRequest")
