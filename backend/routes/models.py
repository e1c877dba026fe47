"""Pydantic request models for API endpoints.

Story endpoints speak camelCase on the wire; admin endpoints use the
snake_case column names.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from avventura.models import ConversationMessage


class StoryBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field("", alias="sessionId")
    story_name: str = Field("", alias="storyName")
    language: str | None = None
    choice: int | None = None
    force_restart: bool = Field(False, alias="forceRestart")
    conversation_history: list[ConversationMessage] = Field(
        default_factory=list, alias="conversationHistory"
    )


class PreloadBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field("", alias="sessionId")
    story_name: str = Field("", alias="storyName")
    language: str | None = None
    conversation_history: list[ConversationMessage] = Field(
        default_factory=list, alias="conversationHistory"
    )
    choices: list[int] = Field(default_factory=lambda: [1, 2, 3])


class UpsertStory(BaseModel):
    slug: str = ""
    title: str = ""
    content: str = ""
    homepage_display: dict[str, Any] | None = None
    owner: str | None = None


class UpdateHomepage(BaseModel):
    homepage_display: dict[str, Any]
    owner: str | None = None


class BulkBody(BaseModel):
    operation: Literal["activate", "deactivate", "delete"]
    slugs: list[str] = Field(min_length=1)


class UsageBody(BaseModel):
    sessions: int = Field(0, ge=0)
    requests: int = Field(0, ge=0)
    tokens: int = Field(0, ge=0)
    costs: float = Field(0.0, ge=0)
