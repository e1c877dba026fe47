"""FastAPI dependencies resolving the objects wired in create_app()."""

from fastapi import Request

from avventura.config import Settings
from avventura.llm import LLM
from avventura.storage import StoryStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> StoryStore:
    return request.app.state.store


def get_llm(request: Request) -> LLM:
    return request.app.state.llm
