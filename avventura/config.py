"""Runtime settings.

Settings are read once at startup and handed to the completion client and
the story store. Nothing below the app factory touches os.environ.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent
DEFAULT_DATABASE_URL = f"sqlite:///{ROOT / 'data' / 'avventura.db'}"


class Settings(BaseModel):
    anthropic_api_key: str = ""
    anthropic_api_url: str = "https://api.anthropic.com"
    anthropic_version: str = "2023-06-01"
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 1200
    temperature: float = 0.8
    llm_timeout: float = 120.0
    database_url: str = DEFAULT_DATABASE_URL
    default_language: str = "fr"

    @classmethod
    def from_env(cls, env_file: Path | None = None) -> "Settings":
        """Build settings from the process environment (and .env, if present)."""
        load_dotenv(env_file or ROOT / ".env")
        return cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
            anthropic_api_url=os.getenv("ANTHROPIC_API_URL", cls.model_fields["anthropic_api_url"].default),
            model=os.getenv("ANTHROPIC_MODEL", cls.model_fields["model"].default),
            max_tokens=int(os.getenv("ANTHROPIC_MAX_TOKENS", "1200")),
            temperature=float(os.getenv("ANTHROPIC_TEMPERATURE", "0.8")),
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "120")),
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            default_language=os.getenv("DEFAULT_LANGUAGE", "fr"),
        )
