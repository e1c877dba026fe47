"""Completion client: HTTP connection to the Anthropic Messages API.

The orchestrator and preloader receive an LLM callable matching the protocol:

    async def __call__(self, stage: str, messages: list[ConversationMessage]) -> str: ...

`stage` identifies the caller ("story", "memory_fallback", "replay", "preload")
and is used only for logging. The whole ordered message list is sent on
every call; the endpoint keeps no state between calls.

Production code constructs an AnthropicLLM from Settings.
Tests use StubLLM (defined in the test helpers) instead.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from avventura.config import Settings
from avventura.errors import ConfigurationError, MalformedUpstreamResponse, UpstreamError
from avventura.models import ConversationMessage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol: every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, messages: list[ConversationMessage]) -> str: ...


# ---------------------------------------------------------------------------
# AnthropicLLM: connects to the real endpoint
# ---------------------------------------------------------------------------

class AnthropicLLM:
    """Async HTTP client for the Messages API.

    Request:  POST {api_url}/v1/messages
              {"model", "messages", "max_tokens", "temperature"}
    Response: {"content": [{"type": "text", "text": "..."}], ...}

    Model, output cap and temperature are fixed per instance. No retries:
    every failure surfaces to the caller.
    """

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.anthropic_api_url.rstrip("/")
        self._api_key = settings.anthropic_api_key
        self._version = settings.anthropic_version
        self._model = settings.model
        self._max_tokens = settings.max_tokens
        self._temperature = settings.temperature
        self._timeout = settings.llm_timeout

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not configured")
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self._version,
        }

    def _build_request(self, messages: list[ConversationMessage]) -> tuple[str, dict]:
        """Return (url, body) for a message list."""
        url = f"{self._base_url}/v1/messages"
        body = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        return url, body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        content = data.get("content") if isinstance(data, dict) else None
        if (
            not isinstance(content, list)
            or not content
            or not isinstance(content[0], dict)
            or not isinstance(content[0].get("text"), str)
        ):
            raise MalformedUpstreamResponse("Unexpected response format from completion endpoint")
        return content[0]["text"]

    async def __call__(self, stage: str, messages: list[ConversationMessage]) -> str:
        headers = self._headers()
        url, body = self._build_request(messages)
        logger.debug("llm call stage=%s url=%s messages=%d", stage, url, len(messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=headers)
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise UpstreamError(f"Cannot connect to completion endpoint at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("llm call stage=%s failed with HTTP %d", stage, status)
            raise UpstreamError(f"Completion endpoint returned HTTP {status}", status=status) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"Completion endpoint timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            raise UpstreamError(f"Request to completion endpoint failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedUpstreamResponse("Completion endpoint returned a non-JSON body") from e

        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text
