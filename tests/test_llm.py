"""Tests for avventura.llm: AnthropicLLM."""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from avventura.config import Settings
from avventura.errors import ConfigurationError, MalformedUpstreamResponse, UpstreamError
from avventura.llm import AnthropicLLM
from avventura.models import ConversationMessage

MESSAGES = [ConversationMessage(role="user", content="Start the story.")]


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


def _ok(text: str = "ok") -> MagicMock:
    return _mock_response({"content": [{"type": "text", "text": text}]})


class TestAnthropicLLM:
    @pytest.fixture
    def llm(self) -> AnthropicLLM:
        return AnthropicLLM(Settings(anthropic_api_key="secret", anthropic_api_url="http://llm.test/"))

    async def test_happy_path(self, llm: AnthropicLLM) -> None:
        mock_post = AsyncMock(return_value=_ok("The market is loud."))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("story", MESSAGES)
        assert result == "The market is loud."

    async def test_posts_to_messages_endpoint(self, llm: AnthropicLLM) -> None:
        mock_post = AsyncMock(return_value=_ok())
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("story", MESSAGES)
        assert mock_post.call_args[0][0] == "http://llm.test/v1/messages"

    async def test_sends_fixed_parameters_and_messages(self) -> None:
        llm = AnthropicLLM(Settings(
            anthropic_api_key="k", model="test-model", max_tokens=321, temperature=0.5,
        ))
        mock_post = AsyncMock(return_value=_ok())
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("story", MESSAGES)
        body = mock_post.call_args.kwargs["json"]
        assert body == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "Start the story."}],
            "max_tokens": 321,
            "temperature": 0.5,
        }

    async def test_auth_headers(self, llm: AnthropicLLM) -> None:
        mock_post = AsyncMock(return_value=_ok())
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("story", MESSAGES)
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["x-api-key"] == "secret"
        assert headers["anthropic-version"] == "2023-06-01"

    async def test_missing_key_raises_configuration_error(self) -> None:
        llm = AnthropicLLM(Settings(anthropic_api_key=""))
        mock_post = AsyncMock(return_value=_ok())
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
                await llm("story", MESSAGES)
        mock_post.assert_not_called()

    async def test_http_error_carries_status(self, llm: AnthropicLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"error": "overloaded"}, status=529))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="HTTP 529") as info:
                await llm("story", MESSAGES)
        assert info.value.status == 529

    async def test_connect_error(self, llm: AnthropicLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="Cannot connect"):
                await llm("story", MESSAGES)

    async def test_timeout(self, llm: AnthropicLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("slow"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="timed out"):
                await llm("story", MESSAGES)

    @pytest.mark.parametrize("body", [
        {"unexpected": "format"},
        {"content": []},
        {"content": [{"type": "tool_use"}]},
    ])
    async def test_malformed_body(self, llm: AnthropicLLM, body: dict) -> None:
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(MalformedUpstreamResponse, match="Unexpected response format"):
                await llm("story", MESSAGES)

    async def test_non_json_body(self, llm: AnthropicLLM) -> None:
        resp = _ok()
        resp.json.side_effect = ValueError("not json")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            with pytest.raises(MalformedUpstreamResponse):
                await llm("story", MESSAGES)

    @pytest.mark.parametrize("body", [
        {"content": [{"type": "text", "text": None}]},
        {"content": {"text": "not a list"}},
        {"content": "plain string"},
    ])
    async def test_non_string_text_is_malformed(self, llm: AnthropicLLM, body: dict) -> None:
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(MalformedUpstreamResponse):
                await llm("story", MESSAGES)

    @pytest.mark.parametrize("exc", [
        httpx.ReadError("connection reset"),
        httpx.RemoteProtocolError("peer closed connection"),
    ])
    async def test_other_transport_errors(self, llm: AnthropicLLM, exc: Exception) -> None:
        mock_post = AsyncMock(side_effect=exc)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(UpstreamError, match="Request to completion endpoint failed"):
                await llm("story", MESSAGES)
