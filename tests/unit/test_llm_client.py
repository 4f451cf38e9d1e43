"""Tests for LLM client."""

import pytest
from unittest.mock import AsyncMock, patch, MagicMock

import httpx

from mediator.core.exceptions import LLMRateLimitError, LLMTimeoutError
from mediator.llm.client import (
    AnthropicClient,
    DeepSeekClient,
    LLMResponse,
    get_llm_client,
    resolve_provider,
)


def anthropic_client(**overrides):
    kwargs = dict(
        model="claude-sonnet-4-20250514",
        temperature=0.7,
        max_tokens=1024,
        timeout=30.0,
        client_type="generation",
        api_key="test-key",
    )
    kwargs.update(overrides)
    return AnthropicClient(**kwargs)


def mock_http(MockClient, payload=None, post_side_effect=None):
    mock_client = AsyncMock()
    mock_response_obj = MagicMock()
    mock_response_obj.json.return_value = payload
    mock_response_obj.raise_for_status = MagicMock()
    if post_side_effect is not None:
        mock_client.post.side_effect = post_side_effect
    else:
        mock_client.post.return_value = mock_response_obj
    MockClient.return_value.__aenter__.return_value = mock_client
    return mock_client


ANTHROPIC_OK = {
    "content": [{"type": "text", "text": "Hello, world!"}],
    "model": "claude-sonnet-4-20250514",
    "usage": {"input_tokens": 10, "output_tokens": 5},
}


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    def test_init_with_api_key(self):
        """Client initializes with explicit API key."""
        assert anthropic_client().api_key == "test-key"

    def test_init_without_api_key_raises(self):
        """Client raises if no API key available."""
        with patch("mediator.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = None
            with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
                anthropic_client(api_key=None)

    def test_init_uses_settings_key(self):
        with patch("mediator.llm.client.settings") as mock_settings:
            mock_settings.anthropic_api_key = "settings-key"
            assert anthropic_client(api_key=None).api_key == "settings-key"

    async def test_complete_success(self):
        """complete() returns LLMResponse on success."""
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, ANTHROPIC_OK)

            response = await anthropic_client().complete("Say hello")

            assert isinstance(response, LLMResponse)
            assert response.content == "Hello, world!"
            assert response.usage["input_tokens"] == 10
            assert response.usage["output_tokens"] == 5

    async def test_complete_sends_system_and_history(self):
        """complete() puts system at top level and history before the prompt."""
        with patch("httpx.AsyncClient") as MockClient:
            mock_client = mock_http(MockClient, ANTHROPIC_OK)

            await anthropic_client().complete(
                "Latest",
                system="You are a mediator",
                history=[
                    {"role": "user", "content": "[Session started]"},
                    {"role": "assistant", "content": "Welcome"},
                ],
                max_tokens=512,
            )

            payload = mock_client.post.call_args.kwargs["json"]
            assert payload["system"] == "You are a mediator"
            assert payload["max_tokens"] == 512
            assert payload["messages"] == [
                {"role": "user", "content": "[Session started]"},
                {"role": "assistant", "content": "Welcome"},
                {"role": "user", "content": "Latest"},
            ]

    async def test_timeout_raises_typed_error(self):
        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, post_side_effect=httpx.ReadTimeout("slow"))

            with pytest.raises(LLMTimeoutError):
                await anthropic_client().complete("Hi")

    async def test_rate_limit_raises_typed_error(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(429, request=request)
        error = httpx.HTTPStatusError("429", request=request, response=response)

        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, post_side_effect=error)

            with pytest.raises(LLMRateLimitError):
                await anthropic_client().complete("Hi")

    async def test_retries_when_configured(self):
        with patch("httpx.AsyncClient") as MockClient, patch(
            "mediator.llm.client.asyncio.sleep", new=AsyncMock()
        ):
            ok = MagicMock()
            ok.json.return_value = ANTHROPIC_OK
            ok.raise_for_status = MagicMock()
            mock_client = mock_http(
                MockClient, post_side_effect=[httpx.ReadTimeout("slow"), ok]
            )

            response = await anthropic_client(max_retries=1).complete("Hi")

            assert response.content == "Hello, world!"
            assert mock_client.post.await_count == 2

    async def test_other_http_errors_propagate(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(500, request=request)
        error = httpx.HTTPStatusError("500", request=request, response=response)

        with patch("httpx.AsyncClient") as MockClient:
            mock_http(MockClient, post_side_effect=error)

            with pytest.raises(httpx.HTTPStatusError):
                await anthropic_client().complete("Hi")


class TestDeepSeekClient:
    async def test_system_goes_first_in_messages(self):
        payload_in = {
            "choices": [{"message": {"content": "Hi there"}}],
            "model": "deepseek-chat",
            "usage": {"prompt_tokens": 7, "completion_tokens": 2},
        }
        with patch("httpx.AsyncClient") as MockClient:
            mock_client = mock_http(MockClient, payload_in)
            client = DeepSeekClient(
                model="deepseek-chat",
                temperature=0.0,
                max_tokens=256,
                timeout=15.0,
                client_type="safety",
                api_key="ds-key",
            )

            response = await client.complete("Classify", system="Rules")

            messages = mock_client.post.call_args.kwargs["json"]["messages"]
            assert messages[0] == {"role": "system", "content": "Rules"}
            assert messages[-1] == {"role": "user", "content": "Classify"}
            assert response.content == "Hi there"
            assert response.usage == {"input_tokens": 7, "output_tokens": 2}


class TestGetLLMClient:
    """Tests for get_llm_client factory."""

    def test_defaults_to_anthropic(self):
        with patch("mediator.llm.client.settings") as mock_settings:
            mock_settings.llm_safety_provider = None
            mock_settings.anthropic_api_key = "key"

            client = get_llm_client("safety")

            assert isinstance(client, AnthropicClient)
            assert client.temperature == 0.0
            assert client.client_type == "safety"

    def test_provider_override(self):
        with patch("mediator.llm.client.settings") as mock_settings:
            mock_settings.llm_generation_provider = "deepseek"
            mock_settings.deepseek_api_key = "ds-key"

            assert resolve_provider("generation") == "deepseek"
            assert isinstance(get_llm_client("generation"), DeepSeekClient)

    def test_unknown_provider_raises(self):
        with patch("mediator.llm.client.settings") as mock_settings:
            mock_settings.llm_generation_provider = "kimi"

            with pytest.raises(ValueError, match="Unknown LLM provider"):
                get_llm_client("generation")
