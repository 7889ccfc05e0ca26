"""
Tests for OpenAI Provider.

Tests OpenAI provider implementation with mocked API calls.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from sqlagent.llm.base import LLMProviderError
from sqlagent.llm.models import LLMMessage, LLMRequest, LLMToolCall, LLMToolSpec
from sqlagent.llm.openai import OpenAIProvider, to_openai_messages, to_openai_tools


@pytest.fixture
def provider():
    """Create OpenAI provider instance."""
    return OpenAIProvider(
        api_key="sk-test-key-1234567890abcdefghij",
        model="gpt-4o",
        temperature=0.0,
        max_tokens=2000,
        timeout=30,
    )


def completion(content="Hello!", finish_reason="stop", tool_calls=None):
    mock_response = MagicMock()
    mock_response.choices = [MagicMock()]
    mock_response.choices[0].message.content = content
    mock_response.choices[0].message.tool_calls = tool_calls
    mock_response.choices[0].finish_reason = finish_reason
    mock_response.model = "gpt-4o"
    mock_response.usage.prompt_tokens = 10
    mock_response.usage.completion_tokens = 5
    mock_response.usage.total_tokens = 15
    mock_response.id = "chatcmpl-123"
    mock_response.created = 1234567890
    return mock_response


class TestOpenAIProviderInit:
    """Test OpenAI provider initialization."""

    def test_initialization(self, provider):
        assert provider.model == "gpt-4o"
        assert provider.temperature == 0.0
        assert provider.max_tokens == 2000
        assert provider.timeout == 30
        assert provider.provider_name == "openai"
        assert provider.client is not None


class TestMessageConversion:
    def test_tool_messages_are_converted(self):
        call = LLMToolCall(id="call_1", name="write_sql", arguments='{"sql": "SELECT 1"}')
        converted = to_openai_messages(
            [
                LLMMessage(role="system", content="sys"),
                LLMMessage(role="assistant", content="", tool_calls=[call]),
                LLMMessage(role="tool", content="done", tool_call_id="call_1", name="write_sql"),
            ]
        )

        assert converted[0] == {"role": "system", "content": "sys"}
        assert converted[1]["content"] is None
        assert converted[1]["tool_calls"][0]["function"] == {
            "name": "write_sql",
            "arguments": '{"sql": "SELECT 1"}',
        }
        assert converted[2] == {"role": "tool", "tool_call_id": "call_1", "content": "done"}

    def test_no_tools_means_no_tool_kwargs(self):
        request = LLMRequest(messages=[LLMMessage(role="user", content="hi")])
        assert to_openai_tools(request) == {}

    def test_tools_and_choice_forwarded(self):
        request = LLMRequest(
            messages=[LLMMessage(role="user", content="hi")],
            tools=[LLMToolSpec(name="write_sql", description="Write SQL")],
            tool_choice="auto",
        )
        kwargs = to_openai_tools(request)
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["tools"][0]["type"] == "function"
        assert kwargs["tools"][0]["function"]["name"] == "write_sql"


class TestGenerate:
    """Test generate method."""

    @pytest.mark.asyncio
    async def test_successful_generation(self, provider):
        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=completion("Hello! How can I help?"),
        ):
            request = LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
            response = await provider.generate(request)

        assert response.content == "Hello! How can I help?"
        assert response.usage.total_tokens == 15
        assert response.finish_reason == "stop"
        assert response.provider == "openai"
        assert response.tool_calls == []

    @pytest.mark.asyncio
    async def test_tool_calls_are_parsed(self, provider):
        tool_call = MagicMock()
        tool_call.id = "call_abc"
        tool_call.function.name = "write_sql"
        tool_call.function.arguments = '{"sql": "SELECT 1", "execute_type": "Query"}'

        with patch.object(
            provider.client.chat.completions,
            "create",
            new_callable=AsyncMock,
            return_value=completion(None, "tool_calls", [tool_call]),
        ):
            response = await provider.generate(
                LLMRequest(messages=[LLMMessage(role="user", content="q")])
            )

        assert response.content == ""
        assert response.finish_reason == "tool_calls"
        assert response.tool_calls[0].name == "write_sql"
        assert response.tool_calls[0].parse_arguments()["sql"] == "SELECT 1"

    @pytest.mark.asyncio
    async def test_applies_defaults(self, provider):
        mock_create = AsyncMock(return_value=completion())
        with patch.object(provider.client.chat.completions, "create", mock_create):
            await provider.generate(LLMRequest(messages=[LLMMessage(role="user", content="Test")]))

        call_kwargs = mock_create.call_args.kwargs
        assert call_kwargs["temperature"] == 0.0
        assert call_kwargs["max_tokens"] == 2000
        assert "tools" not in call_kwargs

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self, provider):
        error = openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com"))
        with patch.object(
            provider.client.chat.completions, "create", new_callable=AsyncMock, side_effect=error
        ):
            with pytest.raises(LLMProviderError) as exc_info:
                await provider.generate(
                    LLMRequest(messages=[LLMMessage(role="user", content="q")])
                )

        assert exc_info.value.retryable is True
        assert exc_info.value.provider == "openai"


class TestModelInfo:
    def test_known_model(self, provider):
        info = provider.get_model_info()
        assert info.name == "gpt-4o"
        assert "function-calling" in info.capabilities

    def test_unknown_model_falls_back(self, provider):
        info = provider.get_model_info("my-finetune")
        assert info.name == "my-finetune"
        assert info.max_output == 4096

    def test_finish_reason_mapping(self, provider):
        assert provider._map_finish_reason("function_call") == "tool_calls"
        assert provider._map_finish_reason("length") == "length"
        assert provider._map_finish_reason(None) == "stop"


def stream_chunk(content=None, tool_calls=None, finish_reason=None, usage=None, choices=True):
    delta = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        id="chatcmpl-1",
        model="gpt-4o",
        usage=usage,
        choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)] if choices else [],
    )


def call_fragment(index, arguments, call_id=None, name=None):
    return SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )


async def replay(chunks):
    for chunk in chunks:
        yield chunk


class TestStream:
    @pytest.mark.asyncio
    async def test_text_and_tool_fragments_are_assembled(self, provider):
        chunks = [
            stream_chunk(content="Looking at "),
            stream_chunk(content="sales"),
            stream_chunk(tool_calls=[call_fragment(0, '{"sql": "SEL', "call_1", "write_sql")]),
            stream_chunk(tool_calls=[call_fragment(0, 'ECT 1"}')]),
            stream_chunk(finish_reason="tool_calls"),
            stream_chunk(
                usage=SimpleNamespace(prompt_tokens=20, completion_tokens=7, total_tokens=27),
                choices=False,
            ),
        ]
        create = AsyncMock(return_value=replay(chunks))
        seen = []
        request = LLMRequest(
            messages=[LLMMessage(role="user", content="q")],
            tools=[LLMToolSpec(name="write_sql")],
            tool_choice="auto",
        )

        with patch.object(provider.client.chat.completions, "create", create):
            response = await provider.generate_streaming(request, on_text=seen.append)

        kwargs = create.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["stream_options"] == {"include_usage": True}
        assert kwargs["tools"][0]["function"]["name"] == "write_sql"
        assert seen == ["Looking at ", "sales"]
        assert response.content == "Looking at sales"
        assert response.finish_reason == "tool_calls"
        assert response.tool_calls[0].id == "call_1"
        assert response.tool_calls[0].parse_arguments() == {"sql": "SELECT 1"}
        assert response.usage.total_tokens == 27

    @pytest.mark.asyncio
    async def test_stream_timeout_is_retryable(self, provider):
        error = openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com"))
        with patch.object(
            provider.client.chat.completions, "create", new_callable=AsyncMock, side_effect=error
        ):
            with pytest.raises(LLMProviderError) as exc_info:
                await provider.generate_streaming(
                    LLMRequest(messages=[LLMMessage(role="user", content="q")])
                )

        assert exc_info.value.retryable is True


class TestCountTokens:
    def test_counts_are_positive(self, provider):
        assert provider.count_tokens("SELECT category FROM products") > 0
        assert provider.count_tokens("") == 0
