"""Tests for the Anthropic provider."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from sqlagent.llm.anthropic import AnthropicProvider, to_anthropic_messages
from sqlagent.llm.models import LLMMessage, LLMRequest, LLMToolCall, LLMToolSpec


@pytest.fixture
def provider():
    return AnthropicProvider(api_key="sk-ant-test-key", model="claude-test", timeout=30)


class TestMessageConversion:
    def test_system_prompt_is_split_out(self):
        system, messages = to_anthropic_messages(
            [
                LLMMessage(role="system", content="You write SQL."),
                LLMMessage(role="user", content="top products"),
            ]
        )
        assert system == "You write SQL."
        assert messages == [{"role": "user", "content": "top products"}]

    def test_consecutive_tool_results_share_one_user_turn(self):
        calls = [
            LLMToolCall(id="a", name="search_tables", arguments='{"keywords": ["order"]}'),
            LLMToolCall(id="b", name="search_tables", arguments="not json"),
        ]
        _, messages = to_anthropic_messages(
            [
                LLMMessage(role="user", content="q"),
                LLMMessage(role="assistant", content="Looking up", tool_calls=calls),
                LLMMessage(role="tool", content="[]", tool_call_id="a"),
                LLMMessage(role="tool", content="[]", tool_call_id="b"),
            ]
        )

        assistant = messages[1]
        assert assistant["content"][0] == {"type": "text", "text": "Looking up"}
        assert assistant["content"][1]["input"] == {"keywords": ["order"]}
        assert assistant["content"][2]["input"] == {}
        assert len(messages) == 3
        assert [block["tool_use_id"] for block in messages[2]["content"]] == ["a", "b"]


class TestGenerate:
    @pytest.mark.asyncio
    async def test_tool_use_blocks_become_tool_calls(self, provider):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Writing it now."),
                SimpleNamespace(
                    type="tool_use",
                    id="toolu_1",
                    name="write_sql",
                    input={"sql": "SELECT 1", "execute_type": "Query", "columns": ["1"]},
                ),
            ],
            model="claude-test",
            usage=SimpleNamespace(input_tokens=12, output_tokens=8),
            stop_reason="tool_use",
            id="msg_1",
        )
        create = AsyncMock(return_value=response)
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content="sys"),
                LLMMessage(role="user", content="q"),
            ],
            tools=[LLMToolSpec(name="write_sql")],
            tool_choice="required",
        )

        with patch.object(provider.client.messages, "create", create):
            result = await provider.generate(request)

        kwargs = create.call_args.kwargs
        assert kwargs["system"] == "sys"
        assert kwargs["tool_choice"] == {"type": "any"}
        assert kwargs["tools"][0]["input_schema"]["type"] == "object"
        assert result.content == "Writing it now."
        assert result.finish_reason == "tool_calls"
        assert result.usage.total_tokens == 20
        assert result.tool_calls[0].parse_arguments()["sql"] == "SELECT 1"

    def test_finish_reason_mapping(self, provider):
        assert provider._map_finish_reason("max_tokens") == "length"
        assert provider._map_finish_reason("end_turn") == "stop"


async def replay(events):
    for event in events:
        yield event


class TestStream:
    @pytest.mark.asyncio
    async def test_tool_use_events_are_assembled(self, provider):
        events = [
            SimpleNamespace(
                type="message_start",
                message=SimpleNamespace(model="claude-test", usage=SimpleNamespace(input_tokens=30)),
            ),
            SimpleNamespace(
                type="content_block_start", index=0, content_block=SimpleNamespace(type="text")
            ),
            SimpleNamespace(
                type="content_block_delta",
                index=0,
                delta=SimpleNamespace(type="text_delta", text="Checking orders."),
            ),
            SimpleNamespace(
                type="content_block_start",
                index=1,
                content_block=SimpleNamespace(type="tool_use", id="toolu_9", name="write_sql"),
            ),
            SimpleNamespace(
                type="content_block_delta",
                index=1,
                delta=SimpleNamespace(type="input_json_delta", partial_json='{"sql": '),
            ),
            SimpleNamespace(
                type="content_block_delta",
                index=1,
                delta=SimpleNamespace(type="input_json_delta", partial_json='"SELECT 1"}'),
            ),
            SimpleNamespace(
                type="message_delta",
                delta=SimpleNamespace(stop_reason="tool_use"),
                usage=SimpleNamespace(output_tokens=12),
            ),
            SimpleNamespace(type="message_stop"),
        ]
        create = AsyncMock(return_value=replay(events))
        seen = []
        request = LLMRequest(
            messages=[LLMMessage(role="user", content="q")],
            tools=[LLMToolSpec(name="write_sql")],
            tool_choice="auto",
        )

        with patch.object(provider.client.messages, "create", create):
            response = await provider.generate_streaming(request, on_text=seen.append)

        assert create.call_args.kwargs["stream"] is True
        assert create.call_args.kwargs["tools"][0]["name"] == "write_sql"
        assert seen == ["Checking orders."]
        assert response.model == "claude-test"
        assert response.finish_reason == "tool_calls"
        assert response.tool_calls[0].id == "toolu_9"
        assert response.tool_calls[0].parse_arguments() == {"sql": "SELECT 1"}
        assert response.usage.total_tokens == 42
