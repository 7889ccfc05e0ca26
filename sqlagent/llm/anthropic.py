"""
Anthropic LLM Provider

Implementation of BaseLLMProvider for Anthropic's Claude models,
including tool use.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from sqlagent.llm.base import BaseLLMProvider, LLMProviderError
from sqlagent.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMToolCallDelta,
    LLMUsage,
    ModelInfo,
)

logger = logging.getLogger(__name__)


def to_anthropic_messages(messages: list[LLMMessage]) -> tuple[str | None, list[dict[str, Any]]]:
    """
    Split out the system prompt and convert the remaining messages.

    Tool results become ``tool_result`` blocks inside a user turn; consecutive
    tool results are merged into one user turn as the Messages API requires.
    """
    system_parts: list[str] = []
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "system":
            system_parts.append(msg.content)
        elif msg.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id,
                "content": msg.content,
            }
            previous = converted[-1] if converted else None
            if (
                previous
                and previous["role"] == "user"
                and isinstance(previous["content"], list)
                and previous["content"]
                and previous["content"][0].get("type") == "tool_result"
            ):
                previous["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
        elif msg.role == "assistant" and msg.tool_calls:
            content: list[dict[str, Any]] = []
            if msg.content:
                content.append({"type": "text", "text": msg.content})
            for call in msg.tool_calls:
                try:
                    tool_input = call.parse_arguments()
                except ValueError:
                    tool_input = {}
                content.append(
                    {"type": "tool_use", "id": call.id, "name": call.name, "input": tool_input}
                )
            converted.append({"role": "assistant", "content": content})
        else:
            converted.append({"role": msg.role, "content": msg.content})
    system = "\n\n".join(system_parts) if system_parts else None
    return system, converted


class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic (Claude) LLM provider implementation.

    Uses the anthropic Python SDK.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float = 0.0,
        max_tokens: int = 2000,
        timeout: int = 60,
    ):
        super().__init__(
            provider_name="anthropic",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout))

        logger.info(f"Anthropic provider initialized with model: {model}", extra={"model": model})

    def _build_kwargs(self, request: LLMRequest) -> dict[str, Any]:
        system, messages = to_anthropic_messages(request.messages)
        kwargs: dict[str, Any] = {
            "model": request.model or self.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        if request.tools:
            kwargs["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in request.tools
            ]
            if request.tool_choice == "required":
                kwargs["tool_choice"] = {"type": "any"}
            elif request.tool_choice == "auto":
                kwargs["tool_choice"] = {"type": "auto"}
        return kwargs

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using Anthropic API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.messages.create(**self._build_kwargs(request))
        except (anthropic.APITimeoutError, anthropic.APIConnectionError) as e:
            logger.error(f"Anthropic API timeout: {e}")
            raise LLMProviderError(str(e), provider="anthropic", retryable=True) from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise LLMProviderError(str(e), provider="anthropic") from e

        text_parts: list[str] = []
        tool_calls: list[LLMToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    LLMToolCall(id=block.id, name=block.name, arguments=json.dumps(block.input))
                )

        llm_response = LLMResponse(
            content="".join(text_parts),
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider="anthropic",
            tool_calls=tool_calls,
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using Anthropic API, including tool use fragments."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)
        prompt_tokens = 0
        model = request.model or self.model

        try:
            stream = await self.client.messages.create(**self._build_kwargs(request), stream=True)
            async for event in stream:
                if event.type == "message_start":
                    prompt_tokens = event.message.usage.input_tokens
                    model = event.message.model
                elif event.type == "content_block_start":
                    if event.content_block.type == "tool_use":
                        yield LLMStreamChunk(
                            tool_calls=[
                                LLMToolCallDelta(
                                    index=event.index,
                                    id=event.content_block.id,
                                    name=event.content_block.name,
                                )
                            ]
                        )
                elif event.type == "content_block_delta":
                    if event.delta.type == "text_delta":
                        yield LLMStreamChunk(content=event.delta.text)
                    elif event.delta.type == "input_json_delta":
                        yield LLMStreamChunk(
                            tool_calls=[
                                LLMToolCallDelta(
                                    index=event.index, arguments=event.delta.partial_json
                                )
                            ]
                        )
                elif event.type == "message_delta":
                    completion_tokens = event.usage.output_tokens
                    yield LLMStreamChunk(
                        finish_reason=self._map_finish_reason(event.delta.stop_reason),
                        usage=LLMUsage(
                            prompt_tokens=prompt_tokens,
                            completion_tokens=completion_tokens,
                            total_tokens=prompt_tokens + completion_tokens,
                        ),
                        model=model,
                    )
        except (anthropic.APITimeoutError, anthropic.APIConnectionError) as e:
            logger.error(f"Anthropic streaming timeout: {e}")
            raise LLMProviderError(str(e), provider="anthropic", retryable=True) from e
        except anthropic.APIError as e:
            logger.error(f"Anthropic streaming error: {e}")
            raise LLMProviderError(str(e), provider="anthropic") from e

    def count_tokens(self, text: str) -> int:
        """Rough approximation: ~4 characters per token."""
        return len(text) // 4

    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        model = model_name or self.model
        return ModelInfo(
            name=model,
            provider="anthropic",
            context_window=200000,
            max_output=8192,
            capabilities=["function-calling"],
        )

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        if reason == "tool_use":
            return "tool_calls"
        return "stop"
