"""
OpenAI LLM Provider

Implementation of BaseLLMProvider for OpenAI chat models and
OpenAI-compatible endpoints (via ``base_url``), with function calling.
"""

import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

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


def to_openai_messages(messages: list[LLMMessage]) -> list[dict[str, Any]]:
    """Convert provider-agnostic messages to the chat.completions format."""
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "tool":
            converted.append(
                {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
            )
        elif msg.role == "assistant" and msg.tool_calls:
            converted.append(
                {
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments},
                        }
                        for call in msg.tool_calls
                    ],
                }
            )
        else:
            converted.append({"role": msg.role, "content": msg.content})
    return converted


def to_openai_tools(request: LLMRequest) -> dict[str, Any]:
    """Tool keyword arguments for chat.completions.create (empty when no tools)."""
    if not request.tools:
        return {}
    kwargs: dict[str, Any] = {
        "tools": [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in request.tools
        ]
    }
    if request.tool_choice:
        kwargs["tool_choice"] = request.tool_choice
    return kwargs


class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI LLM provider implementation.

    Uses the official openai Python SDK with async support.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.0,
        max_tokens: int = 2000,
        timeout: int = 60,
        base_url: str | None = None,
    ):
        super().__init__(
            provider_name="openai",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=float(timeout),
        )

        logger.info(f"OpenAI provider initialized with model: {model}", extra={"model": model})

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using OpenAI API.

        Raises:
            LLMProviderError: On API errors (retryable for timeouts and
                connection failures)
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=to_openai_messages(request.messages),
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                **to_openai_tools(request),
                **request.metadata,
            )
        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise LLMProviderError(str(e), provider="openai", retryable=True) from e
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise LLMProviderError(str(e), provider="openai") from e

        choice = response.choices[0]
        tool_calls = [
            LLMToolCall(
                id=call.id,
                name=call.function.name,
                arguments=call.function.arguments or "{}",
            )
            for call in (choice.message.tool_calls or [])
        ]
        usage = response.usage
        llm_response = LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=usage.prompt_tokens if usage else 0,
                completion_tokens=usage.completion_tokens if usage else 0,
                total_tokens=usage.total_tokens if usage else 0,
            ),
            finish_reason=self._map_finish_reason(choice.finish_reason),
            provider="openai",
            tool_calls=tool_calls,
            metadata={"id": response.id, "created": response.created},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using OpenAI API, including tool call fragments."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)

        try:
            stream = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=to_openai_messages(request.messages),
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                stream=True,
                stream_options={"include_usage": True},
                **to_openai_tools(request),
                **request.metadata,
            )

            async for chunk in stream:
                usage = None
                if chunk.usage:
                    usage = LLMUsage(
                        prompt_tokens=chunk.usage.prompt_tokens,
                        completion_tokens=chunk.usage.completion_tokens,
                        total_tokens=chunk.usage.total_tokens,
                    )
                if not chunk.choices:
                    # The usage chunk arrives last with no choices
                    if usage:
                        yield LLMStreamChunk(usage=usage, model=chunk.model)
                    continue

                choice = chunk.choices[0]
                tool_calls = [
                    LLMToolCallDelta(
                        index=call.index,
                        id=call.id,
                        name=call.function.name if call.function else None,
                        arguments=(call.function.arguments if call.function else None) or "",
                    )
                    for call in (choice.delta.tool_calls or [])
                ]
                if choice.delta.content or tool_calls or choice.finish_reason or usage:
                    yield LLMStreamChunk(
                        content=choice.delta.content or "",
                        tool_calls=tool_calls,
                        finish_reason=self._map_finish_reason(choice.finish_reason)
                        if choice.finish_reason
                        else None,
                        usage=usage,
                        model=chunk.model,
                        metadata={"id": chunk.id},
                    )

        except (openai.APITimeoutError, openai.APIConnectionError) as e:
            logger.error(f"OpenAI streaming timeout: {e}")
            raise LLMProviderError(str(e), provider="openai", retryable=True) from e
        except openai.APIError as e:
            logger.error(f"OpenAI streaming error: {e}")
            raise LLMProviderError(str(e), provider="openai") from e

    def count_tokens(self, text: str) -> int:
        """Count tokens using tiktoken."""
        import tiktoken

        try:
            try:
                encoding = tiktoken.encoding_for_model(self.model)
            except KeyError:
                encoding = tiktoken.get_encoding("cl100k_base")
            return len(encoding.encode(text))
        except Exception:
            # tiktoken downloads encodings on first use; offline hosts land here
            return len(text) // 4

    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        model = model_name or self.model

        model_info_map = {
            "gpt-4o": ModelInfo(
                name="gpt-4o",
                provider="openai",
                context_window=128000,
                max_output=16384,
                capabilities=["function-calling", "vision", "json-mode"],
            ),
            "gpt-4o-mini": ModelInfo(
                name="gpt-4o-mini",
                provider="openai",
                context_window=128000,
                max_output=16384,
                capabilities=["function-calling", "vision", "json-mode"],
            ),
        }

        return model_info_map.get(
            model,
            ModelInfo(
                name=model,
                provider="openai",
                context_window=128000,
                max_output=4096,
                capabilities=["function-calling"],
            ),
        )

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map OpenAI finish reason to our standard format."""
        if reason in ("stop", "length", "content_filter", "tool_calls"):
            return reason
        if reason == "function_call":
            return "tool_calls"
        return "stop"
