"""
Base LLM Provider

Abstract base class defining the interface for all LLM providers.
Ensures consistent API across OpenAI, Anthropic and local servers.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from sqlagent.llm.models import (
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMUsage,
    ModelInfo,
)

logger = logging.getLogger(__name__)


class LLMProviderError(Exception):
    """
    Provider call failed.

    Attributes:
        provider: Provider that raised the error
        retryable: True for timeouts and transport failures, where the same
            request may succeed if the caller tries again
    """

    def __init__(self, message: str, provider: str, retryable: bool = False):
        self.provider = provider
        self.retryable = retryable
        super().__init__(message)


class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    All providers must implement this interface so the generation session
    can drive any of them through the same tool-calling protocol.

    Attributes:
        provider_name: Unique identifier for this provider
        temperature: Default sampling temperature
        max_tokens: Default maximum tokens to generate
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        provider_name: str,
        temperature: float = 0.0,
        max_tokens: int = 2000,
        timeout: int = 60,
    ):
        self.provider_name = provider_name
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout

        logger.info(
            f"Initialized {provider_name} provider",
            extra={
                "provider": provider_name,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate a completion from the LLM.

        When ``request.tools`` is non-empty the response may carry
        ``tool_calls`` instead of (or in addition to) text content.

        Args:
            request: LLM request with messages, tools and parameters

        Returns:
            LLMResponse with generated content, tool calls and metadata

        Raises:
            LLMProviderError: On API errors, timeouts or transport failures
        """
        pass  # pragma: no cover - abstract method

    @abstractmethod
    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """
        Stream a completion from the LLM.

        Tools offered in ``request.tools`` are forwarded; tool calls arrive
        as fragments keyed by index.

        Args:
            request: LLM request with messages, tools and parameters

        Yields:
            LLMStreamChunk: Text pieces, tool call fragments, finish reason
                and usage
        """
        pass  # pragma: no cover - abstract method

    async def generate_streaming(
        self,
        request: LLMRequest,
        on_text: Callable[[str], Awaitable[None] | None] | None = None,
    ) -> LLMResponse:
        """
        Stream a completion and assemble it into a full response.

        Text chunks are forwarded to ``on_text`` as they arrive; tool call
        fragments are joined by index. When the stream carries no usage,
        token counts are estimated with ``count_tokens``.

        Raises:
            LLMProviderError: On API errors, timeouts or transport failures
        """
        text_parts: list[str] = []
        calls: dict[int, dict[str, Any]] = {}
        usage: LLMUsage | None = None
        finish_reason: str | None = None
        model: str | None = None

        async for chunk in self.stream(request):
            if chunk.content:
                text_parts.append(chunk.content)
                if on_text is not None:
                    outcome = on_text(chunk.content)
                    if inspect.isawaitable(outcome):
                        await outcome
            for delta in chunk.tool_calls:
                entry = calls.setdefault(delta.index, {"id": None, "name": "", "arguments": []})
                if delta.id:
                    entry["id"] = delta.id
                if delta.name:
                    entry["name"] = delta.name
                entry["arguments"].append(delta.arguments)
            if chunk.usage is not None:
                usage = chunk.usage
            if chunk.finish_reason:
                finish_reason = chunk.finish_reason
            if chunk.model:
                model = chunk.model

        content = "".join(text_parts)
        tool_calls = [
            LLMToolCall(
                id=entry["id"] or f"call_{index}",
                name=entry["name"],
                arguments="".join(entry["arguments"]) or "{}",
            )
            for index, entry in sorted(calls.items())
        ]
        if usage is None:
            prompt_tokens = self.count_tokens("\n".join(msg.content for msg in request.messages))
            completion_tokens = self.count_tokens(
                content + "".join(call.arguments for call in tool_calls)
            )
            usage = LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        response = LLMResponse(
            content=content,
            model=model or request.model or self.provider_name,
            usage=usage,
            finish_reason="tool_calls" if tool_calls else (finish_reason or "stop"),
            provider=self.provider_name,
            tool_calls=tool_calls,
            metadata={"streamed": True},
        )
        self._log_response(response)
        return response

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count tokens in a text string."""
        pass  # pragma: no cover - abstract method

    @abstractmethod
    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        """Get information about a model (None = default model)."""
        pass  # pragma: no cover - abstract method

    def _apply_defaults(self, request: LLMRequest) -> LLMRequest:
        """Apply default values to request if not specified."""
        if request.temperature is None:
            request.temperature = self.temperature
        if request.max_tokens is None:
            request.max_tokens = self.max_tokens
        return request

    def _log_request(self, request: LLMRequest) -> None:
        """Log request details for debugging."""
        logger.debug(
            f"{self.provider_name} request",
            extra={
                "provider": self.provider_name,
                "message_count": len(request.messages),
                "tool_count": len(request.tools),
                "temperature": request.temperature,
                "max_tokens": request.max_tokens,
                "stream": request.stream,
            },
        )

    def _log_response(self, response: LLMResponse) -> None:
        """Log response details for debugging."""
        logger.debug(
            f"{self.provider_name} response",
            extra={
                "provider": self.provider_name,
                "model": response.model,
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "tool_calls": [call.name for call in response.tool_calls],
                "finish_reason": response.finish_reason,
            },
        )
