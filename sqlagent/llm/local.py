"""
Local LLM Provider

Implementation of BaseLLMProvider for local model servers (Ollama, vLLM,
llama.cpp) through their OpenAI-compatible ``/v1/chat/completions`` endpoint.
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from sqlagent.llm.base import BaseLLMProvider, LLMProviderError
from sqlagent.llm.models import (
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMToolCallDelta,
    LLMUsage,
    ModelInfo,
)
from sqlagent.llm.openai import to_openai_messages, to_openai_tools

logger = logging.getLogger(__name__)


class LocalProvider(BaseLLMProvider):
    """Local LLM provider speaking the OpenAI wire format over httpx."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        temperature: float = 0.0,
        max_tokens: int = 2000,
        timeout: int = 60,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(
            provider_name="local",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.client = client or httpx.AsyncClient(timeout=float(timeout))

        logger.info(
            f"Local provider initialized: {base_url} with model: {model}",
            extra={"base_url": base_url, "model": model},
        )

    def _payload(self, request: LLMRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model or self.model,
            "messages": to_openai_messages(request.messages),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        payload.update(to_openai_tools(request))
        return payload

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the local server."""
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            response = await self.client.post(
                f"{self.base_url}/v1/chat/completions",
                json=self._payload(request),
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Local model timeout: {e}")
            raise LLMProviderError(str(e), provider="local", retryable=True) from e
        except httpx.TransportError as e:
            logger.error(f"Local model transport error: {e}")
            raise LLMProviderError(str(e), provider="local", retryable=True) from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Local model HTTP error: {e}")
            raise LLMProviderError(str(e), provider="local") from e

        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message", {})
        tool_calls = []
        for index, call in enumerate(message.get("tool_calls") or []):
            function = call.get("function", {})
            arguments = function.get("arguments", "{}")
            if not isinstance(arguments, str):
                # Ollama returns decoded objects here
                arguments = json.dumps(arguments)
            tool_calls.append(
                LLMToolCall(
                    id=call.get("id") or f"call_{index}",
                    name=function.get("name", ""),
                    arguments=arguments,
                )
            )

        usage = data.get("usage", {})
        prompt_tokens = usage.get("prompt_tokens", 0)
        completion_tokens = usage.get("completion_tokens", 0)
        finish_reason = choice.get("finish_reason")
        llm_response = LLMResponse(
            content=message.get("content") or "",
            model=data.get("model", self.model),
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason="tool_calls" if tool_calls else (
                finish_reason if finish_reason in ("stop", "length") else "stop"
            ),
            provider="local",
            tool_calls=tool_calls,
            metadata={"base_url": self.base_url},
        )

        self._log_response(llm_response)
        return llm_response

    async def stream(self, request: LLMRequest) -> AsyncIterator[LLMStreamChunk]:
        """Stream completion using server-sent events from the local server."""
        request = self._apply_defaults(request)
        request.stream = True
        self._log_request(request)
        payload = self._payload(request)
        payload["stream"] = True

        try:
            async with self.client.stream(
                "POST",
                f"{self.base_url}/v1/chat/completions",
                json=payload,
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.startswith("data: ") or line.endswith("[DONE]"):
                        continue
                    chunk_data = json.loads(line[6:])
                    choice = (chunk_data.get("choices") or [{}])[0]
                    delta = choice.get("delta", {})
                    tool_calls = []
                    for position, call in enumerate(delta.get("tool_calls") or []):
                        function = call.get("function", {})
                        arguments = function.get("arguments") or ""
                        if not isinstance(arguments, str):
                            arguments = json.dumps(arguments)
                        tool_calls.append(
                            LLMToolCallDelta(
                                index=call.get("index", position),
                                id=call.get("id"),
                                name=function.get("name"),
                                arguments=arguments,
                            )
                        )
                    usage = None
                    if chunk_data.get("usage"):
                        prompt_tokens = chunk_data["usage"].get("prompt_tokens", 0)
                        completion_tokens = chunk_data["usage"].get("completion_tokens", 0)
                        usage = LLMUsage(
                            prompt_tokens=prompt_tokens,
                            completion_tokens=completion_tokens,
                            total_tokens=prompt_tokens + completion_tokens,
                        )
                    finish_reason = choice.get("finish_reason")
                    yield LLMStreamChunk(
                        content=delta.get("content") or "",
                        tool_calls=tool_calls,
                        finish_reason=finish_reason
                        if finish_reason in ("stop", "length", "tool_calls")
                        else None,
                        usage=usage,
                        model=chunk_data.get("model"),
                    )
        except (httpx.TimeoutException, httpx.TransportError) as e:
            logger.error(f"Local model streaming error: {e}")
            raise LLMProviderError(str(e), provider="local", retryable=True) from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Local model HTTP error: {e}")
            raise LLMProviderError(str(e), provider="local") from e

    def count_tokens(self, text: str) -> int:
        """Count tokens (rough approximation for local models)."""
        return len(text) // 4

    def get_model_info(self, model_name: str | None = None) -> ModelInfo:
        return ModelInfo(
            name=model_name or self.model,
            provider="local",
            context_window=8192,
            max_output=2048,
            capabilities=[],
        )
