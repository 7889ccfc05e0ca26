"""
LLM Provider Module

Multi-provider LLM abstraction layer with tool calling, supporting OpenAI,
Anthropic and local OpenAI-compatible servers.

Usage:
    from sqlagent.llm import LLMProviderFactory, LLMRequest, LLMMessage
    from sqlagent.config import get_settings

    provider = LLMProviderFactory.create_default_provider(get_settings().llm)
    response = await provider.generate(
        LLMRequest(messages=[LLMMessage(role="user", content="Hello!")])
    )
"""

from sqlagent.llm.anthropic import AnthropicProvider
from sqlagent.llm.base import BaseLLMProvider, LLMProviderError
from sqlagent.llm.factory import LLMProviderFactory
from sqlagent.llm.local import LocalProvider
from sqlagent.llm.models import (
    LLMMessage,
    LLMRequest,
    LLMResponse,
    LLMStreamChunk,
    LLMToolCall,
    LLMToolCallDelta,
    LLMToolSpec,
    LLMUsage,
    ModelInfo,
)
from sqlagent.llm.openai import OpenAIProvider

__all__ = [
    "BaseLLMProvider",
    "LLMProviderError",
    "LLMMessage",
    "LLMRequest",
    "LLMResponse",
    "LLMStreamChunk",
    "LLMToolCall",
    "LLMToolCallDelta",
    "LLMToolSpec",
    "LLMUsage",
    "ModelInfo",
    "LLMProviderFactory",
    "OpenAIProvider",
    "AnthropicProvider",
    "LocalProvider",
]
