"""
LLM Request and Response Models

Pydantic models for LLM provider interactions.
Provider-agnostic models shared by the OpenAI, Anthropic and local providers,
including the tool-calling surface used by the generation session.
"""

import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

FinishReason = Literal["stop", "length", "content_filter", "tool_calls", "error"]


class LLMToolSpec(BaseModel):
    """Tool the model may call, described with a JSON schema."""

    name: str = Field(..., description="Tool name", min_length=1)
    description: str = Field(default="", description="What the tool does")
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        description="JSON schema of the tool arguments",
    )


class LLMToolCall(BaseModel):
    """Tool invocation requested by the model."""

    id: str = Field(..., description="Provider-assigned call id")
    name: str = Field(..., description="Name of the tool being called")
    arguments: str = Field(
        default="{}",
        description="Raw JSON argument payload exactly as produced by the model",
    )

    def parse_arguments(self) -> Dict[str, Any]:
        """
        Decode the argument payload.

        Raises:
            ValueError: If the payload is not a JSON object
        """
        raw = self.arguments.strip() or "{}"
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON arguments for tool '{self.name}': {e}") from e
        if not isinstance(parsed, dict):
            raise ValueError(f"Arguments for tool '{self.name}' must be a JSON object")
        return parsed


class LLMMessage(BaseModel):
    """Single message in an LLM conversation."""

    role: Literal["system", "user", "assistant", "tool"] = Field(
        ...,
        description="Message role"
    )
    content: str = Field(
        default="",
        description="Message content"
    )
    tool_calls: List[LLMToolCall] = Field(
        default_factory=list,
        description="Tool calls issued by an assistant message"
    )
    tool_call_id: Optional[str] = Field(
        None,
        description="Call id answered by a tool message"
    )
    name: Optional[str] = Field(
        None,
        description="Tool name for tool messages"
    )


class LLMRequest(BaseModel):
    """Request to an LLM provider."""

    messages: List[LLMMessage] = Field(
        ...,
        description="Conversation messages",
        min_length=1
    )
    temperature: Optional[float] = Field(
        None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (overrides default)"
    )
    max_tokens: Optional[int] = Field(
        None,
        gt=0,
        description="Maximum tokens to generate (overrides default)"
    )
    stream: bool = Field(
        default=False,
        description="Whether to stream the response"
    )
    model: Optional[str] = Field(
        None,
        description="Specific model to use (overrides default)"
    )
    tools: List[LLMToolSpec] = Field(
        default_factory=list,
        description="Tools offered to the model"
    )
    tool_choice: Optional[Literal["auto", "required", "none"]] = Field(
        None,
        description="Tool selection policy (None = provider default)"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional provider-specific parameters"
    )


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = Field(..., ge=0, description="Number of tokens in the prompt")
    completion_tokens: int = Field(..., ge=0, description="Number of tokens in the completion")
    total_tokens: int = Field(..., ge=0, description="Total tokens used")


class LLMResponse(BaseModel):
    """Response from an LLM provider."""

    content: str = Field(
        default="",
        description="Generated text content"
    )
    model: str = Field(
        ...,
        description="Model that generated the response"
    )
    usage: LLMUsage = Field(
        default_factory=lambda: LLMUsage(prompt_tokens=0, completion_tokens=0, total_tokens=0),
        description="Token usage information"
    )
    finish_reason: FinishReason = Field(
        ...,
        description="Reason the generation stopped"
    )
    provider: str = Field(
        ...,
        description="Provider that handled the request (openai, anthropic, etc.)"
    )
    tool_calls: List[LLMToolCall] = Field(
        default_factory=list,
        description="Tool calls requested by the model"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional provider-specific response data"
    )


class LLMToolCallDelta(BaseModel):
    """Fragment of a tool call in a streamed response, keyed by its index."""

    index: int = Field(..., ge=0, description="Position of the call within the response")
    id: Optional[str] = Field(None, description="Call id (first fragment only)")
    name: Optional[str] = Field(None, description="Tool name (first fragment only)")
    arguments: str = Field(default="", description="Next piece of the JSON argument payload")


class LLMStreamChunk(BaseModel):
    """Streaming response chunk from an LLM provider."""

    content: str = Field(
        default="",
        description="Chunk of generated text"
    )
    tool_calls: List[LLMToolCallDelta] = Field(
        default_factory=list,
        description="Tool call fragments carried by this chunk"
    )
    finish_reason: Optional[FinishReason] = Field(
        None,
        description="Reason if this is the final chunk"
    )
    usage: Optional[LLMUsage] = Field(
        None,
        description="Token usage, when the provider reports it in the stream"
    )
    model: Optional[str] = Field(
        None,
        description="Model that generated the chunk"
    )
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional chunk metadata"
    )


class ModelInfo(BaseModel):
    """Information about a specific model."""

    name: str = Field(..., description="Model name/identifier")
    provider: str = Field(..., description="Provider name")
    context_window: int = Field(..., gt=0, description="Maximum context window in tokens")
    max_output: int = Field(..., gt=0, description="Maximum output tokens")
    capabilities: List[str] = Field(
        default_factory=list,
        description="Model capabilities (e.g., 'function-calling', 'vision')"
    )
