"""
Generation Session

Drives one multi-turn tool-calling conversation with a language model until
a terminal tool (write_sql, write_chart_option, write_document) is accepted.

State machine:

    Idle -> AwaitingModel -> (ToolRequested -> ToolResult -> AwaitingModel)*
         -> ToolRequested -> Written -> Done

Any protocol violation moves the session to Failed, which is absorbing:

- a response with free text but no tool call
- more model round-trips than ``max_tool_rounds``
- a provider timeout or transport failure (raised as recoverable so the
  caller may retry the whole ask; the session itself never retries)

Only the first accepted terminal call counts. Later terminal calls in the
same response are answered with a tool error and ignored. A terminal call
with malformed arguments is answered with the error text so the model can
correct itself in the next round.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from sqlagent.llm.base import BaseLLMProvider, LLMProviderError
from sqlagent.llm.models import LLMMessage, LLMRequest
from sqlagent.models.agent import AgentMetadata, SQLGenerationError
from sqlagent.tools.base import ToolInvocation
from sqlagent.tools.registry import ToolExecutionError, ToolRegistry

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], Awaitable[None] | None]

TERMINAL_ALREADY_CALLED = "ERROR: The result was already written; this call is ignored."


class SessionState(str, Enum):
    IDLE = "Idle"
    AWAITING_MODEL = "AwaitingModel"
    TOOL_REQUESTED = "ToolRequested"
    TOOL_RESULT = "ToolResult"
    WRITTEN = "Written"
    DONE = "Done"
    FAILED = "Failed"


ALLOWED_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.IDLE: {SessionState.AWAITING_MODEL, SessionState.FAILED},
    SessionState.AWAITING_MODEL: {SessionState.TOOL_REQUESTED, SessionState.FAILED},
    SessionState.TOOL_REQUESTED: {
        SessionState.TOOL_RESULT,
        SessionState.WRITTEN,
        SessionState.FAILED,
    },
    SessionState.TOOL_RESULT: {SessionState.AWAITING_MODEL, SessionState.FAILED},
    SessionState.WRITTEN: {SessionState.DONE},
    SessionState.DONE: set(),
    SessionState.FAILED: set(),
}


class GenerationSession:
    """
    One tool-calling conversation.

    Args:
        provider: LLM provider used for every round
        registry: Tools offered to the model; at least one must be terminal
        agent_name: Name reported in errors and logs
        max_tool_rounds: Maximum number of model calls
        temperature: Sampling temperature override
        max_tokens: Completion size override
        on_text: Called with each piece of free text the model emits; when
            set, every round is streamed from the provider
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        registry: ToolRegistry,
        agent_name: str = "GenerationSession",
        max_tool_rounds: int = 8,
        temperature: float | None = None,
        max_tokens: int | None = None,
        on_text: TextCallback | None = None,
    ):
        if not registry.terminal_names():
            raise ValueError("GenerationSession requires at least one terminal tool")
        self.provider = provider
        self.registry = registry
        self.agent_name = agent_name
        self.max_tool_rounds = max_tool_rounds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.on_text = on_text

        self.state = SessionState.IDLE
        self.history: list[SessionState] = [SessionState.IDLE]
        self.messages: list[LLMMessage] = []
        self.metadata = AgentMetadata(agent_name=agent_name)
        self.result: ToolInvocation | None = None

    def _transition(self, target: SessionState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid session transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    def _fail(self, message: str, recoverable: bool = False) -> SQLGenerationError:
        self._transition(SessionState.FAILED)
        self.metadata.error = message
        self.metadata.mark_complete()
        logger.warning(
            f"{self.agent_name} generation failed: {message}",
            extra={
                "agent": self.agent_name,
                "rounds": self.metadata.llm_calls,
                "recoverable": recoverable,
            },
        )
        return SQLGenerationError(
            agent=self.agent_name,
            message=message,
            recoverable=recoverable,
            context={
                "rounds": self.metadata.llm_calls,
                "states": [state.value for state in self.history],
            },
        )

    async def _emit_text(self, text: str) -> None:
        if not self.on_text or not text:
            return
        outcome = self.on_text(text)
        if inspect.isawaitable(outcome):
            await outcome

    async def run(self, messages: list[LLMMessage]) -> ToolInvocation:
        """
        Run the conversation to completion.

        Returns:
            The accepted terminal tool invocation

        Raises:
            SQLGenerationError: On any protocol failure
            RuntimeError: If the session was already used
        """
        if self.state is not SessionState.IDLE:
            raise RuntimeError("GenerationSession can only be run once")
        self.messages = list(messages)

        while True:
            if self.metadata.llm_calls >= self.max_tool_rounds:
                raise self._fail(
                    f"Model did not call a terminal tool within {self.max_tool_rounds} rounds"
                )

            self._transition(SessionState.AWAITING_MODEL)
            self.metadata.llm_calls += 1
            request = LLMRequest(
                messages=self.messages,
                tools=self.registry.specs(),
                tool_choice="auto",
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            try:
                if self.on_text is not None:
                    response = await self.provider.generate_streaming(
                        request, on_text=self._emit_text
                    )
                else:
                    response = await self.provider.generate(request)
            except LLMProviderError as e:
                raise self._fail(f"LLM call failed: {e}", recoverable=e.retryable) from e
            except (asyncio.TimeoutError, TimeoutError) as e:
                raise self._fail("LLM call timed out", recoverable=True) from e

            self.metadata.tokens_used = (self.metadata.tokens_used or 0) + response.usage.total_tokens

            if not response.tool_calls:
                raise self._fail("Model responded with text only; a terminal tool call is required")

            self._transition(SessionState.TOOL_REQUESTED)
            self.messages.append(
                LLMMessage(role="assistant", content=response.content, tool_calls=response.tool_calls)
            )

            for call in response.tool_calls:
                self.metadata.tool_calls += 1
                if self.result is not None:
                    invocation = ToolInvocation(
                        call_id=call.id,
                        name=call.name,
                        content=TERMINAL_ALREADY_CALLED,
                        is_error=True,
                    )
                    logger.warning(
                        "Ignoring tool call after terminal result",
                        extra={"agent": self.agent_name, "tool": call.name},
                    )
                else:
                    try:
                        invocation = await self.registry.execute(call)
                    except ToolExecutionError as e:
                        raise self._fail(f"Tool '{call.name}' failed: {e}") from e
                    if invocation.terminal and not invocation.is_error:
                        self.result = invocation
                        self._transition(SessionState.WRITTEN)

                self.messages.append(
                    LLMMessage(
                        role="tool",
                        content=invocation.content,
                        tool_call_id=invocation.call_id,
                        name=invocation.name,
                    )
                )

            if self.result is not None:
                self._transition(SessionState.DONE)
                self.metadata.mark_complete()
                logger.info(
                    f"{self.agent_name} generation complete",
                    extra={
                        "agent": self.agent_name,
                        "rounds": self.metadata.llm_calls,
                        "tool_calls": self.metadata.tool_calls,
                        "duration_ms": self.metadata.duration_ms,
                    },
                )
                return self.result

            self._transition(SessionState.TOOL_RESULT)
