"""
Base Agent Framework

Abstract base class for the generation agents of the ask pipeline and the
knowledge-base build workflow. Provides a consistent interface, timing,
logging and error wrapping around a tool-calling generation session.

Usage:
    class MyAgent(BaseAgent):
        def __init__(self, llm_provider):
            super().__init__(name="MyAgent", llm_provider=llm_provider)

        async def execute(self, input: AgentInput) -> AgentOutput:
            toolset = MyTools()
            await self._run_generation(messages, toolset)
            return AgentOutput(success=True, metadata=self._metadata)
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod

from sqlagent.generation.session import GenerationSession, TextCallback
from sqlagent.llm.base import BaseLLMProvider
from sqlagent.llm.models import LLMMessage
from sqlagent.models.agent import (
    AgentError,
    AgentInput,
    AgentMetadata,
    AgentOutput,
)
from sqlagent.tools.base import ToolInvocation
from sqlagent.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class BaseAgent(ABC):
    """
    Abstract base class for all agents.

    Attributes:
        name: Unique identifier for this agent
        llm: Provider used for generation sessions
        max_retries: Retry attempts on recoverable errors. Defaults to 0:
            generation failures surface to the caller, who decides whether
            to retry the whole ask.
        timeout_seconds: Maximum execution time before timeout

    The __call__ method wraps execute() with:
        - Performance timing
        - Error handling and logging
        - Metadata collection
    """

    def __init__(
        self,
        name: str,
        llm_provider: BaseLLMProvider,
        max_retries: int = 0,
        timeout_seconds: float | None = None,
        max_tool_rounds: int = 8,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ):
        self.name = name
        self.llm = llm_provider
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self.max_tool_rounds = max_tool_rounds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._metadata = self._create_metadata()

        logger.info(
            f"Initialized {self.name}",
            extra={
                "agent": self.name,
                "max_retries": max_retries,
                "max_tool_rounds": max_tool_rounds,
            },
        )

    @abstractmethod
    async def execute(self, input: AgentInput) -> AgentOutput:
        """
        Execute the agent's core logic.

        Raises:
            AgentError: On execution failures (recoverable or not)
        """
        pass  # pragma: no cover - abstract method

    async def __call__(self, input: AgentInput) -> AgentOutput:
        """
        Execute the agent with timing, logging, and error handling.

        Raises:
            AgentError: If all attempts fail or the error is not recoverable.
                Unexpected exceptions are wrapped in a non-recoverable AgentError.
        """
        start_time = time.perf_counter()
        attempt = 0

        logger.info(
            f"Starting {self.name}",
            extra={
                "agent": self.name,
                "query": input.query[:100],
                "context_keys": list(input.context.keys()),
            },
        )

        while True:
            try:
                self._metadata = self._create_metadata()
                if self.timeout_seconds:
                    output = await asyncio.wait_for(
                        self.execute(input), timeout=self.timeout_seconds
                    )
                else:
                    output = await self.execute(input)

                duration_ms = (time.perf_counter() - start_time) * 1000
                self._metadata.mark_complete()
                self._metadata.duration_ms = duration_ms
                output.metadata = self._metadata

                logger.info(
                    f"Completed {self.name}",
                    extra={
                        "agent": self.name,
                        "success": output.success,
                        "duration_ms": duration_ms,
                        "attempt": attempt + 1,
                        "llm_calls": self._metadata.llm_calls,
                    },
                )
                return output

            except AgentError as e:
                attempt += 1
                logger.warning(
                    f"Agent error in {self.name}",
                    extra={
                        "agent": self.name,
                        "error": str(e),
                        "recoverable": e.recoverable,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "context": e.context,
                    },
                )

                if not e.recoverable or attempt > self.max_retries:
                    self._metadata.mark_complete()
                    self._metadata.error = str(e)
                    logger.error(
                        f"Failed {self.name} after {attempt} attempts",
                        extra={"agent": self.name, "error": str(e), "attempts": attempt},
                    )
                    raise

                wait_time = 2 ** (attempt - 1)
                logger.info(
                    f"Retrying {self.name} in {wait_time}s",
                    extra={"agent": self.name, "wait_time": wait_time},
                )
                await asyncio.sleep(wait_time)

            except asyncio.CancelledError:
                raise

            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                self._metadata.mark_complete()
                self._metadata.duration_ms = duration_ms
                self._metadata.error = str(e)

                logger.error(
                    f"Unexpected error in {self.name}",
                    extra={
                        "agent": self.name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "duration_ms": duration_ms,
                    },
                    exc_info=True,
                )

                raise AgentError(
                    agent=self.name,
                    message=f"Unexpected error: {str(e)}",
                    recoverable=False,
                    context={"error_type": type(e).__name__},
                ) from e

    def _create_metadata(self) -> AgentMetadata:
        return AgentMetadata(agent_name=self.name)

    async def _run_generation(
        self,
        messages: list[LLMMessage],
        *toolsets: object,
        on_text: TextCallback | None = None,
    ) -> ToolInvocation:
        """
        Run one tool-calling session over the given toolsets.

        Session metrics (model calls, tool calls, tokens) are folded into this
        agent's metadata whether the session succeeds or fails.
        """
        registry = ToolRegistry()
        for toolset in toolsets:
            registry.register_object(toolset)

        session = GenerationSession(
            provider=self.llm,
            registry=registry,
            agent_name=self.name,
            max_tool_rounds=self.max_tool_rounds,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            on_text=on_text,
        )
        try:
            return await session.run(messages)
        finally:
            self._metadata.llm_calls += session.metadata.llm_calls
            self._metadata.tool_calls += session.metadata.tool_calls
            if session.metadata.tokens_used:
                self._metadata.tokens_used = (
                    self._metadata.tokens_used or 0
                ) + session.metadata.tokens_used
