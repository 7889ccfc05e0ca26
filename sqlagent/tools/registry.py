"""Tool registry and executor for one generation session."""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, Callable

from sqlagent.llm.models import LLMToolCall, LLMToolSpec
from sqlagent.tools.base import (
    ToolArgumentError,
    ToolDefinition,
    ToolInvocation,
    get_tool_definition,
)

logger = logging.getLogger(__name__)


class ToolExecutionError(Exception):
    pass


class ToolRegistry:
    """
    Tools offered to the model during one session.

    Unlike a process-wide registry, each session builds its own instance so
    terminal tools can capture their payload on the owning toolset object.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, ToolDefinition] = {}
        self._handlers: dict[str, Callable[..., Any]] = {}

    def register(self, definition: ToolDefinition, handler: Callable[..., Any]) -> None:
        if definition.name in self._definitions:
            raise ToolExecutionError(f"Tool already registered: {definition.name}")
        self._definitions[definition.name] = definition
        self._handlers[definition.name] = handler
        logger.debug(f"Registered tool: {definition.name}")

    def register_object(self, toolset: object) -> "ToolRegistry":
        """Register every ``@tool``-decorated method of ``toolset``."""
        for attribute in dir(toolset):
            if attribute.startswith("_"):
                continue
            member = getattr(toolset, attribute)
            definition = get_tool_definition(member) if callable(member) else None
            if definition is not None:
                self.register(definition, member)
        return self

    def get_definition(self, name: str) -> ToolDefinition | None:
        return self._definitions.get(name)

    def get_handler(self, name: str) -> Callable[..., Any] | None:
        return self._handlers.get(name)

    def list_definitions(self) -> list[ToolDefinition]:
        return list(self._definitions.values())

    def specs(self) -> list[LLMToolSpec]:
        return [definition.to_spec() for definition in self._definitions.values()]

    def terminal_names(self) -> set[str]:
        return {name for name, definition in self._definitions.items() if definition.terminal}

    async def execute(self, call: LLMToolCall) -> ToolInvocation:
        """
        Run a tool call and return the text fed back to the model.

        Unknown tools, malformed JSON and mismatched arguments come back as
        error invocations so the model can correct itself; exceptions raised
        by the handler itself propagate as ToolExecutionError.
        """
        definition = self._definitions.get(call.name)
        handler = self._handlers.get(call.name)
        if not definition or not handler:
            return self._error(call, f"ERROR: Unknown tool '{call.name}'.")

        try:
            args = call.parse_arguments()
        except ValueError as exc:
            return self._error(call, f"ERROR: {exc}", definition.terminal)

        try:
            inspect.signature(handler).bind(**args)
        except TypeError as exc:
            return self._error(
                call, f"ERROR: Invalid arguments for tool '{call.name}': {exc}", definition.terminal
            )

        logger.info(
            "tool_invoked",
            extra={"tool": call.name, "call_id": call.id, "args": sorted(args.keys())},
        )
        try:
            result = handler(**args)
            if inspect.isawaitable(result):
                result = await result
        except ToolArgumentError as exc:
            return self._error(call, str(exc), definition.terminal)
        except Exception as exc:
            logger.error(f"Tool execution failed: {call.name} - {exc}")
            raise ToolExecutionError(str(exc)) from exc

        content = result if isinstance(result, str) else json.dumps(result, default=str)
        return ToolInvocation(
            call_id=call.id,
            name=call.name,
            content=content,
            terminal=definition.terminal,
        )

    @staticmethod
    def _error(call: LLMToolCall, message: str, terminal: bool = False) -> ToolInvocation:
        logger.warning(
            "tool_call_rejected",
            extra={"tool": call.name, "call_id": call.id, "reason": message},
        )
        return ToolInvocation(
            call_id=call.id,
            name=call.name,
            content=message,
            is_error=True,
            terminal=terminal,
        )
