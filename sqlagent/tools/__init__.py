"""Model-callable tools and the per-session registry."""

from sqlagent.tools.base import ToolArgumentError, ToolDefinition, ToolInvocation, tool
from sqlagent.tools.registry import ToolExecutionError, ToolRegistry

__all__ = [
    "ToolArgumentError",
    "ToolDefinition",
    "ToolExecutionError",
    "ToolInvocation",
    "ToolRegistry",
    "tool",
]
