"""
Models Module

Pydantic models shared across the ask pipeline and the build workflow.

Usage:
    from sqlagent.models import AskOptions, SqlResult, DatabaseSchema
"""

from sqlagent.models.agent import (
    AgentError,
    AgentInput,
    AgentMetadata,
    AgentOutput,
    ChartAgentInput,
    ChartAgentOutput,
    ConfigurationError,
    DatabaseError,
    KnowledgeAgentInput,
    KnowledgeAgentOutput,
    LLMError,
    RepairAgentInput,
    SQLAgentInput,
    SQLAgentOutput,
    SQLGenerationError,
    ValidationError,
)
from sqlagent.models.ask import (
    AskOptions,
    ExecuteType,
    ExecutionOutcome,
    GeneratedSql,
    SqlResult,
    ValidationReport,
)
from sqlagent.models.build import BuildStatus, ConnectionBuildState
from sqlagent.models.connection import ConnectionRecord
from sqlagent.models.events import (
    ChartBlock,
    ChartConfig,
    DataBlock,
    ErrorBlock,
    SqlBlock,
    StreamEvent,
)
from sqlagent.models.schema import (
    ColumnDoc,
    DatabaseSchema,
    ForeignKeyDoc,
    SchemaContext,
    TableDoc,
)

__all__ = [
    "AgentError",
    "AgentInput",
    "AgentMetadata",
    "AgentOutput",
    "ChartAgentInput",
    "ChartAgentOutput",
    "KnowledgeAgentInput",
    "KnowledgeAgentOutput",
    "RepairAgentInput",
    "SQLAgentInput",
    "SQLAgentOutput",
    "ConfigurationError",
    "DatabaseError",
    "LLMError",
    "SQLGenerationError",
    "ValidationError",
    "AskOptions",
    "ExecuteType",
    "ExecutionOutcome",
    "GeneratedSql",
    "SqlResult",
    "ValidationReport",
    "BuildStatus",
    "ConnectionBuildState",
    "ConnectionRecord",
    "ChartBlock",
    "ChartConfig",
    "DataBlock",
    "ErrorBlock",
    "SqlBlock",
    "StreamEvent",
    "ColumnDoc",
    "DatabaseSchema",
    "ForeignKeyDoc",
    "SchemaContext",
    "TableDoc",
]
