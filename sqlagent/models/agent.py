"""
Agent Models

Execution metadata and the error hierarchy shared by every agent and the
ask pipeline.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sqlagent.models.ask import GeneratedSql, ValidationReport
from sqlagent.models.schema import DatabaseSchema, SchemaContext


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentMetadata(BaseModel):
    """Metadata about agent execution."""

    agent_name: str
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None
    duration_ms: float | None = None
    llm_calls: int = 0
    tool_calls: int = 0
    tokens_used: int | None = None
    error: str | None = None

    model_config = ConfigDict(frozen=False)

    def mark_complete(self) -> None:
        """Mark execution as complete and calculate duration."""
        self.completed_at = utcnow()
        if self.started_at:
            delta = self.completed_at - self.started_at
            self.duration_ms = delta.total_seconds() * 1000


class AgentInput(BaseModel):
    """
    Base input for all agents.

    ``query`` is the normalized question (or a short task statement for the
    build workflow); ``context`` carries loosely typed request details for logs.
    """

    query: str = Field(..., description="Natural language question or task")
    context: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class AgentOutput(BaseModel):
    """Base output for all agents."""

    success: bool = Field(..., description="Whether the agent executed successfully")
    data: dict[str, Any] = Field(default_factory=dict, description="Agent-specific output data")
    metadata: AgentMetadata = Field(..., description="Execution metadata")


class AgentError(Exception):
    """
    Custom exception for agent execution errors.

    Attributes:
        agent: Name of the agent that raised the error
        message: Error description
        recoverable: Whether the caller may retry the same request
        context: Additional context for debugging
    """

    def __init__(
        self,
        agent: str,
        message: str,
        recoverable: bool = True,
        context: dict[str, Any] | None = None,
    ):
        self.agent = agent
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{agent}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/stream error events."""
        return {
            "agent": self.agent,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class ValidationError(AgentError):
    """Error during input validation (not recoverable)."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, recoverable=False, context=context)


class ConfigurationError(AgentError):
    """Unknown or disabled connection, missing collaborators (never recoverable)."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, recoverable=False, context=context)


class LLMError(AgentError):
    """Error during LLM API call (usually recoverable with retry)."""

    def __init__(self, agent: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(agent, message, recoverable=True, context=context)


class DatabaseError(AgentError):
    """Error during database operation (may or may not be recoverable)."""

    def __init__(
        self,
        agent: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(agent, message, recoverable=recoverable, context=context)


class SQLGenerationError(AgentError):
    """
    Tool protocol failure during generation.

    ``recoverable`` is True only for timeouts and transport failures, where
    the caller may retry the whole ask.
    """

    def __init__(
        self,
        agent: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(agent, message, recoverable=recoverable, context=context)


# ============================================================================
# SQLAgent / RepairAgent
# ============================================================================


class SQLAgentInput(AgentInput):
    """Input for SQL generation."""

    dialect: str = Field(..., description="Target SQL dialect")
    schema_context: SchemaContext = Field(..., description="Tables selected for the question")
    database_schema: DatabaseSchema = Field(
        ..., description="Full schema searchable through the search_tables tool"
    )
    allow_write: bool = False
    agent_document: str | None = Field(None, description="Stored knowledge-base document")
    on_text: Any | None = Field(
        None, exclude=True, description="Callback receiving free text emitted by the model"
    )


class RepairAgentInput(SQLAgentInput):
    """Input for the single repair attempt after a failed validation."""

    failed: GeneratedSql = Field(..., description="Post-processed SQL that failed validation")
    report: ValidationReport = Field(..., description="Validation report of the failed SQL")


class SQLAgentOutput(AgentOutput):
    generated: GeneratedSql = Field(..., description="SQL written through the terminal tool")


# ============================================================================
# ChartAgent
# ============================================================================


class ChartAgentInput(AgentInput):
    dialect: str
    sql: str
    columns: list[str] = Field(default_factory=list)
    sample_rows: list[dict[str, Any]] = Field(default_factory=list)


class ChartAgentOutput(AgentOutput):
    option: str = Field(..., description="Chart option template with data placeholders")


# ============================================================================
# KnowledgeAgent
# ============================================================================


class KnowledgeAgentInput(AgentInput):
    dialect: str
    database_schema: DatabaseSchema


class KnowledgeAgentOutput(AgentOutput):
    document: str = Field(..., description="Knowledge-base document in Markdown")
