"""
Ask Models

Inputs and outputs of the ask pipeline: options, generated SQL,
validation report, execution outcome and the final result.
"""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ExecuteType(str, Enum):
    """How a generated statement is meant to be consumed."""

    QUERY = "Query"
    NON_QUERY = "NonQuery"
    ECHART = "EChart"


class AskOptions(BaseModel):
    """Per-request options."""

    connection_id: str = Field(..., min_length=1)
    dialect: str | None = Field(None, description="Overrides the connection's database type")
    execute: bool = False
    allow_write: bool = False
    top_k: int = Field(default=8, ge=1, le=100, description="Schema context size bound")
    return_explanation: bool = False
    max_rows: int = Field(default=100, ge=1, description="Row cap for read statements")
    suggest_chart: bool = True
    preview_only: bool = Field(
        default=False, description="Return an execution plan instead of executing"
    )

    model_config = ConfigDict(frozen=True)


class GeneratedSql(BaseModel):
    """Statements produced by a generation, before or after post-processing."""

    statements: list[str] = Field(..., min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)
    tables: list[str] = Field(default_factory=list)
    execute_type: ExecuteType = ExecuteType.QUERY
    columns: list[str] = Field(default_factory=list)
    error_message: str | None = None

    model_config = ConfigDict(frozen=True)


class ValidationReport(BaseModel):
    """Outcome of the safety gate."""

    is_valid: bool
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    touched_tables: list[str] = Field(default_factory=list)
    confidence: Literal["medium", "low"] = "medium"

    model_config = ConfigDict(frozen=True)


class ExecutionOutcome(BaseModel):
    """What the executor sandbox produced for one statement."""

    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    total_rows: int | None = None
    affected_rows: int | None = None
    preview: str = ""
    warnings: list[str] = Field(default_factory=list)
    is_plan: bool = False


class SqlResult(BaseModel):
    """Final answer of an ask."""

    sql: list[str] = Field(default_factory=list)
    parameters: dict[str, Any] = Field(default_factory=dict)
    dialect: str = ""
    touched_tables: list[str] = Field(default_factory=list)
    explanation: str | None = None
    confidence: Literal["medium", "low"] = "low"
    warnings: list[str] = Field(default_factory=list)
    execution_preview: str | None = None
    chart_option: str | None = None
    is_valid: bool = False
    execute_type: ExecuteType = ExecuteType.QUERY
    columns: list[str] = Field(default_factory=list)
    rows: list[dict[str, Any]] | None = None
    total_rows: int | None = None
    affected_rows: int | None = None
