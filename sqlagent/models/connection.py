"""
Connection Models

Target-database connection records as seen by the ask pipeline and the
knowledge-base build workflow.
"""

from pydantic import BaseModel, ConfigDict, Field


class ConnectionRecord(BaseModel):
    """A configured target database connection."""

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    connection_string: str = Field(..., description="Driver connection string or URL")
    database_type: str = Field(
        ..., description="sqlite, postgresql, mysql, sqlserver, ..."
    )
    agent_document: str | None = Field(
        None, description="Knowledge-base document produced by the build workflow"
    )
    is_enabled: bool = True

    model_config = ConfigDict(frozen=True)
