"""
Build Models

State of the per-connection knowledge-base build workflow.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BuildStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class ConnectionBuildState(BaseModel):
    """Build state for a single connection."""

    status: BuildStatus = BuildStatus.NOT_STARTED
    message: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    error_message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Status contract returned to callers."""
        return {
            "status": self.status.value,
            "message": self.message,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "endTime": self.end_time.isoformat() if self.end_time else None,
            "errorMessage": self.error_message,
        }
