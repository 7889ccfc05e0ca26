"""Statement execution against target connections."""

from sqlagent.execution.sandbox import (
    ConnectorPlanSandbox,
    ExecutorSandbox,
    PlanSandbox,
    is_read_statement,
)

__all__ = ["ConnectorPlanSandbox", "ExecutorSandbox", "PlanSandbox", "is_read_statement"]
