"""Chart data injection."""

from sqlagent.visualization.injector import (
    InjectionResult,
    infer_chart_type,
    inject_chart_data,
    is_identifier_column,
    select_chart_columns,
)

__all__ = [
    "InjectionResult",
    "infer_chart_type",
    "inject_chart_data",
    "is_identifier_column",
    "select_chart_columns",
]
