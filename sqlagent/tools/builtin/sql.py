"""Terminal SQL writing tool."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from sqlagent.models.ask import ExecuteType, GeneratedSql
from sqlagent.tools.base import ToolArgumentError, tool

logger = logging.getLogger(__name__)

SQL_WRITTEN = "The SQL has been written and completed."
COLUMNS_REQUIRED = (
    "ERROR: When execute_type is Query or EChart, the 'columns' parameter is REQUIRED. "
    "Please specify all columns that appear in the SELECT clause."
)


def normalize_parameters(parameters: Any) -> dict[str, Any]:
    """Accept ``{"name": value}`` or ``[{"name": ..., "value": ...}]``."""
    if parameters is None:
        return {}
    if isinstance(parameters, dict):
        return {str(key).lstrip("@:$"): value for key, value in parameters.items()}
    if isinstance(parameters, list):
        normalized: dict[str, Any] = {}
        for item in parameters:
            if not isinstance(item, dict) or "name" not in item:
                raise ToolArgumentError(
                    "ERROR: Each parameter must be an object with 'name' and 'value'."
                )
            normalized[str(item["name"]).lstrip("@:$")] = item.get("value")
        return normalized
    raise ToolArgumentError("ERROR: 'parameters' must be an object or an array.")


def normalize_columns(columns: Any) -> list[str]:
    if not columns:
        return []
    if isinstance(columns, dict):
        return [str(name) for name in columns]
    return [str(name) for name in columns]


class SqlWriterTools:
    """
    Holds the terminal ``write_sql`` tool.

    ``result`` is set by the first accepted call; the generation session
    stops calling the model once it is present.
    """

    def __init__(self) -> None:
        self.result: GeneratedSql | None = None

    @tool(
        name="write_sql",
        terminal=True,
        description="""
        Writes the generated SQL statement. Call this exactly once, when the final
        statement is ready. Use named parameters for user-supplied values and list
        every column that appears in the SELECT clause.
        """,
    )
    def write_sql(
        self,
        sql: Annotated[str, "Generated SQL statement, parameterized where values come from the question"],
        execute_type: Annotated[ExecuteType, "Query, NonQuery or EChart"],
        columns: Annotated[
            list[str] | dict[str, str] | None,
            "Columns in the SELECT clause (required for Query and EChart)",
        ] = None,
        parameters: Annotated[
            dict[str, Any] | list[dict[str, Any]] | None,
            "Parameter values keyed by name",
        ] = None,
        error_message: Annotated[
            str | None, "Set when no SQL can be produced for the question"
        ] = None,
    ) -> str:
        try:
            kind = ExecuteType(execute_type)
        except ValueError as exc:
            raise ToolArgumentError(
                f"ERROR: execute_type must be one of Query, NonQuery, EChart (got {execute_type!r})."
            ) from exc

        column_names = normalize_columns(columns)
        if kind in (ExecuteType.QUERY, ExecuteType.ECHART) and not column_names:
            raise ToolArgumentError(COLUMNS_REQUIRED)
        if not sql or not sql.strip():
            raise ToolArgumentError("ERROR: 'sql' cannot be empty.")

        self.result = GeneratedSql(
            statements=[sql],
            parameters=normalize_parameters(parameters),
            execute_type=kind,
            columns=column_names,
            error_message=error_message,
        )
        logger.info(
            "sql_written",
            extra={"execute_type": kind.value, "columns": column_names},
        )
        return SQL_WRITTEN
