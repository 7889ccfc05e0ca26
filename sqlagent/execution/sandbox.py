"""
Executor Sandbox

Runs a validated statement against the target connection.

Read statements (SELECT / EXPLAIN / PRAGMA / WITH) return at most
``max_rows`` rows with a "returned of total" annotation when truncated.
Other statements report the affected-row count. Database types without a
native connector get an execution-plan preview from a configured fallback
sandbox, or an explicit "execution disabled" warning. Failures are turned
into warnings; the sandbox never raises.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from sqlagent.connectors.base import BaseConnector, QueryResult
from sqlagent.connectors.factory import (
    create_connector,
    normalize_database_type,
    supports_database_type,
)
from sqlagent.models.ask import ExecutionOutcome

logger = logging.getLogger(__name__)

READ_STATEMENT = re.compile(r"^\s*(select|explain|pragma|with)\b", re.IGNORECASE)


def is_read_statement(sql: str) -> bool:
    return bool(READ_STATEMENT.match(sql or ""))


def _json_safe(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def json_safe_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Rows with driver types (Decimal, datetime, bytes) converted for JSON."""
    return [{key: _json_safe(value) for key, value in row.items()} for row in rows]


def row_annotation(returned: int, total: int | None) -> str:
    if total is not None and total > returned:
        return f"Returned {returned} of {total} rows (truncated)"
    return f"Returned {returned} rows"


class PlanSandbox(ABC):
    """Produces an execution plan without running the statement."""

    @abstractmethod
    async def explain(
        self, sql: str, dialect: str, parameters: dict[str, Any] | None = None
    ) -> str | None:
        pass


class ConnectorPlanSandbox(PlanSandbox):
    """Plan previews through a preconfigured connector."""

    def __init__(self, connector: BaseConnector):
        self.connector = connector

    async def explain(
        self, sql: str, dialect: str, parameters: dict[str, Any] | None = None
    ) -> str | None:
        await self.connector.connect()
        return await self.connector.explain(sql, parameters)


class ExecutorSandbox:
    """
    Executes statements for the ask pipeline.

    Usage:
        sandbox = ExecutorSandbox()
        outcome = await sandbox.run(
            connection_string="sqlite:///shop.db",
            database_type="sqlite",
            sql="SELECT category, SUM(amount) AS total_sales FROM orders GROUP BY category",
            parameters={},
        )
    """

    def __init__(
        self,
        connector_factory: Callable[..., BaseConnector] = create_connector,
        fallback: PlanSandbox | None = None,
        timeout: int = 30,
    ):
        self.connector_factory = connector_factory
        self.fallback = fallback
        self.timeout = timeout

    async def run(
        self,
        *,
        connection_string: str,
        database_type: str | None,
        sql: str,
        parameters: dict[str, Any] | None = None,
        max_rows: int = 100,
        preview_only: bool = False,
    ) -> ExecutionOutcome:
        database_type_label = database_type or ""
        try:
            if supports_database_type(database_type):
                return await self._run_native(
                    connection_string,
                    normalize_database_type(database_type),
                    sql,
                    parameters or {},
                    max_rows,
                    preview_only,
                )
            if self.fallback is not None:
                plan = await self.fallback.explain(
                    sql, normalize_database_type(database_type), parameters or {}
                )
                return ExecutionOutcome(
                    preview=plan or "",
                    is_plan=True,
                    warnings=[
                        "execution preview only: no native sandbox for database type "
                        f"'{database_type_label}'; returned an execution plan instead of results"
                    ],
                )
            return ExecutionOutcome(
                warnings=[
                    "execution disabled: no executor sandbox configured for database type "
                    f"'{database_type_label}'"
                ]
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                f"Execution failed: {e}",
                extra={"database_type": database_type_label, "sql": sql[:200]},
            )
            return ExecutionOutcome(warnings=[f"execution: {e}"])

    async def _run_native(
        self,
        connection_string: str,
        database_type: str,
        sql: str,
        parameters: dict[str, Any],
        max_rows: int,
        preview_only: bool,
    ) -> ExecutionOutcome:
        connector = self.connector_factory(
            connection_string=connection_string,
            database_type=database_type,
            timeout=self.timeout,
        )
        async with connector:
            if preview_only:
                plan = await connector.explain(sql, parameters)
                return ExecutionOutcome(preview=plan, is_plan=True)

            if is_read_statement(sql):
                result: QueryResult = await connector.execute(
                    sql, parameters, returns_rows=True, max_rows=max_rows
                )
                total = result.total_rows if result.total_rows is not None else result.row_count
                logger.info(
                    f"Query returned {result.row_count} rows",
                    extra={"total_rows": total, "elapsed_ms": result.execution_time_ms},
                )
                return ExecutionOutcome(
                    columns=result.columns,
                    rows=json_safe_rows(result.rows),
                    total_rows=total,
                    preview=row_annotation(result.row_count, total),
                )

            result = await connector.execute(sql, parameters, returns_rows=False)
            affected = result.affected_rows or 0
            logger.info(f"Statement affected {affected} rows")
            return ExecutionOutcome(affected_rows=affected, preview=f"Affected {affected} rows")
