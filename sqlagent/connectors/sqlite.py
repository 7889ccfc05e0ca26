"""
SQLite Connector

SQLite access through the standard library ``sqlite3`` driver. The driver
is synchronous, so every operation runs in a worker thread via
``asyncio.to_thread`` with its own short-lived connection.

``@name`` placeholders bind directly: sqlite3 matches dict keys against
parameter names without their prefix character.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import time
from pathlib import Path
from typing import Any

from sqlagent.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    QueryError,
    QueryResult,
    SchemaError,
    TableInfo,
)

logger = logging.getLogger(__name__)

_DATA_SOURCE = re.compile(r"(?:data\s+source|datasource|filename)\s*=\s*([^;]+)", re.IGNORECASE)


def parse_sqlite_path(connection_string: str) -> str:
    """
    Accept ``sqlite:///path``, ``Data Source=path;...`` or a bare path.

    ``:memory:`` is passed through unchanged.
    """
    value = connection_string.strip()
    if value.lower().startswith("sqlite:///"):
        return value[len("sqlite:///"):] or ":memory:"
    if value.lower().startswith("sqlite://"):
        return value[len("sqlite://"):] or ":memory:"
    match = _DATA_SOURCE.search(value)
    if match:
        return match.group(1).strip()
    return value


class SQLiteConnector(BaseConnector):
    """SQLite database connector using sqlite3 in worker threads."""

    dialect = "sqlite"

    def __init__(self, path: str, timeout: int = 30, **kwargs: Any) -> None:
        super().__init__(timeout=timeout, **kwargs)
        self.path = path

    async def connect(self) -> None:
        if self._connected:
            return
        if self.path != ":memory:" and not Path(self.path).exists():
            raise ConnectionError(f"SQLite database not found: {self.path}")
        try:
            await asyncio.to_thread(self._test_connection_sync)
            self._connected = True
        except sqlite3.Error as exc:
            logger.error(f"SQLite connection failed: {exc}")
            raise ConnectionError(f"Failed to open SQLite database: {exc}") from exc

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
        *,
        returns_rows: bool = True,
        max_rows: int | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        self._require_connection()
        start_time = time.perf_counter()
        try:
            result = await asyncio.to_thread(
                self._execute_sync, query, params or {}, returns_rows, max_rows, timeout
            )
        except sqlite3.Error as exc:
            logger.error(f"SQLite query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {exc}") from exc
        result.execution_time_ms = (time.perf_counter() - start_time) * 1000
        return result

    async def explain(self, query: str, params: dict[str, Any] | None = None) -> str:
        result = await self.execute(f"EXPLAIN QUERY PLAN {query}", params)
        return "\n".join(
            " | ".join("" if value is None else str(value) for value in row.values())
            for row in result.rows
        )

    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        self._require_connection()
        try:
            return await asyncio.to_thread(self._get_schema_sync)
        except sqlite3.Error as exc:
            logger.error(f"SQLite schema introspection failed: {exc}")
            raise SchemaError(f"Failed to introspect schema: {exc}") from exc

    async def close(self) -> None:
        self._connected = False

    def _open(self, timeout: int | None = None) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=float(timeout or self.timeout))

    def _test_connection_sync(self) -> None:
        conn = self._open()
        try:
            conn.execute("SELECT sqlite_version()").fetchone()
        finally:
            conn.close()

    def _execute_sync(
        self,
        query: str,
        params: dict[str, Any],
        returns_rows: bool,
        max_rows: int | None,
        timeout: int | None,
    ) -> QueryResult:
        conn = self._open(timeout)
        try:
            cursor = conn.execute(query, params)
            if not returns_rows or cursor.description is None:
                conn.commit()
                return QueryResult(affected_rows=max(cursor.rowcount, 0))

            columns = [description[0] for description in cursor.description]
            if max_rows is None:
                raw_rows = cursor.fetchall()
                total = len(raw_rows)
            else:
                raw_rows = cursor.fetchmany(max_rows)
                total = len(raw_rows) + sum(1 for _ in cursor)
            rows = [dict(zip(columns, row)) for row in raw_rows]
            return QueryResult(
                rows=rows,
                row_count=len(rows),
                total_rows=total,
                columns=columns,
            )
        finally:
            conn.close()

    def _get_schema_sync(self) -> list[TableInfo]:
        conn = self._open()
        try:
            tables = conn.execute(
                "SELECT name, type FROM sqlite_master "
                "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%' "
                "ORDER BY rowid"
            ).fetchall()

            table_infos: list[TableInfo] = []
            for table_name, table_type in tables:
                quoted = table_name.replace('"', '""')
                fk_map = {
                    row[3]: (row[2], row[4])
                    for row in conn.execute(f'PRAGMA foreign_key_list("{quoted}")').fetchall()
                }
                columns = []
                for _, name, data_type, not_null, default, pk in conn.execute(
                    f'PRAGMA table_info("{quoted}")'
                ).fetchall():
                    fk_target = fk_map.get(name)
                    columns.append(
                        ColumnInfo(
                            name=name,
                            data_type=data_type or "",
                            is_nullable=not not_null and not pk,
                            default_value=str(default) if default is not None else None,
                            is_primary_key=bool(pk),
                            is_foreign_key=fk_target is not None,
                            foreign_table=fk_target[0] if fk_target else None,
                            foreign_column=fk_target[1] if fk_target else None,
                        )
                    )
                table_infos.append(
                    TableInfo(
                        schema="main",
                        table_name=table_name,
                        columns=columns,
                        table_type=table_type.upper(),
                    )
                )
            return table_infos
        finally:
            conn.close()
