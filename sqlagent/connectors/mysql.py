"""
MySQL Connector

Async-compatible MySQL connector using mysql-connector-python.

The underlying driver is synchronous, so query and schema operations are
executed in worker threads via asyncio.to_thread. ``@name`` placeholders
are rewritten to the driver's ``%(name)s`` style outside string literals.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any

import mysql.connector
from mysql.connector import Error as MySQLError

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

_LITERAL_OR_PARAM = re.compile(r"('(?:[^'\\]|\\.|'')*'|\"(?:[^\"\\]|\\.)*\"|`[^`]*`)|(?<![@\w])@([A-Za-z_]\w*)")


def to_pyformat(query: str, params: dict[str, Any] | None) -> str:
    """Rewrite ``@name`` placeholders that have a supplied value into ``%(name)s``."""
    if not params:
        return query

    def replace(match: re.Match) -> str:
        if match.group(1) is not None:
            return match.group(1)
        name = match.group(2)
        return f"%({name})s" if name in params else match.group(0)

    return _LITERAL_OR_PARAM.sub(replace, query)


class MySQLConnector(BaseConnector):
    """MySQL database connector using mysql-connector-python."""

    dialect = "mysql"

    def __init__(
        self,
        host: str,
        port: int = 3306,
        database: str = "",
        user: str = "root",
        password: str = "",
        timeout: int = 30,
        **kwargs: Any,
    ) -> None:
        super().__init__(timeout=timeout, **kwargs)
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password

    async def connect(self) -> None:
        if self._connected:
            return
        try:
            await asyncio.to_thread(self._test_connection_sync)
            self._connected = True
        except MySQLError as exc:
            logger.error(f"MySQL connection failed: {exc}")
            raise ConnectionError(f"Failed to connect to MySQL: {exc}") from exc

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
                self._execute_sync,
                to_pyformat(query, params),
                params or None,
                returns_rows,
                max_rows,
                timeout or self.timeout,
            )
        except MySQLError as exc:
            logger.error(f"MySQL query failed: {exc}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {exc}") from exc
        result.execution_time_ms = (time.perf_counter() - start_time) * 1000
        return result

    async def explain(self, query: str, params: dict[str, Any] | None = None) -> str:
        result = await self.execute(f"EXPLAIN {query}", params)
        return "\n".join(
            " | ".join("" if value is None else str(value) for value in row.values())
            for row in result.rows
        )

    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        self._require_connection()
        try:
            return await asyncio.to_thread(self._get_schema_sync, schema_name or self.database)
        except MySQLError as exc:
            logger.error(f"MySQL schema introspection failed: {exc}")
            raise SchemaError(f"Failed to introspect schema: {exc}") from exc

    async def close(self) -> None:
        self._connected = False

    def _connection_kwargs(self, query_timeout: int | None = None) -> dict[str, Any]:
        kwargs = {
            "host": self.host,
            "port": self.port,
            "database": self.database or None,
            "user": self.user,
            "password": self.password,
            "autocommit": True,
            "connection_timeout": query_timeout or self.timeout,
        }
        kwargs.update(self.kwargs)
        return kwargs

    def _test_connection_sync(self) -> None:
        conn = mysql.connector.connect(**self._connection_kwargs())
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT VERSION()")
            cursor.fetchone()
            cursor.close()
        finally:
            conn.close()

    def _execute_sync(
        self,
        query: str,
        params: dict[str, Any] | None,
        returns_rows: bool,
        max_rows: int | None,
        query_timeout: int,
    ) -> QueryResult:
        conn = mysql.connector.connect(**self._connection_kwargs(query_timeout))
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(query, params)
            if not returns_rows or not cursor.with_rows:
                return QueryResult(affected_rows=max(cursor.rowcount, 0))
            fetched = cursor.fetchall()
            columns = [col[0] for col in cursor.description]
            rows = fetched if max_rows is None else fetched[:max_rows]
            return QueryResult(
                rows=rows,
                row_count=len(rows),
                total_rows=len(fetched),
                columns=columns,
            )
        finally:
            cursor.close()
            conn.close()

    def _get_schema_sync(self, schema_name: str) -> list[TableInfo]:
        conn = mysql.connector.connect(**self._connection_kwargs())
        cursor = conn.cursor(dictionary=True)
        try:
            cursor.execute(
                """
                SELECT table_schema, table_name, table_type, table_comment
                FROM information_schema.tables
                WHERE table_schema = %s
                ORDER BY table_name
                """,
                (schema_name,),
            )
            tables = cursor.fetchall()

            table_infos: list[TableInfo] = []
            for table_row in tables:
                table_schema = str(table_row["table_schema"])
                table_name = str(table_row["table_name"])

                cursor.execute(
                    """
                    SELECT c.column_name, c.column_type, c.is_nullable,
                           c.column_default, c.column_key
                    FROM information_schema.columns c
                    WHERE c.table_schema = %s AND c.table_name = %s
                    ORDER BY c.ordinal_position
                    """,
                    (table_schema, table_name),
                )
                columns_rows = cursor.fetchall()

                cursor.execute(
                    """
                    SELECT kcu.column_name,
                           kcu.referenced_table_name AS foreign_table_name,
                           kcu.referenced_column_name AS foreign_column_name
                    FROM information_schema.key_column_usage kcu
                    WHERE kcu.table_schema = %s
                    AND kcu.table_name = %s
                    AND kcu.referenced_table_name IS NOT NULL
                    """,
                    (table_schema, table_name),
                )
                fk_map = {
                    str(row["column_name"]): (
                        str(row["foreign_table_name"]),
                        str(row["foreign_column_name"]),
                    )
                    for row in cursor.fetchall()
                }

                columns: list[ColumnInfo] = []
                for col_row in columns_rows:
                    col_name = str(col_row["column_name"])
                    fk_target = fk_map.get(col_name)
                    columns.append(
                        ColumnInfo(
                            name=col_name,
                            data_type=str(col_row["column_type"]),
                            is_nullable=str(col_row["is_nullable"]).upper() == "YES",
                            default_value=(
                                str(col_row["column_default"])
                                if col_row["column_default"] is not None
                                else None
                            ),
                            is_primary_key=str(col_row["column_key"]).upper() == "PRI",
                            is_foreign_key=fk_target is not None,
                            foreign_table=fk_target[0] if fk_target else None,
                            foreign_column=fk_target[1] if fk_target else None,
                        )
                    )

                table_infos.append(
                    TableInfo(
                        schema=table_schema,
                        table_name=table_name,
                        columns=columns,
                        comment=table_row.get("table_comment") or None,
                        table_type=str(table_row["table_type"]),
                    )
                )

            return table_infos
        finally:
            cursor.close()
            conn.close()
