"""
PostgreSQL Connector

Async PostgreSQL connector using an asyncpg connection pool. Statements use
``$n`` placeholders; the name-keyed parameter dict (``{"1": ..., "2": ...}``)
is turned into the positional argument list asyncpg expects.
"""

import logging
import re
import time
from typing import Any

import asyncpg

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

_POSITION = re.compile(r"\$(\d+)")
_COMMAND_COUNT = re.compile(r"(\d+)\s*$")


def positional_args(query: str, params: dict[str, Any] | None) -> list[Any]:
    """Order parameter values by the highest ``$n`` referenced in ``query``."""
    if not params:
        return []
    highest = max((int(n) for n in _POSITION.findall(query)), default=0)
    args: list[Any] = []
    for position in range(1, highest + 1):
        key = str(position)
        if key not in params and f"p{position}" not in params:
            raise QueryError(f"Missing value for parameter ${position}")
        args.append(params.get(key, params.get(f"p{position}")))
    return args


class PostgresConnector(BaseConnector):
    """PostgreSQL database connector using asyncpg."""

    dialect = "postgresql"

    def __init__(
        self,
        host: str,
        port: int = 5432,
        database: str = "postgres",
        user: str = "postgres",
        password: str = "",
        pool_size: int = 5,
        timeout: int = 30,
        **kwargs: Any,
    ):
        super().__init__(timeout=timeout, **kwargs)
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        if self._connected and self._pool:
            logger.debug("Already connected, skipping connection")
            return

        try:
            logger.info(f"Connecting to PostgreSQL at {self.host}:{self.port}/{self.database}")
            self._pool = await asyncpg.create_pool(
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password,
                min_size=1,
                max_size=self.pool_size,
                command_timeout=self.timeout,
                **self.kwargs,
            )
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            self._connected = True
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"PostgreSQL connection failed: {e}")
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
        *,
        returns_rows: bool = True,
        max_rows: int | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        start_time = time.perf_counter()
        query_timeout = timeout or self.timeout
        args = positional_args(query, params)

        try:
            async with self._pool.acquire() as conn:
                if not returns_rows:
                    status = await conn.execute(query, *args, timeout=query_timeout)
                    match = _COMMAND_COUNT.search(status or "")
                    return QueryResult(
                        affected_rows=int(match.group(1)) if match else 0,
                        execution_time_ms=(time.perf_counter() - start_time) * 1000,
                    )

                records = await conn.fetch(query, *args, timeout=query_timeout)
        except asyncpg.QueryCanceledError as e:
            logger.error(f"Query timed out after {query_timeout}s: {query[:100]}...")
            raise QueryError(f"Query timeout ({query_timeout}s)") from e
        except asyncpg.PostgresError as e:
            logger.error(f"Query failed: {e}\nQuery: {query[:200]}...")
            raise QueryError(f"Query execution failed: {e}") from e

        columns = list(records[0].keys()) if records else []
        limited = records if max_rows is None else records[:max_rows]
        rows = [dict(record) for record in limited]
        execution_time_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            f"Query executed in {execution_time_ms:.2f}ms, returned {len(rows)} of {len(records)} rows"
        )
        return QueryResult(
            rows=rows,
            row_count=len(rows),
            total_rows=len(records),
            columns=columns,
            execution_time_ms=execution_time_ms,
        )

    async def explain(self, query: str, params: dict[str, Any] | None = None) -> str:
        result = await self.execute(f"EXPLAIN {query}", params)
        return "\n".join(str(next(iter(row.values()), "")) for row in result.rows)

    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        if not self._connected or not self._pool:
            raise ConnectionError("Not connected to database. Call connect() first.")

        schema_filter = schema_name or "public"
        try:
            async with self._pool.acquire() as conn:
                tables = await conn.fetch(
                    """
                    SELECT t.table_schema, t.table_name, t.table_type,
                           obj_description(format('%I.%I', t.table_schema, t.table_name)::regclass)
                               AS comment
                    FROM information_schema.tables t
                    WHERE t.table_schema = $1
                    AND t.table_type IN ('BASE TABLE', 'VIEW')
                    ORDER BY t.table_name
                    """,
                    schema_filter,
                )

                table_infos = []
                for table_row in tables:
                    table_schema = table_row["table_schema"]
                    table_name = table_row["table_name"]
                    full_table_name = f'"{table_schema}"."{table_name}"'

                    columns = await conn.fetch(
                        """
                        SELECT column_name, data_type, is_nullable, column_default
                        FROM information_schema.columns
                        WHERE table_schema = $1 AND table_name = $2
                        ORDER BY ordinal_position
                        """,
                        table_schema,
                        table_name,
                    )
                    pk_rows = await conn.fetch(
                        """
                        SELECT a.attname
                        FROM pg_index i
                        JOIN pg_attribute a ON a.attrelid = i.indrelid
                            AND a.attnum = ANY(i.indkey)
                        WHERE i.indrelid = $1::regclass
                        AND i.indisprimary
                        """,
                        full_table_name,
                    )
                    pk_columns = {row["attname"] for row in pk_rows}
                    fk_rows = await conn.fetch(
                        """
                        SELECT
                            kcu.column_name,
                            ccu.table_name AS foreign_table_name,
                            ccu.column_name AS foreign_column_name
                        FROM information_schema.table_constraints AS tc
                        JOIN information_schema.key_column_usage AS kcu
                            ON tc.constraint_name = kcu.constraint_name
                            AND tc.table_schema = kcu.table_schema
                        JOIN information_schema.constraint_column_usage AS ccu
                            ON ccu.constraint_name = tc.constraint_name
                            AND ccu.table_schema = tc.table_schema
                        WHERE tc.constraint_type = 'FOREIGN KEY'
                        AND tc.table_schema = $1
                        AND tc.table_name = $2
                        """,
                        table_schema,
                        table_name,
                    )
                    fk_map = {
                        row["column_name"]: (row["foreign_table_name"], row["foreign_column_name"])
                        for row in fk_rows
                    }

                    column_infos = []
                    for col in columns:
                        fk_target = fk_map.get(col["column_name"])
                        column_infos.append(
                            ColumnInfo(
                                name=col["column_name"],
                                data_type=col["data_type"],
                                is_nullable=col["is_nullable"] == "YES",
                                default_value=col["column_default"],
                                is_primary_key=col["column_name"] in pk_columns,
                                is_foreign_key=fk_target is not None,
                                foreign_table=fk_target[0] if fk_target else None,
                                foreign_column=fk_target[1] if fk_target else None,
                            )
                        )

                    table_infos.append(
                        TableInfo(
                            schema=table_schema,
                            table_name=table_name,
                            columns=column_infos,
                            comment=table_row["comment"],
                            table_type=table_row["table_type"],
                        )
                    )

                logger.info(
                    f"Introspected schema '{schema_filter}': found {len(table_infos)} tables"
                )
                return table_infos

        except asyncpg.PostgresError as e:
            logger.error(f"Schema introspection failed: {e}")
            raise SchemaError(f"Failed to introspect schema: {e}") from e

    async def close(self) -> None:
        if not self._pool:
            logger.debug("No connection pool to close")
            return
        await self._pool.close()
        self._pool = None
        self._connected = False
        logger.info("PostgreSQL connection closed")
