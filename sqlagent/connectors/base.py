"""
Base Database Connector

Abstract base class for target-database connectors used by schema
introspection and the executor sandbox.

All connectors implement:
- connect(): validate credentials or create a pool
- execute(): run one parameterized statement (rows or affected-row count)
- explain(): return the native execution plan as text
- get_schema(): introspect tables, columns and foreign keys
- close(): release connections
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ColumnInfo(BaseModel):
    """Information about a database column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Column data type")
    is_nullable: bool = Field(default=True, description="Whether column can be NULL")
    default_value: str | None = Field(None, description="Default value if any")
    is_primary_key: bool = Field(default=False, description="Is part of primary key")
    is_foreign_key: bool = Field(default=False, description="Is a foreign key")
    foreign_table: str | None = Field(None, description="Referenced table if FK")
    foreign_column: str | None = Field(None, description="Referenced column if FK")


class TableInfo(BaseModel):
    """Information about a database table."""

    schema_name: str = Field(default="", alias="schema", description="Schema/database name")
    table_name: str = Field(..., description="Table name")
    columns: list[ColumnInfo] = Field(..., description="List of columns")
    comment: str | None = Field(None, description="Table comment if the database stores one")
    table_type: str = Field(default="TABLE", description="TABLE, VIEW, etc.")

    model_config = ConfigDict(populate_by_name=True)


class QueryResult(BaseModel):
    """Result from statement execution."""

    rows: list[dict[str, Any]] = Field(default_factory=list, description="Returned rows")
    row_count: int = Field(default=0, description="Number of rows returned")
    total_rows: int | None = Field(
        None, description="Rows produced before the max_rows cap (None when not a read)"
    )
    columns: list[str] = Field(default_factory=list, description="Column names")
    affected_rows: int | None = Field(None, description="Rows changed by a non-read statement")
    execution_time_ms: float = Field(default=0.0, description="Execution time in ms")

    @property
    def truncated(self) -> bool:
        return self.total_rows is not None and self.total_rows > self.row_count


class ConnectorError(Exception):
    """Base exception for connector errors."""


class ConnectionError(ConnectorError):
    """Error establishing or managing database connection."""


class QueryError(ConnectorError):
    """Error executing database query."""


class SchemaError(ConnectorError):
    """Error introspecting database schema."""


class BaseConnector(ABC):
    """
    Abstract base class for database connectors.

    Statements arrive in the dialect's canonical placeholder style produced
    by the post-processor (``@name`` for SQLite and MySQL, ``$n`` for
    PostgreSQL) together with a name-keyed parameter dict. Each connector
    binds them the way its driver expects.

    Usage:
        async with create_connector(database_url="sqlite:///shop.db") as connector:
            result = await connector.execute(
                "SELECT name FROM users WHERE age > @p1", {"p1": 18}, max_rows=100
            )
    """

    dialect: str = ""

    def __init__(self, timeout: int = 30, **kwargs: Any):
        self.timeout = timeout
        self.kwargs = kwargs
        self._connected = False

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection (idempotent).

        Raises:
            ConnectionError: If connection fails
        """

    @abstractmethod
    async def execute(
        self,
        query: str,
        params: dict[str, Any] | None = None,
        *,
        returns_rows: bool = True,
        max_rows: int | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """
        Execute one statement.

        Args:
            query: SQL in the dialect's canonical placeholder style
            params: Parameter values keyed by placeholder name or position
            returns_rows: Fetch rows (reads) or report affected rows (writes)
            max_rows: Cap on returned rows; ``total_rows`` reports the full count
            timeout: Query timeout in seconds (overrides default)

        Raises:
            QueryError: If query execution fails
            ConnectionError: If not connected
        """

    @abstractmethod
    async def explain(self, query: str, params: dict[str, Any] | None = None) -> str:
        """Return the native execution plan for ``query`` as text."""

    @abstractmethod
    async def get_schema(self, schema_name: str | None = None) -> list[TableInfo]:
        """
        Introspect database schema.

        Raises:
            SchemaError: If schema introspection fails
        """

    @abstractmethod
    async def close(self) -> None:
        """Release connections (idempotent)."""

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _require_connection(self) -> None:
        if not self._connected:
            raise ConnectionError("Not connected to database. Call connect() first.")

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"<{self.__class__.__name__} {self.dialect} ({status})>"
