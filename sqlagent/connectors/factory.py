"""Connector factory for connection strings and database types."""

from __future__ import annotations

import re
from urllib.parse import unquote, urlparse

from sqlagent.connectors.base import BaseConnector
from sqlagent.connectors.mysql import MySQLConnector
from sqlagent.connectors.postgres import PostgresConnector
from sqlagent.connectors.sqlite import SQLiteConnector, parse_sqlite_path
from sqlagent.connectors.sqlserver import SqlServerConnector

_ALIASES = {
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "pg": "postgresql",
    "mysql": "mysql",
    "mariadb": "mysql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
    "mssql": "sqlserver",
    "sqlserver": "sqlserver",
}

SUPPORTED_DATABASE_TYPES = {"sqlite", "postgresql", "mysql", "sqlserver"}

_ADO_SERVER = re.compile(r"(^|;)\s*(server|initial catalog)\s*=", re.IGNORECASE)


def normalize_database_type(database_type: str | None) -> str:
    """Canonical lowercase database type; unknown values pass through lowercased."""
    value = (database_type or "").strip().lower()
    return _ALIASES.get(value, value)


def infer_database_type(connection_string: str) -> str:
    """
    Infer logical database type from a URL scheme.

    ADO.NET strings naming a Server or Initial Catalog are SQL Server; other
    bare paths and Data Source strings are SQLite.
    """
    if _ADO_SERVER.search(connection_string):
        return "sqlserver"
    parsed = urlparse(connection_string)
    scheme = parsed.scheme.split("+")[0].lower()
    if not scheme or len(scheme) == 1 or "data source" in connection_string.lower():
        return "sqlite"
    return normalize_database_type(scheme)


def supports_database_type(database_type: str | None) -> bool:
    return normalize_database_type(database_type) in SUPPORTED_DATABASE_TYPES


def create_connector(
    *,
    connection_string: str,
    database_type: str | None = None,
    timeout: int = 30,
    **kwargs,
) -> BaseConnector:
    """
    Create a connector instance from a connection string and optional type.

    Raises:
        ValueError: For database types without a connector (e.g. oracle)
    """
    target_type = (
        normalize_database_type(database_type)
        if database_type
        else infer_database_type(connection_string)
    )

    if target_type == "sqlite":
        return SQLiteConnector(path=parse_sqlite_path(connection_string), timeout=timeout, **kwargs)

    if target_type in ("postgresql", "mysql"):
        parsed = urlparse(connection_string.replace("postgresql+asyncpg://", "postgresql://"))
        if not parsed.hostname:
            raise ValueError("Invalid database URL: host is required.")
        db_name = parsed.path.lstrip("/")
        if target_type == "postgresql":
            return PostgresConnector(
                host=parsed.hostname,
                port=parsed.port or 5432,
                database=db_name or "postgres",
                user=unquote(parsed.username or "postgres"),
                password=unquote(parsed.password or ""),
                timeout=timeout,
                **kwargs,
            )
        return MySQLConnector(
            host=parsed.hostname,
            port=parsed.port or 3306,
            database=db_name,
            user=unquote(parsed.username or "root"),
            password=unquote(parsed.password or ""),
            timeout=timeout,
            **kwargs,
        )

    if target_type == "sqlserver":
        return SqlServerConnector(connection_string=connection_string, timeout=timeout, **kwargs)

    raise ValueError(f"Unsupported database type: {target_type}")
