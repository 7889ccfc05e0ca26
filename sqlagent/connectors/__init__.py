"""Target database connectors."""

from sqlagent.connectors.base import (
    BaseConnector,
    ColumnInfo,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryResult,
    SchemaError,
    TableInfo,
)
from sqlagent.connectors.factory import (
    create_connector,
    infer_database_type,
    normalize_database_type,
    supports_database_type,
)
from sqlagent.connectors.mysql import MySQLConnector
from sqlagent.connectors.postgres import PostgresConnector
from sqlagent.connectors.sqlite import SQLiteConnector
from sqlagent.connectors.sqlserver import SqlServerConnector

__all__ = [
    "BaseConnector",
    "ColumnInfo",
    "ConnectionError",
    "ConnectorError",
    "QueryError",
    "QueryResult",
    "SchemaError",
    "TableInfo",
    "create_connector",
    "infer_database_type",
    "normalize_database_type",
    "supports_database_type",
    "MySQLConnector",
    "PostgresConnector",
    "SQLiteConnector",
    "SqlServerConnector",
]
