"""
Schema Providers

Sources of the DatabaseSchema used for one ask or build. The in-memory
provider serves a fixed schema; the connector provider introspects the
target database each time it is loaded.
"""

import logging
from abc import ABC, abstractmethod

from sqlagent.connectors.base import BaseConnector, TableInfo
from sqlagent.connectors.factory import create_connector, infer_database_type
from sqlagent.models.connection import ConnectionRecord
from sqlagent.models.schema import ColumnDoc, DatabaseSchema, ForeignKeyDoc, TableDoc

logger = logging.getLogger(__name__)


class SchemaProvider(ABC):
    @abstractmethod
    async def load(self, connection: ConnectionRecord) -> DatabaseSchema:
        pass


class InMemorySchemaProvider(SchemaProvider):
    """Returns the same schema for every connection, or one per connection id."""

    def __init__(
        self,
        schema: DatabaseSchema | None = None,
        schemas: dict[str, DatabaseSchema] | None = None,
    ):
        self.schema = schema
        self.schemas = dict(schemas or {})

    async def load(self, connection: ConnectionRecord) -> DatabaseSchema:
        if connection.id in self.schemas:
            return self.schemas[connection.id]
        if self.schema is not None:
            return self.schema
        return DatabaseSchema(name=connection.name, dialect=connection.database_type)


def table_info_to_doc(table: TableInfo) -> TableDoc:
    """Convert connector introspection output into table documentation."""
    return TableDoc(
        name=table.table_name,
        description=table.comment or "",
        columns=[
            ColumnDoc(
                name=column.name,
                data_type=column.data_type,
                nullable=column.is_nullable,
                is_primary_key=column.is_primary_key,
            )
            for column in table.columns
        ],
        foreign_keys=[
            ForeignKeyDoc(
                column=column.name,
                ref_table=column.foreign_table,
                ref_column=column.foreign_column or "",
            )
            for column in table.columns
            if column.is_foreign_key and column.foreign_table
        ],
    )


class ConnectorSchemaProvider(SchemaProvider):
    """Introspects the connection's database through a connector."""

    def __init__(self, connector_factory=create_connector):
        self.connector_factory = connector_factory

    async def load(self, connection: ConnectionRecord) -> DatabaseSchema:
        database_type = connection.database_type or infer_database_type(
            connection.connection_string
        )
        connector: BaseConnector = self.connector_factory(
            connection_string=connection.connection_string, database_type=database_type
        )
        async with connector:
            tables = await connector.get_schema()

        logger.info(
            f"Loaded schema for connection {connection.id}",
            extra={"tables": len(tables), "database_type": database_type},
        )
        return DatabaseSchema(
            name=connection.name,
            dialect=database_type or "",
            tables=[table_info_to_doc(table) for table in tables],
        )
