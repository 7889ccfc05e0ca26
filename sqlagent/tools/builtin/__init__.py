"""Built-in toolsets offered to the model."""

from sqlagent.tools.builtin.chart import ChartWriterTools
from sqlagent.tools.builtin.document import DocumentWriterTools
from sqlagent.tools.builtin.schema import SchemaSearchTools, search_schema_tables
from sqlagent.tools.builtin.sql import SqlWriterTools

__all__ = [
    "ChartWriterTools",
    "DocumentWriterTools",
    "SchemaSearchTools",
    "SqlWriterTools",
    "search_schema_tables",
]
