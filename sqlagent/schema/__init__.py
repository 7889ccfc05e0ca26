"""
Schema Module

Schema indexing, context retrieval, vector storage and schema providers.
"""

from sqlagent.schema.index import SchemaIndex, SchemaIndexer, tokenize
from sqlagent.schema.provider import (
    ConnectorSchemaProvider,
    InMemorySchemaProvider,
    SchemaProvider,
)
from sqlagent.schema.retriever import KeywordRetriever, SchemaRetriever, VectorRetriever
from sqlagent.schema.vectors import SchemaVectorIndexer, SchemaVectorStore, VectorStoreError

__all__ = [
    "SchemaIndex",
    "SchemaIndexer",
    "tokenize",
    "ConnectorSchemaProvider",
    "InMemorySchemaProvider",
    "SchemaProvider",
    "KeywordRetriever",
    "SchemaRetriever",
    "VectorRetriever",
    "SchemaVectorIndexer",
    "SchemaVectorStore",
    "VectorStoreError",
]
