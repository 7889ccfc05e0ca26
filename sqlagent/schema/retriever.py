"""
Schema Context Retriever

Selects the tables relevant to a question. Two strategies share one
interface: keyword scoring against the schema index, and similarity search
over a per-connection vector store that falls back to keywords when the store
has nothing for the connection.

Every strategy returns a subset of the schema's tables, no larger than the
requested bound, and never empty when the schema has at least one table.
"""

import logging
from abc import ABC, abstractmethod

from sqlagent.models.schema import DatabaseSchema, SchemaContext, TableDoc
from sqlagent.schema.index import SchemaIndex, keyword_variants, tokenize
from sqlagent.schema.vectors import SchemaVectorStore, VectorStoreError

logger = logging.getLogger(__name__)

TABLE_HIT_WEIGHT = 2
COLUMN_HIT_WEIGHT = 1


class SchemaRetriever(ABC):
    """Question -> ranked, bounded schema context."""

    @abstractmethod
    async def retrieve(
        self,
        question: str,
        schema: DatabaseSchema,
        index: SchemaIndex,
        top_k: int,
        connection_id: str | None = None,
    ) -> SchemaContext:
        pass


def score_tables(question: str, index: SchemaIndex) -> dict[str, int]:
    """Keyword hit score per table name."""
    scores: dict[str, int] = {}
    terms: set[str] = set()
    for token in tokenize(question):
        terms.update(keyword_variants(token))

    for term in terms:
        for table_name in index.keyword_to_tables.get(term, ()):
            scores[table_name] = scores.get(table_name, 0) + TABLE_HIT_WEIGHT
        for table_name, _column in index.keyword_to_columns.get(term, ()):
            scores[table_name] = scores.get(table_name, 0) + COLUMN_HIT_WEIGHT
    return scores


def rank_by_keywords(
    question: str, schema: DatabaseSchema, index: SchemaIndex, top_k: int
) -> list[TableDoc]:
    limit = max(1, top_k)
    scores = score_tables(question, index)
    ordered = [
        table
        for _position, table in sorted(
            enumerate(schema.tables),
            key=lambda item: (-scores.get(item[1].name, 0), item[0]),
        )
        if scores.get(table.name, 0) > 0
    ]

    if not ordered:
        return list(schema.tables[:limit])

    selected = ordered[:limit]
    # Pull in join partners of matched tables while there is room
    if len(selected) < limit:
        chosen = {table.name for table in selected}
        for table in list(selected):
            for neighbor in index.neighbors(table.name):
                neighbor_doc = schema.get_table(neighbor)
                if neighbor_doc is None or neighbor_doc.name in chosen:
                    continue
                selected.append(neighbor_doc)
                chosen.add(neighbor_doc.name)
                if len(selected) >= limit:
                    break
            if len(selected) >= limit:
                break
    return selected


class KeywordRetriever(SchemaRetriever):
    async def retrieve(
        self,
        question: str,
        schema: DatabaseSchema,
        index: SchemaIndex,
        top_k: int,
        connection_id: str | None = None,
    ) -> SchemaContext:
        tables = rank_by_keywords(question, schema, index, top_k)
        logger.debug(f"Keyword retrieval selected {len(tables)} tables")
        return SchemaContext(tables=tables)


class VectorRetriever(SchemaRetriever):
    """
    Similarity retrieval over a SchemaVectorStore.

    Falls back to keyword ranking when no store is configured, the store has
    no documents for the connection, or the lookup fails.
    """

    def __init__(
        self,
        store: SchemaVectorStore | None,
        fallback: SchemaRetriever | None = None,
    ):
        self.store = store
        self.fallback = fallback or KeywordRetriever()

    async def retrieve(
        self,
        question: str,
        schema: DatabaseSchema,
        index: SchemaIndex,
        top_k: int,
        connection_id: str | None = None,
    ) -> SchemaContext:
        if self.store is None or not connection_id:
            return await self.fallback.retrieve(question, schema, index, top_k, connection_id)

        limit = max(1, top_k)
        try:
            if await self.store.count(connection_id) == 0:
                logger.info(f"No vector documents for {connection_id}, using keyword retrieval")
                return await self.fallback.retrieve(
                    question, schema, index, top_k, connection_id
                )
            names = await self.store.search(connection_id, question, top_k=limit)
        except VectorStoreError as e:
            logger.warning(
                f"Vector retrieval failed, using keyword retrieval: {e}",
                extra={"connection_id": connection_id},
            )
            return await self.fallback.retrieve(question, schema, index, top_k, connection_id)

        tables: list[TableDoc] = []
        for name in names:
            table = schema.get_table(name)
            if table is not None and table not in tables:
                tables.append(table)
            if len(tables) >= limit:
                break

        if not tables:
            return await self.fallback.retrieve(question, schema, index, top_k, connection_id)
        return SchemaContext(tables=tables)
