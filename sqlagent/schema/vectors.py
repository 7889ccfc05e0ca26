"""
Schema Vector Store

Chroma-backed store of table embeddings, partitioned by connection id.
Each table is one document with id ``{connection_id}:{table}`` and metadata
carrying the connection id, table name and a content hash of the rendered
document, so unchanged tables can be skipped on re-sync.
"""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any

import chromadb
from chromadb.config import Settings
from chromadb.utils.embedding_functions import OpenAIEmbeddingFunction

from sqlagent.config import get_settings
from sqlagent.models.schema import DatabaseSchema, TableDoc

logger = logging.getLogger(__name__)


class VectorStoreError(Exception):
    """Raised when vector store operations fail."""

    pass


def render_table_document(table: TableDoc) -> str:
    """Text embedded for a table: name, aliases, description and columns."""
    lines = [f"Table: {table.name}"]
    if table.aliases:
        lines.append(f"Aliases: {', '.join(table.aliases)}")
    if table.description:
        lines.append(f"Description: {table.description}")
    for column in table.columns:
        line = f"Column: {column.name}"
        if column.data_type:
            line += f" ({column.data_type})"
        if column.aliases:
            line += f" aka {', '.join(column.aliases)}"
        if column.description:
            line += f" - {column.description}"
        lines.append(line)
    for fk in table.foreign_keys:
        lines.append(f"References: {fk.column} -> {fk.ref_table}.{fk.ref_column}")
    return "\n".join(lines)


def content_hash(document: str) -> str:
    return hashlib.sha256(document.encode("utf-8")).hexdigest()


class SchemaVectorStore:
    """
    Vector store for table embeddings using Chroma.

    Usage:
        store = SchemaVectorStore()
        await store.initialize()

        await store.upsert("conn-1", tables)
        names = await store.search("conn-1", "monthly revenue", top_k=5)
    """

    def __init__(
        self,
        collection_name: str | None = None,
        persist_directory: str | Path | None = None,
        embedding_model: str | None = None,
        openai_api_key: str | None = None,
        embedding_function: Any | None = None,
    ):
        # Only load config if needed (allows tests to avoid config validation)
        if collection_name is None or persist_directory is None or (
            embedding_function is None and (embedding_model is None or openai_api_key is None)
        ):
            config = get_settings()
            self.collection_name = collection_name or config.chroma.collection_name
            self.persist_directory = Path(persist_directory or config.chroma.persist_dir)
            self.embedding_model = embedding_model or config.chroma.embedding_model
            self.openai_api_key = openai_api_key or config.llm.openai_api_key
        else:
            self.collection_name = collection_name
            self.persist_directory = Path(persist_directory)
            self.embedding_model = embedding_model
            self.openai_api_key = openai_api_key

        self.client: chromadb.ClientAPI | None = None
        self.collection: chromadb.Collection | None = None
        self.embedding_function = embedding_function

        logger.info(
            f"SchemaVectorStore initialized: collection={self.collection_name}, "
            f"persist_dir={self.persist_directory}"
        )

    async def initialize(self):
        """
        Create the Chroma client and collection.

        Raises:
            VectorStoreError: If initialization fails
        """
        try:
            self.persist_directory.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(self._init_client)
            logger.info("SchemaVectorStore ready")
        except Exception as e:
            logger.error(f"Failed to initialize SchemaVectorStore: {e}")
            raise VectorStoreError(f"Initialization failed: {e}") from e

    def _init_client(self):
        self.client = chromadb.PersistentClient(
            path=str(self.persist_directory),
            settings=Settings(
                anonymized_telemetry=False,
                allow_reset=True,
            ),
        )

        if self.embedding_function is None:
            self.embedding_function = OpenAIEmbeddingFunction(
                api_key=self.openai_api_key,
                model_name=self.embedding_model,
            )

        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": "cosine"},
            embedding_function=self.embedding_function,
        )

        logger.debug(
            f"Chroma collection '{self.collection_name}' ready "
            f"with {self.collection.count()} documents"
        )

    def _require_collection(self) -> chromadb.Collection:
        if not self.collection:
            raise VectorStoreError("SchemaVectorStore not initialized. Call initialize() first.")
        return self.collection

    @staticmethod
    def _document_id(connection_id: str, table_name: str) -> str:
        return f"{connection_id}:{table_name}"

    async def upsert(self, connection_id: str, tables: list[TableDoc]) -> int:
        """Embed and store tables for a connection. Returns the number written."""
        collection = self._require_collection()
        if not tables:
            return 0

        unique = list({table.name: table for table in tables}.values())
        documents = [render_table_document(table) for table in unique]
        try:
            await asyncio.to_thread(
                collection.upsert,
                ids=[self._document_id(connection_id, table.name) for table in unique],
                documents=documents,
                metadatas=[
                    {
                        "connection_id": connection_id,
                        "table": table.name,
                        "content_hash": content_hash(document),
                    }
                    for table, document in zip(unique, documents, strict=True)
                ],
            )
        except Exception as e:
            logger.error(f"Failed to upsert tables: {e}")
            raise VectorStoreError(f"Failed to upsert tables: {e}") from e

        logger.info(f"Upserted {len(unique)} tables for connection {connection_id}")
        return len(unique)

    async def delete_connection(
        self, connection_id: str, table_names: list[str] | None = None
    ) -> None:
        """Remove all documents of a connection, or only the named tables."""
        collection = self._require_collection()
        try:
            if table_names is None:
                await asyncio.to_thread(collection.delete, where={"connection_id": connection_id})
            elif table_names:
                await asyncio.to_thread(
                    collection.delete,
                    ids=[self._document_id(connection_id, name) for name in table_names],
                )
        except Exception as e:
            logger.error(f"Failed to delete tables: {e}")
            raise VectorStoreError(f"Failed to delete tables: {e}") from e

    async def search(self, connection_id: str, query: str, top_k: int = 8) -> list[str]:
        """Table names of a connection ranked by similarity to ``query``."""
        collection = self._require_collection()
        try:
            results = await asyncio.to_thread(
                collection.query,
                query_texts=[query],
                n_results=max(1, top_k),
                where={"connection_id": connection_id},
            )
        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise VectorStoreError(f"Search failed: {e}") from e

        names: list[str] = []
        metadatas = results.get("metadatas") or [[]]
        for metadata in metadatas[0] or []:
            name = (metadata or {}).get("table")
            if name and name not in names:
                names.append(name)

        logger.debug(f"Vector search for '{query}' returned {len(names)} tables")
        return names

    async def stored_hashes(self, connection_id: str) -> dict[str, str]:
        """Map of table name to stored content hash for a connection."""
        collection = self._require_collection()
        try:
            results = await asyncio.to_thread(
                collection.get,
                where={"connection_id": connection_id},
                include=["metadatas"],
            )
        except Exception as e:
            logger.error(f"Failed to list tables: {e}")
            raise VectorStoreError(f"Failed to list tables: {e}") from e

        hashes: dict[str, str] = {}
        for metadata in results.get("metadatas") or []:
            if metadata and metadata.get("table"):
                hashes[metadata["table"]] = metadata.get("content_hash", "")
        return hashes

    async def is_up_to_date(self, connection_id: str, table: TableDoc) -> bool:
        """True when the stored document for ``table`` matches its current content."""
        hashes = await self.stored_hashes(connection_id)
        return hashes.get(table.name) == content_hash(render_table_document(table))

    async def count(self, connection_id: str | None = None) -> int:
        collection = self._require_collection()
        try:
            if connection_id is None:
                return await asyncio.to_thread(collection.count)
            results = await asyncio.to_thread(
                collection.get, where={"connection_id": connection_id}, include=[]
            )
            return len(results.get("ids") or [])
        except Exception as e:
            logger.error(f"Failed to get count: {e}")
            raise VectorStoreError(f"Failed to get count: {e}") from e


class SchemaVectorIndexer:
    """Keeps a connection's vector documents in line with its current schema."""

    def __init__(self, store: SchemaVectorStore):
        self.store = store

    async def sync(self, connection_id: str, schema: DatabaseSchema) -> dict[str, int]:
        stored = await self.store.stored_hashes(connection_id)
        current = {table.name: table for table in schema.tables}

        changed = [
            table
            for name, table in current.items()
            if stored.get(name) != content_hash(render_table_document(table))
        ]
        removed = [name for name in stored if name not in current]

        if changed:
            await self.store.upsert(connection_id, changed)
        if removed:
            await self.store.delete_connection(connection_id, removed)

        summary = {
            "upserted": len(changed),
            "removed": len(removed),
            "unchanged": len(current) - len(changed),
        }
        logger.info(f"Synced vector index for {connection_id}", extra=summary)
        return summary
