"""
Unit tests for SchemaVectorStore

Chroma is replaced by a mock collection; these tests cover the id layout,
metadata, connection filtering and the incremental sync.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sqlagent.models.schema import DatabaseSchema
from sqlagent.schema.vectors import (
    SchemaVectorIndexer,
    SchemaVectorStore,
    VectorStoreError,
    content_hash,
    render_table_document,
)


@pytest.fixture
def collection():
    return MagicMock()


@pytest.fixture
def store(tmp_path, collection):
    store = SchemaVectorStore(
        collection_name="test_tables",
        persist_directory=tmp_path / "chroma",
        embedding_function=MagicMock(),
    )
    store.collection = collection
    return store


class TestRenderTableDocument:
    def test_includes_columns_and_references(self, shop_schema):
        document = render_table_document(shop_schema.get_table("orders"))

        assert document.startswith("Table: orders")
        assert "Description: Customer purchases" in document
        assert "Column: customer_id (INTEGER)" in document
        assert "References: customer_id -> customers.id" in document

    def test_hash_is_stable(self, shop_schema):
        document = render_table_document(shop_schema.get_table("products"))
        assert content_hash(document) == content_hash(document)
        assert len(content_hash(document)) == 64


class TestSchemaVectorStore:
    @pytest.mark.asyncio
    async def test_requires_initialization(self, tmp_path):
        store = SchemaVectorStore(
            collection_name="x", persist_directory=tmp_path, embedding_function=MagicMock()
        )
        with pytest.raises(VectorStoreError, match="not initialized"):
            await store.count()

    @pytest.mark.asyncio
    async def test_upsert_ids_and_metadata(self, store, collection, shop_schema):
        written = await store.upsert("shop", shop_schema.tables[:2])

        assert written == 2
        kwargs = collection.upsert.call_args.kwargs
        assert kwargs["ids"] == ["shop:customers", "shop:products"]
        assert kwargs["metadatas"][0]["connection_id"] == "shop"
        assert kwargs["metadatas"][0]["table"] == "customers"
        assert kwargs["metadatas"][0]["content_hash"] == content_hash(kwargs["documents"][0])

    @pytest.mark.asyncio
    async def test_upsert_nothing(self, store, collection):
        assert await store.upsert("shop", []) == 0
        collection.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_search_filters_by_connection(self, store, collection):
        collection.query.return_value = {
            "metadatas": [[{"table": "orders"}, {"table": "orders"}, {"table": "customers"}]]
        }

        names = await store.search("shop", "orders per client", top_k=3)

        assert names == ["orders", "customers"]
        kwargs = collection.query.call_args.kwargs
        assert kwargs["where"] == {"connection_id": "shop"}
        assert kwargs["n_results"] == 3

    @pytest.mark.asyncio
    async def test_search_error_is_wrapped(self, store, collection):
        collection.query.side_effect = RuntimeError("index corrupted")
        with pytest.raises(VectorStoreError, match="Search failed"):
            await store.search("shop", "q")

    @pytest.mark.asyncio
    async def test_count_per_connection(self, store, collection):
        collection.get.return_value = {"ids": ["shop:a", "shop:b"]}
        collection.count.return_value = 10

        assert await store.count("shop") == 2
        assert await store.count() == 10

    @pytest.mark.asyncio
    async def test_delete_named_tables(self, store, collection):
        await store.delete_connection("shop", ["orders"])
        collection.delete.assert_called_once_with(ids=["shop:orders"])

    @pytest.mark.asyncio
    async def test_delete_whole_connection(self, store, collection):
        await store.delete_connection("shop")
        collection.delete.assert_called_once_with(where={"connection_id": "shop"})

    @pytest.mark.asyncio
    async def test_is_up_to_date(self, store, collection, shop_schema):
        table = shop_schema.get_table("orders")
        collection.get.return_value = {
            "metadatas": [
                {"table": "orders", "content_hash": content_hash(render_table_document(table))}
            ]
        }
        assert await store.is_up_to_date("shop", table) is True
        assert await store.is_up_to_date("shop", shop_schema.get_table("products")) is False


class TestSchemaVectorIndexer:
    @pytest.mark.asyncio
    async def test_sync_upserts_changed_and_removes_stale(self, shop_schema):
        orders = shop_schema.get_table("orders")
        store = MagicMock()
        store.stored_hashes = AsyncMock(
            return_value={
                "orders": content_hash(render_table_document(orders)),
                "customers": "outdated",
                "legacy": "whatever",
            }
        )
        store.upsert = AsyncMock(return_value=3)
        store.delete_connection = AsyncMock()

        summary = await SchemaVectorIndexer(store).sync("shop", shop_schema)

        assert summary == {"upserted": 3, "removed": 1, "unchanged": 1}
        upserted = [table.name for table in store.upsert.call_args.args[1]]
        assert upserted == ["customers", "products", "order_items"]
        store.delete_connection.assert_awaited_once_with("shop", ["legacy"])

    @pytest.mark.asyncio
    async def test_sync_without_changes(self):
        store = MagicMock()
        store.stored_hashes = AsyncMock(return_value={})
        store.upsert = AsyncMock()
        store.delete_connection = AsyncMock()

        summary = await SchemaVectorIndexer(store).sync("shop", DatabaseSchema())

        assert summary == {"upserted": 0, "removed": 0, "unchanged": 0}
        store.upsert.assert_not_called()
        store.delete_connection.assert_not_called()
