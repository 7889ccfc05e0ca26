"""Tests for the schema keyword index and FK graph."""

import pytest

from sqlagent.models.schema import DatabaseSchema, ForeignKeyDoc, TableDoc
from sqlagent.schema.index import SchemaIndexer, keyword_variants, tokenize


@pytest.fixture
def index(shop_schema):
    return SchemaIndexer().build(shop_schema)


class TestTokenize:
    def test_lowercases_and_dedupes(self):
        assert tokenize("Top 5 Categories, top sales!") == ["top", "categories", "sales"]

    def test_empty(self):
        assert tokenize(None) == []
        assert tokenize("") == []

    def test_keeps_snake_case(self):
        assert tokenize("order_items by created_at") == ["order_items", "by", "created_at"]


class TestKeywordVariants:
    @pytest.mark.parametrize(
        "token, expected",
        [
            ("categories", "category"),
            ("addresses", "address"),
            ("orders", "order"),
        ],
    )
    def test_singulars(self, token, expected):
        assert expected in keyword_variants(token)

    def test_double_s_is_not_folded(self):
        assert keyword_variants("class") == {"class"}

    def test_snake_case_parts(self):
        assert keyword_variants("order_items") >= {"order_items", "order", "items", "item"}


class TestSchemaIndexer:
    def test_table_keywords(self, index):
        assert index.keyword_to_tables["clients"] == {"customers"}
        assert "products" in index.keyword_to_tables["catalog"]
        assert "orders" in index.keyword_to_tables["order"]

    def test_column_keywords(self, index):
        assert ("products", "category") in index.keyword_to_columns["segment"]
        assert ("order_items", "amount") in index.keyword_to_columns["sales"]

    def test_fk_graph(self, index):
        assert index.neighbors("orders") == ["customers", "order_items"]
        assert index.neighbors("unknown") == []
        assert index.join_path("customers", "products") == [
            "customers",
            "orders",
            "order_items",
            "products",
        ]

    def test_unconnected_tables_have_no_path(self):
        schema = DatabaseSchema(
            tables=[
                TableDoc(name="a"),
                TableDoc(name="b"),
                TableDoc(
                    name="c",
                    foreign_keys=[ForeignKeyDoc(column="x", ref_table=" ", ref_column="id")],
                ),
            ]
        )
        index = SchemaIndexer().build(schema)

        assert index.graph.number_of_edges() == 0
        assert index.join_path("a", "b") == []
        assert index.join_path("a", "missing") == []
