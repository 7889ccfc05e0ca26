"""Tests for the built-in toolsets: write_sql, search_tables, write_chart_option, write_document."""

import json

import pytest

from sqlagent.models.ask import ExecuteType
from sqlagent.tools.base import ToolArgumentError
from sqlagent.tools.builtin import (
    ChartWriterTools,
    DocumentWriterTools,
    SchemaSearchTools,
    SqlWriterTools,
    search_schema_tables,
)
from sqlagent.tools.builtin.document import DOCUMENT_WRITTEN, EMPTY_DOCUMENT
from sqlagent.tools.builtin.sql import COLUMNS_REQUIRED, SQL_WRITTEN, normalize_parameters


class TestWriteSql:
    def test_query_is_captured(self):
        tools = SqlWriterTools()
        message = tools.write_sql(
            sql="SELECT name FROM products WHERE price > @p1",
            execute_type="Query",
            columns=["name"],
            parameters={"@p1": 10},
        )

        assert message == SQL_WRITTEN
        assert tools.result.statements == ["SELECT name FROM products WHERE price > @p1"]
        assert tools.result.parameters == {"p1": 10}
        assert tools.result.execute_type == ExecuteType.QUERY
        assert tools.result.columns == ["name"]

    def test_columns_required_for_query(self):
        tools = SqlWriterTools()
        with pytest.raises(ToolArgumentError) as exc_info:
            tools.write_sql(sql="SELECT 1", execute_type="EChart")
        assert str(exc_info.value) == COLUMNS_REQUIRED
        assert tools.result is None

    def test_non_query_needs_no_columns(self):
        tools = SqlWriterTools()
        tools.write_sql(sql="DELETE FROM orders WHERE id = @p1", execute_type="NonQuery")
        assert tools.result.execute_type == ExecuteType.NON_QUERY

    def test_column_mapping_keys_are_used(self):
        tools = SqlWriterTools()
        tools.write_sql(
            sql="SELECT category, SUM(amount) AS total FROM t GROUP BY category",
            execute_type="EChart",
            columns={"category": "Category", "total": "Total"},
        )
        assert tools.result.columns == ["category", "total"]

    def test_invalid_execute_type(self):
        with pytest.raises(ToolArgumentError, match="execute_type must be one of"):
            SqlWriterTools().write_sql(sql="SELECT 1", execute_type="Report", columns=["1"])

    def test_empty_sql(self):
        with pytest.raises(ToolArgumentError, match="'sql' cannot be empty"):
            SqlWriterTools().write_sql(sql="  ", execute_type="NonQuery")


class TestNormalizeParameters:
    def test_list_form(self):
        assert normalize_parameters([{"name": ":region", "value": "EU"}]) == {"region": "EU"}

    def test_list_item_without_name(self):
        with pytest.raises(ToolArgumentError):
            normalize_parameters([{"value": 1}])

    def test_none(self):
        assert normalize_parameters(None) == {}


class TestSearchTables:
    def test_matches_on_column_and_alias(self, shop_schema):
        names = [table.name for table in search_schema_tables(shop_schema, ["segment"])]
        assert names == ["products"]

    def test_matches_on_description(self, shop_schema):
        names = [table.name for table in search_schema_tables(shop_schema, ["purchases"])]
        assert names == ["orders"]

    def test_no_keywords_returns_first_tables(self, shop_schema):
        names = [table.name for table in search_schema_tables(shop_schema, ["", " "], 2)]
        assert names == ["customers", "products"]

    def test_max_results_is_clamped(self, shop_schema):
        assert len(search_schema_tables(shop_schema, ["id"], 0)) == 1

    def test_tool_returns_json_summaries(self, shop_schema):
        tools = SchemaSearchTools(shop_schema)
        payload = json.loads(tools.search_tables(["purchases"]))

        assert tools.calls == 1
        assert [table["name"] for table in payload] == ["orders"]
        assert "customer_id -> customers.id" in payload[0]["foreign_keys"]


class TestChartAndDocumentTools:
    def test_chart_option_captured(self):
        tools = ChartWriterTools()
        tools.write_chart_option('{"series": [{"type": "bar", "data": {{DATA_PLACEHOLDER_Y}}}]}')
        assert "DATA_PLACEHOLDER_Y" in tools.option

    def test_empty_chart_option(self):
        with pytest.raises(ToolArgumentError):
            ChartWriterTools().write_chart_option("")

    def test_document_written(self):
        tools = DocumentWriterTools()
        assert tools.think("orders reference customers") == "orders reference customers"
        assert tools.write_document("# Shop\n") == DOCUMENT_WRITTEN
        assert tools.document == "# Shop\n"
        assert tools.thoughts == ["orders reference customers"]

    def test_empty_document(self):
        with pytest.raises(ToolArgumentError) as exc_info:
            DocumentWriterTools().write_document("   ")
        assert str(exc_info.value) == EMPTY_DOCUMENT
