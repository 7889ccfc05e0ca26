"""Tests for chart column selection and data injection."""

import json

import pytest

from sqlagent.visualization.injector import (
    infer_chart_type,
    inject_chart_data,
    is_identifier_column,
    select_chart_columns,
)

ROWS = [
    {"id": 1, "category": "Electronics", "total_sales": 900.0},
    {"id": 2, "category": "Furniture", "total_sales": 160.0},
]

TEMPLATE = json.dumps(
    {
        "xAxis": {"type": "category", "data": "{{DATA_PLACEHOLDER_X}}"},
        "series": [{"type": "bar", "data": "{{DATA_PLACEHOLDER_Y}}"}],
    }
).replace('"{{DATA_PLACEHOLDER_X}}"', "{{DATA_PLACEHOLDER_X}}").replace(
    '"{{DATA_PLACEHOLDER_Y}}"', "{{DATA_PLACEHOLDER_Y}}"
)


class TestColumnSelection:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("id", True),
            ("customer_id", True),
            ("orderId", True),
            ("UUID", True),
            ("category", False),
            ("paid", False),
        ],
    )
    def test_identifier_columns(self, name, expected):
        assert is_identifier_column(name) is expected

    def test_dimension_and_measure(self):
        assert select_chart_columns(["id", "category", "total_sales"], ROWS[0]) == (
            "category",
            "total_sales",
        )

    def test_temporal_dimension(self):
        row = {"month": "2024-01", "revenue": 10}
        assert select_chart_columns(["revenue", "month"], row) == ("month", "revenue")

    def test_descriptive_text_is_not_a_dimension(self):
        row = {"description": "Long free text", "region": "EU", "amount": 3}
        assert select_chart_columns(["description", "region", "amount"], row) == (
            "region",
            "amount",
        )

    def test_falls_back_to_declaration_order(self):
        row = {"a": 1, "b": 2}
        assert select_chart_columns(["a", "b"], row) == ("a", "b")

    def test_single_column(self):
        assert select_chart_columns(["name"], {"name": "x"}) == ("name", None)
        assert select_chart_columns(["id"], {"id": 1}) == (None, None)


class TestInjectChartData:
    def test_axis_placeholders(self):
        result = inject_chart_data(TEMPLATE, ROWS)

        assert result.ok
        option = json.loads(result.option)
        assert option["xAxis"]["data"] == ["Electronics", "Furniture"]
        assert option["series"][0]["data"] == [900.0, 160.0]
        assert result.dimension == "category"
        assert result.measure == "total_sales"

    def test_whole_dataset_placeholder(self):
        result = inject_chart_data('{"dataset": {"source": {DATA_PLACEHOLDER}}}', ROWS)
        assert json.loads(result.option)["dataset"]["source"] == ROWS
        assert result.replaced == ["{DATA_PLACEHOLDER}"]

    def test_template_without_placeholders_is_unchanged(self):
        result = inject_chart_data('{"series": []}', ROWS)
        assert result.option == '{"series": []}'
        assert result.replaced == []
        assert result.ok

    def test_no_rows(self):
        result = inject_chart_data(TEMPLATE, [])
        assert result.option == TEMPLATE
        assert result.diagnostic == "no rows to inject"
        assert not result.ok

    def test_empty_template(self):
        result = inject_chart_data(None, ROWS)
        assert result.option == ""
        assert result.diagnostic == "empty chart option template"

    def test_malformed_rows_do_not_raise(self):
        result = inject_chart_data(TEMPLATE, [None])
        assert result.option == TEMPLATE
        assert result.diagnostic.startswith("injection failed")


class TestInferChartType:
    def test_series_list(self):
        assert infer_chart_type('{"series": [{"type": "line"}]}') == "line"

    def test_series_object(self):
        assert infer_chart_type('{"series": {"type": "pie"}}') == "pie"

    @pytest.mark.parametrize("option", ["not json", "[]", '{"series": []}', None])
    def test_default(self, option):
        assert infer_chart_type(option) == "bar"
        assert infer_chart_type(option, default="table") == "table"
