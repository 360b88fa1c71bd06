"""Dashboard item conversion, sampling and CSV export."""

import json
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.engine.context import ExecutionContext
from app.engine.dashboard_manager import DashboardManager
from app.engine.utils import (
    calculate_column_statistics,
    convert_output_to_dashboard_item,
    determine_output_type,
    format_value,
    is_missing,
    to_number,
)


@pytest.fixture
def manager() -> DashboardManager:
    return DashboardManager()


@pytest.fixture
def people(make_table):
    return make_table(
        [("name", "string"), ("age", "number")],
        [["ann", 30], ["bob", None], ["ann", 20], ["cy", 40]],
    )


class TestValueHelpers:
    @pytest.mark.parametrize("value", [None, "", "null", "NULL", float("nan")])
    def test_missing(self, value):
        assert is_missing(value)

    def test_present(self):
        assert not is_missing(0)
        assert not is_missing("0")

    def test_to_number(self):
        assert to_number("3") == 3 and isinstance(to_number("3"), int)
        assert to_number("3.0") == 3.0 and isinstance(to_number("3.0"), float)
        assert to_number(True) is None
        assert to_number("abc") is None
        assert to_number(" ") is None

    def test_format_value(self):
        assert format_value(None) == "null"
        assert format_value(True) == "true"
        assert format_value(2.0) == "2"
        assert format_value(2.5) == "2.50"
        assert format_value({"a": 1}) == '{"a": 1}'


def test_column_statistics(people):
    name, age = calculate_column_statistics(people)
    assert name == {
        "columnName": "name",
        "type": "string",
        "count": 4,
        "nullCount": 0,
        "uniqueCount": 3,
        "mode": "ann",
    }
    assert age["nullCount"] == 1
    assert (age["min"], age["max"], age["mean"], age["median"]) == (20, 40, 30, 30)


def test_determine_output_type(people):
    assert determine_output_type(people) == "table"
    assert determine_output_type([people]) == "table"
    assert determine_output_type({"chartType": "bar"}) == "chart"
    assert determine_output_type({"summary": "s"}) == "statistics"
    assert determine_output_type(None) == "text"


def test_convert_table_item(people):
    item = convert_output_to_dashboard_item("n1", "People", "table", people)
    assert item["type"] == "table"
    assert item["nodeId"] == "n1"
    assert item["rows"][0] == {"name": "ann", "age": 30}
    assert item["metadata"]["totalRows"] == 4
    assert item["metadata"]["totalColumns"] == 2


def test_convert_chart_requires_chart_type():
    assert convert_output_to_dashboard_item("n1", "Chart", "chart", {"data": []}) is None
    item = convert_output_to_dashboard_item(
        "n1", "Chart", "chart", {"chartType": "pie", "data": [{"id": "a", "value": 1}], "dataRows": 7}
    )
    assert item["chartType"] == "pie"
    assert item["metadata"]["totalRows"] == 7


def test_process_outputs_prefers_node_items(manager, people):
    ctx = ExecutionContext("n1")
    ctx.add_dashboard_item({"id": "custom"})
    assert manager.process_node_outputs("n1", "People", [people], ctx) == [{"id": "custom"}]


def test_process_outputs_builds_table_items(manager, people):
    items = manager.process_node_outputs("n1", "People", [people, {"not": "a table"}])
    assert len(items) == 1
    assert items[0]["id"].startswith("n1-table-0-")
    assert items[0]["title"] == "People - Output 1"
    assert items[0]["description"] == "4 rows, 2 columns"


def test_sample_is_deterministic_with_seed(manager, make_table):
    table = make_table([("n", "number")], [[i] for i in range(50)])
    first = manager.sample_table_data(table, max_rows=5, seed=7)
    second = manager.sample_table_data(table, max_rows=5, seed=7)
    assert first["rows"] == second["rows"]
    assert first["sampleSize"] == 5
    assert first["totalRows"] == 50
    # Sampled rows keep table order
    assert first["rows"] == sorted(first["rows"])


def test_format_table_for_agent(manager, people):
    text = manager.format_table_for_agent(people)
    assert text.startswith("**Table Data (4 of 4 rows)**")
    assert "- age (number)" in text
    assert "| name | age |" in text
    assert "avg: 30.00, range: 20 - 40" in text


class TestCsvExport:
    def test_table(self, manager):
        item = {
            "type": "table",
            "columns": [{"name": "a"}, {"name": "b"}],
            "rows": [{"a": 1, "b": None}, {"a": "x,y", "b": 2}],
        }
        assert manager.export_item_to_csv(item) == 'a,b\n1,\n"x,y",2'

    def test_statistics(self, manager):
        item = {"type": "statistics", "metrics": {"Rows": 3}, "details": {"ratio": 0.5}}
        assert manager.export_item_to_csv(item) == "Metric,Value\nRows,3\nratio,0.50"

    def test_series_chart_flattens_with_series_column(self, manager):
        item = {
            "type": "chart",
            "data": [{"id": "s1", "data": [{"x": 1, "y": 2}]}, {"id": "s2", "data": [{"x": 1, "y": 3}]}],
        }
        assert manager.export_item_to_csv(item) == "series,x,y\ns1,1,2\ns2,1,3"

    def test_persisted_chart_snapshot(self, manager):
        item = {"type": "chart", "data": {"dataSnapshot": json.dumps([{"id": "a", "value": 2}])}}
        assert manager.export_item_to_csv(item) == "id,value\na,2"

    def test_empty_chart(self, manager):
        assert manager.export_item_to_csv({"type": "chart", "data": []}) == "No data available for export"

    def test_unsupported(self, manager):
        assert manager.export_item_to_csv({"type": "text"}) == "Unsupported format for CSV export"


async def test_persist_items_collects_failures(manager):
    service = AsyncMock()
    service.db = MagicMock()
    service.save_item.side_effect = [None, RuntimeError("db down")]
    result = await manager.persist_items(
        service, uuid4(), uuid4(), "n1", [{"id": "one"}, {"id": "two"}]
    )
    assert result == {"success": False, "saved_count": 1, "errors": ["two: db down"]}
    assert service.db.begin_nested.call_count == 2
