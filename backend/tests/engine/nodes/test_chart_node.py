"""Chart data processors and the chart sink node."""

import pytest

from app.engine import charts
from app.engine.nodes.chart import ChartNodeModel
from app.engine.settings import NodeSettings


@pytest.fixture
def sales(make_table):
    return make_table(
        [("month", "string"), ("revenue", "number"), ("cost", "number"), ("team", "string")],
        [
            ["Mar", 30, 10, "east"],
            ["jan", 10, 0, "west"],
            ["Feb", 0, 0, "east"],
            [None, 5, "n/a", "west"],
        ],
    )


class TestProcessors:
    def test_bar_drops_zero_rows_and_sorts_by_index(self, sales):
        data = charts.process_bar(sales, {"indexBy": "month", "valueColumns": ["revenue", "cost"]}, {})
        assert data == [
            {"month": "jan", "revenue": 10, "cost": 0},
            {"month": "Mar", "revenue": 30, "cost": 10},
            {"month": "Unknown", "revenue": 5, "cost": 0},
        ]

    def test_bar_sort_by_value_descending(self, sales):
        config = {"sorting": {"sortBy": "value", "direction": "desc", "valueColumn": "revenue"}}
        data = charts.process_bar(sales, {"indexBy": "month", "valueColumns": ["revenue"]}, config)
        assert [d["revenue"] for d in data] == [30, 10, 5]

    def test_pie(self, sales):
        data = charts.process_pie(
            sales, {"idColumn": "month", "valueColumn": "revenue"}, {"sortByValue": True}
        )
        assert [d["id"] for d in data] == ["Mar", "jan", "Unknown"]
        assert data[0] == {"id": "Mar", "label": "Mar", "value": 30}

    def test_line_one_series_per_y_column(self, sales):
        data = charts.process_line(
            sales, {"xColumn": "month", "yColumns": ["revenue", "cost"]}, {"sorting": {"enabled": False}}
        )
        assert [s["id"] for s in data] == ["revenue", "cost"]
        # "n/a" cannot be plotted, so that point is missing from the cost series
        assert len(data[0]["data"]) == 4
        assert len(data[1]["data"]) == 3

    def test_line_grouped_by_id_column(self, sales):
        data = charts.process_line(
            sales, {"xColumn": "month", "yColumns": ["revenue"], "idColumn": "team"}, {}
        )
        assert {s["id"] for s in data} == {"east", "west"}
        east = next(s for s in data if s["id"] == "east")
        assert [p["x"] for p in east["data"]] == ["Feb", "Mar"]

    def test_scatter_series_and_size(self, sales):
        data = charts.process_scatter(
            sales,
            {"xColumn": "revenue", "yColumn": "cost", "seriesColumn": "team", "sizeColumn": "revenue"},
            {},
        )
        east = next(s for s in data if s["id"] == "east")
        assert east["data"] == [{"x": 30, "y": 10, "size": 30}, {"x": 0, "y": 0}]

    def test_heatmap(self, sales):
        data = charts.process_heatmap(
            sales, {"xColumn": "month", "yColumn": "team", "valueColumn": "cost"}, {}
        )
        assert data[-1] == {"x": "Unknown", "y": "west", "v": 0}

    def test_unknown_columns_give_no_data(self, sales):
        assert charts.process_pie(sales, {"idColumn": "ghost", "valueColumn": "revenue"}, {}) == []
        assert charts.process_chart_data("radar", sales, {}) == []

    def test_auto_mapping(self):
        assert charts.auto_mapping("bar", ["a", "b"]) == {"indexBy": "a", "valueColumns": ["b"]}
        assert charts.auto_mapping("scatter", ["a", "b", "c"]) == {
            "xColumn": "a",
            "yColumn": "b",
            "seriesColumn": "c",
        }
        assert charts.auto_mapping("heatmap", ["a", "b"]) == {}


class TestChartNode:
    async def test_execute_produces_chart_payload(self, sales, ctx):
        model = ChartNodeModel()
        model.load_settings(
            NodeSettings(
                {
                    "chartType": "pie",
                    "title": "Revenue",
                    "dataMapping": {"idColumn": "month", "valueColumn": "revenue"},
                }
            )
        )
        (payload,) = await model.execute([sales], ctx)
        assert payload["chartType"] == "pie"
        assert payload["dataRows"] == 4
        assert payload["config"]["enableLabels"] is True
        assert len(payload["data"]) == 3

        (item,) = model.send_outputs_to_dashboard([payload], ctx, "Chart")
        assert item["type"] == "chart"
        assert item["chartType"] == "pie"

    async def test_auto_maps_when_mapping_empty(self, sales, ctx):
        model = ChartNodeModel()
        model.load_settings(NodeSettings({"chartType": "bar"}))
        (payload,) = await model.execute([sales], ctx)
        assert payload["dataMapping"] == {"indexBy": "month", "valueColumns": ["revenue"]}

    async def test_missing_mapped_column_fails(self, sales, ctx):
        model = ChartNodeModel()
        model.load_settings(
            NodeSettings({"chartType": "pie", "dataMapping": {"idColumn": "x", "valueColumn": "y"}})
        )
        with pytest.raises(ValueError, match="Mapped columns not found in input data: x, y"):
            await model.execute([sales], ctx)

    async def test_row_limit(self, make_table, ctx):
        table = make_table([("k", "string"), ("v", "number")], [[str(i), i + 1] for i in range(20)])
        model = ChartNodeModel()
        model.load_settings(NodeSettings({"chartType": "pie", "processingOptions.limitRows": 5}))
        (payload,) = await model.execute([table], ctx)
        assert len(payload["data"]) == 5
        assert payload["dataRows"] == 20

    async def test_unconnected_input_yields_nothing(self, ctx):
        assert await ChartNodeModel().execute([], ctx) == []

    def test_validation(self):
        with pytest.raises(ValueError, match="Unsupported chart type: radar"):
            ChartNodeModel().validate_settings(NodeSettings({"chartType": "radar"}))
