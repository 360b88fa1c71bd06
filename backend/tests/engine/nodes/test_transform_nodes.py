"""Group-and-aggregate, missing values and normalizer nodes."""

import math

import pytest

from app.engine.nodes.group_aggregate import GroupAndAggregateNodeModel, compute_aggregation
from app.engine.nodes.missing_values import MissingValuesNodeModel, replacement_for
from app.engine.nodes.normalizer import NormalizerNodeModel, decimal_divisor
from app.engine.settings import NodeSettings


async def run(model_cls, settings, inputs, ctx):
    model = model_cls()
    model.load_settings(NodeSettings(settings))
    return await model.execute(inputs, ctx)


@pytest.fixture
def sales(make_table):
    return make_table(
        [("region", "string"), ("units", "number"), ("rep", "string")],
        [
            ["north", 2.5, "ann"],
            ["south", 4, "bob"],
            ["north", 1.4, "cy"],
            ["south", None, "dee"],
        ],
    )


class TestGroupAndAggregate:
    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            ("SUM", 4),
            ("AVERAGE", 2),
            ("MIN", 1.4),
            ("MAX", 2.5),
            ("COUNT", 2),
            ("FIRST", 2.5),
            ("LAST", 1.4),
        ],
    )
    def test_compute_aggregation(self, method, expected):
        # SUM and AVERAGE round half up per value: 2.5 -> 3, 1.4 -> 1
        assert compute_aggregation([2.5, 1.4], method) == expected

    def test_empty_group_yields_none(self):
        assert compute_aggregation([], "SUM") is None

    async def test_groups_in_first_seen_order(self, sales, ctx):
        (table,) = await run(
            GroupAndAggregateNodeModel,
            {
                "group_columns": ["region"],
                "aggregations": [
                    {"columnName": "units", "method": "SUM", "newColumnName": "total"},
                    {"columnName": "rep", "method": "FIRST", "newColumnName": "lead"},
                    {"columnName": "rep", "method": "COUNT", "newColumnName": "reps"},
                ],
            },
            [sales],
            ctx,
        )
        assert table.spec.column_names == ["region", "total", "lead", "reps"]
        assert [c.type for c in table.spec.columns] == ["string", "number", "string", "number"]
        assert table.to_records() == [
            {"region": "north", "total": 4, "lead": "ann", "reps": 2},
            {"region": "south", "total": 4, "lead": "bob", "reps": 2},
        ]
        assert [r.key for r in table] == ["group_1", "group_2"]

    async def test_numeric_method_on_text_column_fails(self, sales, ctx):
        with pytest.raises(ValueError, match="must be numeric for SUM"):
            await run(
                GroupAndAggregateNodeModel,
                {
                    "group_columns": ["region"],
                    "aggregations": [{"columnName": "rep", "method": "SUM", "newColumnName": "x"}],
                },
                [sales],
                ctx,
            )

    def test_validation(self):
        model = GroupAndAggregateNodeModel()
        with pytest.raises(ValueError, match="At least one group column"):
            model.validate_settings(NodeSettings({}))
        with pytest.raises(ValueError, match="Invalid aggregation method"):
            model.validate_settings(
                NodeSettings(
                    {
                        "group_columns": ["a"],
                        "aggregations": [{"columnName": "b", "newColumnName": "c", "method": "MODE"}],
                    }
                )
            )

    async def test_sends_table_to_dashboard(self, sales, ctx):
        model = GroupAndAggregateNodeModel()
        model.load_settings(
            NodeSettings(
                {
                    "group_columns": ["region"],
                    "aggregations": [{"columnName": "units", "method": "MAX", "newColumnName": "m"}],
                }
            )
        )
        outputs = await model.execute([sales], ctx)
        (item,) = model.send_outputs_to_dashboard(outputs, ctx, "Group")
        assert item["id"] == "node-under-test-port-0"
        assert item["title"] == "Grouped and Aggregated Data Output"
        assert item["description"].startswith("Data grouped by")
        assert ctx.dashboard_items == [item]


class TestMissingValues:
    def test_replacements(self):
        assert replacement_for([1, None, 3], "MEAN", "number") == 2
        assert replacement_for([1, "", 3, 10], "MEDIAN", "number") == 3
        assert replacement_for(["a", "b", "b", None], "MOST_FREQUENT", "string") == "b"
        assert replacement_for([None, ""], "MEAN", "number") == 0
        assert replacement_for([None], "MOST_FREQUENT", "string") == ""

    async def test_default_method_imputes_every_column(self, make_table, ctx):
        table = make_table(
            [("city", "string"), ("temp", "number")],
            [["oslo", 4], ["", None], ["oslo", 4], ["rome", 20]],
        )
        (result,) = await run(
            MissingValuesNodeModel,
            {
                "default_method": "MOST_FREQUENT",
                "column_configs": [{"columnName": "temp", "method": "MEAN"}],
            },
            [table],
            ctx,
        )
        assert result.to_records()[1] == {"city": "oslo", "temp": pytest.approx(28 / 3)}
        assert [r.key for r in result] == [f"processed-{i}" for i in range(4)]

    async def test_remove_rows(self, make_table, ctx):
        table = make_table([("a", "number"), ("b", "string")], [[1, "x"], [None, "y"], [3, "null"]])
        (result,) = await run(
            MissingValuesNodeModel,
            {"column_configs": [{"columnName": "a", "method": "REMOVE_ROWS"}]},
            [table],
            ctx,
        )
        assert result.column_values(0) == [1, 3]
        # "null" text counts as missing and is replaced by the most frequent value
        assert result.column_values(1) == ["x", "x"]

    def test_validation(self):
        with pytest.raises(ValueError, match="Invalid missing value method"):
            MissingValuesNodeModel().validate_settings(NodeSettings({"default_method": "GUESS"}))


class TestNormalizer:
    @pytest.mark.parametrize(("max_abs", "divisor"), [(0.5, 1), (1, 1), (7, 10), (250, 1000)])
    def test_decimal_divisor(self, max_abs, divisor):
        assert decimal_divisor(max_abs) == divisor

    @pytest.fixture
    def scores(self, make_table):
        return make_table([("name", "string"), ("score", "number")], [["a", 10], ["b", 20], ["c", 30]])

    async def test_min_max_to_custom_range(self, scores, ctx):
        (table,) = await run(
            NormalizerNodeModel,
            {"number_columns": ["score"], "normalization_method": "MIN_MAX", "min_value": 0, "max_value": 10},
            [scores],
            ctx,
        )
        assert table.column_values(1) == [0, 5, 10]
        assert table.column_values(0) == ["a", "b", "c"]

    async def test_z_score(self, scores, ctx):
        (table,) = await run(
            NormalizerNodeModel,
            {"number_columns": ["score"], "normalization_method": "Z_SCORE"},
            [scores],
            ctx,
        )
        std = math.sqrt(200 / 3)
        assert table.column_values(1) == pytest.approx([-10 / std, 0, 10 / std])

    async def test_decimal_scaling(self, scores, ctx):
        (table,) = await run(
            NormalizerNodeModel,
            {"number_columns": ["score"], "normalization_method": "DECIMAL_SCALING"},
            [scores],
            ctx,
        )
        assert table.column_values(1) == pytest.approx([0.1, 0.2, 0.3])

    async def test_constant_column_maps_to_midpoint(self, make_table, ctx):
        table = make_table([("v", "number")], [[5], [5]])
        (result,) = await run(NormalizerNodeModel, {"number_columns": ["v"]}, [table], ctx)
        assert result.column_values(0) == [0.5, 0.5]

    async def test_requires_numeric_selection(self, scores, ctx):
        with pytest.raises(ValueError, match="Available numeric columns: score"):
            await run(NormalizerNodeModel, {"number_columns": ["name"]}, [scores], ctx)

    def test_validation(self):
        model = NormalizerNodeModel()
        with pytest.raises(ValueError, match="Minimum value must be less"):
            model.validate_settings(NodeSettings({"min_value": 1, "max_value": 1}))
        with pytest.raises(ValueError, match="Invalid normalization method"):
            model.validate_settings(NodeSettings({"normalization_method": "LOG"}))
