"""Data quality scoring."""

import pytest

from app.engine.nodes.data_scorer import DataScorerNodeModel, quality_grade, score_table
from app.engine.settings import NodeSettings


@pytest.fixture
def messy(make_table):
    return make_table(
        [("name", "string"), ("value", "number")],
        [["a", 1], ["a", 1], ["b", None], ["c", 3]],
    )


@pytest.mark.parametrize(
    ("score", "grade"), [(95, "A"), (90, "A"), (89.9, "B"), (75, "C"), (60, "D"), (59.9, "F")]
)
def test_quality_grade(score, grade):
    assert quality_grade(score) == grade


def test_score_table(messy):
    score = score_table(messy)
    assert score.missing_value_count == 1
    assert score.duplicate_row_count == 1
    assert score.missing_value_percentage == 12.5
    assert score.missing_value_score == 75
    assert score.duplicate_row_score == 25
    assert score.overall_score == pytest.approx(55)
    assert score.grade == "F"
    assert score.recommendations[-1] == "Data quality needs significant improvement before analysis."
    assert any(r.startswith("Duplicate rows detected (25.0%)") for r in score.recommendations)


def test_clean_table_scores_full_marks(make_table):
    score = score_table(make_table([("a", "number")], [[1], [2]]))
    assert score.overall_score == 100
    assert score.recommendations == ["Excellent data quality! Dataset is ready for analysis."]


def test_sparse_columns_are_called_out(make_table):
    table = make_table([("a", "string"), ("b", "string")], [["x", ""], ["y", " "], ["z", "q"]])
    recommendations = score_table(table).recommendations
    assert any(r.startswith("Columns with >30% missing values: b") for r in recommendations)


async def test_execute_emits_score_table_and_passthrough(messy, ctx):
    model = DataScorerNodeModel()
    model.load_settings(NodeSettings({}))
    scores, passthrough = await model.execute([messy], ctx)

    assert passthrough is messy
    assert scores.spec.column_names == ["Metric", "Value", "Score", "Description"]
    metrics = scores.column_values(0)
    assert metrics[:5] == [
        "Overall Quality Score",
        "Missing Values Score",
        "Duplicate Rows Score",
        "Total Rows",
        "Total Columns",
    ]
    assert metrics.count("Recommendation") == 4
    assert scores.column_values(1)[1] == "1/8 (12.5%)"


async def test_recommendations_can_be_omitted(messy, ctx):
    model = DataScorerNodeModel()
    model.load_settings(NodeSettings({"include_recommendations": False}))
    scores, _ = await model.execute([messy], ctx)
    assert scores.size == 5


async def test_dashboard_gets_statistics_and_source_table(messy, ctx):
    model = DataScorerNodeModel()
    model.load_settings(NodeSettings({}))
    outputs = await model.execute([messy], ctx)
    statistics, table = model.send_outputs_to_dashboard(outputs, ctx, "Scorer")

    assert statistics["type"] == "statistics"
    assert statistics["summary"] == "Data Quality Analysis - Overall Score: 55.0/100 (Grade: F)"
    assert statistics["metrics"]["Total Rows"] == 4
    assert statistics["details"]["duplicateRowCount"] == 1
    assert table["type"] == "table"
    assert table["id"] == "node-under-test-port-1"


async def test_empty_input_fails(make_table, ctx):
    model = DataScorerNodeModel()
    with pytest.raises(ValueError, match="Input data table is empty"):
        await model.execute([make_table([("a", "string")], [])], ctx)


def test_weights_must_sum_to_one():
    model = DataScorerNodeModel()
    with pytest.raises(ValueError, match="Weights must sum to 1.0"):
        model.validate_settings(NodeSettings({"weight_missing": 0.5, "weight_duplicates": 0.4}))
    with pytest.raises(ValueError, match="between 0 and 1"):
        model.validate_settings(NodeSettings({"weight_missing": 1.5, "weight_duplicates": -0.5}))
    model.validate_settings(NodeSettings({"weight_missing": 0.7, "weight_duplicates": 0.3}))
