"""Synthetic survey generation with a target Cronbach's alpha."""

import random

import pytest

from app.engine.nodes.cronbach_alpha import (
    CronbachAlphaNodeModel,
    analyze_csv_options,
    cholesky,
    cronbach_alpha,
    default_headers,
    generate_responses,
    normalize_option_map,
)
from app.engine.settings import NodeSettings


def test_cronbach_alpha_of_perfectly_consistent_items():
    assert cronbach_alpha([[1, 2], [2, 3], [3, 4]]) == pytest.approx(1.0)


def test_cronbach_alpha_degenerate_inputs():
    assert cronbach_alpha([[1, 2]]) == 0.0
    assert cronbach_alpha([[1], [2]]) == 0.0
    assert cronbach_alpha([[1, 1], [1, 1]]) == 0.0


def test_cholesky_reconstructs_matrix():
    matrix = [[1.0, 0.5], [0.5, 1.0]]
    lower = cholesky(matrix)
    rebuilt = [[sum(lower[i][k] * lower[j][k] for k in range(2)) for j in range(2)] for i in range(2)]
    assert rebuilt == [pytest.approx(row) for row in matrix]


def test_normalize_option_map_sorts_and_coerces_keys():
    assert normalize_option_map({"5": 2, "3": 1}) == {3: 1, 5: 2}


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({}, "non-empty"),
        ([], "non-empty"),
        ({"1": 2}, "at least 2"),
        ({"x": 2}, "at least 2"),
        ({"3": 0}, "Question count must be at least 1"),
    ],
)
def test_normalize_option_map_rejects(raw, message):
    with pytest.raises(ValueError, match=message):
        normalize_option_map(raw)


def test_default_headers():
    assert default_headers({2: 1, 3: 2}) == ["Q1_2opt", "Q2_3opt", "Q3_3opt"]


def test_generated_answers_stay_on_scale():
    responses = generate_responses(50, 0.7, {3: 2, 5: 2}, random.Random(1))
    assert len(responses) == 50
    for row in responses:
        assert all(1 <= v <= 3 for v in row[:2])
        assert all(1 <= v <= 5 for v in row[2:])


def test_generation_reaches_target_alpha():
    responses = generate_responses(200, 0.6, {5: 6}, random.Random(3))
    assert cronbach_alpha(responses) >= 0.6


def test_analyze_csv_options():
    headers, option_map = analyze_csv_options("a;b\n1;5\n2;3\nx;1\n")
    assert headers == ["a", "b"]
    # a: answers start at 1, max 2 -> 2 options; b: range 3..5 -> 3 options
    assert option_map == {2: 1, 3: 1}


def test_analyze_csv_options_requires_numeric_rows():
    with pytest.raises(ValueError, match="at least a header row"):
        analyze_csv_options("a,b\n")
    with pytest.raises(ValueError, match="No valid numeric data rows"):
        analyze_csv_options("a,b\nx,y\n")


async def test_execute_is_reproducible_with_seed(ctx):
    settings = {"sampleCount": 20, "targetAlpha": 0.5, "optionMap": {"5": 3}, "seed": 11}

    def build():
        model = CronbachAlphaNodeModel()
        model.load_settings(NodeSettings(settings))
        return model

    (first,) = await build().execute([], ctx)
    (second,) = await build().execute([], ctx)
    assert first.spec.column_names == ["Q1_5opt", "Q2_5opt", "Q3_5opt"]
    assert all(c.type == "number" for c in first.spec.columns)
    assert first.size == 20
    assert first.to_records() == second.to_records()


def test_custom_headers_used_when_counts_match():
    model = CronbachAlphaNodeModel()
    model.load_settings(NodeSettings({"optionMap": {"3": 2}, "customHeaders": ["x", "y"]}))
    assert model.column_headers() == ["x", "y"]
    model.load_settings(NodeSettings({"optionMap": {"3": 2}, "customHeaders": ["x"]}))
    assert model.column_headers() == ["Q1_3opt", "Q2_3opt"]


def test_validation():
    model = CronbachAlphaNodeModel()
    with pytest.raises(ValueError, match="Sample count must be greater than 0"):
        model.validate_settings(NodeSettings({"sampleCount": 0}))
    with pytest.raises(ValueError, match="Target alpha must be between 0 and 1"):
        model.validate_settings(NodeSettings({"targetAlpha": 1.2}))
    with pytest.raises(ValueError, match="Invalid option map format"):
        model.validate_settings(NodeSettings({"optionMap": "{broken"}))
