import numpy as np
import pandas as pd
import pytest
from forestfill import (
    AllColumns,
    Columns,
    InvalidSpecification,
    TypeTag,
)
from forestfill.dependency import as_column_set, describe_columns, resolve


data = pd.DataFrame(
    {
        "a": [1.0, np.nan, 3.0, 4.0, 5.0, 6.0],
        "b": [np.nan, np.nan, np.nan, 1.0, 2.0, 3.0],
        "c": pd.Series(["x", "y", None, "x", "y", "x"], dtype="category"),
        "d": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        "e": [np.nan, 7.0, 7.0, np.nan, 7.0, 7.0],
        "f": [np.nan] * 6,
        "g": [1j, 2j, 3j, 4j, 5j, 6j],
    }
)
descriptors = describe_columns(data)


def test_column_set_algebra():
    columns = list(data.columns)
    assert AllColumns().resolve(columns) == columns
    assert Columns(["d", "a"]).resolve(columns) == ["a", "d"]
    assert Columns("a").resolve(columns) == ["a"]
    assert (Columns("a") | Columns("c")).resolve(columns) == ["a", "c"]
    assert (AllColumns() - ["a", "b"]).resolve(columns) == ["c", "d", "e", "f", "g"]
    assert (AllColumns() - Columns("a") | "a").resolve(columns) == columns
    assert as_column_set(None).resolve(columns) == columns
    with pytest.raises(InvalidSpecification):
        Columns(["z"]).resolve(columns)
    with pytest.raises(InvalidSpecification):
        as_column_set(5)


def test_describe_columns():
    assert descriptors["a"].type_tag == TypeTag.CONTINUOUS
    assert descriptors["c"].type_tag == TypeTag.UNORDERED_CATEGORICAL
    assert descriptors["g"].type_tag is None
    assert not descriptors["g"].supported
    assert descriptors["b"].n_missing == 3
    assert descriptors["e"].n_distinct == 1
    assert descriptors["f"].n_distinct == 0
    # The missing mask cannot be changed
    with pytest.raises(ValueError):
        descriptors["a"].missing[0] = True


def test_resolve_defaults():
    plan = resolve(None, None, describe_columns(data))
    # e is zero variance, f is all missing, g is unsupported
    assert plan.visit_order == ["a", "c", "b"]
    assert plan.predictors["a"] == ["b", "c", "d"]
    assert plan.predictors["b"] == ["a", "c", "d"]
    assert plan.constant_columns == {"e": 1}
    kinds = sorted(d.kind for d in plan.diagnostics)
    assert kinds == ["AllMissingColumn", "UnsupportedColumnWarning", "ZeroVarianceColumn"]
    for target, predictors in plan.predictors.items():
        assert target not in predictors


def test_resolve_imputation_orders():
    desc = describe_columns(data)
    assert resolve(None, None, desc, "descending").visit_order == ["b", "a", "c"]
    assert resolve(None, None, desc, "roman").visit_order == ["a", "b", "c"]
    assert resolve(None, None, desc, "arabic").visit_order == ["c", "b", "a"]
    with pytest.raises(InvalidSpecification):
        resolve(None, None, desc, "random")


def test_resolve_unusable_predictors():
    desc = describe_columns(data)
    plan = resolve(["a"], None, desc)
    assert plan.visit_order == ["a"]
    assert plan.predictors["a"] == ["d"]
    unusable = sorted(d.column for d in plan.diagnostics if d.kind == "UnusablePredictor")
    assert unusable == ["b", "c"]
    # e and f are never predictors, and are not constant filled either
    excluded = {d.column: d.kind for d in plan.diagnostics if d.target is None}
    assert excluded == {
        "e": "ZeroVarianceColumn",
        "f": "AllMissingColumn",
        "g": "UnsupportedColumnWarning",
    }
    assert plan.constant_columns == {}
    assert desc["a"].is_target and not desc["a"].is_predictor
    assert desc["d"].is_predictor and not desc["d"].is_target


def test_resolve_reports_only_requested_predictors():
    desc = describe_columns(data)
    plan = resolve(["a"], ["d", "e", "f"], desc)
    assert plan.predictors["a"] == ["d"]
    assert sorted((d.column, d.kind) for d in plan.diagnostics) == [
        ("e", "ZeroVarianceColumn"),
        ("f", "AllMissingColumn"),
        ("g", "UnsupportedColumnWarning"),
    ]
    assert all("predictor" in d.message for d in plan.diagnostics[:2])

    plan = resolve(["a"], ["d"], desc)
    assert [d.column for d in plan.diagnostics] == ["g"]


def test_resolve_no_usable_predictors():
    plan = resolve(["a", "b"], ["a", "b"], describe_columns(data))
    assert plan.predictors == {"a": ["b"], "b": ["a"]}

    plan = resolve(["a"], Columns([]), describe_columns(data))
    assert plan.fallback_variables == ["a"]
    assert plan.modeled_variables == []
    assert [d.kind for d in plan.diagnostics] == [
        "UnsupportedColumnWarning",
        "NoUsablePredictors",
    ]


def test_resolve_targets_without_missing_values():
    plan = resolve(["d"], None, describe_columns(data))
    assert len(plan) == 0
    assert plan.visit_order == []
