from sklearn.datasets import load_iris
import numpy as np
import pytest
from forestfill import LightGBMLearner, RandomForestLearner
from forestfill.learners import _DEFAULT_LGB_PARAMS, _class_codes, prediction_error


features, target = load_iris(return_X_y=True)
regression_features = features[:, 1:]
regression_label = features[:, 0]
class_label = target.astype("float64")
binary_label = (target == 2).astype("float64")


def test_merge_parameters_uncovers_aliases():
    learner = LightGBMLearner()
    params = learner.merge_parameters(
        {"n_estimators": 10, "max_depth": 3}, {"num_iterations": 20}
    )
    assert params == {"num_iterations": 20, "max_depth": 3}
    params = learner.merge_parameters({"num_leaves": 8}, {"num_leaf": 4})
    assert params == {"num_leaves": 4}
    # Defaults are never altered
    assert learner.default_parameters == _DEFAULT_LGB_PARAMS


def test_lightgbm_regression():
    learner = LightGBMLearner()
    model = learner.fit(
        regression_features,
        regression_label,
        objective="regression",
        random_state=np.random.RandomState(1),
        num_iterations=16,
    )
    assert np.isfinite(model.error)
    assert model.error > 0
    # Out of fold error should beat predicting the mean
    assert model.error < np.var(regression_label)
    assert model.train_predictions.shape == regression_label.shape
    preds = model.predict(regression_features[:10])
    assert preds.shape == (10,)


def test_lightgbm_classification():
    learner = LightGBMLearner(nfold=4)
    model = learner.fit(
        regression_features,
        class_label,
        objective="multiclass",
        num_class=3,
        categorical_features=[],
        random_state=np.random.RandomState(2),
        num_iterations=16,
    )
    assert 0 <= model.error < 0.5
    preds = model.predict(regression_features)
    assert set(preds).issubset({0.0, 1.0, 2.0})

    binary_model = learner.fit(
        regression_features,
        binary_label,
        objective="binary",
        weight=np.ones_like(binary_label),
        random_state=np.random.RandomState(3),
        num_iterations=16,
    )
    assert set(binary_model.train_predictions).issubset({0.0, 1.0})


def test_lightgbm_categorical_features():
    learner = LightGBMLearner()
    categorical = np.column_stack([class_label, regression_features[:, 0]])
    categorical[::7, 0] = np.nan
    preds, error = learner.fit_predict(
        categorical,
        regression_label,
        "regression",
        categorical[:5],
        categorical_features=[0],
        random_state=np.random.RandomState(4),
        num_iterations=8,
    )
    assert preds.shape == (5,)
    assert np.isfinite(error)


def test_lightgbm_reproducible():
    learner = LightGBMLearner()
    errors = [
        learner.fit(
            regression_features,
            regression_label,
            objective="regression",
            random_state=np.random.RandomState(6),
            num_iterations=8,
        ).error
        for _ in range(2)
    ]
    assert errors[0] == errors[1]


def test_random_forest_learner():
    learner = RandomForestLearner(n_estimators=50)
    model = learner.fit(
        regression_features,
        regression_label,
        objective="regression",
        random_state=np.random.RandomState(7),
    )
    assert 0 < model.error < np.var(regression_label)
    assert model.predict(regression_features[:3]).shape == (3,)

    model = learner.fit(
        regression_features,
        class_label,
        objective="multiclass",
        num_class=3,
        random_state=np.random.RandomState(8),
    )
    assert 0 <= model.error < 0.5
    assert set(model.predict(regression_features)).issubset({0.0, 1.0, 2.0})


def test_prediction_error():
    label = np.array([0.0, 1.0, 1.0, 2.0])
    assert prediction_error(label, np.array([0.0, 1.0, 2.0, 2.0]), "multiclass") == 0.25
    assert prediction_error(label, label + 1.0, "regression") == 1.0
    weighted = prediction_error(
        label, np.array([1.0, 1.0, 1.0, 2.0]), "binary", weight=np.array([3, 1, 1, 1])
    )
    assert weighted == pytest.approx(0.5)
    assert np.isnan(
        prediction_error(np.array([]), np.array([]), "regression", weight=np.array([]))
    )


@pytest.mark.parametrize("num_rows", [2, 3, 4, 5])
def test_lightgbm_few_rows(num_rows):
    # Too few rows for cross validation, the in-sample loss is used
    learner = LightGBMLearner()
    model = learner.fit(
        regression_features[:num_rows],
        regression_label[:num_rows],
        objective="regression",
        random_state=np.random.RandomState(9),
        num_iterations=8,
    )
    assert model.train_predictions.shape == (num_rows,)
    assert np.isnan(model.error) or model.error >= 0
    expected = prediction_error(
        regression_label[:num_rows], model.train_predictions, "regression"
    )
    assert np.array_equal(model.error, expected, equal_nan=True)


def test_class_codes_keep_missing_probabilities():
    binary = _class_codes(np.array([0.2, np.nan, 0.9]), "binary")
    assert np.array_equal(binary, [0.0, np.nan, 1.0], equal_nan=True)
    multiclass = _class_codes(
        np.array([[0.1, 0.7, 0.2], [np.nan, np.nan, np.nan]]), "multiclass"
    )
    assert np.array_equal(multiclass, [1.0, np.nan], equal_nan=True)


def test_random_forest_without_out_of_bag_rows():
    # A single row is in every bootstrap sample
    learner = RandomForestLearner(n_estimators=2)
    with pytest.warns(UserWarning):
        model = learner.fit(
            regression_features[:1],
            regression_label[:1],
            objective="regression",
            weight=np.ones(1),
            random_state=np.random.RandomState(10),
        )
    assert np.isnan(model.error)
    assert model.train_predictions.tolist() == regression_label[:1].tolist()
