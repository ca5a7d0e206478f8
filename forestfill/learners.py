"""
Learners train one model per target column. The engine only relies on the
Learner / FittedModel contract: fit on observed rows, predict any rows, and
report an error estimate where lower is better.
"""

from typing import Any, Dict, Optional, Sequence

import numpy as np
from lightgbm import Booster, Dataset, cv, train
from lightgbm.basic import _ConfigAliases

from .utils import _draw_random_int32, ensure_rng, stratified_folds

# THESE VALUES WILL ALWAYS BE USED WHEN VALUES ARE NOT PASSED BY USER.
# seed is always set by the calling processes random_state.
# These need to be main parameter names, not aliases
_DEFAULT_LGB_PARAMS = {
    "boosting": "random_forest",
    "data_sample_strategy": "bagging",
    "num_iterations": 48,
    "max_depth": 8,
    "num_leaves": 128,
    "min_data_in_leaf": 1,
    "min_sum_hessian_in_leaf": 0.01,
    "min_gain_to_split": 0.0,
    "bagging_fraction": 0.632,
    "feature_fraction_bynode": 0.632,
    "bagging_freq": 1,
    "deterministic": True,
    "force_row_wise": True,
    "verbosity": -1,
}

_DEFAULT_NFOLD = 3
# Every cross validation training fold needs rows left after bagging.
_MIN_ROWS_PER_FOLD = 2

_OBJECTIVE_METRICS = {
    "regression": "l2",
    "binary": "binary_error",
    "multiclass": "multi_error",
}


def _class_codes(preds: np.ndarray, objective: str) -> np.ndarray:
    """
    lightgbm outputs probabilities for classification objectives.
    Rows without a probability stay NaN.
    """
    if objective == "binary":
        return np.where(np.isnan(preds), np.nan, preds > 0.5)
    elif objective == "multiclass":
        missing = np.isnan(preds).any(axis=1)
        return np.where(missing, np.nan, np.argmax(np.nan_to_num(preds), axis=1))
    return np.asarray(preds, dtype="float64")


def prediction_error(
    label: np.ndarray,
    preds: np.ndarray,
    objective: str,
    weight: Optional[np.ndarray] = None,
) -> float:
    """
    Mean squared error for regression, misclassification rate otherwise.
    preds must already be class codes for classification objectives.
    NaN if there are no rows to score.
    """
    if label.shape[0] == 0:
        return np.nan
    if objective == "regression":
        loss = (label - preds) ** 2
    else:
        loss = (label != preds).astype("float64")
    return float(np.average(loss, weights=weight))


class FittedModel:
    """
    A trained model for one target column.

    Attributes
    ----------
    objective: str
        "regression", "binary" or "multiclass".
    error: float
        The error estimate reported by the learner. Lower is better.
    train_predictions: np.ndarray
        Predictions for the rows the model was trained on. Used as the
        predictions of the donor pool in predictive mean matching.
    """

    def __init__(self, objective: str, error: float, train_predictions: np.ndarray):
        self.objective = objective
        self.error = error
        self.train_predictions = train_predictions

    def predict(self, features: np.ndarray) -> np.ndarray:
        """Numbers for regression, class codes for classification."""
        raise NotImplementedError


class Learner:
    """
    Base class for the model training capability.
    """

    def merge_parameters(self, *layers: Dict[str, Any]) -> Dict[str, Any]:
        """Combine parameter dicts. Later layers take precedence."""
        params: Dict[str, Any] = {}
        for layer in layers:
            params.update(layer)
        return params

    def fit(
        self,
        features: np.ndarray,
        label: np.ndarray,
        objective: str,
        num_class: Optional[int] = None,
        weight: Optional[np.ndarray] = None,
        categorical_features: Sequence[int] = (),
        random_state: Optional[np.random.RandomState] = None,
        **params,
    ) -> FittedModel:
        raise NotImplementedError

    def fit_predict(
        self,
        features: np.ndarray,
        label: np.ndarray,
        objective: str,
        predict_features: np.ndarray,
        **kwargs,
    ):
        """
        Train on (features, label) and predict predict_features.

        Returns
        -------
        Tuple of (predictions, error estimate)
        """
        model = self.fit(features, label, objective, **kwargs)
        return model.predict(predict_features), model.error


class LightGBMModel(FittedModel):
    def __init__(
        self,
        booster: Booster,
        objective: str,
        error: float,
        train_predictions: np.ndarray,
    ):
        super().__init__(
            objective=objective, error=error, train_predictions=train_predictions
        )
        self.booster = booster

    def predict(self, features: np.ndarray) -> np.ndarray:
        preds = self.booster.predict(features)
        assert isinstance(preds, np.ndarray)
        return _class_codes(preds, self.objective)

    def __repr__(self):
        return f"LightGBMModel({self.objective}, error={self.error:.4f})"


class LightGBMLearner(Learner):
    """
    Random forests grown by lightgbm.

    lightgbm does not expose out-of-bag predictions, so the error estimate
    is the out-of-fold loss from lightgbm.cv over stratified folds. If there
    are fewer than 2 * nfold observed rows, the in-sample loss is used
    instead. Trees can fail to grow on so few rows, in which case the
    predictions and the error are NaN.

    Parameters
    ----------
    nfold: int
        Number of cross validation folds used for the error estimate.
    default_parameters: dict, optional
        Replaces the built in default lightgbm parameters.
    """

    def __init__(
        self,
        nfold: int = _DEFAULT_NFOLD,
        default_parameters: Optional[Dict[str, Any]] = None,
    ):
        assert nfold >= 2, "nfold must be at least 2."
        self.nfold = nfold
        self.default_parameters = (
            _DEFAULT_LGB_PARAMS.copy()
            if default_parameters is None
            else default_parameters.copy()
        )
        self._uncover_aliases(self.default_parameters)

    @staticmethod
    def _uncover_aliases(params):
        """
        Switches all aliases in the parameter dict to their
        True name, easiest way to avoid duplicate parameters.
        """
        alias_dict = _ConfigAliases._get_all_param_aliases()
        for param in list(params):
            for true_name, aliases in alias_dict.items():
                if param in aliases and param != true_name:
                    params[true_name] = params.pop(param)

    def merge_parameters(self, *layers):
        params: Dict[str, Any] = {}
        for layer in layers:
            layer = layer.copy()
            self._uncover_aliases(layer)
            params.update(layer)
        return params

    def _make_lgb_params(
        self,
        objective: str,
        num_class: Optional[int],
        random_state: np.random.RandomState,
        **kwlgb,
    ):
        """
        Builds the parameters for a lightgbm model. Sets the objective and
        metric, assigns a random seed, and lets user supplied parameters
        take precedence over the defaults.
        """
        lgb_params = self.default_parameters.copy()
        lgb_params["objective"] = objective
        lgb_params["metric"] = _OBJECTIVE_METRICS[objective]
        if objective == "multiclass":
            assert num_class is not None, "num_class is required for multiclass."
            lgb_params["num_class"] = num_class
        lgb_params["seed"] = int(_draw_random_int32(random_state, size=1)[0])

        kwlgb = kwlgb.copy()
        self._uncover_aliases(kwlgb)
        lgb_params.update(kwlgb)

        return lgb_params

    @staticmethod
    def _make_dataset(features, label, weight, categorical_features):
        return Dataset(
            data=features,
            label=label,
            weight=weight,
            categorical_feature=list(categorical_features)
            if len(categorical_features) > 0
            else "auto",
            free_raw_data=False,
        )

    def _get_oof_performance(
        self,
        parameters: dict,
        num_iterations: int,
        features: np.ndarray,
        label: np.ndarray,
        weight: Optional[np.ndarray],
        categorical_features: Sequence[int],
    ) -> float:
        """
        Performance is gathered from built-in lightgbm.cv out of fold metric,
        at the final iteration since random forests do not overfit with more trees.
        """
        folds = stratified_folds(label, self.nfold)
        train_set = self._make_dataset(features, label, weight, categorical_features)
        lgbcv = cv(
            params=parameters,
            train_set=train_set,
            folds=folds,
            num_boost_round=num_iterations,
            stratified=False,
        )
        loss_metric_key = [key for key in lgbcv if key.endswith("-mean")][0]
        return float(lgbcv[loss_metric_key][-1])

    def fit(
        self,
        features,
        label,
        objective,
        num_class=None,
        weight=None,
        categorical_features=(),
        random_state=None,
        **params,
    ) -> LightGBMModel:
        random_state = ensure_rng(random_state)
        lgbpars = self._make_lgb_params(
            objective=objective,
            num_class=num_class,
            random_state=random_state,
            **params,
        )
        num_iterations = lgbpars.pop("num_iterations")

        train_set = self._make_dataset(features, label, weight, categorical_features)
        booster = train(
            params=lgbpars,
            train_set=train_set,
            num_boost_round=num_iterations,
        )
        train_predictions = _class_codes(booster.predict(features), objective)

        if label.shape[0] >= _MIN_ROWS_PER_FOLD * self.nfold:
            error = self._get_oof_performance(
                parameters=lgbpars,
                num_iterations=num_iterations,
                features=features,
                label=label,
                weight=weight,
                categorical_features=categorical_features,
            )
        else:
            error = prediction_error(label, train_predictions, objective, weight)

        return LightGBMModel(
            booster=booster.free_dataset(),
            objective=objective,
            error=error,
            train_predictions=train_predictions,
        )


class RandomForestModel(FittedModel):
    def __init__(self, estimator, objective, error, train_predictions):
        super().__init__(
            objective=objective, error=error, train_predictions=train_predictions
        )
        self.estimator = estimator

    def predict(self, features: np.ndarray) -> np.ndarray:
        return np.asarray(self.estimator.predict(features), dtype="float64")

    def __repr__(self):
        return f"RandomForestModel({self.objective}, error={self.error:.4f})"


def _out_of_bag_rows(estimator, num_rows: int) -> np.ndarray:
    in_every_sample = np.ones(num_rows, dtype=bool)
    for samples in estimator.estimators_samples_:
        in_bag = np.zeros(num_rows, dtype=bool)
        in_bag[samples] = True
        in_every_sample &= in_bag
    return ~in_every_sample


class RandomForestLearner(Learner):
    """
    scikit-learn random forests. The error estimate is the out-of-bag
    mean squared error (regression) or misclassification rate.
    Categorical codes are treated as ordinal features.

    Parameters
    ----------
    n_estimators: int
        Number of trees.
    n_jobs: int, optional
        Passed to the forest.
    """

    def __init__(self, n_estimators: int = 100, n_jobs: Optional[int] = None):
        self.n_estimators = n_estimators
        self.n_jobs = n_jobs

    def fit(
        self,
        features,
        label,
        objective,
        num_class=None,
        weight=None,
        categorical_features=(),
        random_state=None,
        **params,
    ) -> RandomForestModel:
        try:
            from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
        except ImportError:
            raise ImportError(
                "scikit-learn must be installed to use RandomForestLearner."
            )

        random_state = ensure_rng(random_state)
        forest_params = {
            "n_estimators": self.n_estimators,
            "n_jobs": self.n_jobs,
            "oob_score": True,
            "bootstrap": True,
            "random_state": int(_draw_random_int32(random_state, size=1)[0]),
        }
        forest_params.update(params)

        if objective == "regression":
            estimator = RandomForestRegressor(**forest_params)
            estimator.fit(features, label, sample_weight=weight)
            oob_preds = estimator.oob_prediction_.reshape(-1)
        else:
            estimator = RandomForestClassifier(**forest_params)
            estimator.fit(features, label, sample_weight=weight)
            decision = np.nan_to_num(estimator.oob_decision_function_)
            oob_preds = estimator.classes_[np.argmax(decision, axis=1)]

        # Rows that were in every bootstrap sample have no out-of-bag vote.
        # The error is NaN if that is every row.
        has_oob = _out_of_bag_rows(estimator, label.shape[0])
        error = prediction_error(
            label[has_oob],
            oob_preds[has_oob],
            objective,
            None if weight is None else weight[has_oob],
        )
        train_predictions = np.asarray(estimator.predict(features), dtype="float64")

        return RandomForestModel(
            estimator=estimator,
            objective=objective,
            error=error,
            train_predictions=train_predictions,
        )
