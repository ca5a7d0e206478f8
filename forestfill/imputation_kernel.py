from enum import Enum
from time import monotonic
from typing import Any, Dict, Iterable, List, Literal, Optional, Union

import numpy as np
from pandas import DataFrame, Series

from .column_types import ColumnCodec, encode
from .dependency import ColumnSet, describe_columns, resolve
from .errors import (
    Diagnostic,
    EmptyTargetSet,
    InvalidSpecification,
    LearnerFailure,
    UnfittableColumn,
)
from .imputed_data import ImputedData
from .iteration_state import IterationState
from .learners import FittedModel, Learner, LightGBMLearner
from .logger import Logger
from .mean_match import predictive_mean_match
from .utils import (
    _INITIALIZATION_METHODS,
    _draw_random_int32,
    _expand_value_to_dict,
    ensure_rng,
    marginal_fill,
)

_DEFAULT_PMM_K = 0
_DEFAULT_MAX_ITER = 10
_DEFAULT_TOLERANCE = 0.0
_DEFAULT_INITIALIZATION = "mean"
_TIMED_LEVELS = ["Iteration", "Variable", "Event"]

_t_columns = Union[None, str, Iterable, ColumnSet]


class KernelState(Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    CONVERGED = "converged"
    MAX_ITER_REACHED = "max_iter_reached"
    ABORTED = "aborted"


class ImputationKernel:
    """
    Imputes missing values in a DataFrame by chained random forests.

    Each target column gets one model per iteration, trained on the rows
    where it was observed, using its permitted predictor columns. Columns
    are visited in a fixed order and updated in place, so later columns in
    an iteration learn from values imputed earlier in the same iteration.
    Iterations stop once the mean normalized error estimate stops
    improving, and the data from the best iteration is returned.

    Parameters
    ----------
    data : pandas.DataFrame
        The data to be imputed. It is copied, the original is never altered.
    targets : None, str, list or ColumnSet, default=None
        The columns to impute. Columns without missing values are ignored.
        None means every column.
    predictors : None, str, list or ColumnSet, default=None
        The columns that may be used as features. A column is never used to
        impute itself, and columns with missing values are only used if they
        are imputed as well. None means every column.
    pmm_k : int or Dict[str, int], default=0
        The number of nearest candidates used in predictive mean matching.
        0 disables mean matching, and the model predictions are used as the
        imputation values.
    imputation_order : str, default="ascending"
        The order the imputations should occur in:

        - :code:`ascending`: variables are imputed from least to most missing
        - :code:`descending`: most to least missing
        - :code:`roman`: from left to right in the dataset
        - :code:`arabic`: from right to left in the dataset.

    initialization : str, default="mean"
        How missing values are filled before the first models are trained.
        "mean" and "median" use the mode for non-continuous variables.
        "random" draws observed values at random.
    case_weights : array-like, optional
        Non-negative weight of each row, used when training models.
    learner : Learner, optional
        Trains the models. Defaults to LightGBMLearner().
    keep_models : bool, default=False
        Keep the models of the best iteration, so impute_new_data()
        can be called.
    random_state : None, int, or numpy.random.RandomState
        Seeds the initialization, the models and the mean matching draws.
        The same seed reproduces the same imputations.
    """

    def __init__(
        self,
        data: DataFrame,
        targets: _t_columns = None,
        predictors: _t_columns = None,
        pmm_k: Union[int, Dict[Any, int]] = _DEFAULT_PMM_K,
        imputation_order: Literal[
            "ascending", "descending", "roman", "arabic"
        ] = "ascending",
        initialization: Literal["mean", "median", "random"] = _DEFAULT_INITIALIZATION,
        case_weights: Optional[Union[np.ndarray, Series, List[float]]] = None,
        learner: Optional[Learner] = None,
        keep_models: bool = False,
        random_state: Optional[Union[int, np.random.RandomState]] = None,
    ):
        if not isinstance(data, DataFrame):
            raise InvalidSpecification("data must be a pandas DataFrame")
        if not data.columns.is_unique:
            raise InvalidSpecification("column names must be unique")
        if initialization not in _INITIALIZATION_METHODS:
            raise InvalidSpecification(
                f"initialization must be one of {_INITIALIZATION_METHODS}"
            )
        if learner is not None and not isinstance(learner, Learner):
            raise InvalidSpecification("learner must be a forestfill Learner")

        self.data = data.copy()
        self.shape = self.data.shape
        self.column_names = list(self.data.columns)
        self._column_position = {col: i for i, col in enumerate(self.column_names)}

        # The plan is resolved before anything is fit, so
        # specification errors surface immediately.
        self.descriptors = describe_columns(self.data)
        self.plan = resolve(
            targets=targets,
            predictors=predictors,
            descriptors=self.descriptors,
            imputation_order=imputation_order,
        )
        self.imputation_order = self.plan.visit_order
        self.na_where = {
            col: np.where(self.descriptors[col].missing)[0]
            for col in self.plan.visit_order + list(self.plan.constant_columns)
        }

        self.pmm_k = self._validate_pmm_k(pmm_k)
        self.case_weights = self._validate_case_weights(case_weights)
        self.initialization = initialization
        self.learner = LightGBMLearner() if learner is None else learner
        self.keep_models = keep_models

        self.diagnostics: List[Diagnostic] = list(self.plan.diagnostics)
        for diagnostic in self.diagnostics:
            diagnostic.emit()

        # Encode every supported column. Unsupported columns
        # stay NaN, they are never targets or predictors.
        self.codecs: Dict[Any, ColumnCodec] = {}
        working_data = np.full(self.shape, np.nan, dtype="float64")
        for col, desc in self.descriptors.items():
            if desc.supported:
                values, codec = encode(self.data[col], type_tag=desc.type_tag)
                working_data[:, self._column_position[col]] = values
                self.codecs[col] = codec
        self.working_data = working_data

        self.models: Dict[Any, FittedModel] = {}
        self.candidate_preds: Dict[Any, np.ndarray] = {}
        self.imputation_values: Dict[Any, Series] = {}
        self.logger: Optional[Logger] = None
        self.result: Optional[ImputedData] = None
        self.state = KernelState.INITIALIZING

        # Manage randomness
        self._random_state = ensure_rng(random_state)

        # Set initial imputations (iteration 0).
        self._initialize_dataset()

    def __repr__(self):
        summary_string = f"""
              Class: ImputationKernel
              State: {self.state.name}
        Data Samples: {self.shape[0]}
        Data Columns: {self.shape[1]}
   Imputed Variables: {len(self.imputation_order)}
   Modeled Variables: {len(self.plan.modeled_variables)}
        """
        return summary_string

    def _validate_pmm_k(self, pmm_k) -> Dict[Any, int]:
        if isinstance(pmm_k, dict):
            unknown = [col for col in pmm_k if col not in self.column_names]
            if unknown:
                raise InvalidSpecification(f"pmm_k given for unknown columns {unknown}")
            values = list(pmm_k.values())
        else:
            values = [pmm_k]
        for value in values:
            if not isinstance(value, (int, np.integer)) or value < 0:
                raise InvalidSpecification("pmm_k must be a non-negative integer")
        return _expand_value_to_dict(
            _DEFAULT_PMM_K,
            pmm_k if isinstance(pmm_k, dict) else int(pmm_k),
            self.plan.visit_order,
        )

    def _validate_case_weights(self, case_weights) -> Optional[np.ndarray]:
        if case_weights is None:
            return None
        try:
            weights = np.asarray(case_weights, dtype="float64")
        except (TypeError, ValueError):
            raise InvalidSpecification("case_weights must be numeric")
        if weights.shape != (self.shape[0],):
            raise InvalidSpecification(
                "case_weights must have one weight per row of data"
            )
        if not np.all(np.isfinite(weights)) or np.any(weights < 0):
            raise InvalidSpecification("case_weights must be finite and non-negative")
        return weights

    def _get_observed_index(self, variable) -> np.ndarray:
        return np.where(~self.descriptors[variable].missing)[0]

    def _draw_from_observed(self, variable, size: int, random_state):
        """
        Sample rows in which variable was observed. Returns the encoded values
        and the original values of the sampled rows.
        """
        observed_ind = self._get_observed_index(variable)
        rows = random_state.choice(observed_ind, size=size, replace=True)
        position = self._column_position[variable]
        original = self.data[variable].iloc[rows]
        return self.working_data[rows, position], original

    def _marginal_values(self, variable, size: int, random_state, draw_observed=False):
        """
        Fill values for variable that ignore every other column, following
        the initialization method. Returns the encoded and the original values.
        """
        if draw_observed or self.initialization == "random":
            return self._draw_from_observed(variable, size, random_state)
        codec = self.codecs[variable]
        position = self._column_position[variable]
        encoded = marginal_fill(
            values=np.where(
                self.descriptors[variable].missing,
                np.nan,
                self.working_data[:, position],
            ),
            size=size,
            classification=codec.type_tag.is_classification,
            method=self.initialization,
            random_state=random_state,
        )
        return encoded, codec.decode(encoded)

    def _initialize_dataset(self):
        """
        Sets initial imputation values for iteration 0, so every predictor
        is complete when the first models are trained. Variables without
        usable predictors keep these values for good, so they are drawn
        from observed values when mean matching is requested.
        """
        assert self.state == KernelState.INITIALIZING

        for variable, row in self.plan.constant_columns.items():
            na_where = self.na_where[variable]
            position = self._column_position[variable]
            self.working_data[na_where, position] = self.working_data[row, position]
            values = self.data[variable].iloc[np.repeat(row, na_where.shape[0])]
            self.imputation_values[variable] = values.set_axis(na_where)

        fallback_variables = self.plan.fallback_variables
        for variable in self.imputation_order:
            na_where = self.na_where[variable]
            position = self._column_position[variable]
            encoded, original = self._marginal_values(
                variable,
                na_where.shape[0],
                self._random_state,
                draw_observed=variable in fallback_variables
                and self.pmm_k[variable] > 0,
            )
            self.imputation_values[variable] = original.set_axis(na_where)
            self.working_data[na_where, position] = encoded

        self._initial_working_data = self.working_data.copy()
        self._initial_imputation_values = {
            variable: values.copy()
            for variable, values in self.imputation_values.items()
        }

    def _make_features_label(self, variable, working_data: np.ndarray):
        """
        Split the current data into training features, training label
        and the features of the rows being imputed.
        """
        predictor_positions = [
            self._column_position[col] for col in self.plan.predictors[variable]
        ]
        observed_ind = self._get_observed_index(variable)
        na_where = self.na_where[variable]
        position = self._column_position[variable]
        features = working_data[:, predictor_positions]
        candidate_features = features[observed_ind]
        bachelor_features = features[na_where]
        label = working_data[observed_ind, position]
        return candidate_features, label, bachelor_features

    def _categorical_feature_positions(self, variable) -> List[int]:
        return [
            i
            for i, col in enumerate(self.plan.predictors[variable])
            if self.codecs[col].type_tag.is_nominal
        ]

    def _fit_model(
        self,
        variable,
        candidate_features: np.ndarray,
        label: np.ndarray,
        params: Dict[str, Any],
    ) -> FittedModel:
        codec = self.codecs[variable]
        weight = None
        if self.case_weights is not None:
            weight = self.case_weights[self._get_observed_index(variable)]
        try:
            return self.learner.fit(
                candidate_features,
                label,
                objective=codec.objective,
                num_class=codec.n_categories if codec.objective == "multiclass" else None,
                weight=weight,
                categorical_features=self._categorical_feature_positions(variable),
                random_state=self._random_state,
                **params,
            )
        except LearnerFailure:
            raise
        except Exception as err:
            raise LearnerFailure(variable, f"{type(err).__name__}: {err}") from err

    def _predict(self, variable, model: FittedModel, features: np.ndarray) -> np.ndarray:
        try:
            preds = model.predict(features)
        except Exception as err:
            raise LearnerFailure(variable, f"{type(err).__name__}: {err}") from err
        assert preds.shape == (features.shape[0],), f"{variable} predictions malformed"
        return preds

    @staticmethod
    def _usable_predictions(model: FittedModel, bachelor_preds: np.ndarray) -> bool:
        return bool(
            np.isfinite(model.train_predictions).all()
            and np.isfinite(bachelor_preds).all()
        )

    def _normalize_error(self, variable, error: float, label: np.ndarray) -> float:
        """
        Regression errors are divided by the variance of the observed values,
        so variables on different scales contribute equally to the aggregate.
        """
        if self.codecs[variable].objective == "regression":
            variance = np.var(label)
            return error / variance if variance > 0 else error
        return error

    def _mean_match(
        self,
        variable,
        bachelor_preds: np.ndarray,
        candidate_preds: np.ndarray,
        random_state: np.random.RandomState,
    ):
        """
        Returns the encoded and the original imputation values for variable.
        Mean matching is skipped if pmm_k is 0.
        """
        codec = self.codecs[variable]
        mean_match_candidates = self.pmm_k[variable]

        if mean_match_candidates == 0:
            # Predictions are re-encoded from the decoded values, so the
            # working data holds exactly what is reported, rounding included.
            decoded = codec.decode(bachelor_preds)
            encoded, _ = encode(decoded, codec=codec)
            return encoded, decoded

        donor_rows = predictive_mean_match(
            bachelor_preds=bachelor_preds,
            candidate_preds=candidate_preds,
            candidate_values=self._get_observed_index(variable),
            mean_match_candidates=mean_match_candidates,
            random_state=random_state,
            categorical=codec.type_tag.is_classification,
        )
        # Observed cells never change, so the initial data holds the donor values.
        position = self._column_position[variable]
        encoded = self._initial_working_data[donor_rows, position]
        return encoded, self.data[variable].iloc[donor_rows]

    def impute(
        self,
        max_iter: int = _DEFAULT_MAX_ITER,
        tolerance: float = _DEFAULT_TOLERANCE,
        verbose: bool = False,
        variable_parameters: Dict[Any, Dict[str, Any]] = {},
        max_seconds: Optional[float] = None,
        **kwlgb,
    ) -> ImputedData:
        """
        Run the chained equations until the error estimates stop improving.

        Every call is an independent run starting from the initial
        imputations, continuing the kernel's random state.

        Parameters
        ----------
        max_iter: int
            The maximum number of iterations.
        tolerance: float
            Iterations stop once the aggregate error improved by no more
            than this relative to the previous iteration.
        verbose: bool
            Should information about the process be printed?
        variable_parameters: dict
            Model parameters by variable. Keys should be variable names, and
            values should be a dict of parameters which should apply to that
            variable only.

            .. code-block:: python

                variable_parameters = {
                    'column': {
                        'min_sum_hessian_in_leaf': 25.0,
                        'extra_trees': True,
                    }
                }

        max_seconds: float, optional
            Stop after the first iteration that ends past this many seconds.
            Checked once per completed iteration.
        kwlgb:
            Additional parameters to pass to the learner. Applied to all models.

        Returns
        -------
        forestfill.ImputedData
        """
        if not isinstance(max_iter, (int, np.integer)) or max_iter < 1:
            raise InvalidSpecification("max_iter must be a positive integer")
        if tolerance < 0:
            raise InvalidSpecification("tolerance must be non-negative")
        if not isinstance(variable_parameters, dict):
            raise InvalidSpecification("variable_parameters should be a dict.")
        if not set(variable_parameters).issubset(self.plan.modeled_variables):
            raise InvalidSpecification(
                "Variables in variable_parameters will not have models trained. "
                "Check kernel.plan.modeled_variables"
            )

        logger = Logger(
            name=f"Impute {max_iter} iterations",
            timed_levels=_TIMED_LEVELS,
            verbose=verbose,
        )
        self.logger = logger
        self.working_data = self._initial_working_data.copy()
        self.imputation_values = {
            variable: values.copy()
            for variable, values in self._initial_imputation_values.items()
        }

        if len(self.imputation_order) == 0:
            diagnostic = Diagnostic(
                None, EmptyTargetSet, "There are no columns to impute."
            )
            diagnostic.emit()
            self.state = KernelState.ABORTED
            self.result = self._make_result(
                self.imputation_values, None, self.diagnostics + [diagnostic]
            )
            return self.result

        self.state = KernelState.ITERATING
        iteration_state = IterationState(self.plan.modeled_variables)
        run_diagnostics: Dict[Any, Diagnostic] = {}
        started = monotonic()

        try:
            for iteration in range(1, max_iter + 1):
                pass_models = self._run_iteration(
                    iteration,
                    iteration_state,
                    logger,
                    variable_parameters,
                    kwlgb,
                    run_diagnostics,
                )

                working_data = self.working_data
                imputation_values = self.imputation_values
                kept_models = pass_models if self.keep_models else {}
                iteration_state.complete_iteration(
                    lambda: (
                        working_data.copy(),
                        {v: s.copy() for v, s in imputation_values.items()},
                        kept_models,
                    )
                )
                logger.log_iteration(
                    iteration,
                    iteration_state.previous_errors,
                    iteration_state.last_aggregate,
                )

                if iteration_state.should_stop(tolerance):
                    self.state = KernelState.CONVERGED
                    break
                if max_seconds is not None and monotonic() - started > max_seconds:
                    self.state = KernelState.MAX_ITER_REACHED
                    break
            else:
                self.state = KernelState.MAX_ITER_REACHED
        except LearnerFailure:
            self.state = KernelState.ABORTED
            raise

        best_working_data, best_values, best_models = iteration_state.best_snapshot
        self.working_data = best_working_data
        self.imputation_values = best_values
        if self.keep_models:
            self.models = {v: m for v, (m, _) in best_models.items()}
            self.candidate_preds = {v: p for v, (_, p) in best_models.items()}

        self.result = self._make_result(
            best_values,
            iteration_state,
            self.diagnostics + list(run_diagnostics.values()),
        )
        return self.result

    def _run_iteration(
        self,
        iteration: int,
        iteration_state: IterationState,
        logger: Logger,
        variable_parameters: Dict[Any, Dict[str, Any]],
        kwlgb: Dict[str, Any],
        run_diagnostics: Dict[Any, Diagnostic],
    ):
        """
        One pass over the modeled variables in visit order. The working data
        is updated after each variable, so later variables see the values
        imputed earlier in this pass.

        A model that predicts non-finite values (too few observed rows to
        grow a tree) is discarded. The variable gets a marginal fill for this
        pass, a NaN error and one UnfittableColumn diagnostic per run.
        """
        pass_models = {}
        for variable in self.plan.modeled_variables:
            position = self._column_position[variable]
            na_where = self.na_where[variable]

            time_key = iteration, variable, "Prepare XY"
            logger.set_start_time(time_key)
            candidate_features, label, bachelor_features = self._make_features_label(
                variable, self.working_data
            )
            params = self.learner.merge_parameters(
                kwlgb, variable_parameters.get(variable, {})
            )
            logger.record_time(time_key)

            time_key = iteration, variable, "Training"
            logger.set_start_time(time_key)
            model = self._fit_model(variable, candidate_features, label, params)
            bachelor_preds = self._predict(variable, model, bachelor_features)
            logger.record_time(time_key)

            if not self._usable_predictions(model, bachelor_preds):
                if variable not in run_diagnostics:
                    diagnostic = Diagnostic(
                        variable,
                        UnfittableColumn,
                        f"The model for {variable!r} made non-finite predictions. "
                        "Its missing values are filled from its own distribution.",
                    )
                    diagnostic.emit()
                    run_diagnostics[variable] = diagnostic
                encoded, imputation_values = self._marginal_values(
                    variable,
                    na_where.shape[0],
                    self._random_state,
                    draw_observed=self.pmm_k[variable] > 0,
                )
                self.working_data[na_where, position] = encoded
                self.imputation_values[variable] = imputation_values.set_axis(na_where)
                iteration_state.record(variable, np.nan)
                continue

            time_key = iteration, variable, "Mean Matching"
            logger.set_start_time(time_key)
            encoded, imputation_values = self._mean_match(
                variable=variable,
                bachelor_preds=bachelor_preds,
                candidate_preds=model.train_predictions,
                random_state=self._random_state,
            )
            logger.record_time(time_key)

            assert imputation_values.shape == (
                na_where.shape[0],
            ), f"{variable} mean matching returned malformed array"

            self.working_data[na_where, position] = encoded
            self.imputation_values[variable] = imputation_values.set_axis(na_where)
            iteration_state.record(
                variable, self._normalize_error(variable, model.error, label)
            )
            pass_models[variable] = (model, model.train_predictions)

        return pass_models

    def _make_result(self, imputation_values, iteration_state, diagnostics):
        return ImputedData(
            data=self.data,
            plan=self.plan,
            imputation_values=imputation_values,
            na_where=self.na_where,
            state=self.state,
            iteration_state=iteration_state,
            diagnostics=diagnostics,
            logger=self.logger,
        )

    def complete_data(self) -> DataFrame:
        """The completed data of the last run."""
        assert self.result is not None, "Call impute() first."
        return self.result.complete_data()

    def impute_new_data(
        self,
        new_data: DataFrame,
        iterations: Optional[int] = None,
        random_state: Optional[Union[int, np.random.RandomState]] = None,
        verbose: bool = False,
    ) -> DataFrame:
        """
        Impute a new dataset

        Uses the models kept from the best iteration to impute new data,
        without fitting new models. Missing values are first filled with the
        initialization of the kernel data, then every modeled variable is
        predicted in visit order, for the given number of iterations. Mean
        matching candidates are pulled from the kernel data.

        Type checking is limited to column names and dtypes. Text values not
        seen in the kernel data are treated as missing by the models.

        Parameters
        ----------
        new_data: pandas.DataFrame
            The new data to impute
        iterations: int, default=None
            The number of iterations to run.
            If :code:`None`, the best iteration of the kernel run is used.
        random_state: None or int or np.random.RandomState (default=None)
            The random state of the process. If :code:`None`, the random
            state of the kernel is used.
        verbose: boolean, default=False
            Should information about the process be printed?

        Returns
        -------
        pandas.DataFrame with the kernel's imputed variables completed.
        """
        assert self.keep_models, (
            "Cannot impute new data, models were not kept. "
            "Set keep_models to True when making the kernel."
        )
        assert self.result is not None, "Call impute() before impute_new_data()."
        if not isinstance(new_data, DataFrame):
            raise InvalidSpecification("new_data must be a pandas DataFrame")
        if not self.data.columns.equals(new_data.columns):
            raise InvalidSpecification("Different columns from original dataset.")
        if not all(self.data[col].dtype == new_data[col].dtype for col in self.column_names):
            raise InvalidSpecification(
                "Column types are not the same as the original data. "
                "Check categorical columns."
            )

        iterations = self.result.best_iteration if iterations is None else iterations
        random_state = (
            self._random_state if random_state is None else ensure_rng(random_state)
        )
        logger = Logger(
            name=f"Impute New Data {iterations}",
            timed_levels=_TIMED_LEVELS,
            verbose=verbose,
        )

        new_data = new_data.copy()
        num_rows = new_data.shape[0]
        working_data = np.full((num_rows, self.shape[1]), np.nan, dtype="float64")
        new_missing = {}
        for col, codec in self.codecs.items():
            position = self._column_position[col]
            values, _ = encode(new_data[col], codec=codec)
            working_data[:, position] = values
            new_missing[col] = np.where(new_data[col].isna().to_numpy())[0]

        # Fill every supported column from the kernel data, so the models
        # never see the missing values.
        imputation_values: Dict[Any, Series] = {}
        for col, na_where in new_missing.items():
            if na_where.shape[0] == 0:
                continue
            position = self._column_position[col]
            if col in self.plan.constant_columns:
                row = self.plan.constant_columns[col]
                encoded = np.repeat(self._initial_working_data[row, position], len(na_where))
                original = self.data[col].iloc[np.repeat(row, na_where.shape[0])]
            elif self.descriptors[col].n_distinct == 0:
                continue
            else:
                # Imputed variables without a kept model keep this fill.
                encoded, original = self._marginal_values(
                    col,
                    na_where.shape[0],
                    random_state,
                    draw_observed=col in self.imputation_order
                    and col not in self.models
                    and self.pmm_k[col] > 0,
                )
            working_data[na_where, position] = encoded
            imputation_values[col] = original.set_axis(na_where)

        new_imputation_order = [
            col
            for col in self.plan.modeled_variables
            if col in self.models and new_missing[col].shape[0] > 0
        ]

        for iteration in range(1, iterations + 1):
            logger.log(str(iteration) + " ", end="")
            for variable in new_imputation_order:
                logger.log(" | " + str(variable), end="")
                position = self._column_position[variable]
                na_where = new_missing[variable]
                predictor_positions = [
                    self._column_position[col] for col in self.plan.predictors[variable]
                ]
                time_key = iteration, variable, "Mean Matching"
                logger.set_start_time(time_key)
                bachelor_features = working_data[np.ix_(na_where, predictor_positions)]
                bachelor_preds = self._predict(
                    variable, self.models[variable], bachelor_features
                )
                encoded, original = self._mean_match(
                    variable=variable,
                    bachelor_preds=bachelor_preds,
                    candidate_preds=self.candidate_preds[variable],
                    random_state=random_state,
                )
                logger.record_time(time_key)
                working_data[na_where, position] = encoded
                imputation_values[variable] = original.set_axis(na_where)
            logger.log("")

        for variable in self.imputation_order + list(self.plan.constant_columns):
            if variable not in imputation_values:
                continue
            na_where = new_missing[variable]
            column = new_data[variable].copy()
            column.iloc[na_where] = imputation_values[variable].to_numpy()
            new_data[variable] = column

        return new_data


def fill_missing(
    data: DataFrame,
    targets: _t_columns = None,
    predictors: _t_columns = None,
    pmm_k: Union[int, Dict[Any, int]] = _DEFAULT_PMM_K,
    max_iter: int = _DEFAULT_MAX_ITER,
    tolerance: float = _DEFAULT_TOLERANCE,
    imputation_order: str = "ascending",
    initialization: str = _DEFAULT_INITIALIZATION,
    case_weights=None,
    learner: Optional[Learner] = None,
    random_state: Optional[Union[int, np.random.RandomState]] = None,
    verbose: bool = False,
    data_only: bool = True,
    variable_parameters: Dict[Any, Dict[str, Any]] = {},
    **kwlgb,
):
    """
    Impute the missing values of data in one call.

    See ImputationKernel and ImputationKernel.impute() for the parameters.

    Returns
    -------
    The completed pandas.DataFrame, or the ImputedData
    result of the run if data_only is False.
    """
    kernel = ImputationKernel(
        data,
        targets=targets,
        predictors=predictors,
        pmm_k=pmm_k,
        imputation_order=imputation_order,
        initialization=initialization,
        case_weights=case_weights,
        learner=learner,
        random_state=random_state,
    )
    result = kernel.impute(
        max_iter=max_iter,
        tolerance=tolerance,
        verbose=verbose,
        variable_parameters=variable_parameters,
        **kwlgb,
    )
    if data_only:
        return result.complete_data()
    return result


def fill_missing_multiple(
    data: DataFrame,
    num_datasets: int = 5,
    random_state: Optional[Union[int, np.random.RandomState]] = None,
    **kwargs,
) -> List:
    """
    Multiple imputation. Runs fill_missing() num_datasets times. Every run
    works on its own copy of data with its own seed, drawn from random_state.

    Returns
    -------
    A list with the output of each run.
    """
    assert num_datasets > 0, "num_datasets must be positive"
    random_state = ensure_rng(random_state)
    seeds = _draw_random_int32(random_state, size=num_datasets)
    return [fill_missing(data, random_state=int(seed), **kwargs) for seed in seeds]
