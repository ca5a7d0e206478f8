from typing import Any, Dict, List, Optional

import numpy as np
from pandas import DataFrame, Index, Series

from .dependency import DependencyPlan
from .errors import Diagnostic
from .iteration_state import IterationState
from .logger import Logger


class ImputedData:
    """
    The result of one imputation run.

    The original data is never altered. Imputation values are stored
    separately for each imputed variable, and complete_data() puts them
    into a copy of the original data.

    Attributes
    ----------
    state: KernelState
        How the run ended.
    plan: DependencyPlan
        Visit order and predictors of every target.
    diagnostics: list of Diagnostic
        Notices about excluded columns and fallbacks.
    imputation_values: dict
        Variable -> Series of imputed values, indexed by row position,
        taken from the best iteration.
    """

    def __init__(
        self,
        data: DataFrame,
        plan: DependencyPlan,
        imputation_values: Dict[Any, Series],
        na_where: Dict[Any, np.ndarray],
        state,
        iteration_state: Optional[IterationState],
        diagnostics: List[Diagnostic],
        logger: Optional[Logger] = None,
    ):
        self.original_data = data
        self.shape = data.shape
        self.plan = plan
        self.imputation_values = imputation_values
        self.na_where = na_where
        self.state = state
        self.iteration_state = iteration_state
        self.diagnostics = diagnostics
        self.logger = logger

    def __repr__(self):
        summary_string = f'\n{" " * 14}Class: ImputedData\n{self._ids_info()}'
        return summary_string

    def _ids_info(self):
        summary_string = f"""\
               State: {self.state.name}
          Iterations: {self.iteration_count()}
      Best Iteration: {self.best_iteration}
        Data Samples: {self.shape[0]}
        Data Columns: {self.shape[1]}
   Imputed Variables: {len(self.imputed_variables)}
   Modeled Variables: {len(self.modeled_variables)}
         Diagnostics: {len(self.diagnostics)}
        """
        return summary_string

    @property
    def visit_order(self) -> List:
        return self.plan.visit_order

    @property
    def predictors(self) -> Dict[Any, List]:
        return self.plan.predictors

    @property
    def modeled_variables(self) -> List:
        return self.plan.modeled_variables

    @property
    def imputed_variables(self) -> List:
        return list(self.imputation_values)

    def iteration_count(self) -> int:
        if self.iteration_state is None:
            return 0
        return self.iteration_state.iteration

    @property
    def best_iteration(self) -> int:
        if self.iteration_state is None:
            return 0
        return self.iteration_state.best_iteration

    @property
    def errors(self) -> DataFrame:
        """
        Normalized error estimates. Rows are iterations,
        columns are modeled variables.
        """
        variables = self.modeled_variables
        if self.iteration_state is None:
            return DataFrame(columns=variables, dtype="float64")
        errors = DataFrame(
            self.iteration_state.error_history,
            columns=variables,
            dtype="float64",
        )
        errors.index = Index(
            range(1, len(errors) + 1), name="iteration", dtype="int64"
        )
        return errors

    @property
    def aggregate_errors(self) -> Series:
        history = []
        if self.iteration_state is not None:
            history = self.iteration_state.aggregate_history
        return Series(
            history,
            index=Index(range(1, len(history) + 1), name="iteration", dtype="int64"),
            name="aggregate",
            dtype="float64",
        )

    @property
    def best_errors(self) -> Series:
        """The normalized error of each modeled variable at the best iteration."""
        if self.best_iteration == 0:
            return Series(dtype="float64")
        return self.errors.loc[self.best_iteration]

    @property
    def best_aggregate_error(self) -> float:
        if self.best_iteration == 0:
            return np.nan
        return float(self.aggregate_errors.loc[self.best_iteration])

    def complete_data(self, variables: Optional[List] = None) -> DataFrame:
        """
        Return a copy of the original data with missing values imputed.

        Parameters
        ----------
        variables: list, optional
            Only impute these variables. By default all imputed
            variables are completed.
        """
        imp_vars = self.imputed_variables if variables is None else variables
        assert set(imp_vars).issubset(
            set(self.imputed_variables)
        ), "Not all variables specified were imputed."

        impute_data = self.original_data.copy()
        for variable in imp_vars:
            na_where = self.na_where[variable]
            column = impute_data[variable].copy()
            column.iloc[na_where] = self.imputation_values[variable].to_numpy()
            impute_data[variable] = column

        return impute_data

    def get_time_spend_summary(self) -> Series:
        """Total seconds spent per iteration, variable and event."""
        if self.logger is None:
            return Series(dtype="float64")
        return self.logger.get_time_spend_summary()
