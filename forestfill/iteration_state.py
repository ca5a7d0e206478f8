from typing import Any, Callable, Dict, List, Optional

import numpy as np


def aggregate_error(errors: Dict[Any, float]) -> float:
    """Mean of the normalized errors of the modeled variables. NaN if none."""
    values = np.array([e for e in errors.values() if not np.isnan(e)], dtype="float64")
    if values.shape[0] == 0:
        return np.nan
    return float(values.mean())


class IterationState:
    """
    Bookkeeping for one run. Errors for the current iteration are recorded
    variable by variable; complete_iteration() closes the iteration,
    compares its aggregate error with the best one seen so far, and keeps a
    snapshot of the data only when the aggregate improved.

    Parameters
    ----------
    variables: list
        The modeled variables, in visit order.
    """

    def __init__(self, variables: List):
        self.variables = list(variables)
        self.iteration = 0
        self.current_errors: Dict[Any, float] = self._empty_errors()
        self.previous_errors: Dict[Any, float] = self._empty_errors()
        self.error_history: List[Dict[Any, float]] = []
        self.aggregate_history: List[float] = []
        self.best_iteration = 0
        self.best_aggregate = np.inf
        self.best_snapshot: Optional[Any] = None

    def _empty_errors(self):
        return {variable: np.nan for variable in self.variables}

    def record(self, variable, error: float):
        assert variable in self.current_errors, f"{variable} is not modeled"
        self.current_errors[variable] = float(error)

    def complete_iteration(self, make_snapshot: Callable[[], Any]) -> bool:
        """
        Close the current iteration.

        Parameters
        ----------
        make_snapshot: callable
            Called only if this iteration is the best so far. Whatever it
            returns is kept as best_snapshot.

        Returns
        -------
        True if the aggregate error improved on every earlier iteration.
        """
        self.iteration += 1
        aggregate = aggregate_error(self.current_errors)
        self.error_history.append(self.current_errors.copy())
        self.aggregate_history.append(aggregate)

        # The first iteration has nothing to compare against.
        improved = self.best_snapshot is None or aggregate < self.best_aggregate
        if improved:
            self.best_snapshot = make_snapshot()
            self.best_iteration = self.iteration
            if not np.isnan(aggregate):
                self.best_aggregate = aggregate

        self.previous_errors = self.current_errors
        self.current_errors = self._empty_errors()
        return improved

    @property
    def last_aggregate(self) -> float:
        return self.aggregate_history[-1] if self.aggregate_history else np.nan

    def should_stop(self, tolerance: float = 0.0) -> bool:
        """
        True once the aggregate error stopped improving relative to the
        previous iteration: it increased, or decreased by no more than
        tolerance. Never True before two iterations have completed, unless
        nothing is modeled at all.
        """
        if self.iteration == 0:
            return False
        current = self.aggregate_history[-1]
        if np.isnan(current):
            return True
        if self.iteration < 2:
            return False
        previous = self.aggregate_history[-2]
        return (previous - current) <= tolerance
