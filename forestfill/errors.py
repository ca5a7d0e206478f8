"""Exceptions, warnings and diagnostic records raised during imputation."""

from typing import Any, Optional
from warnings import warn


class ForestFillError(Exception):
    """Base class for fatal forestfill errors."""

    pass


class InvalidSpecification(ForestFillError, ValueError):
    """
    The target / predictor specification or a run option is malformed.
    Raised before any model is fit.
    """

    pass


class UnsupportedColumnType(ForestFillError, TypeError):
    """A column could not be classified into a supported type."""

    def __init__(self, column: Any, dtype: Any):
        self.column = column
        self.dtype = dtype
        super().__init__(f"Column {column!r} has unsupported type {dtype}")


class LearnerFailure(ForestFillError, RuntimeError):
    """The learner could not fit or predict. Aborts the run."""

    def __init__(self, variable: Any, reason: str):
        self.variable = variable
        super().__init__(f"Model for {variable!r} failed: {reason}")


class ImputationWarning(UserWarning):
    pass


class UnsupportedColumnWarning(ImputationWarning):
    pass


class ZeroVarianceColumn(ImputationWarning):
    pass


class AllMissingColumn(ImputationWarning):
    pass


class UnusablePredictor(ImputationWarning):
    pass


class NoUsablePredictors(ImputationWarning):
    pass


class UnfittableColumn(ImputationWarning):
    pass


class EmptyTargetSet(ImputationWarning):
    pass


class Diagnostic:
    """
    A non-fatal notice about a column that was excluded from a role,
    or that is handled by a fallback.

    Parameters
    ----------
    column: Any
        The column the notice is about. None for run-level notices.
    category: type
        The ImputationWarning subclass describing the notice.
    message: str
        Human readable description.
    target: Any
        For predictor exclusions, the target whose predictor list
        the column was removed from.
    """

    def __init__(
        self,
        column: Any,
        category: type,
        message: str,
        target: Optional[Any] = None,
    ):
        assert issubclass(category, ImputationWarning)
        self.column = column
        self.category = category
        self.message = message
        self.target = target

    @property
    def kind(self) -> str:
        return self.category.__name__

    def emit(self):
        warn(self.message, self.category, stacklevel=3)

    def __eq__(self, other):
        if not isinstance(other, Diagnostic):
            return NotImplemented
        return (self.column, self.category, self.message, self.target) == (
            other.column,
            other.category,
            other.message,
            other.target,
        )

    def __repr__(self):
        return f"Diagnostic({self.kind}, column={self.column!r}: {self.message})"
