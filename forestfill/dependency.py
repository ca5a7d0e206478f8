"""
Which columns get imputed, and which columns each of them is
allowed to learn from.
"""

from typing import Any, Dict, Iterable, List, Literal, Optional, Union

import numpy as np
from pandas import DataFrame

from .column_types import TypeTag, classify
from .errors import (
    AllMissingColumn,
    Diagnostic,
    InvalidSpecification,
    NoUsablePredictors,
    UnsupportedColumnType,
    UnsupportedColumnWarning,
    UnusablePredictor,
    ZeroVarianceColumn,
)


class ColumnSet:
    """
    A set expression over column names. Combine with ``|`` (union)
    and ``-`` (difference). Resolving against the dataset columns
    always returns names in dataset order.
    """

    def resolve(self, columns: List) -> List:
        selected = self._select(columns)
        return [col for col in columns if col in selected]

    def _select(self, columns: List) -> set:
        raise NotImplementedError

    def __or__(self, other):
        return _Union(self, as_column_set(other))

    def __sub__(self, other):
        return _Difference(self, as_column_set(other))


class AllColumns(ColumnSet):
    def _select(self, columns):
        return set(columns)

    def __repr__(self):
        return "AllColumns()"


class Columns(ColumnSet):
    def __init__(self, names: Iterable):
        if isinstance(names, str):
            names = [names]
        self.names = list(names)

    def _select(self, columns):
        unknown = [name for name in self.names if name not in columns]
        if unknown:
            raise InvalidSpecification(f"Columns not found in data: {unknown}")
        return set(self.names)

    def __repr__(self):
        return f"Columns({self.names!r})"


class _Union(ColumnSet):
    def __init__(self, left: ColumnSet, right: ColumnSet):
        self.left = left
        self.right = right

    def _select(self, columns):
        return self.left._select(columns) | self.right._select(columns)

    def __repr__(self):
        return f"({self.left!r} | {self.right!r})"


class _Difference(ColumnSet):
    def __init__(self, left: ColumnSet, right: ColumnSet):
        self.left = left
        self.right = right

    def _select(self, columns):
        return self.left._select(columns) - self.right._select(columns)

    def __repr__(self):
        return f"({self.left!r} - {self.right!r})"


def as_column_set(expression: Union[None, str, Iterable, ColumnSet]) -> ColumnSet:
    """None means all columns. A name or list of names means those columns."""
    if expression is None:
        return AllColumns()
    if isinstance(expression, ColumnSet):
        return expression
    if isinstance(expression, (str, list, tuple, set, frozenset)):
        return Columns(expression)
    raise InvalidSpecification(f"Cannot interpret {expression!r} as a set of columns")


class ColumnDescriptor:
    """
    Static facts about one column, gathered once before a run starts.
    The missing mask is read-only: rows missing at input remain the
    rows being imputed.
    """

    def __init__(
        self,
        name: Any,
        type_tag: Optional[TypeTag],
        missing: np.ndarray,
        n_distinct: int,
    ):
        self.name = name
        self.type_tag = type_tag
        missing = np.asarray(missing, dtype=bool).copy()
        missing.flags.writeable = False
        self.missing = missing
        self.n_distinct = n_distinct
        self.is_target = False
        self.is_predictor = False

    @property
    def n_missing(self) -> int:
        return int(self.missing.sum())

    @property
    def supported(self) -> bool:
        return self.type_tag is not None

    def __repr__(self):
        tag = None if self.type_tag is None else self.type_tag.value
        return (
            f"ColumnDescriptor({self.name!r}, type={tag}, "
            f"missing={self.n_missing}, distinct={self.n_distinct})"
        )


def describe_columns(data: DataFrame) -> Dict[Any, ColumnDescriptor]:
    """
    Build a descriptor for every column. Columns that cannot be classified
    get type_tag None; the resolver decides what to do with them.
    """
    descriptors = {}
    for col, series in data.items():
        try:
            type_tag: Optional[TypeTag] = classify(series)
        except UnsupportedColumnType:
            type_tag = None
        missing = series.isna().to_numpy()
        try:
            n_distinct = int(series.nunique(dropna=True))
        except TypeError:
            n_distinct = len({repr(v) for v in series.dropna()})
        descriptors[col] = ColumnDescriptor(
            name=col,
            type_tag=type_tag,
            missing=missing,
            n_distinct=n_distinct,
        )
    return descriptors


class DependencyPlan:
    """
    The visit order of target columns and, for each target, the ordered
    list of columns permitted to train its model.

    Attributes
    ----------
    visit_order: list
        Target columns in the order they are imputed every iteration.
    predictors: dict
        Target column -> list of predictor columns, in dataset order.
        An empty list means the target falls back to a marginal fill.
    constant_columns: dict
        Zero variance columns with missing values -> their single value
        position in the data (first observed row).
    diagnostics: list of Diagnostic
    """

    def __init__(
        self,
        visit_order: List,
        predictors: Dict[Any, List],
        constant_columns: Dict[Any, int],
        diagnostics: List[Diagnostic],
    ):
        self.visit_order = visit_order
        self.predictors = predictors
        self.constant_columns = constant_columns
        self.diagnostics = diagnostics

    @property
    def modeled_variables(self) -> List:
        return [col for col in self.visit_order if len(self.predictors[col]) > 0]

    @property
    def fallback_variables(self) -> List:
        return [col for col in self.visit_order if len(self.predictors[col]) == 0]

    def __len__(self):
        return len(self.visit_order)

    def __repr__(self):
        lines = [f"DependencyPlan({len(self.visit_order)} targets)"]
        for target in self.visit_order:
            lines.append(f"  {target!r} <- {self.predictors[target]!r}")
        return "\n".join(lines)


def _order_targets(
    targets: List,
    descriptors: Dict[Any, ColumnDescriptor],
    imputation_order: str,
) -> List:
    if imputation_order in ["ascending", "descending"]:
        # sorted() is stable, so ties stay in dataset order either way.
        return sorted(
            targets,
            key=lambda col: descriptors[col].n_missing,
            reverse=imputation_order == "descending",
        )
    elif imputation_order == "roman":
        return list(targets)
    elif imputation_order == "arabic":
        return list(reversed(targets))
    else:
        raise InvalidSpecification("imputation_order not recognized.")


def resolve(
    targets: Union[None, str, Iterable, ColumnSet],
    predictors: Union[None, str, Iterable, ColumnSet],
    descriptors: Dict[Any, ColumnDescriptor],
    imputation_order: Literal[
        "ascending", "descending", "roman", "arabic"
    ] = "ascending",
) -> DependencyPlan:
    """
    Build the dependency plan.

    Parameters
    ----------
    targets: None, str, list or ColumnSet
        Columns that should be imputed. Columns without missing values
        are dropped silently. None means all columns.
    predictors: None, str, list or ColumnSet
        Columns that may be used to impute the targets. A target is
        never used to predict itself. None means all columns.
    descriptors: dict
        Output of describe_columns().
    imputation_order: str
        - :code:`ascending`: variables are imputed from least to most missing
        - :code:`descending`: most to least missing
        - :code:`roman`: from left to right in the dataset
        - :code:`arabic`: from right to left in the dataset.

    Raises
    ------
    InvalidSpecification
        If an expression names a column that does not exist.
    """
    columns = list(descriptors)
    requested_targets = as_column_set(targets).resolve(columns)
    requested_predictors = as_column_set(predictors).resolve(columns)
    if imputation_order not in ["ascending", "descending", "roman", "arabic"]:
        raise InvalidSpecification("imputation_order not recognized.")

    diagnostics: List[Diagnostic] = []
    constant_columns: Dict[Any, int] = {}
    excluded = set()

    for col in columns:
        desc = descriptors[col]
        if not desc.supported:
            diagnostics.append(
                Diagnostic(
                    col,
                    UnsupportedColumnWarning,
                    f"{col!r} has an unsupported type and is not used for imputation.",
                )
            )
            excluded.add(col)
        elif desc.n_distinct == 0:
            if col in requested_targets:
                diagnostics.append(
                    Diagnostic(
                        col,
                        AllMissingColumn,
                        f"{col!r} has no observed values and cannot be imputed.",
                    )
                )
            elif col in requested_predictors:
                diagnostics.append(
                    Diagnostic(
                        col,
                        AllMissingColumn,
                        f"{col!r} has no observed values and is not used "
                        "as a predictor.",
                    )
                )
            excluded.add(col)
        elif desc.n_distinct == 1 and desc.n_missing > 0:
            if col in requested_targets:
                diagnostics.append(
                    Diagnostic(
                        col,
                        ZeroVarianceColumn,
                        f"{col!r} has a single distinct value. Missing values are "
                        "filled with that value and no model is trained.",
                    )
                )
                constant_columns[col] = int(np.argmin(desc.missing))
            elif col in requested_predictors:
                diagnostics.append(
                    Diagnostic(
                        col,
                        ZeroVarianceColumn,
                        f"{col!r} has a single distinct value and missing "
                        "values, so it is not used as a predictor.",
                    )
                )
            excluded.add(col)

    target_set = [
        col
        for col in requested_targets
        if col not in excluded and descriptors[col].n_missing > 0
    ]

    plan_predictors: Dict[Any, List] = {}
    for target in target_set:
        usable = []
        for col in requested_predictors:
            if col == target or col in excluded:
                continue
            if descriptors[col].n_missing > 0 and col not in target_set:
                diagnostics.append(
                    Diagnostic(
                        col,
                        UnusablePredictor,
                        f"{col!r} has missing values and is not imputed, so it "
                        f"is not used to impute {target!r}.",
                        target=target,
                    )
                )
                continue
            usable.append(col)
        if not usable:
            diagnostics.append(
                Diagnostic(
                    target,
                    NoUsablePredictors,
                    f"{target!r} has no usable predictors and is filled from "
                    "its own distribution.",
                )
            )
        plan_predictors[target] = usable

    for col, desc in descriptors.items():
        desc.is_target = col in plan_predictors
        desc.is_predictor = any(col in p for p in plan_predictors.values())

    visit_order = _order_targets(target_set, descriptors, imputation_order)

    return DependencyPlan(
        visit_order=visit_order,
        predictors=plan_predictors,
        constant_columns=constant_columns,
        diagnostics=diagnostics,
    )
