"""
forestfill, missing value imputation by chained random forests.

Every column with missing values is imputed by a random forest trained on
the other columns. Imputations are refined over several iterations until
the out-of-sample error estimates stop improving.
"""

import importlib.metadata

from .column_types import TypeTag, classify, encode
from .dependency import AllColumns, Columns
from .errors import (
    AllMissingColumn,
    Diagnostic,
    EmptyTargetSet,
    ForestFillError,
    ImputationWarning,
    InvalidSpecification,
    LearnerFailure,
    NoUsablePredictors,
    UnfittableColumn,
    UnsupportedColumnType,
    UnsupportedColumnWarning,
    UnusablePredictor,
    ZeroVarianceColumn,
)
from .imputation_kernel import (
    ImputationKernel,
    KernelState,
    fill_missing,
    fill_missing_multiple,
)
from .imputed_data import ImputedData
from .learners import FittedModel, Learner, LightGBMLearner, RandomForestLearner
from .mean_match import predictive_mean_match
from .utils import ampute_data, impute_univariate

__version__ = importlib.metadata.version("forestfill")


__all__ = [
    "AllColumns",
    "AllMissingColumn",
    "Columns",
    "Diagnostic",
    "EmptyTargetSet",
    "FittedModel",
    "ForestFillError",
    "ImputationKernel",
    "ImputationWarning",
    "ImputedData",
    "InvalidSpecification",
    "KernelState",
    "Learner",
    "LearnerFailure",
    "LightGBMLearner",
    "NoUsablePredictors",
    "RandomForestLearner",
    "TypeTag",
    "UnfittableColumn",
    "UnsupportedColumnType",
    "UnsupportedColumnWarning",
    "UnusablePredictor",
    "ZeroVarianceColumn",
    "ampute_data",
    "classify",
    "encode",
    "fill_missing",
    "fill_missing_multiple",
    "impute_univariate",
    "predictive_mean_match",
]
