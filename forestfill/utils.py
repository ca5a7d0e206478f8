from typing import Dict, List, Optional, Union

import numpy as np
from numpy.random import RandomState
from pandas import DataFrame, Series

_INITIALIZATION_METHODS = ["mean", "median", "random"]


def ampute_data(
    data: DataFrame,
    variables: Optional[List] = None,
    perc: Union[float, Dict] = 0.1,
    random_state: Optional[Union[int, np.random.RandomState]] = None,
):
    """
    Ampute Data

    Returns a copy of data with specified variables amputed.

    Parameters
    ----------
     data : Pandas DataFrame
        The data to ampute

     variables : None or list
        If None, all variables are amputed. Ignored if perc is a dict.

     perc : float or dict
        The share of rows to ampute in each variable. If a dict, keys
        are column names and values are the share for that column.

    random_state: None, int, or np.random.RandomState
        The random state to use.

    Returns
    -------
    pandas DataFrame
        The amputed data
    """
    amputed_data = data.copy()
    num_rows = amputed_data.shape[0]
    random_state = ensure_rng(random_state)

    if isinstance(perc, dict):
        col_perc = perc.copy()
    else:
        variables = list(data.columns) if variables is None else variables
        col_perc = {col: perc for col in variables}

    for col, p in col_perc.items():
        assert 0.0 <= p <= 1.0, f"perc for {col} must be between 0 and 1"
        amp_rows = int(p * num_rows)
        ind = random_state.choice(num_rows, size=amp_rows, replace=False)
        mask = np.zeros(num_rows, dtype=bool)
        mask[ind] = True
        amputed_data[col] = amputed_data[col].mask(mask)

    return amputed_data


def marginal_fill(
    values: np.ndarray,
    size: int,
    classification: bool,
    method: str,
    random_state: RandomState,
) -> np.ndarray:
    """
    Draws placeholder values for a column from its own observed values,
    independent of the other columns.

    Parameters
    ----------
    values: np.ndarray
        Encoded column, missing values are NaN.
    size: int
        How many values to return.
    classification: bool
        If True, the mode is used instead of the mean / median.
    method: str
        "mean", "median" or "random". "random" samples observed
        values uniformly with replacement.
    random_state: RandomState
        Breaks ties between modes and drives "random".
    """
    if method not in _INITIALIZATION_METHODS:
        raise ValueError(f"initialization must be one of {_INITIALIZATION_METHODS}")
    observed = values[~np.isnan(values)]
    assert observed.shape[0] > 0, "Cannot fill a column with no observed values"

    if method == "random":
        return random_state.choice(observed, size=size, replace=True)

    if classification:
        uniq, counts = np.unique(observed, return_counts=True)
        modes = uniq[counts == counts.max()]
        fill = modes[0] if len(modes) == 1 else random_state.choice(modes)
    elif method == "mean":
        fill = observed.mean()
    else:
        fill = np.median(observed)

    return np.repeat(fill, size)


def impute_univariate(
    series: Series,
    method: str = "mean",
    random_state: Optional[Union[int, np.random.RandomState]] = None,
) -> Series:
    """
    Fill the missing values of a single column with its marginal
    distribution. Categorical columns always use the mode unless
    method is "random".

    Returns
    -------
    A copy of series, without missing values, in the original dtype.
    """
    from .column_types import encode

    random_state = ensure_rng(random_state)
    values, codec = encode(series)
    missing = np.isnan(values)
    filled = series.copy()
    if missing.any():
        fill = marginal_fill(
            values=values,
            size=int(missing.sum()),
            classification=codec.type_tag.is_classification,
            method=method,
            random_state=random_state,
        )
        filled[missing] = codec.decode(fill, index=series.index[missing])
    return filled


def stratified_folds(y: np.ndarray, nfold: int):
    """
    Create primitive stratified folds. Rows are sorted by label and
    dealt out round-robin, which works for continuous labels and
    class codes alike. Should be digestible by lightgbm.cv function.
    """
    elements = y.shape[0]
    assert elements >= nfold, "more splits then elements."
    order = np.argsort(y, kind="stable")
    val = [order[range(i, elements, nfold)] for i in range(nfold)]
    for v in val:
        yield (np.setdiff1d(np.arange(elements), v), v)


def _draw_random_int32(random_state, size):
    nums = random_state.randint(
        low=0, high=np.iinfo("int32").max, size=size, dtype="int32"
    )
    return nums


def ensure_rng(random_state) -> RandomState:
    """
    Creates a random number generator based on an optional seed.  This can be
    an integer or another random state for a seeded rng, or None for an
    unseeded rng.
    """
    if random_state is None:
        random_state = RandomState()
    elif isinstance(random_state, (int, np.integer)):
        random_state = RandomState(random_state)
    else:
        assert isinstance(random_state, RandomState)
    return random_state


def _expand_value_to_dict(default, value, keys) -> dict:
    if isinstance(value, dict):
        ret = {key: value.get(key, default) for key in keys}
    else:
        assert default.__class__ == value.__class__
        ret = {key: value for key in keys}

    return ret
