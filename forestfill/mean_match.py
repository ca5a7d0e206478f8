from typing import Union

import numpy as np
from pandas import Series

# Upper bound on the size of one block of the
# bachelor x candidate distance matrix.
_MAX_DISTANCE_CELLS = 2**22


def _nearest_candidates(
    bachelor_preds: np.ndarray,
    candidate_preds: np.ndarray,
    mean_match_candidates: int,
    categorical: bool,
) -> np.ndarray:
    """
    Returns an array of shape (bachelors, mean_match_candidates) holding the
    positions of the closest candidates for each bachelor. Candidates at equal
    distance keep their original order, so the selection is deterministic.
    """
    num_bachelors = bachelor_preds.shape[0]
    num_candidates = candidate_preds.shape[0]
    knn_indices = np.empty((num_bachelors, mean_match_candidates), dtype="int64")
    block = max(1, _MAX_DISTANCE_CELLS // num_candidates)

    for start in range(0, num_bachelors, block):
        end = min(start + block, num_bachelors)
        bachelors = bachelor_preds[start:end].reshape(-1, 1)
        if categorical:
            # Class codes either match or are as far apart as they can be.
            # Ties among matching candidates resolve to the earliest rows.
            distance = (bachelors != candidate_preds).astype("float64")
        else:
            distance = np.abs(bachelors - candidate_preds)
        order = np.argsort(distance, axis=1, kind="stable")
        knn_indices[start:end] = order[:, :mean_match_candidates]

    return knn_indices


def predictive_mean_match(
    bachelor_preds: np.ndarray,
    candidate_preds: np.ndarray,
    candidate_values: Union[np.ndarray, Series],
    mean_match_candidates: int,
    random_state: np.random.RandomState,
    categorical: bool = False,
):
    """
    Predictive mean matching. For every bachelor (a row whose value is
    missing), the candidates (rows whose value was observed) with the
    closest predictions are found, and the real value of one of them,
    chosen uniformly at random, is used as the imputation value.

    Parameters
    ----------
    bachelor_preds: np.ndarray
        Model predictions for the rows being imputed, shape (bachelors,).
    candidate_preds: np.ndarray
        Model predictions for the observed rows, shape (candidates,).
    candidate_values: np.ndarray or pandas.Series
        The observed values, aligned with candidate_preds. Anything
        indexable by position works, so row positions can be passed to
        find out which rows donated.
    mean_match_candidates: int
        How many of the closest candidates to draw from. Capped at the
        number of candidates.
    random_state: np.random.RandomState
        Draws the donor among the closest candidates.
    categorical: bool
        If True, predictions are class codes and any two different
        classes are equally far apart. Every candidate of the predicted
        class is then at distance 0, so donors always come from the first
        mean_match_candidates observed rows of that class, in row order.
        Shuffle the rows beforehand if their order carries information.

    Returns
    -------
    The values of the chosen donors, aligned with bachelor_preds.
    A Series if candidate_values is a Series, otherwise an np.ndarray.
    """
    assert mean_match_candidates > 0, "Do not mean match with 0 candidates."
    bachelor_preds = np.asarray(bachelor_preds, dtype="float64").reshape(-1)
    candidate_preds = np.asarray(candidate_preds, dtype="float64").reshape(-1)
    num_bachelors = bachelor_preds.shape[0]
    num_candidates = candidate_preds.shape[0]

    if num_candidates == 0:
        raise ValueError("Cannot mean match without candidates.")
    if not (np.isfinite(bachelor_preds).all() and np.isfinite(candidate_preds).all()):
        raise ValueError("Cannot mean match non-finite predictions.")
    assert num_candidates == len(
        candidate_values
    ), "candidate_preds and candidate_values are not aligned."

    mean_match_candidates = min(mean_match_candidates, num_candidates)
    knn_indices = _nearest_candidates(
        bachelor_preds=bachelor_preds,
        candidate_preds=candidate_preds,
        mean_match_candidates=mean_match_candidates,
        categorical=categorical,
    )

    # We can skip the random selection process if mean_match_candidates == 1
    if mean_match_candidates == 1:
        index_choice = knn_indices[:, 0]
    else:
        ind = random_state.randint(mean_match_candidates, size=num_bachelors)
        index_choice = knn_indices[np.arange(num_bachelors), ind]

    if isinstance(candidate_values, Series):
        return candidate_values.iloc[index_choice]
    return np.asarray(candidate_values)[index_choice]
