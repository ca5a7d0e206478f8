from sklearn.datasets import load_iris
import pandas as pd
import numpy as np
import forestfill as ff


# Make random state and load data
# Define data
random_state = np.random.RandomState(1991)
iris = pd.concat(load_iris(as_frame=True, return_X_y=True), axis=1)
iris["sp"] = iris["target"].astype("category")
del iris["target"]
iris.rename(
    {
        "sepal length (cm)": "sl",
        "sepal width (cm)": "ws",
        "petal length (cm)": "pl",
        "petal width (cm)": "pw",
    },
    axis=1,
    inplace=True,
)
iris["bc"] = pd.Series(random_state.binomial(n=1, p=0.5, size=150)).astype("category")
iris_amp = ff.ampute_data(iris, perc=0.25, random_state=random_state)


def test_pandas_reproducibility():

    kernel = ff.ImputationKernel(data=iris_amp, pmm_k=3, random_state=2)
    kernel2 = ff.ImputationKernel(data=iris_amp, pmm_k=3, random_state=2)

    assert np.array_equal(
        kernel.working_data, kernel2.working_data, equal_nan=True
    ), "random_state initialization failed to be deterministic"

    # Run for 2 iterations
    result = kernel.impute(max_iter=2, num_iterations=16)
    result2 = kernel2.impute(max_iter=2, num_iterations=16)

    assert result.complete_data().equals(
        result2.complete_data()
    ), "random_state after impute() failed to be deterministic"
    assert result.errors.equals(result2.errors)


def test_random_initialization_reproducibility():
    completed = ff.fill_missing(
        iris_amp, initialization="random", max_iter=2, random_state=3, num_iterations=16
    )
    completed2 = ff.fill_missing(
        iris_amp,
        initialization="random",
        max_iter=2,
        random_state=np.random.RandomState(3),
        num_iterations=16,
    )
    assert completed.equals(completed2)


def test_different_seeds_differ():
    completed = ff.fill_missing(iris_amp, pmm_k=5, max_iter=2, random_state=4)
    completed2 = ff.fill_missing(iris_amp, pmm_k=5, max_iter=2, random_state=5)
    assert not completed.equals(completed2)


def test_multiple_imputation_reproducibility():
    datasets = ff.fill_missing_multiple(
        iris_amp, num_datasets=2, random_state=6, max_iter=2, num_iterations=16
    )
    datasets2 = ff.fill_missing_multiple(
        iris_amp, num_datasets=2, random_state=6, max_iter=2, num_iterations=16
    )
    for completed, completed2 in zip(datasets, datasets2):
        assert completed.equals(completed2)
