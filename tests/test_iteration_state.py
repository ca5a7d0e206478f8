import numpy as np
from forestfill.iteration_state import IterationState, aggregate_error


def run_iteration(state, errors, label):
    for variable, error in errors.items():
        state.record(variable, error)
    return state.complete_iteration(lambda: label)


def test_aggregate_error():
    assert np.isclose(aggregate_error({"a": 0.2, "b": 0.4}), 0.3)
    assert aggregate_error({"a": 0.2, "b": np.nan}) == 0.2
    assert np.isnan(aggregate_error({}))


def test_best_snapshot_is_kept():
    state = IterationState(["a", "b"])
    assert not state.should_stop()

    assert run_iteration(state, {"a": 0.5, "b": 0.5}, "first")
    assert not state.should_stop()
    assert run_iteration(state, {"a": 0.2, "b": 0.4}, "second")
    assert not run_iteration(state, {"a": 0.4, "b": 0.4}, "third")

    assert state.iteration == 3
    assert state.best_iteration == 2
    assert state.best_snapshot == "second"
    assert np.isclose(state.best_aggregate, 0.3)
    assert np.allclose(state.aggregate_history, [0.5, 0.3, 0.4])
    assert state.previous_errors == {"a": 0.4, "b": 0.4}
    assert np.isnan(state.current_errors["a"])
    # The error went up, so the run should stop
    assert state.should_stop()


def test_should_stop_with_tolerance():
    state = IterationState(["a"])
    run_iteration(state, {"a": 0.50}, 1)
    run_iteration(state, {"a": 0.45}, 2)
    assert not state.should_stop(tolerance=0.0)
    assert not state.should_stop(tolerance=0.01)
    assert state.should_stop(tolerance=0.1)


def test_nothing_modeled_stops_immediately():
    state = IterationState([])
    assert run_iteration(state, {}, "only")
    assert np.isnan(state.last_aggregate)
    assert state.should_stop()
    assert state.best_iteration == 1
