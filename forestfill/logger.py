from datetime import datetime
from typing import Any, Dict, List, Tuple

import numpy as np
from pandas import Series


class Logger:
    def __init__(
        self,
        name: str,
        timed_levels: List[str],
        verbose: bool = False,
    ):
        """
        forestfill logger. Prints progress when verbose, and keeps
        track of how long each timed event took.

        Parameters
        ----------
        name: str
            Name of this logger
        timed_levels: list[str]
            The names of the levels of each timer key,
            for example ["Iteration", "Variable", "Event"]
        verbose: bool
            Should information be printed.
        """
        self.name = name
        self.verbose = verbose
        self.initialization_time = datetime.now()
        self.timed_levels = timed_levels
        self.started_timers: Dict[Tuple, datetime] = {}
        self.time_seconds: Dict[Tuple, float] = {}

    def __repr__(self):
        return f"forestfill logger: {self.name}"

    def log(self, *args, **kwargs):
        if self.verbose:
            print(*args, **kwargs)

    def log_iteration(
        self,
        iteration: int,
        errors: Dict[Any, float],
        aggregate: float,
    ):
        """Progress report printed after every completed iteration."""
        if not self.verbose:
            return
        column_errors = "  ".join(
            f"{variable}: {error:.4f}"
            for variable, error in errors.items()
            if not np.isnan(error)
        )
        print(f"Iteration {iteration} | {column_errors} | aggregate: {aggregate:.4f}")

    def set_start_time(self, time_key: Tuple):
        assert len(time_key) == len(self.timed_levels)
        assert time_key not in self.started_timers, f"Timer {time_key} already started"
        self.started_timers[time_key] = datetime.now()

    def record_time(self, time_key: Tuple):
        """
        Compares the current time with the start time, and records the time difference
        in our time log in the appropriate register. Times can stack for a context.
        """
        assert time_key in self.started_timers, f"Timer {time_key} never started"
        seconds = (datetime.now() - self.started_timers.pop(time_key)).total_seconds()
        self.time_seconds[time_key] = self.time_seconds.get(time_key, 0.0) + seconds

    def get_time_spend_summary(self) -> Series:
        """
        Returns a Series of the total time taken per timer key,
        indexed by the timed levels.
        """
        summary = Series(self.time_seconds, dtype="float64")
        if len(summary) > 0:
            summary.index.names = self.timed_levels
        return summary
