"""Simulation results.

This module provides the SimulationResult class pairing the integrator's
native solution object with the table of captured log records.
"""

from dataclasses import dataclass
from typing import Any, List

import numpy as np
import pandas as pd

from simlog.records import LogRecord, flatten_record


@dataclass(frozen=True)
class SimulationResult:
    """Container for simulation results.

    Parameters
    ----------
    solution : OptimizeResult
        Native solution object returned by the integrator
    table : DataFrame
        One row per save event in ascending time, with columns ``time``
        (float) and ``log`` (the hierarchical record for that time)
    status : int
        0 if the integrator reached the end time, -1 if it failed. On
        failure ``table`` holds the records captured before the failure.
    message : str
        Integrator's termination message

    Examples
    --------
    >>> result = simulate(np.array([1.0]), decay, end_time=1.0)
    >>> result.table.columns.tolist()
    ['time', 'log']
    >>> result.field("x")  # one value per row
    """

    solution: Any
    table: pd.DataFrame
    status: int = 0
    message: str = ""

    def __post_init__(self):
        """Validate the table layout."""
        if list(self.table.columns) != ["time", "log"]:
            raise ValueError(
                f"Table must have columns ['time', 'log'], "
                f"got {list(self.table.columns)}"
            )
        if np.any(np.diff(self.table["time"].to_numpy()) <= 0):
            raise ValueError("Table times must be strictly increasing")

    @property
    def success(self) -> bool:
        """True if the integrator reached the end time."""
        return self.status >= 0

    @property
    def time(self) -> np.ndarray:
        """Save times, shape (n_steps,)."""
        return self.table["time"].to_numpy()

    @property
    def records(self) -> List[LogRecord]:
        """Log records in time order."""
        return self.table["log"].tolist()

    @property
    def n_steps(self) -> int:
        """Number of save events."""
        return len(self.table)

    def field(self, path: str, sep: str = ".") -> np.ndarray:
        """Values of one logged field stacked along time.

        Parameters
        ----------
        path : str
            Field path, e.g. 'x' or 'engine.rpm'
        sep : str, optional
            Separator between nested keys, by default '.'

        Returns
        -------
        values : ndarray
            Shape (n_steps, *field_shape)

        Raises
        ------
        KeyError
            If any record lacks the field.
        """
        values = []
        for t, record in zip(self.time, self.records):
            flat = flatten_record(record, sep=sep)
            if path not in flat:
                raise KeyError(f"Field '{path}' not logged at t={t}")
            values.append(flat[path])
        return np.array(values)

    def to_dataframe(self, flatten: bool = False, sep: str = ".") -> pd.DataFrame:
        """Return the results table.

        Parameters
        ----------
        flatten : bool, default=False
            If False, return the ``{time, log}`` table. If True, return one
            column per leaf field path (e.g. 'engine.rpm'), indexed by
            time. Fields missing from a record are NaN.
        sep : str, optional
            Separator used in flattened column names, by default '.'

        Returns
        -------
        df : pandas.DataFrame
        """
        if not flatten:
            return self.table.copy()
        rows = [flatten_record(record, sep=sep) for record in self.records]
        return pd.DataFrame(rows, index=pd.Index(self.time, name="time"))

    def __repr__(self):
        return (
            f"SimulationResult(n_steps={self.n_steps}, "
            f"status={self.status})"
        )
