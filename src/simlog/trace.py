"""Time-ordered sequence of captured log records."""

from typing import List, Tuple

import numpy as np
import pandas as pd

from simlog.errors import FieldShapeError
from simlog.records import LogRecord, record_signature


class SimulationTrace:
    """Ordered ``(time, record)`` pairs, strictly ascending in time.

    Parameters
    ----------
    check_shapes : bool, default=True
        Whether to check on every append that each field keeps the shape
        it had when it first appeared. Fields may appear or disappear
        between records; only fields present in both are compared.
    """

    def __init__(self, check_shapes: bool = True):
        self.check_shapes = check_shapes
        self._times: List[float] = []
        self._records: List[LogRecord] = []
        self._signature = {}

    def append(self, t: float, record: LogRecord) -> None:
        """Add the record captured at time ``t``.

        Raises
        ------
        ValueError
            If ``t`` is not later than the last entry.
        FieldShapeError
            If shape checking is on and a field changed shape.
        """
        t = float(t)
        if self._times and t <= self._times[-1]:
            raise ValueError(
                f"Trace times must be strictly increasing: "
                f"{t} after {self._times[-1]}"
            )
        if self.check_shapes:
            signature = record_signature(record)
            for path, shape in signature.items():
                expected = self._signature.setdefault(path, shape)
                if expected != shape:
                    raise FieldShapeError(path, expected, shape, t)
        self._times.append(t)
        self._records.append(record)

    @property
    def times(self) -> np.ndarray:
        return np.array(self._times)

    @property
    def records(self) -> List[LogRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._times)

    def __iter__(self):
        return iter(zip(self._times, self._records))

    def __getitem__(self, i) -> Tuple[float, LogRecord]:
        return self._times[i], self._records[i]

    def to_dataframe(self) -> pd.DataFrame:
        """Finalize into a table with columns ``time`` and ``log``."""
        log = pd.Series(self._records, dtype=object)
        return pd.DataFrame(
            {"time": np.array(self._times, dtype=float), "log": log}
        )

    def __repr__(self):
        return f"SimulationTrace(n_entries={len(self)})"
