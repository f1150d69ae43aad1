"""Hierarchical log records and the scopes that build them.

A log record is an ordinary ``dict`` mapping field names to leaf values
(scalars, numpy arrays, strings, ...) or to nested records. Records are
built by a ``LogScope``, which is created fresh for every logging-mode
activation of a ``LoggableFunction`` and handed to the user's dynamics as
its ``log`` argument. Nested activations create their own scope, so there
is no shared state between subsystems, recursive calls, or concurrent
simulations.

In plain mode the dynamics receive ``NULL_SCOPE`` instead. All of its
operations are no-ops, so the same function body serves both modes.

Examples
--------
>>> scope = LogScope()
>>> scope.append("x", 1.0)
>>> scope.append("v", np.array([0.0, 2.0]))
>>> scope.record
{'x': 1.0, 'v': array([0., 2.])}
>>> flatten_record({"a": 1, "sub": {"b": 2}})
{'a': 1, 'sub.b': 2}
"""

import copy
import numbers
from collections.abc import Mapping
from typing import Any, Dict

import numpy as np

from simlog.errors import DuplicateFieldError, FieldCollisionError

LogRecord = Dict[str, Any]


def _snapshot(value: Any) -> Any:
    # Buffers such as dx and user lists may be mutated after the record
    # is taken
    if isinstance(value, np.ndarray):
        return value.copy()
    if value is None or isinstance(
        value, (numbers.Number, str, bytes, np.generic)
    ):
        return value
    return copy.deepcopy(value)


class LogScope:
    """Accumulation context for one logging-mode activation.

    Parameters
    ----------
    record : dict, optional
        Record to append into. A new empty record is used if None.

    Notes
    -----
    A scope is owned by exactly one activation. Do not keep a reference to
    it after the activation returns; use the returned record instead.
    """

    enabled = True

    def __init__(self, record: LogRecord = None):
        self._record = {} if record is None else record

    @property
    def record(self) -> LogRecord:
        """Record under construction."""
        return self._record

    def append(self, name: str, value: Any) -> None:
        """Add ``{name: value}`` to the record.

        Raises
        ------
        TypeError
            If ``name`` is not a non-empty string.
        DuplicateFieldError
            If ``name`` has already been appended at this level.
        """
        if not isinstance(name, str) or not name:
            raise TypeError(
                f"Field name must be a non-empty string, got {name!r}"
            )
        if name in self._record:
            raise DuplicateFieldError(name)
        self._record[name] = _snapshot(value)

    def extend(self, fields: Mapping) -> None:
        """Flatten all entries of ``fields`` into this level.

        Raises
        ------
        FieldCollisionError
            If any key of ``fields`` already exists at this level. No
            entries are added in that case.
        """
        for name in fields:
            if name in self._record:
                raise FieldCollisionError(name)
        for name, value in fields.items():
            self.append(name, value)

    def nested(self, key, child, dx, x, p, t, policy="nested", **extras):
        """Invoke a child dynamics and merge its record into this scope.

        See ``simlog.nesting.nested_invoke``.
        """
        from simlog.nesting import nested_invoke

        return nested_invoke(self, child, key, policy, dx, x, p, t, **extras)

    def __contains__(self, name) -> bool:
        return name in self._record

    def __len__(self) -> int:
        return len(self._record)

    def __repr__(self):
        return f"LogScope(fields={list(self._record)})"


class NullScope:
    """Scope used in plain mode. Every operation is a no-op."""

    enabled = False

    @property
    def record(self) -> LogRecord:
        return {}

    def append(self, name: str, value: Any) -> None:
        pass

    def extend(self, fields: Mapping) -> None:
        pass

    def nested(self, key, child, dx, x, p, t, policy="nested", **extras):
        from simlog.nesting import nested_invoke

        return nested_invoke(self, child, key, policy, dx, x, p, t, **extras)

    def __contains__(self, name) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __repr__(self):
        return "NullScope()"


# Stateless, so one instance is shared by every plain-mode call
NULL_SCOPE = NullScope()


def append(scope, name: str, value: Any) -> None:
    """Add ``{name: value}`` at the current level of ``scope``."""
    scope.append(name, value)


def flatten_record(record: Mapping, sep: str = ".", parent_key: str = ""):
    """Flatten a hierarchical record into ``{path: leaf}``.

    Parameters
    ----------
    record : dict
        Record to flatten. Nested mappings are descended into.
    sep : str, optional
        Separator between nested keys, by default '.'
    parent_key : str, optional
        Prefix for keys (used in recursion), by default ''

    Returns
    -------
    dict
        Flat dictionary preserving the record's field order.
    """
    items = []
    for key, value in record.items():
        new_key = f"{parent_key}{sep}{key}" if parent_key else key
        if isinstance(value, Mapping):
            items.extend(
                flatten_record(value, sep=sep, parent_key=new_key).items()
            )
        else:
            items.append((new_key, value))
    return dict(items)


def _leaf_signature(value: Any):
    if isinstance(value, (numbers.Number, np.ndarray, np.generic)):
        return np.shape(value)
    if isinstance(value, (list, tuple)):
        try:
            return np.shape(value)
        except ValueError:
            # Ragged sequence
            return type(value).__name__
    return type(value).__name__


def record_signature(record: Mapping, sep: str = ".") -> Dict[str, Any]:
    """Shape descriptor of every leaf in ``record``.

    Numeric leaves map to their numpy shape (``()`` for scalars), other
    leaves to their type name.
    """
    return {
        path: _leaf_signature(value)
        for path, value in flatten_record(record, sep=sep).items()
    }
