"""Invoking subsystem dynamics from inside a parent's dynamics.

A parent merges a child's record into its own with one of two policies:

- ``MergePolicy.NESTED``: the child record is stored as a sub-record under
  ``key``, preserving the hierarchy.
- ``MergePolicy.ONLY``: the child's fields are flattened into the parent's
  current level.

Examples
--------
>>> @loggable
... def engine(dx, x, p, t, log):
...     dx[:] = -x
...     log.append("rpm", 1000 * x[0])
>>> @loggable
... def vehicle(dx, x, p, t, log):
...     dx[0] = x[1]
...     log.append("v", x[1])
...     log.nested("engine", engine, dx[1:], x[1:], p, t)
>>> vehicle.evaluate_with_log(np.zeros(2), np.array([0.0, 2.0]), None, 0.0)
{'v': 2.0, 'engine': {'rpm': 2000.0}}
"""

from enum import Enum

from simlog.loggable import LoggableFunction, as_loggable
from simlog.records import LogRecord


class MergePolicy(Enum):
    """How a child record is merged into its parent."""

    NESTED = "nested"
    ONLY = "only"


def nested_invoke(
    parent_scope, child, key, policy, dx, x, p, t, **extras
) -> LogRecord:
    """Call ``child`` and merge its record into ``parent_scope``.

    Parameters
    ----------
    parent_scope : LogScope or NullScope
        Scope of the calling activation. If it is not enabled (plain mode)
        the child is evaluated in plain mode and nothing is merged.
    child : LoggableFunction or callable
        Subsystem dynamics. In logging mode plain callables are wrapped
        with ``as_loggable``; in plain mode they are called directly.
    key : str or None
        Field name of the sub-record. Required for the nested policy,
        ignored for the only policy.
    policy : MergePolicy or str
        'nested' or 'only'. Checked in logging mode only.
    dx, x, p, t, **extras
        Arguments forwarded to the child. Typically ``dx`` and ``x`` are
        views into the parent's buffers.

    Returns
    -------
    record : dict
        The child's record (empty in plain mode).

    Raises
    ------
    DuplicateFieldError
        Nested policy and ``key`` already exists in the parent.
    FieldCollisionError
        Only policy and a child field already exists in the parent.
    """
    if not parent_scope.enabled:
        # Plain mode: no policy lookup, no wrapper allocation
        if isinstance(child, LoggableFunction):
            child.evaluate(dx, x, p, t, **extras)
        else:
            child(dx, x, p, t, **extras)
        return {}

    policy = MergePolicy(policy)
    if policy is MergePolicy.NESTED and key is None:
        raise ValueError("Nested merge policy requires a key")

    child_record = as_loggable(child).evaluate_with_log(dx, x, p, t, **extras)
    if policy is MergePolicy.NESTED:
        parent_scope.append(key, child_record)
    else:
        parent_scope.extend(child_record)
    return child_record
