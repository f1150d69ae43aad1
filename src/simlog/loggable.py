"""Dual-mode dynamics functions.

A ``LoggableFunction`` wraps a user-authored derivative computation with the
signature::

    func(dx, x, p, t, log, **extras)

where ``dx`` is the derivative buffer to be written in place, ``x`` the
state, ``p`` the parameters, ``t`` the time, ``log`` a scope and ``extras``
any named external inputs. The function can then be invoked in two modes:

- ``evaluate`` (plain): ``log`` is ``NULL_SCOPE`` and every log operation
  is a no-op. This is the path the integrator calls at every stage.
- ``evaluate_with_log``: ``log`` is a fresh ``LogScope`` and the record it
  accumulates is returned. The driver calls this only at save times.

Both modes run the same body, so they write identical values to ``dx`` for
identical inputs. Work that is only needed for the record can be guarded
with ``if log.enabled:`` to keep it off the integrator's hot path.

Examples
--------
>>> @loggable
... def decay(dx, x, p, t, log):
...     dx[:] = -p["k"] * x
...     log.append("x", x)
...     log.append("dx", dx)
>>> dx = np.zeros(1)
>>> decay.evaluate_with_log(dx, np.array([2.0]), {"k": 0.5}, 0.0)
{'x': array([2.]), 'dx': array([-1.])}
"""

from typing import Any, Callable, Optional

from simlog.records import NULL_SCOPE, LogRecord, LogScope


class LoggableFunction:
    """Derivative computation with a plain and a logging entry point.

    Parameters
    ----------
    func : callable
        Function ``func(dx, x, p, t, log, **extras)`` writing the derivative
        into ``dx``. Its return value is ignored.
    name : str, optional
        Name used in ``repr``. Defaults to ``func.__name__``.
    """

    def __init__(self, func: Callable, name: Optional[str] = None):
        if not callable(func):
            raise TypeError(f"Expected a callable, got {type(func).__name__}")
        self.func = func
        self.name = name or getattr(func, "__name__", type(func).__name__)
        self.__doc__ = getattr(func, "__doc__", None)

    def evaluate(self, dx, x, p, t, **extras) -> None:
        """Write the derivative into ``dx`` without logging."""
        self.func(dx, x, p, t, NULL_SCOPE, **extras)

    def evaluate_with_log(self, dx, x, p, t, **extras) -> LogRecord:
        """Write the derivative into ``dx`` and return the log record."""
        scope = LogScope()
        self.func(dx, x, p, t, scope, **extras)
        return scope.record

    def __call__(self, dx, x, p, t, **extras) -> None:
        self.evaluate(dx, x, p, t, **extras)

    def __repr__(self):
        return f"{type(self).__name__}({self.name})"


class UnloggedFunction(LoggableFunction):
    """Adapter for plain dynamics ``func(dx, x, p, t, **extras)``.

    The logging mode always returns an empty record.
    """

    def evaluate(self, dx, x, p, t, **extras) -> None:
        self.func(dx, x, p, t, **extras)

    def evaluate_with_log(self, dx, x, p, t, **extras) -> LogRecord:
        self.func(dx, x, p, t, **extras)
        return {}


def loggable(func: Callable = None, *, name: Optional[str] = None):
    """Decorator turning a dynamics function into a ``LoggableFunction``.

    Can be used bare (``@loggable``) or with arguments
    (``@loggable(name="engine")``).
    """
    if func is None:
        return lambda f: LoggableFunction(f, name=name)
    return LoggableFunction(func, name=name)


def as_loggable(func: Any) -> LoggableFunction:
    """Return ``func`` as a LoggableFunction.

    LoggableFunctions are returned unchanged. Any other callable is assumed
    to have the plain signature ``func(dx, x, p, t, **extras)`` and is
    wrapped so that its logging mode yields an empty record.
    """
    if isinstance(func, LoggableFunction):
        return func
    return UnloggedFunction(func)
