"""External input injection for dynamics functions.

``apply_inputs`` binds named external inputs to a dynamics function. Each
input is resolved at every evaluation and passed to the dynamics as a
keyword argument, in both plain and logging mode.

An input can be

- a ``TimeSignal`` (one of the signal classes below), called with ``t``;
- any other callable, called with ``(x, p, t)`` (e.g. a state feedback
  controller);
- a constant value.

Examples
--------
>>> @loggable
... def tank(dx, x, p, t, log, q_in):
...     dx[0] = q_in - p["k"] * x[0]
...     log.append("q_in", q_in)
>>> dyn = apply_inputs(tank, q_in=StepInput([5.0], [0.0, 1.0]))
>>> dyn.evaluate_with_log(np.zeros(1), np.array([1.0]), {"k": 0.1}, 6.0)
{'q_in': 1.0}
"""

from typing import Any, Dict, Optional, Union

import numpy as np

from simlog.loggable import LoggableFunction, as_loggable
from simlog.records import LogRecord


class TimeSignal:
    """Base class for input signals that depend on time only."""

    def __call__(self, t: float) -> Any:
        raise NotImplementedError


class ConstantInput(TimeSignal):
    """Constant input signal.

    Parameters
    ----------
    value : scalar or array-like
        Constant value to return

    Examples
    --------
    >>> u = ConstantInput(5.0)
    >>> u(10.0)
    5.0
    """

    def __init__(self, value: Any):
        self.value = value

    def __call__(self, t: float) -> Any:
        return self.value

    def __repr__(self):
        return f"ConstantInput(value={self.value})"


class StepInput(TimeSignal):
    """Piecewise constant input that changes value at given times.

    Parameters
    ----------
    times : array-like
        Times at which the input changes value
    values : array-like
        Values for each interval. Length should be len(times) + 1 (first
        value applies before ``times[0]``) or len(times).

    Examples
    --------
    >>> u = StepInput([5.0], [0.0, 1.0])
    >>> u(4.9)
    0.0
    >>> u(5.0)
    1.0
    """

    def __init__(
        self,
        times: Union[list, np.ndarray],
        values: Union[list, np.ndarray],
    ):
        self.times = np.asarray(times, dtype=float)
        self.values = np.asarray(values)

        if len(self.values) not in (len(self.times), len(self.times) + 1):
            raise ValueError(
                f"values must have length {len(self.times)} or "
                f"{len(self.times) + 1}, got {len(self.values)}"
            )
        if np.any(np.diff(self.times) <= 0):
            raise ValueError("times must be strictly increasing")

    def __call__(self, t: float) -> Any:
        idx = np.searchsorted(self.times, t, side="right")
        if len(self.values) == len(self.times):
            # First value also applies before times[0]
            idx = max(idx - 1, 0)
        return self.values[min(idx, len(self.values) - 1)]

    def __repr__(self):
        return (
            f"StepInput(times={self.times.tolist()}, "
            f"values={self.values.tolist()})"
        )


class RampInput(TimeSignal):
    """Input that changes linearly with time, ``offset + rate * t``."""

    def __init__(self, rate: float, offset: float = 0.0):
        self.rate = rate
        self.offset = offset

    def __call__(self, t: float) -> float:
        return self.offset + self.rate * t

    def __repr__(self):
        return f"RampInput(rate={self.rate}, offset={self.offset})"


class InterpolatedInput(TimeSignal):
    """Input interpolated from a table of samples.

    Parameters
    ----------
    times : array-like
        Sample times, shape (n,)
    values : array-like
        Samples, shape (n,) for a scalar input or (n, m) for a vector input
        such as a disturbance acting on m states
    kind : str, optional
        Interpolation kind ('linear', 'cubic', etc.), by default 'linear'
    fill_value : str or float, optional
        How to handle times outside the table, by default 'extrapolate'

    Examples
    --------
    >>> u = InterpolatedInput([0.0, 1.0], [[0.0, 10.0], [1.0, 20.0]])
    >>> u(0.5)
    array([ 0.5, 15. ])
    """

    def __init__(
        self,
        times: Union[list, np.ndarray],
        values: Union[list, np.ndarray],
        kind: str = "linear",
        fill_value: Union[str, float] = "extrapolate",
    ):
        from scipy.interpolate import interp1d

        self.times = np.asarray(times, dtype=float)
        self.values = np.asarray(values, dtype=float)
        if self.values.ndim not in (1, 2):
            raise ValueError(
                f"values must be 1-D or 2-D, got shape {self.values.shape}"
            )
        if len(self.values) != len(self.times):
            raise ValueError(
                f"Expected {len(self.times)} samples, got {len(self.values)}"
            )
        self.kind = kind
        self.interp = interp1d(
            self.times, self.values, kind=kind, axis=0,
            fill_value=fill_value,
        )

    def __call__(self, t: float) -> Any:
        value = self.interp(t)
        if self.values.ndim == 1:
            return float(value)
        return value

    def __repr__(self):
        return (
            f"InterpolatedInput(kind='{self.kind}', "
            f"n_points={len(self.times)}, shape={self.values.shape[1:]})"
        )


class SinusoidalInput(TimeSignal):
    """Sine wave ``amplitude * sin(2*pi*frequency*t + phase) + offset``."""

    def __init__(
        self,
        amplitude: float,
        frequency: float,
        phase: float = 0.0,
        offset: float = 0.0,
    ):
        self.amplitude = amplitude
        self.frequency = frequency
        self.phase = phase
        self.offset = offset

    def __call__(self, t: float) -> float:
        return (
            self.amplitude
            * np.sin(2 * np.pi * self.frequency * t + self.phase)
            + self.offset
        )

    def __repr__(self):
        return (
            f"SinusoidalInput(amplitude={self.amplitude}, "
            f"frequency={self.frequency}, phase={self.phase}, "
            f"offset={self.offset})"
        )


def resolve_input(source: Any, x, p, t: float) -> Any:
    """Value of one input source at ``(x, p, t)``."""
    if isinstance(source, TimeSignal):
        return source(t)
    if callable(source):
        return source(x, p, t)
    return source


class InputAppliedFunction(LoggableFunction):
    """LoggableFunction with named inputs bound to it.

    Parameters
    ----------
    base : LoggableFunction
        Dynamics receiving the inputs as keyword arguments
    inputs : dict
        Mapping of input name to input source
    """

    def __init__(self, base: LoggableFunction, inputs: Dict[str, Any]):
        self.base = base
        self.inputs = dict(inputs)
        super().__init__(base.func, name=base.name)

    def _resolve(self, x, p, t, extras):
        resolved = {
            name: resolve_input(source, x, p, t)
            for name, source in self.inputs.items()
        }
        # Caller-supplied extras take precedence over bound inputs
        resolved.update(extras)
        return resolved

    def evaluate(self, dx, x, p, t, **extras) -> None:
        self.base.evaluate(dx, x, p, t, **self._resolve(x, p, t, extras))

    def evaluate_with_log(self, dx, x, p, t, **extras) -> LogRecord:
        return self.base.evaluate_with_log(
            dx, x, p, t, **self._resolve(x, p, t, extras)
        )

    def __repr__(self):
        return (
            f"InputAppliedFunction({self.base.name}, "
            f"inputs={list(self.inputs)})"
        )


def apply_inputs(
    dynamics: Any, inputs: Optional[Dict[str, Any]] = None, **named_inputs
) -> InputAppliedFunction:
    """Bind named external inputs to ``dynamics``.

    Parameters
    ----------
    dynamics : LoggableFunction or callable
        Base dynamics. Plain callables ``f(dx, x, p, t, **inputs)`` are
        wrapped with an always-empty log rather than rejected.
    inputs : dict, optional
        Mapping of input name to input source
    **named_inputs
        Further inputs given as keyword arguments

    Returns
    -------
    InputAppliedFunction
        New LoggableFunction resolving each input before delegating.
    """
    sources = dict(inputs or {})
    for name in named_inputs:
        if name in sources:
            raise ValueError(f"Input '{name}' given twice")
    sources.update(named_inputs)
    return InputAppliedFunction(as_loggable(dynamics), sources)
