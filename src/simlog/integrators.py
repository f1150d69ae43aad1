"""Adapters around external numerical integrators.

The simulation driver never integrates anything itself. It hands an
``ODEProblem`` to an integrator together with the requested save times and
a callback, and the integrator calls the callback exactly once per save
time:

- with ``save_times=None``, at the initial time and after every accepted
  step;
- otherwise at each requested time. Times that fall inside a step are
  served by the step's interpolant, so the stepping itself is unaffected.

The callback is never called for intermediate stage evaluations or rejected
steps.

Integrators return a ``scipy.optimize.OptimizeResult`` shaped like the
result of ``scipy.integrate.solve_ivp`` (``t``, ``y``, ``sol``, ``nfev``,
``njev``, ``nlu``, ``status``, ``message``, ``success``).
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Sequence

import numpy as np
from scipy.integrate import (
    BDF,
    DOP853,
    LSODA,
    RK23,
    RK45,
    OdeSolution,
    OdeSolver,
    Radau,
)
from scipy.optimize import OptimizeResult

logger = logging.getLogger(__name__)

SCIPY_METHODS = {
    "RK23": RK23,
    "RK45": RK45,
    "DOP853": DOP853,
    "Radau": Radau,
    "BDF": BDF,
    "LSODA": LSODA,
}

SUCCESS_MESSAGE = (
    "The solver successfully reached the end of the integration interval."
)

SaveCallback = Callable[[float, np.ndarray], None]


@dataclass
class ODEProblem:
    """Initial value problem handed to an integrator.

    Parameters
    ----------
    rhs : callable
        Right-hand side ``rhs(t, x) -> dx`` with parameters already bound
    x0 : ndarray
        Initial state, 1-D
    t_span : (float, float)
        Start and end times (t0, tf)
    params : any, optional
        Parameters bound into ``rhs``, kept for reference
    """

    rhs: Callable[[float, np.ndarray], np.ndarray]
    x0: np.ndarray
    t_span: tuple
    params: Any = None


class Integrator(Protocol):
    """Protocol for integrators used by the simulation driver."""

    def solve(
        self,
        problem: ODEProblem,
        save_times: Optional[Sequence[float]] = None,
        on_save: Optional[SaveCallback] = None,
    ) -> OptimizeResult:
        """Integrate ``problem`` over its time span.

        Parameters
        ----------
        problem : ODEProblem
            Problem to integrate
        save_times : array-like, optional
            Strictly increasing times within ``problem.t_span``. If None,
            saves happen at the initial time and every accepted step.
        on_save : callable, optional
            Called as ``on_save(t, x)`` once per save time

        Returns
        -------
        solution : OptimizeResult
            ``status`` is 0 on success and -1 on failure, in which case
            only the saves before the failure have been made.
        """
        ...


class _SaveSchedule:
    """Tracks which save times have been served so far."""

    def __init__(self, save_times, on_save):
        self.times = (
            None if save_times is None
            else np.asarray(save_times, dtype=float)
        )
        self.on_save = on_save
        self.index = 0
        self.t_saved = []
        self.y_saved = []

    def _emit(self, t, y):
        y = np.array(y, dtype=float)
        self.t_saved.append(float(t))
        self.y_saved.append(y)
        logger.debug("Save at t=%g", t)
        if self.on_save is not None:
            self.on_save(float(t), y)

    def start(self, t0, y0):
        if self.times is None:
            self._emit(t0, y0)
        elif len(self.times) > 0 and self.times[0] == t0:
            self._emit(t0, y0)
            self.index = 1

    def step(self, t, y, make_interpolant):
        """Serve every save time in ``(t_old, t]`` for a completed step."""
        if self.times is None:
            self._emit(t, y)
            return
        interpolant = None
        while self.index < len(self.times) and self.times[self.index] <= t:
            ts = self.times[self.index]
            if ts == t:
                self._emit(ts, y)
            else:
                if interpolant is None:
                    interpolant = make_interpolant()
                self._emit(ts, interpolant(ts))
            self.index += 1

    def solution_arrays(self, n_states):
        t = np.array(self.t_saved)
        if self.y_saved:
            y = np.column_stack(self.y_saved)
        else:
            y = np.empty((n_states, 0))
        return t, y


class SciPyIntegrator:
    """Steps a ``scipy.integrate.OdeSolver`` and fires saves.

    This runs the same loop as ``scipy.integrate.solve_ivp`` but calls the
    save callback as soon as each step is accepted, so a failure part way
    through leaves the saves made so far in place.

    Parameters
    ----------
    method : str or OdeSolver subclass, optional
        'RK45', 'RK23', 'DOP853', 'Radau', 'BDF', 'LSODA' or a custom
        ``OdeSolver`` subclass. Default is 'RK45'.
    max_steps : int, optional
        Maximum number of accepted steps. The run fails with status -1 if
        the end time has not been reached by then.
    dense_output : bool, default=False
        Whether to attach an ``OdeSolution`` covering the whole run as
        ``solution.sol``.
    **options
        Options passed to the solver (``rtol``, ``atol``, ``max_step``,
        ``first_step``, ...)

    Examples
    --------
    >>> integrator = SciPyIntegrator("DOP853", rtol=1e-9, atol=1e-12)
    """

    def __init__(
        self,
        method: Any = "RK45",
        max_steps: Optional[int] = None,
        dense_output: bool = False,
        **options,
    ):
        if isinstance(method, str):
            if method not in SCIPY_METHODS:
                raise ValueError(
                    f"Unknown method '{method}'. "
                    f"Use one of {list(SCIPY_METHODS)}"
                )
            self.solver_class = SCIPY_METHODS[method]
        elif isinstance(method, type) and issubclass(method, OdeSolver):
            self.solver_class = method
        else:
            raise ValueError(
                "method must be a string or an OdeSolver subclass"
            )
        if max_steps is not None and max_steps < 1:
            raise ValueError("max_steps must be a positive integer")
        self.method = method if isinstance(method, str) else method.__name__
        self.max_steps = max_steps
        self.dense_output = dense_output
        self.options = options

    def solve(self, problem, save_times=None, on_save=None):
        t0, tf = (float(t) for t in problem.t_span)
        x0 = np.asarray(problem.x0, dtype=float)
        solver = self.solver_class(problem.rhs, t0, x0, tf, **self.options)

        schedule = _SaveSchedule(save_times, on_save)
        schedule.start(t0, solver.y)

        ts = [t0]
        interpolants = []
        n_steps = 0
        status = None
        message = None
        while status is None:
            message = solver.step()
            if solver.status == "failed":
                status = -1
                break
            if solver.status == "finished":
                status = 0
            n_steps += 1

            if not np.all(np.isfinite(solver.y)):
                status = -1
                message = f"Non-finite state encountered at t={solver.t}."
                break

            dense = None
            if self.dense_output:
                dense = solver.dense_output()
                interpolants.append(dense)
                ts.append(solver.t)

            schedule.step(
                solver.t,
                solver.y,
                lambda: dense if dense is not None else solver.dense_output(),
            )

            if status is None and self.max_steps is not None:
                if n_steps >= self.max_steps:
                    status = -1
                    message = (
                        f"Maximum number of steps ({self.max_steps}) "
                        f"exceeded at t={solver.t}."
                    )

        if status == 0:
            message = SUCCESS_MESSAGE
        else:
            logger.debug("Integration failed: %s", message)

        t_out, y_out = schedule.solution_arrays(x0.size)
        sol = OdeSolution(ts, interpolants) if interpolants else None
        return OptimizeResult(
            t=t_out,
            y=y_out,
            sol=sol,
            nfev=solver.nfev,
            njev=solver.njev,
            nlu=solver.nlu,
            n_steps=n_steps,
            status=status,
            message=message,
            success=status >= 0,
        )

    def __repr__(self):
        return f"SciPyIntegrator(method='{self.method}')"


class FixedStepIntegrator:
    """Base class for simple fixed-step integrators.

    The grid is ``t0, t0 + dt, ...`` with the last step shortened to end
    exactly at ``tf``. Save times between grid points are interpolated
    within the step; the grid trajectory does not depend on them.

    Parameters
    ----------
    dt : float
        Step size
    max_steps : int, optional
        Maximum number of steps before the run fails with status -1
    """

    def __init__(self, dt: float, max_steps: Optional[int] = None):
        if dt <= 0:
            raise ValueError(f"dt must be positive, got {dt}")
        self.dt = dt
        self.max_steps = max_steps

    def _step(self, rhs, t, x, h, f0):
        raise NotImplementedError

    def _interpolant(self, rhs, t, x, f0, t1, x1):
        raise NotImplementedError

    def _grid(self, t0, tf):
        n = max(int(np.ceil((tf - t0) / self.dt - 1e-9)), 1)
        grid = np.minimum(t0 + self.dt * np.arange(n + 1), tf)
        grid[-1] = tf
        return grid

    def solve(self, problem, save_times=None, on_save=None):
        nfev = 0

        def rhs(t, x):
            nonlocal nfev
            nfev += 1
            return np.asarray(problem.rhs(t, x), dtype=float)

        t0, tf = (float(t) for t in problem.t_span)
        x = np.asarray(problem.x0, dtype=float)
        grid = self._grid(t0, tf)

        schedule = _SaveSchedule(save_times, on_save)
        schedule.start(t0, x)

        status = 0
        message = SUCCESS_MESSAGE
        n_steps = 0
        for t, t1 in zip(grid[:-1], grid[1:]):
            if self.max_steps is not None and n_steps >= self.max_steps:
                status = -1
                message = (
                    f"Maximum number of steps ({self.max_steps}) "
                    f"exceeded at t={t}."
                )
                break
            f0 = rhs(t, x)
            x1 = self._step(rhs, t, x, t1 - t, f0)
            n_steps += 1
            if not np.all(np.isfinite(x1)):
                status = -1
                message = f"Non-finite state encountered at t={t1}."
                break
            schedule.step(
                t1,
                x1,
                lambda: self._interpolant(rhs, t, x, f0, t1, x1),
            )
            x = x1

        if status != 0:
            logger.debug("Integration failed: %s", message)

        t_out, y_out = schedule.solution_arrays(x.size)
        return OptimizeResult(
            t=t_out,
            y=y_out,
            sol=None,
            nfev=nfev,
            njev=0,
            nlu=0,
            n_steps=n_steps,
            status=status,
            message=message,
            success=status >= 0,
        )

    def __repr__(self):
        return f"{type(self).__name__}(dt={self.dt})"


class ForwardEuler(FixedStepIntegrator):
    """Forward Euler integrator with linear interpolation between steps.

    Best for prototyping and testing. Not recommended for production use.

    Examples
    --------
    >>> integrator = ForwardEuler(dt=0.01)
    """

    def _step(self, rhs, t, x, h, f0):
        return x + h * f0

    def _interpolant(self, rhs, t, x, f0, t1, x1):
        h = t1 - t

        def interpolate(ts):
            return x + (ts - t) / h * (x1 - x)

        return interpolate


class RungeKutta4(FixedStepIntegrator):
    """Classic 4th-order Runge-Kutta integrator.

    Save times between steps use cubic Hermite interpolation, which costs
    one extra right-hand side evaluation per interpolated step.

    Examples
    --------
    >>> integrator = RungeKutta4(dt=0.01)
    """

    def _step(self, rhs, t, x, h, f0):
        k1 = f0
        k2 = rhs(t + h / 2, x + h / 2 * k1)
        k3 = rhs(t + h / 2, x + h / 2 * k2)
        k4 = rhs(t + h, x + h * k3)
        return x + h / 6 * (k1 + 2 * k2 + 2 * k3 + k4)

    def _interpolant(self, rhs, t, x, f0, t1, x1):
        h = t1 - t
        f1 = rhs(t1, x1)

        def interpolate(ts):
            s = (ts - t) / h
            h00 = 2 * s**3 - 3 * s**2 + 1
            h10 = s**3 - 2 * s**2 + s
            h01 = -2 * s**3 + 3 * s**2
            h11 = s**3 - s**2
            return h00 * x + h10 * h * f0 + h01 * x1 + h11 * h * f1

        return interpolate
