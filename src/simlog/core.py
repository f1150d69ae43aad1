"""Simulation driver.

The driver hands a plain derivative closure to an external integrator and,
separately, captures a structured log record at every save time:

1. ``rhs(t, x)`` calls ``dynamics.evaluate`` and is the only function the
   integrator evaluates. The integrator owns step-size and error control.
2. At each save time the integrator calls back with ``(t, x(t))``. The
   driver calls ``dynamics.evaluate_with_log`` on a scratch buffer,
   discards the derivative and appends ``(t, record)`` to the trace.
3. If the integrator fails, the run stops and the partial trace is returned
   with ``status = -1``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np

from simlog.environment import resolve_dynamics
from simlog.errors import ConfigurationError
from simlog.inputs import apply_inputs
from simlog.integrators import Integrator, ODEProblem, SciPyIntegrator
from simlog.results import SimulationResult
from simlog.trace import SimulationTrace

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    """Configuration for simulation.

    Parameters
    ----------
    t_span : (float, float)
        Start and end times (t0, tf), with tf > t0
    x0 : array-like
        Initial state. Scalars are promoted to 1-element arrays.
    parameters : any, optional
        System parameters passed to the dynamics as ``p``. If None and the
        system is an environment with a ``params()`` factory, that is used.
    inputs : dict, optional
        Named external inputs bound with ``apply_inputs``
    save_times : array-like, optional
        Strictly increasing times within ``t_span`` at which to capture
        records. If None, records are captured at the initial time and
        after every accepted integrator step.
    check_shapes : bool, default=True
        Whether to raise FieldShapeError when a logged field changes shape
        between save times

    Examples
    --------
    >>> config = SimulationConfig(
    ...     t_span=(0.0, 1.0),
    ...     x0=np.array([1.0]),
    ...     parameters={'k': 1.0},
    ...     save_times=[0.0, 0.5, 1.0],
    ... )
    """

    t_span: tuple
    x0: Any
    parameters: Any = None
    inputs: Optional[Dict[str, Any]] = None
    save_times: Optional[Any] = None
    check_shapes: bool = True

    def __post_init__(self):
        """Validate configuration."""
        if len(self.t_span) != 2:
            raise ConfigurationError(
                f"t_span must be (t0, tf), got {self.t_span!r}"
            )
        t0, tf = (float(t) for t in self.t_span)
        if not (np.isfinite(t0) and np.isfinite(tf)):
            raise ConfigurationError("t_span must be finite")
        if tf <= t0:
            raise ConfigurationError(
                f"End time {tf} must be greater than start time {t0}"
            )
        self.t_span = (t0, tf)

        x0 = np.atleast_1d(np.asarray(self.x0, dtype=float))
        if x0.ndim != 1:
            raise ConfigurationError(
                f"x0 must be 1-dimensional, got shape {x0.shape}"
            )
        self.x0 = x0

        if self.save_times is not None:
            save_times = np.atleast_1d(np.asarray(self.save_times, dtype=float))
            if save_times.ndim != 1 or len(save_times) == 0:
                raise ConfigurationError(
                    "save_times must be a non-empty 1-D sequence"
                )
            if np.any(np.diff(save_times) <= 0):
                raise ConfigurationError(
                    "save_times must be strictly increasing"
                )
            if save_times[0] < t0 or save_times[-1] > tf:
                raise ConfigurationError(
                    f"save_times must lie within [{t0}, {tf}], got "
                    f"[{save_times[0]}, {save_times[-1]}]"
                )
            self.save_times = save_times


class SimulationEngine:
    """Runs dynamics on an external integrator and captures log records.

    Parameters
    ----------
    integrator : Integrator, optional
        Integrator adapter. Default is ``SciPyIntegrator('RK45')``.

    Examples
    --------
    >>> engine = SimulationEngine(SciPyIntegrator("RK45", rtol=1e-8))
    >>> result = engine.simulate(decay, config)
    >>> result.table
    """

    def __init__(self, integrator: Optional[Integrator] = None):
        self.integrator = integrator or SciPyIntegrator()

    def simulate(self, system, config: SimulationConfig) -> SimulationResult:
        """Run one simulation.

        Parameters
        ----------
        system : LoggableFunction, callable or Environment
            Top-level dynamics, or an environment providing them
        config : SimulationConfig
            Time span, initial state, parameters, inputs and save times

        Returns
        -------
        result : SimulationResult
            Native solution and the ``{time, log}`` table. ``status`` is -1
            if the integrator failed before the end time.

        Raises
        ------
        LogFieldError
            If the dynamics break a logging rule (duplicate field, flatten
            collision, shape change). These abort the run.
        """
        dynamics, params = resolve_dynamics(system, config.parameters)
        if config.inputs:
            dynamics = apply_inputs(dynamics, config.inputs)

        def rhs(t, x):
            dx = np.zeros_like(x)
            dynamics.evaluate(dx, x, params, t)
            return dx

        trace = SimulationTrace(check_shapes=config.check_shapes)
        scratch = np.zeros_like(config.x0)

        def on_save(t, x):
            scratch[:] = 0.0
            record = dynamics.evaluate_with_log(scratch, x, params, t)
            trace.append(t, record)

        problem = ODEProblem(
            rhs=rhs, x0=config.x0, t_span=config.t_span, params=params
        )
        logger.info(
            "Simulating %r over %s with %r", dynamics, config.t_span,
            self.integrator,
        )
        solution = self.integrator.solve(
            problem, save_times=config.save_times, on_save=on_save
        )
        if solution.status < 0:
            logger.warning(
                "Simulation stopped early after %d records: %s",
                len(trace), solution.message,
            )
        else:
            logger.info("Simulation finished with %d records", len(trace))

        return SimulationResult(
            solution=solution,
            table=trace.to_dataframe(),
            status=int(solution.status),
            message=solution.message,
        )

    def __repr__(self):
        return f"SimulationEngine(integrator={self.integrator!r})"


def simulate(
    state0,
    dynamics,
    params=None,
    *,
    end_time: float,
    solver: Optional[Integrator] = None,
    start_time: float = 0.0,
    save_times=None,
    inputs: Optional[Dict[str, Any]] = None,
    check_shapes: bool = True,
) -> SimulationResult:
    """Simulate ``dynamics`` from ``state0`` and capture log records.

    Parameters
    ----------
    state0 : array-like
        Initial state
    dynamics : LoggableFunction, callable or Environment
        Top-level dynamics
    params : any, optional
        Parameters passed to the dynamics
    end_time : float
        Final time
    solver : Integrator, optional
        Integrator adapter, by default ``SciPyIntegrator('RK45')``
    start_time : float, optional
        Initial time, by default 0.0
    save_times : array-like, optional
        Times at which to capture records. Default: initial time and every
        accepted step.
    inputs : dict, optional
        Named external inputs, see ``apply_inputs``
    check_shapes : bool, default=True
        Whether to check field shapes are consistent across save times

    Returns
    -------
    result : SimulationResult

    Examples
    --------
    >>> @loggable
    ... def decay(dx, x, p, t, log):
    ...     dx[:] = -x
    ...     log.append("x", x[0])
    >>> result = simulate(1.0, decay, end_time=1.0, save_times=[0, 0.5, 1])
    >>> result.field("x")
    array([1.        , 0.60653..., 0.36787...])
    """
    config = SimulationConfig(
        t_span=(start_time, end_time),
        x0=state0,
        parameters=params,
        inputs=inputs,
        save_times=save_times,
        check_shapes=check_shapes,
    )
    return SimulationEngine(solver).simulate(dynamics, config)
