"""Structured logging for simulations of nested dynamical systems.

This package runs user-authored dynamics on an external variable-step
integrator (SciPy by default) and captures a hierarchical log record at
each save time, without changing how the integrator steps.

Dynamics are written once, with an explicit ``log`` scope argument, and
can be invoked in two modes:

- plain (``evaluate``), used by the integrator at every stage, where all
  log operations are no-ops;
- logging (``evaluate_with_log``), used by the driver at save times, which
  returns the record built by the log operations.

Subsystems are composed with ``log.nested(...)``, either keeping the
child's record under a key ('nested' policy) or flattening it into the
parent ('only' policy).

Main Components
---------------
LoggableFunction, loggable : Dual-mode dynamics
LogScope, NullScope : Record accumulation contexts
nested_invoke, MergePolicy : Subsystem composition
apply_inputs : External input injection
simulate, SimulationEngine, SimulationConfig : Simulation driver
SimulationResult, SimulationTrace : Results

Integrators
-----------
SciPyIntegrator : scipy.integrate OdeSolver stepping (RK45, Radau, ...)
ForwardEuler, RungeKutta4 : Simple fixed-step integrators

Examples
--------
>>> import numpy as np
>>> from simlog import loggable, simulate
>>>
>>> @loggable
... def engine(dx, x, p, t, log):
...     dx[0] = (p["rpm_max"] - x[0]) / p["tau"]
...     log.append("rpm", x[0])
>>>
>>> @loggable
... def vehicle(dx, x, p, t, log):
...     dx[0] = p["k"] * x[1]
...     log.append("speed", x[0])
...     log.nested("engine", engine, dx[1:], x[1:], p["engine"], t)
>>>
>>> params = {"k": 0.01, "engine": {"rpm_max": 3000.0, "tau": 2.0}}
>>> result = simulate(
...     np.array([0.0, 800.0]), vehicle, params,
...     end_time=10.0, save_times=np.linspace(0, 10, 11),
... )
>>> result.table.loc[0, "log"]
{'speed': 0.0, 'engine': {'rpm': 800.0}}
"""

from simlog.errors import (
    ConfigurationError,
    DuplicateFieldError,
    FieldCollisionError,
    FieldShapeError,
    LogFieldError,
    SimlogError,
)

# Log record model
from simlog.records import (
    NULL_SCOPE,
    LogRecord,
    LogScope,
    NullScope,
    append,
    flatten_record,
    record_signature,
)

# Dynamics contract and composition
from simlog.loggable import (
    LoggableFunction,
    UnloggedFunction,
    as_loggable,
    loggable,
)
from simlog.nesting import MergePolicy, nested_invoke

# Inputs
from simlog.inputs import (
    ConstantInput,
    InterpolatedInput,
    RampInput,
    SinusoidalInput,
    StepInput,
    TimeSignal,
    apply_inputs,
)

from simlog.environment import Environment, resolve_dynamics

# Integrators
from simlog.integrators import (
    ForwardEuler,
    Integrator,
    ODEProblem,
    RungeKutta4,
    SciPyIntegrator,
)

# Driver and results
from simlog.core import SimulationConfig, SimulationEngine, simulate
from simlog.results import SimulationResult
from simlog.trace import SimulationTrace

# Configuration files
from simlog.config import (
    load_config,
    make_integrator,
    param_values,
)

__all__ = [
    # Errors
    "SimlogError",
    "LogFieldError",
    "DuplicateFieldError",
    "FieldCollisionError",
    "FieldShapeError",
    "ConfigurationError",
    # Records
    "LogRecord",
    "LogScope",
    "NullScope",
    "NULL_SCOPE",
    "append",
    "flatten_record",
    "record_signature",
    # Dynamics
    "LoggableFunction",
    "UnloggedFunction",
    "loggable",
    "as_loggable",
    "MergePolicy",
    "nested_invoke",
    # Inputs
    "TimeSignal",
    "ConstantInput",
    "StepInput",
    "RampInput",
    "InterpolatedInput",
    "SinusoidalInput",
    "apply_inputs",
    # Environments
    "Environment",
    "resolve_dynamics",
    # Integrators
    "Integrator",
    "ODEProblem",
    "SciPyIntegrator",
    "ForwardEuler",
    "RungeKutta4",
    # Driver
    "SimulationConfig",
    "SimulationEngine",
    "SimulationResult",
    "SimulationTrace",
    "simulate",
    # Configuration
    "load_config",
    "make_integrator",
    "param_values",
]
