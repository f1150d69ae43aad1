"""Loading simulation configurations from YAML files.

A configuration file has the sections below. Only ``simulation`` and
``initial_conditions`` are required.

.. code-block:: yaml

    simulation:
      t_span: [0.0, 10.0]
      save_every: 0.1          # or save_times: [0.0, 5.0, 10.0]
    solver:
      method: RK45             # RK23, DOP853, Radau, BDF, LSODA,
      rtol: 1.0e-6             # ForwardEuler or RungeKutta4 (needs dt)
      atol: 1.0e-9
      max_steps: 100000
    initial_conditions:
      x0: [1.0, 0.0]
    parameters:
      vehicle:
        mass: {value: 1200, units: kg}
      engine:
        time_constant: {value: 500, units: ms}
    inputs:
      throttle:
        StepInput: {times: [1.0], values: [0.0, 1.0]}
"""

import logging
from pathlib import Path
from typing import Any, Optional, Tuple

import numpy as np
import pint
import yaml

from simlog.core import SimulationConfig
from simlog.errors import ConfigurationError
from simlog.inputs import (
    ConstantInput,
    InterpolatedInput,
    RampInput,
    SinusoidalInput,
    StepInput,
)
from simlog.integrators import (
    SCIPY_METHODS,
    ForwardEuler,
    Integrator,
    RungeKutta4,
    SciPyIntegrator,
)

logger = logging.getLogger(__name__)

# Registry of input classes available in configuration files
INPUT_CLASSES = {
    "ConstantInput": ConstantInput,
    "StepInput": StepInput,
    "RampInput": RampInput,
    "InterpolatedInput": InterpolatedInput,
    "SinusoidalInput": SinusoidalInput,
}

FIXED_STEP_INTEGRATORS = {
    "ForwardEuler": ForwardEuler,
    "RungeKutta4": RungeKutta4,
}

# Solver options that YAML may load as strings (e.g. '1e-6')
FLOAT_OPTIONS = ("rtol", "atol", "max_step", "first_step", "min_step", "dt")

REQUIRED_SECTIONS = ["simulation", "initial_conditions"]


def param_values(params_dict, ureg=None):
    """
    Strip parameter metadata, keeping the nesting.

    Leaf nodes ``{'value': v, 'units': u, ...}`` are replaced by ``v``.
    If a pint registry is given, values with units are converted to base
    (SI) units first, so a file may mix e.g. 'ms' and 's'.

    Parameters
    ----------
    params_dict : dict
        Nested parameter dictionary
    ureg : pint.UnitRegistry, optional
        Registry used for unit conversion. If None, units are ignored.

    Returns
    -------
    dict
        Nested dictionary of plain values

    Examples
    --------
    >>> ureg = pint.UnitRegistry()
    >>> param_values({'engine': {'tau': {'value': 500, 'units': 'ms'}}}, ureg)
    {'engine': {'tau': 0.5}}
    """
    values = {}
    for key, value in params_dict.items():
        if isinstance(value, dict) and "value" in value:
            units = value.get("units")
            if ureg is not None and units is not None:
                try:
                    quantity = ureg.Quantity(value["value"], units)
                except pint.UndefinedUnitError as err:
                    raise ConfigurationError(
                        f"Parameter '{key}' has unknown units '{units}'"
                    ) from err
                values[key] = quantity.to_base_units().magnitude
            else:
                values[key] = value["value"]
        elif isinstance(value, dict):
            values[key] = param_values(value, ureg=ureg)
        else:
            values[key] = value
    return values


def parse_input_spec(input_spec: dict):
    """
    Parse an input specification and return a time signal.

    Parameters
    ----------
    input_spec : dict
        Single-key mapping from class name to constructor arguments, e.g.
        ``{'ConstantInput': {'value': 0.5}}`` or
        ``{'StepInput': {'initial_value': 0, 'steps': [...]}}``

    Returns
    -------
    TimeSignal
    """
    if not isinstance(input_spec, dict) or len(input_spec) != 1:
        raise ConfigurationError(
            f"Input spec must have exactly one class name, got {input_spec!r}"
        )
    class_name, params = next(iter(input_spec.items()))

    if class_name not in INPUT_CLASSES:
        raise ConfigurationError(f"Unknown input class: {class_name}")

    if class_name == "StepInput" and "steps" in params:
        steps = params["steps"]
        times = [step["time"] for step in steps]
        values = [params.get("initial_value", 0.0)]
        values += [step["value"] for step in steps]
        return StepInput(times=times, values=values)

    return INPUT_CLASSES[class_name](**params)


def make_integrator(solver_spec: Optional[dict] = None) -> Integrator:
    """
    Build an integrator from a solver specification.

    Parameters
    ----------
    solver_spec : dict, optional
        'method' plus integrator options. Fixed-step methods
        ('ForwardEuler', 'RungeKutta4') require 'dt'. Default is
        ``SciPyIntegrator('RK45')``.
    """
    spec = dict(solver_spec or {})
    method = spec.pop("method", "RK45")
    for key in FLOAT_OPTIONS:
        if key in spec:
            spec[key] = float(spec[key])

    if method in FIXED_STEP_INTEGRATORS:
        if "dt" not in spec:
            raise ConfigurationError(f"Solver '{method}' requires 'dt'")
        return FIXED_STEP_INTEGRATORS[method](**spec)
    if method in SCIPY_METHODS:
        if "dt" in spec:
            raise ConfigurationError(
                f"Solver '{method}' is adaptive and does not take 'dt'"
            )
        return SciPyIntegrator(method, **spec)
    raise ConfigurationError(
        f"Unknown solver method '{method}'. Use one of "
        f"{list(SCIPY_METHODS) + list(FIXED_STEP_INTEGRATORS)}"
    )


def _save_times(sim_spec: dict, t_span: Tuple[float, float]):
    if "save_times" in sim_spec and "save_every" in sim_spec:
        raise ConfigurationError("Cannot provide both save_times and save_every")
    if "save_times" in sim_spec:
        return [float(t) for t in sim_spec["save_times"]]
    if "save_every" in sim_spec:
        t0, tf = t_span
        step = float(sim_spec["save_every"])
        if step <= 0:
            raise ConfigurationError("save_every must be positive")
        times = np.arange(t0, tf + step / 2, step)
        times[-1] = min(times[-1], tf)
        return times
    return None


def build_config(spec: dict, ureg: Any = None) -> Tuple[SimulationConfig, Integrator]:
    """
    Build a SimulationConfig and integrator from a parsed specification.

    Parameters
    ----------
    spec : dict
        Parsed configuration (see module docstring)
    ureg : pint.UnitRegistry, optional
        If given, parameter values with units are converted to SI

    Returns
    -------
    config : SimulationConfig
    integrator : Integrator
    """
    for section in REQUIRED_SECTIONS:
        if section not in spec:
            raise ConfigurationError(f"Missing required section: {section}")

    sim_spec = spec["simulation"]
    if "t_span" not in sim_spec:
        raise ConfigurationError("Missing simulation.t_span")
    t_span = tuple(float(t) for t in sim_spec["t_span"])
    initial_conditions = spec["initial_conditions"] or {}
    if "x0" not in initial_conditions:
        raise ConfigurationError("Missing initial_conditions.x0")

    inputs = {
        name: parse_input_spec(input_spec)
        for name, input_spec in (spec.get("inputs") or {}).items()
    }

    config = SimulationConfig(
        t_span=t_span,
        x0=initial_conditions["x0"],
        parameters=param_values(spec.get("parameters") or {}, ureg=ureg),
        inputs=inputs or None,
        save_times=_save_times(sim_spec, t_span),
        check_shapes=sim_spec.get("check_shapes", True),
    )
    return config, make_integrator(spec.get("solver"))


def load_config(
    yaml_path, ureg: Any = None
) -> Tuple[SimulationConfig, Integrator]:
    """Load a simulation configuration from a YAML file."""
    yaml_path = Path(yaml_path)
    with open(yaml_path, "r") as f:
        spec = yaml.safe_load(f)
    if not isinstance(spec, dict):
        raise ConfigurationError(f"{yaml_path} does not contain a mapping")
    logger.info("Loaded simulation config from %s", yaml_path)
    return build_config(spec, ureg=ureg)
