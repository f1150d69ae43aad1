"""Tests for simlog.config module."""

import numpy as np
import pint
import pytest
import yaml

from simlog import (
    ConfigurationError,
    ForwardEuler,
    RungeKutta4,
    SciPyIntegrator,
    StepInput,
    loggable,
    simulate,
)
from simlog.config import (
    build_config,
    load_config,
    make_integrator,
    param_values,
    parse_input_spec,
)

VEHICLE_PARAMS = {
    "vehicle": {
        "mass": {"value": 1200, "units": "kg"},
        "drag": {"value": 0.1, "units": "1/s", "desc": "Linear drag"},
    },
    "engine": {
        "time_constant": {"value": 500, "units": "ms"},
        "n_cylinders": 4,
    },
}


def test_param_values_keeps_nesting():
    assert param_values(VEHICLE_PARAMS) == {
        "vehicle": {"mass": 1200, "drag": 0.1},
        "engine": {"time_constant": 500, "n_cylinders": 4},
    }


def test_param_values_converts_to_base_units():
    ureg = pint.UnitRegistry()
    values = param_values(VEHICLE_PARAMS, ureg=ureg)

    assert values["engine"]["time_constant"] == pytest.approx(0.5)
    assert values["vehicle"]["mass"] == pytest.approx(1200.0)
    assert values["engine"]["n_cylinders"] == 4


def test_param_values_unknown_units():
    ureg = pint.UnitRegistry()
    with pytest.raises(ConfigurationError):
        param_values({"engine": {"tau": {"value": 1, "units": "blorps"}}}, ureg=ureg)


def test_parse_input_spec():
    u = parse_input_spec({"ConstantInput": {"value": 0.5}})
    assert u(3.0) == 0.5

    u = parse_input_spec(
        {
            "StepInput": {
                "initial_value": 0.0,
                "steps": [{"time": 1.0, "value": 2.0}, {"time": 3.0, "value": 1.0}],
            }
        }
    )
    assert isinstance(u, StepInput)
    assert [u(t) for t in (0.5, 1.5, 3.5)] == [0.0, 2.0, 1.0]

    with pytest.raises(ConfigurationError):
        parse_input_spec({"WhiteNoise": {}})
    with pytest.raises(ConfigurationError):
        parse_input_spec({"ConstantInput": {"value": 1}, "RampInput": {}})


def test_make_integrator():
    integrator = make_integrator({"method": "Radau", "rtol": "1e-6"})
    assert isinstance(integrator, SciPyIntegrator)
    assert integrator.method == "Radau"
    assert integrator.options["rtol"] == 1e-6

    assert isinstance(make_integrator(None), SciPyIntegrator)
    assert isinstance(make_integrator({"method": "RungeKutta4", "dt": 0.1}), RungeKutta4)
    assert isinstance(make_integrator({"method": "ForwardEuler", "dt": 0.1}), ForwardEuler)

    with pytest.raises(ConfigurationError):
        make_integrator({"method": "RungeKutta4"})
    with pytest.raises(ConfigurationError):
        make_integrator({"method": "Leapfrog"})
    # dt only applies to fixed-step methods
    with pytest.raises(ConfigurationError):
        make_integrator({"method": "RK45", "dt": 0.1})


def test_build_config_missing_section():
    with pytest.raises(ConfigurationError):
        build_config({"simulation": {"t_span": [0, 1]}})
    with pytest.raises(ConfigurationError):
        build_config(
            {
                "simulation": {"t_span": [0, 1]},
                "initial_conditions": {"x": [1.0]},
            }
        )
    with pytest.raises(ConfigurationError):
        build_config({"simulation": {"t_span": [0, 1]}, "initial_conditions": None})


def test_build_config_save_every():
    config, _ = build_config(
        {
            "simulation": {"t_span": [0.0, 1.0], "save_every": 0.25},
            "initial_conditions": {"x0": [1.0]},
        }
    )
    np.testing.assert_allclose(config.save_times, [0.0, 0.25, 0.5, 0.75, 1.0])

    with pytest.raises(ConfigurationError):
        build_config(
            {
                "simulation": {
                    "t_span": [0.0, 1.0],
                    "save_every": 0.25,
                    "save_times": [0.0, 1.0],
                },
                "initial_conditions": {"x0": [1.0]},
            }
        )


def test_load_config_and_simulate(tmp_path):
    spec = {
        "simulation": {"t_span": [0.0, 2.0], "save_times": [0.0, 1.0, 2.0]},
        "solver": {"method": "RK45", "rtol": 1.0e-8, "atol": 1.0e-10},
        "initial_conditions": {"x0": [0.0]},
        "parameters": {"tank": {"k": {"value": 1.0, "units": "1/s"}}},
        "inputs": {"q_in": {"StepInput": {"times": [1.0], "values": [0.0, 1.0]}}},
    }
    path = tmp_path / "tank.yaml"
    path.write_text(yaml.safe_dump(spec))

    config, integrator = load_config(path, ureg=pint.UnitRegistry())

    assert config.t_span == (0.0, 2.0)
    assert config.parameters == {"tank": {"k": 1.0}}
    assert isinstance(integrator, SciPyIntegrator)

    @loggable
    def tank(dx, x, p, t, log, q_in):
        dx[0] = q_in - p["tank"]["k"] * x[0]
        log.append("level", x[0])
        log.append("q_in", q_in)

    result = simulate(
        config.x0,
        tank,
        config.parameters,
        start_time=config.t_span[0],
        end_time=config.t_span[1],
        save_times=config.save_times,
        inputs=config.inputs,
        solver=integrator,
    )
    assert result.success
    assert result.field("q_in").tolist() == [0.0, 1.0, 1.0]
    assert result.field("level")[-1] == pytest.approx(1 - np.exp(-1.0), rel=1e-4)


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_config(path)
