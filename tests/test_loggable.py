"""Tests for simlog.loggable module."""

import numpy as np
import pytest

from simlog import (
    DuplicateFieldError,
    LoggableFunction,
    UnloggedFunction,
    as_loggable,
    loggable,
)


@loggable
def pendulum(dx, x, p, t, log):
    """Damped pendulum with a logged energy."""
    theta, omega = x
    dx[0] = omega
    dx[1] = -p["g"] / p["L"] * np.sin(theta) - p["d"] * omega
    log.append("theta", theta)
    log.append("omega", omega)
    if log.enabled:
        energy = 0.5 * p["L"] ** 2 * omega**2 + p["g"] * p["L"] * (
            1 - np.cos(theta)
        )
        log.append("energy", energy)


PARAMS = {"g": 9.81, "L": 1.5, "d": 0.1}


def test_decorator_returns_loggable_function():
    assert isinstance(pendulum, LoggableFunction)
    assert pendulum.name == "pendulum"
    assert "pendulum" in repr(pendulum)


def test_decorator_with_name():
    @loggable(name="custom")
    def f(dx, x, p, t, log):
        dx[:] = 0.0

    assert isinstance(f, LoggableFunction)
    assert f.name == "custom"


def test_modes_write_identical_derivatives():
    """Plain and logging modes give bit-identical derivative buffers."""
    rng = np.random.default_rng(0)
    for _ in range(20):
        x = rng.normal(size=2)
        t = rng.uniform(0, 10)
        dx_plain = np.zeros(2)
        dx_log = np.zeros(2)

        pendulum.evaluate(dx_plain, x, PARAMS, t)
        pendulum.evaluate_with_log(dx_log, x, PARAMS, t)

        np.testing.assert_array_equal(dx_plain, dx_log)


def test_call_is_plain_mode():
    x = np.array([0.3, -0.2])
    dx_call = np.zeros(2)
    dx_eval = np.zeros(2)

    assert pendulum(dx_call, x, PARAMS, 0.0) is None
    pendulum.evaluate(dx_eval, x, PARAMS, 0.0)

    np.testing.assert_array_equal(dx_call, dx_eval)


def test_logging_mode_returns_record():
    x = np.array([0.0, 2.0])
    record = pendulum.evaluate_with_log(np.zeros(2), x, PARAMS, 0.0)

    assert list(record) == ["theta", "omega", "energy"]
    assert record["theta"] == 0.0
    assert record["omega"] == 2.0
    assert record["energy"] == pytest.approx(0.5 * 1.5**2 * 4.0)


def test_each_activation_gets_a_fresh_record():
    x = np.array([0.1, 0.0])
    r1 = pendulum.evaluate_with_log(np.zeros(2), x, PARAMS, 0.0)
    r2 = pendulum.evaluate_with_log(np.zeros(2), x, PARAMS, 0.0)

    assert r1 == r2
    assert r1 is not r2


def test_no_log_fields_gives_empty_record():
    @loggable
    def silent(dx, x, p, t, log):
        dx[:] = -x

    dx = np.zeros(1)
    assert silent.evaluate_with_log(dx, np.array([2.0]), None, 0.0) == {}
    assert dx[0] == -2.0


def test_duplicate_field_in_body_raises_in_logging_mode_only():
    @loggable
    def twice(dx, x, p, t, log):
        dx[:] = 0.0
        log.append("x", x[0])
        log.append("x", x[0])

    twice.evaluate(np.zeros(1), np.array([1.0]), None, 0.0)
    with pytest.raises(DuplicateFieldError):
        twice.evaluate_with_log(np.zeros(1), np.array([1.0]), None, 0.0)


def test_extras_are_forwarded():
    @loggable
    def forced(dx, x, p, t, log, u=0.0):
        dx[0] = -x[0] + u
        log.append("u", u)

    dx = np.zeros(1)
    record = forced.evaluate_with_log(dx, np.array([1.0]), None, 0.0, u=3.0)
    assert record == {"u": 3.0}
    assert dx[0] == 2.0


def test_as_loggable_wraps_plain_functions():
    def plain(dx, x, p, t):
        dx[:] = -p * x

    wrapped = as_loggable(plain)
    assert isinstance(wrapped, UnloggedFunction)

    dx_plain = np.zeros(2)
    dx_log = np.zeros(2)
    wrapped.evaluate(dx_plain, np.array([1.0, 2.0]), 0.5, 0.0)
    record = wrapped.evaluate_with_log(dx_log, np.array([1.0, 2.0]), 0.5, 0.0)

    assert record == {}
    np.testing.assert_array_equal(dx_plain, [-0.5, -1.0])
    np.testing.assert_array_equal(dx_plain, dx_log)


def test_as_loggable_passes_loggable_through():
    assert as_loggable(pendulum) is pendulum


def test_rejects_non_callable():
    with pytest.raises(TypeError):
        LoggableFunction(42)
