"""Tests for simlog.records module."""

import numpy as np
import pytest

from simlog import (
    NULL_SCOPE,
    DuplicateFieldError,
    FieldCollisionError,
    LogScope,
    append,
    flatten_record,
    record_signature,
)


def test_append_builds_ordered_record():
    """Fields appear in the order they were appended."""
    scope = LogScope()
    scope.append("b", 2.0)
    scope.append("a", 1.0)
    append(scope, "c", "text")

    assert list(scope.record) == ["b", "a", "c"]
    assert scope.record == {"b": 2.0, "a": 1.0, "c": "text"}
    assert len(scope) == 3
    assert "a" in scope


def test_append_duplicate_raises():
    scope = LogScope()
    scope.append("x", 1.0)

    with pytest.raises(DuplicateFieldError) as excinfo:
        scope.append("x", 2.0)

    assert excinfo.value.name == "x"
    # Original value is kept
    assert scope.record == {"x": 1.0}


def test_duplicate_is_a_value_error():
    scope = LogScope()
    scope.append("x", 1.0)
    with pytest.raises(ValueError):
        scope.append("x", 1.0)


@pytest.mark.parametrize("name", ["", None, 3])
def test_append_rejects_bad_names(name):
    with pytest.raises(TypeError):
        LogScope().append(name, 1.0)


def test_append_copies_arrays():
    """Later in-place changes to a logged buffer do not reach the record."""
    buffer = np.array([1.0, 2.0])
    scope = LogScope()
    scope.append("buffer", buffer)
    buffer[:] = 0.0

    np.testing.assert_array_equal(scope.record["buffer"], [1.0, 2.0])


def test_append_copies_mutable_values():
    history = [1.0]
    settings = {"gear": 1}
    scope = LogScope()
    scope.append("history", history)
    scope.append("settings", settings)
    history.append(2.0)
    settings["gear"] = 2

    assert scope.record == {"history": [1.0], "settings": {"gear": 1}}


def test_extend_flattens_fields():
    scope = LogScope()
    scope.append("a", 1)
    scope.extend({"b": 2, "c": 3})
    assert scope.record == {"a": 1, "b": 2, "c": 3}


def test_extend_collision_raises_and_adds_nothing():
    scope = LogScope()
    scope.append("b", 1)

    with pytest.raises(FieldCollisionError):
        scope.extend({"a": 2, "b": 3})

    assert scope.record == {"b": 1}


def test_independent_scopes():
    """Two scopes never share a record."""
    s1, s2 = LogScope(), LogScope()
    s1.append("x", 1)
    s2.append("x", 2)
    assert s1.record == {"x": 1}
    assert s2.record == {"x": 2}


def test_null_scope_is_inert():
    assert NULL_SCOPE.enabled is False
    NULL_SCOPE.append("x", 1.0)
    NULL_SCOPE.append("x", 1.0)  # No duplicate error in plain mode
    NULL_SCOPE.extend({"y": 2.0})
    assert NULL_SCOPE.record == {}
    assert len(NULL_SCOPE) == 0
    assert "x" not in NULL_SCOPE


def test_flatten_record():
    record = {"a": 1, "sub": {"b": 2, "deeper": {"c": 3}}, "d": 4}

    assert flatten_record(record) == {
        "a": 1,
        "sub.b": 2,
        "sub.deeper.c": 3,
        "d": 4,
    }
    assert flatten_record(record, sep="/")["sub/deeper/c"] == 3


def test_flatten_empty_record():
    assert flatten_record({}) == {}
    assert flatten_record({"sub": {}}) == {}


def test_record_signature():
    record = {
        "x": 1.0,
        "v": np.zeros(3),
        "m": np.zeros((2, 2)),
        "flag": True,
        "mode": "cruise",
        "engine": {"rpm": np.float64(1000.0)},
        "pair": [1.0, 2.0],
    }

    assert record_signature(record) == {
        "x": (),
        "v": (3,),
        "m": (2, 2),
        "flag": (),
        "mode": "str",
        "engine.rpm": (),
        "pair": (2,),
    }
