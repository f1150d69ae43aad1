"""Exceptions raised by the simlog package.

Field errors signal mistakes in how dynamics were authored (a name logged
twice, a flattened child record colliding with its parent, a field changing
shape between save times). They are raised synchronously inside a logging
activation and abort the simulation. Integrator failures are not raised;
they are reported through ``SimulationResult.status``.
"""


class SimlogError(Exception):
    """Base class for all simlog errors."""


class LogFieldError(SimlogError, ValueError):
    """A log field was appended or merged incorrectly."""


class DuplicateFieldError(LogFieldError):
    """A field name was appended twice at the same nesting level."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Field '{name}' already exists at this level")


class FieldCollisionError(LogFieldError):
    """A flattened child record has a key that the parent already holds."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Cannot flatten field '{name}' into parent record: "
            "key already exists"
        )


class FieldShapeError(LogFieldError):
    """A field changed shape between records of the same trace."""

    def __init__(self, path: str, expected, got, t: float):
        self.path = path
        self.expected = expected
        self.got = got
        self.t = t
        super().__init__(
            f"Field '{path}' has shape {got} at t={t}, "
            f"expected {expected}"
        )


class ConfigurationError(SimlogError, ValueError):
    """Invalid simulation configuration (time span, save times, solver)."""
