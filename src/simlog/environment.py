"""Environment protocol: factories describing one (sub)system."""

from typing import Any, Optional, Protocol, Tuple, runtime_checkable

from simlog.loggable import LoggableFunction, as_loggable


@runtime_checkable
class Environment(Protocol):
    """Protocol for system descriptors.

    An environment provides pure factories for its initial state and its
    dynamics. It may also provide ``params()`` returning default
    parameters. Environments must not change during a simulation.

    Examples
    --------
    >>> class Decay:
    ...     def __init__(self, k=1.0):
    ...         self.k = k
    ...     def state(self, x0=1.0):
    ...         return np.array([x0])
    ...     def params(self):
    ...         return {"k": self.k}
    ...     def dynamics(self):
    ...         @loggable
    ...         def f(dx, x, p, t, log):
    ...             dx[:] = -p["k"] * x
    ...             log.append("x", x[0])
    ...         return f
    """

    def state(self, *args, **kwargs) -> Any:
        """Construct an initial state."""
        ...

    def dynamics(self) -> LoggableFunction:
        """Construct the dynamics function."""
        ...


def resolve_dynamics(
    system: Any, params: Optional[Any] = None
) -> Tuple[LoggableFunction, Any]:
    """Return ``(dynamics, params)`` for an environment or a dynamics.

    If ``system`` is an environment its ``dynamics()`` factory is used,
    and its ``params()`` factory when ``params`` is None. Anything else is
    treated as a dynamics function and passed through ``as_loggable``.
    """
    if isinstance(system, LoggableFunction):
        return system, params
    if isinstance(system, Environment):
        if params is None and callable(getattr(system, "params", None)):
            params = system.params()
        return as_loggable(system.dynamics()), params
    if callable(system):
        return as_loggable(system), params
    raise TypeError(
        f"Expected an Environment or a dynamics function, "
        f"got {type(system).__name__}"
    )
