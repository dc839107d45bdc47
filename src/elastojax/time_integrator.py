"""Time integrators binding an integration engine to a mutable structure.

A structure is any object with the attributes ``time``, ``positions`` and
``velocities`` and a right-hand side ``rhs(t, x) -> dx`` acting on the
flattened positions (optionally ``ode_size()``), such as
:class:`~elastojax.particles.ElasticBoundary`. Each call of
:meth:`TimeIntegrator.advance` reads the time and positions, advances them
with the engine, and writes back

- ``positions``: the new state,
- ``velocities``: the right-hand side at the new state,
- ``time``: ``time + dt``.

The right-hand side at the new state is kept and reused as the starting
derivative of the next step. It is dropped automatically when the
structure's positions or time were changed by anything other than the
integrator, and explicitly by :meth:`TimeIntegrator.reset`.

Integrators are selected by name with :func:`create_time_integrator`.
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp
from jax import Array

from elastojax.errors import NonFiniteStateError, SDCConfigurationError
from elastojax.integrators._types import NewtonKrylovConfig, SDCConfig
from elastojax.integrators.engines import ExplicitSDC, NewtonKrylovSDC
from elastojax.integrators.euler import euler_step

logger = logging.getLogger(__name__)

_REQUIRED_ATTRIBUTES = ("time", "positions", "velocities", "rhs")


class TimeIntegrator:
    """Base class of the structure time integrators.

    Args:
        structure: Object exposing ``time``, ``positions``, ``velocities``
            and ``rhs(t, x)``.

    Raises:
        TypeError: If *structure* lacks one of the required attributes.
        SDCConfigurationError: If ``structure.ode_size()`` does not match
            the number of position entries.
    """

    name = "base"

    def __init__(self, structure) -> None:
        missing = [attr for attr in _REQUIRED_ATTRIBUTES if not hasattr(structure, attr)]
        if missing:
            raise TypeError(
                f"{type(structure).__name__} cannot be integrated: missing {', '.join(missing)}"
            )
        ode_size = getattr(structure, "ode_size", None)
        if callable(ode_size) and ode_size() != jnp.size(structure.positions):
            raise SDCConfigurationError(
                f"ode_size()={ode_size()} does not match the {jnp.size(structure.positions)} "
                "position entries of the structure"
            )

        self.structure = structure
        self._derivative: Array | None = None
        self._positions = None
        self._time = None

    def _advance(self, t, x: Array, f: Array | None, dt) -> tuple[Array, Array]:
        raise NotImplementedError

    def advance(self, dt: float) -> None:
        """Advance the structure by one step of size *dt*."""
        structure = self.structure
        if structure.positions is not self._positions or structure.time != self._time:
            self._derivative = None

        shape = jnp.shape(structure.positions)
        x = jnp.reshape(structure.positions, (-1,))
        x_new, f_new = self._advance(structure.time, x, self._derivative, dt)

        structure.positions = jnp.reshape(x_new, shape)
        structure.velocities = jnp.reshape(f_new, shape)
        structure.time = structure.time + dt

        self._derivative = f_new
        self._positions = structure.positions
        self._time = structure.time

        logger.debug("%s advanced structure to t=%s", self.name, structure.time)

    def integrate(self, dt: float, n_steps: int) -> None:
        """Take *n_steps* steps of size *dt*."""
        for _ in range(n_steps):
            self.advance(dt)

    def reset(self) -> None:
        """Forget the cached right-hand side of the last step."""
        self._derivative = None
        self._positions = None
        self._time = None


class EulerIntegrator(TimeIntegrator):
    """Forward Euler time integrator (first order)."""

    name = "euler"

    def __init__(self, structure) -> None:
        super().__init__(structure)
        rhs = structure.rhs

        def step(t, x, dt, f):
            return euler_step(rhs, t, x, dt, derivative=f)

        self._step = jax.jit(step)

    def _advance(self, t, x, f, dt):
        result = self._step(t, x, dt, f)
        finite = jnp.all(jnp.isfinite(result.state)) & jnp.all(jnp.isfinite(result.derivative))
        if not bool(finite):
            logger.error("Non-finite state in euler step from t=%s with dt=%s", t, dt)
            raise NonFiniteStateError(
                f"euler step from t={float(t):.6e} with dt={float(dt):.6e} "
                "produced a non-finite state or right-hand side"
            )
        return result.state, result.derivative


class SDCIntegrator(TimeIntegrator):
    """Explicit SDC time integrator.

    Args:
        structure: Structure to advance.
        config: Grid and sweep configuration of the engine.

    Examples:
        ```python
        from elastojax import SDCIntegrator
        from elastojax.integrators import SDCConfig
        integrator = SDCIntegrator(boundary, SDCConfig(n_nodes=3))
        integrator.integrate(1e-3, 100)
        ```
    """

    name = "sdc"

    def __init__(self, structure, config: SDCConfig | None = None) -> None:
        super().__init__(structure)
        self.engine = ExplicitSDC(structure.rhs, config)

    def _advance(self, t, x, f, dt):
        return self.engine.advance(t, x, f, dt)


class NewtonKrylovSDCIntegrator(TimeIntegrator):
    """Implicit (Newton-Krylov) SDC time integrator for stiff structures.

    Args:
        structure: Structure to advance. A ``jvp(t, x, v)`` attribute, if
            present, supplies the Jacobian-vector products.
        config: Grid and sweep configuration of the engine.
        solver: Newton and Krylov settings.
    """

    name = "newton_krylov_sdc"

    def __init__(
        self,
        structure,
        config: SDCConfig | None = None,
        solver: NewtonKrylovConfig | None = None,
    ) -> None:
        super().__init__(structure)
        self.engine = NewtonKrylovSDC(
            structure.rhs, config, solver, jvp=getattr(structure, "jvp", None)
        )

    def _advance(self, t, x, f, dt):
        return self.engine.advance(t, x, f, dt)


_INTEGRATORS = {
    EulerIntegrator.name: EulerIntegrator,
    SDCIntegrator.name: SDCIntegrator,
    NewtonKrylovSDCIntegrator.name: NewtonKrylovSDCIntegrator,
}


def create_time_integrator(structure, method: str = "sdc", **kwargs) -> TimeIntegrator:
    """Create a time integrator by name.

    Args:
        structure: Structure to advance.
        method: ``"euler"``, ``"sdc"`` or ``"newton_krylov_sdc"``.
        **kwargs: Passed to the integrator (``config``, ``solver``).

    Returns:
        TimeIntegrator: The integrator bound to *structure*.

    Raises:
        ValueError: If *method* is not recognized.
    """
    try:
        cls = _INTEGRATORS[method]
    except KeyError:
        raise ValueError(
            f"Unknown time integrator '{method}'. Choose from {sorted(_INTEGRATORS)}"
        ) from None
    return cls(structure, **kwargs)
