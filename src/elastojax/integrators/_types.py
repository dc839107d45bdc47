"""Type definitions for the time integrators.

Provides the core data types used across all integrator implementations:

- :class:`StepResult`: Output of the base (forward Euler) stepper.
- :class:`SDCResult`: Output of the explicit and Newton-Krylov SDC step
  functions, including implicit-solver diagnostics.
- :class:`SDCConfig`: Quadrature grid and sweep count of an SDC engine.
- :class:`NewtonKrylovConfig`: Tolerances and caps of the nonlinear and
  linear solves performed by the Newton-Krylov engine.
- :class:`RHSProvider`: Structural type of a right-hand-side provider.

Result and solver types are :class:`~typing.NamedTuple` instances, which
JAX treats as pytrees automatically, so they pass through ``jax.jit``,
``jax.vmap`` and ``jax.lax`` control flow. :class:`SDCConfig` is a frozen
dataclass because it is validated on construction; it is static
configuration and never enters a traced computation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Protocol, runtime_checkable

from jax import Array
from jax.typing import ArrayLike

from elastojax.errors import SDCConfigurationError
from elastojax.integrators.quadrature import (
    NodeKind,
    SpectralQuadrature,
    as_node_kind,
    spectral_quadrature,
)


@runtime_checkable
class RHSProvider(Protocol):
    """Right-hand side of ``dx/dt = F(t, x)``.

    Any callable ``(t, x) -> dx`` qualifies. Providers may additionally
    expose ``ode_size() -> int`` (state dimension) and
    ``jvp(t, x, v) -> Array`` (the directional derivative ``dF/dx · v``);
    engines look these up with ``getattr`` and fall back to the state
    shape and to ``jax.jvp`` respectively.
    """

    def __call__(self, t: ArrayLike, x: ArrayLike) -> Array: ...


class StepResult(NamedTuple):
    """Result of a single base-stepper step.

    Attributes:
        state: State vector at time ``t + dt_used``.
        derivative: Right-hand side evaluated at the new state, ready to be
            passed to the next step.
        dt_used: Timestep taken (always the requested ``dt``).
    """

    state: Array
    derivative: Array
    dt_used: Array


class SDCResult(NamedTuple):
    """Result of a single SDC step.

    For the explicit engine the solver diagnostics are trivial
    (``converged`` True, zero iterations, zero residuals).

    Attributes:
        state: State vector at time ``t + dt_used``.
        derivative: Right-hand side evaluated at the new state.
        dt_used: Timestep taken (always the requested ``dt``).
        correction_norm: Max-norm of the change the final correction sweep
            made to the step-end state. Zero when no sweeps are configured.
        converged: True when every Newton solve of the step met its
            tolerance.
        newton_iterations: Largest Newton iteration count over all node
            solves of the step.
        newton_residual: Largest final scaled Newton residual over all node
            solves of the step (<= 1.0 when converged).
        linear_residual: Worst relative residual of the Krylov solves.
        krylov_stagnated: True when any Krylov solve failed to reduce its
            residual below ``max_linear_residual``.
    """

    state: Array
    derivative: Array
    dt_used: Array
    correction_norm: Array
    converged: Array
    newton_iterations: Array
    newton_residual: Array
    linear_residual: Array
    krylov_stagnated: Array


@dataclass(frozen=True)
class SDCConfig:
    """Quadrature grid and sweep count of an SDC engine.

    The four integers fully determine the engine's discretization and
    are fixed per engine instance. After ``n_sweeps`` correction sweeps
    the global error is ``O(dt ** min(n_sweeps + 1, n_nodes))``.

    Args:
        n_subintervals: Number of sub-intervals ``M`` of each step.
        n_nodes: Quadrature nodes per sub-interval ``p`` (including both
            endpoints when ``p >= 2``).
        n_sweeps: Correction sweeps ``K``. ``None`` selects the full design
            order ``p - 1``. Must satisfy ``0 <= K <= p - 1``.
        node_kind: Node distribution (enum, integer code or name).

    Raises:
        SDCConfigurationError: If any parameter is out of range or the
            sweep count exceeds what the grid supports.

    Examples:
        ```python
        from elastojax.integrators import SDCConfig
        config = SDCConfig(n_subintervals=1, n_nodes=5)
        config.n_sweeps, config.order  # (4, 5)
        ```
    """

    n_subintervals: int = 1
    n_nodes: int = 5
    n_sweeps: int | None = None
    node_kind: NodeKind = NodeKind.CLENSHAW_CURTIS

    def __post_init__(self) -> None:
        object.__setattr__(self, "node_kind", as_node_kind(self.node_kind))
        if self.n_subintervals < 1:
            raise SDCConfigurationError(
                f"n_subintervals must be >= 1, got {self.n_subintervals}"
            )
        if self.n_nodes < 1:
            raise SDCConfigurationError(f"n_nodes must be >= 1, got {self.n_nodes}")
        if self.n_sweeps is None:
            object.__setattr__(self, "n_sweeps", self.max_sweeps)
        if self.n_sweeps < 0:
            raise SDCConfigurationError(f"n_sweeps must be >= 0, got {self.n_sweeps}")
        if self.n_sweeps > self.max_sweeps:
            raise SDCConfigurationError(
                f"n_sweeps={self.n_sweeps} exceeds the {self.max_sweeps} correction "
                f"sweeps supported by {self.n_nodes} nodes per sub-interval"
            )

    @property
    def max_sweeps(self) -> int:
        """Largest sweep count that still raises the order (``p - 1``)."""
        return self.n_nodes - 1

    @property
    def order(self) -> int:
        """Design convergence order ``min(K + 1, p)``."""
        return min(self.n_sweeps + 1, self.n_nodes)

    def quadrature(self) -> SpectralQuadrature:
        """Return the (cached) quadrature table for this configuration."""
        return spectral_quadrature(self.n_subintervals, self.n_nodes, self.node_kind)


class NewtonKrylovConfig(NamedTuple):
    """Configuration of the implicit node solves of the Newton-Krylov engine.

    Tolerances left as ``None`` are resolved from
    :func:`~elastojax.config.get_solver_tolerance` when the step is traced.

    Attributes:
        abs_tol: Absolute tolerance of the Newton residual test.
        rel_tol: Relative tolerance of the Newton residual test.
        max_newton_iterations: Newton iteration cap per node solve.
        krylov_tol: Relative tolerance of each GMRES solve.
        krylov_restart: GMRES Krylov subspace size between restarts.
        krylov_max_restarts: Maximum number of GMRES restart cycles.
        max_linear_residual: A Krylov solve whose final relative residual
            exceeds this value is flagged as stagnated.
        jvp_method: ``"autodiff"`` (``jax.jvp``) or ``"finite_difference"``.
            Ignored when the provider or engine supplies its own ``jvp``.
        fd_epsilon: Finite-difference step scale. ``None`` uses the square
            root of the dtype's machine epsilon.
    """

    abs_tol: float | None = None
    rel_tol: float | None = None
    max_newton_iterations: int = 20
    krylov_tol: float | None = None
    krylov_restart: int = 20
    krylov_max_restarts: int = 10
    max_linear_residual: float = 0.1
    jvp_method: str = "autodiff"
    fd_epsilon: float | None = None
