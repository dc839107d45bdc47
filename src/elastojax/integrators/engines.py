"""Engine objects wrapping the SDC step functions with checked stepping.

An engine binds a right-hand-side provider to a fixed configuration: the
quadrature table is built and validated once in the constructor and the
step function is compiled once with ``jax.jit``. Engines hold no state
of the system being integrated; every call is a pure function of the
``(t, x, f, dt)`` it receives.

Unlike the raw step functions, engines inspect each result eagerly and
raise the exceptions of :mod:`elastojax.errors`:

- :class:`~elastojax.errors.NonFiniteStateError` when the new state or its
  right-hand side contains NaN or Inf,
- :class:`~elastojax.errors.NewtonConvergenceError` when an implicit node
  solve missed its tolerance (chained to a
  :class:`~elastojax.errors.KrylovStagnationError` when the linear solves
  stagnated).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.errors import (
    KrylovStagnationError,
    NewtonConvergenceError,
    NonFiniteStateError,
    SDCConfigurationError,
)
from elastojax.integrators._types import NewtonKrylovConfig, SDCConfig, SDCResult
from elastojax.integrators.newton_krylov import newton_krylov_sdc_step, validate_solver_config
from elastojax.integrators.sdc import explicit_sdc_step

logger = logging.getLogger(__name__)


class _SDCEngine:
    """Shared construction and result checking of the SDC engines."""

    name = "sdc"

    def __init__(
        self,
        dynamics: Callable[[ArrayLike, ArrayLike], Array],
        config: SDCConfig | None = None,
    ) -> None:
        self.dynamics = dynamics
        self.config = SDCConfig() if config is None else config
        self.quadrature = self.config.quadrature()

        ode_size = getattr(dynamics, "ode_size", None)
        self._ode_size = ode_size() if callable(ode_size) else None
        self._step = jax.jit(self._build_step())

        logger.debug(
            "Created %s engine: M=%d, p=%d, K=%d, %s nodes",
            self.name,
            self.config.n_subintervals,
            self.config.n_nodes,
            self.config.n_sweeps,
            self.config.node_kind.name.lower(),
        )

    def _build_step(self) -> Callable[..., SDCResult]:
        raise NotImplementedError

    @property
    def order(self) -> int:
        """Design convergence order of the configured grid and sweeps."""
        return self.config.order

    @property
    def evaluations_per_step(self) -> int:
        """Right-hand-side evaluations of one step (excluding the initial one)."""
        return self.quadrature.n_intervals * (self.config.n_sweeps + 1)

    def step(
        self,
        t: ArrayLike,
        state: ArrayLike,
        dt: ArrayLike,
        derivative: ArrayLike | None = None,
    ) -> SDCResult:
        """Advance ``state`` from ``t`` to ``t + dt`` and check the result.

        Args:
            t: Current time.
            state: Current state vector.
            dt: Timestep.
            derivative: ``f(t, state)`` if already known.

        Returns:
            SDCResult: Result of the step.

        Raises:
            SDCConfigurationError: If the state size does not match the
                provider's ``ode_size()``.
            NonFiniteStateError: If the result contains NaN or Inf.
            NewtonConvergenceError: If an implicit solve did not converge.
        """
        if self._ode_size is not None and jnp.size(state) != self._ode_size:
            raise SDCConfigurationError(
                f"State has {jnp.size(state)} components but the right-hand side "
                f"expects ode_size()={self._ode_size}"
            )
        result = self._step(t, state, dt, derivative)
        self._check_result(result, t, dt)
        return result

    def advance(
        self,
        t0: ArrayLike,
        x0: ArrayLike,
        f0: ArrayLike | None,
        dt: ArrayLike,
    ) -> tuple[Array, Array]:
        """Advance one step and return ``(x1, f1)``.

        ``f1 = F(t0 + dt, x1)`` is meant to be passed back as *f0* of the
        next call, saving one right-hand-side evaluation per step.
        """
        result = self.step(t0, x0, dt, derivative=f0)
        return result.state, result.derivative

    __call__ = advance

    def _check_result(self, result: SDCResult, t: ArrayLike, dt: ArrayLike) -> None:
        finite = jnp.all(jnp.isfinite(result.state)) & jnp.all(jnp.isfinite(result.derivative))
        if not bool(finite):
            logger.error(
                "Non-finite state in %s step from t=%s with dt=%s", self.name, t, dt
            )
            raise NonFiniteStateError(
                f"{self.name} step from t={float(t):.6e} with dt={float(dt):.6e} "
                "produced a non-finite state or right-hand side"
            )


class ExplicitSDC(_SDCEngine):
    """Explicit SDC engine (forward Euler prediction and corrections).

    Args:
        dynamics: Right-hand side ``f(t, x)``; may expose ``ode_size()``.
        config: Grid and sweep configuration. Defaults to
            :class:`SDCConfig` (5 Clenshaw-Curtis nodes, 4 sweeps).

    Raises:
        SDCConfigurationError: If the configuration is inconsistent.

    Examples:
        ```python
        import jax.numpy as jnp
        from elastojax.dynamics import ExpSine
        from elastojax.integrators import ExplicitSDC
        rhs = ExpSine()
        sdc = ExplicitSDC(rhs)
        x, f = jnp.array([1.0]), None
        t = 0.0
        for _ in range(10):
            x, f = sdc.advance(t, x, f, 0.1)
            t += 0.1
        ```
    """

    name = "explicit_sdc"

    def _build_step(self):
        dynamics = self.dynamics
        config = self.config

        def step(t, state, dt, derivative):
            return explicit_sdc_step(dynamics, t, state, dt, config=config, derivative=derivative)

        return step


class NewtonKrylovSDC(_SDCEngine):
    """Implicit SDC engine with Newton-Krylov node solves, for stiff systems.

    Args:
        dynamics: Right-hand side ``f(t, x)``; may expose ``ode_size()``
            and ``jvp(t, x, v)``.
        config: Grid and sweep configuration.
        solver: Newton/Krylov tolerances and caps. Defaults to
            :class:`NewtonKrylovConfig`.
        jvp: Directional derivative overriding the provider's.

    Raises:
        SDCConfigurationError: If the grid or solver configuration is
            inconsistent.
    """

    name = "newton_krylov_sdc"

    def __init__(
        self,
        dynamics: Callable[[ArrayLike, ArrayLike], Array],
        config: SDCConfig | None = None,
        solver: NewtonKrylovConfig | None = None,
        jvp: Callable[[ArrayLike, ArrayLike, ArrayLike], Array] | None = None,
    ) -> None:
        self.solver = NewtonKrylovConfig() if solver is None else solver
        validate_solver_config(self.solver)
        self.jvp = jvp
        super().__init__(dynamics, config)

    def _build_step(self):
        dynamics = self.dynamics
        config = self.config
        solver = self.solver
        jvp = self.jvp

        def step(t, state, dt, derivative):
            return newton_krylov_sdc_step(
                dynamics,
                t,
                state,
                dt,
                config=config,
                solver=solver,
                derivative=derivative,
                jvp=jvp,
            )

        return step

    def _check_result(self, result: SDCResult, t: ArrayLike, dt: ArrayLike) -> None:
        super()._check_result(result, t, dt)
        if bool(result.converged):
            return

        iterations = int(result.newton_iterations)
        residual = float(result.newton_residual)
        linear = float(result.linear_residual)
        logger.error(
            "Newton solve failed in %s step from t=%s with dt=%s "
            "(%d iterations, residual %.3e, linear residual %.3e)",
            self.name,
            t,
            dt,
            iterations,
            residual,
            linear,
        )
        cause = None
        if bool(result.krylov_stagnated):
            cause = KrylovStagnationError(
                f"Krylov solve stagnated with relative residual {linear:.3e} "
                f"(threshold {self.solver.max_linear_residual:.3e})",
                linear_residual=linear,
            )
        raise NewtonConvergenceError(
            f"Newton iteration did not converge within {self.solver.max_newton_iterations} "
            f"iterations in step from t={float(t):.6e} with dt={float(dt):.6e}",
            iterations=iterations,
            residual=residual,
        ) from cause
