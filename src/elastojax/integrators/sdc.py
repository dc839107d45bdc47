"""Explicit Spectral Deferred Correction (SDC) integrator.

SDC turns the first-order forward Euler method into a method of arbitrary
order. A step ``[t, t + dt]`` is discretized by the grid of a
:class:`~elastojax.integrators.quadrature.SpectralQuadrature` table with
points :math:`t_0 < t_1 < \\dots < t_G` and spacings
:math:`h_j = t_{j+1} - t_j`.

1. **Prediction.** Forward Euler marches across the grid, producing
   :math:`x^0_j` and :math:`f^0_j = F(t_j, x^0_j)`.
2. **Correction sweeps** ``k = 1..K``. Each sweep recomputes all nodes left
   to right:

   .. math::

       x^k_{j+1} = x^k_j + h_j \\left(f^k_j - f^{k-1}_j\\right)
           + \\int_{t_j}^{t_{j+1}} \\mathcal{I}[f^{k-1}](s) \\, ds

   and evaluates :math:`f^k_{j+1}` immediately, since node ``j + 1`` of the
   same sweep needs it.

Each sweep raises the order by one up to the order of the quadrature, so
after ``K`` sweeps the global error is :math:`O(dt^{\\min(K+1, p)})`. The
cost is dominated by the ``G (K + 1)`` right-hand-side evaluations per step.

Nodes are processed with ``jax.lax.scan`` and sweeps with
``jax.lax.fori_loop``; the step is compatible with ``jax.jit`` and
``jax.vmap``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.config import get_dtype
from elastojax.integrators._types import SDCConfig, SDCResult
from elastojax.integrators.euler import forward_euler


class _Grid(NamedTuple):
    """Quadrature grid of one step, scaled to ``[t, t + dt]``."""

    times: Array
    steps: Array
    node_to_node: Array


def _step_grid(config: SDCConfig, t: Array, dt: Array) -> _Grid:
    """Scale the cached unit-step table to the current step.

    Spacings are ``dt`` times the unit spacings, so nothing is divided by
    ``dt`` and ``dt -> 0`` stays well defined.
    """
    table = config.quadrature()
    dtype = get_dtype()
    offsets = jnp.asarray(table.offsets, dtype=dtype)
    spacing = jnp.asarray(table.spacing, dtype=dtype)
    Q = jnp.asarray(table.node_to_node, dtype=dtype)
    return _Grid(times=t + dt * offsets, steps=dt * spacing, node_to_node=Q)


def _stack(first: Array, rest: Array) -> Array:
    return jnp.concatenate([first[None], rest], axis=0)


def _node_integrals(grid: _Grid, dt: Array, F: Array) -> Array:
    """Integrals of the interpolant of ``F`` between consecutive grid points."""
    return dt * jnp.tensordot(grid.node_to_node, F, axes=1)


def _correction_norm(X_new: Array, X_old: Array) -> Array:
    """Max-norm change of the step-end state made by one sweep."""
    return jnp.max(jnp.abs(X_new[-1] - X_old[-1]))


def explicit_sdc_step(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    config: SDCConfig | None = None,
    derivative: ArrayLike | None = None,
    control: Callable[[ArrayLike, ArrayLike], Array] | None = None,
) -> SDCResult:
    """Perform a single explicit SDC integration step.

    Advances the state from ``t`` to ``t + dt`` with forward Euler
    prediction and ``config.n_sweeps`` explicit correction sweeps.
    Compatible with ``jax.jit`` and ``jax.vmap``. No error is raised for a
    diverging state; use :class:`~elastojax.integrators.ExplicitSDC` for
    checked stepping.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state (any fixed shape).
        dt: Timestep to take. May be negative for backward integration.
        config: Quadrature grid and sweep count. Uses the default
            :class:`SDCConfig` (5 Clenshaw-Curtis nodes, 4 sweeps) if
            ``None``.
        derivative: ``f(t, state)`` if already known, typically the
            ``derivative`` of the previous step's result.
        control: Optional additive control function ``u(t, x) -> force``.

    Returns:
        SDCResult: New state, right-hand side at the new state, timestep
        used and the final sweep's correction norm. Solver diagnostics are
        trivially converged.

    Examples:
        ```python
        import jax.numpy as jnp
        from elastojax.integrators import SDCConfig, explicit_sdc_step
        def exp_sine(t, x):
            return x * jnp.cos(t)
        result = explicit_sdc_step(exp_sine, 0.0, jnp.array([1.0]), 0.1)
        result.state  # ~[exp(sin(0.1))]
        ```
    """
    if config is None:
        config = SDCConfig()

    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = jnp.asarray(state, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)

    def f(ti, xi):
        dx = dynamics(ti, xi)
        if control is not None:
            dx = dx + control(ti, xi)
        return dx

    grid = _step_grid(config, t, dt)
    f0 = f(t, state) if derivative is None else jnp.asarray(derivative, dtype=dtype)

    def predict(carry, inputs):
        x, fx = carry
        t_next, h = inputs
        x_next = forward_euler(x, fx, h)
        f_next = f(t_next, x_next)
        return (x_next, f_next), (x_next, f_next)

    _, (X_rest, F_rest) = jax.lax.scan(predict, (state, f0), (grid.times[1:], grid.steps))
    X = _stack(state, X_rest)
    F = _stack(f0, F_rest)

    def sweep(_k, carry):
        X_old, F_old, _change = carry
        integrals = _node_integrals(grid, dt, F_old)

        def correct(node_carry, inputs):
            x, fx = node_carry
            t_next, h, fx_old, integral = inputs
            x_next = forward_euler(x, fx - fx_old, h) + integral
            f_next = f(t_next, x_next)
            return (x_next, f_next), (x_next, f_next)

        _, (X_rest, F_rest) = jax.lax.scan(
            correct,
            (state, f0),
            (grid.times[1:], grid.steps, F_old[:-1], integrals),
        )
        X_new = _stack(state, X_rest)
        F_new = _stack(f0, F_rest)
        return X_new, F_new, _correction_norm(X_new, X_old)

    X, F, change = jax.lax.fori_loop(
        0, config.n_sweeps, sweep, (X, F, jnp.zeros((), dtype=dtype))
    )

    return SDCResult(
        state=X[-1],
        derivative=F[-1],
        dt_used=dt,
        correction_norm=change,
        converged=jnp.asarray(True),
        newton_iterations=jnp.asarray(0, dtype=jnp.int32),
        newton_residual=jnp.zeros((), dtype=dtype),
        linear_residual=jnp.zeros((), dtype=dtype),
        krylov_stagnated=jnp.asarray(False),
    )
