"""Forward Euler base stepper.

The first-order explicit Euler method

.. math::

    x_{n+1} = x_n + \\Delta t \\, f(t_n, x_n)

is the building block of the SDC engines: it produces the provisional
solution on the quadrature grid (prediction) and is the increment of every
explicit correction sweep. It is also used on its own by
:class:`~elastojax.time_integrator.EulerIntegrator`.

The local truncation error is :math:`O(h^2)` and the global error is
:math:`O(h)`.
"""

from __future__ import annotations

from collections.abc import Callable

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.config import get_dtype
from elastojax.integrators._types import StepResult


def forward_euler(state: ArrayLike, derivative: ArrayLike, dt: ArrayLike) -> Array:
    """Pure forward Euler update ``state + dt * derivative``.

    The derivative must already be evaluated at ``(t, state)``; no
    right-hand-side evaluation happens here.

    Args:
        state: Current state vector.
        derivative: ``f(t, state)``.
        dt: Timestep.

    Returns:
        jax.Array: State at ``t + dt``.
    """
    return state + dt * derivative


def euler_step(
    dynamics: Callable[[ArrayLike, ArrayLike], Array],
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    derivative: ArrayLike | None = None,
    control: Callable[[ArrayLike, ArrayLike], Array] | None = None,
) -> StepResult:
    """Perform a single forward Euler integration step.

    Compatible with ``jax.jit`` and ``jax.vmap``.

    Args:
        dynamics: ODE right-hand side function ``f(t, x) -> dx/dt``.
        t: Current time.
        state: Current state vector.
        dt: Timestep to take. May be negative for backward integration.
        derivative: ``f(t, state)`` if already known (e.g. the
            ``derivative`` of the previous step's result). Evaluated when
            ``None``.
        control: Optional additive control function ``u(t, x) -> force``.

    Returns:
        StepResult: Named tuple with the new state, the right-hand side at
        the new state and the timestep used.

    Examples:
        ```python
        import jax.numpy as jnp
        from elastojax.integrators import euler_step
        def decay(t, x):
            return -x
        result = euler_step(decay, 0.0, jnp.array([1.0]), 0.1)
        result.state  # [0.9]
        ```
    """
    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = jnp.asarray(state, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)

    def f(ti, xi):
        dx = dynamics(ti, xi)
        if control is not None:
            dx = dx + control(ti, xi)
        return dx

    if derivative is None:
        derivative = f(t, state)
    else:
        derivative = jnp.asarray(derivative, dtype=dtype)

    state_new = forward_euler(state, derivative, dt)

    return StepResult(
        state=state_new,
        derivative=f(t + dt, state_new),
        dt_used=dt,
    )
