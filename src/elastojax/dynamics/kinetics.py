"""Robertson chemical kinetics, a classic stiff benchmark.

Three species react as

.. math::

    \\dot{y}_1 &= -k_1 y_1 + k_3 y_2 y_3 \\\\
    \\dot{y}_2 &= k_1 y_1 - k_2 y_2^2 - k_3 y_2 y_3 \\\\
    \\dot{y}_3 &= k_2 y_2^2

with rate constants spanning eleven orders of magnitude. The right-hand
sides sum to zero, so :math:`y_1 + y_2 + y_3` is conserved exactly by the
flow and, being a linear invariant, by every SDC step up to round-off and
solver tolerance.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.config import get_dtype


class Robertson:
    """Right-hand side of the Robertson problem with analytic ``jvp``.

    Args:
        k1: Rate of ``y1 -> y2``.
        k2: Rate of ``2 y2 -> y2 + y3``.
        k3: Rate of ``y2 + y3 -> y1 + y3``.

    Examples:
        ```python
        from elastojax.dynamics import Robertson
        rhs = Robertson()
        x0 = rhs.initial_state()  # [1, 0, 0]
        rhs(0.0, x0)              # [-0.04, 0.04, 0]
        ```
    """

    def __init__(self, k1: float = 0.04, k2: float = 3.0e7, k3: float = 1.0e4) -> None:
        self.k1 = k1
        self.k2 = k2
        self.k3 = k3

    def __call__(self, t: ArrayLike, x: ArrayLike) -> Array:
        y1, y2, y3 = x[0], x[1], x[2]
        r1 = self.k1 * y1
        r2 = self.k2 * y2 * y2
        r3 = self.k3 * y2 * y3
        return jnp.array([-r1 + r3, r1 - r2 - r3, r2])

    def jvp(self, t: ArrayLike, x: ArrayLike, v: ArrayLike) -> Array:
        """Directional derivative ``J(x) v`` of the right-hand side."""
        y2, y3 = x[1], x[2]
        d1 = self.k1 * v[0]
        d2 = 2.0 * self.k2 * y2 * v[1]
        d3 = self.k3 * (v[1] * y3 + y2 * v[2])
        return jnp.array([-d1 + d3, d1 - d2 - d3, d2])

    def ode_size(self) -> int:
        return 3

    def initial_state(self) -> Array:
        return jnp.array([1.0, 0.0, 0.0], dtype=get_dtype())
