"""One-dimensional Brusselator reaction-diffusion system.

.. math::

    u_t &= a + u^2 v - (b + 1) u + \\alpha u_{xx} \\\\
    v_t &= b u - u^2 v + \\alpha v_{xx}

on ``x in (0, 1)`` with Dirichlet boundaries ``u = a``, ``v = b`` at both
ends. The interval is discretized by ``n_points`` interior points with the
second-order central difference. The state interleaves the two species,
``[u_0, v_0, u_1, v_1, ...]``, so ``ode_size() == 2 * n_points``.

The diffusion term becomes stiff as ``n_points`` grows (eigenvalues of
order ``4 alpha (n_points + 1)^2``).
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.config import get_dtype


class Brusselator:
    """Semi-discrete Brusselator right-hand side.

    Args:
        n_points: Number of interior grid points.
        a: Feed rate (and boundary value of ``u``).
        b: Reaction rate (and boundary value of ``v``).
        alpha: Diffusion coefficient.

    Raises:
        ValueError: If ``n_points < 1``.
    """

    def __init__(self, n_points: int, a: float = 1.0, b: float = 3.0, alpha: float = 1.0 / 50.0) -> None:
        if n_points < 1:
            raise ValueError(f"n_points must be >= 1, got {n_points}")
        self.n_points = n_points
        self.a = a
        self.b = b
        self.alpha = alpha

    @property
    def spacing(self) -> float:
        return 1.0 / (self.n_points + 1)

    def grid(self) -> Array:
        """Interior grid point coordinates."""
        return jnp.arange(1, self.n_points + 1, dtype=get_dtype()) * self.spacing

    def ode_size(self) -> int:
        return 2 * self.n_points

    def initial_state(self) -> Array:
        """``u = 1 + sin(2 pi x)``, ``v = 3``, interleaved."""
        x = self.grid()
        u = 1.0 + jnp.sin(2.0 * jnp.pi * x)
        v = jnp.full_like(x, 3.0)
        return jnp.stack([u, v], axis=1).reshape(-1)

    def _laplacian(self, w: Array, boundary: float) -> Array:
        padded = jnp.pad(w, 1, constant_values=boundary)
        return (padded[:-2] - 2.0 * w + padded[2:]) / self.spacing**2

    def __call__(self, t: ArrayLike, x: ArrayLike) -> Array:
        fields = jnp.reshape(x, (self.n_points, 2))
        u = fields[:, 0]
        v = fields[:, 1]
        uuv = u * u * v
        du = self.a + uuv - (self.b + 1.0) * u + self.alpha * self._laplacian(u, self.a)
        dv = self.b * u - uuv + self.alpha * self._laplacian(v, self.b)
        return jnp.stack([du, dv], axis=1).reshape(-1)
