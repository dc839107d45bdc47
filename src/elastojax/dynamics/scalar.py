"""Small non-stiff test problems with known solutions.

Each provider is a callable ``f(t, x) -> dx/dt`` exposing ``ode_size()``
and an ``exact(t, x0)`` reference solution (from ``t = 0``), which makes
them the standard targets of convergence-order tests.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike


class ExpSine:
    """Scalar linear problem ``dx/dt = x cos(t)``.

    Solution ``x(t) = x0 exp(sin t)``. Works element-wise for any number of
    independent components.

    Args:
        size: Number of independent components.
    """

    def __init__(self, size: int = 1) -> None:
        self.size = size

    def __call__(self, t: ArrayLike, x: ArrayLike) -> Array:
        return x * jnp.cos(t)

    def jvp(self, t: ArrayLike, x: ArrayLike, v: ArrayLike) -> Array:
        return v * jnp.cos(t)

    def ode_size(self) -> int:
        return self.size

    def exact(self, t: ArrayLike, x0: ArrayLike) -> Array:
        return x0 * jnp.exp(jnp.sin(t))


class LinearDecay:
    """Linear decay ``dx/dt = -rate * x``.

    With a large ``rate`` this is the simplest stiff problem: forward Euler
    is stable only for ``dt < 2 / rate``.
    """

    def __init__(self, rate: float = 1.0, size: int = 1) -> None:
        self.rate = rate
        self.size = size

    def __call__(self, t: ArrayLike, x: ArrayLike) -> Array:
        return -self.rate * x

    def ode_size(self) -> int:
        return self.size

    def exact(self, t: ArrayLike, x0: ArrayLike) -> Array:
        return x0 * jnp.exp(-self.rate * t)


class HarmonicOscillator:
    """Undamped oscillator ``x'' = -omega^2 x`` as a first-order system.

    State is ``[x, x']``. The energy ``omega^2 x^2 + x'^2`` is conserved by
    the exact flow.

    Args:
        omega: Angular frequency [rad/s].
    """

    def __init__(self, omega: float = 1.0) -> None:
        self.omega = omega

    def __call__(self, t: ArrayLike, x: ArrayLike) -> Array:
        return jnp.array([x[1], -self.omega**2 * x[0]])

    def jvp(self, t: ArrayLike, x: ArrayLike, v: ArrayLike) -> Array:
        return jnp.array([v[1], -self.omega**2 * v[0]])

    def ode_size(self) -> int:
        return 2

    def energy(self, x: ArrayLike) -> Array:
        return self.omega**2 * x[0] ** 2 + x[1] ** 2

    def exact(self, t: ArrayLike, x0: ArrayLike) -> Array:
        c = jnp.cos(self.omega * t)
        s = jnp.sin(self.omega * t)
        return jnp.array(
            [
                x0[0] * c + x0[1] * s / self.omega,
                -x0[0] * self.omega * s + x0[1] * c,
            ]
        )
