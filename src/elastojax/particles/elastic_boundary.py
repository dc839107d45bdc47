"""Elastic boundary: particles joined by a spring network.

The boundary is the structure advanced by the time integrators. Its
right-hand side is the free-draining velocity ``u = mobility * F_spring(x)``
of every particle, flattened to a ``3 n`` state vector, so that the
positions evolve by ``dx/dt = u``.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.particles.particle_system import ParticleSystem
from elastojax.particles.springs import SpringNetwork


class ElasticBoundary(ParticleSystem):
    """Particle system with Hookean springs built from CSR connectivity.

    Resting lengths are taken from the initial *positions*, so the
    initial configuration is the stress-free reference.

    Args:
        positions: ``(n, 3)`` initial positions.
        col_ptr: CSR row pointers (length ``n + 1``).
        col_idx: CSR neighbour indices.
        strength: Stiffness of each CSR entry.
        mobility: Scalar mobility relating force to velocity.

    Examples:
        ```python
        import jax.numpy as jnp
        from elastojax.particles import ElasticBoundary
        positions = jnp.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])
        boundary = ElasticBoundary(positions, [0, 1, 1], [1], [10.0])
        boundary.positions = jnp.array([[0.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        boundary.compute_forces()
        boundary.forces  # [[10, 0, 0], [-10, 0, 0]]
        ```
    """

    def __init__(
        self,
        positions: ArrayLike,
        col_ptr: ArrayLike,
        col_idx: ArrayLike,
        strength: ArrayLike,
        mobility: float = 1.0,
    ) -> None:
        super().__init__(len(positions), positions)
        self.springs = SpringNetwork.from_csr(self.positions, col_ptr, col_idx, strength)
        self.mobility = mobility

    def ode_size(self) -> int:
        return self.data_size()

    def compute_forces(self) -> Array:
        """Evaluate the spring forces at the current positions and store them."""
        self.forces = self.springs.forces(self.positions)
        return self.forces

    def rhs(self, t: ArrayLike, x: ArrayLike) -> Array:
        """Particle velocities ``mobility * F_spring(x)``, flattened."""
        forces = self.springs.forces(jnp.reshape(x, (self.n_particles, 3)))
        return (self.mobility * forces).reshape(-1)

    __call__ = rhs
