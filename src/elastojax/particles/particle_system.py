"""Mutable particle storage shared by the immersed structures.

A :class:`ParticleSystem` owns the time and the ``(n, 3)`` position,
velocity and force arrays of ``n`` particles. The arrays are immutable
JAX arrays; "mutation" means rebinding the attributes, which is what the
time integrators do after every step.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from elastojax.config import get_dtype


class ParticleSystem:
    """Time, positions, velocities and forces of ``n`` particles.

    Args:
        n_particles: Number of particles.
        positions: Initial ``(n, 3)`` positions. Zeros if ``None``.

    Raises:
        ValueError: If *positions* does not have shape ``(n_particles, 3)``.
    """

    def __init__(self, n_particles: int, positions: ArrayLike | None = None) -> None:
        dtype = get_dtype()
        self.n_particles = n_particles
        self.time = 0.0
        if positions is None:
            positions = jnp.zeros((n_particles, 3), dtype=dtype)
        positions = jnp.asarray(positions, dtype=dtype)
        if positions.shape != (n_particles, 3):
            raise ValueError(
                f"positions must have shape ({n_particles}, 3), got {positions.shape}"
            )
        self.positions = positions
        self.velocities = jnp.zeros_like(positions)
        self.forces = jnp.zeros_like(positions)

    def data_size(self) -> int:
        """Number of scalar entries of each per-particle array (``3 n``)."""
        return 3 * self.n_particles

    def clear_time(self) -> None:
        self.time = 0.0

    def clear_forces(self) -> None:
        self.forces = jnp.zeros_like(self.positions)

    def clear_velocities(self) -> None:
        self.velocities = jnp.zeros_like(self.positions)

    def domain(self) -> tuple[Array, Array]:
        """Centre and half-extent of a cube enclosing all particles.

        The centre is the particle centroid rounded to the nearest integer
        coordinate; the half-extent is the largest distance along any axis
        from that centre to a particle, padded by a relative ``1e-6``.

        Returns:
            tuple: ``(center, extent)``, both of shape ``(3,)``.
        """
        center = jnp.floor(jnp.mean(self.positions, axis=0) + 0.5)
        upper = jnp.max(self.positions, axis=0) - center
        lower = center - jnp.min(self.positions, axis=0)
        radius = jnp.maximum(jnp.max(upper), jnp.max(lower))
        radius = jnp.maximum(radius, 0.0)
        return center, jnp.full((3,), radius * 1.000001)
