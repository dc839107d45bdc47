"""Hookean spring networks between particles.

A spring joining particles ``a`` and ``b`` with stiffness ``k`` and resting
length ``L0`` exerts

.. math::

    \\mathbf{F}_a = k \\, (L - L_0) \\, \\frac{\\mathbf{x}_b - \\mathbf{x}_a}{L},
    \\qquad \\mathbf{F}_b = -\\mathbf{F}_a,

with ``L = |x_b - x_a|``. A spring of zero current length has no direction
and contributes zero force. Per-spring forces are accumulated onto the
particles with a scatter-add, so the evaluation is a single vectorized
kernel compatible with ``jax.jit`` and forward-mode differentiation.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from elastojax.config import get_dtype

logger = logging.getLogger(__name__)


class SpringNetwork(NamedTuple):
    """Immutable list of springs.

    Attributes:
        a_idx: First particle index of each spring.
        b_idx: Second particle index of each spring.
        stiffness: Spring constants.
        resting_length: Resting lengths.
    """

    a_idx: Array
    b_idx: Array
    stiffness: Array
    resting_length: Array

    @property
    def n_springs(self) -> int:
        return int(self.a_idx.shape[0])

    @classmethod
    def from_csr(
        cls,
        positions: ArrayLike,
        col_ptr: ArrayLike,
        col_idx: ArrayLike,
        strength: ArrayLike,
    ) -> SpringNetwork:
        """Build springs from compressed-sparse-row connectivity.

        Row ``p`` lists the neighbours ``col_idx[col_ptr[p]:col_ptr[p + 1]]``
        of particle ``p``, with matching stiffnesses in *strength*. A pair
        listed twice (in either order) yields one spring; the first listing
        sets its stiffness. Resting lengths are the distances in
        *positions*.

        Args:
            positions: ``(n, 3)`` particle positions.
            col_ptr: Row pointers, length ``n + 1``.
            col_idx: Neighbour indices.
            strength: Stiffness of each CSR entry.

        Returns:
            SpringNetwork: The deduplicated springs.

        Raises:
            ValueError: If the CSR arrays are inconsistent.
        """
        positions = np.asarray(positions, dtype=np.float64)
        col_ptr = np.asarray(col_ptr, dtype=np.int64)
        col_idx = np.asarray(col_idx, dtype=np.int64)
        strength = np.asarray(strength, dtype=np.float64)

        n = positions.shape[0]
        if col_ptr.shape[0] != n + 1:
            raise ValueError(f"col_ptr must have {n + 1} entries, got {col_ptr.shape[0]}")
        if col_idx.shape != strength.shape or col_ptr[-1] != col_idx.shape[0]:
            raise ValueError("col_idx and strength must both have col_ptr[-1] entries")
        if col_idx.size and (col_idx.min() < 0 or col_idx.max() >= n):
            raise ValueError(f"col_idx entries must lie in [0, {n})")

        seen = set()
        a_idx, b_idx, stiffness = [], [], []
        for p in range(n):
            for i in range(col_ptr[p], col_ptr[p + 1]):
                q = int(col_idx[i])
                key = (min(p, q), max(p, q))
                if key in seen:
                    continue
                seen.add(key)
                a_idx.append(p)
                b_idx.append(q)
                stiffness.append(strength[i])

        a_idx = np.asarray(a_idx, dtype=np.int32)
        b_idx = np.asarray(b_idx, dtype=np.int32)
        resting = np.linalg.norm(positions[b_idx] - positions[a_idx], axis=-1) if a_idx.size else np.zeros(0)

        logger.debug("Built %d springs from %d CSR entries", a_idx.size, col_idx.size)

        dtype = get_dtype()
        return cls(
            a_idx=jnp.asarray(a_idx),
            b_idx=jnp.asarray(b_idx),
            stiffness=jnp.asarray(np.asarray(stiffness, dtype=np.float64), dtype=dtype),
            resting_length=jnp.asarray(resting, dtype=dtype),
        )

    def forces(self, positions: ArrayLike) -> Array:
        """Total spring force on every particle.

        Args:
            positions: ``(n, 3)`` particle positions.

        Returns:
            jax.Array: ``(n, 3)`` forces.
        """
        positions = jnp.asarray(positions)
        d = positions[self.b_idx] - positions[self.a_idx]
        length_sq = jnp.sum(d * d, axis=-1)
        nonzero = length_sq > 0.0
        length = jnp.sqrt(jnp.where(nonzero, length_sq, 1.0))
        tension = self.stiffness * (length - self.resting_length)
        f = jnp.where(nonzero[:, None], (tension / length)[:, None] * d, 0.0)
        return jnp.zeros_like(positions).at[self.a_idx].add(f).at[self.b_idx].add(-f)

    def energy(self, positions: ArrayLike) -> Array:
        """Elastic energy ``sum k (L - L0)^2 / 2``."""
        positions = jnp.asarray(positions)
        d = positions[self.b_idx] - positions[self.a_idx]
        length = jnp.linalg.norm(d, axis=-1)
        return 0.5 * jnp.sum(self.stiffness * (length - self.resting_length) ** 2)
