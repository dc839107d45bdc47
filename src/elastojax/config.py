"""Working precision of elastojax and the solver tolerances tied to it.

Every step function casts its time, state and timestep to the float type
returned by :func:`get_dtype` (``jnp.float32`` unless changed). Selecting
``jnp.float64`` with :func:`set_dtype` also turns on JAX's 64-bit mode.

The dtype is read while a step function is traced, so it is frozen into
each compiled program. Engines built with
:class:`~elastojax.integrators.ExplicitSDC` or
:class:`~elastojax.integrators.NewtonKrylovSDC` compile on their first
step; select the precision before that.

Newton and Krylov tolerances that a
:class:`~elastojax.integrators.NewtonKrylovConfig` leaves as ``None`` are
taken from :func:`get_solver_tolerance`. Asking a float32 solve for a
1e-10 residual would only exhaust the iteration cap, so the default
follows the working precision.
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp

logger = logging.getLogger(__name__)

# Default Newton/Krylov tolerance for each supported working precision.
_SOLVER_TOLERANCES = {
    jnp.float64: 1e-10,
    jnp.float32: 1e-5,
    jnp.float16: 1e-2,
    jnp.bfloat16: 1e-2,
}

_dtype = jnp.float32


def set_dtype(dtype) -> None:
    """Select the working float type of all step functions.

    Args:
        dtype: ``jnp.float64``, ``jnp.float32``, ``jnp.float16`` or
            ``jnp.bfloat16``. ``jnp.float64`` enables ``jax_enable_x64``.

    Raises:
        ValueError: If *dtype* is not one of the supported float types.
    """
    global _dtype
    if dtype not in _SOLVER_TOLERANCES:
        supported = ", ".join(f"jnp.{jnp.dtype(d).name}" for d in _SOLVER_TOLERANCES)
        raise ValueError(f"Unsupported dtype {dtype!r}. Must be one of: {supported}")
    if dtype == jnp.float64:
        jax.config.update("jax_enable_x64", True)
    _dtype = dtype
    logger.debug("Working precision set to %s", jnp.dtype(dtype).name)


def get_dtype():
    """Return the working float type (``jnp.float32`` by default)."""
    return _dtype


def get_solver_tolerance() -> float:
    """Return the default Newton and Krylov tolerance for the working dtype.

    ``float64`` gives 1e-10, ``float32`` gives 1e-5, and the half-precision
    types give 1e-2. Used as the absolute and relative Newton tolerance and
    as the relative GMRES tolerance when a solver configuration leaves
    them unset.
    """
    return _SOLVER_TOLERANCES[_dtype]
