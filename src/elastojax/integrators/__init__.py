"""Spectral Deferred Correction time integrators.

Provides a forward Euler base stepper and explicit and implicit
(Newton-Krylov) SDC engines, all implemented in JAX for compatibility with
``jax.jit`` and ``jax.vmap``.

Available step functions:

- :func:`euler_step` -- forward Euler (first order)
- :func:`explicit_sdc_step` -- explicit SDC, order ``min(K + 1, p)``
- :func:`newton_krylov_sdc_step` -- implicit SDC with Newton-Krylov node
  solves, for stiff right-hand sides

All step functions share a common interface::

    result = step_fn(dynamics, t, state, dt, derivative=f0)

where ``dynamics(t, x) -> dx`` defines the ODE right-hand side, and the
result carries the new state together with the right-hand side at the new
state for reuse by the next step.

:class:`ExplicitSDC` and :class:`NewtonKrylovSDC` wrap the SDC step
functions in engine objects that validate their configuration once and
raise :mod:`elastojax.errors` exceptions on numerical failure.
"""

from elastojax.integrators._types import (
    NewtonKrylovConfig,
    RHSProvider,
    SDCConfig,
    SDCResult,
    StepResult,
)
from elastojax.integrators.engines import ExplicitSDC, NewtonKrylovSDC
from elastojax.integrators.euler import euler_step, forward_euler
from elastojax.integrators.newton_krylov import newton_krylov_sdc_step
from elastojax.integrators.quadrature import (
    NodeKind,
    SpectralQuadrature,
    spectral_nodes,
    spectral_quadrature,
)
from elastojax.integrators.sdc import explicit_sdc_step

__all__ = [
    "NewtonKrylovConfig",
    "RHSProvider",
    "SDCConfig",
    "SDCResult",
    "StepResult",
    "NodeKind",
    "SpectralQuadrature",
    "spectral_nodes",
    "spectral_quadrature",
    "forward_euler",
    "euler_step",
    "explicit_sdc_step",
    "newton_krylov_sdc_step",
    "ExplicitSDC",
    "NewtonKrylovSDC",
]
