"""Exception types raised by the SDC engines and the time-integrator adapter.

Jitted step kernels never raise; they report convergence and stagnation
through fields of :class:`~elastojax.integrators.SDCResult`.  The eager
engine objects and the adapter inspect those fields and raise one of the
exceptions below, so callers implementing their own step-size control
around ``advance`` can tell the failure modes apart.
"""

from __future__ import annotations


class SDCError(Exception):
    """Base class for all elastojax integration failures."""


class SDCConfigurationError(SDCError, ValueError):
    """Raised when quadrature or engine parameters are inconsistent.

    Detected at construction time, e.g. requesting more correction sweeps
    than the quadrature grid supports.
    """


class NonFiniteStateError(SDCError, FloatingPointError):
    """Raised when a step produces NaN or Inf in the state or right-hand side."""


class NewtonConvergenceError(SDCError, RuntimeError):
    """Raised when a Newton solve misses its tolerance within the iteration cap.

    Attributes:
        iterations: Newton iterations performed at the worst node.
        residual: Final normalized residual (converged when <= 1.0).
    """

    def __init__(self, message: str, iterations: int = 0, residual: float = float("nan")):
        super().__init__(message)
        self.iterations = iterations
        self.residual = residual


class KrylovStagnationError(SDCError, RuntimeError):
    """Raised as the cause of a Newton failure when the linear solve stagnated.

    Attributes:
        linear_residual: Worst relative residual of the matrix-free solve.
    """

    def __init__(self, message: str, linear_residual: float = float("nan")):
        super().__init__(message)
        self.linear_residual = linear_residual
