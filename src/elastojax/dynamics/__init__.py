"""Right-hand-side providers for the SDC integrators.

Every provider is a callable ``f(t, x) -> dx/dt``. Providers may also
expose ``ode_size()`` and an analytic directional derivative
``jvp(t, x, v)`` used by the Newton-Krylov engine.

- :class:`ExpSine`, :class:`LinearDecay`, :class:`HarmonicOscillator` --
  small problems with exact solutions
- :class:`Robertson` -- stiff three-species chemical kinetics
- :class:`Brusselator` -- 1D reaction-diffusion system
"""

from elastojax.dynamics.kinetics import Robertson
from elastojax.dynamics.reaction_diffusion import Brusselator
from elastojax.dynamics.scalar import ExpSine, HarmonicOscillator, LinearDecay

__all__ = [
    "ExpSine",
    "LinearDecay",
    "HarmonicOscillator",
    "Robertson",
    "Brusselator",
]
