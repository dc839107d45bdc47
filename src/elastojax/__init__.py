"""
elastojax is a Spectral Deferred Correction time-stepping library for immersed elastic structures implemented in JAX.
"""

from .config import set_dtype, get_dtype, get_solver_tolerance

from .errors import (
    SDCError,
    SDCConfigurationError,
    NonFiniteStateError,
    NewtonConvergenceError,
    KrylovStagnationError,
)

from .integrators import (
    NodeKind,
    SDCConfig,
    NewtonKrylovConfig,
    SDCResult,
    StepResult,
    spectral_quadrature,
    euler_step,
    explicit_sdc_step,
    newton_krylov_sdc_step,
    ExplicitSDC,
    NewtonKrylovSDC,
)

from .particles import ParticleSystem, SpringNetwork, ElasticBoundary

from .time_integrator import (
    TimeIntegrator,
    EulerIntegrator,
    SDCIntegrator,
    NewtonKrylovSDCIntegrator,
    create_time_integrator,
)
