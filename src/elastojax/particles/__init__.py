"""Particle storage and elastic structures advanced by the time integrators."""

from elastojax.particles.elastic_boundary import ElasticBoundary
from elastojax.particles.particle_system import ParticleSystem
from elastojax.particles.springs import SpringNetwork

__all__ = [
    "ParticleSystem",
    "SpringNetwork",
    "ElasticBoundary",
]
