"""Tests for the elastojax.time_integrator module.

The test structure is a closed ring of particles joined to their
neighbours by springs, stretched radially and left to relax.
"""

import jax.numpy as jnp
import numpy as np
import pytest

from elastojax.errors import SDCConfigurationError
from elastojax.integrators import NewtonKrylovConfig, SDCConfig, euler_step
from elastojax.particles import ElasticBoundary
from elastojax.time_integrator import (
    EulerIntegrator,
    NewtonKrylovSDCIntegrator,
    SDCIntegrator,
    TimeIntegrator,
    create_time_integrator,
)


def _ring(n_particles=8, stretch=1.2):
    theta = 2.0 * np.pi * np.arange(n_particles) / n_particles
    positions = np.stack([np.cos(theta), np.sin(theta), np.zeros(n_particles)], axis=1)
    col_ptr = np.arange(0, 2 * n_particles + 1, 2)
    col_idx = np.stack(
        [(np.arange(n_particles) - 1) % n_particles, (np.arange(n_particles) + 1) % n_particles], axis=1
    ).reshape(-1)
    strength = np.ones(2 * n_particles)
    boundary = ElasticBoundary(positions, col_ptr, col_idx, strength)
    boundary.positions = boundary.positions * stretch
    return boundary


def _mean_radius(boundary):
    return float(jnp.mean(jnp.linalg.norm(boundary.positions, axis=1)))


class _Structure:
    """Minimal structure holding a scalar decay problem."""

    def __init__(self):
        self.time = 0.0
        self.positions = jnp.array([1.0, 2.0])
        self.velocities = jnp.zeros(2)

    def rhs(self, t, x):
        return -x


# ──────────────────────────────────────────────
# Adapter contract
# ──────────────────────────────────────────────

class TestAdapter:
    def test_advance_updates_structure(self):
        boundary = _ring()
        integrator = SDCIntegrator(boundary, SDCConfig(n_nodes=3))
        integrator.advance(0.01)
        assert boundary.time == pytest.approx(0.01)
        assert boundary.positions.shape == (8, 3)
        expected = boundary.rhs(0.01, boundary.positions.reshape(-1)).reshape(8, 3)
        np.testing.assert_allclose(boundary.velocities, expected, atol=1e-12)

    def test_integrate_advances_time(self):
        boundary = _ring()
        SDCIntegrator(boundary, SDCConfig(n_nodes=3)).integrate(0.01, 5)
        assert boundary.time == pytest.approx(0.05)

    def test_ring_relaxes(self):
        boundary = _ring()
        energies = [float(boundary.springs.energy(boundary.positions))]
        integrator = SDCIntegrator(boundary)
        for _ in range(20):
            integrator.advance(0.05)
            energies.append(float(boundary.springs.energy(boundary.positions)))
        assert all(b < a for a, b in zip(energies, energies[1:]))
        assert _mean_radius(boundary) < 1.2

    def test_ring_keeps_symmetry(self):
        boundary = _ring()
        SDCIntegrator(boundary).integrate(0.05, 10)
        radii = jnp.linalg.norm(boundary.positions, axis=1)
        np.testing.assert_allclose(radii, radii[0], rtol=1e-10)
        np.testing.assert_allclose(boundary.positions[:, 2], 0.0, atol=1e-14)

    def test_euler_matches_euler_step(self):
        structure = _Structure()
        EulerIntegrator(structure).integrate(0.1, 2)
        x = jnp.array([1.0, 2.0])
        for i in range(2):
            x = euler_step(lambda t, y: -y, 0.1 * i, x, 0.1).state
        np.testing.assert_allclose(structure.positions, x, rtol=1e-14)
        np.testing.assert_allclose(structure.velocities, -x, rtol=1e-14)

    def test_newton_krylov_integrator(self):
        boundary = _ring()
        integrator = NewtonKrylovSDCIntegrator(boundary, SDCConfig(n_nodes=3), NewtonKrylovConfig())
        integrator.integrate(0.5, 4)
        assert boundary.time == pytest.approx(2.0)
        assert _mean_radius(boundary) < 1.2

    def test_implicit_and_explicit_agree(self):
        explicit = _ring()
        implicit = _ring()
        SDCIntegrator(explicit).integrate(0.02, 5)
        NewtonKrylovSDCIntegrator(implicit).integrate(0.02, 5)
        np.testing.assert_allclose(implicit.positions, explicit.positions, atol=1e-8)


# ──────────────────────────────────────────────
# Cached derivative
# ──────────────────────────────────────────────

class TestDerivativeCache:
    def test_derivative_reused_between_steps(self):
        structure = _Structure()
        integrator = EulerIntegrator(structure)
        integrator.advance(0.1)
        np.testing.assert_array_equal(integrator._derivative, structure.velocities)

        x = structure.positions
        integrator._derivative = jnp.array([10.0, 10.0])
        integrator.advance(0.1)
        np.testing.assert_allclose(structure.positions, x + 1.0, rtol=1e-14)

    def test_external_edit_is_detected(self):
        edited = _ring()
        fresh = _ring()
        integrator = SDCIntegrator(edited, SDCConfig(n_nodes=3))
        integrator.advance(0.01)

        edited.positions = fresh.positions
        edited.time = 0.0
        integrator.advance(0.01)

        SDCIntegrator(fresh, SDCConfig(n_nodes=3)).advance(0.01)
        np.testing.assert_allclose(edited.positions, fresh.positions, rtol=1e-14)

    def test_reset(self):
        boundary = _ring()
        integrator = SDCIntegrator(boundary, SDCConfig(n_nodes=3))
        integrator.advance(0.01)
        integrator.reset()
        assert integrator._derivative is None
        integrator.advance(0.01)
        assert boundary.time == pytest.approx(0.02)


# ──────────────────────────────────────────────
# Factory and validation
# ──────────────────────────────────────────────

class TestFactory:
    @pytest.mark.parametrize(
        "method,cls",
        [("euler", EulerIntegrator), ("sdc", SDCIntegrator), ("newton_krylov_sdc", NewtonKrylovSDCIntegrator)],
    )
    def test_select_by_name(self, method, cls):
        integrator = create_time_integrator(_ring(), method)
        assert isinstance(integrator, cls)
        assert isinstance(integrator, TimeIntegrator)

    def test_forwards_config(self):
        integrator = create_time_integrator(_ring(), "sdc", config=SDCConfig(n_nodes=3))
        assert integrator.engine.config.n_nodes == 3

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown time integrator"):
            create_time_integrator(_ring(), "rk4")

    def test_missing_capabilities(self):
        class NoRHS:
            time = 0.0
            positions = jnp.zeros(3)
            velocities = jnp.zeros(3)

        with pytest.raises(TypeError, match="rhs"):
            SDCIntegrator(NoRHS())

    def test_ode_size_mismatch(self):
        boundary = _ring()
        boundary.positions = boundary.positions[:4]
        with pytest.raises(SDCConfigurationError, match="ode_size"):
            SDCIntegrator(boundary)
