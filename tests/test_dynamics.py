"""Tests for the elastojax.dynamics right-hand-side providers."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from elastojax.dynamics import Brusselator, ExpSine, HarmonicOscillator, LinearDecay, Robertson
from elastojax.integrators import RHSProvider


class TestScalarProblems:
    def test_providers_are_rhs_providers(self):
        for rhs in (ExpSine(), LinearDecay(), HarmonicOscillator(), Robertson(), Brusselator(4)):
            assert isinstance(rhs, RHSProvider)

    def test_exp_sine_exact_solves_ode(self):
        rhs = ExpSine()
        t = 0.7
        dxdt = jax.grad(lambda s: rhs.exact(s, 2.0))(t)
        assert float(dxdt) == pytest.approx(float(rhs(t, rhs.exact(t, 2.0))), rel=1e-12)

    def test_linear_decay(self):
        rhs = LinearDecay(rate=3.0, size=2)
        np.testing.assert_allclose(rhs(0.0, jnp.array([1.0, -2.0])), [-3.0, 6.0])
        assert rhs.ode_size() == 2
        assert float(rhs.exact(1.0, 1.0)) == pytest.approx(np.exp(-3.0))

    def test_harmonic_oscillator_exact(self):
        rhs = HarmonicOscillator(omega=2.0)
        x0 = jnp.array([1.0, 0.5])
        np.testing.assert_allclose(rhs.exact(0.0, x0), x0)
        xt = rhs.exact(0.4, x0)
        assert float(rhs.energy(xt)) == pytest.approx(float(rhs.energy(x0)), rel=1e-12)

    def test_harmonic_oscillator_jvp(self):
        rhs = HarmonicOscillator(omega=3.0)
        x = jnp.array([0.3, -0.2])
        v = jnp.array([1.0, 2.0])
        expected = jax.jvp(lambda y: rhs(0.0, y), (x,), (v,))[1]
        np.testing.assert_allclose(rhs.jvp(0.0, x, v), expected)


class TestRobertson:
    def test_initial_state(self):
        rhs = Robertson()
        np.testing.assert_array_equal(rhs.initial_state(), [1.0, 0.0, 0.0])
        assert rhs.ode_size() == 3

    def test_initial_rates(self):
        rhs = Robertson()
        np.testing.assert_allclose(rhs(0.0, rhs.initial_state()), [-0.04, 0.04, 0.0])

    def test_rates_sum_to_zero(self):
        rhs = Robertson()
        x = jnp.array([0.9, 3e-5, 0.1])
        assert float(jnp.sum(rhs(0.0, x))) == pytest.approx(0.0, abs=1e-12)

    def test_jvp_matches_autodiff(self):
        rhs = Robertson()
        x = jnp.array([0.8, 2e-5, 0.2])
        v = jnp.array([0.3, -1.0, 0.5])
        expected = jax.jvp(lambda y: rhs(0.0, y), (x,), (v,))[1]
        np.testing.assert_allclose(rhs.jvp(0.0, x, v), expected, rtol=1e-12)


class TestBrusselator:
    def test_sizes(self):
        rhs = Brusselator(10)
        assert rhs.ode_size() == 20
        assert rhs.initial_state().shape == (20,)
        np.testing.assert_allclose(rhs.grid(), np.arange(1, 11) / 11.0)

    def test_initial_state_interleaved(self):
        rhs = Brusselator(8)
        x0 = rhs.initial_state()
        np.testing.assert_allclose(x0[0::2], 1.0 + np.sin(2.0 * np.pi * np.asarray(rhs.grid())))
        np.testing.assert_allclose(x0[1::2], 3.0)

    def test_uniform_steady_state(self):
        """u = a, v = b / a is an equilibrium matching the boundary values for a = 1."""
        rhs = Brusselator(6)
        x = jnp.tile(jnp.array([1.0, 3.0]), 6)
        np.testing.assert_allclose(rhs(0.0, x), jnp.zeros(12), atol=1e-12)

    def test_diffusion_only(self):
        """With no reaction contribution the v-equation is a discrete Laplacian."""
        rhs = Brusselator(3, a=1.0, b=0.0, alpha=1.0)
        x = jnp.array([1.0, 0.0, 1.0, 1.0, 1.0, 0.0])
        dv = rhs(0.0, x)[1::2]
        h2 = rhs.spacing**2
        u = jnp.array([1.0, 1.0, 1.0])
        v = jnp.array([0.0, 1.0, 0.0])
        expected = jnp.array([1.0, -2.0, 1.0]) / h2 - u * u * v
        np.testing.assert_allclose(dv, expected, rtol=1e-12)

    def test_invalid_size(self):
        with pytest.raises(ValueError, match="n_points"):
            Brusselator(0)
