"""Matrix-free Newton-Krylov solver for implicit Euler-type node equations.

Every implicit node update of the Newton-Krylov SDC engine has the form

.. math::

    G(y) = y - h \\, F(t, y) - b = 0

with a known right-hand side ``b``. Newton's method solves it with steps

.. math::

    (I - h J) \\, \\delta = -G(y), \\qquad J = \\partial F / \\partial y,

where the linear system is solved by restarted GMRES on the operator
``v -> v - h J v``. Only directional derivatives ``J v`` are needed; the
Jacobian is never formed. They come from the provider's own ``jvp``, from
forward-mode autodiff, or from a one-sided finite difference.

The GMRES here only ever applies the operator. It never transposes it, so
a finite-difference product (not linear in ``v`` as far as JAX can tell)
is as good an operator as an autodiff one.

The Newton iteration runs in a ``lax.while_loop`` and reports its status
instead of raising, so the solver can be traced inside ``jax.jit``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

import jax
import jax.numpy as jnp
from jax import Array

JvpFn = Callable[[Array, Array, Array, Array], Array]

_JVP_METHODS = ("autodiff", "finite_difference")


class NewtonResult(NamedTuple):
    """Outcome of one implicit node solve.

    Attributes:
        root: Final Newton iterate.
        derivative: ``F(t, root)``.
        iterations: Newton iterations performed.
        converged: True when the weighted residual norm is <= 1.0.
        residual: Final weighted residual norm.
        linear_residual: Worst relative GMRES residual over the iterations.
        stagnated: True when any GMRES solve ended above the stagnation
            threshold.
    """

    root: Array
    derivative: Array
    iterations: Array
    converged: Array
    residual: Array
    linear_residual: Array
    stagnated: Array


def make_jvp(
    f: Callable[[Array, Array], Array],
    jvp: Callable[[Array, Array, Array], Array] | None = None,
    method: str = "autodiff",
    fd_epsilon: float = 1.49e-8,
) -> JvpFn:
    """Build the directional derivative used by the Newton steps.

    The returned callable has signature ``jv(t, x, fx, v)`` where ``fx`` is
    ``f(t, x)``, available for free inside the Newton loop and used by the
    finite-difference variant.

    Args:
        f: Right-hand side ``f(t, x)``.
        jvp: Analytic directional derivative ``jvp(t, x, v)``. Takes
            precedence over *method* when given.
        method: ``"autodiff"`` or ``"finite_difference"``.
        fd_epsilon: Relative perturbation size for finite differences.

    Returns:
        Callable computing ``dF/dx(t, x) · v``.

    Raises:
        ValueError: If *method* is not recognized.
    """
    if method not in _JVP_METHODS:
        raise ValueError(
            f"jvp_method must be 'autodiff' or 'finite_difference', got '{method}'"
        )

    if jvp is not None:
        def jv(t, x, fx, v):
            return jvp(t, x, v)
    elif method == "autodiff":
        def jv(t, x, fx, v):
            return jax.jvp(lambda xi: f(t, xi), (x,), (v,))[1]
    else:
        def jv(t, x, fx, v):
            v_norm = jnp.linalg.norm(v)
            safe_norm = jnp.where(v_norm > 0.0, v_norm, 1.0)
            eps = fd_epsilon * (1.0 + jnp.linalg.norm(x)) / safe_norm
            diff = (f(t, x + eps * v) - fx) / eps
            return jnp.where(v_norm > 0.0, diff, jnp.zeros_like(diff))

    return jv


def newton_residual_norm(
    residual: Array,
    iterate: Array,
    rhs: Array,
    abs_tol: float,
    rel_tol: float,
) -> Array:
    """Scaled max-norm of a node-equation residual ``G(y)``.

    Each component is measured against
    ``abs_tol + rel_tol * max(|y_i|, |b_i|)``, so a Newton iterate is
    accepted once every component of ``G`` is within tolerance of the
    larger of the iterate and the known right-hand side ``b``. A result
    <= 1.0 means converged.
    """
    scale = abs_tol + rel_tol * jnp.maximum(jnp.abs(iterate), jnp.abs(rhs))
    return jnp.max(jnp.abs(residual) / scale)


def _gmres(
    matvec: Callable[[Array], Array],
    b: Array,
    tol: float,
    restart: int,
    max_restarts: int,
) -> Array:
    """Restarted GMRES for ``A x = b`` on flat vectors, starting from zero.

    Each cycle builds an Arnoldi basis of size *restart* (Gram-Schmidt
    applied twice) and solves the small Hessenberg least-squares problem.
    Cycles stop once ``|b - A x| <= tol |b|`` or after *max_restarts*.
    """
    n = b.shape[0]
    dtype = b.dtype
    breakdown = 10.0 * n * jnp.finfo(dtype).eps
    target = tol * jnp.linalg.norm(b)

    def cycle(x):
        r = b - matvec(x)
        beta = jnp.linalg.norm(r)
        V = jnp.zeros((restart + 1, n), dtype=dtype)
        V = V.at[0].set(jnp.where(beta > 0.0, r / jnp.where(beta > 0.0, beta, 1.0), 0.0))
        H = jnp.zeros((restart + 1, restart), dtype=dtype)

        def arnoldi(j, basis):
            V, H = basis
            w = matvec(V[j])
            w_scale = jnp.linalg.norm(w)
            # Rows of V past j are still zero.
            h = V @ w
            w = w - h @ V
            again = V @ w
            w = w - again @ V
            h = h + again
            w_norm = jnp.linalg.norm(w)
            independent = w_norm > breakdown * w_scale
            V = V.at[j + 1].set(
                jnp.where(independent, w / jnp.where(independent, w_norm, 1.0), 0.0)
            )
            H = H.at[:, j].set(h.at[j + 1].set(jnp.where(independent, w_norm, 0.0)))
            return V, H

        V, H = jax.lax.fori_loop(0, restart, arnoldi, (V, H))
        e1 = jnp.zeros(restart + 1, dtype=dtype).at[0].set(beta)
        y = jnp.linalg.lstsq(H, e1)[0]
        return x + y @ V[:restart]

    def cond_fn(carry):
        _x, res, count = carry
        return (res > target) & (count < max_restarts)

    def body_fn(carry):
        x, _res, count = carry
        x = cycle(x)
        return x, jnp.linalg.norm(b - matvec(x)), count + 1

    x, _, _ = jax.lax.while_loop(
        cond_fn,
        body_fn,
        (jnp.zeros_like(b), jnp.linalg.norm(b), jnp.asarray(0, dtype=jnp.int32)),
    )
    return x


def solve_implicit_node(
    f: Callable[[Array, Array], Array],
    jv: JvpFn,
    t: Array,
    h: Array,
    b: Array,
    guess: Array,
    abs_tol: float,
    rel_tol: float,
    max_iterations: int,
    krylov_tol: float,
    krylov_restart: int,
    krylov_max_restarts: int,
    max_linear_residual: float,
) -> NewtonResult:
    """Solve ``y - h f(t, y) = b`` by Newton-Krylov iteration.

    Args:
        f: Right-hand side ``f(t, x)``.
        jv: Directional derivative from :func:`make_jvp`.
        t: Time at which ``f`` is evaluated (the node's right end).
        h: Implicit step size.
        b: Known right-hand side of the node equation.
        guess: Initial iterate.
        abs_tol: Absolute Newton residual tolerance.
        rel_tol: Relative Newton residual tolerance.
        max_iterations: Newton iteration cap.
        krylov_tol: Relative GMRES tolerance.
        krylov_restart: GMRES subspace size.
        krylov_max_restarts: GMRES restart cap.
        max_linear_residual: Stagnation threshold for the relative GMRES
            residual.

    Returns:
        NewtonResult: Root estimate and convergence diagnostics. The
        iteration stops early once converged; a NaN residual also stops it
        and is reported as not converged.
    """

    shape = jnp.shape(guess)

    def residual(y, fy):
        return y - h * fy - b

    fy0 = f(t, guess)
    g0 = residual(guess, fy0)
    norm0 = newton_residual_norm(g0, guess, b, abs_tol, rel_tol)

    def cond_fn(carry):
        _y, _fy, _g, norm, iteration, _lin, _stag = carry
        return (norm > 1.0) & (iteration < max_iterations)

    def body_fn(carry):
        y, fy, g, _norm, iteration, lin_worst, stagnated = carry

        def matvec(v):
            v = jnp.reshape(v, shape)
            return jnp.reshape(v - h * jv(t, y, fy, v), (-1,))

        g_flat = jnp.reshape(g, (-1,))
        delta = _gmres(matvec, -g_flat, krylov_tol, krylov_restart, krylov_max_restarts)
        g_norm = jnp.linalg.norm(g_flat)
        lin = jnp.linalg.norm(matvec(delta) + g_flat) / jnp.where(g_norm > 0.0, g_norm, 1.0)

        y_new = y + jnp.reshape(delta, shape)
        fy_new = f(t, y_new)
        g_new = residual(y_new, fy_new)
        norm_new = newton_residual_norm(g_new, y_new, b, abs_tol, rel_tol)

        return (
            y_new,
            fy_new,
            g_new,
            norm_new,
            iteration + 1,
            jnp.maximum(lin_worst, lin),
            stagnated | (lin > max_linear_residual),
        )

    init_carry = (
        guess,
        fy0,
        g0,
        norm0,
        jnp.asarray(0, dtype=jnp.int32),
        jnp.zeros((), dtype=norm0.dtype),
        jnp.asarray(False),
    )
    y, fy, _g, norm, iterations, lin_worst, stagnated = jax.lax.while_loop(
        cond_fn, body_fn, init_carry
    )

    return NewtonResult(
        root=y,
        derivative=fy,
        iterations=iterations,
        converged=norm <= 1.0,
        residual=norm,
        linear_residual=lin_worst,
        stagnated=stagnated,
    )
