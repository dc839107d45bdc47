# /// script
# requires-python = ">=3.11"
# dependencies = ["typer>=0.9.0", "elastojax"]
#
# [tool.uv.sources]
# elastojax = { path = ".." }
# ///
"""Convergence study of the explicit and Newton-Krylov SDC engines.

Runs three problems:

1. ``dx/dt = x cos(t)`` from ``x(0) = 1`` with a sequence of halved
   timesteps, reporting the error against ``exp(sin t)`` and the observed
   order of every sweep count ``K = 0 .. p - 1``.
2. Robertson kinetics, stepped with the Newton-Krylov engine, reporting the
   drift of the conserved total concentration.
3. The Brusselator, stepped with the explicit engine, reporting the range
   of both species.

Requires elastojax to be installed (``uv pip install -e .`` from the repo root).

Usage:
    uv run examples/sdc_convergence.py [OPTIONS]

Examples:
    # Default: 5 Clenshaw-Curtis nodes, one sub-interval
    uv run examples/sdc_convergence.py

    # Gauss-Lobatto nodes on two sub-intervals
    uv run examples/sdc_convergence.py --nodes 4 --subintervals 2 --kind gauss_lobatto
"""

import enum
import math
import time
from typing import Annotated

import jax.numpy as jnp
import typer

from elastojax import set_dtype
from elastojax.dynamics import Brusselator, ExpSine, Robertson
from elastojax.integrators import ExplicitSDC, NewtonKrylovSDC, SDCConfig

set_dtype(jnp.float64)  # Must be before any JIT compilation


class Kind(enum.StrEnum):
    """Quadrature node distribution."""

    clenshaw_curtis = "clenshaw_curtis"
    gauss_lobatto = "gauss_lobatto"
    uniform = "uniform"


def _run(engine, x0, dt, n_steps):
    t, x, f = 0.0, x0, None
    for _ in range(n_steps):
        x, f = engine.advance(t, x, f, dt)
        t += dt
    return x


def main(
    nodes: Annotated[int, typer.Option(help="Quadrature nodes per sub-interval")] = 5,
    subintervals: Annotated[int, typer.Option(help="Sub-intervals per step")] = 1,
    kind: Annotated[Kind, typer.Option(help="Node distribution")] = Kind.clenshaw_curtis,
    t_final: Annotated[float, typer.Option(help="Final time of the scalar problem")] = 1.0,
    levels: Annotated[int, typer.Option(help="Number of timestep halvings")] = 4,
) -> None:
    """Measure SDC convergence orders and run the stiff test problems."""
    # ── Stage 1: Scalar convergence ──────────────────────────────────────
    print(f"── Stage 1: x' = x cos(t), p={nodes}, M={subintervals}, {kind} nodes ──")
    rhs = ExpSine()
    exact = float(rhs.exact(t_final, 1.0))
    for n_sweeps in range(nodes):
        config = SDCConfig(subintervals, nodes, n_sweeps, kind.value)
        engine = ExplicitSDC(rhs, config)
        errors = []
        for level in range(levels):
            n_steps = 10 * 2**level
            x = _run(engine, jnp.array([1.0]), t_final / n_steps, n_steps)
            errors.append(abs(float(x[0]) - exact))
        orders = [
            math.log2(a / b) if b > 0.0 else float("nan") for a, b in zip(errors, errors[1:])
        ]
        print(
            f"  K={n_sweeps}: error={errors[-1]:.3e}, "
            f"observed order={orders[-1]:.2f} (design {config.order})"
        )

    # ── Stage 2: Robertson kinetics ──────────────────────────────────────
    print("\n── Stage 2: Robertson kinetics (Newton-Krylov SDC) ──")
    robertson = Robertson()
    engine = NewtonKrylovSDC(robertson, SDCConfig(subintervals, min(nodes, 3), None, kind.value))
    t0 = time.perf_counter()
    x = _run(engine, robertson.initial_state(), 1e-3, 100)
    print(f"  y(0.1) = {[float(v) for v in x]}")
    print(f"  Mass drift: {abs(float(jnp.sum(x)) - 1.0):.3e}")
    print(f"  Elapsed: {time.perf_counter() - t0:.2f}s")

    # ── Stage 3: Brusselator ─────────────────────────────────────────────
    print("\n── Stage 3: Brusselator, 40 points (explicit SDC) ──")
    brusselator = Brusselator(40)
    engine = ExplicitSDC(brusselator, SDCConfig(subintervals, nodes, None, kind.value))
    t0 = time.perf_counter()
    x = _run(engine, brusselator.initial_state(), 1e-3, 100)
    u, v = x[0::2], x[1::2]
    print(f"  u in [{float(jnp.min(u)):.4f}, {float(jnp.max(u)):.4f}]")
    print(f"  v in [{float(jnp.min(v)):.4f}, {float(jnp.max(v)):.4f}]")
    print(f"  Elapsed: {time.perf_counter() - t0:.2f}s")

    print("\nDone.")


if __name__ == "__main__":
    typer.run(main)
