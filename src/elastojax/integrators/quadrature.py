"""Spectral quadrature tables for Spectral Deferred Correction.

A single time step is mapped to the unit interval ``[0, 1]`` and split into
``M`` equal sub-intervals. Each sub-interval carries ``p`` quadrature nodes
given as fractions of its width. For ``p >= 2`` the node families below all
include both endpoints, so neighbouring sub-intervals share their boundary
node and the distinct grid has ``G + 1`` points with ``G = M (p - 1)``.
For ``p = 1`` the single node is the sub-interval's left endpoint and the
grid is made of the ``M + 1`` sub-interval boundaries (``G = M``).

The integration matrix ``S`` maps right-hand-side samples on the grid to
the integral of their piecewise interpolant from grid point 0 to every grid
point:

.. math::

    (S f)_j = \\int_0^{\\tau_j} \\mathcal{I}[f](s) \\, ds

Interpolation is local to each sub-interval (degree ``p - 1``), so ``S`` is
exact for piecewise polynomials of that degree. Weights are obtained by
integrating the Lagrange basis expanded in Legendre polynomials, which keeps
the Vandermonde systems well conditioned for the node counts used in
practice.

Tables depend only on ``(M, p, kind)``. They are computed once in float64
NumPy, frozen (read-only arrays) and cached; engines cast them to the active
dtype at trace time.
"""

from __future__ import annotations

import enum
import functools
import logging
from typing import NamedTuple

import numpy as np
from numpy.polynomial import legendre

from elastojax.errors import SDCConfigurationError

logger = logging.getLogger(__name__)


class NodeKind(enum.IntEnum):
    """Node distribution inside one sub-interval.

    The integer values are accepted wherever a kind is expected, e.g.
    ``SDCConfig(node_kind=0)``.
    """

    CLENSHAW_CURTIS = 0
    GAUSS_LOBATTO = 1
    UNIFORM = 2


class SpectralQuadrature(NamedTuple):
    """Precomputed quadrature table for one ``(M, p, kind)`` configuration.

    All arrays are float64 and read-only. Offsets and weights refer to the
    unit step; multiply integrals and spacings by ``dt``.

    Attributes:
        kind: Node distribution.
        n_subintervals: Number of sub-intervals ``M``.
        n_nodes: Nodes per sub-interval ``p``.
        nodes: Node offsets in ``[0, 1]`` within one sub-interval, shape ``(p,)``.
        offsets: Grid point offsets on the unit step, shape ``(G + 1,)``.
            ``offsets[0] == 0`` and ``offsets[-1] == 1``.
        spacing: Distance between consecutive grid points, shape ``(G,)``.
        integration_matrix: Cumulative integration matrix ``S``,
            shape ``(G + 1, G + 1)``.
        node_to_node: Node-to-node integration matrix ``S[1:] - S[:-1]``,
            shape ``(G, G + 1)``.
        differentiation_matrix: Derivative of the interpolant at the nodes
            of a unit-width sub-interval, shape ``(p, p)``.
    """

    kind: NodeKind
    n_subintervals: int
    n_nodes: int
    nodes: np.ndarray
    offsets: np.ndarray
    spacing: np.ndarray
    integration_matrix: np.ndarray
    node_to_node: np.ndarray
    differentiation_matrix: np.ndarray

    @property
    def n_intervals(self) -> int:
        """Number of node-to-node intervals ``G`` in the grid."""
        return self.spacing.shape[0]

    @property
    def n_points(self) -> int:
        """Number of distinct grid points ``G + 1``."""
        return self.offsets.shape[0]


def as_node_kind(kind: NodeKind | int | str) -> NodeKind:
    """Normalize a node kind given as enum, integer code or name.

    Args:
        kind: ``NodeKind`` member, its integer value, or its name
            (case-insensitive, e.g. ``"clenshaw_curtis"``).

    Returns:
        NodeKind: The matching enum member.

    Raises:
        SDCConfigurationError: If *kind* does not name a known distribution.
    """
    if isinstance(kind, NodeKind):
        return kind
    try:
        if isinstance(kind, str):
            return NodeKind[kind.upper()]
        return NodeKind(kind)
    except (KeyError, ValueError) as exc:
        names = ", ".join(k.name.lower() for k in NodeKind)
        raise SDCConfigurationError(
            f"Unknown quadrature node kind {kind!r}. Must be one of: {names}"
        ) from exc


def spectral_nodes(n_nodes: int, kind: NodeKind | int | str = NodeKind.CLENSHAW_CURTIS) -> np.ndarray:
    """Return the node offsets of one sub-interval in ``[0, 1]``.

    Args:
        n_nodes: Number of nodes ``p >= 1``.
        kind: Node distribution.

    Returns:
        np.ndarray: Ascending offsets of shape ``(p,)``. For ``p >= 2`` the
        first and last entries are exactly 0 and 1; for ``p == 1`` the single
        node is 0.

    Raises:
        SDCConfigurationError: If ``n_nodes < 1`` or *kind* is unknown.
    """
    kind = as_node_kind(kind)
    if n_nodes < 1:
        raise SDCConfigurationError(f"n_nodes must be >= 1, got {n_nodes}")
    if n_nodes == 1:
        return np.zeros(1)

    if kind == NodeKind.CLENSHAW_CURTIS:
        k = np.arange(n_nodes)
        nodes = 0.5 * (1.0 - np.cos(np.pi * k / (n_nodes - 1)))
    elif kind == NodeKind.GAUSS_LOBATTO:
        # Interior Lobatto points are the roots of P'_{p-1}
        coeffs = np.zeros(n_nodes)
        coeffs[-1] = 1.0
        interior = np.sort(np.real(legendre.legroots(legendre.legder(coeffs))))
        nodes = np.concatenate([[0.0], 0.5 * (interior + 1.0), [1.0]])
    else:
        nodes = np.linspace(0.0, 1.0, n_nodes)

    nodes[0] = 0.0
    nodes[-1] = 1.0
    return nodes


def _lagrange_integrals(x: np.ndarray, lower: float, upper: float) -> np.ndarray:
    """Integrals of the Lagrange basis on nodes *x* over ``[lower, upper]``.

    Nodes and limits are in the Legendre reference coordinate ``[-1, 1]``.
    """
    n = x.shape[0]
    V = legendre.legvander(x, n - 1)
    moments = np.empty(n)
    for k in range(n):
        coeffs = np.zeros(n)
        coeffs[k] = 1.0
        antiderivative = legendre.legint(coeffs, lbnd=lower)
        moments[k] = legendre.legval(upper, antiderivative)
    return np.linalg.solve(V.T, moments)


def _lagrange_derivatives(x: np.ndarray) -> np.ndarray:
    """Derivative of the Lagrange basis on nodes *x*, evaluated at *x*."""
    n = x.shape[0]
    V = legendre.legvander(x, n - 1)
    Vd = np.empty((n, n))
    for k in range(n):
        coeffs = np.zeros(n)
        coeffs[k] = 1.0
        Vd[:, k] = legendre.legval(x, legendre.legder(coeffs))
    return Vd @ np.linalg.inv(V)


def _freeze(array: np.ndarray) -> np.ndarray:
    array = np.ascontiguousarray(array, dtype=np.float64)
    array.setflags(write=False)
    return array


def spectral_quadrature(
    n_subintervals: int,
    n_nodes: int,
    kind: NodeKind | int | str = NodeKind.CLENSHAW_CURTIS,
) -> SpectralQuadrature:
    """Build (or fetch from cache) the quadrature table for ``(M, p, kind)``.

    The result is a pure function of its arguments: two calls with equal
    arguments return bit-identical arrays.

    Args:
        n_subintervals: Number of sub-intervals ``M >= 1``.
        n_nodes: Nodes per sub-interval ``p >= 1``.
        kind: Node distribution.

    Returns:
        SpectralQuadrature: Frozen table of nodes and weights.

    Raises:
        SDCConfigurationError: If ``M < 1``, ``p < 1`` or *kind* is unknown.

    Examples:
        ```python
        from elastojax.integrators.quadrature import spectral_quadrature
        table = spectral_quadrature(1, 3)
        table.offsets  # [0.0, 0.5, 1.0]
        table.integration_matrix[-1]  # Simpson weights [1/6, 2/3, 1/6]
        ```
    """
    kind = as_node_kind(kind)
    if n_subintervals < 1:
        raise SDCConfigurationError(f"n_subintervals must be >= 1, got {n_subintervals}")
    if n_nodes < 1:
        raise SDCConfigurationError(f"n_nodes must be >= 1, got {n_nodes}")
    return _build_quadrature(int(n_subintervals), int(n_nodes), kind)


@functools.lru_cache(maxsize=None)
def _build_quadrature(n_subintervals: int, n_nodes: int, kind: NodeKind) -> SpectralQuadrature:
    # Keyed on the normalized (M, p, kind) only.
    nodes = spectral_nodes(n_nodes, kind)

    M = n_subintervals
    width = 1.0 / M

    if n_nodes == 1:
        # Piecewise-constant interpolant: each interval integrates its left sample.
        n_intervals = M
        offsets = np.arange(M + 1) * width
        Q = np.zeros((M, M + 1))
        Q[np.arange(M), np.arange(M)] = width
        D = np.zeros((1, 1))
    else:
        stride = n_nodes - 1
        n_intervals = M * stride
        x = 2.0 * nodes - 1.0
        local = np.empty((stride, n_nodes))
        for i in range(stride):
            # Half the reference length maps [-1, 1] onto the sub-interval.
            local[i] = 0.5 * width * _lagrange_integrals(x, x[i], x[i + 1])

        offsets = np.empty(n_intervals + 1)
        Q = np.zeros((n_intervals, n_intervals + 1))
        for m in range(M):
            start = m * stride
            offsets[start:start + stride] = (m + nodes[:stride]) * width
            Q[start:start + stride, start:start + n_nodes] = local
        D = 2.0 * _lagrange_derivatives(x)

    offsets[-1] = 1.0
    S = np.vstack([np.zeros((1, n_intervals + 1)), np.cumsum(Q, axis=0)])

    logger.debug(
        "Built %s quadrature table: M=%d, p=%d, %d grid points",
        kind.name.lower(),
        M,
        n_nodes,
        n_intervals + 1,
    )

    return SpectralQuadrature(
        kind=kind,
        n_subintervals=M,
        n_nodes=n_nodes,
        nodes=_freeze(nodes),
        offsets=_freeze(offsets),
        spacing=_freeze(np.diff(offsets)),
        integration_matrix=_freeze(S),
        node_to_node=_freeze(Q),
        differentiation_matrix=_freeze(D),
    )
