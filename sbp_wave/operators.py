"""
operators.py — Diagonal-Norm Collocated SBP Operators
======================================================

Implementation of the classical diagonal-norm summation-by-parts finite
difference operators on a uniform grid x_i = xmin + i*dx, i = 0, ..., N-1.

First derivative (Kreiss & Scherer 1974, Strand 1994):
    D1 = H^{-1} Q,        Q + Q^T = B = diag(-1, 0, ..., 0, +1)

Second derivative (Mattsson & Nordström 2004):
    D2 = H^{-1} (-M + B S),    M = M^T >= 0

where S holds boundary first-derivative approximations in its first and
last rows. The discrete integration-by-parts identity

    u^T H D2 v = -u^T M v + u_N (S v)_N - u_0 (S v)_0

is what makes the SAT boundary treatment in boundary.py energy stable.

Orders:
    accuracy_order=2: interior 2nd, boundary 1st order   (N >= 3)
    accuracy_order=4: interior 4th, boundary 2nd order   (N >= 8)
"""

from typing import NamedTuple

import numpy as np
import scipy.sparse as sp

import jax.numpy as jnp

from .errors import ConfigurationError
from .grid import Grid1D, make_grid


class SBPOperator(NamedTuple):
    """Container for one SBP derivative operator on a Grid1D."""
    matrix: jnp.ndarray            # [N x N] derivative approximation
    H: jnp.ndarray                 # [N] diagonal quadrature weights (include dx)
    left_derivative: jnp.ndarray   # [N] row s.t. left_derivative @ u ≈ u_x(xmin)
    right_derivative: jnp.ndarray  # [N] row s.t. right_derivative @ u ≈ u_x(xmax)
    derivative_order: int          # 1 or 2
    accuracy_order: int            # interior order (2 or 4)
    grid: Grid1D

    @property
    def N(self) -> int:
        return self.grid.N

    @property
    def dx(self) -> float:
        return self.grid.dx

    @property
    def boundary_order(self) -> int:
        return self.accuracy_order // 2

    def __repr__(self):
        return (f"SBPOperator(d{self.derivative_order}, order={self.accuracy_order}, "
                f"N={self.N}, [{self.grid.xmin}, {self.grid.xmax}])")


# =============================================================================
# Stencil coefficients (dx = 1)
# =============================================================================

# Boundary blocks are the left closure; the right one is mirrored.
_COEFFICIENTS = {
    2: dict(
        H=[1/2],
        d1_block=[[-1.0, 1.0]],
        d1_interior=([-1, 1], [-1/2, 1/2]),
        d2_block=[[1.0, -2.0, 1.0]],
        d2_interior=([-1, 0, 1], [1.0, -2.0, 1.0]),
        s_left=[-3/2, 2.0, -1/2],
        min_N=3,
    ),
    4: dict(
        H=[17/48, 59/48, 43/48, 49/48],
        d1_block=[
            [-24/17, 59/34, -4/17, -3/34, 0.0, 0.0],
            [-1/2, 0.0, 1/2, 0.0, 0.0, 0.0],
            [4/43, -59/86, 0.0, 59/86, -4/43, 0.0],
            [3/98, 0.0, -59/98, 0.0, 32/49, -4/49],
        ],
        d1_interior=([-2, -1, 1, 2], [1/12, -2/3, 2/3, -1/12]),
        d2_block=[
            [2.0, -5.0, 4.0, -1.0, 0.0, 0.0],
            [1.0, -2.0, 1.0, 0.0, 0.0, 0.0],
            [-4/43, 59/43, -110/43, 59/43, -4/43, 0.0],
            [-1/49, 0.0, 59/49, -118/49, 64/49, -4/49],
        ],
        d2_interior=([-2, -1, 0, 1, 2], [-1/12, 4/3, -5/2, 4/3, -1/12]),
        s_left=[-11/6, 3.0, -3/2, 1/3],
        min_N=8,
    ),
}

SUPPORTED_ACCURACY_ORDERS = tuple(sorted(_COEFFICIENTS))
SUPPORTED_DERIVATIVE_ORDERS = (1, 2)


def _banded(N, offsets, weights):
    """Toeplitz band sum_k w_k * eye(N, k=offset_k)."""
    M = jnp.zeros((N, N))
    for off, w in zip(offsets, weights):
        M = M + w * jnp.eye(N, k=off)
    return M


def _close_boundaries(M, block, parity):
    """
    Overwrite the first/last rows of M with a boundary block and its mirror.

    Right closure: M[N-1-i, N-1-j] = parity * block[i, j]
    (parity -1 for odd derivatives, +1 for even ones).
    """
    block = jnp.asarray(block)
    nb, nc = block.shape
    N = M.shape[0]
    M = M.at[:nb, :].set(0.0).at[:nb, :nc].set(block)
    M = M.at[N - nb:, :].set(0.0).at[N - nb:, N - nc:].set(parity * block[::-1, ::-1])
    return M


def _norm_weights(N, h_boundary, dx):
    nb = len(h_boundary)
    h = jnp.ones(N)
    h = h.at[:nb].set(jnp.array(h_boundary))
    h = h.at[N - nb:].set(jnp.array(h_boundary[::-1]))
    return h * dx


def _boundary_rows(N, s_left, dx):
    k = len(s_left)
    s = jnp.array(s_left)
    left = jnp.zeros(N).at[:k].set(s) / dx
    right = jnp.zeros(N).at[N - k:].set(-s[::-1]) / dx
    return left, right


# =============================================================================
# Factory
# =============================================================================

def derivative_operator(derivative_order: int, accuracy_order: int,
                        xmin: float, xmax: float, N: int) -> SBPOperator:
    """
    Create an SBP derivative operator on N uniform nodes over [xmin, xmax].

    Args:
        derivative_order: 1 or 2
        accuracy_order: interior order of accuracy (2 or 4)
        xmin, xmax: domain bounds
        N: number of nodes (endpoints included)

    Returns:
        SBPOperator

    Raises:
        ConfigurationError: unsupported orders, too few nodes, bad bounds
    """
    if derivative_order not in SUPPORTED_DERIVATIVE_ORDERS:
        raise ConfigurationError(
            f"Unsupported derivative order {derivative_order}. "
            f"Use one of {SUPPORTED_DERIVATIVE_ORDERS}.")
    if accuracy_order not in _COEFFICIENTS:
        raise ConfigurationError(
            f"Unsupported accuracy order {accuracy_order}. "
            f"Use one of {SUPPORTED_ACCURACY_ORDERS}.")
    c = _COEFFICIENTS[accuracy_order]
    if int(N) != N or N < c['min_N']:
        raise ConfigurationError(
            f"N={N} too small for accuracy order {accuracy_order} "
            f"(need N >= {c['min_N']})")

    grid = make_grid(xmin, xmax, N)
    N, dx = grid.N, grid.dx

    H = _norm_weights(N, c['H'], dx)
    left, right = _boundary_rows(N, c['s_left'], dx)

    if derivative_order == 1:
        D = _banded(N, *c['d1_interior'])
        D = _close_boundaries(D, c['d1_block'], parity=-1.0) / dx
    else:
        D = _banded(N, *c['d2_interior'])
        D = _close_boundaries(D, c['d2_block'], parity=1.0) / dx**2

    return SBPOperator(
        matrix=D, H=H, left_derivative=left, right_derivative=right,
        derivative_order=derivative_order, accuracy_order=accuracy_order,
        grid=grid,
    )


# =============================================================================
# Helpers
# =============================================================================

def apply(op: SBPOperator, u):
    """Dense application op.matrix @ u (u may carry trailing batch axes)."""
    return jnp.tensordot(op.matrix, u, axes=1)


def integrate(op: SBPOperator, u):
    """SBP quadrature: sum_i H_i u_i ≈ ∫ u dx."""
    return jnp.sum(op.H * u)


def mass_matrix(op: SBPOperator) -> jnp.ndarray:
    """H as a dense diagonal matrix."""
    return jnp.diag(op.H)


def boundary_matrix(op: SBPOperator) -> jnp.ndarray:
    """B S: first row -S_0, last row +S_N, zero elsewhere."""
    N = op.N
    BS = jnp.zeros((N, N))
    BS = BS.at[0].set(-op.left_derivative)
    BS = BS.at[N - 1].set(op.right_derivative)
    return BS


def stiffness_matrix(op: SBPOperator) -> jnp.ndarray:
    """
    M = -H D2 + B S for a second-derivative operator.

    Symmetric positive semidefinite; u^T M u is the discrete ∫ u_x^2 dx.
    """
    if op.derivative_order != 2:
        raise ConfigurationError("stiffness matrix needs a second-derivative operator")
    return -op.H[:, None] * op.matrix + boundary_matrix(op)


def to_sparse(op_or_matrix) -> sp.csr_matrix:
    """Explicit scipy CSR copy of an operator (or a dense matrix)."""
    mat = op_or_matrix.matrix if isinstance(op_or_matrix, SBPOperator) else op_or_matrix
    return sp.csr_matrix(np.asarray(mat))
