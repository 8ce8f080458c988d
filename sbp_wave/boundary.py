"""
boundary.py — Boundary Condition Kinds and SAT Enforcement
===========================================================

Three kinds, closed set:

    HomogeneousNeumann    u_x = 0     SAT cancels the boundary derivative
    HomogeneousDirichlet  u   = 0     injection (boundary node frozen at 0)
    NonReflecting         u_t = ±c u_x  characteristic SAT, needs velocity

For D2 = H^{-1}(-M + B S) the Neumann SAT turns the boundary row into
-H^{-1} M, so the semidiscrete energy

    E = 1/2 v^T H v + 1/2 c^2 u^T M u

is conserved. NonReflecting adds -v_b / h_b on top of that, giving
dE/dt = -c (v_0^2 + v_N^2) <= 0. Dirichlet injection keeps u_b = v_b = 0,
which removes the boundary row from the energy balance.

Dimensionality:
    1D: all three kinds.
    2D: Neumann and Dirichlet only; the tensor-product path evaluates the
        Laplacian from positions alone.
"""

import enum

import jax.numpy as jnp

from .errors import ConfigurationError, UnsupportedBoundaryError


class BoundaryCondition(enum.Enum):
    HOMOGENEOUS_NEUMANN = 'HomogeneousNeumann'
    HOMOGENEOUS_DIRICHLET = 'HomogeneousDirichlet'
    NON_REFLECTING = 'NonReflecting'

    @property
    def requires_velocity(self) -> bool:
        return self is BoundaryCondition.NON_REFLECTING

    @classmethod
    def parse(cls, value):
        """Accept a member, its value ('HomogeneousNeumann') or its name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value in (member.value, member.name) or value.lower() == member.value.lower():
                    return member
        raise ConfigurationError(
            f"unknown boundary condition {value!r}; "
            f"use one of {[m.value for m in cls]}")

    def __str__(self):
        return self.value


NEUMANN = BoundaryCondition.HOMOGENEOUS_NEUMANN
DIRICHLET = BoundaryCondition.HOMOGENEOUS_DIRICHLET
NON_REFLECTING = BoundaryCondition.NON_REFLECTING

SUPPORTED_KINDS = {
    1: frozenset(BoundaryCondition),
    2: frozenset({NEUMANN, DIRICHLET}),
}

# Edge names per dimension, in the order validate_boundary_conditions returns them
EDGES = {
    1: ('left', 'right'),
    2: ('xmin', 'xmax', 'ymin', 'ymax'),
}


def validate_boundary_conditions(bcs, ndim):
    """
    Parse and check one boundary condition per edge.

    Args:
        bcs:  sequence (1D: left, right; 2D: xmin, xmax, ymin, ymax) or a
              dict keyed by edge name
        ndim: 1 or 2

    Returns:
        tuple of BoundaryCondition in EDGES[ndim] order

    Raises:
        ConfigurationError:        wrong count, unknown edge or kind
        UnsupportedBoundaryError:  kind not available for ndim
    """
    if ndim not in SUPPORTED_KINDS:
        raise ConfigurationError(f"ndim must be 1 or 2, got {ndim}")
    edges = EDGES[ndim]

    if isinstance(bcs, dict):
        unknown = set(bcs) - set(edges)
        if unknown:
            raise ConfigurationError(f"unknown edges {sorted(unknown)} for {ndim}D")
        missing = [e for e in edges if e not in bcs]
        if missing:
            raise ConfigurationError(f"missing boundary conditions for {missing}")
        bcs = [bcs[e] for e in edges]

    bcs = tuple(BoundaryCondition.parse(bc) for bc in bcs)
    if len(bcs) != len(edges):
        raise ConfigurationError(
            f"{ndim}D needs {len(edges)} boundary conditions {edges}, got {len(bcs)}")

    for bc in bcs:
        if bc not in SUPPORTED_KINDS[ndim]:
            raise UnsupportedBoundaryError(bc, ndim)
    return bcs


# =============================================================================
# SAT folding
# =============================================================================

def fold_boundary_terms(op, left_bc, right_bc):
    """
    Operator matrix with the positional part of the SAT terms folded in.

    Neumann and NonReflecting edges: boundary derivative cancelled
    (row 0 += S_0 / h_0, row N-1 -= S_N / h_N). Dirichlet rows are left
    unchanged; dirichlet_mask() zeroes them after application.
    """
    L = op.matrix
    h = op.H
    N = op.N
    if left_bc in (NEUMANN, NON_REFLECTING):
        L = L.at[0].add(op.left_derivative / h[0])
    if right_bc in (NEUMANN, NON_REFLECTING):
        L = L.at[N - 1].add(-op.right_derivative / h[N - 1])
    return L


def velocity_damping(op, left_bc, right_bc):
    """
    Diagonal of the velocity SAT: -1/h_b at NonReflecting edges, 0 elsewhere.

    a += c * damping * v
    """
    d = jnp.zeros(op.N)
    if left_bc is NON_REFLECTING:
        d = d.at[0].set(-1.0 / op.H[0])
    if right_bc is NON_REFLECTING:
        d = d.at[op.N - 1].set(-1.0 / op.H[op.N - 1])
    return d


def dirichlet_mask(N, left_bc, right_bc):
    """1.0 where the node evolves, 0.0 on Dirichlet boundary nodes."""
    m = jnp.ones(N)
    if left_bc is DIRICHLET:
        m = m.at[0].set(0.0)
    if right_bc is DIRICHLET:
        m = m.at[N - 1].set(0.0)
    return m
