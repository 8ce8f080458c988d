"""
tensor.py — Lazy Kronecker-Sum Operators for 2D
================================================

    L = Lx ⊗ Iy + Ix ⊗ Ly

applied to an (Nx, Ny) field X (axis 0 = x, axis 1 = y) as

    L X = Lx @ X + X @ Ly.T

and to its row-major flattening vec(X) (grid.py). Nothing of size
(Nx*Ny)^2 is ever formed unless to_sparse() is called; that path exists
to cross-check the lazy one.
"""

import scipy.sparse as sp

import numpy as np

from .dispatch import OpApply
from .errors import ShapeError
from .operators import SBPOperator


def _as_matrix(op):
    return op.matrix if isinstance(op, (SBPOperator, OpApply)) else op


class TensorLaplacian:
    """
    Kronecker sum of an x operator and a y operator.

    Args:
        Lx: [Nx x Nx] operator (SBPOperator, OpApply or matrix)
        Ly: [Ny x Ny] operator
        backend: 'dense', 'sparse' or 'auto' (see dispatch.py)
    """

    def __init__(self, Lx, Ly, backend='auto'):
        self.Lx = Lx if isinstance(Lx, OpApply) else OpApply('Lx', _as_matrix(Lx), backend)
        self.Ly = Ly if isinstance(Ly, OpApply) else OpApply('Ly', _as_matrix(Ly), backend)
        self.shape2d = (self.Lx.matrix.shape[0], self.Ly.matrix.shape[0])
        self.size = self.shape2d[0] * self.shape2d[1]

    def apply2d(self, X):
        """(Nx, Ny) → (Nx, Ny)."""
        if X.shape[-2:] != self.shape2d:
            raise ShapeError(f"field shape {X.shape} does not match operator {self.shape2d}")
        return self.Lx.ax0(X) + self.Ly.ax1(X)

    def apply(self, u):
        """Row-major flat vector (Nx*Ny,) → flat vector."""
        if u.shape != (self.size,):
            raise ShapeError(f"vector shape {u.shape} does not match operator size {self.size}")
        return self.apply2d(u.reshape(self.shape2d)).reshape(-1)

    def __call__(self, u):
        return self.apply(u)

    def to_sparse(self) -> sp.csr_matrix:
        """Explicit Lx ⊗ Iy + Ix ⊗ Ly in the row-major flatten order."""
        Lx = sp.csr_matrix(np.asarray(self.Lx.matrix))
        Ly = sp.csr_matrix(np.asarray(self.Ly.matrix))
        Nx, Ny = self.shape2d
        return (sp.kron(Lx, sp.identity(Ny)) + sp.kron(sp.identity(Nx), Ly)).tocsr()

    def __repr__(self):
        return f"TensorLaplacian({self.shape2d[0]}×{self.shape2d[1]}, {self.Lx.backend})"
