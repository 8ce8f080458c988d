"""
grid.py — Uniform, Periodic and Tensor-Product Grids
=====================================================

Grid1D:       N nodes on [xmin, xmax], both endpoints included,
              dx = (xmax - xmin) / (N - 1).
PeriodicGrid: N nodes on [xmin, xmax), dx = (xmax - xmin) / N.
Grid2D:       tensor product gx × gy.

Flatten order (Grid2D)
----------------------
Fields live as (Nx, Ny) arrays built with meshgrid(..., indexing='ij'):
axis 0 is x, axis 1 is y. The flat vector is the row-major (C order)
ravel, so node (i, j) sits at flat index i*Ny + j. With this order

    vec(Dx @ X)   = (Dx ⊗ Iy) vec(X)
    vec(X @ Dy.T) = (Ix ⊗ Dy) vec(X)

Only flatten/unflatten/meshgrid below convert between the two layouts.
"""

import math
from typing import NamedTuple, Tuple

import jax.numpy as jnp

from .errors import ConfigurationError, ShapeError


def _check_bounds(xmin, xmax):
    if not (math.isfinite(xmin) and math.isfinite(xmax)):
        raise ConfigurationError(f"domain bounds must be finite, got [{xmin}, {xmax}]")
    if xmax <= xmin:
        raise ConfigurationError(f"need xmin < xmax, got [{xmin}, {xmax}]")


class Grid1D(NamedTuple):
    """Uniform grid including both endpoints."""
    xmin: float
    xmax: float
    N: int

    @property
    def dx(self) -> float:
        return (self.xmax - self.xmin) / (self.N - 1)

    @property
    def length(self) -> float:
        return self.xmax - self.xmin

    @property
    def x(self) -> jnp.ndarray:
        return jnp.linspace(self.xmin, self.xmax, self.N)


class PeriodicGrid(NamedTuple):
    """Uniform periodic grid on [xmin, xmax); xmax is identified with xmin."""
    xmin: float
    xmax: float
    N: int

    @property
    def dx(self) -> float:
        return (self.xmax - self.xmin) / self.N

    @property
    def length(self) -> float:
        return self.xmax - self.xmin

    @property
    def x(self) -> jnp.ndarray:
        return self.xmin + jnp.arange(self.N) * self.dx


def make_grid(xmin: float, xmax: float, N: int) -> Grid1D:
    """Validated Grid1D. Raises ConfigurationError."""
    xmin, xmax = float(xmin), float(xmax)
    _check_bounds(xmin, xmax)
    if int(N) != N or N < 2:
        raise ConfigurationError(f"N must be an integer >= 2, got {N}")
    return Grid1D(xmin, xmax, int(N))


def make_periodic_grid(xmin: float, xmax: float, N: int) -> PeriodicGrid:
    """Validated PeriodicGrid. Raises ConfigurationError."""
    xmin, xmax = float(xmin), float(xmax)
    _check_bounds(xmin, xmax)
    if int(N) != N or N < 2:
        raise ConfigurationError(f"N must be an integer >= 2, got {N}")
    return PeriodicGrid(xmin, xmax, int(N))


class Grid2D(NamedTuple):
    """Tensor-product grid; see module docstring for the flatten order."""
    gx: Grid1D
    gy: Grid1D

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.gx.N, self.gy.N)

    @property
    def size(self) -> int:
        return self.gx.N * self.gy.N

    def meshgrid(self):
        """X, Y of shape (Nx, Ny) with X[i, j] = x_i, Y[i, j] = y_j."""
        return jnp.meshgrid(self.gx.x, self.gy.x, indexing='ij')

    def flatten(self, field):
        """(Nx, Ny) field → row-major vector of length Nx*Ny."""
        field = jnp.asarray(field)
        if field.shape != self.shape:
            raise ShapeError(
                f"field shape {field.shape} does not match grid {self.shape} "
                f"(axis 0 is x, axis 1 is y)")
        return field.reshape(-1)

    def unflatten(self, vec):
        """Row-major vector (or batch (..., Nx*Ny)) → (..., Nx, Ny)."""
        vec = jnp.asarray(vec)
        if vec.ndim == 0 or vec.shape[-1] != self.size:
            raise ShapeError(
                f"vector of shape {vec.shape} cannot be reshaped to grid {self.shape}")
        return vec.reshape(vec.shape[:-1] + self.shape)
