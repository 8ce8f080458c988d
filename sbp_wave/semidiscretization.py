"""
semidiscretization.py — Wave Equation Right-Hand Sides
=======================================================

Method of lines for u_tt = c^2 Δu. The PDE becomes the second-order ODE
system

    a = du/dt^2 = f(t, v, u),     v = du/dt

with f linear in (v, u):

    1D:  f = mask * (c^2 L u + c d * v)
    2D:  f = mask * (c^2 (Lx ⊗ Iy + Ix ⊗ Ly) u)

where L carries the folded Neumann/NonReflecting SAT rows, d the
NonReflecting velocity SAT and mask the Dirichlet injection
(see boundary.py). Instances are immutable after construction and the
right-hand side is a pure jitted function, so integrators can call it for
every stage without copies.

Energy:
    1D:  E = 1/2 v^T H v + 1/2 c^2 u^T M u
    2D:  E = 1/2 v^T (Hx ⊗ Hy) v + 1/2 c^2 u^T (Mx ⊗ Hy + Hx ⊗ My) u
"""

import jax
import jax.numpy as jnp

from .boundary import (
    validate_boundary_conditions, fold_boundary_terms, velocity_damping,
    dirichlet_mask,
)
from .dispatch import OpApply
from .errors import ConfigurationError, ShapeError
from .grid import Grid2D
from .operators import SBPOperator, stiffness_matrix
from .tensor import TensorLaplacian


def _check_second_derivative(op, name):
    if not isinstance(op, SBPOperator):
        raise ConfigurationError(f"{name} must be an SBPOperator, got {type(op).__name__}")
    if op.derivative_order != 2:
        raise ConfigurationError(
            f"{name} must be a second-derivative operator, got derivative order "
            f"{op.derivative_order}")


def _check_wave_speed(c):
    c = float(c)
    if not c > 0.0:
        raise ConfigurationError(f"wave speed must be positive, got {c}")
    return c


class WaveEquation1D:
    """
    1D wave equation on the grid of a second-derivative SBP operator.

    Args:
        op:       SBPOperator with derivative_order=2
        left_bc:  BoundaryCondition (or its name) at xmin
        right_bc: BoundaryCondition (or its name) at xmax
        c:        wave speed
        backend:  'dense', 'sparse' or 'auto' operator application
    """

    ndim = 1

    def __init__(self, op, left_bc, right_bc, c=1.0, backend='auto'):
        _check_second_derivative(op, 'op')
        self.op = op
        self.c = _check_wave_speed(c)
        self.left_bc, self.right_bc = validate_boundary_conditions((left_bc, right_bc), 1)
        self.velocity_dependent = self.left_bc.requires_velocity or self.right_bc.requires_velocity

        L = self.c**2 * fold_boundary_terms(op, self.left_bc, self.right_bc)
        self._L = OpApply('D2', L, backend)
        self._damping = self.c * velocity_damping(op, self.left_bc, self.right_bc)
        self._mask = dirichlet_mask(op.N, self.left_bc, self.right_bc)
        self._M = stiffness_matrix(op)

        def rhs(t, v, u):
            return self._mask * (self._L.apply(u) + self._damping * v)

        self._rhs = jax.jit(rhs)

    @property
    def grid(self):
        return self.op.grid

    @property
    def size(self) -> int:
        return self.op.N

    def __call__(self, t, v, u):
        """Acceleration field at time t."""
        if u.shape != (self.size,) or v.shape != (self.size,):
            raise ShapeError(
                f"state shapes v{v.shape}, u{u.shape} do not match grid size {self.size}")
        return self._rhs(t, v, u)

    def project(self, v, u):
        """Impose Dirichlet injection on a state."""
        return self._mask * v, self._mask * u

    def initial_state(self, u0, v0=None):
        """
        Sample initial displacement/velocity functions on the grid.

        u0, v0: callables of x (v0=None means zero velocity)
        """
        x = self.grid.x
        u = jnp.asarray(u0(x), dtype=jnp.float64) * jnp.ones_like(x)
        v = jnp.zeros_like(x) if v0 is None else jnp.asarray(v0(x), dtype=jnp.float64) * jnp.ones_like(x)
        return self.project(v, u)

    def energy(self, v, u):
        """Discrete energy 1/2 v^T H v + 1/2 c^2 u^T M u."""
        return 0.5 * jnp.sum(self.op.H * v**2) + 0.5 * self.c**2 * (u @ (self._M @ u))

    def __repr__(self):
        return (f"WaveEquation1D(N={self.size}, order={self.op.accuracy_order}, "
                f"{self.left_bc}/{self.right_bc}, c={self.c})")


class WaveEquation2D:
    """
    2D wave equation on the tensor product of two 1D SBP grids.

    State vectors are row-major flattenings of (Nx, Ny) fields (grid.py).

    Args:
        opx, opy: SBPOperator with derivative_order=2 in x and y
        bcs:      (xmin, xmax, ymin, ymax) boundary conditions, or dict;
                  Neumann/Dirichlet only
        c:        wave speed
        backend:  'dense', 'sparse' or 'auto' operator application
    """

    ndim = 2
    velocity_dependent = False

    def __init__(self, opx, opy, bcs, c=1.0, backend='auto'):
        _check_second_derivative(opx, 'opx')
        _check_second_derivative(opy, 'opy')
        self.opx, self.opy = opx, opy
        self.c = _check_wave_speed(c)
        self.bcs = validate_boundary_conditions(bcs, 2)
        bx0, bx1, by0, by1 = self.bcs

        self.grid = Grid2D(opx.grid, opy.grid)
        self.laplacian = TensorLaplacian(
            self.c**2 * fold_boundary_terms(opx, bx0, bx1),
            self.c**2 * fold_boundary_terms(opy, by0, by1),
            backend=backend)
        self._mask = jnp.outer(dirichlet_mask(opx.N, bx0, bx1),
                               dirichlet_mask(opy.N, by0, by1)).reshape(-1)
        self._Mx = stiffness_matrix(opx)
        self._My = stiffness_matrix(opy)

        def rhs(t, v, u):
            return self._mask * self.laplacian.apply(u)

        self._rhs = jax.jit(rhs)

    @property
    def size(self) -> int:
        return self.grid.size

    def __call__(self, t, v, u):
        if u.shape != (self.size,) or v.shape != (self.size,):
            raise ShapeError(
                f"state shapes v{v.shape}, u{u.shape} do not match flattened grid "
                f"size {self.size} = {self.grid.shape[0]}×{self.grid.shape[1]}")
        return self._rhs(t, v, u)

    def project(self, v, u):
        return self._mask * v, self._mask * u

    def initial_state(self, u0, v0=None):
        """u0, v0: callables of (X, Y) meshgrid arrays (indexing='ij')."""
        X, Y = self.grid.meshgrid()
        u = self.grid.flatten(jnp.asarray(u0(X, Y), dtype=jnp.float64) * jnp.ones_like(X))
        if v0 is None:
            v = jnp.zeros_like(u)
        else:
            v = self.grid.flatten(jnp.asarray(v0(X, Y), dtype=jnp.float64) * jnp.ones_like(X))
        return self.project(v, u)

    def energy(self, v, u):
        Hx, Hy = self.opx.H, self.opy.H
        V = self.grid.unflatten(v)
        U = self.grid.unflatten(u)
        kinetic = 0.5 * jnp.sum(Hx[:, None] * Hy[None, :] * V**2)
        potential = 0.5 * self.c**2 * (
            jnp.sum(U * (self._Mx @ U) * Hy[None, :]) +
            jnp.sum(U * (U @ self._My.T) * Hx[:, None]))
        return kinetic + potential

    def __repr__(self):
        bcs = '/'.join(str(b) for b in self.bcs)
        return f"WaveEquation2D({self.grid.shape[0]}×{self.grid.shape[1]}, {bcs}, c={self.c})"
