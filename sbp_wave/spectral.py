"""
spectral.py — Periodic Fourier and Spectral Viscosity Operators
================================================================

All operators here are Fourier multipliers on a PeriodicGrid with N nodes:

    (A u)^_k = m_k û_k,    k = 0, ..., N//2   (rfft half spectrum)

Derivative of order p:  m_k = (i κ_k)^p,  κ_k = 2π k / L.
For odd p and even N the Nyquist mode is dropped (its derivative is not
real-valued on the grid).

Spectral viscosity of order s (s = 1 classic, s > 1 super-spectral):

    ε (-1)^{s+1} ∂_x^{2s} (Q u)   ⇒   m_k = -ε κ_k^{2s} Q_k  <= 0

with Q_k = 0 for k <= m (cutoff) and a family-specific kernel above:

    Tadmor1989                  Q_k = 1
    MadayTadmor1989             Q_k = exp(-((k_max - k) / (k - m))^2)
    TadmorWaagan2012Standard    Q_k = 1 - (m / k)^4
    TadmorWaagan2012Convergent  Q_k = 1 - (m / k)^(2s), cutoff halved

Defaults: ε = N^{1-2s}, m = N^{(2s-1)/(2s)} (m = sqrt(N), ε = 1/N for s = 1).
"""

import enum
import math

import numpy as np

import jax
import jax.numpy as jnp

from .errors import ConfigurationError, ShapeError
from .grid import make_periodic_grid


class FourierOperator:
    """
    Fourier multiplier on a periodic grid.

    Attributes:
        grid:       PeriodicGrid
        multiplier: complex [N//2 + 1] half-spectrum multiplier
        name:       label for plots and benchmarks
    """

    def __init__(self, grid, multiplier, name):
        self.grid = grid
        self.multiplier = jnp.asarray(multiplier, dtype=jnp.complex128)
        self.name = name
        N = grid.N
        mult = self.multiplier
        self._apply = jax.jit(lambda u: jnp.fft.irfft(mult * jnp.fft.rfft(u, axis=-1), n=N, axis=-1))

    @property
    def N(self) -> int:
        return self.grid.N

    @property
    def wavenumbers(self) -> np.ndarray:
        """Integer wavenumbers k = 0, ..., N//2."""
        return np.arange(self.N // 2 + 1)

    def apply(self, u):
        """Apply along the last axis of u (length N)."""
        u = jnp.asarray(u)
        if u.shape[-1:] != (self.N,):
            raise ShapeError(f"last axis of {u.shape} must have length {self.N}")
        return self._apply(u)

    def __call__(self, u):
        return self.apply(u)

    def __add__(self, other):
        return compose(self, other)

    def matrix(self) -> jnp.ndarray:
        """Dense [N x N] matrix (columns are images of unit vectors)."""
        return self._apply(jnp.eye(self.N)).T

    def coefficients(self):
        """(k, multiplier) as numpy arrays."""
        return self.wavenumbers, np.asarray(self.multiplier)

    def __repr__(self):
        return f"FourierOperator({self.name}, N={self.N}, [{self.grid.xmin}, {self.grid.xmax}))"


def _wavenumbers_physical(grid):
    return 2.0 * math.pi / grid.length * jnp.arange(grid.N // 2 + 1)


def fourier_derivative_operator(xmin, xmax, N, derivative_order=1) -> FourierOperator:
    """
    Periodic spectral derivative operator on N nodes of [xmin, xmax).

    Raises:
        ConfigurationError: bad bounds, N < 2, derivative_order < 1
    """
    grid = make_periodic_grid(xmin, xmax, N)
    if int(derivative_order) != derivative_order or derivative_order < 1:
        raise ConfigurationError(f"derivative order must be a positive integer, got {derivative_order}")
    p = int(derivative_order)
    kappa = _wavenumbers_physical(grid)
    mult = (1, 1j, -1, -1j)[p % 4] * kappa**p
    if p % 2 == 1 and grid.N % 2 == 0:
        mult = mult.at[-1].set(0.0)
    return FourierOperator(grid, mult, name=f"d{p}/dx{p}" if p > 1 else "d/dx")


# =============================================================================
# Spectral viscosity
# =============================================================================

class SpectralViscosityFamily(enum.Enum):
    TADMOR_1989 = 'Tadmor1989'
    MADAY_TADMOR_1989 = 'MadayTadmor1989'
    TADMOR_WAAGAN_2012_STANDARD = 'TadmorWaagan2012Standard'
    TADMOR_WAAGAN_2012_CONVERGENT = 'TadmorWaagan2012Convergent'

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name):
                return member
        raise ConfigurationError(
            f"unknown spectral viscosity family {value!r}; "
            f"use one of {[m.value for m in cls]}")

    def __str__(self):
        return self.value


class SpectralViscosityOperator(FourierOperator):
    """Fourier multiplier -ε κ^{2s} Q_k; keeps its parameters for plots."""

    def __init__(self, grid, multiplier, family, strength, cutoff, order, kernel):
        super().__init__(grid, multiplier, name=f"SV {family} (s={order})")
        self.family = family
        self.strength = strength
        self.cutoff = cutoff
        self.order = order
        self.kernel = np.asarray(kernel)


def default_strength(N, order=1):
    """ε = N^{1-2s}."""
    return float(N) ** (1 - 2 * order)


def default_cutoff(N, order=1, family=SpectralViscosityFamily.TADMOR_1989):
    """m = N^{(2s-1)/(2s)}, halved for TadmorWaagan2012Convergent."""
    m = float(N) ** ((2 * order - 1) / (2 * order))
    if SpectralViscosityFamily.parse(family) is SpectralViscosityFamily.TADMOR_WAAGAN_2012_CONVERGENT:
        m *= 0.5
    return m


def viscosity_kernel(family, k, cutoff, k_max, order=1):
    """Q_k for integer wavenumbers k (numpy array); zero at and below the cutoff."""
    family = SpectralViscosityFamily.parse(family)
    k = np.asarray(k, dtype=float)
    active = k > cutoff
    # avoid 0/0 below the cutoff; those entries are masked out anyway
    ks = np.where(active, k, cutoff + 1.0)

    if family is SpectralViscosityFamily.TADMOR_1989:
        Q = np.ones_like(ks)
    elif family is SpectralViscosityFamily.MADAY_TADMOR_1989:
        Q = np.exp(-((k_max - ks) / (ks - cutoff))**2)
    elif family is SpectralViscosityFamily.TADMOR_WAAGAN_2012_STANDARD:
        Q = 1.0 - (cutoff / ks)**4
    else:
        Q = 1.0 - (cutoff / ks)**(2 * order)
    return np.where(active, Q, 0.0)


def spectral_viscosity_operator(D, family='Tadmor1989', strength=None, cutoff=None,
                                order=1) -> SpectralViscosityOperator:
    """
    Spectral viscosity operator on the grid of a Fourier operator D.

    Args:
        D:        FourierOperator (defines the grid)
        family:   SpectralViscosityFamily or its name
        strength: ε >= 0 (default N^{1-2s})
        cutoff:   m >= 0 (default see default_cutoff)
        order:    s >= 1; s > 1 gives super-spectral viscosity

    Returns:
        SpectralViscosityOperator with real multiplier -ε κ^{2s} Q_k
    """
    family = SpectralViscosityFamily.parse(family)
    if not isinstance(D, FourierOperator):
        raise ConfigurationError(f"D must be a FourierOperator, got {type(D).__name__}")
    if int(order) != order or order < 1:
        raise ConfigurationError(f"viscosity order must be a positive integer, got {order}")
    order = int(order)
    N = D.N
    strength = default_strength(N, order) if strength is None else float(strength)
    cutoff = default_cutoff(N, order, family) if cutoff is None else float(cutoff)
    if not (math.isfinite(strength) and strength >= 0):
        raise ConfigurationError(f"strength must be finite and >= 0, got {strength}")
    if not (math.isfinite(cutoff) and cutoff >= 0):
        raise ConfigurationError(f"cutoff must be finite and >= 0, got {cutoff}")

    k = D.wavenumbers
    Q = viscosity_kernel(family, k, cutoff, N // 2, order)
    kappa = 2.0 * math.pi / D.grid.length * k
    mult = -strength * kappa**(2 * order) * Q

    return SpectralViscosityOperator(D.grid, mult, family, strength, cutoff, order, Q)


def compose(*ops) -> FourierOperator:
    """Sum of Fourier operators on the same grid, applied with a single FFT pair."""
    if not ops:
        raise ConfigurationError("compose needs at least one operator")
    grid = ops[0].grid
    for op in ops[1:]:
        if op.grid != grid:
            raise ConfigurationError(f"cannot compose operators on {grid} and {op.grid}")
    mult = ops[0].multiplier
    for op in ops[1:]:
        mult = mult + op.multiplier
    return FourierOperator(grid, mult, name=" + ".join(op.name for op in ops))
