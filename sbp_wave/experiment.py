"""
experiment.py — Staged Experiment Drivers
==========================================

Each experiment runs three named stages:

    setup            grid, operators, boundary conditions, initial state
    integration      time stepping and sampling
    post-processing  energy, reshaping, figures, animations

A failure inside a stage is re-raised as StageError(stage, cause) so the
caller always knows which stage failed; no partial trajectory is ever
returned as a result.

Default WaveConfig is the reference scenario: [-1, 1], N=101, 4th order,
u0 = exp(-20 x^2), v0 = 0, Neumann left / Dirichlet right, t in [0, 8],
dt = 0.25 dx.
"""

import contextlib
from typing import NamedTuple, Optional, Tuple

import numpy as np

import jax.numpy as jnp

from .diagnostics import energy_history, relative_energy_drift, max_error
from .errors import SBPWaveError, StageError
from .operators import derivative_operator
from .semidiscretization import WaveEquation1D, WaveEquation2D
from .spectral import (
    fourier_derivative_operator, spectral_viscosity_operator, compose,
    SpectralViscosityFamily,
)
from .timestepping import solve


# Errors reported as a failed stage
STAGE_FAILURES = (SBPWaveError, OSError, ValueError, RuntimeError)


@contextlib.contextmanager
def stage(name):
    """
    Re-raise failures inside the block as StageError(name, err).

    Wrapped: sbp_wave errors and the I/O or rendering failures of the
    post-processing stage (OSError, ValueError, RuntimeError). Anything else
    (KeyError, TypeError, ...) is a programming error and propagates.
    """
    try:
        yield
    except StageError:
        raise
    except STAGE_FAILURES as exc:
        raise StageError(name, exc) from exc


def gaussian_pulse(width=20.0, center=0.0):
    """u0(x) = exp(-width (x - center)^2)."""
    return lambda x: jnp.exp(-width * (x - center)**2)


def gaussian_pulse_2d(width=20.0, center=(0.0, 0.0)):
    cx, cy = center
    return lambda X, Y: jnp.exp(-width * ((X - cx)**2 + (Y - cy)**2))


# =============================================================================
# 1D wave equation
# =============================================================================

class WaveConfig(NamedTuple):
    xmin: float = -1.0
    xmax: float = 1.0
    N: int = 101
    accuracy_order: int = 4
    left_bc: str = 'HomogeneousNeumann'
    right_bc: str = 'HomogeneousDirichlet'
    c: float = 1.0
    pulse_width: float = 20.0
    tspan: Tuple[float, float] = (0.0, 8.0)
    cfl: float = 0.25              # dt = cfl * dx / c
    n_save: int = 33
    method: str = 'auto'
    backend: str = 'auto'


class WaveResult(NamedTuple):
    config: object
    semi: object
    trajectory: object
    energy: np.ndarray
    energy_drift: float


def run_wave_1d(config=WaveConfig()):
    """Run the 1D wave experiment; returns WaveResult or raises StageError."""
    with stage('setup'):
        op = derivative_operator(2, config.accuracy_order, config.xmin, config.xmax, config.N)
        semi = WaveEquation1D(op, config.left_bc, config.right_bc, c=config.c,
                              backend=config.backend)
        v0, u0 = semi.initial_state(gaussian_pulse(config.pulse_width))
        dt = config.cfl * op.dx / semi.c

    with stage('integration'):
        traj = solve(semi, v0, u0, config.tspan, saveat=config.n_save,
                     method=config.method, dt=dt)

    with stage('post-processing'):
        energy = energy_history(semi, traj)
        drift = relative_energy_drift(energy)

    return WaveResult(config, semi, traj, energy, drift)


# =============================================================================
# 2D wave equation
# =============================================================================

class Wave2DConfig(NamedTuple):
    xmin: float = -1.0
    xmax: float = 1.0
    ymin: float = -1.0
    ymax: float = 1.0
    Nx: int = 41
    Ny: int = 41
    accuracy_order: int = 4
    bcs: Tuple[str, str, str, str] = ('HomogeneousNeumann', 'HomogeneousNeumann',
                                      'HomogeneousDirichlet', 'HomogeneousDirichlet')
    c: float = 1.0
    pulse_width: float = 20.0
    tspan: Tuple[float, float] = (0.0, 2.0)
    cfl: float = 0.15
    n_save: int = 21
    method: str = 'auto'
    backend: str = 'auto'


def run_wave_2d(config=Wave2DConfig()):
    """Run the 2D wave experiment; returns WaveResult or raises StageError."""
    with stage('setup'):
        opx = derivative_operator(2, config.accuracy_order, config.xmin, config.xmax, config.Nx)
        opy = derivative_operator(2, config.accuracy_order, config.ymin, config.ymax, config.Ny)
        semi = WaveEquation2D(opx, opy, config.bcs, c=config.c, backend=config.backend)
        v0, u0 = semi.initial_state(gaussian_pulse_2d(config.pulse_width))
        dt = config.cfl * min(opx.dx, opy.dx) / semi.c

    with stage('integration'):
        traj = solve(semi, v0, u0, config.tspan, saveat=config.n_save,
                     method=config.method, dt=dt)

    with stage('post-processing'):
        energy = energy_history(semi, traj)
        drift = relative_energy_drift(energy)

    return WaveResult(config, semi, traj, energy, drift)


# =============================================================================
# Spectral operators
# =============================================================================

class SpectralConfig(NamedTuple):
    xmin: float = -1.0
    xmax: float = 1.0
    N: int = 128
    wavenumber: int = 3          # test function sin(k π x)
    families: Tuple[str, ...] = tuple(f.value for f in SpectralViscosityFamily)
    viscosity_order: int = 1
    strength: Optional[float] = None
    cutoff: Optional[float] = None


class SpectralResult(NamedTuple):
    config: object
    D: object
    viscosity: tuple
    composed: tuple
    x: np.ndarray
    exact: np.ndarray
    derivative: np.ndarray
    derivative_error: float


def run_spectral(config=SpectralConfig()):
    """Build the Fourier derivative and viscosity operators, compare with d/dx sin."""
    with stage('setup'):
        D = fourier_derivative_operator(config.xmin, config.xmax, config.N)
        viscosity = tuple(
            spectral_viscosity_operator(D, family, strength=config.strength,
                                        cutoff=config.cutoff, order=config.viscosity_order)
            for family in config.families)
        composed = tuple(compose(D, V) for V in viscosity)

    with stage('post-processing'):
        x = D.grid.x
        k = config.wavenumber * np.pi
        u = jnp.sin(k * x)
        exact = k * jnp.cos(k * x)
        du = D.apply(u)
        err = max_error(du, exact)

    return SpectralResult(config, D, viscosity, composed,
                          np.asarray(x), np.asarray(exact), np.asarray(du), err)
