"""
rendering.py — Figures and Animations
======================================

Every function builds and returns its own matplotlib Figure (Agg canvas);
nothing touches pyplot's global current-figure state, so figures can be
created, saved and discarded independently. Animations are written frame
by frame inside a single `with writer.saving(...)` block, which opens and
closes the output file.
"""

import os

import numpy as np
from matplotlib.animation import PillowWriter
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from .errors import ShapeError


def new_figure(nrows=1, ncols=1, figsize=(7, 4), **kwargs):
    """Figure with an attached Agg canvas and its axes."""
    fig = Figure(figsize=figsize)
    FigureCanvasAgg(fig)
    axes = fig.subplots(nrows, ncols, **kwargs)
    return fig, axes


def save_figure(fig, path, dpi=120):
    """Write a figure to disk and return the path."""
    fig.savefig(path, dpi=dpi, bbox_inches='tight')
    return path


def _check_1d(x, *fields):
    x = np.asarray(x)
    for f in fields:
        if np.shape(f)[-1] != x.shape[0]:
            raise ShapeError(f"field of shape {np.shape(f)} does not match {x.shape[0]} grid nodes")
    return x


# =============================================================================
# Wave equation
# =============================================================================

def plot_snapshot_1d(x, u, v=None, t=None, title=None):
    """Displacement (and velocity) at one time."""
    x = _check_1d(x, u) if v is None else _check_1d(x, u, v)
    fig, ax = new_figure()
    ax.plot(x, np.asarray(u), label='u')
    if v is not None:
        ax.plot(x, np.asarray(v), '--', label='v = u_t')
    ax.set_xlabel('x')
    ax.set_xlim(x[0], x[-1])
    ax.grid(alpha=0.3)
    ax.legend(loc='upper right')
    if title or t is not None:
        ax.set_title(title or f"t = {t:.3f}")
    return fig


def plot_snapshots_1d(x, traj, indices=None, title=None):
    """Displacement at several save times on one axis."""
    x = _check_1d(x, traj.u)
    if indices is None:
        indices = np.linspace(0, len(traj.t) - 1, min(5, len(traj.t))).astype(int)
    fig, ax = new_figure()
    for i in indices:
        ax.plot(x, traj.u[i], label=f"t = {traj.t[i]:.2f}")
    ax.set_xlabel('x')
    ax.set_ylabel('u')
    ax.set_xlim(x[0], x[-1])
    ax.grid(alpha=0.3)
    ax.legend(loc='upper right', fontsize='small')
    if title:
        ax.set_title(title)
    return fig


def plot_field_2d(grid, u, t=None, vmax=None, title=None):
    """Colour map of a flattened 2D field (row-major, see grid.py)."""
    U = np.asarray(grid.unflatten(u))
    X, Y = (np.asarray(a) for a in grid.meshgrid())
    vmax = vmax if vmax is not None else max(float(np.max(np.abs(U))), 1e-14)
    fig, ax = new_figure(figsize=(5.5, 4.5))
    mesh = ax.pcolormesh(X, Y, U, shading='auto', cmap='RdBu_r', vmin=-vmax, vmax=vmax)
    fig.colorbar(mesh, ax=ax, label='u')
    ax.set_xlabel('x')
    ax.set_ylabel('y')
    ax.set_aspect('equal')
    if title or t is not None:
        ax.set_title(title or f"t = {t:.3f}")
    return fig


def plot_energy(t, energies, title='Discrete energy'):
    fig, ax = new_figure()
    energies = np.asarray(energies)
    ax.plot(t, energies / energies[0])
    ax.set_xlabel('t')
    ax.set_ylabel('E / E(0)')
    ax.grid(alpha=0.3)
    ax.set_title(title)
    return fig


# =============================================================================
# Spectral operators
# =============================================================================

def plot_derivative_comparison(x, approx, exact, labels=None, title=None):
    """
    Approximate derivatives against the exact one, plus pointwise errors.

    approx: array or list of arrays
    """
    x = np.asarray(x)
    approx = [approx] if np.ndim(approx) == 1 else list(approx)
    labels = labels or [f"approx {i}" for i in range(len(approx))]
    _check_1d(x, exact, *approx)

    fig, (ax0, ax1) = new_figure(2, 1, figsize=(7, 6), sharex=True)
    ax0.plot(x, np.asarray(exact), 'k', lw=2, label='exact')
    for a, lab in zip(approx, labels):
        ax0.plot(x, np.asarray(a), '--', label=lab)
        ax1.semilogy(x, np.abs(np.asarray(a) - np.asarray(exact)) + 1e-17, label=lab)
    ax0.legend(fontsize='small')
    ax0.grid(alpha=0.3)
    ax1.set_xlabel('x')
    ax1.set_ylabel('|error|')
    ax1.grid(alpha=0.3)
    if title:
        ax0.set_title(title)
    return fig


def plot_viscosity_kernels(operators, title='Spectral viscosity'):
    """Kernels Q_k and multipliers -ε κ^{2s} Q_k of SpectralViscosityOperators."""
    fig, (ax0, ax1) = new_figure(1, 2, figsize=(11, 4))
    for op in operators:
        k = op.wavenumbers
        ax0.plot(k, op.kernel, label=op.name)
        ax1.plot(k, np.real(np.asarray(op.multiplier)), label=op.name)
    ax0.set_xlabel('k')
    ax0.set_ylabel('Q_k')
    ax1.set_xlabel('k')
    ax1.set_ylabel('multiplier')
    for ax in (ax0, ax1):
        ax.grid(alpha=0.3)
    ax0.legend(fontsize='small')
    fig.suptitle(title)
    return fig


# =============================================================================
# Animation
# =============================================================================

def animate_1d(x, traj, path, fps=10, dpi=100, ylim=None, show_velocity=False):
    """
    Write a GIF with one frame per saved time of a 1D trajectory.

    Returns the output path.
    """
    x = _check_1d(x, traj.u)
    if ylim is None:
        amp = float(np.max(np.abs(traj.u)))
        if show_velocity:
            amp = max(amp, float(np.max(np.abs(traj.v))))
        ylim = (-1.05 * amp, 1.05 * amp)

    fig, ax = new_figure()
    line_u, = ax.plot(x, traj.u[0], label='u')
    line_v = ax.plot(x, traj.v[0], '--', label='v')[0] if show_velocity else None
    ax.set_xlim(x[0], x[-1])
    ax.set_ylim(*ylim)
    ax.set_xlabel('x')
    ax.grid(alpha=0.3)
    ax.legend(loc='upper right')

    writer = PillowWriter(fps=fps)
    with writer.saving(fig, os.fspath(path), dpi):
        for i, t in enumerate(traj.t):
            line_u.set_ydata(traj.u[i])
            if line_v is not None:
                line_v.set_ydata(traj.v[i])
            ax.set_title(f"t = {t:.3f}")
            writer.grab_frame()
    return path


def animate_2d(grid, traj, path, fps=10, dpi=80, vmax=None):
    """Write a GIF of a 2D trajectory (row-major flattened states)."""
    frames = np.asarray(grid.unflatten(traj.u))
    X, Y = (np.asarray(a) for a in grid.meshgrid())
    vmax = vmax if vmax is not None else max(float(np.max(np.abs(frames))), 1e-14)

    fig, ax = new_figure(figsize=(5.5, 4.5))
    mesh = ax.pcolormesh(X, Y, frames[0], shading='auto', cmap='RdBu_r', vmin=-vmax, vmax=vmax)
    fig.colorbar(mesh, ax=ax, label='u')
    ax.set_xlabel('x')
    ax.set_ylabel('y')
    ax.set_aspect('equal')

    writer = PillowWriter(fps=fps)
    with writer.saving(fig, os.fspath(path), dpi):
        for frame, t in zip(frames, traj.t):
            mesh.set_array(frame)
            ax.set_title(f"t = {t:.3f}")
            writer.grab_frame()
    return path
