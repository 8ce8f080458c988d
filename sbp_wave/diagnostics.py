"""
diagnostics.py — Energy, Error Norms and Convergence Rates
===========================================================

Energy is conserved exactly by the semidiscretization for Neumann and
Dirichlet boundaries (see boundary.py); with a symplectic integrator the
discrete energy then oscillates at O(dt^p) without drift. NonReflecting
boundaries make it non-increasing.
"""

import numpy as np

import jax.numpy as jnp


def energy_history(semi, traj):
    """Energy of every sample of a Trajectory."""
    return np.array([float(semi.energy(jnp.asarray(v), jnp.asarray(u)))
                     for v, u in zip(traj.v, traj.u)])


def relative_energy_drift(energies):
    """max_n |E_n - E_0| / E_0."""
    energies = np.asarray(energies)
    return float(np.max(np.abs(energies - energies[0])) / energies[0])


def max_error(approx, exact):
    return float(jnp.max(jnp.abs(approx - exact)))


def h_norm_error(op, approx, exact):
    """Discrete L2 error sqrt(e^T H e) with the SBP quadrature of op."""
    e = approx - exact
    return float(jnp.sqrt(jnp.sum(op.H * e**2)))


def convergence_rates(hs, errors):
    """
    Observed orders log(e_{i-1}/e_i) / log(h_{i-1}/h_i).

    Returns a list one shorter than the input.
    """
    hs = np.asarray(hs, dtype=float)
    errors = np.asarray(errors, dtype=float)
    return list(np.log(errors[:-1] / errors[1:]) / np.log(hs[:-1] / hs[1:]))


def format_convergence_table(Ns, errors, rates=None, label='error'):
    """Plain-text table: N, error, rate (first rate shown as ---)."""
    if rates is None:
        rates = convergence_rates([1.0 / (N - 1) for N in Ns], errors)
    lines = [f"  {'N':>5}  {label:>12}  {'rate':>8}", "-" * 32]
    for i, (N, err) in enumerate(zip(Ns, errors)):
        rate = '---' if i == 0 else f"{rates[i - 1]:.2f}"
        lines.append(f"  {N:5d}  {err:12.4e}  {rate:>8}")
    return "\n".join(lines)
