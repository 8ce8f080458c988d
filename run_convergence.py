"""
run_convergence.py — Convergence study for SBP operators and the wave solver
============================================================================

1. Operators: D1 and D2 applied to sin(k π x) on [-1, 1], max-norm error
   over all nodes and over the interior (boundary closure rows excluded).
2. Solver: narrow pulse exp(-100 x^2) integrated to t = 0.4 with RK4 at
   a small CFL, compared with d'Alembert's solution (the pulse has not
   reached the boundary yet).

Usage:
    python run_convergence.py                    # N = 21 41 81 161
    python run_convergence.py 41 81 161 321 --order 2
"""
import os
import sys
import argparse

script_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, script_dir)

import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp

from sbp_wave.diagnostics import max_error, convergence_rates, format_convergence_table
from sbp_wave.errors import SBPWaveError
from sbp_wave.experiment import gaussian_pulse
from sbp_wave.operators import derivative_operator, apply
from sbp_wave.semidiscretization import WaveEquation1D
from sbp_wave.timestepping import solve


def operator_errors(Ns, derivative_order, accuracy_order, k=2):
    full, interior = [], []
    for N in Ns:
        op = derivative_operator(derivative_order, accuracy_order, -1.0, 1.0, N)
        x = op.grid.x
        u = jnp.sin(k * jnp.pi * x)
        if derivative_order == 1:
            exact = k * jnp.pi * jnp.cos(k * jnp.pi * x)
        else:
            exact = -(k * jnp.pi)**2 * u
        du = apply(op, u)
        nb = 4 if accuracy_order == 4 else 1
        full.append(max_error(du, exact))
        interior.append(max_error(du[nb:-nb], exact[nb:-nb]))
    return full, interior


def solver_errors(Ns, accuracy_order, t_end=0.4, width=100.0, cfl=0.1):
    pulse = gaussian_pulse(width)
    errors = []
    for N in Ns:
        op = derivative_operator(2, accuracy_order, -1.0, 1.0, N)
        semi = WaveEquation1D(op, 'HomogeneousNeumann', 'HomogeneousNeumann')
        v0, u0 = semi.initial_state(pulse)
        traj = solve(semi, v0, u0, (0.0, t_end), method='rk4', dt=cfl * op.dx)
        x = op.grid.x
        exact = 0.5 * (pulse(x - t_end) + pulse(x + t_end))
        errors.append(max_error(jnp.asarray(traj.u[-1]), exact))
    return errors


def main(argv=None):
    p = argparse.ArgumentParser(description=__doc__.split('\n')[1])
    p.add_argument('N', nargs='*', type=int, default=[21, 41, 81, 161])
    p.add_argument('--order', type=int, default=4)
    args = p.parse_args(argv)
    Ns = args.N
    hs = [2.0 / (N - 1) for N in Ns]

    try:
        for d in (1, 2):
            full, interior = operator_errors(Ns, d, args.order)
            print("\n" + "=" * 65)
            print(f"  D{d}, accuracy order {args.order}")
            print("=" * 65)
            print(format_convergence_table(Ns, full, convergence_rates(hs, full), 'max error'))
            print()
            print(format_convergence_table(Ns, interior, convergence_rates(hs, interior),
                                           'interior'))

        errors = solver_errors(Ns, args.order)
        print("\n" + "=" * 65)
        print(f"  Wave solver vs d'Alembert, order {args.order}, t = 0.4")
        print("=" * 65)
        print(format_convergence_table(Ns, errors, convergence_rates(hs, errors), 'max error'))
    except SBPWaveError as err:
        print(f"\nFAILED: {err}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
