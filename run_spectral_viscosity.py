"""
run_spectral_viscosity.py — Fourier derivative, spectral viscosity, benchmark
=============================================================================

1. Differentiates sin(k π x) on [-1, 1) with the Fourier operator and
   reports the error against k π cos(k π x).
2. Plots the viscosity kernels Q_k and multipliers of every family.
3. Benchmarks D and D + V (single FFT pair) at fixed N and checks that the
   composed operator is not more than --max-factor slower.

Usage:
    python run_spectral_viscosity.py
    python run_spectral_viscosity.py --N 256 --order 2 --repeats 2000
"""
import os
import sys
import argparse

script_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, script_dir)

import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp

from sbp_wave.benchmark import benchmark_apply, check_regression
from sbp_wave.errors import PerformanceRegression, StageError
from sbp_wave.experiment import SpectralConfig, run_spectral, stage
from sbp_wave.rendering import plot_derivative_comparison, plot_viscosity_kernels, save_figure


def parse_args(argv=None):
    d = SpectralConfig()
    p = argparse.ArgumentParser(description=__doc__.split('\n')[1])
    p.add_argument('--N', type=int, default=d.N)
    p.add_argument('--k', type=int, default=d.wavenumber, help='test function sin(k π x)')
    p.add_argument('--order', type=int, default=d.viscosity_order,
                   help='viscosity order s (s > 1: super spectral viscosity)')
    p.add_argument('--strength', type=float, default=None)
    p.add_argument('--cutoff', type=float, default=None)
    p.add_argument('--repeats', type=int, default=500)
    p.add_argument('--max-factor', type=float, default=3.0)
    p.add_argument('--outdir', default='.')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    config = SpectralConfig(N=args.N, wavenumber=args.k, viscosity_order=args.order,
                            strength=args.strength, cutoff=args.cutoff)

    print("=" * 65)
    print(f"  Fourier / spectral viscosity operators: N={config.N}, s={config.viscosity_order}")
    print("=" * 65)

    try:
        result = run_spectral(config)
        with stage('post-processing'):
            os.makedirs(args.outdir, exist_ok=True)
            save_figure(plot_derivative_comparison(
                            result.x, [result.derivative], result.exact,
                            labels=['Fourier'], title=f'd/dx sin({config.wavenumber}πx)'),
                        os.path.join(args.outdir, 'spectral_derivative.png'))
            save_figure(plot_viscosity_kernels(result.viscosity),
                        os.path.join(args.outdir, 'spectral_viscosity.png'))
    except StageError as err:
        print(f"\nFAILED in stage '{err.stage}': {err.cause}")
        return 1

    print(f"  max |D u - u'|  {result.derivative_error:.3e}")
    print()
    for V in result.viscosity:
        print(f"  {V.name:<40s} ε={V.strength:.3e}  m={V.cutoff:.2f}")

    print("\n" + "-" * 65)
    print("  Benchmark")
    print("-" * 65)
    u = jnp.sin(config.wavenumber * jnp.pi * result.D.grid.x)
    base = benchmark_apply(result.D, u, repeats=args.repeats)
    print(f"  {base}")
    status = 0
    for C in result.composed:
        res = benchmark_apply(C, u, repeats=args.repeats)
        try:
            factor = check_regression(base, res, args.max_factor)
            print(f"  {res}  [{factor:.2f}×]")
        except PerformanceRegression as err:
            print(f"  {res}  REGRESSION: {err}")
            status = 1
    return status


if __name__ == "__main__":
    sys.exit(main())
