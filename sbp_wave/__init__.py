"""
sbp_wave — SBP Finite Differences for the Scalar Wave Equation
===============================================================

Summation-by-parts discretization of u_tt = c^2 Δu in 1D and 2D, plus
periodic Fourier and spectral-viscosity operators.

Modules:
    errors            — Exception taxonomy (configuration, integration, shape)
    grid              — Uniform, periodic and tensor-product grids
    operators         — Diagonal-norm SBP first/second derivative operators
    dispatch          — Dense/stencil application along array axes
    boundary          — Boundary condition kinds and SAT enforcement
    semidiscretization — Wave equation right-hand sides and energy
    tensor            — Lazy Kronecker-sum Laplacian for 2D
    timestepping      — Verlet, Yoshida-4, RK4 and adaptive Dormand-Prince
    spectral          — Fourier derivative and spectral viscosity operators
    diagnostics       — Energy histories, error norms, convergence rates
    benchmark         — Operator application throughput
    rendering         — Figures and GIF animations
    experiment        — Staged 1D/2D/spectral experiment drivers
"""

import jax
jax.config.update("jax_enable_x64", True)
