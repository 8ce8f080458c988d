"""
test_semidiscretization.py — Wave Equation Energy and Boundary Behaviour
=========================================================================

  - Energy conservation for Neumann/Dirichlet with symplectic integrators
  - Monotone energy decay for NonReflecting boundaries
  - Reflection signs: Neumann keeps the sign, Dirichlet inverts it
  - Right-hand side is pure and checks shapes
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sbp_wave.diagnostics import energy_history, relative_energy_drift
from sbp_wave.errors import ConfigurationError, ShapeError
from sbp_wave.operators import derivative_operator, apply
from sbp_wave.semidiscretization import WaveEquation1D, WaveEquation2D
from sbp_wave.timestepping import solve

N_ = 'HomogeneousNeumann'
D_ = 'HomogeneousDirichlet'
NR = 'NonReflecting'


class TestEnergyConservation:
    @pytest.mark.parametrize("bcs", [(N_, N_), (D_, D_), (N_, D_)])
    @pytest.mark.parametrize("order", [2, 4])
    def test_yoshida4(self, make_wave, bcs, order):
        semi, v0, u0 = make_wave(*bcs, order=order)
        dt = 0.25 * semi.op.dx
        traj = solve(semi, v0, u0, (0.0, 2.0), saveat=21, method='yoshida4', dt=dt)
        drift = relative_energy_drift(energy_history(semi, traj))
        assert drift < 1e-3, f"{bcs} energy drift {drift:.2e}"

    def test_verlet(self, make_wave):
        semi, v0, u0 = make_wave(N_, D_)
        traj = solve(semi, v0, u0, (0.0, 2.0), saveat=21, method='verlet',
                     dt=0.25 * semi.op.dx)
        drift = relative_energy_drift(energy_history(semi, traj))
        assert drift < 1e-2, f"energy drift {drift:.2e}"

    def test_energy_rate_vanishes(self, make_wave):
        """dE/dt = v^T H a + c^2 v^T M u = 0 for any state."""
        semi, _, _ = make_wave(N_, D_, c=1.5)
        key1, key2 = jax.random.split(jax.random.PRNGKey(1))
        v = jax.random.normal(key1, (semi.size,))
        u = jax.random.normal(key2, (semi.size,))
        v, u = semi.project(v, u)
        a = semi(0.0, v, u)
        M = semi._M
        rate = float(jnp.sum(semi.op.H * v * a) + semi.c**2 * v @ (M @ u))
        scale = float(jnp.sum(jnp.abs(semi.op.H * v * a)))
        assert abs(rate) < 1e-10 * scale


class TestNonReflecting:
    def test_energy_decays(self, make_wave):
        semi, v0, u0 = make_wave(NR, NR, N=101)
        assert semi.velocity_dependent
        traj = solve(semi, v0, u0, (0.0, 3.0), saveat=31, method='rk4',
                     dt=0.25 * semi.op.dx)
        E = energy_history(semi, traj)
        assert np.all(np.diff(E) <= 1e-8 * E[0]), "energy increased"
        assert E[-1] < 0.05 * E[0], f"pulse not absorbed: E/E0 = {E[-1] / E[0]:.3f}"

    def test_symplectic_rejected(self, make_wave):
        semi, v0, u0 = make_wave(NR, N_)
        with pytest.raises(ConfigurationError):
            solve(semi, v0, u0, (0.0, 1.0), method='verlet', dt=0.01)

    def test_auto_picks_rk4(self, make_wave):
        semi, v0, u0 = make_wave(N_, NR)
        traj = solve(semi, v0, u0, (0.0, 0.1), dt=0.01)
        assert traj.stats['method'] == 'rk4'


@pytest.fixture(scope='module')
def reflection_run():
    """Gaussian pulse on [-1, 1], Neumann left, Dirichlet right, sampled to t = 1.5."""
    op = derivative_operator(2, 4, -1.0, 1.0, 101)
    semi = WaveEquation1D(op, N_, D_)
    v0, u0 = semi.initial_state(lambda x: jnp.exp(-20.0 * x**2))
    traj = solve(semi, v0, u0, (0.0, 1.5), saveat=[0.0, 1.0, 1.5],
                 method='yoshida4', dt=0.25 * op.dx)
    return semi, traj


class TestReflection:
    """Neumann keeps the sign of the reflected pulse, Dirichlet inverts it."""

    def test_reflection_signs(self, reflection_run):
        semi, traj = reflection_run
        x = np.asarray(semi.grid.x)
        u = traj.u[-1]
        i_left = np.argmin(np.abs(x + 0.5))
        i_right = np.argmin(np.abs(x - 0.5))
        assert u[i_left] == pytest.approx(0.5, abs=0.02), "Neumann reflection"
        assert u[i_right] == pytest.approx(-0.5, abs=0.02), "Dirichlet reflection"

    def test_boundary_values(self, reflection_run):
        semi, traj = reflection_run
        u = jnp.asarray(traj.u[1])       # t = 1: pulses sit on the boundaries
        op = semi.op
        assert float(u[-1]) == 0.0
        slope = float(jnp.abs(op.left_derivative @ u))
        assert slope < 0.05 * float(jnp.max(jnp.abs(apply(derivative_operator(1, 4, -1.0, 1.0, 101), u))))


class TestRightHandSide:
    def test_pure(self, make_wave):
        semi, v0, u0 = make_wave(N_, NR)
        a1 = semi(0.0, v0 + 0.1, u0)
        a2 = semi(0.0, v0 + 0.1, u0)
        assert bool(jnp.all(a1 == a2))

    def test_dirichlet_nodes_frozen(self, make_wave):
        semi, v0, u0 = make_wave(D_, D_)
        a = semi(0.0, v0, u0 + 1.0)
        assert float(a[0]) == 0.0 and float(a[-1]) == 0.0

    def test_shape_mismatch(self, make_wave):
        semi, v0, u0 = make_wave(N_, N_)
        with pytest.raises(ShapeError):
            semi(0.0, v0[:-1], u0)

    def test_rejects_first_derivative(self):
        op = derivative_operator(1, 4, -1.0, 1.0, 21)
        with pytest.raises(ConfigurationError):
            WaveEquation1D(op, N_, N_)

    @pytest.mark.parametrize("c", [0.0, -1.0])
    def test_rejects_wave_speed(self, c):
        op = derivative_operator(2, 4, -1.0, 1.0, 21)
        with pytest.raises(ConfigurationError):
            WaveEquation1D(op, N_, N_, c=c)


class TestWave2D:
    @pytest.fixture
    def semi(self):
        opx = derivative_operator(2, 4, -1.0, 1.0, 21)
        opy = derivative_operator(2, 4, -1.0, 1.0, 25)
        return WaveEquation2D(opx, opy, (N_, N_, D_, D_))

    def test_energy_conserved(self, semi):
        v0, u0 = semi.initial_state(lambda X, Y: jnp.exp(-20.0 * (X**2 + Y**2)))
        dt = 0.15 * min(semi.opx.dx, semi.opy.dx)
        traj = solve(semi, v0, u0, (0.0, 1.0), saveat=11, dt=dt)
        assert traj.stats['method'] == 'yoshida4'
        drift = relative_energy_drift(energy_history(semi, traj))
        assert drift < 1e-3, f"2D energy drift {drift:.2e}"

    def test_dirichlet_edges(self, semi):
        v0, u0 = semi.initial_state(lambda X, Y: 1.0 + 0.0 * X)
        U = semi.grid.unflatten(u0)
        assert bool(jnp.all(U[:, 0] == 0.0)) and bool(jnp.all(U[:, -1] == 0.0))
        assert bool(jnp.all(U[1:-1, 1:-1] == 1.0))

    def test_state_size(self, semi):
        assert semi.size == 21 * 25
        with pytest.raises(ShapeError):
            semi(0.0, jnp.zeros(semi.size), jnp.zeros((21, 25)))
