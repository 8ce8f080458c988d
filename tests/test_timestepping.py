"""
test_timestepping.py — Integrator Accuracy, Sampling and Failures
==================================================================

Harmonic oscillator u'' = -u with u(0) = 1, v(0) = 0 (exact u = cos t)
for convergence orders, save-point interpolation and adaptive control;
u'' = u^2 for blow-up handling.
"""

import math

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sbp_wave.diagnostics import convergence_rates
from sbp_wave.errors import ConfigurationError, IntegrationError
from sbp_wave.timestepping import solve, Trajectory


def oscillator(t, v, u):
    return -u


def damped(t, v, u):
    return -u - 0.1 * v


def blowup(t, v, u):
    return u**2


V0 = jnp.array([0.0])
U0 = jnp.array([1.0])


def damped_exact(t):
    w = math.sqrt(1.0 - 0.05**2)
    return math.exp(-0.05 * t) * (math.cos(w * t) + 0.05 / w * math.sin(w * t))


class TestFixedStepOrder:
    @pytest.mark.parametrize("method, order", [('verlet', 2), ('yoshida4', 4), ('rk4', 4)])
    def test_convergence(self, method, order):
        dts = [0.1, 0.05, 0.025]
        errors = []
        for dt in dts:
            traj = solve(oscillator, V0, U0, (0.0, 2.0), method=method, dt=dt,
                         velocity_dependent=False)
            err = max(abs(traj.u[-1, 0] - math.cos(2.0)), abs(traj.v[-1, 0] + math.sin(2.0)))
            errors.append(err)
        rates = convergence_rates(dts, errors)
        assert min(rates) > order - 0.3, f"{method} rates {rates}"

    def test_rk4_velocity_dependent(self):
        traj = solve(damped, V0, U0, (0.0, 5.0), method='rk4', dt=0.01)
        assert abs(traj.u[-1, 0] - damped_exact(5.0)) < 1e-8

    def test_last_step_lands_on_end(self):
        traj = solve(oscillator, V0, U0, (0.0, 1.0), method='rk4', dt=0.3)
        assert traj.t[-1] == 1.0
        assert traj.stats['steps'] == 4
        assert traj.stats['rhs_evals'] == 16

    def test_verlet_energy_bounded(self):
        """Symplectic: oscillator energy error stays bounded over many periods."""
        traj = solve(oscillator, V0, U0, (0.0, 200.0), saveat=201, method='verlet',
                     dt=0.1, velocity_dependent=False)
        E = 0.5 * (traj.v[:, 0]**2 + traj.u[:, 0]**2)
        assert np.max(np.abs(E - 0.5)) < 0.01


class TestSaving:
    def test_interpolated_save_points(self):
        ts = [0.0, 0.33, 0.77, 1.0]
        traj = solve(oscillator, V0, U0, (0.0, 1.0), saveat=ts, method='rk4', dt=0.1)
        np.testing.assert_allclose(traj.t, ts)
        np.testing.assert_allclose(traj.u[:, 0], np.cos(ts), atol=1e-5)
        np.testing.assert_allclose(traj.v[:, 0], -np.sin(ts), atol=1e-5)

    def test_uniform_count(self):
        traj = solve(oscillator, V0, U0, (0.0, 1.0), saveat=11, method='rk4', dt=0.01)
        assert isinstance(traj, Trajectory)
        assert traj.u.shape == (11, 1)
        np.testing.assert_allclose(traj.t, np.linspace(0.0, 1.0, 11))

    def test_sampling_does_not_change_steps(self):
        a = solve(oscillator, V0, U0, (0.0, 1.0), saveat=None, method='rk4', dt=0.1)
        b = solve(oscillator, V0, U0, (0.0, 1.0), saveat=37, method='rk4', dt=0.1)
        assert a.stats['steps'] == b.stats['steps']
        assert a.u[-1, 0] == b.u[-1, 0]


class TestAdaptive:
    def test_oscillator_accuracy(self):
        traj = solve(oscillator, V0, U0, (0.0, 10.0), saveat=21, method='dopri5',
                     rtol=1e-9, atol=1e-12)
        assert np.max(np.abs(traj.u[:, 0] - np.cos(traj.t))) < 1e-6
        assert traj.stats['steps'] < 2000

    def test_damped_accuracy(self):
        traj = solve(damped, V0, U0, (0.0, 5.0), method='dopri5', rtol=1e-10, atol=1e-12)
        assert abs(traj.u[-1, 0] - damped_exact(5.0)) < 1e-7

    def test_tolerance_controls_steps(self):
        loose = solve(oscillator, V0, U0, (0.0, 10.0), method='dopri5', rtol=1e-4, atol=1e-6)
        tight = solve(oscillator, V0, U0, (0.0, 10.0), method='dopri5', rtol=1e-10, atol=1e-12)
        assert tight.stats['steps'] > loose.stats['steps']


class TestFailures:
    def test_adaptive_blowup(self):
        with pytest.raises(IntegrationError) as info:
            solve(blowup, V0, U0, (0.0, 10.0), saveat=11, method='dopri5', maxiters=300)
        err = info.value
        assert 0.0 < err.t_fail < 10.0
        assert err.partial is not None
        assert len(err.partial.t) < 11
        assert err.partial.t[0] == 0.0

    def test_fixed_step_blowup(self):
        with pytest.raises(IntegrationError) as info:
            solve(blowup, V0, U0, (0.0, 10.0), method='rk4', dt=0.1)
        assert info.value.t_fail < 10.0

    def test_symplectic_needs_position_only(self):
        with pytest.raises(ConfigurationError):
            solve(damped, V0, U0, (0.0, 1.0), method='yoshida4', dt=0.1)

    def test_auto_assumes_velocity_dependence(self):
        traj = solve(damped, V0, U0, (0.0, 0.5), dt=0.1)
        assert traj.stats['method'] == 'rk4'

    @pytest.mark.parametrize("kwargs", [
        dict(method='euler', dt=0.1),
        dict(method='rk4'),
        dict(method='rk4', dt=-0.1),
        dict(method='rk4', dt=0.1, tspan=(1.0, 0.0)),
        dict(method='rk4', dt=0.1, saveat=[0.5, 0.2]),
        dict(method='rk4', dt=0.1, saveat=[0.0, 2.0]),
        dict(method='rk4', dt=0.1, saveat=1),
        dict(method='rk4', dt=1e-6, maxiters=10),
        dict(method='dopri5', rtol=0.0),
    ])
    def test_configuration_errors(self, kwargs):
        tspan = kwargs.pop('tspan', (0.0, 1.0))
        with pytest.raises(ConfigurationError):
            solve(oscillator, V0, U0, tspan, **kwargs)

    def test_mismatched_state(self):
        with pytest.raises(ConfigurationError):
            solve(oscillator, jnp.zeros(2), U0, (0.0, 1.0), method='rk4', dt=0.1)
