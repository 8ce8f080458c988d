"""
test_experiment.py — Staged Drivers, Error Reporting and Full Scenarios
========================================================================

Failures surface as StageError naming the stage (setup, integration,
post-processing). The full reference scenario (Neumann left, Dirichlet
right, t in [0, 8]) is a slow test: with a mixed Neumann/Dirichlet pair
on [-1, 1] every mode has a period dividing 8, so u(8) = u(0).
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp
import numpy as np

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sbp_wave.diagnostics import convergence_rates
from sbp_wave.errors import (
    ConfigurationError, IntegrationError, ShapeError, StageError, UnsupportedBoundaryError,
)
from sbp_wave.experiment import (
    WaveConfig, Wave2DConfig, SpectralConfig, run_wave_1d, run_wave_2d, run_spectral, stage,
)


class TestStage:
    def test_wraps_library_errors(self):
        with pytest.raises(StageError) as info:
            with stage('integration'):
                raise IntegrationError("boom", t_fail=0.5)
        err = info.value
        assert err.stage == 'integration'
        assert isinstance(err.cause, IntegrationError)
        assert err.cause.t_fail == 0.5
        assert err.__cause__ is err.cause
        assert 'integration failed' in str(err)

    def test_inner_stage_wins(self):
        with pytest.raises(StageError) as info:
            with stage('post-processing'):
                with stage('setup'):
                    raise ShapeError("bad")
        assert info.value.stage == 'setup'

    def test_wraps_io_errors(self, tmp_path):
        blocker = tmp_path / "taken"
        blocker.write_text("")
        with pytest.raises(StageError) as info:
            with stage('post-processing'):
                os.makedirs(blocker, exist_ok=True)
        assert info.value.stage == 'post-processing'
        assert isinstance(info.value.cause, OSError)

    def test_foreign_errors_pass_through(self):
        with pytest.raises(KeyError):
            with stage('setup'):
                raise KeyError('x')


class TestWave1D:
    def test_short_run(self):
        result = run_wave_1d(WaveConfig(N=41, tspan=(0.0, 0.5), n_save=5))
        assert result.trajectory.u.shape == (5, 41)
        assert result.trajectory.stats['method'] == 'yoshida4'
        assert result.energy_drift < 1e-3

    def test_nonreflecting_run(self):
        cfg = WaveConfig(N=41, left_bc='NonReflecting', right_bc='NonReflecting',
                         tspan=(0.0, 0.5), n_save=3)
        result = run_wave_1d(cfg)
        assert result.trajectory.stats['method'] == 'rk4'

    def test_setup_failure(self):
        with pytest.raises(StageError) as info:
            run_wave_1d(WaveConfig(N=5))
        assert info.value.stage == 'setup'
        assert isinstance(info.value.cause, ConfigurationError)

    def test_bad_boundary_name(self):
        with pytest.raises(StageError) as info:
            run_wave_1d(WaveConfig(left_bc='Periodic'))
        assert info.value.stage == 'setup'

    def test_integration_failure(self):
        cfg = WaveConfig(N=41, left_bc='NonReflecting', tspan=(0.0, 0.5), method='verlet')
        with pytest.raises(StageError) as info:
            run_wave_1d(cfg)
        assert info.value.stage == 'integration'

    @pytest.mark.slow
    def test_reference_scenario(self):
        result = run_wave_1d(WaveConfig())
        traj = result.trajectory
        assert traj.t[-1] == 8.0
        assert result.energy_drift < 1e-3
        err = float(np.max(np.abs(traj.u[-1] - traj.u[0])))
        assert err < 0.05, f"u(8) differs from u(0) by {err:.3f}"


class TestWave2D:
    def test_short_run(self):
        result = run_wave_2d(Wave2DConfig(Nx=17, Ny=21, tspan=(0.0, 0.3), n_save=3))
        assert result.trajectory.u.shape == (3, 17 * 21)
        assert result.energy_drift < 1e-3

    def test_nonreflecting_rejected_in_setup(self):
        cfg = Wave2DConfig(bcs=('NonReflecting',) * 4)
        with pytest.raises(StageError) as info:
            run_wave_2d(cfg)
        assert info.value.stage == 'setup'
        assert isinstance(info.value.cause, UnsupportedBoundaryError)


class TestSpectral:
    def test_run(self):
        result = run_spectral(SpectralConfig(N=64))
        assert result.derivative_error < 1e-10
        assert len(result.viscosity) == len(result.composed) == 4

    def test_bad_family(self):
        with pytest.raises(StageError) as info:
            run_spectral(SpectralConfig(families=('Vandeven',)))
        assert info.value.stage == 'setup'


class TestCommandLine:
    def test_run_wave_1d(self, tmp_path):
        import run_wave_1d
        status = run_wave_1d.main(['--N', '41', '--tend', '0.5', '--nsave', '3',
                                   '--outdir', str(tmp_path)])
        assert status == 0
        assert (tmp_path / 'wave1d_snapshots.png').exists()

    def test_run_wave_1d_reports_stage(self, tmp_path, capsys):
        import run_wave_1d
        status = run_wave_1d.main(['--left', 'Periodic', '--outdir', str(tmp_path)])
        assert status == 1
        assert "stage 'setup'" in capsys.readouterr().out

    def test_run_wave_1d_output_failure(self, tmp_path, capsys):
        """An unusable output directory fails in post-processing, not with a traceback."""
        import run_wave_1d
        outdir = tmp_path / 'not_a_dir'
        outdir.write_text('')
        status = run_wave_1d.main(['--N', '41', '--tend', '0.2', '--nsave', '3',
                                   '--outdir', str(outdir)])
        assert status == 1
        assert "FAILED in stage 'post-processing'" in capsys.readouterr().out

    def test_run_wave_2d_output_failure(self, tmp_path, capsys):
        import run_wave_2d
        outdir = tmp_path / 'not_a_dir'
        outdir.write_text('')
        status = run_wave_2d.main(['--N', '17', '--tend', '0.1', '--nsave', '3',
                                   '--outdir', str(outdir)])
        assert status == 1
        assert "stage 'post-processing'" in capsys.readouterr().out

    def test_run_wave_2d_rejects_nonreflecting(self, tmp_path, capsys):
        import run_wave_2d
        status = run_wave_2d.main(['--bcs', 'NonReflecting', 'NonReflecting',
                                   'HomogeneousDirichlet', 'HomogeneousDirichlet',
                                   '--outdir', str(tmp_path)])
        assert status == 1
        assert 'NonReflecting' in capsys.readouterr().out


@pytest.mark.slow
def test_solver_convergence():
    """Pulse away from the boundaries converges at the interior order."""
    import run_convergence
    Ns = [81, 161, 321]
    errors = run_convergence.solver_errors(Ns, 4)
    rates = convergence_rates([2.0 / (N - 1) for N in Ns], errors)
    assert rates[-1] > 3.5, f"solver rates {rates}"
