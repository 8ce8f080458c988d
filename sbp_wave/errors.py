"""
errors.py — Exception Taxonomy
===============================

    SBPWaveError
     ├── ConfigurationError (ValueError)   bad grid, order, bounds, method
     │    └── UnsupportedBoundaryError     boundary kind not valid for ndim
     ├── ShapeError (ValueError)           flatten/reshape mismatch
     ├── IntegrationError (RuntimeError)   step rejection, blow-up, maxiters
     ├── PerformanceRegression             benchmark slower than allowed
     └── StageError                        wraps any of the above with a stage
"""


class SBPWaveError(Exception):
    """Base class for all errors raised by sbp_wave."""


class ConfigurationError(SBPWaveError, ValueError):
    """Invalid setup detected before any time integration."""


class UnsupportedBoundaryError(ConfigurationError):
    """Boundary condition kind not available for the given dimensionality."""

    def __init__(self, kind, ndim):
        self.kind = kind
        self.ndim = ndim
        msg = f"{kind} is not supported in {ndim}D"
        if getattr(kind, 'requires_velocity', False):
            msg += " (it needs velocity data at the boundary)"
        super().__init__(msg)


class ShapeError(SBPWaveError, ValueError):
    """Array shape or flatten order does not match the grid."""


class IntegrationError(SBPWaveError, RuntimeError):
    """
    Time integration failed.

    Attributes:
        t_fail:  time at which the failing step started
        partial: Trajectory with the samples saved before the failure,
                 or None. Never a complete result.
    """

    def __init__(self, message, t_fail=None, partial=None):
        super().__init__(message)
        self.t_fail = t_fail
        self.partial = partial


class PerformanceRegression(SBPWaveError):
    """Measured throughput fell below the allowed factor."""


class StageError(SBPWaveError):
    """
    Failure of one pipeline stage ('setup', 'integration', 'post-processing').

    The original exception is available as ``cause`` and ``__cause__``.
    """

    def __init__(self, stage, cause):
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed: {type(cause).__name__}: {cause}")
