"""
conftest.py — Shared pytest fixtures for the sbp_wave test suite
"""

import pytest
import jax
jax.config.update("jax_enable_x64", True)
import jax.numpy as jnp

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from sbp_wave.operators import derivative_operator
from sbp_wave.semidiscretization import WaveEquation1D


@pytest.fixture(params=[2, 4])
def accuracy_order(request):
    """Interior accuracy order."""
    return request.param


@pytest.fixture
def d2_op():
    """4th order second-derivative operator, N=41 on [-1, 1]."""
    return derivative_operator(2, 4, -1.0, 1.0, 41)


@pytest.fixture
def make_wave():
    """Factory for a 1D wave semidiscretization with a Gaussian pulse."""
    def _make(left, right, N=41, order=4, width=20.0, c=1.0):
        op = derivative_operator(2, order, -1.0, 1.0, N)
        semi = WaveEquation1D(op, left, right, c=c)
        v0, u0 = semi.initial_state(lambda x: jnp.exp(-width * x**2))
        return semi, v0, u0
    return _make
