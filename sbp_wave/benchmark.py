"""
benchmark.py — Operator Application Throughput
===============================================

Times repeated application of an operator to a fixed input after a jit
warm-up. Every call is synchronised with block_until_ready so the timing
covers the device work, not just the dispatch.
"""

import time
from typing import NamedTuple

import numpy as np

import jax

from .errors import ConfigurationError, PerformanceRegression


class BenchmarkResult(NamedTuple):
    name: str
    N: int
    repeats: int
    mean_s: float
    min_s: float

    @property
    def calls_per_second(self) -> float:
        return 1.0 / self.mean_s

    def __str__(self):
        return (f"{self.name:<40s} N={self.N:<6d} mean {self.mean_s * 1e6:9.2f} μs  "
                f"min {self.min_s * 1e6:9.2f} μs  ({self.calls_per_second:,.0f} calls/s)")


def benchmark_apply(op, u, repeats=200, warmup=3, name=None):
    """
    Time op(u) `repeats` times.

    Args:
        op:      callable (FourierOperator, OpApply.apply, TensorLaplacian, ...)
        u:       input array
        repeats: timed calls
        warmup:  untimed calls (jit compilation)
    """
    if repeats < 1:
        raise ConfigurationError(f"repeats must be >= 1, got {repeats}")
    for _ in range(warmup):
        jax.block_until_ready(op(u))

    times = np.empty(repeats)
    for i in range(repeats):
        t0 = time.perf_counter()
        jax.block_until_ready(op(u))
        times[i] = time.perf_counter() - t0

    return BenchmarkResult(
        name=name or getattr(op, 'name', type(op).__name__),
        N=int(np.shape(u)[-1]),
        repeats=repeats,
        mean_s=float(times.mean()),
        min_s=float(times.min()),
    )


def check_regression(base, other, max_factor):
    """
    Raise PerformanceRegression if `other` is more than max_factor × slower.

    Compares minimum times (least sensitive to scheduler noise).
    Returns the slowdown factor.
    """
    factor = other.min_s / base.min_s
    if factor > max_factor:
        raise PerformanceRegression(
            f"{other.name} is {factor:.2f}× slower than {base.name} "
            f"(allowed {max_factor:.2f}×)")
    return factor
