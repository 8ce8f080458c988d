"""
timestepping.py — Time Integration for Second-Order ODE Systems
================================================================

Integrates a = f(t, v, u), v = du/dt from t0 to tf and samples the state at
requested output times.

Fixed step:
    verlet    velocity Verlet, symplectic, 2nd order, f must not depend on v
    yoshida4  Yoshida (1990) triple-jump composition of Verlet, symplectic,
              4th order, f must not depend on v
    rk4       classical RK4 on the first-order system (v, u); any f
Adaptive:
    dopri5    Dormand-Prince 5(4), FSAL, error control on (v, u)

Save times that do not coincide with a step are filled by cubic Hermite
interpolation between the bracketing steps (u' = v, v' = a), so sampling
never changes the step sequence.
"""

import math
from typing import NamedTuple

import numpy as np

import jax
import jax.numpy as jnp

from .errors import ConfigurationError, IntegrationError


class Trajectory(NamedTuple):
    """Sampled solution: t (n_save,), v and u (n_save, n)."""
    t: np.ndarray
    v: np.ndarray
    u: np.ndarray
    stats: dict


# =============================================================================
# Step builders
# =============================================================================

def make_verlet_step(rhs_fn):
    """
    Build a velocity Verlet step.

    Args:
        rhs_fn: function (t, v, u) → a, independent of v

    Returns:
        step(t, v, u, dt) → (v_new, u_new)
    """
    @jax.jit
    def step(t, v, u, dt):
        v_half = v + 0.5 * dt * rhs_fn(t, v, u)
        u_new = u + dt * v_half
        v_new = v_half + 0.5 * dt * rhs_fn(t + dt, v_half, u_new)
        return v_new, u_new
    return step


_CBRT2 = 2.0 ** (1.0 / 3.0)
_YOSHIDA_W1 = 1.0 / (2.0 - _CBRT2)
_YOSHIDA_W0 = -_CBRT2 / (2.0 - _CBRT2)


def make_yoshida4_step(rhs_fn):
    """
    Build a 4th-order symplectic step: Verlet(w1 dt) Verlet(w0 dt) Verlet(w1 dt).

    Returns:
        step(t, v, u, dt) → (v_new, u_new)
    """
    verlet = make_verlet_step(rhs_fn)

    @jax.jit
    def step(t, v, u, dt):
        v, u = verlet(t, v, u, _YOSHIDA_W1 * dt)
        v, u = verlet(t + _YOSHIDA_W1 * dt, v, u, _YOSHIDA_W0 * dt)
        v, u = verlet(t + (_YOSHIDA_W1 + _YOSHIDA_W0) * dt, v, u, _YOSHIDA_W1 * dt)
        return v, u
    return step


def make_rk4_step(rhs_fn):
    """
    Build a single RK4 time step for the first-order system (v, u).

    Args:
        rhs_fn: function (t, v, u) → a

    Returns:
        step(t, v, u, dt) → (v_new, u_new)
    """
    @jax.jit
    def step(t, v, u, dt):
        k1v, k1u = rhs_fn(t, v, u), v
        k2u = v + 0.5*dt*k1v
        k2v = rhs_fn(t + 0.5*dt, k2u, u + 0.5*dt*k1u)
        k3u = v + 0.5*dt*k2v
        k3v = rhs_fn(t + 0.5*dt, k3u, u + 0.5*dt*k2u)
        k4u = v + dt*k3v
        k4v = rhs_fn(t + dt, k4u, u + dt*k3u)
        return (v + (dt/6)*(k1v + 2*k2v + 2*k3v + k4v),
                u + (dt/6)*(k1u + 2*k2u + 2*k3u + k4u))
    return step


# Dormand & Prince (1980) tableau; row 6 of _DP_A is the 5th-order solution
_DP_C = (0.0, 1/5, 3/10, 4/5, 8/9, 1.0, 1.0)
_DP_A = (
    (),
    (1/5,),
    (3/40, 9/40),
    (44/45, -56/15, 32/9),
    (19372/6561, -25360/2187, 64448/6561, -212/729),
    (9017/3168, -355/33, 46732/5247, 49/176, -5103/18656),
    (35/384, 0.0, 500/1113, 125/192, -2187/6784, 11/84),
)
# 5th minus embedded 4th order weights
_DP_E = (71/57600, 0.0, -71/16695, 71/1920, -17253/339200, 22/525, -1/40)


def make_dopri5_step(rhs_fn):
    """
    Build a Dormand-Prince 5(4) step with FSAL.

    Returns:
        step(t, v, u, a, dt) → (v_new, u_new, a_new, err_v, err_u)
        where a = rhs_fn(t, v, u) and a_new = rhs_fn(t + dt, v_new, u_new)
    """
    @jax.jit
    def step(t, v, u, a, dt):
        kv = [a]
        ku = [v]
        for i in range(1, 7):
            vi = v + dt * sum(c * k for c, k in zip(_DP_A[i], kv))
            ui = u + dt * sum(c * k for c, k in zip(_DP_A[i], ku))
            kv.append(rhs_fn(t + _DP_C[i] * dt, vi, ui))
            ku.append(vi)
        err_v = dt * sum(e * k for e, k in zip(_DP_E, kv))
        err_u = dt * sum(e * k for e, k in zip(_DP_E, ku))
        return vi, ui, kv[6], err_v, err_u
    return step


# =============================================================================
# Sampling helpers
# =============================================================================

def _hermite(s, t0, t1, y0, dy0, y1, dy1):
    """Cubic Hermite interpolant through (t0, y0, dy0), (t1, y1, dy1) at s."""
    h = t1 - t0
    th = (s - t0) / h
    th2, th3 = th * th, th * th * th
    return ((2*th3 - 3*th2 + 1) * y0 + (th3 - 2*th2 + th) * h * dy0 +
            (-2*th3 + 3*th2) * y1 + (th3 - th2) * h * dy1)


def _save_times(tspan, saveat):
    t0, tf = float(tspan[0]), float(tspan[1])
    if not (math.isfinite(t0) and math.isfinite(tf)) or tf <= t0:
        raise ConfigurationError(f"tspan must satisfy t0 < tf, got {tspan}")
    if saveat is None:
        ts = np.array([t0, tf])
    elif np.ndim(saveat) == 0:
        n = int(saveat)
        if n < 2:
            raise ConfigurationError(f"need at least 2 save points, got {saveat}")
        ts = np.linspace(t0, tf, n)
    else:
        ts = np.asarray(saveat, dtype=float)
        if ts.ndim != 1 or len(ts) == 0:
            raise ConfigurationError("saveat must be an int or a 1D sequence of times")
        if np.any(np.diff(ts) <= 0):
            raise ConfigurationError("save times must be strictly increasing")
        if ts[0] < t0 or ts[-1] > tf:
            raise ConfigurationError(f"save times must lie in [{t0}, {tf}]")
    return t0, tf, ts


class _Recorder:
    """Collects samples at the requested times while stepping."""

    def __init__(self, ts, rhs_fn, tol):
        self.ts = ts
        self.rhs_fn = rhs_fn
        self.tol = tol
        self.k = 0
        self.t, self.v, self.u = [], [], []

    @property
    def done(self):
        return self.k >= len(self.ts)

    def _store(self, s, v, u):
        self.t.append(float(s))
        self.v.append(np.asarray(v))
        self.u.append(np.asarray(u))
        self.k += 1

    def record(self, t0, v0, u0, a0, t1, v1, u1, a1):
        """Store every save time in (t0, t1]; a0/a1 may be None (computed lazily)."""
        while not self.done and self.ts[self.k] <= t1 + self.tol:
            s = self.ts[self.k]
            if abs(s - t1) <= self.tol:
                self._store(s, v1, u1)
                continue
            if a0 is None:
                a0 = self.rhs_fn(t0, v0, u0)
            if a1 is None:
                a1 = self.rhs_fn(t1, v1, u1)
            self._store(s, _hermite(s, t0, t1, v0, a0, v1, a1),
                        _hermite(s, t0, t1, u0, v0, u1, v1))

    def record_initial(self, t0, v0, u0):
        while not self.done and abs(self.ts[self.k] - t0) <= self.tol:
            self._store(self.ts[self.k], v0, u0)

    def trajectory(self, stats):
        return Trajectory(
            t=np.array(self.t),
            v=np.stack(self.v) if self.v else np.zeros((0, 0)),
            u=np.stack(self.u) if self.u else np.zeros((0, 0)),
            stats=stats,
        )


def _finite(*arrays):
    return all(bool(jnp.all(jnp.isfinite(x))) for x in arrays)


# =============================================================================
# Driver
# =============================================================================

FIXED_STEP_METHODS = {
    'verlet': (make_verlet_step, 2, True),
    'yoshida4': (make_yoshida4_step, 6, True),
    'rk4': (make_rk4_step, 4, False),
}
METHODS = tuple(FIXED_STEP_METHODS) + ('dopri5', 'auto')


def solve(rhs, v0, u0, tspan, saveat=None, method='auto', dt=None,
          rtol=1e-6, atol=1e-8, maxiters=1_000_000, dtmin=None,
          velocity_dependent=None):
    """
    Integrate a = rhs(t, v, u) over tspan.

    Args:
        rhs:      callable (t, v, u) → a; a `velocity_dependent` attribute
                  is honoured (assumed True when absent)
        v0, u0:   initial velocity and displacement
        tspan:    (t0, tf)
        saveat:   None (endpoints), int (uniform count) or increasing times
        method:   'verlet', 'yoshida4', 'rk4', 'dopri5' or 'auto'
        dt:       step size (required for fixed-step methods; initial guess
                  for dopri5)
        rtol, atol, maxiters, dtmin: dopri5 controls (maxiters bounds the
                  number of steps for every method)

    Returns:
        Trajectory

    Raises:
        ConfigurationError: unknown method, missing/invalid dt, symplectic
                            method with a velocity-dependent rhs
        IntegrationError:   non-finite state, step-size underflow, maxiters
    """
    if method not in METHODS:
        raise ConfigurationError(f"unknown method {method!r}; use one of {METHODS}")
    if velocity_dependent is None:
        velocity_dependent = getattr(rhs, 'velocity_dependent', True)
    if method == 'auto':
        method = 'rk4' if velocity_dependent else 'yoshida4'

    t0, tf, ts = _save_times(tspan, saveat)
    v0 = jnp.asarray(v0, dtype=jnp.float64)
    u0 = jnp.asarray(u0, dtype=jnp.float64)
    if v0.shape != u0.shape:
        raise ConfigurationError(f"v0 {v0.shape} and u0 {u0.shape} shapes differ")

    if method == 'dopri5':
        return _solve_adaptive(rhs, v0, u0, t0, tf, ts, dt, rtol, atol, maxiters, dtmin)

    make_step, evals_per_step, symplectic = FIXED_STEP_METHODS[method]
    if symplectic and velocity_dependent:
        raise ConfigurationError(
            f"{method} needs an acceleration independent of velocity; "
            f"use 'rk4' or 'dopri5' with NonReflecting boundaries")
    if dt is None or not math.isfinite(dt) or dt <= 0:
        raise ConfigurationError(f"{method} needs a positive finite dt, got {dt}")
    return _solve_fixed(rhs, make_step(rhs), evals_per_step, method,
                        v0, u0, t0, tf, ts, float(dt), maxiters)


def _solve_fixed(rhs, step, evals_per_step, method, v, u, t0, tf, ts, dt, maxiters):
    n_steps = int(math.ceil((tf - t0) / dt - 1e-9))
    if n_steps > maxiters:
        raise ConfigurationError(f"{n_steps} steps of dt={dt} exceed maxiters={maxiters}")

    rec = _Recorder(ts, rhs, tol=1e-10 * (tf - t0))
    stats = {'method': method, 'steps': 0, 'rejected': 0, 'rhs_evals': 0}
    rec.record_initial(t0, v, u)

    t = t0
    for n in range(n_steps):
        t1 = tf if n == n_steps - 1 else t0 + (n + 1) * dt
        v1, u1 = step(t, v, u, t1 - t)
        stats['steps'] += 1
        stats['rhs_evals'] += evals_per_step
        if not _finite(v1, u1):
            raise IntegrationError(
                f"{method}: non-finite state at t={t1:.6g} (dt={dt:.3g} too large?)",
                t_fail=t, partial=rec.trajectory(dict(stats)))
        rec.record(t, v, u, None, t1, v1, u1, None)
        t, v, u = t1, v1, u1
    return rec.trajectory(stats)


def _error_norm(err_v, err_u, v, u, v1, u1, rtol, atol):
    sv = atol + rtol * jnp.maximum(jnp.abs(v), jnp.abs(v1))
    su = atol + rtol * jnp.maximum(jnp.abs(u), jnp.abs(u1))
    sq = jnp.sum((err_v / sv)**2) + jnp.sum((err_u / su)**2)
    return float(jnp.sqrt(sq / (2 * v.size)))


def _initial_step(v, u, a, tf, t0, rtol, atol):
    sv = atol + rtol * jnp.abs(v)
    su = atol + rtol * jnp.abs(u)
    d0 = float(jnp.sqrt(jnp.mean((v / sv)**2) + jnp.mean((u / su)**2)))
    d1 = float(jnp.sqrt(jnp.mean((a / sv)**2) + jnp.mean((v / su)**2)))
    h = 1e-6 if d0 < 1e-5 or d1 < 1e-5 else 0.01 * d0 / d1
    return min(h, tf - t0)


_SAFETY, _FAC_MIN, _FAC_MAX = 0.9, 0.2, 10.0


def _solve_adaptive(rhs, v, u, t0, tf, ts, dt, rtol, atol, maxiters, dtmin):
    if rtol <= 0 or atol < 0:
        raise ConfigurationError(f"need rtol > 0 and atol >= 0, got {rtol}, {atol}")
    step = make_dopri5_step(rhs)
    a = rhs(t0, v, u)
    if dt is None:
        dt = _initial_step(v, u, a, tf, t0, rtol, atol)
    if not dt > 0:
        raise ConfigurationError(f"initial dt must be positive, got {dt}")
    if dtmin is None:
        dtmin = 1e-12 * (tf - t0)

    rec = _Recorder(ts, rhs, tol=1e-10 * (tf - t0))
    stats = {'method': 'dopri5', 'steps': 0, 'rejected': 0, 'rhs_evals': 1}
    rec.record_initial(t0, v, u)

    t = t0
    h = float(min(dt, tf - t0))
    while t < tf and not rec.done:
        if stats['steps'] + stats['rejected'] >= maxiters:
            raise IntegrationError(
                f"dopri5: maxiters={maxiters} reached at t={t:.6g}",
                t_fail=t, partial=rec.trajectory(dict(stats)))
        if h < dtmin:
            raise IntegrationError(
                f"dopri5: step size {h:.3g} below dtmin={dtmin:.3g} at t={t:.6g}",
                t_fail=t, partial=rec.trajectory(dict(stats)))

        last = t + h >= tf - 1e-12 * (tf - t0)
        h_try = tf - t if last else h
        v1, u1, a1, err_v, err_u = step(t, v, u, a, h_try)
        stats['rhs_evals'] += 6

        if _finite(v1, u1):
            err = _error_norm(err_v, err_u, v, u, v1, u1, rtol, atol)
        else:
            err = math.inf

        if err <= 1.0:
            t1 = tf if last else t + h_try
            rec.record(t, v, u, a, t1, v1, u1, a1)
            t, v, u, a = t1, v1, u1, a1
            stats['steps'] += 1
            fac = _FAC_MAX if err == 0.0 else min(_FAC_MAX, max(_FAC_MIN, _SAFETY * err**-0.2))
        else:
            stats['rejected'] += 1
            fac = _FAC_MIN if not math.isfinite(err) else max(_FAC_MIN, _SAFETY * err**-0.2)
        h = h_try * fac
    return rec.trajectory(stats)
