"""
===========================================================
integrate.py
Last Updated: 2026-10-17
===========================================================

Description:
    Numerical integration of the SIR system over a time grid.

API:
    - time_grid(start, end, count) -> evenly spaced grid
    - as_time_grid(points)         -> validated explicit grid
    - integrate(state0, grid, params, model=None, method="RK45", ...)
        -> Trajectory (one sample per grid point)
    - Trajectory: read-only arrays t, S, I, R + the SIRParams used

Notes:
    - Adaptive methods go through scipy.integrate.solve_ivp with
      local error control (rtol/atol). "rk4" is the classical fixed
      step scheme with h = dt / rk4_substeps per grid interval.
    - Compartments may undershoot zero by a tiny amount; values are
      NOT clamped here. Use Trajectory.fractions(clip=True) when a
      clamped view is needed.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from scipy.integrate import solve_ivp

from overshoot.errors import ConfigurationError, NumericFailure
from overshoot.settings import DEFAULTS, NumericSettings
from overshoot.sir import CompartmentModel, SIRParams, State, rk4_steps, sir_rhs

logger = logging.getLogger(__name__)

COMPARTMENTS = ("S", "I", "R")


def as_time_grid(points: Sequence[float]) -> np.ndarray:
    """Validate an explicit, strictly increasing grid and return a read-only copy"""
    t = np.array(points, dtype=float)
    if t.ndim != 1 or t.size < 2:
        raise ConfigurationError(f"time grid needs at least two points, got shape {t.shape}")
    if not np.all(np.isfinite(t)):
        raise ConfigurationError("time grid contains non-finite values")
    if not np.all(np.diff(t) > 0):
        raise ConfigurationError("time grid must be strictly increasing")
    t.setflags(write=False)
    return t


def time_grid(start: float, end: float, count: int) -> np.ndarray:
    """Evenly spaced grid of ``count`` points from start to end (inclusive)"""
    if int(count) != count or count < 2:
        raise ConfigurationError(f"count must be an integer >= 2, got {count!r}")
    if not end > start:
        raise ConfigurationError(f"end ({end}) must be greater than start ({start})")
    return as_time_grid(np.linspace(float(start), float(end), int(count)))


def _frozen(a) -> np.ndarray:
    a = np.array(a, dtype=float)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class Trajectory:
    """
    Samples of one integrator call.

    Attributes:
    -----------
    t: np.ndarray
        Time points (the grid that was integrated over)
    S, I, R: np.ndarray
        Compartment sizes at each time point
    params: SIRParams
        Parameters the trajectory was produced with
    """
    t: np.ndarray
    S: np.ndarray
    I: np.ndarray
    R: np.ndarray
    params: SIRParams

    def __post_init__(self):
        for name in ("t",) + COMPARTMENTS:
            object.__setattr__(self, name, _frozen(getattr(self, name)))
        n = self.t.size
        if any(getattr(self, c).shape != (n,) for c in COMPARTMENTS):
            raise ConfigurationError("t, S, I and R must have the same length")

    def __len__(self) -> int:
        return int(self.t.size)

    @property
    def N(self) -> float:
        return self.params.N

    def state_at(self, i: int) -> State:
        return State(float(self.S[i]), float(self.I[i]), float(self.R[i]))

    @property
    def initial_state(self) -> State:
        return self.state_at(0)

    @property
    def final_state(self) -> State:
        return self.state_at(-1)

    def compartment(self, name: str) -> np.ndarray:
        if name not in COMPARTMENTS:
            raise ConfigurationError(f"Unknown compartment {name!r}; expected one of {COMPARTMENTS}")
        return getattr(self, name)

    def fractions(self, clip: bool = False) -> Dict[str, np.ndarray]:
        """Compartments divided by N; ``clip`` restricts them to [0, 1]"""
        out = {}
        for c in COMPARTMENTS:
            x = self.compartment(c) / self.N
            out[c] = np.clip(x, 0.0, 1.0) if clip else x
        return out

    @property
    def incidence(self) -> np.ndarray:
        """New infections per grid interval, approximated by -dS (0 at t[0])"""
        inc = np.zeros_like(self.S)
        inc[1:] = np.maximum(self.S[:-1] - self.S[1:], 0.0)
        return inc

    def summary(self) -> Dict[str, float]:
        peak_idx = int(np.argmax(self.I))
        return {
            "peak_day": float(self.t[peak_idx]),
            "peak_infected": float(self.I[peak_idx]),
            "peak_prevalence": float(self.I[peak_idx] / self.N),
            "final_size": float(self.R[-1] / self.N),
        }

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"t": self.t, "S": self.S, "I": self.I, "R": self.R})

    def records(self) -> List[Tuple[float, float, float, float]]:
        return [(float(t), float(s), float(i), float(r))
                for t, s, i, r in zip(self.t, self.S, self.I, self.R)]


def _as_model(model) -> CompartmentModel:
    if model is None:
        return CompartmentModel(sir_rhs)
    if isinstance(model, CompartmentModel):
        return model
    return CompartmentModel(model)


def _integrate_rk4(y0: np.ndarray, t: np.ndarray, params: SIRParams,
                   model: CompartmentModel, substeps: int) -> np.ndarray:
    Y = np.empty((3, t.size), dtype=float)
    Y[:, 0] = y0
    S, I, R = y0
    for k in range(1, t.size):
        h = float(t[k] - t[k-1]) / substeps
        for _ in range(substeps):
            S, I, R = rk4_steps(S, I, R, h, params, rhs=model.rhs)
        if not (np.isfinite(S) and np.isfinite(I) and np.isfinite(R)):
            raise NumericFailure(t[k-1], h, "fixed-step RK4 produced non-finite values")
        Y[:, k] = (S, I, R)
    return Y


def _integrate_adaptive(y0: np.ndarray, t: np.ndarray, params: SIRParams,
                        model: CompartmentModel, method: str,
                        rtol: float, atol: float, max_step: float) -> np.ndarray:
    sol = solve_ivp(model.deriv, (t[0], t[-1]), y0, method=method, t_eval=t,
                    args=(params,), rtol=rtol, atol=atol, max_step=max_step)
    logger.debug("solve_ivp %s on [%g, %g]: status=%d nfev=%d", method, t[0], t[-1],
                 sol.status, sol.nfev)
    if sol.status < 0 or sol.y.shape[1] != t.size:
        reached = sol.t.size
        last_t = float(sol.t[-1]) if reached else float(t[0])
        step = float(t[reached] - last_t) if reached < t.size else None
        raise NumericFailure(last_t, step, sol.message)
    if not np.all(np.isfinite(sol.y)):
        bad = int(np.argmax(~np.all(np.isfinite(sol.y), axis=0)))
        raise NumericFailure(t[max(bad - 1, 0)], float(t[bad] - t[max(bad - 1, 0)]),
                             "solution contains non-finite values")
    Y = np.array(sol.y, dtype=float)
    # solve_ivp interpolates t_eval[0]; pin it to the exact initial state
    Y[:, 0] = y0
    return Y


def integrate(initial_state: State,
              grid: Union[Sequence[float], np.ndarray],
              params: SIRParams,
              model=None,
              *,
              method: Optional[str] = None,
              rtol: Optional[float] = None,
              atol: Optional[float] = None,
              rk4_substeps: Optional[int] = None,
              max_step: float = np.inf,
              settings: NumericSettings = DEFAULTS) -> Trajectory:
    """
    Integrate the compartment model over ``grid`` starting from ``initial_state``.

    Parameters
    ----------
    initial_state : State
        State at grid[0]; reproduced exactly as the first sample
    grid : array-like
        Strictly increasing time points
    params : SIRParams
    model : callable or CompartmentModel, optional
        f(State, SIRParams) -> (dS, dI, dR); defaults to sir_rhs
    method : str
        Any solve_ivp method name, or "rk4" for fixed-step RK4
    rtol, atol : float
        Local error tolerances for adaptive methods
    rk4_substeps : int
        RK4 steps per grid interval
    max_step : float
        Upper bound on the adaptive step size

    Raises
    ------
    NumericFailure
        when the method cannot advance within tolerance
    """
    overrides = {k: v for k, v in (("method", method), ("rtol", rtol), ("atol", atol),
                                   ("rk4_substeps", rk4_substeps)) if v is not None}
    if overrides:
        settings = settings.replace(**overrides)
    t = as_time_grid(grid)
    model = _as_model(model)
    y0 = initial_state.as_array()

    if settings.method == "rk4":
        Y = _integrate_rk4(y0, t, params, model, settings.rk4_substeps)
    else:
        Y = _integrate_adaptive(y0, t, params, model, settings.method,
                                settings.rtol, settings.atol, max_step)
    return Trajectory(t=t, S=Y[0], I=Y[1], R=Y[2], params=params)
