"""
===========================================================
settings.py
Last Updated: 2026-10-17
===========================================================

Description:
    Numerical defaults used across the package (integrator
    tolerances, calibration bracket and iteration cap, sweep
    horizon). Every function accepts explicit overrides; these
    values only fill in what the caller leaves out.

Example Usage:
    from overshoot.settings import DEFAULTS, from_env
    cfg = from_env()          # OVERSHOOT_RTOL=1e-8 ... in the environment
    cfg = DEFAULTS.replace(rtol=1e-8)

Notes:
    - Environment variables: OVERSHOOT_METHOD, OVERSHOOT_RTOL,
      OVERSHOOT_ATOL, OVERSHOOT_MAXITER, OVERSHOOT_CALIBRATION_TOL
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import os
from dataclasses import dataclass, replace
from typing import Tuple

from overshoot.errors import ConfigurationError

# initial infected fraction above which the final-size relation warns
NEGLIGIBLE_I0 = 1e-2

_FIXED_STEP_METHODS = ("rk4",)
_ADAPTIVE_METHODS = ("RK45", "RK23", "DOP853", "Radau", "BDF", "LSODA")


@dataclass(frozen=True)
class NumericSettings:
    # ==================== Integrator ==========================================
    method: str = "RK45"
    rtol: float = 1e-6
    atol: float = 1e-8
    rk4_substeps: int = 10          # RK4 steps per grid interval (h = dt / substeps)

    # ==================== Calibration =========================================
    calibration_tol: float = 1e-6   # |H - final_size| accepted as a root
    maxiter: int = 100
    bracket: Tuple[float, float] = (0.1, 5.0)   # multiples of gamma

    # ==================== Sweep ===============================================
    horizon: float = 200.0
    points_per_unit: int = 10

    def __post_init__(self):
        if self.method not in _FIXED_STEP_METHODS + _ADAPTIVE_METHODS:
            raise ConfigurationError(f"Unsupported integration method: {self.method}")
        for name in ("rtol", "atol", "calibration_tol", "horizon"):
            value = getattr(self, name)
            if not value > 0:
                raise ConfigurationError(f"{name} must be positive, got {value!r}")
        for name in ("rk4_substeps", "maxiter", "points_per_unit"):
            value = getattr(self, name)
            if int(value) != value or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        lo, hi = self.bracket
        if not 0 < lo < hi:
            raise ConfigurationError(f"bracket multipliers must satisfy 0 < lo < hi, got {self.bracket}")

    @property
    def integrator_options(self) -> dict:
        return {"method": self.method, "rtol": self.rtol, "atol": self.atol,
                "rk4_substeps": self.rk4_substeps}

    def replace(self, **changes) -> "NumericSettings":
        return replace(self, **changes)


DEFAULTS = NumericSettings()


def _env_float(key, default):
    val = os.getenv(key)
    return default if val is None else float(val)


def _env_int(key, default):
    val = os.getenv(key)
    return default if val is None else int(val)


def from_env(base: NumericSettings = DEFAULTS) -> NumericSettings:
    """Build settings from OVERSHOOT_* environment variables, falling back to ``base``"""
    try:
        return base.replace(
            method=os.getenv("OVERSHOOT_METHOD", base.method),
            rtol=_env_float("OVERSHOOT_RTOL", base.rtol),
            atol=_env_float("OVERSHOOT_ATOL", base.atol),
            maxiter=_env_int("OVERSHOOT_MAXITER", base.maxiter),
            calibration_tol=_env_float("OVERSHOOT_CALIBRATION_TOL", base.calibration_tol),
        )
    except ValueError as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(f"Invalid OVERSHOOT_* environment value: {e}") from e
