"""
===========================================================
calibrate.py
Last Updated: 2026-10-17
===========================================================

Description:
    Choose a reduced transmission rate beta_R so that the
    analytical final size of an epidemic run at beta_R equals a
    target fraction H, typically the herd-immunity threshold of
    the unmitigated epidemic (H = 1 - 1/R0_base).

    Solves g(beta_R) = H - final_size(beta_R / gamma, s0, r0) = 0
    with Brent's bracketed method (scipy.optimize.brentq). g is
    decreasing in beta_R, so a bracket with a sign change holds
    exactly one root.

Example Usage:
    from overshoot.calibrate import calibrate_for_herd_immunity
    from overshoot.sir import SIRParams
    cal = calibrate_for_herd_immunity(SIRParams(2.0, 0.9, 1000))
    cal.beta, cal.depression

Notes:
    - Default bracket is [0.1*gamma, 5*gamma].
    - Iterations are capped (maxiter, default 100); running out
      raises MaxIterationsExceeded.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from scipy.optimize import brentq

from overshoot.errors import ConfigurationError, MaxIterationsExceeded, NoRootInBracket
from overshoot.final_size import final_size
from overshoot.settings import DEFAULTS, NumericSettings
from overshoot.sir import SIRParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationResult:
    beta: float
    gamma: float
    target: float
    residual: float             # g(beta) = target - final_size(beta / gamma)
    iterations: int
    function_calls: int
    baseline_beta: Optional[float] = None

    @property
    def R0(self) -> float:
        return self.beta / self.gamma

    @property
    def depression(self) -> float:
        """beta_R / beta_baseline (NaN when no baseline is known)"""
        if self.baseline_beta is None:
            return math.nan
        return self.beta / self.baseline_beta

    def params(self, N: float) -> SIRParams:
        return SIRParams(self.beta, self.gamma, N)


def calibrate_beta(gamma: float,
                   target: float,
                   bracket: Optional[Tuple[float, float]] = None,
                   *,
                   s0: Optional[float] = None,
                   r0: float = 0.0,
                   tol: Optional[float] = None,
                   maxiter: Optional[int] = None,
                   settings: NumericSettings = DEFAULTS) -> CalibrationResult:
    """
    Find beta_R with |target - final_size(beta_R / gamma, s0, r0)| < tol.

    Parameters
    ----------
    gamma : float
        Recovery rate (shared by baseline and intervention)
    target : float
        Desired final recovered fraction H, 0 < H < 1
    bracket : (lo, hi), optional
        Search interval for beta_R in rate units; defaults to
        settings.bracket multiplied by gamma
    s0, r0 : float
        Initial susceptible / recovered fractions (s0 defaults to 1 - r0)
    tol : float
        Accepted |g| at the root (default 1e-6)
    maxiter : int
        Iteration cap (default 100)

    Raises
    ------
    ConfigurationError
        invalid gamma, target or bracket
    NoRootInBracket
        g has the same sign at both ends of the bracket
    MaxIterationsExceeded
        tolerance not reached within maxiter iterations
    """
    gamma = float(gamma)
    if not (math.isfinite(gamma) and gamma > 0):
        raise ConfigurationError(f"gamma must be positive, got {gamma!r}")
    if not 0 < target < 1:
        raise ConfigurationError(f"target fraction must lie in (0, 1), got {target!r}")
    tol = settings.calibration_tol if tol is None else float(tol)
    maxiter = settings.maxiter if maxiter is None else int(maxiter)
    if bracket is None:
        bracket = (settings.bracket[0] * gamma, settings.bracket[1] * gamma)
    lo, hi = (float(b) for b in bracket)
    if not 0 < lo < hi:
        raise ConfigurationError(f"bracket must satisfy 0 < lo < hi, got ({lo}, {hi})")
    s0 = 1.0 - r0 if s0 is None else float(s0)

    def g(beta: float) -> float:
        return target - final_size(beta / gamma, s0=s0, r0=r0)

    g_lo, g_hi = g(lo), g(hi)
    if g_lo == 0:
        return CalibrationResult(lo, gamma, target, 0.0, 0, 2)
    if g_hi == 0:
        return CalibrationResult(hi, gamma, target, 0.0, 0, 2)
    if g_lo * g_hi > 0:
        raise NoRootInBracket(lo, hi, g_lo, g_hi)

    root, info = brentq(g, lo, hi, xtol=1e-14, maxiter=maxiter,
                        full_output=True, disp=False)
    residual = g(root)
    logger.debug("brentq: target=%.6g beta=%.8g residual=%.3g iterations=%d",
                 target, root, residual, info.iterations)
    if not info.converged or abs(residual) >= tol:
        raise MaxIterationsExceeded(info.iterations, root, residual)
    return CalibrationResult(float(root), gamma, float(target), float(residual),
                             int(info.iterations), int(info.function_calls) + 2)


def calibrate_for_herd_immunity(params: SIRParams, **kwargs) -> CalibrationResult:
    """
    Calibrate beta_R so the mitigated epidemic ends exactly at the
    baseline herd-immunity threshold 1 - 1/R0.
    """
    if params.R0 <= 1:
        raise ConfigurationError(
            f"baseline R0={params.R0:.3g} <= 1 has no positive herd-immunity threshold"
        )
    cal = calibrate_beta(params.gamma, params.herd_immunity_threshold, **kwargs)
    return CalibrationResult(cal.beta, cal.gamma, cal.target, cal.residual,
                             cal.iterations, cal.function_calls, baseline_beta=params.beta)
