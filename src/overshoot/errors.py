"""
===========================================================
errors.py
Last Updated: 2026-10-17
===========================================================

Description:
    Exception hierarchy shared by every overshoot module.

    OvershootError
      ├── ConfigurationError      invalid parameters / grids / settings
      ├── NumericFailure          integration could not meet tolerance
      │     └── PhaseFailure      ... inside phase k of a phased run
      ├── DomainError             Lambert W argument out of range
      └── CalibrationError
            ├── NoRootInBracket
            └── MaxIterationsExceeded

Notes:
    - "Threshold never crossed" is a result value (threshold.NotFound),
      not an exception.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from typing import Optional


class OvershootError(Exception):
    """Base class for all errors raised by overshoot"""

    @property
    def kind(self) -> str:
        return type(self).__name__


class ConfigurationError(OvershootError, ValueError):
    pass


class NumericFailure(OvershootError, ArithmeticError):
    """
    The integrator could not advance the state while honouring the
    requested tolerance.

    Attributes
    ----------
    time : float
        Last time point that was successfully reached
    attempted_step : float or None
        Step (or grid interval) that could not be completed
    """
    def __init__(self, time: float, attempted_step: Optional[float], message: str = ""):
        self.time = float(time)
        self.attempted_step = None if attempted_step is None else float(attempted_step)
        self.message = message
        super().__init__(
            f"integration failed at t={self.time:g} "
            f"(attempted step {self.attempted_step!r}): {message}"
        )


class PhaseFailure(NumericFailure):
    """NumericFailure raised from inside phase ``phase_index`` of a phased run"""
    def __init__(self, phase_index: int, cause: NumericFailure):
        self.phase_index = int(phase_index)
        self.cause = cause
        super().__init__(cause.time, cause.attempted_step,
                         f"phase {self.phase_index}: {cause.message}")


class DomainError(OvershootError, ValueError):
    def __init__(self, message: str, argument: Optional[float] = None):
        self.argument = argument
        super().__init__(message)


class CalibrationError(OvershootError):
    pass


class NoRootInBracket(CalibrationError):
    def __init__(self, lo: float, hi: float, g_lo: float, g_hi: float):
        self.lo, self.hi = float(lo), float(hi)
        self.g_lo, self.g_hi = float(g_lo), float(g_hi)
        super().__init__(
            f"g does not change sign on [{self.lo:g}, {self.hi:g}] "
            f"(g(lo)={self.g_lo:.3g}, g(hi)={self.g_hi:.3g})"
        )


class MaxIterationsExceeded(CalibrationError):
    def __init__(self, iterations: int, last_estimate: float, residual: float):
        self.iterations = int(iterations)
        self.last_estimate = float(last_estimate)
        self.residual = float(residual)
        super().__init__(
            f"no root within tolerance after {self.iterations} iterations "
            f"(last estimate {self.last_estimate:.6g}, |g|={abs(self.residual):.3g})"
        )
