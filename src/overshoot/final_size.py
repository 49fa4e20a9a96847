"""
===========================================================
final_size.py
Last Updated: 2026-10-17
===========================================================

Description:
    Closed-form asymptotic (final) size of an SIR epidemic via
    the principal branch of the Lambert W function:

        s_inf = -(1/R0) * W0(-s0 * R0 * exp(-R0 * (1 - r0)))
        r_inf = 1 - s_inf

    s0, r0 are the susceptible and recovered fractions at the
    start; the initially infected fraction i0 = 1 - s0 - r0 is
    assumed negligible.

Example Usage:
    from overshoot.final_size import final_size, herd_immunity_threshold
    final_size(2.0 / 0.9)                 # ~0.80
    herd_immunity_threshold(2.0 / 0.9)    # 0.55

Notes:
    - Independent of the integrator; used to calibrate
      interventions (see calibrate.py).
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import math
import warnings

import numpy as np
from scipy.special import lambertw

from overshoot.errors import DomainError
from overshoot.settings import NEGLIGIBLE_I0
from overshoot.sir import SIRParams, State

_INV_E = math.exp(-1.0)
_EPS = 1e-12
_TINY = np.finfo(float).tiny


def _w_argument(R0: float, s0: float, r0: float) -> float:
    if not (math.isfinite(R0) and R0 > 0):
        raise DomainError(f"R0 must be positive and finite, got {R0!r}")
    if not (s0 >= 0 and r0 >= 0):
        raise DomainError(f"s0 and r0 must be non-negative, got s0={s0!r}, r0={r0!r}")
    if s0 + r0 > 1 + _EPS:
        raise DomainError(f"s0 + r0 must not exceed 1, got {s0 + r0!r}")
    i0 = 1.0 - s0 - r0
    if i0 > NEGLIGIBLE_I0:
        warnings.warn(f"Initial infected fraction {i0:.3g} is ignored by the final-size relation")

    x = -s0 * R0 * math.exp(-R0 * (1.0 - r0))
    if x == 0 and s0 > 0:
        # exp underflow for very large R0; the true argument is a tiny negative number
        x = -_TINY
    if -_INV_E - _EPS <= x < -_INV_E:
        x = -_INV_E
    if not -_INV_E <= x < 0:
        raise DomainError(
            f"Lambert W argument {x:.6g} outside [-1/e, 0) for R0={R0:g}, s0={s0:g}, r0={r0:g}",
            argument=x,
        )
    return x


def susceptible_final_size(R0: float, s0: float = 1.0, r0: float = 0.0) -> float:
    """Asymptotic susceptible fraction s_inf"""
    x = _w_argument(float(R0), float(s0), float(r0))
    w = lambertw(x, k=0)
    if not np.isfinite(w) or abs(w.imag) > 1e-6:
        raise DomainError(f"Lambert W returned a non-real value {w!r} for argument {x:.6g}", argument=x)
    return float(-w.real / R0)


def final_size(R0: float, s0: float = 1.0, r0: float = 0.0) -> float:
    """
    Asymptotic recovered fraction r_inf = 1 - s_inf.

    Parameters
    ----------
    R0 : float
        Reproduction number beta / gamma of the regime that runs to the end
    s0 : float
        Susceptible fraction at the start (default: fully susceptible)
    r0 : float
        Recovered/immune fraction at the start

    Raises
    ------
    DomainError
        if R0 <= 0, the fractions are inconsistent, or the Lambert W
        argument leaves [-1/e, 0)
    """
    return 1.0 - susceptible_final_size(R0, s0, r0)


def herd_immunity_threshold(R0: float) -> float:
    """Immune fraction 1 - 1/R0 (0 when R0 <= 1)"""
    if not R0 > 0:
        raise DomainError(f"R0 must be positive, got {R0!r}")
    return max(0.0, 1.0 - 1.0 / R0)


def overshoot(R0: float) -> float:
    """Final size beyond the herd-immunity threshold for a fully susceptible start"""
    return final_size(R0) - herd_immunity_threshold(R0)


def final_size_from_state(state: State, params: SIRParams) -> float:
    """Final recovered fraction if ``params`` holds from ``state`` onwards"""
    s0, _, r0 = state.fractions(params.N)
    return final_size(params.R0, s0=s0, r0=r0)
