"""
===========================================================
threshold.py
Last Updated: 2026-10-17
===========================================================

Description:
    First time a compartment's share of the population reaches
    a threshold, found by a linear scan over the samples.

API:
    - find_crossing(traj, threshold, compartment="R", epsilon=0.0)
        -> Crossing | NotFound
    - time_to_herd_immunity(traj, epsilon=0.0)

Notes:
    - The earliest sample with metric >= threshold - epsilon wins.
    - A trajectory that never qualifies gives NotFound, never the
      last index.
    - PhasedTrajectory input is scanned with both boundary samples
      kept; on a tie the earlier phase's sample comes first.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from overshoot.errors import ConfigurationError
from overshoot.integrate import COMPARTMENTS, Trajectory
from overshoot.phased import PhasedTrajectory


@dataclass(frozen=True)
class Crossing:
    index: int              # position in the scanned sequence
    time: float
    value: float            # metric at that sample
    phase: Optional[int] = None

    found = True


@dataclass(frozen=True)
class NotFound:
    threshold: float
    max_value: float        # largest metric seen along the trajectory

    found = False


def find_crossing(traj: Union[Trajectory, PhasedTrajectory],
                  threshold: float,
                  compartment: str = "R",
                  epsilon: float = 0.0) -> Union[Crossing, NotFound]:
    """
    Earliest sample where compartment / N >= threshold - epsilon.

    Parameters
    ----------
    traj : Trajectory or PhasedTrajectory
    threshold : float
        Target fraction of the population
    compartment : {"S", "I", "R"}
    epsilon : float
        Non-negative slack below the threshold that still counts
    """
    if compartment not in COMPARTMENTS:
        raise ConfigurationError(f"Unknown compartment {compartment!r}; expected one of {COMPARTMENTS}")
    if not epsilon >= 0:
        raise ConfigurationError(f"epsilon must be non-negative, got {epsilon!r}")

    if isinstance(traj, PhasedTrajectory):
        arr = traj.arrays("both")
        t, x, phase = arr["t"], arr[compartment], arr["phase"]
    else:
        t, x, phase = traj.t, traj.compartment(compartment), None
    metric = x / traj.N
    level = threshold - epsilon

    for i in range(metric.size):
        if metric[i] >= level:
            return Crossing(i, float(t[i]), float(metric[i]),
                            None if phase is None else int(phase[i]))
    return NotFound(float(threshold), float(np.max(metric)) if metric.size else float("nan"))


def time_to_herd_immunity(traj: Union[Trajectory, PhasedTrajectory],
                          epsilon: float = 0.0) -> Union[Crossing, NotFound]:
    """First time R / N reaches 1 - 1/R0 of the trajectory's (final) parameters"""
    return find_crossing(traj, traj.params.herd_immunity_threshold, "R", epsilon)
