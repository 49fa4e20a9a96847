"""
===========================================================
sweep.py
Last Updated: 2026-10-17
===========================================================

Description:
    Parameter sweeps for the two-phase intervention scenario:
    a depressed-transmission phase of a given length starting at
    t=0, followed by free-running transmission at the baseline
    beta until the horizon. Evaluates every combination of the
    (beta, gamma, depression, length) axes and returns a tidy
    pandas DataFrame with one row per combination.

Example Usage:
    from overshoot.sweep import SweepEngine, grid_sweep
    engine = SweepEngine({"beta": [2, 3], "gamma": [0.9],
                          "depression": [0.5, "calibrated"],
                          "length": [20]}, N=1000, I0=1)
    result = engine.run()
    result.frame, result.failed

Notes:
    - depression="calibrated" picks the intervention beta with
      calibrate_for_herd_immunity() instead of a fixed factor.
    - A combination that raises an OvershootError becomes a row
      with status="failed" and the error kind; the other rows are
      unaffected.
    - max_workers > 1 evaluates combinations in worker processes.
      Rows are matched back to combinations by index.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import itertools
import logging
import math
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from overshoot.calibrate import calibrate_for_herd_immunity
from overshoot.errors import ConfigurationError, OvershootError
from overshoot.phased import Phase, PhasedSimulation
from overshoot.settings import DEFAULTS, NumericSettings
from overshoot.sir import ModelConfig, SIRParams
from overshoot.threshold import time_to_herd_immunity

logger = logging.getLogger(__name__)

AXES = ("beta", "gamma", "depression", "length")
CALIBRATED = "calibrated"
METRICS = ("intervention_beta", "total_infected", "peak_infected", "intervention_total",
           "infected_at_shift", "intervention_R0", "baseline_R0", "herd_immunity",
           "overshoot", "hit_time")


@dataclass(frozen=True)
class Combination:
    index: int
    values: Dict[str, object]


@dataclass(frozen=True)
class ScenarioSpec:
    """Everything shared by the combinations of one sweep"""
    N: float
    I0: float = 1.0
    R0_init: float = 0.0
    horizon: float = DEFAULTS.horizon
    points_per_unit: int = DEFAULTS.points_per_unit
    settings: NumericSettings = DEFAULTS


def _axis_value(name: str, value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None


def _intervention_beta(params: SIRParams, depression, settings: NumericSettings):
    if isinstance(depression, str):
        if depression != CALIBRATED:
            raise ConfigurationError(f"depression must be a number or {CALIBRATED!r}, got {depression!r}")
        cal = calibrate_for_herd_immunity(params, settings=settings)
        return cal.beta, cal.depression
    depression = _axis_value("depression", depression)
    return params.beta * depression, depression


def evaluate_combination(combo: Combination, spec: ScenarioSpec) -> dict:
    """Run the two-phase scenario for one combination and summarize it"""
    v = combo.values
    row = {"combo": combo.index, **v}
    try:
        beta, gamma, length = (_axis_value(a, v[a]) for a in ("beta", "gamma", "length"))
        config = ModelConfig.from_infected(beta, gamma, spec.N, spec.I0, spec.R0_init)
        params = config.params
        ib, depression = _intervention_beta(params, v["depression"], spec.settings)
        if not 0 < length < spec.horizon:
            raise ConfigurationError(f"length must lie in (0, horizon={spec.horizon:g}), got {length:g}")

        phases = [Phase(params.with_beta(ib), duration=length),
                  Phase(params, duration=spec.horizon - length)]
        sim = PhasedSimulation(phases, points_per_unit=spec.points_per_unit, settings=spec.settings)
        traj = sim.run(config.initial_state)
        arr = traj.arrays("both")
        N = params.N
        crossing = time_to_herd_immunity(traj)
        total = float(traj.final_state.R / N)

        row.update({
            "depression": depression,
            "intervention_beta": ib,
            "total_infected": total,
            "peak_infected": float(np.max(arr["I"]) / N),
            "intervention_total": float(traj[0].final_state.R / N),
            "infected_at_shift": float(traj.state_at_shift(1, prefer="earlier").I / N),
            "intervention_R0": ib / gamma,
            "baseline_R0": params.R0,
            "herd_immunity": params.herd_immunity_threshold,
            "overshoot": total - params.herd_immunity_threshold,
            "hit_time": crossing.time if crossing.found else math.nan,
            "status": "ok",
            "error": None,
            "error_message": None,
        })
    except (OvershootError, ValueError) as e:
        logger.warning("combination %d %s failed: %s", combo.index, v, e)
        row.update({m: math.nan for m in METRICS})
        row.update({"status": "failed", "error": type(e).__name__, "error_message": str(e)})
    return row


@dataclass(frozen=True)
class SweepResult:
    frame: pd.DataFrame
    combinations: List[Combination] = field(default_factory=list)

    @property
    def ok(self) -> pd.DataFrame:
        return self.frame[self.frame["status"] == "ok"]

    @property
    def failed(self) -> pd.DataFrame:
        return self.frame[self.frame["status"] == "failed"]

    def to_records(self) -> List[dict]:
        return self.frame.to_dict(orient="records")


class SweepEngine:
    """
    Cartesian-product sweep of the two-phase intervention scenario.

    Parameters:
    -----------
    axes: mapping
        "beta", "gamma", "depression", "length" -> finite value sets
    N: float
        Population size
    I0, R0_init: float
        Initially infected / recovered counts
    horizon: float
        End time of the free-running phase
    points_per_unit: int
        Samples per time unit in each phase
    max_workers: int, optional
        > 1 evaluates combinations in a process pool
    """
    def __init__(self, axes: Mapping[str, Iterable], *, N: float, I0: float = 1.0,
                 R0_init: float = 0.0, horizon: Optional[float] = None,
                 points_per_unit: Optional[int] = None, settings: NumericSettings = DEFAULTS,
                 max_workers: Optional[int] = None):
        missing = [a for a in AXES if a not in axes]
        unknown = [a for a in axes if a not in AXES]
        if missing or unknown:
            raise ConfigurationError(f"sweep axes must be exactly {AXES}; missing={missing}, unknown={unknown}")
        self.axes = {name: list(values) for name, values in axes.items()}
        empty = [name for name, values in self.axes.items() if not values]
        if empty:
            raise ConfigurationError(f"sweep axes without values: {empty}")
        self.spec = ScenarioSpec(
            N=float(N), I0=float(I0), R0_init=float(R0_init),
            horizon=float(horizon if horizon is not None else settings.horizon),
            points_per_unit=int(points_per_unit or settings.points_per_unit),
            settings=settings,
        )
        self.max_workers = max_workers

    def combinations(self) -> List[Combination]:
        names = list(self.axes)
        return [Combination(i, dict(zip(names, values)))
                for i, values in enumerate(itertools.product(*self.axes.values()))]

    def run(self) -> SweepResult:
        combos = self.combinations()
        logger.info("sweep: %d combinations over axes %s", len(combos), list(self.axes))
        rows: Dict[int, dict] = {}
        if self.max_workers and self.max_workers > 1:
            with ProcessPoolExecutor(max_workers=self.max_workers) as pool:
                futures = {pool.submit(evaluate_combination, c, self.spec): c.index for c in combos}
                for fut in as_completed(futures):
                    rows[futures[fut]] = fut.result()
        else:
            for c in combos:
                rows[c.index] = evaluate_combination(c, self.spec)

        df = pd.DataFrame.from_records([rows[c.index] for c in combos])
        n_failed = int((df["status"] == "failed").sum())
        logger.info("sweep finished: %d ok, %d failed", len(df) - n_failed, n_failed)
        return SweepResult(df.reset_index(drop=True), combos)


def grid_sweep(
    betas,
    gammas,
    depressions,
    lengths,
    N: float,
    I0: float = 1.0,
    R0_init: float = 0.0,
    **kwargs) -> pd.DataFrame:
    """
    Evaluate the intervention scenario across a grid of (beta, gamma,
    depression, length) values. Returns a tidy pandas DataFrame with
    one row per parameter combo
    """
    engine = SweepEngine({"beta": betas, "gamma": gammas, "depression": depressions,
                          "length": lengths}, N=N, I0=I0, R0_init=R0_init, **kwargs)
    return engine.run().frame
