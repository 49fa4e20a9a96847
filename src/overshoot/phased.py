"""
===========================================================
phased.py
Last Updated: 2026-10-17
===========================================================

Description:
    SIR simulation with piecewise-constant parameters. Each
    phase is integrated by its own call to integrate(); the
    final state of phase k-1 is the initial state of phase k.
    Useful when interventions/behavior change over time and a
    single β cannot describe the whole run.

API:
    - Phase(params, duration=None, start=None, end=None, n_points=None)
    - PhasedSimulation(phases, t0=0, points_per_unit=10, ...)
        .run(initial_state) -> PhasedTrajectory
    - PhasedSimulation.from_edges(N, gamma, edges, betas)
    - PhasedTrajectory
        .phases, .boundary(k), .arrays(boundary), .to_frame(boundary)
        .infected_sum(deduplicate=False), .state_at_shift(k)

Notes:
    - Boundary policy: the instant shared by phases k-1 and k is
      sampled twice, as the last sample of k-1 and the first sample
      of k. Both are kept and tagged with their phase. Choose one
      explicitly with boundary="earlier" / "later"; boundary="both"
      keeps the duplicate.
    - Any sum over samples with boundary="both" (e.g. sum of I as
      a proxy for the infected-days integral) counts each shared
      instant twice. infected_sum() offers both variants.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from overshoot.errors import ConfigurationError, NumericFailure, PhaseFailure
from overshoot.integrate import COMPARTMENTS, Trajectory, integrate, time_grid
from overshoot.settings import DEFAULTS, NumericSettings
from overshoot.sir import SIRParams, State

logger = logging.getLogger(__name__)

BOUNDARY_POLICIES = ("both", "earlier", "later")


@dataclass(frozen=True)
class Phase:
    """
    One constant-parameter regime.

    Give either ``duration`` (the phase starts where the previous one
    ended) or an explicit ``start``/``end`` pair. ``n_points`` is the
    number of grid points including both ends; when omitted it follows
    the simulation's points_per_unit.
    """
    params: SIRParams
    duration: Optional[float] = None
    start: Optional[float] = None
    end: Optional[float] = None
    n_points: Optional[int] = None

    def __post_init__(self):
        has_span = self.start is not None or self.end is not None
        if (self.duration is None) == (not has_span):
            raise ConfigurationError("Phase needs exactly one of duration or (start, end)")
        if has_span and (self.start is None or self.end is None):
            raise ConfigurationError("Phase start and end must be given together")
        if self.duration is not None and not self.duration > 0:
            raise ConfigurationError(f"Phase duration must be positive, got {self.duration!r}")
        if has_span and not self.end > self.start:
            raise ConfigurationError(f"Phase end ({self.end}) must be after start ({self.start})")

    def span(self, t_prev: float) -> tuple:
        if self.duration is not None:
            return t_prev, t_prev + float(self.duration)
        return float(self.start), float(self.end)

    def grid(self, t_prev: float, points_per_unit: int) -> np.ndarray:
        a, b = self.span(t_prev)
        count = self.n_points or max(2, int(math.ceil((b - a) * points_per_unit)) + 1)
        return time_grid(a, b, count)


@dataclass(frozen=True)
class BoundarySamples:
    """The two samples of the instant shared by phases ``earlier_phase`` and ``later_phase``"""
    time: float
    earlier: State
    later: State
    earlier_phase: int
    later_phase: int

    @property
    def discrepancy(self) -> float:
        return float(np.max(np.abs(self.earlier.as_array() - self.later.as_array())))


@dataclass(frozen=True)
class PhasedTrajectory:
    phases: tuple

    def __post_init__(self):
        object.__setattr__(self, "phases", tuple(self.phases))
        if not self.phases:
            raise ConfigurationError("PhasedTrajectory needs at least one phase")

    def __len__(self) -> int:
        return len(self.phases)

    def __getitem__(self, k: int) -> Trajectory:
        return self.phases[k]

    @property
    def N(self) -> float:
        return self.phases[0].N

    @property
    def params(self) -> SIRParams:
        """Parameters of the last (free-running) phase"""
        return self.phases[-1].params

    @property
    def final_state(self) -> State:
        return self.phases[-1].final_state

    def boundary(self, k: int) -> BoundarySamples:
        """Samples at the start of phase ``k`` (k >= 1)"""
        if not 1 <= k < len(self.phases):
            raise IndexError(f"no boundary before phase {k} in a {len(self.phases)}-phase run")
        prev, cur = self.phases[k - 1], self.phases[k]
        return BoundarySamples(float(cur.t[0]), prev.final_state, cur.initial_state, k - 1, k)

    def state_at_shift(self, k: int = 1, prefer: str = "earlier") -> State:
        b = self.boundary(k)
        if prefer == "earlier":
            return b.earlier
        if prefer == "later":
            return b.later
        raise ConfigurationError(f"prefer must be 'earlier' or 'later', got {prefer!r}")

    def arrays(self, boundary: str = "both") -> Dict[str, np.ndarray]:
        """
        Concatenate the phases into flat arrays t, S, I, R and ``phase``
        (index of the phase that produced each sample).
        """
        if boundary not in BOUNDARY_POLICIES:
            raise ConfigurationError(f"boundary must be one of {BOUNDARY_POLICIES}, got {boundary!r}")
        last = len(self.phases) - 1
        pieces = {c: [] for c in ("t",) + COMPARTMENTS + ("phase",)}
        for k, traj in enumerate(self.phases):
            lo, hi = 0, len(traj)
            if boundary == "earlier" and k > 0:
                lo = 1
            if boundary == "later" and k < last:
                hi -= 1
            pieces["t"].append(traj.t[lo:hi])
            for c in COMPARTMENTS:
                pieces[c].append(traj.compartment(c)[lo:hi])
            pieces["phase"].append(np.full(hi - lo, k, dtype=int))
        return {name: np.concatenate(parts) for name, parts in pieces.items()}

    def to_frame(self, boundary: str = "both") -> pd.DataFrame:
        return pd.DataFrame(self.arrays(boundary))

    def infected_sum(self, deduplicate: bool = False) -> float:
        """
        Sum of I over all samples, a proxy for the infected-time integral.

        With deduplicate=False every phase boundary contributes twice.
        With deduplicate=True the earlier phase's boundary sample is kept.
        """
        arr = self.arrays("earlier" if deduplicate else "both")
        return float(np.sum(arr["I"]))


class PhasedSimulation:
    """
    Runs a list of phases back to back, handing the last state of
    one phase to the next.

    Parameters:
    -----------
    phases: sequence of Phase
    t0: float
        Start time of the first phase when it is given by duration
    points_per_unit: int
        Grid density for phases without an explicit n_points
    model: callable, optional
        Right-hand side handed to integrate()
    settings: NumericSettings
    integrator_options:
        Extra keyword arguments for integrate() (method, rtol, ...)
    """
    def __init__(self, phases: Sequence[Phase], *, t0: float = 0.0,
                 points_per_unit: Optional[int] = None, model=None,
                 settings: NumericSettings = DEFAULTS, **integrator_options):
        phases = list(phases)
        if not phases:
            raise ConfigurationError("PhasedSimulation needs at least one phase")
        populations = {p.params.N for p in phases}
        if len(populations) != 1:
            raise ConfigurationError(f"all phases must share one population size, got {sorted(populations)}")
        self.phases = phases
        self.t0 = float(t0)
        self.points_per_unit = int(points_per_unit or settings.points_per_unit)
        self.model = model
        self.settings = settings
        self.integrator_options = integrator_options

    @classmethod
    def from_edges(cls, N: float, gamma: float, edges: Sequence[float],
                   betas: Sequence[float], **kwargs) -> "PhasedSimulation":
        """
        edges: strictly increasing times, length K+1 for K segments
        betas: length-K array of β for each segment; γ is shared
        """
        edges = np.asarray(edges, dtype=float)
        betas = np.asarray(betas, dtype=float)
        if edges.ndim != 1 or edges.size < 2 or not np.all(np.diff(edges) > 0):
            raise ConfigurationError("edges must be strictly increasing, len>=2")
        if betas.size != edges.size - 1:
            raise ConfigurationError("betas length must be len(edges)-1")
        phases = [Phase(SIRParams(b, gamma, N), start=a, end=e)
                  for a, e, b in zip(edges[:-1], edges[1:], betas)]
        return cls(phases, t0=float(edges[0]), **kwargs)

    def run(self, initial_state: State) -> PhasedTrajectory:
        state = initial_state
        t_prev = self.t0
        out: List[Trajectory] = []
        for k, phase in enumerate(self.phases):
            grid = phase.grid(t_prev, self.points_per_unit)
            if k > 0 and not math.isclose(grid[0], t_prev, rel_tol=0.0, abs_tol=1e-9):
                raise ConfigurationError(
                    f"phase {k} starts at t={grid[0]:g} but phase {k-1} ended at t={t_prev:g}"
                )
            try:
                traj = integrate(state, grid, phase.params, self.model,
                                 settings=self.settings, **self.integrator_options)
            except NumericFailure as e:
                raise PhaseFailure(k, e) from e
            logger.debug("phase %d: t=[%g, %g] beta=%g -> R/N=%.4f", k, grid[0], grid[-1],
                         phase.params.beta, traj.R[-1] / traj.N)
            out.append(traj)
            state = traj.final_state
            t_prev = float(grid[-1])
        return PhasedTrajectory(tuple(out))
