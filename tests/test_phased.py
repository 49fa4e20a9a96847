"""Tests for overshoot.phased — multi-phase runs and the boundary policy."""

import numpy as np
import pytest

from overshoot.errors import ConfigurationError, NumericFailure, PhaseFailure
from overshoot.integrate import integrate, time_grid
from overshoot.phased import Phase, PhasedSimulation
from overshoot.sir import SIRParams, sir_rhs


@pytest.fixture
def two_phase(params_a):
    """Intervention at beta=1 for 10 days, then baseline beta=2 until t=50."""
    return [Phase(params_a.with_beta(1.0), duration=10), Phase(params_a, duration=40)]


@pytest.fixture
def run_two_phase(two_phase, scenario_a):
    return PhasedSimulation(two_phase, points_per_unit=10).run(scenario_a.initial_state)


# ═══════════════════════════════════════════════════════════════════════
# STATE HANDOFF
# ═══════════════════════════════════════════════════════════════════════

def test_phase_grids(run_two_phase):
    first, second = run_two_phase.phases
    assert len(first) == 101 and len(second) == 401
    assert first.t[-1] == pytest.approx(10.0)
    assert second.t[0] == pytest.approx(10.0) and second.t[-1] == pytest.approx(50.0)


def test_later_phase_starts_from_previous_final_state(run_two_phase):
    first, second = run_two_phase.phases
    assert second.initial_state == first.final_state
    assert first.params.beta == 1.0 and second.params.beta == 2.0


def test_first_phase_starts_from_config(run_two_phase, scenario_a):
    assert run_two_phase[0].initial_state == scenario_a.initial_state


def test_single_phase_matches_direct_integration(params_a, scenario_a):
    pt = PhasedSimulation([Phase(params_a, duration=50)], points_per_unit=10).run(scenario_a.initial_state)
    direct = integrate(scenario_a.initial_state, time_grid(0, 50, 501), params_a)
    np.testing.assert_allclose(pt[0].R, direct.R)


def test_conservation_across_phases(run_two_phase):
    arr = run_two_phase.arrays()
    np.testing.assert_allclose(arr["S"] + arr["I"] + arr["R"], 1000.0, atol=1e-3)


def test_intervention_slows_epidemic(run_two_phase, params_a, scenario_a):
    free = integrate(scenario_a.initial_state, time_grid(0, 10, 101), params_a)
    assert run_two_phase[0].final_state.R < free.final_state.R


# ═══════════════════════════════════════════════════════════════════════
# BOUNDARY POLICY
# ═══════════════════════════════════════════════════════════════════════

def test_boundary_samples_are_tagged(run_two_phase):
    b = run_two_phase.boundary(1)
    assert b.time == pytest.approx(10.0)
    assert (b.earlier_phase, b.later_phase) == (0, 1)
    assert b.earlier == run_two_phase[0].final_state
    assert b.later == run_two_phase[1].initial_state
    assert b.discrepancy == pytest.approx(0.0, abs=1e-9)


@pytest.mark.parametrize("k", [0, 2])
def test_no_boundary_outside_range(run_two_phase, k):
    with pytest.raises(IndexError):
        run_two_phase.boundary(k)


def test_both_policy_keeps_duplicate(run_two_phase):
    arr = run_two_phase.arrays("both")
    assert arr["t"].size == 502
    shared = np.flatnonzero(np.isclose(arr["t"], 10.0))
    assert list(arr["phase"][shared]) == [0, 1]


@pytest.mark.parametrize("policy,dropped_phase", [("earlier", 1), ("later", 0)])
def test_single_value_policies(run_two_phase, policy, dropped_phase):
    arr = run_two_phase.arrays(policy)
    assert arr["t"].size == 501
    assert np.all(np.diff(arr["t"]) > 0)
    shared = np.flatnonzero(np.isclose(arr["t"], 10.0))
    assert len(shared) == 1
    assert arr["phase"][shared[0]] != dropped_phase


def test_unknown_policy(run_two_phase):
    with pytest.raises(ConfigurationError):
        run_two_phase.arrays("middle")


def test_to_frame_has_phase_column(run_two_phase):
    df = run_two_phase.to_frame("earlier")
    assert list(df.columns) == ["t", "S", "I", "R", "phase"]
    assert set(df["phase"]) == {0, 1}


def test_infected_sum_double_counts_boundary(run_two_phase):
    raw = run_two_phase.infected_sum()
    dedup = run_two_phase.infected_sum(deduplicate=True)
    assert raw - dedup == pytest.approx(run_two_phase.boundary(1).earlier.I)


def test_state_at_shift(run_two_phase):
    assert run_two_phase.state_at_shift(1) == run_two_phase[0].final_state
    assert run_two_phase.state_at_shift(1, prefer="later") == run_two_phase[1].initial_state
    with pytest.raises(ConfigurationError):
        run_two_phase.state_at_shift(1, prefer="average")


# ═══════════════════════════════════════════════════════════════════════
# CONSTRUCTION
# ═══════════════════════════════════════════════════════════════════════

def test_from_edges_matches_phase_list(run_two_phase, scenario_a):
    sim = PhasedSimulation.from_edges(1000, 0.9, edges=[0, 10, 50], betas=[1.0, 2.0], points_per_unit=10)
    pt = sim.run(scenario_a.initial_state)
    np.testing.assert_allclose(pt[1].R, run_two_phase[1].R)


@pytest.mark.parametrize("edges,betas", [([0], []), ([0, 10, 5], [1, 2]), ([0, 10, 20], [1.0])])
def test_from_edges_validation(edges, betas):
    with pytest.raises(ConfigurationError):
        PhasedSimulation.from_edges(1000, 0.9, edges, betas)


@pytest.mark.parametrize("kwargs", [
    {},
    {"duration": 5, "start": 0, "end": 5},
    {"start": 0},
    {"duration": -1},
    {"start": 5, "end": 5},
])
def test_phase_validation(params_a, kwargs):
    with pytest.raises(ConfigurationError):
        Phase(params_a, **kwargs)


def test_gap_between_phases_rejected(params_a, scenario_a):
    sim = PhasedSimulation([Phase(params_a, start=0, end=10), Phase(params_a, start=12, end=20)])
    with pytest.raises(ConfigurationError, match="phase 1"):
        sim.run(scenario_a.initial_state)


def test_mixed_population_rejected(params_a):
    with pytest.raises(ConfigurationError):
        PhasedSimulation([Phase(params_a, duration=1), Phase(SIRParams(2.0, 0.9, 500), duration=1)])


def test_explicit_point_count(params_a, scenario_a):
    pt = PhasedSimulation([Phase(params_a, duration=10, n_points=3)]).run(scenario_a.initial_state)
    np.testing.assert_allclose(pt[0].t, [0.0, 5.0, 10.0])


# ═══════════════════════════════════════════════════════════════════════
# FAILURES
# ═══════════════════════════════════════════════════════════════════════

def test_failure_tagged_with_phase_index(two_phase, scenario_a):
    def broken_at_baseline(state, params):
        return (np.nan, np.nan, np.nan) if params.beta > 1.5 else sir_rhs(state, params)

    sim = PhasedSimulation(two_phase, model=broken_at_baseline, method="rk4")
    with pytest.raises(PhaseFailure) as info:
        sim.run(scenario_a.initial_state)
    assert info.value.phase_index == 1
    assert info.value.time == pytest.approx(10.0)
    assert isinstance(info.value, NumericFailure)
    assert isinstance(info.value.__cause__, NumericFailure)
