"""Tests for overshoot.sir — value objects and the SIR right-hand side."""

import dataclasses

import numpy as np
import pytest

from overshoot.errors import ConfigurationError
from overshoot.sir import CompartmentModel, ModelConfig, SIRParams, State, rk4_steps, sir_rhs


# ═══════════════════════════════════════════════════════════════════════
# PARAMETERS
# ═══════════════════════════════════════════════════════════════════════

def test_R0_and_herd_immunity(params_a):
    assert params_a.R0 == pytest.approx(2.0 / 0.9)
    assert params_a.herd_immunity_threshold == pytest.approx(0.55)


def test_herd_immunity_zero_below_one():
    assert SIRParams(0.5, 1.0, 100).herd_immunity_threshold == 0.0


@pytest.mark.parametrize("beta,gamma,N", [(0, 1, 10), (1, -1, 10), (1, 1, 0), (float("nan"), 1, 10)])
def test_params_reject_invalid(beta, gamma, N):
    with pytest.raises(ConfigurationError):
        SIRParams(beta, gamma, N)


def test_params_are_immutable(params_a):
    with pytest.raises(dataclasses.FrozenInstanceError):
        params_a.beta = 3.0
    lowered = params_a.with_beta(1.0)
    assert lowered.beta == 1.0 and params_a.beta == 2.0
    assert lowered.gamma == params_a.gamma and lowered.N == params_a.N


# ═══════════════════════════════════════════════════════════════════════
# MODEL CONFIG
# ═══════════════════════════════════════════════════════════════════════

def test_config_initial_state(scenario_a):
    assert scenario_a.initial_state == State(999.0, 1.0, 0.0)
    assert scenario_a.params == SIRParams(2.0, 0.9, 1000)


def test_config_sum_must_match_population():
    with pytest.raises(ConfigurationError, match="sum"):
        ModelConfig(2.0, 0.9, 1000, 990, 1, 0)


def test_config_rejects_negative_compartment():
    with pytest.raises(ConfigurationError):
        ModelConfig(2.0, 0.9, 1000, 1001, -1, 0)


def test_config_rejects_bad_rates():
    with pytest.raises(ConfigurationError):
        ModelConfig(-2.0, 0.9, 1000, 999, 1, 0)


def test_from_infected():
    cfg = ModelConfig.from_infected(3.0, 1.0, 500, I0=5, R0_init=45)
    assert cfg.initial_state == State(450.0, 5.0, 45.0)


# ═══════════════════════════════════════════════════════════════════════
# RIGHT-HAND SIDE
# ═══════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("state", [State(999, 1, 0), State(300, 200, 500), State(0, 10, 990)])
def test_rhs_conserves_population(state, params_a):
    dS, dI, dR = sir_rhs(state, params_a)
    assert dS + dI + dR == pytest.approx(0.0, abs=1e-12)
    assert dS <= 0 and dR >= 0


def test_rhs_values():
    dS, dI, dR = sir_rhs(State(500, 100, 400), SIRParams(2.0, 0.5, 1000))
    assert dS == pytest.approx(-100.0)
    assert dI == pytest.approx(50.0)
    assert dR == pytest.approx(50.0)


def test_compartment_model_deriv_matches_rhs(params_a):
    model = CompartmentModel()
    y = np.array([800.0, 150.0, 50.0])
    np.testing.assert_allclose(model.deriv(0.0, y, params_a), sir_rhs(State(*y), params_a))


def test_rk4_step_conserves(params_a):
    S, I, R = rk4_steps(999.0, 1.0, 0.0, 0.1, params_a)
    assert S + I + R == pytest.approx(1000.0)
    assert S < 999.0 and R > 0.0
