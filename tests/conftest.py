import pytest

from overshoot.sir import ModelConfig, SIRParams


@pytest.fixture
def scenario_a() -> ModelConfig:
    """N=1000, beta=2, gamma=0.9, one initial infection."""
    return ModelConfig(beta=2.0, gamma=0.9, population=1000,
                       initial_susceptible=999, initial_infected=1, initial_recovered=0)


@pytest.fixture
def params_a(scenario_a) -> SIRParams:
    return scenario_a.params
