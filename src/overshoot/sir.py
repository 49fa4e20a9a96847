"""
===========================================================
sir.py
Last Updated: 2026-10-17
===========================================================

Description:
    Core deterministic SIR (Susceptible–Infectious–Recovered)
    compartment model: value objects and the ODE right-hand side.

    Defines:
        - SIRParams: immutable (beta, gamma, N) with derived R0
        - State: immutable (S, I, R) triple
        - ModelConfig: validated initial conditions + parameters
        - sir_rhs(): Computes the ODE right-hand side.
        - rk4_steps(): single classical Runge–Kutta step
        - CompartmentModel: adapter for scipy's solve_ivp

Example Usage:
    from overshoot.sir import ModelConfig
    cfg = ModelConfig.from_infected(beta=2.0, gamma=0.9, population=1000, I0=1)
    cfg.params.R0            # 2.222...

Notes:
    - Frequency-dependent transmission, closed population.
    - dS + dI + dR = 0 exactly, so S + I + R = N is conserved.
-----------------------------------------------------------
License: MIT
===========================================================
"""
from __future__ import annotations
import math
from dataclasses import dataclass, replace
from typing import Tuple

import numpy as np

from overshoot.errors import ConfigurationError


def _check_positive(name: str, value: float) -> float:
    value = float(value)
    if not (math.isfinite(value) and value > 0):
        raise ConfigurationError(f"{name} must be a positive finite number, got {value!r}")
    return value


def _check_nonnegative(name: str, value: float) -> float:
    value = float(value)
    if not (math.isfinite(value) and value >= 0):
        raise ConfigurationError(f"{name} must be a non-negative finite number, got {value!r}")
    return value


@dataclass(frozen=True)
class SIRParams:
    beta: float     # transmission rate
    gamma: float    # recovery/removal rate
    N: float        # population size

    def __post_init__(self):
        object.__setattr__(self, "beta", _check_positive("beta", self.beta))
        object.__setattr__(self, "gamma", _check_positive("gamma", self.gamma))
        object.__setattr__(self, "N", _check_positive("N", self.N))

    @property
    def R0(self) -> float:
        """Basic reproduction number beta / gamma"""
        return self.beta / self.gamma

    @property
    def herd_immunity_threshold(self) -> float:
        """Immune fraction 1 - 1/R0 at which I stops growing (0 when R0 <= 1)"""
        return max(0.0, 1.0 - 1.0 / self.R0)

    def with_beta(self, beta: float) -> "SIRParams":
        return replace(self, beta=beta)


@dataclass(frozen=True)
class State:
    S: float
    I: float
    R: float

    @property
    def total(self) -> float:
        return self.S + self.I + self.R

    def fractions(self, N: float) -> Tuple[float, float, float]:
        return self.S / N, self.I / N, self.R / N

    def as_array(self) -> np.ndarray:
        return np.array([self.S, self.I, self.R], dtype=float)

    @classmethod
    def from_array(cls, y) -> "State":
        S, I, R = (float(v) for v in y)
        return cls(S, I, R)


@dataclass(frozen=True)
class ModelConfig:
    """
    Validated model configuration.

    Parameters:
    -----------
    beta: float
        Transmission rate (contacts per time x probability of transmission per contact)
    gamma: float
        Recovery rate (1/gamma = mean infectious period)
    population: float
        Total population size
    initial_susceptible, initial_infected, initial_recovered: float
        Initial compartment sizes; must sum to ``population``
    """
    beta: float
    gamma: float
    population: float
    initial_susceptible: float
    initial_infected: float
    initial_recovered: float = 0.0

    def __post_init__(self):
        _check_positive("population", self.population)
        S0 = _check_nonnegative("initial_susceptible", self.initial_susceptible)
        I0 = _check_nonnegative("initial_infected", self.initial_infected)
        R0 = _check_nonnegative("initial_recovered", self.initial_recovered)
        total = S0 + I0 + R0
        if not math.isclose(total, float(self.population), rel_tol=1e-9, abs_tol=1e-9):
            raise ConfigurationError(
                f"initial compartments sum to {total:g}, expected population {self.population:g}"
            )
        # validates beta and gamma
        self.params

    @classmethod
    def from_infected(cls, beta: float, gamma: float, population: float,
                      I0: float, R0_init: float = 0.0) -> "ModelConfig":
        """Everyone not initially infected or recovered starts susceptible"""
        return cls(beta, gamma, population, float(population) - I0 - R0_init, I0, R0_init)

    @property
    def params(self) -> SIRParams:
        return SIRParams(self.beta, self.gamma, self.population)

    @property
    def initial_state(self) -> State:
        return State(float(self.initial_susceptible), float(self.initial_infected),
                     float(self.initial_recovered))


def sir_rhs(state: State, params: SIRParams) -> Tuple[float, float, float]:
    """Right-hand side of the SIR equations"""
    S, I = state.S, state.I
    infection = params.beta * I * S / params.N
    dS = -infection
    dI = infection - params.gamma * I
    dR = params.gamma * I
    return dS, dI, dR


def rk4_steps(S, I, R, h, params: SIRParams, rhs=sir_rhs):
    """single RK4 step"""
    k1 = rhs(State(S, I, R), params)
    k2 = rhs(State(S + 0.5*h*k1[0], I + 0.5*h*k1[1], R + 0.5*h*k1[2]), params)
    k3 = rhs(State(S + 0.5*h*k2[0], I + 0.5*h*k2[1], R + 0.5*h*k2[2]), params)
    k4 = rhs(State(S + h*k3[0], I + h*k3[1], R + h*k3[2]), params)
    S_next = S + (h/6)*(k1[0] + 2*k2[0] + 2*k3[0] + k4[0])
    I_next = I + (h/6)*(k1[1] + 2*k2[1] + 2*k3[1] + k4[1])
    R_next = R + (h/6)*(k1[2] + 2*k2[2] + 2*k3[2] + k4[2])
    return S_next, I_next, R_next


class CompartmentModel:
    """
    Wraps a state-level right-hand side so it can be handed to
    scipy.integrate.solve_ivp, which works on flat arrays.
    """
    def __init__(self, rhs=sir_rhs):
        self.rhs = rhs

    def __call__(self, state: State, params: SIRParams) -> Tuple[float, float, float]:
        return self.rhs(state, params)

    def deriv(self, t: float, y: np.ndarray, params: SIRParams) -> np.ndarray:
        """
        Compute derivatives for the SIR model

        Parameters:
        -----------
        t: float
            current time (not used in autonomous system, but required by solve_ivp)
        y: array-like
            current state [S, I, R]
        params: SIRParams

        Returns:
        --------
        dydt: np.ndarray
            Derivatives [dS/dt, dI/dt, dR/dt]
        """
        return np.asarray(self.rhs(State(y[0], y[1], y[2]), params), dtype=float)
