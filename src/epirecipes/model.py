"""Shared SIR parameters, rates and state checks.

Every formulation in this package (ODE, discrete map, jump process, agent
based, reaction network) is driven by the same three rates:

- beta: probability of transmission per contact
- c: contact rate per individual
- gamma: recovery rate

The force of infection on a susceptible is ``beta * c * I / N`` so the
infection rate for the whole population is ``beta * c * I / N * S``.
"""


from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import DEFAULTS


@dataclass(frozen=True)
class SIRParams:
    beta: float = DEFAULTS.beta
    c: float = DEFAULTS.c
    gamma: float = DEFAULTS.gamma

    def __post_init__(self) -> None:
        for name in ("beta", "c", "gamma"):
            value = getattr(self, name)
            if not np.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be a non-negative finite rate, got {value}")

    @property
    def R0(self) -> float:
        """Basic reproduction number ``beta * c / gamma``."""
        if self.gamma == 0:
            return float("inf")
        return self.beta * self.c / self.gamma

    def as_array(self) -> np.ndarray:
        return np.array([self.beta, self.c, self.gamma], dtype=float)

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "SIRParams":
        beta, c, gamma = (float(v) for v in values)
        return cls(beta=beta, c=c, gamma=gamma)


def initial_state(N: float = DEFAULTS.N, i0_frac: float = DEFAULTS.i0_frac) -> Tuple[float, float, float]:
    """Split a population of N into (S, I, R) with a fraction i0_frac infected."""
    if N <= 0:
        raise ValueError("N must be positive")
    if not 0 <= i0_frac <= 1:
        raise ValueError("i0_frac must be in [0, 1]")
    I = i0_frac * N
    return (N - I, I, 0.0)


def rate_to_proportion(r: float, t: float) -> float:
    """Convert a rate into the probability of at least one event within t."""
    return 1.0 - np.exp(-r * t)


def infection_rate(S: float, I: float, R: float, params: SIRParams) -> float:
    N = S + I + R
    if N <= 0:
        return 0.0
    return params.beta * params.c * I / N * S


def recovery_rate(I: float, params: SIRParams) -> float:
    return params.gamma * I


def check_state(u: Sequence[float], N: Optional[float] = None, atol: float = 1e-6) -> None:
    """Raise ValueError if (S, I, R) is negative or does not sum to N."""
    u = np.asarray(u, dtype=float)
    if np.any(u[:3] < -atol):
        raise ValueError(f"negative compartment in state {u[:3].tolist()}")
    if N is not None and abs(float(np.sum(u[:3])) - N) > atol * max(1.0, N):
        raise ValueError(f"state {u[:3].tolist()} does not conserve population {N}")
