"""Discrete-time SIR maps.

Rates are turned into per-step proportions with ``1 - exp(-r * dt)`` so that
the deterministic map and the chain-binomial version agree in expectation.
"""


from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np

from .model import SIRParams, rate_to_proportion


@dataclass
class DiscreteSolution:
    t: np.ndarray
    u: np.ndarray  # shape (nsteps + 1, 3)


def sir_discrete_deterministic(u: Sequence[float], p: Sequence[float]) -> np.ndarray:
    """One step of the deterministic map with p = (beta, gamma, dt)."""
    S, I, R = u
    beta, gamma, dt = p
    N = S + I + R
    infection = rate_to_proportion(beta * I / N, dt) * S
    recovery = rate_to_proportion(gamma, dt) * I
    return np.array([S - infection, I + infection - recovery, R + recovery])


def solve_discrete_deterministic(
    u0: Sequence[float],
    p: Sequence[float],
    nsteps: int,
) -> DiscreteSolution:
    """Iterate the deterministic map for nsteps steps of size p[2]."""
    if nsteps <= 0:
        raise ValueError("nsteps must be positive")
    dt = float(p[2])
    if dt <= 0:
        raise ValueError("dt must be positive")
    u = np.empty((nsteps + 1, 3), dtype=float)
    u[0] = np.asarray(u0, dtype=float)
    for k in range(nsteps):
        u[k + 1] = sir_discrete_deterministic(u[k], p)
    return DiscreteSolution(t=np.arange(nsteps + 1) * dt, u=u)


def sir_discrete_stochastic(
    u: Sequence[int],
    params: SIRParams,
    dt: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """One chain-binomial step: infections and recoveries drawn as binomials."""
    S, I, R = (int(x) for x in u)
    N = S + I + R
    p_inf = rate_to_proportion(params.beta * params.c * I / N, dt) if N > 0 else 0.0
    p_rec = rate_to_proportion(params.gamma, dt)
    infection = rng.binomial(S, p_inf)
    recovery = rng.binomial(I, p_rec)
    return np.array([S - infection, I + infection - recovery, R + recovery], dtype=np.int64)


def solve_discrete_stochastic(
    u0: Sequence[int],
    params: SIRParams,
    dt: float,
    nsteps: int,
    rng: Optional[Union[np.random.Generator, int]] = None,
) -> DiscreteSolution:
    """Simulate the chain-binomial SIR for nsteps steps."""
    if nsteps <= 0:
        raise ValueError("nsteps must be positive")
    if dt <= 0:
        raise ValueError("dt must be positive")
    rng = np.random.default_rng(rng)
    u = np.empty((nsteps + 1, 3), dtype=np.int64)
    u[0] = np.asarray(u0, dtype=np.int64)
    if np.any(u[0] < 0):
        raise ValueError("initial counts must be non-negative")
    for k in range(nsteps):
        u[k + 1] = sir_discrete_stochastic(u[k], params, dt, rng)
    return DiscreteSolution(t=np.arange(nsteps + 1) * dt, u=u)
