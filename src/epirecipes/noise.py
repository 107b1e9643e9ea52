"""Observation models for simulated case data.

A latent trajectory (here the daily new cases from the ODE) produces an
observed count series by sampling from a count distribution. This is an
observation process, not additive noise: the observations are a new series
drawn with the latent values as means.
"""


from typing import Optional, Tuple

import numpy as np

from .config import DEFAULTS
from .model import SIRParams, initial_state
from .ode import ODESolution, cases_from_solution, solve_sir_ode


def _ensure_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    """Return a NumPy Generator, creating a default one when not provided."""
    return rng or np.random.default_rng()


def observe_poisson(
    x: np.ndarray, rho: float = 1.0, rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """Draw Poisson counts with mean rho * x.

    Parameters
    ----------
    x:
        Latent series (1D `(T,)` or batch `(..., T)`), typically new cases per interval.
    rho:
        Reporting rate; the Poisson mean is `lambda_t = rho * x_t`.
    rng:
        Optional NumPy random generator for reproducibility.

    Returns
    -------
    np.ndarray
        Observed counts, same shape as `x`, dtype `int64`.
    """
    rng = _ensure_rng(rng)
    # Clamp to avoid negative rates from solver round-off.
    lam = np.clip(rho * np.asarray(x, dtype=float), 0.0, None)
    return rng.poisson(lam).astype(np.int64, copy=False)


def observe_negbin(
    x: np.ndarray, rho: float, k: float, rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """Draw negative binomial counts with mean rho * x and size k.

    The variance is `mu + mu^2 / k`; lower k means more over-dispersion.
    """
    if k <= 0:
        raise ValueError("k must be positive")
    rng = _ensure_rng(rng)
    mu = np.clip(rho * np.asarray(x, dtype=float), 0.0, None)
    p = k / (k + mu)
    # mu=0 gives p=1, which always samples 0.
    return rng.negative_binomial(k, p).astype(np.int64, copy=False)


def simulate_case_data(
    params: SIRParams,
    N: float = DEFAULTS.N,
    i0_frac: float = DEFAULTS.i0_frac,
    l: int = int(DEFAULTS.tmax),
    obs_dt: float = DEFAULTS.obs_dt,
    rng: Optional[np.random.Generator] = None,
    rho: float = 1.0,
) -> Tuple[ODESolution, np.ndarray, np.ndarray]:
    """Solve the ODE over [0, l * obs_dt] and observe new cases per interval.

    Returns (solution, cases, observations) where cases and observations have
    length l.
    """
    if l <= 0:
        raise ValueError("l must be positive")
    sol = solve_sir_ode(params, initial_state(N, i0_frac), tspan=(0.0, l * obs_dt), saveat=obs_dt)
    cases = cases_from_solution(sol)
    return sol, cases, observe_poisson(cases, rho=rho, rng=rng)
