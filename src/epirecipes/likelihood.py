"""Likelihood-based inference for the ODE model.

The unknowns are the initial infected fraction i0 and the transmission
probability beta; N, c, gamma and the observation interval are held fixed.
Observed daily cases are Poisson around the new cases implied by the ODE.

Includes a multi-start maximum likelihood fit, profile likelihood with
chi-square confidence intervals, and a likelihood surface over a grid.
"""


from dataclasses import dataclass, field
import logging
import time
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize
from scipy.stats import chi2, poisson

from .config import DEFAULTS
from .ode import daily_cases

logger = logging.getLogger(__name__)

PARAM_NAMES = ("i0", "beta")
# Finite stand-in for -log(0) so optimizers keep moving instead of stalling on inf.
PENALTY = 1e10

Fixed = Tuple[float, float, float, float]
DEFAULT_FIXED: Fixed = (DEFAULTS.N, DEFAULTS.c, DEFAULTS.gamma, DEFAULTS.obs_dt)
DEFAULT_BOUNDS: List[Tuple[float, float]] = [DEFAULTS.i0_range, DEFAULTS.beta_range]


def _in_bounds(theta: Sequence[float], bounds: Optional[Sequence[Tuple[float, float]]]) -> bool:
    if bounds is None:
        return True
    return all(low <= x <= high for x, (low, high) in zip(theta, bounds))


def poisson_loglik(
    theta: Sequence[float],
    y: np.ndarray,
    fixed: Fixed = DEFAULT_FIXED,
    bounds: Optional[Sequence[Tuple[float, float]]] = None,
) -> float:
    """Poisson log-likelihood of y given theta = (i0, beta).

    Returns -inf when theta is outside bounds or when the model produces a
    non-positive case count anywhere.
    """
    i0, beta = (float(x) for x in theta)
    if not _in_bounds((i0, beta), bounds) or not 0 < i0 < 1 or beta < 0:
        return -np.inf
    N, c, gamma, obs_dt = fixed
    y = np.asarray(y)
    X = daily_cases(i0, beta, len(y), N=N, c=c, gamma=gamma, obs_dt=obs_dt)
    if np.any(X <= 0):
        return -np.inf
    return float(np.sum(poisson.logpmf(y, X)))


def negative_loglik(
    y: np.ndarray,
    fixed: Fixed = DEFAULT_FIXED,
    bounds: Optional[Sequence[Tuple[float, float]]] = None,
) -> Callable[[np.ndarray], float]:
    """Objective for minimizers: -loglik with PENALTY in place of +inf."""

    def nll(theta: np.ndarray) -> float:
        ll = poisson_loglik(theta, y, fixed=fixed, bounds=bounds)
        return -ll if np.isfinite(ll) else PENALTY

    return nll


@dataclass
class FitResult:
    params: np.ndarray
    loss: float
    times: List[float]


def _fit_with_multistart(
    objective: Callable[[np.ndarray], float],
    bounds: List[Tuple[float, float]],
    n_starts: int,
    rng: np.random.Generator,
    method: str = "Nelder-Mead",
) -> FitResult:
    best_params = None
    best_loss = np.inf
    times = []

    # Multi-start optimization for robustness to local minima.
    for _ in range(n_starts):
        x0 = np.array([rng.uniform(low, high) for low, high in bounds], dtype=float)
        start = time.perf_counter()
        res = minimize(objective, x0=x0, bounds=bounds, method=method)
        times.append(time.perf_counter() - start)
        if res.fun < best_loss:
            best_loss = float(res.fun)
            best_params = np.asarray(res.x, dtype=float)

    return FitResult(params=best_params, loss=best_loss, times=times)


def fit_mle(
    y: np.ndarray,
    fixed: Fixed = DEFAULT_FIXED,
    bounds: Sequence[Tuple[float, float]] = tuple(DEFAULT_BOUNDS),
    n_starts: int = 5,
    rng: Optional[np.random.Generator] = None,
    method: str = "Nelder-Mead",
) -> FitResult:
    """Maximum likelihood estimate of (i0, beta) from daily case counts."""
    if n_starts <= 0:
        raise ValueError("n_starts must be positive")
    rng = rng or np.random.default_rng(DEFAULTS.seed)
    bounds = [tuple(b) for b in bounds]
    fit = _fit_with_multistart(negative_loglik(y, fixed, bounds), bounds, n_starts, rng, method=method)
    logger.info("MLE i0=%.5f beta=%.5f nll=%.3f", fit.params[0], fit.params[1], fit.loss)
    return fit


@dataclass
class ProfileResult:
    name: str
    grid: np.ndarray
    profile_nll: np.ndarray
    mle_value: float
    ci: Tuple[float, float]
    threshold: float = field(default=np.nan)
    min_nll: float = field(default=np.nan)


def _crossing(x0: float, x1: float, f0: float, f1: float, level: float) -> float:
    if f1 == f0:
        return x0
    return x0 + (level - f0) * (x1 - x0) / (f1 - f0)


def confidence_interval(
    grid: np.ndarray, profile: np.ndarray, level: float = 0.95
) -> Tuple[Tuple[float, float], float]:
    """Interval where profile - min <= chi2.ppf(level, 1) / 2.

    Crossings are linearly interpolated; if the profile never rises above
    the threshold on one side the interval stops at the grid edge.
    """
    best = int(np.argmin(profile))
    threshold = float(profile[best] + chi2.ppf(level, 1) / 2.0)
    lo = best
    while lo > 0 and profile[lo - 1] <= threshold:
        lo -= 1
    hi = best
    while hi < len(grid) - 1 and profile[hi + 1] <= threshold:
        hi += 1
    lower = grid[lo] if lo == 0 else _crossing(grid[lo - 1], grid[lo], profile[lo - 1], profile[lo], threshold)
    upper = (
        grid[hi]
        if hi == len(grid) - 1
        else _crossing(grid[hi], grid[hi + 1], profile[hi], profile[hi + 1], threshold)
    )
    return (float(lower), float(upper)), threshold


def profile_likelihood(
    nll: Callable[[np.ndarray], float],
    mle: Sequence[float],
    bounds: Sequence[Tuple[float, float]],
    index: int,
    grid: Optional[np.ndarray] = None,
    n_points: int = 41,
    names: Sequence[str] = PARAM_NAMES,
    level: float = 0.95,
) -> ProfileResult:
    """Profile one parameter, re-optimizing the others at each grid value."""
    mle = np.asarray(mle, dtype=float)
    if not 0 <= index < mle.size:
        raise ValueError(f"index must be in [0, {mle.size})")
    if grid is None:
        grid = np.linspace(bounds[index][0], bounds[index][1], n_points)
    grid = np.asarray(grid, dtype=float)
    others = [j for j in range(mle.size) if j != index]
    other_bounds = [tuple(bounds[j]) for j in others]

    profile = np.empty(grid.size, dtype=float)
    x_start = mle[others]
    for g, value in enumerate(grid):

        def restricted(z: np.ndarray, value: float = value) -> float:
            theta = np.empty_like(mle)
            theta[index] = value
            theta[others] = z
            return nll(theta)

        if others:
            res = minimize(restricted, x0=x_start, bounds=other_bounds, method="Nelder-Mead")
            profile[g] = float(res.fun)
            # Warm start the next grid point from this optimum.
            if res.fun < PENALTY:
                x_start = res.x
        else:
            profile[g] = restricted(np.empty(0))

    ci, threshold = confidence_interval(grid, profile, level=level)
    name = names[index] if index < len(names) else f"theta{index}"
    logger.info("Profile %s: %.0f%% CI [%.5f, %.5f]", name, level * 100, ci[0], ci[1])
    return ProfileResult(
        name=name,
        grid=grid,
        profile_nll=profile,
        mle_value=float(mle[index]),
        ci=ci,
        min_nll=float(min(nll(mle), profile.min())),
        threshold=threshold,
    )


def loglik_surface(
    y: np.ndarray,
    grid_i0: np.ndarray,
    grid_beta: np.ndarray,
    fixed: Fixed = DEFAULT_FIXED,
) -> np.ndarray:
    """Log-likelihood over a grid; rows follow grid_i0, columns grid_beta."""
    surface = np.empty((len(grid_i0), len(grid_beta)), dtype=float)
    for a, i0 in enumerate(grid_i0):
        for b, beta in enumerate(grid_beta):
            surface[a, b] = poisson_loglik((i0, beta), y, fixed=fixed)
    return surface
