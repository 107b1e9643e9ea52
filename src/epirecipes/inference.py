"""Sampling-based Bayesian inference for the ODE model.

The generative model draws the initial infected fraction i0 and the
transmission probability beta from uniform priors, solves the SIR ODE and
emits Poisson observations of the daily new cases. Three samplers target
the posterior over (i0, beta):

- importance resampling with the prior as proposal,
- random-walk Metropolis-Hastings with truncated-normal proposals,
- a particle filter that adds one observation at a time, resampling when
  the effective sample size drops and rejuvenating with MH moves.
"""


from dataclasses import dataclass, field
import logging
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.special import logsumexp
from scipy.stats import poisson, truncnorm

from .config import DEFAULTS
from .ode import ODESolution, cases_from_solution, daily_cases, solve_sir_ode

logger = logging.getLogger(__name__)

PARAM_NAMES = ("i0", "beta")
DEFAULT_SCALES = (0.002, 0.001)


@dataclass
class Trace:
    choices: Dict[str, float]
    cases: np.ndarray
    observations: np.ndarray
    score: float

    def __getitem__(self, name: str) -> float:
        return self.choices[name]

    @property
    def theta(self) -> np.ndarray:
        return np.array([self.choices[name] for name in PARAM_NAMES], dtype=float)


class SIRGenerativeModel:
    """Uniform priors on (i0, beta), ODE dynamics, Poisson observations."""

    def __init__(
        self,
        l: int = int(DEFAULTS.tmax),
        N: float = float(DEFAULTS.N),
        c: float = DEFAULTS.c,
        gamma: float = DEFAULTS.gamma,
        obs_dt: float = DEFAULTS.obs_dt,
        i0_bounds: Tuple[float, float] = DEFAULTS.i0_range,
        beta_bounds: Tuple[float, float] = DEFAULTS.beta_range,
    ):
        if l <= 0:
            raise ValueError("l must be positive")
        self.l = int(l)
        self.N = N
        self.c = c
        self.gamma = gamma
        self.obs_dt = obs_dt
        self.bounds = np.array([i0_bounds, beta_bounds], dtype=float)
        if np.any(self.bounds[:, 1] <= self.bounds[:, 0]):
            raise ValueError("prior bounds must satisfy low < high")

    @property
    def fixed_args(self) -> Tuple[float, float, float, float]:
        return (self.N, self.c, self.gamma, self.obs_dt)

    def sample_prior(self, rng: np.random.Generator, size: Optional[int] = None) -> np.ndarray:
        low, high = self.bounds[:, 0], self.bounds[:, 1]
        if size is None:
            return rng.uniform(low, high)
        return rng.uniform(low, high, size=(size, 2))

    def log_prior(self, theta: Sequence[float]) -> float:
        theta = np.asarray(theta, dtype=float)
        if np.any(theta < self.bounds[:, 0]) or np.any(theta > self.bounds[:, 1]):
            return -np.inf
        return float(-np.sum(np.log(self.bounds[:, 1] - self.bounds[:, 0])))

    def cases(self, theta: Sequence[float], l: Optional[int] = None) -> np.ndarray:
        i0, beta = theta
        return daily_cases(
            i0, beta, l or self.l, N=self.N, c=self.c, gamma=self.gamma, obs_dt=self.obs_dt
        )

    def simulate(self, theta: Sequence[float], l: Optional[int] = None) -> ODESolution:
        i0, beta = theta
        I = i0 * self.N
        return solve_sir_ode(
            (beta, self.c, self.gamma),
            (self.N - I, I, 0.0, 0.0),
            tspan=(0.0, (l or self.l) * self.obs_dt),
            saveat=self.obs_dt,
        )

    def log_likelihood(
        self,
        theta: Sequence[float],
        y: np.ndarray,
        upto: Optional[int] = None,
        cases: Optional[np.ndarray] = None,
    ) -> float:
        """Log-likelihood of the first `upto` observations (all by default)."""
        y = np.asarray(y)
        t = len(y) if upto is None else int(upto)
        if t == 0:
            return 0.0
        X = self.cases(theta, t) if cases is None else np.asarray(cases)[:t]
        return float(np.sum(poisson.logpmf(y[:t], X)))

    def log_joint(
        self,
        theta: Sequence[float],
        y: np.ndarray,
        upto: Optional[int] = None,
        cases: Optional[np.ndarray] = None,
    ) -> float:
        lp = self.log_prior(theta)
        if not np.isfinite(lp):
            # Skip the ODE solve outside the prior support.
            return -np.inf
        return lp + self.log_likelihood(theta, y, upto=upto, cases=cases)

    def generate(
        self,
        rng: np.random.Generator,
        constraints: Optional[Mapping[str, object]] = None,
    ) -> Trace:
        """Sample a trace, holding any constrained choices fixed.

        Constraints may fix "i0", "beta" and/or the observation vector "y".
        """
        constraints = dict(constraints or {})
        unknown = set(constraints) - set(PARAM_NAMES) - {"y"}
        if unknown:
            raise KeyError(f"unknown constrained choices {sorted(unknown)}")
        draw = self.sample_prior(rng)
        choices = {
            name: float(constraints.get(name, draw[j])) for j, name in enumerate(PARAM_NAMES)
        }
        theta = [choices[name] for name in PARAM_NAMES]
        X = cases_from_solution(self.simulate(theta))
        if "y" in constraints:
            y = np.asarray(constraints["y"], dtype=np.int64)
            if y.shape != (self.l,):
                raise ValueError(f"constrained y must have length {self.l}")
        else:
            y = rng.poisson(X).astype(np.int64)
        score = self.log_joint(theta, y, cases=X)
        return Trace(choices=choices, cases=X, observations=y, score=score)


def normalize_log_weights(log_weights: np.ndarray) -> np.ndarray:
    log_weights = np.asarray(log_weights, dtype=float)
    if not np.any(np.isfinite(log_weights)):
        raise RuntimeError("all particle weights are zero")
    return np.exp(log_weights - logsumexp(log_weights))


def effective_sample_size(log_weights: np.ndarray) -> float:
    """1 / sum(w^2) for normalized weights; 0 when every weight is zero."""
    if not np.any(np.isfinite(log_weights)):
        return 0.0
    w = normalize_log_weights(log_weights)
    return float(1.0 / np.sum(w**2))


def multinomial_resample(weights: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    n = len(weights)
    return rng.choice(n, size=n, replace=True, p=weights)


def residual_resample(weights: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """Keep floor(n * w_i) copies of each particle, fill the rest multinomially."""
    weights = np.asarray(weights, dtype=float)
    n = len(weights)
    scaled = n * weights
    counts = np.floor(scaled).astype(np.int64)
    remaining = n - int(counts.sum())
    if remaining > 0:
        residual = scaled - counts
        residual /= residual.sum()
        extra = rng.choice(n, size=remaining, replace=True, p=residual)
        counts += np.bincount(extra, minlength=n)
    return np.repeat(np.arange(n), counts)


RESAMPLERS: Dict[str, Callable[[np.ndarray, np.random.Generator], np.ndarray]] = {
    "residual": residual_resample,
    "multinomial": multinomial_resample,
}


def importance_resampling(
    model: SIRGenerativeModel,
    y: np.ndarray,
    n_particles: int,
    rng: np.random.Generator,
) -> Tuple[Trace, float]:
    """Draw n_particles from the prior, return one resampled trace and log p(y).

    With the prior as proposal the importance weight is the likelihood, and
    the log marginal likelihood estimate is logsumexp(w) - log(n).
    """
    if n_particles <= 0:
        raise ValueError("n_particles must be positive")
    y = np.asarray(y)
    thetas = model.sample_prior(rng, n_particles)
    all_cases = [model.cases(theta, len(y)) for theta in thetas]
    log_w = np.array(
        [model.log_likelihood(theta, y, cases=X) for theta, X in zip(thetas, all_cases)]
    )
    log_ml = float(logsumexp(log_w) - np.log(n_particles))
    k = int(rng.choice(n_particles, p=normalize_log_weights(log_w)))
    choices = dict(zip(PARAM_NAMES, thetas[k].tolist()))
    score = model.log_prior(thetas[k]) + log_w[k]
    return Trace(choices=choices, cases=all_cases[k], observations=y, score=float(score)), log_ml


def truncated_normal_logpdf(
    x: np.ndarray, mean: np.ndarray, sd: np.ndarray, lb: float = 0.0, ub: float = np.inf
) -> float:
    mean = np.asarray(mean, dtype=float)
    sd = np.asarray(sd, dtype=float)
    a, b = (lb - mean) / sd, (ub - mean) / sd
    return float(np.sum(truncnorm.logpdf(x, a, b, loc=mean, scale=sd)))


def truncated_normal_proposal(
    current: Sequence[float],
    scales: Sequence[float],
    rng: np.random.Generator,
    lb: float = 0.0,
    ub: float = np.inf,
) -> Tuple[np.ndarray, float]:
    """Propose each component from N(current, scale) truncated to [lb, ub].

    Returns the proposal and its forward log density.
    """
    mean = np.asarray(current, dtype=float)
    sd = np.asarray(scales, dtype=float)
    a, b = (lb - mean) / sd, (ub - mean) / sd
    proposal = np.atleast_1d(truncnorm.rvs(a, b, loc=mean, scale=sd, random_state=rng))
    return proposal, truncated_normal_logpdf(proposal, mean, sd, lb, ub)


def mh_step(
    model: SIRGenerativeModel,
    theta: np.ndarray,
    cases: np.ndarray,
    score: float,
    y: np.ndarray,
    rng: np.random.Generator,
    upto: Optional[int] = None,
    scales: Sequence[float] = DEFAULT_SCALES,
) -> Tuple[np.ndarray, np.ndarray, float, bool]:
    """One MH move; returns (theta, cases, score, accepted).

    The truncated proposal is not symmetric, so the reverse density enters
    the acceptance ratio.
    """
    proposal, log_fwd = truncated_normal_proposal(theta, scales, rng)
    if not np.isfinite(model.log_prior(proposal)):
        return theta, cases, score, False
    prop_cases = model.cases(proposal, len(cases))
    prop_score = model.log_joint(proposal, y, upto=upto, cases=prop_cases)
    log_bwd = truncated_normal_logpdf(theta, proposal, scales)
    log_alpha = prop_score - score + log_bwd - log_fwd
    if np.log(rng.random()) < log_alpha:
        return proposal, prop_cases, prop_score, True
    return theta, cases, score, False


@dataclass
class MHResult:
    samples: np.ndarray  # shape (n_iter, 2): i0, beta
    scores: np.ndarray
    n_accept: int

    @property
    def acceptance_rate(self) -> float:
        return self.n_accept / max(len(self.samples), 1)

    def __getitem__(self, name: str) -> np.ndarray:
        return self.samples[:, PARAM_NAMES.index(name)]


def metropolis_hastings(
    model: SIRGenerativeModel,
    y: np.ndarray,
    init: Sequence[float],
    n_iter: int,
    rng: np.random.Generator,
    scales: Sequence[float] = DEFAULT_SCALES,
    log_every: int = 0,
) -> MHResult:
    """Random-walk MH over (i0, beta) starting from init."""
    if n_iter <= 0:
        raise ValueError("n_iter must be positive")
    y = np.asarray(y)
    theta = np.asarray(init, dtype=float)
    cases = model.cases(theta, len(y))
    score = model.log_joint(theta, y, cases=cases)
    if not np.isfinite(score):
        raise ValueError(f"initial state {theta.tolist()} has zero posterior density")

    samples = np.empty((n_iter, 2), dtype=float)
    scores = np.empty(n_iter, dtype=float)
    n_accept = 0
    for i in range(n_iter):
        theta, cases, score, accepted = mh_step(model, theta, cases, score, y, rng, scales=scales)
        n_accept += int(accepted)
        samples[i] = theta
        scores[i] = score
        if log_every and (i + 1) % log_every == 0:
            logger.info("MH progress: %d/%d (acceptance %.3f)", i + 1, n_iter, n_accept / (i + 1))
    return MHResult(samples=samples, scores=scores, n_accept=n_accept)


@dataclass
class ParticleState:
    particles: np.ndarray  # shape (n, 2): i0, beta
    log_weights: np.ndarray
    log_ml_base: float = 0.0
    n_resamples: int = 0
    names: Tuple[str, ...] = field(default=PARAM_NAMES)

    def normalized_weights(self) -> np.ndarray:
        return normalize_log_weights(self.log_weights)

    def effective_sample_size(self) -> float:
        return effective_sample_size(self.log_weights)

    def values(self, name: str) -> np.ndarray:
        return self.particles[:, self.names.index(name)]

    def mean(self, name: str) -> float:
        return float(np.sum(self.normalized_weights() * self.values(name)))

    def var(self, name: str) -> float:
        w = self.normalized_weights()
        x = self.values(name)
        m = np.sum(w * x)
        return float(np.sum(w * (x - m) ** 2))

    @property
    def log_marginal_likelihood(self) -> float:
        n = len(self.log_weights)
        return float(self.log_ml_base + logsumexp(self.log_weights) - np.log(n))


def particle_filter(
    model: SIRGenerativeModel,
    y: np.ndarray,
    n_particles: int,
    rng: np.random.Generator,
    ess_threshold: float = 0.5,
    rejuvenate: bool = True,
    resample: str = "residual",
    scales: Sequence[float] = DEFAULT_SCALES,
) -> ParticleState:
    """Sequential Monte Carlo over (i0, beta), one observation at a time."""
    if n_particles <= 0:
        raise ValueError("n_particles must be positive")
    if not 0 <= ess_threshold <= 1:
        raise ValueError("ess_threshold must be in [0, 1]")
    if resample not in RESAMPLERS:
        raise ValueError(f"resample must be one of {sorted(RESAMPLERS)}")
    y = np.asarray(y)
    L = len(y)
    if L == 0:
        raise ValueError("y must contain at least one observation")
    resampler = RESAMPLERS[resample]

    particles = model.sample_prior(rng, n_particles)
    # Full-length case trajectories, so each new observation is a lookup.
    cases = np.vstack([model.cases(theta, L) for theta in particles])
    log_w = poisson.logpmf(y[0], cases[:, 0])
    state = ParticleState(particles=particles, log_weights=log_w)

    for t in range(2, L + 1):
        if state.effective_sample_size() < ess_threshold * n_particles:
            idx = resampler(state.normalized_weights(), rng)
            state.log_ml_base += float(logsumexp(state.log_weights) - np.log(n_particles))
            particles, cases = particles[idx].copy(), cases[idx].copy()
            state.log_weights = np.zeros(n_particles)
            state.n_resamples += 1
            if rejuvenate:
                for k in range(n_particles):
                    score = model.log_joint(particles[k], y, upto=t - 1, cases=cases[k])
                    particles[k], cases[k], _, _ = mh_step(
                        model, particles[k], cases[k], score, y, rng, upto=t - 1, scales=scales
                    )
            state.particles = particles
        state.log_weights = state.log_weights + poisson.logpmf(y[t - 1], cases[:, t - 1])

    logger.info(
        "Particle filter: n=%d resamples=%d final ESS=%.1f",
        n_particles,
        state.n_resamples,
        state.effective_sample_size(),
    )
    return state
