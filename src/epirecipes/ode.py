"""Deterministic SIR as an ordinary differential equation.

The state carries a fourth compartment C that accumulates infections, so
daily new cases can be read off as the increments of C between save points.
Integration is delegated to ``scipy.integrate.solve_ivp``.
"""


from dataclasses import dataclass
import logging
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import peakutils as pk
from scipy.integrate import solve_ivp

from .config import DEFAULTS
from .exceptions import NotEvaluatedError
from .model import SIRParams

logger = logging.getLogger(__name__)


@dataclass
class ODESolution:
    t: np.ndarray
    u: np.ndarray  # shape (T, 4): S, I, R, C

    @property
    def S(self) -> np.ndarray:
        return self.u[:, 0]

    @property
    def I(self) -> np.ndarray:
        return self.u[:, 1]

    @property
    def R(self) -> np.ndarray:
        return self.u[:, 2]

    @property
    def C(self) -> np.ndarray:
        return self.u[:, 3]


def sir_ode(t: float, u: np.ndarray, p: Sequence[float]) -> np.ndarray:
    """Right-hand side for u = (S, I, R, C) and p = (beta, c, gamma)."""
    S, I, R, _ = u
    beta, c, gamma = p
    N = S + I + R
    infection = beta * c * I / N * S
    recovery = gamma * I
    return np.array([-infection, infection - recovery, recovery, infection])


def save_grid(t0: float, t1: float, saveat: Union[float, Sequence[float]]) -> np.ndarray:
    """Build the output grid from a step size or an explicit list of times."""
    if np.ndim(saveat) == 0:
        step = float(saveat)
        if step <= 0:
            raise ValueError("saveat step must be positive")
        # Tolerance keeps t1 on the grid when (t1 - t0) / step is integral.
        n = int(np.floor((t1 - t0) / step + 1e-9))
        grid = t0 + np.arange(n + 1) * step
        return np.minimum(grid, t1)
    grid = np.asarray(saveat, dtype=float)
    if grid.ndim != 1 or grid.size == 0:
        raise ValueError("saveat must be a positive step or a 1D grid of times")
    if np.any(np.diff(grid) <= 0):
        raise ValueError("saveat grid must be strictly increasing")
    if grid[0] < t0 or grid[-1] > t1:
        raise ValueError("saveat grid must lie inside tspan")
    return grid


def solve_sir_ode(
    params: Union[SIRParams, Sequence[float]],
    u0: Sequence[float] = DEFAULTS.u0,
    tspan: Tuple[float, float] = (DEFAULTS.t0, DEFAULTS.tmax),
    saveat: Union[float, Sequence[float]] = DEFAULTS.dt,
    method: str = "RK45",
    rtol: float = 1e-6,
    atol: float = 1e-8,
) -> ODESolution:
    """Integrate the SIR ODE and return states on the save grid.

    A three-element u0 is extended with C = 0.
    """
    t0, t1 = float(tspan[0]), float(tspan[1])
    if t1 <= t0:
        raise ValueError("tspan end must be greater than its start")
    p = params.as_array() if isinstance(params, SIRParams) else np.asarray(params, dtype=float)
    y0 = np.asarray(u0, dtype=float)
    if y0.size == 3:
        y0 = np.append(y0, 0.0)
    if y0.size != 4:
        raise ValueError("u0 must have 3 (S, I, R) or 4 (S, I, R, C) entries")
    if y0[:3].sum() <= 0:
        raise ValueError("initial population must be positive")

    grid = save_grid(t0, t1, saveat)
    res = solve_ivp(
        sir_ode,
        (t0, t1),
        y0,
        method=method,
        t_eval=grid,
        args=(p,),
        rtol=rtol,
        atol=atol,
    )
    if not res.success:
        raise RuntimeError(f"ODE solver failed: {res.message}")
    return ODESolution(t=res.t, u=res.y.T)


def cases_from_solution(sol: Union[ODESolution, np.ndarray]) -> np.ndarray:
    """New cases per save interval from the cumulative compartment."""
    u = sol.u if isinstance(sol, ODESolution) else np.asarray(sol)
    C = u[:, 3]
    # abs() guards against tiny negative increments from solver error.
    return np.abs(C[1:] - C[:-1])


class SIRODEModel:
    """Object wrapper that runs the SIR ODE on a fixed time grid.

    Attributes:
        u0 (list): Initial conditions (S, I, R).
        params (SIRParams): Transmission, contact and recovery rates.
        t_sim (np.ndarray): Times at which results are stored.
        result_ (np.ndarray): S, I, R over t_sim once run() has been called.
        peakpos (np.ndarray): Indices of infection peaks in result_.
    """

    def __init__(self, u0, params, t_sim) -> None:
        self.u0 = list(u0)
        self.params = params if isinstance(params, SIRParams) else SIRParams.from_sequence(params)
        self.t_sim = np.asarray(t_sim, dtype=float)
        self.result_: Optional[np.ndarray] = None
        self.peakpos: Optional[np.ndarray] = None
        self._evaluated = False

    def _check_evaluated(self) -> None:
        if not self._evaluated:
            raise NotEvaluatedError("run() must be called before requesting results")

    def run(self, norm: bool = False) -> "SIRODEModel":
        """Integrate the model and locate infection peaks.

        :param norm: If True, results are stored as fractions of N.
        """
        sol = solve_sir_ode(
            self.params,
            self.u0,
            tspan=(self.t_sim[0], self.t_sim[-1]),
            saveat=self.t_sim,
        )
        res = sol.u[:, :3]
        if norm:
            res = res / float(np.sum(self.u0))
        self.result_ = res
        # thres is relative to the range of I(t).
        self.peakpos = pk.indexes(res[:, 1], thres=0.5)
        self._evaluated = True
        logger.debug("SIR ODE run: R0=%.3f peaks=%s", self.params.R0, self.peakpos)
        return self

    def result(self) -> np.ndarray:
        self._check_evaluated()
        return self.result_

    def peak_positions(self) -> np.ndarray:
        self._check_evaluated()
        return self.peakpos

    def infected(self) -> np.ndarray:
        self._check_evaluated()
        return self.result_[:, 1]

    def n_infected(self) -> float:
        """Everyone ever infected: the recovered plus those still infected at the end."""
        self._check_evaluated()
        return float(self.result_[-1, 2] + self.result_[-1, 1])


def daily_cases(
    i0_frac: float,
    beta: float,
    l: int,
    N: float = DEFAULTS.N,
    c: float = DEFAULTS.c,
    gamma: float = DEFAULTS.gamma,
    obs_dt: float = DEFAULTS.obs_dt,
) -> np.ndarray:
    """New cases in each of the first l observation intervals.

    This is the deterministic mean of the observation model shared by the
    likelihood and the sampling-based inference.
    """
    I = i0_frac * N
    sol = solve_sir_ode((beta, c, gamma), (N - I, I, 0.0, 0.0), tspan=(0.0, l * obs_dt), saveat=obs_dt)
    return cases_from_solution(sol)
