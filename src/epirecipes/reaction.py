"""Reaction-network description of SIR.

A network is a list of reactions between named species, each with a rate.
From that one description the module derives the stoichiometry, the
mass-action ODE, the jump process (as a vector addition system) and the
chemical Langevin SDE, so the three formulations cannot drift apart.

Rate laws are combinatoric: a reaction consuming n copies of X contributes
x**n / n! to the ODE propensity and C(x, n) to the jump propensity.
"""


from dataclasses import dataclass, field
import logging
from math import factorial
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.integrate import solve_ivp
from scipy.special import comb

from .config import DEFAULTS
from .jump import JumpSolution, Transition, VectorAdditionSystem, gillespie_direct
from .ode import save_grid

logger = logging.getLogger(__name__)

RateLike = Union[str, float, Callable[[Dict[str, float], Dict[str, float]], float]]
ParamLike = Union[Mapping[str, float], Sequence[float]]


@dataclass
class Reaction:
    rate: RateLike
    substrates: Mapping[str, int] = field(default_factory=dict)
    products: Mapping[str, int] = field(default_factory=dict)
    name: Optional[str] = None
    mass_action: bool = True
    label: Optional[str] = None

    def rate_constant(self, u: Dict[str, float], p: Dict[str, float]) -> float:
        if callable(self.rate):
            return float(self.rate(u, p))
        if isinstance(self.rate, str):
            return float(p[self.rate])
        return float(self.rate)

    def _rate_label(self) -> str:
        if self.label is not None:
            return self.label
        if callable(self.rate):
            return getattr(self.rate, "__name__", "k")
        return str(self.rate)

    def __str__(self) -> str:
        def side(terms: Mapping[str, int]) -> str:
            if not terms:
                return "∅"
            return " + ".join(f"{n}{s}" if n > 1 else s for s, n in terms.items())

        return f"{self._rate_label()}, {side(self.substrates)} --> {side(self.products)}"


@dataclass
class NetworkSolution:
    t: np.ndarray
    u: np.ndarray
    species: Tuple[str, ...]

    def __getitem__(self, name: str) -> np.ndarray:
        return self.u[:, self.species.index(name)]


class ReactionNetwork:
    """Species, parameters and reactions, compiled to ODE, SDE or jump form."""

    def __init__(
        self,
        species: Sequence[str],
        parameters: Sequence[str],
        reactions: Sequence[Reaction],
    ) -> None:
        self.species = tuple(species)
        self.parameters = tuple(parameters)
        self.reactions = list(reactions)
        if len(set(self.species)) != len(self.species):
            raise ValueError("species names must be unique")
        known = set(self.species)
        for i, rx in enumerate(self.reactions):
            if rx.name is None:
                rx.name = f"r{i + 1}"
            unknown = (set(rx.substrates) | set(rx.products)) - known
            if unknown:
                raise ValueError(f"reaction {rx.name!r} uses unknown species {sorted(unknown)}")
            if isinstance(rx.rate, str) and rx.rate not in self.parameters:
                raise ValueError(f"reaction {rx.name!r} uses unknown parameter {rx.rate!r}")
        self._stoich = self._build_stoichiometry()

    def _build_stoichiometry(self) -> np.ndarray:
        index = {s: j for j, s in enumerate(self.species)}
        stoich = np.zeros((len(self.reactions), len(self.species)), dtype=np.int64)
        for i, rx in enumerate(self.reactions):
            for s, n in rx.substrates.items():
                stoich[i, index[s]] -= n
            for s, n in rx.products.items():
                stoich[i, index[s]] += n
        return stoich

    def net_stoichiometry(self) -> np.ndarray:
        return self._stoich.copy()

    def state_vector(self, mapping: Mapping[str, float]) -> np.ndarray:
        return np.array([mapping[s] for s in self.species], dtype=float)

    def parameter_vector(self, mapping: Mapping[str, float]) -> np.ndarray:
        return np.array([mapping[k] for k in self.parameters], dtype=float)

    def _param_dict(self, p: ParamLike) -> Dict[str, float]:
        if isinstance(p, Mapping):
            return {k: float(p[k]) for k in self.parameters}
        values = np.asarray(p, dtype=float)
        if values.size != len(self.parameters):
            raise ValueError(f"expected {len(self.parameters)} parameters, got {values.size}")
        return dict(zip(self.parameters, values.tolist()))

    def _propensity(self, rx: Reaction, u: np.ndarray, p: Dict[str, float], jump: bool) -> float:
        state = dict(zip(self.species, u.tolist()))
        k = rx.rate_constant(state, p)
        if not rx.mass_action:
            return k
        for s, n in rx.substrates.items():
            x = state[s]
            if jump:
                k *= comb(x, n, exact=False) if n > 1 else x
            else:
                k *= x**n / factorial(n)
        return float(k)

    def ode_propensities(self, u: np.ndarray, p: ParamLike) -> np.ndarray:
        pd = self._param_dict(p)
        return np.array([self._propensity(rx, np.asarray(u, dtype=float), pd, jump=False) for rx in self.reactions])

    def jump_propensities(self, u: np.ndarray, p: ParamLike) -> np.ndarray:
        pd = self._param_dict(p)
        return np.array([self._propensity(rx, np.asarray(u), pd, jump=True) for rx in self.reactions])

    def ode_rhs(self) -> Callable[[float, np.ndarray, ParamLike], np.ndarray]:
        stoich_t = self._stoich.T.astype(float)

        def rhs(t: float, u: np.ndarray, p: ParamLike) -> np.ndarray:
            return stoich_t @ self.ode_propensities(u, p)

        return rhs

    def to_vas(self) -> VectorAdditionSystem:
        transitions = []
        for i, rx in enumerate(self.reactions):

            def rate(u: np.ndarray, p: ParamLike, rx: Reaction = rx) -> float:
                return self._propensity(rx, u, self._param_dict(p), jump=True)

            transitions.append(Transition(rx.name, tuple(self._stoich[i].tolist()), rate))
        return VectorAdditionSystem(self.species, transitions)

    def solve_ode(
        self,
        u0: Sequence[float],
        p: ParamLike,
        tspan: Tuple[float, float] = (DEFAULTS.t0, DEFAULTS.tmax),
        saveat: Union[float, Sequence[float]] = DEFAULTS.dt,
        method: str = "RK45",
    ) -> NetworkSolution:
        t0, t1 = float(tspan[0]), float(tspan[1])
        if t1 <= t0:
            raise ValueError("tspan end must be greater than its start")
        pd = self._param_dict(p)
        res = solve_ivp(
            self.ode_rhs(),
            (t0, t1),
            np.asarray(u0, dtype=float),
            method=method,
            t_eval=save_grid(t0, t1, saveat),
            args=(pd,),
            rtol=1e-6,
            atol=1e-8,
        )
        if not res.success:
            raise RuntimeError(f"ODE solver failed: {res.message}")
        return NetworkSolution(t=res.t, u=res.y.T, species=self.species)

    def solve_jump(
        self,
        u0: Sequence[int],
        p: ParamLike,
        tspan: Tuple[float, float] = (DEFAULTS.t0, DEFAULTS.tmax),
        rng: Optional[Union[np.random.Generator, int]] = None,
        callbacks: Sequence = (),
    ) -> JumpSolution:
        return gillespie_direct(self.to_vas(), u0, self._param_dict(p), tspan=tspan, rng=rng, callbacks=callbacks)

    def solve_langevin(
        self,
        u0: Sequence[float],
        p: ParamLike,
        tspan: Tuple[float, float] = (DEFAULTS.t0, DEFAULTS.tmax),
        dt: float = DEFAULTS.dt,
        rng: Optional[Union[np.random.Generator, int]] = None,
    ) -> NetworkSolution:
        """Chemical Langevin equation by Euler-Maruyama, clipped at zero."""
        if dt <= 0:
            raise ValueError("dt must be positive")
        t0, t1 = float(tspan[0]), float(tspan[1])
        if t1 <= t0:
            raise ValueError("tspan end must be greater than its start")
        rng = np.random.default_rng(rng)
        pd = self._param_dict(p)
        stoich_t = self._stoich.T.astype(float)
        t = save_grid(t0, t1, dt)
        u = np.empty((t.size, len(self.species)), dtype=float)
        u[0] = np.asarray(u0, dtype=float)
        for k in range(1, t.size):
            h = t[k] - t[k - 1]
            a = np.clip(self.jump_propensities(u[k - 1], pd), 0.0, None)
            noise = np.sqrt(a * h) * rng.standard_normal(a.size)
            u[k] = np.clip(u[k - 1] + stoich_t @ (a * h) + stoich_t @ noise, 0.0, None)
        return NetworkSolution(t=t, u=u, species=self.species)

    def to_latex(self) -> str:
        lines: List[str] = []
        for rx in self.reactions:
            lhs = " + ".join(f"{n if n > 1 else ''}{s}" for s, n in rx.substrates.items()) or r"\varnothing"
            rhs = " + ".join(f"{n if n > 1 else ''}{s}" for s, n in rx.products.items()) or r"\varnothing"
            lines.append(rf"{lhs} &\xrightarrow{{{rx._rate_label()}}} {rhs}")
        return "\\begin{align*}\n" + " \\\\\n".join(lines) + "\n\\end{align*}"

    def __str__(self) -> str:
        return "\n".join(str(rx) for rx in self.reactions)


def _frequency_dependent(u: Dict[str, float], p: Dict[str, float]) -> float:
    return p["beta"] * p["c"] / p["N"]


def sir_network() -> ReactionNetwork:
    """S + I -> 2I at beta*c/N and I -> R at gamma."""
    return ReactionNetwork(
        species=("S", "I", "R"),
        parameters=("beta", "c", "gamma", "N"),
        reactions=[
            Reaction(_frequency_dependent, {"S": 1, "I": 1}, {"I": 2}, name="infection", label="β*c/N"),
            Reaction("gamma", {"I": 1}, {"R": 1}, name="recovery"),
        ],
    )
