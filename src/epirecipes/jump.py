"""SIR as a continuous-time Markov jump process.

The model is written as a vector addition system: a list of transitions,
each with an integer change vector and a propensity. Sample paths are drawn
with Gillespie's direct method. Callbacks can change parameters at preset
times (e.g. an intervention that lowers the contact rate) or react to the
state after each jump (e.g. stop once there are no infected left).
"""


from dataclasses import dataclass, field, replace
import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DEFAULTS
from .model import SIRParams

logger = logging.getLogger(__name__)

RateFn = Callable[[np.ndarray, Any], float]


@dataclass(frozen=True)
class Transition:
    name: str
    delta: Tuple[int, ...]
    rate: RateFn


class VectorAdditionSystem:
    """Species plus transitions; a transition adds its delta to the state."""

    def __init__(self, species: Sequence[str], transitions: Sequence[Transition]) -> None:
        self.species = tuple(species)
        self.transitions = tuple(transitions)
        if not self.transitions:
            raise ValueError("a vector addition system needs at least one transition")
        for tr in self.transitions:
            if len(tr.delta) != len(self.species):
                raise ValueError(
                    f"transition {tr.name!r} has {len(tr.delta)} entries, expected {len(self.species)}"
                )
        self._stoich = np.array([tr.delta for tr in self.transitions], dtype=np.int64)

    @property
    def n_species(self) -> int:
        return len(self.species)

    def stoichiometry(self) -> np.ndarray:
        """Change vectors stacked as (n_transitions, n_species)."""
        return self._stoich.copy()

    def propensities(self, u: np.ndarray, p: Any) -> np.ndarray:
        return np.array([tr.rate(u, p) for tr in self.transitions], dtype=float)


def _rates(p: Any) -> Tuple[float, float, float]:
    if isinstance(p, SIRParams):
        return p.beta, p.c, p.gamma
    beta, c, gamma = p[:3]
    return float(beta), float(c), float(gamma)


def _infection(u: np.ndarray, p: Any) -> float:
    beta, c, _ = _rates(p)
    S, I, R = u[0], u[1], u[2]
    N = S + I + R
    if N <= 0:
        return 0.0
    return beta * c * I / N * S


def _recovery(u: np.ndarray, p: Any) -> float:
    _, _, gamma = _rates(p)
    return gamma * u[1]


def sir_vas(with_cumulative: bool = True) -> VectorAdditionSystem:
    """SIR transitions; the optional fourth species C counts infections."""
    if with_cumulative:
        species = ("S", "I", "R", "C")
        infection = (-1, 1, 0, 1)
        recovery = (0, -1, 1, 0)
    else:
        species = ("S", "I", "R")
        infection = (-1, 1, 0)
        recovery = (0, -1, 1)
    return VectorAdditionSystem(
        species,
        [
            Transition("infection", infection, _infection),
            Transition("recovery", recovery, _recovery),
        ],
    )


class JumpIntegrator:
    """Mutable view of a running simulation handed to callback affects."""

    def __init__(self, t: float, u: np.ndarray, p: Any) -> None:
        self.t = t
        self.u = u
        self.p = p
        self.terminated = False

    def terminate(self) -> None:
        self.terminated = True

    def set_params(self, **changes: float) -> None:
        """Replace fields of a dataclass parameter set, e.g. set_params(c=5.0)."""
        self.p = replace(self.p, **changes)


class PresetTimeCallback:
    """Apply affect(integrator) at each of the given times."""

    def __init__(self, times: Union[float, Iterable[float]], affect: Callable[[JumpIntegrator], None]) -> None:
        self.times = sorted(float(t) for t in np.atleast_1d(times))
        self.affect = affect


class DiscreteCallback:
    """Apply affect(integrator) after any jump where condition(t, u, p) holds."""

    def __init__(
        self,
        condition: Callable[[float, np.ndarray, Any], bool],
        affect: Callable[[JumpIntegrator], None],
    ) -> None:
        self.condition = condition
        self.affect = affect


class TerminateWhen(DiscreteCallback):
    def __init__(self, condition: Callable[[float, np.ndarray, Any], bool]) -> None:
        super().__init__(condition, JumpIntegrator.terminate)


def no_infected(t: float, u: np.ndarray, p: Any) -> bool:
    return u[1] == 0


@dataclass
class JumpSolution:
    t: np.ndarray
    u: np.ndarray
    events: np.ndarray  # fired transition per row; -1 for initial, callback and final rows
    species: Tuple[str, ...] = field(default=("S", "I", "R", "C"))

    def at(self, times: Union[float, Sequence[float]]) -> np.ndarray:
        """Sample the piecewise-constant path at arbitrary times."""
        times = np.asarray(times, dtype=float)
        idx = np.searchsorted(self.t, times, side="right") - 1
        return self.u[np.clip(idx, 0, len(self.t) - 1)]

    @property
    def final(self) -> np.ndarray:
        return self.u[-1]

    @property
    def n_jumps(self) -> int:
        return int(np.sum(self.events >= 0))


def gillespie_direct(
    vas: VectorAdditionSystem,
    u0: Sequence[int],
    p: Any,
    tspan: Tuple[float, float] = (DEFAULTS.t0, DEFAULTS.tmax),
    rng: Optional[Union[np.random.Generator, int]] = None,
    callbacks: Sequence[Union[PresetTimeCallback, DiscreteCallback]] = (),
    max_steps: int = 10_000_000,
) -> JumpSolution:
    """Sample one path with the direct method of Gillespie."""
    t0, t1 = float(tspan[0]), float(tspan[1])
    if t1 <= t0:
        raise ValueError("tspan end must be greater than its start")
    u = np.asarray(u0, dtype=np.int64).copy()
    if u.size != vas.n_species:
        raise ValueError(f"u0 has {u.size} entries, expected {vas.n_species}")
    if np.any(u < 0):
        raise ValueError("initial counts must be non-negative")
    rng = np.random.default_rng(rng)
    stoich = vas.stoichiometry()

    integ = JumpIntegrator(t0, u, p)
    preset = sorted(
        ((time, i, cb) for i, cb in enumerate(callbacks) if isinstance(cb, PresetTimeCallback) for time in cb.times),
        key=lambda item: (item[0], item[1]),
    )
    preset = [(time, cb) for time, _, cb in preset if t0 <= time <= t1]
    discrete = [cb for cb in callbacks if isinstance(cb, DiscreteCallback)]

    times: List[float] = [t0]
    states: List[np.ndarray] = [u.copy()]
    events: List[int] = [-1]

    def record(event: int) -> None:
        times.append(integ.t)
        states.append(integ.u.copy())
        events.append(event)

    k = 0
    steps = 0
    while not integ.terminated:
        while k < len(preset) and preset[k][0] <= integ.t:
            preset[k][1].affect(integ)
            record(-1)
            k += 1
            if integ.terminated:
                break
        if integ.terminated:
            break

        a = vas.propensities(integ.u, integ.p)
        a0 = float(a.sum())
        t_preset = preset[k][0] if k < len(preset) else np.inf
        if a0 <= 0:
            if t_preset <= t1:
                # Absorbing until a preset callback may change the rates.
                integ.t = t_preset
                continue
            break

        t_new = integ.t + rng.exponential(1.0 / a0)
        if t_new > t_preset:
            # Waiting times are memoryless, so restart the clock at the callback.
            integ.t = t_preset
            continue
        if t_new >= t1:
            break

        j = int(np.searchsorted(np.cumsum(a), rng.random() * a0, side="right"))
        j = min(j, len(a) - 1)
        integ.u += stoich[j]
        integ.t = t_new
        steps += 1
        if steps > max_steps:
            raise RuntimeError(f"exceeded max_steps={max_steps} before reaching t={t1}")
        record(j)

        for cb in discrete:
            if cb.condition(integ.t, integ.u, integ.p):
                cb.affect(integ)
                if not integ.terminated or not np.array_equal(integ.u, states[-1]):
                    record(-1)
                if integ.terminated:
                    break

    if not integ.terminated:
        integ.t = t1
    if integ.t > times[-1]:
        record(-1)

    logger.debug("Direct method: %d jumps, final state %s at t=%.3f", steps, integ.u.tolist(), integ.t)
    return JumpSolution(
        t=np.asarray(times, dtype=float),
        u=np.vstack(states),
        events=np.asarray(events, dtype=np.int64),
        species=vas.species,
    )


def ensemble(
    fn: Callable[[np.random.Generator], Any],
    n: int,
    rng: Optional[Union[np.random.Generator, int]] = None,
) -> List[Any]:
    """Run fn once per replicate, each with an independent child generator."""
    if n <= 0:
        raise ValueError("n must be positive")
    children = np.random.default_rng(rng).spawn(n)
    return [fn(child) for child in children]
