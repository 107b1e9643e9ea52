"""Agent-based SIR as a discrete-event simulation.

Each agent carries its own disease state. Infected agents generate contacts
as a Poisson process with rate c; each contact picks another agent uniformly
at random and transmits with probability beta if that agent is susceptible.
Recovery happens after an exponential infectious period with rate gamma.
Events are kept on a time-ordered heap and processed one at a time, so the
clock jumps straight from one event to the next.
"""


from dataclasses import dataclass
from enum import Enum
import heapq
import itertools
import logging
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from .model import SIRParams

logger = logging.getLogger(__name__)


class DiseaseState(Enum):
    """Enumeration for SIR disease states"""
    SUSCEPTIBLE = 0
    INFECTED = 1
    RECOVERED = 2


class EventKind(Enum):
    CONTACT = 0
    RECOVERY = 1


class Agent:
    """Individual in the population.

    Attributes:
    id: int. Unique identifier
    state: DiseaseState. Current disease state
    infection_time: float. Time of infection (None if never infected)
    recovery_time: float. Time of recovery (None if not recovered)
    """
    __slots__ = ("id", "state", "infection_time", "recovery_time")

    def __init__(self, id: int, state: DiseaseState = DiseaseState.SUSCEPTIBLE):
        self.id = id
        self.state = state
        self.infection_time: Optional[float] = None
        self.recovery_time: Optional[float] = None


@dataclass
class AgentSolution:
    t: np.ndarray
    u: np.ndarray  # shape (n_rows, 3): S, I, R

    def counts(self) -> Dict[str, int]:
        """Final S, I and R counts."""
        S, I, R = (int(x) for x in self.u[-1])
        return {"S": S, "I": I, "R": R}

    def at(self, times: Union[float, np.ndarray]) -> np.ndarray:
        idx = np.searchsorted(self.t, np.asarray(times, dtype=float), side="right") - 1
        return self.u[np.clip(idx, 0, len(self.t) - 1)]


class AgentBasedSIR:
    """Discrete-event simulator for SIR in a well-mixed population of agents."""

    def __init__(
        self,
        N: int,
        I0: int,
        params: SIRParams,
        rng: Optional[Union[np.random.Generator, int]] = None,
        t0: float = 0.0,
    ):
        if N <= 0:
            raise ValueError("N must be positive")
        if not 0 <= I0 <= N:
            raise ValueError(f"I0 must be between 0 and N={N}, got {I0}")
        self.N = int(N)
        self.params = params
        self.rng = np.random.default_rng(rng)
        self.t0 = float(t0)
        self.now = self.t0
        self.agents: List[Agent] = [Agent(i) for i in range(self.N)]
        self.counts = np.array([self.N, 0, 0], dtype=np.int64)
        self._queue: List[Tuple[float, int, EventKind, int]] = []
        self._seq = itertools.count()
        self._has_run = False

        for i in self.rng.choice(self.N, size=int(I0), replace=False):
            self._infect(self.agents[int(i)], self.t0)

    def _schedule(self, time: float, kind: EventKind, agent_id: int) -> None:
        # The sequence number breaks ties so agents and kinds are never compared.
        heapq.heappush(self._queue, (time, next(self._seq), kind, agent_id))

    def _infect(self, agent: Agent, time: float) -> None:
        agent.state = DiseaseState.INFECTED
        agent.infection_time = time
        self.counts[0] -= 1
        self.counts[1] += 1
        if self.params.gamma > 0:
            self._schedule(time + self.rng.exponential(1.0 / self.params.gamma), EventKind.RECOVERY, agent.id)
        self._schedule_contact(agent, time)

    def _schedule_contact(self, agent: Agent, time: float) -> None:
        if self.params.c > 0 and self.N > 1:
            self._schedule(time + self.rng.exponential(1.0 / self.params.c), EventKind.CONTACT, agent.id)

    def _random_other(self, agent_id: int) -> Agent:
        j = int(self.rng.integers(self.N - 1))
        if j >= agent_id:
            j += 1
        return self.agents[j]

    def _handle(self, time: float, kind: EventKind, agent: Agent) -> bool:
        """Process one event; returns True if any agent changed state."""
        if agent.state is not DiseaseState.INFECTED:
            # Stale contact from an agent that has since recovered.
            return False
        if kind is EventKind.RECOVERY:
            agent.state = DiseaseState.RECOVERED
            agent.recovery_time = time
            self.counts[1] -= 1
            self.counts[2] += 1
            return True

        self._schedule_contact(agent, time)
        target = self._random_other(agent.id)
        if target.state is DiseaseState.SUSCEPTIBLE and self.rng.random() < self.params.beta:
            self._infect(target, time)
            return True
        return False

    def run(self, tmax: float) -> AgentSolution:
        """Process events up to tmax and return S, I, R after each state change."""
        if self._has_run:
            raise RuntimeError("AgentBasedSIR.run can only be called once; build a new model")
        if tmax <= self.t0:
            raise ValueError("tmax must be greater than the start time")
        self._has_run = True

        times = [self.t0]
        states = [self.counts.copy()]
        n_events = 0
        while self._queue and self._queue[0][0] <= tmax:
            time, _, kind, agent_id = heapq.heappop(self._queue)
            self.now = time
            n_events += 1
            if self._handle(time, kind, self.agents[agent_id]):
                times.append(time)
                states.append(self.counts.copy())

        self.now = float(tmax)
        if times[-1] < tmax:
            times.append(float(tmax))
            states.append(self.counts.copy())
        logger.debug("ABM processed %d events; final counts %s", n_events, self.counts.tolist())
        return AgentSolution(t=np.asarray(times, dtype=float), u=np.vstack(states))

    def states(self) -> List[DiseaseState]:
        return [agent.state for agent in self.agents]
