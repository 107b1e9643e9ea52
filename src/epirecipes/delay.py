"""Jump process with delayed recovery.

Infection is Markovian, but each infected individual recovers a fixed time
tau after infection instead of at an exponential rate. Pending recoveries sit
on a heap; any that fall before the next candidate infection are applied
first and the infection clock is then redrawn.
"""


import heapq
import logging
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import DEFAULTS
from .jump import JumpSolution
from .model import SIRParams, infection_rate

logger = logging.getLogger(__name__)

INFECTION = 0
RECOVERY = 1


def delay_ssa(
    params: SIRParams,
    u0: Sequence[int] = DEFAULTS.u0,
    tau: float = DEFAULTS.tau,
    tspan: Tuple[float, float] = (DEFAULTS.t0, DEFAULTS.tmax),
    rng: Optional[Union[np.random.Generator, int]] = None,
    initial_delays: Optional[Sequence[float]] = None,
    max_steps: int = 10_000_000,
) -> JumpSolution:
    """Simulate SIR with a fixed infectious period tau.

    initial_delays gives the remaining infectious time of each initially
    infected individual; by default they all recover at t0 + tau.
    """
    if tau <= 0:
        raise ValueError("tau must be positive")
    t0, t1 = float(tspan[0]), float(tspan[1])
    if t1 <= t0:
        raise ValueError("tspan end must be greater than its start")
    S, I, R = (int(x) for x in u0)
    if min(S, I, R) < 0:
        raise ValueError("initial counts must be non-negative")
    if initial_delays is None:
        initial_delays = [tau] * I
    if len(initial_delays) != I:
        raise ValueError(f"initial_delays has {len(initial_delays)} entries for {I} infected")
    if any(d < 0 for d in initial_delays):
        raise ValueError("initial_delays must be non-negative")
    rng = np.random.default_rng(rng)

    pending: List[float] = [t0 + float(d) for d in initial_delays]
    heapq.heapify(pending)

    u = np.array([S, I, R, 0], dtype=np.int64)
    t = t0
    times = [t0]
    states = [u.copy()]
    events = [-1]
    steps = 0

    while True:
        a = infection_rate(u[0], u[1], u[2], params)
        next_recovery = pending[0] if pending else np.inf
        if a <= 0:
            if next_recovery > t1:
                break
            t_new = np.inf
        else:
            t_new = t + rng.exponential(1.0 / a)

        if next_recovery <= t1 and next_recovery < t_new:
            t = heapq.heappop(pending)
            u[1] -= 1
            u[2] += 1
            event = RECOVERY
        elif t_new < t1:
            t = t_new
            u[0] -= 1
            u[1] += 1
            u[3] += 1
            heapq.heappush(pending, t + tau)
            event = INFECTION
        else:
            break

        steps += 1
        if steps > max_steps:
            raise RuntimeError(f"exceeded max_steps={max_steps} before reaching t={t1}")
        times.append(t)
        states.append(u.copy())
        events.append(event)

    if t1 > times[-1]:
        times.append(t1)
        states.append(u.copy())
        events.append(-1)

    logger.debug("Delay SSA: %d events, %d recoveries still pending at t=%.2f", steps, len(pending), t1)
    return JumpSolution(
        t=np.asarray(times, dtype=float),
        u=np.vstack(states),
        events=np.asarray(events, dtype=np.int64),
        species=("S", "I", "R", "C"),
    )
