"""Central defaults for the SIR recipes.

Defines the Defaults dataclass with the settings shared by every recipe
(population, initial state, rates, time grid, output paths), plus a global
seed setter. Imported by scripts and modules so that each formulation of the
model starts from the same configuration.
"""


from dataclasses import dataclass
from pathlib import Path
import random
from typing import Tuple

import numpy as np


# Central defaults shared across recipes.
@dataclass(frozen=True)
class Defaults:
    seed: int = 1234
    N: int = 1000
    u0: Tuple[int, int, int] = (990, 10, 0)
    beta: float = 0.05
    c: float = 10.0
    gamma: float = 0.25
    t0: float = 0.0
    tmax: float = 40.0
    dt: float = 0.1
    obs_dt: float = 1.0
    i0_frac: float = 0.01
    tau: float = 4.0
    i0_range: Tuple[float, float] = (0.001, 0.1)
    beta_range: Tuple[float, float] = (0.01, 0.1)
    runs_dir: Path = Path("runs")


# Shared defaults instance used across scripts.
DEFAULTS = Defaults()


def set_global_seed(seed: int) -> None:
    """Set global seeds for reproducibility."""
    # Library code takes explicit Generators; this covers legacy global state.
    random.seed(seed)
    np.random.seed(seed)
