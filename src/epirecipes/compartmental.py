"""SIR simulation wrapper using summer.

Builds the same model as the reaction network and the ODE module, but as a
flow-based compartmental model in summer: an infection frequency flow with
contact rate beta * c and a recovery transition flow at gamma. Useful as an
independent check on the in-house formulations.
"""


from typing import Sequence, Tuple, Union

import numpy as np
from summer import CompartmentalModel

from .config import DEFAULTS
from .model import SIRParams


def build_compartmental_model(
    params: SIRParams,
    u0: Sequence[float] = DEFAULTS.u0,
    t0: float = DEFAULTS.t0,
    t1: float = DEFAULTS.tmax,
    dt: float = DEFAULTS.dt,
) -> CompartmentalModel:
    """Construct (but do not run) the summer model."""
    if dt <= 0:
        raise ValueError("dt must be positive")
    if t1 <= t0:
        raise ValueError("t1 must be greater than t0")

    model = CompartmentalModel(
        times=[t0, t1],
        compartments=["S", "I", "R"],
        infectious_compartments=["I"],
        timestep=dt,
    )
    s0, i0, r0 = (float(x) for x in u0)
    model.set_initial_population(distribution={"S": s0, "I": i0, "R": r0})
    # summer's frequency flow already divides by N, so the contact rate is beta * c.
    model.add_infection_frequency_flow(
        name="infection", contact_rate=params.beta * params.c, source="S", dest="I"
    )
    model.add_transition_flow(
        name="recovery", fractional_rate=params.gamma, source="I", dest="R"
    )
    return model


def simulate_compartmental(
    params: SIRParams,
    u0: Sequence[float] = DEFAULTS.u0,
    t0: float = DEFAULTS.t0,
    t1: float = DEFAULTS.tmax,
    dt: float = DEFAULTS.dt,
    return_full: bool = False,
) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray, np.ndarray]]:
    """Run the summer model.

    If return_full is False, returns the infected time series I(t).
    If return_full is True, returns (times, outputs, incidence) where outputs
    has shape (T, 3) and incidence is the drop in S between time points.
    """
    model = build_compartmental_model(params, u0=u0, t0=t0, t1=t1, dt=dt)
    model.run()

    outputs = np.asarray(model.outputs)
    times = np.asarray(model.times)
    if not return_full:
        return outputs[:, 1]
    incidence = np.zeros_like(times, dtype=float)
    incidence[1:] = np.clip(outputs[:-1, 0] - outputs[1:, 0], 0.0, None)
    return times, outputs, incidence
