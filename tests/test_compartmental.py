import numpy as np
import pytest

pytest.importorskip("summer")

from src.epirecipes.compartmental import build_compartmental_model, simulate_compartmental  # noqa: E402
from src.epirecipes.ode import solve_sir_ode  # noqa: E402


def test_build_rejects_bad_grid(params):
    with pytest.raises(ValueError):
        build_compartmental_model(params, dt=0.0)
    with pytest.raises(ValueError):
        build_compartmental_model(params, t0=5.0, t1=1.0)


def test_infected_series_matches_ode(params):
    times, outputs, _ = simulate_compartmental(params, (990, 10, 0), t0=0.0, t1=40.0, dt=0.5, return_full=True)
    I = simulate_compartmental(params, (990, 10, 0), t0=0.0, t1=40.0, dt=0.5)
    np.testing.assert_allclose(I, outputs[:, 1])
    ode = solve_sir_ode(params, (990, 10, 0), tspan=(0.0, 40.0), saveat=0.1)
    np.testing.assert_allclose(I, np.interp(times, ode.t, ode.I), rtol=2e-2, atol=1.0)


def test_full_output_and_incidence(params):
    times, outputs, incidence = simulate_compartmental(
        params, (990, 10, 0), t0=0.0, t1=40.0, dt=1.0, return_full=True
    )
    assert outputs.shape == (times.size, 3)
    np.testing.assert_allclose(outputs.sum(axis=1), 1000.0, rtol=1e-6)
    assert incidence[0] == 0.0
    assert np.all(incidence >= 0)
    assert incidence.sum() == pytest.approx(outputs[0, 0] - outputs[-1, 0], rel=1e-6)
