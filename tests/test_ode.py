import numpy as np
import pytest

from src.epirecipes.exceptions import NotEvaluatedError
from src.epirecipes.ode import (
    SIRODEModel,
    cases_from_solution,
    daily_cases,
    save_grid,
    sir_ode,
    solve_sir_ode,
)


def test_rhs_conserves_population():
    du = sir_ode(0.0, np.array([990.0, 10.0, 0.0, 0.0]), (0.05, 10.0, 0.25))
    assert du[:3].sum() == pytest.approx(0.0)
    # C grows by exactly the infection flow.
    assert du[3] == pytest.approx(-du[0])


def test_save_grid_from_step_includes_end():
    grid = save_grid(0.0, 40.0, 0.1)
    assert grid.size == 401
    assert grid[-1] == 40.0


def test_save_grid_never_overshoots_end():
    # Half a step past the end would otherwise add 1.4.
    np.testing.assert_allclose(save_grid(0.0, 1.0, 0.7), [0.0, 0.7])
    grid = save_grid(0.0, 1.0, 0.3)
    assert grid[-1] <= 1.0
    assert grid.size == 4


def test_save_grid_rejects_bad_input():
    with pytest.raises(ValueError):
        save_grid(0.0, 1.0, 0.0)
    with pytest.raises(ValueError):
        save_grid(0.0, 1.0, [0.5, 0.2])
    with pytest.raises(ValueError):
        save_grid(0.0, 1.0, [0.0, 2.0])


def test_solution_conserves_population(params):
    sol = solve_sir_ode(params, (990, 10, 0), tspan=(0.0, 40.0), saveat=1.0)
    assert sol.u.shape == (41, 4)
    np.testing.assert_allclose(sol.S + sol.I + sol.R, 1000.0, rtol=1e-6)
    assert np.all(np.diff(sol.S) <= 1e-9)
    assert np.all(np.diff(sol.C) >= -1e-9)
    # Cumulative infections equal the drop in S.
    np.testing.assert_allclose(sol.C, 990.0 - sol.S, atol=1e-4)


def test_solver_argument_errors(params):
    with pytest.raises(ValueError):
        solve_sir_ode(params, (990, 10, 0), tspan=(1.0, 0.0))
    with pytest.raises(ValueError):
        solve_sir_ode(params, (990, 10), tspan=(0.0, 1.0))
    with pytest.raises(ValueError):
        solve_sir_ode(params, (0, 0, 0), tspan=(0.0, 1.0))


def test_cases_are_increments_of_cumulative(params):
    sol = solve_sir_ode(params, (990, 10, 0), tspan=(0.0, 10.0), saveat=1.0)
    cases = cases_from_solution(sol)
    assert cases.shape == (10,)
    assert cases.sum() == pytest.approx(sol.C[-1])


def test_daily_cases_length_and_positivity():
    X = daily_cases(0.01, 0.05, 40)
    assert X.shape == (40,)
    assert np.all(X > 0)


def test_model_wrapper_requires_run():
    model = SIRODEModel([990, 10, 0], (0.05, 10.0, 0.25), np.linspace(0, 100, 1001))
    with pytest.raises(NotEvaluatedError):
        model.result()
    with pytest.raises(NotEvaluatedError):
        model.n_infected()


def test_model_wrapper_finds_single_peak():
    t = np.linspace(0, 100, 1001)
    model = SIRODEModel([990, 10, 0], (0.05, 10.0, 0.25), t).run(norm=True)
    res = model.result()
    assert res.shape == (t.size, 3)
    np.testing.assert_allclose(res.sum(axis=1), 1.0, rtol=1e-6)
    peaks = model.peak_positions()
    assert len(peaks) == 1
    assert peaks[0] == int(np.argmax(model.infected()))
    assert 0 < model.n_infected() <= 1.0
