import numpy as np
import pytest

from src.epirecipes.jump import JumpSolution
from src.epirecipes.metrics import (
    ensemble_summary,
    epidemic_summary,
    mae,
    posterior_summary,
    rmse,
    stack_on_grid,
    timing_summary,
    weighted_quantile,
)
from src.epirecipes.ode import solve_sir_ode


def test_errors():
    assert mae([1, 2, 3], [1, 2, 5]) == pytest.approx(2 / 3)
    assert rmse([0, 0], [3, 4]) == pytest.approx(np.sqrt(12.5))


def test_epidemic_summary_of_ode(params):
    sol = solve_sir_ode(params, (990, 10, 0), tspan=(0.0, 100.0), saveat=0.5)
    summary = epidemic_summary(sol.t, sol.S, sol.I, sol.R)
    assert summary["peak_time"] == pytest.approx(sol.t[np.argmax(sol.I)])
    assert summary["peak_indices"] == [int(np.argmax(sol.I))]
    assert 0.7 < summary["final_size"] < 0.85
    assert summary["attack_rate"] >= summary["final_size"]
    assert 0 < summary["duration"] < 100.0


def test_epidemic_summary_of_declining_curve():
    t = np.arange(5.0)
    I = np.array([10.0, 5.0, 2.0, 0.05, 0.0])
    S = np.full(5, 90.0)
    R = 100.0 - S - I
    summary = epidemic_summary(t, S, I, R)
    assert summary["peak_time"] == 0.0
    assert summary["peak_indices"] == [0]
    assert summary["duration"] == 3.0


def test_weighted_quantile():
    x = np.arange(1.0, 6.0)
    np.testing.assert_allclose(weighted_quantile(x, [0.5]), [3.0])
    assert weighted_quantile(x, [0.5], weights=np.ones(5))[0] == pytest.approx(3.0)
    assert weighted_quantile(x, [0.5], weights=np.array([0, 0, 0, 0, 1.0]))[0] == pytest.approx(5.0)
    with pytest.raises(ValueError):
        weighted_quantile(x, [0.5], weights=np.ones(3))


def test_posterior_summary_with_truth():
    samples = np.array([0.04, 0.05, 0.06])
    out = posterior_summary(samples, truth=0.05)
    assert out["mean"] == pytest.approx(0.05)
    assert out["abs_error"] == pytest.approx(0.0)
    assert out["covered"] == 1.0
    weighted = posterior_summary(samples, weights=np.array([0.0, 0.0, 2.0]))
    assert weighted["mean"] == pytest.approx(0.06)
    assert weighted["sd"] == pytest.approx(0.0)
    with pytest.raises(ValueError):
        posterior_summary(np.array([]))


def test_stack_and_ensemble_summary():
    paths = [
        JumpSolution(t=np.array([0.0, 1.0]), u=np.array([[10, 0], [9, 1]]), events=np.array([-1, 0])),
        JumpSolution(t=np.array([0.0, 2.0]), u=np.array([[10, 0], [8, 2]]), events=np.array([-1, 0])),
    ]
    grid = np.array([0.0, 1.5, 3.0])
    values = stack_on_grid(paths, grid)
    assert values.shape == (2, 3, 2)
    np.testing.assert_array_equal(values[:, 1, 0], [9, 10])
    band = ensemble_summary(values, quantiles=(0.0, 1.0))
    np.testing.assert_allclose(band["mean"][2], [8.5, 1.5])
    np.testing.assert_allclose(band["lower"][2], [8, 1])
    np.testing.assert_allclose(band["upper"][2], [9, 2])
    with pytest.raises(ValueError):
        ensemble_summary(np.ones(3))


def test_timing_summary():
    out = timing_summary(np.array([1.0, 2.0, 3.0]))
    assert out["time_min"] == 1.0
    assert out["time_p50"] == 2.0
    assert out["time_max"] == 3.0
    assert timing_summary(np.array([]))["time_mean"] == 0.0
