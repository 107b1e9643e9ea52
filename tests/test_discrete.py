import numpy as np
import pytest

from src.epirecipes.discrete import (
    sir_discrete_deterministic,
    solve_discrete_deterministic,
    solve_discrete_stochastic,
)
from src.epirecipes.model import SIRParams


def test_single_step_matches_closed_form():
    u = sir_discrete_deterministic([999.0, 1.0, 0.0], [0.5, 0.25, 0.01])
    infection = (1 - np.exp(-0.5 * 1.0 / 1000 * 0.01)) * 999.0
    recovery = (1 - np.exp(-0.25 * 0.01)) * 1.0
    np.testing.assert_allclose(u, [999.0 - infection, 1.0 + infection - recovery, recovery])


def test_deterministic_map_conserves_population():
    sol = solve_discrete_deterministic([999.0, 1.0, 0.0], [0.5, 0.25, 0.01], 5000)
    assert sol.u.shape == (5001, 3)
    assert sol.t[-1] == pytest.approx(50.0)
    np.testing.assert_allclose(sol.u.sum(axis=1), 1000.0)
    assert np.all(sol.u >= 0)
    assert np.all(np.diff(sol.u[:, 0]) <= 0)
    assert np.all(np.diff(sol.u[:, 2]) >= 0)


def test_deterministic_argument_errors():
    with pytest.raises(ValueError):
        solve_discrete_deterministic([999.0, 1.0, 0.0], [0.5, 0.25, 0.01], 0)
    with pytest.raises(ValueError):
        solve_discrete_deterministic([999.0, 1.0, 0.0], [0.5, 0.25, 0.0], 10)


def test_chain_binomial_keeps_integer_counts(rng):
    params = SIRParams(beta=0.5, c=1.0, gamma=0.25)
    sol = solve_discrete_stochastic([999, 1, 0], params, 0.1, 400, rng=rng)
    assert sol.u.dtype == np.int64
    assert np.all(sol.u.sum(axis=1) == 1000)
    assert np.all(sol.u >= 0)
    assert np.all(np.diff(sol.u[:, 0]) <= 0)


def test_chain_binomial_is_reproducible():
    params = SIRParams(beta=0.5, c=1.0, gamma=0.25)
    a = solve_discrete_stochastic([990, 10, 0], params, 0.1, 100, rng=7)
    b = solve_discrete_stochastic([990, 10, 0], params, 0.1, 100, rng=7)
    np.testing.assert_array_equal(a.u, b.u)


def test_chain_binomial_rejects_negative_counts(rng):
    with pytest.raises(ValueError):
        solve_discrete_stochastic([-1, 1, 0], SIRParams(), 0.1, 10, rng=rng)
