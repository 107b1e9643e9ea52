import numpy as np
import pytest

from src.epirecipes.noise import observe_negbin, observe_poisson, simulate_case_data


def test_poisson_shape_dtype_and_mean(rng):
    x = np.full(20000, 50.0)
    y = observe_poisson(x, rng=rng)
    assert y.shape == x.shape
    assert y.dtype == np.int64
    assert y.mean() == pytest.approx(50.0, rel=0.02)


def test_poisson_reporting_rate_and_clamping(rng):
    y = observe_poisson(np.array([-1e-9, 0.0, 100.0]), rho=0.0, rng=rng)
    assert y.tolist() == [0, 0, 0]
    y = observe_poisson(np.full(10000, 100.0), rho=0.5, rng=rng)
    assert y.mean() == pytest.approx(50.0, rel=0.03)


def test_poisson_handles_batches(rng):
    y = observe_poisson(np.ones((3, 5)), rng=rng)
    assert y.shape == (3, 5)


def test_negbin_is_overdispersed(rng):
    y = observe_negbin(np.full(20000, 50.0), rho=1.0, k=5.0, rng=rng)
    assert y.mean() == pytest.approx(50.0, rel=0.03)
    # Variance is mu + mu^2 / k = 550.
    assert y.var() == pytest.approx(550.0, rel=0.1)
    assert observe_negbin(np.zeros(5), rho=1.0, k=5.0, rng=rng).tolist() == [0] * 5


def test_negbin_rejects_bad_size(rng):
    with pytest.raises(ValueError):
        observe_negbin(np.ones(3), rho=1.0, k=0.0, rng=rng)


def test_simulate_case_data(params, rng):
    sol, cases, obs = simulate_case_data(params, N=1000, i0_frac=0.01, l=40, rng=rng)
    assert sol.t.size == 41
    assert cases.shape == obs.shape == (40,)
    assert np.all(cases > 0)
    with pytest.raises(ValueError):
        simulate_case_data(params, l=0, rng=rng)
