import numpy as np
import pytest

from src.epirecipes.model import (
    SIRParams,
    check_state,
    infection_rate,
    initial_state,
    rate_to_proportion,
    recovery_rate,
)


def test_params_r0_and_array():
    p = SIRParams(beta=0.05, c=10.0, gamma=0.25)
    assert p.R0 == pytest.approx(2.0)
    np.testing.assert_allclose(p.as_array(), [0.05, 10.0, 0.25])
    assert SIRParams.from_sequence([0.05, 10, 0.25]) == p


def test_params_zero_gamma_has_infinite_r0():
    assert SIRParams(beta=0.1, c=1.0, gamma=0.0).R0 == float("inf")


@pytest.mark.parametrize("field", ["beta", "c", "gamma"])
def test_params_reject_negative_rates(field):
    kwargs = {"beta": 0.05, "c": 10.0, "gamma": 0.25, field: -1.0}
    with pytest.raises(ValueError):
        SIRParams(**kwargs)


def test_initial_state_splits_population():
    S, I, R = initial_state(1000, 0.01)
    assert (S, I, R) == pytest.approx((990.0, 10.0, 0.0))
    with pytest.raises(ValueError):
        initial_state(0, 0.01)
    with pytest.raises(ValueError):
        initial_state(100, 1.5)


def test_rate_to_proportion():
    assert rate_to_proportion(0.0, 1.0) == 0.0
    assert rate_to_proportion(0.25, 1.0) == pytest.approx(1 - np.exp(-0.25))


def test_rates(params):
    assert infection_rate(990, 10, 0, params) == pytest.approx(0.05 * 10 * 10 / 1000 * 990)
    assert infection_rate(0, 0, 0, params) == 0.0
    assert recovery_rate(10, params) == pytest.approx(2.5)


def test_check_state():
    check_state([990, 10, 0], N=1000)
    with pytest.raises(ValueError):
        check_state([-1, 10, 0])
    with pytest.raises(ValueError):
        check_state([990, 10, 5], N=1000)
