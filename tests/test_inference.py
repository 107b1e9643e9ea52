import numpy as np
import pytest
from scipy.stats import norm, poisson

from src.epirecipes.inference import (
    SIRGenerativeModel,
    effective_sample_size,
    importance_resampling,
    metropolis_hastings,
    mh_step,
    multinomial_resample,
    normalize_log_weights,
    particle_filter,
    residual_resample,
    truncated_normal_logpdf,
    truncated_normal_proposal,
)

TRUTH = {"i0": 0.01, "beta": 0.05}


@pytest.fixture(scope="module")
def model():
    return SIRGenerativeModel(l=20)


@pytest.fixture(scope="module")
def data(model):
    return model.generate(np.random.default_rng(2024), constraints=TRUTH)


def _in_prior(model, theta):
    theta = np.atleast_2d(theta)
    return np.all((theta >= model.bounds[:, 0]) & (theta <= model.bounds[:, 1]))


def test_prior_sampling_and_density(model, rng):
    draws = model.sample_prior(rng, 500)
    assert draws.shape == (500, 2)
    assert _in_prior(model, draws)
    expected = -np.log((0.1 - 0.001) * (0.1 - 0.01))
    assert model.log_prior([0.01, 0.05]) == pytest.approx(expected)
    assert model.log_prior([0.2, 0.05]) == -np.inf
    assert model.log_prior([0.01, 0.005]) == -np.inf


def test_model_validation():
    with pytest.raises(ValueError):
        SIRGenerativeModel(l=0)
    with pytest.raises(ValueError):
        SIRGenerativeModel(i0_bounds=(0.1, 0.01))


def test_generate_respects_constraints(model, data):
    assert data["i0"] == TRUTH["i0"]
    assert data["beta"] == TRUTH["beta"]
    assert data.observations.shape == (20,)
    assert data.cases.shape == (20,)
    assert np.isfinite(data.score)
    np.testing.assert_allclose(data.theta, [0.01, 0.05])


def test_generate_with_observed_data(model, data, rng):
    trace = model.generate(rng, constraints={"y": data.observations})
    np.testing.assert_array_equal(trace.observations, data.observations)
    assert _in_prior(model, trace.theta)
    with pytest.raises(KeyError):
        model.generate(rng, constraints={"gamma": 0.3})
    with pytest.raises(ValueError):
        model.generate(rng, constraints={"y": np.zeros(5)})


def test_partial_likelihood(model, data):
    theta = data.theta
    y = data.observations
    assert model.log_likelihood(theta, y, upto=0) == 0.0
    expected = np.sum(poisson.logpmf(y[:3], data.cases[:3]))
    assert model.log_likelihood(theta, y, upto=3) == pytest.approx(expected, rel=1e-4)
    assert model.log_likelihood(theta, y, upto=3, cases=data.cases) == pytest.approx(expected)
    assert model.log_joint([0.5, 0.05], y) == -np.inf


def test_weight_helpers(rng):
    w = normalize_log_weights(np.log([1.0, 1.0, 2.0]))
    np.testing.assert_allclose(w, [0.25, 0.25, 0.5])
    assert effective_sample_size(np.zeros(10)) == pytest.approx(10.0)
    assert effective_sample_size(np.full(4, -np.inf)) == 0.0
    with pytest.raises(RuntimeError):
        normalize_log_weights(np.full(3, -np.inf))


def test_residual_resampling_keeps_deterministic_copies(rng):
    idx = residual_resample(np.array([0.5, 0.5, 0.0, 0.0]), rng)
    np.testing.assert_array_equal(np.bincount(idx, minlength=4), [2, 2, 0, 0])
    idx = residual_resample(np.array([0.7, 0.3]), rng)
    assert idx.size == 2
    assert 0 in idx


def test_multinomial_resampling_size(rng):
    idx = multinomial_resample(np.array([0.2, 0.8]), rng)
    assert idx.size == 2
    assert set(idx.tolist()) <= {0, 1}


def test_truncated_normal_proposal_is_non_negative(rng):
    for _ in range(50):
        x, log_q = truncated_normal_proposal([0.001, 0.01], [0.002, 0.001], rng)
        assert np.all(x >= 0)
        assert np.isfinite(log_q)
        assert log_q == pytest.approx(truncated_normal_logpdf(x, [0.001, 0.01], [0.002, 0.001]))


def test_importance_resampling(model, data, rng):
    trace, log_ml = importance_resampling(model, data.observations, 200, rng)
    assert _in_prior(model, trace.theta)
    assert np.isfinite(log_ml)
    assert trace.cases.shape == (20,)
    with pytest.raises(ValueError):
        importance_resampling(model, data.observations, 0, rng)


def test_metropolis_hastings_stays_in_support(model, data, rng):
    result = metropolis_hastings(model, data.observations, init=[0.01, 0.05], n_iter=300, rng=rng)
    assert result.samples.shape == (300, 2)
    assert result["beta"].shape == (300,)
    assert _in_prior(model, result.samples)
    assert 0.0 < result.acceptance_rate <= 1.0
    assert np.all(np.isfinite(result.scores))


def test_mh_step_acceptance_uses_reverse_proposal_density(model):
    # With no observations the target is the flat prior, so the acceptance
    # ratio reduces to Phi(theta/s) / Phi(proposal/s) per component.
    theta = np.array([0.0015, 0.0105])
    scales = np.array([0.002, 0.001])
    cases = model.cases(theta)
    score = model.log_prior(theta)
    y = np.array([], dtype=int)
    sensitive = 0
    for seed in range(200):
        replay = np.random.default_rng(seed)
        proposal, _ = truncated_normal_proposal(theta, scales, replay)
        out, _, _, accepted = mh_step(model, theta, cases, score, y, np.random.default_rng(seed), upto=0, scales=scales)
        if not np.isfinite(model.log_prior(proposal)):
            assert not accepted
            continue
        log_alpha = np.sum(norm.logcdf(theta / scales) - norm.logcdf(proposal / scales))
        log_u = np.log(replay.random())
        assert accepted == (log_u < log_alpha)
        np.testing.assert_array_equal(out, proposal if accepted else theta)
        # Decisions that would flip if the correction were dropped or inverted.
        if (log_u < 0.0) != (log_u < log_alpha) or (log_u < -log_alpha) != (log_u < log_alpha):
            sensitive += 1
    assert sensitive > 0


def test_metropolis_hastings_argument_errors(model, data, rng):
    with pytest.raises(ValueError):
        metropolis_hastings(model, data.observations, init=[0.5, 0.05], n_iter=10, rng=rng)
    with pytest.raises(ValueError):
        metropolis_hastings(model, data.observations, init=[0.01, 0.05], n_iter=0, rng=rng)


def test_particle_filter_recovers_beta(model, data, rng):
    state = particle_filter(model, data.observations, 100, rng)
    w = state.normalized_weights()
    assert w.sum() == pytest.approx(1.0)
    assert 0 < state.effective_sample_size() <= 100 + 1e-9
    assert np.isfinite(state.log_marginal_likelihood)
    assert _in_prior(model, state.particles)
    assert state.mean("beta") == pytest.approx(TRUTH["beta"], abs=0.02)
    assert state.var("beta") >= 0.0


def test_particle_filter_without_rejuvenation(model, data, rng):
    state = particle_filter(model, data.observations, 50, rng, rejuvenate=False, resample="multinomial")
    assert state.particles.shape == (50, 2)
    assert state.n_resamples >= 0


def test_particle_filter_argument_errors(model, data, rng):
    y = data.observations
    with pytest.raises(ValueError):
        particle_filter(model, y, 0, rng)
    with pytest.raises(ValueError):
        particle_filter(model, y, 10, rng, ess_threshold=1.5)
    with pytest.raises(ValueError):
        particle_filter(model, y, 10, rng, resample="stratified")
    with pytest.raises(ValueError):
        particle_filter(model, y[:0], 10, rng)
