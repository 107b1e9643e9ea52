import numpy as np
import pytest

from src.epirecipes.jump import (
    DiscreteCallback,
    PresetTimeCallback,
    TerminateWhen,
    Transition,
    VectorAdditionSystem,
    ensemble,
    gillespie_direct,
    no_infected,
    sir_vas,
)
from src.epirecipes.model import SIRParams


def test_vas_stoichiometry_and_propensities(params):
    vas = sir_vas()
    assert vas.species == ("S", "I", "R", "C")
    np.testing.assert_array_equal(vas.stoichiometry(), [[-1, 1, 0, 1], [0, -1, 1, 0]])
    a = vas.propensities(np.array([990, 10, 0, 0]), params)
    np.testing.assert_allclose(a, [0.05 * 10 * 10 / 1000 * 990, 2.5])


def test_vas_accepts_plain_sequences():
    vas = sir_vas(with_cumulative=False)
    a = vas.propensities(np.array([90, 10, 0]), [0.1, 5.0, 0.5])
    np.testing.assert_allclose(a, [0.1 * 5.0 * 10 / 100 * 90, 5.0])


def test_vas_rejects_mismatched_delta():
    with pytest.raises(ValueError):
        VectorAdditionSystem(("S", "I"), [Transition("bad", (1, 0, 0), lambda u, p: 1.0)])
    with pytest.raises(ValueError):
        VectorAdditionSystem(("S",), [])


def test_path_invariants(params, small_u0, rng):
    sol = gillespie_direct(sir_vas(), small_u0, params, tspan=(0.0, 40.0), rng=rng)
    assert sol.t[0] == 0.0
    assert sol.t[-1] == 40.0
    assert np.all(np.diff(sol.t) >= 0)
    assert np.all(sol.u[:, :3].sum(axis=1) == 100)
    assert np.all(sol.u >= 0)
    # Each jump changes the state by exactly one transition's delta.
    stoich = sir_vas().stoichiometry()
    for k in np.flatnonzero(sol.events >= 0):
        np.testing.assert_array_equal(sol.u[k] - sol.u[k - 1], stoich[sol.events[k]])
    # C counts infections only.
    assert sol.u[-1, 3] == 90 - sol.u[-1, 0]
    assert sol.n_jumps == int(np.sum(sol.events == 0) + np.sum(sol.events == 1))


def test_same_seed_same_path(params, small_u0):
    a = gillespie_direct(sir_vas(), small_u0, params, rng=42)
    b = gillespie_direct(sir_vas(), small_u0, params, rng=42)
    np.testing.assert_array_equal(a.t, b.t)
    np.testing.assert_array_equal(a.u, b.u)


def test_absorbing_state_records_only_endpoints(params):
    sol = gillespie_direct(sir_vas(), (100, 0, 0, 0), params, tspan=(0.0, 10.0), rng=1)
    np.testing.assert_array_equal(sol.t, [0.0, 10.0])
    assert sol.n_jumps == 0


def test_terminate_when_no_infected(params, rng):
    # With one infected and fast recovery extinction happens quickly.
    fast = SIRParams(beta=0.0, c=1.0, gamma=5.0)
    sol = gillespie_direct(
        sir_vas(), (99, 1, 0, 0), fast, tspan=(0.0, 100.0), rng=rng, callbacks=[TerminateWhen(no_infected)]
    )
    assert sol.final[1] == 0
    assert sol.t[-1] < 100.0
    assert sol.n_jumps == 1


def test_terminating_affect_keeps_its_state_change(params, small_u0, rng):
    seen = []

    def quarantine_all(integ):
        integ.u[2] += integ.u[1]
        integ.u[1] = 0
        seen.append(integ.u.copy())
        integ.terminate()

    cb = DiscreteCallback(lambda t, u, p: u[3] >= 5, quarantine_all)
    sol = gillespie_direct(sir_vas(), small_u0, params, tspan=(0.0, 40.0), rng=rng, callbacks=[cb])
    assert len(seen) == 1
    np.testing.assert_array_equal(sol.final, seen[0])
    assert sol.final[1] == 0
    assert sol.t[-1] < 40.0
    assert sol.t[-1] == sol.t[-2]
    assert sol.events[-1] == -1


def test_preset_callback_changes_parameters(params, small_u0, rng):
    seen = []

    def lockdown(integ):
        integ.set_params(beta=0.0)
        seen.append((integ.t, integ.p))

    sol = gillespie_direct(
        sir_vas(), small_u0, params, tspan=(0.0, 40.0), rng=rng, callbacks=[PresetTimeCallback(5.0, lockdown)]
    )
    assert len(seen) == 1
    assert seen[0][0] == 5.0
    assert seen[0][1].beta == 0.0
    assert 5.0 in sol.t
    # No infections after the lockdown.
    after = sol.t > 5.0
    assert not np.any(sol.events[after] == 0)


def test_preset_callback_fires_in_absorbing_state(params):
    def reseed(integ):
        integ.u[0] -= 1
        integ.u[1] += 1

    sol = gillespie_direct(
        sir_vas(), (100, 0, 0, 0), params, tspan=(0.0, 10.0), rng=3, callbacks=[PresetTimeCallback(2.0, reseed)]
    )
    assert sol.at(1.0)[1] == 0
    assert sol.at(2.0)[:2].tolist() == [99, 1]


def test_discrete_callback_runs_after_matching_jumps(params, small_u0, rng):
    hits = []
    cb = DiscreteCallback(lambda t, u, p: u[1] >= 20, lambda integ: hits.append(integ.t))
    sol = gillespie_direct(sir_vas(), small_u0, params, tspan=(0.0, 40.0), rng=rng, callbacks=[cb])
    if sol.u[:, 1].max() >= 20:
        assert hits
    assert all(t in sol.t for t in hits)


def test_at_is_piecewise_constant(params, small_u0, rng):
    sol = gillespie_direct(sir_vas(), small_u0, params, tspan=(0.0, 40.0), rng=rng)
    np.testing.assert_array_equal(sol.at(0.0), sol.u[0])
    np.testing.assert_array_equal(sol.at(40.0), sol.final)
    mid = 0.5 * (sol.t[1] + sol.t[2])
    np.testing.assert_array_equal(sol.at(mid), sol.u[1])


def test_argument_errors(params, small_u0):
    with pytest.raises(ValueError):
        gillespie_direct(sir_vas(), small_u0, params, tspan=(1.0, 1.0))
    with pytest.raises(ValueError):
        gillespie_direct(sir_vas(), (90, 10, 0), params)
    with pytest.raises(ValueError):
        gillespie_direct(sir_vas(), (-1, 10, 0, 0), params)


def test_max_steps_guard(params, small_u0):
    with pytest.raises(RuntimeError):
        gillespie_direct(sir_vas(), small_u0, params, rng=0, max_steps=3)


def test_ensemble_children_are_independent_and_reproducible():
    draws = ensemble(lambda rng: rng.random(), 5, rng=11)
    assert len(set(draws)) == 5
    assert ensemble(lambda rng: rng.random(), 5, rng=11) == draws
    with pytest.raises(ValueError):
        ensemble(lambda rng: None, 0)


def test_ensemble_mean_tracks_ode(params):
    from src.epirecipes.metrics import stack_on_grid
    from src.epirecipes.ode import solve_sir_ode

    grid = np.linspace(0.0, 40.0, 41)
    paths = ensemble(
        lambda rng: gillespie_direct(sir_vas(), (990, 10, 0, 0), params, rng=rng), 100, rng=5
    )
    mean_S = stack_on_grid(paths, grid)[:, :, 0].mean(axis=0)
    ode = solve_sir_ode(params, (990, 10, 0), saveat=grid)
    # Loose: finite-size effects and early extinctions pull the mean up.
    assert abs(mean_S[-1] - ode.S[-1]) < 150
