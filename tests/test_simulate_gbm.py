import numpy as np
import pytest

from pricing.black_scholes import call_price
from pricing.errors import DomainError
from simulate.gbm import GBMParams, PricePath, simulate_paths


def _params(**kw):
    base = dict(S0=30.0, mu=0.08, sigma=0.15, T=2.0, n_steps=500)
    base.update(kw)
    return GBMParams(**base)


def test_shape_and_start():
    batch = simulate_paths(_params(n_steps=10), 7, seed=1)
    assert batch.paths.shape == (7, 11)
    assert batch.n_paths == 7
    assert np.all(batch.paths[:, 0] == 30.0)
    assert np.all(batch.paths > 0)
    assert batch.time_grid[0] == 0.0 and batch.time_grid[-1] == pytest.approx(2.0)

    p = batch.path(3)
    assert isinstance(p, PricePath)
    assert len(p) == 11
    assert p.terminal == batch.terminal_values[3]


def test_same_seed_same_batch():
    a = simulate_paths(_params(), 50, seed=123)
    b = simulate_paths(_params(), 50, seed=123)
    c = simulate_paths(_params(), 50, seed=124)
    np.testing.assert_array_equal(a.paths, b.paths)
    assert not np.array_equal(a.paths, c.paths)


def test_injected_generator_is_advanced():
    rng = np.random.default_rng(7)
    a = simulate_paths(_params(n_steps=20), 5, rng=rng)
    b = simulate_paths(_params(n_steps=20), 5, rng=rng)
    assert not np.array_equal(a.paths, b.paths)

    # the same generator state reproduces the first batch
    again = simulate_paths(_params(n_steps=20), 5, rng=np.random.default_rng(7))
    np.testing.assert_array_equal(a.paths, again.paths)


def test_paths_are_read_only():
    batch = simulate_paths(_params(n_steps=5), 3, seed=0)
    with pytest.raises(ValueError):
        batch.paths[0, 0] = 1.0


def test_log_increments_match_gbm_moments():
    prm = _params(S0=100.0, mu=0.05, sigma=0.3, T=1.0, n_steps=50)
    batch = simulate_paths(prm, 4000, seed=2024)
    x = np.diff(np.log(batch.paths), axis=1).ravel()

    dt = prm.dt
    mean_exp = (prm.mu - 0.5 * prm.sigma**2) * dt
    sd_exp = prm.sigma * np.sqrt(dt)
    se = sd_exp / np.sqrt(x.size)
    assert abs(x.mean() - mean_exp) < 5 * se
    assert x.std(ddof=1) == pytest.approx(sd_exp, rel=0.01)


def test_monte_carlo_call_within_band_of_closed_form():
    # S0=30, mu=r=8%, sigma=15%, T=2 years, 500 steps, 1000 paths
    prm = _params()
    r, K = 0.08, 28.0
    batch = simulate_paths(prm, 1000, seed=42)

    est = batch.discounted_call_estimate(K, r)
    lo, hi = batch.confidence_interval(K, r, level=0.999)
    bs = call_price(prm.S0, K, prm.sigma, r, prm.T)

    assert lo < est < hi
    assert lo <= bs <= hi
    assert batch.standard_error(K, r) > 0.0
    assert est == pytest.approx(batch.terminal_payoff_mean(K) * np.exp(-r * prm.T))


def test_confidence_level_validation():
    batch = simulate_paths(_params(n_steps=2), 10, seed=0)
    with pytest.raises(ValueError):
        batch.confidence_interval(28.0, 0.08, level=1.5)


@pytest.mark.parametrize(
    "kw",
    [dict(S0=0.0), dict(sigma=-0.1), dict(T=0.0), dict(n_steps=0), dict(n_steps=2.5)],
)
def test_invalid_params(kw):
    with pytest.raises(DomainError):
        _params(**kw)


def test_invalid_path_count():
    with pytest.raises(DomainError):
        simulate_paths(_params(n_steps=2), 0, seed=0)
