import math

import numpy as np
import pytest

from pricing.black_scholes import call_price
from pricing.errors import (
    DegenerateDerivativeError,
    DomainError,
    NonConvergenceError,
)
from pricing.implied_vol import (
    IVResult,
    SolverConfig,
    implied_volatility,
    results_to_frame,
    smile_from_results,
    solve_implied_vol,
    solve_implied_vols,
)
from pricing.quotes import OptionQuote, VolatilitySurfacePoint


@pytest.mark.parametrize("sigma", [0.1, 0.2, 0.4, 0.8, 1.5])
@pytest.mark.parametrize("K", [90.0, 100.0, 110.0])
def test_round_trip(K, sigma):
    S0, r, T = 100.0, 0.03, 1.0
    price = call_price(S0, K, sigma, r, T)
    res = solve_implied_vol(OptionQuote(S0, K, T, r, price))
    assert res.ok, res.error
    assert res.method == "newton"
    assert res.sigma == pytest.approx(sigma, abs=1e-4)


def test_round_trip_with_dividend_yield():
    q = OptionQuote(S0=50.0, K=55.0, T=0.25, r=0.01, price=0.0, d=0.03)
    price = call_price(q.S0, q.K, 0.35, q.r, q.T, q.d)
    q = OptionQuote(q.S0, q.K, q.T, q.r, price, q.d)
    assert implied_volatility(q) == pytest.approx(0.35, abs=1e-4)


def test_price_ladder_gives_increasing_vols():
    # S0=30, K=28, r=2.5%, T=6 months; prices 3..29 inside the bounds, 30 == S0
    quotes = [OptionQuote(30.0, 28.0, 0.5, 0.025, float(p)) for p in range(3, 31)]
    results = solve_implied_vols(quotes)
    inside, at_spot = results[:-1], results[-1]

    assert all(r.ok for r in inside)
    vols = np.array([r.sigma for r in inside])
    assert np.all(np.diff(vols) > 0)
    # each recovered vol reprices its quote
    for q, v in zip(quotes, vols):
        assert call_price(q.S0, q.K, v, q.r, q.T) == pytest.approx(q.price, abs=1e-3)

    assert not at_spot.ok
    assert at_spot.sigma is None
    assert isinstance(at_spot.error, NonConvergenceError)
    assert "no-arbitrage" in str(at_spot.error)


def _at_bounds_quotes():
    S0, r, T = 100.0, 0.03, 1.0
    lo_80 = S0 - 80.0 * math.exp(-r * T)
    return [
        OptionQuote(S0, 100.0, T, r, S0),  # upper bound exactly
        OptionQuote(S0, 100.0, T, r, S0 + 5e-5),  # just above
        OptionQuote(S0, 80.0, T, r, lo_80 - 5e-5),  # just below intrinsic
        OptionQuote(S0, 80.0, T, r, lo_80),  # intrinsic exactly
    ]


@pytest.mark.parametrize("fallback", ["none", "bisection"])
def test_prices_at_the_bounds_never_return_a_vol(fallback):
    for q in _at_bounds_quotes():
        assert not q.within_bounds()
        res = solve_implied_vol(q, SolverConfig(fallback=fallback))
        assert not res.ok, f"price {q.price} (K={q.K}) gave sigma={res.sigma}"
        assert res.sigma is None
        assert isinstance(res.error, NonConvergenceError)
        assert "no-arbitrage" in str(res.error)
        with pytest.raises(NonConvergenceError):
            implied_volatility(q)


def test_zero_vega_is_degenerate():
    # far OTM, short dated: vega at the 30% guess underflows to ~0
    q = OptionQuote(S0=100.0, K=300.0, T=0.1, r=0.03, price=0.5)
    res = solve_implied_vol(q)
    assert not res.ok
    assert isinstance(res.error, DegenerateDerivativeError)
    assert res.sigma is None
    with pytest.raises(DegenerateDerivativeError):
        res.unwrap()


def test_bisection_fallback_recovers_degenerate_quote():
    q = OptionQuote(S0=100.0, K=300.0, T=0.1, r=0.03, price=0.5)
    res = solve_implied_vol(q, SolverConfig(fallback="bisection"))
    assert res.ok, res.error
    assert res.method == "bisection"
    assert call_price(q.S0, q.K, res.sigma, q.r, q.T) == pytest.approx(0.5, abs=1e-4)


@pytest.mark.parametrize("price", [-1.0, 0.0, 100.0, 100.00005, 150.0])
def test_out_of_bounds_price_never_returns_a_vol(price):
    q = OptionQuote(S0=100.0, K=100.0, T=1.0, r=0.03, price=price)
    for cfg in (SolverConfig(), SolverConfig(fallback="bisection")):
        res = solve_implied_vol(q, cfg)
        assert not res.ok
        assert isinstance(res.error, (NonConvergenceError, DomainError))
        assert res.sigma is None


def test_out_of_bounds_error_carries_newton_cause():
    q = OptionQuote(S0=100.0, K=100.0, T=1.0, r=0.03, price=-1.0)
    err = solve_implied_vol(q).error
    assert isinstance(err, NonConvergenceError)
    assert "no-arbitrage" in str(err)
    assert err.__cause__ is not None
    assert err.quote is q


def test_max_iter_exhaustion_is_non_convergence():
    price = call_price(100.0, 120.0, 0.9, 0.0, 1.0)
    q = OptionQuote(100.0, 120.0, 1.0, 0.0, price)
    res = solve_implied_vol(q, SolverConfig(max_iter=1, tol=1e-12))
    assert isinstance(res.error, NonConvergenceError)
    assert res.error.iterations == 1
    assert math.isfinite(res.error.last_sigma)


def test_invalid_guess_and_config():
    q = OptionQuote(100.0, 100.0, 1.0, 0.0, 8.0)
    with pytest.raises(DomainError):
        solve_implied_vol(q, guess=0.0)
    with pytest.raises(ValueError):
        SolverConfig(tol=0.0)
    with pytest.raises(ValueError):
        SolverConfig(fallback="brent")


def test_quote_validation():
    with pytest.raises(DomainError):
        OptionQuote(S0=100.0, K=0.0, T=1.0, r=0.0, price=1.0)
    with pytest.raises(DomainError):
        OptionQuote(S0=100.0, K=100.0, T=-1.0, r=0.0, price=1.0)
    # price is not validated at construction
    OptionQuote(S0=100.0, K=100.0, T=1.0, r=0.0, price=-3.0)


def test_batch_partial_failure_and_frame():
    S0, r, T = 100.0, 0.02, 0.5
    good = [
        OptionQuote(S0, K, T, r, call_price(S0, K, 0.25, r, T))
        for K in (110.0, 90.0, 100.0)
    ]
    bad = OptionQuote(S0, 105.0, T, r, 250.0)
    results = solve_implied_vols(good + [bad])

    assert [r.ok for r in results] == [True, True, True, False]

    df = results_to_frame(results)
    assert list(df["strike"]) == [90.0, 100.0, 105.0, 110.0]
    row = df.set_index("strike").loc[105.0]
    assert row["status"] == "NonConvergenceError"
    assert np.isnan(row["implied_vol"])
    assert (df.loc[df["strike"] != 105.0, "status"] == "ok").all()

    smile = smile_from_results(results)
    assert [p.strike for p in smile] == [90.0, 100.0, 110.0]
    assert all(isinstance(p, VolatilitySurfacePoint) for p in smile)
    assert all(p.implied_vol == pytest.approx(0.25, abs=1e-4) for p in smile)


def test_ivresult_unwrap_success():
    q = OptionQuote(100.0, 100.0, 1.0, 0.0, 8.0)
    assert IVResult(q, 0.2, 3).unwrap() == 0.2
