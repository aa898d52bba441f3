import numpy as np
import pytest

from pricing.black_scholes import call_price, d1_d2, greeks, put_price, vega
from pricing.errors import DomainError


def test_call_price_reference_value():
    # Hull's textbook example: S=K=100, sigma=20%, r=5%, T=1
    assert call_price(100.0, 100.0, 0.2, 0.05, 1.0) == pytest.approx(
        10.450584, abs=1e-5
    )


def test_scalar_in_float_out_and_vectorized():
    c = call_price(100.0, 100.0, 0.2, 0.05, 1.0)
    assert isinstance(c, float)

    K = np.array([80.0, 100.0, 120.0])
    cs = call_price(100.0, K, 0.2, 0.05, 1.0)
    assert cs.shape == (3,)
    # call price decreases with strike
    assert np.all(np.diff(cs) < 0)


@pytest.mark.parametrize("d", [0.0, 0.02])
@pytest.mark.parametrize("K", [70.0, 100.0, 140.0])
def test_put_call_parity(K, d):
    S0, sigma, r, T = 100.0, 0.3, 0.04, 0.75
    c = call_price(S0, K, sigma, r, T, d)
    p = put_price(S0, K, sigma, r, T, d)
    assert p + S0 * np.exp(-d * T) == pytest.approx(c + K * np.exp(-r * T), abs=1e-10)


def test_price_strictly_increasing_in_sigma():
    sig = np.linspace(0.01, 2.0, 200)
    prices = call_price(100.0, 110.0, sig, 0.03, 0.5)
    assert np.all(np.diff(prices) > 0)
    assert np.all(vega(100.0, 110.0, sig, 0.03, 0.5) > 0)


@pytest.mark.parametrize("K", [80.0, 100.0, 125.0])
def test_sigma_limits(K):
    S0, r, T, d = 100.0, 0.05, 1.0, 0.01
    intrinsic = max(S0 * np.exp(-d * T) - K * np.exp(-r * T), 0.0)
    assert call_price(S0, K, 1e-8, r, T, d) == pytest.approx(intrinsic, abs=1e-8)
    assert call_price(S0, K, 1e3, r, T, d) == pytest.approx(S0 * np.exp(-d * T), abs=1e-8)


def test_vega_matches_finite_difference():
    args = (100.0, 95.0, 0.25, 0.02, 0.8, 0.01)
    h = 1e-5
    up = call_price(args[0], args[1], args[2] + h, *args[3:])
    dn = call_price(args[0], args[1], args[2] - h, *args[3:])
    assert vega(*args) == pytest.approx((up - dn) / (2 * h), rel=1e-6)


def test_greeks_consistency():
    S0, K, sigma, r, T, d = 100.0, 105.0, 0.2, 0.03, 0.5, 0.01
    gc = greeks(S0, K, sigma, r, T, d, kind="call")
    gp = greeks(S0, K, sigma, r, T, d, kind="put")

    assert 0.0 < gc["delta"] < 1.0
    assert gp["delta"] == pytest.approx(gc["delta"] - np.exp(-d * T), abs=1e-12)
    assert gc["gamma"] == pytest.approx(gp["gamma"])
    assert gc["vega"] == pytest.approx(vega(S0, K, sigma, r, T, d))

    # delta against a bump in spot
    h = 1e-4
    fd = (call_price(S0 + h, K, sigma, r, T, d) - call_price(S0 - h, K, sigma, r, T, d)) / (2 * h)
    assert gc["delta"] == pytest.approx(fd, rel=1e-6)

    with pytest.raises(ValueError):
        greeks(S0, K, sigma, r, T, d, kind="straddle")


@pytest.mark.parametrize(
    "S0,K,sigma,T",
    [
        (0.0, 100.0, 0.2, 1.0),
        (100.0, -5.0, 0.2, 1.0),
        (100.0, 100.0, 0.0, 1.0),
        (100.0, 100.0, 0.2, 0.0),
        (100.0, float("nan"), 0.2, 1.0),
    ],
)
def test_domain_errors(S0, K, sigma, T):
    with pytest.raises(DomainError):
        call_price(S0, K, sigma, 0.01, T)
    with pytest.raises(DomainError):
        d1_d2(S0, K, sigma, 0.01, T)


def test_domain_error_is_value_error():
    # callers catching ValueError keep working
    with pytest.raises(ValueError):
        vega(100.0, 100.0, -0.1, 0.0, 1.0)
