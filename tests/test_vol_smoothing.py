import numpy as np
import pytest

from pricing.errors import ExtrapolationError
from pricing.quotes import VolatilitySurfacePoint as P
from vol.smoothing import SmoothingConfig, fit_smile


def _smile(K, v):
    return [P(float(k), float(s)) for k, s in zip(K, v)]


def test_pchip_interpolates_nodes():
    K = np.array([80.0, 90.0, 100.0, 110.0, 120.0])
    v = np.array([0.32, 0.27, 0.24, 0.25, 0.29])
    curve = fit_smile(_smile(K, v), SmoothingConfig(method="pchip"))
    np.testing.assert_allclose(curve(K), v, atol=1e-12)
    assert curve.domain == (80.0, 120.0)


def test_lowess_reproduces_a_line():
    # local linear regression is exact on linear data
    K = np.linspace(80.0, 120.0, 21)
    v = 0.5 - 0.002 * K
    curve = fit_smile(_smile(K[::-1], v[::-1]))  # unsorted input
    q = np.array([80.0, 93.3, 101.7, 120.0])
    np.testing.assert_allclose(curve(q), 0.5 - 0.002 * q, atol=1e-10)


def test_lowess_smooths_noise():
    rng = np.random.default_rng(3)
    K = np.linspace(60.0, 140.0, 41)
    true = 0.2 + 0.5 * ((K - 100.0) / 100.0) ** 2
    noisy = true + rng.normal(0.0, 0.005, K.size)
    curve = fit_smile(_smile(K, noisy), SmoothingConfig(frac=0.4))
    err_fit = np.sqrt(np.mean((curve(K) - true) ** 2))
    err_raw = np.sqrt(np.mean((noisy - true) ** 2))
    assert err_fit < err_raw


def test_spline_method():
    K = np.linspace(70.0, 130.0, 13)
    v = 0.22 + 0.3 * ((K - 100.0) / 100.0) ** 2
    curve = fit_smile(_smile(K, v), SmoothingConfig(method="spline", spline_s=0.0))
    np.testing.assert_allclose(curve(K), v, atol=1e-8)
    assert curve.method == "spline"


def test_scalar_query_returns_float():
    curve = fit_smile(_smile([90, 100, 110], [0.3, 0.25, 0.28]))
    assert isinstance(curve(100.0), float)


def test_outside_domain_raises():
    curve = fit_smile(_smile([90, 100, 110, 120], [0.3, 0.25, 0.27, 0.3]))
    assert curve.contains(90.0) and curve.contains(120.0)
    assert not curve.contains(89.9)

    with pytest.raises(ExtrapolationError) as exc:
        curve(np.array([95.0, 125.0]))
    assert exc.value.domain == (90.0, 120.0)
    with pytest.raises(ExtrapolationError):
        curve(80.0)


def test_duplicate_strikes_are_averaged():
    pts = _smile([100, 100, 110, 120], [0.2, 0.3, 0.25, 0.3])
    curve = fit_smile(pts, SmoothingConfig(method="pchip"))
    assert curve(100.0) == pytest.approx(0.25)
    assert curve.strikes.tolist() == [100.0, 110.0, 120.0]


def test_bad_points_are_dropped():
    pts = _smile([90, 100, 110, 120], [0.3, float("nan"), 0.25, -0.1])
    curve = fit_smile(pts, SmoothingConfig(method="pchip"))
    assert curve.strikes.tolist() == [90.0, 110.0]


def test_too_few_points():
    with pytest.raises(ValueError):
        fit_smile(_smile([100, 110], [0.2, 0.21]))
    with pytest.raises(ValueError):
        fit_smile(_smile([100, 110, 120], [0.2, 0.21, 0.22]), SmoothingConfig(method="spline"))


def test_config_validation():
    with pytest.raises(ValueError):
        SmoothingConfig(method="kernel")
    with pytest.raises(ValueError):
        SmoothingConfig(frac=0.0)
    with pytest.raises(ValueError):
        SmoothingConfig(spline_k=7)
