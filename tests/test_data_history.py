import numpy as np
import pandas as pd
import pytest

from data.history import (
    estimate_gbm_params,
    load_price_csv,
    log_returns,
    save_price_csv,
)


def _prices(n=120, seed=11):
    rng = np.random.default_rng(seed)
    x = rng.normal(0.0004, 0.012, n)
    idx = pd.bdate_range("2024-01-02", periods=n + 1)
    return pd.Series(100.0 * np.exp(np.concatenate([[0.0], np.cumsum(x)])), index=idx), x


def test_estimate_matches_annualized_log_return_stats():
    s, x = _prices()
    est = estimate_gbm_params(s)

    assert est.n_returns == x.size
    assert est.mu == pytest.approx(x.mean() * 250, rel=1e-9)
    assert est.sigma == pytest.approx(x.std(ddof=1) * np.sqrt(250), rel=1e-9)
    assert est.last_price == pytest.approx(s.iloc[-1])


def test_trading_days_and_unsorted_input():
    s, x = _prices()
    est = estimate_gbm_params(s.iloc[::-1], trading_days=252)
    assert est.sigma == pytest.approx(x.std(ddof=1) * np.sqrt(252), rel=1e-9)


def test_to_params_starts_at_last_price():
    s, _ = _prices()
    prm = estimate_gbm_params(s).to_params(T=1.0, n_steps=250)
    assert prm.S0 == pytest.approx(s.iloc[-1])
    assert prm.n_steps == 250
    assert estimate_gbm_params(s).to_params(T=1.0, n_steps=10, S0=42.0).S0 == 42.0


def test_dataframe_column_detection_and_cleaning():
    s, _ = _prices(n=10)
    df = pd.DataFrame({"Open": s * 0.99, "Close": s})
    df.iloc[4, 1] = np.nan
    r = log_returns(df)
    # one missing close removes one return (two around the gap collapse to one)
    assert len(r) == len(s) - 2
    with pytest.raises(KeyError):
        log_returns(pd.DataFrame({"Volume": [1, 2, 3]}))


def test_too_short_history():
    with pytest.raises(ValueError):
        estimate_gbm_params(pd.Series([100.0, 101.0]))
    with pytest.raises(ValueError):
        estimate_gbm_params(pd.Series([100.0, 101.0, 102.0]), trading_days=0)


def test_csv_roundtrip(tmp_path):
    s, _ = _prices(n=30)
    path = save_price_csv(s, tmp_path / "prices" / "spy.csv")
    assert path.exists()

    loaded = load_price_csv(path)
    np.testing.assert_allclose(loaded.to_numpy(), s.to_numpy())
    assert (loaded.index == s.index).all()
    assert estimate_gbm_params(loaded).sigma == pytest.approx(
        estimate_gbm_params(s).sigma
    )


def test_missing_csv(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_price_csv(tmp_path / "nope.csv")
