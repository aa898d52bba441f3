"""
Historical price series -> GBM drift and volatility.

Given an ordered series of adjusted closes P_0, ..., P_N (one per trading
day), the daily log returns are x_t = log(P_t / P_{t-1}) and

    mu    = mean(x) * trading_days
    sigma = std(x, ddof=1) * sqrt(trading_days)

These feed GBMParams for the path simulator. CSV helpers let a downloaded
series be frozen to disk and reloaded for reproducible runs and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from simulate.gbm import GBMParams

logger = logging.getLogger("data.history")

DEFAULT_TRADING_DAYS = 250

# Column names tried, in order, when a DataFrame is passed without price_col
_PRICE_COLUMNS = ("Adj Close", "adjClose", "adj_close", "Close", "close")


@dataclass(frozen=True)
class DriftVolEstimate:
    """Annualized drift/vol estimated from a price history."""

    mu: float
    sigma: float
    last_price: float
    n_returns: int
    trading_days: int = DEFAULT_TRADING_DAYS

    def to_params(
        self, T: float, n_steps: int, S0: Optional[float] = None
    ) -> GBMParams:
        """GBMParams starting from the last observed price unless S0 is given."""
        return GBMParams(
            S0=self.last_price if S0 is None else S0,
            mu=self.mu,
            sigma=self.sigma,
            T=T,
            n_steps=n_steps,
        )


def _as_series(
    prices: Union[pd.Series, pd.DataFrame], price_col: Optional[str]
) -> pd.Series:
    if isinstance(prices, pd.Series):
        return prices
    if price_col is not None:
        return prices[price_col]
    for col in _PRICE_COLUMNS:
        if col in prices.columns:
            logger.debug(f"Using price column '{col}'")
            return prices[col]
    raise KeyError(
        f"no price column found; expected one of {list(_PRICE_COLUMNS)}"
    )


def _clean_prices(
    prices: Union[pd.Series, pd.DataFrame], price_col: Optional[str]
) -> pd.Series:
    s = _as_series(prices, price_col).astype(float)
    if isinstance(s.index, pd.DatetimeIndex) and not s.index.is_monotonic_increasing:
        logger.debug("Sorting price history by date")
        s = s.sort_index()

    bad = ~np.isfinite(s) | (s <= 0.0)
    if bad.any():
        logger.warning(f"Dropped {int(bad.sum())} missing or non-positive prices")
        s = s[~bad]
    return s


def log_returns(
    prices: Union[pd.Series, pd.DataFrame], price_col: Optional[str] = None
) -> pd.Series:
    """Daily log returns of a price series, in date order."""
    return np.log(_clean_prices(prices, price_col)).diff().dropna()


def estimate_gbm_params(
    prices: Union[pd.Series, pd.DataFrame],
    trading_days: int = DEFAULT_TRADING_DAYS,
    *,
    price_col: Optional[str] = None,
) -> DriftVolEstimate:
    """
    Annualized mu and sigma from an ordered adjusted-close series.

    Parameters
    ----------
    prices : Series or DataFrame
        Adjusted closes indexed by date (a DataFrame uses `price_col` or
        the first of "Adj Close", "adjClose", "Close" present).
    trading_days : int
        Trading days per year used to annualize.

    Raises
    ------
    ValueError
        Fewer than two returns after cleaning.
    """
    if trading_days <= 0:
        raise ValueError(f"trading_days must be positive, got {trading_days}")

    clean = _clean_prices(prices, price_col)
    x = np.log(clean).diff().dropna()
    if x.size < 2:
        logger.error(f"Need at least 2 returns to estimate volatility, got {x.size}")
        raise ValueError("price history too short to estimate drift and volatility")

    mu = float(x.mean()) * trading_days
    sigma = float(x.std(ddof=1)) * float(np.sqrt(trading_days))
    last = float(clean.iloc[-1])

    logger.info(
        f"Estimated GBM params from {x.size} returns: mu={mu:.4f}, "
        f"sigma={sigma:.4f} (trading_days={trading_days})"
    )
    if sigma == 0.0:
        logger.warning("Price history has zero volatility")

    return DriftVolEstimate(
        mu=mu,
        sigma=sigma,
        last_price=last,
        n_returns=int(x.size),
        trading_days=trading_days,
    )


# ----------------- CSV I/O -----------------


def save_price_csv(
    prices: pd.Series, path: Union[str, Path], *, name: str = "Adj Close"
) -> Path:
    """Write a date-indexed price series as Date,<name> CSV."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = prices.rename(name).to_frame()
    frame.index.name = "Date"
    frame.to_csv(path)
    logger.info(f"Saved {len(frame)} prices to {path}")
    return path


def load_price_csv(
    path: Union[str, Path],
    *,
    date_col: str = "Date",
    price_col: Optional[str] = None,
) -> pd.Series:
    """Load a price series written by `save_price_csv` (or a Yahoo export)."""
    path = Path(path)
    if not path.exists():
        logger.error(f"Price file not found: {path}")
        raise FileNotFoundError(path)

    df = pd.read_csv(path, parse_dates=[date_col], index_col=date_col)
    s = _as_series(df, price_col).astype(float).sort_index()
    logger.info(f"Loaded {len(s)} prices from {path}")
    return s
