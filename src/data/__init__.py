"""
Data-layer exports (price histories, option-chain frames, yfinance backend).
"""

from __future__ import annotations

from .chain import add_mid_column, quotes_from_frame, smile_from_frame
from .history import (
    DriftVolEstimate,
    estimate_gbm_params,
    load_price_csv,
    log_returns,
    save_price_csv,
)
from .yf_fetcher import YFinanceFetcher  # equity

__all__ = [
    "DriftVolEstimate",
    "estimate_gbm_params",
    "log_returns",
    "load_price_csv",
    "save_price_csv",
    "add_mid_column",
    "quotes_from_frame",
    "smile_from_frame",
    "YFinanceFetcher",
]
