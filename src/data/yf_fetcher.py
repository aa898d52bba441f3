"""
Equity market data using yfinance.

Key quirks handled:
- yfinance.Ticker.option_chain(expiry) returns a single object with .calls/.puts,
  not a 2-tuple. We access attributes explicitly.
- Spot retrieval: 'fast_info' (cheap) -> 'info' -> 'history' fallback.
- history() with auto_adjust=True already returns split/dividend adjusted
  closes in the 'Close' column.

Everything here touches the network. The numerical packages (pricing,
simulate, vol, density) never import it. Importing the `data` package
does, since it re-exports YFinanceFetcher, and so does `pipeline` by way
of `data.history`.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional, Union

import pandas as pd
import yfinance as yf

from .chain import add_mid_column

logger = logging.getLogger("data.yf_fetcher")


class YFinanceFetcher:
    """Thin synchronous wrapper returning pandas frames."""

    def __init__(self, ticker_factory=yf.Ticker):
        # injectable for tests
        self._ticker = ticker_factory

    def price_history(self, ticker: str, period: str = "1y") -> pd.Series:
        """Adjusted daily closes indexed by date."""
        logger.info(f"Fetching {period} price history for {ticker}")
        hist = self._ticker(ticker).history(period=period, auto_adjust=True)
        if hist is None or hist.empty:
            logger.error(f"No price history returned for {ticker}")
            raise LookupError(f"no price history for {ticker}")

        closes = hist["Close"].astype(float).rename("Adj Close")
        logger.debug(
            f"Retrieved {len(closes)} closes from {closes.index[0].date()} "
            f"to {closes.index[-1].date()}"
        )
        return closes

    def expiries(self, ticker: str) -> List[date]:
        """Listed option expiries, earliest first."""
        raw = self._ticker(ticker).options
        out = []
        for s in raw:
            try:
                out.append(datetime.fromisoformat(s).date())
            except ValueError:
                logger.warning(f"Failed to parse expiry date '{s}'")
        logger.info(f"Found {len(out)} expiries for {ticker}")
        return sorted(out)

    def spot(self, ticker: str) -> Optional[float]:
        t = self._ticker(ticker)

        fi = getattr(t, "fast_info", None)
        try:
            if fi is not None and fi["last_price"] is not None:
                return float(fi["last_price"])
        except (KeyError, TypeError) as e:
            logger.debug(f"fast_info lookup failed: {e}")

        try:
            price = t.info.get("regularMarketPrice")
            if price:
                return float(price)
        except (AttributeError, KeyError, TypeError) as e:
            logger.debug(f"info lookup failed: {e}")

        hist = t.history(period="1d")
        if hist is not None and not hist.empty:
            return float(hist["Close"].iloc[-1])

        logger.warning(f"Could not determine spot for {ticker}")
        return None

    def call_chain(self, ticker: str, expiry: Union[date, str]) -> pd.DataFrame:
        """
        Calls for one expiry with an added 'mid' column.

        Columns follow yfinance: strike, bid, ask, lastPrice,
        impliedVolatility, volume, openInterest, ...
        """
        exp_str = expiry if isinstance(expiry, str) else expiry.isoformat()
        logger.info(f"Fetching call chain for {ticker} expiry {exp_str}")

        # IMPORTANT: option_chain returns an object with .calls and .puts
        calls = self._ticker(ticker).option_chain(exp_str).calls
        logger.debug(f"Retrieved {len(calls)} calls")
        if calls.empty:
            return calls
        return add_mid_column(calls).sort_values("strike").reset_index(drop=True)
