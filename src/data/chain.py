"""
Option-chain frames -> core value types.

A chain frame is what a data vendor returns for one expiry: one row per
call with at least a `strike` column plus prices (`bid`, `ask`,
`lastPrice`) and usually a vendor `impliedVolatility`.

Rows that cannot become a valid quote (missing strike or price,
non-positive values) are dropped with a log line; one bad row never
fails the whole chain.
"""

from __future__ import annotations

import logging
from typing import List

import numpy as np
import pandas as pd

from pricing.quotes import OptionQuote, VolatilitySurfacePoint, sort_points

logger = logging.getLogger("data.chain")


def add_mid_column(
    df: pd.DataFrame,
    bid_col: str = "bid",
    ask_col: str = "ask",
    *,
    out_col: str = "mid",
    last_col: str = "lastPrice",
) -> pd.DataFrame:
    """
    Append a midprice column.

    Uses (bid + ask) / 2 when both sides are positive and not crossed,
    otherwise the last traded price when present, otherwise NaN.
    Returns a copy; the input frame is untouched.
    """
    if bid_col not in df.columns or ask_col not in df.columns:
        raise KeyError(f"frame needs '{bid_col}' and '{ask_col}' columns")

    out = df.copy()
    bid = pd.to_numeric(out[bid_col], errors="coerce")
    ask = pd.to_numeric(out[ask_col], errors="coerce")
    both = (bid > 0) & (ask > 0) & (bid <= ask)
    mid = np.where(both, 0.5 * (bid + ask), np.nan)

    crossed = int(((bid > 0) & (ask > 0) & (bid > ask)).sum())
    if crossed:
        logger.warning(f"{crossed} crossed quotes (bid > ask)")

    if last_col in out.columns:
        last = pd.to_numeric(out[last_col], errors="coerce")
        fallback = ~both & (last > 0)
        if fallback.any():
            logger.info(f"Using {last_col} for {int(fallback.sum())} one-sided quotes")
        mid = np.where(fallback, last, mid)

    out[out_col] = mid
    logger.debug(
        f"Midprices: {int(np.isfinite(mid).sum())}/{len(out)} rows priced"
    )
    return out


def quotes_from_frame(
    df: pd.DataFrame,
    *,
    S0: float,
    r: float,
    T: float,
    d: float = 0.0,
    price_col: str = "mid",
    strike_col: str = "strike",
) -> List[OptionQuote]:
    """Build OptionQuotes for every usable row, in strike order."""
    if strike_col not in df.columns or price_col not in df.columns:
        raise KeyError(f"frame needs '{strike_col}' and '{price_col}' columns")

    K = pd.to_numeric(df[strike_col], errors="coerce").to_numpy(dtype=float)
    P = pd.to_numeric(df[price_col], errors="coerce").to_numpy(dtype=float)
    keep = np.isfinite(K) & np.isfinite(P) & (K > 0) & (P > 0)

    dropped = int((~keep).sum())
    if dropped:
        logger.warning(
            f"Dropped {dropped}/{len(df)} rows without a usable strike/{price_col}"
        )

    order = np.argsort(K[keep], kind="stable")
    quotes = [
        OptionQuote(S0=S0, K=float(k), T=T, r=r, price=float(p), d=d)
        for k, p in zip(K[keep][order], P[keep][order])
    ]
    logger.info(f"Built {len(quotes)} quotes (S0={S0}, r={r}, T={T:.4f})")
    return quotes


def smile_from_frame(
    df: pd.DataFrame,
    iv_col: str = "impliedVolatility",
    *,
    strike_col: str = "strike",
) -> List[VolatilitySurfacePoint]:
    """Vendor implied vols as surface points, skipping unusable rows."""
    if strike_col not in df.columns or iv_col not in df.columns:
        raise KeyError(f"frame needs '{strike_col}' and '{iv_col}' columns")

    K = pd.to_numeric(df[strike_col], errors="coerce").to_numpy(dtype=float)
    v = pd.to_numeric(df[iv_col], errors="coerce").to_numpy(dtype=float)
    keep = np.isfinite(K) & np.isfinite(v) & (K > 0) & (v > 0)
    if (~keep).any():
        logger.warning(f"Dropped {int((~keep).sum())} rows without a usable {iv_col}")

    return sort_points(
        VolatilitySurfacePoint(float(k), float(s)) for k, s in zip(K[keep], v[keep])
    )
