"""
End-to-end smile analysis: quotes -> implied vols -> smile -> density.

Stages
------
1) Solve every quote independently (one failure never stops the batch).
2) Keep the converged vols as (strike, implied vol) points.
3) Fit the smoothing curve through them.
4) Estimate the BL density on the requested strike grid.
5) Optionally, estimate historical GBM drift/vol from a price series
   (annualized with `config.trading_days`) for comparison with the smile.

Per-quote failures are collected in the result. Stage 3/4 errors (too few
converged quotes, grid outside the smile) are raised: there is no partial
density to return.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from data.history import DriftVolEstimate, estimate_gbm_params
from density.bl import ImpliedDensityCurve, StrikeGrid, implied_density
from pricing.implied_vol import (
    IVResult,
    results_to_frame,
    smile_from_results,
    solve_implied_vols,
)
from pricing.quotes import OptionQuote, VolatilitySurfacePoint
from vol.smoothing import SmileCurve, fit_smile

from .config import AnalysisConfig

logger = logging.getLogger("pipeline.runner")


@dataclass(frozen=True, eq=False)
class SmileAnalysis:
    """Everything produced by one run."""

    results: List[IVResult]
    smile: List[VolatilitySurfacePoint]
    curve: SmileCurve
    density: ImpliedDensityCurve
    config: AnalysisConfig = field(repr=False)
    history: Optional[DriftVolEstimate] = None

    @property
    def failures(self) -> List[IVResult]:
        return [r for r in self.results if not r.ok]

    def results_frame(self) -> pd.DataFrame:
        return results_to_frame(self.results)

    def summary(self) -> Dict[str, float]:
        diag = self.density.diagnostics()
        out = {
            "n_quotes": len(self.results),
            "n_converged": len(self.results) - len(self.failures),
            "n_failed": len(self.failures),
            "n_density_points": len(self.density),
            "n_unstable": int(self.density.unstable.sum()),
            "density_integral": diag.integral,
            "rn_mean": diag.rn_mean,
        }
        if self.history is not None:
            out["hist_mu"] = self.history.mu
            out["hist_sigma"] = self.history.sigma
        return out


def _common_market(quotes: Sequence[OptionQuote]) -> tuple[float, float, float, float]:
    first = quotes[0]
    market = (first.S0, first.r, first.T, first.d)
    for q in quotes[1:]:
        if (q.S0, q.r, q.T, q.d) != market:
            raise ValueError(
                "all quotes must share S0, r, T and d; "
                f"got {market} and {(q.S0, q.r, q.T, q.d)}"
            )
    return market


def run_smile_analysis(
    quotes: Sequence[OptionQuote],
    grid: StrikeGrid,
    config: AnalysisConfig = AnalysisConfig(),
    *,
    prices: Optional[Union[pd.Series, pd.DataFrame]] = None,
) -> SmileAnalysis:
    """
    Run the full quotes -> density pipeline for one expiry.

    Parameters
    ----------
    quotes : sequence of OptionQuote
        Calls for a single underlying and expiry.
    grid : StrikeGrid
        Target grid for the density; must sit inside the converged strikes.
    config : AnalysisConfig
    prices : Series or DataFrame, optional
        Adjusted-close history of the underlying. When given, drift and
        volatility are estimated with `config.trading_days` and stored on
        the result as `history`.

    Raises
    ------
    ValueError
        No quotes, mixed markets, too few converged quotes to smooth, or a
        price history too short to estimate from.
    ExtrapolationError
        Grid reaches outside the fitted smile.
    """
    if not quotes:
        raise ValueError("no quotes to analyse")
    S0, r, T, d = _common_market(quotes)
    logger.info(
        f"Smile analysis: {len(quotes)} quotes, S0={S0}, r={r}, T={T:.4f}, d={d}"
    )

    results = solve_implied_vols(quotes, config.solver)
    smile = smile_from_results(results)
    n_failed = len(results) - len(smile)
    if n_failed:
        logger.warning(f"{n_failed}/{len(results)} quotes did not converge")

    curve = fit_smile(smile, config.smoothing)
    density = implied_density(curve, grid, S0=S0, r=r, T=T, d=d)

    history = None
    if prices is not None:
        history = estimate_gbm_params(prices, config.trading_days)

    analysis = SmileAnalysis(
        results=results,
        smile=smile,
        curve=curve,
        density=density,
        config=config,
        history=history,
    )
    logger.info(f"Smile analysis finished: {analysis.summary()}")
    return analysis
