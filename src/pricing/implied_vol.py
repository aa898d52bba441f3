"""
Implied volatility from observed call prices.

Primary method: damped Newton-Raphson with the closed-form vega as the
derivative,

    sigma_{k+1} = sigma_k - (C(sigma_k) - C_mkt) / vega(sigma_k)

stopping when either the volatility step or the price residual at the
new iterate drops below `tol` (checked in that order). The loop is capped
at `max_iter` iterations.

Failure handling:
- Every solve returns an IVResult carrying either the volatility or a typed
  error. Running out of iterations is NonConvergenceError; a vega below
  `vega_floor` is DegenerateDerivativeError. The last iterate is never
  handed back as if it had converged.
- A market price outside the call's no-arbitrage bounds has no solution,
  so such a price is always reported as NonConvergenceError, including
  when a Newton stopping test fired on a runaway iterate.
- With `fallback="bisection"`, an in-bounds quote whose Newton run failed
  is retried with bracketed bisection (price is monotone in sigma).

Batch helpers solve many quotes independently: one failing quote never
aborts the others.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Literal, Optional

import pandas as pd

from .black_scholes import call_price, vega
from .errors import (
    DegenerateDerivativeError,
    DomainError,
    NonConvergenceError,
    SolverError,
)
from .quotes import OptionQuote, VolatilitySurfacePoint

logger = logging.getLogger("pricing.implied_vol")


@dataclass(frozen=True)
class SolverConfig:
    """Tunables for the implied-volatility solver."""

    tol: float = 1e-4
    max_iter: int = 200
    initial_guess: float = 0.30
    vega_floor: float = 1e-8
    fallback: Literal["none", "bisection"] = "none"
    bisection_lo: float = 1e-6
    bisection_hi: float = 5.0
    bisection_max_hi: float = 10.0

    def __post_init__(self):
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.fallback not in ("none", "bisection"):
            raise ValueError(
                f"fallback must be 'none' or 'bisection', got {self.fallback!r}"
            )
        if not 0 < self.bisection_lo < self.bisection_hi:
            raise ValueError("Need 0 < bisection_lo < bisection_hi")


@dataclass(frozen=True)
class IVResult:
    """
    Outcome of one implied-volatility solve.

    Attributes
    ----------
    quote : OptionQuote
    sigma : float or None
        Converged volatility; None when the solve failed.
    iterations : int
        Iterations used by the method that produced the outcome.
    method : str
        "newton" or "bisection".
    error : SolverError or None
        Typed failure; None on success.
    """

    quote: OptionQuote
    sigma: Optional[float]
    iterations: int
    method: str = "newton"
    error: Optional[SolverError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> float:
        """Return sigma or raise the carried error."""
        if self.error is not None:
            raise self.error
        return float(self.sigma)


# ------------------------------ Newton ---------------------------------- #


def _price(q: OptionQuote, sigma: float) -> float:
    return call_price(q.S0, q.K, sigma, q.r, q.T, q.d)


def _newton(q: OptionQuote, cfg: SolverConfig, guess: float) -> IVResult:
    sigma = float(guess)

    for it in range(1, cfg.max_iter + 1):
        price_k = _price(q, sigma)
        vega_k = vega(q.S0, q.K, sigma, q.r, q.T, q.d)

        if not math.isfinite(vega_k) or abs(vega_k) < cfg.vega_floor:
            err = DegenerateDerivativeError(
                f"vega {vega_k:.3e} below floor {cfg.vega_floor:.1e} "
                f"at sigma={sigma:.6f} (K={q.K})",
                quote=q,
                last_sigma=sigma,
                iterations=it,
            )
            return IVResult(q, None, it, "newton", err)

        sigma_next = sigma - (price_k - q.price) / vega_k

        if not math.isfinite(sigma_next) or sigma_next <= 0.0:
            err = NonConvergenceError(
                f"iterate left the positive-volatility domain "
                f"(sigma={sigma_next:.6g}) after {it} iterations (K={q.K})",
                quote=q,
                last_sigma=sigma,
                iterations=it,
            )
            return IVResult(q, None, it, "newton", err)

        if abs(sigma_next - sigma) < cfg.tol:
            return IVResult(q, sigma_next, it, "newton")
        if abs(_price(q, sigma_next) - q.price) < cfg.tol:
            return IVResult(q, sigma_next, it, "newton")

        sigma = sigma_next

    err = NonConvergenceError(
        f"no convergence within {cfg.max_iter} iterations "
        f"(last sigma={sigma:.6f}, K={q.K})",
        quote=q,
        last_sigma=sigma,
        iterations=cfg.max_iter,
    )
    return IVResult(q, None, cfg.max_iter, "newton", err)


# ----------------------------- Bisection -------------------------------- #


def _bisection(q: OptionQuote, cfg: SolverConfig) -> IVResult:
    """
    Bracketed bisection on [lo, hi]; hi doubles until the bracket
    straddles the target or reaches `bisection_max_hi`.
    """
    lo, hi = cfg.bisection_lo, cfg.bisection_hi
    f_lo = _price(q, lo) - q.price
    f_hi = _price(q, hi) - q.price
    while f_hi < 0.0 and hi < cfg.bisection_max_hi:
        hi = min(2.0 * hi, cfg.bisection_max_hi)
        f_hi = _price(q, hi) - q.price

    if f_lo > 0.0 or f_hi < 0.0:
        err = NonConvergenceError(
            f"price {q.price:.6f} not bracketed by sigma in [{lo}, {hi}] "
            f"(K={q.K})",
            quote=q,
            iterations=0,
        )
        return IVResult(q, None, 0, "bisection", err)

    for it in range(1, cfg.max_iter + 1):
        mid = 0.5 * (lo + hi)
        f_mid = _price(q, mid) - q.price
        if abs(f_mid) < cfg.tol or (hi - lo) < 1e-12:
            return IVResult(q, mid, it, "bisection")
        if f_mid < 0.0:
            lo = mid
        else:
            hi = mid

    err = NonConvergenceError(
        f"bisection did not converge within {cfg.max_iter} iterations "
        f"(K={q.K})",
        quote=q,
        last_sigma=0.5 * (lo + hi),
        iterations=cfg.max_iter,
    )
    return IVResult(q, None, cfg.max_iter, "bisection", err)


# ------------------------------ Public ---------------------------------- #


def _out_of_bounds(q: OptionQuote, newton: IVResult) -> IVResult:
    lo, hi = q.intrinsic_bounds()
    logger.warning(
        f"Price {q.price:.6f} outside no-arbitrage bounds "
        f"[{lo:.6f}, {hi:.6f}] for K={q.K}"
    )
    last = newton.sigma if newton.ok else newton.error.last_sigma
    err = NonConvergenceError(
        f"price {q.price:.6f} outside no-arbitrage bounds "
        f"[{lo:.6f}, {hi:.6f}]; no volatility reproduces it",
        quote=q,
        last_sigma=last,
        iterations=newton.iterations,
    )
    if not newton.ok:
        err.__cause__ = newton.error
    return IVResult(q, None, newton.iterations, "newton", err)


def solve_implied_vol(
    quote: OptionQuote,
    config: SolverConfig = SolverConfig(),
    *,
    guess: Optional[float] = None,
) -> IVResult:
    """
    Solve for sigma such that call_price(quote, sigma) ≈ quote.price.

    Parameters
    ----------
    quote : OptionQuote
    config : SolverConfig
    guess : float, optional
        Starting volatility; defaults to `config.initial_guess`.

    Returns
    -------
    IVResult
        Never raises for solver failures; check `.ok` or call `.unwrap()`.

    Raises
    ------
    DomainError
        If the starting guess is not a positive finite number.
    """
    sigma0 = config.initial_guess if guess is None else float(guess)
    if not math.isfinite(sigma0) or sigma0 <= 0.0:
        raise DomainError(f"initial guess must be positive, got {sigma0}")

    logger.debug(
        f"Solving IV: S0={quote.S0}, K={quote.K}, T={quote.T:.4f}, "
        f"r={quote.r:.4f}, price={quote.price:.6f}, guess={sigma0:.4f}"
    )

    result = _newton(quote, config, sigma0)

    # A residual stop can fire near sigma -> 0 or sigma -> inf for prices at
    # or past the bounds, so a Newton "success" there is not a volatility.
    if not quote.within_bounds():
        return _out_of_bounds(quote, result)

    if result.ok:
        logger.debug(
            f"Newton converged: sigma={result.sigma:.6f} "
            f"in {result.iterations} iterations"
        )
        return result

    if config.fallback == "bisection":
        logger.info(
            f"Newton failed for K={quote.K} ({type(result.error).__name__}); "
            "falling back to bisection"
        )
        return _bisection(quote, config)

    logger.debug(f"Newton failed for K={quote.K}: {result.error}")
    return result


def implied_volatility(
    quote: OptionQuote,
    config: SolverConfig = SolverConfig(),
    *,
    guess: Optional[float] = None,
) -> float:
    """Scalar convenience: return sigma or raise the solver error."""
    return solve_implied_vol(quote, config, guess=guess).unwrap()


# ------------------------------- Batch ---------------------------------- #


def solve_implied_vols(
    quotes: Iterable[OptionQuote],
    config: SolverConfig = SolverConfig(),
) -> List[IVResult]:
    """Solve every quote independently; failures are collected, not raised."""
    results = [solve_implied_vol(q, config) for q in quotes]
    n_ok = sum(r.ok for r in results)
    logger.info(f"Solved {n_ok}/{len(results)} implied volatilities")
    if n_ok < len(results):
        by_kind: dict[str, int] = {}
        for r in results:
            if not r.ok:
                name = type(r.error).__name__
                by_kind[name] = by_kind.get(name, 0) + 1
        logger.warning(f"Implied-vol failures: {by_kind}")
    return results


def results_to_frame(results: Iterable[IVResult]) -> pd.DataFrame:
    """One row per solve, ordered by strike."""
    rows = []
    for r in results:
        rows.append(
            {
                "strike": r.quote.K,
                "price": r.quote.price,
                "implied_vol": r.sigma,
                "iterations": r.iterations,
                "method": r.method,
                "status": "ok" if r.ok else type(r.error).__name__,
                "error": None if r.ok else str(r.error),
            }
        )
    columns = [
        "strike",
        "price",
        "implied_vol",
        "iterations",
        "method",
        "status",
        "error",
    ]
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values("strike", kind="stable").reset_index(drop=True)


def smile_from_results(
    results: Iterable[IVResult],
) -> List[VolatilitySurfacePoint]:
    """Converged results as (strike, iv) points, sorted by strike."""
    return sorted(
        VolatilitySurfacePoint(r.quote.K, float(r.sigma))
        for r in results
        if r.ok
    )
