"""
Pricing exports (Black-Scholes, implied volatility, value and error types).
"""

from __future__ import annotations

from .black_scholes import (
    call_price,
    d1_d2,
    greeks,
    normal_cdf,
    normal_pdf,
    put_price,
    vega,
)
from .errors import (
    DegenerateDerivativeError,
    DomainError,
    ExtrapolationError,
    NonConvergenceError,
    PricingError,
    SolverError,
    UnstableEstimateWarning,
)
from .implied_vol import (
    IVResult,
    SolverConfig,
    implied_volatility,
    results_to_frame,
    smile_from_results,
    solve_implied_vol,
    solve_implied_vols,
)
from .quotes import OptionQuote, VolatilitySurfacePoint, sort_points

__all__ = [
    # pricer
    "call_price",
    "put_price",
    "vega",
    "greeks",
    "d1_d2",
    "normal_cdf",
    "normal_pdf",
    # types
    "OptionQuote",
    "VolatilitySurfacePoint",
    "sort_points",
    # solver
    "SolverConfig",
    "IVResult",
    "solve_implied_vol",
    "solve_implied_vols",
    "implied_volatility",
    "results_to_frame",
    "smile_from_results",
    # errors
    "PricingError",
    "DomainError",
    "SolverError",
    "NonConvergenceError",
    "DegenerateDerivativeError",
    "ExtrapolationError",
    "UnstableEstimateWarning",
]
