"""
Error types shared by the pricing, smoothing and density stages.

Hierarchy:
- PricingError
  - DomainError               invalid pricing inputs (S0, K, sigma, T <= 0)
  - ExtrapolationError        smile curve queried outside its fitted strikes
  - SolverError               implied-vol solve failed for one quote
    - NonConvergenceError     no convergence within max_iter, or no solution
    - DegenerateDerivativeError  vega numerically zero during Newton steps

UnstableEstimateWarning is a warning category, not an error: negative
density values are attached to the result and never raised.
"""

from __future__ import annotations

from typing import Any, Optional


class PricingError(Exception):
    """Base class for every error raised by this project."""


class DomainError(PricingError, ValueError):
    """Pricing inputs outside the domain where d1 is defined."""


class ExtrapolationError(PricingError, ValueError):
    """A fitted smile curve was queried outside its strike range."""

    def __init__(self, message: str, *, domain: tuple[float, float]):
        super().__init__(message)
        self.domain = domain


class SolverError(PricingError):
    """
    Implied-volatility solve failure for a single quote.

    Carries the last iterate and the number of iterations used so batch
    callers can report or retry with a different method.
    """

    def __init__(
        self,
        message: str,
        *,
        quote: Any = None,
        last_sigma: Optional[float] = None,
        iterations: int = 0,
    ):
        super().__init__(message)
        self.quote = quote
        self.last_sigma = last_sigma
        self.iterations = iterations


class NonConvergenceError(SolverError):
    """Newton-Raphson (or bisection) ended without meeting a stopping rule."""


class DegenerateDerivativeError(SolverError):
    """Vega fell below the solver's floor, so the Newton step is undefined."""


class UnstableEstimateWarning(UserWarning):
    """A finite-difference density value came out negative."""

    def __init__(self, strike: float, density: float):
        super().__init__(
            f"negative density {density:.3e} at strike {strike:.4f}"
        )
        self.strike = strike
        self.density = density
