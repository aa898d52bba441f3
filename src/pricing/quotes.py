"""
Value types used throughout the project.

Why this file exists:
- Every stage (solver, smoothing, density, data adapters) passes the same
  small immutable records around, so downstream code never reads shared
  or mutated state.
- Keep these types tiny and stable.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .errors import DomainError

logger = logging.getLogger("pricing.quotes")


@dataclass(frozen=True)
class OptionQuote:
    """
    One observed European call quote.

    Notes:
    - 'price' is NOT checked against no-arbitrage bounds here; an
      out-of-bounds price is reported by the solver as a failure.
    - 'd' is a continuous dividend yield (0 for most index examples).
    """

    S0: float
    K: float
    T: float  # years
    r: float  # continuous risk-free rate
    price: float
    d: float = 0.0

    def __post_init__(self):
        for name in ("S0", "K", "T"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                logger.error(f"Rejected quote: {name}={value}")
                raise DomainError(f"{name} must be positive, got {value}")

    def intrinsic_bounds(self) -> Tuple[float, float]:
        """No-arbitrage bounds for a call: (discounted intrinsic, S0 e^{-dT})."""
        fwd_spot = self.S0 * math.exp(-self.d * self.T)
        disc_strike = self.K * math.exp(-self.r * self.T)
        return max(fwd_spot - disc_strike, 0.0), fwd_spot

    def within_bounds(self) -> bool:
        lo, hi = self.intrinsic_bounds()
        return lo < self.price < hi


@dataclass(frozen=True, order=True)
class VolatilitySurfacePoint:
    """(strike, implied vol) pair; ordering is by strike."""

    strike: float
    implied_vol: float


def sort_points(
    points: Iterable[VolatilitySurfacePoint],
) -> List[VolatilitySurfacePoint]:
    """Return the points ordered by strike."""
    return sorted(points)
