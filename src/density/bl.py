"""
BL finite-difference density extraction from an implied-volatility smile.

Breeden–Litzenberger (1978): under mild conditions, the risk-neutral
probability density g(K, T) is the second derivative of the call price
with respect to strike, compounded forward to expiry:

    g(K, T) = exp(r T) * d^2 C(K, T) / dK^2

Pipeline
--------
1) Fit (or accept) a smoothing curve sigma(K) through observed
   (strike, implied vol) points. The target grid must lie inside the
   curve's fitted strike range; otherwise ExtrapolationError.
2) Reprice C_i = BS_call(S0, K_i, sigma(K_i), r, T, d) on an evenly
   spaced grid K_0 < K_1 < ... < K_m with step delta.
3) Apply the central three-point stencil

       g(K_i) = exp(r T) * (C_{i-1} + C_{i+1} - 2 C_i) / delta^2

   for interior points i = 1..m-1 only. Boundary strikes have no
   neighbour on one side and are omitted, never zero-filled.
4) Negative g values are kept as computed and flagged as unstable: they
   signal a grid too fine for the pricing noise or a non-convex smile,
   not a valid density.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
from numpy.typing import ArrayLike

from pricing.black_scholes import call_price
from pricing.errors import DomainError, ExtrapolationError, UnstableEstimateWarning
from pricing.quotes import VolatilitySurfacePoint
from vol.smoothing import SmileCurve, SmoothingConfig, fit_smile

# Set up module logger
logger = logging.getLogger("density.bl")


@dataclass(frozen=True)
class StrikeGrid:
    """
    Evenly spaced strike grid start, start + step, ..., up to stop.

    `stop` is included when it lands on the grid (within float noise).
    """

    start: float
    stop: float
    step: float

    def __post_init__(self):
        if not (np.isfinite(self.start) and np.isfinite(self.stop)):
            raise ValueError("grid bounds must be finite")
        if not np.isfinite(self.step) or self.step <= 0.0:
            raise ValueError(f"grid step must be positive, got {self.step}")
        if self.start <= 0.0:
            raise DomainError(f"strikes must be positive, got start={self.start}")
        if self.size < 3:
            raise ValueError(
                f"grid [{self.start}, {self.stop}] with step {self.step} has "
                f"{self.size} points; need at least 3"
            )

    @property
    def size(self) -> int:
        if self.stop < self.start:
            return 0
        return int(math.floor((self.stop - self.start) / self.step + 1e-9)) + 1

    @property
    def strikes(self) -> np.ndarray:
        return self.start + self.step * np.arange(self.size, dtype=float)

    @classmethod
    def around(cls, center: float, half_width: float, step: float) -> "StrikeGrid":
        """Grid symmetric around `center` (e.g. spot)."""
        return cls(center - half_width, center + half_width, step)


@dataclass
class BLDiagnostics:
    """Summary statistics and sanity checks for a recovered density."""

    integral: float  # ∫ g dK over the interior grid, negatives included
    neg_frac: float  # fraction of interior points with g < 0
    rn_mean: float  # ∫ K g+ dK / ∫ g+ dK
    rn_var: float  # variance around rn_mean, same weights
    note: str = ""

    def __post_init__(self):
        logger.debug(
            f"BL diagnostics: integral={self.integral:.6f}, "
            f"neg_frac={self.neg_frac:.4f}, mean={self.rn_mean:.2f}, "
            f"var={self.rn_var:.6f}"
        )

        # Quality checks
        if abs(self.integral - 1.0) > 0.1:
            logger.warning(
                f"Density integral far from 1.0: {self.integral:.6f} "
                "(grid may not cover the bulk of the distribution)"
            )

        if self.neg_frac > 0.05:
            logger.warning(
                f"High negative density fraction: {self.neg_frac:.4f} "
                "(may indicate arbitrage or an overly fine grid)"
            )
        elif self.neg_frac > 0.0:
            logger.info(f"Some negative density: {self.neg_frac:.4f}")

        if not np.isfinite(self.rn_mean):
            logger.warning("Risk-neutral mean is not finite")


def _ro(a: np.ndarray, dtype=float) -> np.ndarray:
    a = np.array(a, dtype=dtype)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class ImpliedDensityCurve:
    """
    Density estimates at the interior points of a strike grid.

    Attributes
    ----------
    strikes, density : ndarray
        Same length, strictly increasing strikes. Read-only.
    unstable : ndarray of bool
        True where the estimate is negative.
    step : float
        Grid spacing delta used by the stencil.
    warnings : tuple of UnstableEstimateWarning
        One per unstable point, in strike order.
    """

    strikes: np.ndarray
    density: np.ndarray
    unstable: np.ndarray
    step: float
    warnings: Tuple[UnstableEstimateWarning, ...] = field(default=(), repr=False)

    def __len__(self) -> int:
        return self.strikes.size

    @property
    def is_stable(self) -> bool:
        return not bool(self.unstable.any())

    def points(self) -> list[Tuple[float, float]]:
        """Ordered (strike, density) pairs."""
        return [(float(k), float(g)) for k, g in zip(self.strikes, self.density)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "strike": self.strikes,
                "density": self.density,
                "unstable": self.unstable,
            }
        )

    def diagnostics(self) -> BLDiagnostics:
        K, g = self.strikes, self.density
        integral = float(np.trapezoid(g, K)) if K.size > 1 else 0.0
        neg_frac = float(np.mean(self.unstable)) if K.size else 0.0

        # moments from the non-negative part only
        gp = np.where(np.isfinite(g) & (g > 0.0), g, 0.0)
        z = float(np.trapezoid(gp, K)) if K.size > 1 else 0.0
        if z > 0.0:
            mean = float(np.trapezoid(K * gp, K)) / z
            var = max(float(np.trapezoid((K - mean) ** 2 * gp, K)) / z, 0.0)
        else:
            mean, var = float("nan"), float("nan")

        return BLDiagnostics(
            integral=integral,
            neg_frac=neg_frac,
            rn_mean=mean,
            rn_var=var,
            note=f"uniform grid, delta={self.step:g}",
        )


def _central_second_uniform(y: np.ndarray, h: float) -> np.ndarray:
    """
    Second derivative at interior points of a uniform grid:

        y''_i ≈ (y_{i+1} - 2 y_i + y_{i-1}) / h^2,   i = 1..n-2

    Returns an array of length n - 2.
    """
    logger.debug(
        f"Computing central second derivative: {len(y)} points, h={h:.6f}"
    )
    out = (y[2:] - 2.0 * y[1:-1] + y[:-2]) / (h * h)

    finite = out[np.isfinite(out)]
    if finite.size:
        logger.debug(
            f"Second derivative range: [{finite.min():.8f}, {finite.max():.8f}]"
        )
    return out


def _check_uniform(K: np.ndarray) -> float:
    spacings = np.diff(K)
    if np.any(spacings <= 0.0):
        raise ValueError("strikes must be strictly increasing")
    h = float(spacings.mean())
    if np.max(np.abs(spacings - h)) > 1e-6 * max(h, 1.0):
        logger.error(
            f"Non-uniform strike grid: spacing range "
            f"[{spacings.min():.6f}, {spacings.max():.6f}]"
        )
        raise ValueError("strikes must be evenly spaced")
    return h


def density_from_calls(
    strikes: ArrayLike,
    calls: ArrayLike,
    r: float,
    T: float,
) -> ImpliedDensityCurve:
    """
    Finite-difference BL stage on pre-computed call prices.

    Parameters
    ----------
    strikes : array-like
        Evenly spaced, strictly increasing strikes (at least 3).
    calls : array-like
        Call prices C(K_i), same length.
    r : float
        Continuously-compounded risk-free rate.
    T : float
        Year fraction to expiry.

    Returns
    -------
    ImpliedDensityCurve
        Interior points only; negative values flagged, not clipped.
    """
    K = np.asarray(strikes, dtype=float)
    C = np.asarray(calls, dtype=float)

    if K.shape != C.shape or K.ndim != 1:
        logger.error(
            f"Shape mismatch: strikes {K.shape}, calls {C.shape}"
        )
        raise ValueError("strikes and calls must be 1-D arrays of equal length")
    if K.size < 3:
        logger.error(f"Insufficient points: {K.size} < 3")
        raise ValueError("Need at least 3 call points for second derivative.")
    if not (np.all(np.isfinite(K)) and np.all(np.isfinite(C))):
        raise ValueError("strikes and calls must be finite")
    if not np.isfinite(T) or T <= 0.0:
        raise DomainError(f"T must be positive, got {T}")

    h = _check_uniform(K)

    # Check for monotonicity violations in call prices
    increases = int((np.diff(C) > 0).sum())
    if increases:
        logger.warning(
            f"Call prices not decreasing in strike: {increases}/{C.size - 1} increases"
        )

    growth = np.exp(r * T)
    g = growth * _central_second_uniform(C, h)
    K_int = K[1:-1]
    logger.debug(f"Applied BL formula with growth factor {growth:.6f}")

    unstable = g < 0.0
    warns = tuple(
        UnstableEstimateWarning(float(k), float(v))
        for k, v in zip(K_int[unstable], g[unstable])
    )
    if warns:
        logger.warning(
            f"{len(warns)}/{g.size} density estimates are negative "
            f"(min {g[unstable].min():.3e} at K={K_int[unstable][np.argmin(g[unstable])]:.4f}); "
            "treat them as unstable"
        )

    logger.info(
        f"BL density on {g.size} interior strikes "
        f"[{K_int[0]:.2f}, {K_int[-1]:.2f}], delta={h:g}"
    )
    return ImpliedDensityCurve(
        strikes=_ro(K_int),
        density=_ro(g),
        unstable=_ro(unstable, dtype=bool),
        step=h,
        warnings=warns,
    )


def implied_density(
    smile: Union[SmileCurve, Iterable[VolatilitySurfacePoint]],
    grid: StrikeGrid,
    *,
    S0: float,
    r: float,
    T: float,
    d: float = 0.0,
    smoothing: Optional[SmoothingConfig] = None,
) -> ImpliedDensityCurve:
    """
    Risk-neutral density implied by a volatility smile.

    Parameters
    ----------
    smile : SmileCurve or iterable of VolatilitySurfacePoint
        A fitted curve, or raw observations to fit with `smoothing`.
    grid : StrikeGrid
        Target strikes; every one must lie inside the smile's domain.
    S0, r, T, d : float
        Spot, rate, expiry (years), dividend yield used for repricing.
    smoothing : SmoothingConfig, optional
        Only used when `smile` is raw points. Defaults to LOWESS.

    Raises
    ------
    ExtrapolationError
        Grid reaches outside the fitted strike range.
    DomainError
        The smoothed vol is non-positive (or NaN) at any grid strike, e.g.
        a spline dipping below zero between observations.
    """
    if isinstance(smile, SmileCurve):
        curve = smile
    else:
        curve = fit_smile(smile, smoothing or SmoothingConfig())

    K = grid.strikes
    inside = np.atleast_1d(curve.contains(K))
    if not inside.all():
        lo, hi = curve.domain
        logger.error(
            f"Strike grid [{K[0]:.4f}, {K[-1]:.4f}] exceeds smile domain "
            f"[{lo:.4f}, {hi:.4f}]"
        )
        raise ExtrapolationError(
            f"strike grid [{K[0]}, {K[-1]}] exceeds fitted range [{lo}, {hi}]",
            domain=(lo, hi),
        )

    logger.info(
        f"Repricing {K.size} calls on grid [{K[0]:.2f}, {K[-1]:.2f}] step "
        f"{grid.step:g} (S0={S0}, r={r}, T={T}, d={d})"
    )
    sigma = np.asarray(curve(K), dtype=float)
    bad = ~(np.isfinite(sigma) & (sigma > 0.0))
    if bad.any():
        logger.error(
            f"Smoothed smile is non-positive or non-finite at {int(bad.sum())} "
            f"grid strikes, first K={K[bad][0]:.4f} (sigma={sigma[bad][0]:.6g})"
        )
        raise DomainError(
            f"smoothed vol is non-positive at {int(bad.sum())}/{K.size} grid "
            f"strikes (e.g. K={K[bad][0]}); refit the smile ({curve.method}) "
            "or narrow the grid"
        )
    calls = call_price(S0, K, sigma, r, T, d)
    logger.debug(
        f"Repriced calls range: [{np.min(calls):.6f}, {np.max(calls):.6f}]"
    )
    return density_from_calls(K, calls, r, T)
