"""
Smoothing of observed implied volatilities across strikes.

Market smiles are jagged (bid/ask noise, stale quotes), and the density
stage takes a second derivative of prices rebuilt from this curve, so any
roughness is amplified. We fit a smooth, queryable curve sigma(K).

Methods
-------
- "lowess": locally weighted linear regression. For a query strike x, the
  nearest ceil(frac * n) observations get tricube weights
      w_j = (1 - (|K_j - x| / h)^3)^3,   h = distance to the farthest of them
  and the curve value is the weighted least-squares line evaluated at x.
  This is a single pass with no robustness reweighting (statsmodels'
  `it=0`), so an outlying quote still pulls the curve; clean the smile
  first if it has gross outliers.
- "spline": scipy UnivariateSpline of degree `spline_k` with smoothing
  factor `spline_s` (None lets SciPy pick s = n).
- "pchip": scipy PchipInterpolator; shape preserving, interpolates the
  observations exactly (use on already-clean smiles).

Domain tracking
---------------
The curve remembers [K_min, K_max] of its observations. Queries outside
that range raise ExtrapolationError; we never extrapolate silently.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Literal, Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy.interpolate import PchipInterpolator, UnivariateSpline

from pricing.errors import ExtrapolationError
from pricing.quotes import VolatilitySurfacePoint

logger = logging.getLogger("vol.smoothing")

SmoothingMethod = Literal["lowess", "spline", "pchip"]

# Relative slack on the domain edges so grid endpoints produced by
# floating-point arithmetic (np.arange, linspace) are still accepted.
_EDGE_RTOL = 1e-10


@dataclass(frozen=True)
class SmoothingConfig:
    """Smoothing strategy and its knobs."""

    method: SmoothingMethod = "lowess"
    frac: float = 0.5  # lowess neighbourhood as a share of observations
    spline_s: Optional[float] = None
    spline_k: int = 3

    def __post_init__(self):
        if self.method not in ("lowess", "spline", "pchip"):
            raise ValueError(
                f"method must be 'lowess', 'spline' or 'pchip', got {self.method!r}"
            )
        if not 0.0 < self.frac <= 1.0:
            raise ValueError(f"frac must be in (0, 1], got {self.frac}")
        if not 1 <= self.spline_k <= 5:
            raise ValueError(f"spline_k must be in [1, 5], got {self.spline_k}")

    @property
    def min_points(self) -> int:
        if self.method == "spline":
            return self.spline_k + 1
        if self.method == "pchip":
            return 2
        return 3


# ------------------------------ LOWESS ---------------------------------- #


def _lowess_at(
    x0: float, x: np.ndarray, y: np.ndarray, n_local: int
) -> float:
    """Local linear fit at x0 with tricube weights."""
    dist = np.abs(x - x0)
    h = np.partition(dist, n_local - 1)[n_local - 1]
    # widen a hair so the farthest neighbour keeps a tiny positive weight
    h = max(h, 1e-12) * (1.0 + 1e-6)
    u = np.clip(dist / h, 0.0, 1.0)
    w = (1.0 - u**3) ** 3

    sw = w.sum()
    x_bar = float(np.dot(w, x) / sw)
    y_bar = float(np.dot(w, y) / sw)
    sxx = float(np.dot(w, (x - x_bar) ** 2))
    if sxx <= 1e-14 * max(1.0, x_bar * x_bar):
        return y_bar
    slope = float(np.dot(w, (x - x_bar) * (y - y_bar))) / sxx
    return y_bar + slope * (x0 - x_bar)


def _make_lowess(
    x: np.ndarray, y: np.ndarray, frac: float
) -> Callable[[np.ndarray], np.ndarray]:
    n_local = min(x.size, max(3, int(math.ceil(frac * x.size))))
    logger.debug(f"LOWESS: {n_local}/{x.size} points per local fit")

    def evaluate(q: np.ndarray) -> np.ndarray:
        return np.array([_lowess_at(float(v), x, y, n_local) for v in q])

    return evaluate


# ------------------------------ Curve ----------------------------------- #


class SmileCurve:
    """
    Fitted implied-volatility curve with an explicit strike domain.

    Call it with a strike or an array of strikes to get smoothed vols.
    """

    def __init__(
        self,
        strikes: np.ndarray,
        vols: np.ndarray,
        evaluate: Callable[[np.ndarray], np.ndarray],
        method: str,
    ):
        self._strikes = strikes
        self._vols = vols
        self._evaluate = evaluate
        self.method = method

    @property
    def domain(self) -> Tuple[float, float]:
        return float(self._strikes[0]), float(self._strikes[-1])

    @property
    def strikes(self) -> np.ndarray:
        return self._strikes.copy()

    @property
    def observed_vols(self) -> np.ndarray:
        return self._vols.copy()

    def contains(self, K: ArrayLike) -> np.ndarray | bool:
        lo, hi = self.domain
        slack = _EDGE_RTOL * max(abs(lo), abs(hi), 1.0)
        K = np.asarray(K, dtype=float)
        inside = (K >= lo - slack) & (K <= hi + slack)
        return bool(inside) if inside.ndim == 0 else inside

    def __call__(self, K: ArrayLike) -> float | np.ndarray:
        K_arr = np.atleast_1d(np.asarray(K, dtype=float))
        inside = np.atleast_1d(self.contains(K_arr))
        if not inside.all():
            lo, hi = self.domain
            bad = K_arr[~inside]
            logger.error(
                f"Smile queried outside [{lo:.4f}, {hi:.4f}]: "
                f"{bad.size} strikes, e.g. {bad[0]:.4f}"
            )
            raise ExtrapolationError(
                f"strike(s) {bad[:5].tolist()} outside fitted range "
                f"[{lo}, {hi}]",
                domain=(lo, hi),
            )
        lo, hi = self.domain
        out = np.asarray(self._evaluate(np.clip(K_arr, lo, hi)), dtype=float)
        if np.ndim(K) == 0:
            return float(out[0])
        return out

    def __repr__(self) -> str:
        lo, hi = self.domain
        return (
            f"SmileCurve(method={self.method!r}, n={self._strikes.size}, "
            f"domain=[{lo}, {hi}])"
        )


def _prepare(
    points: Iterable[VolatilitySurfacePoint],
) -> Tuple[np.ndarray, np.ndarray]:
    pts = list(points)
    K = np.array([p.strike for p in pts], dtype=float)
    v = np.array([p.implied_vol for p in pts], dtype=float)

    m = np.isfinite(K) & np.isfinite(v) & (v > 0.0)
    if (~m).any():
        logger.warning(f"Dropped {(~m).sum()} non-finite or non-positive vols")
    K, v = K[m], v[m]

    # average duplicate strikes so the abscissa is strictly increasing
    uniq, inverse = np.unique(K, return_inverse=True)
    if uniq.size < K.size:
        logger.info(f"Averaged {K.size - uniq.size} duplicate strikes")
        v = np.bincount(inverse, weights=v) / np.bincount(inverse)
        K = uniq
    else:
        order = np.argsort(K)
        K, v = K[order], v[order]
    return K, v


def fit_smile(
    points: Iterable[VolatilitySurfacePoint],
    config: SmoothingConfig = SmoothingConfig(),
) -> SmileCurve:
    """
    Fit a smoothing curve through (strike, implied vol) observations.

    Parameters
    ----------
    points : iterable of VolatilitySurfacePoint
        Unsorted is fine; duplicates are averaged.
    config : SmoothingConfig

    Returns
    -------
    SmileCurve
        Queryable on [min strike, max strike]; raises ExtrapolationError
        elsewhere.
    """
    K, v = _prepare(points)
    if K.size < config.min_points:
        raise ValueError(
            f"{config.method} smoothing needs at least {config.min_points} "
            f"distinct strikes, got {K.size}"
        )

    logger.info(
        f"Fitting {config.method} smile on {K.size} strikes "
        f"[{K[0]:.2f}, {K[-1]:.2f}], iv range [{v.min():.4f}, {v.max():.4f}]"
    )

    if config.method == "lowess":
        evaluate = _make_lowess(K, v, config.frac)
    elif config.method == "spline":
        evaluate = UnivariateSpline(K, v, k=config.spline_k, s=config.spline_s)
    else:
        evaluate = PchipInterpolator(K, v, extrapolate=False)

    curve = SmileCurve(K, v, evaluate, config.method)

    fitted = curve(K)
    rmse = float(np.sqrt(np.mean((fitted - v) ** 2)))
    logger.debug(f"Smile fit RMSE vs observations: {rmse:.6f}")
    if np.any(fitted <= 0.0):
        logger.warning("Smoothed smile has non-positive vols inside its domain")
    return curve
