"""
CDF, quantile and moment helpers for densities defined on a strike grid.

Given a (K, density) pair that approximates a risk-neutral density on a
finite interval [K_min, K_max], we provide:

- build_cdf(K, pdf) -> (K, cdf): trapezoid-integrated CDF, re-normalized.
- quantiles(K, cdf, qs) -> strikes for probabilities in [0, 1].
- moments(K, pdf) -> dict of mean/var/skew/exkurt (excess kurtosis).

Negative density values (unstable BL estimates) are treated as zero
here; the BL curve itself keeps them.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy.integrate import cumulative_trapezoid

# Set up module logger
logger = logging.getLogger(__name__)


def _clean(K: ArrayLike, pdf: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    K = np.asarray(K, dtype=float)
    f = np.asarray(pdf, dtype=float)

    if K.shape != f.shape:
        logger.error(
            f"Array length mismatch: K has {K.size} points, pdf has {f.size} points"
        )
        raise ValueError("K and pdf must have the same length")
    if K.size < 2:
        raise ValueError("need at least 2 grid points")

    bad = ~(np.isfinite(f) & (f >= 0.0))
    if bad.any():
        logger.warning(f"Set {int(bad.sum())} negative or non-finite density values to zero")
    return K, np.where(bad, 0.0, f)


def build_cdf(K: ArrayLike, pdf: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    """
    Trapezoid-accumulate a CDF from a density sample.
    Renormalizes the final CDF to end at 1.0 (if integral > 0).
    """
    K, f = _clean(K, pdf)
    logger.debug(f"Building CDF from density: {K.size} points")

    c = cumulative_trapezoid(f, K, initial=0.0)
    total = float(c[-1])
    logger.debug(f"Total density integral: {total:.8f}")

    if total > 0.0:
        c = c / total
    else:
        logger.warning("Zero integral - CDF will be all zeros")
    return K, c


def quantiles(K: ArrayLike, cdf: ArrayLike, qs: Iterable[float]) -> np.ndarray:
    """
    Invert the CDF via linear interpolation. Probabilities outside [0, 1]
    are clipped; the CDF is made monotone first.
    """
    K = np.asarray(K, dtype=float)
    c = np.maximum.accumulate(np.asarray(cdf, dtype=float))
    q = np.clip(np.asarray(list(qs), dtype=float), 0.0, 1.0)

    if K.shape != c.shape:
        raise ValueError("K and cdf must have the same length")

    if c[-1] < 0.99:
        logger.warning(f"CDF maximum is only {c[-1]:.6f} (should be ≈1.0)")

    out = np.interp(q, c, K)
    logger.debug(f"Quantiles for {q.size} probabilities: [{out.min():.4f}, {out.max():.4f}]")
    return out


def moments(K: ArrayLike, pdf: ArrayLike) -> Dict[str, float]:
    """
    Mean, variance, skewness and excess kurtosis of a density sample,
    renormalized to unit mass.
    """
    K, f = _clean(K, pdf)

    Z = float(np.trapezoid(f, K))
    if Z <= 0.0:
        logger.error("Density integral is zero - cannot compute moments")
        nan = float("nan")
        return {"mean": nan, "var": nan, "skew": nan, "exkurt": nan}
    f = f / Z

    mean = float(np.trapezoid(K * f, K))
    var = float(np.trapezoid((K - mean) ** 2 * f, K))
    if var <= 0.0:
        logger.warning(f"Non-positive variance: {var:.8f}")
        return {"mean": mean, "var": var, "skew": float("nan"), "exkurt": float("nan")}

    z = (K - mean) / np.sqrt(var)
    skew = float(np.trapezoid(z**3 * f, K))
    exkurt = float(np.trapezoid(z**4 * f, K)) - 3.0

    logger.info(
        f"Moments: mean={mean:.4f}, std={np.sqrt(var):.4f}, "
        f"skew={skew:.4f}, exkurt={exkurt:.4f}"
    )
    return {"mean": mean, "var": var, "skew": skew, "exkurt": exkurt}
