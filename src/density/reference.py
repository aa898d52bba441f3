"""
Analytic log-normal density of S_T under geometric Brownian motion.

If S_T = S0 exp((mu - sigma^2/2) T + sigma sqrt(T) Z) then log S_T is
normal with mean log(S0) + (mu - sigma^2/2) T and sd sigma sqrt(T).
Under the risk-neutral measure mu = r - d, which is what a flat smile
implies; use it as the reference curve for BL estimates.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import ArrayLike
from scipy.stats import lognorm

from pricing.errors import DomainError

logger = logging.getLogger("density.reference")


def lognormal_params(S0: float, mu: float, sigma: float, T: float) -> tuple[float, float]:
    """(mean, sd) of log S_T."""
    if S0 <= 0 or sigma <= 0 or T <= 0:
        raise DomainError(
            f"S0, sigma and T must be positive, got S0={S0}, sigma={sigma}, T={T}"
        )
    m = float(np.log(S0) + (mu - 0.5 * sigma**2) * T)
    s = float(sigma * np.sqrt(T))
    return m, s


def lognormal_density(
    strikes: ArrayLike, S0: float, mu: float, sigma: float, T: float
) -> np.ndarray:
    """Density of S_T evaluated at `strikes`."""
    m, s = lognormal_params(S0, mu, sigma, T)
    logger.debug(f"Log-normal reference: log-mean={m:.6f}, log-sd={s:.6f}")
    # scipy parameterisation: shape = s, scale = exp(m)
    return lognorm.pdf(np.asarray(strikes, dtype=float), s, scale=np.exp(m))
