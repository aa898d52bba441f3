"""
Black-Scholes pricing for European options with a continuous dividend yield.

All functions accept scalars or NumPy arrays (broadcast together) and
return a float for scalar input, an ndarray otherwise.

    d1 = [ln(S0/K) + (r - d + sigma^2/2) T] / (sigma sqrt(T))
    d2 = d1 - sigma sqrt(T)
    C  = S0 e^{-dT} N(d1) - K e^{-rT} N(d2)

Numerical notes:
- N is scipy.special.ndtr, which is erf/erfc based and stays accurate in
  the tails used by deep out-of-the-money strikes.
- Inputs are validated rather than clamped: sigma, T, S0 or K <= 0 make d1
  undefined and raise DomainError.
"""

from __future__ import annotations

import logging
from typing import Dict, Literal

import numpy as np
from numpy.typing import ArrayLike
from scipy.special import ndtr

from .errors import DomainError

logger = logging.getLogger("pricing.black_scholes")

OptionKind = Literal["call", "put"]

SQRT2PI = np.sqrt(2.0 * np.pi)


def normal_cdf(x: ArrayLike) -> np.ndarray:
    """Standard normal CDF Φ(x)."""
    return ndtr(np.asarray(x, dtype=float))


def normal_pdf(x: ArrayLike) -> np.ndarray:
    """Standard normal PDF φ(x)."""
    x = np.asarray(x, dtype=float)
    return np.exp(-0.5 * np.square(x)) / SQRT2PI


def _positive(value: ArrayLike, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if not np.all(np.isfinite(arr)) or np.any(arr <= 0.0):
        logger.error(f"Invalid pricing input: {name}={value}")
        raise DomainError(f"{name} must be finite and positive, got {value}")
    return arr


def _out(x: np.ndarray):
    return float(x) if np.ndim(x) == 0 else x


def d1_d2(S0, K, sigma, r, T, d=0.0):
    """Return (d1, d2); raises DomainError outside the valid domain."""
    S0 = _positive(S0, "S0")
    K = _positive(K, "K")
    sigma = _positive(sigma, "sigma")
    T = _positive(T, "T")
    r = np.asarray(r, dtype=float)
    d = np.asarray(d, dtype=float)

    vol_sqrt_t = sigma * np.sqrt(T)
    d1 = (np.log(S0 / K) + (r - d + 0.5 * sigma * sigma) * T) / vol_sqrt_t
    return d1, d1 - vol_sqrt_t


def call_price(S0, K, sigma, r, T, d=0.0):
    """Black-Scholes European call price."""
    d1, d2 = d1_d2(S0, K, sigma, r, T, d)
    T = np.asarray(T, dtype=float)
    price = np.asarray(S0, dtype=float) * np.exp(-np.asarray(d) * T) * ndtr(
        d1
    ) - np.asarray(K, dtype=float) * np.exp(-np.asarray(r) * T) * ndtr(d2)
    return _out(price)


def put_price(S0, K, sigma, r, T, d=0.0):
    """Black-Scholes European put price (consistent with put-call parity)."""
    d1, d2 = d1_d2(S0, K, sigma, r, T, d)
    T = np.asarray(T, dtype=float)
    price = np.asarray(K, dtype=float) * np.exp(-np.asarray(r) * T) * ndtr(
        -d2
    ) - np.asarray(S0, dtype=float) * np.exp(-np.asarray(d) * T) * ndtr(-d1)
    return _out(price)


def vega(S0, K, sigma, r, T, d=0.0):
    """dC/dsigma = S0 e^{-dT} sqrt(T) φ(d1), identical for calls and puts."""
    d1, _ = d1_d2(S0, K, sigma, r, T, d)
    T = np.asarray(T, dtype=float)
    v = (
        np.asarray(S0, dtype=float)
        * np.exp(-np.asarray(d) * T)
        * np.sqrt(T)
        * normal_pdf(d1)
    )
    return _out(v)


def greeks(
    S0, K, sigma, r, T, d=0.0, kind: OptionKind = "call"
) -> Dict[str, float | np.ndarray]:
    """
    Primary Black-Scholes greeks.

    Returns a dict with delta, gamma, vega, theta (per year) and rho.
    """
    if kind not in ("call", "put"):
        raise ValueError(f"kind must be 'call' or 'put', got {kind!r}")
    cp = 1.0 if kind == "call" else -1.0

    d1, d2 = d1_d2(S0, K, sigma, r, T, d)
    S0 = np.asarray(S0, dtype=float)
    K = np.asarray(K, dtype=float)
    sigma = np.asarray(sigma, dtype=float)
    T = np.asarray(T, dtype=float)
    r = np.asarray(r, dtype=float)
    d = np.asarray(d, dtype=float)

    dq = np.exp(-d * T)
    dr = np.exp(-r * T)
    pdf_d1 = normal_pdf(d1)
    sqrt_t = np.sqrt(T)

    out = {
        "delta": cp * dq * ndtr(cp * d1),
        "gamma": dq * pdf_d1 / (S0 * sigma * sqrt_t),
        "vega": S0 * dq * pdf_d1 * sqrt_t,
        "theta": -S0 * dq * pdf_d1 * sigma / (2.0 * sqrt_t)
        + cp * (d * S0 * dq * ndtr(cp * d1) - r * K * dr * ndtr(cp * d2)),
        "rho": cp * K * T * dr * ndtr(cp * d2),
    }
    return {name: _out(value) for name, value in out.items()}
