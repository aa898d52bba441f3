"""
Monte Carlo price paths under geometric Brownian motion.

Each path follows the exact log-space recursion

    S[0]   = S0
    S[i+1] = S[i] * exp((mu - sigma^2/2) dt + sigma sqrt(dt) Z_i),  dt = T/n

with Z_i i.i.d. standard normal, independent per step and per path.

Randomness comes from an explicitly owned numpy Generator: pass `seed`
to build one, or inject `rng` directly. There is no global random state,
so batches are reproducible and independent batches can run in parallel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from scipy.stats import norm

from pricing.errors import DomainError

logger = logging.getLogger("simulate.gbm")


@dataclass(frozen=True)
class GBMParams:
    """Parameters shared by every path of a batch."""

    S0: float
    mu: float
    sigma: float
    T: float  # years
    n_steps: int

    def __post_init__(self):
        for name in ("S0", "sigma", "T"):
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0:
                raise DomainError(f"{name} must be positive, got {value}")
        if int(self.n_steps) != self.n_steps or self.n_steps < 1:
            raise DomainError(
                f"n_steps must be a positive integer, got {self.n_steps}"
            )

    @property
    def dt(self) -> float:
        return self.T / self.n_steps


def _frozen(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class PricePath:
    """One simulated path of length n_steps + 1 (read-only)."""

    values: np.ndarray

    def __len__(self) -> int:
        return self.values.size

    @property
    def terminal(self) -> float:
        return float(self.values[-1])


@dataclass(frozen=True, eq=False)
class SimulationBatch:
    """
    Nsim independent paths sharing the same GBMParams.

    `paths` has shape (n_paths, n_steps + 1) and is read-only.
    """

    params: GBMParams
    paths: np.ndarray = field(repr=False)

    @property
    def n_paths(self) -> int:
        return self.paths.shape[0]

    @property
    def time_grid(self) -> np.ndarray:
        return np.linspace(0.0, self.params.T, self.params.n_steps + 1)

    @property
    def terminal_values(self) -> np.ndarray:
        return self.paths[:, -1]

    def path(self, i: int) -> PricePath:
        return PricePath(self.paths[i])

    def _payoffs(self, strike: float) -> np.ndarray:
        return np.maximum(self.terminal_values - float(strike), 0.0)

    def terminal_payoff_mean(self, strike: float) -> float:
        """Arithmetic mean over paths of max(S[n] - strike, 0)."""
        return float(self._payoffs(strike).mean())

    def discounted_call_estimate(self, strike: float, r: float) -> float:
        """Monte Carlo call estimate: payoff mean * e^{-rT}."""
        disc = np.exp(-r * self.params.T)
        return float(self.terminal_payoff_mean(strike) * disc)

    def standard_error(self, strike: float, r: float) -> float:
        """Standard error of `discounted_call_estimate`."""
        disc = np.exp(-r * self.params.T)
        payoffs = self._payoffs(strike)
        if payoffs.size < 2:
            return float("nan")
        return float(disc * payoffs.std(ddof=1) / np.sqrt(payoffs.size))

    def confidence_interval(
        self, strike: float, r: float, level: float = 0.95
    ) -> Tuple[float, float]:
        """Normal-approximation confidence band around the call estimate."""
        if not 0.0 < level < 1.0:
            raise ValueError(f"level must be in (0, 1), got {level}")
        est = self.discounted_call_estimate(strike, r)
        half = norm.ppf(0.5 + level / 2.0) * self.standard_error(strike, r)
        return est - half, est + half


def simulate_paths(
    params: GBMParams,
    n_paths: int,
    *,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> SimulationBatch:
    """
    Generate `n_paths` independent GBM paths.

    Parameters
    ----------
    params : GBMParams
    n_paths : int
        Number of independent paths (Nsim).
    seed : int, optional
        Seed for a fresh numpy Generator. Ignored when `rng` is given.
    rng : numpy.random.Generator, optional
        Injected random source; it is advanced by the draws.

    Returns
    -------
    SimulationBatch
    """
    if int(n_paths) != n_paths or n_paths < 1:
        raise DomainError(f"n_paths must be a positive integer, got {n_paths}")
    if rng is None:
        rng = np.random.default_rng(seed)

    n = params.n_steps
    dt = params.dt
    logger.info(
        f"Simulating {n_paths} GBM paths: S0={params.S0}, mu={params.mu:.4f}, "
        f"sigma={params.sigma:.4f}, T={params.T}, n_steps={n}"
    )

    drift = (params.mu - 0.5 * params.sigma**2) * dt
    diffusion = params.sigma * np.sqrt(dt)
    Z = rng.standard_normal((int(n_paths), n))

    paths = np.empty((int(n_paths), n + 1), dtype=float)
    paths[:, 0] = params.S0
    paths[:, 1:] = params.S0 * np.exp(np.cumsum(drift + diffusion * Z, axis=1))

    terminal = paths[:, -1]
    logger.debug(
        f"Terminal values: mean={terminal.mean():.4f}, "
        f"std={terminal.std():.4f}, range=[{terminal.min():.4f}, "
        f"{terminal.max():.4f}]"
    )
    return SimulationBatch(params=params, paths=_frozen(paths))
