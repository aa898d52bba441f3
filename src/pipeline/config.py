"""
Run configuration for a smile analysis.

Defaults reproduce the numerical contract (tol 1e-4, 200 Newton steps,
initial guess 0.30, 250 trading days). `trading_days` annualizes the
drift/vol estimate when a price history is passed to the runner;
`log_level` is applied by `configure_logging()`. Environment overrides:

    SMILE_LOG_LEVEL        e.g. DEBUG
    SMILE_SOLVER_TOL       float
    SMILE_SOLVER_MAX_ITER  int
    SMILE_SOLVER_FALLBACK  "none" | "bisection"
    SMILE_SMOOTHING        "lowess" | "spline" | "pchip"
    SMILE_TRADING_DAYS     int
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from data.history import DEFAULT_TRADING_DAYS
from pricing.implied_vol import SolverConfig
from vol.smoothing import SmoothingConfig

from .logging_setup import setup_logging

logger = logging.getLogger("pipeline.config")

ENV_PREFIX = "SMILE_"


def _env_value(env: Mapping[str, str], name: str, cast):
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ValueError(f"invalid {ENV_PREFIX}{name}={raw!r}: {e}") from e


@dataclass(frozen=True)
class AnalysisConfig:
    solver: SolverConfig = field(default_factory=SolverConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    trading_days: int = DEFAULT_TRADING_DAYS
    log_level: str = "INFO"

    def __post_init__(self):
        if self.trading_days <= 0:
            raise ValueError(f"trading_days must be positive, got {self.trading_days}")

    def configure_logging(self) -> logging.Logger:
        """Install the console handlers at `log_level` (see setup_logging)."""
        return setup_logging(self.log_level)

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        base: Optional["AnalysisConfig"] = None,
    ) -> "AnalysisConfig":
        """Apply SMILE_* overrides on top of `base` (defaults if None)."""
        env = os.environ if env is None else env
        cfg = base or cls()

        solver_kw = {}
        tol = _env_value(env, "SOLVER_TOL", float)
        if tol is not None:
            solver_kw["tol"] = tol
        max_iter = _env_value(env, "SOLVER_MAX_ITER", int)
        if max_iter is not None:
            solver_kw["max_iter"] = max_iter
        fallback = _env_value(env, "SOLVER_FALLBACK", str.lower)
        if fallback is not None:
            solver_kw["fallback"] = fallback

        method = _env_value(env, "SMOOTHING", str.lower)
        days = _env_value(env, "TRADING_DAYS", int)
        level = _env_value(env, "LOG_LEVEL", str.upper)

        out = replace(
            cfg,
            solver=replace(cfg.solver, **solver_kw) if solver_kw else cfg.solver,
            smoothing=(
                replace(cfg.smoothing, method=method) if method else cfg.smoothing
            ),
            trading_days=days if days is not None else cfg.trading_days,
            log_level=level or cfg.log_level,
        )
        if out != cfg:
            logger.info(f"Configuration overridden from environment: {out}")
        return out
