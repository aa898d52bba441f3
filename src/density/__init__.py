"""Density package exports."""

from __future__ import annotations

from .bl import (
    BLDiagnostics,
    ImpliedDensityCurve,
    StrikeGrid,
    density_from_calls,
    implied_density,
)
from .cdf import build_cdf, moments, quantiles
from .reference import lognormal_density, lognormal_params

__all__ = [
    "StrikeGrid",
    "ImpliedDensityCurve",
    "BLDiagnostics",
    "implied_density",
    "density_from_calls",
    "lognormal_density",
    "lognormal_params",
    "build_cdf",
    "quantiles",
    "moments",
]
