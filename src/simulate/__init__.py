"""
Monte Carlo simulation exports.
"""

from __future__ import annotations

from .gbm import GBMParams, PricePath, SimulationBatch, simulate_paths

__all__ = ["GBMParams", "PricePath", "SimulationBatch", "simulate_paths"]
