"""
Volatility smile smoothing exports.
"""

from __future__ import annotations

from .smoothing import SmileCurve, SmoothingConfig, fit_smile

__all__ = ["SmileCurve", "SmoothingConfig", "fit_smile"]
