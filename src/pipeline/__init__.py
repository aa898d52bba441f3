"""
Pipeline exports (end-to-end run, configuration, logging).
"""

from __future__ import annotations

from .config import AnalysisConfig
from .logging_setup import ColoredFormatter, setup_logging
from .runner import SmileAnalysis, run_smile_analysis

__all__ = [
    "AnalysisConfig",
    "SmileAnalysis",
    "run_smile_analysis",
    "setup_logging",
    "ColoredFormatter",
]
