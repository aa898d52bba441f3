"""
Console logging for interactive runs and notebooks.

Library modules only create loggers; this is the one place that attaches
handlers. Call `setup_logging()` once at the top of a script.
"""

from __future__ import annotations

import logging
import sys

# Top-level packages whose loggers we configure
PACKAGES = ("pricing", "simulate", "vol", "density", "data", "viz", "pipeline")


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to log levels."""

    COLORS = {
        'DEBUG': '\033[36m',  # Cyan
        'INFO': '\033[32m',  # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',  # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        # Only colorize if we're outputting to a terminal
        if not (hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()):
            return super().format(record)

        color = self.COLORS.get(record.levelname, '')
        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Attach a timestamped stdout handler to every project package logger.

    Repeated calls replace the handler instead of stacking duplicates.
    Returns the "pipeline" logger for convenience.
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"unknown log level: {level!r}")
        level = numeric

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ColoredFormatter(
            '%(asctime)s | %(name)s | %(levelname)-8s | %(message)s',
            datefmt='%H:%M:%S',
        )
    )

    for name in PACKAGES:
        pkg_logger = logging.getLogger(name)
        pkg_logger.setLevel(level)
        pkg_logger.handlers.clear()
        pkg_logger.addHandler(handler)
        pkg_logger.propagate = False

    # Quiet external libraries
    logging.getLogger('matplotlib').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('yfinance').setLevel(logging.WARNING)

    return logging.getLogger("pipeline")
