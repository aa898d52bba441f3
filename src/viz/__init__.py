# src/viz/__init__.py
"""
Visualization helpers.

Public API:
- plot_smile:                  implied vol vs strike, optional smoothed curve
- plot_density:                BL implied density (+ reference, CDF twin axis)
- plot_terminal_distribution:  histogram of simulated terminal prices

All functions return a `matplotlib.figure.Figure` and accept:
- `theme`: "light" or "dark"
- `save_path`: optional path to save a PNG/SVG/PDF of the figure
"""

from .plots import plot_density, plot_smile, plot_terminal_distribution

__all__ = ["plot_smile", "plot_density", "plot_terminal_distribution"]
