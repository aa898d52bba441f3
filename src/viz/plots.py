"""
Matplotlib figures for smiles, implied densities and simulated prices.

Three visuals:
  1) Implied-volatility smile vs strike, with an optional smoothed curve
  2) BL implied density, with the log-normal reference and unstable points
     marked, plus the CDF on a twin axis
  3) Histogram of simulated terminal prices from a SimulationBatch

Conventions
-----------
- Every function returns the `matplotlib.figure.Figure`; callers close it.
- Light/dark themes via Matplotlib style contexts.
- Optional file saving with `save_path` (PNG/SVG/PDF inferred by extension).
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from density.bl import ImpliedDensityCurve
from density.cdf import build_cdf
from pricing.quotes import VolatilitySurfacePoint
from simulate.gbm import SimulationBatch
from vol.smoothing import SmileCurve

# Set up module logger
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Internal utilities
# ---------------------------------------------------------------------------


@contextmanager
def _theme_context(theme: str = "light"):
    """
    Apply a temporary Matplotlib style for light/dark themes.

    - "light": default Matplotlib style (no override)
    - "dark" : use 'dark_background' for better contrast
    """
    if str(theme).lower() == "dark":
        with plt.style.context("dark_background"):
            yield
    else:
        # Keep current style (respect user's global rcParams)
        yield


def _maybe_save(
    fig: "plt.Figure",
    save_path: Optional[str | Path],
    *,
    dpi: int = 160,
) -> None:
    """Save the figure if `save_path` is provided; format from the extension."""
    if not save_path:
        return

    p = Path(save_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    try:
        fig.savefig(p, dpi=dpi, bbox_inches="tight")
    except (OSError, ValueError) as e:
        logger.error(f"Failed to save figure to {p}: {e}")
        raise
    logger.debug(f"Saved figure to {p} at {dpi} DPI")


def _as_float_array(x) -> np.ndarray:
    """Convert to a 1D float NumPy array."""
    return np.asarray(x, dtype=float).ravel()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def plot_smile(
    points: Sequence[VolatilitySurfacePoint],
    *,
    curve: Optional[SmileCurve] = None,
    spot: Optional[float] = None,
    n_curve: int = 200,
    title: Optional[str] = None,
    theme: str = "light",
    save_path: Optional[str | Path] = None,
) -> "plt.Figure":
    """
    Plot observed implied vols against strike.

    Parameters
    ----------
    points : sequence of VolatilitySurfacePoint
    curve : SmileCurve, optional
        Smoothed curve drawn over its own domain.
    spot : float, optional
        Draws a vertical marker at the spot price.
    n_curve : int
        Samples used to draw the curve.
    title, theme, save_path : see module docstring.
    """
    pts = sorted(points)
    if not pts and curve is None:
        raise ValueError("nothing to plot: no points and no curve")
    K = np.array([p.strike for p in pts], dtype=float)
    iv = np.array([p.implied_vol for p in pts], dtype=float)
    logger.info(f"Creating smile plot: {K.size} observations")

    with _theme_context(theme):
        fig, ax = plt.subplots(figsize=(6.8, 4.0))

        if K.size:
            ax.plot(K, iv, marker="o", linestyle="None", label="implied vol")
        if curve is not None:
            lo, hi = curve.domain
            Kc = np.linspace(lo, hi, int(n_curve))
            ax.plot(Kc, curve(Kc), linestyle="-", label=f"{curve.method} fit")
        if spot is not None:
            ax.axvline(float(spot), linestyle=":", linewidth=1.2, alpha=0.8, label="spot")

        ax.set_xlabel("strike  K")
        ax.set_ylabel("implied volatility (annualized)")
        ax.grid(True, alpha=0.3)
        ax.legend(loc="best")
        if title:
            ax.set_title(title)

        _maybe_save(fig, save_path)

    return fig


def plot_density(
    density: ImpliedDensityCurve,
    *,
    reference: Optional[Iterable[float]] = None,
    show_cdf: bool = True,
    title: Optional[str] = None,
    theme: str = "light",
    save_path: Optional[str | Path] = None,
) -> "plt.Figure":
    """
    Plot a BL implied density (left axis) and its CDF (right axis).

    Negative estimates are drawn as they are and marked with crosses so an
    unstable grid is visible rather than hidden by clipping.

    Parameters
    ----------
    density : ImpliedDensityCurve
    reference : array-like, optional
        Reference density on `density.strikes`, e.g. `lognormal_density`.
    show_cdf : bool
        Add the CDF on a twin axis.
    """
    K = density.strikes
    g = density.density
    logger.info(
        f"Creating density plot: {K.size} points, "
        f"{int(density.unstable.sum())} unstable"
    )

    ref = None
    if reference is not None:
        ref = _as_float_array(reference)
        if ref.size != K.size:
            raise ValueError("`reference` must have one value per density strike")

    with _theme_context(theme):
        fig, ax_pdf = plt.subplots(figsize=(6.8, 4.0))

        ax_pdf.plot(K, g, linestyle="-", label="implied density")
        if ref is not None:
            ax_pdf.plot(K, ref, linestyle="--", label="log-normal reference")
        if density.unstable.any():
            ax_pdf.plot(
                K[density.unstable],
                g[density.unstable],
                marker="x",
                linestyle="None",
                color="red",
                label="unstable",
            )
        ax_pdf.axhline(0.0, linewidth=0.8, alpha=0.5)
        ax_pdf.set_xlabel("strike  K")
        ax_pdf.set_ylabel("risk-neutral density")
        ax_pdf.grid(True, alpha=0.3)
        ax_pdf.legend(loc="upper left")

        if show_cdf and K.size > 1:
            _, cdf = build_cdf(K, g)
            ax_cdf = ax_pdf.twinx()
            ax_cdf.plot(K, cdf, linestyle=":", alpha=0.7)
            ax_cdf.set_ylabel("cdf  (0..1)")

        if title:
            ax_pdf.set_title(title)

        _maybe_save(fig, save_path)

    return fig


def plot_terminal_distribution(
    batch: SimulationBatch,
    *,
    bins: int = 50,
    strike: Optional[float] = None,
    n_paths_shown: int = 0,
    title: Optional[str] = None,
    theme: str = "light",
    save_path: Optional[str | Path] = None,
) -> "plt.Figure":
    """
    Histogram of simulated terminal prices S[n].

    With `n_paths_shown > 0` a second panel shows that many sample paths.
    """
    ST = batch.terminal_values
    logger.info(f"Creating terminal distribution plot: {ST.size} paths")

    with _theme_context(theme):
        if n_paths_shown > 0:
            fig, (ax, ax_paths) = plt.subplots(1, 2, figsize=(11.0, 4.0))
            t = batch.time_grid
            for i in range(min(int(n_paths_shown), batch.n_paths)):
                ax_paths.plot(t, batch.paths[i], linewidth=0.8, alpha=0.7)
            ax_paths.set_xlabel("time (years)")
            ax_paths.set_ylabel("price")
            ax_paths.grid(True, alpha=0.3)
        else:
            fig, ax = plt.subplots(figsize=(6.8, 4.0))

        ax.hist(ST, bins=int(bins), density=True, alpha=0.75)
        ax.axvline(batch.params.S0, linestyle=":", linewidth=1.2, label="S0")
        if strike is not None:
            ax.axvline(float(strike), linestyle="--", linewidth=1.2, label="strike")
        ax.set_xlabel("terminal price  S_T")
        ax.set_ylabel("density")
        ax.grid(True, alpha=0.3)
        ax.legend(loc="best")
        if title:
            fig.suptitle(title)

        _maybe_save(fig, save_path)

    return fig
