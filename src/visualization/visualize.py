"""Plotting utilities for the SIR recipes.

This module provides reusable Matplotlib helpers to visualize:
- state trajectories (continuous or step-wise jump paths)
- stochastic ensembles as a mean with a quantile band
- simulated new cases against observations
- posterior histograms with the true parameter value
- profile likelihood curves with their confidence interval

It can also be used as a script to rebuild posterior plots from a saved
samples.npz/json pair, e.g.:
  python -m src.visualization.visualize --samples runs/ode_gen_.../samples.npz
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt

from src.epirecipes.io import ensure_dir
from src.epirecipes.likelihood import ProfileResult
from src.epirecipes.samples import load_samples

STATE_LABELS = ("S", "I", "R", "C")


def save_figure(fig: plt.Figure, path: Path | str, dpi: int = 150) -> Path:
    """Save a Matplotlib figure and ensure the parent directory exists."""
    path = Path(path)
    ensure_dir(path.parent)
    fig.tight_layout()
    fig.savefig(path, dpi=dpi, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_trajectories(
    t: np.ndarray,
    u: np.ndarray,
    labels: Sequence[str] = STATE_LABELS,
    title: Optional[str] = None,
    ax: Optional[plt.Axes] = None,
    step: bool = False,
    xlabel: str = "Time",
    ylabel: str = "Number",
) -> plt.Axes:
    """Plot each state column against time; jump paths use step drawing."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))
    u = np.asarray(u)
    for j in range(u.shape[1]):
        label = labels[j] if j < len(labels) else f"u{j}"
        if step:
            ax.step(t, u[:, j], where="post", label=label)
        else:
            ax.plot(t, u[:, j], label=label)
    if title:
        ax.set_title(title)
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.legend(fontsize=8)
    return ax


def plot_ensemble(
    t: np.ndarray,
    summary: Mapping[str, np.ndarray],
    labels: Sequence[str] = STATE_LABELS,
    title: Optional[str] = None,
    ax: Optional[plt.Axes] = None,
) -> plt.Axes:
    """Mean trajectory per state with a shaded quantile band."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))
    mean = np.asarray(summary["mean"])
    for j in range(mean.shape[1]):
        label = labels[j] if j < len(labels) else f"u{j}"
        (line,) = ax.plot(t, mean[:, j], label=label)
        ax.fill_between(t, summary["lower"][:, j], summary["upper"][:, j], color=line.get_color(), alpha=0.2)
    if title:
        ax.set_title(title)
    ax.set_xlabel("Time")
    ax.set_ylabel("Number")
    ax.legend(fontsize=8)
    return ax


def plot_cases(
    t: np.ndarray,
    predicted: np.ndarray,
    observed: Optional[np.ndarray] = None,
    title: Optional[str] = None,
    ax: Optional[plt.Axes] = None,
) -> plt.Axes:
    """Model new cases as a line, observations as points."""
    if ax is None:
        _, ax = plt.subplots(figsize=(6, 4))
    ax.plot(t, predicted, label="Solution")
    if observed is not None:
        ax.scatter(t, observed, s=12, color="k", label="Observations")
    if title:
        ax.set_title(title)
    ax.set_xlabel("Time")
    ax.set_ylabel("Number")
    ax.legend(fontsize=8)
    return ax


def plot_posterior_hist(
    samples: np.ndarray,
    name: str,
    truth: Optional[float] = None,
    weights: Optional[np.ndarray] = None,
    xlim: Optional[Tuple[float, float]] = None,
    bins: int = 40,
    ax: Optional[plt.Axes] = None,
) -> plt.Axes:
    """Density histogram of one parameter with a vertical line at the truth."""
    if ax is None:
        _, ax = plt.subplots(figsize=(4, 3.5))
    ax.hist(np.asarray(samples), bins=bins, density=True, weights=weights, alpha=0.7)
    if truth is not None:
        ax.axvline(truth, color="k", linestyle="--", label="True value")
        ax.legend(fontsize=8)
    if xlim is not None:
        ax.set_xlim(*xlim)
    ax.set_title(name)
    ax.set_ylabel("Density")
    ax.tick_params(axis="x", rotation=45)
    return ax


def plot_posterior_panels(
    samples_by_name: Mapping[str, np.ndarray],
    truths: Optional[Mapping[str, float]] = None,
    weights: Optional[np.ndarray] = None,
    title: Optional[str] = None,
    xlims: Optional[Mapping[str, Tuple[float, float]]] = None,
) -> plt.Figure:
    """One posterior histogram per parameter, side by side."""
    truths = truths or {}
    xlims = xlims or {}
    n = len(samples_by_name)
    fig, axes = plt.subplots(1, max(n, 1), figsize=(4.5 * max(n, 1), 3.8), squeeze=False)
    for ax, (name, samples) in zip(axes.ravel(), samples_by_name.items()):
        plot_posterior_hist(samples, name, truth=truths.get(name), weights=weights, xlim=xlims.get(name), ax=ax)
    if title:
        fig.suptitle(title)
    return fig


def plot_profile(result: ProfileResult, ax: Optional[plt.Axes] = None) -> plt.Axes:
    """Profile negative log-likelihood with the chi-square threshold and CI."""
    if ax is None:
        _, ax = plt.subplots(figsize=(5, 4))
    finite = np.isfinite(result.profile_nll)
    ax.plot(result.grid[finite], result.profile_nll[finite], label="profile")
    ax.axhline(result.threshold, color="r", linestyle="--", label="95% threshold")
    for x in result.ci:
        ax.axvline(x, color="gray", linestyle=":")
    if np.isfinite(result.mle_value):
        ax.axvline(result.mle_value, color="k", linewidth=1, label="MLE")
    ax.set_xlabel(result.name)
    ax.set_ylabel("negative log-likelihood")
    ax.set_title(f"Profile likelihood: {result.name}")
    ax.legend(fontsize=8)
    return ax


def plot_surface(
    grid_x: np.ndarray,
    grid_y: np.ndarray,
    surface: np.ndarray,
    xlabel: str = "beta",
    ylabel: str = "i0",
    ax: Optional[plt.Axes] = None,
) -> plt.Axes:
    """Contour plot of a log-likelihood surface (rows follow grid_y)."""
    if ax is None:
        _, ax = plt.subplots(figsize=(5, 4))
    finite = np.where(np.isfinite(surface), surface, np.nan)
    # Clip far tails so contours resolve the mode.
    vmax = np.nanmax(finite)
    cs = ax.contourf(grid_x, grid_y, np.clip(finite, vmax - 200.0, vmax), levels=30)
    plt.colorbar(cs, ax=ax, label="log-likelihood")
    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    return ax


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild posterior plots from saved samples.")
    parser.add_argument("--samples", type=str, required=True, help="Path to samples.npz")
    parser.add_argument("--out-dir", type=str, default=None)
    parser.add_argument("--dpi", type=int, default=150)
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    npz_path = Path(args.samples)
    arrays, meta = load_samples(npz_path)
    out_dir = Path(args.out_dir) if args.out_dir else npz_path.parent / "figures"
    truths: Dict[str, float] = dict(meta.get("truth", {}))

    # Arrays are named "<method>_<param>", with optional "<method>_weights".
    methods = sorted({key.split("_", 1)[0] for key in arrays if "_" in key})
    for method in methods:
        samples = {
            key.split("_", 1)[1]: arrays[key]
            for key in arrays
            if key.startswith(f"{method}_") and not key.endswith("_weights")
        }
        if not samples:
            continue
        fig = plot_posterior_panels(samples, truths=truths, weights=arrays.get(f"{method}_weights"), title=method)
        path = save_figure(fig, out_dir / f"posterior_{method}.png", dpi=args.dpi)
        print(f"Saved {path}")


if __name__ == "__main__":
    main()
