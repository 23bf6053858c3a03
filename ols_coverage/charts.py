"""
Charts for the coverage experiment
- Scatter of the final trial's data with the fitted line and CI band
- Boxplot of the estimate distribution per term, truth marked
- Point-and-error-bar plot of every trial's interval, one facet per term,
  ordered by estimate and coloured by whether it covers the truth
"""
from __future__ import annotations

import os

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .coverage import interval_plot_frame
from .predict import predict
from .regression import FitResult

COVERS_COLOR = "tab:blue"
MISSES_COLOR = "tab:red"


def plot_fit(data: pd.DataFrame, fit: FitResult, path: str) -> str:
    x_name = fit.predictors[0]
    grid = pd.DataFrame({x_name: np.linspace(data[x_name].min(), data[x_name].max(), 100)})
    pred = predict(fit, grid, interval="confidence")

    plt.figure(figsize=(6, 4))
    plt.scatter(data[x_name], data[fit.outcome], s=12, alpha=0.6, label="Simulated data")
    plt.plot(grid[x_name], pred["prediction"], color="black", label="OLS fit")
    plt.fill_between(grid[x_name], pred["ci_low"], pred["ci_high"], alpha=0.3,
                     label=f"{fit.confidence_level:.0%} CI")
    plt.xlabel(x_name)
    plt.ylabel(fit.outcome)
    plt.title(f"Final trial: R^2 = {fit.r_squared:.3f}")
    plt.legend()
    plt.tight_layout()
    plt.savefig(path)
    plt.close()
    return path


def plot_estimate_boxplot(estimates: pd.DataFrame, path: str) -> str:
    terms = list(dict.fromkeys(estimates["term"]))
    fig, axes = plt.subplots(1, len(terms), figsize=(4 * len(terms), 4), squeeze=False)
    for ax, term in zip(axes[0], terms):
        sub = estimates[estimates["term"] == term]
        ax.boxplot(sub["estimate"].astype(float).to_numpy())
        ax.axhline(float(sub["truth"].iloc[0]), color=MISSES_COLOR, linestyle="--", label="true value")
        ax.set_title(term)
        ax.set_xticks([])
        ax.legend(loc="best")
    fig.suptitle("Distribution of estimates across trials")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path


def plot_intervals(estimates: pd.DataFrame, path: str, truth=None) -> str:
    # sorted copy; the caller's table is left in trial order
    frame = interval_plot_frame(estimates, truth)
    terms = list(dict.fromkeys(estimates["term"]))
    fig, axes = plt.subplots(1, len(terms), figsize=(5 * len(terms), 6), squeeze=False)
    for ax, term in zip(axes[0], terms):
        sub = frame[frame["term"] == term]
        for covers, color, label in ((True, COVERS_COLOR, "covers"), (False, MISSES_COLOR, "misses")):
            part = sub[sub["covers"] == covers]
            if part.empty:
                continue
            err = np.vstack([
                part["estimate"] - part["ci_low"],
                part["ci_high"] - part["estimate"],
            ])
            ax.errorbar(part["estimate"], part["rank"], xerr=err, fmt="o", markersize=2,
                        color=color, ecolor=color, elinewidth=0.8, label=label)
        ax.axvline(float(sub["truth"].iloc[0]), color="black", linestyle="--")
        ax.set_title(f"{term}: {sub['covers'].mean():.0%} covered")
        ax.set_ylabel("trial (ordered by estimate)")
        ax.legend(loc="lower right")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path


def render_charts(result, charts_dir: str) -> dict:
    """Write all charts for a SimulationResult; returns name -> path."""
    os.makedirs(charts_dir, exist_ok=True)
    paths = {}
    if result.estimates.empty:
        return paths
    if result.last_dataset is not None and result.last_fit is not None:
        paths["fit_scatter"] = plot_fit(result.last_dataset, result.last_fit,
                                        os.path.join(charts_dir, "fit_scatter.png"))
    paths["estimate_boxplot"] = plot_estimate_boxplot(result.estimates,
                                                      os.path.join(charts_dir, "estimate_boxplot.png"))
    paths["interval_plot"] = plot_intervals(result.estimates, os.path.join(charts_dir, "interval_plot.png"))
    return paths
