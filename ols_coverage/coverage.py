"""
Coverage evaluation over the per-trial estimate table.

Coverage is always computed on the table as produced by the simulation
(one row per trial and term). interval_plot_frame() builds a separate,
re-sorted copy for the error-bar chart; sorting by estimate breaks the
pairing of intercept and slope from the same trial, so that frame is only
fit for plotting.
"""
from __future__ import annotations

from typing import Mapping, Optional

import numpy as np
import pandas as pd
from scipy import stats

from .errors import SchemaMismatchError

# absolute slack on interval bounds for the containment check
COVERS_ATOL = 1e-9

REQUIRED = ["trial", "term", "estimate", "std_error", "ci_low", "ci_high"]


def _check_columns(estimates: pd.DataFrame, required) -> None:
    for c in required:
        if c not in estimates.columns:
            raise SchemaMismatchError(c, f"Estimate table is missing column: {c!r}")


def add_coverage(
    estimates: pd.DataFrame,
    truth: Optional[Mapping[str, float]] = None,
    atol: float = COVERS_ATOL,
) -> pd.DataFrame:
    """
    Copy of estimates with a boolean `covers` column.

    truth maps term -> true value and replaces the table's own `truth`
    column (e.g. to check coverage against a deliberately shifted value).
    Containment is inclusive on both bounds.
    Bounds are widened by atol: with sigma=0 the interval collapses to a
    point whose distance from the truth is pure rounding error.
    """
    _check_columns(estimates, REQUIRED)
    out = estimates.copy()
    if truth is not None:
        unknown = [t for t in out["term"].unique() if t not in truth]
        if unknown:
            raise SchemaMismatchError(str(unknown[0]), f"No true value given for term: {unknown[0]!r}")
        out["truth"] = out["term"].map(truth).astype(float)
    elif "truth" not in out.columns:
        raise SchemaMismatchError("truth", "Estimate table has no 'truth' column and no truth mapping was given")
    out["covers"] = (
        (out["ci_low"] - atol <= out["truth"]) & (out["truth"] <= out["ci_high"] + atol)
    ).astype(bool)
    return out


def coverage_summary(
    estimates: pd.DataFrame,
    truth: Optional[Mapping[str, float]] = None,
    nominal: Optional[float] = None,
) -> pd.DataFrame:
    """
    Per-term coverage rate and sampling-distribution summary.

    coverage = covered / trials, where trials counts the completed trials
    for that term.
    """
    cov = add_coverage(estimates, truth)
    if cov.empty:
        return pd.DataFrame(columns=[
            "term", "truth", "trials", "covered", "coverage",
            "mean_estimate", "bias", "sd_estimate", "mean_std_error",
        ])
    summary = cov.groupby("term", sort=False).agg(
        truth=("truth", "first"),
        trials=("trial", "nunique"),
        covered=("covers", "sum"),
        mean_estimate=("estimate", "mean"),
        sd_estimate=("estimate", "std"),
        mean_std_error=("std_error", "mean"),
    ).reset_index()
    summary["covered"] = summary["covered"].astype(int)
    summary["coverage"] = summary["covered"] / summary["trials"]
    summary["bias"] = summary["mean_estimate"] - summary["truth"]
    summary = summary[[
        "term", "truth", "trials", "covered", "coverage",
        "mean_estimate", "bias", "sd_estimate", "mean_std_error",
    ]].copy()
    if nominal is not None:
        summary["nominal"] = float(nominal)
    return summary


def interval_plot_frame(estimates: pd.DataFrame, truth: Optional[Mapping[str, float]] = None) -> pd.DataFrame:
    """Sorted copy for the interval chart: ranked by estimate within each term."""
    frame = add_coverage(estimates, truth)
    frame = frame.sort_values(["term", "estimate"], kind="mergesort").reset_index(drop=True)
    frame["rank"] = frame.groupby("term").cumcount() + 1
    return frame


def squared_error(estimates: pd.DataFrame) -> pd.Series:
    _check_columns(estimates, ["estimate", "truth"])
    return (estimates["estimate"].astype(float) - estimates["truth"].astype(float)) ** 2


def coverage_band(trials: int, level: float, band_level: float = 0.95) -> tuple[float, float]:
    """Normal-approximation binomial band for an empirical coverage rate at `level`."""
    z = float(stats.norm.ppf(0.5 + band_level / 2))
    half = z * np.sqrt(level * (1 - level) / max(trials, 1))
    return max(0.0, level - half), min(1.0, level + half)
