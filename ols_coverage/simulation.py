"""
Repeated-sampling experiment for OLS estimates.

Each trial draws a fresh dataset from the known linear model, fits it and
returns one record per coefficient. Trials are mapped over their index and
the records reduced into a single table sorted by trial, so the result does
not depend on execution order:

  trial_seeds -> run_trial (per index) -> run_simulation (reduce)

Per-trial randomness comes from child SeedSequences spawned from the run
seed; nothing shares a global random state.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .coverage import squared_error
from .errors import InvalidParameterError, SimulationError
from .generate import simulate_dataset, validate_params
from .regression import (
    DEFAULT_CONFIDENCE_LEVEL,
    INTERCEPT,
    FitResult,
    check_confidence_level,
    check_predictor_names,
    coefficient_table,
    fit_ols,
)

RECORD_COLUMNS = ["trial", "term", "estimate", "std_error", "ci_low", "ci_high", "truth"]


@dataclass(frozen=True)
class SimulationParams:
    intercept: float = 10.0
    slope: float = 5.0
    sigma: float = 7.0
    n: int = 100
    trials: int = 100
    x_low: float = 0.0
    x_high: float = 7.0
    covariate: str = "uniform"  # uniform | binary
    p: float = 0.5
    predictor: str = "x"
    seed: Optional[int] = None
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL

    def __post_init__(self):
        validate_params(
            self.n, self.sigma, self.intercept, self.slope,
            x_low=self.x_low, x_high=self.x_high, p=self.p, covariate=self.covariate,
        )
        if isinstance(self.trials, bool) or not isinstance(self.trials, (int, np.integer)) or self.trials < 1:
            raise InvalidParameterError(f"trials must be a positive integer, got {self.trials!r}")
        if not self.predictor:
            raise InvalidParameterError("predictor name must be non-empty")
        check_predictor_names([self.predictor], outcome="y")
        check_confidence_level(self.confidence_level)

    @property
    def terms(self) -> List[str]:
        return [INTERCEPT, self.predictor]

    @property
    def truth(self) -> Dict[str, float]:
        return {INTERCEPT: float(self.intercept), self.predictor: float(self.slope)}


@dataclass
class Finding:
    severity: str  # ERROR, WARN, INFO
    check: str
    trial: int | None
    message: str


@dataclass
class SimulationResult:
    params: SimulationParams
    estimates: pd.DataFrame
    failures: List[Finding] = field(default_factory=list)
    last_dataset: Optional[pd.DataFrame] = None
    last_fit: Optional[FitResult] = None

    @property
    def completed_trials(self) -> int:
        return int(self.estimates["trial"].nunique()) if len(self.estimates) else 0


def trial_seeds(seed, trials: int) -> List[np.random.SeedSequence]:
    """One independent child seed per trial index; stable for a given run seed."""
    root = seed if isinstance(seed, np.random.SeedSequence) else np.random.SeedSequence(seed)
    return root.spawn(trials)


def run_trial(trial: int, params: SimulationParams, seed) -> tuple[pd.DataFrame, pd.DataFrame, FitResult]:
    """Generate + fit one dataset. Returns (records, dataset, fit)."""
    data = simulate_dataset(params, seed=seed)
    fit = fit_ols(data, outcome="y", predictors=[params.predictor],
                  confidence_level=params.confidence_level)
    records = coefficient_table(fit)
    records.insert(0, "trial", trial)
    records["truth"] = records["term"].map(params.truth)
    return records[RECORD_COLUMNS], data, fit


def _failure(trial: int, exc: Exception) -> Finding:
    return Finding(
        severity="ERROR",
        check=f"trial:{type(exc).__name__}",
        trial=trial,
        message=str(exc),
    )


def route_failures(failures: List[Finding], limit: int = 10) -> None:
    if not failures:
        return
    print(f"[ERROR] {len(failures)} failed trial(s)")
    for f in failures[:limit]:
        print(f"  - trial {f.trial} {f.check}: {f.message}")
    if len(failures) > limit:
        print(f"  ... (+{len(failures) - limit} more)")


def run_simulation(
    params: SimulationParams,
    continue_on_error: bool = False,
    workers: int = 1,
    emit_console: bool = True,
) -> SimulationResult:
    """
    Run params.trials independent trials and collect their records.

    By default the first failing trial propagates. With continue_on_error
    each failure is recorded as an ERROR Finding (and printed) and the
    remaining trials still run.
    """
    if workers < 1:
        raise InvalidParameterError(f"workers must be >= 1, got {workers!r}")
    seeds = trial_seeds(params.seed, params.trials)

    def _one(i: int):
        try:
            return i, run_trial(i, params, seeds[i - 1]), None
        except SimulationError as exc:
            if not continue_on_error:
                raise
            return i, None, _failure(i, exc)

    indices = range(1, params.trials + 1)
    if workers == 1:
        outcomes = [_one(i) for i in indices]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(_one, indices))

    # reduce keyed by trial index, never by arrival order
    by_trial = {i: (out, err) for i, out, err in outcomes}
    frames, failures = [], []
    last_dataset, last_fit = None, None
    for i in sorted(by_trial):
        out, err = by_trial[i]
        if err is not None:
            failures.append(err)
            continue
        records, data, fit = out
        frames.append(records)
        last_dataset, last_fit = data, fit

    if frames:
        estimates = pd.concat(frames, ignore_index=True)
    else:
        estimates = pd.DataFrame(columns=RECORD_COLUMNS)

    if emit_console:
        route_failures(failures)

    return SimulationResult(
        params=params,
        estimates=estimates,
        failures=failures,
        last_dataset=last_dataset,
        last_fit=last_fit,
    )


def sample_size_sweep(
    params: SimulationParams,
    sizes: Sequence[int],
    continue_on_error: bool = False,
    emit_console: bool = True,
) -> pd.DataFrame:
    """
    Mean squared error of the estimates for each per-trial sample size.
    Each size reuses the run seed, so sizes differ only in n.
    """
    rows = []
    for n in sizes:
        res = run_simulation(replace(params, n=int(n)), continue_on_error=continue_on_error,
                             emit_console=emit_console)
        est = res.estimates
        if est.empty:
            continue
        sq = squared_error(est)
        agg = est.assign(sq_error=sq).groupby("term", sort=False).agg(
            trials=("trial", "nunique"),
            mse=("sq_error", "mean"),
            mean_std_error=("std_error", "mean"),
        ).reset_index()
        agg.insert(0, "n", int(n))
        rows.append(agg)
    if not rows:
        return pd.DataFrame(columns=["n", "term", "trials", "mse", "mean_std_error"])
    return pd.concat(rows, ignore_index=True)
