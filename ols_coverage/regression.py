"""
OLS fitting for the simulated (and real) datasets.

Wraps statsmodels OLS and exposes what the coverage experiment needs:
  * point estimates and standard errors per term
  * two-sided t intervals (n - p degrees of freedom) at a chosen level
  * R^2 / adjusted R^2 and the residual standard error

Degenerate designs are rejected up front rather than left to the
pseudo-inverse, which would otherwise hand back finite but meaningless
coefficients.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .errors import DegenerateModelError, InvalidParameterError, SchemaMismatchError

DEFAULT_CONFIDENCE_LEVEL = 0.95
INTERCEPT = "intercept"
_SM_CONST = "const"
RESERVED_NAMES = (INTERCEPT, _SM_CONST)


def check_confidence_level(level: float) -> float:
    try:
        level = float(level)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"confidence_level must be a number, got {level!r}") from None
    if not 0 < level < 1:
        raise InvalidParameterError(f"confidence_level must be within (0, 1), got {level!r}")
    return level


@dataclass
class FitResult:
    params: pd.Series
    std_errors: pd.Series
    conf_int: pd.DataFrame  # columns: low, high
    r_squared: float
    adj_r_squared: float
    sigma_hat: float
    df_resid: int
    nobs: int
    confidence_level: float
    outcome: str
    predictors: List[str]
    results: object = field(default=None, repr=False)

    @property
    def terms(self) -> List[str]:
        return [INTERCEPT, *self.predictors]


def check_predictor_names(predictors: Sequence[str], outcome: str = "y") -> None:
    """Predictor names become term labels, so they must not clash."""
    for name in predictors:
        if name in RESERVED_NAMES or name == outcome:
            raise InvalidParameterError(
                f"Predictor name {name!r} is reserved (intercept, const or the outcome {outcome!r})"
            )
    if len(set(predictors)) != len(predictors):
        raise InvalidParameterError(f"Duplicate predictor names: {list(predictors)}")


def design_matrix(data: pd.DataFrame, predictors: Sequence[str]) -> pd.DataFrame:
    """Predictor columns plus a leading constant column."""
    missing = [c for c in predictors if c not in data.columns]
    if missing:
        raise SchemaMismatchError(missing[0], f"Missing predictor column: {missing[0]!r} (expected {list(predictors)})")
    X = data[list(predictors)].astype(float)
    return sm.add_constant(X, has_constant="add")


def fit_ols(
    data: pd.DataFrame,
    outcome: str = "y",
    predictors: Optional[Sequence[str]] = None,
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL,
) -> FitResult:
    """
    Fit outcome ~ intercept + predictors by least squares.

    predictors defaults to every column other than the outcome.
    Raises DegenerateModelError when n <= p or the design is rank-deficient.
    """
    level = check_confidence_level(confidence_level)
    if outcome not in data.columns:
        raise SchemaMismatchError(outcome, f"Missing outcome column: {outcome!r}")
    if predictors is None:
        predictors = [c for c in data.columns if c != outcome]
    predictors = list(predictors)
    if not predictors:
        raise DegenerateModelError("At least one predictor is required")
    check_predictor_names(predictors, outcome)

    exog = design_matrix(data, predictors)
    endog = data[outcome].astype(float)
    n, p = exog.shape
    if n <= p:
        raise DegenerateModelError(
            f"Insufficient degrees of freedom: {n} observation(s) for {p} coefficient(s)"
        )
    rank = int(np.linalg.matrix_rank(exog.to_numpy()))
    if rank < p:
        raise DegenerateModelError(
            f"Design matrix is rank-deficient (rank {rank} < {p}); predictors {predictors} are collinear"
        )

    res = sm.OLS(endog, exog).fit(use_t=True)

    rename = {_SM_CONST: INTERCEPT}
    params = res.params.rename(index=rename)
    bse = res.bse.rename(index=rename)
    ci = res.conf_int(alpha=1 - level).rename(index=rename)
    ci.columns = ["low", "high"]

    return FitResult(
        params=params,
        std_errors=bse,
        conf_int=ci,
        r_squared=float(res.rsquared),
        adj_r_squared=float(res.rsquared_adj),
        sigma_hat=float(np.sqrt(res.scale)),
        df_resid=int(res.df_resid),
        nobs=int(res.nobs),
        confidence_level=level,
        outcome=outcome,
        predictors=predictors,
        results=res,
    )


def coefficient_table(fit: FitResult) -> pd.DataFrame:
    """Tidy per-term table: term, estimate, std_error, ci_low, ci_high."""
    terms = fit.terms
    return pd.DataFrame({
        "term": terms,
        "estimate": fit.params.loc[terms].to_numpy(dtype=float),
        "std_error": fit.std_errors.loc[terms].to_numpy(dtype=float),
        "ci_low": fit.conf_int.loc[terms, "low"].to_numpy(dtype=float),
        "ci_high": fit.conf_int.loc[terms, "high"].to_numpy(dtype=float),
    })
