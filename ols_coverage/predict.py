from __future__ import annotations

from typing import Optional

import pandas as pd

from .errors import InvalidParameterError, SchemaMismatchError
from .regression import FitResult, check_confidence_level, design_matrix

INTERVAL_KINDS = (None, "confidence", "prediction")


def predict(
    fit: FitResult,
    new_data: pd.DataFrame,
    interval: Optional[str] = None,
    confidence_level: Optional[float] = None,
) -> pd.DataFrame:
    """
    Predicted outcomes for new covariate scenarios.

    interval:
      None         -> prediction only
      "confidence" -> ci_low / ci_high for the expected outcome
      "prediction" -> pi_low / pi_high for a single new observation
                      (adds residual variance, so always wider)

    Every predictor used in fitting must be a column of new_data; extra
    columns are ignored.
    """
    if interval not in INTERVAL_KINDS:
        raise InvalidParameterError(f"interval must be one of {INTERVAL_KINDS}, got {interval!r}")
    level = fit.confidence_level if confidence_level is None else check_confidence_level(confidence_level)

    for name in fit.predictors:
        if name not in new_data.columns:
            raise SchemaMismatchError(
                name,
                f"New data is missing predictor {name!r}; got columns {list(new_data.columns)}",
            )

    exog = design_matrix(new_data, fit.predictors)
    frame = fit.results.get_prediction(exog.to_numpy()).summary_frame(alpha=1 - level)

    out = pd.DataFrame({"prediction": frame["mean"].to_numpy()}, index=new_data.index)
    if interval == "confidence":
        out["ci_low"] = frame["mean_ci_lower"].to_numpy()
        out["ci_high"] = frame["mean_ci_upper"].to_numpy()
    elif interval == "prediction":
        out["pi_low"] = frame["obs_ci_lower"].to_numpy()
        out["pi_high"] = frame["obs_ci_upper"].to_numpy()
    return out
