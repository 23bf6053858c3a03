"""
Synthetic data for the regression exercises.

Two designs are supported:
  * continuous: x ~ Uniform(x_low, x_high)
  * binary:     x ~ Bernoulli(p), a coupon/treatment indicator (0 = baseline)

and in both cases y = intercept + slope * x + Normal(0, sigma).

Every draw goes through an explicit numpy Generator so a run is
reproducible from its seed and trials never share random state.
"""
from __future__ import annotations

import math

import numpy as np
import pandas as pd

from .errors import InvalidParameterError

COVARIATE_KINDS = ("uniform", "binary")


def make_rng(seed=None) -> np.random.Generator:
    """Accepts None, an int, a SeedSequence or an existing Generator."""
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def _finite(name: str, value) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(v):
        raise InvalidParameterError(f"{name} must be finite, got {value!r}")
    return v


def validate_params(
    n: int,
    sigma: float,
    intercept: float = 0.0,
    slope: float = 0.0,
    x_low: float = 0.0,
    x_high: float = 1.0,
    p: float = 0.5,
    covariate: str = "uniform",
) -> None:
    """Fail fast on parameters no distribution can be drawn from."""
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)) or n < 1:
        raise InvalidParameterError(f"n must be a positive integer, got {n!r}")
    for name, value in (("intercept", intercept), ("slope", slope)):
        _finite(name, value)
    if _finite("sigma", sigma) < 0:
        raise InvalidParameterError(f"sigma must be >= 0, got {sigma!r}")
    if covariate not in COVARIATE_KINDS:
        raise InvalidParameterError(f"covariate must be one of {COVARIATE_KINDS}, got {covariate!r}")
    if covariate == "uniform":
        # equal bounds give a constant covariate, which no trial can fit
        if _finite("x_low", x_low) >= _finite("x_high", x_high):
            raise InvalidParameterError(f"x_low ({x_low}) must be below x_high ({x_high})")
    else:
        prob = _finite("p", p)
        if prob < 0 or prob > 1:
            raise InvalidParameterError(f"p must be within [0, 1], got {p!r}")


def _respond(x: np.ndarray, intercept: float, slope: float, sigma: float, rng: np.random.Generator) -> np.ndarray:
    noise = rng.normal(0.0, sigma, size=len(x))
    return intercept + slope * x + noise


def simulate_linear(
    n: int,
    intercept: float,
    slope: float,
    sigma: float,
    x_low: float = 0.0,
    x_high: float = 7.0,
    seed=None,
    predictor: str = "x",
) -> pd.DataFrame:
    validate_params(n, sigma, intercept, slope, x_low=x_low, x_high=x_high, covariate="uniform")
    rng = make_rng(seed)
    x = rng.uniform(x_low, x_high, size=n)
    y = _respond(x, intercept, slope, sigma, rng)
    return pd.DataFrame({predictor: x, "y": y})


def simulate_binary(
    n: int,
    intercept: float,
    slope: float,
    sigma: float,
    p: float = 0.5,
    seed=None,
    predictor: str = "coupon",
) -> pd.DataFrame:
    """
    Treatment/control design: `predictor` is 1 with probability p.
    The slope is then the expected lift of the treated group over baseline.
    """
    validate_params(n, sigma, intercept, slope, p=p, covariate="binary")
    rng = make_rng(seed)
    x = rng.binomial(1, p, size=n)
    y = _respond(x.astype(float), intercept, slope, sigma, rng)
    return pd.DataFrame({predictor: x, "y": y})


def simulate_dataset(params, seed=None) -> pd.DataFrame:
    """Draw one trial's dataset for a SimulationParams."""
    if params.covariate == "binary":
        return simulate_binary(
            params.n, params.intercept, params.slope, params.sigma,
            p=params.p, seed=seed, predictor=params.predictor,
        )
    return simulate_linear(
        params.n, params.intercept, params.slope, params.sigma,
        x_low=params.x_low, x_high=params.x_high, seed=seed, predictor=params.predictor,
    )
