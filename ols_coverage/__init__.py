"""
OLS coverage simulation

Simulate data around a known linear model, fit OLS, and check how often
the confidence intervals contain the true coefficients.
"""

__version__ = "0.1.0"

from .coverage import add_coverage, coverage_summary, interval_plot_frame
from .errors import DegenerateModelError, InvalidParameterError, SchemaMismatchError, SimulationError
from .generate import simulate_binary, simulate_dataset, simulate_linear
from .predict import predict
from .regression import FitResult, coefficient_table, fit_ols
from .simulation import Finding, SimulationParams, SimulationResult, run_simulation, run_trial, sample_size_sweep

__all__ = [
    "DegenerateModelError",
    "Finding",
    "FitResult",
    "InvalidParameterError",
    "SchemaMismatchError",
    "SimulationError",
    "SimulationParams",
    "SimulationResult",
    "add_coverage",
    "coefficient_table",
    "coverage_summary",
    "fit_ols",
    "interval_plot_frame",
    "predict",
    "run_simulation",
    "run_trial",
    "sample_size_sweep",
    "simulate_binary",
    "simulate_dataset",
    "simulate_linear",
]
