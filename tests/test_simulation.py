import pandas as pd
import pytest

from ols_coverage.coverage import coverage_summary
from ols_coverage.errors import DegenerateModelError, InvalidParameterError
from ols_coverage.simulation import SimulationParams, run_simulation, run_trial, sample_size_sweep, trial_seeds

# the classroom scenario: y = 10 + 5x + N(0, 7), x ~ U(0, 7)
COURSE = SimulationParams(intercept=10, slope=5, sigma=7, n=100, trials=100, x_low=0, x_high=7, seed=2024)


def test_one_record_per_trial_and_term():
    res = run_simulation(COURSE)
    est = res.estimates
    assert len(est) == COURSE.trials * 2
    counts = est.groupby("term")["trial"].nunique()
    assert counts["intercept"] == 100
    assert counts["x"] == 100
    assert est["trial"].tolist()[:4] == [1, 1, 2, 2]
    assert res.failures == []
    assert res.completed_trials == 100


def test_course_scenario_recovers_truth_and_covers_near_nominal():
    res = run_simulation(COURSE)
    summary = coverage_summary(res.estimates).set_index("term")

    # per-trial SE is ~1.4 (intercept) and ~0.35 (slope); means over 100 trials
    assert summary.loc["intercept", "mean_estimate"] == pytest.approx(10, abs=0.6)
    assert summary.loc["x", "mean_estimate"] == pytest.approx(5, abs=0.2)

    for term in ["intercept", "x"]:
        assert 0.85 <= summary.loc[term, "coverage"] <= 1.0
    # some interval somewhere misses the truth
    assert summary["covered"].sum() < 2 * COURSE.trials


def test_same_seed_reproduces_the_run():
    a = run_simulation(COURSE).estimates
    b = run_simulation(COURSE).estimates
    pd.testing.assert_frame_equal(a, b)


def test_different_seeds_differ():
    from dataclasses import replace
    a = run_simulation(replace(COURSE, trials=5)).estimates
    b = run_simulation(replace(COURSE, trials=5, seed=99)).estimates
    assert not a["estimate"].equals(b["estimate"])


def test_trials_use_independent_datasets():
    seeds = trial_seeds(7, 2)
    first, data1, _ = run_trial(1, COURSE, seeds[0])
    second, data2, _ = run_trial(2, COURSE, seeds[1])
    assert not data1["x"].equals(data2["x"])
    assert first["trial"].unique().tolist() == [1]
    assert second["trial"].unique().tolist() == [2]


def test_parallel_run_matches_sequential():
    from dataclasses import replace
    params = replace(COURSE, trials=40)
    seq = run_simulation(params, workers=1).estimates
    par = run_simulation(params, workers=4).estimates
    pd.testing.assert_frame_equal(seq, par)


def test_last_trial_kept_for_plotting():
    res = run_simulation(SimulationParams(n=30, trials=3, seed=1))
    assert len(res.last_dataset) == 30
    last = res.estimates[res.estimates["trial"] == 3].set_index("term")
    assert res.last_fit.params["x"] == pytest.approx(last.loc["x", "estimate"])


def test_degenerate_trial_propagates_by_default():
    # p=0: every trial draws only baseline customers
    params = SimulationParams(covariate="binary", p=0.0, predictor="coupon", n=10, trials=3, seed=1)
    with pytest.raises(DegenerateModelError):
        run_simulation(params)


def test_robust_runner_records_failures_and_continues(capsys):
    params = SimulationParams(intercept=40, slope=6, sigma=5, covariate="binary", p=0.05,
                              predictor="coupon", n=10, trials=30, seed=3)
    res = run_simulation(params, continue_on_error=True)
    assert len(res.failures) + res.completed_trials == 30
    assert len(res.estimates) == 2 * res.completed_trials
    failed = {f.trial for f in res.failures}
    assert failed.isdisjoint(set(res.estimates["trial"]))
    for f in res.failures:
        assert f.severity == "ERROR"
        assert f.check == "trial:DegenerateModelError"
    if res.failures:
        assert "failed trial(s)" in capsys.readouterr().out


def test_binary_design_estimates_the_lift():
    params = SimulationParams(intercept=40, slope=6, sigma=12, covariate="binary", p=0.3,
                              predictor="coupon", n=200, trials=50, seed=7)
    summary = coverage_summary(run_simulation(params).estimates).set_index("term")
    assert summary.loc["coupon", "mean_estimate"] == pytest.approx(6, abs=1.0)
    assert summary.loc["intercept", "mean_estimate"] == pytest.approx(40, abs=1.0)


def test_mse_shrinks_as_sample_size_grows():
    params = SimulationParams(trials=50, seed=11)
    sweep = sample_size_sweep(params, [20, 100, 500])
    for term in ["intercept", "x"]:
        mse = sweep[sweep["term"] == term].sort_values("n")["mse"].tolist()
        assert mse[0] > mse[1] > mse[2]


@pytest.mark.parametrize("kwargs", [
    {"sigma": -7},
    {"trials": 0},
    {"covariate": "binary", "p": 2.0},
    {"covariate": "poisson"},
    {"confidence_level": 95},
    {"predictor": "y"},
    {"predictor": "intercept"},
    {"predictor": "const"},
    {"x_low": 3.0, "x_high": 3.0},
])
def test_invalid_params_rejected_before_any_trial(kwargs):
    with pytest.raises(InvalidParameterError):
        SimulationParams(**kwargs)


def test_workers_must_be_positive():
    with pytest.raises(InvalidParameterError):
        run_simulation(SimulationParams(trials=2, seed=1), workers=0)


def test_single_trial_run():
    res = run_simulation(SimulationParams(n=30, trials=1, seed=4))
    assert len(res.estimates) == 2
    assert res.estimates["trial"].unique().tolist() == [1]
    summary = coverage_summary(res.estimates).set_index("term")
    assert summary.loc["x", "trials"] == 1
    assert summary.loc["x", "coverage"] in (0.0, 1.0)
    # one estimate has no spread
    assert pd.isna(summary.loc["x", "sd_estimate"])


def test_noiseless_data_covers_every_trial():
    res = run_simulation(SimulationParams(sigma=0, n=20, trials=10, seed=6))
    summary = coverage_summary(res.estimates).set_index("term")
    assert summary.loc["intercept", "coverage"] == 1.0
    assert summary.loc["x", "coverage"] == 1.0
