import numpy as np
import pandas as pd
import pytest

from ols_coverage.errors import InvalidParameterError
from ols_coverage.generate import make_rng, simulate_binary, simulate_linear


def test_same_seed_gives_identical_dataset():
    a = simulate_linear(50, intercept=10, slope=5, sigma=7, seed=123)
    b = simulate_linear(50, intercept=10, slope=5, sigma=7, seed=123)
    pd.testing.assert_frame_equal(a, b)


def test_no_seed_gives_fresh_draws():
    a = simulate_linear(50, intercept=10, slope=5, sigma=7)
    b = simulate_linear(50, intercept=10, slope=5, sigma=7)
    assert not np.allclose(a["y"], b["y"])


def test_uniform_covariate_respects_bounds():
    df = simulate_linear(500, intercept=0, slope=1, sigma=1, x_low=0, x_high=20, seed=1)
    assert list(df.columns) == ["x", "y"]
    assert len(df) == 500
    assert df["x"].between(0, 20).all()


def test_zero_noise_lies_on_the_line():
    df = simulate_linear(20, intercept=10, slope=5, sigma=0, seed=3)
    np.testing.assert_allclose(df["y"], 10 + 5 * df["x"])


def test_binary_covariate_is_zero_one():
    df = simulate_binary(400, intercept=40, slope=6, sigma=3, p=0.3, seed=11)
    assert list(df.columns) == ["coupon", "y"]
    assert set(df["coupon"].unique()) <= {0, 1}
    # 400 draws at p=0.3: share of treated well inside (0.2, 0.4)
    assert 0.2 < df["coupon"].mean() < 0.4


def test_generator_seed_is_used_as_is():
    rng = np.random.default_rng(5)
    assert make_rng(rng) is rng


@pytest.mark.parametrize("kwargs", [
    {"sigma": -1.0},
    {"sigma": float("nan")},
    {"n": 0},
    {"x_low": 5, "x_high": 1},
    {"x_low": 2, "x_high": 2},
])
def test_invalid_linear_params_fail_fast(kwargs):
    args = {"n": 10, "intercept": 1, "slope": 1, "sigma": 1, **kwargs}
    with pytest.raises(InvalidParameterError):
        simulate_linear(**args)


@pytest.mark.parametrize("p", [-0.1, 1.5])
def test_probability_outside_unit_interval_fails(p):
    with pytest.raises(InvalidParameterError):
        simulate_binary(10, intercept=1, slope=1, sigma=1, p=p)
