import numpy as np
import pandas as pd
import pytest

from phylofactor_analysis.core_utils.data_utils import align_covariate, align_data_to_tips
from phylofactor_analysis.errors import DataMismatchError
from phylofactor_analysis.factorization.objectives import (
    OBJECTIVES,
    Objective,
    build_design,
    fit_contrast,
    resolve_objective,
)


def test_numeric_design_has_intercept() -> None:
    design = build_design(pd.Series([0.0, 1.0, 2.0], name="ph"))
    assert list(design.columns) == ["const", "ph"]
    np.testing.assert_allclose(design["const"].to_numpy(), 1.0)


def test_categorical_design_drops_first_level() -> None:
    design = build_design(pd.Series(["a", "b", "c", "a"], name="site"))
    assert list(design.columns) == ["const", "site_b", "site_c"]


def test_single_level_categorical_is_rejected() -> None:
    with pytest.raises(ValueError, match="single level"):
        build_design(pd.Series(["a", "a", "a"], name="site"))


def test_fit_contrast_exact_line() -> None:
    x = pd.Series(np.linspace(0.0, 1.0, 10), name="x")
    noise = np.random.default_rng(0).normal(0.0, 0.01, size=10)
    summary = fit_contrast(3.0 * x.to_numpy() + noise, build_design(x))
    assert summary.coefficients["x"] == pytest.approx(3.0, abs=0.05)
    assert summary.p_value < 1e-6
    assert summary.ess > 0


def test_constant_contrast_carries_no_signal() -> None:
    x = pd.Series([0.0, 1.0, 2.0, 3.0], name="x")
    summary = fit_contrast(np.full(4, 0.7), build_design(x))
    assert summary.ess == 0.0
    assert np.isnan(summary.p_value)
    assert np.isnan(summary.f_statistic)


def test_resolve_objective() -> None:
    assert resolve_objective("var") is OBJECTIVES["var"]
    assert OBJECTIVES["F"].needs_covariate
    assert not OBJECTIVES["variance"].needs_covariate

    custom = resolve_objective(lambda contrast, covariate: contrast.max())
    assert isinstance(custom, Objective)
    assert custom.score(np.array([1.0, 4.0]), None, None) == 4.0

    with pytest.raises(TypeError):
        resolve_objective(3)


def test_align_data_to_tips_reorders_rows() -> None:
    data = pd.DataFrame({"s": [1, 2, 3]}, index=["c", "a", "b"])
    aligned = align_data_to_tips(data, ["a", "b", "c"])
    assert list(aligned.index) == ["a", "b", "c"]
    assert aligned["s"].tolist() == [2.0, 3.0, 1.0]


def test_align_data_to_tips_rejects_duplicates() -> None:
    data = pd.DataFrame({"s": [1, 2]}, index=["a", "a"])
    with pytest.raises(DataMismatchError) as excinfo:
        align_data_to_tips(data, ["a"])
    assert excinfo.value.extra == ("a",)


def test_align_covariate_positional_and_by_label() -> None:
    assert align_covariate(None, ["s1"]) is None

    positional = align_covariate(np.array([1.0, 2.0]), ["s1", "s2"])
    assert positional.name == "covariate"
    assert list(positional.index) == ["s1", "s2"]

    labelled = align_covariate(pd.Series({"s2": 5.0, "s1": 4.0}, name="x"), ["s1", "s2"])
    assert labelled.tolist() == [4.0, 5.0]


def test_align_covariate_rejects_foreign_labels() -> None:
    covariate = pd.Series([1.0, 2.0, 3.0], index=["x0", "x1", "x2"], name="x")
    with pytest.raises(ValueError, match="does not match the data samples"):
        align_covariate(covariate, ["s0", "s1", "s2"])


def test_align_covariate_rejects_duplicated_labels() -> None:
    covariate = pd.Series([1.0, 2.0, 3.0], index=["s0", "s0", "s1"])
    with pytest.raises(ValueError, match="duplicated"):
        align_covariate(covariate, ["s0", "s1", "s2"])


def test_align_covariate_range_index_is_positional() -> None:
    aligned = align_covariate(pd.Series([7.0, 8.0], name="x"), ["s1", "s2"])
    assert list(aligned.index) == ["s1", "s2"]
    assert aligned.tolist() == [7.0, 8.0]
    assert aligned.name == "x"


def test_constant_numeric_covariate_is_rejected() -> None:
    with pytest.raises(ValueError, match="constant"):
        build_design(pd.Series([2.0, 2.0, 2.0, 2.0], name="ph"))
