import numpy as np
import pytest

from phylofactor_analysis.factorization import StoppingRule


def test_fixed_count_caps_at_tips_minus_one() -> None:
    assert StoppingRule.fixed_count(3).max_factors(10) == 3
    assert StoppingRule.fixed_count(30).max_factors(10) == 9
    assert StoppingRule().max_factors(10) == 9
    assert StoppingRule().max_factors(1) == 0


@pytest.mark.parametrize("kwargs", [{"n_factors": -1}, {"ks_alpha": 0.0}, {"ks_alpha": 1.5}])
def test_invalid_arguments(kwargs) -> None:
    with pytest.raises(ValueError):
        StoppingRule(**kwargs)


def test_without_ks_alpha_never_fires() -> None:
    fires, ks_p = StoppingRule.fixed_count(2).pvalues_look_uniform([0.5, 0.5])
    assert not fires
    assert np.isnan(ks_p)


def test_uniform_pvalues_fire() -> None:
    rule = StoppingRule.significance_based(ks_alpha=0.05)
    fires, ks_p = rule.pvalues_look_uniform(np.linspace(0.01, 0.99, 50))
    assert fires
    assert ks_p > 0.05


def test_small_pvalues_do_not_fire() -> None:
    rule = StoppingRule.significance_based(ks_alpha=0.05)
    fires, ks_p = rule.pvalues_look_uniform([1e-8, 1e-6, 1e-5, 1e-4, 1e-3] * 4)
    assert not fires
    assert ks_p < 0.05


def test_non_finite_pvalues_are_dropped() -> None:
    rule = StoppingRule.significance_based(ks_alpha=0.05)
    fires, ks_p = rule.pvalues_look_uniform([np.nan, np.nan])
    assert fires
    assert np.isnan(ks_p)

    fires, _ = rule.pvalues_look_uniform([np.nan] + [1e-8] * 20)
    assert not fires


def test_significance_rule_defaults() -> None:
    rule = StoppingRule.significance_based()
    assert rule.uses_significance
    assert rule.ks_alpha == 0.01
    assert not rule.include_last
