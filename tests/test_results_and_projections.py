"""Summary tables and projections derived from a finished factorization."""

import numpy as np
import pytest

from phylofactor_analysis.errors import DegenerateGroupError, NonPositiveValueError
from phylofactor_analysis.factorization import (
    bin_projection,
    build_tip_bin_assignments,
    phylofactorize,
)
from phylofactor_analysis.factorization.results import refine_bins

from tree_fixtures import (
    make_eight_tip_tree,
    make_four_tip_tree,
    make_random_data,
    make_split_signal_data,
)


@pytest.fixture
def four_tip_result():
    data, covariate = make_split_signal_data()
    return phylofactorize(make_four_tip_tree(), data, covariate, n_factors=1), data


def test_refine_bins_replaces_in_place() -> None:
    bins = [frozenset("AB"), frozenset("CDE")]
    refine_bins(bins, frozenset("C"), frozenset("DE"))
    assert bins == [frozenset("AB"), frozenset("C"), frozenset("DE")]


def test_refine_bins_requires_matching_bin() -> None:
    with pytest.raises(DegenerateGroupError):
        refine_bins([frozenset("ABC")], frozenset("A"), frozenset("B"))


def test_to_frame_adds_bh_columns() -> None:
    tree = make_eight_tip_tree()
    data, covariate = make_random_data(tree.get_leaves())
    result = phylofactorize(tree, data, covariate, n_factors=3)

    frame = result.to_frame()

    assert list(frame.index) == [1, 2, 3]
    assert frame.index.name == "factor"
    assert (frame["p_value_bh"] >= frame["p_value"] - 1e-12).all()
    assert (frame["p_value_bh"] <= 1.0).all()
    assert frame.loc[1, "parent"] == result.records[0].edge[0]
    assert frame.loc[1, "group1_size"] == len(result.records[0].group1)


def test_partition_record_helpers(four_tip_result) -> None:
    result, _ = four_tip_result
    record = result.records[0]
    assert record.bin == frozenset({"A", "B", "C", "D"})
    assert record.coefficient == pytest.approx(record.coefficients["x"])
    assert result.groups == [(record.group1, record.group2)]


def test_bin_projection_columns_sum_to_one(four_tip_result) -> None:
    result, data = four_tip_result
    counts = data.round()
    counts.loc["A", "s0"] = 0.0

    projected = bin_projection(result, counts)

    assert list(projected.index) == ["bin_0", "bin_1"]
    assert list(projected.columns) == list(data.columns)
    np.testing.assert_allclose(projected.sum(axis=0).to_numpy(), 1.0)
    expected = (counts.loc[["A", "B"]].sum() / counts.sum()).to_numpy()
    np.testing.assert_allclose(projected.loc["bin_0"].to_numpy(), expected)


def test_bin_projection_on_custom_bins(four_tip_result) -> None:
    result, data = four_tip_result
    projected = bin_projection(result, data, bins=result.bins_after(0))
    np.testing.assert_allclose(projected.loc["bin_0"].to_numpy(), 1.0)


def test_bin_projection_rejects_negative_and_empty_samples(four_tip_result) -> None:
    result, data = four_tip_result
    negative = data.copy()
    negative.loc["B", "s1"] = -1.0
    with pytest.raises(NonPositiveValueError):
        bin_projection(result, negative)

    empty = data.copy()
    empty["s2"] = 0.0
    with pytest.raises(ValueError, match="zero total"):
        bin_projection(result, empty)


def test_tip_bin_assignments(four_tip_result) -> None:
    result, _ = four_tip_result
    table = build_tip_bin_assignments(result)

    assert table.index.name == "tip_id"
    assert list(table.index) == ["A", "B", "C", "D"]
    assert table.loc["A", "bin_id"] == table.loc["B", "bin_id"]
    assert table.loc["A", "bin_id"] != table.loc["C", "bin_id"]
    assert (table["bin_size"] == 2).all()


def test_explained_variance_uses_total_clr_variance(four_tip_result) -> None:
    result, _ = four_tip_result
    record = result.records[0]
    contrast = record.contrast
    centred_ss = float(np.sum((contrast - contrast.mean()) ** 2))
    assert record.explained_variance <= centred_ss / result.total_variance + 1e-12
