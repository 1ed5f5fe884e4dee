"""Constructors that turn external tree descriptions into PosetTree."""

import io

import numpy as np
import pytest
from scipy.cluster.hierarchy import linkage

from phylofactor_analysis.errors import InvalidTreeError
from phylofactor_analysis.tree import (
    tree_from_linkage,
    tree_from_newick,
    tree_from_parent_map,
    tree_from_undirected_edges,
)


def test_newick_labels_and_branch_lengths() -> None:
    tree = tree_from_newick("((A:1,B:2)inner:1,C:3);")
    tree.validate(require_bifurcating=True)

    assert tree.get_leaves() == ["A", "B", "C"]
    root = tree.root()
    assert root == "N0"
    inner = [n for n in tree.successors(root) if not tree._is_leaf(n)][0]
    assert tree.nodes[inner]["name"] == "inner"
    assert tree.branch_length(root, inner) == pytest.approx(1.0)
    assert tree.branch_length(inner, tree.tip_node("B")) == pytest.approx(2.0)
    assert tree.branch_length(root, tree.tip_node("C")) == pytest.approx(3.0)


def test_newick_from_handle_with_missing_lengths() -> None:
    tree = tree_from_newick(io.StringIO("((A,B),(C,D));"))
    assert tree.get_leaves() == ["A", "B", "C", "D"]
    for u, v in tree.edges:
        assert tree.branch_length(u, v) == pytest.approx(1.0)


def test_newick_unnamed_tip_is_rejected() -> None:
    with pytest.raises(InvalidTreeError, match="unnamed"):
        tree_from_newick("((A:1,:1):1,C:1);")


def test_linkage_tree_is_bifurcating_and_ultrametric() -> None:
    rng = np.random.default_rng(0)
    points = rng.normal(size=(5, 2))
    Z = linkage(points, method="average")
    names = ["a", "b", "c", "d", "e"]

    tree = tree_from_linkage(Z, leaf_names=names)
    tree.validate(require_bifurcating=True)
    assert tree.get_leaves() == names
    assert all(tree.branch_length(u, v) >= 0 for u, v in tree.edges)


def test_linkage_rejects_wrong_name_count() -> None:
    Z = linkage(np.arange(8, dtype=float).reshape(4, 2))
    with pytest.raises(ValueError, match="leaf names"):
        tree_from_linkage(Z, leaf_names=["only", "two"])


def test_undirected_edges_rooted_at_first_internal_node() -> None:
    tree = tree_from_undirected_edges([("A", "x", 1.0), ("x", "B", 2.0), ("x", "C", 0.5)])
    assert tree.root() == "x"
    assert tree.get_leaves() == ["A", "B", "C"]
    assert tree.branch_length("x", "B") == pytest.approx(2.0)


def test_undirected_edges_reject_cycle() -> None:
    with pytest.raises(InvalidTreeError):
        tree_from_undirected_edges([("a", "b", 1.0), ("b", "c", 1.0), ("c", "a", 1.0)])


def test_undirected_edges_reject_unknown_root() -> None:
    with pytest.raises(InvalidTreeError):
        tree_from_undirected_edges([("a", "b", 1.0)], root="z")


def test_parent_map() -> None:
    tree = tree_from_parent_map(
        {
            "r": (None, None),
            "x": ("r", 0.5),
            "A": ("x", 1.0),
            "B": ("x", None),
            "C": ("r", 2.0),
        }
    )
    assert tree.root() == "r"
    assert tree.get_leaves() == ["A", "B", "C"]
    assert tree.branch_length("x", "B") == pytest.approx(1.0)
