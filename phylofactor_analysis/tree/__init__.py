"""Directed phylogeny model and constructors."""

from .poset_tree import PosetTree
from .io import (
    tree_from_linkage,
    tree_from_newick,
    tree_from_parent_map,
    tree_from_undirected_edges,
)

__all__ = [
    "PosetTree",
    "tree_from_linkage",
    "tree_from_newick",
    "tree_from_parent_map",
    "tree_from_undirected_edges",
]
