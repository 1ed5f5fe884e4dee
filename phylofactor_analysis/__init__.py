"""Phylogenetic factorization of compositional data."""

from .errors import (
    DataMismatchError,
    DegenerateGroupError,
    InvalidTreeError,
    NonPositiveValueError,
    PhyloFactorError,
)
from .factorization import (
    FactorizationResult,
    GreedyEdgePartitioner,
    PartitionRecord,
    StoppingRule,
    phylofactorize,
)
from .tree import PosetTree, tree_from_newick

__all__ = [
    "DataMismatchError",
    "DegenerateGroupError",
    "InvalidTreeError",
    "NonPositiveValueError",
    "PhyloFactorError",
    "FactorizationResult",
    "GreedyEdgePartitioner",
    "PartitionRecord",
    "StoppingRule",
    "phylofactorize",
    "PosetTree",
    "tree_from_newick",
]
