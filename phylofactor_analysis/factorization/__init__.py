"""
Greedy phylogenetic factorization.

This package provides:
- The edge arena and greedy partitioner that builds factors
- Objective functions and stopping rules
- Result types and projections through the resulting ILR basis
"""

from .edge_partitioner import EdgeArena, GreedyEdgePartitioner, TreeEdge, phylofactorize
from .objectives import OBJECTIVES, Objective, RegressionSummary, resolve_objective
from .projections import bin_projection, build_tip_bin_assignments, ilr_projection
from .results import FactorizationResult, PartitionRecord
from .stopping import StoppingRule

__all__ = [
    "EdgeArena",
    "GreedyEdgePartitioner",
    "TreeEdge",
    "phylofactorize",
    "OBJECTIVES",
    "Objective",
    "RegressionSummary",
    "resolve_objective",
    "bin_projection",
    "build_tip_bin_assignments",
    "ilr_projection",
    "FactorizationResult",
    "PartitionRecord",
    "StoppingRule",
]
