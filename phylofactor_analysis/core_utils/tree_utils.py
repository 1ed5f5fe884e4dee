"""Tree utility functions for phylogenetic factorization.

Low-level tree operations that don't depend on the factorization
modules, avoiding circular import issues.
"""

from __future__ import annotations

from typing import Dict, List

import networkx as nx

from ..errors import InvalidTreeError


def compute_node_depths(tree: nx.DiGraph) -> Dict[str, int]:
    """Compute depth of each node from the root via BFS.

    Parameters
    ----------
    tree
        Directed acyclic graph representing the hierarchy.

    Returns
    -------
    Dict[str, int]
        Mapping from node_id to depth (root = 0).

    Raises
    ------
    InvalidTreeError
        If the tree has no root node (all nodes have parents).
    """
    roots = [n for n in tree.nodes() if tree.in_degree(n) == 0]
    if not roots:
        raise InvalidTreeError("Tree has no root node (all nodes have parents)")

    depths: Dict[str, int] = {}
    for root in roots:
        depths[root] = 0

    queue = list(roots)
    while queue:
        node = queue.pop(0)
        for child in tree.successors(node):
            if child not in depths:
                depths[child] = depths[node] + 1
                queue.append(child)

    return depths


def compute_root_distances(
    tree: nx.DiGraph, root: str, length_attr: str = "branch_length"
) -> Dict[str, float]:
    """Sum branch lengths along the path from ``root`` to every node."""
    distances: Dict[str, float] = {root: 0.0}
    queue = [root]
    while queue:
        node = queue.pop(0)
        for child in tree.successors(node):
            length = float(tree.edges[node, child].get(length_attr, 1.0))
            distances[child] = distances[node] + length
            queue.append(child)
    return distances


def breadth_first_edges(tree: nx.DiGraph, root: str) -> List[tuple[str, str]]:
    """Return parent -> child edges in breadth-first order, children in insertion order."""
    ordered: List[tuple[str, str]] = []
    queue = [root]
    while queue:
        node = queue.pop(0)
        for child in tree.successors(node):
            ordered.append((node, child))
            queue.append(child)
    return ordered


__all__ = [
    "compute_node_depths",
    "compute_root_distances",
    "breadth_first_edges",
]
