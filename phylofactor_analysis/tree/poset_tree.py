from __future__ import annotations
from typing import Dict, List, Optional, Iterable, TYPE_CHECKING

import networkx as nx

from phylofactor_analysis import config
from phylofactor_analysis.core_utils.tree_utils import compute_node_depths
from phylofactor_analysis.errors import InvalidTreeError

if TYPE_CHECKING:
    import pandas as pd
    from phylofactor_analysis.factorization.results import FactorizationResult


# ============================================================
# 1) PosetTree (NetworkX.DiGraph subclass)
# ============================================================


class PosetTree(nx.DiGraph):
    """Directed phylogeny wrapper that exposes hierarchy operations.

    The class augments ``networkx.DiGraph`` with helpers that make
    phylogenetic factorization workflows easier to manage:

    * the root (in-degree 0) is tracked and can be retrieved via :meth:`root`.
    * leaves (tips) carry a ``label`` attribute so downstream consumers can
      match rows of a data matrix to tips.
    * edges point from parent to child and carry a ``branch_length``.
    * :meth:`validate` checks the structural preconditions of the
      partitioner and of node-keyed log-ratio transforms.
    * utility accessors (:meth:`get_leaves`, :meth:`compute_descendant_sets`)
      provide common tree queries needed by statistical routines.

    Constructors from Newick strings, SciPy linkage matrices and undirected
    edge lists live in :mod:`phylofactor_analysis.tree.io`.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._depths: Optional[Dict[str, int]] = None

    # ---------------- Poset helpers ----------------

    def root(self) -> str:
        """Return the cached root node, discovering it if necessary."""
        r = self.graph.get("root")
        if r is None:
            roots = [u for u, d in self.in_degree() if d == 0]
            if len(roots) != 1:
                raise InvalidTreeError(f"Expected one root, got {len(roots)}", roots)
            r = roots[0]
            self.graph["root"] = r
        return r

    def children(self, node: str) -> List[str]:
        return list(self.successors(node))

    def internal_nodes(self) -> List[str]:
        """Non-leaf nodes in breadth-first order from the root."""
        root = self.root()
        order = [root]
        queue = [root]
        while queue:
            node = queue.pop(0)
            for child in self.successors(node):
                order.append(child)
                queue.append(child)
        return [n for n in order if not self._is_leaf(n)]

    def get_leaves(
        self,
        node: Optional[str] = None,
        return_labels: bool = True,
        sort: bool = True,
    ) -> List[str]:
        """Collect leaf nodes globally or within a subtree.

        Parameters
        ----------
        node
            When ``None`` (default), returns all leaves. Otherwise restricts the search
            to the descendants of ``node``.
        return_labels
            If ``True`` (default) return the ``label`` attribute; otherwise return raw
            node ids.
        sort
            Whether to sort the returned values in ascending order.

        Returns
        -------
        list[str]
            Leaf labels or ids, depending on ``return_labels``.
        """
        if node is None:
            leaf_nodes = [n for n in self.nodes if self._is_leaf(n)]
        else:
            if self._is_leaf(node):
                leaf_nodes = [node]
            else:
                leaf_nodes = [d for d in nx.descendants(self, node) if self._is_leaf(d)]

        out = [self.label(n) for n in leaf_nodes] if return_labels else leaf_nodes
        return sorted(out) if sort else out

    def label(self, node_id: str) -> str:
        return str(self.nodes[node_id].get("label", node_id))

    def _is_leaf(self, node_id: str) -> bool:
        """Check if a node is a leaf."""
        is_leaf_attr = self.nodes[node_id].get("is_leaf")
        if is_leaf_attr is not None:
            return bool(is_leaf_attr)
        return self.out_degree(node_id) == 0

    def branch_length(self, parent: str, child: str) -> float:
        return float(
            self.edges[parent, child].get("branch_length", config.DEFAULT_BRANCH_LENGTH)
        )

    def compute_descendant_sets(self, use_labels: bool = True) -> Dict[str, frozenset]:
        """Map each node to the set of leaf labels under it.

        Parameters
        ----------
        use_labels
            When ``True`` (default), map to stored ``label`` values; otherwise use
            internal node identifiers.

        Returns
        -------
        dict[str, frozenset]
            Dictionary whose keys are node ids and whose values are the descendant leaf
            labels/ids as a frozenset.
        """
        desc_sets: Dict[str, frozenset] = {}
        # process leaves first (reverse topological order)
        for node in nx.topological_sort(self.reverse(copy=False)):
            if self._is_leaf(node):
                val = self.label(node) if use_labels else node
                desc_sets[node] = frozenset([val])
            else:
                child_sets = [desc_sets[c] for c in self.successors(node)]
                desc_sets[node] = frozenset().union(*child_sets)
        return desc_sets

    # ---------------- Validation ----------------

    def validate(self, require_bifurcating: bool = False) -> None:
        """Check that the graph is a single rooted tree with labelled tips.

        Parameters
        ----------
        require_bifurcating
            When ``True``, every internal node must have exactly two children.
            Node-keyed transforms need this; the edge partitioner does not.

        Raises
        ------
        InvalidTreeError
            Naming the offending node(s) for the first violated condition.
        """
        if self.number_of_nodes() == 0:
            raise InvalidTreeError("Tree is empty")

        if not nx.is_directed_acyclic_graph(self):
            cycle = nx.find_cycle(self)
            raise InvalidTreeError("Tree contains a cycle", [u for u, _ in cycle])

        multi_parent = [n for n, d in self.in_degree() if d > 1]
        if multi_parent:
            raise InvalidTreeError("Nodes have more than one parent", multi_parent)

        if not nx.is_weakly_connected(self):
            components = sorted(
                (sorted(map(str, c)) for c in nx.weakly_connected_components(self)),
                key=len,
            )
            raise InvalidTreeError(
                f"Tree is disconnected into {len(components)} components",
                components[0],
            )

        self.graph.pop("root", None)
        self.root()

        negative = [
            (u, v)
            for u, v, length in self.edges(data="branch_length")
            if length is not None and float(length) < 0
        ]
        if negative:
            raise InvalidTreeError("Edges have negative branch length", negative)

        labels = [self.label(n) for n in self.nodes if self._is_leaf(n)]
        if len(set(labels)) != len(labels):
            duplicated = sorted({lab for lab in labels if labels.count(lab) > 1})
            raise InvalidTreeError("Duplicate tip labels", duplicated)

        if require_bifurcating:
            polytomies = [
                n
                for n in self.nodes
                if not self._is_leaf(n) and self.out_degree(n) != 2
            ]
            if polytomies:
                raise InvalidTreeError(
                    "Internal nodes must have exactly two children", polytomies
                )

    # ---------------- LCA ----------------

    def _get_depths(self) -> Dict[str, int]:
        """Computes and caches node depths from the root."""
        if self._depths is None:
            self._depths = compute_node_depths(self)
        return self._depths

    def find_lca(self, node_a: str, node_b: str) -> str:
        """Find the lowest common ancestor (LCA) of two nodes.

        Assumes the graph is a tree (each node has one parent) and uses node
        depths for an O(depth) search.
        """
        if node_a == node_b:
            return node_a

        depths = self._get_depths()
        current_a, current_b = node_a, node_b
        depth_a, depth_b = depths[node_a], depths[node_b]

        # 1. Bring nodes to the same depth
        while depth_a > depth_b:
            current_a = next(self.predecessors(current_a))
            depth_a -= 1
        while depth_b > depth_a:
            current_b = next(self.predecessors(current_b))
            depth_b -= 1

        # 2. Walk up until they meet
        while current_a != current_b:
            current_a = next(self.predecessors(current_a))
            current_b = next(self.predecessors(current_b))

        return current_a

    def find_lca_for_set(self, nodes: Iterable[str]) -> str:
        """Find the lowest common ancestor for a collection of nodes.

        An empty collection maps to the root.
        """
        node_iterator = iter(nodes)
        try:
            lca = next(node_iterator)
        except StopIteration:
            return self.root()

        root = self.root()
        for node in node_iterator:
            lca = self.find_lca(lca, node)
            if lca == root:
                return root
        return lca

    def tip_node(self, label: str) -> str:
        """Return the node id carrying tip ``label``."""
        for n in self.nodes:
            if self._is_leaf(n) and self.label(n) == label:
                return n
        raise KeyError(f"No tip labelled {label!r}")

    # ---------------- Factorization helper ----------------

    def factorize(
        self,
        data: "pd.DataFrame",
        covariate=None,
        **partitioner_kwargs,
    ) -> "FactorizationResult":
        """Run :class:`GreedyEdgePartitioner` directly from the tree.

        Parameters
        ----------
        data
            Tip-indexed data matrix (rows = tips, columns = samples).
        covariate
            Optional explanatory variable, one value per sample.
        **partitioner_kwargs
            Extra keyword arguments forwarded to ``GreedyEdgePartitioner``
            (e.g., ``objective``, ``n_factors``, ``ks_alpha``).
        """
        from phylofactor_analysis.factorization.edge_partitioner import (
            GreedyEdgePartitioner,
        )

        partitioner = GreedyEdgePartitioner(self, data, covariate, **partitioner_kwargs)
        return partitioner.run()
