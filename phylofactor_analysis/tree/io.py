"""I/O helpers for constructing :class:`PosetTree` from external representations.

Each public function accepts a raw tree description (Newick text, linkage
matrix, undirected edge list, parent map) and returns a fully-initialised
:class:`PosetTree` whose tips carry ``is_leaf=True`` and a ``label``, and
whose edges carry a ``branch_length``.
"""

from __future__ import annotations

import io
from typing import TYPE_CHECKING, Iterable, List, Mapping, Optional, TextIO, Tuple

import networkx as nx
import numpy as np
from skbio import TreeNode

from phylofactor_analysis import config
from phylofactor_analysis.errors import InvalidTreeError

if TYPE_CHECKING:
    from phylofactor_analysis.tree.poset_tree import PosetTree


def _get_poset_tree_cls() -> type["PosetTree"]:
    """Lazy import to avoid circular dependency with poset_tree.py."""
    from phylofactor_analysis.tree.poset_tree import PosetTree

    return PosetTree


def _finalize(G: "PosetTree", root: Optional[str] = None) -> "PosetTree":
    """Annotate leaves and cache the root."""
    for n in G.nodes:
        G.nodes[n]["is_leaf"] = G.out_degree(n) == 0
        if G.nodes[n]["is_leaf"]:
            G.nodes[n].setdefault("label", str(n))
    if root is None:
        roots = [u for u, d in G.in_degree() if d == 0]
        if len(roots) != 1:
            raise InvalidTreeError(f"Expected one root, got {len(roots)}", roots)
        root = roots[0]
    G.graph["root"] = root
    return G


# ---------------------------------------------------------------------------
# Newick
# ---------------------------------------------------------------------------


def tree_from_newick(newick: str | TextIO) -> "PosetTree":
    """Parse a Newick tree with scikit-bio and convert it to a :class:`PosetTree`.

    Tips become ``L{i}`` nodes labelled with their Newick names; internal
    nodes become ``N{i}`` in pre-order, keeping any Newick name under the
    ``name`` attribute. Missing branch lengths default to
    :data:`~phylofactor_analysis.config.DEFAULT_BRANCH_LENGTH`.

    Parameters
    ----------
    newick
        Newick text or an open text handle.

    Raises
    ------
    InvalidTreeError
        If a tip has no name.
    """
    handle = io.StringIO(newick) if isinstance(newick, str) else newick
    skbio_tree = TreeNode.read(handle, format="newick")

    cls = _get_poset_tree_cls()
    G = cls()
    ids = {}
    n_tips = 0
    n_internal = 0
    unnamed_tips = 0

    for node in skbio_tree.preorder():
        if node.is_tip():
            if node.name is None or str(node.name) == "":
                unnamed_tips += 1
                continue
            nid = f"L{n_tips}"
            n_tips += 1
            G.add_node(nid, is_leaf=True, label=str(node.name))
        else:
            nid = f"N{n_internal}"
            n_internal += 1
            G.add_node(nid, is_leaf=False)
            if node.name:
                G.nodes[nid]["name"] = str(node.name)
        ids[id(node)] = nid

        if node.parent is not None:
            length = (
                float(node.length)
                if node.length is not None
                else config.DEFAULT_BRANCH_LENGTH
            )
            G.add_edge(ids[id(node.parent)], nid, branch_length=length)

    if unnamed_tips:
        raise InvalidTreeError(f"Newick tree has {unnamed_tips} unnamed tip(s)")

    return _finalize(G, ids[id(skbio_tree)])


# ---------------------------------------------------------------------------
# Linkage
# ---------------------------------------------------------------------------


def tree_from_linkage(
    linkage_matrix: np.ndarray,
    leaf_names: Optional[List[str]] = None,
) -> "PosetTree":
    """Build a :class:`PosetTree` from a SciPy linkage matrix.

    Parameters
    ----------
    linkage_matrix
        A ``(n-1, 4)`` NumPy array from :func:`scipy.cluster.hierarchy.linkage`.
    leaf_names
        Optional list of leaf labels; defaults to ``leaf_0 … leaf_{n-1}``.

    Returns
    -------
    PosetTree
        Bifurcating tree with ultrametric branch lengths.
    """
    cls = _get_poset_tree_cls()
    n_leaves = linkage_matrix.shape[0] + 1
    if leaf_names is None:
        leaf_names = [f"leaf_{i}" for i in range(n_leaves)]
    if len(leaf_names) != n_leaves:
        raise ValueError(
            f"Expected {n_leaves} leaf names for linkage matrix, got {len(leaf_names)}."
        )

    children = linkage_matrix[:, :2].astype(int)
    # merge height of every cluster id; leaves sit at 0
    heights = np.concatenate([np.zeros(n_leaves), linkage_matrix[:, 2].astype(float)])

    def _name(idx: int) -> str:
        return f"L{idx}" if idx < n_leaves else f"N{idx}"

    G = cls()
    for i, name in enumerate(leaf_names):
        G.add_node(_name(i), is_leaf=True, label=str(name))

    for k, pair in enumerate(children):
        parent = n_leaves + k
        G.add_node(_name(parent), is_leaf=False)
        for child in pair:
            G.add_edge(
                _name(parent),
                _name(int(child)),
                branch_length=float(heights[parent] - heights[child]),
            )

    return _finalize(G)


# ---------------------------------------------------------------------------
# Edge lists
# ---------------------------------------------------------------------------


def tree_from_undirected_edges(
    edges: Iterable[Tuple],
    root: Optional[str] = None,
) -> "PosetTree":
    """Orient an undirected weighted tree and promote it to a :class:`PosetTree`.

    Parameters
    ----------
    edges
        Iterable of ``(u, v, weight)`` tuples.
    root
        Node to root at. Defaults to the first internal node in insertion
        order, or the first node when the tree has no internal node.

    Raises
    ------
    InvalidTreeError
        If the undirected graph is not a tree.
    """
    cls = _get_poset_tree_cls()
    U = nx.Graph()
    U.add_weighted_edges_from(edges)

    if U.number_of_nodes() == 0 or not nx.is_tree(U):
        raise InvalidTreeError("Undirected edge list does not describe a tree")

    if root is None:
        internal = [n for n, d in U.degree() if d > 1]
        root = internal[0] if internal else next(iter(U.nodes))
    elif root not in U:
        raise InvalidTreeError("Requested root is not in the tree", [root])

    G = cls()
    G.add_node(root)
    visited = {root}
    queue = [root]
    while queue:
        u = queue.pop(0)
        for v, attr in U[u].items():
            if v not in visited:
                visited.add(v)
                G.add_edge(u, v, branch_length=float(attr.get("weight", 1.0)))
                queue.append(v)

    return _finalize(G, root)


def tree_from_parent_map(
    parents: Mapping[str, Tuple[Optional[str], Optional[float]]],
) -> "PosetTree":
    """Build a :class:`PosetTree` from ``{child: (parent, branch_length)}``.

    The root maps to ``(None, None)``. Leaves are labelled by their node id.
    """
    cls = _get_poset_tree_cls()
    G = cls()
    for child, (parent, length) in parents.items():
        G.add_node(child)
        if parent is None:
            continue
        G.add_edge(
            parent,
            child,
            branch_length=(
                float(length) if length is not None else config.DEFAULT_BRANCH_LENGTH
            ),
        )
    return _finalize(G)


__all__ = [
    "tree_from_newick",
    "tree_from_linkage",
    "tree_from_undirected_edges",
    "tree_from_parent_map",
]
