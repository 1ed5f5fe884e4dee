"""Isometric log-ratio (ILR) balances over tip groups.

A *balance* between tip groups ``G1`` (size ``r``) and ``G2`` (size ``s``) is

    y = sqrt(r s / (r + s)) * (mean(log x[G1]) - mean(log x[G2]))

computed per sample. Its weight vector over tips has unit norm and sums to
zero, so balances built from a sequence of nested splits form an
orthonormal basis of the clr subspace.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from phylofactor_analysis import config
from phylofactor_analysis.core_utils.data_utils import align_data_to_tips
from phylofactor_analysis.errors import (
    DegenerateGroupError,
    NonPositiveValueError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Data preparation
# =============================================================================


def replace_zeros(
    data: pd.DataFrame, pseudocount: float = config.PSEUDOCOUNT
) -> pd.DataFrame:
    """Return a copy of ``data`` with exact zeros replaced by ``pseudocount``.

    Negative entries are left untouched so they still fail
    :func:`check_positive`.
    """
    if pseudocount <= 0:
        raise ValueError(f"pseudocount must be positive, got {pseudocount}")
    replaced = data.astype(float).copy()
    n_zero = int((replaced == 0).to_numpy().sum())
    if n_zero:
        logger.debug("Replacing %d zero entries with pseudocount %g.", n_zero, pseudocount)
    return replaced.mask(replaced == 0, pseudocount)


def check_positive(data: pd.DataFrame) -> None:
    """Raise :class:`NonPositiveValueError` if any entry is <= 0 or non-finite."""
    values = data.to_numpy(dtype=float)
    bad = ~(np.isfinite(values) & (values > 0))
    if bad.any():
        rows = np.flatnonzero(bad.any(axis=1))
        tips = [str(data.index[i]) for i in rows]
        raise NonPositiveValueError(tips, int(bad.sum()))


def log_transform(data: pd.DataFrame) -> pd.DataFrame:
    """Natural log of a strictly positive data matrix."""
    check_positive(data)
    return pd.DataFrame(
        np.log(data.to_numpy(dtype=float)), index=data.index, columns=data.columns
    )


def clr_transform(data: pd.DataFrame) -> pd.DataFrame:
    """Centred log-ratio: log data minus the per-sample mean log over tips."""
    log_data = log_transform(data)
    return log_data - log_data.mean(axis=0)


def total_variance(data: pd.DataFrame) -> float:
    """Total sum of squares of the clr matrix centred across samples.

    Equals the summed across-sample sum of squares of any complete set of
    orthonormal balances, so it is the denominator for explained-variance
    fractions.
    """
    clr = clr_transform(data).to_numpy()
    centred = clr - clr.mean(axis=1, keepdims=True)
    return float(np.sum(centred**2))


# =============================================================================
# Balances
# =============================================================================


def _check_groups(group1: frozenset, group2: frozenset, edge=None) -> None:
    if not group1 or not group2:
        raise DegenerateGroupError(
            f"Split has an empty group (sizes {len(group1)} and {len(group2)})", edge
        )
    if group1 & group2:
        raise DegenerateGroupError(
            f"Split groups overlap on {sorted(group1 & group2)[:5]}", edge
        )


def balance_weights(
    group1: Iterable[str],
    group2: Iterable[str],
    tips: Sequence[str],
    edge=None,
) -> np.ndarray:
    """ILR contrast weights over ``tips`` for ``group1`` versus ``group2``.

    Parameters
    ----------
    group1, group2
        Disjoint, non-empty collections of tip labels.
    tips
        Tip order of the returned vector. Tips outside both groups get 0.
    edge
        Optional ``(parent, child)`` used only to label errors.

    Returns
    -------
    np.ndarray
        Vector of length ``len(tips)`` with unit norm and zero sum.
    """
    g1, g2 = frozenset(group1), frozenset(group2)
    _check_groups(g1, g2, edge)
    r, s = len(g1), len(g2)
    scale = np.sqrt(r * s / (r + s))

    weights = np.zeros(len(tips), dtype=float)
    for i, tip in enumerate(tips):
        if tip in g1:
            weights[i] = scale / r
        elif tip in g2:
            weights[i] = -scale / s
    return weights


def balance_values(
    log_data: pd.DataFrame,
    group1: Iterable[str],
    group2: Iterable[str],
    edge=None,
) -> np.ndarray:
    """Balance value per sample from an already log-transformed matrix."""
    g1, g2 = frozenset(group1), frozenset(group2)
    _check_groups(g1, g2, edge)
    r, s = len(g1), len(g2)
    mean1 = log_data.loc[sorted(g1)].to_numpy().mean(axis=0)
    mean2 = log_data.loc[sorted(g2)].to_numpy().mean(axis=0)
    return np.sqrt(r * s / (r + s)) * (mean1 - mean2)


# =============================================================================
# Node-keyed basis
# =============================================================================


def node_ilr_basis(tree) -> pd.DataFrame:
    """Sequential binary partition basis keyed to internal nodes.

    Each internal node contributes one balance: tips under its first child
    versus tips under its second child.

    Parameters
    ----------
    tree
        A :class:`~phylofactor_analysis.tree.poset_tree.PosetTree`.

    Returns
    -------
    pd.DataFrame
        Tips (sorted labels) x internal nodes (breadth-first from the root).

    Raises
    ------
    InvalidTreeError
        If any internal node does not have exactly two children.
    """
    tree.validate(require_bifurcating=True)
    tips = tree.get_leaves()
    descendants = tree.compute_descendant_sets()

    columns = {}
    for node in tree.internal_nodes():
        left, right = tree.children(node)
        columns[node] = balance_weights(
            descendants[left], descendants[right], tips, edge=(node, left)
        )

    basis = pd.DataFrame(columns, index=tips)
    basis.index.name = "tip"
    return basis


def node_ilr_transform(tree, data: pd.DataFrame) -> pd.DataFrame:
    """Project a tip x sample matrix into node-keyed ILR coordinates.

    Returns
    -------
    pd.DataFrame
        Internal nodes x samples.
    """
    basis = node_ilr_basis(tree)
    aligned = align_data_to_tips(data, list(basis.index))
    log_data = log_transform(aligned)
    return basis.T @ log_data


__all__ = [
    "replace_zeros",
    "check_positive",
    "log_transform",
    "clr_transform",
    "total_variance",
    "balance_weights",
    "balance_values",
    "node_ilr_basis",
    "node_ilr_transform",
]
