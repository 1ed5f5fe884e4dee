"""Brownian-motion covariance and generalized least squares on a phylogeny."""

from __future__ import annotations

from typing import Union

import numpy as np
import pandas as pd
import statsmodels.api as sm

from phylofactor_analysis.core_utils.data_utils import align_data_to_tips
from phylofactor_analysis.core_utils.tree_utils import compute_root_distances


def phylogenetic_covariance(tree) -> pd.DataFrame:
    """Expected trait covariance among tips under Brownian motion.

    Entry ``(i, j)`` is the branch length shared by the root-to-tip paths of
    ``i`` and ``j``, i.e. the root distance of their lowest common ancestor.
    The diagonal holds the root-to-tip distances.

    Returns
    -------
    pd.DataFrame
        Tips x tips (sorted labels), symmetric.
    """
    tree.validate()
    root = tree.root()
    distances = compute_root_distances(tree, root)
    tips = tree.get_leaves()
    nodes = [tree.tip_node(t) for t in tips]

    n = len(tips)
    cov = np.zeros((n, n), dtype=float)
    for i in range(n):
        cov[i, i] = distances[nodes[i]]
        for j in range(i + 1, n):
            shared = distances[tree.find_lca(nodes[i], nodes[j])]
            cov[i, j] = cov[j, i] = shared
    return pd.DataFrame(cov, index=tips, columns=tips)


def pgls(
    response: pd.Series,
    predictors: Union[pd.Series, pd.DataFrame],
    tree,
    add_intercept: bool = True,
):
    """Phylogenetic generalized least squares under Brownian motion.

    Parameters
    ----------
    response
        Trait values indexed by tip label.
    predictors
        Explanatory trait(s) indexed by tip label.
    tree
        Phylogeny whose tips match the indices.
    add_intercept
        Prepend a ``const`` column to the design.

    Returns
    -------
    statsmodels.regression.linear_model.RegressionResultsWrapper
        Fitted GLS results with the Brownian covariance as error structure.

    Raises
    ------
    DataMismatchError
        If the response or predictors are not indexed by exactly the tree tips.
    """
    cov = phylogenetic_covariance(tree)
    tips = list(cov.index)

    y = align_data_to_tips(response.to_frame(), tips).iloc[:, 0]
    X = align_data_to_tips(
        predictors.to_frame() if isinstance(predictors, pd.Series) else predictors,
        tips,
    )
    if add_intercept:
        X = sm.add_constant(X, has_constant="add")

    return sm.GLS(y, X, sigma=cov.to_numpy()).fit()


__all__ = ["phylogenetic_covariance", "pgls"]
