"""Trait and count simulators for tutorials, tests and benchmarks.

All randomness comes from an injected :class:`numpy.random.Generator`;
nothing here touches global random state.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from phylofactor_analysis import config


def simulate_brownian_traits(
    tree,
    rng: np.random.Generator,
    sigma: float = 1.0,
    root_value: float = 0.0,
    n_traits: int = 1,
) -> pd.DataFrame:
    """Evolve ``n_traits`` independent traits by Brownian motion down the tree.

    Each edge adds a Normal(0, sigma^2 * branch_length) increment.

    Returns
    -------
    pd.DataFrame
        Tips (sorted labels) x ``trait_0 … trait_{n-1}``.
    """
    if sigma < 0:
        raise ValueError(f"sigma must be non-negative, got {sigma}")
    tree.validate()
    root = tree.root()

    values = {root: np.full(n_traits, float(root_value))}
    queue = [root]
    while queue:
        node = queue.pop(0)
        for child in tree.successors(node):
            scale = sigma * np.sqrt(tree.branch_length(node, child))
            values[child] = values[node] + rng.normal(0.0, scale, size=n_traits)
            queue.append(child)

    tips = tree.get_leaves()
    rows = [values[tree.tip_node(t)] for t in tips]
    return pd.DataFrame(
        rows, index=tips, columns=[f"trait_{i}" for i in range(n_traits)]
    )


def simulate_clade_counts(
    tree,
    clade: Iterable[str],
    covariate: Sequence[float],
    rng: np.random.Generator,
    base_mean: float = 100.0,
    effect_size: float = 1.0,
    dispersion: float = 10.0,
    sample_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Negative-binomial counts where one clade responds to a covariate.

    Tips in ``clade`` have mean ``base_mean * exp(effect_size * x_j)`` in
    sample ``j``; all other tips have mean ``base_mean``. ``dispersion`` is
    the negative-binomial size parameter (larger means closer to Poisson).

    Returns
    -------
    pd.DataFrame
        Tips (sorted labels) x samples of integer counts.
    """
    if base_mean <= 0 or dispersion <= 0:
        raise ValueError("base_mean and dispersion must be positive.")
    tips = tree.get_leaves()
    clade = set(clade)
    unknown = clade - set(tips)
    if unknown:
        raise ValueError(f"Clade tips not in tree: {sorted(unknown)[:5]}")

    x = np.asarray(covariate, dtype=float)
    if sample_names is None:
        sample_names = [f"sample_{j}" for j in range(x.size)]

    in_clade = np.array([t in clade for t in tips])
    means = np.full((len(tips), x.size), float(base_mean))
    means[in_clade] *= np.exp(effect_size * x)[None, :]

    p = dispersion / (dispersion + means)
    counts = rng.negative_binomial(dispersion, p)
    return pd.DataFrame(counts, index=tips, columns=list(sample_names))


def simulate_log_normal_abundances(
    tree,
    n_samples: int,
    rng: np.random.Generator,
    sigma: float = 0.1,
    base: float = 10.0,
) -> pd.DataFrame:
    """Strictly positive noise-only abundances (log-normal around ``base``)."""
    tips = tree.get_leaves()
    values = base * np.exp(rng.normal(0.0, sigma, size=(len(tips), n_samples)))
    values = np.maximum(values, config.EPSILON)
    return pd.DataFrame(
        values, index=tips, columns=[f"sample_{j}" for j in range(n_samples)]
    )


__all__ = [
    "simulate_brownian_traits",
    "simulate_clade_counts",
    "simulate_log_normal_abundances",
]
