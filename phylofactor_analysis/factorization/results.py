"""Result types produced by :class:`GreedyEdgePartitioner`.

A factorization is fully determined by its ordered partition records; bins
at any intermediate step are recomputed by successive refinement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from phylofactor_analysis import config
from phylofactor_analysis.compositional.ilr import balance_weights
from phylofactor_analysis.errors import DegenerateGroupError


@dataclass(frozen=True)
class PartitionRecord:
    """One factor: the selected edge, its two tip groups and their statistics.

    ``group1`` holds the tips below the edge's child, ``group2`` the rest of
    the bin the edge split.
    """

    factor: int  # 1-based position in the sequence
    edge_index: int
    edge: Tuple[str, str]  # (parent, child)
    group1: frozenset
    group2: frozenset
    score: float
    f_statistic: float = np.nan
    p_value: float = np.nan
    coefficients: Dict[str, float] = field(default_factory=dict)
    explained_variance: float = np.nan  # fraction of total clr variance
    ks_pvalue: float = np.nan  # KS uniformity p-value of this iteration's candidates
    contrast: np.ndarray = field(default=None, compare=False, repr=False)

    @property
    def coefficient(self) -> float:
        """The first covariate coefficient, NaN without a regression."""
        return next(iter(self.coefficients.values()), np.nan)

    @property
    def bin(self) -> frozenset:
        """The bin this factor split."""
        return self.group1 | self.group2


def refine_bins(
    bins: List[frozenset], group1: frozenset, group2: frozenset
) -> List[frozenset]:
    """Replace the bin equal to ``group1 | group2`` by the two groups, in place."""
    parent_bin = group1 | group2
    for i, current in enumerate(bins):
        if current == parent_bin:
            bins[i : i + 1] = [group1, group2]
            return bins
    raise DegenerateGroupError(
        f"No current bin equals the union of the split groups ({len(parent_bin)} tips)"
    )


@dataclass(frozen=True, eq=False)
class FactorizationResult:
    """Ordered partition records plus the derived bins and ILR basis.

    Attributes
    ----------
    tips
        Tip labels in the row order of ``basis``.
    records
        Partition records in selection order.
    bins
        Final bins, a partition of ``tips``.
    basis
        Tips x factors contrast weights; orthonormal columns.
    ilr_coordinates
        Factors x samples contrast values recorded during the run.
    eligible_counts
        Number of candidate edges scored in each iteration.
    stop_reason
        ``"n_factors"``, ``"ks_uniform"`` or ``"no_eligible_edges"``.
    """

    tips: Tuple[str, ...]
    records: Tuple[PartitionRecord, ...]
    bins: Tuple[frozenset, ...]
    basis: pd.DataFrame
    ilr_coordinates: pd.DataFrame
    objective: str
    eligible_counts: Tuple[int, ...] = ()
    stop_reason: str = "no_eligible_edges"
    total_variance: Optional[float] = None

    @property
    def n_factors(self) -> int:
        return len(self.records)

    @property
    def edges(self) -> List[Tuple[str, str]]:
        return [r.edge for r in self.records]

    @property
    def groups(self) -> List[Tuple[frozenset, frozenset]]:
        return [(r.group1, r.group2) for r in self.records]

    def bins_after(self, k: int) -> List[frozenset]:
        """Bins after the first ``k`` factors (``0 <= k <= n_factors``)."""
        if not 0 <= k <= self.n_factors:
            raise ValueError(f"k must be in [0, {self.n_factors}], got {k}")
        bins: List[frozenset] = [frozenset(self.tips)]
        for record in self.records[:k]:
            refine_bins(bins, record.group1, record.group2)
        return bins

    def to_frame(self, alpha: float = config.SIGNIFICANCE_ALPHA) -> pd.DataFrame:
        """Summary table, one row per factor.

        Adds Benjamini-Hochberg adjusted p-values across factors; factors
        without a finite p-value get NaN.
        """
        columns = [
            "factor",
            "parent",
            "child",
            "group1_size",
            "group2_size",
            "score",
            "f_statistic",
            "p_value",
            "p_value_bh",
            "bh_significant",
            "explained_variance",
            "ks_pvalue",
            "group1",
        ]
        if not self.records:
            return pd.DataFrame(columns=columns).set_index("factor")

        rows = []
        for r in self.records:
            rows.append(
                {
                    "factor": r.factor,
                    "parent": r.edge[0],
                    "child": r.edge[1],
                    "group1_size": len(r.group1),
                    "group2_size": len(r.group2),
                    "score": r.score,
                    "f_statistic": r.f_statistic,
                    "p_value": r.p_value,
                    "explained_variance": r.explained_variance,
                    "ks_pvalue": r.ks_pvalue,
                    "group1": sorted(r.group1),
                }
            )
        summary = pd.DataFrame(rows)

        p_values = summary["p_value"].to_numpy(dtype=float)
        finite = np.isfinite(p_values)
        adjusted = np.full(p_values.shape, np.nan)
        rejected = np.zeros(p_values.shape, dtype=bool)
        if finite.any():
            reject_finite, adjusted_finite, _, _ = multipletests(
                p_values[finite], alpha=alpha, method="fdr_bh"
            )
            adjusted[finite] = adjusted_finite
            rejected[finite] = reject_finite
        summary["p_value_bh"] = adjusted
        summary["bh_significant"] = rejected

        return summary[columns].set_index("factor")


def build_basis(
    tips: Sequence[str], records: Sequence[PartitionRecord]
) -> pd.DataFrame:
    """Tips x factors weight matrix from the records' groups."""
    columns = {
        f"factor_{r.factor}": balance_weights(r.group1, r.group2, tips, edge=r.edge)
        for r in records
    }
    basis = pd.DataFrame(columns, index=list(tips), dtype=float)
    basis.index.name = "tip"
    return basis


__all__ = [
    "PartitionRecord",
    "FactorizationResult",
    "refine_bins",
    "build_basis",
]
