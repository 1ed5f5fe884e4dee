"""Pure functions that project data through a finished factorization.

They are intentionally stateless so they can be called on any
:class:`~phylofactor_analysis.factorization.results.FactorizationResult`
without re-running the partitioner.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from phylofactor_analysis.compositional.ilr import log_transform
from phylofactor_analysis.core_utils.data_utils import align_data_to_tips
from phylofactor_analysis.errors import NonPositiveValueError
from .results import FactorizationResult


def ilr_projection(result: FactorizationResult, data: pd.DataFrame) -> pd.DataFrame:
    """Project a tip x sample matrix into the factorization's ILR coordinates.

    Projecting the data the factorization was fitted on reproduces
    ``result.ilr_coordinates``.

    Returns
    -------
    pd.DataFrame
        Factors x samples.
    """
    aligned = align_data_to_tips(data, result.tips)
    log_data = log_transform(aligned)
    return result.basis.T @ log_data


def bin_projection(
    result: FactorizationResult,
    data: pd.DataFrame,
    bins: Optional[Sequence[frozenset]] = None,
) -> pd.DataFrame:
    """Relative abundance of each bin per sample.

    Each sample is normalised to sum to one over tips, then summed within
    bins. Zeros are allowed; negative values are not.

    Parameters
    ----------
    result
        Finished factorization.
    data
        Tip x sample matrix of non-negative values (raw counts are fine).
    bins
        Bins to project onto; defaults to ``result.bins``.

    Returns
    -------
    pd.DataFrame
        Bins (``bin_0``, ``bin_1``, ...) x samples; columns sum to one.
    """
    aligned = align_data_to_tips(data, result.tips)
    values = aligned.to_numpy(dtype=float)
    negative = values < 0
    if negative.any():
        rows = np.flatnonzero(negative.any(axis=1))
        raise NonPositiveValueError([aligned.index[i] for i in rows], int(negative.sum()))

    totals = values.sum(axis=0)
    if np.any(totals <= 0):
        empty = [str(c) for c, t in zip(aligned.columns, totals) if t <= 0]
        raise ValueError(f"Samples with zero total abundance: {empty[:5]}")
    relative = aligned / totals

    bins = list(result.bins if bins is None else bins)
    rows = {f"bin_{i}": relative.loc[sorted(b)].sum(axis=0) for i, b in enumerate(bins)}
    return pd.DataFrame(rows).T


def build_tip_bin_assignments(result: FactorizationResult) -> pd.DataFrame:
    """Build per-tip bin assignments from a factorization.

    Returns
    -------
    pandas.DataFrame
        A DataFrame indexed by ``tip_id`` with columns:

        - ``bin_id``: integer bin identifier (position in ``result.bins``)
        - ``bin_size``: number of tips in the bin
    """
    if not result.bins:
        return pd.DataFrame(columns=["bin_id", "bin_size"])

    rows: Dict[str, Dict[str, object]] = {}
    for bin_id, tips in enumerate(result.bins):
        for tip in tips:
            rows[tip] = {"bin_id": bin_id, "bin_size": len(tips)}

    assignments_table = pd.DataFrame.from_dict(rows, orient="index")
    assignments_table.index.name = "tip_id"
    return assignments_table.sort_index().sort_values("bin_id", kind="stable")


__all__ = ["ilr_projection", "bin_projection", "build_tip_bin_assignments"]
