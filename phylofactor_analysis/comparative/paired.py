"""Paired comparisons used in the comparative-method walkthroughs."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.stats import ttest_rel


@dataclass(frozen=True)
class PairedTTestResult:
    statistic: float
    p_value: float
    mean_difference: float
    n_pairs: int


def paired_t_test(x, y, alternative: str = "two-sided") -> PairedTTestResult:
    """Paired t-test on ``x - y``; pairs with a missing value are dropped.

    Raises
    ------
    ValueError
        If ``x`` and ``y`` differ in length or fewer than two complete pairs remain.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.shape != y.shape:
        raise ValueError(f"Paired samples differ in shape: {x.shape} vs {y.shape}")

    keep = np.isfinite(x) & np.isfinite(y)
    if keep.sum() < 2:
        raise ValueError("Paired t-test needs at least two complete pairs.")

    result = ttest_rel(x[keep], y[keep], alternative=alternative)
    return PairedTTestResult(
        statistic=float(result.statistic),
        p_value=float(result.pvalue),
        mean_difference=float(np.mean(x[keep] - y[keep])),
        n_pairs=int(keep.sum()),
    )


__all__ = ["PairedTTestResult", "paired_t_test"]
