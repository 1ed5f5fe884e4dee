"""Stopping rules for greedy factorization.

Two rules can be combined: a hard cap on the number of factors and a
significance rule that stops once the p-values of all candidate edges are
indistinguishable from Uniform(0, 1) by a one-sample Kolmogorov-Smirnov
test, i.e. once no remaining edge carries detectable signal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
from scipy.stats import kstest

from phylofactor_analysis import config


@dataclass(frozen=True)
class StoppingRule:
    """When to stop adding factors.

    Attributes
    ----------
    n_factors
        Hard cap on the number of factors; ``None`` means ``T - 1``.
    ks_alpha
        Significance level of the KS uniformity test. ``None`` disables the
        significance rule. The rule fires when the KS p-value is strictly
        greater than ``ks_alpha``.
    include_last
        When the significance rule fires, keep the factor chosen in that
        iteration (``True``) or drop it (``False``, stop early).
    """

    n_factors: Optional[int] = None
    ks_alpha: Optional[float] = None
    include_last: bool = False

    def __post_init__(self):
        if self.n_factors is not None and int(self.n_factors) < 0:
            raise ValueError(f"n_factors must be >= 0, got {self.n_factors}")
        if self.ks_alpha is not None and not 0.0 < float(self.ks_alpha) < 1.0:
            raise ValueError(f"ks_alpha must be in (0, 1), got {self.ks_alpha}")

    @classmethod
    def fixed_count(cls, n: int) -> "StoppingRule":
        return cls(n_factors=n)

    @classmethod
    def significance_based(
        cls,
        ks_alpha: float = config.KS_ALPHA,
        include_last: bool = False,
        n_factors: Optional[int] = None,
    ) -> "StoppingRule":
        return cls(n_factors=n_factors, ks_alpha=ks_alpha, include_last=include_last)

    @property
    def uses_significance(self) -> bool:
        return self.ks_alpha is not None

    def max_factors(self, n_tips: int) -> int:
        """Upper bound on the factor count for a tree with ``n_tips`` tips."""
        limit = max(int(n_tips) - 1, 0)
        if self.n_factors is None:
            return limit
        return min(int(self.n_factors), limit)

    def pvalues_look_uniform(self, p_values: Iterable[float]) -> Tuple[bool, float]:
        """Run the KS test on candidate p-values.

        Returns
        -------
        (bool, float)
            Whether the rule fires, and the KS p-value. Non-finite p-values
            are dropped; with none left the rule fires with a NaN KS p-value.
        """
        if self.ks_alpha is None:
            return False, np.nan
        p = np.asarray(list(p_values), dtype=float)
        finite = p[np.isfinite(p)]
        if finite.size == 0:
            return True, np.nan
        _, ks_pvalue = kstest(finite, "uniform")
        ks_pvalue = float(ks_pvalue)
        return ks_pvalue > float(self.ks_alpha), ks_pvalue


__all__ = ["StoppingRule"]
