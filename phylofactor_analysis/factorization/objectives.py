"""Objective functions that score a candidate balance.

Every candidate split yields one contrast value per sample. When a
covariate is supplied, the contrast is regressed on it with an ordinary
least squares fit (statsmodels), and the regression's explained sum of
squares, F-statistic and p-value travel with the candidate regardless of
which objective ranks it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

import numpy as np
import pandas as pd
import statsmodels.api as sm

from phylofactor_analysis import config

logger = logging.getLogger(__name__)

ObjectiveCallable = Callable[[np.ndarray, Optional[pd.Series]], float]


# =============================================================================
# Data structures
# =============================================================================


@dataclass(frozen=True)
class RegressionSummary:
    """Statistics of one contrast-on-covariate OLS fit."""

    ess: float  # explained sum of squares
    f_statistic: float
    p_value: float
    coefficients: Dict[str, float] = field(default_factory=dict)

    @property
    def is_constant(self) -> bool:
        """True when the contrast was constant and no regression was fitted."""
        return self.ess == 0.0 and np.isnan(self.f_statistic)


@dataclass(frozen=True)
class Objective:
    """A named scoring rule.

    ``score`` receives the contrast, the aligned covariate (or ``None``) and
    the regression summary (or ``None`` when there is no covariate).
    """

    name: str
    needs_covariate: bool
    score: Callable[[np.ndarray, Optional[pd.Series], Optional[RegressionSummary]], float]


# =============================================================================
# Regression
# =============================================================================


def build_design(covariate: pd.Series) -> pd.DataFrame:
    """Design matrix with intercept for a numeric or categorical covariate.

    Numeric covariates enter linearly and must vary across samples. Anything
    else is one-hot encoded with the first level dropped, so the fit is a
    one-way ANOVA.
    """
    name = str(covariate.name) if covariate.name is not None else "covariate"
    if pd.api.types.is_numeric_dtype(covariate) and not pd.api.types.is_bool_dtype(
        covariate
    ):
        values = covariate.to_numpy(dtype=float)
        if values.size == 0 or np.ptp(values) <= config.EPSILON:
            raise ValueError(f"Numeric covariate {name!r} is constant across samples.")
        design = pd.DataFrame({name: values}, index=covariate.index)
    else:
        design = pd.get_dummies(
            covariate.astype("category"), prefix=name, drop_first=True, dtype=float
        )
        if design.shape[1] == 0:
            raise ValueError(f"Categorical covariate {name!r} has a single level.")
    return sm.add_constant(design, has_constant="add")


def fit_contrast(contrast: np.ndarray, design: pd.DataFrame) -> RegressionSummary:
    """Regress ``contrast`` on ``design`` and summarise the fit.

    A constant contrast carries no signal; it is reported with zero
    explained variance and NaN test statistics instead of being fitted.
    """
    contrast = np.asarray(contrast, dtype=float)
    if np.ptp(contrast) <= config.EPSILON:
        logger.debug("Constant contrast across samples; skipping regression.")
        return RegressionSummary(ess=0.0, f_statistic=np.nan, p_value=np.nan)

    result = sm.OLS(contrast, design.to_numpy()).fit()
    params = np.asarray(result.params, dtype=float)
    coefficients = {
        str(column): float(value)
        for column, value in zip(design.columns, params)
        if column != "const"
    }
    return RegressionSummary(
        ess=float(result.ess),
        f_statistic=float(result.fvalue),
        p_value=float(result.f_pvalue),
        coefficients=coefficients,
    )


# =============================================================================
# Objective registry
# =============================================================================


def _explained_variance(contrast, covariate, regression) -> float:
    return regression.ess


def _f_statistic(contrast, covariate, regression) -> float:
    return regression.f_statistic


def _contrast_variance(contrast, covariate, regression) -> float:
    if contrast.size < 2:
        return 0.0
    return float(np.var(contrast, ddof=1))


OBJECTIVES: Dict[str, Objective] = {
    "var": Objective("var", True, _explained_variance),
    "F": Objective("F", True, _f_statistic),
    "variance": Objective("variance", False, _contrast_variance),
}


def resolve_objective(objective: Union[str, ObjectiveCallable, Objective]) -> Objective:
    """Turn a name, an :class:`Objective` or a plain callable into an Objective.

    A plain callable is called as ``f(contrast, covariate)`` and does not
    require a covariate.
    """
    if isinstance(objective, Objective):
        return objective
    if isinstance(objective, str):
        try:
            return OBJECTIVES[objective]
        except KeyError:
            raise ValueError(
                f"Unknown objective {objective!r}; expected one of "
                f"{sorted(OBJECTIVES)} or a callable."
            ) from None
    if callable(objective):
        name = getattr(objective, "__name__", "custom")
        return Objective(
            name=name,
            needs_covariate=False,
            score=lambda contrast, covariate, regression: float(
                objective(contrast, covariate)
            ),
        )
    raise TypeError(f"Objective must be a string or callable, got {type(objective)!r}")


__all__ = [
    "RegressionSummary",
    "Objective",
    "OBJECTIVES",
    "build_design",
    "fit_contrast",
    "resolve_objective",
]
