from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from ..errors import DataMismatchError


def align_data_to_tips(data: pd.DataFrame, tips: Sequence[str]) -> pd.DataFrame:
    """Reorder a tip-indexed data matrix so its rows follow ``tips``.

    Parameters
    ----------
    data
        DataFrame whose index holds tip labels and whose columns are samples.
    tips
        Tip labels of the tree, in the order the caller wants rows in.

    Returns
    -------
    pd.DataFrame
        Copy of ``data`` with rows in ``tips`` order and float dtype.

    Raises
    ------
    DataMismatchError
        If the index is not exactly the tree's tip set, or holds duplicates.
    """
    index = [str(i) for i in data.index]
    if len(set(index)) != len(index):
        duplicated = sorted({i for i in index if index.count(i) > 1})
        raise DataMismatchError(extra=duplicated)

    tip_set = set(map(str, tips))
    data_set = set(index)
    if tip_set != data_set:
        raise DataMismatchError(missing=tip_set - data_set, extra=data_set - tip_set)

    aligned = data.copy()
    aligned.index = index
    return aligned.loc[list(map(str, tips))].astype(float)


def align_covariate(
    covariate: pd.Series | Sequence | np.ndarray | None, samples: Iterable[str]
) -> pd.Series | None:
    """Return the covariate as a Series indexed like the data columns.

    A labelled Series is matched to the samples by index and reordered to
    them. Arrays, sequences and Series with a default ``RangeIndex`` are
    taken by position and must have one value per sample.

    Raises
    ------
    ValueError
        If a labelled Series does not carry exactly the sample labels, or a
        positional covariate has the wrong length.
    """
    if covariate is None:
        return None
    samples = list(samples)

    if isinstance(covariate, pd.Series) and not isinstance(covariate.index, pd.RangeIndex):
        labels = list(covariate.index)
        if len(labels) != len(set(labels)):
            raise ValueError("Covariate index has duplicated sample labels.")
        missing = sorted(map(str, set(samples) - set(labels)))
        extra = sorted(map(str, set(labels) - set(samples)))
        if missing or extra:
            raise ValueError(
                "Covariate index does not match the data samples; "
                f"missing {missing[:5]}, unexpected {extra[:5]}."
            )
        return covariate.loc[samples]

    values = covariate.to_numpy() if isinstance(covariate, pd.Series) else np.asarray(covariate)
    if values.ndim != 1 or values.shape[0] != len(samples):
        raise ValueError(
            f"Covariate must have one value per sample ({len(samples)}); "
            f"got shape {values.shape}."
        )
    name = covariate.name if isinstance(covariate, pd.Series) else "covariate"
    return pd.Series(values, index=samples, name=name)


__all__ = ["align_data_to_tips", "align_covariate"]
