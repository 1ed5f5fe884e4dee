"""Log-ratio transforms for compositional tip-by-sample data."""

from .ilr import (
    balance_values,
    balance_weights,
    check_positive,
    clr_transform,
    log_transform,
    node_ilr_basis,
    node_ilr_transform,
    replace_zeros,
    total_variance,
)

__all__ = [
    "balance_values",
    "balance_weights",
    "check_positive",
    "clr_transform",
    "log_transform",
    "node_ilr_basis",
    "node_ilr_transform",
    "replace_zeros",
    "total_variance",
]
