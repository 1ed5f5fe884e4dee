"""Phylogenetic comparative-method recipes built on statsmodels and scipy."""

from .covariance import pgls, phylogenetic_covariance
from .paired import PairedTTestResult, paired_t_test
from .simulation import (
    simulate_brownian_traits,
    simulate_clade_counts,
    simulate_log_normal_abundances,
)

__all__ = [
    "pgls",
    "phylogenetic_covariance",
    "PairedTTestResult",
    "paired_t_test",
    "simulate_brownian_traits",
    "simulate_clade_counts",
    "simulate_log_normal_abundances",
]
