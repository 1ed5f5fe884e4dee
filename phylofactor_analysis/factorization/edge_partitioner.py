"""Greedy edge partitioning of a phylogeny (phylogenetic factorization).

This module contains :class:`GreedyEdgePartitioner`, which repeatedly picks
the tree edge whose induced balance best explains the data and refines the
current bins along it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from phylofactor_analysis import config
from phylofactor_analysis.compositional.ilr import (
    balance_values,
    log_transform,
    total_variance,
)
from phylofactor_analysis.core_utils.data_utils import align_covariate, align_data_to_tips
from phylofactor_analysis.core_utils.tree_utils import breadth_first_edges
from phylofactor_analysis.errors import DegenerateGroupError
from .objectives import Objective, RegressionSummary, build_design, fit_contrast, resolve_objective
from .results import FactorizationResult, PartitionRecord, build_basis, refine_bins
from .stopping import StoppingRule

logger = logging.getLogger(__name__)


# =============================================================================
# Edge arena
# =============================================================================


@dataclass(frozen=True)
class TreeEdge:
    """A parent -> child edge and the tip labels below it."""

    index: int
    parent: str
    child: str
    branch_length: float
    below: frozenset

    @property
    def key(self) -> Tuple[str, str]:
        return (self.parent, self.child)


class EdgeArena:
    """Edges of a tree in breadth-first order, each with an eligibility flag.

    When the root has exactly two children its two edges induce the same
    bipartition of every bin, so only the first is kept and the tree is
    effectively treated as unrooted.
    """

    def __init__(self, tree):
        root = tree.root()
        descendants = tree.compute_descendant_sets()
        ordered = breadth_first_edges(tree, root)
        if tree.out_degree(root) == 2:
            duplicate = (root, list(tree.successors(root))[1])
            ordered = [e for e in ordered if e != duplicate]

        self.edges: List[TreeEdge] = [
            TreeEdge(
                index=i,
                parent=parent,
                child=child,
                branch_length=tree.branch_length(parent, child),
                below=descendants[child],
            )
            for i, (parent, child) in enumerate(ordered)
        ]
        self._eligible = np.ones(len(self.edges), dtype=bool)

    def __len__(self) -> int:
        return len(self.edges)

    def __getitem__(self, index: int) -> TreeEdge:
        return self.edges[index]

    def eligible_indices(self) -> List[int]:
        return [int(i) for i in np.flatnonzero(self._eligible)]

    def n_eligible(self) -> int:
        return int(self._eligible.sum())

    def retire(self, index: int) -> None:
        self._eligible[index] = False


# =============================================================================
# Candidates
# =============================================================================


@dataclass(frozen=True)
class _Candidate:
    edge: TreeEdge
    group1: frozenset
    group2: frozenset


@dataclass(frozen=True)
class _CandidateScore:
    candidate: _Candidate
    contrast: np.ndarray
    score: float
    regression: Optional[RegressionSummary]

    @property
    def p_value(self) -> float:
        return self.regression.p_value if self.regression is not None else np.nan


def _score_candidate(
    candidate: _Candidate,
    log_data: pd.DataFrame,
    covariate: Optional[pd.Series],
    design: Optional[pd.DataFrame],
    objective: Objective,
) -> _CandidateScore:
    """Compute the balance of one candidate split and score it.

    Module-level so it can be dispatched to joblib workers.
    """
    contrast = balance_values(
        log_data, candidate.group1, candidate.group2, edge=candidate.edge.key
    )
    regression = fit_contrast(contrast, design) if design is not None else None
    score = float(objective.score(contrast, covariate, regression))
    return _CandidateScore(candidate, contrast, score, regression)


# =============================================================================
# Partitioner
# =============================================================================


class GreedyEdgePartitioner:
    """Build a sequence of non-overlapping two-group partitions of a tree's tips.

    Each iteration scores every eligible edge by the objective applied to the
    isometric log-ratio balance between the two tip groups the edge induces
    within its current bin, records the best edge, and splits that bin
    along it. Selected edges, and edges that no longer split any bin, leave
    the eligible pool for good, so the pool strictly shrinks and the run
    ends within ``T - 1`` iterations.

    Ties are broken in favour of the lowest edge index (breadth-first order
    from the root). NaN scores rank below every finite score.
    """

    def __init__(
        self,
        tree,
        data: pd.DataFrame,
        covariate: pd.Series | Sequence | np.ndarray | None = None,
        *,
        objective=config.DEFAULT_OBJECTIVE,
        n_factors: Optional[int] = None,
        ks_alpha: Optional[float] = None,
        include_last: bool = False,
        stopping: Optional[StoppingRule] = None,
        require_bifurcating: bool = config.REQUIRE_BIFURCATING,
        n_jobs: Optional[int] = None,
    ):
        """Validate inputs and prepare the log-transformed data.

        Parameters
        ----------
        tree
            A :class:`~phylofactor_analysis.tree.poset_tree.PosetTree`; read only.
        data
            Strictly positive matrix, rows = tip labels, columns = samples.
            Replace zeros with :func:`~phylofactor_analysis.compositional.replace_zeros`
            beforehand.
        covariate
            Explanatory variable, one value per sample.
        objective
            ``"var"``, ``"F"``, ``"variance"`` or a callable
            ``f(contrast, covariate) -> float``.
        n_factors, ks_alpha, include_last
            Shorthand for ``stopping=StoppingRule(n_factors, ks_alpha, include_last)``.
        stopping
            Explicit stopping rule; overrides the shorthand arguments.
        require_bifurcating
            Reject trees with polytomies.
        n_jobs
            Workers used to score candidates within an iteration (joblib threads).

        Raises
        ------
        InvalidTreeError, DataMismatchError, NonPositiveValueError
            When the tree or data violate the preconditions.
        ValueError
            When the objective or stopping rule needs a covariate that is missing.
        """
        tree.validate(require_bifurcating=require_bifurcating)
        self.tree = tree
        self.tips: List[str] = tree.get_leaves()
        self.data = align_data_to_tips(data, self.tips)
        self.covariate = align_covariate(covariate, self.data.columns)
        self.objective = resolve_objective(objective)
        self.stopping = stopping or StoppingRule(
            n_factors=n_factors, ks_alpha=ks_alpha, include_last=include_last
        )
        self.n_jobs = n_jobs

        if self.covariate is None:
            if self.objective.needs_covariate:
                raise ValueError(
                    f"Objective {self.objective.name!r} requires a covariate."
                )
            if self.stopping.uses_significance:
                raise ValueError(
                    "The significance-based stopping rule requires a covariate."
                )

        self._log_data = log_transform(self.data)
        self._design = (
            build_design(self.covariate) if self.covariate is not None else None
        )
        self._total_variance = (
            total_variance(self.data) if self._design is not None else None
        )

    # ---------- parallelism ----------

    def _get_n_jobs(self, n_tasks: int) -> int:
        """Resolve the number of scoring workers.

        Returns 1 (sequential) when the number of tasks is small or the user
        explicitly sets ``PHYLOFACTOR_N_JOBS=1``.
        """
        env = os.environ.get(config.N_JOBS_ENV)
        if env is not None:
            try:
                return max(int(env), 1)
            except ValueError:
                logger.warning("Ignoring non-integer %s=%r.", config.N_JOBS_ENV, env)
        if n_tasks < config.MIN_CANDIDATES_FOR_PARALLEL or self.n_jobs is None:
            return 1
        return self.n_jobs

    # ---------- iteration helpers ----------

    def _collect_candidates(
        self, arena: EdgeArena, bins: List[frozenset]
    ) -> List[_Candidate]:
        """Eligible edges with the split each induces inside its bin.

        An edge that no longer splits any bin cannot split one later, since
        bins only refine, so it is retired.
        """
        candidates: List[_Candidate] = []
        for index in arena.eligible_indices():
            edge = arena[index]
            for current in bins:
                group1 = current & edge.below
                if group1 and len(group1) < len(current):
                    group2 = current - group1
                    if not group2:
                        raise DegenerateGroupError("Split has an empty group", edge.key)
                    candidates.append(_Candidate(edge, group1, group2))
                    break
            else:
                arena.retire(index)
        return candidates

    def _score_candidates(self, candidates: List[_Candidate]) -> List[_CandidateScore]:
        n_jobs = self._get_n_jobs(len(candidates))
        if n_jobs == 1:
            return [
                _score_candidate(
                    c, self._log_data, self.covariate, self._design, self.objective
                )
                for c in candidates
            ]
        return Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_score_candidate)(
                c, self._log_data, self.covariate, self._design, self.objective
            )
            for c in candidates
        )

    @staticmethod
    def _select_best(scores: List[_CandidateScore]) -> _CandidateScore:
        """Maximum score; earliest candidate (lowest edge index) wins ties."""
        best = scores[0]
        best_value = best.score if np.isfinite(best.score) else -np.inf
        for scored in scores[1:]:
            value = scored.score if np.isfinite(scored.score) else -np.inf
            if value > best_value:
                best, best_value = scored, value
        return best

    def _make_record(
        self, factor: int, best: _CandidateScore, ks_pvalue: float
    ) -> PartitionRecord:
        regression = best.regression
        explained = np.nan
        if regression is not None and self._total_variance:
            explained = regression.ess / self._total_variance
        return PartitionRecord(
            factor=factor,
            edge_index=best.candidate.edge.index,
            edge=best.candidate.edge.key,
            group1=best.candidate.group1,
            group2=best.candidate.group2,
            score=best.score,
            f_statistic=regression.f_statistic if regression else np.nan,
            p_value=regression.p_value if regression else np.nan,
            coefficients=dict(regression.coefficients) if regression else {},
            explained_variance=explained,
            ks_pvalue=ks_pvalue,
            contrast=best.contrast,
        )

    # ---------- main loop ----------

    def run(self) -> FactorizationResult:
        """Run the greedy factorization.

        Returns
        -------
        FactorizationResult
            Records in selection order, final bins, basis and ILR coordinates.
        """
        arena = EdgeArena(self.tree)
        bins: List[frozenset] = [frozenset(self.tips)]
        records: List[PartitionRecord] = []
        eligible_counts: List[int] = []
        max_factors = self.stopping.max_factors(len(self.tips))
        stop_reason = "no_eligible_edges"

        while True:
            if len(records) >= max_factors:
                stop_reason = "n_factors"
                break

            candidates = self._collect_candidates(arena, bins)
            if not candidates:
                stop_reason = "no_eligible_edges"
                break
            eligible_counts.append(len(candidates))
            logger.debug(
                "Iteration %d: scoring %d candidate edges across %d bins.",
                len(records) + 1,
                len(candidates),
                len(bins),
            )

            scores = self._score_candidates(candidates)
            n_constant = sum(
                1 for s in scores if s.regression is not None and s.regression.is_constant
            )
            if n_constant:
                logger.warning(
                    "Iteration %d: %d of %d candidate contrasts are constant across "
                    "samples and were not regressed.",
                    len(records) + 1,
                    n_constant,
                    len(scores),
                )
            best = self._select_best(scores)

            fires, ks_pvalue = self.stopping.pvalues_look_uniform(
                s.p_value for s in scores
            )

            if fires and not self.stopping.include_last:
                logger.info(
                    "Stopping before factor %d: candidate p-values look uniform "
                    "(KS p=%.4g).",
                    len(records) + 1,
                    ks_pvalue,
                )
                stop_reason = "ks_uniform"
                break

            record = self._make_record(len(records) + 1, best, ks_pvalue)
            records.append(record)
            refine_bins(bins, record.group1, record.group2)
            arena.retire(record.edge_index)
            logger.info(
                "Factor %d: edge %s -> %s splits %d | %d tips (score=%.4g, p=%.3g).",
                record.factor,
                record.edge[0],
                record.edge[1],
                len(record.group1),
                len(record.group2),
                record.score,
                record.p_value,
            )

            if fires:
                logger.info(
                    "Stopping after factor %d: candidate p-values look uniform "
                    "(KS p=%.4g).",
                    record.factor,
                    ks_pvalue,
                )
                stop_reason = "ks_uniform"
                break

        samples = list(self.data.columns)
        ilr_coordinates = pd.DataFrame(
            [r.contrast for r in records],
            index=[f"factor_{r.factor}" for r in records],
            columns=samples,
            dtype=float,
        )

        return FactorizationResult(
            tips=tuple(self.tips),
            records=tuple(records),
            bins=tuple(bins),
            basis=build_basis(self.tips, records),
            ilr_coordinates=ilr_coordinates,
            objective=self.objective.name,
            eligible_counts=tuple(eligible_counts),
            stop_reason=stop_reason,
            total_variance=self._total_variance,
        )


def phylofactorize(tree, data: pd.DataFrame, covariate=None, **kwargs) -> FactorizationResult:
    """Functional entry point: ``GreedyEdgePartitioner(...).run()``."""
    return GreedyEdgePartitioner(tree, data, covariate, **kwargs).run()


__all__ = [
    "TreeEdge",
    "EdgeArena",
    "GreedyEdgePartitioner",
    "phylofactorize",
]
