"""Candidate results, fold-score aggregation and ranking."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import NamedTuple, Sequence

import numpy as np

from .exceptions import EmptyCandidateSetError, InvalidInputError
from .model_selection import GridPoint
from .params import HyperparameterSet


class ScoreSummary(NamedTuple):
    """Aggregate of per-fold scores, NaN folds excluded."""

    mean: float
    std: float
    std_error: float
    n_valid: int


def aggregate_scores(scores: Sequence[float]) -> ScoreSummary:
    """
    Mean, sample standard deviation and standard error of the valid scores.

    NaN scores (degenerate folds) are dropped.  With no valid score the mean
    is NaN; with fewer than two the standard deviation is NaN.
    """
    a = np.asarray(scores, dtype=float)
    valid = a[~np.isnan(a)]
    n = int(valid.shape[0])
    if n == 0:
        return ScoreSummary(float("nan"), float("nan"), float("nan"), 0)
    mean = float(valid.mean())
    if n < 2:
        return ScoreSummary(mean, float("nan"), float("nan"), n)
    std = float(valid.std(ddof=1))
    return ScoreSummary(mean, std, std / math.sqrt(n), n)


@dataclass(frozen=True)
class CandidateResult:
    """Cross-validated outcome of one grid point.

    Attributes
    ----------
    grid_point : GridPoint
    fold_scores : tuple of float
        One score per fold, in fold order; NaN where the metric was undefined.
    mean, std, std_error : float
        Aggregates over the valid folds (see :func:`aggregate_scores`).
    n_valid_folds : int
    greater_is_better : bool
        Direction the candidate is ranked in.
    """

    grid_point: GridPoint
    fold_scores: tuple
    mean: float
    std: float
    std_error: float
    n_valid_folds: int
    greater_is_better: bool = True

    @classmethod
    def from_scores(cls, grid_point: GridPoint, scores: Sequence[float],
                    greater_is_better: bool = True) -> CandidateResult:
        s = aggregate_scores(scores)
        return cls(grid_point, tuple(float(x) for x in scores), s.mean, s.std,
                   s.std_error, s.n_valid, bool(greater_is_better))

    @property
    def params(self) -> HyperparameterSet:
        return self.grid_point.params

    @property
    def variance(self) -> float:
        return self.std * self.std


def _rank_key(c: CandidateResult, greater_is_better: bool):
    missing = math.isnan(c.mean)
    score = 0.0 if missing else (-c.mean if greater_is_better else c.mean)
    spread = math.inf if math.isnan(c.std) else c.std
    return (missing, score, spread, c.grid_point.order)


def rank_candidates(candidates: Sequence[CandidateResult],
                    greater_is_better: bool | None = None) -> list[CandidateResult]:
    """
    Order candidates best first.

    By mean score in the metric's direction, then by lower standard
    deviation across folds, then by grid insertion order.  Candidates without
    any valid fold come last.
    """
    candidates = list(candidates)
    if not candidates:
        return []
    if greater_is_better is None:
        greater_is_better = candidates[0].greater_is_better
    return sorted(candidates, key=lambda c: _rank_key(c, greater_is_better))


def select_best(candidates: Sequence[CandidateResult],
                greater_is_better: bool | None = None) -> CandidateResult:
    """Top-ranked candidate; raises ``EmptyCandidateSetError`` on an empty list."""
    if not candidates:
        raise EmptyCandidateSetError("cannot select from zero candidates")
    return rank_candidates(candidates, greater_is_better)[0]


def top_n(candidates: Sequence[CandidateResult], n: int,
          greater_is_better: bool | None = None) -> list[CandidateResult]:
    """The first ``n`` candidates in ranked order."""
    if not candidates:
        raise EmptyCandidateSetError("cannot select from zero candidates")
    if n < 0:
        raise InvalidInputError(f"n must be >= 0, got {n}")
    return rank_candidates(candidates, greater_is_better)[:n]
