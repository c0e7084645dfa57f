# -*- coding: utf-8 -*-
"""
cartpy.criteria
===============

Impurity criteria used to score tree nodes and candidate splits.

Every criterion works on *sufficient statistics* rather than raw labels so
that the builder can evaluate all thresholds of a sorted feature with one
cumulative sum:

- classification criteria use the vector of class counts;
- the regression criterion uses ``[n, sum(y), sum(y**2)]``.

``impurity`` accepts a single statistics vector or a 2-D array with one
vector per row and is vectorised over the rows.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np

from .dataset import CLASSIFICATION, REGRESSION
from .exceptions import InvalidInputError


class Criterion(ABC):
    """Base class for impurity criteria.

    Subclasses define ``name``, ``task``, :meth:`node_stats`,
    :meth:`prefix_stats`, :meth:`count` and :meth:`impurity`.
    """

    name: str = ""
    task: str = ""

    @abstractmethod
    def __call__(self, labels) -> float:
        """Impurity of a set of raw labels (0 for an empty set)."""

    @abstractmethod
    def node_stats(self, targets: np.ndarray, n_classes: int | None = None) -> np.ndarray:
        """Sufficient statistics of ``targets``."""

    @abstractmethod
    def prefix_stats(self, targets: np.ndarray, n_classes: int | None = None) -> np.ndarray:
        """Statistics of every prefix ``targets[:i + 1]``, one row per prefix."""

    @abstractmethod
    def count(self, stats: np.ndarray):
        """Number of rows summarised by ``stats``."""

    @abstractmethod
    def impurity(self, stats: np.ndarray):
        """Impurity from statistics, vectorised over leading axes."""

    def center(self, targets: np.ndarray) -> np.ndarray:
        """Targets in the form whose statistics are combined at one node."""
        return targets

    def node_impurity(self, targets: np.ndarray, n_classes: int | None = None) -> float:
        return float(self.impurity(self.node_stats(targets, n_classes)))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    def __eq__(self, other) -> bool:
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))


# -----------------------------------------------------------------------------
# Classification
# -----------------------------------------------------------------------------
class _ClassCountCriterion(Criterion):
    task = CLASSIFICATION

    def __call__(self, labels) -> float:
        labels = np.asarray(labels)
        if labels.size == 0:
            return 0.0
        _, counts = np.unique(labels, return_counts=True)
        return float(self.impurity(counts.astype(float)))

    def node_stats(self, targets, n_classes=None):
        return np.bincount(targets, minlength=n_classes or 0).astype(float)

    def prefix_stats(self, targets, n_classes=None):
        K = n_classes if n_classes else int(targets.max()) + 1
        M = np.zeros((targets.shape[0], K), dtype=float)
        M[np.arange(targets.shape[0]), targets] = 1.0
        return M.cumsum(axis=0)

    def count(self, stats):
        return np.asarray(stats, dtype=float).sum(axis=-1)

    @staticmethod
    def _proportions(stats):
        stats = np.asarray(stats, dtype=float)
        tot = stats.sum(axis=-1, keepdims=True)
        return stats / np.where(tot > 0, tot, 1.0), tot[..., 0]


class Gini(_ClassCountCriterion):
    """Gini index ``1 - sum(p_c**2)``."""

    name = "gini"

    def impurity(self, stats):
        p, tot = self._proportions(stats)
        return np.where(tot > 0, 1.0 - np.sum(p * p, axis=-1), 0.0)


class Entropy(_ClassCountCriterion):
    """Shannon entropy ``-sum(p_c * log2(p_c))`` with ``0 * log2(0) = 0``."""

    name = "entropy"

    def impurity(self, stats):
        p, tot = self._proportions(stats)
        with np.errstate(divide="ignore", invalid="ignore"):
            plogp = np.where(p > 0, p * np.log2(p), 0.0)
        # -0.0 for pure nodes
        return np.where(tot > 0, np.abs(-np.sum(plogp, axis=-1)), 0.0)


# -----------------------------------------------------------------------------
# Regression
# -----------------------------------------------------------------------------
class Variance(Criterion):
    """Population variance of the target.

    Statistics are raw sums ``[n, sum(y), sum(y**2)]``, which cancel
    catastrophically when the targets sit far from zero.  Statistics that
    are later combined must therefore be taken on targets shifted by one
    common offset (see :meth:`center`); the variance is shift-invariant.
    :meth:`prefix_stats` applies the shift itself.
    """

    name = "variance"
    task = REGRESSION

    def __call__(self, labels) -> float:
        y = np.asarray(labels, dtype=float)
        if y.size == 0:
            return 0.0
        return float(np.var(y))

    def center(self, targets):
        y = np.asarray(targets, dtype=float)
        return y - y.mean() if y.size else y

    def node_stats(self, targets, n_classes=None):
        y = np.asarray(targets, dtype=float)
        return np.array([float(y.shape[0]), float(y.sum()), float((y * y).sum())])

    def node_impurity(self, targets, n_classes=None) -> float:
        return self(targets)

    def prefix_stats(self, targets, n_classes=None):
        y = self.center(targets)
        return np.column_stack([np.arange(1, y.shape[0] + 1, dtype=float),
                                np.cumsum(y), np.cumsum(y * y)])

    def count(self, stats):
        return np.asarray(stats, dtype=float)[..., 0]

    def impurity(self, stats):
        stats = np.asarray(stats, dtype=float)
        n, s, s2 = stats[..., 0], stats[..., 1], stats[..., 2]
        safe = np.where(n > 0, n, 1.0)
        mean = s / safe
        return np.where(n > 0, np.maximum(s2 / safe - mean * mean, 0.0), 0.0)


CRITERIA = {
    "gini": Gini,
    "entropy": Entropy,
    "variance": Variance,
}


def get_criterion(criterion) -> Criterion:
    """Resolve ``"gini"``, ``"entropy"``, ``"variance"`` or a ``Criterion`` instance."""
    if isinstance(criterion, Criterion):
        return criterion
    if isinstance(criterion, type) and issubclass(criterion, Criterion):
        return criterion()
    try:
        return CRITERIA[str(criterion).lower()]()
    except KeyError:
        raise InvalidInputError(
            f"unknown criterion {criterion!r}; expected one of {sorted(CRITERIA)}") from None


def split_gain(criterion: Criterion, parent, left, right):
    """
    Weighted impurity decrease of splitting ``parent`` into ``left``/``right``.

    ``impurity(parent) - |L|/|P| * impurity(L) - |R|/|P| * impurity(R)``

    All arguments are sufficient statistics; ``left`` and ``right`` may be
    2-D (one candidate split per row), in which case an array of gains is
    returned.
    """
    n = criterion.count(parent)
    if np.all(n <= 0):
        return 0.0 if np.ndim(left) == 1 else np.zeros(np.shape(left)[0])
    n_left = criterion.count(left)
    n_right = criterion.count(right)
    return (criterion.impurity(parent)
            - (n_left / n) * criterion.impurity(left)
            - (n_right / n) * criterion.impurity(right))
