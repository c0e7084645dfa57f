"""Validation metrics used to score trees during tuning.

A :class:`Metric` pairs a ``score_func(y_true, y_pred)`` with its comparison
direction.  Scores that are undefined on a validation fold (ROC AUC with a
single class, R^2 with a constant target) are returned as NaN rather than
raised, so one degenerate fold does not abort a grid search.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    balanced_accuracy_score,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
)

from .dataset import CLASSIFICATION, DatasetView
from .exceptions import InvalidInputError
from .tree import Tree


@dataclass(frozen=True)
class Metric:
    """
    A named validation metric.

    Parameters
    ----------
    name : str
    score_func : callable
        ``score_func(y_true, y_pred)``.  With ``needs_proba=True``,
        ``y_pred`` is the ``(n, n_classes)`` probability matrix and the
        function also receives ``labels=`` (the tree's classes).
    greater_is_better : bool, default=True
    needs_proba : bool, default=False
    """

    name: str
    score_func: Callable
    greater_is_better: bool = True
    needs_proba: bool = False

    def evaluate(self, tree: Tree, dataset: DatasetView) -> float:
        """Score ``tree`` on ``dataset``; NaN when the metric is undefined there."""
        y_true = dataset.labels
        if self.needs_proba:
            score = self.score_func(y_true, tree.predict_proba(dataset), labels=tree.classes)
        else:
            score = self.score_func(y_true, tree.predict(dataset))
        score = float(score)
        return score if math.isfinite(score) else float("nan")

    def with_direction(self, greater_is_better: bool) -> Metric:
        return Metric(self.name, self.score_func, bool(greater_is_better), self.needs_proba)


# -----------------------------------------------------------------------------
# Score functions
# -----------------------------------------------------------------------------
def _roc_auc(y_true, proba, labels):
    present = np.unique(y_true)
    if present.shape[0] < 2:
        return float("nan")
    if len(labels) == 2:
        return roc_auc_score(y_true == labels[1], proba[:, 1])
    if present.shape[0] < len(labels):
        return float("nan")
    return roc_auc_score(y_true, proba, multi_class="ovr", labels=labels)


def _r2(y_true, y_pred):
    if np.ptp(np.asarray(y_true, dtype=float)) == 0:
        return float("nan")
    return r2_score(y_true, y_pred)


METRICS = {
    "accuracy": Metric("accuracy", accuracy_score),
    "balanced_accuracy": Metric("balanced_accuracy", balanced_accuracy_score),
    "roc_auc": Metric("roc_auc", _roc_auc, needs_proba=True),
    "mse": Metric("mse", mean_squared_error, greater_is_better=False),
    "mae": Metric("mae", mean_absolute_error, greater_is_better=False),
    "r2": Metric("r2", _r2),
}

CLASSIFICATION_METRICS = frozenset({"accuracy", "balanced_accuracy", "roc_auc"})


def get_metric(metric, greater_is_better: bool | None = None) -> Metric:
    """
    Resolve a metric name, :class:`Metric` or plain ``func(y_true, y_pred)``.

    ``greater_is_better`` overrides the metric's own direction when given; a
    plain callable defaults to higher-is-better.
    """
    if isinstance(metric, Metric):
        resolved = metric
    elif isinstance(metric, str):
        try:
            resolved = METRICS[metric.lower()]
        except KeyError:
            raise InvalidInputError(
                f"unknown metric {metric!r}; expected one of {sorted(METRICS)}") from None
    elif callable(metric):
        resolved = Metric(getattr(metric, "__name__", "custom"), metric)
    else:
        raise InvalidInputError(f"cannot use {metric!r} as a metric")
    if greater_is_better is not None:
        resolved = resolved.with_direction(greater_is_better)
    return resolved


def check_metric_task(metric: Metric, task: str) -> None:
    """Reject built-in classification metrics on regression data and vice versa."""
    if metric.name not in METRICS or METRICS[metric.name].score_func is not metric.score_func:
        return
    if (metric.name in CLASSIFICATION_METRICS) != (task == CLASSIFICATION):
        raise InvalidInputError(f"metric {metric.name!r} does not apply to {task} data")
