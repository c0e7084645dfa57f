# -*- coding: utf-8 -*-
"""
cartpy.tuning
=============

K-fold cross-validated grid search over tree hyperparameters.

Every (grid point, fold) pair is an independent unit of work: build a tree on
the fold's training rows, prune it at the point's ``cost_complexity_alpha``,
score it on the validation rows.  Units only share the read-only dataset, so
they are dispatched through a joblib worker pool; results are gathered and
aggregated once all units have run.

Cancellation is cooperative: ``should_stop`` is polled between units (between
batches of ``n_workers`` units when running in parallel).  Grid points with
unevaluated folds are dropped rather than partially aggregated.
"""

from __future__ import annotations

import time
import warnings
from typing import Callable

import numpy as np
from joblib import Parallel, delayed, effective_n_jobs
from loguru import logger
from sklearn.base import BaseEstimator

from .criteria import Criterion, get_criterion
from .dataset import CLASSIFICATION, DatasetView
from .estimators import CARTClassifier, CARTRegressor
from .exceptions import DegenerateFoldWarning, InvalidInputError
from .metrics import Metric, check_metric_task, get_metric
from .model_selection import Fold, as_grid, kfold_split
from .params import HyperparameterSet
from .pruning import prune_at
from .results import CandidateResult, rank_candidates, select_best
from .tree import TreeBuilder

# Below this many tasks the pool start-up cost outweighs the speed-up
_MIN_PARALLEL_TASKS = 4


# -----------------------------------------------------------------------------
# Work units
# -----------------------------------------------------------------------------
def evaluate_fold(dataset: DatasetView, fold: Fold, params: HyperparameterSet,
                  criterion: Criterion, metric: Metric,
                  max_categories_exhaustive: int = 12) -> float:
    """Fit on the fold's training rows, prune, and score on its validation rows."""
    train = dataset.subset(fold.train_indices)
    validation = dataset.subset(fold.validation_indices)
    builder = TreeBuilder(params, criterion,
                          max_categories_exhaustive=max_categories_exhaustive)
    tree = prune_at(builder.build(train), params.cost_complexity_alpha)
    return metric.evaluate(tree, validation)


def _run_parallel(fn, tasks, n_jobs):
    """
    Execute ``fn(*task)`` for each task, in parallel when n_jobs != 1.

    Results are returned in task order.
    """
    if n_jobs == 1 or len(tasks) < _MIN_PARALLEL_TASKS:
        return [fn(*t) for t in tasks]
    return Parallel(n_jobs=n_jobs)(delayed(fn)(*t) for t in tasks)


def deadline(seconds: float) -> Callable[[], bool]:
    """Return a ``should_stop`` callable that turns true after ``seconds``."""
    end = time.monotonic() + float(seconds)
    return lambda: time.monotonic() >= end


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------
def tune(dataset: DatasetView, grid, k: int = 5, metric="accuracy", criterion="gini", *,
         seed: int | None = None, stratify: bool | None = None,
         greater_is_better: bool | None = None, n_jobs: int = 1,
         should_stop: Callable[[], bool] | None = None,
         max_categories_exhaustive: int = 12) -> list[CandidateResult]:
    """
    Cross-validate every grid point and return the candidates ranked best first.

    Parameters
    ----------
    dataset : DatasetView
    grid : ParameterGrid, mapping or sequence
        A :class:`~cartpy.model_selection.ParameterGrid`, a mapping of value
        lists (Cartesian product), or a sequence of mappings /
        :class:`HyperparameterSet` objects (manual grid).
    k : int, default=5
        Number of folds.
    metric : str, Metric or callable, default="accuracy"
    criterion : str or Criterion, default="gini"
    seed : int, optional
        Seed of the fold assignment.
    stratify : bool, optional
        Stratify folds by class; defaults to True for classification data.
    greater_is_better : bool, optional
        Override the metric's comparison direction.
    n_jobs : int, default=1
        Worker count for joblib; ``-1`` uses all cores.
    should_stop : callable, optional
        Polled between units; return True to cancel (e.g.
        ``threading.Event().is_set`` or :func:`deadline`).
    max_categories_exhaustive : int, default=12

    Returns
    -------
    list[CandidateResult]
        Ranked by mean score, then lower fold standard deviation, then grid
        order.  After a cancellation only fully evaluated grid points are
        included.

    Raises
    ------
    InvalidInputError
        On structural problems, before any tree is built.
    """
    if not isinstance(dataset, DatasetView):
        raise InvalidInputError(f"expected a DatasetView, got {type(dataset).__name__}")
    crit = get_criterion(criterion)
    if crit.task != dataset.task:
        raise InvalidInputError(
            f"criterion {crit.name!r} is for {crit.task}, dataset task is {dataset.task}")
    metric = get_metric(metric, greater_is_better)
    check_metric_task(metric, dataset.task)
    grid = as_grid(grid)
    if stratify is None:
        stratify = dataset.task == CLASSIFICATION
    folds = kfold_split(dataset, k, seed, stratify)

    units = [(gp, fold) for gp in grid for fold in folds]
    logger.info("Tuning {} grid points x {} folds ({} fits), metric={}",
                len(grid), len(folds), len(units), metric.name)

    if should_stop is None:
        batch_size = len(units)
    else:
        batch_size = 1 if n_jobs == 1 else max(1, effective_n_jobs(n_jobs))

    scores: dict[int, list] = {gp.order: [None] * len(folds) for gp in grid}
    cancelled = False
    for start in range(0, len(units), batch_size):
        if should_stop is not None and should_stop():
            cancelled = True
            break
        batch = units[start:start + batch_size]
        tasks = [(dataset, fold, gp.params, crit, metric, max_categories_exhaustive)
                 for gp, fold in batch]
        for (gp, fold), score in zip(batch, _run_parallel(evaluate_fold, tasks, n_jobs)):
            scores[gp.order][fold.index] = score

    candidates = [
        CandidateResult.from_scores(gp, scores[gp.order], metric.greater_is_better)
        for gp in grid
        if all(s is not None for s in scores[gp.order])
    ]
    if cancelled:
        logger.warning("Tuning cancelled: {} of {} grid points fully evaluated",
                       len(candidates), len(grid))

    n_degenerate = sum(int(np.isnan(c.fold_scores).sum()) for c in candidates)
    if n_degenerate:
        warnings.warn(
            f"metric {metric.name!r} was undefined on {n_degenerate} fold evaluations; "
            f"those folds are excluded from the means",
            DegenerateFoldWarning, stacklevel=2)

    ranked = rank_candidates(candidates, metric.greater_is_better)
    if ranked:
        logger.info("Best {}={:.4f} (+/- {:.4f}) with {}", metric.name, ranked[0].mean,
                    ranked[0].std_error, ranked[0].params)
    return ranked


# -----------------------------------------------------------------------------
# Estimator
# -----------------------------------------------------------------------------
class TreeGridSearch(BaseEstimator):
    """
    Grid search over CART hyperparameters with k-fold cross-validation.

    Parameters
    ----------
    param_grid : mapping or sequence
        Passed to :func:`tune` as ``grid``.
    cv : int, default=5
        Number of folds.
    scoring : str, Metric or callable, default="accuracy"
    criterion : str, default="gini"
        ``"variance"`` switches the search (and the refit estimator) to
        regression.
    greater_is_better : bool, optional
    random_state : int, optional
        Seed of the fold assignment.
    stratify : bool, optional
    refit : bool, default=True
        Refit the best candidate on the whole dataset as ``best_estimator_``.
    n_jobs : int, default=1
    categorical_features, feature_names, infer_categorical,
    max_categories_exhaustive
        Forwarded to the dataset and the tree builder.

    Attributes
    ----------
    results_ : list[CandidateResult]
        All candidates, ranked.
    best_result_ : CandidateResult
    best_params_ : dict
    best_score_ : float
    best_estimator_ : CARTClassifier or CARTRegressor
        Only when ``refit=True``.
    """

    def __init__(self, param_grid, *, cv: int = 5, scoring="accuracy", criterion: str = "gini",
                 greater_is_better: bool | None = None, random_state: int | None = None,
                 stratify: bool | None = None, refit: bool = True, n_jobs: int = 1,
                 categorical_features=None, feature_names=None,
                 infer_categorical: bool = False, max_categories_exhaustive: int = 12):
        self.param_grid = param_grid
        self.cv = cv
        self.scoring = scoring
        self.criterion = criterion
        self.greater_is_better = greater_is_better
        self.random_state = random_state
        self.stratify = stratify
        self.refit = refit
        self.n_jobs = n_jobs
        self.categorical_features = categorical_features
        self.feature_names = feature_names
        self.infer_categorical = infer_categorical
        self.max_categories_exhaustive = max_categories_exhaustive

    def fit(self, X, y):
        task = get_criterion(self.criterion).task
        dataset = DatasetView(X, y, categorical_features=self.categorical_features,
                              feature_names=self.feature_names, task=task,
                              infer_categorical=self.infer_categorical)
        self.results_ = tune(
            dataset, self.param_grid, k=self.cv, metric=self.scoring,
            criterion=self.criterion, seed=self.random_state, stratify=self.stratify,
            greater_is_better=self.greater_is_better, n_jobs=self.n_jobs,
            max_categories_exhaustive=self.max_categories_exhaustive)
        self.best_result_ = select_best(self.results_)
        self.best_params_ = self.best_result_.params.as_dict()
        self.best_score_ = self.best_result_.mean
        if self.refit:
            p = self.best_result_.params
            est_cls = CARTClassifier if task == CLASSIFICATION else CARTRegressor
            self.best_estimator_ = est_cls(
                criterion=self.criterion,
                max_depth=p.max_depth,
                min_samples_split=p.min_samples_split,
                min_samples_leaf=p.min_samples_leaf,
                min_impurity_decrease=p.min_impurity_decrease,
                ccp_alpha=p.cost_complexity_alpha,
                categorical_features=self.categorical_features,
                feature_names=self.feature_names,
                infer_categorical=self.infer_categorical,
                max_categories_exhaustive=self.max_categories_exhaustive,
            ).fit(X, y)
        return self

    @property
    def cv_results_(self) -> dict:
        """Per-candidate scores in grid order, in the layout of scikit-learn's ``cv_results_``."""
        if getattr(self, "results_", None) is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")
        by_order = sorted(self.results_, key=lambda c: c.grid_point.order)
        rank = {id(c): i + 1 for i, c in enumerate(self.results_)}
        out = {
            "params": [c.params.as_dict() for c in by_order],
            "mean_test_score": np.array([c.mean for c in by_order]),
            "std_test_score": np.array([c.std for c in by_order]),
            "n_valid_folds": np.array([c.n_valid_folds for c in by_order]),
            "rank_test_score": np.array([rank[id(c)] for c in by_order]),
        }
        n_folds = len(by_order[0].fold_scores) if by_order else 0
        for i in range(n_folds):
            out[f"split{i}_test_score"] = np.array([c.fold_scores[i] for c in by_order])
        return out

    def _check_refit(self):
        if getattr(self, "best_estimator_", None) is None:
            raise ValueError("No refit estimator. Fit with refit=True first.")
        return self.best_estimator_

    def predict(self, X):
        return self._check_refit().predict(X)

    def predict_proba(self, X):
        return self._check_refit().predict_proba(X)

    def score(self, X, y):
        return self._check_refit().score(X, y)
