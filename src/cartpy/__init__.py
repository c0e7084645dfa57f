# cartpy/__init__.py
"""
cartpy: CART decision trees with cost-complexity pruning and cross-validated
grid search, in pure Python (scikit-learn style).

Exports:
    - DatasetView
    - build_tree, TreeBuilder, Tree
    - cost_complexity_path, prune_at
    - kfold_split, ParameterGrid, HyperparameterSet
    - tune, select_best, top_n, TreeGridSearch
    - CARTClassifier, CARTRegressor
"""
from loguru import logger

from .criteria import Entropy, Gini, Variance, get_criterion, split_gain
from .dataset import DatasetView
from .estimators import CARTClassifier, CARTRegressor
from .exceptions import (
    CartError,
    CartWarning,
    DegenerateFoldWarning,
    EmptyCandidateSetError,
    InvalidInputError,
)
from .log import PACKAGE_NAME, enable_logging
from .metrics import Metric, get_metric
from .model_selection import Fold, GridPoint, ParameterGrid, kfold_split
from .params import HyperparameterSet
from .pruning import PruningStep, cost_complexity_path, prune_at
from .results import CandidateResult, aggregate_scores, rank_candidates, select_best, top_n
from .tree import Tree, TreeBuilder, TreeNode, build_tree
from .tuning import TreeGridSearch, deadline, tune

logger.disable(PACKAGE_NAME)

__all__ = [
    "CARTClassifier",
    "CARTRegressor",
    "CandidateResult",
    "CartError",
    "CartWarning",
    "DatasetView",
    "DegenerateFoldWarning",
    "EmptyCandidateSetError",
    "Entropy",
    "Fold",
    "Gini",
    "GridPoint",
    "HyperparameterSet",
    "InvalidInputError",
    "Metric",
    "ParameterGrid",
    "PruningStep",
    "Tree",
    "TreeBuilder",
    "TreeGridSearch",
    "TreeNode",
    "Variance",
    "aggregate_scores",
    "build_tree",
    "cost_complexity_path",
    "deadline",
    "enable_logging",
    "get_criterion",
    "get_metric",
    "kfold_split",
    "prune_at",
    "rank_candidates",
    "select_best",
    "split_gain",
    "top_n",
    "tune",
]
__version__ = "0.1.0"
