# -*- coding: utf-8 -*-
"""
cartpy.estimators
=================

scikit-learn style wrappers around the tree engine.

:class:`CARTClassifier` and :class:`CARTRegressor` grow a tree with
:class:`~cartpy.tree.TreeBuilder` and prune it at ``ccp_alpha`` with
:func:`~cartpy.pruning.prune_at`.  Besides ``fit``/``predict`` they expose
the pruning path and the rule-export helpers of :class:`~cartpy.tree.Tree`.
"""

from __future__ import annotations

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.utils import Bunch

from .dataset import CLASSIFICATION, REGRESSION, DatasetView, _as_matrix
from .params import HyperparameterSet
from .pruning import cost_complexity_path, prune_at
from .tree import TreeBuilder


class _BaseCART(BaseEstimator):
    _task: str = ""

    def __init__(
        self,
        *,
        criterion: str,
        max_depth: int | None = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        min_impurity_decrease: float = 0.0,
        ccp_alpha: float = 0.0,
        categorical_features: list[int | str] | None = None,
        feature_names: list[str] | None = None,
        infer_categorical: bool = False,
        max_categories_exhaustive: int = 12,
    ):
        self.criterion = criterion
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split
        self.min_samples_leaf = min_samples_leaf
        self.min_impurity_decrease = min_impurity_decrease
        self.ccp_alpha = ccp_alpha
        self.categorical_features = categorical_features
        self.feature_names = feature_names
        self.infer_categorical = infer_categorical
        self.max_categories_exhaustive = max_categories_exhaustive

    def _hyperparameters(self) -> HyperparameterSet:
        return HyperparameterSet(
            max_depth=self.max_depth,
            min_samples_split=self.min_samples_split,
            min_samples_leaf=self.min_samples_leaf,
            min_impurity_decrease=self.min_impurity_decrease,
            cost_complexity_alpha=self.ccp_alpha,
        )

    def _dataset(self, X, y) -> DatasetView:
        return DatasetView(X, y, categorical_features=self.categorical_features,
                           feature_names=self.feature_names, task=self._task,
                           infer_categorical=self.infer_categorical)

    def _grow(self, dataset: DatasetView):
        builder = TreeBuilder(self._hyperparameters(), self.criterion,
                              max_categories_exhaustive=self.max_categories_exhaustive)
        return builder.build(dataset)

    def fit(self, X, y):
        dataset = self._dataset(X, y)
        params = self._hyperparameters()
        self.unpruned_tree_ = self._grow(dataset)
        self.tree_ = prune_at(self.unpruned_tree_, params.cost_complexity_alpha)
        self.n_features_in_ = dataset.n_features
        self.feature_names_ = list(dataset.feature_names)
        self.feature_types_ = list(dataset.feature_types)
        return self

    def _check_fitted(self):
        if getattr(self, "tree_", None) is None:
            raise ValueError("Estimator not fitted. Call fit(...) first.")

    def predict(self, X):
        self._check_fitted()
        return self.tree_.predict(X)

    def apply(self, X):
        """Return the node id of the leaf each sample ends up in."""
        self._check_fitted()
        return self.tree_.apply(X)

    def get_depth(self) -> int:
        self._check_fitted()
        return self.tree_.depth

    def get_n_leaves(self) -> int:
        self._check_fitted()
        return self.tree_.n_leaves

    def cost_complexity_pruning_path(self, X, y) -> Bunch:
        """
        Compute the pruning path of the unpruned tree grown on ``(X, y)``.

        Returns
        -------
        Bunch
            ``ccp_alphas`` (strictly increasing thresholds), ``impurities``
            (total weighted leaf impurity of each subtree), ``n_leaves`` and
            ``trees``.  Any value of ``ccp_alphas`` can be passed back as
            ``ccp_alpha``.
        """
        path = cost_complexity_path(self._grow(self._dataset(X, y)))
        return Bunch(ccp_alphas=path.ccp_alphas, impurities=path.impurities,
                     n_leaves=path.n_leaves, trees=[s.tree for s in path])

    # ------------------------------------------------------------------
    # Rules / printing
    # ------------------------------------------------------------------
    def predict_rule(self, X, feature_names=None) -> list[str]:
        """
        Return the decision rule (antecedent) followed by each input instance.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
        feature_names : list[str], optional
            Alternative names for the features.

        Returns
        -------
        list[str]
            One antecedent string per input sample.
        """
        self._check_fitted()
        M = _as_matrix(X)
        return [self.tree_.trace_rule(row, feature_names) for row in M]

    def export_rules(self, *, feature_names=None, class_names=None) -> list[str]:
        """
        Export all decision rules as ``<antecedent> => <prediction>`` strings.

        Parameters
        ----------
        feature_names : list[str], optional
            Names for the input features.  Defaults to those seen in ``fit``.
        class_names : list[str], optional
            Names for the classes, ordered like ``classes_``.  Ignored for
            regression.
        """
        self._check_fitted()
        return self.tree_.export_rules(feature_names, class_names)

    def print_tree(self, feature_names=None, class_names=None) -> None:
        """Pretty-print the fitted tree to ``stdout``."""
        self._check_fitted()
        print(self.tree_.export_text(feature_names, class_names))


class CARTClassifier(ClassifierMixin, _BaseCART):
    """
    CART decision tree classifier with cost-complexity pruning.

    Parameters
    ----------
    criterion : {"gini", "entropy"}, default="gini"
        Impurity used to score splits.
    max_depth : int or None, default=None
        Maximum depth of the tree.  If ``None`` the depth is unbounded.
    min_samples_split : int, default=2
        Minimum number of training samples required to split a node.
    min_samples_leaf : int, default=1
        Minimum number of samples required in each child after a split.
    min_impurity_decrease : float, default=0.0
        A split is accepted only if its weighted impurity decrease is at
        least this value.
    ccp_alpha : float, default=0.0
        Complexity penalty for minimal cost-complexity pruning.
    categorical_features : list[int|str] or None, default=None
        Indices or names of categorical input features.  All other features
        are treated as numeric.
    feature_names : list[str] or None, default=None
        Feature names used for rule exports and to resolve
        ``categorical_features`` by name.
    infer_categorical : bool, default=False
        Treat string and boolean columns as categorical.
    max_categories_exhaustive : int, default=12
        Maximum cardinality for exhaustive subset search on categorical
        features.  Above this value an ordered scan is used.

    Attributes
    ----------
    tree_ : Tree
        The pruned tree used for prediction.
    unpruned_tree_ : Tree
        The tree before pruning.
    classes_ : ndarray
        Class labels seen in ``fit``.
    """

    _task = CLASSIFICATION

    def __init__(
        self,
        *,
        criterion: str = "gini",
        max_depth: int | None = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        min_impurity_decrease: float = 0.0,
        ccp_alpha: float = 0.0,
        categorical_features: list[int | str] | None = None,
        feature_names: list[str] | None = None,
        infer_categorical: bool = False,
        max_categories_exhaustive: int = 12,
    ):
        super().__init__(
            criterion=criterion,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_impurity_decrease=min_impurity_decrease,
            ccp_alpha=ccp_alpha,
            categorical_features=categorical_features,
            feature_names=feature_names,
            infer_categorical=infer_categorical,
            max_categories_exhaustive=max_categories_exhaustive,
        )

    def fit(self, X, y):
        super().fit(X, y)
        self.classes_ = np.asarray(self.tree_.classes)
        return self

    def predict_proba(self, X):
        """
        Predict class probabilities for the provided samples.

        Returns
        -------
        ndarray of shape (n_samples, n_classes)
            Class distribution of the leaf each sample reaches, ordered like
            ``classes_``.
        """
        self._check_fitted()
        return self.tree_.predict_proba(X)


class CARTRegressor(RegressorMixin, _BaseCART):
    """
    CART regression tree with cost-complexity pruning.

    Splits minimise the weighted variance of the target; leaves predict the
    mean target.  Parameters are those of :class:`CARTClassifier` with
    ``criterion`` defaulting to ``"variance"``.
    """

    _task = REGRESSION

    def __init__(
        self,
        *,
        criterion: str = "variance",
        max_depth: int | None = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        min_impurity_decrease: float = 0.0,
        ccp_alpha: float = 0.0,
        categorical_features: list[int | str] | None = None,
        feature_names: list[str] | None = None,
        infer_categorical: bool = False,
        max_categories_exhaustive: int = 12,
    ):
        super().__init__(
            criterion=criterion,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            min_impurity_decrease=min_impurity_decrease,
            ccp_alpha=ccp_alpha,
            categorical_features=categorical_features,
            feature_names=feature_names,
            infer_categorical=infer_categorical,
            max_categories_exhaustive=max_categories_exhaustive,
        )
