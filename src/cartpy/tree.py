# -*- coding: utf-8 -*-
"""
cartpy.tree
===========

This module implements CART-style binary decision trees.  It supports both
numeric and categorical predictors, Gini/entropy impurity for classification,
variance for regression, and pre-pruning via ``max_depth``,
``min_samples_split``, ``min_samples_leaf`` and ``min_impurity_decrease``.
Post-pruning lives in :mod:`cartpy.pruning`.

Numeric splits route a row left iff ``value <= threshold``, with thresholds
taken at midpoints between consecutive distinct values.  Categorical splits
route a row left iff its category belongs to the split's category set; a
category never seen during training goes right.

When several splits reach the same (maximal) gain the lowest feature index
wins, then the lowest threshold (for categorical features, the first
partition enumerated).  Node ids are assigned in preorder and are stable
under pruning, so a pruned tree's node ids are a subset of the original's.

In addition to training and prediction the :class:`Tree` provides rule
tracing, rule export and a plain-text rendering.
"""

# -----------------------------------------------------------------------------

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterator, NamedTuple

import numpy as np
from loguru import logger

from .criteria import Criterion, get_criterion, split_gain
from .dataset import CATEGORICAL, CLASSIFICATION, NUMERIC, DatasetView, _as_matrix
from .exceptions import InvalidInputError
from .params import HyperparameterSet

# gains closer than this are treated as equal when breaking ties
_GAIN_TOL = 1e-12
_PURITY_TOL = 1e-12


# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------
@dataclass(eq=False)
class TreeNode:
    """Internal representation of a single node in a decision tree.

    Attributes
    ----------
    node_id : int
        Preorder index of the node in the tree it was built in.
    depth : int
        Distance from the root (the root has depth 0).
    n_samples : int
        Number of training rows reaching the node.
    impurity : float
        Criterion value of the rows reaching the node.
    value : ndarray
        Class counts (classification) or ``[mean]`` (regression).
    prediction : object
        Majority class label, or mean target.  Internal nodes carry one too:
        it becomes the leaf prediction when the node is pruned.
    feature_index : int or None
        Index of the split feature; ``None`` for leaves.
    split_type : {"numeric", "categorical"} or None
    threshold : float or frozenset or None
        Numeric threshold, or the set of categories routed left.
    gain : float
        Weighted impurity decrease achieved by the split (0 for leaves).
    left, right : TreeNode or None
        Children, owned exclusively by this node.
    """

    node_id: int
    depth: int
    n_samples: int
    impurity: float
    value: np.ndarray
    prediction: Any
    feature_index: int | None = None
    split_type: str | None = None
    threshold: float | frozenset | None = None
    gain: float = 0.0
    left: TreeNode | None = None
    right: TreeNode | None = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    def goes_left(self, values: np.ndarray) -> np.ndarray:
        """Boolean mask of the rows (given by their split-feature values) routed left."""
        if self.split_type == NUMERIC:
            return np.asarray(values, dtype=float) <= self.threshold
        thr = self.threshold
        return np.fromiter((v in thr for v in values), dtype=bool, count=len(values))

    def as_leaf(self) -> TreeNode:
        """Copy of this node with its split and children removed."""
        return replace(self, feature_index=None, split_type=None, threshold=None,
                       gain=0.0, left=None, right=None)


# -----------------------------------------------------------------------------
# Tree
# -----------------------------------------------------------------------------
class Tree:
    """A fitted binary decision tree.

    The tree owns its root and, through it, every node.  Trees are never
    modified after construction; pruning returns new trees
    (see :meth:`collapse`).

    Parameters
    ----------
    root : TreeNode
    feature_types : tuple of {"numeric", "categorical"}
    feature_names : tuple of str
    task : {"classification", "regression"}
    classes : ndarray, optional
        Class labels (classification only), ordered like ``TreeNode.value``.
    criterion : str, optional
        Name of the criterion the tree was grown with.
    """

    def __init__(self, root: TreeNode, *, feature_types, feature_names, task: str,
                 classes: np.ndarray | None = None, criterion: str | None = None):
        self.root = root
        self.feature_types = tuple(feature_types)
        self.feature_names = tuple(feature_names)
        self.task = task
        self.classes = classes
        self.criterion = criterion

    def _meta(self) -> dict:
        return dict(feature_types=self.feature_types, feature_names=self.feature_names,
                    task=self.task, classes=self.classes, criterion=self.criterion)

    def __repr__(self) -> str:
        return (f"Tree(n_nodes={self.n_nodes}, n_leaves={self.n_leaves}, "
                f"depth={self.depth}, task={self.task!r})")

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[TreeNode]:
        """Iterate over nodes in preorder."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            if not node.is_leaf:
                stack.append(node.right)
                stack.append(node.left)

    def leaves(self) -> list[TreeNode]:
        return [n for n in self if n.is_leaf]

    def internal_nodes(self) -> list[TreeNode]:
        return [n for n in self if not n.is_leaf]

    @property
    def n_features(self) -> int:
        return len(self.feature_types)

    @property
    def n_samples(self) -> int:
        return self.root.n_samples

    @property
    def n_nodes(self) -> int:
        return sum(1 for _ in self)

    @property
    def n_leaves(self) -> int:
        return sum(1 for n in self if n.is_leaf)

    @property
    def depth(self) -> int:
        return max(n.depth for n in self)

    @property
    def node_ids(self) -> frozenset:
        return frozenset(n.node_id for n in self)

    def get_node(self, node_id: int) -> TreeNode:
        for n in self:
            if n.node_id == node_id:
                return n
        raise KeyError(node_id)

    def collapse(self, node_ids) -> Tree:
        """
        Return a copy of the tree in which every node of ``node_ids`` is a leaf.

        Ids of leaves, or of nodes below a collapsed node, are ignored.  The
        original tree is left untouched.
        """
        ids = set(node_ids)
        if self.root.is_leaf or self.root.node_id in ids:
            return Tree(self.root.as_leaf(), **self._meta())
        new_root = replace(self.root)
        stack = [new_root]
        while stack:
            node = stack.pop()
            left, right = node.left, node.right
            node.left = left.as_leaf() if (left.is_leaf or left.node_id in ids) else replace(left)
            node.right = right.as_leaf() if (right.is_leaf or right.node_id in ids) else replace(right)
            for ch in (node.left, node.right):
                if not ch.is_leaf:
                    stack.append(ch)
        return Tree(new_root, **self._meta())

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def _columns(self, X) -> tuple[list[np.ndarray], int]:
        if isinstance(X, DatasetView):
            if X.n_features != self.n_features:
                raise InvalidInputError(
                    f"X has {X.n_features} features, tree expects {self.n_features}")
            return [X.column(j) for j in range(X.n_features)], X.n_rows
        M = _as_matrix(X)
        if M.shape[1] != self.n_features:
            raise InvalidInputError(
                f"X has {M.shape[1]} features, tree expects {self.n_features}")
        cols = []
        for j, kind in enumerate(self.feature_types):
            if kind == CATEGORICAL:
                cols.append(M[:, j])
                continue
            try:
                cols.append(np.asarray(M[:, j], dtype=float))
            except (TypeError, ValueError) as exc:
                raise InvalidInputError(
                    f"feature {self.feature_names[j]!r} is numeric but X holds "
                    f"non-numeric values") from exc
        return cols, M.shape[0]

    def _route(self, X) -> tuple[list[tuple[TreeNode, np.ndarray]], int]:
        cols, n = self._columns(X)
        out = []
        stack = [(self.root, np.arange(n))]
        while stack:
            node, idx = stack.pop()
            if node.is_leaf:
                out.append((node, idx))
                continue
            if idx.size == 0:
                continue
            mask = node.goes_left(cols[node.feature_index][idx])
            stack.append((node.right, idx[~mask]))
            stack.append((node.left, idx[mask]))
        return out, n

    def apply(self, X) -> np.ndarray:
        """Node id of the leaf reached by each row."""
        routed, n = self._route(X)
        ids = np.empty(n, dtype=np.intp)
        for leaf, idx in routed:
            ids[idx] = leaf.node_id
        return ids

    def predict(self, X) -> np.ndarray:
        routed, n = self._route(X)
        if self.task == CLASSIFICATION:
            out = np.empty(n, dtype=self.classes.dtype)
        else:
            out = np.empty(n, dtype=float)
        for leaf, idx in routed:
            out[idx] = leaf.prediction
        return out

    def predict_proba(self, X) -> np.ndarray:
        """Class distribution of the leaf reached by each row, ordered like ``classes``."""
        if self.task != CLASSIFICATION:
            raise ValueError("predict_proba is only available for classification trees")
        routed, n = self._route(X)
        out = np.zeros((n, len(self.classes)), dtype=float)
        for leaf, idx in routed:
            tot = leaf.value.sum()
            out[idx] = leaf.value / tot if tot > 0 else 1.0 / len(self.classes)
        return out

    # ------------------------------------------------------------------
    # Rule tracing / text export
    # ------------------------------------------------------------------
    def _name(self, j: int, fn=None) -> str:
        names = fn if fn is not None else self.feature_names
        return names[j] if 0 <= j < len(names) else f"X[{j}]"

    def _conditions(self, node: TreeNode, fn=None) -> tuple[str, str]:
        name = self._name(node.feature_index, fn)
        if node.split_type == NUMERIC:
            return f"{name} <= {node.threshold:.4f}", f"{name} > {node.threshold:.4f}"
        S = "{" + ", ".join(sorted(map(str, node.threshold))) + "}"
        return f"{name} IN {S}", f"{name} NOT IN {S}"

    def _label(self, node: TreeNode, cn=None) -> str:
        if self.task != CLASSIFICATION:
            return f"value={node.prediction:.4f}"
        if cn is not None:
            pos = int(np.flatnonzero(self.classes == node.prediction)[0])
            return str(cn[pos])
        return str(node.prediction)

    def trace_rule(self, row, feature_names=None) -> str:
        """Conjunction of conditions followed by a single row from root to leaf."""
        cols, _ = self._columns([list(row)])
        parts = []
        node = self.root
        while not node.is_leaf:
            go_left = bool(node.goes_left(cols[node.feature_index])[0])
            left_cond, right_cond = self._conditions(node, feature_names)
            parts.append(left_cond if go_left else right_cond)
            node = node.left if go_left else node.right
        return " AND ".join(parts) if parts else "<root>"

    def export_rules(self, feature_names=None, class_names=None) -> list[str]:
        """Every root-to-leaf path as ``<antecedent> => <prediction>``."""
        rules: list[str] = []
        stack = [(self.root, [])]
        while stack:
            node, parts = stack.pop()
            if node.is_leaf:
                body = " AND ".join(parts) if parts else "<root>"
                rules.append(f"{body} => {self._label(node, class_names)}")
                continue
            left_cond, right_cond = self._conditions(node, feature_names)
            stack.append((node.right, parts + [right_cond]))
            stack.append((node.left, parts + [left_cond]))
        return rules

    def export_text(self, feature_names=None, class_names=None) -> str:
        """Indented ``if/else`` rendering of the tree."""
        lines: list[str] = []
        stack: list[tuple[str, TreeNode | None, str]] = [("node", self.root, "")]
        while stack:
            kind, node, indent = stack.pop()
            if kind == "else":
                lines.append(f"{indent}else:")
                continue
            if node.is_leaf:
                lines.append(f"{indent}Predict {self._label(node, class_names)} "
                             f"(n={node.n_samples}, impurity={node.impurity:.4f})")
                continue
            left_cond, _ = self._conditions(node, feature_names)
            lines.append(f"{indent}if {left_cond}:")
            stack.append(("node", node.right, indent + "  "))
            stack.append(("else", None, indent))
            stack.append(("node", node.left, indent + "  "))
        return "\n".join(lines)


# -----------------------------------------------------------------------------
# Builder
# -----------------------------------------------------------------------------
class _Split(NamedTuple):
    gain: float
    feature_index: int
    split_type: str
    threshold: Any


class TreeBuilder:
    """
    Grow an unpruned tree by recursive binary partitioning.

    Parameters
    ----------
    params : HyperparameterSet, optional
        Stopping rules.  ``cost_complexity_alpha`` is ignored here; apply it
        with :func:`cartpy.pruning.prune_at`.
    criterion : str or Criterion, default="gini"
    max_categories_exhaustive : int, default=12
        Up to this many categories at a node every binary partition is
        evaluated; above it, categories are ordered by mean target (or
        positive-class rate) and only the ``k - 1`` ordered prefixes are
        evaluated.

    Notes
    -----
    A node becomes a leaf when, checked in this order: it is pure; it sits
    at ``max_depth``; it holds fewer than ``min_samples_split`` rows; no
    split leaves ``min_samples_leaf`` rows on both sides; or the best split
    gains less than ``min_impurity_decrease``.  Nodes are expanded with an
    explicit stack, so very deep trees do not hit the recursion limit.
    """

    def __init__(self, params: HyperparameterSet | None = None, criterion="gini", *,
                 max_categories_exhaustive: int = 12):
        self.params = params if params is not None else HyperparameterSet()
        self.criterion: Criterion = get_criterion(criterion)
        if int(max_categories_exhaustive) < 2:
            raise InvalidInputError("max_categories_exhaustive must be >= 2")
        self.max_categories_exhaustive = int(max_categories_exhaustive)

    def build(self, dataset: DatasetView) -> Tree:
        if not isinstance(dataset, DatasetView):
            raise InvalidInputError(
                f"expected a DatasetView, got {type(dataset).__name__}")
        if dataset.n_rows == 0:
            raise InvalidInputError("cannot build a tree on an empty row set")
        if self.criterion.task != dataset.task:
            raise InvalidInputError(
                f"criterion {self.criterion.name!r} is for {self.criterion.task}, "
                f"dataset task is {dataset.task}")

        targets = dataset.targets
        columns = [dataset.column(j) for j in range(dataset.n_features)]
        K = dataset.n_classes or None

        root = None
        next_id = 0
        stack: list[tuple[np.ndarray, int, TreeNode | None, str]] = [
            (np.arange(dataset.n_rows), 0, None, "")]
        while stack:
            idx, depth, parent, side = stack.pop()
            node = self._make_node(next_id, idx, depth, targets, K, dataset)
            next_id += 1
            if parent is None:
                root = node
            else:
                setattr(parent, side, node)

            if self._stops_early(node):
                continue
            # one common shift per node so category statistics stay combinable
            y = self.criterion.center(targets[idx])
            split = self._best_split(columns, idx, y, K, dataset)
            if split is None or split.gain < self.params.min_impurity_decrease:
                continue

            node.feature_index = split.feature_index
            node.split_type = split.split_type
            node.threshold = split.threshold
            node.gain = split.gain
            mask = node.goes_left(columns[split.feature_index][idx])
            stack.append((idx[~mask], depth + 1, node, "right"))
            stack.append((idx[mask], depth + 1, node, "left"))

        tree = Tree(root, feature_types=dataset.feature_types,
                    feature_names=dataset.feature_names, task=dataset.task,
                    classes=dataset.classes, criterion=self.criterion.name)
        logger.debug("Built tree on {} rows: {} nodes, {} leaves, depth {}",
                     dataset.n_rows, tree.n_nodes, tree.n_leaves, tree.depth)
        return tree

    def _make_node(self, node_id, idx, depth, targets, K, dataset) -> TreeNode:
        y = targets[idx]
        stats = self.criterion.node_stats(y, K)
        impurity = self.criterion.node_impurity(y, K)
        if dataset.task == CLASSIFICATION:
            value = stats
            prediction = dataset.classes[int(np.argmax(stats))]
        else:
            mean = float(np.mean(y))
            value = np.array([mean])
            prediction = mean
        return TreeNode(node_id=node_id, depth=depth, n_samples=int(idx.shape[0]),
                        impurity=float(impurity), value=value, prediction=prediction)

    def _stops_early(self, node: TreeNode) -> bool:
        p = self.params
        if node.impurity <= _PURITY_TOL:
            return True
        if p.max_depth is not None and node.depth >= p.max_depth:
            return True
        return node.n_samples < p.min_samples_split

    def _best_split(self, columns, idx, y, K, dataset) -> _Split | None:
        best = None
        for j, column in enumerate(columns):
            col = column[idx]
            if dataset.is_categorical(j):
                cand = self._best_categorical(j, col, y, K)
            else:
                cand = self._best_numeric(j, col, y, K)
            if cand is not None and (best is None or cand.gain > best.gain + _GAIN_TOL):
                best = cand
        return best

    def _best_numeric(self, j, col, y, K) -> _Split | None:
        n = col.shape[0]
        min_leaf = self.params.min_samples_leaf
        if n < 2 * min_leaf:
            return None
        order = np.argsort(col, kind="mergesort")
        v = col[order]
        P = self.criterion.prefix_stats(y[order], K)

        bd = np.nonzero(v[:-1] != v[1:])[0]
        n_left = bd + 1
        bd = bd[(n_left >= min_leaf) & (n - n_left >= min_leaf)]
        if bd.size == 0:
            return None
        total = P[-1]
        left = P[bd]
        gains = split_gain(self.criterion, total, left, total - left)
        i = _first_max(gains)
        pos = bd[i]
        thr = 0.5 * (v[pos] + v[pos + 1])
        if thr >= v[pos + 1]:
            # midpoint rounded up onto the next value
            thr = v[pos]
        return _Split(_clean_gain(gains[i]), j, NUMERIC, float(thr))

    def _best_categorical(self, j, col, y, K) -> _Split | None:
        cats = sorted(set(col.tolist()), key=_category_key)
        k = len(cats)
        if k < 2:
            return None
        position = {c: i for i, c in enumerate(cats)}
        codes = np.fromiter((position[v] for v in col), dtype=np.intp, count=col.shape[0])
        S = np.stack([self.criterion.node_stats(y[codes == c], K) for c in range(k)])
        total = S.sum(axis=0)

        if k <= self.max_categories_exhaustive:
            # every partition once: the first category is pinned to the left side
            masks = np.arange((1 << (k - 1)) - 1)
            B = np.ones((masks.shape[0], k), dtype=bool)
            B[:, 1:] = ((masks[:, None] >> np.arange(k - 1)) & 1).astype(bool)
        else:
            order = np.argsort(self._category_scores(S), kind="mergesort")
            B = np.zeros((k - 1, k), dtype=bool)
            for t in range(1, k):
                B[t - 1, order[:t]] = True

        left = B.astype(float) @ S
        right = total - left
        min_leaf = self.params.min_samples_leaf
        ok = ((self.criterion.count(left) >= min_leaf)
              & (self.criterion.count(right) >= min_leaf))
        if not np.any(ok):
            return None
        B, left, right = B[ok], left[ok], right[ok]
        gains = split_gain(self.criterion, total, left, right)
        i = _first_max(gains)
        subset = frozenset(cats[c] for c in np.flatnonzero(B[i]))
        return _Split(_clean_gain(gains[i]), j, CATEGORICAL, subset)

    def _category_scores(self, S: np.ndarray) -> np.ndarray:
        n = self.criterion.count(S)
        if self.criterion.task == CLASSIFICATION:
            # rate of the last class (the positive class for binary labels)
            return S[:, -1] / np.where(n > 0, n, 1.0)
        return S[:, 1] / np.where(n > 0, n, 1.0)


def _first_max(gains: np.ndarray) -> int:
    gains = np.asarray(gains, dtype=float)
    return int(np.flatnonzero(gains >= gains.max() - _GAIN_TOL)[0])


def _clean_gain(g) -> float:
    g = float(g)
    return 0.0 if abs(g) < _GAIN_TOL else g


def _category_key(c):
    return (type(c).__name__, str(c))


def build_tree(dataset: DatasetView, params: HyperparameterSet | None = None,
               criterion="gini", **options) -> Tree:
    """Grow an unpruned tree on ``dataset``; see :class:`TreeBuilder`."""
    return TreeBuilder(params, criterion, **options).build(dataset)
