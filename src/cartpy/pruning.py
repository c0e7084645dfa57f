# -*- coding: utf-8 -*-
"""
cartpy.pruning
==============

Minimal cost-complexity pruning (Breiman et al., CART).

For a subtree ``T_t`` rooted at internal node ``t`` the weakest-link value is

    g(t) = (R(t) - R(T_t)) / (|leaves(T_t)| - 1)

where ``R(t) = n_t / N * impurity(t)`` is the node's impurity weighted by its
share of the training rows and ``R(T_t)`` sums ``R`` over the subtree's
leaves.  Repeatedly collapsing the node(s) with the smallest ``g`` yields a
nested sequence of trees, each optimal for the cost
``R(T) + alpha * |leaves(T)|`` over an interval of ``alpha`` starting at the
recorded threshold.
"""

from __future__ import annotations

import bisect
from typing import NamedTuple, Sequence

import numpy as np
from loguru import logger

from .exceptions import InvalidInputError
from .tree import Tree, TreeNode

# g(t) values this close to the minimum are collapsed in the same step
_ALPHA_TOL = 1e-12


class PruningStep(NamedTuple):
    """One entry of a pruning path: ``tree`` is optimal for ``alpha`` up to the next step."""

    alpha: float
    tree: Tree


class PruningPath(list):
    """List of :class:`PruningStep` with strictly increasing alphas."""

    @property
    def ccp_alphas(self) -> np.ndarray:
        return np.array([s.alpha for s in self], dtype=float)

    @property
    def n_leaves(self) -> np.ndarray:
        return np.array([s.tree.n_leaves for s in self], dtype=int)

    @property
    def impurities(self) -> np.ndarray:
        """Total weighted leaf impurity ``R(T)`` of each tree on the path."""
        return np.array([tree_risk(s.tree) for s in self], dtype=float)


def _risk(node: TreeNode, n_root: int) -> float:
    return node.n_samples / n_root * node.impurity


def tree_risk(tree: Tree) -> float:
    """Sum of ``n_t / N * impurity(t)`` over the leaves of ``tree``."""
    n_root = tree.n_samples
    return float(sum(_risk(leaf, n_root) for leaf in tree.leaves()))


def weakest_links(tree: Tree) -> dict[int, float]:
    """``g(t)`` for every internal node of ``tree``, keyed by node id."""
    n_root = tree.n_samples
    # postorder: children before parents
    order = list(tree)
    leaf_risk: dict[int, float] = {}
    n_leaves: dict[int, int] = {}
    g: dict[int, float] = {}
    for node in reversed(order):
        if node.is_leaf:
            leaf_risk[node.node_id] = _risk(node, n_root)
            n_leaves[node.node_id] = 1
            continue
        l, r = node.left.node_id, node.right.node_id
        leaf_risk[node.node_id] = leaf_risk[l] + leaf_risk[r]
        n_leaves[node.node_id] = n_leaves[l] + n_leaves[r]
        value = (_risk(node, n_root) - leaf_risk[node.node_id]) / (n_leaves[node.node_id] - 1)
        # impurity never increases under a split; clamp rounding noise
        g[node.node_id] = max(value, 0.0)
    return g


def cost_complexity_path(tree: Tree) -> PruningPath:
    """
    Compute the full cost-complexity pruning path of ``tree``.

    Returns
    -------
    PruningPath
        Steps ``(alpha, tree)`` with strictly increasing ``alpha``.  The first
        step has ``alpha == 0`` and the tree optimal at zero penalty (the
        input tree, minus any splits that do not reduce impurity at all); the
        last step is the root alone.  Each tree's node ids are a subset of the
        previous tree's.
    """
    path = PruningPath([PruningStep(0.0, tree)])
    current = tree
    while not current.root.is_leaf:
        g = weakest_links(current)
        g_min = min(g.values())
        collapse = [nid for nid, val in g.items() if val <= g_min + _ALPHA_TOL]
        current = current.collapse(collapse)
        if g_min <= path[-1].alpha + _ALPHA_TOL:
            path[-1] = PruningStep(path[-1].alpha, current)
        else:
            path.append(PruningStep(float(g_min), current))
    logger.debug("Pruning path of {} steps for a tree of {} leaves",
                 len(path), tree.n_leaves)
    return path


def prune_at(tree: Tree, alpha: float, path: Sequence[PruningStep] | None = None) -> Tree:
    """
    Return the subtree of ``tree`` optimal for complexity penalty ``alpha``.

    This is the tree of the pruning path step with the largest threshold
    ``<= alpha``.  Pass a precomputed ``path`` to prune the same tree at
    several alphas.
    """
    alpha = float(alpha)
    if np.isnan(alpha) or alpha < 0:
        raise InvalidInputError(f"alpha must be non-negative, got {alpha}")
    if path is None:
        path = cost_complexity_path(tree)
    alphas = [s.alpha for s in path]
    i = bisect.bisect_right(alphas, alpha) - 1
    return path[max(i, 0)].tree
