import numpy as np
import pytest

from cartpy import DatasetView, InvalidInputError, build_tree, cost_complexity_path, prune_at
from cartpy.pruning import tree_risk, weakest_links


def _noisy_tree(n=80, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, 2))
    y = ((X[:, 0] > 0) ^ (rng.random(n) < 0.2)).astype(int)
    return build_tree(DatasetView(X, y))


def _stump():
    X = np.arange(10, dtype=float).reshape(-1, 1)
    y = np.array([0] * 5 + [1] * 5)
    return build_tree(DatasetView(X, y))


def test_path_alphas_strictly_increase_from_zero():
    path = cost_complexity_path(_noisy_tree())
    alphas = path.ccp_alphas
    assert alphas[0] == 0.0
    assert np.all(np.diff(alphas) > 0)
    assert path[-1].tree.n_nodes == 1


def test_path_trees_are_nested():
    path = cost_complexity_path(_noisy_tree())
    for prev, nxt in zip(path, path[1:]):
        assert nxt.tree.node_ids < prev.tree.node_ids
    assert np.all(np.diff(path.n_leaves) < 0)
    assert np.all(np.diff(path.impurities) >= -1e-12)


def test_pruning_is_monotone_in_alpha():
    tree = _noisy_tree()
    sizes = [prune_at(tree, a).n_nodes for a in (0.0, 0.001, 0.005, 0.01, 0.05, 0.1, 1.0)]
    assert sizes == sorted(sizes, reverse=True)
    assert sizes[-1] == 1


def test_prune_at_picks_path_step():
    tree = _noisy_tree()
    path = cost_complexity_path(tree)
    for step in path:
        assert prune_at(tree, step.alpha, path) is step.tree
    assert prune_at(tree, 1e6, path) is path[-1].tree


def test_stump_weakest_link():
    tree = _stump()
    assert weakest_links(tree) == {0: pytest.approx(0.5)}
    path = cost_complexity_path(tree)
    np.testing.assert_allclose(path.ccp_alphas, [0.0, 0.5])
    assert prune_at(tree, 0.49).n_leaves == 2
    assert prune_at(tree, 0.5).n_leaves == 1


def test_tree_risk():
    tree = _stump()
    assert tree_risk(tree) == 0.0
    assert tree_risk(prune_at(tree, 1.0)) == pytest.approx(0.5)


def test_pruning_leaves_original_untouched():
    tree = _noisy_tree()
    n_nodes = tree.n_nodes
    prune_at(tree, 0.05)
    cost_complexity_path(tree)
    assert tree.n_nodes == n_nodes


def test_pruned_leaf_keeps_node_prediction():
    tree = _noisy_tree()
    root_prediction = tree.root.prediction
    assert prune_at(tree, 1e6).predict([[0.0, 0.0]])[0] == root_prediction


@pytest.mark.parametrize("alpha", [-0.1, float("nan")])
def test_invalid_alpha_rejected(alpha):
    with pytest.raises(InvalidInputError):
        prune_at(_stump(), alpha)
