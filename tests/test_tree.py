import numpy as np
import pytest

from cartpy import (
    DatasetView,
    HyperparameterSet,
    InvalidInputError,
    TreeBuilder,
    build_tree,
)


def _blocks_dataset():
    # one informative feature, labels alternate in blocks of five
    X = np.arange(20, dtype=float).reshape(-1, 1)
    y = np.array(([0] * 5 + [1] * 5) * 2)
    return DatasetView(X, y)


def _random_dataset(n=60, seed=0):
    rng = np.random.default_rng(seed)
    X = rng.normal(size=(n, 3))
    y = (X[:, 0] + 0.5 * rng.normal(size=n) > 0).astype(int)
    return DatasetView(X, y)


def test_unconstrained_tree_fits_training_data():
    ds = _blocks_dataset()
    tree = build_tree(ds)
    assert np.array_equal(tree.predict(ds), ds.labels)
    assert all(leaf.impurity == 0.0 for leaf in tree.leaves())


def test_unconstrained_tree_fits_noisy_labels():
    rng = np.random.default_rng(3)
    X = rng.permutation(40).astype(float).reshape(-1, 1)
    y = rng.integers(0, 2, size=40)
    ds = DatasetView(X, y)
    tree = build_tree(ds)
    assert np.array_equal(tree.predict(X), y)


def test_max_depth_one_gives_a_stump():
    ds = _blocks_dataset()
    tree = build_tree(ds, HyperparameterSet(max_depth=1))
    assert tree.n_leaves <= 2
    assert len(tree.internal_nodes()) <= 1
    assert tree.depth <= 1


def test_stump_on_separable_data():
    X = np.arange(10, dtype=float).reshape(-1, 1)
    y = np.array([0] * 5 + [1] * 5)
    tree = build_tree(DatasetView(X, y), HyperparameterSet(max_depth=1))
    assert tree.n_leaves == 2
    assert tree.root.threshold == pytest.approx(4.5)
    assert tree.root.gain == pytest.approx(0.5)
    assert list(tree.predict([[4.5], [4.6]])) == [0, 1]


def test_constant_features_give_single_leaf():
    X = np.ones((6, 2))
    y = [0, 1, 0, 1, 1, 1]
    tree = build_tree(DatasetView(X, y))
    assert tree.n_nodes == 1
    assert tree.root.prediction == 1


def test_single_class_gives_single_leaf():
    tree = build_tree(DatasetView(np.arange(5.0).reshape(-1, 1), ["x"] * 5))
    assert tree.n_nodes == 1
    assert tree.predict([[100.0]])[0] == "x"


def test_stopping_rules_hold_everywhere():
    ds = _random_dataset()
    params = HyperparameterSet(max_depth=4, min_samples_split=12, min_samples_leaf=5)
    tree = build_tree(ds, params)
    assert tree.depth <= 4
    for leaf in tree.leaves():
        assert leaf.n_samples >= 5
    for node in tree.internal_nodes():
        assert node.n_samples >= 12
        assert node.left.n_samples + node.right.n_samples == node.n_samples


def test_min_impurity_decrease_blocks_weak_splits():
    tree = build_tree(_blocks_dataset(), HyperparameterSet(min_impurity_decrease=1.0))
    assert tree.n_nodes == 1


def test_node_ids_are_preorder():
    tree = build_tree(_random_dataset())
    assert [n.node_id for n in tree] == list(range(tree.n_nodes))
    assert tree.get_node(0) is tree.root


def test_ties_prefer_lowest_feature_then_lowest_threshold():
    x = np.array([1.0, 2.0, 3.0, 4.0])
    ds = DatasetView(np.column_stack([x, x]), [0, 1, 1, 0])
    tree = build_tree(ds, HyperparameterSet(max_depth=1))
    assert tree.root.feature_index == 0
    # 1.5 and 3.5 reach the same gain
    assert tree.root.threshold == 1.5


def test_categorical_split_groups_categories():
    X = [["a"], ["b"], ["c"], ["a"], ["b"], ["c"]]
    y = [0, 1, 1, 0, 1, 1]
    ds = DatasetView(X, y, categorical_features=[0])
    tree = build_tree(ds)
    assert tree.root.split_type == "categorical"
    assert tree.root.threshold == frozenset({"a"})
    assert tree.n_leaves == 2
    assert list(tree.predict([["a"], ["b"], ["c"]])) == [0, 1, 1]


def test_unseen_category_goes_right():
    X = [["a"], ["b"], ["a"], ["b"]]
    ds = DatasetView(X, [0, 1, 0, 1], categorical_features=[0])
    tree = build_tree(ds)
    right = tree.root.right
    assert tree.predict([["zzz"]])[0] == right.prediction


def test_ordered_scan_above_category_cap():
    X = [["a"], ["b"], ["c"], ["a"], ["b"], ["c"]]
    ds = DatasetView(X, [0, 1, 1, 0, 1, 1], categorical_features=[0])
    tree = build_tree(ds, max_categories_exhaustive=2)
    assert tree.root.threshold == frozenset({"a"})


def test_regression_tree():
    X = np.arange(10, dtype=float).reshape(-1, 1)
    y = np.where(X[:, 0] > 4, 10.0, 0.0)
    ds = DatasetView(X, y, task="regression")
    tree = build_tree(ds, criterion="variance")
    assert tree.n_leaves == 2
    assert tree.root.threshold == pytest.approx(4.5)
    np.testing.assert_allclose(tree.predict([[0.0], [9.0]]), [0.0, 10.0])


def test_regression_tree_with_offset_targets():
    X = np.arange(20, dtype=float).reshape(-1, 1)
    y = 1e9 + (X[:, 0] > 9)
    tree = build_tree(DatasetView(X, y, task="regression"), criterion="variance")
    assert tree.n_leaves == 2
    assert tree.root.threshold == pytest.approx(9.5)
    assert tree.root.gain == pytest.approx(0.25)
    np.testing.assert_allclose(tree.predict([[0.0], [19.0]]), [1e9, 1e9 + 1])


def test_categorical_regression_split_with_offset_targets():
    X = [["a"], ["b"], ["c"]] * 4
    y = 1e9 + np.array([0.0, 1.0, 1.0] * 4)
    ds = DatasetView(X, y, categorical_features=[0], task="regression")
    tree = build_tree(ds, criterion="variance")
    assert tree.root.threshold == frozenset({"a"})
    assert tree.n_leaves == 2


def test_entropy_criterion():
    ds = _blocks_dataset()
    tree = build_tree(ds, criterion="entropy")
    assert tree.criterion == "entropy"
    assert np.array_equal(tree.predict(ds), ds.labels)


def test_empty_row_set_rejected():
    ds = _blocks_dataset()
    with pytest.raises(InvalidInputError):
        build_tree(ds.subset([]))


def test_criterion_must_match_task():
    with pytest.raises(InvalidInputError):
        build_tree(_blocks_dataset(), criterion="variance")


def test_builder_rejects_small_category_cap():
    with pytest.raises(InvalidInputError):
        TreeBuilder(max_categories_exhaustive=1)


def test_predict_checks_feature_count():
    tree = build_tree(_blocks_dataset())
    with pytest.raises(InvalidInputError):
        tree.predict([[1.0, 2.0]])


def test_predict_proba_rows_sum_to_one():
    ds = _random_dataset()
    tree = build_tree(ds, HyperparameterSet(max_depth=2))
    P = tree.predict_proba(ds)
    assert P.shape == (ds.n_rows, 2)
    np.testing.assert_allclose(P.sum(axis=1), 1.0)


def test_apply_returns_leaf_ids():
    ds = _random_dataset()
    tree = build_tree(ds, HyperparameterSet(max_depth=3))
    leaf_ids = {leaf.node_id for leaf in tree.leaves()}
    assert set(tree.apply(ds).tolist()) <= leaf_ids


def test_rules_and_text():
    X = [[1.0, "A"], [2.0, "A"], [3.0, "B"], [4.0, "B"]]
    ds = DatasetView(X, [0, 0, 1, 1], categorical_features=[1], feature_names=["x", "grp"])
    tree = build_tree(ds)
    rules = tree.export_rules(class_names=["no", "yes"])
    assert len(rules) == tree.n_leaves
    assert all("=>" in r for r in rules)
    assert rules[0].endswith("=> no")
    assert tree.trace_rule([1.0, "A"]) == "x <= 2.5000"
    assert "if x <= 2.5000:" in tree.export_text()
