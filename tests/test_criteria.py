import numpy as np
import pytest

from cartpy import Entropy, Gini, InvalidInputError, Variance, get_criterion, split_gain
from cartpy.criteria import Criterion


@pytest.mark.parametrize("criterion", [Gini(), Entropy()])
def test_pure_set_has_zero_impurity(criterion):
    assert criterion([1, 1, 1, 1]) == 0.0
    assert criterion(["a"]) == 0.0
    assert criterion([]) == 0.0


def test_variance_of_constant_target_is_zero():
    assert Variance()([2.5, 2.5, 2.5]) == 0.0
    assert Variance()([1.0, 2.0, 3.0]) == pytest.approx(2.0 / 3.0)


def test_known_values():
    assert Gini()([0, 1]) == pytest.approx(0.5)
    assert Entropy()([0, 1]) == pytest.approx(1.0)
    assert Gini()([0, 0, 1, 1, 2, 2]) == pytest.approx(2.0 / 3.0)
    assert Entropy()([0, 0, 1, 1, 2, 2]) == pytest.approx(np.log2(3))


@pytest.mark.parametrize("criterion", [Gini(), Entropy()])
def test_balanced_set_maximises_impurity(criterion):
    balanced = criterion([0, 1, 0, 1])
    assert balanced > criterion([0, 0, 0, 1])
    assert balanced > criterion([0, 0, 0, 0, 0, 1])
    # uniform over three classes beats any skewed three-class set
    assert criterion([0, 1, 2]) > criterion([0, 0, 1, 2])


def test_impurity_is_vectorised_over_stats():
    stats = np.array([[2.0, 2.0], [4.0, 0.0], [0.0, 0.0]])
    np.testing.assert_allclose(Gini().impurity(stats), [0.5, 0.0, 0.0])


def test_variance_stats_match_direct_computation():
    y = np.array([1.0, 4.0, 2.0, 8.0])
    v = Variance()
    assert float(v.impurity(v.node_stats(y))) == pytest.approx(np.var(y))
    P = v.prefix_stats(y)
    assert float(v.impurity(P[1])) == pytest.approx(np.var(y[:2]))


def test_variance_stats_with_large_offset():
    y = 1e9 + np.array([1.0, 4.0, 2.0, 8.0])
    v = Variance()
    P = v.prefix_stats(y)
    assert float(v.impurity(P[-1])) == pytest.approx(np.var(y))
    assert float(v.impurity(P[1])) == pytest.approx(np.var(y[:2]))
    assert float(v.impurity(v.node_stats(v.center(y)))) == pytest.approx(np.var(y))


def test_offset_split_gain_matches_centered_targets():
    y_sorted = 1e9 + np.array([0.0] * 10 + [1.0] * 10)
    v = Variance()
    P = v.prefix_stats(y_sorted)
    gain = split_gain(v, P[-1], P[9], P[-1] - P[9])
    assert gain == pytest.approx(0.25)


def test_incomplete_criterion_cannot_be_instantiated():
    class OnlyImpurity(Criterion):
        def impurity(self, stats):
            return 0.0

    with pytest.raises(TypeError):
        OnlyImpurity()


def test_split_gain_is_weighted():
    g = Gini()
    assert split_gain(g, np.array([2.0, 2.0]), np.array([2.0, 0.0]), np.array([0.0, 2.0])) \
        == pytest.approx(0.5)
    # parent 3:1, left holds one row of class 0
    gain = split_gain(g, np.array([3.0, 1.0]), np.array([1.0, 0.0]), np.array([2.0, 1.0]))
    assert gain == pytest.approx(0.375 - 0.75 * 4.0 / 9.0)


def test_split_gain_accepts_many_candidates():
    g = Entropy()
    parent = np.array([2.0, 2.0])
    left = np.array([[1.0, 0.0], [2.0, 0.0]])
    gains = split_gain(g, parent, left, parent - left)
    assert gains.shape == (2,)
    assert gains[1] == pytest.approx(1.0)
    assert gains[0] < gains[1]


def test_get_criterion():
    assert isinstance(get_criterion("gini"), Gini)
    assert isinstance(get_criterion("Entropy"), Entropy)
    assert isinstance(get_criterion(Variance), Variance)
    crit = Gini()
    assert get_criterion(crit) is crit
    with pytest.raises(InvalidInputError):
        get_criterion("log_loss")
