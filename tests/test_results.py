import math

import pytest

from cartpy import (
    CandidateResult,
    EmptyCandidateSetError,
    GridPoint,
    HyperparameterSet,
    InvalidInputError,
    aggregate_scores,
    rank_candidates,
    select_best,
    top_n,
)

NAN = float("nan")


def _candidate(order, scores, greater_is_better=True):
    gp = GridPoint(order, (order,), HyperparameterSet(max_depth=order + 1))
    return CandidateResult.from_scores(gp, scores, greater_is_better)


def test_aggregate_drops_nan_folds():
    s = aggregate_scores([0.8, 0.9, NAN])
    assert s.n_valid == 2
    assert s.mean == pytest.approx(0.85)
    assert s.std == pytest.approx(0.0707106781)
    assert s.std_error == pytest.approx(0.05)


def test_aggregate_degenerate_inputs():
    s = aggregate_scores([NAN, NAN])
    assert s.n_valid == 0 and math.isnan(s.mean)
    s = aggregate_scores([0.7])
    assert s.mean == 0.7 and math.isnan(s.std)


def test_ranking_by_mean_then_spread_then_order():
    steady = _candidate(2, [0.75, 0.75, 0.75])
    noisy = _candidate(0, [0.5, 1.0, 0.75])
    steady_twin = _candidate(1, [0.75, 0.75, 0.75])
    best = _candidate(3, [0.875, 0.875, 0.875])
    ranked = rank_candidates([steady, noisy, steady_twin, best])
    assert [c.grid_point.order for c in ranked] == [3, 1, 2, 0]


def test_lower_is_better_ranking():
    ranked = rank_candidates([_candidate(0, [2.0, 2.0], False), _candidate(1, [1.0, 1.0], False)])
    assert ranked[0].grid_point.order == 1


def test_candidate_without_valid_folds_ranks_last():
    ranked = rank_candidates([_candidate(0, [NAN, NAN]), _candidate(1, [0.1, 0.1])])
    assert ranked[-1].grid_point.order == 0
    assert ranked[-1].n_valid_folds == 0


def test_single_valid_fold_ranks_behind_equal_mean():
    ranked = rank_candidates([_candidate(0, [0.5, NAN]), _candidate(1, [0.5, 0.5])])
    assert ranked[0].grid_point.order == 1


def test_select_best():
    best = select_best([_candidate(0, [0.6, 0.7]), _candidate(1, [0.9, 0.8])])
    assert best.grid_point.order == 1
    assert best.params.max_depth == 2


def test_select_best_on_empty_set_raises():
    with pytest.raises(EmptyCandidateSetError):
        select_best([])
    with pytest.raises(ValueError):
        select_best([])


def test_top_n():
    cands = [_candidate(i, [0.1 * i, 0.1 * i]) for i in range(5)]
    assert [c.grid_point.order for c in top_n(cands, 3)] == [4, 3, 2]
    assert len(top_n(cands, 10)) == 5
    assert top_n(cands, 0) == []
    with pytest.raises(EmptyCandidateSetError):
        top_n([], 2)
    with pytest.raises(InvalidInputError):
        top_n(cands, -1)
