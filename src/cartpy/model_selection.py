# -*- coding: utf-8 -*-
"""
cartpy.model_selection
======================

K-fold splitting and hyperparameter grids.

``kfold_split`` assigns every row to exactly one validation block; the
training set of a fold is the concatenation of the other blocks.
``ParameterGrid`` enumerates :class:`~cartpy.params.HyperparameterSet`
objects either as a Cartesian product (first parameter varies slowest) or
from a caller-curated list of points.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, NamedTuple, Sequence

import numpy as np

from .dataset import CLASSIFICATION, DatasetView
from .exceptions import InvalidInputError
from .params import HyperparameterSet


# -----------------------------------------------------------------------------
# Folds
# -----------------------------------------------------------------------------
class Fold(NamedTuple):
    """Row indices of one cross-validation fold."""

    index: int
    train_indices: np.ndarray
    validation_indices: np.ndarray


def kfold_split(dataset: DatasetView, k: int, seed: int | None = None,
                stratify: bool = False) -> list[Fold]:
    """
    Partition the rows of ``dataset`` into ``k`` folds.

    Parameters
    ----------
    dataset : DatasetView
    k : int
        Number of folds, ``2 <= k <= dataset.n_rows``.
    seed : int, optional
        Seed of the shuffle.  The same ``(dataset, k, seed, stratify)``
        always yields the same folds.
    stratify : bool, default=False
        Keep class proportions near-equal across validation blocks
        (classification datasets only).  Rows of each class are shuffled
        separately, then the class lists are dealt round-robin into the
        blocks.

    Returns
    -------
    list[Fold]
        ``k`` folds; validation block sizes differ by at most one.
    """
    n = dataset.n_rows if isinstance(dataset, DatasetView) else len(dataset)
    k = _check_k(k, n)
    rng = np.random.default_rng(seed)

    if stratify:
        if not isinstance(dataset, DatasetView) or dataset.task != CLASSIFICATION:
            raise InvalidInputError("stratified folds require a classification dataset")
        codes = dataset.codes
        per_class = [rng.permutation(np.flatnonzero(codes == c))
                     for c in range(dataset.n_classes)]
        dealt = np.concatenate(per_class)
        blocks = [dealt[i::k] for i in range(k)]
    else:
        blocks = np.array_split(rng.permutation(n), k)

    folds = []
    for i in range(k):
        train = np.concatenate([b for j, b in enumerate(blocks) if j != i])
        folds.append(Fold(i, train.astype(np.intp), np.asarray(blocks[i], dtype=np.intp)))
    return folds


def _check_k(k, n: int) -> int:
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidInputError(f"k must be an integer, got {k!r}")
    if k < 2:
        raise InvalidInputError(f"k must be >= 2, got {k}")
    if k > n:
        raise InvalidInputError(f"k={k} folds need at least {k} rows, dataset has {n}")
    return int(k)


# -----------------------------------------------------------------------------
# Grid
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class GridPoint:
    """One hyperparameter combination and its position in the grid.

    Attributes
    ----------
    order : int
        Insertion position; the final tie-breaker when ranking.
    coordinates : tuple of int
        Position of each value in its parameter list (product grids), or
        ``(order,)`` for manual grids.
    params : HyperparameterSet
    """

    order: int
    coordinates: tuple
    params: HyperparameterSet


class ParameterGrid:
    """
    Grid of hyperparameter combinations.

    Parameters
    ----------
    param_grid : mapping of str to sequence
        Candidate values per hyperparameter.  The grid is their Cartesian
        product in lexicographic order, the first parameter varying
        slowest.  Hyperparameters not named keep their defaults.

    Examples
    --------
    >>> grid = ParameterGrid({"max_depth": [2, 4], "min_samples_leaf": [1, 5, 10]})
    >>> len(grid)
    6
    >>> grid[1].params.max_depth, grid[1].params.min_samples_leaf
    (2, 5)
    """

    def __init__(self, param_grid: Mapping[str, Sequence[Any]]):
        if not isinstance(param_grid, Mapping):
            raise InvalidInputError("param_grid must be a mapping of name -> values")
        if not param_grid:
            raise InvalidInputError("param_grid is empty")
        names = list(param_grid)
        unknown = set(names) - set(HyperparameterSet.names())
        if unknown:
            raise InvalidInputError(
                f"unknown hyperparameters {sorted(unknown)}; "
                f"expected a subset of {HyperparameterSet.names()}")
        values = []
        for name in names:
            v = param_grid[name]
            if isinstance(v, (str, bytes)) or not isinstance(v, Iterable):
                raise InvalidInputError(f"values for {name!r} must be a sequence")
            v = list(v)
            if not v:
                raise InvalidInputError(f"no candidate values for {name!r}")
            values.append(v)

        self.names = tuple(names)
        self.shape = tuple(len(v) for v in values)
        points = []
        for order, coords in enumerate(itertools.product(*(range(s) for s in self.shape))):
            combo = {name: values[i][c] for i, (name, c) in enumerate(zip(names, coords))}
            points.append(GridPoint(order, tuple(coords), HyperparameterSet(**combo)))
        self._points = tuple(points)

    @classmethod
    def from_points(cls, points: Iterable, names: Sequence[str] | None = None) -> ParameterGrid:
        """
        Build a grid from pre-paired points, bypassing the Cartesian product.

        Parameters
        ----------
        points : iterable
            Each point is a mapping of hyperparameter values, a
            :class:`HyperparameterSet`, or (when ``names`` is given) a tuple
            of values in ``names`` order.
        names : sequence of str, optional
            Hyperparameter names for tuple points.
        """
        out = []
        for order, point in enumerate(points):
            if isinstance(point, HyperparameterSet):
                params = point
            elif isinstance(point, Mapping):
                params = HyperparameterSet.from_mapping(point)
            elif names is not None:
                point = tuple(point)
                if len(point) != len(names):
                    raise InvalidInputError(
                        f"point {order} has {len(point)} values, expected {len(names)}")
                params = HyperparameterSet.from_mapping(dict(zip(names, point)))
            else:
                raise InvalidInputError(
                    "tuple points need `names`; pass mappings or HyperparameterSet objects")
            out.append(GridPoint(order, (order,), params))
        if not out:
            raise InvalidInputError("grid has no points")
        grid = cls.__new__(cls)
        grid.names = tuple(names) if names is not None else HyperparameterSet.names()
        grid.shape = (len(out),)
        grid._points = tuple(out)
        return grid

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[GridPoint]:
        return iter(self._points)

    def __getitem__(self, i: int) -> GridPoint:
        return self._points[i]

    def __repr__(self) -> str:
        return f"ParameterGrid(names={self.names}, shape={self.shape})"


def as_grid(grid) -> ParameterGrid:
    """Coerce a grid, a mapping of value lists, or a sequence of points."""
    if isinstance(grid, ParameterGrid):
        return grid
    if isinstance(grid, Mapping):
        return ParameterGrid(grid)
    if isinstance(grid, (str, bytes)) or not isinstance(grid, Iterable):
        raise InvalidInputError(f"cannot build a grid from {type(grid).__name__}")
    return ParameterGrid.from_points(grid)
