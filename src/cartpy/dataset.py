# -*- coding: utf-8 -*-
"""
cartpy.dataset
==============

Immutable, columnar view over a tabular dataset.

A :class:`DatasetView` holds one array per feature plus the label vector.
Numeric columns are stored as ``float64``; categorical columns keep their
original values in an ``object`` array.  The schema (arity, feature types,
label task and, for classification, the class list) is validated once at
construction and never changes afterwards.  Every array is flagged
read-only so the view can be shared between workers without copying or
locking.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import numpy as np

from .exceptions import InvalidInputError

NUMERIC = "numeric"
CATEGORICAL = "categorical"

CLASSIFICATION = "classification"
REGRESSION = "regression"


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _isnan_scalar(v) -> bool:
    return (v is None) or (isinstance(v, (float, np.floating)) and bool(np.isnan(v)))


def _readonly(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


def _as_matrix(X) -> np.ndarray:
    """Turn ``X`` into a 2-D object matrix, checking row arity."""
    if hasattr(X, "to_numpy") and hasattr(X, "columns"):
        X = X.to_numpy(dtype=object)
    if isinstance(X, np.ndarray):
        M = X
    else:
        rows = [list(r) for r in X]
        if rows:
            arity = len(rows[0])
            for i, r in enumerate(rows):
                if len(r) != arity:
                    raise InvalidInputError(
                        f"row {i} has {len(r)} feature values, expected {arity}")
        M = np.empty((len(rows), len(rows[0]) if rows else 0), dtype=object)
        for i, r in enumerate(rows):
            M[i, :] = r
    if M.ndim == 1 and M.size == 0:
        M = M.reshape(0, 0)
    if M.ndim != 2:
        raise InvalidInputError(f"X must be 2-dimensional, got shape {M.shape}")
    return M


def _column_names(X, n_features: int, feature_names) -> list[str]:
    if feature_names is not None:
        names = [str(n) for n in feature_names]
        if len(names) != n_features:
            raise InvalidInputError(
                f"feature_names has {len(names)} entries, expected {n_features}")
        return names
    if hasattr(X, "columns"):
        return [str(c) for c in X.columns]
    return [f"f{i}" for i in range(n_features)]


def _resolve_categorical(categorical_features, names: list[str], M: np.ndarray,
                         infer_categorical: bool) -> list[bool]:
    n_features = M.shape[1]
    is_cat = [False] * n_features
    if categorical_features is not None:
        name_to_idx = {n: i for i, n in enumerate(names)}
        for c in categorical_features:
            if isinstance(c, str):
                if c not in name_to_idx:
                    raise InvalidInputError(f"unknown categorical feature {c!r}")
                is_cat[name_to_idx[c]] = True
            else:
                j = int(c)
                if not 0 <= j < n_features:
                    raise InvalidInputError(
                        f"categorical feature index {j} out of range [0, {n_features})")
                is_cat[j] = True
    if infer_categorical:
        for j in range(n_features):
            if is_cat[j]:
                continue
            col = M[:, j]
            if col.dtype.kind in "OUSb":
                # consider strings/bools as categorical
                if any(isinstance(v, (str, bool, np.bool_)) for v in col):
                    is_cat[j] = True
    return is_cat


# -----------------------------------------------------------------------------
# Dataset view
# -----------------------------------------------------------------------------
class DatasetView:
    """Read-only columnar dataset consumed by the tree builder and the tuner.

    Parameters
    ----------
    X : array-like of shape (n_rows, n_features) or sequence of rows
        Feature values.  Objects exposing ``columns`` and ``to_numpy`` (e.g.
        a pandas DataFrame) are accepted; their column names are used as
        feature names.
    y : array-like of shape (n_rows,)
        Labels: class labels for classification, real targets for regression.
    categorical_features : sequence of int or str, optional
        Indices or names of categorical columns.  All others are numeric.
    feature_names : sequence of str, optional
        Column names used in rule exports and to resolve
        ``categorical_features`` given by name.
    task : {"classification", "regression"}, optional
        Label task.  When omitted it is inferred: a floating-point label
        vector with non-integral values is a regression target, anything
        else is a class label.  Float targets that happen to be whole
        numbers (prices, counts) are therefore read as classes; pass
        ``task="regression"`` for them.
    infer_categorical : bool, default=False
        Mark columns holding strings or booleans as categorical.

    Raises
    ------
    InvalidInputError
        For empty data, zero features, ragged rows, a label vector of the
        wrong length, missing values or non-numeric values in a numeric
        column.

    Examples
    --------
    >>> DatasetView([[1.0], [2.0]], [0.0, 1.0]).task
    'classification'
    >>> DatasetView([[1.0], [2.0]], [250000.0, 310000.0], task="regression").task
    'regression'
    """

    def __init__(self, X, y, *, categorical_features: Iterable[int | str] | None = None,
                 feature_names: Sequence[str] | None = None, task: str | None = None,
                 infer_categorical: bool = False):
        M = _as_matrix(X)
        n_rows, n_features = M.shape
        if n_rows == 0:
            raise InvalidInputError("dataset has no rows")
        if n_features == 0:
            raise InvalidInputError("dataset has no features")
        labels = np.asarray(y)
        if labels.ndim != 1:
            raise InvalidInputError(f"y must be 1-dimensional, got shape {labels.shape}")
        if labels.shape[0] != n_rows:
            raise InvalidInputError(
                f"y has {labels.shape[0]} labels but X has {n_rows} rows")

        names = _column_names(X, n_features, feature_names)
        is_cat = _resolve_categorical(categorical_features, names, M, infer_categorical)

        columns = []
        for j in range(n_features):
            col = M[:, j]
            if is_cat[j]:
                values = np.empty(n_rows, dtype=object)
                values[:] = list(col)
                if any(_isnan_scalar(v) for v in values):
                    raise InvalidInputError(f"feature {names[j]!r} has missing values")
            else:
                try:
                    values = np.array(col, dtype=float)
                except (TypeError, ValueError) as exc:
                    raise InvalidInputError(
                        f"feature {names[j]!r} is declared numeric but holds "
                        f"non-numeric values") from exc
                if not np.all(np.isfinite(values)):
                    raise InvalidInputError(
                        f"feature {names[j]!r} has missing or infinite values")
            columns.append(_readonly(values))

        task = task if task is not None else _infer_task(labels)
        if task == CLASSIFICATION:
            if any(_isnan_scalar(v) for v in labels.tolist()):
                raise InvalidInputError("y has missing labels")
            classes, codes = np.unique(labels, return_inverse=True)
            self._classes = _readonly(classes)
            self._codes = _readonly(codes.astype(np.intp).reshape(-1))
            self._labels = _readonly(labels.copy())
        elif task == REGRESSION:
            try:
                target = np.array(labels, dtype=float)
            except (TypeError, ValueError) as exc:
                raise InvalidInputError("regression targets must be numeric") from exc
            if not np.all(np.isfinite(target)):
                raise InvalidInputError("y has missing or infinite targets")
            self._classes = None
            self._codes = None
            self._labels = _readonly(target)
        else:
            raise InvalidInputError(
                f"task must be 'classification' or 'regression', got {task!r}")

        self._task = task
        self._columns = tuple(columns)
        self._feature_types = tuple(CATEGORICAL if c else NUMERIC for c in is_cat)
        self._feature_names = tuple(names)

    @classmethod
    def _from_parts(cls, columns, labels, codes, classes, feature_types,
                    feature_names, task) -> DatasetView:
        view = cls.__new__(cls)
        view._columns = tuple(columns)
        view._labels = labels
        view._codes = codes
        view._classes = classes
        view._feature_types = feature_types
        view._feature_names = feature_names
        view._task = task
        return view

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------
    @property
    def n_rows(self) -> int:
        return int(self._labels.shape[0])

    @property
    def n_features(self) -> int:
        return len(self._columns)

    @property
    def feature_types(self) -> tuple[str, ...]:
        return self._feature_types

    @property
    def feature_names(self) -> tuple[str, ...]:
        return self._feature_names

    @property
    def task(self) -> str:
        return self._task

    @property
    def classes(self) -> np.ndarray | None:
        """Sorted class labels (classification only)."""
        return self._classes

    @property
    def n_classes(self) -> int:
        return 0 if self._classes is None else int(self._classes.shape[0])

    def is_categorical(self, j: int) -> bool:
        return self._feature_types[j] == CATEGORICAL

    def __len__(self) -> int:
        return self.n_rows

    def __repr__(self) -> str:
        return (f"DatasetView(n_rows={self.n_rows}, n_features={self.n_features}, "
                f"task={self._task!r})")

    # ------------------------------------------------------------------
    # Data access
    # ------------------------------------------------------------------
    def column(self, j: int) -> np.ndarray:
        return self._columns[j]

    @property
    def labels(self) -> np.ndarray:
        """Raw labels (class labels, or float targets for regression)."""
        return self._labels

    @property
    def codes(self) -> np.ndarray | None:
        """Integer class codes indexing :attr:`classes` (classification only)."""
        return self._codes

    @property
    def targets(self) -> np.ndarray:
        """Labels in the form the criteria consume: codes or float targets."""
        return self._codes if self._task == CLASSIFICATION else self._labels

    def subset(self, indices) -> DatasetView:
        """Return a view over ``indices`` keeping this view's schema and classes."""
        idx = np.asarray(indices, dtype=np.intp)
        if idx.ndim != 1:
            raise InvalidInputError("subset indices must be 1-dimensional")
        columns = [_readonly(c[idx]) for c in self._columns]
        codes = None if self._codes is None else _readonly(self._codes[idx])
        return DatasetView._from_parts(
            columns, _readonly(self._labels[idx]), codes, self._classes,
            self._feature_types, self._feature_names, self._task)

    def row(self, i: int) -> tuple[Any, ...]:
        return tuple(c[i] for c in self._columns)


def _infer_task(labels: np.ndarray) -> str:
    if labels.dtype.kind == "f":
        finite = labels[np.isfinite(labels)]
        if finite.size and np.any(finite != np.round(finite)):
            return REGRESSION
    return CLASSIFICATION
