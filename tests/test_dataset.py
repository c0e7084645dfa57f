import numpy as np
import pytest

from cartpy import DatasetView, InvalidInputError


def _mixed_rows():
    X = [[1.0, "A"], [2.0, "A"], [3.0, "B"], [4.0, "B"]]
    y = [0, 0, 1, 1]
    return X, y


def test_schema_from_rows():
    X, y = _mixed_rows()
    ds = DatasetView(X, y, categorical_features=["cat"], feature_names=["num", "cat"])
    assert ds.n_rows == 4
    assert ds.n_features == 2
    assert ds.feature_types == ("numeric", "categorical")
    assert ds.feature_names == ("num", "cat")
    assert ds.task == "classification"
    assert list(ds.classes) == [0, 1]
    assert list(ds.codes) == [0, 0, 1, 1]
    assert ds.column(0).dtype == float
    assert ds.row(2) == (3.0, "B")


def test_categorical_by_index_and_inferred():
    X, y = _mixed_rows()
    assert DatasetView(X, y, categorical_features=[1]).is_categorical(1)
    assert DatasetView(X, y, infer_categorical=True).feature_types == ("numeric", "categorical")


def test_arrays_are_read_only():
    ds = DatasetView(np.arange(6.0).reshape(3, 2), [0, 1, 0])
    with pytest.raises(ValueError):
        ds.column(0)[0] = 10.0
    with pytest.raises(ValueError):
        ds.labels[0] = 1


@pytest.mark.parametrize("X, y", [
    ([], []),
    ([[], []], [0, 1]),
    ([[1.0, 2.0], [3.0]], [0, 1]),
    ([[1.0], [2.0]], [0, 1, 1]),
    ([[1.0], [float("nan")]], [0, 1]),
    ([["x"], [2.0]], [0, 1]),
])
def test_invalid_input(X, y):
    with pytest.raises(InvalidInputError):
        DatasetView(X, y)


def test_missing_category_rejected():
    with pytest.raises(InvalidInputError):
        DatasetView([["A"], [None]], [0, 1], categorical_features=[0])


def test_unknown_categorical_name_rejected():
    with pytest.raises(InvalidInputError):
        DatasetView([[1.0]], [0], categorical_features=["nope"])


def test_invalid_input_is_a_value_error():
    with pytest.raises(ValueError):
        DatasetView([], [])


def test_task_inference():
    X = [[1.0], [2.0], [3.0]]
    assert DatasetView(X, [0.5, 1.5, 2.0]).task == "regression"
    assert DatasetView(X, [0, 1, 1]).task == "classification"
    assert DatasetView(X, ["no", "yes", "no"]).task == "classification"
    assert DatasetView(X, [0, 1, 1], task="regression").task == "regression"


def test_subset_keeps_schema_and_classes():
    X, y = _mixed_rows()
    ds = DatasetView(X, y, categorical_features=[1])
    sub = ds.subset([0, 1])
    assert sub.n_rows == 2
    assert list(sub.classes) == [0, 1]
    assert list(sub.codes) == [0, 0]
    assert sub.feature_types == ds.feature_types
    assert ds.subset([]).n_rows == 0


def test_whole_number_float_targets_need_explicit_task():
    X = [[1.0], [2.0], [3.0]]
    prices = [250000.0, 310000.0, 275000.0]
    assert DatasetView(X, prices).task == "classification"
    ds = DatasetView(X, prices, task="regression")
    assert ds.task == "regression"
    assert ds.classes is None
    assert ds.targets.dtype == float
