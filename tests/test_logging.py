import numpy as np
from loguru import logger

from cartpy import DatasetView, build_tree, enable_logging, tune


def _dataset():
    X = np.arange(20, dtype=float).reshape(-1, 1)
    return DatasetView(X, np.arange(20) % 3 == 0)


def test_silent_by_default():
    messages = []
    handler_id = logger.add(messages.append, level="TRACE")
    try:
        build_tree(_dataset())
    finally:
        logger.remove(handler_id)
    assert not any("Built tree" in m for m in messages)


def test_enable_logging_routes_package_records():
    messages = []
    with enable_logging(level="DEBUG", sink=messages.append):
        build_tree(_dataset())
        logger.info("not from cartpy")
    assert any("Built tree" in m for m in messages)
    assert not any("not from cartpy" in m for m in messages)

    # disabled again once the handle is closed
    n = len(messages)
    build_tree(_dataset())
    assert len(messages) == n


def test_level_filters_debug_records():
    messages = []
    with enable_logging(level="INFO", sink=messages.append):
        tune(_dataset(), {"max_depth": [1, 2]}, k=2, seed=0)
    assert any("Tuning 2 grid points" in m for m in messages)
    assert any("Best accuracy" in m for m in messages)
    assert not any("Built tree" in m for m in messages)


def test_handle_disable_is_idempotent():
    handle = enable_logging(sink=lambda m: None)
    handle.disable()
    handle.disable()
    assert handle.handler_id is None
