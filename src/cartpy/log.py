"""Logging helpers for cartpy.

cartpy logs through loguru and is silent by default (the package logger is
disabled in ``cartpy/__init__.py``).  ``enable_logging`` switches it on and
routes the package's records to stderr::

    with enable_logging(level="DEBUG"):
        results = tune(dataset, grid, k=5)
"""

from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)


class LoggingHandle:
    """Handle for one handler added by :func:`enable_logging`.

    Call :meth:`disable` (or use the handle as a context manager) to remove
    the handler.  When the last active handle is disabled the package logger
    is disabled again.
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove the handler; a no-op when called twice."""
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()


def enable_logging(*, level: LogLevel = "INFO", sink=None) -> LoggingHandle:
    """Enable cartpy log output.

    Parameters
    ----------
    level : str, default="INFO"
        Minimum level to emit.  ``"DEBUG"`` reports every built tree and
        pruning path, which is noisy during a grid search.
    sink : file-like or callable, optional
        Destination passed to ``logger.add``.  Defaults to ``sys.stderr``.

    Returns
    -------
    LoggingHandle
        Handle that removes the handler on ``disable()`` or context exit.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr if sink is None else sink,
        level=level,
        filter=_is_cartpy_record,
        format=_FORMAT,
    )
    return LoggingHandle(handler_id)


def _is_cartpy_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
