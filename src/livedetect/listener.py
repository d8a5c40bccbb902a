from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Protocol

from livedetect.detectors.base import DetectionResult

logger = logging.getLogger("livedetect.listener")


class ErrorKind(Enum):
    INIT = "init"
    NOT_READY = "not_ready"
    FRAME = "frame"

    @property
    def fatal(self) -> bool:
        return self is ErrorKind.INIT


class DetectorListener(Protocol):
    def on_initialized(self) -> None:
        ...

    def on_error(self, message: str, kind: ErrorKind) -> None:
        ...

    def on_results(self, result: DetectionResult) -> None:
        ...


class DetectionStateHolder:
    """Last-write-wins mirror of pipeline events for a display layer."""

    def __init__(self, on_change: Callable[["DetectionStateHolder"], None] | None = None) -> None:
        self._lock = threading.Lock()
        self._initialized = False
        self._results = DetectionResult()
        self._last_error: tuple[str, ErrorKind] | None = None
        self._results_seen = 0
        self._on_change = on_change

    @property
    def is_initialized(self) -> bool:
        with self._lock:
            return self._initialized

    @property
    def results(self) -> DetectionResult:
        with self._lock:
            return self._results

    @property
    def last_error(self) -> tuple[str, ErrorKind] | None:
        with self._lock:
            return self._last_error

    @property
    def results_seen(self) -> int:
        with self._lock:
            return self._results_seen

    def on_initialized(self) -> None:
        with self._lock:
            self._initialized = True
        self._changed()

    def on_error(self, message: str, kind: ErrorKind) -> None:
        logger.log(logging.ERROR if kind.fatal else logging.WARNING, message)
        with self._lock:
            self._last_error = (message, kind)
        self._changed()

    def on_results(self, result: DetectionResult) -> None:
        with self._lock:
            self._results = result
            self._results_seen += 1
        self._changed()

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self)
