from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, TypeVar

logger = logging.getLogger("livedetect.scheduler")

T = TypeVar("T")


class InferenceScheduler(Generic[T]):
    """One worker thread; a newer submit replaces a pending item that has not started."""

    def __init__(self, handler: Callable[[T], None], name: str = "inference-worker") -> None:
        self._handler = handler
        self._name = name
        self._cond = threading.Condition()
        self._pending: T | None = None
        self._busy = False
        self._started = False
        self._closed = False
        self._thread: threading.Thread | None = None
        self._exited = False
        self._on_stopped: list[Callable[[], None]] = []

        self.delivered = 0
        self.processed = 0
        self.superseded = 0

    @property
    def running(self) -> bool:
        return self._started and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> bool:
        """Open the gate and start the worker. Returns False once shut down."""
        with self._cond:
            if self._closed:
                return False
            if self._started:
                return True
            self._started = True
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
            return True

    def submit(self, item: T) -> bool:
        with self._cond:
            if self._closed:
                return False
            if self._pending is not None:
                self.superseded += 1
            self._pending = item
            self.delivered += 1
            self._cond.notify_all()
            return True

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or in flight. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._closed or (not self._busy and (self._pending is None or not self._started)),
                timeout=timeout,
            )

    def shutdown(self, timeout: float | None = None) -> bool:
        """Stop accepting items, drop the pending one and let the in-flight item finish.

        Returns True once the worker has exited (or never started).
        """
        with self._cond:
            if self._pending is not None:
                self.superseded += 1
            self._pending = None
            self._closed = True
            self._cond.notify_all()
            thread = self._thread

        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("%s still busy after shutdown request", self._name)
            return False
        return True

    def call_when_stopped(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on the worker after its last item, or now if it already exited."""
        with self._cond:
            if self._thread is not None and not self._exited:
                self._on_stopped.append(callback)
                return
        callback()

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._closed or self._pending is not None)
                if self._closed:
                    self._exited = True
                    callbacks, self._on_stopped = self._on_stopped, []
                    break
                item = self._pending
                self._pending = None
                self._busy = True

            try:
                self._handler(item)
            except Exception:
                logger.exception("Unhandled error in %s handler", self._name)
            finally:
                with self._cond:
                    self._busy = False
                    self.processed += 1
                    self._cond.notify_all()

        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("%s stop callback failed", self._name)
        logger.debug("%s stopped", self._name)
