from __future__ import annotations

import ctypes.util
import logging
import os
import platform
import threading
from concurrent.futures import Future
from typing import Callable, Sequence

from livedetect.detectors.base import AccelerationCapability

logger = logging.getLogger("livedetect.capability")

GpuCheck = Callable[[], bool]


def mediapipe_gpu_available() -> bool:
    if os.environ.get("MEDIAPIPE_DISABLE_GPU", "").strip().lower() in {"1", "true", "yes"}:
        return False
    system = platform.system()
    if system == "Darwin":
        return True
    if system == "Windows":
        # MediaPipe Tasks ships no GPU delegate for Windows.
        return False
    return ctypes.util.find_library("EGL") is not None and ctypes.util.find_library("GLESv2") is not None


def torch_gpu_available() -> bool:
    import torch

    if torch.cuda.is_available():
        return True
    mps = getattr(torch.backends, "mps", None)
    return bool(mps is not None and mps.is_available())


DEFAULT_CHECKS: dict[str, tuple[GpuCheck, ...]] = {
    "mediapipe": (mediapipe_gpu_available,),
    "yolo": (torch_gpu_available,),
}


class CapabilityProber:
    """Best-effort GPU probe; never raises, computed once."""

    def __init__(self, checks: Sequence[GpuCheck] | None = None, backend: str = "mediapipe") -> None:
        if checks is None:
            checks = DEFAULT_CHECKS.get(backend.lower(), ())
        self._checks = tuple(checks)
        self._lock = threading.Lock()
        self._result: AccelerationCapability | None = None

    def probe(self) -> AccelerationCapability:
        with self._lock:
            if self._result is None:
                self._result = self._run_checks()
                logger.info("Acceleration capability: %s", self._result.name)
            return self._result

    def probe_async(self) -> "Future[AccelerationCapability]":
        future: Future[AccelerationCapability] = Future()

        def worker() -> None:
            future.set_result(self.probe())

        threading.Thread(target=worker, name="capability-probe", daemon=True).start()
        return future

    def _run_checks(self) -> AccelerationCapability:
        for check in self._checks:
            name = getattr(check, "__name__", repr(check))
            try:
                if check():
                    return AccelerationCapability.GPU_CAPABLE
            except Exception as e:
                logger.warning("GPU capability check %s failed, assuming CPU only: %s", name, e)
        return AccelerationCapability.CPU_ONLY
