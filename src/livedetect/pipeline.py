from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable

from livedetect.config import DetectorConfig
from livedetect.detectors.base import AccelerationCapability, BaseObjectDetector
from livedetect.detectors.capability import CapabilityProber
from livedetect.detectors.factory import initialize_detector
from livedetect.errors import FrameError, NotReadyError
from livedetect.frames import Frame, FramePreprocessor
from livedetect.listener import DetectorListener, ErrorKind
from livedetect.scheduler import InferenceScheduler

logger = logging.getLogger("livedetect.pipeline")

DetectorFactory = Callable[[DetectorConfig, AccelerationCapability], BaseObjectDetector]


class PipelineState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class DetectionPipeline:
    """Camera frames in, ranked detections out, via a single worker thread."""

    def __init__(
        self,
        config: DetectorConfig,
        listener: DetectorListener,
        prober: CapabilityProber | None = None,
        detector_factory: DetectorFactory | None = None,
        autostart: bool = True,
    ) -> None:
        self.config = config
        self.listener = listener
        self.prober = prober or CapabilityProber(backend=config.backend)
        self._detector_factory = detector_factory or initialize_detector

        self._lock = threading.Lock()
        self._state = PipelineState.UNINITIALIZED
        self._settled = threading.Event()
        self._shutdown = False
        self._init_thread: threading.Thread | None = None
        self._detector: BaseObjectDetector | None = None
        self._preprocessor: FramePreprocessor | None = None
        self.capability: AccelerationCapability | None = None

        self.scheduler: InferenceScheduler[Frame] = InferenceScheduler(self.process_frame)

        if autostart:
            self.start()

    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    @property
    def detector(self) -> BaseObjectDetector | None:
        return self._detector

    def start(self) -> None:
        with self._lock:
            if self._state is not PipelineState.UNINITIALIZED:
                return
            self._state = PipelineState.INITIALIZING
        self._init_thread = threading.Thread(target=self._initialize, name="detector-init", daemon=True)
        self._init_thread.start()

    def wait_until_initialized(self, timeout: float | None = None) -> PipelineState:
        self._settled.wait(timeout)
        return self.state

    def on_frame(self, frame: Frame) -> bool:
        """Hand a frame over; replaces any frame that has not started processing.

        Returns False when the frame was refused (pipeline failed or shut down).
        """
        with self._lock:
            if self._shutdown or self._state is PipelineState.FAILED:
                return False
        return self.scheduler.submit(frame)

    def wait_idle(self, timeout: float | None = None) -> bool:
        return self.scheduler.wait_idle(timeout)

    def process_frame(self, frame: Frame) -> None:
        """Preprocess and detect one frame, reporting the outcome to the listener."""
        with self._lock:
            state = self._state
            detector = self._detector
            preprocessor = self._preprocessor

        if state is not PipelineState.READY or detector is None or preprocessor is None:
            status = "shut down" if self._shutdown else state.value
            err = NotReadyError(f"Frame {frame.frame_id} dropped: detector is {status}")
            logger.warning("%s", err)
            self._notify_error(str(err), ErrorKind.NOT_READY)
            return

        try:
            tensor = preprocessor.prepare(frame)
            result = detector.detect(tensor)
        except NotReadyError as e:
            self._notify_error(f"Frame {frame.frame_id} dropped: {e}", ErrorKind.NOT_READY)
            return
        except FrameError as e:
            self._notify_error(f"Frame {frame.frame_id} rejected: {e}", ErrorKind.FRAME)
            return
        except Exception as e:
            logger.exception("Detection failed on frame %s", frame.frame_id)
            self._notify_error(f"Frame {frame.frame_id} detection failed: {e}", ErrorKind.FRAME)
            return

        logger.debug(
            "Frame %s: %d detection(s) in %.1f ms", frame.frame_id, len(result), result.latency_ms
        )
        self._notify("on_results", result)

    def shutdown(self, timeout: float | None = None) -> None:
        """Stop accepting frames, let any in-flight detection finish, release the detector."""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True

        stopped = self.scheduler.shutdown(timeout)

        with self._lock:
            detector = self._detector
            self._detector = None
        if detector is None:
            return
        if stopped:
            self._release(detector)
        else:
            logger.info("Detector will be released after the in-flight frame")
            self.scheduler.call_when_stopped(lambda: self._release(detector))

    @staticmethod
    def _release(detector: BaseObjectDetector) -> None:
        detector.close()
        logger.info("Detector released")

    def __enter__(self) -> "DetectionPipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _initialize(self) -> None:
        try:
            self.capability = self.prober.probe()
        except Exception as e:
            logger.warning("Capability probe failed, assuming CPU only: %s", e)
            self.capability = AccelerationCapability.CPU_ONLY

        try:
            detector = self._detector_factory(self.config, self.capability)
        except Exception as e:
            self._fail(f"Detector failed to initialize: {e}")
            return

        with self._lock:
            if self._shutdown:
                detector.close()
                self._settled.set()
                return
            self._detector = detector
            self._preprocessor = FramePreprocessor(detector.input_color_order)
            self._state = PipelineState.READY

        logger.info(
            "Pipeline ready (backend=%s, capability=%s, gpu=%s)",
            self.config.backend,
            self.capability.name,
            detector.use_gpu,
        )
        self._notify("on_initialized")
        if not self.scheduler.start():
            logger.debug("Pipeline shut down before the worker started")
        self._settled.set()

    def _fail(self, message: str) -> None:
        with self._lock:
            self._state = PipelineState.FAILED
        logger.error("%s", message)
        self.scheduler.shutdown()
        self._notify_error(message, ErrorKind.INIT)
        self._settled.set()

    def _notify_error(self, message: str, kind: ErrorKind) -> None:
        self._notify("on_error", message, kind)

    def _notify(self, event: str, *args) -> None:
        try:
            getattr(self.listener, event)(*args)
        except Exception:
            logger.exception("Listener %s raised", event)
