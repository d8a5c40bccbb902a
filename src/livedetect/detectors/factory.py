from __future__ import annotations

import logging

from livedetect.config import DetectorConfig
from livedetect.detectors.base import AccelerationCapability, BaseObjectDetector
from livedetect.errors import DetectorInitError

logger = logging.getLogger("livedetect.factory")

SUPPORTED_BACKENDS = ("mediapipe", "yolo")


def should_use_gpu(config: DetectorConfig, capability: AccelerationCapability) -> bool:
    return capability is AccelerationCapability.GPU_CAPABLE and config.acceleration_requested


def build_detector(config: DetectorConfig, use_gpu: bool) -> BaseObjectDetector:
    key = config.backend.lower()

    if key == "mediapipe":
        from livedetect.detectors.mediapipe_objects import MediaPipeObjectDetector

        return MediaPipeObjectDetector(config, use_gpu=use_gpu)

    if key == "yolo":
        from livedetect.detectors.yolo_objects import YoloObjectDetector

        return YoloObjectDetector(config, use_gpu=use_gpu)

    raise DetectorInitError(
        f"Unsupported detector backend: {config.backend}. Choose one of: {', '.join(SUPPORTED_BACKENDS)}"
    )


def initialize_detector(config: DetectorConfig, capability: AccelerationCapability) -> BaseObjectDetector:
    """Construct the detector for ``config``, using the GPU only when both available and requested.

    Raises DetectorInitError for every construction failure.
    """
    use_gpu = should_use_gpu(config, capability)
    if config.acceleration_requested and not use_gpu:
        logger.info("GPU requested but not available; using CPU")

    try:
        return build_detector(config, use_gpu=use_gpu)
    except DetectorInitError:
        raise
    except Exception as e:
        raise DetectorInitError(f"{config.backend} detector failed to initialize: {e}") from e
