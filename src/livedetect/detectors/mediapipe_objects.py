from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from livedetect.config import DetectorConfig
from livedetect.detectors.base import BaseObjectDetector, BoundingBox, Category, Detection
from livedetect.errors import DetectorInitError

logger = logging.getLogger("livedetect.detectors.mediapipe")


class MediaPipeObjectDetector(BaseObjectDetector):
    name = "mediapipe"
    input_color_order = "rgb"

    def __init__(self, config: DetectorConfig, use_gpu: bool = False) -> None:
        super().__init__(config, use_gpu=use_gpu)

        model_path = Path(config.model_path)
        if not model_path.exists():
            raise DetectorInitError(
                f"MediaPipe object detector model not found at: {model_path}. "
                "Download it first (see scripts/download_model.py)."
            )

        try:
            import mediapipe as mp
            from mediapipe.tasks import python as mp_python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise DetectorInitError(
                "MediaPipe backend requires mediapipe. Install with: pip install 'livedetect[mediapipe]'"
            ) from e

        delegate = mp_python.BaseOptions.Delegate.GPU if use_gpu else mp_python.BaseOptions.Delegate.CPU
        # The Tasks API picks its own thread pool; thread_count only applies to the YOLO backend.
        logger.debug("MediaPipe ignores thread_count=%d", config.thread_count)

        options = vision.ObjectDetectorOptions(
            base_options=mp_python.BaseOptions(
                model_asset_path=str(model_path),
                delegate=delegate,
            ),
            running_mode=vision.RunningMode.IMAGE,
            max_results=config.max_results,
            score_threshold=config.score_threshold,
        )
        try:
            self.detector = vision.ObjectDetector.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            raise DetectorInitError(f"MediaPipe object detector failed to initialize: {e}") from e

        self._mp_image_cls = mp.Image
        self._mp_image_fmt = mp.ImageFormat
        logger.info(
            "MediaPipe object detector ready (model=%s, delegate=%s)",
            model_path,
            "GPU" if use_gpu else "CPU",
        )

    def _infer(self, image: np.ndarray) -> list[Detection]:
        mp_image = self._mp_image_cls(image_format=self._mp_image_fmt.SRGB, data=image)
        result = self.detector.detect(mp_image)

        detections = []
        for det in result.detections or []:
            box = det.bounding_box
            categories = tuple(
                Category(
                    label=c.category_name or c.display_name or f"class_{c.index}",
                    score=float(c.score),
                )
                for c in det.categories
            )
            detections.append(
                Detection(
                    bounding_box=BoundingBox(
                        x=float(box.origin_x),
                        y=float(box.origin_y),
                        width=float(box.width),
                        height=float(box.height),
                    ),
                    categories=categories,
                )
            )
        return detections

    def close(self) -> None:
        super().close()
        if hasattr(self.detector, "close"):
            self.detector.close()
