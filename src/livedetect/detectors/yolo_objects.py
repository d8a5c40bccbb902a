from __future__ import annotations

import logging

import numpy as np

from livedetect.config import DetectorConfig
from livedetect.detectors.base import BaseObjectDetector, BoundingBox, Category, Detection
from livedetect.errors import DetectorInitError

logger = logging.getLogger("livedetect.detectors.yolo")


class YoloObjectDetector(BaseObjectDetector):
    name = "yolo"
    # Ultralytics treats numpy sources as OpenCV BGR.
    input_color_order = "bgr"

    def __init__(
        self,
        config: DetectorConfig,
        use_gpu: bool = False,
        iou_threshold: float = 0.45,
        imgsz: int = 640,
    ) -> None:
        super().__init__(config, use_gpu=use_gpu)
        try:
            import torch
            from ultralytics import YOLO
        except ImportError as e:
            raise DetectorInitError(
                "YOLO backend requires ultralytics. Install with: pip install 'livedetect[yolo]'"
            ) from e

        self.device = self._select_device(torch) if use_gpu else "cpu"
        if self.device == "cpu":
            torch.set_num_threads(config.thread_count)

        try:
            self.model = YOLO(config.model_path)
        except (FileNotFoundError, RuntimeError, ValueError) as e:
            raise DetectorInitError(f"YOLO model failed to load from {config.model_path}: {e}") from e

        self.iou_threshold = iou_threshold
        self.imgsz = imgsz
        logger.info("YOLO detector ready (model=%s, device=%s)", config.model_path, self.device)

    @staticmethod
    def _select_device(torch) -> str:
        if torch.cuda.is_available():
            return "cuda:0"
        mps = getattr(torch.backends, "mps", None)
        if mps is not None and mps.is_available():
            return "mps"
        return "cpu"

    def _infer(self, image: np.ndarray) -> list[Detection]:
        results = self.model.predict(
            source=image,
            conf=self.config.score_threshold,
            iou=self.iou_threshold,
            imgsz=self.imgsz,
            max_det=self.config.max_results,
            device=self.device,
            verbose=False,
        )
        if not results:
            return []

        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []

        names = getattr(result, "names", None) or {}
        xyxy = boxes.xyxy.cpu().numpy()
        confidences = boxes.conf.cpu().numpy()
        classes = boxes.cls.cpu().numpy().astype(int)

        detections = []
        for (x1, y1, x2, y2), conf, cls_id in zip(xyxy, confidences, classes):
            label = names.get(int(cls_id), f"class_{cls_id}") if isinstance(names, dict) else f"class_{cls_id}"
            detections.append(
                Detection(
                    bounding_box=BoundingBox(
                        x=float(x1),
                        y=float(y1),
                        width=float(x2 - x1),
                        height=float(y2 - y1),
                    ),
                    categories=(Category(label=str(label), score=float(conf)),),
                )
            )
        return detections
