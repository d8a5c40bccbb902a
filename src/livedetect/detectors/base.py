from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Sequence

import numpy as np

from livedetect.config import DetectorConfig
from livedetect.errors import FrameError, NotReadyError
from livedetect.frames import TensorInput


class AccelerationCapability(Enum):
    CPU_ONLY = "cpu_only"
    GPU_CAPABLE = "gpu_capable"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in pixel coordinates of the upright (rotated) image."""

    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class Category:
    label: str
    score: float


@dataclass(frozen=True)
class Detection:
    bounding_box: BoundingBox
    categories: tuple[Category, ...]

    @property
    def best(self) -> Category | None:
        return self.categories[0] if self.categories else None

    @property
    def score(self) -> float:
        return self.categories[0].score if self.categories else 0.0


@dataclass(frozen=True)
class DetectionResult:
    detections: tuple[Detection, ...] = ()
    latency_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def __getitem__(self, idx: int) -> Detection:
        return self.detections[idx]

    def to_records(self) -> list[dict]:
        return [
            {
                "box": [d.bounding_box.x, d.bounding_box.y, d.bounding_box.width, d.bounding_box.height],
                "categories": [{"label": c.label, "score": c.score} for c in d.categories],
            }
            for d in self.detections
        ]


def rank_detections(
    candidates: Sequence[Detection],
    score_threshold: float,
    max_results: int,
) -> tuple[Detection, ...]:
    """Order categories and detections by descending score, drop weak ones, cap the count."""
    ranked = []
    for det in candidates:
        categories = tuple(
            sorted(
                (c for c in det.categories if c.score >= score_threshold),
                key=lambda c: c.score,
                reverse=True,
            )
        )
        if not categories:
            continue
        ranked.append(Detection(bounding_box=det.bounding_box, categories=categories))

    # sorted() is stable, so equal scores keep backend order.
    ranked.sort(key=lambda d: d.score, reverse=True)
    return tuple(ranked[:max_results])


class BaseObjectDetector:
    """Subclasses return raw candidates from ``_infer``; ranking happens here."""

    name = "base"
    input_color_order = "rgb"

    def __init__(self, config: DetectorConfig, use_gpu: bool = False) -> None:
        self.config = config
        self.use_gpu = use_gpu
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def detect(self, tensor: TensorInput) -> DetectionResult:
        if self._closed:
            raise NotReadyError(f"{self.name} detector is closed")
        if tensor.color_order != self.input_color_order:
            raise FrameError(
                f"{self.name} expects {self.input_color_order} input, got {tensor.color_order}"
            )

        t0 = time.perf_counter()
        candidates = self._infer(tensor.image)
        latency_ms = (time.perf_counter() - t0) * 1000.0
        detections = rank_detections(
            candidates,
            score_threshold=self.config.score_threshold,
            max_results=self.config.max_results,
        )
        return DetectionResult(
            detections=detections,
            latency_ms=latency_ms,
            metadata={
                "backend": self.name,
                "gpu": self.use_gpu,
                "frame_id": tensor.frame_id,
                "candidates": len(candidates),
            },
        )

    def _infer(self, image: np.ndarray) -> list[Detection]:  # pragma: no cover - interface
        raise NotImplementedError

    def close(self) -> None:
        self._closed = True
