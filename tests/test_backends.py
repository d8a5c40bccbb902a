from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

from livedetect.detectors.base import BaseObjectDetector
from livedetect.detectors.mediapipe_objects import MediaPipeObjectDetector
from livedetect.detectors.yolo_objects import YoloObjectDetector
from livedetect.frames import TensorInput


class FakeTensor:
    def __init__(self, values) -> None:
        self._values = np.asarray(values, dtype=np.float32)

    def cpu(self) -> "FakeTensor":
        return self

    def numpy(self) -> np.ndarray:
        return self._values


class FakeBoxes:
    def __init__(self, xyxy, conf, cls) -> None:
        self.xyxy = FakeTensor(xyxy)
        self.conf = FakeTensor(conf)
        self.cls = FakeTensor(cls)

    def __len__(self) -> int:
        return len(self.conf.numpy())


class FakeYoloModel:
    def __init__(self, results) -> None:
        self.results = results
        self.kwargs = None

    def predict(self, **kwargs):
        self.kwargs = kwargs
        return self.results


def yolo_detector(config, results) -> YoloObjectDetector:
    det = object.__new__(YoloObjectDetector)
    BaseObjectDetector.__init__(det, config)
    det.model = FakeYoloModel(results)
    det.iou_threshold = 0.45
    det.imgsz = 640
    det.device = "cpu"
    return det


def mediapipe_detector(config, detections) -> MediaPipeObjectDetector:
    det = object.__new__(MediaPipeObjectDetector)
    BaseObjectDetector.__init__(det, config)
    det._mp_image_cls = lambda image_format, data: data
    det._mp_image_fmt = SimpleNamespace(SRGB="srgb")
    det.detector = SimpleNamespace(
        detect=lambda image: SimpleNamespace(detections=detections),
        close=lambda: None,
    )
    return det


def mp_detection(origin_x, origin_y, width, height, *categories):
    return SimpleNamespace(
        bounding_box=SimpleNamespace(origin_x=origin_x, origin_y=origin_y, width=width, height=height),
        categories=[
            SimpleNamespace(category_name=name, display_name=display, index=index, score=score)
            for name, display, index, score in categories
        ],
    )


def test_yolo_boxes_become_xywh_detections(config):
    boxes = FakeBoxes(
        xyxy=[[10, 20, 50, 80], [0, 0, 5, 5]],
        conf=[0.9, 0.7],
        cls=[0, 5],
    )
    det = yolo_detector(config, [SimpleNamespace(boxes=boxes, names={0: "person"})])

    result = det.detect(TensorInput(image=np.zeros((4, 4, 3), np.uint8), color_order="bgr", frame_id=11))

    assert [d.best.label for d in result] == ["person", "class_5"]
    first = result[0].bounding_box
    assert (first.x, first.y, first.width, first.height) == (10.0, 20.0, 40.0, 60.0)
    assert result[0].score == pytest.approx(0.9)
    assert result.metadata["frame_id"] == 11
    assert det.model.kwargs["max_det"] == config.max_results
    assert det.model.kwargs["conf"] == config.score_threshold


def test_yolo_without_boxes_returns_empty_result(config):
    empty = FakeBoxes(xyxy=np.zeros((0, 4)), conf=[], cls=[])
    for results in ([], [SimpleNamespace(boxes=None, names={})], [SimpleNamespace(boxes=empty, names={})]):
        det = yolo_detector(config, results)
        assert det._infer(np.zeros((4, 4, 3), np.uint8)) == []


def test_yolo_results_are_ranked_and_capped(config):
    boxes = FakeBoxes(
        xyxy=[[0, 0, 1, 1]] * 5,
        conf=[0.55, 0.95, 0.3, 0.75, 0.65],
        cls=[0, 0, 0, 0, 0],
    )
    det = yolo_detector(config, [SimpleNamespace(boxes=boxes, names={0: "cup"})])

    result = det.detect(TensorInput(image=np.zeros((4, 4, 3), np.uint8), color_order="bgr"))

    assert [d.score for d in result] == pytest.approx([0.95, 0.75, 0.65])
    assert result.metadata["candidates"] == 5


def test_mediapipe_labels_fall_back_to_display_name_then_index(config):
    detections = [
        mp_detection(1, 2, 30, 40, ("", "Coffee cup", 47, 0.8)),
        mp_detection(5, 6, 7, 8, ("", "", 3, 0.6)),
        mp_detection(0, 0, 10, 10, ("dog", "Dog", 18, 0.9)),
    ]
    det = mediapipe_detector(config, detections)

    result = det.detect(TensorInput(image=np.zeros((4, 4, 3), np.uint8), color_order="rgb"))

    assert [d.best.label for d in result] == ["dog", "Coffee cup", "class_3"]
    cup = result[1].bounding_box
    assert (cup.x, cup.y, cup.width, cup.height) == (1.0, 2.0, 30.0, 40.0)


def test_mediapipe_none_detections_is_empty(config):
    det = mediapipe_detector(config, None)
    assert det._infer(np.zeros((4, 4, 3), np.uint8)) == []


def test_mediapipe_close_releases_task(config):
    closed = []
    det = mediapipe_detector(config, [])
    det.detector = SimpleNamespace(detect=lambda image: None, close=lambda: closed.append(True))

    det.close()

    assert det.closed
    assert closed == [True]
