from __future__ import annotations

import pytest

from livedetect.config import DetectorConfig
from livedetect.detectors import factory
from livedetect.detectors.base import AccelerationCapability
from livedetect.errors import DetectorInitError

from fakes import ScriptedDetector


@pytest.mark.parametrize(
    "capability,requested,expected",
    [
        (AccelerationCapability.GPU_CAPABLE, True, True),
        (AccelerationCapability.GPU_CAPABLE, False, False),
        (AccelerationCapability.CPU_ONLY, True, False),
        (AccelerationCapability.CPU_ONLY, False, False),
    ],
)
def test_gpu_only_when_capable_and_requested(monkeypatch, capability, requested, expected):
    seen = {}

    def fake_build(config, use_gpu):
        seen["use_gpu"] = use_gpu
        return ScriptedDetector(config, use_gpu=use_gpu)

    monkeypatch.setattr(factory, "build_detector", fake_build)
    config = DetectorConfig(acceleration_requested=requested, model_path="m")

    detector = factory.initialize_detector(config, capability)

    assert seen["use_gpu"] is expected
    assert detector.use_gpu is expected


def test_unknown_backend_is_init_error():
    config = DetectorConfig(backend="tflite-micro", model_path="m")
    with pytest.raises(DetectorInitError, match="Unsupported"):
        factory.initialize_detector(config, AccelerationCapability.CPU_ONLY)


def test_missing_mediapipe_model_is_init_error(tmp_path):
    config = DetectorConfig(backend="mediapipe", model_path=str(tmp_path / "missing.tflite"))
    with pytest.raises(DetectorInitError, match="not found"):
        factory.initialize_detector(config, AccelerationCapability.CPU_ONLY)


def test_unexpected_construction_error_is_wrapped(monkeypatch):
    def exploding_build(config, use_gpu):
        raise OSError("corrupt model")

    monkeypatch.setattr(factory, "build_detector", exploding_build)
    with pytest.raises(DetectorInitError, match="corrupt model"):
        factory.initialize_detector(DetectorConfig(model_path="m"), AccelerationCapability.CPU_ONLY)
