from __future__ import annotations

import pytest

from livedetect.config import DetectorConfig
from livedetect.detectors.capability import CapabilityProber

from fakes import RecordingListener


@pytest.fixture
def config() -> DetectorConfig:
    return DetectorConfig(score_threshold=0.5, max_results=3, thread_count=2, model_path="unused.tflite")


@pytest.fixture
def cpu_prober() -> CapabilityProber:
    return CapabilityProber(checks=())


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
